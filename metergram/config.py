"""Search configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Search settings with env var overrides."""

    # Hypothesis generation
    sub_beat_lengths: list[int] = [1]  # tatums per sub beat to try
    wrong_match_limit: int = 5

    # Pruning (None keeps every live hypothesis)
    beam_width: int | None = None

    # Log hypothesis bookkeeping at INFO instead of DEBUG
    verbose: bool = False

    model_config = {"env_prefix": "METERGRAM_"}


settings = Settings()
