"""The lexicalized probabilistic grammar of measure rhythms."""

import gzip
import json
import logging
from pathlib import Path

from metergram.grammar.nonterminal import Level, Nonterminal, Tree
from metergram.grammar.probability import GrammarElementNotFoundError, ProbabilityTracker
from metergram.grammar.terminal import Head
from metergram.models import Measure

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class Grammar:
    """A collection of trees and the event counts they add up to."""

    def __init__(self):
        self.trees: list[Tree] = []
        self.probabilities = ProbabilityTracker()

    @property
    def measures(self) -> list[Measure]:
        """Every measure type with at least one tree, sorted."""
        return sorted({tree.measure for tree in self.trees})

    def add_tree(self, tree: Tree) -> None:
        self.trees.append(tree)
        self._update_counts(tree.root, tree.head, tree.measure, adding=True)

    def extract_tree(self, tree: Tree) -> None:
        """Remove a tree equal to ``tree`` and its counts.

        Raises GrammarElementNotFoundError if no equal tree is present.
        """
        for i, candidate in enumerate(self.trees):
            if candidate == tree:
                break
        else:
            raise GrammarElementNotFoundError(f"tree not found: {tree}")

        self._update_counts(candidate.root, candidate.head, candidate.measure, adding=False)
        del self.trees[i]

    def _update_counts(self, node, parent_head: Head, measure: Measure, adding: bool) -> None:
        if not isinstance(node, Nonterminal):
            return

        head = node.head
        p = self.probabilities
        if adding:
            p.add_transition(measure, node.type_string, head, node.transition_string, node.level)
        else:
            p.remove_transition(measure, node.type_string, head, node.transition_string, node.level)

        if node.is_weak:
            if adding:
                p.add_head(measure, node.type_string, parent_head, head, node.level)
            else:
                p.remove_head(measure, node.type_string, parent_head, head, node.level)
        elif node.level is Level.MEASURE:
            if adding:
                p.add_measure_head(measure, head)
            else:
                p.remove_measure_head(measure, head)

        for child in node.children:
            self._update_counts(child, head, measure, adding)

    def tree_log_probability(self, tree: Tree) -> float:
        return self._node_log_probability(tree.root, tree.head, tree.measure)

    def _node_log_probability(self, node, parent_head: Head, measure: Measure) -> float:
        if not isinstance(node, Nonterminal):
            return 0.0

        head = node.head
        p = self.probabilities
        log_probability = p.transition_log_probability(
            measure, node.type_string, head, node.transition_string, node.level
        )

        # STRONG nodes share their parent's head
        if node.is_weak:
            log_probability += p.head_log_probability(measure, node.type_string, parent_head, head, node.level)
        elif node.level is Level.MEASURE:
            log_probability += p.measure_head_log_probability(measure, head)

        for child in node.children:
            log_probability += self._node_log_probability(child, head, measure)
        return log_probability

    def deep_copy(self) -> "Grammar":
        # Trees are never mutated once built, so they can be shared.
        copy = Grammar()
        copy.trees = list(self.trees)
        copy.probabilities = self.probabilities.deep_copy()
        return copy

    def to_pretty_string(self, tab: str = "\t") -> str:
        return "\n".join(tree.to_pretty_string(tab) for tree in self.trees)

    def __str__(self) -> str:
        return "\n".join(str(tree) for tree in self.trees)

    # Persistence

    def to_dict(self) -> dict:
        return {
            "version": FORMAT_VERSION,
            "trees": [tree.to_dict() for tree in self.trees],
            "probabilities": self.probabilities.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Grammar":
        version = data.get("version")
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported grammar format version: {version}")
        grammar = cls()
        grammar.trees = [Tree.from_dict(t) for t in data["trees"]]
        grammar.probabilities = ProbabilityTracker.from_dict(data["probabilities"])
        return grammar

    def to_bytes(self) -> bytes:
        return gzip.compress(json.dumps(self.to_dict()).encode("utf-8"))

    @classmethod
    def from_bytes(cls, blob: bytes) -> "Grammar":
        return cls.from_dict(json.loads(gzip.decompress(blob).decode("utf-8")))

    def serialize(self, path: str | Path) -> None:
        path = Path(path)
        path.write_bytes(self.to_bytes())
        logger.info(f"Saved grammar with {len(self.trees)} trees to {path}")

    @classmethod
    def deserialize(cls, path: str | Path) -> "Grammar":
        path = Path(path)
        grammar = cls.from_bytes(path.read_bytes())
        logger.info(f"Loaded grammar with {len(grammar.trees)} trees from {path}")
        return grammar
