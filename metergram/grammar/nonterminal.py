"""Nonterminals and trees of the rhythmic grammar.

A tree covers one measure of one voice. Its root is a MEASURE node whose
children are BEAT nodes. A BEAT node holds either a single terminal (when the
whole beat is one note or rest) or one SUB_BEAT node per sub beat, and each
SUB_BEAT node holds a single terminal.

Every node is lexicalized by its head, the longest note beneath it. Among
the children of a node, the one carrying the head is STRONG and the others
are WEAK. A STRONG child inherits its head from its parent, so only the
heads of WEAK nodes (and of the root) are generated by the grammar.
"""

from enum import Enum

from metergram.grammar.terminal import EMPTY_HEAD, Head, Terminal
from metergram.models import Measure


class Level(Enum):
    MEASURE = "MEASURE"
    BEAT = "BEAT"
    SUB_BEAT = "SUB_BEAT"


STRONG = "STRONG"
WEAK = "WEAK"


class Nonterminal:
    """A grammar node at one metrical level."""

    def __init__(self, level: Level, type_string: str | None = None):
        self.level = level
        self.type_string = type_string or level.value
        self.children: list["Nonterminal | Terminal"] = []

    def add_child(self, child: "Nonterminal | Terminal") -> None:
        self.children.append(child)

    @property
    def length(self) -> int:
        """Length of this node in sub beats."""
        return sum(child.length for child in self.children)

    def _strong_index(self) -> int:
        heads = [child.head for child in self.children]
        return max(range(len(heads)), key=lambda i: heads[i].length)

    @property
    def head(self) -> Head:
        if not self.children:
            return EMPTY_HEAD
        strong = self._strong_index()
        offset = sum(child.length for child in self.children[:strong])
        return self.children[strong].head.shifted(offset)

    @property
    def is_weak(self) -> bool:
        return self.type_string.startswith(WEAK)

    def fix_children_types(self) -> None:
        """Mark the child carrying this node's head STRONG and all others WEAK."""
        if not self.children:
            return
        strong = self._strong_index()
        for i, child in enumerate(self.children):
            if isinstance(child, Nonterminal):
                child.type_string = f"{STRONG if i == strong else WEAK}_{child.level.value}"

    @property
    def transition_string(self) -> str:
        """The right hand side of the rule that generated this node's children."""
        return " ".join(
            child.type_string if isinstance(child, Nonterminal) else str(child)
            for child in self.children
        )

    def terminals(self) -> list[Terminal]:
        return [t for child in self.children for t in child.terminals()]

    @property
    def is_empty(self) -> bool:
        return all(t.is_empty for t in self.terminals())

    @property
    def starts_with_rest(self) -> bool:
        terminals = self.terminals()
        return not terminals or terminals[0].starts_with_rest

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "type": self.type_string,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Nonterminal":
        node = cls(Level(data["level"]), data["type"])
        for child in data["children"]:
            node.add_child(Terminal.from_dict(child) if "pattern" in child else cls.from_dict(child))
        return node

    def to_pretty_string(self, depth: int = 0, tab: str = "\t") -> str:
        lines = [f"{tab * depth}{self.type_string} {self.head}"]
        lines.extend(child.to_pretty_string(depth + 1, tab) for child in self.children)
        return "\n".join(lines)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Nonterminal):
            return NotImplemented
        return (
            self.level == other.level
            and self.type_string == other.type_string
            and self.children == other.children
        )

    __hash__ = None

    def __str__(self) -> str:
        return f"{self.type_string}({' '.join(str(child) for child in self.children)})"


class Tree:
    """One measure of one voice, parsed under a given measure type."""

    def __init__(self, root: Nonterminal, measure: Measure):
        self.root = root
        self.measure = measure

    @property
    def head(self) -> Head:
        return self.root.head

    @property
    def is_empty(self) -> bool:
        return self.root.is_empty

    @property
    def starts_with_rest(self) -> bool:
        return self.root.starts_with_rest

    def to_dict(self) -> dict:
        return {
            "measure": [self.measure.beats_per_measure, self.measure.sub_beats_per_beat],
            "root": self.root.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Tree":
        return cls(Nonterminal.from_dict(data["root"]), Measure(*data["measure"]))

    def to_pretty_string(self, tab: str = "\t") -> str:
        return f"{self.measure}\n{self.root.to_pretty_string(1, tab)}"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Tree):
            return NotImplemented
        return self.measure == other.measure and self.root == other.root

    __hash__ = None

    def __str__(self) -> str:
        return f"{self.measure}:{self.root}"
