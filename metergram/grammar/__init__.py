"""Lexicalized probabilistic grammar over measure rhythms."""

from metergram.grammar.lpcfg import Grammar
from metergram.grammar.nonterminal import Level, Nonterminal, Tree
from metergram.grammar.probability import GrammarElementNotFoundError, ProbabilityTracker
from metergram.grammar.terminal import Head, Quantum, Terminal
from metergram.grammar.tree_factory import make_tree, make_tree_from_quantums

__all__ = [
    "Grammar",
    "GrammarElementNotFoundError",
    "Head",
    "Level",
    "Nonterminal",
    "ProbabilityTracker",
    "Quantum",
    "Terminal",
    "Tree",
    "make_tree",
    "make_tree_from_quantums",
]
