"""Tests for nonterminals, trees and the tree factory."""

from fractions import Fraction

from metergram.grammar.nonterminal import Level, Nonterminal, Tree
from metergram.grammar.terminal import Head, Terminal
from metergram.grammar.tree_factory import make_tree
from metergram.models import Measure
from tests.conftest import generate_voice, grid, note, tree


def test_single_terminal_beats():
    t = tree("x-x-x-x-", 4, 2)
    assert t.measure == Measure(4, 2)
    assert t.root.type_string == "MEASURE"
    assert t.root.transition_string == "STRONG_BEAT WEAK_BEAT WEAK_BEAT WEAK_BEAT"
    assert t.head == Head(Fraction(2), Fraction(0), False)
    for beat in t.root.children:
        assert len(beat.children) == 1
        assert isinstance(beat.children[0], Terminal)
        assert beat.transition_string == "x"


def test_strong_child_is_longest_head():
    t = tree("xxx-x---", 4, 2)
    beats = t.root.children
    assert t.root.transition_string == "WEAK_BEAT STRONG_BEAT WEAK_BEAT WEAK_BEAT"
    assert t.head == Head(Fraction(2), Fraction(2), False)

    # "xx" splits into sub beats
    assert beats[0].transition_string == "STRONG_SUB_BEAT WEAK_SUB_BEAT"
    assert [c.level for c in beats[0].children] == [Level.SUB_BEAT, Level.SUB_BEAT]
    assert beats[0].head == Head(Fraction(1), Fraction(0), False)

    # A beat tied over from the previous one
    assert beats[3].transition_string == "-"
    assert beats[3].head.starts_with_tie


def test_empty_and_leading_rest():
    assert tree("........", 4, 2).is_empty
    t = tree("..x-x-x-", 4, 2)
    assert not t.is_empty
    assert t.starts_with_rest
    assert not tree("x-x-x-..", 4, 2).starts_with_rest


def test_make_tree_from_notes():
    g = grid(2, 8)
    notes = generate_voice([2, 1, 1, 4])
    t = make_tree(notes, g.times, Measure(4, 2), 1, 0, 0)
    assert t == tree("x-xxx---", 4, 2)


def test_make_tree_second_measure():
    g = grid(2, 8)
    notes = generate_voice([8, 4, 4])
    assert make_tree(notes, g.times, Measure(4, 2), 1, 0, 1) == tree("x---x---", 4, 2)


def test_zero_length_note_is_single_onset():
    g = grid(2, 8)
    t = make_tree([note(3, 3)], g.times, Measure(4, 2), 1, 0, 0)
    assert t == tree("...x....", 4, 2)


def test_tie_never_overwrites_onset():
    g = grid(2, 8)
    t = make_tree([note(2, 3), note(0, 4)], g.times, Measure(4, 2), 1, 0, 0)
    assert t == tree("x-x-....", 4, 2)


def test_anacrusis_measure():
    g = grid(2, 8)
    t = make_tree(generate_voice([2, 2]), g.times, Measure(4, 2), 1, 2, -1)
    assert t == tree("......x-", 4, 2)
    assert make_tree(generate_voice([2, 2]), g.times, Measure(4, 2), 1, 2, 0) == tree("x-......", 4, 2)


def test_sub_beat_length_scales_tatums():
    g = grid(2, 16)
    notes = generate_voice([4, 2, 2, 8])
    assert make_tree(notes, g.times, Measure(4, 2), 2, 0, 0) == tree("x-xxx---", 4, 2)


def test_tree_dict_round_trip():
    t = tree("xxx-x-.x", 4, 2)
    restored = Tree.from_dict(t.to_dict())
    assert restored == t
    assert restored.head == t.head


def test_nonterminal_equality_includes_type():
    a = Nonterminal(Level.BEAT, "STRONG_BEAT")
    b = Nonterminal(Level.BEAT, "WEAK_BEAT")
    a.add_child(Terminal())
    b.add_child(Terminal())
    assert a != b


def test_pretty_string_lists_every_node():
    text = tree("xxx-x---", 4, 2).to_pretty_string()
    assert text.splitlines()[0] == "M_4,2"
    assert "STRONG_SUB_BEAT" in text
    assert len(text.splitlines()) == 1 + 1 + 4 + 2 * 2 + 3
