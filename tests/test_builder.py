"""
Tests for automaton/builder.py and automaton/model.py.
"""

import pytest

from grammaton.automaton.builder import AutomatonBuilder, build_automaton
from grammaton.automaton.model import Automaton, Edge, State
from grammaton.automaton.walker import enumerate_strings
from grammaton.errors import (
    AutomatonInvariantError,
    EmptyGrammar,
    NonTerminatingGrammar,
    StackLimitExceeded,
    StateLimitExceeded,
    UndefinedSymbol,
)
from grammaton.grammar.analyzer import analyze
from grammaton.grammar.builtin_grammars import BuiltinGrammars
from grammaton.grammar.model import Grammar, NonTerminalRef, Terminal
from grammaton.grammar.recognizer import derives


class TestConstruction:
    """Tests for the core expansion algorithm."""

    def test_anbn_start_state(self, anbn_grammar):
        """Start branches on 'a' into the recursion and on 'c' straight to a final state."""
        automaton = build_automaton(anbn_grammar)
        start = automaton[automaton.start]

        assert automaton.start == 0
        assert [edge.trigger for edge in start.edges] == ["a", "c"]
        assert not start.final
        assert automaton[start.edges[1].dest].final

    def test_anbn_walk_acb(self, anbn_grammar):
        """Walking a, c, b ends on a final state."""
        automaton = build_automaton(anbn_grammar)
        state = automaton.start
        for trigger in ["a", "c", "b"]:
            matches = [edge for edge in automaton[state].edges if edge.trigger == trigger]
            assert len(matches) == 1
            state = matches[0].dest
        assert automaton[state].final
        assert derives(anbn_grammar, "acb")

    def test_anbn_completeness_depth_three(self, anbn_grammar):
        """Derivations up to depth 3 are exactly the walks with up to 5 triggers."""
        automaton = build_automaton(anbn_grammar)
        assert enumerate_strings(automaton, 5) == {"c", "acb", "aacbb"}

    def test_anbn_soundness(self, anbn_grammar):
        automaton = build_automaton(anbn_grammar)
        walks = enumerate_strings(automaton, 11)
        assert len(walks) == 6
        assert all(derives(anbn_grammar, text) for text in walks)

    def test_self_recursion_closes_cycle(self):
        """Right recursion reuses the (S, ε) state instead of unfolding."""
        grammar = Grammar.from_dict({"S": [["a", "S"], ["a"]]})
        automaton = build_automaton(grammar)
        assert automaton.num_states == 2
        assert automaton[0].edges == [Edge("a", 0), Edge("a", 1)]
        assert automaton[1].final
        assert automaton.accepts("a" * 50)

    def test_empty_alternative_marks_start_final(self):
        grammar = Grammar.from_dict({"S": [[]]})
        automaton = build_automaton(grammar)
        assert automaton.num_states == 1
        assert automaton[0].final
        assert automaton[0].edges == []
        assert automaton.accepts("")

    def test_empty_alternative_bridges_continuation(self, optional_grammar):
        automaton = build_automaton(optional_grammar)
        bridges = [edge for state in automaton.states for edge in state.edges if edge.trigger == ""]
        assert len(bridges) == 1
        assert enumerate_strings(automaton, 3) == {"ac", "abc"}

    def test_empty_terminals_are_skipped(self):
        grammar = Grammar({"S": [(Terminal(""), Terminal("x"), Terminal(""))]})
        automaton = build_automaton(grammar)
        assert automaton.triggers() == ["x"]
        assert automaton.accepts("x")

    def test_chain_of_terminals(self):
        grammar = Grammar.from_dict({"S": [["GET", " ", "/"]]})
        automaton = build_automaton(grammar)
        assert automaton.num_states == 4
        assert automaton.accepts("GET /")
        assert not automaton.accepts("GET")

    def test_no_empty_self_loops(self):
        grammar = Grammar.from_dict({"S": [["S"], ["x"]]})
        automaton = build_automaton(grammar)
        for state in automaton.states:
            assert Edge("", state.id) not in state.edges

    def test_unit_cycle_between_rules(self):
        """A -> B | a, B -> A | b yields empty edges both ways but stays finite."""
        grammar = Grammar.from_dict({"A": [["B"], ["a"]], "B": [["A"], ["b"]]})
        automaton = build_automaton(grammar)
        assert enumerate_strings(automaton, 1) == {"a", "b"}

    def test_left_recursion(self):
        grammar = Grammar.from_dict({"E": [["E", "+", "n"], ["n"]]})
        automaton = build_automaton(grammar, stack_limit=6)
        assert automaton.accepts("n+n+n+n")
        assert all(derives(grammar, text) for text in enumerate_strings(automaton, 7))

    def test_nested_list_grammar(self, list_grammar):
        automaton = build_automaton(list_grammar, stack_limit=6)
        for text in ["0", "0,1", "[0],1", "[[1,0]]"]:
            assert automaton.accepts(text), text
        assert not automaton.accepts("[0")
        assert all(derives(list_grammar, text) for text in enumerate_strings(automaton, 6))

    def test_structural_invariants(self, list_grammar):
        automaton = build_automaton(list_grammar, stack_limit=5)
        automaton.check()
        assert automaton.reachable() == set(range(automaton.num_states))
        assert automaton.final_states

    def test_statistics(self, anbn_grammar):
        builder = AutomatonBuilder(anbn_grammar, stack_limit=4)
        automaton = builder.build()
        assert builder.stats['states'] == automaton.num_states
        assert builder.stats['edges'] == automaton.num_edges
        assert builder.stats['memo_hits'] > 0
        assert builder.stats['pruned_expansions'] == 1


class TestLimits:
    """Tests for the stack limit and state budget."""

    def test_stack_limit_bounds_nesting(self, anbn_grammar):
        automaton = build_automaton(anbn_grammar, stack_limit=1)
        assert automaton.accepts("acb")
        assert not automaton.accepts("aacbb")

    def test_stack_limit_zero(self, anbn_grammar):
        automaton = build_automaton(anbn_grammar, stack_limit=0)
        assert enumerate_strings(automaton, 10) == {"c"}

    def test_pruned_states_are_removed(self, anbn_grammar):
        """No state is left without a way to a final state."""
        automaton = build_automaton(anbn_grammar, stack_limit=2)
        for state in automaton.states:
            assert state.final or state.edges

    def test_stack_limit_exceeded(self):
        grammar = Grammar.from_dict({"S": [["x", "T", "y"]], "T": [["z"]]})
        with pytest.raises(StackLimitExceeded) as exc_info:
            build_automaton(grammar, stack_limit=0)
        assert exc_info.value.symbol == "S"

    def test_state_budget(self, anbn_grammar):
        with pytest.raises(StateLimitExceeded):
            build_automaton(anbn_grammar, max_states=3)

    def test_state_budget_disabled(self, anbn_grammar):
        automaton = build_automaton(anbn_grammar, stack_limit=3, max_states=0)
        assert automaton.accepts("aaacbbb")

    @pytest.mark.parametrize("kwargs", [{"stack_limit": -1}, {"max_states": -1}])
    def test_negative_limits(self, anbn_grammar, kwargs):
        with pytest.raises(ValueError):
            AutomatonBuilder(anbn_grammar, **kwargs)


class TestRejection:
    """Tests for grammars that must not compile."""

    def test_non_terminating(self):
        grammar = Grammar.from_dict({"A": [["A"]]})
        with pytest.raises(NonTerminatingGrammar) as exc_info:
            build_automaton(grammar)
        assert exc_info.value.symbol == "A"

    def test_undefined_symbol(self):
        grammar = Grammar({"S": [(Terminal("a"), NonTerminalRef("X"))], "T": [(Terminal("t"),)]})
        with pytest.raises(UndefinedSymbol) as exc_info:
            build_automaton(grammar)
        assert exc_info.value.symbol == "X"

    def test_undefined_symbol_in_unreachable_rule(self):
        """Closure is checked over the whole grammar, not just what the start reaches."""
        grammar = Grammar({"S": [(Terminal("a"),)], "U": [(NonTerminalRef("X"),)]})
        with pytest.raises(UndefinedSymbol):
            build_automaton(grammar)

    def test_empty_grammar(self):
        with pytest.raises(EmptyGrammar):
            build_automaton(Grammar({}))

    def test_missing_start(self, anbn_grammar):
        anbn_grammar.start = "Q"
        with pytest.raises(EmptyGrammar):
            build_automaton(anbn_grammar)


class TestDeterminism:
    """Repeated builds give the same automaton."""

    def test_same_structure(self, list_grammar):
        first = build_automaton(list_grammar, stack_limit=5)
        second = build_automaton(list_grammar, stack_limit=5)
        assert first.num_states == second.num_states
        assert first.structure_signature() == second.structure_signature()
        assert first == second

    def test_builder_reuse(self, anbn_grammar):
        builder = AutomatonBuilder(anbn_grammar, stack_limit=3)
        assert builder.build() == builder.build()


class TestBuiltins:
    """Built-in grammars compile and their walks derive from the grammar."""

    @pytest.mark.parametrize("name,stack_limit", [("arithmetic", 4), ("json", 6), ("sql", 4), ("url", 6)])
    def test_compiles(self, name, stack_limit):
        grammar = BuiltinGrammars.get_grammar(name)
        automaton = build_automaton(grammar, stack_limit=stack_limit)
        automaton.check()
        assert automaton.final_states

    @pytest.mark.parametrize("name", BuiltinGrammars.list_grammars())
    def test_compiles_with_default_limits(self, name):
        """Every built-in grammar fits the default stack limit and state budget."""
        builder = AutomatonBuilder(BuiltinGrammars.get_grammar(name))
        automaton = builder.build()
        automaton.check()
        assert automaton.final_states
        assert builder.stats['states'] == automaton.num_states < 100_000

    @pytest.mark.parametrize("name", BuiltinGrammars.list_grammars())
    def test_no_left_recursion(self, name):
        assert analyze(BuiltinGrammars.get_grammar(name)).left_recursive == []

    def test_arithmetic_samples_derive(self):
        grammar = BuiltinGrammars.get_grammar("arithmetic")
        automaton = build_automaton(grammar, stack_limit=6)
        assert automaton.accepts("(1+2)*3")
        assert not automaton.accepts("1+")
        assert all(derives(grammar, text) for text in enumerate_strings(automaton, 4))


class TestAutomatonModel:
    """Tests for Automaton helpers."""

    def test_check_dangling_edge(self):
        automaton = Automaton(0, [State(0, [Edge("a", 3)], True)])
        with pytest.raises(AutomatonInvariantError):
            automaton.check()

    def test_check_unreachable(self):
        automaton = Automaton(0, [State(0, [], True), State(1, [], True)])
        with pytest.raises(AutomatonInvariantError):
            automaton.check()

    def test_check_bad_ids(self):
        automaton = Automaton(0, [State(1, [], True)])
        with pytest.raises(AutomatonInvariantError):
            automaton.check()

    def test_check_dead_state(self):
        """A non-final state without edges can never finish a walk."""
        automaton = Automaton(0, [State(0, [Edge("a", 1), Edge("b", 2)]), State(1, [], True), State(2, [])])
        with pytest.raises(AutomatonInvariantError) as exc_info:
            automaton.check()
        assert "[2]" in str(exc_info.value)

    def test_check_dead_cycle(self):
        automaton = Automaton(0, [State(0, [Edge("a", 1), Edge("b", 2)]), State(1, [], True), State(2, [Edge("c", 2)])])
        assert automaton.coreachable() == {0, 1}
        with pytest.raises(AutomatonInvariantError):
            automaton.check()

    def test_accepts_multi_character_triggers(self):
        automaton = Automaton(0, [State(0, [Edge("ab", 1), Edge("a", 2)]), State(1, [], True), State(2, [Edge("c", 1)])])
        assert automaton.accepts("ab")
        assert automaton.accepts("ac")
        assert not automaton.accepts("a")

    def test_structure_signature_ignores_numbering(self):
        one = Automaton(0, [State(0, [Edge("x", 1)]), State(1, [], True)])
        two = Automaton(1, [State(0, [], True), State(1, [Edge("x", 0)])])
        assert one.structure_signature() == two.structure_signature()
