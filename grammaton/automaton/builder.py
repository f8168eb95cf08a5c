"""
Automaton Builder

Compiles a context-free grammar into a finite automaton by expanding each
nonterminal against the continuation that follows it. Every distinct
(nonterminal, continuation) pair owns exactly one state, so recursive rules
close cycles in the graph instead of unfolding forever.

Example:
    >>> grammar = Grammar.from_dict({"S": [["a", "S", "b"], ["c"]]})
    >>> automaton = build_automaton(grammar)
    >>> automaton.accepts("aacbb")
    True
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Tuple

from grammaton.errors import AutomatonInvariantError, StackLimitExceeded, StateLimitExceeded
from grammaton.grammar.analyzer import check_termination
from grammaton.grammar.model import Grammar, NonTerminalRef, Terminal, Token, format_tokens
from .model import Automaton, Edge, State


logger = logging.getLogger("grammaton.automaton.builder")

DEFAULT_STACK_LIMIT = 16
DEFAULT_MAX_STATES = 1_000_000


@dataclass(frozen=True)
class ContinuationKey:
    """
    Memoization key.

    `nonterminal` is None for a pending-continuation state, which only has
    to match `continuation`. ContinuationKey(None, ()) is the accept state.
    """
    nonterminal: Optional[str]
    continuation: Tuple[Token, ...]

    def __str__(self) -> str:
        head = f"<{self.nonterminal}>" if self.nonterminal is not None else "·"
        return f"{head} . {format_tokens(self.continuation)}"


ACCEPT = ContinuationKey(None, ())


def _drop_empty(tokens: Tuple[Token, ...]) -> Tuple[Token, ...]:
    """Drop empty terminals; they consume nothing."""
    return tuple(token for token in tokens if not (isinstance(token, Terminal) and token.text == ""))


class _Construction:
    """Arena and memo table owned by a single build() call."""

    def __init__(self, grammar: Grammar, stack_limit: int, max_states: int):
        self.grammar = grammar
        self.stack_limit = stack_limit
        self.max_states = max_states
        self.states: List[State] = []
        self.memo: Dict[ContinuationKey, int] = {}
        self.worklist: Deque[Tuple[ContinuationKey, int]] = deque()
        self.memo_hits = 0
        self.pruned = 0

    def new_state(self) -> int:
        if self.max_states and len(self.states) >= self.max_states:
            logger.warning(f"State budget of {self.max_states} exhausted")
            raise StateLimitExceeded(self.max_states)
        state_id = len(self.states)
        self.states.append(State(state_id))
        return state_id

    def state_for(self, key: ContinuationKey) -> Optional[int]:
        """Memoized state for `key`; None if the key exceeds the stack limit."""
        state_id = self.memo.get(key)
        if state_id is not None:
            self.memo_hits += 1
            return state_id

        if key.nonterminal is not None and len(key.continuation) > self.stack_limit:
            self.pruned += 1
            return None

        # Registered before expansion so re-entrant keys resolve to this id
        state_id = self.new_state()
        self.memo[key] = state_id
        self.worklist.append((key, state_id))
        return state_id

    def resolve(self, continuation: Tuple[Token, ...]) -> Optional[int]:
        """State that has to match exactly `continuation`."""
        continuation = _drop_empty(continuation)
        if not continuation:
            return self.state_for(ACCEPT)
        head = continuation[0]
        if isinstance(head, NonTerminalRef):
            return self.state_for(ContinuationKey(head.name, continuation[1:]))
        return self.state_for(ContinuationKey(None, continuation))

    def add_edge(self, source: int, trigger: str, dest: Optional[int]):
        if dest is None:
            return
        if trigger == "" and dest == source:
            return
        edge = Edge(trigger, dest)
        edges = self.states[source].edges
        if edge not in edges:
            edges.append(edge)

    def thread(self, origin: int, tokens: Tuple[Token, ...], continuation: Tuple[Token, ...]):
        """
        Lay out `tokens` followed by `continuation` starting at `origin`.

        Runs of terminals become chains of fresh states. The first
        nonterminal hands the rest of the sequence to its own memoized
        state, so at most one nonterminal is ever threaded here.
        """
        rest = _drop_empty(tokens)

        if not rest:
            if continuation:
                self.add_edge(origin, "", self.resolve(continuation))
            else:
                self.states[origin].final = True
            return

        head = rest[0]
        if isinstance(head, NonTerminalRef):
            key = ContinuationKey(head.name, rest[1:] + continuation)
            self.add_edge(origin, "", self.state_for(key))
            return

        current = origin
        while True:
            trigger = rest[0].text
            rest = _drop_empty(rest[1:])

            if rest and isinstance(rest[0], Terminal):
                following = self.new_state()
                self.add_edge(current, trigger, following)
                current = following
                continue

            if rest:
                dest = self.state_for(ContinuationKey(rest[0].name, rest[1:] + continuation))
            else:
                dest = self.resolve(continuation)
            self.add_edge(current, trigger, dest)
            return

    def expand(self, key: ContinuationKey, state_id: int):
        if key.nonterminal is None:
            self.thread(state_id, key.continuation, ())
            return
        for alternative in self.grammar.rules[key.nonterminal]:
            self.thread(state_id, alternative, key.continuation)

    def run(self, start_symbol: str) -> int:
        start = self.state_for(ContinuationKey(start_symbol, ()))
        while self.worklist:
            key, state_id = self.worklist.popleft()
            self.expand(key, state_id)
        return start


class AutomatonBuilder:
    """
    Grammar to automaton compiler.

    Features:
    - Termination check before any expansion
    - Memoized expansion on (nonterminal, continuation)
    - Continuation length bounded by `stack_limit`
    - Dead-state pruning and dense, creation-ordered state ids
    """

    def __init__(self, grammar: Grammar, stack_limit: int = DEFAULT_STACK_LIMIT,
                 max_states: int = DEFAULT_MAX_STATES):
        """
        Initialize the builder.

        Args:
            grammar: Grammar to compile
            stack_limit: Maximum continuation length (in tokens) kept in a state
            max_states: Abort once this many states exist (0 disables the check)
        """
        if stack_limit < 0:
            raise ValueError("stack_limit must be >= 0")
        if max_states < 0:
            raise ValueError("max_states must be >= 0")
        self.grammar = grammar
        self.stack_limit = stack_limit
        self.max_states = max_states
        self.stats: Dict[str, int] = {}
        self.logger = logging.getLogger("grammaton.automaton.builder")

    def build(self) -> Automaton:
        """
        Compile the grammar.

        Returns:
            Automaton rooted at the grammar's start symbol

        Raises:
            EmptyGrammar, UndefinedSymbol, NonTerminatingGrammar: grammar rejected
            StateLimitExceeded: the state budget ran out
            StackLimitExceeded: no derivation of the start symbol fits the stack limit
        """
        grammar = self.grammar
        grammar.validate()
        check_termination(grammar)

        self.logger.info(
            f"Building automaton for <{grammar.start}> "
            f"({len(grammar.rules)} rules, {grammar.token_count} tokens, stack limit {self.stack_limit})"
        )

        construction = _Construction(grammar, self.stack_limit, self.max_states)
        start = construction.run(grammar.start)
        automaton = self._finish(construction, start)

        self.stats = {
            'states_created': len(construction.states),
            'memo_entries': len(construction.memo),
            'memo_hits': construction.memo_hits,
            'pruned_expansions': construction.pruned,
            'dead_states': len(construction.states) - automaton.num_states,
            'states': automaton.num_states,
            'edges': automaton.num_edges,
        }
        if construction.pruned:
            self.logger.warning(
                f"Stack limit {self.stack_limit} pruned {construction.pruned} expansions; "
                f"deeper derivations are not represented"
            )
        self.logger.debug(f"Construction statistics: {self.stats}")
        self.logger.info(f"Built automaton: {automaton.num_states} states, {automaton.num_edges} edges")
        return automaton

    def _finish(self, construction: _Construction, start: int) -> Automaton:
        """Drop states that cannot reach a final state, then renumber densely."""
        states = construction.states
        live = Automaton(start, states).coreachable()

        if start not in live:
            if construction.pruned:
                raise StackLimitExceeded(self.stack_limit, self.grammar.start)
            raise AutomatonInvariantError(f"Start state of <{self.grammar.start}> cannot reach a final state")

        keep = {start}
        queue = deque([start])
        while queue:
            for edge in states[queue.popleft()].edges:
                if edge.dest in live and edge.dest not in keep:
                    keep.add(edge.dest)
                    queue.append(edge.dest)

        renumber = {old: new for new, old in enumerate(sorted(keep))}
        compact = [
            State(
                renumber[state.id],
                [Edge(edge.trigger, renumber[edge.dest]) for edge in state.edges if edge.dest in keep],
                state.final,
            )
            for state in states
            if state.id in keep
        ]

        self.logger.debug(f"Removed {len(states) - len(compact)} dead or unreachable states")
        automaton = Automaton(renumber[start], compact)
        automaton.check()
        return automaton


def build_automaton(grammar: Grammar, stack_limit: int = DEFAULT_STACK_LIMIT,
                    max_states: int = DEFAULT_MAX_STATES) -> Automaton:
    """
    Quick function to compile a grammar.

    Args:
        grammar: Grammar to compile
        stack_limit: Maximum continuation length per state
        max_states: State budget (0 disables the check)

    Returns:
        Automaton
    """
    return AutomatonBuilder(grammar, stack_limit, max_states).build()
