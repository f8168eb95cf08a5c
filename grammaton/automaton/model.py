"""
Automaton Model

States, trigger-labelled edges and the finished automaton graph.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from grammaton.errors import AutomatonInvariantError


logger = logging.getLogger("grammaton.automaton.model")


@dataclass(frozen=True)
class Edge:
    """Transition consuming `trigger` (may be empty) and moving to `dest`."""
    trigger: str
    dest: int


@dataclass
class State:
    id: int
    edges: List[Edge] = field(default_factory=list)
    final: bool = False


@dataclass
class Automaton:
    """
    Compiled grammar.

    `states[i].id == i` for every state; `start` indexes into `states`.
    """
    start: int
    states: List[State]

    @property
    def num_states(self) -> int:
        return len(self.states)

    @property
    def num_edges(self) -> int:
        return sum(len(state.edges) for state in self.states)

    @property
    def final_states(self) -> List[int]:
        return [state.id for state in self.states if state.final]

    def __getitem__(self, state_id: int) -> State:
        return self.states[state_id]

    def triggers(self) -> List[str]:
        """Sorted set of non-empty trigger texts."""
        return sorted({edge.trigger for state in self.states for edge in state.edges if edge.trigger})

    def reachable(self) -> Set[int]:
        seen = {self.start}
        queue = deque([self.start])
        while queue:
            for edge in self.states[queue.popleft()].edges:
                if edge.dest not in seen:
                    seen.add(edge.dest)
                    queue.append(edge.dest)
        return seen

    def coreachable(self) -> Set[int]:
        """States from which some final state can be reached."""
        incoming: Dict[int, List[int]] = {}
        for state in self.states:
            for edge in state.edges:
                incoming.setdefault(edge.dest, []).append(state.id)

        live = set(self.final_states)
        queue = deque(live)
        while queue:
            for source in incoming.get(queue.popleft(), []):
                if source not in live:
                    live.add(source)
                    queue.append(source)
        return live

    def check(self) -> None:
        """
        Verify structural invariants.

        Raises:
            AutomatonInvariantError: ids not dense, dangling edge, a state unreachable
                from the start, or a state with no way to a final state
        """
        count = len(self.states)
        if not 0 <= self.start < count:
            raise AutomatonInvariantError(f"Start state {self.start} out of range (0..{count - 1})")

        for index, state in enumerate(self.states):
            if state.id != index:
                raise AutomatonInvariantError(f"State at index {index} has id {state.id}")
            for edge in state.edges:
                if not 0 <= edge.dest < count:
                    raise AutomatonInvariantError(
                        f"State {state.id} has dangling edge {edge.trigger!r} -> {edge.dest}"
                    )

        unreachable = count - len(self.reachable())
        if unreachable:
            raise AutomatonInvariantError(f"{unreachable} states unreachable from start {self.start}")

        dead = sorted(set(range(count)) - self.coreachable())
        if dead:
            raise AutomatonInvariantError(f"States {dead} cannot reach a final state")

    def accepts(self, text: str) -> bool:
        """
        True if some walk from the start to a final state spells `text`.

        Triggers may be multi-character, so the simulation tracks
        (state, offset) pairs rather than single characters.
        """
        frontier = deque([(self.start, 0)])
        seen: Set[Tuple[int, int]] = set(frontier)

        while frontier:
            state_id, offset = frontier.popleft()
            state = self.states[state_id]
            if offset == len(text) and state.final:
                return True
            for edge in state.edges:
                if not text.startswith(edge.trigger, offset):
                    continue
                item = (edge.dest, offset + len(edge.trigger))
                if item not in seen:
                    seen.add(item)
                    frontier.append(item)
        return False

    def structure_signature(self) -> Tuple:
        """
        Canonical form independent of state numbering.

        States are renumbered in BFS order from the start, following edges
        in declaration order, so two automata with the same shape compare equal.
        """
        order: Dict[int, int] = {self.start: 0}
        queue = deque([self.start])
        while queue:
            for edge in self.states[queue.popleft()].edges:
                if edge.dest not in order:
                    order[edge.dest] = len(order)
                    queue.append(edge.dest)

        by_new_id = sorted(order.items(), key=lambda item: item[1])
        return tuple(
            (
                self.states[old].final,
                tuple((edge.trigger, order[edge.dest]) for edge in self.states[old].edges),
            )
            for old, _ in by_new_id
        )
