"""
Automaton Walker

Generates grammar-conformant strings by random walks over a compiled
automaton: start at the start state, follow one edge at a time appending
its trigger, and stop only on a final state.
"""

import random
import logging
from collections import deque
from typing import Dict, List, Optional, Set, Tuple

from .model import Automaton


logger = logging.getLogger("grammaton.automaton.walker")

# (state id, index of the chosen edge in that state's edge list)
Step = Tuple[int, int]


def distances_to_final(automaton: Automaton) -> Dict[int, int]:
    """Fewest edges from each state to any final state."""
    incoming: Dict[int, List[int]] = {}
    for state in automaton.states:
        for edge in state.edges:
            incoming.setdefault(edge.dest, []).append(state.id)

    distance = {state_id: 0 for state_id in automaton.final_states}
    queue = deque(distance)
    while queue:
        state_id = queue.popleft()
        for source in incoming.get(state_id, []):
            if source not in distance:
                distance[source] = distance[state_id] + 1
                queue.append(source)
    return distance


class AutomatonWalker:
    """
    Random-walk generator over an automaton.

    Features:
    - Uniform edge choice at every state
    - Configurable stop probability on final states
    - Soft length bound: past max_length the walk heads for the nearest final state
    """

    def __init__(self, automaton: Automaton, max_length: int = 1000,
                 stop_probability: float = 0.3, seed: int = None):
        """
        Initialize walker.

        Args:
            automaton: Compiled automaton
            max_length: Output length after which the walk steers to a final state
            stop_probability: Chance of stopping on a final state that has edges
            seed: Random seed for reproducibility

        Raises:
            AutomatonInvariantError: the automaton has a state that cannot reach a final state
        """
        automaton.check()
        self.automaton = automaton
        self.max_length = max_length
        self.stop_probability = stop_probability
        self.rng = random.Random(seed)
        self.distance = distances_to_final(automaton)
        self.max_steps = 4 * max_length + automaton.num_states
        self.logger = logging.getLogger("grammaton.automaton.walker")

    def walk(self) -> List[Step]:
        """
        Perform one walk.

        Returns:
            Sequence of (state, edge index) choices ending on a final state
        """
        states = self.automaton.states
        state_id = self.automaton.start
        steps: List[Step] = []
        length = 0

        while True:
            state = states[state_id]
            steering = length >= self.max_length or len(steps) >= self.max_steps

            if state.final and (not state.edges or steering or self.rng.random() < self.stop_probability):
                return steps

            if steering:
                here = self.distance[state_id]
                choices = [i for i, edge in enumerate(state.edges) if self.distance.get(edge.dest, here) < here]
            else:
                choices = range(len(state.edges))

            index = self.rng.choice(choices)
            edge = state.edges[index]
            steps.append((state_id, index))
            length += len(edge.trigger)
            state_id = edge.dest

    def concretize(self, steps: List[Step]) -> str:
        """Concatenate the triggers along a walk."""
        states = self.automaton.states
        return "".join(states[state_id].edges[index].trigger for state_id, index in steps)

    def generate(self, seed: int = None) -> str:
        """
        Generate one string.

        Args:
            seed: Reseed the walker before generating

        Returns:
            Generated string
        """
        if seed is not None:
            self.rng.seed(seed)
        return self.concretize(self.walk())

    def generate_batch(self, count: int) -> List[str]:
        return [self.generate() for _ in range(count)]

    def get_statistics(self, samples: int = 100) -> Dict:
        """
        Get statistics about generated strings.

        Args:
            samples: Number of samples to analyze

        Returns:
            Dict with statistics
        """
        generated = self.generate_batch(samples)

        lengths = [len(s) for s in generated]
        unique = len(set(generated))

        return {
            'samples': samples,
            'avg_length': sum(lengths) / len(lengths) if lengths else 0,
            'min_length': min(lengths) if lengths else 0,
            'max_length': max(lengths) if lengths else 0,
            'unique_count': unique,
            'uniqueness_ratio': (unique / samples) * 100 if samples else 0
        }


def enumerate_strings(automaton: Automaton, max_triggers: int) -> Set[str]:
    """
    Every string spelled by a walk that ends on a final state and takes at
    most `max_triggers` non-empty edges.

    Empty-trigger cycles are cut by refusing to revisit a state before the
    next non-empty edge.
    """
    results: Set[str] = set()
    stack = [(automaton.start, "", 0, frozenset([automaton.start]))]

    while stack:
        state_id, text, taken, since_last = stack.pop()
        state = automaton.states[state_id]
        if state.final:
            results.add(text)
        for edge in state.edges:
            if edge.trigger:
                if taken < max_triggers:
                    stack.append((edge.dest, text + edge.trigger, taken + 1, frozenset([edge.dest])))
            elif edge.dest not in since_last:
                stack.append((edge.dest, text, taken, since_last | {edge.dest}))

    return results


def generate_from_automaton(automaton: Automaton, count: int = 1, seed: Optional[int] = None) -> List[str]:
    """
    Quick function to generate strings from an automaton.

    Example:
        >>> automaton = build_automaton(grammar)
        >>> strings = generate_from_automaton(automaton, count=10)
    """
    walker = AutomatonWalker(automaton, seed=seed)
    return walker.generate_batch(count)
