"""
Grammar Analyzer

Computes which nonterminals admit a finite derivation and which are
reachable from the start symbol. Construction refuses grammars whose start
symbol depends on an unproductive nonterminal.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from grammaton.errors import NonTerminatingGrammar
from .model import Grammar, NonTerminalRef, Terminal


logger = logging.getLogger("grammaton.grammar.analyzer")


@dataclass
class GrammarReport:
    """Result of analyzing a grammar."""
    productive: Set[str]
    reachable: List[str]
    heights: Dict[str, int] = field(default_factory=dict)  # iteration a rule became productive
    unproductive: List[str] = field(default_factory=list)
    unreachable: List[str] = field(default_factory=list)
    left_recursive: List[str] = field(default_factory=list)
    iterations: int = 0

    @property
    def terminates(self) -> bool:
        return not any(name not in self.productive for name in self.reachable)


def _productive_heights(grammar: Grammar):
    heights: Dict[str, int] = {}
    iterations = 0
    changed = True

    while changed:
        changed = False
        iterations += 1
        newly = []
        for name, alternatives in grammar.rules.items():
            if name in heights:
                continue
            for alternative in alternatives:
                if all(
                    isinstance(token, Terminal) or token.name in heights
                    for token in alternative
                ):
                    newly.append(name)
                    break
        # Only commit after the sweep so heights count fixed-point rounds
        for name in newly:
            heights[name] = iterations
            changed = True

    return heights, iterations


def productive_nonterminals(grammar: Grammar) -> Set[str]:
    """Nonterminals with at least one derivation made only of terminals."""
    heights, _ = _productive_heights(grammar)
    return set(heights)


def left_recursive_nonterminals(grammar: Grammar) -> List[str]:
    """Rules with an alternative that starts with the rule itself (empty terminals skipped)."""
    result = []
    for name, alternatives in grammar.rules.items():
        for alternative in alternatives:
            head = next((t for t in alternative if not (isinstance(t, Terminal) and t.text == "")), None)
            if head == NonTerminalRef(name):
                result.append(name)
                break
    return result


def reachable_nonterminals(grammar: Grammar, start: Optional[str] = None) -> List[str]:
    """Nonterminals reachable from `start` (default: grammar start), in BFS order."""
    start = start or grammar.start
    seen = {start}
    order = [start]
    queue = deque([start])

    while queue:
        name = queue.popleft()
        for ref in grammar.references(name):
            if ref not in seen:
                seen.add(ref)
                order.append(ref)
                queue.append(ref)

    return order


def analyze(grammar: Grammar) -> GrammarReport:
    """
    Analyze a validated grammar.

    Args:
        grammar: Grammar that already passed Grammar.validate()

    Returns:
        GrammarReport
    """
    heights, iterations = _productive_heights(grammar)
    reachable = reachable_nonterminals(grammar)
    reachable_set = set(reachable)

    report = GrammarReport(
        productive=set(heights),
        reachable=reachable,
        heights=heights,
        unproductive=[name for name in grammar.rules if name not in heights],
        unreachable=[name for name in grammar.rules if name not in reachable_set],
        left_recursive=[name for name in left_recursive_nonterminals(grammar) if name in reachable_set],
        iterations=iterations,
    )

    logger.debug(
        f"Analyzed {len(grammar.rules)} rules in {iterations} iterations: "
        f"{len(report.productive)} productive, {len(reachable)} reachable"
    )
    return report


def check_termination(grammar: Grammar) -> GrammarReport:
    """
    Fail fast if the start symbol, or anything it depends on, cannot terminate.

    Raises:
        NonTerminatingGrammar: naming the first offending nonterminal in BFS order
    """
    report = analyze(grammar)

    for name in report.reachable:
        if name not in report.productive:
            logger.error(f"Non-terminal <{name}> has no finite derivation")
            raise NonTerminatingGrammar(name)

    for name in report.unreachable:
        logger.warning(f"Rule <{name}> is unreachable from <{grammar.start}>")

    # Each left-recursive step lengthens the continuation, so the state count
    # grows geometrically with the stack limit
    for name in report.left_recursive:
        logger.warning(f"Rule <{name}> is left-recursive; prefer a repetition such as <{name}> ::= <x> {{...}}")

    return report


def minimal_derivation(grammar: Grammar, name: str, heights: Dict[str, int] = None) -> str:
    """
    Return a shortest-height terminal string derivable from `name`.

    Picks, for every nonterminal, an alternative whose references all became
    productive strictly earlier, so the expansion always bottoms out.
    """
    if heights is None:
        heights, _ = _productive_heights(grammar)
    if name not in heights:
        raise NonTerminatingGrammar(name)

    out = []
    stack = [NonTerminalRef(name)]
    while stack:
        token = stack.pop()
        if isinstance(token, Terminal):
            out.append(token.text)
            continue
        height = heights[token.name]
        for alternative in grammar.rules[token.name]:
            if all(
                isinstance(t, Terminal) or heights.get(t.name, height) < height
                for t in alternative
            ):
                stack.extend(reversed(alternative))
                break
    return "".join(out)
