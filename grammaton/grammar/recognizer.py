"""
Grammar Recognizer

Earley recognizer working directly on a Grammar. Used to confirm that
strings produced from an automaton really derive from the grammar.
Terminals may span several characters or be empty.
"""

import logging
from typing import List, Set, Tuple

from .model import Grammar, NonTerminalRef, Terminal


logger = logging.getLogger("grammaton.grammar.recognizer")

# (rule name, alternative index, dot position, origin)
Item = Tuple[str, int, int, int]


def nullable_nonterminals(grammar: Grammar) -> Set[str]:
    """Nonterminals that derive the empty string."""
    nullable: Set[str] = set()
    changed = True
    while changed:
        changed = False
        for name, alternatives in grammar.rules.items():
            if name in nullable:
                continue
            for alternative in alternatives:
                if all(
                    (isinstance(token, Terminal) and token.text == "")
                    or (isinstance(token, NonTerminalRef) and token.name in nullable)
                    for token in alternative
                ):
                    nullable.add(name)
                    changed = True
                    break
    return nullable


def derives(grammar: Grammar, text: str, start: str = None) -> bool:
    """
    True if `text` is derivable from `start` (default: grammar start).

    Args:
        grammar: Validated grammar
        text: Candidate string
        start: Nonterminal to derive from
    """
    start = start or grammar.start
    rules = grammar.rules
    nullable = nullable_nonterminals(grammar)
    size = len(text)

    charts: List[List[Item]] = [[] for _ in range(size + 1)]
    seen: List[Set[Item]] = [set() for _ in range(size + 1)]

    def add(position: int, item: Item):
        if item not in seen[position]:
            seen[position].add(item)
            charts[position].append(item)

    for index in range(len(rules[start])):
        add(0, (start, index, 0, 0))

    for position in range(size + 1):
        chart = charts[position]
        cursor = 0
        # chart grows while it is being processed
        while cursor < len(chart):
            name, index, dot, origin = chart[cursor]
            cursor += 1
            alternative = rules[name][index]

            if dot == len(alternative):
                for waiting in list(charts[origin]):
                    w_name, w_index, w_dot, w_origin = waiting
                    w_alt = rules[w_name][w_index]
                    if w_dot < len(w_alt) and w_alt[w_dot] == NonTerminalRef(name):
                        add(position, (w_name, w_index, w_dot + 1, w_origin))
                continue

            token = alternative[dot]
            if isinstance(token, NonTerminalRef):
                for ref_index in range(len(rules[token.name])):
                    add(position, (token.name, ref_index, 0, position))
                if token.name in nullable:
                    add(position, (name, index, dot + 1, origin))
            elif token.text == "":
                add(position, (name, index, dot + 1, origin))
            elif text.startswith(token.text, position):
                add(position + len(token.text), (name, index, dot + 1, origin))

    return any(
        name == start and origin == 0 and dot == len(rules[name][index])
        for name, index, dot, origin in charts[size]
    )
