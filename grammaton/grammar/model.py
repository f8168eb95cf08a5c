"""
Grammar Model

Typed representation of a context-free grammar: tokens, alternatives and
the rule table keyed by nonterminal name.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from grammaton.errors import EmptyGrammar, GrammarError, UndefinedSymbol


logger = logging.getLogger("grammaton.grammar.model")


@dataclass(frozen=True)
class Terminal:
    """Literal text emitted verbatim."""
    text: str

    def __str__(self) -> str:
        return repr(self.text)


@dataclass(frozen=True)
class NonTerminalRef:
    """Reference to another rule of the grammar."""
    name: str

    def __str__(self) -> str:
        return f"<{self.name}>"


Token = Union[Terminal, NonTerminalRef]
Alternative = Tuple[Token, ...]


def format_tokens(tokens) -> str:
    """Render a token sequence as BNF-ish text ("ε" when empty)."""
    if not tokens:
        return "ε"
    return " ".join(str(token) for token in tokens)


@dataclass
class Grammar:
    """
    Mapping of nonterminal name to its ordered alternatives, plus a start symbol.

    Rule order and alternative order are preserved; they determine state
    numbering of the compiled automaton.
    """
    rules: Dict[str, List[Alternative]] = field(default_factory=dict)
    start: Optional[str] = None

    def __post_init__(self):
        self.rules = {
            name: [tuple(alternative) for alternative in alternatives]
            for name, alternatives in self.rules.items()
        }
        if self.start is None and self.rules:
            self.start = next(iter(self.rules))

    @property
    def nonterminals(self) -> List[str]:
        return list(self.rules)

    @property
    def token_count(self) -> int:
        return sum(len(alt) for alts in self.rules.values() for alt in alts)

    def alternatives(self, name: str) -> List[Alternative]:
        try:
            return self.rules[name]
        except KeyError:
            raise UndefinedSymbol(name) from None

    def references(self, name: str) -> Iterator[str]:
        """Yield the nonterminals referenced by `name`'s alternatives, in order."""
        for alternative in self.alternatives(name):
            for token in alternative:
                if isinstance(token, NonTerminalRef):
                    yield token.name

    def validate(self) -> None:
        """
        Check the closure invariant.

        Raises:
            EmptyGrammar: no rules, or the start symbol has no rule
            UndefinedSymbol: an alternative references a missing rule
        """
        if not self.rules:
            raise EmptyGrammar("grammar has no rules")
        if self.start not in self.rules:
            raise EmptyGrammar(f"start symbol <{self.start}> has no rule", self.start)

        for rule_name, alternatives in self.rules.items():
            for alternative in alternatives:
                for token in alternative:
                    if isinstance(token, NonTerminalRef):
                        if token.name not in self.rules:
                            raise UndefinedSymbol(token.name, rule_name)
                    elif not isinstance(token, Terminal):
                        raise GrammarError(
                            f"Rule <{rule_name}> contains a non-token element: {token!r}",
                            rule_name,
                        )

        logger.debug(f"Grammar valid: {len(self.rules)} rules, {self.token_count} tokens")

    @classmethod
    def from_dict(cls, data: Dict[str, List], start: Optional[str] = None) -> "Grammar":
        """
        Build a grammar from plain data.

        Each alternative is a list of tokens. A string token is a nonterminal
        reference iff it names a rule; {"nt": name} and {"t": text} force the
        kind explicitly. A misspelled rule name in the plain string form is
        therefore read as a terminal; use {"nt": name} when a reference must
        be checked by validate().

        Example:
            >>> g = Grammar.from_dict({"S": [["a", "S", "b"], ["c"]]})
            >>> g.rules["S"][1]
            (Terminal(text='c'),)
        """
        rules = {}
        for name, alternatives in data.items():
            rules[name] = [
                tuple(_token_from_data(item, data) for item in alternative)
                for alternative in alternatives
            ]
        return cls(rules, start)

    def to_dict(self) -> Dict[str, List]:
        """Inverse of from_dict, always using the explicit token form."""
        result = {}
        for name, alternatives in self.rules.items():
            result[name] = [
                [{"nt": t.name} if isinstance(t, NonTerminalRef) else {"t": t.text} for t in alt]
                for alt in alternatives
            ]
        return result

    def __str__(self) -> str:
        lines = []
        for name, alternatives in self.rules.items():
            body = " | ".join(format_tokens(alt) for alt in alternatives)
            lines.append(f"<{name}> ::= {body}")
        return "\n".join(lines)


def _token_from_data(item, rules: Dict) -> Token:
    if isinstance(item, (Terminal, NonTerminalRef)):
        return item
    if isinstance(item, str):
        if item in rules:
            return NonTerminalRef(item)
        logger.debug(f"Token {item!r} names no rule; reading it as a terminal")
        return Terminal(item)
    if isinstance(item, dict):
        if "nt" in item:
            return NonTerminalRef(item["nt"])
        if "t" in item:
            return Terminal(item["t"])
    raise GrammarError(f"Cannot interpret grammar token: {item!r}")
