"""
Grammar Parser

Parses BNF/EBNF grammar text and JSON grammar files into a Grammar.
"""

import re
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from grammaton.errors import GrammarSyntaxError
from .model import Alternative, Grammar, NonTerminalRef, Terminal


logger = logging.getLogger("grammaton.grammar.parser")

# Quoted terminal or bare nonterminal name inside a JSON string alternative
_JSON_TOKEN = re.compile(r"""'((?:[^'\\]|\\.)*)'|"((?:[^"\\]|\\.)*)"|([A-Za-z_][\w\-]*)|(\S)""")

_CLOSERS = {'[': ']', '{': '}', '(': ')'}


class GrammarParser:
    """
    Parses BNF/EBNF grammar definitions.

    Supported syntax:
    - BNF: <rule> ::= <production> | <alternative>
    - Continuation lines starting with | extend the previous rule
    - EBNF extensions: {repetition}, [optional], (grouping), each may hold alternatives
    - Terminal strings: "literal" or 'literal' ("" is the empty string)
    - Comments: # comment

    EBNF constructs are rewritten into helper rules, so the result only
    contains terminals and nonterminal references:
        [x]  ->  <r__opt1> ::= x | ""
        {x}  ->  <r__rep1> ::= "" | x <r__rep1>
        (x)  ->  <r__grp1> ::= x

    Example grammar:
        <json> ::= <object> | <array>
        <object> ::= "{" [<members>] "}"
        <members> ::= <pair> | <pair> "," <members>
    """

    def __init__(self):
        self.logger = logging.getLogger("grammaton.grammar.parser")
        self.rules: Dict[str, List[Alternative]] = {}
        self._helpers: Dict[Tuple[str, str], int] = {}
        self._line = 0

    def parse(self, grammar_text: str, start: Optional[str] = None) -> Grammar:
        """
        Parse grammar text.

        Args:
            grammar_text: Grammar in BNF/EBNF format
            start: Start symbol (default: first rule)

        Returns:
            Grammar

        Raises:
            GrammarSyntaxError: malformed rule text
        """
        self.rules = {}
        self._helpers = {}
        current_rule = None

        for line_no, raw_line in enumerate(grammar_text.split('\n'), start=1):
            self._line = line_no
            line = raw_line.strip()

            # Skip empty lines and comments
            if not line or line.startswith('#'):
                continue

            if line.startswith('|'):
                if current_rule is None:
                    raise GrammarSyntaxError("continuation line without a rule", line_no)
                self.rules[current_rule].extend(self._parse_alternatives(current_rule, line[1:]))
                continue

            if '::=' not in line:
                raise GrammarSyntaxError(f"expected '<rule> ::= ...', got: {line}", line_no)

            current_rule = self._parse_rule(line)

        grammar = Grammar(self.rules, start)
        self.logger.info(f"Parsed grammar with {len(self.rules)} rules")
        return grammar

    def _parse_rule(self, line: str) -> str:
        """Parse a single grammar rule; returns its name."""
        head, body = line.split('::=', 1)

        rule_name = head.strip().strip('<>').strip()
        if not rule_name:
            raise GrammarSyntaxError("rule without a name", self._line)

        if rule_name in self.rules:
            self.logger.debug(f"Extending rule <{rule_name}>")
        # Claim the slot first so helper rules are declared after their parent
        productions = self.rules.setdefault(rule_name, [])
        productions.extend(self._parse_alternatives(rule_name, body))
        return rule_name

    def _parse_alternatives(self, rule_name: str, text: str) -> List[Alternative]:
        alternatives = []
        for part in self._split_top_level(text):
            if part.strip():
                alternatives.append(self._parse_production(rule_name, part))
        return alternatives

    def _split_top_level(self, text: str) -> List[str]:
        """Split on | outside quotes and brackets; stop at a # comment."""
        parts = []
        depth = 0
        begin = 0
        i = 0

        while i < len(text):
            char = text[i]
            if char in ('"', "'"):
                i = self._skip_terminal(text, i)
                continue
            if char in _CLOSERS:
                depth += 1
            elif char in _CLOSERS.values():
                depth -= 1
            elif char == '#' and depth == 0:
                break
            elif char == '|' and depth == 0:
                parts.append(text[begin:i])
                begin = i + 1
            i += 1

        parts.append(text[begin:i])
        return parts

    def _parse_production(self, rule_name: str, prod_text: str) -> Alternative:
        """Parse a single production into a tuple of tokens."""
        tokens = []
        i = 0

        while i < len(prod_text):
            char = prod_text[i]

            # Terminal string (quoted)
            if char in ('"', "'"):
                end = self._skip_terminal(prod_text, i)
                tokens.append(Terminal(_unescape(prod_text[i + 1:end - 1])))
                i = end

            # NonTerminal <rule_name>
            elif char == '<':
                end = prod_text.find('>', i)
                if end == -1:
                    raise GrammarSyntaxError(f"unclosed non-terminal at column {i}", self._line)
                name = prod_text[i + 1:end].strip()
                if not name:
                    raise GrammarSyntaxError("empty non-terminal name", self._line)
                tokens.append(NonTerminalRef(name))
                i = end + 1

            # Optional [...], repetition {...}, group (...)
            elif char in _CLOSERS:
                end = self._find_matching_bracket(prod_text, i)
                content = self._parse_alternatives(rule_name, prod_text[i + 1:end])
                tokens.append(self._helper_rule(rule_name, char, content))
                i = end + 1

            elif char.isspace():
                i += 1

            elif char == '#':
                break

            else:
                raise GrammarSyntaxError(f"unexpected character {char!r} in <{rule_name}>", self._line)

        return tuple(tokens)

    def _helper_rule(self, rule_name: str, bracket: str, content: List[Alternative]) -> NonTerminalRef:
        kind = {'[': 'opt', '{': 'rep', '(': 'grp'}[bracket]
        count = self._helpers.get((rule_name, kind), 0) + 1
        self._helpers[(rule_name, kind)] = count
        helper = NonTerminalRef(f"{rule_name}__{kind}{count}")

        if kind == 'opt':
            alternatives = content + [()]
        elif kind == 'rep':
            alternatives = [()] + [alternative + (helper,) for alternative in content]
        else:
            alternatives = content

        self.rules[helper.name] = alternatives
        return helper

    def _skip_terminal(self, text: str, start: int) -> int:
        """Index just past the closing quote of the terminal at `start`."""
        quote_char = text[start]
        i = start + 1
        while i < len(text):
            if text[i] == '\\':
                i += 2
                continue
            if text[i] == quote_char:
                return i + 1
            i += 1
        raise GrammarSyntaxError(f"unclosed quote at column {start}", self._line)

    def _find_matching_bracket(self, text: str, start: int) -> int:
        """Find matching closing bracket, skipping quoted terminals."""
        open_char = text[start]
        close_char = _CLOSERS[open_char]
        count = 1
        i = start + 1

        while i < len(text):
            char = text[i]
            if char in ('"', "'"):
                i = self._skip_terminal(text, i)
                continue
            if char == open_char:
                count += 1
            elif char == close_char:
                count -= 1
                if count == 0:
                    return i
            i += 1

        raise GrammarSyntaxError(f"unclosed {open_char!r} at column {start}", self._line)


def _unescape(text: str) -> str:
    return re.sub(r'\\(.)', lambda m: {'n': '\n', 't': '\t', 'r': '\r'}.get(m.group(1), m.group(1)), text)


def _parse_json_alternative(text: str) -> Alternative:
    tokens = []
    for match in _JSON_TOKEN.finditer(text):
        single, double, name, stray = match.groups()
        if stray is not None:
            raise GrammarSyntaxError(f"unexpected character {stray!r} in alternative {text!r}")
        if name is not None:
            tokens.append(NonTerminalRef(name))
        else:
            tokens.append(Terminal(_unescape(single if single is not None else double)))
    return tuple(tokens)


def load_json_grammar(source: Union[str, Dict], start: Optional[str] = None) -> Grammar:
    """
    Load a JSON grammar.

    The document maps rule names to lists of alternatives. An alternative is
    either a list of tokens (see Grammar.from_dict) or a string in which
    quoted text is a terminal and bare words are rule references:

        {"Start": ["Expr"], "Expr": ["'(' Expr ')'", "'x'"]}

    Args:
        source: JSON text or an already decoded mapping
        start: Start symbol (default: "Start" if defined, else the first rule)

    Returns:
        Grammar
    """
    if isinstance(source, str):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise GrammarSyntaxError(f"invalid JSON grammar: {e.msg}", e.lineno) from e
    else:
        data = source

    if not isinstance(data, dict):
        raise GrammarSyntaxError("JSON grammar must be an object mapping rule names to alternatives")

    list_form = {}
    for name, alternatives in data.items():
        if not isinstance(alternatives, list):
            raise GrammarSyntaxError(f"rule {name!r} must map to a list of alternatives")
        list_form[name] = [
            list(_parse_json_alternative(alt)) if isinstance(alt, str) else alt
            for alt in alternatives
        ]

    if start is None and "Start" in data:
        start = "Start"
    grammar = Grammar.from_dict(list_form, start)
    logger.info(f"Loaded JSON grammar with {len(grammar.rules)} rules")
    return grammar


def load_grammar_file(path, start: Optional[str] = None) -> Grammar:
    """
    Load a grammar file, choosing the format from its suffix.

    .json files use load_json_grammar(); everything else is BNF/EBNF.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    logger.debug(f"Loading grammar from {path}")
    if path.suffix.lower() == ".json":
        return load_json_grammar(text, start)
    return GrammarParser().parse(text, start)


# Convenience function
def parse_grammar(grammar_text: str, start: Optional[str] = None) -> Grammar:
    """
    Quick function to parse grammar.

    Example:
        >>> grammar = parse_grammar('''
        ... <expr> ::= <term> | <expr> "+" <term>
        ... <term> ::= <number> | "(" <expr> ")"
        ... <number> ::= "0" | "1" | "2"
        ... ''')
    """
    parser = GrammarParser()
    return parser.parse(grammar_text, start)
