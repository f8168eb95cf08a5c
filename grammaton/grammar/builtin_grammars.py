"""
Built-in Grammars

Pre-defined grammars for common input formats, ready to compile.
"""

from typing import List, Optional

from .grammar_parser import GrammarParser
from .model import Grammar


_DIGIT = '"0" | "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8" | "9"'
_LETTER = '"a" | "b" | "c" | "d" | "e" | "f" | "x" | "y" | "z"'

_GRAMMARS = {
    'json': f"""
        <json> ::= <object> | <array>
        <object> ::= "{{" [<members>] "}}"
        <members> ::= <pair> {{"," <pair>}}
        <pair> ::= <string> ":" <value>
        <array> ::= "[" [<elements>] "]"
        <elements> ::= <value> {{"," <value>}}
        <value> ::= <string> | <number> | <object> | <array> | "true" | "false" | "null"
        <string> ::= '"' {{<char>}} '"'
        <number> ::= ["-"] <digits> ["." <digits>]
        <digits> ::= <digit> {{<digit>}}
        <digit> ::= {_DIGIT}
        <char> ::= {_LETTER} | " " | "_"
    """,
    'arithmetic': f"""
        <expr> ::= <term> {{("+" | "-") <term>}}
        <term> ::= <factor> {{("*" | "/") <factor>}}
        <factor> ::= <number> | "(" <expr> ")"
        <number> ::= <digit> {{<digit>}}
        <digit> ::= {_DIGIT}
    """,
    'sql': f"""
        <query> ::= "SELECT " <columns> " FROM " <identifier> [" WHERE " <condition>] [" ORDER BY " <identifier> [" ASC" | " DESC"]]
        <columns> ::= "*" | <identifier> {{", " <identifier>}}
        <condition> ::= <predicate> {{(" AND " | " OR ") <predicate>}}
        <predicate> ::= <identifier> <operator> <value>
        <operator> ::= " = " | " > " | " < " | " >= " | " <= " | " != " | " LIKE "
        <value> ::= <number> | "'" {{<letter>}} "'"
        <identifier> ::= <letter> {{<letter> | <digit> | "_"}}
        <number> ::= <digit> {{<digit>}}
        <letter> ::= {_LETTER}
        <digit> ::= {_DIGIT}
    """,
    'url': f"""
        <url> ::= <scheme> "://" <host> [":" <port>] [<path>] ["?" <param> {{"&" <param>}}] ["#" {{<alnum>}}]
        <scheme> ::= "http" | "https" | "ftp" | "file"
        <host> ::= <label> {{"." <label>}} | <octet> "." <octet> "." <octet> "." <octet>
        <label> ::= <letter> {{<alnum> | "-"}}
        <octet> ::= <digit> | <digit> <digit> | "1" <digit> <digit> | "2" ("0" | "1" | "2" | "3" | "4") <digit>
        <port> ::= <digit> {{<digit>}}
        <path> ::= "/" [<alnum> {{<alnum>}} [<path>]]
        <param> ::= <label> "=" {{<alnum>}}
        <alnum> ::= <letter> | <digit>
        <letter> ::= {_LETTER}
        <digit> ::= {_DIGIT}
    """,
}


class BuiltinGrammars:
    """Collection of built-in grammar definitions."""

    @staticmethod
    def list_grammars() -> List[str]:
        """List available built-in grammars."""
        return sorted(_GRAMMARS)

    @staticmethod
    def get_grammar_text(name: str) -> str:
        """
        Get grammar text by name.

        Args:
            name: Grammar name (see list_grammars())

        Returns:
            Grammar text in BNF/EBNF
        """
        try:
            return _GRAMMARS[name.lower()]
        except KeyError:
            raise ValueError(f"Unknown grammar: {name}. Available: {BuiltinGrammars.list_grammars()}") from None

    @staticmethod
    def get_grammar(name: str, start: Optional[str] = None) -> Grammar:
        """Parse a built-in grammar; the first rule is the start symbol unless `start` is given."""
        return GrammarParser().parse(BuiltinGrammars.get_grammar_text(name), start)
