"""
Tests for grammar/grammar_parser.py and grammar/builtin_grammars.py.
"""

import json
import pytest

from grammaton.errors import GrammarSyntaxError, UndefinedSymbol
from grammaton.grammar.builtin_grammars import BuiltinGrammars
from grammaton.grammar.grammar_parser import (
    GrammarParser,
    load_grammar_file,
    load_json_grammar,
    parse_grammar,
)
from grammaton.grammar.model import NonTerminalRef, Terminal
from grammaton.grammar.recognizer import derives


class TestBNFParsing:
    """Tests for BNF/EBNF parsing."""

    def test_simple_rules(self):
        grammar = parse_grammar('''
        # arithmetic
        <expr> ::= <term> | <expr> "+" <term>
        <term> ::= "0" | '1'
        ''')
        assert grammar.start == "expr"
        assert grammar.rules["expr"] == [
            (NonTerminalRef("term"),),
            (NonTerminalRef("expr"), Terminal("+"), NonTerminalRef("term")),
        ]
        assert grammar.rules["term"] == [(Terminal("0"),), (Terminal("1"),)]

    def test_explicit_start(self):
        grammar = parse_grammar('<a> ::= "x"\n<b> ::= <a>', start="b")
        assert grammar.start == "b"

    def test_continuation_lines(self):
        grammar = parse_grammar('''
        <digit> ::= "0"
                  | "1"
                  | "2"
        ''')
        assert len(grammar.rules["digit"]) == 3

    def test_repeated_rule_extends(self):
        grammar = parse_grammar('<a> ::= "x"\n<a> ::= "y"')
        assert grammar.rules["a"] == [(Terminal("x"),), (Terminal("y"),)]

    def test_pipe_inside_terminal(self):
        grammar = parse_grammar('<op> ::= "|" | "||"')
        assert grammar.rules["op"] == [(Terminal("|"),), (Terminal("||"),)]

    def test_trailing_comment(self):
        grammar = parse_grammar('<tag> ::= "#" <n> # fragment marker\n<n> ::= "1"')
        assert grammar.rules["tag"] == [(Terminal("#"), NonTerminalRef("n"))]

    def test_escapes(self):
        grammar = parse_grammar(r'<s> ::= "a\"b" | "\n"')
        assert grammar.rules["s"] == [(Terminal('a"b'),), (Terminal("\n"),)]

    def test_optional_desugars(self):
        grammar = parse_grammar('<num> ::= ["-"] "1"')
        assert grammar.rules["num"] == [(NonTerminalRef("num__opt1"), Terminal("1"))]
        assert grammar.rules["num__opt1"] == [(Terminal("-"),), ()]
        assert derives(grammar, "1")
        assert derives(grammar, "-1")

    def test_repetition_desugars(self):
        grammar = parse_grammar('<digits> ::= "1" {"0"}')
        assert grammar.rules["digits__rep1"] == [
            (),
            (Terminal("0"), NonTerminalRef("digits__rep1")),
        ]
        assert derives(grammar, "1000")

    def test_group_with_alternatives(self):
        grammar = parse_grammar('<b> ::= ("0" | "1") "!"')
        assert grammar.rules["b__grp1"] == [(Terminal("0"),), (Terminal("1"),)]
        assert derives(grammar, "1!")

    def test_parent_rule_declared_before_helpers(self):
        grammar = parse_grammar('<n> ::= <d> {<d>}\n<d> ::= "1"')
        assert grammar.nonterminals == ["n", "n__rep1", "d"]
        assert grammar.start == "n"

    def test_nested_brackets(self):
        grammar = parse_grammar('<q> ::= "s" [" o" [" a" | " d"]]')
        assert derives(grammar, "s o d")
        assert derives(grammar, "s")
        assert not derives(grammar, "s d")

    @pytest.mark.parametrize("text", [
        '<a> ::= "unterminated',
        '<a> ::= <b',
        '<a> ::= ["x"',
        '<a> ::= x',
        'just words',
        '| "x"',
    ])
    def test_syntax_errors(self, text):
        with pytest.raises(GrammarSyntaxError):
            GrammarParser().parse(text)

    def test_syntax_error_reports_line(self):
        with pytest.raises(GrammarSyntaxError) as exc_info:
            parse_grammar('<a> ::= "x"\n\n<b> ::= "y')
        assert exc_info.value.line == 3


class TestJSONGrammar:
    """Tests for the JSON grammar format."""

    def test_string_alternatives(self):
        grammar = load_json_grammar('{"Start": ["Expr"], "Expr": ["\'(\' Expr \')\'", "\'x\'"]}')
        assert grammar.start == "Start"
        assert grammar.rules["Expr"][0] == (Terminal("("), NonTerminalRef("Expr"), Terminal(")"))
        assert derives(grammar, "((x))")

    def test_list_alternatives(self):
        grammar = load_json_grammar({"S": [["a", "S", "b"], ["c"]]})
        assert grammar.start == "S"
        assert grammar.rules["S"][0][1] == NonTerminalRef("S")

    def test_bare_word_must_be_defined(self):
        grammar = load_json_grammar({"Start": ["'a' Missing"]})
        with pytest.raises(UndefinedSymbol) as exc_info:
            grammar.validate()
        assert exc_info.value.symbol == "Missing"

    def test_invalid_json(self):
        with pytest.raises(GrammarSyntaxError):
            load_json_grammar('{"Start": [')

    def test_rule_must_be_list(self):
        with pytest.raises(GrammarSyntaxError):
            load_json_grammar({"Start": "'a'"})

    def test_load_grammar_file_dispatch(self, grammar_file):
        json_path = grammar_file(json.dumps({"Start": ["'ok'"]}), name="g.json")
        bnf_path = grammar_file('<s> ::= "ok"', name="g.bnf")
        assert load_grammar_file(json_path).rules == {"Start": [(Terminal("ok"),)]}
        assert load_grammar_file(bnf_path).rules == {"s": [(Terminal("ok"),)]}


class TestBuiltinGrammars:
    """Tests for built-in grammars."""

    def test_list(self):
        assert BuiltinGrammars.list_grammars() == ["arithmetic", "json", "sql", "url"]

    @pytest.mark.parametrize("name", ["arithmetic", "json", "sql", "url"])
    def test_builtin_grammars_are_closed(self, name):
        grammar = BuiltinGrammars.get_grammar(name)
        grammar.validate()

    def test_unknown(self):
        with pytest.raises(ValueError):
            BuiltinGrammars.get_grammar_text("cobol")

    def test_json_grammar_derives(self):
        grammar = BuiltinGrammars.get_grammar("json")
        assert grammar.start == "json"
        assert derives(grammar, '{"ab":[1,-2.5,null]}')
        assert not derives(grammar, '{"ab":}')
