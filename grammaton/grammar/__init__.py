"""
Grammaton Grammar Layer

Typed grammar model plus the front-ends and analyses that run before
automaton construction.

Features:
- Grammar model (terminals, nonterminal references, alternatives)
- Productivity / reachability analysis
- BNF/EBNF and JSON grammar loading
- Earley recognizer for checking derivations
- Built-in grammars (JSON, SQL, URL, arithmetic)
"""

from .model import Grammar, Terminal, NonTerminalRef, Token, Alternative
from .analyzer import analyze, check_termination, productive_nonterminals, reachable_nonterminals
from .grammar_parser import GrammarParser, load_json_grammar, load_grammar_file, parse_grammar
from .recognizer import derives
from .builtin_grammars import BuiltinGrammars

__all__ = [
    'Grammar', 'Terminal', 'NonTerminalRef', 'Token', 'Alternative',
    'analyze', 'check_termination', 'productive_nonterminals', 'reachable_nonterminals',
    'GrammarParser', 'load_json_grammar', 'load_grammar_file', 'parse_grammar',
    'derives', 'BuiltinGrammars',
]
