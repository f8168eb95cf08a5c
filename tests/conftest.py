"""
Pytest configuration and fixtures for Grammaton tests.
"""

import sys
import pytest
from pathlib import Path

# Add project root to path for all imports
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from grammaton.grammar.model import Grammar, NonTerminalRef, Terminal


@pytest.fixture
def anbn_grammar():
    """S -> a S b | c"""
    return Grammar.from_dict({"S": [["a", "S", "b"], ["c"]]}, start="S")


@pytest.fixture
def optional_grammar():
    """S -> a T c ; T -> ε | b"""
    return Grammar.from_dict({"S": [["a", "T", "c"]], "T": [[], ["b"]]}, start="S")


@pytest.fixture
def list_grammar():
    """Comma separated list of digits, right recursive."""
    return Grammar({
        "list": [(NonTerminalRef("item"),), (NonTerminalRef("item"), Terminal(","), NonTerminalRef("list"))],
        "item": [(Terminal("0"),), (Terminal("1"),), (Terminal("["), NonTerminalRef("list"), Terminal("]"))],
    })


@pytest.fixture
def grammaton_home(tmp_path, monkeypatch):
    """Point ~ at a temporary directory so config files stay out of the real home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def grammar_file(tmp_path):
    """Write a BNF grammar file and return its path."""
    def _write(text, name="grammar.bnf"):
        path = tmp_path / name
        path.write_text(text)
        return path
    return _write
