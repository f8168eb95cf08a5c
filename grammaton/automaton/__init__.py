"""
Grammaton Automaton Layer

Builds, serializes and walks the finite automaton compiled from a grammar.
"""

from .model import Automaton, State, Edge
from .builder import AutomatonBuilder, ContinuationKey, build_automaton
from .export import BinaryCodec, JsonCodec, export, load, render_debug
from .walker import AutomatonWalker, enumerate_strings

__all__ = [
    'Automaton', 'State', 'Edge',
    'AutomatonBuilder', 'ContinuationKey', 'build_automaton',
    'BinaryCodec', 'JsonCodec', 'export', 'load', 'render_debug',
    'AutomatonWalker', 'enumerate_strings',
]
