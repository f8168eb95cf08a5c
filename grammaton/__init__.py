"""
Grammaton

Compiles context-free grammars into finite automata for stack-free,
grammar-aware input generation and mutation.
"""

__version__ = "0.1.0"
