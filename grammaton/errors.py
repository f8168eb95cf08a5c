# grammaton/errors.py
from typing import Optional


class GrammatonError(Exception):
    """Root of every error raised by grammaton."""
    pass


class GrammarError(GrammatonError):
    """A grammar cannot be compiled. `symbol` names the offending nonterminal, if any."""

    def __init__(self, message: str, symbol: Optional[str] = None):
        super().__init__(message)
        self.symbol = symbol


class UndefinedSymbol(GrammarError):
    def __init__(self, symbol: str, rule: Optional[str] = None):
        if rule is not None:
            message = f"Undefined non-terminal <{symbol}> referenced by <{rule}>"
        else:
            message = f"Undefined non-terminal <{symbol}>"
        super().__init__(message, symbol)
        self.rule = rule


class NonTerminatingGrammar(GrammarError):
    def __init__(self, symbol: str):
        super().__init__(f"Non-terminal <{symbol}> has no finite derivation", symbol)


class EmptyGrammar(GrammarError):
    def __init__(self, reason: str, symbol: Optional[str] = None):
        super().__init__(f"Empty grammar: {reason}", symbol)


class GrammarSyntaxError(GrammarError):
    def __init__(self, message: str, line: Optional[int] = None):
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class ConstructionError(GrammatonError):
    """Automaton construction was aborted."""
    pass


class StateLimitExceeded(ConstructionError):
    def __init__(self, limit: int):
        super().__init__(f"Automaton construction exceeded the state budget of {limit} states")
        self.limit = limit


class StackLimitExceeded(ConstructionError):
    def __init__(self, limit: int, symbol: str):
        super().__init__(
            f"No derivation of <{symbol}> fits in a continuation of at most {limit} tokens"
        )
        self.limit = limit
        self.symbol = symbol


class AutomatonInvariantError(ConstructionError):
    pass


class ExportError(GrammatonError):
    """Encoding or decoding an automaton failed."""
    pass
