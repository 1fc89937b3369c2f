"""
Argosy policy enumerations.

- Arity: how many values an option accepts.
- UnrecognizedHandling: what the parser does with tokens it cannot place.
- ResponseFileHandling: whether and how '@file' tokens are expanded.
- Comparison: string equality used for long names and subcommand names.
- DuplicateHandling: strictness when a single-value option is supplied twice.
"""
from enum import Enum, auto


class Arity(Enum):
    """
    value arity of an option.

    - NO_VALUE: presence only; occurrences are counted.
    - SINGLE_VALUE: exactly one value; the last occurrence wins.
    - SINGLE_OR_NO_VALUE: presence, optionally carrying one attached value.
    - MULTIPLE_VALUE: one value per occurrence, collected in order.
    """
    NO_VALUE = auto()
    SINGLE_VALUE = auto()
    SINGLE_OR_NO_VALUE = auto()
    MULTIPLE_VALUE = auto()

    @property
    def takes_value(self):
        return self is not Arity.NO_VALUE


class UnrecognizedHandling(Enum):
    THROW = auto()
    COLLECT_AND_CONTINUE = auto()
    STOP_PARSING_AND_COLLECT = auto()


class ResponseFileHandling(Enum):
    DISABLED = auto()
    LINE_SEPARATED = auto()
    SPACE_SEPARATED = auto()


class Comparison(Enum):
    """
    string equality modes.

    normalize() maps a name to the key it is matched by, so lookups can be
    plain dictionary hits regardless of mode.
    """
    ORDINAL = auto()
    ORDINAL_IGNORE_CASE = auto()

    def normalize(self, name, /):
        if self is Comparison.ORDINAL_IGNORE_CASE:
            return name.casefold()
        return name


class DuplicateHandling(Enum):
    OVERWRITE = auto()
    WARN = auto()
    ERROR = auto()


__all__ = (
    "Arity",
    "UnrecognizedHandling",
    "ResponseFileHandling",
    "Comparison",
    "DuplicateHandling",
)
