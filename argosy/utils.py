"""
Argosy utilities (internal helpers, carefully exposed)

Scope
- Core building blocks shared by the schema, parser and binder layers.

Overview
- UnsetType / Unset
  • Singleton sentinel to represent “value not provided” without conflating with None.
  • Falsey (bool(Unset) is False), printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default, but preserve legitimate falsey values like None/0/""/[].

- rename(callable, name) / @rename("name")
  • Assign stable __name__/__qualname__ to generated accessors for clean tracebacks.

- mirror("attr")
  • Read-only property factory exposing a private backing field (self._attr) through
    immutable views (tuple, frozenset, mappingproxy).

- inherit("attr", default)
  • Read-only property factory for policy flags: the backing field wins, otherwise
    the parent's value, otherwise the default. Resolved lazily on every access so a
    child built before being attached still follows its future parent.

- ordinal(number)
  • Position-first labels for messages (“first”, “second”, …, “11th”).

- distance(a, b) / suggest(token, candidates)
  • Damerau-Levenshtein distance and the nearest-match ranking used by
    unrecognized-token faults.

Usage guidance
- Prefer Unset for API defaults when None is a meaningful user value; materialize with coalesce().
- Use mirror() to expose internal state safely as read-only properties.
"""
import builtins
import functools
from collections.abc import Sequence, Mapping, Set
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    This is used when None is a legitimate user value, but the API needs a way
    to distinguish “not provided” from “provided as None”. A single instance,
    Unset, is exposed for use as the default in internal parameters.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset" for friendly diagnostics.
    - Non-subclassable: this type is sealed; do not subclass.
    - Singleton per process: UnsetType() always yields the same instance.
    """

    def __or__(self, other, /):
        """
        Support PEP 604 unions in isinstance checks (e.g., str | Unset).
        """
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self

    def __reduce__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        """
        Disallow subclassing to preserve sentinel semantics.
        """
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve an internal Unset sentinel to a concrete default.

    Falsey values like None, 0, "", or [] are preserved as-is; only Unset is replaced.

    Examples
    - coalesce("name", "fallback") -> "name"
    - coalesce(Unset, "fallback")  -> "fallback"
    - coalesce(None, "fallback")   -> None   # None is preserved, not replaced
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator
    that will do so later.

    Forms
    - rename(callable, name) -> callable
    - rename(name) -> decorator

    Raises
    - TypeError: on a non-callable target, a non-string name, a wrong number of
      arguments, or a callable whose names cannot be updated (e.g. built-ins).
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _view(object):
    """
    Wrap containers into read-only views.

    Behavior
    - Mapping: mappingproxy over the same mapping (no copy, live view).
    - Set: frozenset copy.
    - Sequence (non-string): tuple copy.
    - Anything else: returned as-is.
    """
    if isinstance(object, Mapping):
        return MappingProxyType(object)
    elif isinstance(object, Set):
        return frozenset(object)
    elif isinstance(object, Sequence) and not isinstance(object, str | bytes):
        return tuple(object)
    return object


def mirror(name, /):
    """
    Define a read-only property that mirrors a private backing attribute.

    The generated property reads "_{name}" on the instance and returns a
    read-only view for container types.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _view(getattr(self, "_" + name))

    return property(getter)


def inherit(name, default, /):
    """
    Define a read-only property for a parent-inherited policy flag.

    Resolution order
    - the instance's own "_{name}" when it is not Unset;
    - the same property on self.parent, when there is a parent;
    - the given default.
    """
    if not isinstance(name, str):
        raise TypeError("inherit() first argument must be a string")

    @rename(name)
    def getter(self):
        if (value := getattr(self, "_" + name)) is not Unset:
            return value
        if (parent := self.parent) is not None:
            return getattr(parent, name)
        return default

    return property(getter)


@functools.cache
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are rendered as words ("first"…"tenth").
    - Other numbers use numeric ordinals with correct English suffixes.
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    # 11th, 12th, 13th (and 111th, 112th, 113th, …)
    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def distance(source, target, /):
    """
    Damerau-Levenshtein distance (optimal string alignment variant).

    Counts insertions, deletions, substitutions and transpositions of two
    adjacent characters, each with a cost of one.
    """
    if not isinstance(source, str) or not isinstance(target, str):
        raise TypeError("distance() arguments must be strings")

    rows = len(source) + 1
    cols = len(target) + 1
    matrix = [[0] * cols for _ in range(rows)]
    for row in range(rows):
        matrix[row][0] = row
    for col in range(cols):
        matrix[0][col] = col

    for row in range(1, rows):
        for col in range(1, cols):
            cost = source[row - 1] != target[col - 1]
            matrix[row][col] = min(
                matrix[row - 1][col] + 1,
                matrix[row][col - 1] + 1,
                matrix[row - 1][col - 1] + cost,
            )
            if (
                    row > 1 and col > 1 and
                    source[row - 1] == target[col - 2] and
                    source[row - 2] == target[col - 1]
            ):
                matrix[row][col] = min(matrix[row][col], matrix[row - 2][col - 2] + 1)

    return matrix[-1][-1]


def suggest(token, candidates, /, limit=5, cutoff=0.33):
    """
    rank candidates by normalized similarity to token (best first).

    similarity is 1 - distance / max(len(token), len(candidate)); candidates
    scoring below cutoff are dropped, ties keep the candidates' order.
    """
    scores = []
    for candidate in dict.fromkeys(candidates):
        if not (longest := max(len(token), len(candidate))):
            continue
        if (score := 1 - distance(token, candidate) / longest) >= cutoff:
            scores.append((score, candidate))
    scores.sort(key=lambda pair: pair[0], reverse=True)
    return [candidate for _, candidate in scores[:limit]]


Unset = UnsetType()
"""
Internal sentinel for “not provided”.

Notes
- Singleton: there is only one Unset instance.
- Distinct from None: equality and identity checks must not treat it as None.
- Typical pattern: value = coalesce(user_value, default).
"""


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "inherit",
    "ordinal",
    "distance",
    "suggest",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
