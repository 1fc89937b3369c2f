"""
Argosy value conversion: the type-descriptor → converter registry.

Overview
- ValueConverterRegistry
  • register(type, converter) / @register(type): add a scalar converter; fails when
    the type already has one.
  • replace(type, converter): explicit override.
  • unregister(type), try_resolve(type), resolve(type), copy().
- Built-in scalar converters: str, bool, int, float, complex, Decimal, Fraction,
  Path, datetime/date/time, timedelta, UUID, ip addresses/networks and URLs.
- Structural rules, composed as decorators over a base converter rather than
  registered per concrete type:
  • nullable (T | None): empty or missing input yields None.
  • collection (list[T], tuple[T, ...], set[T], frozenset[T], abc Sequence/Set):
    per-element conversion, order kept for sequences, duplicates dropped for sets.
  • optional-value tuple (tuple[bool, T]): (present, value-or-zero).
  • enums (case-insensitive names, then values) and Literal[...] choices.
  • subclasses of a registered type reuse the nearest registered base converter.

Converter contract
- A converter is a callable taking one raw string and returning a value; it
  signals a bad input by raising ValueError (or TypeError/ArithmeticError).
- Structural converters carry markers read by the binder:
  • __multiple__: True when the converter takes the whole list of raw values.
  • __absent__: zero-argument factory for the value of a field that was not supplied.

Notes
- Resolution happens at bind time, so converters may be registered after the
  schema is built but before parsing starts.
- The registry is not synchronized; mutate it before running parses.
"""
import builtins
import collections.abc
import datetime
import decimal
import enum
import fractions
import ipaddress
import logging
import pathlib
import re
import types
import typing
import urllib.parse
import uuid

from .faults import FaultCode, NoConverterFoundError, getdoc
from .utils import Unset, rename

logger = logging.getLogger(__name__)


def typename(type, /):
    """
    human-readable name of a type descriptor ('int', 'list[int]', 'int | None').
    """
    if typing.get_origin(type) is None and isinstance(type, builtins.type):
        return type.__name__
    return str(type).replace("typing.", "")


def _parse_bool(value):
    match value.strip().casefold():
        case "true" | "t" | "1":
            return True
        case "false" | "f" | "0":
            return False
    raise ValueError("expected one of: true, false, t, f, 1, 0")


_TIMEDELTA = re.compile(
    r"(?P<sign>-)?"
    r"(?:(?P<days>\d+)(?:\.|$))?"
    r"(?:(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?)?"
)


def _parse_timedelta(value):
    """
    parse '[-][d.]hh:mm[:ss[.fffffff]]' or a plain '[-]d' day count.
    """
    match = _TIMEDELTA.fullmatch(value.strip())
    if not match or not (match["days"] or match["hours"]):
        raise ValueError("expected a duration like '1.02:30:00', '02:30' or '3'")
    hours = int(match["hours"] or 0)
    minutes = int(match["minutes"] or 0)
    seconds = int(match["seconds"] or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError("duration fields are out of range")
    delta = datetime.timedelta(
        days=int(match["days"] or 0),
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=int((match["fraction"] or "0").ljust(7, "0")) // 10,
    )
    return -delta if match["sign"] else delta


def _parse_url(value):
    result = urllib.parse.urlsplit(value)
    if not result.scheme and not result.path and not result.netloc:
        raise ValueError("expected a url")
    return result


_BUILTINS = {
    str: str,
    bool: _parse_bool,
    int: int,
    float: float,
    complex: complex,
    decimal.Decimal: decimal.Decimal,
    fractions.Fraction: fractions.Fraction,
    pathlib.Path: pathlib.Path,
    pathlib.PurePath: pathlib.PurePath,
    datetime.datetime: datetime.datetime.fromisoformat,
    datetime.date: datetime.date.fromisoformat,
    datetime.time: datetime.time.fromisoformat,
    datetime.timedelta: _parse_timedelta,
    uuid.UUID: uuid.UUID,
    ipaddress.IPv4Address: ipaddress.IPv4Address,
    ipaddress.IPv6Address: ipaddress.IPv6Address,
    ipaddress.IPv4Network: ipaddress.IPv4Network,
    ipaddress.IPv6Network: ipaddress.IPv6Network,
    urllib.parse.SplitResult: _parse_url,
}

# Zero values for the second component of an absent optional-value tuple.
_ZEROS = (str, bool, int, float, complex, decimal.Decimal, fractions.Fraction)

# Collection origins and the factory that materializes them.
_COLLECTIONS = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.abc.Iterable: list,
    collections.abc.Collection: list,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
}


def _unwrap_nullable(type, /):
    """
    return T for 'T | None' / Optional[T], otherwise Unset.
    """
    if typing.get_origin(type) not in (typing.Union, types.UnionType):
        return Unset
    arguments = [argument for argument in typing.get_args(type) if argument is not types.NoneType]
    if len(arguments) != 1 or len(typing.get_args(type)) != 2:
        return Unset
    return arguments[0]


def _unwrap_optional(type, /):
    """
    return T for 'tuple[bool, T]', otherwise Unset.
    """
    if typing.get_origin(type) is not tuple:
        return Unset
    arguments = typing.get_args(type)
    if len(arguments) != 2 or arguments[0] is not bool or arguments[1] is Ellipsis:
        return Unset
    return arguments[1]


def _unwrap_collection(type, /):
    """
    return (factory, element type) for supported collection types, otherwise Unset.

    bare collection types (list, set...) hold strings.
    """
    origin = typing.get_origin(type) or type
    try:
        factory = _COLLECTIONS[origin]
    except (KeyError, TypeError):
        return Unset
    arguments = typing.get_args(type)
    if origin is tuple:
        if not arguments:
            return factory, str
        if len(arguments) != 2 or arguments[1] is not Ellipsis:
            return Unset
        return factory, arguments[0]
    if len(arguments) > 1:
        return Unset
    return factory, arguments[0] if arguments else str


def is_multiple(type, /):
    """
    tell whether a type descriptor binds a collection of values.
    """
    if (inner := _unwrap_nullable(type)) is not Unset:
        type = inner
    return _unwrap_collection(type) is not Unset


def is_optional(type, /):
    """
    tell whether a type descriptor is an optional-value tuple (tuple[bool, T]).
    """
    return _unwrap_optional(type) is not Unset


def counter(type, /):
    """
    return the occurrence-count converter for a presence-only field, or None.

    accepted targets
    - bool: any occurrence → True.
    - int: the number of occurrences.
    - bool | None: True when present, None when absent.
    - collections of bool (list[bool], tuple[bool, ...], ...): one True per occurrence.
    """
    if type is bool:
        return lambda count: count > 0
    if type is int:
        return lambda count: count
    if _unwrap_nullable(type) is bool:
        return lambda count: True if count else None
    if (collection := _unwrap_collection(type)) is not Unset and collection[1] is bool:
        factory = collection[0]
        return lambda count: factory([True] * count)
    return None


def _nullable(converter, /):
    if getattr(converter, "__multiple__", False):
        @rename("nullable")
        def nullables(values):
            return converter(values)

        # a collection left out entirely binds None, not an empty collection
        nullables.__multiple__ = True
        nullables.__absent__ = lambda: None
        return nullables

    @rename("nullable")
    def nullable(value):
        if value is None or not value.strip():
            return None
        return converter(value)

    nullable.__absent__ = lambda: None
    return nullable


def _collection(converter, factory, /):
    @rename("collection")
    def collection(values):
        return factory(converter(value) for value in values)

    collection.__multiple__ = True
    collection.__absent__ = factory
    return collection


def _optional(converter, zero, /):
    @rename("optional")
    def optional(value):
        return True, zero if value is None else converter(value)

    optional.__absent__ = lambda: (False, zero)
    return optional


def _enumeration(type, /):
    names = {member.name.casefold(): member for member in type}

    @rename(type.__name__.lower())
    def enumeration(value):
        try:
            return names[value.strip().casefold()]
        except KeyError:
            pass
        for member in type:
            if str(member.value) == value:
                return member
        raise ValueError("allowed values are: %s" % ", ".join(member.name for member in type))

    return enumeration


def _literal(type, /):
    choices = typing.get_args(type)

    @rename("literal")
    def literal(value):
        for choice in choices:
            if str(choice) == value:
                return choice
        raise ValueError("allowed values are: %s" % ", ".join(map(str, choices)))

    return literal


class ValueConverterRegistry:
    """
    Registry mapping a target type descriptor to a string→value converter.

    The registry holds scalar converters only; nullable, collection,
    optional-value tuple, enum and Literal types are resolved structurally on
    top of them, so registering int is enough for list[int], int | None and
    tuple[bool, int].
    """

    def __init__(self, converters=Unset, /):
        """
        Parameters
        - converters: Unset | Mapping[type, Callable[[str], object]]
          Initial scalar converters. When Unset, the built-in set is installed.
        """
        self._converters = {}
        for type, converter in (_BUILTINS if converters is Unset else converters).items():
            self.register(type, converter)

    def __contains__(self, type):
        return self._key(type) in self._converters

    def __len__(self):
        return len(self._converters)

    def __iter__(self):
        return iter(tuple(self._converters))

    def __repr__(self):
        return f"value-converter-registry({len(self)} converters)"

    @staticmethod
    def _key(type):
        # Nullable wrappers are structural; store the inner type.
        if (inner := _unwrap_nullable(type)) is not Unset:
            return inner
        return type

    def register(self, type, converter=Unset, /):
        """
        Add a converter for a type; usable as @registry.register(type) too.

        Raises
        - TypeError: when the converter is not callable or the type is unhashable.
        - ValueError: when the type already has a converter (use replace()).
        """
        if converter is Unset:
            @rename("register")
            def wrapper(converter, /):
                self.register(type, converter)
                return converter
            return wrapper

        if not callable(converter):
            raise TypeError("register() converter must be callable")
        try:
            key = self._key(type)
            hash(key)
        except TypeError:
            raise TypeError("register() type must be hashable") from None
        if key in self._converters:
            raise ValueError(f"a converter for type {typename(key)!r} is already registered")
        self._converters[key] = converter
        logger.debug("registered converter for %s", typename(key))
        return converter

    def replace(self, type, converter, /):
        """
        Add or override the converter for a type, returning the previous one (or None).
        """
        if not callable(converter):
            raise TypeError("replace() converter must be callable")
        previous = self._converters.get(key := self._key(type))
        self._converters[key] = converter
        logger.debug("replaced converter for %s", typename(key))
        return previous

    def unregister(self, type, /):
        """
        Remove the converter for a type; raises KeyError when none is registered.
        """
        try:
            return self._converters.pop(self._key(type))
        except KeyError:
            raise KeyError(f"no converter registered for type {typename(type)!r}") from None

    def copy(self):
        return type(self)(self._converters)

    def try_resolve(self, type, /):
        """
        Resolve a converter for a type descriptor, or return None.

        resolution order
        - an exact registration;
        - nullable (T | None) over T;
        - optional-value tuple (tuple[bool, T]) over T;
        - collections over their element type;
        - Literal choices and Enum subclasses;
        - the nearest registered base class.
        """
        try:
            return self._converters[type]
        except KeyError:
            pass
        except TypeError:
            return None

        if (inner := _unwrap_nullable(type)) is not Unset:
            converter = self.try_resolve(inner)
            return converter and _nullable(converter)

        if (inner := _unwrap_optional(type)) is not Unset:
            if (converter := self.try_resolve(inner)) is None:
                return None
            return _optional(converter, inner() if inner in _ZEROS else None)

        if (collection := _unwrap_collection(type)) is not Unset:
            factory, element = collection
            if (converter := self.try_resolve(element)) is None or getattr(converter, "__multiple__", False):
                return None
            return _collection(converter, factory)

        if typing.get_origin(type) is typing.Literal:
            return _literal(type)

        if typing.get_origin(type) is None and isinstance(type, builtins.type):
            if issubclass(type, enum.Enum):
                return _enumeration(type)
            for base in type.__mro__[1:]:
                if base in self._converters and base is not object:
                    return self._converters[base]

        return None

    def resolve(self, type, /):
        """
        Resolve a converter for a type descriptor.

        Raises
        - NoConverterFoundError: when nothing can convert to the type.
        """
        if (converter := self.try_resolve(type)) is None:
            raise NoConverterFoundError(
                "no converter found for type %r" % typename(type),
                title="no converter found",
                code=FaultCode.NO_CONVERTER_FOUND,
                type=type,
                hint="register one with registry.register(%s, converter)" % typename(type),
                docs=getdoc(FaultCode.NO_CONVERTER_FOUND),
            )
        return converter


registry = ValueConverterRegistry()
"""
Application-wide registry used by commands that do not carry their own.
"""


__all__ = (
    "ValueConverterRegistry",
    "registry",
    "typename",
    "counter",
    "is_multiple",
    "is_optional",
)
