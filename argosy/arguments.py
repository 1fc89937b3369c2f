r"""
Argosy option and argument descriptors.

Overview
- Descriptors
  • Option[_T]: named field with short ("-v"), long ("--verbose") and/or symbol ("-?")
    names, an arity class and a target type.
  • Argument[_T]: positional field; its position is its index in the owning command.

- Introspection & representation
  • ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes selected
    fields via read-only properties declared in __introspectable__/__displayable__.

Metadata (sanitized on construction)
- Shared
  • type: target type descriptor, resolved through the converter registry at bind time.
  • default: Unset | Any (used when the field is not supplied).
  • dest: bound field name (a Python identifier).
  • required: bool.
  • validators: Iterable[Callable] run on supplied values after conversion.
  • descr: Unset | str | Text (short help), non-empty when provided.
- Option only
  • names: "-x" (short, alphanumeric), "-?" (symbol, any other single character),
    "--long-name" (long); at most one of each kind.
  • arity: Arity, inferred from the type when omitted.
  • const: value bound when a single-or-no-value option is given bare.
  • hidden, inherited, terminator, callback.
- Argument only
  • name, multiple.

Arity inference
- bool → NO_VALUE; int counters and collections of bool need an explicit NO_VALUE.
- tuple[bool, T] → SINGLE_OR_NO_VALUE.
- collections → MULTIPLE_VALUE.
- anything else → SINGLE_VALUE.

Quick example:
    >>> from argosy import Option, Argument
    >>> verbose = Option("-v", "--verbose")                 # bool, no value
    >>> level = Option("-l", "--level", type=int, default=1)
    >>> files = Argument("files", type=list[str])
"""
import builtins
import copy
import functools
import operator
import re
from collections.abc import Iterable

from rich.text import Text

from .converters import counter, is_multiple, is_optional
from .enums import Arity
from .utils import *


class ArgumentType(type):
    """
    Metaclass that turns descriptors into introspectable, read-only records.

    Responsibilities
    - Provide stable, readable __repr__/__rich_repr__ implementations for
      diagnostics.
    - Expose selected fields as read-only properties using mirror() for all
      names listed in __introspectable__.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      and used in messages.
    - __displayable__ (if set) narrows which properties are shown by __rich_repr__;
      otherwise __introspectable__ is used.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ()) if name not in namespace
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - option(names=('-v', '--verbose'), arity=<Arity.NO_VALUE: 1>, ...)
            """
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: validate shared descriptor metadata in place.

    - descr: Unset | str | Text; non-empty after trimming; Unset becomes None.
    - validators: iterable of callables, normalized to a tuple.
    - required: coerced to bool.
    """
    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)

    if not isinstance(validators := metadata["validators"], Iterable):
        raise TypeError(f"{cls.__typename__} 'validators' must be iterable")
    validators = tuple(validators)
    if not all(map(callable, validators)):
        raise TypeError(f"{cls.__typename__} 'validators' must contain callables")
    metadata["validators"] = validators

    metadata["required"] = bool(metadata["required"])


def _sanitize_names(cls, metadata, /):
    r"""
    Internal: split shell-style names into short/long/symbol slots.

    Accepted forms
    - "-x": short name when x is alphanumeric, symbol name otherwise (e.g. "-?").
    - "--name": long name; any characters except whitespace, '=' and ':' and it
      cannot start with another '-'.

    Raises
    - TypeError: when no names are given or a name is not a string.
    - ValueError: on malformed names, or more than one name of the same kind.
    """
    if not metadata["names"]:
        raise TypeError(f"{cls.__typename__} must specify at least one name")

    slots = {"short": Unset, "long": Unset, "symbol": Unset}
    for name in metadata["names"]:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif re.fullmatch(r"--(?!-)[^\s=:]+", name):
            kind = "long"
        elif re.fullmatch(r"-[^\W_]", name):
            kind = "short"
        elif re.fullmatch(r"-[^\w\s=:-]", name):
            kind = "symbol"
        else:
            raise ValueError(f"{cls.__typename__} name {name!r} must look like '-x', '-?' or '--name'")
        if slots[kind] is not Unset:
            raise ValueError(f"{cls.__typename__} cannot have more than one {kind} name")
        slots[kind] = name.lstrip("-") if kind == "long" else name[1]

    metadata["names"] = tuple(metadata["names"])
    metadata.update(slots)


def _sanitize_dest(cls, metadata, fallback, /):
    """
    Internal: default and validate the bound field name.
    """
    if not isinstance(dest := metadata["dest"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'dest' must be a string")
    dest = coalesce(dest, fallback)
    if not dest:
        raise TypeError(f"{cls.__typename__} with only a symbol name must specify 'dest'")
    dest = dest.replace("-", "_")
    if not dest.isidentifier():
        raise ValueError(f"{cls.__typename__} 'dest' must be a valid identifier, got {dest!r}")
    metadata["dest"] = dest


def _sanitize_arity(cls, metadata, /):
    """
    Internal: infer/validate arity against the target type.

    - arity and type both Unset: SINGLE_VALUE of str.
    - only arity given: NO_VALUE → bool, MULTIPLE_VALUE → list[str], others → str.
    - only type given: inferred (see module notes).
    - NO_VALUE must bind to a boolean-compatible type (bool, int, bool | None,
      collection of bool); MULTIPLE_VALUE must bind to a collection.
    """
    arity, type = metadata["arity"], metadata["type"]
    if not isinstance(arity, Arity | Unset):
        raise TypeError(f"{cls.__typename__} 'arity' must be an arity")

    if type is Unset:
        type = {Arity.NO_VALUE: bool, Arity.MULTIPLE_VALUE: list[str]}.get(arity, str)
    if arity is Unset:
        if type is bool:
            arity = Arity.NO_VALUE
        elif is_optional(type):
            arity = Arity.SINGLE_OR_NO_VALUE
        elif is_multiple(type):
            arity = Arity.MULTIPLE_VALUE
        else:
            arity = Arity.SINGLE_VALUE

    if arity is Arity.NO_VALUE and counter(type) is None:
        raise TypeError(f"{cls.__typename__} with no-value arity must bind to a boolean-compatible type")
    if arity is Arity.MULTIPLE_VALUE and not is_multiple(type):
        raise TypeError(f"{cls.__typename__} with multiple-value arity must bind to a collection type")

    metadata["arity"] = arity
    metadata["type"] = type


class Option[_T](metaclass=ArgumentType):
    """
    Named field descriptor.

    An Option declares how a named token (e.g., -o/--output) is matched and
    which type its raw value(s) convert to. It carries no parsing state; the
    parser records raw values per Option instance and the binder converts them.

    Highlights
    - Generic over the payload type _T (resolved via the converter registry).
    - Names: at most one short, one long and one symbol name.
    - Arity: NO_VALUE (presence/count), SINGLE_VALUE, SINGLE_OR_NO_VALUE, MULTIPLE_VALUE.
    - inherited: also matchable inside every descendant command.
    - terminator: matching it stops parsing; validation is skipped and the
      callback runs instead of the command handler (help/version style).

    Properties
    - The names listed in __introspectable__ are exposed as read-only attributes
      on instances, mirroring the sanitized metadata values.
    """

    __introspectable__ = (
        "names",
        "short",
        "long",
        "symbol",
        "arity",
        "type",
        "default",
        "const",
        "dest",
        "valuename",
        "descr",
        "hidden",
        "inherited",
        "required",
        "validators",
        "terminator",
        "callback",
    )

    __displayable__ = (
        "names",
        "arity",
        "type",
        "default",
        "dest",
        "required",
    )

    def __init__(
            self,
            *names,
            arity=Unset,
            type=Unset,
            default=Unset,
            const=Unset,
            dest=Unset,
            valuename=Unset,
            descr=Unset,
            hidden=False,
            inherited=False,
            required=False,
            validators=(),
            terminator=False,
            callback=Unset
    ):
        """
        Construct an Option spec with the provided metadata.

        Parameters
        - names: one or more str ("-v", "--verbose", "-?").
        - arity: Unset | Arity. Inferred from 'type' when Unset.
        - type: Unset | type descriptor. Defaults from the arity (bool/list[str]/str).
        - default: Any. Bound when the option is not supplied.
        - const: Any. Bound when a SINGLE_OR_NO_VALUE option is given without a value.
        - dest: Unset | str. Defaults to the long name, then the short name.
        - valuename: Unset | str. Label of the value in messages.
        - descr: Unset | str | Text.
        - hidden: bool. Excluded from suggestions.
        - inherited: bool. Offered to descendant commands.
        - required: bool. Missing values are reported by the binder.
        - validators: Iterable[Callable]. Run on the converted value when supplied.
        - terminator: bool. Stops parsing when matched.
        - callback: Unset | Callable. Invoked (with the parse result) for terminators.

        Raises
        - TypeError / ValueError: on malformed metadata (see the _sanitize_* helpers).
        """
        metadata = {
            "names": names,
            "arity": arity,
            "type": type,
            "default": default,
            "const": const,
            "dest": dest,
            "valuename": valuename,
            "descr": descr,
            "hidden": bool(hidden),
            "inherited": bool(inherited),
            "required": required,
            "validators": validators,
            "terminator": bool(terminator),
            "callback": callback,
        }
        cls = builtins.type(self)
        _sanitize_names(cls, metadata)
        _sanitize_metadata(cls, metadata)
        _sanitize_dest(cls, metadata, coalesce(metadata["long"], metadata["short"]) or None)
        _sanitize_arity(cls, metadata)

        if not isinstance(valuename := metadata["valuename"], str | Unset):
            raise TypeError(f"{cls.__typename__} 'valuename' must be a string")
        metadata["valuename"] = coalesce(valuename, metadata["dest"].upper())

        if not callable(metadata["callback"]) and metadata["callback"] is not Unset:
            raise TypeError(f"{cls.__typename__} 'callback' must be callable")
        if metadata["terminator"] and metadata["required"]:
            raise TypeError(f"terminator {cls.__typename__} cannot be required")

        for name, object in metadata.items():
            setattr(self, "_" + name, coalesce(object) if name not in ("default", "const") else object)

    @property
    def default(self):
        # Shallow copy so mutable defaults are never shared between bindings.
        return copy.copy(self._default)

    @property
    def const(self):
        return copy.copy(self._const)

    @property
    def display(self):
        """
        The most descriptive spelling: long, then short, then symbol.
        """
        if self._long:
            return "--" + self._long
        return "-" + (self._short or self._symbol)

    def __option__(self):
        """
        Introspection hook: identify this descriptor as an Option.
        """
        return self


class Argument[_T](metaclass=ArgumentType):
    """
    Positional field descriptor.

    Its position is the index it is declared at inside the owning command; at
    most one argument of a command may be multiple and it must be the last one.

    Properties
    - The names listed in __introspectable__ are exposed as read-only attributes.
    """

    __introspectable__ = (
        "name",
        "type",
        "multiple",
        "default",
        "dest",
        "descr",
        "required",
        "validators",
    )

    def __init__(
            self,
            name,
            /,
            type=Unset,
            multiple=Unset,
            default=Unset,
            required=False,
            validators=(),
            descr=Unset
    ):
        """
        Construct an Argument spec.

        Parameters
        - name: str. Label and (with '-' turned into '_') the bound field name.
        - type: Unset | type descriptor. str, or list[str] when multiple.
        - multiple: Unset | bool. Inferred from 'type' when Unset.
        - default: Any. Bound when no token fills the argument.
        - required: bool.
        - validators: Iterable[Callable].
        - descr: Unset | str | Text.
        """
        cls = builtins.type(self)
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} 'name' cannot be empty")

        metadata = {
            "name": name,
            "type": type,
            "multiple": multiple,
            "default": default,
            "dest": Unset,
            "descr": descr,
            "required": required,
            "validators": validators,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_dest(cls, metadata, name)

        if not isinstance(multiple, bool | Unset):
            raise TypeError(f"{cls.__typename__} 'multiple' must be a boolean")
        if type is Unset:
            type = list[str] if multiple else str
        if multiple is Unset:
            multiple = is_multiple(type)
        elif multiple and not is_multiple(type):
            raise TypeError(f"multiple {cls.__typename__} must bind to a collection type")
        metadata["type"] = type
        metadata["multiple"] = multiple

        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._descr = coalesce(self._descr)

    @property
    def default(self):
        return copy.copy(self._default)

    @property
    def display(self):
        return "<%s>" % self._name

    def __argument__(self):
        """
        Introspection hook: identify this descriptor as an Argument.
        """
        return self


__all__ = (
    # Public API surface for consumers of argosy.arguments.
    "Option",
    "Argument",
)
