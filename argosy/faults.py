"""
Argosy faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues
  (errors and warnings), grouped by the pipeline stage that raises them.
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves in a friendly, lowercased, and actionable way.
- The taxonomy: tokenization, matching, conversion, validation and schema faults.
- CommandExit: the ordered failure list of one parse/bind attempt.
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

UX goals
- Position-first messages: matching faults include the ordinal position of the
  offending token so users can learn by trying (“at third position”, etc.).
- Soft but technical language: short titles, one-sentence bodies, a single clear hint.
- Lowercased tone with readable styling (configurable via __styles__ in __main__).

Integration
- The parser and binder collect faults and hand them over in a CommandExit.
- In non-shell mode, exceptions are raised; in shell mode, they are rendered via rich.
"""
import sys
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the engine (stable identifiers).

    grouping (by pipeline stage)
    - tokenization (1110x)
      • MALFORMED_RESPONSE_FILE, CYCLIC_RESPONSE_FILE, UNREADABLE_RESPONSE_FILE
    - matching (1111x)
      • UNRECOGNIZED_TOKEN, MISSING_VALUE, UNEXPECTED_VALUE, DUPLICATE_OPTION
    - conversion (1112x)
      • INVALID_FORMAT, NO_CONVERTER_FOUND
    - validation (1113x)
      • REQUIRED_FIELD_MISSING, FIELD_VALIDATION, MODEL_VALIDATION
    - schema (1114x)
      • AMBIGUOUS_OPTION
    - warnings (12xxx)
      • DUPLICATE_OPTION_OVERWRITTEN

    normalize() lets hosts remap codes to custom labels while keeping them stable.
    """
    # --- tokenization errors (11xxx) ---
    MALFORMED_RESPONSE_FILE     = 11101
    CYCLIC_RESPONSE_FILE        = 11102
    UNREADABLE_RESPONSE_FILE    = 11103

    # --- matching errors (11xxx) ---
    UNRECOGNIZED_TOKEN          = 11111
    MISSING_VALUE               = 11112
    UNEXPECTED_VALUE            = 11113
    DUPLICATE_OPTION            = 11114

    # --- conversion errors (11xxx) ---
    INVALID_FORMAT              = 11121
    NO_CONVERTER_FOUND          = 11122

    # --- validation errors (11xxx) ---
    REQUIRED_FIELD_MISSING      = 11131
    FIELD_VALIDATION            = 11132
    MODEL_VALIDATION            = 11133

    # --- schema errors (11xxx) ---
    AMBIGUOUS_OPTION            = 11141

    # --- warnings (12xxx) ---
    DUPLICATE_OPTION_OVERWRITTEN = 12111

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(sys.modules["__main__"], "__codes__", {}).get(self, self.value))


def _render(fault, palette, /):
    """
    build the rich renderable shared by errors and warnings.

    options read from the fault
    - command (for the program name), code, title, hint
    - colorful, fancy, ratio (panel width ratio when nested in a CommandExit)
    """
    main = sys.modules["__main__"]
    options = fault.options
    colorful = options.get("colorful", False)
    fancy = options.get("fancy", False)

    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    command = options.get("command")
    prog = text(getattr(main, "__prog__", command.root.name if command else "argosy"), styler("prog-name"))

    code = options.get("code")
    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(code.normalize() if code else "?", styler("code")),
        " | ",
        text(str(options.get("title", "fault")).title(), styler("title")),
        " ]"
    )
    message = text(fault.message, styler("message"))
    hint = Text.assemble(text(" → ", styler("hint-arrow")), text(options.get("hint"), styler("hint")))

    if fancy:
        width = options.get("console", console).width - 4
        try:
            width = int(width * options["ratio"])
        except KeyError:
            width = None
        return Panel(Group(message, hint), title=header, title_align="left", width=width)

    return Group(header, message, hint)


class CommandException(Exception):
    """
    base of every argosy error.

    the message is the position-first sentence shown to users; options carry
    structured context (code, title, hint, field, value, token, suggestions...)
    and the runtime flags merged by trigger(). options are readable as attributes.
    """
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(options)

    def __getattr__(self, name):
        try:
            return self.__dict__["options"][name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}") from None

    def __str__(self):
        return "" if self.message is Unset else self.message

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "title": "bold #FF4DA6",  # friendly pinky title

            # body
            "message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        self.options.get("console", console).print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class TokenizationError(CommandException): ...
class UnrecognizedTokenError(CommandException): ...
class MissingValueError(CommandException): ...
class UnexpectedValueError(CommandException): ...
class DuplicateOptionError(CommandException): ...
class FormatError(CommandException): ...
class NoConverterFoundError(CommandException): ...
class RequiredFieldMissingError(CommandException): ...
class FieldValidationError(CommandException): ...
class ModelValidationError(CommandException): ...
class AmbiguousOptionError(CommandException, ValueError): ...


class CommandWarning(ABC, Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(options)

    def __getattr__(self, name):
        try:
            return self.__dict__["options"][name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}") from None

    def __str__(self):
        return "" if self.message is Unset else self.message

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #FFB400",  # amber fault code for warnings
            "title": "bold #FFC2E0",  # softer pinky title for warnings

            # body
            "message": "#D6D6DE",  # slightly lighter gray body
            "hint-arrow": "#B8EFAF dim",  # softer green arrow
            "hint": "italic #B8EFAF",  # softer green hint text
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=3)
        self.options.get("console", console).print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class DuplicateOptionWarning(CommandWarning): ...


class CommandExit(ExceptionGroup[CommandException]):
    """
    the complete, ordered failure list of one parse/bind attempt.

    order: parse faults, conversion errors, field validators, node validators,
    model validator. it is never empty.
    """
    def __new__(cls, exceptions, **options):
        exceptions = tuple(exceptions)
        return super().__new__(cls, "%d %s" % (len(exceptions), "failure" if len(exceptions) == 1 else "failures"), exceptions)

    def __init__(self, exceptions, **options):
        exceptions = tuple(exceptions)
        super().__init__(self.message, exceptions)
        self.options = MappingProxyType(options)

    def __rich__(self):
        main = sys.modules["__main__"]
        colorful = self.options.get("colorful", False)

        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",  # near-white program name
            "title": "bold #FF4DA6",  # friendly pinky group title
        } | getattr(main, "__styles__", {}))

        def text(fragment, style=""):
            if not colorful:
                return Text(str(fragment))
            return Text(str(fragment), styles[style])

        command = self.options.get("command")
        prog = text(getattr(main, "__prog__", command.root.name if command else "argosy"), "prog-name")

        header = Text.assemble("[ ", prog, " — ", text(self.message.title(), "title"), " ]")

        renders = [exception.__replace__(**{**self.options, "ratio": 2/3}) for exception in self.exceptions]

        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        self.options.get("console", console).print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console; otherwise, exceptions are
      raised and warnings go through warnings.warn.

    typical options
    - command, shell, fancy, colorful, console, title, code, hint, docs.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(sys.modules["__main__"], "__docs__", {}).get(code)


__all__ = (
    "CommandException",
    "TokenizationError",
    "UnrecognizedTokenError",
    "MissingValueError",
    "UnexpectedValueError",
    "DuplicateOptionError",
    "FormatError",
    "NoConverterFoundError",
    "RequiredFieldMissingError",
    "FieldValidationError",
    "ModelValidationError",
    "AmbiguousOptionError",
    "CommandWarning",
    "DuplicateOptionWarning",
    "CommandExit",
    "FaultCode",
    "trigger",
    "getdoc",
)
