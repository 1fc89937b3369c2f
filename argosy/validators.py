"""
Argosy validators: reusable checks for bound field values.

Validator protocol (any callable taking the converted value)
- return None or True: the value is accepted.
- return False: the value is rejected with a generic message.
- return a string, or an iterable of strings: each one is a failure message.
- raise ValueError: its message is the failure message.

Stock validators
- Range, Length, Choices, Match, Predicate.
- FileExists, DirectoryExists, PathExists, PathNotExists, LegalPath.

Stock validators apply element-wise when the value is a collection (list,
tuple, set, frozenset); mappings and strings are checked as a whole.
"""
import os
import pathlib
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable

from .utils import Unset, mirror


def messages(validator, value, /):
    """
    run a validator on a value and normalize its outcome to a list of messages.

    an empty list means the value passed.
    """
    try:
        outcome = validator(value)
    except ValueError as error:
        return [str(error) or "is invalid"]
    if outcome is None or outcome is True:
        return []
    if outcome is False:
        return ["is invalid"]
    if isinstance(outcome, str):
        return [outcome]
    if isinstance(outcome, Iterable):
        return [str(message) for message in outcome]
    raise TypeError("validator %r returned %r, expected None, a boolean or messages" % (validator, outcome))


class Validator(ABC):
    """
    base of the stock validators.

    subclasses implement check(value), returning a message or None for a single
    element; __call__ maps it over collections.
    """

    def __call__(self, value, /):
        if isinstance(value, list | tuple | set | frozenset):
            return [message for element in value if (message := self.check(element)) is not None]
        return self.check(value)

    @abstractmethod
    def check(self, value, /):
        raise NotImplementedError

    def __repr__(self):
        return "%s(%s)" % (
            type(self).__name__.lower(),
            ", ".join("%s=%r" % (name.lstrip("_"), object) for name, object in vars(self).items())
        )


class Range(Validator):
    """
    value must lie in [minimum, maximum]; either bound may be Unset.
    """
    minimum = mirror("minimum")
    maximum = mirror("maximum")

    def __init__(self, minimum=Unset, maximum=Unset):
        if minimum is Unset and maximum is Unset:
            raise TypeError("range validator needs at least one bound")
        if minimum is not Unset and maximum is not Unset and minimum > maximum:
            raise ValueError("range validator 'minimum' cannot exceed 'maximum'")
        self._minimum = minimum
        self._maximum = maximum

    def check(self, value, /):
        if self._minimum is not Unset and value < self._minimum:
            if self._maximum is Unset:
                return "must be at least %s" % self._minimum
            return "must be between %s and %s" % (self._minimum, self._maximum)
        if self._maximum is not Unset and value > self._maximum:
            if self._minimum is Unset:
                return "must be at most %s" % self._maximum
            return "must be between %s and %s" % (self._minimum, self._maximum)
        return None


class Length(Validator):
    """
    len(value) must lie in [minimum, maximum].

    applies to the whole value (strings, collections), never element-wise.
    """
    minimum = mirror("minimum")
    maximum = mirror("maximum")

    def __init__(self, minimum=0, maximum=Unset):
        if minimum < 0:
            raise ValueError("length validator 'minimum' cannot be negative")
        if maximum is not Unset and minimum > maximum:
            raise ValueError("length validator 'minimum' cannot exceed 'maximum'")
        self._minimum = minimum
        self._maximum = maximum

    def __call__(self, value, /):
        return self.check(value)

    def check(self, value, /):
        if len(value) < self._minimum:
            return "must have at least %d %s" % (self._minimum, "item" if self._minimum == 1 else "items")
        if self._maximum is not Unset and len(value) > self._maximum:
            return "must have at most %d %s" % (self._maximum, "item" if self._maximum == 1 else "items")
        return None


class Choices(Validator):
    choices = mirror("choices")

    def __init__(self, *choices):
        if not choices:
            raise TypeError("choices validator needs at least one choice")
        self._choices = choices

    def check(self, value, /):
        if value not in self._choices:
            return "must be one of: %s" % ", ".join(map(str, self._choices))
        return None


class Match(Validator):
    """
    str(value) must fully match a regular expression.
    """

    def __init__(self, pattern, /, flags=0, message=Unset):
        self._pattern = re.compile(pattern, flags)
        self._message = message

    @property
    def pattern(self):
        return self._pattern.pattern

    def check(self, value, /):
        if self._pattern.fullmatch(str(value)) is None:
            if self._message is not Unset:
                return self._message
            return "must match the pattern %r" % self._pattern.pattern
        return None


class Predicate(Validator):
    """
    wrap a boolean function with a failure message.
    """

    def __init__(self, function, /, message="is invalid"):
        if not callable(function):
            raise TypeError("predicate validator 'function' must be callable")
        self._function = function
        self._message = message

    def check(self, value, /):
        return None if self._function(value) else self._message


class FileExists(Validator):
    def check(self, value, /):
        path = pathlib.Path(value)
        if not path.exists():
            return "file %r does not exist" % str(value)
        if not path.is_file():
            return "%r is not a file" % str(value)
        return None


class DirectoryExists(Validator):
    def check(self, value, /):
        path = pathlib.Path(value)
        if not path.exists():
            return "directory %r does not exist" % str(value)
        if not path.is_dir():
            return "%r is not a directory" % str(value)
        return None


class PathExists(Validator):
    def check(self, value, /):
        if not pathlib.Path(value).exists():
            return "path %r does not exist" % str(value)
        return None


class PathNotExists(Validator):
    def check(self, value, /):
        if pathlib.Path(value).exists():
            return "path %r already exists" % str(value)
        return None


class LegalPath(Validator):
    """
    value must be a syntactically valid path on this platform.

    blank paths and NUL characters are always rejected; on Windows the
    reserved characters <>"|?* are rejected too (':' only after a drive letter).
    """

    def check(self, value, /):
        text = os.fspath(value) if isinstance(value, os.PathLike) else str(value)
        if not text.strip():
            return "must be a non-blank path"
        if "\0" in text:
            return "%r contains a NUL character" % text
        if os.name == "nt":
            _, rest = os.path.splitdrive(text)
            if invalid := sorted(set(rest) & set('<>:"|?*')):
                return "%r contains illegal characters: %s" % (text, " ".join(invalid))
        return None


__all__ = (
    "messages",
    "Validator",
    "Range",
    "Length",
    "Choices",
    "Match",
    "Predicate",
    "FileExists",
    "DirectoryExists",
    "PathExists",
    "PathNotExists",
    "LegalPath",
)
