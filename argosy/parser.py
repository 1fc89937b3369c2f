"""
Argosy parser engine: the token-matching state machine.

What happens to each token, on the current command (the root first)
- '@file': spliced in through the ResponseFileExpander when the command enables
  response files (tokens coming out of a response file are not expanded again).
- '--': with the separator enabled, every later token goes to `remaining`
  verbatim and parsing stops; otherwise it is an unrecognized token.
- '--name', '--name=value', '--name:value': long option (comparison per command).
- '-x', '-xvalue', '-x=value', '-abc', '-abfvalue', '-?': short and symbol
  options, glued values and clusters of no-value options.
- anything else (including a lone '-'): a child command name first, then the next
  unfilled positional argument, otherwise an unrecognized token.

Value lookahead
- a value-taking option without an attached value consumes the next token, even
  when it looks like an option itself; a '@file' token there is expanded and
  its first token is the value.

Faults
- UnrecognizedTokenError (THROW policy) and TokenizationError abort the parse.
- MissingValueError, UnexpectedValueError and DuplicateOptionError are collected
  in ParseResult.faults and reported together with the binder's failures.
- Required fields are never checked here; the binder reports them all at once.
"""
import logging
from collections import deque

from .enums import Arity, DuplicateHandling, ResponseFileHandling, UnrecognizedHandling
from .expander import ResponseFileExpander
from .faults import (
    DuplicateOptionError,
    DuplicateOptionWarning,
    FaultCode,
    MissingValueError,
    UnexpectedValueError,
    UnrecognizedTokenError,
    getdoc,
    trigger,
)
from .utils import Unset, mirror, ordinal, suggest

logger = logging.getLogger(__name__)


class ParseResult:
    """
    Raw outcome of one parse.

    Attributes
    - command: the selected leaf command.
    - path: commands from the root to the leaf.
    - options: Option → tuple of raw values for every option along the path. A
      no-value option records one None per occurrence; empty means not supplied.
    - arguments: Argument → tuple of raw values for every argument along the path.
    - remaining: tokens left to the caller (separator and collect policies).
    - faults: non-fatal matching faults, in order of appearance.
    - terminator: the terminator option that stopped parsing, or None.
    """
    command = mirror("command")
    path = mirror("path")
    options = mirror("options")
    arguments = mirror("arguments")
    remaining = mirror("remaining")
    faults = mirror("faults")
    terminator = mirror("terminator")

    def __init__(self, path, options, arguments, remaining, faults, terminator=None):
        self._path = tuple(path)
        self._command = self._path[-1]
        self._options = {option: tuple(values) for option, values in options.items()}
        self._arguments = {argument: tuple(values) for argument, values in arguments.items()}
        self._remaining = tuple(remaining)
        self._faults = tuple(faults)
        self._terminator = terminator

    def __getitem__(self, field):
        """
        Raw values recorded for an option or argument (empty when not supplied).
        """
        try:
            return self._options[field]
        except KeyError:
            pass
        try:
            return self._arguments[field]
        except KeyError:
            raise KeyError(f"{field!r} is not a field of the selected commands") from None

    def __eq__(self, other):
        if not isinstance(other, ParseResult):
            return NotImplemented
        return (
            self._path == other._path and
            self._options == other._options and
            self._arguments == other._arguments and
            self._remaining == other._remaining and
            self._terminator is other._terminator and
            [str(fault) for fault in self._faults] == [str(fault) for fault in other._faults]
        )

    __hash__ = None

    def __repr__(self):
        supplied = {option.display: values for option, values in self._options.items() if values}
        return "parse-result(path=%r, options=%r, arguments=%r, remaining=%r)" % (
            " ".join(command.name for command in self._path),
            supplied,
            {argument.name: values for argument, values in self._arguments.items() if values},
            self._remaining,
        )


class _Stream:
    """
    token queue that remembers which tokens may still be expanded and the
    1-based position of the last token taken.
    """

    def __init__(self, tokens):
        self._queue = deque((token, True) for token in tokens)
        self.index = 0

    def __bool__(self):
        return bool(self._queue)

    def pop(self):
        self.index += 1
        return self._queue.popleft()

    def splice(self, tokens):
        self.index -= 1
        self._queue.extendleft((token, False) for token in reversed(tokens))

    def drain(self):
        tokens = [token for token, _ in self._queue]
        self.index += len(tokens)
        self._queue.clear()
        return tokens


class Parser:
    """
    Match a token stream against a command tree.

    Parameters
    - command: the root command of the parse.
    - directory: Unset | path. Base directory for relative response files.

    A Parser keeps per-parse state; parse() resets it on every call, but a
    single instance must not be shared between threads.
    """

    def __init__(self, command, /, directory=Unset):
        self._root = command
        self._directory = directory

    def parse(self, tokens, /):
        """
        Run the state machine over tokens and return a ParseResult.

        Raises
        - TypeError: when tokens is a string or holds non-strings.
        - UnrecognizedTokenError: on an unrecognized token under the THROW policy.
        - TokenizationError: on response-file failures.
        """
        if isinstance(tokens, str):
            raise TypeError("parse() tokens must be an iterable of strings, not a string")
        tokens = list(tokens)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("parse() tokens must be strings")

        self._command = self._root
        self._path = [self._root]
        self._values = {}
        self._positionals = {}
        self._cursor = 0
        self._remaining = []
        self._faults = []
        self._terminator = None
        self._stream = _Stream(tokens)
        self._include(self._root)

        while self._stream:
            token, expandable = self._stream.pop()
            self._step(token, expandable)

        logger.debug(
            "parsed %d tokens into %s (%d remaining, %d faults)",
            len(tokens), " ".join(command.name for command in self._path), len(self._remaining), len(self._faults)
        )
        return ParseResult(self._path, self._values, self._positionals, self._remaining, self._faults, self._terminator)

    def _include(self, command):
        # Every option/argument along the path is reported, supplied or not.
        for option in command.options:
            self._values.setdefault(option, [])
        for argument in command.arguments:
            self._positionals.setdefault(argument, [])

    def _route(self):
        return " ".join(command.name for command in self._path)

    def _expandable(self, token, expandable):
        return (
            expandable and token.startswith("@") and len(token) > 1 and
            self._command.responses is not ResponseFileHandling.DISABLED
        )

    def _expansion(self, token):
        return ResponseFileExpander(self._command.responses, self._directory).expand([token])

    def _lookahead(self):
        """
        take the next token as an option value, or None at end of input.

        a '@file' token in value position is expanded first and its first
        token becomes the value; an empty file leaves the value missing.
        """
        if not self._stream:
            return None
        token, expandable = self._stream.pop()
        if self._expandable(token, expandable):
            if not (tokens := self._expansion(token)):
                return None
            self._stream.splice(tokens)
            token, _ = self._stream.pop()
        return token

    def _step(self, token, expandable):
        command = self._command

        if self._expandable(token, expandable):
            self._stream.splice(self._expansion(token))
            return

        if token == "--":
            if command.separator:
                self._remaining.extend(self._stream.drain())
                logger.debug("separator at %s position, %d tokens passed through", ordinal(self._stream.index), len(self._remaining))
                return
            return self._unrecognized(token)

        if token.startswith("--"):
            return self._long(token)
        if token.startswith("-") and token != "-":
            return self._short(token)
        return self._positional(token)

    # ── options ──────────────────────────────────────────────────────────────

    def _split(self, body):
        """
        split 'name<sep>value' on the first allowed ':' or '=' (value is None when absent).
        """
        indexes = [index for separator in self._command.separators if separator != " " and (index := body.find(separator)) >= 0]
        if not indexes:
            return body, None
        index = min(indexes)
        return body[:index], body[index + 1:]

    def _offered(self):
        """
        options matchable on the current command: its own, then inherited ones
        of its ancestors (nearest first).
        """
        yield from self._command.options
        for command in reversed(self._path[:-1]):
            for option in command.options:
                if option.inherited:
                    yield option

    def _lookup_long(self, name):
        normalize = self._command.comparison.normalize
        for option in self._offered():
            if option.long and normalize(option.long) == normalize(name):
                return option
        return None

    def _lookup_short(self, char):
        for option in self._offered():
            if char in (option.short, option.symbol):
                return option
        return None

    def _long(self, token):
        name, value = self._split(token[2:])
        if (option := self._lookup_long(name)) is None:
            return self._unrecognized(token)
        self._consume(option, value, token)

    def _short(self, token):
        body = token[1:]
        name, value = self._split(body)
        if len(name) == 1 and (option := self._lookup_short(name)) is not None:
            return self._consume(option, value, token)

        if (option := self._lookup_short(body[0])) is not None and option.arity.takes_value:
            # -nvalue: everything after the name is the value.
            return self._consume(option, body[1:], token)

        if self._command.cluster and (cluster := self._cluster(body)) is not None:
            for option, value in cluster:
                self._consume(option, value, token)
                if self._terminator is not None:
                    break
            return

        self._unrecognized(token)

    def _cluster(self, body):
        """
        resolve '-abc' / '-abXvalue' into [(option, value), ...] or None.

        leading characters must be distinct no-value short options; the first
        value-taking option ends the cluster and takes the rest as its value
        (a leading ':' or '=' is dropped; nothing left means the next token).
        """
        cluster = []
        seen = set()
        for index, char in enumerate(body):
            if (option := self._lookup_short(char)) is None:
                return None
            if option.arity.takes_value:
                rest = body[index + 1:]
                if rest[:1] and rest[0] in self._command.separators and rest[0] != " ":
                    rest = rest[1:]
                elif not rest:
                    rest = None
                cluster.append((option, rest))
                return cluster
            if option in seen:
                return None
            seen.add(option)
            cluster.append((option, None))
        return cluster

    def _consume(self, option, value, token):
        command = self._command
        index = self._stream.index

        if option.arity is Arity.NO_VALUE:
            if value is not None:
                self._faults.append(UnexpectedValueError(
                    "option %r at %s position does not take a value" % (option.display, ordinal(index)),
                    title="unexpected value",
                    code=FaultCode.UNEXPECTED_VALUE,
                    command=command,
                    field=option,
                    token=token,
                    value=value,
                    index=index,
                    hint="remove the value and write %s alone" % option.display,
                    docs=getdoc(FaultCode.UNEXPECTED_VALUE),
                ))
                return
            self._values[option].append(None)
            return self._terminate(option)

        if value is None and option.arity is not Arity.SINGLE_OR_NO_VALUE:
            if " " in command.separators:
                value = self._lookahead()
            if value is None:
                self._faults.append(MissingValueError(
                    "option %r at %s position is missing its value" % (option.display, ordinal(index)),
                    title="missing value",
                    code=FaultCode.MISSING_VALUE,
                    command=command,
                    field=option,
                    token=token,
                    index=index,
                    hint="add a value, for example %s=<%s>" % (option.display, option.valuename.lower()),
                    docs=getdoc(FaultCode.MISSING_VALUE),
                ))
                return

        values = self._values[option]
        if option.arity is Arity.MULTIPLE_VALUE:
            values.append(value)
            return self._terminate(option)

        if values:
            self._duplicate(option, token, index)
        values[:] = [value]
        self._terminate(option)

    def _duplicate(self, option, token, index):
        command = self._command
        options = {
            "title": "duplicate option",
            "command": command,
            "field": option,
            "token": token,
            "index": index,
            "hint": "keep a single %s; the last occurrence wins" % option.display,
        }
        match command.duplicates:
            case DuplicateHandling.WARN:
                trigger(
                    DuplicateOptionWarning(
                        "option %r at %s position overrides an earlier value" % (option.display, ordinal(index)),
                        code=FaultCode.DUPLICATE_OPTION_OVERWRITTEN,
                        docs=getdoc(FaultCode.DUPLICATE_OPTION_OVERWRITTEN),
                        **options,
                    ),
                    shell=command.shell,
                    fancy=command.fancy,
                    colorful=command.colorful,
                )
            case DuplicateHandling.ERROR:
                self._faults.append(DuplicateOptionError(
                    "option %r at %s position was already provided" % (option.display, ordinal(index)),
                    code=FaultCode.DUPLICATE_OPTION,
                    docs=getdoc(FaultCode.DUPLICATE_OPTION),
                    **options,
                ))

    def _terminate(self, option):
        if option.terminator:
            self._terminator = option
            dropped = self._stream.drain()
            logger.debug("terminator %s stopped parsing (%d tokens dropped)", option.display, len(dropped))

    # ── positionals & subcommands ────────────────────────────────────────────

    def _lookup_child(self, token):
        normalize = self._command.comparison.normalize
        for child in self._command.children.values():
            if any(normalize(name) == normalize(token) for name in (child.name, *child.aliases)):
                return child
        return None

    def _positional(self, token):
        command = self._command

        if (child := self._lookup_child(token)) is not None:
            logger.debug("descending from %s into %s at %s position", command.name, child.name, ordinal(self._stream.index))
            self._command = child
            self._path.append(child)
            self._cursor = 0
            self._include(child)
            return

        if self._cursor < len(arguments := command.arguments):
            argument = arguments[self._cursor]
            self._positionals[argument].append(token)
            if not argument.multiple:
                self._cursor += 1
            return

        self._unrecognized(token)

    # ── unrecognized tokens ──────────────────────────────────────────────────

    def _candidates(self):
        for option in self._offered():
            if not option.hidden:
                yield from (name for name in (option.long, option.short, option.symbol) if name)
        for child in self._command.children.values():
            yield child.name
            yield from child.aliases

    def _unrecognized(self, token):
        command = self._command
        match command.unrecognized:
            case UnrecognizedHandling.COLLECT_AND_CONTINUE:
                logger.debug("collected unrecognized token %r", token)
                self._remaining.append(token)
                return
            case UnrecognizedHandling.STOP_PARSING_AND_COLLECT:
                logger.debug("stopped parsing at unrecognized token %r", token)
                self._remaining.append(token)
                self._remaining.extend(self._stream.drain())
                return

        index = self._stream.index
        name = token.lstrip("-")
        if token.startswith("-"):
            name, _ = self._split(name)
            kind = "option"
        else:
            kind = "command or argument"
        suggestions = suggest(name, self._candidates()) if name else []

        try:
            hint = "did you mean %r? you can also run '%s --help' to see all options" % (suggestions[0], self._route())
        except IndexError:
            hint = "run '%s --help' to see the expected usage" % self._route()

        raise UnrecognizedTokenError(
            "unrecognized %s %r at %s position" % (kind, token, ordinal(index)),
            title="unrecognized %s" % kind,
            code=FaultCode.UNRECOGNIZED_TOKEN,
            command=command,
            token=token,
            index=index,
            suggestions=tuple(suggestions),
            hint=hint,
            docs=getdoc(FaultCode.UNRECOGNIZED_TOKEN),
        )


def parse(command, tokens, /, directory=Unset):
    """
    shortcut for Parser(command, directory).parse(tokens).
    """
    return Parser(command, directory).parse(tokens)


__all__ = (
    "ParseResult",
    "Parser",
    "parse",
)
