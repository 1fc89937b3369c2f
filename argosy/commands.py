"""
Argosy command layer: build command trees and run them.

What this module provides
- Command: an immutable schema node (options, arguments, child commands and
  parsing policies) plus its execution hooks (handler, fallback).
- command(...): build a Command from a handler, or a decorator that does.
- execute(command, tokens) / execute_async(command, tokens): the pipeline
  expand → parse → bind → handler, returning the exit code.
- invoke(object, prompt): convenience runner accepting a shell-like string.

Policies
- unrecognized, separator, responses, cluster, comparison, duplicates,
  separators, shell, fancy, colorful and converters are keyword-only. Left
  Unset, each one is read from the parent at access time (the default applies
  at the root), so a subtree built before being attached follows its future
  parent.

Quick start
    from argosy import Command, Option, Argument, execute

    cli = Command("tool", options=[Option("-v", "--verbose")])

    @cli.command(arguments=[Argument("files", type=list[str])])
    def build(model, chain):
        print(model.files, chain[0].model.verbose)

    if __name__ == "__main__":
        raise SystemExit(execute(cli))

Faults
- execute() hands faults to the nearest fallback of the selected path; without
  one, shell mode renders them (rich, stderr) and returns 1, otherwise they are
  raised to the caller.
"""
import asyncio
import inspect
import logging
import os.path
import shlex
import sys
import weakref
from collections.abc import Iterable
from types import SimpleNamespace

from . import converters
from .arguments import ArgumentType
from .binder import Binder
from .enums import Comparison, DuplicateHandling, ResponseFileHandling, UnrecognizedHandling
from .faults import AmbiguousOptionError, CommandException, CommandExit, FaultCode, getdoc, trigger
from .parser import Parser
from .utils import *

logger = logging.getLogger(__name__)


class CommandType(ArgumentType):
    """
    Metaclass of Command: same introspection contract as the descriptors
    (read-only mirrors, __typename__, __repr__/__rich_repr__).
    """


def _sanitize_names(cls, metadata):
    """
    Internal: validate the command name and aliases.
    """
    for name in (metadata["name"], *metadata["aliases"]):
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif not name or name != name.strip() or any(char.isspace() for char in name):
            raise ValueError(f"{cls.__typename__} name {name!r} must be a non-empty word")
        elif name.startswith("-") or name.startswith("@"):
            raise ValueError(f"{cls.__typename__} name {name!r} cannot start with '-' or '@'")
    metadata["aliases"] = tuple(metadata["aliases"])


def _sanitize_fields(cls, metadata):
    """
    Internal: validate options/arguments and their bound names.

    - options must be Option specs and arguments Argument specs.
    - dest names are unique across both.
    - only the last argument may be multiple.
    """
    options = tuple(metadata["options"])
    arguments = tuple(metadata["arguments"])
    if not all(hasattr(option, "__option__") for option in options):
        raise TypeError(f"{cls.__typename__} 'options' must contain options")
    if not all(hasattr(argument, "__argument__") for argument in arguments):
        raise TypeError(f"{cls.__typename__} 'arguments' must contain arguments")

    dests = set()
    for field in (*options, *arguments):
        if field.dest in dests:
            raise ValueError(f"{cls.__typename__} field name {field.dest!r} is already in use")
        dests.add(field.dest)

    for argument in arguments[:-1]:
        if argument.multiple:
            raise ValueError(f"{cls.__typename__} multiple argument {argument.name!r} must be the last one")

    metadata["options"] = options
    metadata["arguments"] = arguments


def _sanitize_hooks(cls, metadata):
    for name in ("handler", "validate"):
        if metadata[name] is not Unset and not callable(metadata[name]):
            raise TypeError(f"{cls.__typename__} '{name}' must be callable")
    if not callable(metadata["model"]):
        raise TypeError(f"{cls.__typename__} 'model' must be callable")

    validators = tuple(metadata["validators"])
    if not all(map(callable, validators)):
        raise TypeError(f"{cls.__typename__} 'validators' must contain callables")
    metadata["validators"] = validators


def _sanitize_policies(cls, metadata):
    """
    Internal: type-check the policy keywords (Unset means inherited).
    """
    expected = {
        "unrecognized": UnrecognizedHandling,
        "responses": ResponseFileHandling,
        "comparison": Comparison,
        "duplicates": DuplicateHandling,
        "converters": converters.ValueConverterRegistry,
    }
    for name, kind in expected.items():
        if not isinstance(metadata[name], kind | Unset):
            raise TypeError(f"{cls.__typename__} '{name}' must be a {kind.__name__}")

    for name in ("separator", "cluster", "shell", "fancy", "colorful"):
        if metadata[name] is not Unset:
            metadata[name] = bool(metadata[name])

    if (separators := metadata["separators"]) is not Unset:
        separators = tuple(separators)
        if not separators or not set(separators) <= {" ", ":", "="}:
            raise ValueError(f"{cls.__typename__} 'separators' must be taken from ' ', ':' and '='")
        metadata["separators"] = separators


def _check_options(command, reserved=()):
    """
    Internal: option names must be unique within a command, counting the
    inherited options of its ancestors (reserved); recurse into children.
    """
    normalize = command.comparison.normalize
    seen = {}
    for option in (*reserved, *command.options):
        for kind, name in (("-", option.short), ("-", option.symbol), ("--", option.long and normalize(option.long))):
            if not name or seen.setdefault((kind, name), option) is option:
                continue
            raise AmbiguousOptionError(
                "option name %r of command %r is already in use" % (kind + name, command.name),
                title="ambiguous option",
                code=FaultCode.AMBIGUOUS_OPTION,
                command=command,
                field=option,
                hint="rename one of the options declaring %s" % (kind + name),
                docs=getdoc(FaultCode.AMBIGUOUS_OPTION),
            )

    reserved = (*reserved, *(option for option in command.options if option.inherited))
    for child in command.children.values():
        _check_options(child, reserved)


def _attach_to_parent(self, parent):
    """
    Register this command under its parent, enforcing unique names and aliases.
    """
    if self.parent is not None:
        raise ValueError(f"{type(self).__typename__} {self.name!r} is already attached to {self.parent.name!r}")
    if any(node is self for node in parent.path):
        raise ValueError(f"{type(self).__typename__} {self.name!r} cannot be attached to itself")

    normalize = parent.comparison.normalize
    taken = {normalize(name) for child in parent.children.values() for name in (child.name, *child.aliases)}
    for name in (self.name, *self.aliases):
        if normalize(name) in taken:
            typeof = "subcommand" if parent.parent else "command"
            raise AmbiguousOptionError(
                "%s name %r is already in use under %r" % (typeof, name, parent.name),
                title="ambiguous command",
                code=FaultCode.AMBIGUOUS_OPTION,
                command=parent,
                hint="rename or drop the alias %r" % name,
                docs=getdoc(FaultCode.AMBIGUOUS_OPTION),
            )

    parent._children[self.name] = self
    self._parent = weakref.ref(parent)
    try:
        _check_options(self, tuple(option for node in parent.path for option in node.options if option.inherited))
    except AmbiguousOptionError:
        del parent._children[self.name]
        self._parent = None
        raise


class Command(metaclass=CommandType):
    """
    A node of the command tree.

    Responsibilities
    - Schema: ordered options and positional arguments, child commands (with aliases).
    - Policies: how the parser treats unknown tokens, '--', '@file' tokens,
      clusters, name comparison, duplicates and name/value separators.
    - Binding: which model factory receives the bound fields and which node
      and model validators run on them.
    - Execution: the handler (sync or async) and an optional fault fallback.

    Notes
    - The tree owns its children; a child only keeps a weak reference to its parent.
    - Schemas are immutable once built: children can be added, fields cannot.
    """

    __introspectable__ = (
        "name",
        "aliases",
        "descr",
        "options",
        "arguments",
        "children",
        "model",
        "validators",
        "validate",
    )

    __displayable__ = (
        "name",
        "aliases",
        "options",
        "arguments",
        "children",
    )

    unrecognized = inherit("unrecognized", UnrecognizedHandling.THROW)
    separator = inherit("separator", True)
    responses = inherit("responses", ResponseFileHandling.DISABLED)
    cluster = inherit("cluster", True)
    comparison = inherit("comparison", Comparison.ORDINAL)
    duplicates = inherit("duplicates", DuplicateHandling.OVERWRITE)
    separators = inherit("separators", (" ", ":", "="))
    converters = inherit("converters", converters.registry)
    shell = inherit("shell", False)
    fancy = inherit("fancy", False)
    colorful = inherit("colorful", False)

    def __init__(
            self,
            name=Unset,
            /,
            options=(),
            arguments=(),
            children=(),
            *,
            aliases=(),
            descr=Unset,
            handler=Unset,
            model=SimpleNamespace,
            validators=(),
            validate=Unset,
            converters=Unset,
            parent=Unset,
            # ── Policies (Unset: inherited) ───────────────────────────────────
            unrecognized=Unset,
            separator=Unset,
            responses=Unset,
            cluster=Unset,
            comparison=Unset,
            duplicates=Unset,
            separators=Unset,
            # ── Runtime flags (Unset: inherited) ─────────────────────────────
            shell=Unset,
            fancy=Unset,
            colorful=Unset
    ):
        """
        Construct a command node.

        Parameters
        - name: Unset | str. Defaults to the program name (basename of argv[0]).
        - options: Iterable[Option].
        - arguments: Iterable[Argument]. Only the last one may be multiple.
        - children: Iterable[Command]. Attached in order.
        - aliases: Iterable[str]. Extra names matched like the name.
        - descr: Unset | str.
        - handler: Unset | Callable[[model, chain], int | None | Awaitable].
        - model: Callable[..., object]. Receives the bound fields as keywords.
        - validators: Iterable[Callable[[Mapping], ...]]. Node validators.
        - validate: Unset | Callable[[model], ...]. Model validator.
        - converters: Unset | ValueConverterRegistry.
        - parent: Unset | Command. Attach under this command.
        - policies and runtime flags: see the module notes.

        Raises
        - TypeError / ValueError: on malformed metadata.
        - AmbiguousOptionError: on duplicate option names, child names or aliases.
        """
        cls = type(self)
        metadata = {
            "name": coalesce(name, os.path.basename(sys.argv[0]) or "argosy"),
            "aliases": aliases,
            "descr": coalesce(descr),
            "options": options,
            "arguments": arguments,
            "handler": handler,
            "model": model,
            "validators": validators,
            "validate": validate,
            "converters": converters,
            "unrecognized": unrecognized,
            "separator": separator,
            "responses": responses,
            "cluster": cluster,
            "comparison": comparison,
            "duplicates": duplicates,
            "separators": separators,
            "shell": shell,
            "fancy": fancy,
            "colorful": colorful,
        }
        _sanitize_names(cls, metadata)
        _sanitize_fields(cls, metadata)
        _sanitize_hooks(cls, metadata)
        _sanitize_policies(cls, metadata)
        if not isinstance(parent, Command | Unset):
            raise TypeError(f"{cls.__typename__} 'parent' must be a command")

        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._validate = coalesce(self._validate)
        self._fallback = Unset
        self._children = {}
        self._parent = None

        _check_options(self)
        for child in children:
            self.add(child)
        if parent:
            parent.add(self)

    @property
    def parent(self):
        """
        The parent command, or None at the root (or once the parent is gone).
        """
        return self._parent() if self._parent is not None else None

    @property
    def root(self):
        """
        Return the topmost command of the hierarchy.
        """
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Return the ancestry from the root to this command as a tuple.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    def __bool__(self):
        return True

    def add(self, child, /):
        """
        Attach an existing command as a child; returns it.
        """
        if not isinstance(child, Command):
            raise TypeError(f"{type(self).__typename__} child must be a command")
        _attach_to_parent(child, self)
        logger.debug("attached %s under %s", child.name, self.name)
        return child

    def command(self, source=Unset, /, **kwargs):
        """
        Create a child command under this one.

        Same modes as the module-level command(): a name, a handler, or nothing
        (decorator mode, as in @cli.command(options=[...])).
        """
        return command(source, parent=self, **kwargs)

    def handler(self, handler, /):
        """
        Register the handler once; usable as a decorator (@cmd.handler).
        """
        if not callable(handler):
            raise TypeError(f"{type(self).__typename__} handler must be callable")
        if self._handler is not Unset:
            raise TypeError(f"{type(self).__typename__} handler cannot be overridden")
        self._handler = handler
        return handler

    def fallback(self, fallback, /):
        """
        Register a one-time fallback for faults (decorator-friendly: @cmd.fallback).

        The fallback receives the CommandExit (or the fatal fault) raised while
        running this command or any of its descendants, and returns the exit code.
        """
        if not callable(fallback):
            raise TypeError(f"{type(self).__typename__} fallback must be callable")
        if self._fallback is not Unset:
            raise TypeError(f"{type(self).__typename__} fallback cannot be overridden")
        self._fallback = fallback
        return fallback

    def __invoke__(self, prompt=Unset):
        """
        Execute this command with a token stream (see invoke()).
        """
        return execute(self, _tokenize(prompt))


def _tokenize(prompt):
    """
    normalize a prompt into a token list (argv when Unset, shlex for strings).
    """
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() prompt must be a string or an iterable of strings")
        return tokens
    raise TypeError("invoke() prompt must be a string or an iterable of strings")


def _exitcode(outcome):
    if outcome is None:
        return 0
    if isinstance(outcome, bool) or not isinstance(outcome, int):
        raise TypeError("handler must return an integer exit code or None, not %s" % type(outcome).__name__)
    return outcome


def _dispatch(command, tokens):
    """
    parse, bind and call the handler; returns its (possibly awaitable) outcome.
    """
    result = Parser(command).parse(_tokenize(tokens))
    leaf = result.command

    if (terminator := result.terminator) is not None:
        logger.debug("running terminator %s of %s", terminator.display, leaf.name)
        if terminator.callback is None:
            return None
        return terminator.callback(result)

    binding = Binder().bind(result)
    if leaf._handler is Unset:
        logger.debug("command %s has no handler", leaf.name)
        return None
    logger.debug("running handler of %s", leaf.name)
    return leaf._handler(binding.model, binding.chain)


def _recover(command, fault):
    """
    find a fallback along the selected path, or render in shell mode.

    returns the exit code, or None when the fault must propagate.
    """
    leaf = fault.options.get("command") or command
    for node in reversed(leaf.path):
        if node._fallback is not Unset:
            logger.debug("fault handled by the fallback of %s", node.name)
            return _exitcode(node._fallback(fault))
    if leaf.shell:
        trigger(fault, command=leaf, shell=True, fancy=leaf.fancy, colorful=leaf.colorful)
        return 1
    return None


def execute(command, tokens=Unset, /):
    """
    Run the pipeline synchronously and return the exit code.

    Parameters
    - command: the root Command.
    - tokens: Unset (sys.argv[1:]), a shell-like string or an iterable of strings.

    Asynchronous handlers are driven with asyncio.run(); calling execute() from
    a running event loop with such a handler raises RuntimeError (use
    execute_async() there).

    Raises
    - CommandExit / CommandException: when no fallback handles them and the
      command is not in shell mode.
    """
    if not isinstance(command, Command):
        raise TypeError("execute() first argument must be a command")
    try:
        outcome = _dispatch(command, tokens)
        if inspect.isawaitable(outcome):
            outcome = _drive(outcome)
        return _exitcode(outcome)
    except (CommandException, CommandExit) as fault:
        if (code := _recover(command, fault)) is None:
            raise
        return code


def _drive(awaitable):
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise RuntimeError("execute() cannot drive an asynchronous handler inside a running event loop")

    async def wait():
        return await awaitable

    return asyncio.run(wait())


async def execute_async(command, tokens=Unset, /):
    """
    Run the pipeline and await the handler; cancellation propagates into it.
    """
    if not isinstance(command, Command):
        raise TypeError("execute_async() first argument must be a command")
    try:
        outcome = _dispatch(command, tokens)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return _exitcode(outcome)
    except (CommandException, CommandExit) as fault:
        if (code := _recover(command, fault)) is None:
            raise
        return code


def command(source=Unset, /, **kwargs):
    """
    Create a Command or return a decorator that builds one.

    Invocation modes
    - command("name", ...): a Command named "name".
    - command(handler, ...): a Command running handler; the name defaults to
      handler.__name__ (underscores become dashes), descr to its docstring.
    - @command(...) / @command: decorator form of the above.
    """
    if isinstance(source, str):
        return Command(source, **kwargs)

    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        options = dict(kwargs)
        name = options.pop("name", source.__name__.replace("_", "-"))
        if (descr := inspect.getdoc(source)) and "descr" not in options:
            options["descr"] = descr.splitlines()[0]
        return Command(name, handler=source, **options)

    return wrapper(source) if source is not Unset else wrapper


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for commands or callables; returns the exit code.

    Parameters
    - object: a Command (anything providing __invoke__) or a plain callable,
      which is wrapped with command() first.
    - prompt: Unset (sys.argv[1:]), a shell-like string or an iterable of strings.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(prompt)

    if callable(object):
        return invoke(command(object), prompt)

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method")


__all__ = (
    "Command",
    "command",
    "execute",
    "execute_async",
    "invoke",
)

del CommandType
