"""
Argosy binder: raw values → typed model objects, then validation.

Phases (each one covers every command of the parsed path, root first)
1. conversion: every option/argument goes through the converter registry;
   unsupplied fields get their default (or the converter's absent value).
2. field validation: 'required' first, then the field's validators on supplied values.
3. node validation: Command(validators=...) on a read-only mapping of the bound fields.
4. model validation: Command(validate=...) on the object built by Command(model=...).

Phases 3 and 4 only run for commands whose conversion and field validation
succeeded. Any failure (including the parse faults carried by the result)
raises a single CommandExit with the complete, ordered list; a partially bound
model is never returned.
"""
import logging
from collections import namedtuple
from types import MappingProxyType

from .converters import counter, is_optional, typename
from .enums import Arity
from .faults import (
    CommandExit,
    FaultCode,
    FieldValidationError,
    FormatError,
    ModelValidationError,
    NoConverterFoundError,
    RequiredFieldMissingError,
    getdoc,
)
from .utils import Unset, coalesce, mirror
from .validators import messages

logger = logging.getLogger(__name__)


Link = namedtuple("Link", ("command", "model"))
Link.__doc__ = """
One step of the bound parent chain: a command and the model bound for it.
"""


class Binding:
    """
    Successful outcome of one bind.

    Attributes
    - command: the leaf command.
    - model: the leaf command's bound object.
    - chain: tuple of Link(command, model) from root to leaf.
    - remaining: tokens the parser left to the caller.
    - result: the ParseResult this binding was built from.
    """
    command = mirror("command")
    model = mirror("model")
    chain = mirror("chain")
    remaining = mirror("remaining")
    result = mirror("result")

    def __init__(self, result, chain):
        self._result = result
        self._chain = tuple(chain)
        self._command, self._model = self._chain[-1]
        self._remaining = result.remaining

    def __getitem__(self, command):
        """
        Model bound for a command of the chain (by object or by name).
        """
        for link in self._chain:
            if link.command is command or link.command.name == command:
                return link.model
        raise KeyError(command)

    def __repr__(self):
        return "binding(path=%r, model=%r)" % (" ".join(link.command.name for link in self._chain), self._model)


def _label(field):
    if hasattr(field, "__option__"):
        return "option %r" % field.display
    return "argument %r" % field.display


class Binder:
    """
    Convert, validate and build models from a ParseResult.

    Parameters
    - registry: Unset | ValueConverterRegistry. When Unset, each command's own
      registry is used (Command(converters=...), inherited, then the global one).
    """

    def __init__(self, registry=Unset, /):
        self._registry = registry

    def bind(self, result, /):
        """
        Bind a ParseResult.

        Returns
        - Binding, when every phase succeeded and the result carries no faults.

        Raises
        - CommandExit: with parse faults, conversion, field, node and model
          failures in that order.
        """
        conversions, fields, nodes, models = [], [], [], []
        chain = []

        for command in result.path:
            values = {}
            converted = self._convert(command, result, values, conversions)
            validated = self._validate_fields(command, result, values, fields)
            if not (converted and validated):
                continue

            snapshot = MappingProxyType(dict(values))
            node_failures = self._validate_node(command, snapshot)
            nodes.extend(node_failures)
            if node_failures:
                continue

            model, model_failures = self._build(command, values)
            models.extend(model_failures)
            if not model_failures:
                chain.append(Link(command, model))

        failures = [*result.faults, *conversions, *fields, *nodes, *models]
        if failures:
            logger.debug("binding %s failed with %d faults", result.command.name, len(failures))
            raise CommandExit(failures, command=result.command)

        logger.debug("bound %s (%d commands)", result.command.name, len(chain))
        return Binding(result, chain)

    def _convert(self, command, result, values, failures):
        succeeded = True
        registry = coalesce(self._registry, command.converters)
        for field in (*command.options, *command.arguments):
            try:
                values[field.dest] = self._value(field, result[field], registry, command)
            except (FormatError, NoConverterFoundError) as error:
                failures.append(error)
                succeeded = False
        return succeeded

    def _value(self, field, raws, registry, command):
        if getattr(field, "arity", None) is Arity.NO_VALUE:
            if not raws and field.default is not Unset:
                return field.default
            return counter(field.type)(len(raws))

        if not raws and field.default is not Unset:
            return field.default

        try:
            converter = registry.resolve(field.type)
        except NoConverterFoundError as error:
            raise NoConverterFoundError(
                "no converter found for type %r of %s" % (typename(field.type), _label(field)),
                **{**error.options, "field": field, "command": command},
            ) from None

        if not raws:
            return getattr(converter, "__absent__", lambda: None)()

        if getattr(converter, "__multiple__", False):
            value = [raw for raw in raws if raw is not None]
        else:
            value = raws[-1]
            if value is None:
                # bare single-or-no-value option
                if is_optional(field.type):
                    return converter(None)
                return coalesce(field.const, None)

        try:
            return converter(value)
        except (ValueError, TypeError, ArithmeticError) as error:
            raise FormatError(
                "invalid value %r for %s (expected %s): %s" % (
                    value if isinstance(value, str) else " ".join(value), _label(field), typename(field.type), error
                ),
                title="invalid format",
                code=FaultCode.INVALID_FORMAT,
                command=command,
                field=field,
                value=value,
                type=field.type,
                hint="provide a value of type %s" % typename(field.type),
                docs=getdoc(FaultCode.INVALID_FORMAT),
            ) from error

    def _validate_fields(self, command, result, values, failures):
        succeeded = True
        for field in (*command.options, *command.arguments):
            supplied = bool(result[field])
            if field.required and not supplied:
                failures.append(RequiredFieldMissingError(
                    "%s is required" % _label(field),
                    title="required field missing",
                    code=FaultCode.REQUIRED_FIELD_MISSING,
                    command=command,
                    field=field,
                    hint="provide %s" % (field.display if hasattr(field, "__option__") else "a value for " + field.display),
                    docs=getdoc(FaultCode.REQUIRED_FIELD_MISSING),
                ))
                succeeded = False
                continue
            if not supplied or field.dest not in values:
                continue
            for validator in field.validators:
                for message in messages(validator, values[field.dest]):
                    failures.append(FieldValidationError(
                        "%s %s" % (_label(field), message),
                        title="invalid value",
                        code=FaultCode.FIELD_VALIDATION,
                        command=command,
                        field=field,
                        value=values[field.dest],
                        hint="check the value given to %s" % field.display,
                        docs=getdoc(FaultCode.FIELD_VALIDATION),
                    ))
                    succeeded = False
        return succeeded

    def _validate_node(self, command, snapshot):
        failures = []
        for validator in command.validators:
            for message in messages(validator, snapshot):
                failures.append(self._model_error(command, message))
        return failures

    def _build(self, command, values):
        try:
            model = command.model(**values)
        except ValueError as error:
            return None, [self._model_error(command, str(error) or "is invalid")]
        if command.validate is None:
            return model, []
        return model, [self._model_error(command, message) for message in messages(command.validate, model)]

    @staticmethod
    def _model_error(command, message):
        return ModelValidationError(
            "command %r %s" % (command.name, message),
            title="invalid combination",
            code=FaultCode.MODEL_VALIDATION,
            command=command,
            hint="run '%s --help' to see how the options fit together" % " ".join(node.name for node in command.path),
            docs=getdoc(FaultCode.MODEL_VALIDATION),
        )


def bind(result, /, registry=Unset):
    """
    shortcut for Binder(registry).bind(result).
    """
    return Binder(registry).bind(result)


__all__ = (
    "Link",
    "Binding",
    "Binder",
    "bind",
)
