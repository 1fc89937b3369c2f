"""
Binder behavioral tests (conversion, defaults, validation phases).

Scope
- Conversion through the registry, defaults for unsupplied fields, counters,
  optional-value tuples and const.
- Failure aggregation: every independent failure is reported, in phase order.
- Node and model validators, the model factory and the Link chain.
- Registry selection: Binder(registry) and Command(converters=...).

Conventions
- Test method names follow CamelCase per project convention.
- Failures are inspected through CommandExit.exceptions.
"""
import dataclasses
import enum
import unittest
from unittest import TestCase

from argosy import (
    Argument,
    Arity,
    Binder,
    Command,
    CommandExit,
    FieldValidationError,
    FormatError,
    MissingValueError,
    ModelValidationError,
    NoConverterFoundError,
    Option,
    RequiredFieldMissingError,
    ValueConverterRegistry,
    bind,
    parse,
)
from argosy.validators import Range


class Color(enum.Enum):
    RED = 1
    GREEN = 2
    BLUE = 3


def run(command, tokens):
    return bind(parse(command, tokens))


class TestConversion(TestCase):

    def setUp(self):
        self.command = Command("tool", [
            Option("-v", "--verbose"),
            Option("-l", "--level", type=int, default=1),
            Option("--ratio", type=float | None),
            Option("--color", type=tuple[bool, str]),
            Option("--shade", type=Color),
        ], [
            Argument("files", type=list[str]),
        ])

    def testSuppliedValues(self):
        model = run(self.command, ["--level", "3", "-v", "--ratio=0.5", "--shade", "green", "a", "b"]).model
        self.assertEqual(model.level, 3)
        self.assertIs(model.verbose, True)
        self.assertEqual(model.ratio, 0.5)
        self.assertIs(model.shade, Color.GREEN)
        self.assertEqual(model.files, ["a", "b"])

    def testDefaultsForUnsuppliedFields(self):
        model = run(self.command, []).model
        self.assertIs(model.verbose, False)
        self.assertEqual(model.level, 1)
        self.assertIsNone(model.ratio)
        self.assertEqual(model.color, (False, ""))
        self.assertIsNone(model.shade)
        self.assertEqual(model.files, [])

    def testNullableCollectionIsNoneWhenAbsent(self):
        command = Command("tool", [Option("--tag", type=list[str] | None)])
        self.assertIsNone(run(command, []).model.tag)
        self.assertEqual(run(command, ["--tag", "a", "--tag", "b"]).model.tag, ["a", "b"])

    def testOptionalValueTuple(self):
        self.assertEqual(run(self.command, ["--color"]).model.color, (True, ""))
        self.assertEqual(run(self.command, ["--color=red"]).model.color, (True, "red"))

    def testConstForBareSingleOrNoValue(self):
        jobs = Option("-j", "--jobs", type=int, arity=Arity.SINGLE_OR_NO_VALUE, const=4, default=1)
        command = Command("tool", [jobs])
        self.assertEqual(run(command, ["-j"]).model.jobs, 4)
        self.assertEqual(run(command, ["-j=8"]).model.jobs, 8)
        self.assertEqual(run(command, []).model.jobs, 1)

    def testOccurrenceCounter(self):
        verbosity = Option("-v", type=int, arity=Arity.NO_VALUE, dest="verbosity")
        command = Command("tool", [verbosity])
        self.assertEqual(run(command, ["-v", "-v", "-v"]).model.verbosity, 3)
        self.assertEqual(run(command, []).model.verbosity, 0)

    def testMutableDefaultsAreNotShared(self):
        tags = Option("--tag", type=list[str], default=[])
        command = Command("tool", [tags])
        first = run(command, []).model.tag
        first.append("x")
        self.assertEqual(run(command, []).model.tag, [])

    def testBadEnumListsItsNames(self):
        with self.assertRaises(CommandExit) as context:
            run(self.command, ["--shade", "purple"])
        error, = context.exception.exceptions
        self.assertIsInstance(error, FormatError)
        self.assertIn("RED, GREEN, BLUE", str(error))
        self.assertEqual(error.value, "purple")
        self.assertIs(error.type, Color)

    def testNoConverterFound(self):
        command = Command("tool", [Option("--thing", type=object)])
        with self.assertRaises(CommandExit) as context:
            run(command, ["--thing", "x"])
        error, = context.exception.exceptions
        self.assertIsInstance(error, NoConverterFoundError)
        self.assertEqual(error.field.dest, "thing")


class TestAggregation(TestCase):

    def setUp(self):
        self.command = Command("tool", [
            Option("--level", type=int),
            Option("--port", type=int, validators=[Range(1, 65535)]),
            Option("--name", required=True),
        ])

    def testTwoIndependentFieldErrors(self):
        with self.assertRaises(CommandExit) as context:
            run(self.command, ["--level", "x", "--port", "y", "--name", "n"])
        errors = context.exception.exceptions
        self.assertEqual([type(error) for error in errors], [FormatError, FormatError])
        self.assertEqual([error.field.dest for error in errors], ["level", "port"])

    def testPhaseOrder(self):
        with self.assertRaises(CommandExit) as context:
            run(self.command, ["--port", "99999", "--level", "x", "--level"])
        errors = context.exception.exceptions
        self.assertEqual(
            [type(error) for error in errors],
            [MissingValueError, FormatError, FieldValidationError, RequiredFieldMissingError],
        )

    def testValidatorsOnlyRunOnSuppliedValues(self):
        port = Option("--port", type=int, default=0, validators=[Range(1, 65535)])
        command = Command("tool", [port])
        self.assertEqual(run(command, []).model.port, 0)

    def testValidatorMessage(self):
        with self.assertRaises(CommandExit) as context:
            run(self.command, ["--port", "0", "--name", "n"])
        error, = context.exception.exceptions
        self.assertIsInstance(error, FieldValidationError)
        self.assertIn("between 1 and 65535", str(error))

    def testExitMessage(self):
        with self.assertRaises(CommandExit) as context:
            run(self.command, [])
        self.assertEqual(context.exception.message, "1 failure")


class TestNodeAndModel(TestCase):

    def testNodeValidatorSeesBoundFields(self):
        seen = []

        def either(values):
            seen.append(dict(values))
            if not (values["alpha"] or values["beta"]):
                return "needs --alpha or --beta"

        command = Command("tool", [Option("--alpha"), Option("--beta")], validators=[either])
        self.assertTrue(run(command, ["--beta"]).model.beta)
        with self.assertRaises(CommandExit) as context:
            run(command, [])
        error, = context.exception.exceptions
        self.assertIsInstance(error, ModelValidationError)
        self.assertIn("needs --alpha or --beta", str(error))
        self.assertEqual(seen[0], {"alpha": False, "beta": True})

    def testNodeValidatorSkippedAfterConversionFailure(self):
        calls = []
        command = Command("tool", [Option("--level", type=int)], validators=[calls.append])
        with self.assertRaises(CommandExit):
            run(command, ["--level", "x"])
        self.assertEqual(calls, [])

    def testModelFactoryAndValidator(self):
        @dataclasses.dataclass
        class Window:
            width: int
            height: int

        def square(window):
            if window.width != window.height:
                raise ValueError("must be square")

        command = Command(
            "tool",
            [Option("--width", type=int, default=1), Option("--height", type=int, default=1)],
            model=Window,
            validate=square,
        )
        binding = run(command, ["--width", "3", "--height", "3"])
        self.assertEqual(binding.model, Window(3, 3))
        with self.assertRaises(CommandExit) as context:
            run(command, ["--width", "2"])
        error, = context.exception.exceptions
        self.assertIsInstance(error, ModelValidationError)
        self.assertIn("must be square", str(error))

    def testModelFactoryValueError(self):
        def factory(**values):
            raise ValueError("cannot build")

        command = Command("tool", model=factory)
        with self.assertRaises(CommandExit) as context:
            run(command, [])
        self.assertIn("cannot build", str(context.exception.exceptions[0]))


class TestChain(TestCase):

    def testLinksFromRootToLeaf(self):
        verbose = Option("-v", "--verbose", inherited=True)
        build = Command("build", arguments=[Argument("target")])
        root = Command("tool", [verbose], children=[build])
        binding = run(root, ["build", "app", "-v"])
        self.assertEqual([link.command for link in binding.chain], [root, build])
        self.assertIs(binding.chain[0].model.verbose, True)
        self.assertEqual(binding.model.target, "app")
        self.assertIs(binding.command, build)
        self.assertIs(binding["tool"], binding.chain[0].model)
        self.assertIs(binding[build], binding.model)

    def testRemainingIsCarried(self):
        command = Command("tool")
        self.assertEqual(run(command, ["--", "x"]).remaining, ("x",))


class TestRegistrySelection(TestCase):

    def testBinderRegistry(self):
        registry = ValueConverterRegistry()
        registry.replace(int, lambda value: int(value, 16))
        command = Command("tool", [Option("--mask", type=int)])
        self.assertEqual(Binder(registry).bind(parse(command, ["--mask", "ff"])).model.mask, 255)

    def testCommandRegistryIsInherited(self):
        registry = ValueConverterRegistry()
        registry.replace(int, lambda value: int(value, 2))
        child = Command("sub", [Option("--bits", type=int)])
        root = Command("tool", children=[child], converters=registry)
        self.assertIs(child.converters, registry)
        self.assertEqual(run(root, ["sub", "--bits", "101"]).model.bits, 5)


if __name__ == "__main__":
    unittest.main()
