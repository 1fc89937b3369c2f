# python
"""
Descriptor behavioral tests (Option, Argument).

Scope
- Validate name parsing into short/long/symbol slots and dest derivation.
- Validate arity inference from the target type and the boolean-compatible rule.
- Validate metadata constraints (descr, validators, terminator, multiple).
- Validate read-only introspection and copied defaults.

Conventions
- Test method names follow CamelCase per project convention.
- Never pass explicit None for any parameter; omit instead.
"""
import unittest
from unittest import TestCase

from argosy import Argument, Arity, Option
from argosy.utils import Unset


class TestOptionNames(TestCase):

    def testShortAndLong(self):
        option = Option("-v", "--verbose")
        self.assertEqual(option.short, "v")
        self.assertEqual(option.long, "verbose")
        self.assertIsNone(option.symbol)
        self.assertEqual(option.names, ("-v", "--verbose"))
        self.assertEqual(option.display, "--verbose")

    def testSymbolNeedsDest(self):
        option = Option("-?", dest="help")
        self.assertEqual(option.symbol, "?")
        self.assertEqual(option.display, "-?")
        with self.assertRaises(TypeError):
            Option("-?")

    def testDestFromLongThenShort(self):
        self.assertEqual(Option("--dry-run").dest, "dry_run")
        self.assertEqual(Option("-x").dest, "x")
        self.assertEqual(Option("-o", "--output", dest="target").dest, "target")

    def testDestMustBeIdentifier(self):
        with self.assertRaises(ValueError):
            Option("--2fast")

    def testAtLeastOneName(self):
        with self.assertRaises(TypeError):
            Option()

    def testMalformedNames(self):
        for name in ("verbose", "---x", "--a=b", "-ab", "--", "-", "--with space"):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    Option(name)

    def testOneNameOfEachKind(self):
        with self.assertRaises(ValueError):
            Option("-v", "-x")
        with self.assertRaises(ValueError):
            Option("--verbose", "--loud")

    def testNamesMustBeStrings(self):
        with self.assertRaises(TypeError):
            Option(1)


class TestOptionArity(TestCase):

    def testBoolIsNoValue(self):
        option = Option("--verbose")
        self.assertIs(option.arity, Arity.NO_VALUE)
        self.assertIs(option.type, bool)

    def testStrIsSingleValueByDefault(self):
        option = Option("--name", type=str)
        self.assertIs(option.arity, Arity.SINGLE_VALUE)
        self.assertEqual(option.valuename, "NAME")

    def testCollectionIsMultipleValue(self):
        self.assertIs(Option("--tag", type=list[str]).arity, Arity.MULTIPLE_VALUE)
        self.assertEqual(Option("--tag", arity=Arity.MULTIPLE_VALUE).type, list[str])

    def testOptionalTupleIsSingleOrNoValue(self):
        self.assertIs(Option("--color", type=tuple[bool, str]).arity, Arity.SINGLE_OR_NO_VALUE)

    def testCounterNeedsExplicitArity(self):
        self.assertIs(Option("-v", type=int).arity, Arity.SINGLE_VALUE)
        self.assertIs(Option("-v", type=int, arity=Arity.NO_VALUE).arity, Arity.NO_VALUE)

    def testNoValueMustBeBooleanCompatible(self):
        with self.assertRaises(TypeError):
            Option("--name", type=str, arity=Arity.NO_VALUE)
        Option("--flags", type=list[bool], arity=Arity.NO_VALUE)
        Option("--maybe", type=bool | None, arity=Arity.NO_VALUE)

    def testMultipleValueMustBeCollection(self):
        with self.assertRaises(TypeError):
            Option("--level", type=int, arity=Arity.MULTIPLE_VALUE)

    def testArityType(self):
        with self.assertRaises(TypeError):
            Option("--level", arity="single")


class TestOptionMetadata(TestCase):

    def testDescrDefaultsToNone(self):
        self.assertIsNone(Option("--x").descr)

    def testDescrTrimmedAndNonEmpty(self):
        self.assertEqual(Option("--x", descr="  does x  ").descr, "does x")
        with self.assertRaises(ValueError):
            Option("--x", descr="   ")

    def testValidatorsMustBeCallables(self):
        with self.assertRaises(TypeError):
            Option("--x", validators=[1])
        self.assertEqual(len(Option("--x", validators=[bool]).validators), 1)

    def testTerminatorCannotBeRequired(self):
        with self.assertRaises(TypeError):
            Option("--help", terminator=True, required=True)

    def testCallbackMustBeCallable(self):
        with self.assertRaises(TypeError):
            Option("--help", terminator=True, callback="help")

    def testDefaultsAreCopied(self):
        option = Option("--tag", type=list[str], default=[])
        self.assertEqual(option.default, [])
        self.assertIsNot(option.default, option.default)

    def testUnsetDefaultAndConst(self):
        option = Option("--level", type=int)
        self.assertIs(option.default, Unset)
        self.assertIs(option.const, Unset)

    def testPropertiesAreReadOnly(self):
        option = Option("--level", type=int)
        with self.assertRaises(AttributeError):
            option.dest = "other"  # type: ignore[misc]

    def testRepr(self):
        self.assertTrue(repr(Option("-v", "--verbose")).startswith("option("))


class TestArgument(TestCase):

    def testDefaults(self):
        argument = Argument("name")
        self.assertIs(argument.type, str)
        self.assertFalse(argument.multiple)
        self.assertEqual(argument.dest, "name")
        self.assertEqual(argument.display, "<name>")

    def testMultipleInferredFromType(self):
        argument = Argument("files", type=list[str])
        self.assertTrue(argument.multiple)

    def testMultipleDefaultsToListOfStr(self):
        self.assertEqual(Argument("files", multiple=True).type, list[str])

    def testMultipleNeedsCollection(self):
        with self.assertRaises(TypeError):
            Argument("files", type=int, multiple=True)

    def testNameRules(self):
        with self.assertRaises(ValueError):
            Argument("  ")
        with self.assertRaises(TypeError):
            Argument(1)
        self.assertEqual(Argument("output-dir").dest, "output_dir")

    def testRepr(self):
        self.assertTrue(repr(Argument("name")).startswith("argument("))


if __name__ == "__main__":
    unittest.main()
