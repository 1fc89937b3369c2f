"""
Command layer behavioral tests (schema, execution, faults).

Scope
- Schema rules: names, unique dests, the trailing multiple argument, ambiguous
  option and child names (including inherited options and rollback on attach).
- Tree wiring: weak parent references, root/path, policy inheritance.
- Execution: sync and async handlers, exit codes, terminator callbacks,
  fallbacks, shell-mode rendering, invoke() with strings and callables.

Conventions
- Test method names follow CamelCase per project convention.
- Roots are always kept in a local variable: children only hold weak references.
- Shell output is captured by swapping the module console for an in-memory one.
"""
import asyncio
import gc
import io
import unittest
from unittest import IsolatedAsyncioTestCase, TestCase, mock

from rich.console import Console

from argosy import (
    AmbiguousOptionError,
    Argument,
    Comparison,
    Command,
    CommandExit,
    ModelValidationError,
    Option,
    ParseResult,
    UnrecognizedHandling,
    UnrecognizedTokenError,
    command,
    execute,
    execute_async,
    invoke,
)


class TestSchema(TestCase):

    def testNameRules(self):
        for name in ("", "two words", "-dash", "@file"):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    Command(name)
        with self.assertRaises(TypeError):
            Command(1)

    def testDuplicateDest(self):
        with self.assertRaises(ValueError):
            Command("tool", [Option("--name")], [Argument("name")])

    def testMultipleArgumentMustBeLast(self):
        with self.assertRaises(ValueError):
            Command("tool", arguments=[Argument("files", type=list[str]), Argument("target")])

    def testDuplicateOptionNames(self):
        with self.assertRaises(AmbiguousOptionError):
            Command("tool", [Option("-v", "--verbose"), Option("-v", dest="version")])
        with self.assertRaises(AmbiguousOptionError):
            Command("tool", [Option("--level"), Option("--level", dest="other")])

    def testIgnoreCaseLongNamesCollide(self):
        with self.assertRaises(AmbiguousOptionError):
            Command("tool", [Option("--Level"), Option("--level", dest="other")], comparison=Comparison.ORDINAL_IGNORE_CASE)
        Command("tool", [Option("--Level"), Option("--level", dest="other")])

    def testInheritedOptionConflictRollsBack(self):
        root = Command("tool", [Option("-v", "--verbose", inherited=True)])
        child = Command("sub", [Option("-v", dest="version")])
        with self.assertRaises(AmbiguousOptionError):
            root.add(child)
        self.assertIsNone(child.parent)
        self.assertNotIn("sub", root.children)

    def testDuplicateChildNameOrAlias(self):
        root = Command("tool")
        root.command("build", aliases=["b"])
        with self.assertRaises(AmbiguousOptionError):
            root.command("build")
        with self.assertRaises(AmbiguousOptionError):
            root.command("bundle", aliases=["b"])
        self.assertEqual(list(root.children), ["build"])

    def testAttachRules(self):
        root = Command("tool")
        child = root.command("sub")
        with self.assertRaises(ValueError):
            Command("other").add(child)
        with self.assertRaises(ValueError):
            child.add(root)
        with self.assertRaises(TypeError):
            root.add("sub")

    def testPolicyTypes(self):
        with self.assertRaises(TypeError):
            Command("tool", unrecognized="throw")
        with self.assertRaises(ValueError):
            Command("tool", separators=[";"])
        with self.assertRaises(ValueError):
            Command("tool", separators=[])
        with self.assertRaises(TypeError):
            Command("tool", model="namespace")

    def testIntrospectionIsReadOnly(self):
        root = Command("tool", [Option("-v")], aliases=["t"], descr="does things")
        self.assertEqual(root.aliases, ("t",))
        self.assertEqual(root.descr, "does things")
        self.assertEqual(len(root.options), 1)
        with self.assertRaises(AttributeError):
            root.name = "other"  # type: ignore[misc]
        self.assertTrue(repr(root).startswith("command("))


class TestTree(TestCase):

    def testParentIsWeak(self):
        root = Command("tool")
        child = root.command("sub")
        grandchild = child.command("leaf")
        self.assertIs(child.parent, root)
        self.assertIs(grandchild.root, root)
        self.assertEqual(grandchild.path, (root, child, grandchild))
        del root
        gc.collect()
        self.assertIsNone(child.parent)
        self.assertIs(grandchild.root, child)

    def testPoliciesAreReadFromTheParentLazily(self):
        child = Command("sub")
        self.assertIs(child.unrecognized, UnrecognizedHandling.THROW)
        root = Command("tool", unrecognized=UnrecognizedHandling.COLLECT_AND_CONTINUE, separators=["="])
        root.add(child)
        self.assertIs(child.unrecognized, UnrecognizedHandling.COLLECT_AND_CONTINUE)
        self.assertEqual(child.separators, ("=",))
        self.assertIs(child.separator, True)

    def testOwnPolicyWins(self):
        root = Command("tool", cluster=False)
        child = root.command("sub", cluster=True)
        self.assertIs(root.cluster, False)
        self.assertIs(child.cluster, True)

    def testHandlerIsSetOnce(self):
        root = Command("tool")
        root.handler(lambda model, chain: None)
        with self.assertRaises(TypeError):
            root.handler(lambda model, chain: None)
        with self.assertRaises(TypeError):
            Command("other").handler("not callable")

    def testFallbackIsSetOnce(self):
        root = Command("tool")
        root.fallback(lambda fault: 1)
        with self.assertRaises(TypeError):
            root.fallback(lambda fault: 2)


class TestCommandFactory(TestCase):

    def testFromHandler(self):
        def make_dist(model, chain):
            """
            Build the distribution.

            Longer description.
            """

        built = command(make_dist)
        self.assertEqual(built.name, "make-dist")
        self.assertEqual(built.descr, "Build the distribution.")

    def testDecoratorWithOptions(self):
        root = Command("tool")

        @root.command(options=[Option("--fast")], aliases=["b"])
        def build(model, chain):
            return 0

        self.assertIsInstance(build, Command)
        self.assertIs(build.parent, root)
        self.assertEqual(build.aliases, ("b",))

    def testExplicitName(self):
        self.assertEqual(command(name="other")(lambda model, chain: None).name, "other")
        self.assertEqual(command("plain").name, "plain")

    def testDecoratorRejectsNonCallables(self):
        with self.assertRaises(TypeError):
            command()(42)


class TestExecute(TestCase):

    def setUp(self):
        self.calls = []
        self.cli = Command("tool", [Option("-v", "--verbose", inherited=True)])

        @self.cli.command(arguments=[Argument("files", type=list[str])])
        def build(model, chain):
            self.calls.append((model.files, chain[0].model.verbose, [link.command.name for link in chain]))
            return 3

    def testHandlerReceivesModelAndChain(self):
        self.assertEqual(execute(self.cli, ["build", "a", "b", "-v"]), 3)
        self.assertEqual(self.calls, [(["a", "b"], True, ["tool", "build"])])

    def testShellLikeString(self):
        execute(self.cli, "build 'a b' c")
        self.assertEqual(self.calls[0][0], ["a b", "c"])

    def testNoHandlerExitsWithZero(self):
        self.assertEqual(execute(self.cli, []), 0)

    def testBooleanExitCodeIsRejected(self):
        root = Command("tool", handler=lambda model, chain: True)
        with self.assertRaises(TypeError):
            execute(root, [])

    def testTokensMustBeStrings(self):
        with self.assertRaises(TypeError):
            execute(self.cli, ["build", 1])
        with self.assertRaises(TypeError):
            execute("tool", [])

    def testFaultsPropagateWithoutFallback(self):
        with self.assertRaises(UnrecognizedTokenError):
            execute(self.cli, ["--nope"])
        root = Command("tool", [Option("--level", type=int)])
        with self.assertRaises(CommandExit):
            execute(root, ["--level", "x"])

    def testAsyncHandlerIsDriven(self):
        async def run(model, chain):
            await asyncio.sleep(0)
            return 5

        root = Command("tool", handler=run)
        self.assertEqual(execute(root, []), 5)


class TestTerminators(TestCase):

    def testCallbackReplacesHandlerAndValidation(self):
        seen = []

        def show_help(result):
            seen.append(result)
            return 7

        root = Command(
            "tool",
            [Option("-h", "--help", terminator=True, callback=show_help), Option("--name", required=True)],
            handler=lambda model, chain: 1,
        )
        self.assertEqual(execute(root, ["-h", "--bogus"]), 7)
        self.assertIsInstance(seen[0], ParseResult)
        self.assertEqual(seen[0].terminator.long, "help")

    def testTerminatorWithoutCallback(self):
        root = Command("tool", [Option("--version", terminator=True)], handler=lambda model, chain: 1)
        self.assertEqual(execute(root, ["--version"]), 0)


class TestFallback(TestCase):

    def setUp(self):
        self.faults = []
        self.cli = Command("tool")
        self.child = self.cli.command("sub", options=[Option("--level", type=int)])

        @self.cli.fallback
        def recover(fault):
            self.faults.append(fault)
            return 2

    def testFallbackHandlesDescendantFaults(self):
        self.assertEqual(execute(self.cli, ["sub", "--level", "x"]), 2)
        fault, = self.faults
        self.assertIsInstance(fault, CommandExit)
        self.assertIs(fault.options["command"], self.child)

    def testFallbackHandlesFatalFaults(self):
        self.assertEqual(execute(self.cli, ["--nope"]), 2)
        self.assertIsInstance(self.faults[0], UnrecognizedTokenError)

    def testFallbackHandlesHandlerFaults(self):
        def handler(model, chain):
            raise ModelValidationError("command 'sub' cannot run today")

        self.child.handler(handler)
        self.assertEqual(execute(self.cli, ["sub"]), 2)
        self.assertEqual(str(self.faults[0]), "command 'sub' cannot run today")

    def testNearestFallbackWins(self):
        self.child.fallback(lambda fault: 4)
        self.assertEqual(execute(self.cli, ["sub", "--level", "x"]), 4)
        self.assertEqual(self.faults, [])


class TestShellMode(TestCase):

    def setUp(self):
        self.buffer = io.StringIO()
        patcher = mock.patch("argosy.faults.console", Console(file=self.buffer, width=200))
        patcher.start()
        self.addCleanup(patcher.stop)

    def testBindingFailuresAreRendered(self):
        root = Command("tool", [Option("--level", type=int), Option("--name", required=True)], shell=True)
        self.assertEqual(execute(root, ["--level", "x"]), 1)
        output = self.buffer.getvalue()
        self.assertIn("2 Failures", output)
        self.assertIn("invalid value 'x' for option '--level'", output)
        self.assertIn("option '--name' is required", output)

    def testUnrecognizedTokenIsRendered(self):
        root = Command("tool", [Option("--verbose")], shell=True)
        child = root.command("sub")
        self.assertIs(child.shell, True)
        self.assertEqual(execute(root, ["sub", "--verbos"]), 1)
        output = self.buffer.getvalue()
        self.assertIn("unrecognized option '--verbos' at second position", output)
        self.assertIn("11111", output)

    def testFancyPanels(self):
        root = Command("tool", shell=True, fancy=True)
        self.assertEqual(execute(root, ["stray"]), 1)
        self.assertIn("unrecognized command or argument 'stray'", self.buffer.getvalue())


class TestInvoke(TestCase):

    def testCallableIsWrapped(self):
        def greet(model, chain):
            """Say hello."""
            return 4

        self.assertEqual(invoke(greet, ""), 4)

    def testCommandWithPrompt(self):
        seen = []
        root = Command("tool", arguments=[Argument("who")], handler=lambda model, chain: seen.append(model.who))
        self.assertEqual(invoke(root, "'big world'"), 0)
        self.assertEqual(seen, ["big world"])

    def testRejectsOtherObjects(self):
        with self.assertRaises(TypeError):
            invoke(42, "")
        with self.assertRaises(TypeError):
            invoke(Command("tool"), 42)


class TestAsync(IsolatedAsyncioTestCase):

    async def testExecuteAsyncAwaitsHandler(self):
        async def run(model, chain):
            await asyncio.sleep(0)
            return model.level

        root = Command("tool", [Option("--level", type=int, default=0)], handler=run)
        self.assertEqual(await execute_async(root, ["--level", "6"]), 6)

    async def testSyncHandlerUnderExecuteAsync(self):
        root = Command("tool", handler=lambda model, chain: 9)
        self.assertEqual(await execute_async(root, []), 9)

    async def testExecuteInsideRunningLoopRefusesAsyncHandler(self):
        async def run(model, chain):
            return 0

        root = Command("tool", handler=run)
        with self.assertRaises(RuntimeError):
            execute(root, [])

    async def testCancellationReachesTheHandler(self):
        started = asyncio.Event()
        cancelled = []
        root = Command("tool")

        @root.handler
        async def run(model, chain):
            started.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        task = asyncio.ensure_future(execute_async(root, []))
        await started.wait()
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertEqual(cancelled, [True])

    async def testFallbackUnderExecuteAsync(self):
        root = Command("tool")
        root.fallback(lambda fault: 3)
        self.assertEqual(await execute_async(root, ["--nope"]), 3)


if __name__ == "__main__":
    unittest.main()
