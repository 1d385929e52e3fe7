import argparse
import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from factories import USER_ID, make_user

from rapidinvoice.backends.invoices_storage import InMemoryInvoiceStore
from rapidinvoice.cli import build_parser, run
from rapidinvoice.context import ServerContext
from rapidinvoice.utils.config import resolve_api_key
from rapidinvoice.utils.logging import configure_root, record_audit_event


class ConfigureRootTests(unittest.TestCase):
    def setUp(self) -> None:
        self.root_logger = logging.getLogger()
        self.original_handlers = list(self.root_logger.handlers)
        self.original_level = self.root_logger.level

    def tearDown(self) -> None:
        self.root_logger.handlers = self.original_handlers
        self.root_logger.setLevel(self.original_level)

    def test_configure_root_forces_reconfiguration(self) -> None:
        dummy_handler = logging.StreamHandler()
        dummy_handler.setFormatter(logging.Formatter("%(message)s"))

        self.root_logger.handlers = [dummy_handler]
        self.root_logger.setLevel(logging.WARNING)

        configure_root()

        self.assertNotIn(dummy_handler, self.root_logger.handlers)
        self.assertEqual(self.root_logger.level, logging.INFO)
        self.assertTrue(self.root_logger.handlers)
        formatter = self.root_logger.handlers[0].formatter
        self.assertIsNotNone(formatter)
        self.assertEqual(formatter._fmt, "%(levelname)s:%(name)s:%(message)s")


class AuditLogTests(unittest.TestCase):
    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tempdir.cleanup)
        self.path = Path(self.tempdir.name) / "logs" / "mcp-server.log"

    def test_events_are_appended_with_timestamp(self):
        record_audit_event("primero", self.path)
        record_audit_event("segundo", self.path)

        lines = self.path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[0].endswith(": primero"))
        self.assertTrue(lines[1].endswith(": segundo"))
        self.assertRegex(lines[0], r"^\d{4}-\d{2}-\d{2}T")

    def test_disabled_audit_log_is_a_no_op(self):
        record_audit_event("nada", None)

        self.assertFalse(self.path.exists())


class ResolveApiKeyTests(unittest.TestCase):
    def test_cli_value_wins_over_environment(self):
        with mock.patch.dict(os.environ, {"API_KEY": "from-env"}):
            self.assertEqual(resolve_api_key("from-cli"), "from-cli")

    def test_environment_fallback(self):
        with mock.patch.dict(os.environ, {"API_KEY": "from-env"}):
            self.assertEqual(resolve_api_key(None), "from-env")

    def test_missing_key(self):
        with mock.patch.dict(os.environ, {"API_KEY": ""}):
            self.assertIsNone(resolve_api_key(None))

    def test_parser_accepts_equals_form(self):
        args = build_parser().parse_args(["--api_key=abc123"])

        self.assertEqual(args.api_key, "abc123")
        self.assertEqual(args.transport, "stdio")


class CliRunTests(unittest.TestCase):
    def setUp(self) -> None:
        self.cli_logger = logging.getLogger("rapidinvoice.cli")
        self.addCleanup(self.cli_logger.setLevel, self.cli_logger.level)
        root_logger = logging.getLogger()
        self.addCleanup(root_logger.setLevel, root_logger.level)
        self.store = InMemoryInvoiceStore([make_user()])
        self.contexts: list[ServerContext] = []

    def _args(self, **overrides) -> argparse.Namespace:
        values = dict(
            transport="stdio",
            mcp_host="127.0.0.1",
            mcp_port=8099,
            api_key=USER_ID,
            database_url="memory://",
            debug=False,
        )
        values.update(overrides)
        return argparse.Namespace(**values)

    def _context_factory(self, api_key: str, database_url: str) -> ServerContext:
        context = ServerContext(api_key=api_key, store=self.store)
        self.contexts.append(context)
        return context

    def _run(self, args, run_stdio=lambda context: None) -> None:
        run(
            args,
            logger=self.cli_logger,
            context_factory=self._context_factory,
            start_sse=lambda context, host, port: None,
            run_stdio=run_stdio,
        )

    def test_missing_api_key_is_fatal(self) -> None:
        with mock.patch.dict(os.environ, {"API_KEY": ""}):
            with self.assertRaises(SystemExit) as ctx:
                self._run(self._args(api_key=None))

        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(self.contexts, [])

    def test_invalid_port_is_rejected(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            self._run(self._args(mcp_port=70000))

        self.assertEqual(ctx.exception.code, 2)

    def test_stdio_run_connects_then_closes_store(self) -> None:
        seen: list[bool] = []

        self._run(self._args(), run_stdio=lambda context: seen.append(context.store.connected))

        self.assertEqual(seen, [True])
        self.assertFalse(self.store.connected)
        self.assertEqual(self.contexts[0].api_key, USER_ID)

    def test_interrupt_still_closes_store(self) -> None:
        def _interrupted(context):
            raise KeyboardInterrupt

        self._run(self._args(), run_stdio=_interrupted)

        self.assertFalse(self.store.connected)

    def test_debug_flag_raises_logger_level(self) -> None:
        self._run(self._args(debug=True))

        self.assertEqual(self.cli_logger.getEffectiveLevel(), logging.DEBUG)


if __name__ == "__main__":
    unittest.main()
