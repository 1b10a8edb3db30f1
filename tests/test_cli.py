import sqlite3
import unittest

import bottle

from guestbook import cli, db
from guestbook.entries import StorageError
from tests import utils


class TestArgs(unittest.TestCase):

    def test_defaults(self):
        args = cli.parse_args([])
        self.assertEqual(args.port, 8080)
        self.assertEqual(args.host, "0.0.0.0")
        self.assertEqual(
            args.database_url,
            "postgres://postgres:@localhost:5432/postgres?sslmode=disable")
        self.assertEqual(args.max_connections, 10)
        self.assertFalse(args.create_schema)
        self.assertFalse(args.log_queries)

    def test_overrides(self):
        args = cli.parse_args([
            "--port", "9000",
            "--database-url", "sqlite:///guestbook.db",
            "--create-schema"])
        self.assertEqual(args.port, 9000)
        self.assertEqual(args.database_url, "sqlite:///guestbook.db")
        self.assertTrue(args.create_schema)


class TestOpenRepo(unittest.TestCase):

    def test_create_schema(self):
        args = cli.parse_args([
            "--database-url", utils.temp_sqlite_url(self),
            "--create-schema",
            "--log-queries"])
        repo = cli.open_repo(args)
        self.addCleanup(repo.pool.finalise)
        self.assertTrue(repo.pool.module is sqlite3)
        self.assertTrue(repo.pool.logger is db.stderr_logger)
        self.assertEqual(repo.count_entries(), 0)

    def test_missing_table(self):
        args = cli.parse_args(["--database-url", utils.temp_sqlite_url(self)])
        with self.assertRaises(StorageError):
            cli.open_repo(args)


class TestMain(unittest.TestCase):

    def test_unsupported_database(self):
        with self.assertLogs('guestbook.cli', 'CRITICAL'):
            with self.assertRaises(SystemExit) as cm:
                cli.main(["--database-url", "mysql://localhost/guestbook"])
        self.assertEqual(cm.exception.code, 1)

    def test_unreachable_database(self):
        with self.assertLogs('guestbook.cli', 'CRITICAL'):
            with self.assertRaises(SystemExit) as cm:
                cli.main([
                    "--database-url", "sqlite:////nonexistent/dir/gb.db"])
        self.assertEqual(cm.exception.code, 1)

    def test_serves(self):
        calls = []

        def fake_run(app, **kwargs):
            calls.append((app, kwargs))

        with utils.set_temporarily(bottle, 'run', fake_run):
            cli.main([
                "--port", "9001",
                "--database-url", utils.temp_sqlite_url(self),
                "--create-schema"])

        self.assertEqual(len(calls), 1)
        app, kwargs = calls[0]
        self.assertTrue(isinstance(app, bottle.Bottle))
        self.assertEqual(kwargs['port'], 9001)
        self.assertEqual(kwargs['host'], "0.0.0.0")
        self.assertTrue(kwargs['server_class'] is cli.ThreadingWSGIServer)

    def test_shutdown_with_connection_checked_out(self):
        repos = []
        real_open_repo = cli.open_repo

        def open_repo(args):
            repos.append(real_open_repo(args))
            return repos[-1]

        def fake_run(app, **kwargs):
            # A request thread that never hands its connection back.
            repos[0].pool.acquire()

        with utils.set_temporarily(cli, 'SHUTDOWN_TIMEOUT', 0.01), \
                utils.set_temporarily(cli, 'open_repo', open_repo), \
                utils.set_temporarily(bottle, 'run', fake_run):
            cli.main([
                "--database-url", utils.temp_sqlite_url(self),
                "--create-schema"])

        # main gave up waiting and left the connection to its holder.
        self.assertEqual(repos[0].pool._allocated, 1)
        self.assertEqual(len(repos[0].pool._idle), 0)
