"""
Command line entry point: serves the guestbook over HTTP.
"""

import argparse
import logging
import socketserver
import sys
from wsgiref.simple_server import WSGIServer

import bottle

from guestbook import db
from guestbook.app import make_app
from guestbook.entries import EntryRepo, StorageError


logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = (
    "postgres://postgres:@localhost:5432/postgres?sslmode=disable")

# Seconds to wait at shutdown for requests to hand back their connections.
SHUTDOWN_TIMEOUT = 5.0


class ThreadingWSGIServer(socketserver.ThreadingMixIn, WSGIServer):
    """Handles each request on a thread of its own."""
    daemon_threads = True


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Serve the guestbook")
    parser.add_argument(
        "--port", type=int, default=8080, help="HTTP server port")
    parser.add_argument(
        "--host", default="0.0.0.0", help="Host interface to bind")
    parser.add_argument(
        "--database-url",
        default=DEFAULT_DATABASE_URL,
        help="Database URL (postgres:// or sqlite:///)",
    )
    parser.add_argument(
        "--max-connections",
        type=int,
        default=10,
        help="Maximum number of pooled database connections",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create the entry table on startup if it's missing",
    )
    parser.add_argument(
        "--log-queries",
        action="store_true",
        help="Log every SQL statement to stderr",
    )
    return parser.parse_args(argv)


def open_repo(args):
    """
    Open the database named on the command line and check it can be
    reached. Raises `ValueError`, `db.NotSupported` or `StorageError` if
    it can't.
    """
    pool = db.open_pool(args.database_url, args.max_connections)
    if args.log_queries:
        pool.logger = db.stderr_logger
    repo = EntryRepo(pool)
    if args.create_schema:
        logger.info("Creating schema")
        repo.create_schema()
    repo.count_entries()
    return repo


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    logger.info("Initializing database connection")
    try:
        repo = open_repo(args)
    except (ValueError, db.NotSupported, StorageError) as exc:
        logger.critical("Cannot open database: %s", exc)
        sys.exit(1)

    logger.info("Starting web server on http://localhost:%d", args.port)
    try:
        bottle.run(
            make_app(repo),
            host=args.host,
            port=args.port,
            server_class=ThreadingWSGIServer)
    finally:
        repo.pool.finalise(timeout=SHUTDOWN_TIMEOUT)


if __name__ == "__main__":
    main()
