"""
A thin layer over DB-API 2 compatible driver modules.

Connections are handed out by a bounded :py:class:`Pool`. Code that wants
to talk to the database checks a :py:class:`Context` out of the pool and
enters it; while entered, the module-level helpers (:py:func:`execute`,
:py:func:`query`, :py:func:`query_value`) run their statements against
it. Contexts are kept on a per-thread stack, so each request thread sees
only its own.

Roughly::

    pool = open_pool("sqlite:///guestbook.db")
    with pool.connect():
        with transaction():
            execute("INSERT INTO entry (name) VALUES (?)", ("Keith",))
            total = query_value("SELECT COUNT(*) FROM entry")
"""

import collections
import contextlib
import datetime
import functools
import pprint
import sqlite3
import sys
import threading
import time
from urllib.parse import urlsplit

import psycopg2


__all__ = (
    'NoContext', 'NotSupported',
    'Pool', 'create_pool', 'open_pool',
    'transaction', 'execute', 'query', 'query_value',
    'tuple_set', 'make_placeholders',
    'make_file_object_logger', 'null_logger', 'stderr_logger')


# DB-API 2 exceptions exposed by all drivers.
_EXCEPTIONS = (
    'Warning',
    'Error',
    'InterfaceError',
    'DatabaseError',
    'DataError',
    'OperationalError',
    'IntegrityError',
    'InternalError',
    'ProgrammingError',
    'NotSupportedError')

# Seconds sqlite waits on a locked database before giving up.
SQLITE_TIMEOUT = 30.0


class NoContext(Exception):
    """A statement was run with no database context entered."""
    __slots__ = ()


class NotSupported(Exception):
    """The driver can't do what was asked of it."""
    __slots__ = ()


class _ContextStack(threading.local):
    """Contexts entered by the current thread, innermost last."""

    def __init__(self):
        super(_ContextStack, self).__init__()
        self.contexts = []


class Context(object):
    """A database connection context."""

    __slots__ = ('mdr', '_depth', 'paramstyle', 'logger') + _EXCEPTIONS
    stack = _ContextStack()

    def __init__(self, pool):
        super(Context, self).__init__()
        self.mdr = PooledConnectionMediator(pool)
        self._depth = 0
        self.paramstyle = pool.module.paramstyle
        self.logger = pool.logger
        for exc in _EXCEPTIONS:
            setattr(self, exc, getattr(pool, exc))

    def __enter__(self):
        self.stack.contexts.append(self)
        return self

    def __exit__(self, _exc_type, _exc_value, _traceback):
        self.stack.contexts.pop()

    @classmethod
    def current(cls):
        """Returns the innermost context entered by this thread."""
        if len(cls.stack.contexts) == 0:
            raise NoContext()
        return cls.stack.contexts[-1]

    @contextlib.contextmanager
    def transaction(self):
        """
        Run the enclosed statements in a single transaction. For internal
        use only.
        """
        # Nested transactions are faked: only the outermost one commits or
        # rolls back.
        with self.mdr:
            try:
                self._depth += 1
                yield self
                self._depth -= 1
            except self.OperationalError:
                # The connection is gone, and its transaction with it.
                self._depth -= 1
                raise
            except Exception:
                self._depth -= 1
                if self._depth == 0:
                    self.mdr.rollback()
                raise
            if self._depth == 0:
                self.mdr.commit()

    def execute(self, stmt, args):
        """Execute a statement, returning its cursor. For internal use only."""
        self.logger(stmt, args)
        with self.mdr:
            cursor = self.mdr.cursor()
            try:
                cursor.execute(stmt, args)
            except Exception:
                cursor.close()
                raise
            return cursor


class PooledConnectionMediator(object):
    """
    Checks a connection out of the pool on the outermost enter and hands
    it back on the matching exit. Connections that fail with an
    `OperationalError` are thrown away instead.
    """

    __slots__ = ('pool', 'conn', 'depth')

    def __init__(self, pool):
        super(PooledConnectionMediator, self).__init__()
        self.pool = pool
        self.conn = None
        self.depth = 0

    def __enter__(self):
        if self.depth == 0:
            self.conn = self.pool.acquire()
        self.depth += 1
        return self.conn

    def __exit__(self, exc_type, _exc_value, _traceback):
        self.depth -= 1
        if self.conn is None:
            return
        if exc_type is not None and issubclass(
                exc_type, self.pool.OperationalError):
            self.pool.discard(self.conn)
            self.conn = None
        elif self.depth == 0:
            self.pool.release(self.conn)
            self.conn = None

    def cursor(self):
        try:
            return self.conn.cursor()
        except self.pool.InterfaceError:
            # The connection went stale while sitting in the pool. Swap it
            # for a fresh one and try exactly once more.
            self.pool.discard(self.conn)
            self.conn = self.pool.acquire()
            return self.conn.cursor()

    def rollback(self):
        self.conn.rollback()

    def commit(self):
        self.conn.commit()


class Pool(object):
    """A bounded pool of connections, opened on demand."""

    __slots__ = _EXCEPTIONS + (
        'module', 'logger', '_connect', '_idle', '_cond', '_max_conns',
        '_allocated')

    def __init__(self, module, max_conns, *args, **kwargs):
        super(Pool, self).__init__()
        self.module = module
        self.logger = null_logger
        self._connect = functools.partial(module.connect, *args, **kwargs)
        self._idle = collections.deque()
        self._cond = threading.Condition()
        self._max_conns = max_conns
        self._allocated = 0
        for exc in _EXCEPTIONS:
            setattr(self, exc, getattr(module, exc))

    def acquire(self):
        """
        Take an idle connection, opening a new one if there's room, or wait
        for one to be released.
        """
        with self._cond:
            while True:
                if len(self._idle) > 0:
                    return self._idle.popleft()
                if self._allocated < self._max_conns:
                    conn = self._connect()
                    self._allocated += 1
                    return conn
                self._cond.wait()

    def release(self, conn):
        """Hand a connection back for reuse."""
        with self._cond:
            self._idle.append(conn)
            self._cond.notify()

    def discard(self, conn):
        """Drop a broken connection, freeing its slot for a fresh one."""
        with self._cond:
            self._allocated -= 1
            self._cond.notify()
        try:
            conn.close()
        except self.Error:
            pass

    def finalise(self, timeout=None):
        """
        Close the pool's connections. Waits for checked-out connections to
        come back first, for at most `timeout` seconds if one's given;
        connections still out after that are left to their holders.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while len(self._idle) < self._allocated:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._cond.wait(remaining)
            while len(self._idle) > 0:
                conn = self._idle.popleft()
                self._allocated -= 1
                try:
                    conn.close()
                except self.Error:  # pragma: no cover
                    pass

    def connect(self):
        """Returns a context that uses this pool as a connection source."""
        return Context(self)


def create_pool(module, max_conns, *args, **kwargs):
    """
    Create a pool of at most `max_conns` connections made by passing the
    remaining arguments to the driver's `connect`.
    """
    if not hasattr(module, 'threadsafety'):
        raise NotSupported("Cannot determine driver threadsafety.")
    if module.threadsafety < 2:
        raise NotSupported(
            "Bad threadsafety level: %d" % (module.threadsafety,))
    if max_conns < 1:
        raise ValueError("Minimum number of connections is 1.")
    return Pool(module, max_conns, *args, **kwargs)


def open_pool(database_url, max_conns=10):
    """
    Create a pool for the database named by `database_url`.

    ``postgres://`` and ``postgresql://`` URLs are handed to psycopg2 as
    they are. ``sqlite:///relative.db`` and ``sqlite:////absolute.db``
    name an sqlite file.
    """
    scheme = urlsplit(database_url).scheme
    if scheme in ('postgres', 'postgresql'):
        return create_pool(psycopg2, max_conns, database_url)
    if scheme == 'sqlite':
        path = database_url[len('sqlite:///'):]
        if path == '':
            raise ValueError("No sqlite database path in %r" % database_url)
        return create_pool(
            sqlite3, max_conns, path,
            timeout=SQLITE_TIMEOUT, check_same_thread=False)
    raise ValueError("Unsupported database URL scheme %r" % scheme)


def transaction():
    """
    Run the enclosed statements in a single transaction on the current
    context's connection. Any exception raised inside rolls it back.
    """
    return Context.current().transaction()


def execute(stmt, args=()):
    """Execute an SQL statement."""
    Context.current().execute(stmt, args).close()


def query(stmt, args=(), factory=None):
    """
    Execute a query, returning an iterator over its rows as built by
    `factory` (plain tuples by default).
    """
    factory = tuple_set if factory is None else factory
    return factory(Context.current().execute(stmt, args))


def query_value(stmt, args=(), default=None):
    """
    First column of the first row of a query, or `default` if there are
    no rows.
    """
    for row in query(stmt, args):
        return row[0]
    return default


def tuple_set(cursor):
    """Iterator over a statement's results where each row is a tuple."""
    try:
        while True:
            row = cursor.fetchone()
            if row is None:
                break
            yield row
    finally:
        cursor.close()


def make_placeholders(seq):
    """
    Comma-separated placeholders for each item in `seq`, in the current
    driver's param style.
    """
    if len(seq) == 0:
        raise ValueError("Sequence must have at least one element.")
    param_style = Context.current().paramstyle
    if param_style == 'qmark':
        return ", ".join("?" for _ in seq)
    if param_style in ('format', 'pyformat'):
        return ", ".join("%s" for _ in seq)
    raise NotSupported("Param style %r is not supported" % param_style)


def unindent_statement(stmt):
    """Strip the first non-blank line's indentation from every line."""
    lines = stmt.split("\n")
    prefix = 0
    for line in lines:
        stripped = line.lstrip()
        if stripped != '':
            prefix = len(line) - len(stripped)
            break
    return "\n".join(line[prefix:] for line in lines)


def null_logger(_stmt, _args):
    """A logger that discards everything sent to it."""
    pass


def make_file_object_logger(fh):
    """Make a logger that logs to the given file object."""
    def logger(stmt, args, fh=fh):
        now = datetime.datetime.now()
        print("Executing (%s):" % now.isoformat(), file=fh)
        print(unindent_statement(stmt), file=fh)
        print("Arguments:", file=fh)
        pprint.pprint(args, fh)
    return logger


# pylint:disable-msg=C0103
stderr_logger = make_file_object_logger(sys.stderr)
