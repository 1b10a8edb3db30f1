"""
Guestbook entries and the repository that stores them.
"""

import collections
import contextlib
import datetime

from guestbook import db


__all__ = ('PAGE_SIZE', 'MAX_PAGE', 'StorageError', 'Entry', 'EntryRepo')

# Maximum number of entries shown on one page of the guestbook.
PAGE_SIZE = 10

# Highest page whose offset still fits in a signed 64-bit integer.
MAX_PAGE = (2 ** 63 - 1) // PAGE_SIZE + 1

SCHEMAS = {
    'psycopg2': """
        CREATE TABLE IF NOT EXISTS "entry" (
            "id"      INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
            "name"    VARCHAR(100)  NOT NULL,
            "email"   VARCHAR(255)  NOT NULL,
            "message" VARCHAR(2000) NOT NULL,
            "posted"  TIMESTAMP(3) WITH TIME ZONE NOT NULL
                      DEFAULT CURRENT_TIMESTAMP
        )
        """,
    'sqlite3': """
        CREATE TABLE IF NOT EXISTS "entry" (
            "id"      INTEGER PRIMARY KEY AUTOINCREMENT,
            "name"    VARCHAR(100)  NOT NULL,
            "email"   VARCHAR(255)  NOT NULL,
            "message" VARCHAR(2000) NOT NULL,
            "posted"  TIMESTAMP NOT NULL
                      DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
        )
        """,
}

INSERT_ENTRY = """
    INSERT INTO "entry" ("name", "email", "message") VALUES ({0})
    """

COUNT_ENTRIES = """
    SELECT COUNT(*) FROM "entry"
    """

LIST_ENTRIES = """
    SELECT   "id", "name", "email", "message", "posted"
    FROM     "entry"
    ORDER BY "posted" DESC, "id" DESC
    LIMIT    {0}
    OFFSET   {1}
    """


class StorageError(Exception):
    """
    A storage operation failed. The driver's own exception is chained on as
    the cause.
    """
    __slots__ = ()


class Entry(collections.namedtuple(
        'Entry', 'id name email message posted')):
    """One guestbook post."""

    __slots__ = ()

    @classmethod
    def from_row(cls, row):
        """
        Build an entry from an `(id, name, email, message, posted)` row,
        normalising `posted` to an aware UTC datetime.
        """
        entry_id, name, email, message, posted = row
        if isinstance(posted, str):
            # sqlite hands timestamps back as ISO-8601 text.
            posted = datetime.datetime.fromisoformat(posted)
        if posted.tzinfo is None:
            posted = posted.replace(tzinfo=datetime.timezone.utc)
        else:
            posted = posted.astimezone(datetime.timezone.utc)
        return cls(entry_id, name, email, message, posted)


def entry_set(cursor):
    """Iterator over a statement's results as entries."""
    for row in db.tuple_set(cursor):
        yield Entry.from_row(row)


class EntryRepo(object):
    """
    Storage for guestbook entries. This is the only thing that gets to
    touch the `entry` table.
    """

    __slots__ = ('pool',)

    def __init__(self, pool):
        super(EntryRepo, self).__init__()
        self.pool = pool

    @contextlib.contextmanager
    def _transaction(self):
        with self.pool.connect() as ctx:
            try:
                with db.transaction():
                    yield ctx
            except self.pool.Error as exc:
                raise StorageError(str(exc)) from exc

    def create_schema(self):
        """Create the `entry` table if it doesn't already exist."""
        try:
            schema = SCHEMAS[self.pool.module.__name__]
        except KeyError:
            raise db.NotSupported(
                "No schema for driver %r" % self.pool.module.__name__)
        with self._transaction():
            db.execute(schema)

    def add_entry(self, name, email, message):
        """
        Store a new entry. Its ID and timestamp are assigned by the
        database.
        """
        args = (name, email, message)
        with self._transaction():
            db.execute(
                INSERT_ENTRY.format(db.make_placeholders(args)), args)

    def count_entries(self):
        """Total number of entries in the guestbook."""
        with self._transaction():
            return db.query_value(COUNT_ENTRIES, default=0)

    def list_entries(self, page):
        """
        Fetch up to `PAGE_SIZE` entries for the given 1-based page, newest
        first. Pages past the last entry come back empty.
        """
        if page < 1 or page > MAX_PAGE:
            raise ValueError("Invalid page number %d" % page)
        args = (PAGE_SIZE, (page - 1) * PAGE_SIZE)
        with self._transaction():
            limit, offset = db.make_placeholders(args).split(", ")
            return list(db.query(
                LIST_ENTRIES.format(limit, offset), args, entry_set))
