"""
Utility functions used by the tests.
"""

import contextlib
import os
import tempfile
import threading

from guestbook import db
from guestbook.entries import EntryRepo


def skip_first_line(value):
    """Returns everything after the first newline in the string."""
    parts = value.split("\n", 1)
    return parts[1] if len(parts) == 2 else ""


def spawn(targets):
    """Spawns a bunch of threads for given targets and waits on them."""
    threads = []
    for target in targets:
        thread = threading.Thread(target=target)
        thread.start()
        threads.append(thread)
    for thread in threads:
        thread.join()


@contextlib.contextmanager
def set_temporarily(obj, attr, value):
    """Temporarily change the value of an object's attribute."""
    original = getattr(obj, attr)
    try:
        setattr(obj, attr, value)
        yield
    finally:
        setattr(obj, attr, original)


def temp_sqlite_url(testcase):
    """A URL for a throwaway sqlite database, removed when the test ends."""
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    testcase.addCleanup(os.unlink, path)
    return 'sqlite:///' + path


def temp_sqlite_pool(testcase, max_conns=5):
    """A pool over a throwaway sqlite database, finalised after the test."""
    pool = db.open_pool(temp_sqlite_url(testcase), max_conns)
    testcase.addCleanup(pool.finalise)
    return pool


def temp_repo(testcase, max_conns=5):
    """An entry repository with its schema in place."""
    repo = EntryRepo(temp_sqlite_pool(testcase, max_conns))
    repo.create_schema()
    return repo
