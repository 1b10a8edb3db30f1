"""
Request handlers for reading and signing the guestbook.
"""

import collections
import logging
import os.path
import re

import bottle

from guestbook.entries import MAX_PAGE, PAGE_SIZE, StorageError


__all__ = ('GuestbookPage', 'page_numbers', 'ListHandler', 'FormHandler')

logger = logging.getLogger(__name__)

VIEWS = os.path.join(os.path.dirname(__file__), 'views')
TEMPLATE_LOOKUP = [VIEWS]

# Page numbers are plain ASCII decimal integers that fit in 64 bits.
PAGE_PATTERN = re.compile(r"[+-]?[0-9]+")
MIN_INT = -(2 ** 63)
MAX_INT = 2 ** 63 - 1


# Everything the guestbook template gets to see.
GuestbookPage = collections.namedtuple(
    'GuestbookPage', 'entries total_entries page page_numbers')


def page_numbers(total_entries):
    """
    Numbers of the pages to link to for the given number of entries.

    The count uses floor division, so a final partial page gets no link of
    its own: 11 entries give ``[1]``.
    """
    return list(range(1, total_entries // PAGE_SIZE + 1))


def _parse_page(value):
    if PAGE_PATTERN.fullmatch(value) is None:
        error = "parsing %r: invalid syntax" % value
    else:
        page = int(value)
        if MIN_INT <= page <= MAX_INT:
            return page
        error = "parsing %r: value out of range" % value
    logger.warning("Bad page parameter: %s", error)
    bottle.abort(400, "Error parsing page parameter: %s" % error)


def _form_value(name):
    return bottle.request.forms.getunicode(name, default='').strip()


class ListHandler(object):
    """Renders a page of the guestbook."""

    def __init__(self, repo, template='guestbook'):
        super(ListHandler, self).__init__()
        self.repo = repo
        self.template = template

    def __call__(self):
        page = 1
        page_param = bottle.request.query.getunicode('page', default='')
        page_param = page_param.strip()
        if page_param != '':
            page = _parse_page(page_param)

        if page < 1 or page > MAX_PAGE:
            bottle.abort(400, "Invalid page number %d" % page)

        try:
            entries = self.repo.list_entries(page)
        except StorageError as exc:
            logger.error("Error loading entries: %s", exc)
            bottle.abort(500, "Error loading entries: %s" % exc)

        try:
            total_entries = self.repo.count_entries()
        except StorageError as exc:
            logger.error("Error counting entries: %s", exc)
            bottle.abort(500, "Error counting entries: %s" % exc)

        view = GuestbookPage(
            entries=entries,
            total_entries=total_entries,
            page=page,
            page_numbers=page_numbers(total_entries))

        try:
            return bottle.template(
                self.template, template_lookup=TEMPLATE_LOOKUP, view=view)
        except Exception as exc:
            logger.exception("Error executing template")
            bottle.abort(500, "Error executing template: %s" % exc)


class FormHandler(object):
    """Signs the guestbook."""

    def __init__(self, repo):
        super(FormHandler, self).__init__()
        self.repo = repo

    def __call__(self):
        name = _form_value('name')
        email = _form_value('email')
        message = _form_value('message')

        if name == '' or email == '' or message == '':
            bottle.abort(400, "name, email and message are required")

        try:
            self.repo.add_entry(name, email, message)
        except StorageError as exc:
            logger.error("Error creating entry: %s", exc)
            bottle.abort(500, "Error creating entry: %s" % exc)
        raise bottle.HTTPResponse(status=302, Location='/')
