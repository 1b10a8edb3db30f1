"""
Wires the guestbook's handlers up into a WSGI application.
"""

import os.path

from bottle import Bottle, static_file

from guestbook.handlers import FormHandler, ListHandler


STATIC = os.path.join(os.path.dirname(__file__), 'static')


def server_static(filepath):
    return static_file(filepath, root=STATIC)


def make_app(repo):
    """
    Create the guestbook application, with all storage going through the
    given entry repository.
    """
    app = Bottle()
    app.route('/', 'GET', ListHandler(repo))
    app.route('/', 'POST', FormHandler(repo))
    app.route('/static/<filepath:path>', 'GET', server_static)
    return app
