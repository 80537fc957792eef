# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - command line

Commands:
    tiddlystore serve            run the http server
    tiddlystore history KEY      list the revisions of a tiddler
"""


import logging

import click
from werkzeug.serving import run_simple

from tiddlystore.api import TiddlyWebApp
from tiddlystore.backend.registry import registry
from tiddlystore.config import DEFAULT_HTTP, DEFAULT_BACKEND, DEFAULT_DATA_SOURCE, DEFAULT_INDEX, ENVVAR_PREFIX
from tiddlystore.errors import StoreError, NotFound

logger = logging.getLogger(__name__)


def _open_store(backend, db):
    try:
        return registry.open_store(backend, db)
    except StoreError as err:
        raise click.ClickException(str(err))


@click.group()
@click.option('--backend', default=DEFAULT_BACKEND, show_default=True,
              type=click.Choice(registry.names()), help="Storage backend")
@click.option('--db', default=DEFAULT_DATA_SOURCE, show_default=True,
              help="Database file or directory")
@click.option('--log-level', default='INFO', show_default=True,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']))
@click.pass_context
def cli(ctx, backend, db, log_level):
    """Single user tiddler server."""
    logging.basicConfig(level=getattr(logging, log_level),
                        format='%(asctime)s %(levelname)s %(name)s %(message)s')
    ctx.obj = {'backend': backend, 'db': db}


@cli.command()
@click.option('--http', default=DEFAULT_HTTP, show_default=True, help="HTTP service address")
@click.option('-p', '--password', default='', help="Optional password to protect the wiki")
@click.option('--index', default=DEFAULT_INDEX, show_default=True, help="HTML file served for /")
@click.pass_obj
def serve(obj, http, password, index):
    """Run the http server."""
    host, _, port = http.rpartition(':')
    try:
        port = int(port)
    except ValueError:
        raise click.BadParameter("expected host:port, got %r" % http, param_hint='--http')
    store = _open_store(obj['backend'], obj['db'])
    app = TiddlyWebApp(store, password=password or None, index_path=index)
    logger.info("listening on %s:%d", host or '127.0.0.1', port)
    try:
        run_simple(host or '127.0.0.1', port, app, threaded=True)
    finally:
        store.close()


@cli.command()
@click.argument('key')
@click.pass_obj
def history(obj, key):
    """List the revisions of tiddler KEY."""
    store = _open_store(obj['backend'], obj['db'])
    try:
        revisions = store.revisions(key)
        if not revisions:
            raise click.ClickException("no history for %r" % key)
        for revision in revisions:
            try:
                store.get_revision(key, revision)
            except NotFound:
                click.echo("%d deleted" % revision)
            else:
                click.echo("%d" % revision)
    finally:
        store.close()


def main():
    cli(auto_envvar_prefix=ENVVAR_PREFIX)
