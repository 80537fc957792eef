# Copyright: 2011 MoinMoin:RonnyPfannschmidt
# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - backend utilities
"""


from contextlib import contextmanager

from tiddlystore.config import REVISION
from tiddlystore.errors import Cancelled, StorageIOError
from tiddlystore.tiddler import load_meta, dump_meta, snapshot

# separates title and revision number in history keys
HISTORY_SEP = '#'


def check_cancelled(cancel):
    """
    raise Cancelled if the caller has given up
    """
    if cancel is not None and cancel.is_set():
        raise Cancelled("operation cancelled")


@contextmanager
def storage_errors(*exc_types):
    """
    Translate errors of the storage engine into StorageIOError.
    """
    try:
        yield
    except exc_types as err:
        raise StorageIOError(str(err)) from err


def history_key(key, revision):
    return '%s%s%d' % (key, HISTORY_SEP, revision)


def parse_history_key(name, prefix):
    """
    Return the revision number if name is <prefix>#<revision>, else None.

    Note: prefix "a" must not match "a#b#1" (which belongs to title "a#b").
    """
    head = prefix + HISTORY_SEP
    if not name.startswith(head):
        return None
    tail = name[len(head):]
    if not (tail.isascii() and tail.isdigit()):
        return None
    return int(tail)


def prepare_put(tiddler, revision):
    """
    Compute what a backend needs to write for tiddler at revision.

    :returns: (meta, history) - serialized meta with the revision embedded
              and the merged meta + text snapshot, both bytes
    :raises MalformedMetadata: if tiddler.meta is not a JSON object
    """
    obj = load_meta(tiddler.meta)
    obj[REVISION] = revision
    return dump_meta(obj), snapshot(obj, tiddler.text)


def meta_revision(meta):
    """
    revision embedded in stored meta (0 if there is none)
    """
    return load_meta(meta).get(REVISION, 0)
