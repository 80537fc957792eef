# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - lmdb (embedded transactional key/value) backend

Layout: two named databases in one lmdb environment.

 tiddler          <name>|1 -> meta (JSON, with revision)
                  <name>|2 -> text
                  <name>|0 -> title (only for hashed names)
 tiddler_history  <name>#<revision> -> meta and text merged (JSON)

<name> is the UTF-8 encoded title. lmdb keys are limited to 511 bytes, so
longer titles get a hashed name: 0xff (never part of UTF-8) followed by
the sha256 hex digest of the title.

A deleted tiddler keeps its live keys, but with empty values. Empty history
values are tombstones of deletes.

Every put / delete is ONE write transaction, so readers either see all of
it or nothing of it. lmdb serializes writers, so revisions can't be lost.
"""



import hashlib
import logging
import os
import shutil

import lmdb

from tiddlystore.backend import StoreBase
from tiddlystore.backend._util import check_cancelled, storage_errors, prepare_put, meta_revision, HISTORY_SEP
from tiddlystore.errors import NotFound
from tiddlystore.tiddler import Tiddler, is_macro, from_snapshot

logger = logging.getLogger(__name__)

LIVE_DB = b'tiddler'
HISTORY_DB = b'tiddler_history'
TITLE_SUFFIX = b'|0'
META_SUFFIX = b'|1'
TEXT_SUFFIX = b'|2'
# leaves room for the suffixes and revision numbers below lmdb's 511 bytes
MAX_NAME = 400
HASHED_PREFIX = b'\xff'


def _name(key):
    name = key.encode('utf-8')
    if len(name) > MAX_NAME:
        name = HASHED_PREFIX + hashlib.sha256(name).hexdigest().encode('ascii')
    return name


def _history_key(name, revision):
    return name + HISTORY_SEP.encode('ascii') + b'%d' % revision


class Store(StoreBase):
    """
    A tiddler store in an lmdb environment.

    Note: only ONE process should open the environment for writing.
    """
    def __init__(self, path, map_size=1 << 30):
        """
        :param path: directory of the lmdb environment
        :param map_size: maximum size the database may grow to (default: 1GiB)
        """
        self.path = path
        self.map_size = map_size
        self._env = None

    def create(self):
        self.open()
        self.close()

    def destroy(self):
        if self._env is not None:
            self.close()
        if os.path.exists(self.path):
            shutil.rmtree(self.path)

    def open(self):
        with storage_errors(lmdb.Error, OSError):
            self._env = lmdb.open(self.path, map_size=self.map_size, max_dbs=2)
            self._live = self._env.open_db(LIVE_DB)
            self._history = self._env.open_db(HISTORY_DB)
        logger.debug("opened lmdb store %s", self.path)

    def close(self):
        if self._env is not None:
            self._env.close()
            self._env = None

    def _history_revisions(self, txn, name):
        prefix = name + HISTORY_SEP.encode('ascii')
        revisions = []
        cursor = txn.cursor(db=self._history)
        if not cursor.set_range(prefix):
            return revisions
        for hkey in cursor.iternext(keys=True, values=False):
            if not hkey.startswith(prefix):
                break
            # "a" must not pick up "a#b#1", which belongs to title "a#b"
            tail = hkey[len(prefix):]
            if tail.isdigit():
                revisions.append(int(tail))
        return sorted(revisions)

    def _last_revision(self, txn, name):
        meta = txn.get(name + META_SUFFIX, db=self._live)
        if meta:
            return meta_revision(meta)
        # never written or deleted - the history knows
        revisions = self._history_revisions(txn, name)
        return revisions[-1] if revisions else 0

    def _key(self, txn, name):
        if name.startswith(HASHED_PREFIX):
            return txn.get(name + TITLE_SUFFIX, db=self._live).decode('utf-8')
        return name.decode('utf-8')

    def get(self, key, cancel=None):
        check_cancelled(cancel)
        name = _name(key)
        with storage_errors(lmdb.Error):
            with self._env.begin() as txn:
                meta = txn.get(name + META_SUFFIX, db=self._live)
                if not meta:
                    raise NotFound(key)
                text = txn.get(name + TEXT_SUFFIX, b'', db=self._live)
        return Tiddler(key, meta, text.decode('utf-8'), with_text=True)

    def all(self, cancel=None):
        check_cancelled(cancel)
        tiddlers = []
        with storage_errors(lmdb.Error):
            with self._env.begin() as txn:
                for mkey, meta in txn.cursor(db=self._live):
                    if not mkey.endswith(META_SUFFIX) or not meta:
                        # text or title entry, or deleted tiddler
                        continue
                    check_cancelled(cancel)
                    name = mkey[:-len(META_SUFFIX)]
                    t = Tiddler(self._key(txn, name), meta)
                    if is_macro(meta):
                        t.text = txn.get(name + TEXT_SUFFIX, b'', db=self._live).decode('utf-8')
                        t.with_text = True
                    tiddlers.append(t)
        return tiddlers

    def put(self, tiddler, cancel=None):
        check_cancelled(cancel)
        key = tiddler.key
        name = _name(key)
        with storage_errors(lmdb.Error):
            # leaving the "with" by an exception aborts the transaction
            with self._env.begin(write=True) as txn:
                revision = self._last_revision(txn, name) + 1
                meta, history = prepare_put(tiddler, revision)
                if name.startswith(HASHED_PREFIX):
                    txn.put(name + TITLE_SUFFIX, key.encode('utf-8'), db=self._live)
                txn.put(name + META_SUFFIX, meta, db=self._live)
                txn.put(name + TEXT_SUFFIX, tiddler.text.encode('utf-8'), db=self._live)
                txn.put(_history_key(name, revision), history, db=self._history)
                check_cancelled(cancel)
        return revision

    def delete(self, key, cancel=None):
        check_cancelled(cancel)
        name = _name(key)
        with storage_errors(lmdb.Error):
            with self._env.begin(write=True) as txn:
                if not txn.get(name + META_SUFFIX, db=self._live):
                    raise NotFound(key)
                revision = self._last_revision(txn, name) + 1
                txn.put(name + META_SUFFIX, b'', db=self._live)
                txn.put(name + TEXT_SUFFIX, b'', db=self._live)
                txn.put(_history_key(name, revision), b'', db=self._history)
                check_cancelled(cancel)

    def revisions(self, key, cancel=None):
        check_cancelled(cancel)
        with storage_errors(lmdb.Error):
            with self._env.begin() as txn:
                return self._history_revisions(txn, _name(key))

    def get_revision(self, key, revision, cancel=None):
        check_cancelled(cancel)
        with storage_errors(lmdb.Error):
            with self._env.begin() as txn:
                data = txn.get(_history_key(_name(key), revision), db=self._history)
        if not data:
            # unknown revision or tombstone
            raise NotFound('%s#%d' % (key, revision))
        return from_snapshot(key, data)
