# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - flat file backend

Layout::

 <path>/tiddlers/<name>.tid          text of live tiddlers
 <path>/tiddlers/<name>.meta         meta of live tiddlers (JSON, with revision)
 <path>/tiddlers/<name>.title        title, only for hashed names (see below)
 <path>/tiddlerHistory/<name>#<rev>  meta and text merged (JSON), empty for deletes

<name> is the title, percent-encoded, so any title makes a valid filename.
Names longer than MAX_NAME are replaced by "%%" (never the result of
quoting) and the sha256 hex digest of the title. For those, <name>.title
in tiddlers/ holds the real title.

A put first writes all files to temporary names, then renames them into
place (history, title, text, meta). A store-wide lock keeps other threads
of this process from seeing a half-renamed tiddler.
"""


import errno
import hashlib
import logging
import os
import shutil
import tempfile
import threading
from urllib.parse import quote, unquote

from tiddlystore.backend import StoreBase
from tiddlystore.backend._util import (check_cancelled, storage_errors, history_key,
                                       parse_history_key, prepare_put)
from tiddlystore.errors import NotFound, StorageIOError
from tiddlystore.tiddler import Tiddler, is_macro, from_snapshot

logger = logging.getLogger(__name__)

TIDDLERS_DIR = 'tiddlers'
HISTORY_DIR = 'tiddlerHistory'
TEXT_EXT = '.tid'
META_EXT = '.meta'
TITLE_EXT = '.title'
TMP_EXT = '.tmp'
# NAME_MAX is 255 on most file systems, leave room for extensions
MAX_NAME = 200
HASHED_PREFIX = '%%'


def _fsname(key):
    name = quote(key, safe='')
    if len(name) > MAX_NAME:
        name = HASHED_PREFIX + hashlib.sha256(key.encode('utf-8')).hexdigest()
    return name


def _unlink(path):
    try:
        os.remove(path)
    except OSError as e:
        if e.errno != errno.ENOENT:
            raise


class Store(StoreBase):
    """
    A tiddler store in a directory tree.
    """
    def __init__(self, path):
        self.path = path
        self.tiddlers_path = os.path.join(path, TIDDLERS_DIR)
        self.history_path = os.path.join(path, HISTORY_DIR)
        self._lock = threading.RLock()

    def create(self):
        with storage_errors(OSError):
            for path in [self.path, self.tiddlers_path, self.history_path]:
                os.makedirs(path, exist_ok=True)

    def destroy(self):
        shutil.rmtree(self.path, ignore_errors=True)

    def open(self):
        if not os.path.isdir(self.tiddlers_path) or not os.path.isdir(self.history_path):
            raise StorageIOError("no tiddler store at %s" % self.path)
        logger.debug("opened fs store %s", self.path)

    def close(self):
        pass

    def _mkpath(self, key, ext):
        return os.path.join(self.tiddlers_path, _fsname(key) + ext)

    def _read(self, path):
        with open(path, 'rb') as f:
            return f.read()

    def _stage(self, directory, data):
        """
        write data to a temporary file in directory, return its path
        """
        fd, tmp_path = tempfile.mkstemp(suffix=TMP_EXT, dir=directory)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            _unlink(tmp_path)
            raise
        return tmp_path

    def _history_revisions(self, key):
        name = _fsname(key)
        revisions = []
        for fn in os.listdir(self.history_path):
            revision = parse_history_key(fn, name)
            if revision is not None:
                revisions.append(revision)
        return sorted(revisions)

    def _next_revision(self, key):
        revisions = self._history_revisions(key)
        return (revisions[-1] if revisions else 0) + 1

    def get(self, key, cancel=None):
        check_cancelled(cancel)
        with self._lock, storage_errors(OSError):
            try:
                meta = self._read(self._mkpath(key, META_EXT))
                text = self._read(self._mkpath(key, TEXT_EXT))
            except FileNotFoundError:
                raise NotFound(key)
        return Tiddler(key, meta, text.decode('utf-8'), with_text=True)

    def _key(self, name):
        if name.startswith(HASHED_PREFIX):
            return self._read(os.path.join(self.tiddlers_path, name + TITLE_EXT)).decode('utf-8')
        return unquote(name)

    def all(self, cancel=None):
        check_cancelled(cancel)
        tiddlers = []
        with self._lock, storage_errors(OSError):
            for fn in sorted(os.listdir(self.tiddlers_path)):
                if not fn.endswith(META_EXT):
                    continue
                check_cancelled(cancel)
                key = self._key(fn[:-len(META_EXT)])
                meta = self._read(os.path.join(self.tiddlers_path, fn))
                t = Tiddler(key, meta)
                if is_macro(meta):
                    t.text = self._read(self._mkpath(key, TEXT_EXT)).decode('utf-8')
                    t.with_text = True
                tiddlers.append(t)
        return tiddlers

    def put(self, tiddler, cancel=None):
        check_cancelled(cancel)
        key = tiddler.key
        name = _fsname(key)
        with self._lock, storage_errors(OSError):
            revision = self._next_revision(key)
            meta, history = prepare_put(tiddler, revision)
            targets = [(self.history_path, history, os.path.join(self.history_path, history_key(name, revision)))]
            if name.startswith(HASHED_PREFIX):
                targets.append((self.tiddlers_path, key.encode('utf-8'), self._mkpath(key, TITLE_EXT)))
            targets.append((self.tiddlers_path, tiddler.text.encode('utf-8'), self._mkpath(key, TEXT_EXT)))
            targets.append((self.tiddlers_path, meta, self._mkpath(key, META_EXT)))
            staged = []
            renamed = 0
            try:
                for directory, data, path in targets:
                    staged.append((self._stage(directory, data), path))
                check_cancelled(cancel)
                for tmp_path, path in staged:
                    os.replace(tmp_path, path)
                    renamed += 1
            except BaseException:
                for tmp_path, _ in staged[renamed:]:
                    _unlink(tmp_path)
                if renamed:
                    # the meta never landed, so this revision did not happen
                    _unlink(staged[0][1])
                raise
        return revision

    def delete(self, key, cancel=None):
        check_cancelled(cancel)
        with self._lock, storage_errors(OSError):
            meta_path = self._mkpath(key, META_EXT)
            if not os.path.exists(meta_path):
                raise NotFound(key)
            revision = self._next_revision(key)
            tmp_path = self._stage(self.history_path, b'')
            try:
                check_cancelled(cancel)
            except BaseException:
                os.remove(tmp_path)
                raise
            os.replace(tmp_path, os.path.join(self.history_path, history_key(_fsname(key), revision)))
            # meta first: without it, the tiddler is gone for get and all
            os.remove(meta_path)
            _unlink(self._mkpath(key, TEXT_EXT))
            _unlink(self._mkpath(key, TITLE_EXT))

    def revisions(self, key, cancel=None):
        check_cancelled(cancel)
        with self._lock, storage_errors(OSError):
            return self._history_revisions(key)

    def get_revision(self, key, revision, cancel=None):
        check_cancelled(cancel)
        path = os.path.join(self.history_path, history_key(_fsname(key), revision))
        with self._lock, storage_errors(OSError):
            try:
                data = self._read(path)
            except FileNotFoundError:
                raise NotFound('%s#%d' % (key, revision))
        if not data:
            # tombstone
            raise NotFound('%s#%d' % (key, revision))
        return from_snapshot(key, data)
