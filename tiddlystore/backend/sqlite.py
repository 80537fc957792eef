# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - sqlite3 backend

One row per live tiddler in the tiddler table (looked up by the indexed
title column), one row per put / delete in the tiddler_history table.
An empty history snapshot is the tombstone of a delete.
"""


import logging
import os
import threading
from sqlite3 import connect, Row, Error

from tiddlystore.backend import StoreBase
from tiddlystore.backend._util import check_cancelled, storage_errors, prepare_put
from tiddlystore.errors import NotFound
from tiddlystore.tiddler import Tiddler, is_macro, from_snapshot

logger = logging.getLogger(__name__)


class Store(StoreBase):
    """
    A tiddler store in a sqlite3 database.
    """
    def __init__(self, db_name, table_name='tiddler'):
        """
        :param db_name: path of the database file
        :param table_name: name of the live table, history goes to <table_name>_history
        """
        self.db_name = db_name
        self.table_name = table_name
        self.history_table_name = table_name + '_history'
        self.conn = None
        # serializes the read-modify-write revision sequence
        self._lock = threading.Lock()

    def create(self):
        with storage_errors(Error):
            conn = connect(self.db_name)
            try:
                with conn:
                    conn.execute('create table if not exists %s '
                                 '(id integer not null primary key autoincrement, '
                                 'title text not null unique, meta text not null, '
                                 'content text not null, revision integer not null)' % self.table_name)
                    conn.execute('create table if not exists %s '
                                 '(title text not null, revision integer not null, '
                                 'snapshot text not null, primary key (title, revision))' % self.history_table_name)
            finally:
                conn.close()

    def destroy(self):
        if self.conn is not None:
            self.close()
        if os.path.exists(self.db_name):
            os.remove(self.db_name)

    def open(self):
        with storage_errors(Error):
            # one connection, shared by all threads, guarded by self._lock
            self.conn = connect(self.db_name, check_same_thread=False)
        self.conn.row_factory = Row # make column access by ['colname'] possible
        logger.debug("opened sqlite store %s", self.db_name)

    def close(self):
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def _last_revision(self, key):
        row = self.conn.execute('select max(revision) as revision from %s where title=?'
                                % self.history_table_name, (key, )).fetchone()
        return row['revision'] or 0

    def get(self, key, cancel=None):
        check_cancelled(cancel)
        with self._lock, storage_errors(Error):
            row = self.conn.execute('select meta, content from %s where title=?' % self.table_name,
                                    (key, )).fetchone()
        if row is None:
            raise NotFound(key)
        return Tiddler(key, row['meta'], row['content'], with_text=True)

    def all(self, cancel=None):
        check_cancelled(cancel)
        tiddlers = []
        with self._lock, storage_errors(Error):
            rows = self.conn.execute('select title, meta, content from %s order by id' % self.table_name).fetchall()
        for row in rows:
            t = Tiddler(row['title'], row['meta'])
            if is_macro(t.meta):
                t.text = row['content']
                t.with_text = True
            tiddlers.append(t)
        return tiddlers

    def put(self, tiddler, cancel=None):
        check_cancelled(cancel)
        key = tiddler.key
        with self._lock, storage_errors(Error):
            # leaving "with self.conn" by an exception rolls back
            with self.conn:
                revision = self._last_revision(key) + 1
                meta, history = prepare_put(tiddler, revision)
                meta = meta.decode('utf-8')
                self.conn.execute('insert into %s (title, meta, content, revision) values (?, ?, ?, ?) '
                                  'on conflict (title) do update set '
                                  'meta=excluded.meta, content=excluded.content, revision=excluded.revision'
                                  % self.table_name, (key, meta, tiddler.text, revision))
                check_cancelled(cancel)
                self.conn.execute('insert into %s (title, revision, snapshot) values (?, ?, ?)'
                                  % self.history_table_name, (key, revision, history.decode('utf-8')))
                check_cancelled(cancel)
        return revision

    def delete(self, key, cancel=None):
        check_cancelled(cancel)
        with self._lock, storage_errors(Error):
            with self.conn:
                cursor = self.conn.execute('delete from %s where title=?' % self.table_name, (key, ))
                if not cursor.rowcount:
                    raise NotFound(key)
                check_cancelled(cancel)
                revision = self._last_revision(key) + 1
                self.conn.execute('insert into %s (title, revision, snapshot) values (?, ?, ?)'
                                  % self.history_table_name, (key, revision, ''))
                check_cancelled(cancel)

    def revisions(self, key, cancel=None):
        check_cancelled(cancel)
        with self._lock, storage_errors(Error):
            rows = self.conn.execute('select revision from %s where title=? order by revision'
                                     % self.history_table_name, (key, )).fetchall()
        return [row['revision'] for row in rows]

    def get_revision(self, key, revision, cancel=None):
        check_cancelled(cancel)
        with self._lock, storage_errors(Error):
            row = self.conn.execute('select snapshot from %s where title=? and revision=?'
                                    % self.history_table_name, (key, revision)).fetchone()
        if row is None or not row['snapshot']:
            # unknown revision or tombstone
            raise NotFound('%s#%d' % (key, revision))
        return from_snapshot(key, row['snapshot'])
