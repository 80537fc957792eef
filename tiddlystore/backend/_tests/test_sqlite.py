# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - sqlite store tests
"""


import os
import sqlite3

from tiddlystore.backend.sqlite import Store
from tiddlystore.backend._tests import StoreTestBase, make_tiddler


class TestSqliteStore(StoreTestBase):
    def make_store(self, path):
        return Store(os.path.join(path, 'store.sqlite'))

    def _rows(self, sql):
        conn = sqlite3.connect(self.st.db_name)
        try:
            return conn.execute(sql).fetchall()
        finally:
            conn.close()

    def test_one_live_row_per_tiddler(self):
        self.st.put(make_tiddler('A', 'one'))
        self.st.put(make_tiddler('A', 'two'))
        self.st.put(make_tiddler('B', 'other'))
        rows = self._rows('select title, content, revision from tiddler order by title')
        assert rows == [('A', 'two', 2), ('B', 'other', 1)]
        rows = self._rows('select title, revision from tiddler_history order by title, revision')
        assert rows == [('A', 1), ('A', 2), ('B', 1)]

    def test_title_is_not_a_substring_match(self):
        self.st.put(make_tiddler('Another', 'long', title='Another'))
        self.st.put(make_tiddler('A', 'short', title='A'))
        assert self.st.get('A').text == 'short'
        self.st.delete('A')
        assert self.st.get('Another').text == 'long'
        assert self.st.put(make_tiddler('Another')) == 2

    def test_delete_keeps_history(self):
        self.st.put(make_tiddler('A', 'one'))
        self.st.delete('A')
        assert self._rows('select count(*) from tiddler') == [(0, )]
        rows = self._rows('select revision, snapshot from tiddler_history order by revision')
        assert rows == [(1, '{"revision":1,"text":"one"}'), (2, '')]

    def test_custom_table_name(self):
        st = Store(os.path.join(self.tmpdir, 'other.sqlite'), table_name='tiddlers2')
        st.create()
        st.open()
        try:
            assert st.put(make_tiddler('A')) == 1
            assert self._rows_of(st.db_name, 'select count(*) from tiddlers2_history') == [(1, )]
        finally:
            st.close()
            st.destroy()

    def _rows_of(self, db_name, sql):
        conn = sqlite3.connect(db_name)
        try:
            return conn.execute(sql).fetchall()
        finally:
            conn.close()


def test_create(tmpdir):
    dbfile = tmpdir.join('store.sqlite')
    assert not dbfile.check()
    store = Store(str(dbfile))
    assert not dbfile.check()
    store.create()
    assert dbfile.check()
    # create is idempotent
    store.create()
    return store


def test_destroy(tmpdir):
    dbfile = tmpdir.join('store.sqlite')
    store = test_create(tmpdir)
    store.destroy()
    assert not dbfile.check()
