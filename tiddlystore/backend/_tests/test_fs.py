# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - fs store tests
"""


import errno
import hashlib
import os

import pytest

from tiddlystore.backend.fs import Store
from tiddlystore.backend._tests import StoreTestBase, CancelAfter, make_tiddler, listdir
from tiddlystore.errors import Cancelled, StorageIOError


class TestFSStore(StoreTestBase):
    def make_store(self, path):
        return Store(os.path.join(path, 'store'))

    def test_layout(self):
        self.st.put(make_tiddler('$:/tags/Macro', 'macro', author='x'))
        self.st.put(make_tiddler('$:/tags/Macro', 'macro 2', author='x'))
        assert listdir(self.st.tiddlers_path) == ['%24%3A%2Ftags%2FMacro.meta', '%24%3A%2Ftags%2FMacro.tid']
        assert listdir(self.st.history_path) == ['%24%3A%2Ftags%2FMacro#1', '%24%3A%2Ftags%2FMacro#2']
        with open(os.path.join(self.st.tiddlers_path, '%24%3A%2Ftags%2FMacro.tid'), 'rb') as f:
            assert f.read() == b'macro 2'
        with open(os.path.join(self.st.tiddlers_path, '%24%3A%2Ftags%2FMacro.meta'), 'rb') as f:
            assert f.read() == b'{"author":"x","revision":2}'

    def test_delete_writes_tombstone(self):
        self.st.put(make_tiddler('A', 'one'))
        self.st.delete('A')
        assert listdir(self.st.tiddlers_path) == []
        assert listdir(self.st.history_path) == ['A#1', 'A#2']
        assert os.path.getsize(os.path.join(self.st.history_path, 'A#2')) == 0

    def test_cancelled_put_cleans_up(self):
        with pytest.raises(Cancelled):
            self.st.put(make_tiddler('A', 'one'), cancel=CancelAfter(1))
        assert listdir(self.st.tiddlers_path) == []
        assert listdir(self.st.history_path) == []

    def test_failed_rename_cleans_up(self, monkeypatch):
        self.st.put(make_tiddler('A', 'one'))
        real_replace = os.replace
        renames = []

        def replace(src, dst):
            renames.append(dst)
            if len(renames) == 2:
                raise OSError(errno.EIO, "rename failed")
            real_replace(src, dst)

        monkeypatch.setattr(os, 'replace', replace)
        with pytest.raises(StorageIOError):
            self.st.put(make_tiddler('A', 'two'))
        monkeypatch.undo()
        # no temp files left, history entry of the failed put removed
        assert listdir(self.st.tiddlers_path) == ['A.meta', 'A.tid']
        assert listdir(self.st.history_path) == ['A#1']
        t = self.st.get('A')
        assert t.text == 'one'
        assert t.revision == 1
        assert self.st.put(make_tiddler('A', 'three')) == 2

    def test_long_title_layout(self):
        key = '漢' * 90
        name = '%%' + hashlib.sha256(key.encode('utf-8')).hexdigest()
        self.st.put(make_tiddler(key, 'text'))
        assert listdir(self.st.tiddlers_path) == [name + '.meta', name + '.tid', name + '.title']
        assert listdir(self.st.history_path) == [name + '#1']
        with open(os.path.join(self.st.tiddlers_path, name + '.title'), 'rb') as f:
            assert f.read() == key.encode('utf-8')
        self.st.delete(key)
        assert listdir(self.st.tiddlers_path) == []
        assert listdir(self.st.history_path) == [name + '#1', name + '#2']

    def test_ignores_foreign_files(self):
        self.st.put(make_tiddler('A', 'one'))
        with open(os.path.join(self.st.tiddlers_path, 'README'), 'w') as f:
            f.write('not a tiddler')
        with open(os.path.join(self.st.history_path, 'A#old'), 'w') as f:
            f.write('not a revision')
        assert [t.key for t in self.st.all()] == ['A']
        assert self.st.revisions('A') == [1]


def test_create(tmpdir):
    target = tmpdir.join('store')
    assert not target.check()

    store = Store(str(target))
    assert not target.check()
    store.create()
    assert target.check()
    assert target.join('tiddlers').check(dir=1)
    assert target.join('tiddlerHistory').check(dir=1)

    return store


def test_destroy(tmpdir):
    store = test_create(tmpdir)
    target = tmpdir.join('store')
    store.destroy()
    assert not target.check()


def test_open_without_create(tmpdir):
    store = Store(str(tmpdir.join('store')))
    with pytest.raises(StorageIOError):
        store.open()
