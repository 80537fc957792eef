# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - store tests

Every backend must pass these, see test_<backend>.py.
"""


import json
import os
import shutil
import tempfile
import threading

import pytest

from tiddlystore.errors import NotFound, MalformedMetadata, Cancelled
from tiddlystore.tiddler import Tiddler


def make_tiddler(key, text='', **meta):
    return Tiddler(key, json.dumps(meta).encode('utf-8'), text)


def projection(t):
    return json.loads(t.to_json().decode('utf-8'))


class CancelAfter(object):
    """
    looks like a threading.Event that gets set after <checks> is_set() calls
    """
    def __init__(self, checks):
        self.checks = checks
        self.calls = 0

    def is_set(self):
        self.calls += 1
        return self.calls > self.checks


class StoreTestBase(object):
    def make_store(self, path):
        """
        return a (not yet created) store living below path
        """
        raise NotImplementedError

    def setup_method(self, method):
        self.tmpdir = tempfile.mkdtemp()
        self.st = self.make_store(self.tmpdir)
        self.st.create()
        self.st.open()

    def teardown_method(self, method):
        self.st.close()
        self.st.destroy()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_get_raises(self):
        with pytest.raises(NotFound):
            self.st.get('doesnotexist')
        # NotFound is a KeyError
        with pytest.raises(KeyError):
            self.st.get('doesnotexist')

    def test_all_empty(self):
        assert self.st.all() == []

    def test_put_get(self):
        rev = self.st.put(make_tiddler('A', 'hello', author='x'))
        assert rev == 1
        t = self.st.get('A')
        assert t.with_text
        assert t.revision == 1
        assert projection(t) == {'author': 'x', 'revision': 1, 'text': 'hello'}

    def test_put_replaces(self):
        self.st.put(make_tiddler('A', 'hello', author='x', tags=['one']))
        rev = self.st.put(make_tiddler('A', 'world', author='y'))
        assert rev == 2
        t = self.st.get('A')
        assert t.text == 'world'
        # full replace, not patch
        assert projection(t) == {'author': 'y', 'revision': 2, 'text': 'world'}

    def test_revisions_increase(self):
        revs = [self.st.put(make_tiddler('A', str(i))) for i in range(5)]
        assert revs == [1, 2, 3, 4, 5]
        assert self.st.put(make_tiddler('B')) == 1

    def test_revision_is_assigned_by_store(self):
        rev = self.st.put(make_tiddler('A', revision=42))
        assert rev == 1
        assert self.st.get('A').revision == 1

    def test_put_malformed_meta(self):
        for meta in [b'not json', b'[1, 2]', b'"str"', b'']:
            with pytest.raises(MalformedMetadata):
                self.st.put(Tiddler('A', meta, 'text'))
        with pytest.raises(NotFound):
            self.st.get('A')
        assert self.st.all() == []
        assert self.st.revisions('A') == []

    def test_empty_text(self):
        self.st.put(make_tiddler('A', ''))
        t = self.st.get('A')
        assert t.text == ''
        assert projection(t)['text'] == ''

    def test_unicode(self):
        key, text = 'Übersicht ☃', 'grüße\nmultiple\nlines ✓'
        self.st.put(make_tiddler(key, text, author='jürgen'))
        t = self.st.get(key)
        assert t.key == key
        assert t.text == text
        assert projection(t)['author'] == 'jürgen'
        assert [t.key for t in self.st.all()] == [key]

    def test_delete(self):
        self.st.put(make_tiddler('A', 'hello'))
        self.st.put(make_tiddler('B', 'other'))
        self.st.delete('A')
        with pytest.raises(NotFound):
            self.st.get('A')
        assert [t.key for t in self.st.all()] == ['B']

    def test_delete_raises(self):
        with pytest.raises(NotFound):
            self.st.delete('doesnotexist')
        self.st.put(make_tiddler('A'))
        self.st.delete('A')
        with pytest.raises(NotFound):
            self.st.delete('A')

    def test_revision_continues_after_delete(self):
        self.st.put(make_tiddler('A', 'one'))
        self.st.put(make_tiddler('A', 'two'))
        self.st.delete('A')
        assert self.st.put(make_tiddler('A', 'four')) == 4
        assert self.st.get('A').text == 'four'

    def test_all_skinny_and_macro(self):
        self.st.put(make_tiddler('macro', 'the macro', tags=['$:/tags/Macro']))
        self.st.put(make_tiddler('plain', 'plain text', tags=['other']))
        result = dict((t.key, t) for t in self.st.all())
        assert set(result) == set(['macro', 'plain'])
        macro, plain = result['macro'], result['plain']
        assert macro.with_text
        assert projection(macro)['text'] == 'the macro'
        assert not plain.with_text
        assert 'text' not in projection(plain)
        # skinny projection is the stored meta, verbatim
        assert plain.to_json() == plain.meta

    def test_macro_is_byte_match(self):
        # not a tag, but the literal is in the meta - still fat
        self.st.put(make_tiddler('caption', 'text', caption='$:/tags/Macro'))
        [t] = self.st.all()
        assert t.with_text
        assert t.text == 'text'

    def test_strange_titles(self):
        keys = ['$:/tags/Macro', 'a', 'a#b', 'a#1', 'a|1', 'a|2', 'dir/file.tid', '.hidden', '100%']
        for i, key in enumerate(keys):
            assert self.st.put(make_tiddler(key, 'text of %s' % key, n=i)) == 1
        for i, key in enumerate(keys):
            t = self.st.get(key)
            assert t.text == 'text of %s' % key
            assert projection(t)['n'] == i
        assert sorted(t.key for t in self.st.all()) == sorted(keys)
        assert self.st.put(make_tiddler('a', 'again')) == 2
        assert self.st.revisions('a') == [1, 2]
        assert self.st.revisions('a#b') == [1]

    def test_long_titles(self):
        keys = ['x' * 600, '漢' * 90, '漢' * 300, 'y' * 200 + '/' + 'z' * 200]
        for key in keys:
            self.st.put(make_tiddler(key, 'one', tags=['$:/tags/Macro']))
            assert self.st.put(make_tiddler(key, 'two', tags=['$:/tags/Macro'])) == 2
        for key in keys:
            t = self.st.get(key)
            assert t.key == key
            assert t.text == 'two'
            assert self.st.revisions(key) == [1, 2]
            assert self.st.get_revision(key, 1).text == 'one'
        # all() must give back the real titles
        result = dict((t.key, t) for t in self.st.all())
        assert sorted(result) == sorted(keys)
        assert all(t.text == 'two' for t in result.values())
        self.st.delete(keys[0])
        with pytest.raises(NotFound):
            self.st.get(keys[0])
        assert sorted(t.key for t in self.st.all()) == sorted(keys[1:])
        assert self.st.put(make_tiddler(keys[0], 'four')) == 4

    def test_put_invalid_unicode(self):
        self.st.put(make_tiddler('A', 'one'))
        with pytest.raises(MalformedMetadata):
            self.st.put(make_tiddler('A', 'lone \ud800 surrogate'))
        with pytest.raises(MalformedMetadata):
            self.st.put(Tiddler('B', b'{"title":"\\udfff"}', 'text'))
        assert self.st.get('A').text == 'one'
        assert self.st.revisions('A') == [1]
        with pytest.raises(NotFound):
            self.st.get('B')

    def test_history(self):
        self.st.put(make_tiddler('A', 'one', author='x'))
        self.st.put(make_tiddler('A', 'two', author='y'))
        self.st.delete('A')
        assert self.st.revisions('A') == [1, 2, 3]
        t = self.st.get_revision('A', 1)
        assert t.with_text
        assert projection(t) == {'author': 'x', 'revision': 1, 'text': 'one'}
        assert self.st.get_revision('A', 2).text == 'two'
        with pytest.raises(NotFound):
            # tombstone
            self.st.get_revision('A', 3)
        with pytest.raises(NotFound):
            self.st.get_revision('A', 4)

    def test_history_many_revisions(self):
        for i in range(12):
            self.st.put(make_tiddler('A', str(i)))
        assert self.st.revisions('A') == list(range(1, 13))
        assert self.st.get_revision('A', 10).text == '9'
        assert self.st.put(make_tiddler('A')) == 13

    def test_revisions_unknown_key(self):
        assert self.st.revisions('doesnotexist') == []

    def test_cancelled_before(self):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(Cancelled):
            self.st.put(make_tiddler('A', 'text'), cancel=cancel)
        with pytest.raises(Cancelled):
            self.st.get('A', cancel=cancel)
        with pytest.raises(Cancelled):
            self.st.all(cancel=cancel)
        with pytest.raises(NotFound):
            self.st.get('A')

    def test_cancelled_put_leaves_nothing(self):
        self.st.put(make_tiddler('A', 'one'))
        with pytest.raises(Cancelled):
            self.st.put(make_tiddler('A', 'two'), cancel=CancelAfter(1))
        t = self.st.get('A')
        assert t.text == 'one'
        assert t.revision == 1
        assert self.st.revisions('A') == [1]
        assert self.st.put(make_tiddler('A', 'three')) == 2

    def test_cancelled_delete_leaves_nothing(self):
        self.st.put(make_tiddler('A', 'one'))
        with pytest.raises(Cancelled):
            self.st.delete('A', cancel=CancelAfter(1))
        assert self.st.get('A').text == 'one'
        assert self.st.revisions('A') == [1]

    def test_not_cancelled(self):
        cancel = threading.Event()
        assert self.st.put(make_tiddler('A', 'text'), cancel=cancel) == 1
        assert self.st.get('A', cancel=cancel).text == 'text'

    def test_reopen(self):
        self.st.put(make_tiddler('A', 'persistent'))
        self.st.close()
        self.st.open()
        assert self.st.get('A').text == 'persistent'
        assert self.st.put(make_tiddler('A')) == 2

    def test_concurrent_puts(self):
        nthreads, nputs = 8, 10
        results = []
        errors = []

        def writer(n):
            try:
                for i in range(nputs):
                    results.append(self.st.put(make_tiddler('A', '%d-%d' % (n, i))))
                    self.st.all()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n, )) for n in range(nthreads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        # no gaps, no repeats
        assert sorted(results) == list(range(1, nthreads * nputs + 1))
        t = self.st.get('A')
        assert t.revision == nthreads * nputs
        assert self.st.revisions('A') == sorted(results)

    def test_concurrent_readers_see_whole_tiddlers(self):
        stop = threading.Event()
        errors = []

        def reader():
            try:
                while not stop.is_set():
                    try:
                        t = self.st.get('A')
                    except NotFound:
                        continue
                    # text is always written together with its revision
                    assert t.text == 'text %d' % t.revision
            except Exception as e:
                errors.append(e)

        readers = [threading.Thread(target=reader) for n in range(4)]
        for t in readers:
            t.start()
        try:
            for i in range(1, 31):
                self.st.put(make_tiddler('A', 'text %d' % i))
        finally:
            stop.set()
            for t in readers:
                t.join()
        assert errors == []


def listdir(path):
    return sorted(os.listdir(path))
