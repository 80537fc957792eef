# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - backend registry tests
"""


import pytest

from tiddlystore.backend import StoreBase
from tiddlystore.backend.registry import Registry, registry
from tiddlystore.errors import ConfigurationError, NotFound
from tiddlystore.backend._tests import make_tiddler


def test_default_backends():
    assert registry.names() == ['fs', 'kv', 'sqlite']
    assert 'kv' in registry
    assert 'bolt' not in registry


def test_unknown_backend(tmpdir):
    with pytest.raises(ConfigurationError) as excinfo:
        registry.open_store('bolt', str(tmpdir.join('x')))
    assert 'bolt' in str(excinfo.value)


def test_duplicate_registration():
    reg = Registry()
    reg.register('mine', lambda data_source: None)
    with pytest.raises(ConfigurationError):
        reg.register('mine', lambda data_source: None)


def test_open_store(store):
    assert isinstance(store, StoreBase)
    assert store.put(make_tiddler('A', 'hello')) == 1
    assert store.get('A').text == 'hello'
    store.delete('A')
    with pytest.raises(NotFound):
        store.get('A')
    assert store.all() == []


def test_backends_agree(tmpdir):
    """
    the same operations give the same results with every backend
    """
    results = []
    for name, data_source in [('kv', 'a.lmdb'), ('sqlite', 'a.sqlite'), ('fs', 'a')]:
        st = registry.open_store(name, str(tmpdir.join(data_source)))
        try:
            revs = [st.put(make_tiddler('A', 'one', author='x')),
                    st.put(make_tiddler('B', 'macro', tags=['$:/tags/Macro'])),
                    st.put(make_tiddler('A', 'two', author='y'))]
            st.delete('B')
            revs.append(st.put(make_tiddler('B', 'again', tags=['$:/tags/Macro'])))
            listing = sorted((t.key, t.to_json()) for t in st.all())
            results.append((revs, st.get('A').to_json(), listing, st.revisions('B')))
        finally:
            st.close()
    assert results[0] == results[1] == results[2]
    revs, a, listing, b_revisions = results[0]
    assert revs == [1, 1, 2, 3]
    assert a == b'{"author":"y","revision":2,"text":"two"}'
    assert listing == [('A', b'{"author":"y","revision":2}'),
                       ('B', b'{"revision":3,"tags":["$:/tags/Macro"],"text":"again"}')]
    assert b_revisions == [1, 2, 3]
