# Copyright: 2011 MoinMoin:RonnyPfannschmidt
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - store test magic
"""


import pytest

from tiddlystore.backend.registry import registry

stores = registry.names()

data_sources = {
    'kv': 'store.lmdb',
    'sqlite': 'store.sqlite',
    'fs': 'store',
}


@pytest.fixture(params=stores)
def store(request, tmpdir):
    """
    an opened store of every known backend
    """
    storename = request.param
    st = registry.open_store(storename, str(tmpdir.join(data_sources[storename])))
    # no destroy in the normal finalizer
    # so we can keep the data for example if it's a tmpdir
    request.addfinalizer(st.close)
    return st
