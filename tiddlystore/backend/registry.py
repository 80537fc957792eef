# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - backend registry

Maps backend names to store factories. The application selects exactly one
of them at startup.
"""


import logging

from tiddlystore.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _kv(data_source):
    from tiddlystore.backend.kv import Store
    return Store(data_source)


def _sqlite(data_source):
    from tiddlystore.backend.sqlite import Store
    return Store(data_source)


def _fs(data_source):
    from tiddlystore.backend.fs import Store
    return Store(data_source)


class Registry(object):
    def __init__(self):
        self._factories = {}

    def register(self, name, factory):
        """
        Register factory(data_source) -> store under name.
        """
        if name in self._factories:
            raise ConfigurationError("backend %r is already registered" % name)
        self._factories[name] = factory

    def names(self):
        return sorted(self._factories)

    def __contains__(self, name):
        return name in self._factories

    def make_store(self, name, data_source):
        try:
            factory = self._factories[name]
        except KeyError:
            raise ConfigurationError("unknown backend %r (known: %s)" % (name, ', '.join(self.names())))
        return factory(data_source)

    def open_store(self, name, data_source):
        """
        Create (if needed) and open the store of backend name at data_source.
        """
        store = self.make_store(name, data_source)
        store.create()
        store.open()
        logger.info("using %s backend at %s", name, data_source)
        return store


registry = Registry()
registry.register('kv', _kv)
registry.register('sqlite', _sqlite)
registry.register('fs', _fs)

open_store = registry.open_store
