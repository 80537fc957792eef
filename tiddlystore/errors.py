# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - exceptions raised by the stores
"""


class StoreError(Exception):
    """
    base class of all errors raised by a tiddler store
    """


class NotFound(StoreError, KeyError):
    """
    no live record (or history entry) exists for the given key
    """
    def __str__(self):
        # KeyError would give us the repr of the key
        return Exception.__str__(self)


class MalformedMetadata(StoreError, ValueError):
    """
    stored or supplied metadata is not a JSON object
    """


class StorageIOError(StoreError, IOError):
    """
    the underlying storage failed (disk, transaction abort, ...)
    """


class Cancelled(StoreError):
    """
    the caller gave up before the operation completed
    """


class ConfigurationError(StoreError):
    """
    unknown or duplicate backend name
    """
