# Copyright: 2011 MoinMoin:RonnyPfannschmidt
# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - store base class

Every backend implements the same contract:

* get(key) returns the fat tiddler or raises NotFound
* all() returns all live tiddlers, skinny except for macro tiddlers
* put(tiddler) stores a tiddler, returns its new revision
* delete(key) removes a tiddler or raises NotFound

Revisions start at 1 and grow by 1 with every put and delete of a key.
Every put and delete also appends a history entry (a snapshot of meta and
text merged, or an empty tombstone for delete) at that revision.

All operations accept a `cancel` object (e.g. a threading.Event); if it is
set, the operation raises Cancelled instead of doing (more) work.
"""


from abc import abstractmethod, ABCMeta


class StoreBase(object, metaclass=ABCMeta):
    """
    ties together live tiddlers and their history
    """
    @abstractmethod
    def create(self):
        """
        create the store (if it does not exist yet)
        """

    @abstractmethod
    def destroy(self):
        """
        destroy the store, erase all tiddlers and history it contains
        """

    @abstractmethod
    def open(self):
        """
        open the store, allocate resources
        """

    @abstractmethod
    def close(self):
        """
        close the store, free resources (except the stored tiddlers!)
        """

    @abstractmethod
    def get(self, key, cancel=None):
        """
        return the fat tiddler stored under key
        """

    @abstractmethod
    def all(self, cancel=None):
        """
        return a list of all live tiddlers
        """

    @abstractmethod
    def put(self, tiddler, cancel=None):
        """
        store tiddler, return the revision assigned to it
        """

    @abstractmethod
    def delete(self, key, cancel=None):
        """
        delete the live tiddler stored under key
        """

    @abstractmethod
    def revisions(self, key, cancel=None):
        """
        return the sorted list of revision numbers in the history of key
        """

    @abstractmethod
    def get_revision(self, key, revision, cancel=None):
        """
        return the fat tiddler as it was stored at that revision
        """

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
