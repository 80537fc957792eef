# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - a single user tiddler server
===========================================

We use a layered approach like this::

 HTTP facade (api)                 parses paths / methods, authenticates,
 |                                 calls exactly one store method
 v
 Store contract (backend)          get, all, put, delete tiddlers, assign
 |           |           |         revisions, keep history
 v           v           v
 lmdb        sqlite      fs        one of them is selected at startup
"""

__version__ = '0.1.0'
