# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - configuration constants
"""

# metadata keys
TEXT = "text"
BAG = "bag"
REVISION = "revision"

# tiddlers tagged with this are always delivered with their text, even in
# listings. note: this is matched against the serialized metadata including
# the quotes, not against the parsed tags list.
MACRO_TAG = "$:/tags/Macro"
MACRO_TAG_LITERAL = ('"%s"' % MACRO_TAG).encode('utf-8')

# we only have one bag and one recipe
BAG_NAME = "bag"
RECIPE_NAME = "all"

# for http basic auth and /status
USERNAME = "tiddly"

# used for the ETag of stored tiddlers
HASH_ALGORITHM = 'md5'

# defaults for the command line
DEFAULT_HTTP = "127.0.0.1:8080"
DEFAULT_BACKEND = "kv"
DEFAULT_DATA_SOURCE = "tiddlystore.db"
DEFAULT_INDEX = "index.html"
ENVVAR_PREFIX = "TIDDLYSTORE"
