# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - the tiddler value type and its JSON projection

A tiddler is kept as serialized metadata (everything but the text, as a
JSON object) plus the text. When delivered to a client it is either
"skinny" (just the metadata) or "fat" (metadata with the text merged in).
"""


import json

from tiddlystore.config import TEXT, REVISION, MACRO_TAG_LITERAL
from tiddlystore.errors import MalformedMetadata


def load_meta(meta):
    """
    Parse serialized metadata.

    :param meta: JSON object as bytes (or str)
    :returns: dict
    :raises MalformedMetadata: if meta is not a JSON object
    """
    try:
        if isinstance(meta, bytes):
            meta = meta.decode('utf-8')
        obj = json.loads(meta)
    except (TypeError, ValueError) as err:
        raise MalformedMetadata("invalid tiddler metadata: %s" % err) from err
    if not isinstance(obj, dict):
        raise MalformedMetadata("tiddler metadata is not a JSON object")
    return obj


def dump_meta(obj):
    """
    Serialize obj to compact JSON (bytes).

    :raises MalformedMetadata: if obj has strings that are not valid unicode
    """
    text = json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(',', ':'))
    try:
        return text.encode('utf-8')
    except UnicodeEncodeError as err:
        raise MalformedMetadata("tiddler contains invalid unicode: %s" % err) from err


def is_macro(meta):
    """
    Does this metadata mark a global macro tiddler?

    Note: this is a plain byte search for the quoted tag, existing data
    relies on exactly this behaviour.
    """
    return MACRO_TAG_LITERAL in meta


def snapshot(obj, text):
    """
    Merge parsed metadata and text into a history snapshot (bytes).
    """
    obj = dict(obj)
    obj[TEXT] = text
    return dump_meta(obj)


def from_snapshot(key, data):
    """
    Rebuild a fat tiddler from a history snapshot.
    """
    obj = load_meta(data)
    text = obj.pop(TEXT, '')
    return Tiddler(key, dump_meta(obj), text, with_text=True)


class Tiddler(object):
    """
    A single titled content unit.
    """
    __slots__ = ('key', 'meta', 'text', 'with_text')

    def __init__(self, key, meta, text='', with_text=False):
        if not key:
            raise ValueError("tiddler key must not be empty")
        if isinstance(meta, str):
            meta = meta.encode('utf-8')
        self.key = key
        self.meta = meta
        self.text = text
        self.with_text = with_text

    @property
    def revision(self):
        """
        revision number embedded into the metadata by the store (or None)
        """
        try:
            return load_meta(self.meta).get(REVISION)
        except MalformedMetadata:
            return None

    def to_json(self):
        """
        Return the JSON projection of this tiddler (bytes).

        If the tiddler is skinny, this is self.meta (not a copy).
        """
        if not self.with_text:
            return self.meta
        obj = load_meta(self.meta)
        obj[TEXT] = self.text
        return dump_meta(obj)

    def __eq__(self, other):
        if not isinstance(other, Tiddler):
            return NotImplemented
        return (self.key, self.meta, self.text, self.with_text) == \
               (other.key, other.meta, other.text, other.with_text)

    def __repr__(self):
        return '<Tiddler %r%s>' % (self.key, ' (fat)' if self.with_text else '')
