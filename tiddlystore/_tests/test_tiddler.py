# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - tiddler tests
"""


import json

import pytest

from tiddlystore.errors import MalformedMetadata
from tiddlystore.tiddler import Tiddler, load_meta, dump_meta, is_macro, snapshot, from_snapshot


def test_skinny_is_meta_verbatim():
    meta = b'{"b": 1,   "a": 2}'
    t = Tiddler('A', meta, 'text')
    assert t.to_json() is meta


def test_fat_adds_text():
    t = Tiddler('A', b'{"author":"x"}', 'hello', with_text=True)
    assert t.to_json() == b'{"author":"x","text":"hello"}'


def test_fat_replaces_text_in_meta():
    t = Tiddler('A', b'{"text":"stale"}', 'fresh', with_text=True)
    assert json.loads(t.to_json()) == {'text': 'fresh'}


def test_fat_roundtrip():
    meta = {'author': 'x', 'tags': ['a', 'b c'], 'modified': '20170101000000000'}
    text = 'line 1\nline "2"\n☃\x00'
    t = Tiddler('A', dump_meta(meta), text, with_text=True)
    obj = json.loads(t.to_json().decode('utf-8'))
    assert obj.pop('text') == text
    assert obj == meta


@pytest.mark.parametrize('meta', [b'', b'garbage', b'[]', b'null', b'"str"', b'\xff'])
def test_fat_malformed_meta(meta):
    t = Tiddler('A', meta, 'text', with_text=True)
    with pytest.raises(MalformedMetadata):
        t.to_json()
    with pytest.raises(ValueError):
        t.to_json()


def test_empty_key():
    with pytest.raises(ValueError):
        Tiddler('', b'{}')


def test_str_meta_is_encoded():
    t = Tiddler('A', '{"author":"jürgen"}')
    assert t.meta == '{"author":"jürgen"}'.encode('utf-8')


def test_revision():
    assert Tiddler('A', b'{"revision":3}').revision == 3
    assert Tiddler('A', b'{}').revision is None
    assert Tiddler('A', b'broken').revision is None


def test_load_dump_meta():
    assert load_meta(b'{"a":1}') == {'a': 1}
    assert load_meta('{"a":1}') == {'a': 1}
    assert dump_meta({'b': 1, 'a': 'ü'}) == '{"a":"ü","b":1}'.encode('utf-8')


def test_dump_meta_invalid_unicode():
    with pytest.raises(MalformedMetadata):
        dump_meta({'title': '\ud800'})
    with pytest.raises(MalformedMetadata):
        snapshot({}, 'text \udfff')


def test_is_macro():
    assert is_macro(b'{"tags":["$:/tags/Macro"]}')
    assert is_macro(b'{"tags":["x","$:/tags/Macro"]}')
    # it is a byte match of the quoted tag
    assert is_macro(b'{"caption":"$:/tags/Macro"}')
    assert not is_macro(b'{"tags":["$:/tags/Macros"]}')
    assert not is_macro(b'{"tags":"[[$:/tags/Macro]]"}')
    assert not is_macro(b'{}')


def test_snapshot():
    data = snapshot({'author': 'x', 'revision': 2}, 'hello')
    assert data == b'{"author":"x","revision":2,"text":"hello"}'
    t = from_snapshot('A', data)
    assert t.with_text
    assert t.text == 'hello'
    assert t.meta == b'{"author":"x","revision":2}'
    assert t.revision == 2


def test_eq():
    assert Tiddler('A', b'{}', 'x') == Tiddler('A', b'{}', 'x')
    assert Tiddler('A', b'{}', 'x') != Tiddler('A', b'{}', 'x', with_text=True)
    assert Tiddler('A', b'{}') != 'A'
