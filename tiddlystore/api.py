# Copyright: 2011 MoinMoin:ThomasWaldmann
# License: GNU GPL v2 (or any later version), see LICENSE.txt for details.

"""
TiddlyStore - HTTP facade (WSGI application)

Speaks the subset of the TiddlyWeb protocol TiddlyWiki needs and calls
exactly one store method per request.
"""


import hashlib
import hmac
import json
import logging
import os
from urllib.parse import quote_plus

from werkzeug.exceptions import HTTPException, NotFound as HTTPNotFound, BadRequest
from werkzeug.routing import Map, Rule
from werkzeug.security import check_password_hash, generate_password_hash
from werkzeug.wrappers import Request, Response
from werkzeug.utils import send_file

from tiddlystore.config import BAG, TEXT, BAG_NAME, RECIPE_NAME, USERNAME, HASH_ALGORITHM
from tiddlystore.errors import NotFound, MalformedMetadata, StoreError
from tiddlystore.tiddler import Tiddler, dump_meta

logger = logging.getLogger(__name__)

JSON_MIMETYPE = 'application/json'


def make_etag(key, revision, meta):
    """
    ETag of a stored tiddler: "<bag>/<key>/<revision>:<hash of meta>"
    """
    digest = hashlib.new(HASH_ALGORITHM, meta).hexdigest()
    return '"%s/%s/%d:%s"' % (BAG_NAME, quote_plus(key, safe=''), revision, digest)


class TiddlyWebApp(object):
    def __init__(self, store, password=None, index_path=None):
        """
        :param store: an opened tiddler store
        :param password: if given, require http basic auth with this password
        :param index_path: html file served for "/"
        """
        self.store = store
        self.password_hash = generate_password_hash(password) if password else None
        self.index_path = index_path
        self.url_map = Map([
            Rule('/', endpoint='index', methods=['GET']),
            Rule('/status', endpoint='status', methods=['GET']),
            Rule('/recipes/%s/tiddlers.json' % RECIPE_NAME, endpoint='list', methods=['GET']),
            Rule('/recipes/%s/tiddlers/<path:key>' % RECIPE_NAME, endpoint='get_tiddler', methods=['GET']),
            Rule('/recipes/%s/tiddlers/<path:key>' % RECIPE_NAME, endpoint='put_tiddler', methods=['PUT']),
            Rule('/bags/%s/tiddlers/<path:key>' % BAG_NAME, endpoint='remove', methods=['DELETE']),
        ])

    def authenticate(self, request):
        """
        Return True if the request may access the store.
        """
        if self.password_hash is None:
            return True
        auth = request.authorization
        if auth is None or auth.password is None:
            return False
        return (hmac.compare_digest((auth.username or '').encode('utf-8'), USERNAME.encode('utf-8')) and
                check_password_hash(self.password_hash, auth.password))

    def on_index(self, request):
        if not self.index_path or not os.path.isfile(self.index_path):
            raise HTTPNotFound()
        return send_file(self.index_path, request.environ, mimetype='text/html')

    def on_status(self, request):
        status = {'username': USERNAME, 'space': {'recipe': RECIPE_NAME}}
        return Response(json.dumps(status), mimetype=JSON_MIMETYPE)

    def on_list(self, request):
        parts = []
        for t in self.store.all():
            try:
                parts.append(t.to_json())
            except StoreError as err:
                logger.warning("skipping tiddler %r: %s", t.key, err)
        return Response(b'[' + b','.join(parts) + b']', mimetype=JSON_MIMETYPE)

    def on_get_tiddler(self, request, key):
        t = self.store.get(key)
        return Response(t.to_json(), mimetype=JSON_MIMETYPE)

    def on_put_tiddler(self, request, key):
        try:
            obj = json.loads(request.get_data(as_text=True))
        except ValueError:
            raise BadRequest()
        if not isinstance(obj, dict):
            raise BadRequest()
        obj[BAG] = BAG_NAME
        text = obj.pop(TEXT, '')
        if not isinstance(text, str):
            text = ''
        try:
            meta = dump_meta(obj)
            revision = self.store.put(Tiddler(key, meta, text))
        except MalformedMetadata:
            raise BadRequest()
        response = Response(status=204)
        response.headers['ETag'] = make_etag(key, revision, meta)
        return response

    def on_remove(self, request, key):
        self.store.delete(key)
        return Response(status=204)

    def log_request(self, request):
        logger.info("%s %s %s %s %s", request.remote_addr, request.method, request.url,
                    request.referrer or '', request.user_agent)

    def dispatch_request(self, request):
        adapter = self.url_map.bind_to_environ(request.environ)
        try:
            if not self.authenticate(request):
                return Response('unauthorized', status=401,
                                headers={'WWW-Authenticate': 'Basic realm="Who are you?"'})
            self.log_request(request)
            endpoint, values = adapter.match()
            return getattr(self, 'on_' + endpoint)(request, **values)
        except HTTPException as e:
            return e
        except NotFound as err:
            return HTTPNotFound(str(err))
        except StoreError as err:
            logger.error("%s %s failed: %s", request.method, request.path, err, exc_info=True)
            return Response('internal server error', status=500)

    def wsgi_app(self, environ, start_response):
        request = Request(environ)
        response = self.dispatch_request(request)
        return response(environ, start_response)

    def __call__(self, environ, start_response):
        return self.wsgi_app(environ, start_response)
