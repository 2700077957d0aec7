# client.py
"""Python client for the public JSON API, as used by the mobile app.

Reads are cached per URL and query for ``stale_after`` seconds and retried
once on failure. Writes go straight to the server every time.
"""
import logging
import time
from functools import wraps
from urllib.parse import quote

import requests

from howisyourday.shared_data import PAGINATION

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = 5 * 60


class BlogApiError(Exception):
    """A request failed; the message names the operation."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def retry_on_failure(method):
    """Retry a read ``self.retries`` times before giving up."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        last_error = None
        for attempt in range(self.retries + 1):
            try:
                return method(self, *args, **kwargs)
            except BlogApiError as e:
                last_error = e
                logger.warning(f"{e} (attempt {attempt + 1} of {self.retries + 1})")
        raise last_error
    return wrapper


class BlogApiClient:

    def __init__(self, base_url, stale_after=DEFAULT_STALE_AFTER, retries=1, session=None,
                 timeout=10, clock=time.monotonic):
        self.base_url = base_url.rstrip('/')
        self.stale_after = stale_after
        self.retries = retries
        self.session = session or requests.Session()
        self.timeout = timeout
        self.clock = clock
        self._cache = {}

    def _request(self, method, path, error_message, **kwargs):
        url = f"{self.base_url}/{path.lstrip('/')}"
        kwargs.setdefault('timeout', self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise BlogApiError(error_message) from e

        if not response.ok:
            raise BlogApiError(error_message, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise BlogApiError(error_message, response.status_code) from e

    @retry_on_failure
    def _fetch(self, path, params, error_message):
        return self._request('GET', path, error_message, params=params)

    def _cached_get(self, path, error_message, params=None):
        key = (path, tuple(sorted((params or {}).items())))
        cached = self._cache.get(key)
        now = self.clock()
        if cached and now - cached[0] < self.stale_after:
            return cached[1]

        payload = self._fetch(path, params, error_message)
        self._cache[key] = (now, payload)
        return payload

    def invalidate(self):
        """Forget every cached read."""
        self._cache.clear()

    # Posts
    def get_posts(self, page=PAGINATION['DEFAULT_PAGE'], limit=PAGINATION['DEFAULT_LIMIT']):
        return self._cached_get('/api/posts', 'Failed to fetch posts', {'page': page, 'limit': limit})

    def get_post_by_slug(self, slug):
        return self._cached_get(f'/api/posts/{quote(slug, safe="")}', 'Failed to fetch post')

    def get_posts_by_tag(self, tag, page=PAGINATION['DEFAULT_PAGE']):
        return self._cached_get('/api/posts', 'Failed to fetch posts', {'tag': tag, 'page': page})

    # Tags
    def get_tags(self):
        return self._cached_get('/api/tags', 'Failed to fetch tags')

    # Subscribe
    def subscribe(self, email):
        return self._request('POST', '/api/subscribe', 'Failed to subscribe', json={'email': email})

    # Push notifications
    def register_push_token(self, token, platform):
        return self._request('POST', '/api/push/register', 'Failed to register push token',
                             json={'token': token, 'platform': platform})
