"""BlogApiClient caching, retries and error messages."""

import pytest
import requests

from howisyourday.client import BlogApiClient, BlogApiError


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {'success': True, 'data': []}

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class ScriptedSession:
    """Hands out the queued responses (or raises queued exceptions) in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_get_posts_builds_request():
    session = ScriptedSession(FakeResponse(payload={'success': True, 'data': {'data': []}}))
    client = BlogApiClient('http://blog.test/', session=session)

    assert client.get_posts(page=2, limit=5) == {'success': True, 'data': {'data': []}}

    method, url, kwargs = session.calls[0]
    assert method == 'GET'
    assert url == 'http://blog.test/api/posts'
    assert kwargs['params'] == {'page': 2, 'limit': 5}
    assert kwargs['timeout'] == 10


def test_reads_are_cached_until_stale():
    clock = Clock()
    session = ScriptedSession(FakeResponse())
    client = BlogApiClient('http://blog.test', session=session, clock=clock)

    client.get_tags()
    clock.now += 299
    client.get_tags()
    assert len(session.calls) == 1

    clock.now += 2
    client.get_tags()
    assert len(session.calls) == 2


def test_cache_is_keyed_by_params():
    session = ScriptedSession(FakeResponse())
    client = BlogApiClient('http://blog.test', session=session)

    client.get_posts_by_tag('food')
    client.get_posts_by_tag('food', page=2)
    client.get_posts_by_tag('food')

    assert [call[2]['params'] for call in session.calls] == [
        {'tag': 'food', 'page': 1},
        {'tag': 'food', 'page': 2},
    ]


def test_invalidate_forgets_cache():
    session = ScriptedSession(FakeResponse())
    client = BlogApiClient('http://blog.test', session=session)

    client.get_tags()
    client.invalidate()
    client.get_tags()

    assert len(session.calls) == 2


def test_read_is_retried_once():
    session = ScriptedSession(requests.ConnectionError('flaky'), FakeResponse(payload={'success': True, 'data': 1}))
    client = BlogApiClient('http://blog.test', session=session)

    assert client.get_post_by_slug('hello world') == {'success': True, 'data': 1}
    assert len(session.calls) == 2
    assert session.calls[0][1] == 'http://blog.test/api/posts/hello%20world'


def test_read_gives_up_after_retry():
    session = ScriptedSession(FakeResponse(500))
    client = BlogApiClient('http://blog.test', session=session)

    with pytest.raises(BlogApiError, match='Failed to fetch posts') as excinfo:
        client.get_posts()

    assert excinfo.value.status_code == 500
    assert len(session.calls) == 2


def test_failed_reads_are_not_cached():
    session = ScriptedSession(FakeResponse(404), FakeResponse(404), FakeResponse())
    client = BlogApiClient('http://blog.test', session=session)

    with pytest.raises(BlogApiError, match='Failed to fetch post'):
        client.get_post_by_slug('missing')
    client.get_post_by_slug('missing')

    assert len(session.calls) == 3


def test_writes_are_not_cached_or_retried():
    session = ScriptedSession(FakeResponse(payload={'success': True, 'data': {'message': 'ok'}}))
    client = BlogApiClient('http://blog.test', session=session)

    client.subscribe('a@b.com')
    client.subscribe('a@b.com')
    client.register_push_token('ExponentPushToken[abc]', 'ios')

    assert [(call[0], call[1]) for call in session.calls] == [
        ('POST', 'http://blog.test/api/subscribe'),
        ('POST', 'http://blog.test/api/subscribe'),
        ('POST', 'http://blog.test/api/push/register'),
    ]
    assert session.calls[2][2]['json'] == {'token': 'ExponentPushToken[abc]', 'platform': 'ios'}


def test_write_failure_raises_once():
    session = ScriptedSession(FakeResponse(400, {'success': False, 'error': 'Invalid email address'}))
    client = BlogApiClient('http://blog.test', session=session)

    with pytest.raises(BlogApiError, match='Failed to subscribe'):
        client.subscribe('nope')
    assert len(session.calls) == 1


def test_client_against_running_app(app, make_post):
    """The client speaks the API's envelope when pointed at the test app."""
    make_post(title='Through the client', tags=['api'])
    flask_client = app.test_client()

    class FlaskSession:
        def request(self, method, url, params=None, json=None, timeout=None):
            response = flask_client.open(url.replace('http://blog.test', ''), method=method,
                                         query_string=params, json=json)
            return FakeResponse(response.status_code, response.get_json())

    client = BlogApiClient('http://blog.test', session=FlaskSession())

    posts = client.get_posts_by_tag('api')
    tags = client.get_tags()

    assert [post['title'] for post in posts['data']['data']] == ['Through the client']
    assert tags['data'] == [{'tag': 'api', 'count': 1}]
