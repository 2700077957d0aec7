"""Provider clients against a recording HTTP session."""

import hashlib

import pytest
import requests

from howisyourday.errors import EmailDeliveryError, ImageUploadError, PushDeliveryError
from howisyourday.integrations.email import SENDGRID_SEND_URL, SendGridMailer
from howisyourday.integrations.images import DEFAULT_TRANSFORMATION, CloudinaryImageHost
from howisyourday.integrations.push import EXPO_PUSH_URL, ExpoPushGateway
from howisyourday.notifications import broadcast_push


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=''):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON')
        return self._payload


class RecordingSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(202)
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def _mailer(session, api_key='SG.key'):
    return SendGridMailer(api_key, 'noreply@example.com', 'https://blog.example.com/',
                          site_name='Test Blog', session=session)


# --- SendGrid ---

def test_confirmation_email_request():
    session = RecordingSession()

    _mailer(session).send_subscription_confirmation('reader@example.com', 'abc123')

    url, kwargs = session.calls[0]
    assert url == SENDGRID_SEND_URL
    assert kwargs['headers']['Authorization'] == 'Bearer SG.key'
    message = kwargs['json']
    assert message['personalizations'] == [{'to': [{'email': 'reader@example.com'}]}]
    assert message['from'] == {'email': 'noreply@example.com'}
    assert message['subject'] == 'Confirm your subscription to Test Blog'
    assert 'https://blog.example.com/api/subscribe/confirm?token=abc123' in message['content'][0]['value']


def test_contact_email_escapes_and_sets_reply_to():
    session = RecordingSession()

    _mailer(session).send_contact_email('sam@example.com', '<Sam>', 'line one\nline <two>')

    message = session.calls[0][1]['json']
    body = message['content'][0]['value']
    assert message['reply_to'] == {'email': 'sam@example.com'}
    assert message['personalizations'] == [{'to': [{'email': 'noreply@example.com'}]}]
    assert '&lt;Sam&gt;' in body
    assert 'line one<br>line &lt;two&gt;' in body


def test_newsletter_batches_recipients():
    session = RecordingSession()
    recipients = [f'user{i}@example.com' for i in range(1500)]

    sent = _mailer(session).send_newsletter('Weekly', '<p>news</p>', recipients)

    assert sent == 1500
    assert [len(call[1]['json']['personalizations']) for call in session.calls] == [1000, 500]


def test_mailer_errors():
    with pytest.raises(EmailDeliveryError):
        _mailer(RecordingSession(), api_key=None).send_subscription_confirmation('a@b.com', 't')
    with pytest.raises(EmailDeliveryError):
        _mailer(RecordingSession(FakeResponse(401, text='bad key'))).send_subscription_confirmation('a@b.com', 't')
    with pytest.raises(EmailDeliveryError):
        _mailer(RecordingSession(error=requests.ConnectionError('down'))).send_subscription_confirmation('a@b.com', 't')


# --- Cloudinary ---

def test_cloudinary_signature():
    host = CloudinaryImageHost('demo', 'key', 'secret')
    expected = hashlib.sha1(b'folder=blog-posts&timestamp=1700000000secret').hexdigest()
    assert host.sign({'timestamp': 1700000000, 'folder': 'blog-posts'}) == expected


def test_cloudinary_upload():
    session = RecordingSession(FakeResponse(200, {
        'secure_url': 'https://res.cloudinary.com/demo/image/upload/v1/blog-posts/x.webp',
        'public_id': 'blog-posts/x',
        'width': 1200,
        'height': 630,
        'format': 'webp',
    }))
    host = CloudinaryImageHost('demo', 'key', 'secret', session=session)

    result = host.upload('https://example.com/cat.jpg')

    url, kwargs = session.calls[0]
    form = kwargs['data']
    assert url == 'https://api.cloudinary.com/v1_1/demo/image/upload'
    assert form['file'] == 'https://example.com/cat.jpg'
    assert form['folder'] == 'blog-posts'
    assert form['transformation'] == DEFAULT_TRANSFORMATION
    assert form['api_key'] == 'key'
    assert form['signature'] == host.sign({k: form[k] for k in ('folder', 'timestamp', 'transformation')})
    assert result == {
        'url': 'https://res.cloudinary.com/demo/image/upload/v1/blog-posts/x.webp',
        'publicId': 'blog-posts/x',
        'width': 1200,
        'height': 630,
        'format': 'webp',
    }


def test_cloudinary_errors():
    with pytest.raises(ImageUploadError):
        CloudinaryImageHost(None, None, None, session=RecordingSession()).upload('https://x.test/a.png')
    failing = RecordingSession(FakeResponse(400, {'error': {'message': 'Invalid image file'}}))
    with pytest.raises(ImageUploadError):
        CloudinaryImageHost('demo', 'key', 'secret', session=failing).upload('https://x.test/a.png')


# --- Expo ---

def test_expo_send_chunk():
    session = RecordingSession(FakeResponse(200, {'data': [{'status': 'ok', 'id': 'ticket-1'}]}))
    gateway = ExpoPushGateway(access_token='expo-token', session=session)
    messages = [{'to': 'ExponentPushToken[abc]', 'title': 'T', 'body': 'B'}]

    tickets = gateway.send_chunk(messages)

    url, kwargs = session.calls[0]
    assert url == EXPO_PUSH_URL
    assert kwargs['json'] == messages
    assert kwargs['headers']['Authorization'] == 'Bearer expo-token'
    assert tickets == [{'status': 'ok', 'id': 'ticket-1'}]


def test_expo_errors():
    with pytest.raises(PushDeliveryError):
        ExpoPushGateway(session=RecordingSession(FakeResponse(500, {'errors': ['boom']}))).send_chunk([])
    with pytest.raises(PushDeliveryError):
        ExpoPushGateway(session=RecordingSession(error=requests.Timeout('slow'))).send_chunk([])


class NullJsonResponse(FakeResponse):
    def json(self):
        return None


@pytest.mark.parametrize('response', [
    FakeResponse(200, ['not', 'a', 'dict']),
    NullJsonResponse(200),
    NullJsonResponse(502, text='Bad gateway'),
])
def test_expo_non_object_body(response):
    with pytest.raises(PushDeliveryError):
        ExpoPushGateway(session=RecordingSession(response)).send_chunk([])


def test_broadcast_continues_after_malformed_chunk_response():
    responses = iter([FakeResponse(200, ['oops']), FakeResponse(200, {'data': [{'status': 'ok'}] * 5})])

    class SequenceSession(RecordingSession):
        def post(self, url, **kwargs):
            self.calls.append((url, kwargs))
            return next(responses)

    session = SequenceSession()
    tokens = [f'ExponentPushToken[{i:04d}]' for i in range(105)]

    result = broadcast_push(ExpoPushGateway(session=session), tokens, 'Title', 'Body')

    assert len(session.calls) == 2
    assert result == {'message': 'Notifications sent', 'sent': 105, 'tickets': 5}
