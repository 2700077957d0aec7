"""Shared fixtures: an app on in-memory SQLite with fake providers."""

import pytest

from howisyourday.auth import generate_token
from howisyourday.errors import EmailDeliveryError, ImageUploadError, PushDeliveryError
from howisyourday.integrations.push import ExpoPushGateway
from howisyourday.main import create_app
from howisyourday.models.user import User, db
from howisyourday import repository

ADMIN_EMAIL = 'admin@example.com'
ADMIN_PASSWORD = 'correct-horse'


class FakeMailer:
    def __init__(self):
        self.fail = False
        self.confirmations = []
        self.contacts = []
        self.newsletters = []

    def send_subscription_confirmation(self, to, confirm_token):
        if self.fail:
            raise EmailDeliveryError('provider down')
        self.confirmations.append((to, confirm_token))

    def send_contact_email(self, from_email, name, message):
        if self.fail:
            raise EmailDeliveryError('provider down')
        self.contacts.append((from_email, name, message))

    def send_newsletter(self, subject, content, recipients):
        if self.fail:
            raise EmailDeliveryError('provider down')
        self.newsletters.append((subject, content, list(recipients)))
        return len(recipients)


class FakeImageHost:
    def __init__(self):
        self.fail = False
        self.uploads = []

    def upload(self, image, folder=None):
        if self.fail:
            raise ImageUploadError('provider down')
        self.uploads.append(image)
        return {
            'url': f'https://images.example.com/{len(self.uploads)}.webp',
            'publicId': f'blog-posts/{len(self.uploads)}',
            'width': 1200,
            'height': 630,
            'format': 'webp',
        }


class FakePushGateway(ExpoPushGateway):
    def __init__(self):
        super().__init__()
        self.failing_chunks = set()
        self.chunks = []

    def send_chunk(self, messages):
        index = len(self.chunks)
        self.chunks.append(messages)
        if index in self.failing_chunks:
            raise PushDeliveryError('chunk rejected')
        return [{'status': 'ok', 'id': f'ticket-{index}-{i}'} for i in range(len(messages))]


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def push_gateway():
    return FakePushGateway()


@pytest.fixture
def app(mailer, image_host, push_gateway):
    app = create_app('testing', mailer=mailer, image_host=image_host, push_gateway=push_gateway)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_user(app):
    with app.app_context():
        user = repository.create_admin_user(ADMIN_EMAIL, ADMIN_PASSWORD, 'Admin')
        return {'id': user.id, 'email': user.email}


@pytest.fixture
def admin_headers(app, admin_user):
    with app.app_context():
        token = generate_token({'userId': admin_user['id'], 'email': admin_user['email'], 'isAdmin': True})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def make_user(app):
    def _make_user(email, password='password123', is_admin=False, is_verified=True):
        with app.app_context():
            user = User(email=email, is_admin=is_admin, is_verified=is_verified)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make_user


@pytest.fixture
def make_post(app, admin_user):
    def _make_post(**fields):
        fields.setdefault('title', 'A post')
        fields.setdefault('content', 'Some *markdown* content.')
        fields.setdefault('status', 'published')
        with app.app_context():
            post = repository.create_post(fields, author_id=admin_user['id'])
            return post.to_dict()
    return _make_post
