# routes/api.py
"""Public JSON API: posts, tags, newsletter subscription, device tokens."""
import logging

from flask import Blueprint, request
from sqlalchemy.exc import SQLAlchemyError

from howisyourday import repository
from howisyourday.errors import IntegrationError
from howisyourday.integrations.email import get_mailer
from howisyourday.pagination import parse_page_params
from howisyourday.responses import (error_response, get_json_body, register_api_error_handlers,
                                    success_response)
from howisyourday.shared_data import PUSH_PLATFORM_VALUES, PUSH_TOKEN_MAX_LENGTH, is_valid_email

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')
register_api_error_handlers(api_bp)


def _text_field(body, key):
    value = body.get(key)
    return value.strip() if isinstance(value, str) else ''


@api_bp.route('/posts', methods=['GET'])
def list_posts():
    """Published posts, newest first. Query params: page, limit, tag, search."""
    page, limit = parse_page_params(request.args)
    tag = request.args.get('tag') or None
    search = request.args.get('search') or None

    try:
        result = repository.list_published_posts(page, limit, tag=tag, search=search)
    except SQLAlchemyError as e:
        logger.error(f"Database error listing posts: {e}")
        return error_response('Failed to fetch posts', 500)

    return success_response(result)


@api_bp.route('/posts/<slug>', methods=['GET'])
def get_post(slug):
    try:
        post = repository.get_published_post(slug)
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching post '{slug}': {e}")
        return error_response('Failed to fetch post', 500)

    if post is None:
        return error_response('Post not found', 404)

    return success_response(post.to_dict(include_author=True))


@api_bp.route('/tags', methods=['GET'])
def list_tags():
    try:
        tags = repository.tag_counts()
    except SQLAlchemyError as e:
        logger.error(f"Database error counting tags: {e}")
        return error_response('Failed to fetch tags', 500)

    return success_response(tags)


@api_bp.route('/subscribe', methods=['POST'])
def subscribe():
    body = get_json_body()
    email = body.get('email')
    if isinstance(email, str):
        email = email.strip()

    if not is_valid_email(email):
        return error_response('Invalid email address')

    try:
        subscriber, state = repository.subscribe(email)
    except SQLAlchemyError as e:
        logger.error(f"Database error subscribing {email}: {e}")
        return error_response('Failed to subscribe', 500)

    if state == repository.SUBSCRIBE_CONFIRMED:
        return error_response('Email already subscribed')

    mailer = get_mailer()

    if state == repository.SUBSCRIBE_PENDING:
        try:
            mailer.send_subscription_confirmation(email, subscriber.confirm_token)
        except IntegrationError as e:
            logger.error(f"Failed to resend confirmation to {email}: {e}")
            return error_response('Failed to send confirmation email', 500)
        return success_response({
            'message': 'Confirmation email resent. Please check your inbox.',
        })

    # The subscription is stored; a failed email must not undo that
    try:
        mailer.send_subscription_confirmation(email, subscriber.confirm_token)
    except IntegrationError as e:
        logger.error(f"Email error for new subscriber {email}: {e}")

    return success_response({
        'message': 'Subscription successful! Please check your email to confirm.',
    })


@api_bp.route('/subscribe/confirm', methods=['GET'])
def confirm_subscription():
    token = request.args.get('token')
    if not token:
        return error_response('Missing confirmation token')

    try:
        subscriber, already_confirmed = repository.confirm_subscription(token)
    except SQLAlchemyError as e:
        logger.error(f"Database error confirming subscription: {e}")
        return error_response('Failed to confirm subscription', 500)

    if subscriber is None:
        return error_response('Invalid confirmation token', 404)

    if already_confirmed:
        return success_response({'message': 'Email already confirmed'})

    return success_response({
        'message': 'Email confirmed successfully! Thank you for subscribing.',
    })


@api_bp.route('/push/register', methods=['POST'])
def register_push_token():
    body = get_json_body()
    token = body.get('token')
    platform = body.get('platform')

    if not isinstance(token, str) or not token.strip() or not platform:
        return error_response('Token and platform are required')

    if platform not in PUSH_PLATFORM_VALUES:
        return error_response('Invalid platform')
    token = token.strip()
    if len(token) > PUSH_TOKEN_MAX_LENGTH:
        return error_response(f'Token must be at most {PUSH_TOKEN_MAX_LENGTH} characters')

    try:
        created = repository.register_push_token(token, platform)
    except SQLAlchemyError as e:
        logger.error(f"Database error registering push token: {e}")
        return error_response('Failed to register token', 500)

    if not created:
        return success_response({'message': 'Token already registered'})

    return success_response({'message': 'Token registered successfully'}, 201)


@api_bp.route('/contact', methods=['POST'])
def contact():
    body = get_json_body()
    name = _text_field(body, 'name')
    email = _text_field(body, 'email')
    message = _text_field(body, 'message')

    if not (name and email and message):
        return error_response('Please fill in all fields')

    if not is_valid_email(email):
        return error_response('Invalid email address')

    try:
        get_mailer().send_contact_email(email, name, message)
    except IntegrationError as e:
        logger.error(f"Contact form email from {email} failed: {e}")
        return error_response('Failed to send message', 500)

    return success_response({
        'message': "Thank you for your message! I'll get back to you soon.",
    })
