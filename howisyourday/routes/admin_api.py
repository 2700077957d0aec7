# routes/admin_api.py
"""Admin-only JSON API. Every view sits behind ``require_admin``."""
import logging

from flask import Blueprint, g, request
from sqlalchemy.exc import SQLAlchemyError

from howisyourday import repository
from howisyourday.auth import require_admin
from howisyourday.errors import IntegrationError
from howisyourday.integrations.email import get_mailer
from howisyourday.integrations.images import get_image_host, validate_image_source
from howisyourday.integrations.push import get_push_gateway
from howisyourday.notifications import broadcast_push
from howisyourday.pagination import parse_page_params
from howisyourday.responses import (error_response, get_json_body, register_api_error_handlers,
                                    success_response)

logger = logging.getLogger(__name__)

admin_api_bp = Blueprint('admin_api', __name__, url_prefix='/api/admin')
register_api_error_handlers(admin_api_bp)


def _parse_post_id(raw_id):
    try:
        return int(raw_id)
    except (TypeError, ValueError):
        return None


@admin_api_bp.route('/posts', methods=['GET'])
@require_admin
def list_posts():
    """Posts of any status. Query params: page, limit, status, search."""
    page, limit = parse_page_params(request.args)
    status = request.args.get('status') or None
    search = request.args.get('search') or None

    try:
        result = repository.list_all_posts(page, limit, status=status, search=search)
    except SQLAlchemyError as e:
        logger.error(f"Database error listing admin posts: {e}")
        return error_response('Failed to fetch posts', 500)

    return success_response(result)


@admin_api_bp.route('/posts', methods=['POST'])
@require_admin
def create_post():
    body = get_json_body()

    try:
        post = repository.create_post(body, author_id=g.admin['userId'])
    except SQLAlchemyError as e:
        logger.error(f"Database error creating post: {e}")
        return error_response('Failed to create post', 500)

    return success_response(post.to_dict(), 201)


@admin_api_bp.route('/posts/<post_id>', methods=['PUT'])
@require_admin
def update_post(post_id):
    post_id = _parse_post_id(post_id)
    if post_id is None:
        return error_response('Invalid post ID')

    body = get_json_body()

    try:
        post = repository.get_post(post_id)
        if post is None:
            return error_response('Post not found', 404)
        post = repository.update_post(post, body)
    except SQLAlchemyError as e:
        logger.error(f"Database error updating post {post_id}: {e}")
        return error_response('Failed to update post', 500)

    return success_response(post.to_dict())


@admin_api_bp.route('/posts/<post_id>', methods=['DELETE'])
@require_admin
def delete_post(post_id):
    post_id = _parse_post_id(post_id)
    if post_id is None:
        return error_response('Invalid post ID')

    try:
        deleted = repository.delete_post(post_id)
    except SQLAlchemyError as e:
        logger.error(f"Database error deleting post {post_id}: {e}")
        return error_response('Failed to delete post', 500)

    if not deleted:
        return error_response('Post not found', 404)

    return success_response({'message': 'Post deleted successfully'})


@admin_api_bp.route('/subscribers', methods=['GET'])
@require_admin
def list_subscribers():
    """Query params: confirmed (true/false)."""
    confirmed_param = request.args.get('confirmed')
    confirmed = None if confirmed_param is None else confirmed_param == 'true'

    try:
        subscribers = repository.list_subscribers(confirmed=confirmed)
    except SQLAlchemyError as e:
        logger.error(f"Database error listing subscribers: {e}")
        return error_response('Failed to fetch subscribers', 500)

    return success_response([subscriber.to_dict() for subscriber in subscribers])


@admin_api_bp.route('/upload', methods=['POST'])
@require_admin
def upload_image():
    """Body: { image: base64 data URI or URL }."""
    body = get_json_body()
    image = validate_image_source(body.get('image'))

    try:
        result = get_image_host().upload(image)
    except IntegrationError as e:
        logger.error(f"Upload error: {e}")
        return error_response('Failed to upload image', 500)

    return success_response({
        'url': result['url'],
        'publicId': result['publicId'],
        'width': result['width'],
        'height': result['height'],
    })


@admin_api_bp.route('/notify', methods=['POST'])
@require_admin
def notify():
    """Body: { title, body, data? }. Broadcast to every registered device."""
    payload = get_json_body()
    title = payload.get('title')
    message_body = payload.get('body')
    data = payload.get('data')

    if not title or not message_body:
        return error_response('Title and body are required')

    if data is not None and not isinstance(data, dict):
        return error_response('Data must be an object')

    try:
        tokens = repository.all_push_tokens()
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching push tokens: {e}")
        return error_response('Failed to fetch push tokens', 500)

    result = broadcast_push(get_push_gateway(), tokens, title, message_body, data)
    return success_response(result)


@admin_api_bp.route('/newsletter', methods=['POST'])
@require_admin
def send_newsletter():
    """Body: { subject, html }. Sent to confirmed subscribers only."""
    payload = get_json_body()
    subject = payload.get('subject')
    content = payload.get('html')

    if not subject or not content:
        return error_response('Subject and html are required')

    try:
        recipients = repository.confirmed_subscriber_emails()
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching newsletter recipients: {e}")
        return error_response('Failed to fetch subscribers', 500)

    if not recipients:
        return success_response({'message': 'No confirmed subscribers', 'sent': 0})

    try:
        sent = get_mailer().send_newsletter(subject, content, recipients)
    except IntegrationError as e:
        logger.error(f"Newsletter '{subject}' failed: {e}")
        return error_response('Failed to send newsletter', 500)

    return success_response({'message': 'Newsletter sent', 'sent': sent})
