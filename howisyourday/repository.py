"""Database access for posts, users, subscribers and push tokens.

Route handlers and the server-rendered pages both go through these
functions. Input validation that depends on stored state (statuses, slugs,
published_at) lives here and raises ValidationError; store failures surface
as SQLAlchemyError after the session has been rolled back.
"""
import logging
import secrets

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from howisyourday.errors import ValidationError
from howisyourday.models.post import Post, PostTag
from howisyourday.models.push_token import PushToken
from howisyourday.models.subscriber import Subscriber
from howisyourday.models.user import User, db
from howisyourday.pagination import paginate
from howisyourday.shared_data import (FALLBACK_SLUG, POST_LIMITS, POST_STATUS, POST_STATUSES,
                                      parse_timestamp, utcnow)
from howisyourday.slugs import generate_unique_slug, slugify

logger = logging.getLogger(__name__)

# Insert attempts when another writer grabs the same slug first
MAX_SLUG_ATTEMPTS = 3

SUBSCRIBE_CREATED = 'created'
SUBSCRIBE_PENDING = 'pending'
SUBSCRIBE_CONFIRMED = 'confirmed'


def commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


# --- Post queries ---

def _apply_filters(query, tag=None, search=None):
    if tag:
        query = query.filter(Post.id.in_(db.select(PostTag.post_id).where(PostTag.tag == tag)))
    if search:
        query = query.filter(or_(
            Post.title.icontains(search, autoescape=True),
            Post.content.icontains(search, autoescape=True),
        ))
    return query


def published_posts_query(tag=None, search=None):
    query = Post.query.filter(Post.status == POST_STATUS['PUBLISHED'])
    query = _apply_filters(query, tag=tag, search=search)
    return query.order_by(Post.published_at.desc(), Post.id.desc())


def all_posts_query(status=None, search=None):
    query = Post.query
    if status in POST_STATUSES:
        query = query.filter(Post.status == status)
    query = _apply_filters(query, search=search)
    return query.order_by(Post.created_at.desc(), Post.id.desc())


def list_published_posts(page, limit, tag=None, search=None):
    return paginate(published_posts_query(tag=tag, search=search), page, limit,
                    serialize=lambda post: post.to_dict())


def list_all_posts(page, limit, status=None, search=None):
    return paginate(all_posts_query(status=status, search=search), page, limit,
                    serialize=lambda post: post.to_dict(include_author=True))


def get_post(post_id):
    return db.session.get(Post, post_id)


def get_published_post(slug):
    return Post.query.filter_by(slug=slug, status=POST_STATUS['PUBLISHED']).first()


def related_posts(post, limit=3):
    """Other published posts sharing at least one tag with ``post``."""
    if not post.tags:
        return []
    return (Post.query
            .filter(Post.status == POST_STATUS['PUBLISHED'],
                    Post.id != post.id,
                    Post.id.in_(db.select(PostTag.post_id).where(PostTag.tag.in_(post.tags))))
            .order_by(Post.published_at.desc(), Post.id.desc())
            .limit(limit)
            .all())


def tag_counts():
    """Tags used by published posts with how many posts carry each."""
    count = func.count(PostTag.post_id)
    rows = (db.session.query(PostTag.tag, count)
            .join(Post, Post.id == PostTag.post_id)
            .filter(Post.status == POST_STATUS['PUBLISHED'])
            .group_by(PostTag.tag)
            .order_by(count.desc(), PostTag.tag)
            .all())
    return [{'tag': tag, 'count': total} for tag, total in rows]


def post_stats():
    rows = db.session.query(Post.status, func.count(Post.id)).group_by(Post.status).all()
    by_status = dict(rows)
    return {
        'totalPosts': sum(by_status.values()),
        'publishedPosts': by_status.get(POST_STATUS['PUBLISHED'], 0),
        'draftPosts': by_status.get(POST_STATUS['DRAFT'], 0),
    }


# --- Post writes ---

def normalize_tags(tags):
    """Strip, drop empties and de-duplicate while keeping the author's order."""
    if tags is None:
        return []
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ValidationError('Tags must be a list of strings')

    seen = set()
    result = []
    for tag in tags:
        tag = tag.strip()
        if len(tag) > POST_LIMITS['TAG_MAX_LENGTH']:
            raise ValidationError(f"Tags must be at most {POST_LIMITS['TAG_MAX_LENGTH']} characters")
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


def _optional_text(fields, key, max_length=None, label=None):
    value = fields.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{label or key} must be a string')
    if max_length and len(value) > max_length:
        raise ValidationError(f'{label or key} must be at most {max_length} characters')
    return value or None


def _check_title(title):
    if len(title) > POST_LIMITS['TITLE_MAX_LENGTH']:
        raise ValidationError(f"Title must be at most {POST_LIMITS['TITLE_MAX_LENGTH']} characters")


def _check_status(status):
    if status not in POST_STATUSES:
        raise ValidationError('Invalid status')


def _parse_published_at(value):
    try:
        return parse_timestamp(value)
    except ValueError:
        raise ValidationError('Invalid published_at')


def _base_slug(text):
    slug = slugify(text)[:POST_LIMITS['SLUG_MAX_LENGTH']].strip('-')
    return slug or FALLBACK_SLUG


def _taken_slugs(base_slug, exclude_id=None):
    query = db.session.query(Post.slug).filter(or_(
        Post.slug == base_slug,
        Post.slug.startswith(f'{base_slug}-', autoescape=True),
    ))
    if exclude_id is not None:
        query = query.filter(Post.id != exclude_id)
    return {slug for (slug,) in query.all()}


def _commit_with_unique_slug(build, base_slug, exclude_id=None):
    """Persist the post returned by ``build(slug)`` under a free slug.

    The unique index on posts.slug is the real guard. If a concurrent
    writer takes the slug between the lookup and the commit, the violation
    is rolled back and the lookup repeated.
    """
    for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
        slug = generate_unique_slug(base_slug, _taken_slugs(base_slug, exclude_id))
        post = build(slug)
        db.session.add(post)
        try:
            db.session.commit()
            return post
        except IntegrityError:
            db.session.rollback()
            if attempt == MAX_SLUG_ATTEMPTS:
                raise
            logger.warning(f"Slug '{slug}' taken during save, retrying ({attempt}/{MAX_SLUG_ATTEMPTS})")
        except SQLAlchemyError:
            db.session.rollback()
            raise


def create_post(fields, author_id=None):
    """Create a post from request fields.

    ``published_at`` defaults to now for a post created as published.
    """
    title = fields.get('title')
    content = fields.get('content')
    if not (isinstance(title, str) and title.strip()) or not (isinstance(content, str) and content.strip()):
        raise ValidationError('Title and content are required')
    _check_title(title)

    status = fields.get('status')
    _check_status(status)

    excerpt = _optional_text(fields, 'excerpt', POST_LIMITS['EXCERPT_MAX_LENGTH'], 'Excerpt')
    featured_image = _optional_text(fields, 'featured_image', label='Featured image')
    provided_slug = _optional_text(fields, 'slug', label='Slug')
    tags = normalize_tags(fields.get('tags'))

    published_at = _parse_published_at(fields.get('published_at'))
    if status == POST_STATUS['PUBLISHED'] and published_at is None:
        published_at = utcnow()

    def build(slug):
        post = Post(
            title=title,
            slug=slug,
            excerpt=excerpt,
            content=content,
            author_id=author_id,
            featured_image=featured_image,
            status=status,
            published_at=published_at,
        )
        post.tags = tags
        return post

    post = _commit_with_unique_slug(build, _base_slug(provided_slug or title))
    logger.info(f"Created post {post.id} '{post.slug}' ({post.status})")
    return post


def update_post(post, fields):
    """Apply a partial update; keys absent from ``fields`` are left alone.

    The first time a post becomes published without a stored published_at
    it gets stamped with now. An explicit published_at in the request wins.
    published_at is never cleared, including when a published post is set
    back to draft.
    """
    changes = {}

    if 'title' in fields:
        title = fields['title']
        if not (isinstance(title, str) and title.strip()):
            raise ValidationError('Title cannot be empty')
        _check_title(title)
        changes['title'] = title
    if 'content' in fields:
        content = fields['content']
        if not (isinstance(content, str) and content.strip()):
            raise ValidationError('Content cannot be empty')
        changes['content'] = content
    if 'excerpt' in fields:
        changes['excerpt'] = _optional_text(fields, 'excerpt', POST_LIMITS['EXCERPT_MAX_LENGTH'], 'Excerpt')
    if 'featured_image' in fields:
        changes['featured_image'] = _optional_text(fields, 'featured_image', label='Featured image')
    if 'tags' in fields:
        changes['tags'] = normalize_tags(fields['tags'])
    if 'status' in fields:
        status = fields['status']
        _check_status(status)
        changes['status'] = status
        if status == POST_STATUS['PUBLISHED'] and not post.published_at:
            changes['published_at'] = utcnow()
    if fields.get('published_at') not in (None, ''):
        changes['published_at'] = _parse_published_at(fields['published_at'])

    new_base_slug = None
    if 'slug' in fields:
        provided_slug = _optional_text(fields, 'slug', label='Slug')
        candidate = _base_slug(provided_slug or changes.get('title') or post.title)
        if candidate != post.slug:
            new_base_slug = candidate

    post_id = post.id

    def build(slug=None):
        for key, value in changes.items():
            setattr(post, key, value)
        if slug is not None:
            post.slug = slug
        return post

    if new_base_slug is not None:
        _commit_with_unique_slug(build, new_base_slug, exclude_id=post_id)
    else:
        build()
        commit()

    logger.info(f"Updated post {post_id} ({', '.join(sorted(changes)) or 'no field changes'})")
    return post


def delete_post(post_id):
    post = db.session.get(Post, post_id)
    if post is None:
        return False
    db.session.delete(post)
    commit()
    logger.info(f"Deleted post {post_id}")
    return True


# --- Users ---

def find_user_by_email(email):
    return User.query.filter_by(email=email).first()


def get_user(user_id):
    return db.session.get(User, user_id)


def create_admin_user(email, password, display_name=None):
    if find_user_by_email(email):
        raise ValidationError('User already exists')

    user = User(email=email, display_name=display_name or None, is_admin=True, is_verified=True)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError('User already exists')
    except SQLAlchemyError:
        db.session.rollback()
        raise

    logger.info(f"Created admin user {user.id} <{email}>")
    return user


def ensure_admin_user(email, password):
    """Create the bootstrap admin when it does not exist yet."""
    if find_user_by_email(email):
        return None
    return create_admin_user(email, password, display_name='Admin')


# --- Subscribers ---

def _subscribe_state(subscriber):
    return SUBSCRIBE_CONFIRMED if subscriber.confirmed else SUBSCRIBE_PENDING


def subscribe(email):
    """Find or create the subscriber row for ``email``.

    Returns ``(subscriber, state)``. An unconfirmed subscriber keeps the
    token it was created with, so a repeat subscription resends the same
    link.
    """
    existing = Subscriber.query.filter_by(email=email).first()
    if existing:
        return existing, _subscribe_state(existing)

    subscriber = Subscriber(email=email, confirm_token=secrets.token_hex(32), confirmed=False)
    db.session.add(subscriber)
    try:
        db.session.commit()
    except IntegrityError:
        # Another request inserted the same email first
        db.session.rollback()
        existing = Subscriber.query.filter_by(email=email).first()
        if existing is None:
            raise
        return existing, _subscribe_state(existing)
    except SQLAlchemyError:
        db.session.rollback()
        raise

    logger.info(f"New subscriber {subscriber.id} <{email}>")
    return subscriber, SUBSCRIBE_CREATED


def confirm_subscription(token):
    """Returns ``(subscriber, already_confirmed)``; subscriber is None for an unknown token."""
    subscriber = Subscriber.query.filter_by(confirm_token=token).first()
    if subscriber is None:
        return None, False
    if subscriber.confirmed:
        return subscriber, True

    subscriber.confirmed = True
    commit()
    logger.info(f"Subscriber {subscriber.id} confirmed")
    return subscriber, False


def list_subscribers(confirmed=None):
    query = Subscriber.query
    if confirmed is not None:
        query = query.filter(Subscriber.confirmed == confirmed)
    return query.order_by(Subscriber.subscribed_at.desc(), Subscriber.id.desc()).all()


def confirmed_subscriber_emails():
    rows = db.session.query(Subscriber.email).filter(Subscriber.confirmed.is_(True)).all()
    return [email for (email,) in rows]


def subscriber_count():
    return db.session.query(func.count(Subscriber.id)).scalar()


# --- Push tokens ---

def register_push_token(token, platform):
    """Store a device token once. Returns False when it was already known."""
    if PushToken.query.filter_by(token=token).first():
        return False

    db.session.add(PushToken(token=token, platform=platform))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return False
    except SQLAlchemyError:
        db.session.rollback()
        raise

    logger.info(f"Registered {platform} push token")
    return True


def all_push_tokens():
    return [token for (token,) in db.session.query(PushToken.token).order_by(PushToken.id).all()]
