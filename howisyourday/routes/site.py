# -*- coding: utf-8 -*-
# routes/site.py
import logging

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from howisyourday import repository
from howisyourday.errors import IntegrationError
from howisyourday.integrations.email import get_mailer
from howisyourday.pagination import parse_page_params
from howisyourday.shared_data import PAGINATION, is_valid_email

logger = logging.getLogger(__name__)

site_bp = Blueprint('site', __name__)

EMPTY_PAGE = {'data': [], 'pagination': {'page': 1, 'limit': PAGINATION['DEFAULT_LIMIT'],
                                         'total': 0, 'totalPages': 0}}


def _page_number():
    page, _ = parse_page_params(request.args)
    return page


@site_bp.route('/')
def index():
    """Latest published posts plus the newsletter form."""
    page = _page_number()
    try:
        result = repository.list_published_posts(page, PAGINATION['DEFAULT_LIMIT'])
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch posts for the home page: {e}")
        result = EMPTY_PAGE

    return render_template('index.html', posts=result['data'], pagination=result['pagination'])


@site_bp.route('/post/<slug>')
def post_detail(slug):
    post = repository.get_published_post(slug)
    if post is None:
        abort(404)

    try:
        related = repository.related_posts(post)
    except SQLAlchemyError as e:
        logger.warning(f"Could not load related posts for '{slug}': {e}")
        related = []

    return render_template(
        'post.html',
        post=post,
        related=related,
        share_url=url_for('site.post_detail', slug=post.slug, _external=True),
    )


@site_bp.route('/tags/<tag>')
def tag_posts(tag):
    page = _page_number()
    try:
        result = repository.list_published_posts(page, PAGINATION['DEFAULT_LIMIT'], tag=tag)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch posts tagged '{tag}': {e}")
        result = EMPTY_PAGE

    if not result['data'] and page == 1:
        abort(404)

    return render_template('tag.html', tag=tag, posts=result['data'], pagination=result['pagination'])


@site_bp.route('/about')
def about():
    return render_template('about.html')


@site_bp.route('/contact', methods=['GET', 'POST'])
def contact():
    form = {'name': '', 'email': '', 'message': ''}

    if request.method == 'POST':
        form = {key: request.form.get(key, '').strip() for key in form}

        if not (form['name'] and form['email'] and form['message']):
            flash('Please fill in all fields', 'danger')
        elif not is_valid_email(form['email']):
            flash('Please enter a valid email address', 'danger')
        else:
            try:
                get_mailer().send_contact_email(form['email'], form['name'], form['message'])
            except IntegrationError as e:
                logger.error(f"Contact form email failed: {e}")
                flash('Failed to send message. Please try again.', 'danger')
            else:
                flash("Thank you for your message! I'll get back to you soon.", 'success')
                return redirect(url_for('site.contact'))

    return render_template('contact.html', form=form)


@site_bp.route('/subscribe', methods=['POST'])
def subscribe():
    email = request.form.get('email', '').strip()
    back = request.referrer or url_for('site.index')

    # Validate email
    if not is_valid_email(email):
        flash('Please enter a valid email address', 'danger')
        return redirect(back)

    try:
        subscriber, state = repository.subscribe(email)
    except SQLAlchemyError as e:
        logger.error(f"Database error subscribing {email}: {e}")
        flash('Failed to subscribe. Please try again.', 'danger')
        return redirect(back)

    if state == repository.SUBSCRIBE_CONFIRMED:
        flash('This email is already subscribed!', 'info')
        return redirect(back)

    try:
        get_mailer().send_subscription_confirmation(email, subscriber.confirm_token)
    except IntegrationError as e:
        logger.error(f"Confirmation email to {email} failed: {e}")
        if state == repository.SUBSCRIBE_PENDING:
            flash('Failed to send confirmation email. Please try again.', 'danger')
            return redirect(back)

    if state == repository.SUBSCRIBE_PENDING:
        flash('Confirmation email resent. Please check your inbox.', 'info')
    else:
        flash('Subscription successful! Please check your email to confirm.', 'success')
    return redirect(back)
