# routes/auth.py

import logging

from flask import Blueprint, g
from sqlalchemy.exc import SQLAlchemyError

from howisyourday import repository
from howisyourday.auth import generate_token, require_admin
from howisyourday.errors import ValidationError
from howisyourday.responses import (error_response, get_json_body, register_api_error_handlers,
                                    success_response)
from howisyourday.shared_data import is_valid_email

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')
register_api_error_handlers(auth_bp)

LOGIN_MIN_PASSWORD = 6
REGISTER_MIN_PASSWORD = 8


@auth_bp.route('/login', methods=['POST'])
def login():
    body = get_json_body()
    email = body.get('email')
    password = body.get('password')

    # Validate input
    if not is_valid_email(email):
        return error_response('Invalid email address')

    if not isinstance(password, str) or len(password) < LOGIN_MIN_PASSWORD:
        return error_response(f'Password must be at least {LOGIN_MIN_PASSWORD} characters')

    try:
        user = repository.find_user_by_email(email)
    except SQLAlchemyError as e:
        logger.error(f"Database error during login: {e}")
        return error_response('Internal server error', 500)

    if user is None:
        return error_response('Invalid email or password', 401)

    # Unverified accounts are refused before the password is even looked at
    if not user.is_verified:
        return error_response('Account not verified', 403)

    if not user.check_password(password):
        logger.info(f"Failed login for user {user.id}")
        return error_response('Invalid email or password', 401)

    token = generate_token(user.token_claims())
    logger.info(f"User {user.id} logged in")

    return success_response({
        'token': token,
        'user': user.to_dict(),
    })


@auth_bp.route('/register', methods=['POST'])
@require_admin
def register():
    body = get_json_body()
    email = body.get('email')
    password = body.get('password')
    display_name = body.get('display_name')

    if not is_valid_email(email):
        return error_response('Invalid email address')

    if not isinstance(password, str) or len(password) < REGISTER_MIN_PASSWORD:
        return error_response(f'Password must be at least {REGISTER_MIN_PASSWORD} characters')

    if display_name is not None and not isinstance(display_name, str):
        return error_response('Display name must be a string')

    try:
        user = repository.create_admin_user(email, password, display_name)
    except ValidationError as e:
        return error_response(str(e))
    except SQLAlchemyError as e:
        logger.error(f"Database error creating user: {e}")
        return error_response('Failed to create user', 500)

    logger.info(f"Admin {g.admin['userId']} registered user {user.id}")

    return success_response({
        'message': 'User created successfully',
        'user': {
            'id': user.id,
            'email': user.email,
            'display_name': user.display_name,
        },
    }, 201)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    # Tokens are stateless; the client drops its copy. Nothing to revoke here.
    return success_response({
        'message': 'Logged out successfully',
    })
