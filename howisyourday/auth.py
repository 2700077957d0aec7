"""Bearer tokens for the JSON API.

Tokens are stateless HS256 JWTs carrying ``userId``, ``email`` and
``isAdmin``. Nothing is stored server-side, so logging out only means the
client forgets its token; an issued token stays valid until it expires.
"""
import logging
from functools import wraps

import jwt
from flask import current_app, g, request

from howisyourday.errors import AuthError
from howisyourday.responses import error_response
from howisyourday.shared_data import utcnow

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'
REQUIRED_CLAIMS = ('userId', 'email', 'isAdmin')


def generate_token(payload, secret=None, expires=None):
    """Sign a token for ``{userId, email, isAdmin}``."""
    secret = secret or current_app.config['JWT_SECRET']
    expires = expires or current_app.config['JWT_EXPIRES']

    now = utcnow()
    claims = {
        'userId': payload['userId'],
        'email': payload['email'],
        'isAdmin': bool(payload['isAdmin']),
        'iat': now,
        'exp': now + expires,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_token(token, secret=None):
    """Decode a token back into ``{userId, email, isAdmin}``.

    Raises AuthError for a bad signature, an expired token, garbage input or
    missing claims.
    """
    secret = secret or current_app.config['JWT_SECRET']

    try:
        decoded = jwt.decode(token, secret, algorithms=[ALGORITHM],
                             options={'require': ['exp']})
    except jwt.ExpiredSignatureError:
        raise AuthError('Token expired')
    except jwt.PyJWTError as e:
        raise AuthError(f'Invalid token: {e}')

    if any(claim not in decoded for claim in REQUIRED_CLAIMS):
        raise AuthError('Token is missing required claims')

    return {claim: decoded[claim] for claim in REQUIRED_CLAIMS}


def get_token_from_request(req):
    """Extract the token from an ``Authorization: Bearer`` header."""
    auth_header = req.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    token = auth_header[len('Bearer '):].strip()
    return token or None


def authenticate_admin(req):
    token = get_token_from_request(req)
    if not token:
        raise AuthError('No authentication token provided')

    payload = verify_token(token)
    if payload['isAdmin'] is not True:
        raise AuthError('Admin access required')

    return payload


# --- Authentication Decorator ---
def require_admin(f):
    """Gate an API view on a valid admin token.

    Every failure looks the same to the caller (401 "Unauthorized"); the
    actual reason only goes to the log.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.admin = authenticate_admin(request)
        except AuthError as e:
            logger.info(f"Rejected admin request {request.method} {request.path}: {e}")
            return error_response('Unauthorized', 401)
        return f(*args, **kwargs)
    return decorated_function
