"""Signed, time-bounded bearer tokens (HS256 JWT).

There is no revocation list: a token stays valid until ``exp`` even if the
account changes its password in the meantime.
"""
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from movielog.errors import BadSignature, ExpiredToken, MalformedToken

ALGORITHM = 'HS256'
DEFAULT_TTL = 7 * 24 * 3600


def _secret(secret):
    return secret or current_app.config['JWT_SECRET']


def _ttl(ttl):
    if ttl is None:
        ttl = current_app.config.get('JWT_EXPIRES_IN', DEFAULT_TTL)
    if not isinstance(ttl, timedelta):
        ttl = timedelta(seconds=int(ttl))
    return ttl


def issue(identity, ttl=None, secret=None, email=None):
    """Return a token whose ``sub`` claim is ``identity``."""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(identity),
        'iat': now,
        'exp': now + _ttl(ttl)
    }
    if email is not None:
        payload['email'] = email
    return jwt.encode(payload, _secret(secret), algorithm=ALGORITHM)


def verify(token, secret=None):
    """Check signature and expiry and return the ``sub`` claim."""
    if not token or not isinstance(token, str):
        raise MalformedToken()
    try:
        claims = jwt.decode(
            token,
            _secret(secret),
            algorithms=[ALGORITHM],
            options={'require': ['exp', 'sub']}
        )
    except jwt.ExpiredSignatureError as exc:
        raise ExpiredToken() from exc
    except jwt.InvalidSignatureError as exc:
        raise BadSignature() from exc
    except jwt.InvalidTokenError as exc:
        raise MalformedToken() from exc
    return claims['sub']
