"""Account registration, password login and profile updates."""
import logging
import re
from functools import lru_cache

from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from movielog.errors import (DuplicateEmail, DuplicateUsername, InvalidCredentials,
                             InvalidInput)
from movielog.models import Account, utcnow

logger = logging.getLogger(__name__)

# pbkdf2-sha256, 600k iterations, werkzeug's default 16 char salt per hash
PASSWORD_HASH_METHOD = 'pbkdf2:sha256:600000'
MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

PROFILE_FIELDS = ('username', 'profile_image')


def _hash_method():
    return current_app.config.get('PASSWORD_HASH_METHOD', PASSWORD_HASH_METHOD)


@lru_cache(maxsize=4)
def _dummy_hash(method):
    return generate_password_hash('movielog-timing-equalizer', method=method)


def _clean(value):
    return value.strip() if isinstance(value, str) else None


def register(session, username, email, password):
    """Create an account and return it.

    Uniqueness of username and email is left to the database constraints,
    so two concurrent registrations cannot both pass a prior lookup.
    """
    username = _clean(username)
    email = _clean(email)

    if not username or not email or not isinstance(password, str) or not password:
        raise InvalidInput('All fields are required (username, email, password)')
    if not EMAIL_RE.match(email):
        raise InvalidInput('Invalid email format')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(
            f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')

    account = Account(
        username=username,
        email=email,
        password_hash=generate_password_hash(password, method=_hash_method())
    )
    session.add(account)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        # first line names the constraint; the DETAIL line carries user values
        detail = (str(exc.orig).splitlines() or [''])[0].lower()
        if 'email' in detail:
            raise DuplicateEmail() from exc
        if 'username' in detail:
            raise DuplicateUsername() from exc
        raise

    logger.info('Registered account %s (%s)', account.id, account.username)
    return account


def login(session, email, password):
    email = _clean(email)
    if not email or not isinstance(password, str) or not password:
        raise InvalidInput('Email and password are required')

    account = session.query(Account).filter_by(email=email).first()
    if account is None:
        # keep the unknown-email path as slow as a real check
        check_password_hash(_dummy_hash(_hash_method()), password)
        logger.info('Login failed: unknown email')
        raise InvalidCredentials()

    if not check_password_hash(account.password_hash, password):
        logger.info('Login failed for account %s', account.id)
        raise InvalidCredentials()

    return account


def update_profile(session, account, fields):
    """Patch the allow-listed profile fields; anything else is ignored."""
    changes = {key: fields[key] for key in PROFILE_FIELDS if key in fields}

    if 'username' in changes:
        username = _clean(changes['username'])
        if not username:
            raise InvalidInput('Username cannot be empty')
        changes['username'] = username
    if 'profile_image' in changes:
        image = changes['profile_image']
        if image is not None and not isinstance(image, str):
            raise InvalidInput('profile_image must be a string')

    if not changes:
        return account

    for key, value in changes.items():
        setattr(account, key, value)
    account.updated_at = utcnow()

    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateUsername() from exc

    return account
