"""Resolves the caller of a request from its bearer token.

The gate is plugged into Flask-Login as a request loader: views protected by
``login_required`` only run once ``current_user`` resolves to an Account.
A rejected request is answered with a 401 that names the failed step.
"""
import logging

from flask import g, jsonify
from flask_login import LoginManager

from movielog import tokens
from movielog.errors import MalformedToken, MissingHeader, TokenRejected, UnknownAccount
from movielog.models import Account, db

logger = logging.getLogger(__name__)


def parse_authorization(header):
    if not header:
        raise MissingHeader()
    scheme, _, token = header.strip().partition(' ')
    token = token.strip()
    if scheme.lower() != 'bearer' or not token or ' ' in token:
        raise MalformedToken('Authentication token is required')
    return token


def resolve_caller(session, header):
    """Return the Account behind an ``Authorization`` header or raise TokenRejected."""
    token = parse_authorization(header)
    subject = tokens.verify(token)
    try:
        account_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise MalformedToken() from exc

    account = session.get(Account, account_id)
    if account is None:
        raise UnknownAccount()
    return account


def init_gate(app):
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_account_from_request(request):
        try:
            return resolve_caller(db.session, request.headers.get('Authorization'))
        except TokenRejected as exc:
            logger.debug('Rejected request to %s: %s', request.path, exc.reason)
            g.auth_rejection = exc
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        rejection = g.get('auth_rejection') or MissingHeader()
        return jsonify(rejection.to_dict()), rejection.status_code

    return login_manager
