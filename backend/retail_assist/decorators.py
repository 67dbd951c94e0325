# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import current_app, jsonify, request


AUTH_HEADER = "auth-token"


def require_auth_token(f):
    """
    Require the shared "auth-token" header to match AUTH_TOKEN.

    SECURITY: Returns 403 when the header is missing or wrong, and also when
    AUTH_TOKEN is not configured at all (fail closed).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("AUTH_TOKEN")
        supplied = request.headers.get(AUTH_HEADER)

        if not expected or not supplied or not hmac.compare_digest(supplied.encode(), expected.encode()):
            current_app.logger.warning("Rejected request to %s: bad or missing auth token", request.path)
            return jsonify({"success": False, "error": "Unauthorized"}), 403

        return f(*args, **kwargs)

    return decorated_function
