from __future__ import annotations
from functools import wraps
from flask import request, g, current_app

from auth_utils.exceptions import TokenInvalid, Forbidden


def jwt_required():
    """Require a valid Bearer access token; exposes the claims as g.current_token."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                raise TokenInvalid("Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            tokens = current_app.extensions["auth_sessions"].tokens
            g.current_token = tokens.verify_access_token(token)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the token's role is one of required_roles, 403 otherwise.
    """
    req = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if g.current_token.role not in req:
                raise Forbidden()
            return fn(*args, **kwargs)

        return wrapper

    return decorator
