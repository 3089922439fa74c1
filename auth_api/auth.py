"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout

The implementation:
- Validates request bodies with marshmallow (password length bounds);
  logout accepts any body
- Delegates everything else to the SessionOrchestrator stored in app.extensions
- Domain errors propagate to the error envelope in auth_api.errors
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, current_app

from auth_models.schemas.user import CredentialsSchema, RefreshTokenSchema, TokenPairOutSchema
from auth_utils.sessions import SessionOrchestrator

bp = Blueprint("auth", __name__, url_prefix="/auth")

refresh_token_schema = RefreshTokenSchema()
token_pair_out_schema = TokenPairOutSchema()


def _sessions() -> SessionOrchestrator:
    return current_app.extensions["auth_sessions"]


def _load_credentials() -> dict:
    schema = CredentialsSchema(min_password_length=_sessions().settings.password_min_length)
    return schema.load(request.get_json(silent=True) or {})


@bp.post("/register")
def register():
    """
    Register a new user and log them in.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created (returns accessToken and refreshToken)
      400:
        description: Invalid email
      409:
        description: Email already exists
      422:
        description: Validation error
    """
    data = _load_credentials()
    pair = _sessions().register_and_login(data["email"], data["password"])
    return jsonify(token_pair_out_schema.dump(pair)), 201


@bp.post("/login")
def login():
    """
    Login: return accessToken and refreshToken
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    data = _load_credentials()
    pair = _sessions().login(data["email"], data["password"])
    return jsonify(token_pair_out_schema.dump(pair)), 200


@bp.post("/refresh")
def refresh():
    """
    Exchange a refresh token for a new access/refresh pair (rotation)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Refresh token unknown, expired or revoked
      404:
        description: User no longer exists
    """
    data = refresh_token_schema.load(request.get_json(silent=True) or {})
    pair = _sessions().refresh(data["refresh_token"])
    return jsonify(token_pair_out_schema.dump(pair)), 200


@bp.post("/logout")
def logout():
    """
    Logout: revokes the refresh token; succeeds for unknown or revoked tokens too
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      201:
        description: ""
    """
    # no validation: a missing or malformed body is still a successful logout
    payload = request.get_json(silent=True)
    token = payload.get("refreshToken") if isinstance(payload, dict) else None
    _sessions().logout(token if isinstance(token, str) else "")
    return ("", 201)
