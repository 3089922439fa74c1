from __future__ import annotations

from flask import Blueprint, jsonify, g, current_app

from auth_models.schemas.user import UserOutSchema
from auth_models.user import USER, ADMIN
from auth_utils.decorators import roles_required

bp = Blueprint("users", __name__, url_prefix="/users")

user_out_schema = UserOutSchema()


@bp.get("/me")
@roles_required([USER, ADMIN])
def me():
    """
    Get current user info.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Missing, invalid or expired access token
      404:
        description: User no longer exists
    """
    registrar = current_app.extensions["auth_sessions"].registrar
    user = registrar.get_profile(g.current_token.sub)
    return jsonify(user_out_schema.dump(user)), 200
