# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .validation import coerce_int
from .services.errors import ValidationError


def require_actor(f):
    """
    Establish the acting user for a mutating request.

    The caller is already authenticated upstream; its user id arrives in
    the X-Actor-Id header and is stored on g.actor_id.

    Returns 401 if the header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-Actor-Id")
        if not raw:
            return jsonify({"error": "Actor required", "code": "unauthorized"}), 401

        try:
            actor_id = coerce_int(raw, "X-Actor-Id")
        except ValidationError:
            return jsonify({"error": "Invalid actor id", "code": "unauthorized"}), 401
        if actor_id <= 0:
            return jsonify({"error": "Invalid actor id", "code": "unauthorized"}), 401

        g.actor_id = actor_id
        return f(*args, **kwargs)

    return decorated_function
