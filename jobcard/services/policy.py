from functools import wraps

from flask import jsonify
from flask_login import current_user


def permission_required(permission: str):
    """Gate a view on a named permission (``create_jobs``, ``approve_jobs``...)."""
    def deco(fn):
        @wraps(fn)
        def _wrap(*args, **kwargs):
            if not current_user.is_authenticated:
                return _deny(401)
            if not current_user.is_active:
                return _deny(403)
            if not current_user.has_permission(permission):
                return _deny(403, permission)
            return fn(*args, **kwargs)
        return _wrap
    return deco


def _deny(code: int, permission=None):
    payload = {"error": {401: "unauthorized", 403: "forbidden"}[code], "code": code}
    if permission:
        payload["permission"] = permission
    return jsonify(payload), code
