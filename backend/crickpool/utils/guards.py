from __future__ import annotations

import hmac
from functools import wraps

from flask import current_app, jsonify, request


def _token_ok(config_key: str, header: str) -> bool:
    expected = (current_app.config.get(config_key) or "").strip()
    if not expected:
        # not configured: open; create_app refuses to start prod without it
        return True
    supplied = (request.headers.get(header) or "").strip()
    return bool(supplied) and hmac.compare_digest(supplied, expected)


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not _token_ok("ADMIN_API_TOKEN", "X-Admin-Token"):
            return jsonify({"ok": False, "message": "Admin required"}), 403
        return fn(*args, **kwargs)

    return wrapper


def cron_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not _token_ok("CRON_SECRET", "X-Cron-Secret"):
            return jsonify({"ok": False, "message": "Invalid cron secret"}), 403
        return fn(*args, **kwargs)

    return wrapper
