from __future__ import annotations

import json
from datetime import datetime

from crickpool.extensions import db
from crickpool.models import AuditLog


def add_audit(action: str, *, actor: str | None = None, target_type: str | None = None, target_id: int | None = None, meta: dict | None = None) -> AuditLog:
    """Stage an audit row on the current session; the caller commits."""
    row = AuditLog(
        actor=(actor or "")[:64] or None,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta=json.dumps(meta or {}, default=str),
        created_at=datetime.utcnow(),
    )
    db.session.add(row)
    return row
