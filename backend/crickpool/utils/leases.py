"""Persisted job leases.

A lease row (name, owner, expires_at) replaces process-local "already
running" flags: only one owner across all processes holds an unexpired lease.
"""

from __future__ import annotations

import os
import socket
import uuid
from datetime import datetime, timedelta

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from crickpool.extensions import db
from crickpool.models import JobLease


def new_owner_id(prefix: str = "worker") -> str:
    return f"{prefix}:{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def acquire_lease(name: str, owner: str, ttl_seconds: int) -> bool:
    now = datetime.utcnow()
    expires = now + timedelta(seconds=int(ttl_seconds))

    res = db.session.execute(
        update(JobLease)
        .where(JobLease.name == name)
        .where(or_(JobLease.expires_at <= now, JobLease.owner == owner))
        .values(owner=owner, acquired_at=now, expires_at=expires)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 1:
        db.session.commit()
        return True
    db.session.rollback()

    if JobLease.query.filter_by(name=name).first() is not None:
        return False

    try:
        db.session.add(JobLease(name=name, owner=owner, acquired_at=now, expires_at=expires))
        db.session.commit()
        return True
    except IntegrityError:
        # another process created it first
        db.session.rollback()
        return False


def release_lease(name: str, owner: str) -> bool:
    res = db.session.execute(
        update(JobLease)
        .where(JobLease.name == name, JobLease.owner == owner)
        .values(expires_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return res.rowcount == 1


def lease_status(name: str) -> dict | None:
    row = JobLease.query.filter_by(name=name).first()
    return row.to_dict() if row else None
