# Overview: Client-supplied idempotency keys for retry-safe writes.

"""
Idempotency keys.

claim() records (scope, user, key) as PROCESSING before the write runs.
complete() stores the response inside the write's own transaction.
release() drops the claim when the write fails so the client can retry.

A replay with the same payload after completion gets the stored
response; a different payload, or a replay while the first request is
still running, is a ConflictError.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError
from ..extensions import db
from ..models import IdempotencyKey


@dataclass
class Claim:
    record_id: int | None
    replay: dict | None = None


def request_hash(payload: dict) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _resolve_existing(record: IdempotencyKey, digest: str) -> Claim:
    if record.request_hash != digest:
        raise ConflictError("Idempotency key was already used with a different payload")
    if record.status == "COMPLETED":
        return Claim(record_id=record.id, replay=record.response)
    raise ConflictError("A request with this idempotency key is still being processed")


def claim(scope: str, user_id: int, key: str, payload: dict) -> Claim:
    digest = request_hash(payload)

    existing = db.session.query(IdempotencyKey).filter_by(scope=scope, user_id=user_id, key=key).first()
    if existing:
        return _resolve_existing(existing, digest)

    record = IdempotencyKey(
        scope=scope,
        user_id=user_id,
        key=key,
        request_hash=digest,
        status="PROCESSING",
    )
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = db.session.query(IdempotencyKey).filter_by(scope=scope, user_id=user_id, key=key).first()
        if existing is None:
            raise
        return _resolve_existing(existing, digest)

    return Claim(record_id=record.id)


def complete(record_id: int, response: dict, order_id: int | None = None) -> None:
    """Mark the claim COMPLETED. Runs in the caller's transaction."""
    db.session.query(IdempotencyKey).filter_by(id=record_id).update(
        {"status": "COMPLETED", "response": response, "order_id": order_id},
        synchronize_session=False,
    )


def release(record_id: int) -> None:
    db.session.rollback()
    db.session.query(IdempotencyKey).filter_by(id=record_id, status="PROCESSING").delete(
        synchronize_session=False
    )
    db.session.commit()
