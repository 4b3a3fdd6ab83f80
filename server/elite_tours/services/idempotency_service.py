"""Idempotency service for replaying checkout responses."""

import hashlib
import json
import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import utcnow
from ..core.exceptions import IdempotencyInProgressError, IdempotencyMismatchError
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)

# Marks a claimed key whose request has not finished yet
PENDING_STATUS_CODE = 102
PENDING_LEASE = timedelta(minutes=2)


class IdempotencyService:
    """
    Stores the response of a keyed request so a retry gets the same answer.

    Request bodies are hashed, never stored; callers strip card data before
    hashing so the hash itself carries nothing sensitive.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def compute_request_hash(request_body: dict[str, Any]) -> str:
        """SHA-256 of the body with keys sorted recursively."""
        normalized = json.dumps(request_body, sort_keys=True, separators=(',', ':'), default=str)
        return hashlib.sha256(normalized.encode('utf-8')).hexdigest()

    async def check_idempotency(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
    ) -> tuple[int, dict[str, Any]] | None:
        """
        Look up a stored response for this key.

        Returns:
            ``(status_code, response_body)`` when the request was already
            answered, None when it is new

        Raises:
            IdempotencyMismatchError: If the key was used with a different body
            IdempotencyInProgressError: If the first request with this key has
                not finished
        """
        request_hash = self.compute_request_hash(request_body)

        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.idempotency_key == idempotency_key,
            IdempotencyRecord.method == method,
            IdempotencyRecord.expires_at > utcnow()
        )
        result = await self.db.execute(stmt)
        existing_record = result.scalar_one_or_none()

        if existing_record is None:
            return None

        if existing_record.request_body_hash != request_hash:
            logger.warning(
                "Idempotency key mismatch",
                extra={
                    "idempotency_key": idempotency_key,
                    "method": method,
                    "existing_hash": existing_record.request_body_hash[:8],
                    "new_hash": request_hash[:8]
                }
            )
            raise IdempotencyMismatchError(idempotency_key, method)

        if existing_record.response_status_code == PENDING_STATUS_CODE:
            raise IdempotencyInProgressError(idempotency_key, method)

        logger.info(
            "Returning cached idempotent response",
            extra={
                "idempotency_key": idempotency_key,
                "method": method,
                "status_code": existing_record.response_status_code,
            }
        )
        return existing_record.response_status_code, json.loads(existing_record.response_body)

    async def claim(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
    ) -> tuple[int, dict[str, Any]] | None:
        """
        Reserve the key before the request runs.

        Returns None when this caller now owns the key, or the stored answer
        when an earlier request already completed. The claim is a pending
        record that lapses after ``PENDING_LEASE`` unless ``store_response``
        or ``release`` resolves it first.

        Raises:
            IdempotencyMismatchError: If the key was used with a different body
            IdempotencyInProgressError: If another request holds the key
        """
        cached = await self.check_idempotency(idempotency_key, method, request_body)
        if cached is not None:
            return cached

        # A lapsed record still occupies the unique key
        await self.db.execute(
            delete(IdempotencyRecord).where(
                IdempotencyRecord.idempotency_key == idempotency_key,
                IdempotencyRecord.method == method,
                IdempotencyRecord.expires_at <= utcnow()
            )
            .execution_options(synchronize_session="fetch")
        )
        self.db.add(
            IdempotencyRecord(
                idempotency_key=idempotency_key,
                method=method,
                request_body_hash=self.compute_request_hash(request_body),
                response_status_code=PENDING_STATUS_CODE,
                response_body="{}",
                expires_at=utcnow() + PENDING_LEASE
            )
        )
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "Idempotency key claimed concurrently",
                extra={"idempotency_key": idempotency_key, "method": method}
            )
            cached = await self.check_idempotency(idempotency_key, method, request_body)
            if cached is None:
                raise IdempotencyInProgressError(idempotency_key, method) from None
            return cached

        logger.info("Claimed idempotency key", extra={"idempotency_key": idempotency_key, "method": method})
        return None

    async def release(self, idempotency_key: str, method: str) -> None:
        """Drop a pending claim so a retry with the same key can run."""
        await self.db.rollback()
        await self.db.execute(
            delete(IdempotencyRecord).where(
                IdempotencyRecord.idempotency_key == idempotency_key,
                IdempotencyRecord.method == method,
                IdempotencyRecord.response_status_code == PENDING_STATUS_CODE
            )
        )
        await self.db.commit()
        logger.info("Released idempotency key", extra={"idempotency_key": idempotency_key, "method": method})

    async def store_response(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
        status_code: int,
        response_body: dict[str, Any],
        ttl_hours: int = 24
    ) -> None:
        """Record the final answer, resolving this key's pending claim when there is one."""
        expires_at = utcnow() + timedelta(hours=ttl_hours)
        serialized = json.dumps(response_body, sort_keys=True, separators=(',', ':'))

        resolved = await self.db.execute(
            update(IdempotencyRecord)
            .where(
                IdempotencyRecord.idempotency_key == idempotency_key,
                IdempotencyRecord.method == method,
                IdempotencyRecord.response_status_code == PENDING_STATUS_CODE
            )
            .values(response_status_code=status_code, response_body=serialized, expires_at=expires_at)
        )
        if resolved.rowcount:
            await self.db.commit()
            logger.info(
                "Stored idempotency record",
                extra={
                    "idempotency_key": idempotency_key,
                    "method": method,
                    "status_code": status_code,
                    "expires_at": expires_at.isoformat()
                }
            )
            return

        record = IdempotencyRecord(
            idempotency_key=idempotency_key,
            method=method,
            request_body_hash=self.compute_request_hash(request_body),
            response_status_code=status_code,
            response_body=serialized,
            expires_at=expires_at
        )

        try:
            self.db.add(record)
            await self.db.commit()
        except IntegrityError as e:
            # A concurrent retry stored the same key first; its answer stands
            await self.db.rollback()
            logger.info(
                "Idempotency record already exists (race condition)",
                extra={"idempotency_key": idempotency_key, "method": method, "error": str(e)}
            )
            return

        logger.info(
            "Stored idempotency record",
            extra={
                "idempotency_key": idempotency_key,
                "method": method,
                "status_code": status_code,
                "expires_at": expires_at.isoformat()
            }
        )

    async def cleanup_expired_records(self) -> int:
        """Delete expired records; returns how many were removed."""
        result = await self.db.execute(
            delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= utcnow())
        )
        await self.db.commit()

        if result.rowcount:
            logger.info("Cleaned up expired idempotency records", extra={"deleted_count": result.rowcount})
        return result.rowcount
