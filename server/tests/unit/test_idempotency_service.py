"""Unit tests for checkout replay records."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from elite_tours.core.exceptions import IdempotencyInProgressError, IdempotencyMismatchError
from elite_tours.core.database import utcnow
from elite_tours.models.idempotency import IdempotencyRecord
from elite_tours.services.idempotency_service import PENDING_STATUS_CODE, IdempotencyService

BODY = {"tourId": "t-1", "numberOfGuests": 2, "customer": {"email": "kai@example.com"}}


def test_hash_ignores_key_order():
    reordered = {"customer": {"email": "kai@example.com"}, "numberOfGuests": 2, "tourId": "t-1"}

    assert IdempotencyService.compute_request_hash(BODY) == IdempotencyService.compute_request_hash(reordered)
    assert len(IdempotencyService.compute_request_hash(BODY)) == 64


@pytest.mark.asyncio
async def test_stored_response_is_replayed(test_session):
    service = IdempotencyService(test_session)

    assert await service.check_idempotency("key-1", "checkout", BODY) is None
    await service.store_response("key-1", "checkout", BODY, 201, {"id": "b-1", "status": "confirmed"})

    assert await service.check_idempotency("key-1", "checkout", BODY) == (
        201,
        {"id": "b-1", "status": "confirmed"},
    )


@pytest.mark.asyncio
async def test_key_reused_with_other_body(test_session):
    service = IdempotencyService(test_session)
    await service.store_response("key-1", "checkout", BODY, 201, {"id": "b-1"})

    with pytest.raises(IdempotencyMismatchError) as exc_info:
        await service.check_idempotency("key-1", "checkout", {**BODY, "numberOfGuests": 3})

    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_second_store_for_same_key_keeps_first_answer(test_session):
    service = IdempotencyService(test_session)
    await service.store_response("key-1", "checkout", BODY, 201, {"id": "b-1"})
    await service.store_response("key-1", "checkout", BODY, 201, {"id": "b-2"})

    assert await service.check_idempotency("key-1", "checkout", BODY) == (201, {"id": "b-1"})


@pytest.mark.asyncio
async def test_expired_records_are_ignored_then_purged(test_session):
    service = IdempotencyService(test_session)
    await service.store_response("old", "checkout", BODY, 201, {"id": "b-1"}, ttl_hours=-1)
    await service.store_response("fresh", "checkout", BODY, 201, {"id": "b-2"})

    assert await service.check_idempotency("old", "checkout", BODY) is None

    assert await service.cleanup_expired_records() == 1
    remaining = await test_session.scalar(select(func.count()).select_from(IdempotencyRecord))
    assert remaining == 1


@pytest.mark.asyncio
async def test_claimed_key_blocks_until_answered(test_session):
    service = IdempotencyService(test_session)

    assert await service.claim("key-1", "checkout", BODY) is None
    with pytest.raises(IdempotencyInProgressError) as exc_info:
        await service.claim("key-1", "checkout", BODY)
    assert exc_info.value.status_code == 409

    await service.store_response("key-1", "checkout", BODY, 201, {"id": "b-1"})

    assert await service.claim("key-1", "checkout", BODY) == (201, {"id": "b-1"})
    count = await test_session.scalar(select(func.count()).select_from(IdempotencyRecord))
    assert count == 1


@pytest.mark.asyncio
async def test_released_claim_can_be_taken_again(test_session):
    service = IdempotencyService(test_session)
    await service.claim("key-1", "checkout", BODY)

    await service.release("key-1", "checkout")

    assert await service.claim("key-1", "checkout", BODY) is None


@pytest.mark.asyncio
async def test_lapsed_claim_is_replaced(test_session):
    service = IdempotencyService(test_session)
    await service.claim("key-1", "checkout", BODY)
    await test_session.execute(
        update(IdempotencyRecord).values(expires_at=utcnow() - timedelta(seconds=1))
    )
    await test_session.commit()

    assert await service.claim("key-1", "checkout", BODY) is None
    record = await test_session.scalar(select(IdempotencyRecord))
    assert record.response_status_code == PENDING_STATUS_CODE
    assert record.expires_at.replace(tzinfo=None) > utcnow().replace(tzinfo=None)


@pytest.mark.asyncio
async def test_claim_with_other_body_is_a_mismatch(test_session):
    service = IdempotencyService(test_session)
    await service.claim("key-1", "checkout", BODY)

    with pytest.raises(IdempotencyMismatchError):
        await service.claim("key-1", "checkout", {**BODY, "numberOfGuests": 3})
