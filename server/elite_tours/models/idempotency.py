"""Idempotency record model definition."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, generate_id, utcnow


class IdempotencyRecord(Base):
    """Stored response of a retried checkout, keyed by client idempotency key."""

    __tablename__ = "idempotency_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    # Idempotency key and operation combination
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    method: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # SHA-256 of the normalized request body, card data excluded
    request_body_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Response information
    response_status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    response_body: Mapped[str] = mapped_column(Text, nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(idempotency_key) > 0", name="ck_idempotency_key_not_empty"),
        CheckConstraint("length(request_body_hash) = 64", name="ck_idempotency_hash_length"),
        CheckConstraint("response_status_code >= 100", name="ck_idempotency_status_code_valid"),
        CheckConstraint("response_status_code <= 599", name="ck_idempotency_status_code_max"),
        UniqueConstraint("idempotency_key", "method", name="uq_idempotency_key_method"),
    )

    def __repr__(self) -> str:
        return (
            f"<IdempotencyRecord(id={self.id}, key='{self.idempotency_key}', "
            f"method='{self.method}', status={self.response_status_code}, "
            f"expires_at={self.expires_at})>"
        )
