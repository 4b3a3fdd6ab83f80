"""User model definition."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from ..core.database import Base, utcnow


class User(Base):
    """Identity record created on first authenticated contact."""

    __tablename__ = "users"

    # Primary key is the identity provider's subject, not generated here
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # Sole authorization signal
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=expression.false())

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<User(id='{self.id}', email='{self.email}', is_admin={self.is_admin})>"
