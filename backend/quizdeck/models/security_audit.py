from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from quizdeck.db.base import Base, new_object_id


class SecurityAuditEvent(Base):
    __tablename__ = "security_audit_events"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    event_type: Mapped[str] = mapped_column(String(64), index=True)

    actor_user_id: Mapped[str | None] = mapped_column(String(24), ForeignKey("users.id"), nullable=True, index=True)
    target_user_id: Mapped[str | None] = mapped_column(String(24), ForeignKey("users.id"), nullable=True)
    # Deleted quizzes keep their trail, so no foreign key here.
    quiz_id: Mapped[str | None] = mapped_column(String(24), nullable=True, index=True)

    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(80), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)
