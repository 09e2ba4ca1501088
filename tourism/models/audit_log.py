from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from tourism.db.session import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    actor_id: Mapped[str] = mapped_column(String(64), index=True)  # user id, guest id or "stripe"
    actor_role: Mapped[str] = mapped_column(String(12), default="")  # tourist, seller, admin, system
    action: Mapped[str] = mapped_column(String(80), index=True)  # e.g. booking.status_updated
    entity_type: Mapped[str] = mapped_column(String(40), index=True)  # booking, product, destination, user
    entity_id: Mapped[str] = mapped_column(String(64), index=True)
    details_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
