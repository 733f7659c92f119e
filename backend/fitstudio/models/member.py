# backend/fitstudio/models/member.py
"""
Member model.

Members are managed by the studio's member-management surface; the booking
service reads them to validate ownership, label rosters and address
notifications.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, String
from sqlalchemy.orm import relationship

from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class Member(Base):
    __tablename__ = "members"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    tenant_id = Column(String(26), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    bookings = relationship("Booking", back_populates="member")

    __table_args__ = (Index("uq_members_tenant_email", "tenant_id", "email", unique=True),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Member {self.id}: {self.full_name}>"
