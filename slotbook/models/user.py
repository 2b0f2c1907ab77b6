# ============================================================================
# FILE: slotbook/models/user.py
# Users and their tenant memberships. Every active member is bookable staff.
# ============================================================================
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from slotbook.models.base import Base


class MembershipRole(str, enum.Enum):
    """User roles within a business."""
    OWNER = "owner"
    MANAGER = "manager"
    STAFF = "staff"


# Staff ordering used for listings and for the unassigned-booking tie-break
ROLE_RANK = {
    MembershipRole.OWNER.value: 1,
    MembershipRole.MANAGER.value: 2,
    MembershipRole.STAFF.value: 3,
}


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(120), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    memberships = relationship("Membership", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, full_name={self.full_name})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "full_name": self.full_name,
            "email": self.email,
            "is_active": self.is_active,
        }


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_memberships_tenant_user"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.tenant_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False, default=MembershipRole.STAFF.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="memberships", lazy="joined")

    @property
    def role_rank(self) -> int:
        return ROLE_RANK.get(self.role, len(ROLE_RANK) + 1)
