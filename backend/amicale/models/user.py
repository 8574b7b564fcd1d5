"""
Member directory entry.

Membership approval happens elsewhere; the booking core only reads `status`
(approved members may book) and `role` (responsables run the lifecycle).
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from amicale.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    ADHERENT = "adherent"
    RESPONSIBLE = "responsable"


class UserStatus(str, enum.Enum):
    PENDING = "En Attente"
    APPROVED = "Approuvé"
    REFUSED = "Refusé"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(30), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.ADHERENT.value)
    status = Column(String(20), nullable=False, default=UserStatus.PENDING.value)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('adherent', 'responsable')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, status={self.status})>"
