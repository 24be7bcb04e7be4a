# models/user.py
from sqlalchemy import Column, String, DateTime, JSON, Uuid, CheckConstraint, Index
from sqlalchemy.orm import relationship
from uuid import uuid4

from app.db.base_class import Base, utcnow

USER_ROLES = ("admin", "agent", "superadmin")
ADMIN_ROLES = ("admin", "superadmin")


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(255), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="agent")
    name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=True)
    employment_data = Column(JSON, nullable=True)  # position, department, start date...
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("role IN ('admin','agent','superadmin')", name="chk_user_role"),
        Index("idx_users_role", "role"),
    )

    # Relationships
    calendar_events = relationship("CalendarEvent", back_populates="agent", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
