# models/property.py
from sqlalchemy import (
    Column, String, Text, Integer, Numeric, DateTime, JSON, Uuid, ForeignKey, Index, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from uuid import uuid4

from app.db.base_class import Base, utcnow

PROPERTY_STATUSES = ("draft", "available", "reserved", "under-contract", "sold", "withdrawn", "off-market")
COMMISSION_STATUSES = ("pending", "paid")


class Property(Base):
    __tablename__ = "properties"

    property_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False, default="House")
    price = Column(Numeric(15, 2), nullable=False)
    location = Column(String(255), nullable=False, default="")
    bedrooms = Column(Integer, nullable=False, default=0)
    bathrooms = Column(Integer, nullable=False, default=1)
    area = Column(Numeric(10, 2), nullable=False, default=0)
    description = Column(Text, nullable=False, default="")
    features = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="available")
    created_by = Column(String(200), nullable=True)

    # Reservation (only while status == reserved)
    reserved_by = Column(String(200), nullable=True)  # agent name
    reserved_by_agent_id = Column(Uuid(as_uuid=True), nullable=True)
    reserved_at = Column(DateTime, nullable=True)
    reserved_until = Column(DateTime, nullable=True)

    # Sale
    sold_by = Column(String(200), nullable=True)  # agent name
    sold_by_agent_id = Column(Uuid(as_uuid=True), nullable=True)
    sold_at = Column(DateTime, nullable=True)
    sale_price = Column(Numeric(15, 2), nullable=True)

    # Commission (only while status == sold)
    commission_rate = Column(Numeric(5, 2), nullable=True)
    commission_amount = Column(Numeric(15, 2), nullable=True)
    commission_status = Column(String(10), nullable=True)
    commission_paid_at = Column(DateTime, nullable=True)
    commission_paid_by = Column(String(200), nullable=True)

    view_count = Column(Integer, nullable=False, default=0)
    last_viewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft','available','reserved','under-contract','sold','withdrawn','off-market')",
            name="chk_property_status",
        ),
        CheckConstraint(
            "commission_status IS NULL OR commission_status IN ('pending','paid')",
            name="chk_commission_status",
        ),
        Index("idx_properties_status", "status"),
        Index("idx_properties_sold_by_agent", "sold_by_agent_id"),
        Index("idx_properties_reserved_until", "reserved_until"),
    )

    # Relationships
    images = relationship(
        "PropertyImage", back_populates="property", cascade="all, delete-orphan",
        order_by="PropertyImage.position", lazy="selectin",
    )
    status_history = relationship(
        "PropertyStatusHistory", back_populates="property", cascade="all, delete-orphan",
        order_by="PropertyStatusHistory.sequence", lazy="selectin",
    )
    views = relationship("PropertyView", back_populates="property", cascade="all, delete-orphan")

    @property
    def image_urls(self) -> list[str]:
        return [image.image_url for image in self.images]

    @property
    def image_url(self) -> str:
        # first image is the cover
        return self.images[0].image_url if self.images else ""

    @property
    def commission(self) -> dict | None:
        if self.commission_status is None:
            return None
        return {
            "rate": self.commission_rate,
            "amount": self.commission_amount,
            "status": self.commission_status,
            "paid_at": self.commission_paid_at,
            "paid_by": self.commission_paid_by,
        }


class PropertyImage(Base):
    __tablename__ = "property_images"

    image_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.property_id", ondelete="CASCADE"), nullable=False)
    image_url = Column(String(500), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_images_property", "property_id"),
    )

    property = relationship("Property", back_populates="images")


class PropertyStatusHistory(Base):
    __tablename__ = "property_status_history"

    history_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.property_id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)  # 1-based position in the property's history
    status = Column(String(20), nullable=False)
    changed_by = Column(String(64), nullable=False)  # actor id, or "system"
    changed_by_name = Column(String(200), nullable=False)
    changed_at = Column(DateTime, nullable=False, default=utcnow)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("property_id", "sequence", name="uq_status_history_sequence"),
        Index("idx_status_history_property", "property_id"),
        Index("idx_status_history_time", "changed_at"),
    )

    property = relationship("Property", back_populates="status_history")


class PropertyView(Base):
    __tablename__ = "property_views"

    view_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.property_id", ondelete="CASCADE"), nullable=False)
    viewed_at = Column(DateTime, nullable=False, default=utcnow)
    ip_address = Column(String(64), nullable=True)

    __table_args__ = (
        Index("idx_views_property", "property_id"),
    )

    property = relationship("Property", back_populates="views")
