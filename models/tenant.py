from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func
from sqlalchemy.orm import relationship

from database import Base


class Broker(Base):
    __tablename__ = "brokers"

    # Same id as the identity-provider account
    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    company_name = Column(String(256), nullable=False)
    subscription_tier = Column(String(32), nullable=False, default="starter")
    payment_status = Column(String(32), nullable=False, default="active", index=True)
    stripe_customer_id = Column(String(128), nullable=True)
    stripe_subscription_id = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    vendors = relationship("Vendor", back_populates="broker", cascade="all, delete-orphan")


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(String(64), primary_key=True, index=True)
    broker_id = Column(String(64), ForeignKey("brokers.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    company_name = Column(String(256), nullable=False)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    must_change_password = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    broker = relationship("Broker", back_populates="vendors")
    deals = relationship("Deal", back_populates="vendor", cascade="all, delete-orphan")
