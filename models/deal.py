from sqlalchemy import JSON, Column, DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from database import Base


class Deal(Base):
    __tablename__ = "deals"

    id = Column(String(64), primary_key=True, index=True)
    vendor_id = Column(String(64), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False, index=True)
    broker_id = Column(String(64), ForeignKey("brokers.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_name = Column(String(256), nullable=False)
    equipment_type = Column(String(256), nullable=False)
    deal_amount = Column(Numeric(14, 2), nullable=False)
    current_stage = Column(String(32), nullable=False, default="new", index=True)
    # green / yellow / red snapshot taken at creation; never recomputed
    prequalification_score = Column(String(16), nullable=True)
    application_data = Column(JSON, nullable=True)
    last_activity = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    vendor = relationship("Vendor", back_populates="deals")
    notes = relationship("Note", back_populates="deal", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="deal", cascade="all, delete-orphan")


class Note(Base):
    __tablename__ = "notes"

    id = Column(String(64), primary_key=True, index=True)
    deal_id = Column(String(64), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String(64), nullable=False)
    author_type = Column(String(16), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    deal = relationship("Deal", back_populates="notes")


class Document(Base):
    __tablename__ = "documents"

    id = Column(String(64), primary_key=True, index=True)
    deal_id = Column(String(64), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(512), nullable=False)
    file_path = Column(String(1024), nullable=False)
    file_type = Column(String(128), nullable=False)
    uploaded_by = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    deal = relationship("Deal", back_populates="documents")
