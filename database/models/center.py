from sqlalchemy import Column, Integer, Text, TIMESTAMP, ForeignKey, Boolean, Numeric, Index
from sqlalchemy.sql import text as sql_text
from sqlalchemy.orm import relationship
from pgvector.sqlalchemy import Vector

from .base import Base

EMBEDDING_DIMENSIONS = 3072


class Center(Base):
    __tablename__ = 'center'

    id = Column(Integer, primary_key=True)

    # Core Identity
    center_name = Column(Text, nullable=False)
    center_type = Column(Text, nullable=False)  # welfare-center|suicide-prevention|addiction-management|youth-counseling|child-protection
    road_address = Column(Text)
    phone_number = Column(Text)

    # Geocoded position (WGS84)
    latitude = Column(Numeric(10, 7), nullable=False)
    longitude = Column(Numeric(10, 7), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))

    # Relationships
    programs = relationship("CenterProgram", back_populates="center", cascade="all, delete-orphan")
    embedding = relationship("CenterEmbedding", back_populates="center", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_center_lat_lng', 'latitude', 'longitude'),
    )


class CenterProgram(Base):
    __tablename__ = 'center_program'

    id = Column(Integer, primary_key=True)
    center_id = Column(Integer, ForeignKey('center.id', ondelete='CASCADE'), nullable=False)

    program_name = Column(Text, nullable=False)
    program_type = Column(Text)  # e.g. individual|group|family|online
    target_group = Column(Text)  # e.g. adult|youth|child|senior
    description = Column(Text)
    is_free = Column(Boolean, nullable=False, default=False)
    is_online_available = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    center = relationship("Center", back_populates="programs")

    __table_args__ = (
        Index('idx_center_program_center', 'center_id'),
    )


class CenterEmbedding(Base):
    """Precomputed description embedding of a center. Written by the batch job, read-only here."""
    __tablename__ = 'center_embedding'

    center_id = Column(Integer, ForeignKey('center.id', ondelete='CASCADE'), primary_key=True)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    model = Column(Text, nullable=False)
    content_hash = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))

    center = relationship("Center", back_populates="embedding")
