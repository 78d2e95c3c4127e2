"""Equipment and visual document models."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ccpp_api.db.base import Base


class Equipment(Base):
    """Plant equipment record."""

    __tablename__ = "equipments"

    external_id = Column(String(255), primary_key=True)
    name = Column(String(500), nullable=False)
    type = Column(String(100), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    is_immutable = Column(Boolean, nullable=False, default=False)
    checksum = Column(String(64), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    documents = relationship("Document", back_populates="equipment")

    def to_dict(self) -> dict:
        return {
            "externalId": self.external_id,
            "name": self.name,
            "type": self.type,
            "version": self.version,
            "isImmutable": self.is_immutable,
            "checksum": self.checksum,
        }


class Document(Base):
    """Visual evidence attached to equipment (photo + OCR + fingerprint)."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    equipment_id = Column(String(255), ForeignKey("equipments.external_id"), nullable=False, index=True)
    image_key = Column(String(500), nullable=True)  # object key in document image bucket
    content_type = Column(String(100), nullable=True)
    ocr_text = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    perceptual_hash = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    equipment = relationship("Equipment", back_populates="documents")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "equipmentId": self.equipment_id,
            "imageKey": self.image_key,
            "contentType": self.content_type,
            "ocrText": self.ocr_text,
            "description": self.description,
            "perceptualHash": self.perceptual_hash,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
