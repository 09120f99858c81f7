from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base


class Property(Base):
    """A landlord-owned property. Read-only for the invite lifecycle."""
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    landlord_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    landlord = relationship("User", back_populates="properties")
    invites = relationship("PropertyInvite", back_populates="property")
    tenant_links = relationship("TenantPropertyLink", back_populates="property")
