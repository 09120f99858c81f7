from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from ..database import Base


class TenantPropertyLink(Base):
    __tablename__ = "tenant_property_links"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    invite_id = Column(Integer, ForeignKey("property_invites.id"), nullable=True, index=True)
    unit_number = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    deactivated_at = Column(DateTime, nullable=True)

    tenant = relationship("User", back_populates="property_links")
    property = relationship("Property", back_populates="tenant_links")
    invite = relationship("PropertyInvite")

    # Historical (inactive) links may repeat; only one active link per pair
    __table_args__ = (
        Index(
            "ux_tenant_property_links_active_pair",
            "tenant_id",
            "property_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
