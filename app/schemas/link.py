from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class TenantLinkResponse(BaseModel):
    id: int
    tenant_id: int
    property_id: int
    unit_number: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
