from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..deps import get_tenant_link_service
from ..models.user import User
from ..schemas.link import TenantLinkResponse
from ..services.tenant_links import TenantLinkService
from .auth import require_auth, require_landlord

router = APIRouter(tags=["links"])


@router.get("/links/me", response_model=List[TenantLinkResponse])
def my_links(
    current_user: User = Depends(require_auth),
    links: TenantLinkService = Depends(get_tenant_link_service),
):
    return links.links_for_tenant(current_user)


@router.get("/links/{link_id}", response_model=TenantLinkResponse)
def get_link(
    link_id: int,
    current_user: User = Depends(require_auth),
    links: TenantLinkService = Depends(get_tenant_link_service),
):
    link = links.get_link(link_id, current_user)
    if link is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found")
    return link


@router.get("/properties/{property_id}/links", response_model=List[TenantLinkResponse])
def property_links(
    property_id: int,
    current_user: User = Depends(require_landlord),
    links: TenantLinkService = Depends(get_tenant_link_service),
):
    result = links.links_for_property(property_id, current_user)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view tenants of properties you own.",
        )
    return result
