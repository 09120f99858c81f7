import json
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session

from ..models.audit import AuditEvent
from ..models.invite import PropertyInvite, InviteStatus


class AuditService:
    @staticmethod
    def log_event(
        db: Session,
        action: str,
        invite_id: Optional[int] = None,
        property_id: Optional[int] = None,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        actor_user_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            invite_id=invite_id,
            property_id=property_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            actor_user_id=actor_user_id,
            metadata_json=json.dumps(metadata, default=str) if metadata else None,
        )
        db.add(event)
        return event

    @staticmethod
    def log_invite_transition(
        db: Session,
        invite: PropertyInvite,
        action: str,
        from_status: InviteStatus,
        to_status: InviteStatus,
        actor_user_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        return AuditService.log_event(
            db=db,
            action=action,
            invite_id=invite.id,
            property_id=invite.property_id,
            from_status=from_status.value,
            to_status=to_status.value,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )

    @staticmethod
    def log_invite_created(
        db: Session,
        invite: PropertyInvite,
        actor_user_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditService.log_event(
            db=db,
            action="INVITE_CREATED",
            invite_id=invite.id,
            property_id=invite.property_id,
            to_status=invite.status,
            actor_user_id=actor_user_id,
            metadata={
                "delivery_method": invite.delivery_method,
                "expires_at": invite.expires_at.isoformat(),
            },
        )
