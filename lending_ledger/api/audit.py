"""
Audit trail endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends

from .dependencies import LedgerSystem, get_ledger_system
from .schemas import AuditEventResponse
from ..audit import AuditTrail


router = APIRouter()


def _require_audit_trail(system: LedgerSystem) -> AuditTrail:
    if system.audit_trail is None:
        raise HTTPException(status_code=404, detail="Audit logging is disabled")
    return system.audit_trail


@router.get("/events")
async def get_audit_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: Optional[int] = 100,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Audit events, oldest first; scoped to one entity when both filters are given"""
    audit_trail = _require_audit_trail(system)

    if entity_type and entity_id:
        events = audit_trail.get_events_for_entity(entity_type, entity_id, limit)
    else:
        events = audit_trail.get_all_events(limit=limit)

    return {"events": [AuditEventResponse.from_event(event).model_dump() for event in events]}


@router.get("/integrity")
async def verify_audit_integrity(system: LedgerSystem = Depends(get_ledger_system)):
    """Re-check every event hash and the chain linking them"""
    return _require_audit_trail(system).verify_integrity()
