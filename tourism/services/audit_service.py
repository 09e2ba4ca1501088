import uuid, json
from sqlalchemy.orm import Session
from tourism.models.audit_log import AuditLog
from tourism.domain.parties import Caller

def log_audit(db: Session, actor: Caller | str, action: str, entity_type: str, entity_id: str, details: dict | None = None):
    """Adds the row to the session; the caller's transaction commits it."""
    if isinstance(actor, Caller):
        actor_id, actor_role = actor.id, actor.role
    else:
        actor_id, actor_role = actor, "system"
    db.add(AuditLog(
        id=str(uuid.uuid4()),
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details_json=json.dumps(details or {}, ensure_ascii=False, default=str),
    ))
