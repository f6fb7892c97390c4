import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    action: str
    schedule_id: str
    status: Optional[str] = None
    detail: Optional[str] = None
    actor: str = "orchestrator"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def record_audit_event(event: AuditEvent) -> None:
    """
    Audit trail for schedule state transitions. Log-only; operators read the
    persisted schedule record for current state.
    """
    logger.info(
        "audit_event action=%s schedule_id=%s status=%s actor=%s detail=%s",
        event.action,
        event.schedule_id,
        event.status,
        event.actor,
        event.detail,
    )
