# src/planledger/services/audit.py
"""
Audit events for legally significant actions.

Events are buffered while the unit of work is open and only written to the
``planledger.audit`` logger after the transaction commits, so a rolled-back
finalize never leaves an audit line behind.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List

from planledger.app_logger import get_audit_logger


class AuditEvent(str, enum.Enum):
    PLAN_FINALIZED = "PLAN_FINALIZED"
    VERSION_DISTRIBUTED = "VERSION_DISTRIBUTED"
    DECISION_RECORDED = "DECISION_RECORDED"
    DECISION_VOIDED = "DECISION_VOIDED"
    SIGNATURE_ADDED = "SIGNATURE_ADDED"
    SIGNATURE_DECLINED = "SIGNATURE_DECLINED"
    EXPORT_DOWNLOADED = "EXPORT_DOWNLOADED"


@dataclass
class AuditTrail:
    pending: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, event: AuditEvent, *, actor_user_id: str | None, **ids: Any) -> None:
        entry: Dict[str, Any] = {"audit_event": event.value, "actor_user_id": actor_user_id}
        entry.update({k: str(v) for k, v in ids.items() if v is not None})
        self.pending.append(entry)

    def flush(self) -> int:
        """Write buffered events; returns how many were written."""
        logger = get_audit_logger()
        written = 0
        while self.pending:
            entry = self.pending.pop(0)
            logger.info(entry["audit_event"], extra=entry)
            written += 1
        return written

    def discard(self) -> None:
        self.pending.clear()
