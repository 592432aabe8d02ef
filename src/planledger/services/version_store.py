# src/planledger/services/version_store.py
"""
VersionStore: immutable, numbered plan snapshots.

Numbers are ``max + 1`` per plan, computed and inserted in the same
transaction while the plan's advisory lock (PostgreSQL) is held. The unique
(plan_instance_id, version_number) constraint turns any race that slips
through into a ConflictError, and the finalizer retries the whole operation.
"""
from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from planledger.app_logger import get_logger
from planledger.core.config import Settings
from planledger.db.base import utcnow
from planledger.db.models import (
    PlanVersion,
    PlanVersionStatus,
    SignatureRole,
    SignatureStatus,
)
from planledger.exceptions import ConflictError, InvalidStateError, version_not_found
from planledger.repositories import RepositoryFactory

from .audit import AuditEvent, AuditTrail
from .common import clean_text

logger = get_logger(__name__)


class VersionStore:
    def __init__(self, repos: RepositoryFactory, cfg: Settings, audit: AuditTrail) -> None:
        self.repos = repos
        self.cfg = cfg
        self.audit = audit

    async def lock_plan(self, plan_instance_id: uuid.UUID) -> bool:
        """Serialize version writes for the plan until the transaction ends."""
        return await self.repos.versions.lock_plan(plan_instance_id)

    async def next_version_number(self, plan_instance_id: uuid.UUID) -> int:
        current = await self.repos.versions.max_version_number(plan_instance_id)
        return (current or 0) + 1

    async def create_version(
        self,
        plan_instance_id: uuid.UUID,
        snapshot: Dict[str, Any],
        finalized_by_user_id: str,
        version_notes: Optional[str] = None,
    ) -> PlanVersion:
        """
        Persist a new FINAL version of the plan.

        The stored snapshot is a deep copy of ``snapshot`` stamped with
        ``finalizedAt`` and ``versionNumber``; the caller's dict is untouched.

        Raises:
            ConflictError: the version number was taken by a concurrent finalize
        """
        await self.lock_plan(plan_instance_id)
        number = await self.next_version_number(plan_instance_id)
        finalized_at = utcnow()

        stored = copy.deepcopy(snapshot)
        stored["finalizedAt"] = finalized_at.isoformat()
        stored["versionNumber"] = number

        version = PlanVersion(
            plan_instance_id=plan_instance_id,
            version_number=number,
            status=PlanVersionStatus.FINAL,
            snapshot_json=stored,
            finalized_at=finalized_at,
            finalized_by_user_id=finalized_by_user_id,
            version_notes=clean_text(version_notes),
        )
        try:
            await self.repos.versions.add(version)
        except IntegrityError as exc:
            raise ConflictError(
                "Version number already taken; retry the finalize",
                details={"planInstanceId": str(plan_instance_id), "versionNumber": number},
                cause=exc,
            ) from exc

        logger.info(f"Created plan version {version.id} (plan {plan_instance_id}, v{number})")
        return version

    async def supersede_active(self, plan_instance_id: uuid.UUID) -> int:
        count = await self.repos.versions.supersede_active(plan_instance_id)
        if count:
            logger.info(f"Superseded {count} prior version(s) of plan {plan_instance_id}")
        return count

    async def get_version(self, version_id: uuid.UUID) -> PlanVersion:
        version = await self.repos.versions.get_by_id(version_id, fresh=True)
        if version is None:
            raise version_not_found(version_id)
        return version

    async def get_version_detail(self, version_id: uuid.UUID) -> PlanVersion:
        version = await self.repos.versions.get_detail(version_id)
        if version is None:
            raise version_not_found(version_id)
        return version

    async def list_versions(self, plan_instance_id: uuid.UUID) -> List[PlanVersion]:
        return await self.repos.versions.list_for_plan(plan_instance_id)

    async def mark_distributed(self, version_id: uuid.UUID, by_user_id: str) -> PlanVersion:
        """
        FINAL -> DISTRIBUTED.

        Raises:
            NotFoundError: unknown version
            InvalidStateError: already distributed, superseded, or the
                case manager has not signed the version's packet
        """
        version = await self.get_version(version_id)
        self._require_final(version)

        if self.cfg.REQUIRE_CASE_MANAGER_SIGNATURE_TO_DISTRIBUTE:
            packet = await self.repos.packets.get_for_version(version.id)
            if packet is not None and not any(
                r.role == SignatureRole.CASE_MANAGER and r.status == SignatureStatus.SIGNED
                for r in packet.records
            ):
                raise InvalidStateError(
                    "Case manager signature is required before distribution",
                    "ERR_VERSION_REQUIRES_CM_SIGNATURE",
                    {"versionId": str(version.id), "packetId": str(packet.id)},
                )

        moved = await self.repos.versions.mark_distributed_if_final(
            version.id, by_user_id, utcnow()
        )
        version = await self.get_version(version_id)
        if not moved:
            # lost a race: report whatever state won
            self._require_final(version)

        logger.info(f"Distributed plan version {version.id} by {by_user_id}")
        self.audit.record(
            AuditEvent.VERSION_DISTRIBUTED,
            actor_user_id=by_user_id,
            plan_version_id=version.id,
            plan_instance_id=version.plan_instance_id,
        )
        return version

    @staticmethod
    def _require_final(version: PlanVersion) -> None:
        if version.status == PlanVersionStatus.DISTRIBUTED:
            raise InvalidStateError(
                "Version already distributed",
                "ERR_VERSION_ALREADY_DISTRIBUTED",
                {"versionId": str(version.id)},
            )
        if version.status != PlanVersionStatus.FINAL:
            raise InvalidStateError(
                "Only FINAL versions can be distributed",
                "ERR_VERSION_STATUS_INVALID",
                {"versionId": str(version.id), "status": version.status.value},
            )
