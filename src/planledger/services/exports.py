# src/planledger/services/exports.py
"""
ExportCatalog: bookkeeping for rendered plan artifacts.

Rendering happens elsewhere; this only records what was produced under
``EXPORT_STORAGE_DIR`` and resolves a record back to its file for download.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional

from planledger.app_logger import get_logger
from planledger.core.config import Settings
from planledger.db.base import utcnow
from planledger.db.models import ExportFormat, PlanExport
from planledger.exceptions import NotFoundError, ValidationError, version_not_found
from planledger.repositories import RepositoryFactory

from .audit import AuditEvent, AuditTrail
from .common import coerce_enum, require_text

logger = get_logger(__name__)

MIME_TYPES = {
    ExportFormat.PDF: "application/pdf",
    ExportFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ExportFormat.HTML: "text/html",
}


@dataclass(frozen=True)
class ExportDownload:
    export: PlanExport
    path: Path


def export_not_found(export_id: uuid.UUID, reason: str = "Export not found") -> NotFoundError:
    return NotFoundError(reason, "ERR_EXPORT_NOT_FOUND", {"exportId": str(export_id)})


class ExportCatalog:
    def __init__(self, repos: RepositoryFactory, cfg: Settings, audit: AuditTrail) -> None:
        self.repos = repos
        self.cfg = cfg
        self.audit = audit

    @property
    def storage_root(self) -> Path:
        return Path(self.cfg.EXPORT_STORAGE_DIR).resolve()

    async def record_export(
        self,
        plan_version_id: uuid.UUID,
        storage_key: str,
        file_name: str,
        exported_by_user_id: str,
        *,
        format: ExportFormat | str = ExportFormat.PDF,
        file_size_bytes: Optional[int] = None,
        mime_type: Optional[str] = None,
    ) -> PlanExport:
        if not await self.repos.versions.exists(plan_version_id):
            raise version_not_found(plan_version_id)

        fmt = coerce_enum(ExportFormat, format, "format")
        key = self._check_storage_key(require_text(storage_key, "storageKey"))
        if file_size_bytes is not None and file_size_bytes < 0:
            raise ValidationError("fileSizeBytes must not be negative", details={"field": "fileSizeBytes"})

        export = await self.repos.exports.create(
            plan_version_id=plan_version_id,
            format=fmt,
            storage_key=key,
            file_name=require_text(file_name, "fileName"),
            file_size_bytes=file_size_bytes,
            mime_type=(mime_type or "").strip() or MIME_TYPES[fmt],
            exported_at=utcnow(),
            exported_by_user_id=exported_by_user_id,
        )
        logger.info(f"Recorded {fmt.value} export {export.id} for version {plan_version_id}")
        return export

    async def list_exports(self, plan_version_id: uuid.UUID) -> List[PlanExport]:
        return await self.repos.exports.list_for_version(plan_version_id)

    async def get_export(self, export_id: uuid.UUID) -> PlanExport:
        export = await self.repos.exports.get_by_id(export_id)
        if export is None:
            raise export_not_found(export_id)
        return export

    async def resolve_download(self, export_id: uuid.UUID, actor_user_id: str) -> ExportDownload:
        export = await self.get_export(export_id)
        path = (self.storage_root / export.storage_key).resolve()
        if not path.is_relative_to(self.storage_root) or not path.is_file():
            raise export_not_found(export_id, "Export file not found on disk")

        version = await self.repos.versions.get_by_id(export.plan_version_id)
        self.audit.record(
            AuditEvent.EXPORT_DOWNLOADED,
            actor_user_id=actor_user_id,
            export_id=export.id,
            plan_version_id=export.plan_version_id,
            plan_instance_id=version.plan_instance_id if version else None,
        )
        return ExportDownload(export=export, path=path)

    @staticmethod
    def _check_storage_key(key: str) -> str:
        parts = PurePosixPath(key.replace("\\", "/"))
        if parts.is_absolute() or ".." in parts.parts:
            raise ValidationError(
                "storageKey must be a relative path inside the export store",
                details={"field": "storageKey", "value": key},
            )
        return str(parts)
