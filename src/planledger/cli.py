#!/usr/bin/env python3
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click
from rich.console import Console
from rich.table import Table

from planledger.app_logger import setup_logging
from planledger.core.config import settings
from planledger.db.models import DecisionStatus, DecisionType
from planledger.exceptions import PlanLedgerError
from planledger.services import (
    DecisionFilters,
    ExpirySweeper,
    PlanFinalizer,
    UnitOfWork,
    unit_of_work_factory,
)

console = Console()
T = TypeVar("T")


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _run(work: Callable[[Callable[[], UnitOfWork]], Awaitable[T]]) -> T:
    """Run one async job against a fresh engine and dispose it afterwards."""
    from planledger.db.session import build_engine, build_sessionmaker

    async def _main() -> T:
        engine = build_engine(settings)
        try:
            return await work(unit_of_work_factory(build_sessionmaker(engine), settings))
        finally:
            await engine.dispose()

    try:
        return asyncio.run(_main())
    except PlanLedgerError as exc:
        console.print(f"[red]{exc.error_code}[/]: {exc.message}")
        if exc.details:
            console.print_json(data=exc.details)
        raise click.Abort() from exc


def _uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise click.BadParameter(f"not a UUID: {value}") from exc


def show_table(items: list[dict[str, Any]], columns: list[str], title: Optional[str] = None) -> None:
    t = Table(show_lines=False, title=title)
    for col in columns:
        t.add_column(col)
    for it in items:
        t.add_row(*("" if it.get(c) is None else str(it.get(c)) for c in columns))
    console.print(t)


def _value(v: Any) -> Any:
    return getattr(v, "value", v)


# ------------------------------
# Root CLI
# ------------------------------
@click.group(help="Plan ledger: plan versions, decision ledger and signature packets")
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level: Optional[str]) -> None:
    """Top-level command group."""
    setup_logging(log_level or settings.LOG_LEVEL, settings.LOG_JSON)


@cli.command("serve", help="Run the HTTP API with uvicorn")
@click.option("--host", default="0.0.0.0")
@click.option("--port", default=8000, type=int)
@click.option("--reload", is_flag=True, default=False)
def serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    uvicorn.run("planledger.main:create_app", factory=True, host=host, port=port, reload=reload)


@cli.command("init-db", help="Create all tables directly (dev/test; use alembic in production)")
def init_db() -> None:
    from planledger.db.base import Base
    from planledger.db import models  # noqa: F401  (registers tables)
    from planledger.db.session import build_engine

    async def _create() -> None:
        engine = build_engine(settings)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        finally:
            await engine.dispose()

    asyncio.run(_create())
    console.print("[green]Tables created[/]")


@cli.command("sweep-expired", help="Expire OPEN signature packets past their expiry")
def sweep_expired() -> None:
    async def _sweep(uow_factory):
        return await ExpirySweeper(uow_factory, 0).sweep_once()

    expired = _run(_sweep)
    console.print(f"Expired [cyan]{len(expired)}[/] packet(s)")
    for packet_id in expired:
        console.print(f"  {packet_id}")


@cli.command("versions", help="List the versions of a plan")
@click.argument("plan_id")
def versions(plan_id: str) -> None:
    pid = _uuid(plan_id)

    async def _list(uow_factory):
        async with uow_factory() as uow:
            return [
                {
                    "id": v.id,
                    "version": v.version_number,
                    "status": _value(v.status),
                    "finalized_at": v.finalized_at.isoformat(),
                    "finalized_by": v.finalized_by_user_id,
                    "distributed_at": v.distributed_at.isoformat() if v.distributed_at else None,
                }
                for v in await uow.versions.list_versions(pid)
            ]

    show_table(
        _run(_list),
        ["id", "version", "status", "finalized_at", "finalized_by", "distributed_at"],
        title=f"Plan {pid}",
    )


@cli.command("decisions", help="Query the decision ledger of a plan")
@click.argument("plan_id")
@click.option("--type", "decision_type", type=click.Choice([t.value for t in DecisionType]), default=None)
@click.option("--status", "status", type=click.Choice([s.value for s in DecisionStatus]), default=None)
@click.option("--section", default=None)
def decisions(plan_id: str, decision_type: Optional[str], status: Optional[str], section: Optional[str]) -> None:
    pid = _uuid(plan_id)
    filters = DecisionFilters(
        decision_type=DecisionType(decision_type) if decision_type else None,
        status=DecisionStatus(status) if status else None,
        section_key=section,
    )

    async def _query(uow_factory):
        async with uow_factory() as uow:
            return [
                {
                    "id": e.id,
                    "type": _value(e.decision_type),
                    "status": _value(e.status),
                    "section": e.section_key,
                    "decided_at": e.decided_at.isoformat(),
                    "summary": e.summary,
                }
                for e in await uow.decisions.query(pid, filters)
            ]

    show_table(_run(_query), ["id", "type", "status", "section", "decided_at", "summary"])


@cli.command("packet", help="Show a signature packet and its records")
@click.argument("packet_id")
def packet(packet_id: str) -> None:
    pkid = _uuid(packet_id)

    async def _get(uow_factory):
        async with uow_factory() as uow:
            p = await uow.signatures.get_packet(pkid)
            head = {
                "status": _value(p.status),
                "required_roles": ", ".join(p.required_roles),
                "expires_at": p.expires_at.isoformat() if p.expires_at else None,
                "completed_at": p.completed_at.isoformat() if p.completed_at else None,
            }
            rows = [
                {
                    "id": r.id,
                    "role": _value(r.role),
                    "signer": r.signer_name,
                    "status": _value(r.status),
                    "method": _value(r.method) if r.method else None,
                }
                for r in p.records
            ]
            return head, rows

    head, rows = _run(_get)
    console.print_json(data=head)
    show_table(rows, ["id", "role", "signer", "status", "method"], title=f"Packet {pkid}")


@cli.command("finalize", help="Finalize a plan into a new immutable version")
@click.argument("plan_id")
@click.option("--user", "user_id", required=True, help="Acting user id")
@click.option("--notes", default=None)
@click.option("--packet/--no-packet", "create_packet", default=False, help="Open a signature packet")
@click.option("--role", "roles", multiple=True, help="Required signature role (repeatable)")
def finalize(plan_id: str, user_id: str, notes: Optional[str], create_packet: bool, roles: tuple[str, ...]) -> None:
    pid = _uuid(plan_id)

    async def _finalize(uow_factory):
        result = await PlanFinalizer(uow_factory, settings).finalize(
            pid,
            user_id,
            version_notes=notes,
            create_signature_packet=create_packet,
            required_signature_roles=list(roles) or None,
        )
        return result.version.id, result.version.version_number, result.signature_packet

    version_id, number, pkt = _run(_finalize)
    console.print(f"[green]Finalized[/] plan {pid} as v{number} ({version_id})")
    if pkt is not None:
        console.print(f"Signature packet {pkt.id} ({', '.join(pkt.required_roles)})")


@cli.command("distribute", help="Mark a FINAL version as distributed")
@click.argument("version_id")
@click.option("--user", "user_id", required=True, help="Acting user id")
def distribute(version_id: str, user_id: str) -> None:
    vid = _uuid(version_id)

    async def _distribute(uow_factory):
        async with uow_factory() as uow:
            v = await uow.versions.mark_distributed(vid, user_id)
            return v.version_number

    number = _run(_distribute)
    console.print(f"[green]Distributed[/] v{number} ({vid})")


if __name__ == "__main__":
    cli()
