"""Local sqlite store used as the offline/demo fallback and for run bookkeeping."""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    create_engine,
    func,
    select,
    update,
)
from sqlalchemy.orm import declarative_base, sessionmaker
import datetime as _dt

from . import codec
from .schemas import AuditLog, TimesheetEntry, TrailEvent
from .settings import settings
from . import samples

_DB_PATH = settings.local_store_path()
_DB_PATH.parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(f"sqlite:///{_DB_PATH}", echo=False, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()


def utc_now_iso() -> str:
    return _dt.datetime.now(tz=_dt.timezone.utc).isoformat()


class MaintenanceRun(Base):
    __tablename__ = "maintenance_runs"
    run_id = Column(String, primary_key=True)
    command = Column(Text, nullable=False)
    started_at = Column(String, nullable=False)
    finished_at = Column(String, nullable=True)
    status = Column(String, nullable=False)
    error_message = Column(Text, nullable=True)


class TrailRecord(Base):
    __tablename__ = "trail_events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String, nullable=False)
    step = Column(String, nullable=False)
    status = Column(String, nullable=False)
    ts_iso = Column(String, nullable=False)
    ts_ns = Column(Integer, nullable=False)
    prev_event_hash = Column(String, nullable=False)
    event_hash = Column(String, nullable=False)
    details_json = Column(Text, nullable=False)


class LocalTimesheet(Base):
    __tablename__ = "local_timesheets"
    timesheet_id = Column(String, primary_key=True)
    job_id = Column(String, nullable=False)
    payload = Column(Text, nullable=False)


class LocalAuditLog(Base):
    __tablename__ = "local_audit_logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    log_id = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    payload = Column(Text, nullable=False)


# Create tables if they do not exist
Base.metadata.create_all(engine)


# Maintenance runs and their trails

def create_run(command: str) -> str:
    run_id = str(uuid.uuid4())
    with SessionLocal() as session:
        session.add(
            MaintenanceRun(
                run_id=run_id,
                command=command,
                started_at=utc_now_iso(),
                finished_at=None,
                status="running",
                error_message=None,
            )
        )
        session.commit()
    return run_id


def finish_run(run_id: str, status: str, error_message: Optional[str] = None) -> None:
    with SessionLocal() as session:
        stmt = (
            update(MaintenanceRun)
            .where(MaintenanceRun.run_id == run_id)
            .values(
                finished_at=utc_now_iso(),
                status=status,
                error_message=error_message,
            )
        )
        session.execute(stmt)
        session.commit()


def get_run(run_id: str) -> Optional[Dict[str, Any]]:
    with SessionLocal() as session:
        row = session.get(MaintenanceRun, run_id)
        if not row:
            return None
        return {
            "run_id": row.run_id,
            "command": row.command,
            "started_at": row.started_at,
            "finished_at": row.finished_at,
            "status": row.status,
            "error_message": row.error_message,
        }


def append_trail(event: TrailEvent) -> None:
    with SessionLocal() as session:
        session.add(
            TrailRecord(
                run_id=event.run_id,
                step=event.step,
                status=event.status,
                ts_iso=event.ts_iso,
                ts_ns=event.ts_ns,
                prev_event_hash=event.prev_event_hash,
                event_hash=event.event_hash,
                details_json=codec.dumps(event.details),
            )
        )
        session.commit()


def get_last_trail_hash(run_id: str) -> Optional[str]:
    with SessionLocal() as session:
        stmt = select(TrailRecord).where(TrailRecord.run_id == run_id).order_by(TrailRecord.id.desc()).limit(1)
        row = session.execute(stmt).scalars().first()
        return row.event_hash if row else None


def get_trail_steps(run_id: str) -> List[str]:
    with SessionLocal() as session:
        stmt = select(TrailRecord.step).where(TrailRecord.run_id == run_id).order_by(TrailRecord.id.asc())
        return list(session.execute(stmt).scalars().all())


# Offline fallback data

def save_timesheet_entries(entries: List[TimesheetEntry]) -> int:
    with SessionLocal() as session:
        for entry in entries:
            session.merge(
                LocalTimesheet(timesheet_id=entry.timesheet_id, job_id=entry.job_id, payload=codec.encode_model(entry))
            )
        session.commit()
    return len(entries)


def timesheet_entries(job_id: Optional[str] = None) -> List[TimesheetEntry]:
    with SessionLocal() as session:
        stmt = select(LocalTimesheet).order_by(LocalTimesheet.timesheet_id.asc())
        if job_id:
            stmt = stmt.where(LocalTimesheet.job_id == job_id)
        rows = session.execute(stmt).scalars().all()
        return [codec.decode_model(TimesheetEntry, r.payload) for r in rows]


def update_timesheet_entry(timesheet_id: str, is_billable: bool, notes: str = "") -> Optional[TimesheetEntry]:
    with SessionLocal() as session:
        row = session.get(LocalTimesheet, timesheet_id)
        if not row:
            return None
        entry = codec.decode_model(TimesheetEntry, row.payload)
        entry.is_billable = is_billable
        entry.notes = notes or entry.notes
        row.payload = codec.encode_model(entry)
        session.commit()
        return entry


def append_audit_log(log: AuditLog) -> None:
    with SessionLocal() as session:
        session.add(
            LocalAuditLog(
                log_id=log.log_id,
                entity_type=log.entity_type,
                entity_id=log.entity_id,
                action=log.action,
                payload=codec.encode_model(log),
            )
        )
        session.commit()


def audit_logs(entity_type: Optional[str] = None, entity_id: Optional[str] = None) -> List[AuditLog]:
    with SessionLocal() as session:
        stmt = select(LocalAuditLog).order_by(LocalAuditLog.id.asc())
        if entity_type:
            stmt = stmt.where(LocalAuditLog.entity_type == entity_type)
        if entity_id:
            stmt = stmt.where(LocalAuditLog.entity_id == entity_id)
        rows = session.execute(stmt).scalars().all()
        return [codec.decode_model(AuditLog, r.payload) for r in rows]


def _count(model) -> int:
    with SessionLocal() as session:
        return int(session.execute(select(func.count()).select_from(model)).scalar_one())


def seed_defaults() -> Dict[str, int]:
    """Load the sample datasets into empty tables. Tables with rows are left alone."""
    seeded = {"timesheets": 0, "audit_logs": 0}
    if _count(LocalTimesheet) == 0:
        seeded["timesheets"] = save_timesheet_entries(samples.FALLBACK_TIMESHEETS)
    if _count(LocalAuditLog) == 0:
        for log in samples.FALLBACK_AUDIT_LOGS:
            append_audit_log(log)
        seeded["audit_logs"] = len(samples.FALLBACK_AUDIT_LOGS)
    return seeded
