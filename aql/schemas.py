from __future__ import annotations

from typing import Literal, Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


UserRole = Literal["admin", "manager", "supervisor", "inspector", "hr", "accounting", "customer"]
USER_ROLES: List[str] = ["admin", "manager", "supervisor", "inspector", "hr", "accounting", "customer"]

JOB_STATUSES: List[str] = ["draft", "pending", "assigned", "in-progress", "completed", "cancelled"]


class _Row(BaseModel):
    # backend ids arrive as uuids or integers depending on the table
    model_config = ConfigDict(coerce_numbers_to_str=True)


class TrailEvent(BaseModel):
    run_id: str
    step: str
    status: Literal["ok", "error"]
    ts_iso: str  # UTC ISO 8601
    ts_ns: int   # monotonic clock nanoseconds
    details: Dict[str, Any] = Field(default_factory=dict)
    prev_event_hash: str
    event_hash: str


class RunSummary(BaseModel):
    run_id: str
    command: str
    started_at: str
    finished_at: Optional[str]
    status: str
    error_message: Optional[str] = None


class Customer(_Row):
    id: Optional[str] = None
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    company: Optional[str] = None


class Location(_Row):
    id: Optional[str] = None
    name: str = ""
    location_number: Optional[int] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    created_at: Optional[str] = None


class Profile(_Row):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    location_id: Optional[str] = None
    is_available: bool = Field(True, alias="isAvailable")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class JobRecord(_Row):
    """A row of the ``jobs`` table with its nested objects decoded."""

    id: Optional[str] = None
    title: str = ""
    job_number: Optional[str] = None
    location_number: Optional[int] = None
    revision: Optional[int] = None
    status: str = "draft"
    customer: Optional[Customer] = None
    location: Optional[Dict[str, Any]] = None
    location_id: Optional[str] = None
    customer_id: Optional[str] = None
    inspector_id: Optional[str] = None
    inspector_ids: List[str] = Field(default_factory=list)
    supervisor_ids: List[str] = Field(default_factory=list)
    shifts_data: List[str] = Field(default_factory=list)
    form_data: Optional[Dict[str, Any]] = None
    current_tab: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class DashboardJob(_Row):
    job_id: str
    name: str
    customer_id: str
    location_id: Optional[str] = None
    location_name: str = "Unknown"
    status: str
    start_date: Optional[str] = None
    shifts: List[str] = Field(default_factory=list)


class JobCounter(BaseModel):
    location_number: int
    next_sequence: int


class DefectComment(_Row):
    id: str
    text: str
    user_id: str
    created_at: str


class Defect(_Row):
    id: Optional[str] = None
    job_id: str
    description: str
    severity: Literal["minor", "major", "critical"]
    status: Literal["open", "in-progress", "resolved", "closed"] = "open"
    reported_at: Optional[str] = None
    resolved_at: Optional[str] = None
    comments: List[DefectComment] = Field(default_factory=list)


class Timesheet(_Row):
    id: Optional[str] = None
    inspector_id: str
    inspector_name: str = "Unknown"
    job_id: str
    job_title: str = "Unknown Job"
    clock_in: str
    clock_out: Optional[str] = None
    total_hours: Optional[float] = None
    is_billable: bool = True
    is_approved: bool = False
    overtime: float = 0


class TimesheetEntry(_Row):
    timesheet_id: str
    user_id: str
    job_id: str
    hours: float
    is_billable: bool
    date: str
    notes: str = ""


class BillableHours(BaseModel):
    total: float
    billable: float
    unbillable: float


class AuditLog(_Row):
    log_id: str
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    timestamp: str
    details: str = ""


class Notification(_Row):
    id: Optional[str] = None
    user_id: str
    message: str
    type: str = "info"
    job_id: Optional[str] = None
    is_read: bool = False
    created_at: Optional[str] = None


class JobMetrics(BaseModel):
    total_inspected: int
    total_defects: int
    pending_defects: int
    open_tasks: int
    completion_rate: float


class DefectTrend(BaseModel):
    date: str
    category1: float
    category2: float


class DefectPareto(BaseModel):
    name: str
    june: int
    july: int
    august: int


class Task(_Row):
    task_id: str
    job_id: str
    name: str
    status: Literal["open", "in_progress", "completed"]
    progress: float
    quantity: int
    updated_at: str


class PerformanceMetric(BaseModel):
    date: str
    value: float
    average: Optional[float] = None


class FieldError(BaseModel):
    field: str
    message: str


class Report(_Row):
    id: Optional[str] = None
    name: str
    type: Literal["defect", "performance", "billing", "custom"]
    date_range: Dict[str, str]
    customer_id: Optional[str] = None
    format: Literal["CSV", "Excel", "PDF"] = "PDF"
    created_at: Optional[str] = None
    created_by: str = "system"
    data: Dict[str, Any] = Field(default_factory=dict)
