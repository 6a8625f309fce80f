"""Fixed datasets substituted when the backend or reporting API is unreachable."""
from __future__ import annotations

from typing import List

from .schemas import (
    AuditLog,
    DashboardJob,
    DefectPareto,
    DefectTrend,
    JobMetrics,
    PerformanceMetric,
    Task,
    TimesheetEntry,
)


FALLBACK_JOBS: List[DashboardJob] = [
    DashboardJob(
        job_id="69-0010039",
        name="Seat Assembly Project",
        customer_id="cust001",
        location_id="loc001",
        location_name="Detroit, MI",
        status="Active",
        start_date="2023-10-15",
        shifts=["1st Shift", "2nd Shift", "3rd Shift"],
    ),
    DashboardJob(
        job_id="69-0010040",
        name="Dashboard Installation",
        customer_id="cust001",
        location_id="loc002",
        location_name="Chicago, IL",
        status="Pending",
        start_date="2023-11-01",
        shifts=["1st Shift", "2nd Shift"],
    ),
    DashboardJob(
        job_id="69-0010041",
        name="Door Panel Assembly",
        customer_id="cust001",
        location_id="loc001",
        location_name="Detroit, MI",
        status="Completed",
        start_date="2023-09-01",
        shifts=["1st Shift", "3rd Shift"],
    ),
    DashboardJob(
        job_id="69-0010042",
        name="Interior Trim Installation",
        customer_id="cust001",
        location_id="loc003",
        location_name="Toledo, OH",
        status="Active",
        start_date="2023-10-10",
        shifts=["2nd Shift"],
    ),
]

FALLBACK_METRICS = JobMetrics(
    total_inspected=8064,
    total_defects=1576,
    pending_defects=42,
    open_tasks=154,
    completion_rate=78.5,
)

FALLBACK_DEFECT_TRENDS: List[DefectTrend] = [
    DefectTrend(date="Jun 24", category1=2.8, category2=3.9),
    DefectTrend(date="Jul 10", category1=2.3, category2=3.2),
    DefectTrend(date="Jul 24", category1=3.6, category2=4.4),
    DefectTrend(date="Aug 8", category1=3.0, category2=3.5),
    DefectTrend(date="Aug 24", category1=3.3, category2=5.1),
    DefectTrend(date="Sep 1", category1=3.8, category2=5.3),
]

FALLBACK_PARETO: List[DefectPareto] = [
    DefectPareto(name="Headrest Functional", june=4, july=3, august=6),
    DefectPareto(name="White Locking Tab Lock", june=2, july=4, august=6),
    DefectPareto(name="Rat Holes Present", june=6, july=2, august=3),
]

FALLBACK_TASKS: List[Task] = [
    Task(task_id="1", job_id="69-0010039", name="Rat Holes", progress=17.5, quantity=2458, updated_at="2021-01-24", status="open"),
    Task(task_id="2", job_id="69-0010039", name="Hog Ring Missing", progress=10.8, quantity=1485, updated_at="2021-06-12", status="in_progress"),
    Task(task_id="3", job_id="69-0010039", name="Cup holder not loose", progress=21.3, quantity=1024, updated_at="2021-01-05", status="in_progress"),
    Task(task_id="4", job_id="69-0010039", name="Dirt/Debris in Seat back", progress=31.5, quantity=858, updated_at="2021-03-07", status="in_progress"),
    Task(task_id="5", job_id="69-0010039", name="White locking tab", progress=12.2, quantity=258, updated_at="2021-12-17", status="open"),
]

FALLBACK_PERFORMANCE: List[PerformanceMetric] = [
    PerformanceMetric(date="9/1", value=18),
    PerformanceMetric(date="9/2", value=22),
    PerformanceMetric(date="9/3", value=15),
    PerformanceMetric(date="9/4", value=28),
    PerformanceMetric(date="9/5", value=35),
    PerformanceMetric(date="9/6", value=30),
]

FALLBACK_TIMESHEETS: List[TimesheetEntry] = [
    TimesheetEntry(timesheet_id="1", user_id="user001", job_id="69-0010039", hours=8, is_billable=True, date="2023-09-01", notes="Regular inspection work"),
    TimesheetEntry(timesheet_id="2", user_id="user001", job_id="69-0010039", hours=2, is_billable=False, date="2023-09-01", notes="Team meeting"),
    TimesheetEntry(timesheet_id="3", user_id="user002", job_id="69-0010039", hours=6, is_billable=True, date="2023-09-02", notes="Defect reporting"),
    TimesheetEntry(timesheet_id="4", user_id="user002", job_id="69-0010040", hours=4, is_billable=True, date="2023-09-02", notes="Minimum billable hours"),
]

FALLBACK_AUDIT_LOGS: List[AuditLog] = [
    AuditLog(
        log_id="1",
        user_id="user001",
        action="update",
        entity_type="timesheet",
        entity_id="1",
        timestamp="2023-09-01T14:30:00Z",
        details="Changed billable status from true to false",
    ),
    AuditLog(
        log_id="2",
        user_id="user002",
        action="create",
        entity_type="defect",
        entity_id="def123",
        timestamp="2023-09-02T10:15:00Z",
        details="Created new defect report",
    ),
    AuditLog(
        log_id="3",
        user_id="user003",
        action="approve",
        entity_type="defect",
        entity_id="def124",
        timestamp="2023-09-03T09:45:00Z",
        details="Approved defect resolution",
    ),
]


def copies(items: list) -> list:
    """Independent copies so callers can mutate without touching the fixtures."""
    return [item.model_copy(deep=True) for item in items]
