from __future__ import annotations

from typing import Any, List, Mapping, Optional

from pydantic import BaseModel

from .schemas import FieldError


def _as_mapping(form: Any) -> Mapping[str, Any]:
    if isinstance(form, BaseModel):
        return form.model_dump(by_alias=True)
    if isinstance(form, Mapping):
        return form
    return {}


def _first_part_number(parts: Any) -> Any:
    if not parts or not isinstance(parts, (list, tuple)):
        return None
    first = parts[0]
    if isinstance(first, Mapping):
        return first.get("partNumber")
    return getattr(first, "partNumber", None)


def _any_checked(requirements: Any) -> bool:
    if not requirements or not isinstance(requirements, (list, tuple)):
        return False
    for req in requirements:
        checked = req.get("checked") if isinstance(req, Mapping) else getattr(req, "checked", None)
        if checked is True:
            return True
    return False


def validate_job_form(form: Any) -> List[FieldError]:
    """Required-field check for the job creation form.

    Pure and deterministic; the result is ordered title, customerName,
    location_id, parts, safetyRequirements, inspectorIds, quotedHours,
    jobType, startDate. Anything that is not a mapping or model is treated
    as an empty form.
    """
    data = _as_mapping(form)
    errors: List[FieldError] = []

    if not data.get("title") and not data.get("contractNumber"):
        errors.append(FieldError(field="title", message="Job title or contract number is required"))

    if not data.get("customerName"):
        errors.append(FieldError(field="customerName", message="Customer name is required"))

    if not data.get("location_id"):
        errors.append(FieldError(field="location_id", message="A valid location must be selected"))

    if not _first_part_number(data.get("parts")):
        errors.append(FieldError(field="parts", message="At least one part number is required"))

    if not _any_checked(data.get("safetyRequirements")):
        errors.append(FieldError(field="safetyRequirements", message="At least one safety requirement must be selected"))

    if not data.get("inspectorIds"):
        errors.append(FieldError(field="inspectorIds", message="At least one inspector must be assigned"))

    if not data.get("estimatedHours") and not data.get("quotedHours"):
        errors.append(FieldError(field="quotedHours", message="Quoted hours are required"))

    if not data.get("jobType"):
        errors.append(FieldError(field="jobType", message="Job type is required"))

    if not data.get("startDate") and not data.get("serviceStartDate"):
        errors.append(FieldError(field="startDate", message="Start date is required"))

    return errors


def get_field_error(field: str, errors: List[FieldError]) -> Optional[str]:
    for err in errors:
        if err.field == field:
            return err.message
    return None
