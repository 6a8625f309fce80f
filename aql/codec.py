"""Single JSON boundary for rows going to and from the backend and local store.

Nested objects are stored as JSON strings in the ``*_data`` / ``*_json``
columns of ``jobs``. Nothing else in the package calls orjson on row data.
"""
from __future__ import annotations

from typing import Any, Dict, Type, TypeVar

import orjson
from pydantic import BaseModel, ValidationError

from .errors import DataShapeError
from .schemas import Customer, JobRecord


INVALID_FORMAT = "invalid format"

_NESTED_COLUMNS = {
    "customer": "customer_data",
    "location": "location_data",
    "form_data": "form_data_json",
}

M = TypeVar("M", bound=BaseModel)


def dumps(obj: Any) -> str:
    return orjson.dumps(obj, option=orjson.OPT_SORT_KEYS).decode()


def loads(text: Any) -> Any:
    if isinstance(text, (dict, list)):
        return text
    try:
        return orjson.loads(text)
    except (orjson.JSONDecodeError, TypeError) as e:
        raise DataShapeError(f"Unparsable JSON value: {e}") from e


def encode_model(model: BaseModel) -> str:
    return dumps(model.model_dump(mode="json", by_alias=False))


def decode_model(model_cls: Type[M], text: Any) -> M:
    data = loads(text)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise DataShapeError(f"Invalid {model_cls.__name__}: {e}") from e


def encode_job(job: JobRecord) -> Dict[str, Any]:
    """Flatten a job into the column layout of the ``jobs`` table."""
    row = job.model_dump(mode="json", exclude_none=True, exclude=set(_NESTED_COLUMNS))
    row["title"] = str(job.title or "")
    row["status"] = str(job.status or "draft").lower()
    if job.job_number is not None:
        row["job_number"] = str(job.job_number)
    if job.location_number is not None:
        row["location_number"] = int(job.location_number)
    if job.revision is not None:
        row["revision"] = int(job.revision)

    if job.customer is not None:
        row["customer_data"] = dumps(job.customer.model_dump(mode="json", exclude_none=True))
        row["customer_name"] = job.customer.name or ""
    if job.location is not None:
        row["location_data"] = dumps(job.location)
    if job.form_data is not None:
        row["form_data_json"] = dumps(job.form_data)
    return row


def decode_job(row: Dict[str, Any]) -> JobRecord:
    """Rebuild a job from a ``jobs`` row. Raises DataShapeError on bad columns."""
    data = dict(row)
    for field, column in _NESTED_COLUMNS.items():
        raw = data.pop(column, None)
        if raw is not None:
            data[field] = loads(raw)
        elif isinstance(data.get(field), str):
            # legacy rows stored the nested object directly as text
            data[field] = loads(data[field])

    customer = data.get("customer")
    if customer is None and data.get("customer_name"):
        data["customer"] = Customer(name=data["customer_name"])
    for key in ("id", "job_number"):
        if data.get(key) is not None:
            data[key] = str(data[key])
    for key in ("inspector_ids", "supervisor_ids", "shifts_data"):
        if data.get(key) is None:
            data.pop(key, None)

    try:
        return JobRecord.model_validate(data)
    except ValidationError as e:
        raise DataShapeError(f"Invalid job row {row.get('id')}: {e}") from e


def describe_form_data(value: Any) -> str:
    """Comma-separated form_data keys, or INVALID_FORMAT when unreadable."""
    if value is None:
        return "[None]"
    if isinstance(value, str):
        try:
            value = loads(value)
        except DataShapeError:
            return INVALID_FORMAT
    if not isinstance(value, dict):
        return INVALID_FORMAT
    return ", ".join(value.keys())
