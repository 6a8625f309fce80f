from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from pydantic import BaseModel

from aql.validation import get_field_error, validate_job_form


def complete_form() -> Dict[str, Any]:
    return {
        "title": "Seat audit",
        "customerName": "Acme Seating",
        "location_id": "loc001",
        "parts": [{"partNumber": "PN-100"}],
        "safetyRequirements": [{"id": "gloves", "checked": False}, {"id": "glasses", "checked": True}],
        "inspectorIds": ["insp-1"],
        "quotedHours": 40,
        "jobType": "containment",
        "startDate": "2024-03-01",
    }


def test_empty_form_reports_every_field_in_order():
    errors = validate_job_form({})
    assert [e.field for e in errors] == [
        "title",
        "customerName",
        "location_id",
        "parts",
        "safetyRequirements",
        "inspectorIds",
        "quotedHours",
        "jobType",
        "startDate",
    ]
    assert errors[0].message == "Job title or contract number is required"


def test_complete_form_has_no_errors():
    assert validate_job_form(complete_form()) == []


def test_alternate_fields_satisfy_requirements():
    form = complete_form()
    del form["title"], form["quotedHours"], form["startDate"]
    form.update(contractNumber="C-77", estimatedHours=12, serviceStartDate="2024-04-01")
    assert validate_job_form(form) == []


def test_unchecked_safety_and_blank_part_number():
    form = complete_form()
    form["safetyRequirements"] = [{"id": "gloves", "checked": False}]
    form["parts"] = [{"partNumber": ""}, {"partNumber": "PN-2"}]
    errors = validate_job_form(form)
    assert [e.field for e in errors] == ["parts", "safetyRequirements"]
    assert get_field_error("parts", errors) == "At least one part number is required"
    assert get_field_error("jobType", errors) is None


@pytest.mark.parametrize("checked", ["true", 1])
def test_truthy_but_not_true_safety_flag_is_unchecked(checked):
    form = complete_form()
    form["safetyRequirements"] = [{"id": "gloves", "checked": checked}]
    errors = validate_job_form(form)
    assert [e.field for e in errors] == ["safetyRequirements"]


def test_validation_is_deterministic():
    form = {"customerName": "Acme", "inspectorIds": []}
    assert validate_job_form(form) == validate_job_form(form)


def test_non_mapping_input_is_an_empty_form():
    assert len(validate_job_form(None)) == 9


class _Part(BaseModel):
    partNumber: str


class _Safety(BaseModel):
    checked: bool


class _Form(BaseModel):
    title: str = ""
    customerName: str = ""
    location_id: Optional[str] = None
    parts: List[_Part] = []
    safetyRequirements: List[_Safety] = []
    inspectorIds: List[str] = []
    quotedHours: Optional[float] = None
    jobType: str = ""
    startDate: str = ""


def test_accepts_pydantic_models():
    form = _Form(
        title="T",
        customerName="C",
        location_id="L",
        parts=[_Part(partNumber="P")],
        safetyRequirements=[_Safety(checked=True)],
        inspectorIds=["i"],
        quotedHours=8,
        jobType="sort",
        startDate="2024-01-01",
    )
    assert validate_job_form(form) == []
    assert [e.field for e in validate_job_form(_Form())][0] == "title"
