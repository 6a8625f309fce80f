from __future__ import annotations

import pytest

from aql import codec
from aql.errors import DataShapeError
from aql.schemas import Customer, JobRecord


def test_encode_job_flattens_nested_objects():
    job = JobRecord(
        title="Door audit",
        job_number=123,
        location_number="16",
        revision="2",
        status="Pending",
        customer=Customer(name="Acme", email="ops@acme.test"),
        location={"name": "Detroit", "address": "1 Main St"},
        form_data={"contractNumber": "C-1"},
    )
    row = codec.encode_job(job)

    assert row["status"] == "pending"
    assert row["job_number"] == "123"
    assert row["location_number"] == 16
    assert row["revision"] == 2
    assert row["customer_name"] == "Acme"
    assert codec.loads(row["customer_data"]) == {"name": "Acme", "email": "ops@acme.test"}
    assert codec.loads(row["location_data"])["address"] == "1 Main St"
    assert codec.loads(row["form_data_json"]) == {"contractNumber": "C-1"}
    assert "customer" not in row and "form_data" not in row


def test_decode_job_reads_string_and_legacy_columns():
    job = codec.decode_job(
        {
            "id": 7,
            "title": "Legacy",
            "status": "draft",
            "customer_name": "Acme",
            "location": '{"name": "Toledo"}',
            "form_data_json": '{"jobType": "sort"}',
            "inspector_ids": None,
        }
    )
    assert job.id == "7"
    assert job.customer.name == "Acme"
    assert job.location == {"name": "Toledo"}
    assert job.form_data == {"jobType": "sort"}
    assert job.inspector_ids == []


def test_decode_job_rejects_unparsable_column():
    with pytest.raises(DataShapeError):
        codec.decode_job({"id": "1", "form_data_json": "{not json"})


def test_describe_form_data():
    assert codec.describe_form_data(None) == "[None]"
    assert codec.describe_form_data({"a": 1, "b": 2}) == "a, b"
    assert codec.describe_form_data('{"x": true}') == "x"
    assert codec.describe_form_data("{broken") == codec.INVALID_FORMAT
    assert codec.describe_form_data("[1, 2]") == codec.INVALID_FORMAT
