from __future__ import annotations

import json

import httpx
import pytest

from aql.numbering import (
    generate_job_number,
    get_next_job_sequence,
    increment_job_sequence,
    next_revision_number,
    parse_job_number,
)


def test_generate_pads_sequence_to_seven_digits():
    assert generate_job_number(16, 13893) == "16-0013893-1"
    assert generate_job_number(3, 7, revision=4) == "3-0000007-4"


def test_parse_job_number():
    assert parse_job_number("16-0013893-2") == (16, "0013893", 2)
    assert parse_job_number("not-a-number") is None
    assert parse_job_number(None) is None


def test_next_revision_keeps_sequence():
    assert next_revision_number("16-0013893-1", 16, 1) == ("16-0013893-2", 2)
    assert next_revision_number(None, 5, None) == ("5-1-2", 2)


@pytest.mark.asyncio
async def test_missing_counter_is_created_at_one(make_backend):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.method == "GET":
            return httpx.Response(406, json={"code": "PGRST116", "message": "no rows"})
        body = json.loads(request.content)
        assert body == [{"location_number": 9, "next_sequence": 1}]
        return httpx.Response(201, json=body[0])

    assert await get_next_job_sequence(make_backend(handler), 9) == 1
    assert [c.method for c in calls] == ["GET", "POST"]


@pytest.mark.asyncio
async def test_increment_writes_current_plus_one(make_backend):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"next_sequence": 41})
        assert request.method == "PATCH"
        assert request.url.params["location_number"] == "eq.16"
        return httpx.Response(200, json=json.loads(request.content))

    assert await increment_job_sequence(make_backend(handler), 16) == 42
