"""Job numbers: ``{location_number}-{sequence:07d}-{revision}``, e.g. ``16-0013893-1``."""
from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from .backend import BackendClient
from .errors import NotFoundError

logger = logging.getLogger(__name__)

_JOB_NUMBER_RE = re.compile(r"^(\d+)-(\d+)-(\d+)$")


async def get_next_job_sequence(client: BackendClient, location_number: int) -> int:
    """Current counter value for a location, creating the counter at 1."""
    try:
        result = await (
            client.table("job_counter")
            .select("next_sequence")
            .eq("location_number", location_number)
            .single()
            .execute()
        )
        return int(result.data["next_sequence"])
    except NotFoundError:
        logger.info("No job counter for location %s; starting at 1", location_number)
        created = await (
            client.table("job_counter")
            .insert([{"location_number": location_number, "next_sequence": 1}])
            .select()
            .single()
            .execute()
        )
        return int(created.data["next_sequence"])


async def increment_job_sequence(client: BackendClient, location_number: int) -> int:
    # read-then-write; the backend does not serialize concurrent increments
    current = await get_next_job_sequence(client, location_number)
    updated = await (
        client.table("job_counter")
        .update({"next_sequence": current + 1})
        .eq("location_number", location_number)
        .select()
        .single()
        .execute()
    )
    return int(updated.data["next_sequence"])


def generate_job_number(location_number: int, sequence: int, revision: int = 1) -> str:
    return f"{location_number}-{int(sequence):07d}-{revision}"


def parse_job_number(job_number: Optional[str]) -> Optional[Tuple[int, str, int]]:
    """(location_number, zero-padded sequence, revision) or None."""
    if not job_number:
        return None
    m = _JOB_NUMBER_RE.match(job_number)
    if not m:
        return None
    return int(m.group(1)), m.group(2), int(m.group(3))


def next_revision_number(job_number: Optional[str], location_number: Optional[int], revision: Optional[int]) -> Tuple[str, int]:
    """Job number and revision after one revision bump.

    The sequence part is kept from the existing number; ``"1"`` is used when
    the number does not parse.
    """
    new_revision = (revision or 1) + 1
    parsed = parse_job_number(job_number)
    sequence = parsed[1] if parsed else "1"
    return f"{location_number}-{sequence}-{new_revision}", new_revision
