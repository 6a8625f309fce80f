from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .backend import BackendClient
from .schemas import Location, Profile

logger = logging.getLogger(__name__)


async def get_locations(client: BackendClient) -> List[Location]:
    result = await client.table("locations").select("*").order("name").execute()
    return [Location.model_validate(row) for row in result.data or []]


async def get_locations_ordered(client: BackendClient) -> List[Location]:
    """Locations by ``location_number``, the order used in pickers."""
    result = await client.table("locations").select("*").order("location_number").execute()
    return [Location.model_validate(row) for row in result.data or []]


def format_location_display(location: Optional[Location]) -> str:
    if location is None:
        return "Unknown Location"
    number = f"{location.location_number:02d}" if location.location_number else "??"
    return f"{number} - {location.name}"


async def create_location(client: BackendClient, location: Location) -> Location:
    row = location.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})
    result = await client.table("locations").insert([row]).select().execute()
    rows = result.data or []
    logger.info("Created location %s", location.name)
    return Location.model_validate(rows[0]) if rows else location


async def get_location_by_id(client: BackendClient, location_id: str) -> Location:
    result = await client.table("locations").select("*").eq("id", location_id).single().execute()
    return Location.model_validate(result.data)


async def get_inspectors_by_location(
    client: BackendClient,
    location_id: Optional[str],
    include_all_locations: bool = False,
) -> List[Dict[str, Any]]:
    """Inspector profiles for a location.

    Each row gains ``isAvailable`` (default True when the column is null) and
    ``location_matches``. With ``include_all_locations`` every inspector is
    returned and ``location_matches`` tells them apart.
    """
    if not location_id and not include_all_locations:
        logger.warning("No location id given for inspector lookup")
        return []

    query = client.table("profiles").select("*").eq("role", "inspector")
    if not include_all_locations:
        query = query.eq("location_id", location_id)
    result = await query.execute()
    profiles = result.data or []
    logger.info(
        "Found %d inspectors%s",
        len(profiles),
        " (all locations)" if include_all_locations else f" for location {location_id}",
    )
    return [
        {
            **row,
            "isAvailable": row.get("isAvailable") if row.get("isAvailable") is not None else True,
            "location_matches": row.get("location_id") == location_id,
        }
        for row in profiles
    ]


async def get_available_inspectors(client: BackendClient) -> List[Profile]:
    result = await (
        client.table("profiles")
        .select("*")
        .eq("role", "inspector")
        .eq("isAvailable", True)
        .execute()
    )
    return [Profile.model_validate(row) for row in result.data or []]


async def link_inspector_location(client: BackendClient, inspector_id: str, location_id: str) -> bool:
    """Record that an inspector works at a location. True when a link was added."""
    existing = await (
        client.table("inspector_locations")
        .select("inspector_id")
        .eq("inspector_id", inspector_id)
        .eq("location_id", location_id)
        .limit(1)
        .execute()
    )
    if existing.data:
        return False
    await client.table("inspector_locations").insert([{"inspector_id": inspector_id, "location_id": location_id}]).execute()
    logger.info("Linked inspector %s to location %s", inspector_id, location_id)
    return True
