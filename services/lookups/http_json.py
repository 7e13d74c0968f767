"""Fault-isolated JSON GET shared by the lookup adapters."""

import logging
from typing import Any, Dict, Optional

import httpx

LOGGER = logging.getLogger(__name__)
LOOKUP_TIMEOUT_SECONDS = 8.0


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    label: str = "lookup",
) -> Optional[Any]:
    """GET `url` and return its decoded JSON body, or None on any failure.

    Timeouts, transport errors, non-2xx statuses and invalid JSON are logged
    and reported as None; the caller degrades the affected field.
    """
    try:
        response = await client.get(url, params=params, timeout=LOOKUP_TIMEOUT_SECONDS)
    except httpx.TimeoutException:
        LOGGER.warning("%s timed out: %s", label, url)
        return None
    except httpx.HTTPError as exc:
        LOGGER.warning("%s request failed: %s", label, exc)
        return None

    if response.status_code != 200:
        LOGGER.warning("%s returned HTTP %s", label, response.status_code)
        return None

    try:
        return response.json()
    except ValueError as exc:
        LOGGER.warning("%s returned invalid JSON: %s", label, exc)
        return None
