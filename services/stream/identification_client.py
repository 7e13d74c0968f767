"""HTTP client for the streaming identification endpoint."""

import logging
from typing import Any, Dict, Optional

import httpx

from services.stream.stream_consumer import ChunkCallback, ResultAccumulator, parse_error, process_stream

LOGGER = logging.getLogger(__name__)

IDENTIFY_PATH = "/identify-bird"
# Enrichment can run well past a minute; heartbeats arrive every 5 seconds.
READ_TIMEOUT_SECONDS = 30.0


class IdentificationClient:
    """Post media for identification and consume the NDJSON response."""

    def __init__(self, base_url: str, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=READ_TIMEOUT_SECONDS))

    async def identify(self, payload: Dict[str, Any], token: str, on_chunk: ChunkCallback) -> None:
        """Stream identification chunks for `payload` into `on_chunk`.

        Raises:
            IdentificationError: If the endpoint answers with a non-2xx status.
        """
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/x-ndjson"}
        async with self.http.stream("POST", f"{self.base_url}{IDENTIFY_PATH}", json=payload, headers=headers) as response:
            if response.status_code >= 400:
                body = await response.aread()
                error = parse_error(response.status_code, body)
                LOGGER.warning("Identification request rejected: %s", error)
                raise error
            await process_stream(response.aiter_bytes(), on_chunk)

    async def identify_results(self, payload: Dict[str, Any], token: str) -> ResultAccumulator:
        """Run an identification and return the accumulated final state."""
        accumulator = ResultAccumulator()
        await self.identify(payload, token, accumulator)
        return accumulator

    async def aclose(self) -> None:
        await self.http.aclose()
