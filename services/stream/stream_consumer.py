"""Client-side reading of the identification stream."""

import inspect
import json
import logging
from typing import Any, AsyncIterable, Callable, Dict, List, Optional, Union

from models.stream_chunk import CANDIDATES, DONE, ERROR, MEDIA, METADATA
from services.stream.protocol import NDJSONDecoder

LOGGER = logging.getLogger(__name__)

STREAM_INTERRUPTED_MESSAGE = "Stream interrupted unexpectedly"
_IDENTITY_FIELDS = ("name", "scientific_name", "confidence")

ChunkCallback = Callable[[Dict[str, Any]], Any]


class IdentificationError(Exception):
    """Non-streaming failure returned by the identification endpoint."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    def __repr__(self) -> str:
        return f"IdentificationError(status={self.status}, message={self.message!r})"


def parse_error(status: int, body: Union[bytes, str, None]) -> IdentificationError:
    """Build an IdentificationError from an HTTP error status and body.

    The message is the body's JSON `error` field when present, otherwise the
    raw body text, otherwise a generic "Server error (<status>)".
    """
    message = f"Server error ({status})"
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if body:
        try:
            decoded = json.loads(body)
        except ValueError:
            message = body
        else:
            if isinstance(decoded, dict) and decoded.get("error"):
                message = str(decoded["error"])
    return IdentificationError(status, message)


def to_bird_result(bird: Dict[str, Any], media: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Combine a candidate with its media bundle.

    Photo and sound arrays always come from `media` (empty when it is absent),
    whatever the candidate itself carries.
    """
    media = media or {}
    result = dict(bird)
    result.update(
        {
            "inat_photos": list(media.get("inat_photos") or []),
            "male_image_url": media.get("male_image_url"),
            "female_image_url": media.get("female_image_url"),
            "juvenile_image_url": media.get("juvenile_image_url"),
            "sounds": list(media.get("sounds") or []),
            "wikipedia_image": media.get("wikipedia_image"),
            "gbif_taxon_key": media.get("gbif_taxon_key"),
        }
    )
    return result


async def _deliver(on_chunk: ChunkCallback, chunk: Dict[str, Any]) -> None:
    result = on_chunk(chunk)
    if inspect.isawaitable(result):
        await result


async def process_stream(segments: AsyncIterable[bytes], on_chunk: ChunkCallback) -> None:
    """Decode a byte stream and hand every chunk to `on_chunk`.

    If the transport fails before a `candidates` chunk arrived, a terminal
    error chunk is delivered. After candidates were delivered the failure is
    logged and swallowed: the caller already holds a usable result.
    """
    decoder = NDJSONDecoder()
    received_candidates = False
    iterator = segments.__aiter__()

    while True:
        try:
            segment = await iterator.__anext__()
        except StopAsyncIteration:
            break
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if received_candidates:
                LOGGER.warning("Stream interrupted after candidates; keeping partial result: %s", exc)
                return
            LOGGER.error("Stream interrupted before candidates: %s", exc)
            await _deliver(on_chunk, {"type": ERROR, "message": STREAM_INTERRUPTED_MESSAGE})
            return

        for chunk in decoder.feed(segment):
            if chunk.get("type") == CANDIDATES:
                received_candidates = True
            await _deliver(on_chunk, chunk)

    for chunk in decoder.flush():
        await _deliver(on_chunk, chunk)


class ResultAccumulator:
    """Assemble streamed chunks into the progressively filling result list."""

    def __init__(self) -> None:
        self.results: List[Dict[str, Any]] = []
        self.raw_content: Optional[str] = None
        self.error: Optional[str] = None
        self.duration: Optional[int] = None
        self.done = False

    def __call__(self, chunk: Dict[str, Any]) -> None:
        self.apply(chunk)

    def apply(self, chunk: Dict[str, Any]) -> None:
        """Fold one decoded chunk into the accumulated state."""
        chunk_type = chunk.get("type")
        if chunk_type == CANDIDATES:
            self.results = [to_bird_result(bird) for bird in chunk.get("data") or [] if isinstance(bird, dict)]
            self.raw_content = chunk.get("raw_content")
        elif chunk_type == MEDIA:
            index = self._index(chunk)
            if index is not None:
                self.results[index] = to_bird_result(self.results[index], chunk.get("data"))
        elif chunk_type == METADATA:
            index = self._index(chunk)
            if index is not None and isinstance(chunk.get("data"), dict):
                for key, value in chunk["data"].items():
                    if key not in _IDENTITY_FIELDS and value is not None:
                        self.results[index][key] = value
        elif chunk_type == DONE:
            self.done = True
            self.duration = chunk.get("duration")
        elif chunk_type == ERROR:
            self.error = chunk.get("message") or STREAM_INTERRUPTED_MESSAGE
        # progress and heartbeat carry nothing to keep

    def _index(self, chunk: Dict[str, Any]) -> Optional[int]:
        index = chunk.get("index")
        if isinstance(index, int) and 0 <= index < len(self.results):
            return index
        LOGGER.debug("Ignoring %s chunk with out-of-range index %r", chunk.get("type"), index)
        return None
