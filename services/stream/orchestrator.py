"""Identification pipeline producing the incremental result stream."""

import asyncio
import logging
import time
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from models.identification_media import IdentificationMedia
from models.species_models import Candidate, EnrichedMedia
from models.stream_chunk import StreamChunk
from services.enrichment.media_aggregator import MediaAggregator
from services.enrichment.species_cache import SpeciesCache
from services.openai.candidate_schema import extract_candidates
from services.openai.json_repair import ParseError, repair
from services.openai.metadata_generator import MetadataGenerator
from services.openai.provider_chain import ProviderChain, ProviderChainError
from services.stream.heartbeat import HEARTBEAT_INTERVAL_SECONDS, Heartbeat

LOGGER = logging.getLogger(__name__)

Emit = Callable[[StreamChunk], Awaitable[None]]


class IdentificationOrchestrator:
    """Run fast identification, then stream per-candidate enrichment.

    `run()` is an async generator of StreamChunk values. The first chunk is
    always `progress`; the last is always `done` or `error`. An `error` chunk
    can only occur before the `candidates` chunk: once candidates are out,
    every enrichment failure degrades to an empty `media`/`metadata` chunk.
    """

    def __init__(
        self,
        chain: ProviderChain,
        metadata_generator: MetadataGenerator,
        media_aggregator: MediaAggregator,
        species_cache: Optional[SpeciesCache] = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
    ) -> None:
        self.chain = chain
        self.metadata_generator = metadata_generator
        self.media_aggregator = media_aggregator
        self.species_cache = species_cache
        self.heartbeat_interval = heartbeat_interval

    async def run(self, media: IdentificationMedia) -> AsyncIterator[StreamChunk]:
        """Yield the stream chunks for one identification request."""
        started = time.monotonic()
        yield StreamChunk.progress("Analyzing audio..." if media.is_audio else "Analyzing image...")

        try:
            provider_name, raw_content = await self.chain.identify(media)
        except ProviderChainError as exc:
            LOGGER.error("Identification failed on every provider: %s", exc)
            yield StreamChunk.error("Identification service is unavailable. Please try again.")
            return

        try:
            payload = repair(raw_content, provider_name)
        except ParseError as exc:
            LOGGER.error("%s", exc)
            yield StreamChunk.error("Could not read the identification result. Please try again.")
            return

        candidates = extract_candidates(payload)
        if not candidates:
            LOGGER.info("No candidates returned by %s", provider_name)
            yield StreamChunk.error("No bird could be identified. Try a clearer photo or recording.")
            return

        LOGGER.info(
            "Identified %d candidate(s) via %s: %s",
            len(candidates),
            provider_name,
            ", ".join(c.scientific_name for c in candidates),
        )
        yield StreamChunk.candidates([c.to_dict() for c in candidates], raw_content=raw_content)
        yield StreamChunk.progress("Fetching species details...")

        queue: "asyncio.Queue[Optional[StreamChunk]]" = asyncio.Queue()
        producer = asyncio.create_task(self._enrich_all(candidates, queue))
        try:
            while True:
                chunk = await queue.get()
                if chunk is None:
                    break
                yield chunk
            await producer
        finally:
            if not producer.done():
                # The consumer went away; abandon in-flight lookups.
                producer.cancel()

        duration_ms = int((time.monotonic() - started) * 1000)
        LOGGER.info("Identification stream finished in %d ms", duration_ms)
        yield StreamChunk.done(duration_ms)

    async def _enrich_all(self, candidates: List[Candidate], queue: asyncio.Queue) -> None:
        """Fan out metadata and media enrichment, pushing chunks onto `queue`."""

        async def emit(chunk: StreamChunk) -> None:
            await queue.put(chunk)

        try:
            async with Heartbeat(lambda: emit(StreamChunk.heartbeat()), self.heartbeat_interval):
                await asyncio.gather(
                    self._metadata_in_priority_order(candidates, emit),
                    *(self._media_branch(index, candidate, emit) for index, candidate in enumerate(candidates)),
                )
        finally:
            queue.put_nowait(None)

    async def _metadata_in_priority_order(self, candidates: List[Candidate], emit: Emit) -> None:
        """Candidate 0 first, then the remaining candidates in parallel."""
        if not candidates:
            return
        await self._metadata_branch(0, candidates[0], emit)
        await asyncio.gather(
            *(self._metadata_branch(index, candidate, emit) for index, candidate in enumerate(candidates) if index)
        )

    async def _metadata_branch(self, index: int, candidate: Candidate, emit: Emit) -> None:
        try:
            if self.species_cache is not None:
                metadata = await self.species_cache.get_metadata(
                    candidate.scientific_name,
                    self.metadata_generator.generate,
                    common_name=candidate.name,
                )
            else:
                metadata = await self.metadata_generator.generate(candidate.scientific_name)
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.exception("Metadata enrichment failed for %s", candidate.scientific_name)
            metadata = None
        await emit(StreamChunk.metadata(index, metadata or {}))

    async def _media_branch(self, index: int, candidate: Candidate, emit: Emit) -> None:
        try:
            if self.species_cache is not None:
                media = await self.species_cache.get_media(
                    candidate.scientific_name,
                    self.media_aggregator.enrich,
                    common_name=candidate.name,
                )
            else:
                media = await self.media_aggregator.enrich(candidate.scientific_name)
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.exception("Media enrichment failed for %s", candidate.scientific_name)
            media = EnrichedMedia()
        await emit(StreamChunk.media(index, media.to_dict()))
