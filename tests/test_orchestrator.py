import asyncio
import json

import pytest

from models.species_models import EnrichedMedia, Photo
from services.enrichment.species_cache import SpeciesCache
from dal.species_cache_dal import SpeciesCacheDAL
from services.openai.metadata_generator import MetadataGenerator
from services.openai.provider_chain import ProviderChain
from services.stream.orchestrator import IdentificationOrchestrator
from utils.database_init import AsyncDatabaseInitializer

IDENTIFY_TEXT = json.dumps(
    {
        "birds": [
            {"name": "American Robin", "scientific_name": "Turdus migratorius", "confidence": 0.9},
            {"name": "Varied Thrush", "scientific_name": "Ixoreus naevius", "confidence": 0.05},
        ]
    }
)
METADATA = {
    "Turdus migratorius": '{"birds": [{"name": "American Robin", "diet": "Worms"}]}',
    "Ixoreus naevius": '{"birds": [{"name": "Varied Thrush", "diet": "Insects"}]}',
}


class FakeAggregator:
    def __init__(self, fail_for=(), delay=0.0):
        self.fail_for = set(fail_for)
        self.delay = delay
        self.calls = []

    async def enrich(self, scientific_name):
        self.calls.append(scientific_name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if scientific_name in self.fail_for:
            raise RuntimeError("lookup exploded")
        return EnrichedMedia(inat_photos=[Photo(url=f"https://p/{scientific_name}.jpg")])


def build(fake_provider_cls, identify_result=IDENTIFY_TEXT, fallback_result=None, aggregator=None, cache=None, **kwargs):
    providers = [fake_provider_cls("primary", identify_result=identify_result, enrich_results=METADATA)]
    if fallback_result is not None:
        providers.append(fake_provider_cls("fallback", identify_result=fallback_result, enrich_results=METADATA))
    chain = ProviderChain(providers)
    return IdentificationOrchestrator(
        chain, MetadataGenerator(chain), aggregator or FakeAggregator(), cache, **kwargs
    )


async def collect(orchestrator, media):
    return [chunk.to_dict() async for chunk in orchestrator.run(media)]


@pytest.mark.asyncio
async def test_happy_path_ordering(fake_provider_cls, image_media):
    chunks = await collect(build(fake_provider_cls), image_media)
    types = [c["type"] for c in chunks]

    assert types[0] == "progress"
    assert types.count("candidates") == 1
    candidates_at = types.index("candidates")
    assert all(types.index(t) > candidates_at for t in ("media", "metadata"))
    assert types[-1] == "done"
    assert isinstance(chunks[-1]["duration"], int)

    candidates = chunks[candidates_at]
    assert [c["scientific_name"] for c in candidates["data"]] == ["Turdus migratorius", "Ixoreus naevius"]
    assert candidates["raw_content"] == IDENTIFY_TEXT

    media = {c["index"]: c["data"] for c in chunks if c["type"] == "media"}
    metadata = {c["index"]: c["data"] for c in chunks if c["type"] == "metadata"}
    assert set(media) == set(metadata) == {0, 1}
    assert metadata[0]["diet"] == "Worms"
    assert metadata[1]["diet"] == "Insects"
    assert media[1]["inat_photos"][0]["url"] == "https://p/Ixoreus naevius.jpg"


@pytest.mark.asyncio
async def test_first_candidate_metadata_generated_first(fake_provider_cls, image_media):
    orchestrator = build(fake_provider_cls)
    await collect(orchestrator, image_media)
    primary = orchestrator.chain.providers[0]
    assert primary.enrich_calls == ["Turdus migratorius", "Ixoreus naevius"]


@pytest.mark.asyncio
async def test_fallback_provider_used(fake_provider_cls, image_media):
    orchestrator = build(fake_provider_cls, identify_result=RuntimeError("503"), fallback_result=IDENTIFY_TEXT)
    chunks = await collect(orchestrator, image_media)
    assert [c["type"] for c in chunks][-1] == "done"


@pytest.mark.asyncio
async def test_both_providers_failing_is_terminal_error(fake_provider_cls, image_media):
    orchestrator = build(fake_provider_cls, identify_result=RuntimeError("503"), fallback_result=RuntimeError("401"))
    chunks = await collect(orchestrator, image_media)
    assert [c["type"] for c in chunks] == ["progress", "error"]


@pytest.mark.asyncio
async def test_unparseable_identification_is_terminal_error(fake_provider_cls, image_media):
    chunks = await collect(build(fake_provider_cls, identify_result="I see a bird!"), image_media)
    assert [c["type"] for c in chunks] == ["progress", "error"]


@pytest.mark.asyncio
async def test_zero_candidates_is_error_not_empty_success(fake_provider_cls, image_media):
    chunks = await collect(build(fake_provider_cls, identify_result='{"candidates": []}'), image_media)
    assert [c["type"] for c in chunks] == ["progress", "error"]


@pytest.mark.asyncio
async def test_failed_media_branch_yields_empty_chunk(fake_provider_cls, image_media):
    aggregator = FakeAggregator(fail_for={"Turdus migratorius"})
    chunks = await collect(build(fake_provider_cls, aggregator=aggregator), image_media)
    media = {c["index"]: c["data"] for c in chunks if c["type"] == "media"}
    assert media[0]["inat_photos"] == []
    assert media[1]["inat_photos"]
    assert chunks[-1]["type"] == "done"


@pytest.mark.asyncio
async def test_missing_metadata_yields_empty_chunk(fake_provider_cls, image_media):
    text = json.dumps({"candidates": [{"name": "Mystery", "scientific_name": "Mysterius avis"}]})
    chunks = await collect(build(fake_provider_cls, identify_result=text), image_media)
    metadata = [c for c in chunks if c["type"] == "metadata"]
    assert metadata == [{"type": "metadata", "index": 0, "data": {}}]


@pytest.mark.asyncio
async def test_heartbeats_during_slow_enrichment(fake_provider_cls, image_media):
    orchestrator = build(fake_provider_cls, aggregator=FakeAggregator(delay=0.2), heartbeat_interval=0.05)
    chunks = await collect(orchestrator, image_media)
    types = [c["type"] for c in chunks]
    assert "heartbeat" in types
    assert types.index("heartbeat") > types.index("candidates")
    assert types[-1] == "done"


@pytest.mark.asyncio
async def test_cache_is_populated_and_reused(fake_provider_cls, image_media, tmp_path):
    cache = SpeciesCache(SpeciesCacheDAL(AsyncDatabaseInitializer(tmp_path)))
    aggregator = FakeAggregator()

    await collect(build(fake_provider_cls, aggregator=aggregator, cache=cache), image_media)
    assert sorted(aggregator.calls) == ["Ixoreus naevius", "Turdus migratorius"]

    second = build(fake_provider_cls, aggregator=aggregator, cache=cache)
    chunks = await collect(second, image_media)
    assert len(aggregator.calls) == 2
    assert second.chain.providers[0].enrich_calls == []
    metadata = {c["index"]: c["data"] for c in chunks if c["type"] == "metadata"}
    assert metadata[0]["diet"] == "Worms"


@pytest.mark.asyncio
async def test_closing_the_stream_cancels_enrichment(fake_provider_cls, image_media):
    aggregator = FakeAggregator(delay=10)
    stream = build(fake_provider_cls, aggregator=aggregator).run(image_media)
    seen = []
    async for chunk in stream:
        seen.append(chunk.type)
        if chunk.type == "metadata":
            break
    await asyncio.wait_for(stream.aclose(), timeout=1)
    await asyncio.sleep(0.05)
    assert seen[:2] == ["progress", "candidates"]
    assert "media" not in seen
