import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.identification_media import IdentificationMedia
from services.openai.completion_provider import CompletionProvider, build_provider
from services.openai.metadata_generator import MetadataGenerator, validate_bird_metadata
from services.openai.provider_chain import ProviderChain, ProviderChainError


def completion(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )


def mock_openai(content=None, error=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion(content), side_effect=error)
    return client


class TestCompletionProvider:
    @pytest.mark.asyncio
    async def test_identify_sends_image_as_data_url(self):
        client = mock_openai('{"candidates": []}')
        provider = CompletionProvider("primary", client, "openai/gpt-4o")
        media = IdentificationMedia("image", b"\xff\xd8\xff", "image/jpeg")

        assert await provider.identify(media) == '{"candidates": []}'

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["timeout"] == 25.0
        assert kwargs["response_format"] == {"type": "json_object"}
        parts = kwargs["messages"][1]["content"]
        assert parts[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_identify_sends_audio_input(self):
        client = mock_openai('{"candidates": []}')
        provider = CompletionProvider("primary", client, "m")
        await provider.identify(IdentificationMedia("audio", b"ID3abc", "audio/mpeg"))
        part = client.chat.completions.create.call_args.kwargs["messages"][1]["content"][1]
        assert part["type"] == "input_audio"
        assert part["input_audio"]["format"] == "mp3"

    @pytest.mark.asyncio
    async def test_empty_completion_raises(self):
        provider = CompletionProvider("primary", mock_openai("   "), "m")
        with pytest.raises(ValueError):
            await provider.enrich("Turdus migratorius")

    def test_requires_client(self):
        with pytest.raises(ValueError):
            CompletionProvider("primary", None, "m")

    def test_build_provider_needs_key(self):
        assert build_provider("gemini", None, "https://example.org", "m") is None


class TestProviderChain:
    @pytest.mark.asyncio
    async def test_primary_answer_used(self, fake_provider_cls, image_media):
        primary = fake_provider_cls("primary", identify_result="ok")
        fallback = fake_provider_cls("fallback", identify_result="unused")
        assert await ProviderChain([primary, fallback]).identify(image_media) == ("primary", "ok")
        assert fallback.identify_calls == []

    @pytest.mark.asyncio
    async def test_falls_back_once_on_error(self, fake_provider_cls, image_media):
        primary = fake_provider_cls("primary", identify_result=RuntimeError("503"))
        fallback = fake_provider_cls("fallback", identify_result="from fallback")
        assert await ProviderChain([primary, fallback]).identify(image_media) == ("fallback", "from fallback")
        assert len(primary.identify_calls) == 1

    @pytest.mark.asyncio
    async def test_all_failures_raise(self, fake_provider_cls, image_media):
        chain = ProviderChain(
            [
                fake_provider_cls("primary", identify_result=RuntimeError("503")),
                fake_provider_cls("fallback", identify_result=TimeoutError("slow")),
            ]
        )
        with pytest.raises(ProviderChainError) as excinfo:
            await chain.identify(image_media)
        assert [name for name, _ in excinfo.value.failures] == ["primary", "fallback"]

    @pytest.mark.asyncio
    async def test_unconfigured_providers_are_dropped(self, fake_provider_cls, image_media):
        chain = ProviderChain([None, fake_provider_cls("fallback", identify_result="ok")])
        assert [p.name for p in chain.providers] == ["fallback"]
        assert not ProviderChain([None, None])


class TestMetadataGenerator:
    @pytest.mark.asyncio
    async def test_generates_and_validates(self, fake_provider_cls):
        text = json.dumps(
            {
                "birds": [
                    {
                        "name": "American Robin",
                        "habitat": "Woodlands",
                        "habitat_tags": ["Forest", "Unknown"],
                        "diet": "Unknown",
                        "key_facts": {"size": "10 inches", "colors": "Gray, Orange"},
                    }
                ]
            }
        )
        chain = ProviderChain([fake_provider_cls("primary", enrich_results={"Turdus migratorius": text})])
        metadata = await MetadataGenerator(chain).generate("Turdus migratorius")

        assert metadata["habitat"] == "Woodlands"
        assert metadata["habitat_tags"] == ["Forest"]
        assert metadata["diet"] is None
        assert metadata["key_facts"]["colors"] == ["Gray", "Orange"]
        assert metadata["nesting_info"] == {"description": None, "location": None, "type": None}

    @pytest.mark.asyncio
    async def test_parse_failure_returns_none(self, fake_provider_cls):
        chain = ProviderChain([fake_provider_cls("primary", enrich_results={"X y": "not json"})])
        assert await MetadataGenerator(chain).generate("X y") is None

    @pytest.mark.asyncio
    async def test_provider_failure_returns_none(self, fake_provider_cls):
        chain = ProviderChain([fake_provider_cls("primary"), fake_provider_cls("fallback")])
        assert await MetadataGenerator(chain).generate("X y") is None


def test_validate_bird_metadata_non_dict():
    assert validate_bird_metadata(None) == {}
