import base64
import io
from typing import Dict, List

import pytest
from PIL import Image

from models.identification_media import IdentificationMedia


class FakeProvider:
    """Completion provider double returning canned text or raising."""

    def __init__(self, name: str, identify_result=None, enrich_results: Dict[str, object] = None):
        self.name = name
        self.identify_result = identify_result
        self.enrich_results = enrich_results or {}
        self.identify_calls: List[IdentificationMedia] = []
        self.enrich_calls: List[str] = []

    async def identify(self, media):
        self.identify_calls.append(media)
        if isinstance(self.identify_result, Exception):
            raise self.identify_result
        return self.identify_result

    async def enrich(self, scientific_name):
        self.enrich_calls.append(scientific_name)
        result = self.enrich_results.get(scientific_name, RuntimeError("no canned metadata"))
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A small valid JPEG image."""
    img = Image.new("RGB", (32, 32), color=(120, 90, 40))
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def jpeg_base64(jpeg_bytes) -> str:
    return base64.b64encode(jpeg_bytes).decode("utf-8")


@pytest.fixture
def image_media(jpeg_bytes) -> IdentificationMedia:
    return IdentificationMedia("image", jpeg_bytes, "image/jpeg")
