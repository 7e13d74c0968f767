"""Completion provider adapter over an OpenAI-compatible chat endpoint."""

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from models.identification_media import IdentificationMedia
from services.openai.media_inputs import build_identify_messages, build_text_messages
from services.openai.response_parser import extract_text, extract_usage
from services.openai.species_prompts import (
    build_identify_system_prompt,
    build_identify_user_prompt,
    build_metadata_system_prompt,
    build_metadata_user_prompt,
)

LOGGER = logging.getLogger(__name__)
IDENTIFY_TIMEOUT_SECONDS = 25.0
ENRICH_TIMEOUT_SECONDS = 25.0


class CompletionProvider:
    """A named model endpoint that can identify media and write field-guide text.

    Both calls return the raw completion text; parsing is left to the caller so
    the same repair path applies to every provider.
    """

    def __init__(self, name: str, client: AsyncOpenAI, model: str) -> None:
        """Initialize the provider.

        Args:
            name: Label used in logs and error messages.
            client: Async OpenAI client configured for the provider's endpoint.
            model: Model identifier sent with every request.
        """
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.name = name
        self.client = client
        self.model = model

    async def identify(self, media: IdentificationMedia) -> str:
        """Ask the model to name the species in an image or audio clip."""
        messages = build_identify_messages(
            build_identify_system_prompt(), build_identify_user_prompt(media), media
        )
        return await self._complete(messages, IDENTIFY_TIMEOUT_SECONDS)

    async def enrich(self, scientific_name: str) -> str:
        """Ask the model for field-guide metadata about one species."""
        messages = build_text_messages(
            build_metadata_system_prompt(), build_metadata_user_prompt(scientific_name)
        )
        return await self._complete(messages, ENRICH_TIMEOUT_SECONDS)

    async def _complete(self, messages: List[Dict[str, Any]], timeout: float) -> str:
        """Send one chat-completion request and return its text."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={"type": "json_object"},
                timeout=timeout,
            )
        except Exception as exc:
            LOGGER.error("Error during %s completion call: %s", self.name, exc)
            raise

        text = extract_text(response)
        if not text.strip():
            raise ValueError(f"{self.name} returned an empty completion.")

        usage = extract_usage(response)
        LOGGER.info(
            "%s completion received (input_tokens=%s, output_tokens=%s)",
            self.name,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        return text

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()

    def __repr__(self) -> str:
        return f"CompletionProvider(name={self.name!r}, model={self.model!r})"


def build_provider(name: str, api_key: Optional[str], base_url: str, model: str) -> Optional[CompletionProvider]:
    """Create a provider when its credential is configured, else return None."""
    if not api_key:
        return None
    client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
    return CompletionProvider(name, client, model)
