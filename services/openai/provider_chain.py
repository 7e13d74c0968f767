"""Ordered fallback across interchangeable completion providers."""

import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from models.identification_media import IdentificationMedia

LOGGER = logging.getLogger(__name__)


class ProviderChainError(RuntimeError):
    """Raised when every provider in the chain failed."""

    def __init__(self, operation: str, failures: List[Tuple[str, Exception]]) -> None:
        summary = "; ".join(f"{name}: {exc}" for name, exc in failures) or "no providers configured"
        super().__init__(f"All providers failed to {operation} ({summary})")
        self.operation = operation
        self.failures = failures


class ProviderChain:
    """Try providers in order, moving on after any error.

    Each provider is attempted at most once per call, so a two-entry chain
    means one primary attempt and one fallback attempt.
    """

    def __init__(self, providers: Sequence[Any]) -> None:
        self.providers = [provider for provider in providers if provider is not None]

    def __bool__(self) -> bool:
        return bool(self.providers)

    async def identify(self, media: IdentificationMedia) -> Tuple[str, str]:
        """Return `(provider_name, raw_text)` from the first provider that answers."""
        return await self._run("identify", lambda provider: provider.identify(media))

    async def enrich(self, scientific_name: str) -> Tuple[str, str]:
        """Return `(provider_name, raw_text)` with field-guide text for a species."""
        return await self._run("enrich", lambda provider: provider.enrich(scientific_name))

    async def _run(self, operation: str, call: Callable[[Any], Awaitable[str]]) -> Tuple[str, str]:
        failures: List[Tuple[str, Exception]] = []
        for provider in self.providers:
            try:
                text = await call(provider)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.warning("Provider %s failed to %s: %s", provider.name, operation, exc)
                failures.append((provider.name, exc))
                continue
            if failures:
                LOGGER.info("Fallback provider %s answered %s", provider.name, operation)
            return provider.name, text
        raise ProviderChainError(operation, failures)

    async def aclose(self) -> None:
        """Close every provider's client."""
        for provider in self.providers:
            aclose: Optional[Callable[[], Awaitable[None]]] = getattr(provider, "aclose", None)
            if aclose is None:
                continue
            try:
                await aclose()
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.debug("Ignoring error while closing provider %s", provider.name, exc_info=True)
