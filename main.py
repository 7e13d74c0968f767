import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dal.species_cache_dal import SpeciesCacheDAL
from routes.identify_route import router as identify_router
from routes.species_media_route import router as species_media_router
from services.enrichment.media_aggregator import MediaAggregator
from services.enrichment.species_cache import SpeciesCache
from services.lookups.gbif import GbifClient
from services.lookups.http_json import LOOKUP_TIMEOUT_SECONDS
from services.lookups.inaturalist import INaturalistClient
from services.lookups.wikimedia import WikimediaClient
from services.lookups.xeno_canto import XenoCantoClient
from services.openai.completion_provider import build_provider
from services.openai.metadata_generator import MetadataGenerator
from services.openai.provider_chain import ProviderChain
from services.stream.orchestrator import IdentificationOrchestrator
from utils.app_config import AppConfig
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)
USER_AGENT = "bird-identification-service/1.0"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the configuration read from the environment
      - the SQLite species cache (kept across restarts, at DATABASE_DIR/species.db)
      - the completion provider chain (primary, then fallback)
      - the shared HTTP client and lookup adapters
    and attach them to `app.state`.
    """
    config = app.state.config if getattr(app.state, "config", None) else AppConfig.from_env()
    app.state.config = config

    db_initializer = AsyncDatabaseInitializer(config.database_dir)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    chain = ProviderChain(
        [
            build_provider("openrouter", config.openrouter_api_key, config.openrouter_base_url, config.primary_model),
            build_provider("gemini", config.gemini_api_key, config.gemini_base_url, config.fallback_model),
        ]
    )
    if not chain:
        LOGGER.warning("No completion provider keys configured; /identify-bird will return 500")

    http_client = httpx.AsyncClient(
        timeout=LOOKUP_TIMEOUT_SECONDS,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    )

    media_aggregator = MediaAggregator(
        INaturalistClient(http_client),
        XenoCantoClient(http_client, config.xeno_canto_api_key),
        WikimediaClient(http_client),
        GbifClient(http_client),
    )
    species_cache = SpeciesCache(SpeciesCacheDAL(db_initializer))

    app.state.provider_chain = chain
    app.state.http_client = http_client
    app.state.media_aggregator = media_aggregator
    app.state.species_cache = species_cache
    app.state.orchestrator = IdentificationOrchestrator(
        chain, MetadataGenerator(chain), media_aggregator, species_cache
    )

    try:
        yield
    finally:
        await http_client.aclose()
        await chain.aclose()


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    config = config or AppConfig.from_env()
    configure_logging(config.log_level)

    app = FastAPI(lifespan=lifespan)
    app.state.config = config

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        """Render HTTP errors as `{"error": message}`."""
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        """Report malformed request bodies as a 400 with a readable message."""
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports which collaborators are available.
        """
        state = request.app.state
        chain = getattr(state, "provider_chain", None)
        return {
            "ok": True,
            "db_initialized": hasattr(state, "db_initializer"),
            "providers": [provider.name for provider in chain.providers] if chain else [],
            "http_client_available": getattr(state, "http_client", None) is not None,
        }

    # Register application routers
    app.include_router(identify_router)
    app.include_router(species_media_router)

    return app


app = create_app()
