import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from podforge.api.routes import router
from podforge.config import Settings, settings
from podforge.db.connection import check_database, run_migrations
from podforge.errors import InvalidTransition, ValidationError
from podforge.repositories.episode_repository import EpisodeRepository
from podforge.repositories.submission_repository import SubmissionRepository
from podforge.services.episode_service import EpisodeService
from podforge.services.extraction_service import ExtractionService
from podforge.services.feed_cache import FeedCache
from podforge.services.feed_service import FeedMetadata, FeedOptions, FeedService
from podforge.services.firecrawl_service import FirecrawlService
from podforge.services.health_service import HealthMonitor
from podforge.services.pipeline_service import PipelineService
from podforge.services.script_policy import ScriptPolicyService
from podforge.services.script_writer import ScriptWriter
from podforge.services.storage_service import HttpCdnPurger, LocalObjectStorage, NullCdnPurger
from podforge.services.submission_service import SubmissionService
from podforge.services.tts_providers import (
    AZURE,
    DEFAULT_ELEVENLABS_VOICE,
    AzureSpeechProvider,
    ElevenLabsProvider,
)
from podforge.services.tts_service import TTSService
from podforge.services.voice_service import VoiceCatalog


def _configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def wire_services(app: FastAPI, config: Settings) -> None:
    """Build every collaborator once and attach it to app.state."""
    submission_repository = SubmissionRepository(config.DB_PATH)
    episode_repository = EpisodeRepository(config.DB_PATH)

    firecrawl = FirecrawlService(config.FIRECRAWL_API_URL, config.FIRECRAWL_API_KEY)
    elevenlabs = ElevenLabsProvider(
        config.ELEVENLABS_API_URL, config.ELEVENLABS_API_KEY, model_id=config.ELEVENLABS_MODEL_ID
    )
    azure = AzureSpeechProvider(
        config.AZURE_SPEECH_KEY, region=config.AZURE_SPEECH_REGION, default_voice=config.AZURE_SPEECH_VOICE
    )
    providers = [azure, elevenlabs] if config.PRIMARY_TTS_PROVIDER == AZURE else [elevenlabs, azure]

    voice_catalog = VoiceCatalog(providers, ttl_seconds=config.VOICE_CACHE_TTL_SECONDS)
    tts_service = TTSService(providers)
    script_policy = ScriptPolicyService()
    script_writer = ScriptWriter(config.LLM_API_URL, config.LLM_API_KEY, config.LLM_MODEL, script_policy)

    cdn = HttpCdnPurger(config.CDN_PURGE_URL, config.CDN_API_KEY) if config.CDN_PURGE_URL else NullCdnPurger()
    feed_metadata = FeedMetadata(
        title=config.FEED_TITLE,
        description=config.FEED_DESCRIPTION,
        link=config.FEED_LINK,
        language=config.FEED_LANGUAGE,
        author=config.FEED_AUTHOR,
        email=config.FEED_EMAIL,
        category=config.FEED_CATEGORY,
        artwork_url=config.FEED_ARTWORK_URL or None,
    )
    feed_cache = FeedCache(
        FeedService(),
        episode_repository,
        feed_metadata,
        options=FeedOptions(max_episodes=config.FEED_MAX_EPISODES),
        ttl_seconds=config.FEED_CACHE_TTL_SECONDS,
        cdn=cdn,
    )

    default_voice = config.AZURE_SPEECH_VOICE if config.PRIMARY_TTS_PROVIDER == AZURE else DEFAULT_ELEVENLABS_VOICE
    pipeline = PipelineService(
        extraction=ExtractionService(firecrawl),
        script_writer=script_writer,
        script_policy=script_policy,
        voices=voice_catalog,
        tts=tts_service,
        storage=LocalObjectStorage(config.STORAGE_DIR, config.PUBLIC_BASE_URL),
        submission_repository=submission_repository,
        episode_repository=episode_repository,
        feed_cache=feed_cache,
        default_feed_id=config.DEFAULT_FEED_ID,
        default_voice_id=default_voice,
        max_retries=config.JOB_MAX_RETRIES,
        script_max_attempts=config.SCRIPT_MAX_ATTEMPTS,
    )

    async def database_ok() -> bool:
        return check_database(config.DB_PATH)

    app.state.submission_repository = submission_repository
    app.state.episode_repository = episode_repository
    app.state.voice_catalog = voice_catalog
    app.state.tts_service = tts_service
    app.state.feed_cache = feed_cache
    app.state.episode_service = EpisodeService(episode_repository, feed_cache)
    app.state.pipeline = pipeline
    app.state.submission_service = SubmissionService(
        submission_repository, pipeline, default_feed_id=config.DEFAULT_FEED_ID
    )
    app.state.health_monitor = HealthMonitor(
        {
            "database": database_ok,
            "extraction": firecrawl.health_check,
            elevenlabs.name: elevenlabs.health_check,
            azure.name: azure.health_check,
        }
    )


def create_app(config: Settings | None = None) -> FastAPI:
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _configure_logging(config)
        logger = logging.getLogger(__name__)
        logger.info("Podforge starting | db=%s | port=%s", config.DB_PATH, config.PORT)
        run_migrations(config.DB_PATH)
        wire_services(app, config)
        await app.state.voice_catalog.refresh()
        app.state.voice_catalog.start_refresh_timer(config.VOICE_REFRESH_INTERVAL_SECONDS)
        app.state.health_monitor.start(config.HEALTH_CHECK_INTERVAL_SECONDS)
        yield
        cancelled = app.state.submission_service.cancel_all()
        await app.state.voice_catalog.stop()
        await app.state.health_monitor.stop()
        logger.info("Podforge shutting down | cancelled_pipelines=%d", cancelled)

    app = FastAPI(title="Podforge", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"status": "error", "message": str(exc)})

    @app.exception_handler(InvalidTransition)
    async def transition_exception_handler(request: Request, exc: InvalidTransition) -> JSONResponse:
        return JSONResponse(status_code=409, content={"status": "error", "message": str(exc)})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.getLogger(__name__).exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Internal server error"},
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("podforge.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL)
