"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.email.composer import MailComposer
from infrastructure.email.zeptomail import ZeptoMailSender
from infrastructure.http_client import HttpClient
from infrastructure.identity.mongo_provider import MongoIdentityProvider
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.capability_codec import CapabilityTokenCodec
from services.mail_queue import MailDispatcher
from services.recovery_workflow import RecoveryWorkflow
from services.throttle import MongoThrottleStore, RedisThrottleStore, ThrottleGuard
from services.verification_store import COLLECTION_NAME, VerificationCodeStore
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)

THROTTLE_COLLECTION_NAME = "throttle-log"


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        log_level=settings.logging.log_level,
        log_format=settings.logging.log_format,
        production=settings.is_production,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    # Fail at boot, not on the first reset request, if the key is malformed
    codec = CapabilityTokenCodec(settings.capability.capability_key)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        timeout_ms = settings.db.mongo_timeout_ms
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
        db = mongo_client[settings.db.db_name]
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings

        # Redis is optional; without it the throttle log lives in MongoDB
        redis_client = await create_redis_client(
            settings.redis.redis_uri, settings.redis.redis_timeout_seconds
        )
        app.state.redis = redis_client
        if redis_client is not None:
            throttle_store = RedisThrottleStore(redis_client)
        else:
            throttle_store = MongoThrottleStore(db[THROTTLE_COLLECTION_NAME])
            await throttle_store.ensure_indexes()
        throttle = ThrottleGuard(throttle_store)

        codes = VerificationCodeStore(
            db[COLLECTION_NAME], ttl_seconds=settings.verification.code_ttl_seconds
        )
        await codes.ensure_indexes()

        identity = MongoIdentityProvider(db, throttle, settings.identity)
        await identity.ensure_indexes()

        http_client = HttpClient(timeout=settings.email.mail_timeout_seconds)
        mailer = MailDispatcher(
            ZeptoMailSender(settings.email, http_client),
            maxsize=settings.verification.mail_queue_size,
        )
        await mailer.start()
        app.state.mailer = mailer

        app.state.workflow = RecoveryWorkflow(
            identity=identity,
            codes=codes,
            throttle=throttle,
            codec=codec,
            mailer=mailer,
            composer=MailComposer(
                settings.app_name,
                settings.app_url,
                code_ttl_seconds=settings.verification.code_ttl_seconds,
            ),
            settings=settings.verification,
        )
        log.info("app_started", env=settings.env, redis=redis_client is not None)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await mailer.stop()
        await http_client.aclose()
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
