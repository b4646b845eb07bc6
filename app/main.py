import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.logging_config import get_logger, setup_logging
from app.routers import admin, qr, webhook
from app.runtime import build_runtime

setup_logging(settings.log_level, settings.log_format)

logger = get_logger("main")

app = FastAPI(
    title="Don Cash Bot",
    description="WhatsApp assistant for Andy's Don Cash",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(qr.router)
app.include_router(admin.router)


@app.on_event("startup")
async def start_runtime() -> None:
    # Tests install their own runtime before the client starts.
    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = build_runtime(settings)
    app.state.runtime.start_background()
    logger.info("Bot runtime started")


@app.on_event("shutdown")
async def stop_runtime() -> None:
    runtime = getattr(app.state, "runtime", None)
    if runtime is None:
        return
    runtime.stop_background()
    runtime.save_states()
    logger.info("Bot runtime stopped")


@app.get("/health")
async def health():
    runtime = getattr(app.state, "runtime", None)
    if runtime is None:
        return {"status": "starting"}
    return {
        "status": "ok",
        "business_open": runtime.business_hours.is_open(),
        "sessions": len(runtime.sessions),
        "disabled_chats": runtime.registry.total(),
    }
