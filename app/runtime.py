"""Explicit wiring of the bot components. Built once at startup and handed to routers."""

import os
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from app.config import Settings
from app.logging_config import get_logger
from app.services.backup_service import BackupService
from app.services.business_hours import BusinessHours, load_business_hours_table
from app.services.cleanup_service import CleanupScheduler
from app.services.clock import Clock
from app.services.command_service import OwnerCommandRouter
from app.services.conversation_service import ConversationService
from app.services.disable_registry import DisableRegistry
from app.services.message_catalog import MessageCatalog
from app.services.message_service import BotMessenger
from app.services.nlu import DialogflowProvider, NLUProvider
from app.services.qr_service import ChallengeChannel, CredentialChallengeManager, build_challenge_channels
from app.services.reactivation_service import AutoReactivationScheduler
from app.services.session_store import SessionStore
from app.services.snapshot_store import SnapshotStore, build_snapshot_store
from app.services.transport_service import WhatsAppTransport

logger = get_logger("runtime")

SESSIONS_STORE = "states"
REGISTRY_STORE = "disabled_chats"


def _is_worker_enabled(enabled: bool) -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return enabled


@dataclass
class BotRuntime:
    settings: Settings
    clock: Clock
    business_hours: BusinessHours
    sessions: SessionStore
    registry: DisableRegistry
    messenger: BotMessenger
    catalog: MessageCatalog
    scheduler: AutoReactivationScheduler
    backups: BackupService
    cleanup: CleanupScheduler
    commands: OwnerCommandRouter
    conversation: ConversationService
    challenges: CredentialChallengeManager

    def save_states(self) -> bool:
        """Flush both stores. Called on shutdown."""
        sessions_ok = self.sessions.save()
        registry_ok = self.registry.save()
        logger.info("States flushed", extra={"context": {"sessions": sessions_ok, "registry": registry_ok}})
        return sessions_ok and registry_ok

    def start_background(self) -> None:
        if _is_worker_enabled(self.settings.reactivation_enabled):
            self.scheduler.start()
        if _is_worker_enabled(self.settings.backup_enabled):
            self.backups.start()
        if _is_worker_enabled(self.settings.cleanup_enabled):
            self.cleanup.start()

    def stop_background(self) -> None:
        self.scheduler.stop()
        self.backups.stop()
        self.cleanup.stop()


def build_runtime(
    settings: Settings,
    *,
    clock: Optional[Clock] = None,
    nlu: Optional[NLUProvider] = None,
    transport: Optional[WhatsAppTransport] = None,
    channels: Optional[list[ChallengeChannel]] = None,
    sessions_store: Optional[SnapshotStore] = None,
    registry_store: Optional[SnapshotStore] = None,
) -> BotRuntime:
    clock = clock or Clock(settings.business_timezone)
    business_hours = BusinessHours(load_business_hours_table(settings.business_hours_file), clock)

    sessions = SessionStore(
        sessions_store or build_snapshot_store(settings, SESSIONS_STORE),
        clock,
        idle_session_days=settings.idle_session_days,
    )
    registry = DisableRegistry(
        registry_store or build_snapshot_store(settings, REGISTRY_STORE),
        clock,
        manual_intervention_hours=settings.manual_intervention_hours,
        completed_chat_hours=settings.completed_chat_hours,
    )
    sessions.load()
    registry.load()

    transport = transport or WhatsAppTransport(
        settings.transport_api_url,
        settings.transport_token,
        instance_id=settings.transport_instance_id,
        timeout=settings.transport_timeout_seconds,
    )
    messenger = BotMessenger(transport, clock, ttl_seconds=settings.sent_message_ttl_seconds)
    catalog = MessageCatalog()

    nlu = nlu or DialogflowProvider(
        settings.dialogflow_project_id or "",
        credentials_file=settings.dialogflow_credentials_file,
        timeout_seconds=settings.dialogflow_timeout_seconds,
    )

    scheduler = AutoReactivationScheduler(
        registry, business_hours, clock, check_interval_minutes=settings.reactivation_interval_minutes
    )
    backups = BackupService(
        sessions,
        registry,
        clock,
        settings.backup_dir,
        max_backups=settings.max_backups,
        max_named_backups=settings.max_named_backups,
        interval_hours=settings.backup_interval_hours,
    )
    cleanup = CleanupScheduler(
        sessions,
        backups,
        clock,
        inactivity_months=settings.inactivity_months,
        run_day=settings.cleanup_day,
        run_hour=settings.cleanup_hour,
    )
    commands = OwnerCommandRouter(settings, sessions, registry, scheduler, cleanup, messenger, catalog, clock)
    conversation = ConversationService(
        sessions,
        registry,
        commands,
        nlu,
        messenger,
        catalog,
        business_hours,
        group_suffix=settings.group_suffix,
        default_language=settings.dialogflow_language_default,
    )
    challenges = CredentialChallengeManager(
        clock,
        channels if channels is not None else build_challenge_channels(settings),
        lifetime_seconds=settings.qr_lifetime_seconds,
    )

    return BotRuntime(
        settings=settings,
        clock=clock,
        business_hours=business_hours,
        sessions=sessions,
        registry=registry,
        messenger=messenger,
        catalog=catalog,
        scheduler=scheduler,
        backups=backups,
        cleanup=cleanup,
        commands=commands,
        conversation=conversation,
        challenges=challenges,
    )


def get_runtime(request: Request) -> BotRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Bot runtime not initialized")
    return runtime
