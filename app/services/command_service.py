"""Owner-only administrative commands, received through the chat itself."""

from typing import Awaitable, Callable, Optional

from app.config import Settings
from app.logging_config import get_logger
from app.schemas.disable import DisableReason
from app.services.business_hours import format_datetime
from app.services.cleanup_service import CleanupScheduler
from app.services.clock import Clock
from app.services.disable_registry import DisableRegistry
from app.services.message_catalog import MessageCatalog
from app.services.message_service import BotMessenger
from app.services.reactivation_service import AutoReactivationScheduler
from app.services.session_store import SessionStore
from app.services.transport_service import TransportError

logger = get_logger("command_service")

GOODBYE_TOKEN = "👋"
REACTIVATE_COMMAND = "/on"

MSG_HELP = (
    "🤖 *Comandos Administrativos*\n\n"
    "/help - Muestra este mensaje de ayuda\n"
    "/off [horas] - Desactiva el bot (default: 24h)\n"
    "/on - Activa el bot nuevamente\n"
    "/status - Verifica el estado actual del bot\n"
    "/reset [userId] - Reinicia el estado de un usuario\n"
    "/stats - Muestra estadísticas de uso\n"
    "/clean - Limpia datos antiguos\n"
    "/cleanusers [meses] - Elimina usuarios inactivos (default: 3 meses)\n"
    "/setinactive [meses] - Configura el período de inactividad\n"
    "/reactivation - Gestionar sistema de reactivación automática\n"
    "/reactivate [chatId] - Reactivar chat específico manualmente"
)
MSG_INVALID_HOURS = "❌ Por favor especifica un número válido de horas (1-{max_hours})"
MSG_DISABLED = "✅ Bot desactivado por {hours} horas. Se reactivará automáticamente el {until}"
MSG_ENABLED = "✅ Bot activado nuevamente para este chat"
MSG_ALREADY_ENABLED = "✅ El bot ya estaba activo para este chat"
MSG_RESET_OK = "✅ Estado del usuario {user_id} reiniciado correctamente"
MSG_RESET_MISSING = "❌ No se encontró estado para el usuario {user_id}"
MSG_CLEAN_DONE = "🧹 Limpieza completada:\n- {sessions} sesiones antiguas eliminadas\n- {entries} entradas expiradas limpiadas"
MSG_INVALID_CLEANUSERS = "❌ Por favor especifica un número válido de meses (por ejemplo: /cleanusers 3)"
MSG_CLEANUSERS_DONE = "✅ Limpieza completada: {deleted} usuarios eliminados por inactividad de {months} meses"
MSG_CLEANUSERS_FAILED = "❌ Error al ejecutar la limpieza de usuarios"
MSG_INVALID_SETINACTIVE = "❌ Por favor especifica un número válido de meses (por ejemplo: /setinactive 6)"
MSG_SETINACTIVE_DONE = "✅ Período de inactividad actualizado a {months} meses"
MSG_REACTIVATION_STARTED = "✅ Sistema de reactivación automática iniciado"
MSG_REACTIVATION_STOPPED = "⏹️ Sistema de reactivación automática detenido"
MSG_INVALID_INTERVAL = "❌ Debes especificar un número válido de minutos (ej: /reactivation interval 10)"
MSG_INTERVAL_DONE = "✅ Intervalo actualizado a {minutes} minutos"
MSG_CHECK_DONE = "✅ Verificación manual completada: {count} chats reactivados"
MSG_UNKNOWN_SUBCOMMAND = "❌ Subcomando no reconocido. Usa /reactivation sin argumentos para ver opciones disponibles."
MSG_REACTIVATE_MISSING = "❌ Debes especificar el ID del chat a reactivar (ej: /reactivate 5551234567)"
MSG_REACTIVATE_DONE = "✅ Chat {chat_id} reactivado exitosamente"
MSG_REACTIVATE_NOT_DISABLED = "ℹ️ El chat {chat_id} no estaba desactivado"
MSG_COMMAND_ERROR = "❌ Error al ejecutar el comando: {error}"

STATUS_LINES = {
    DisableReason.COMMAND: "⚠️ *Desactivado* por comando hasta: {until}",
    DisableReason.MANUAL_INTERVENTION: "🧑‍💼 *Intervención manual* registrada hasta: {until}",
    DisableReason.COMPLETED: "✅ *Proceso completado* - Bot desactivado hasta: {until}",
}


def user_id_from_chat(chat_id: str) -> str:
    return chat_id.split("@", 1)[0]


def _parse_positive_int(value: Optional[str]) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


Handler = Callable[[str, list[str]], Awaitable[str]]


class OwnerCommandRouter:
    def __init__(
        self,
        settings: Settings,
        sessions: SessionStore,
        registry: DisableRegistry,
        scheduler: AutoReactivationScheduler,
        cleanup: CleanupScheduler,
        messenger: BotMessenger,
        catalog: MessageCatalog,
        clock: Clock,
    ):
        self.settings = settings
        self.owner_number = settings.owner_number
        self.sessions = sessions
        self.registry = registry
        self.scheduler = scheduler
        self.cleanup = cleanup
        self.messenger = messenger
        self.catalog = catalog
        self.clock = clock
        self.commands: dict[str, Handler] = {
            GOODBYE_TOKEN: self.show_goodbye,
            "/help": self.show_help,
            "/off": self.deactivate,
            "/on": self.activate,
            "/status": self.check_status,
            "/reset": self.reset_user,
            "/stats": self.show_stats,
            "/clean": self.clean_old_data,
            "/cleanusers": self.clean_inactive_users,
            "/setinactive": self.set_inactive_period,
            "/reactivation": self.manage_reactivation,
            "/reactivate": self.force_reactivate,
        }

    # === CLASSIFICATION ===

    def is_owner(self, identity: str) -> bool:
        return user_id_from_chat(identity) == self.owner_number

    def is_command(self, text: Optional[str]) -> bool:
        trimmed = (text or "").strip()
        if trimmed == GOODBYE_TOKEN:
            return True
        return trimmed.startswith("/") and trimmed.split()[0] in self.commands

    def detect_owner_message(self, chat_id: str, text: Optional[str]) -> bool:
        """True when the owner spoke in this chat with anything but /on. Does not touch the registry."""
        if not self.is_owner(chat_id):
            return False
        if (text or "").strip().startswith(REACTIVATE_COMMAND):
            return False
        logger.info(f"Owner message detected in {chat_id}")
        return True

    # === DISPATCH ===

    async def handle_command(self, chat_id: str, text: str) -> Optional[str]:
        """Run a command and reply in the same chat. Unknown commands are ignored."""
        tokens = (text or "").strip().split()
        if not tokens or tokens[0] not in self.commands:
            return None
        command, args = tokens[0], tokens[1:]

        logger.info(f"Owner command: {command}", extra={"context": {"chat_id": chat_id, "args": args}})
        try:
            reply = await self.commands[command](chat_id, args)
        except Exception as e:
            logger.error(f"Command {command} failed: {e}", exc_info=True)
            reply = MSG_COMMAND_ERROR.format(error=e)

        try:
            await self.messenger.send(chat_id, reply)
        except TransportError as e:
            logger.error(f"Could not deliver command reply to {chat_id}: {e}")
        return reply

    def _format(self, instant) -> str:
        return format_datetime(self.clock.localize(instant), "es")

    # === COMMANDS ===

    async def show_goodbye(self, chat_id: str, args: list[str]) -> str:
        return self.catalog.owner_goodbye()

    async def show_help(self, chat_id: str, args: list[str]) -> str:
        return MSG_HELP

    async def deactivate(self, chat_id: str, args: list[str]) -> str:
        max_hours = self.settings.command_disable_max_hours
        hours = self.settings.command_disable_default_hours
        if args:
            hours = _parse_positive_int(args[0])
            if hours is None or hours > max_hours:
                return MSG_INVALID_HOURS.format(max_hours=max_hours)

        entry = self.registry.disable_by_command(chat_id, hours, issued_by=self.owner_number)
        return MSG_DISABLED.format(hours=hours, until=self._format(entry.expires_at))

    async def activate(self, chat_id: str, args: list[str]) -> str:
        if self.registry.reactivate(chat_id):
            return MSG_ENABLED
        return MSG_ALREADY_ENABLED

    async def check_status(self, chat_id: str, args: list[str]) -> str:
        self.registry.sweep_expired()
        lines = ["🤖 *Estado del Bot*", ""]

        detail = self.registry.status_detail(chat_id)
        if detail is None:
            lines.append("✅ *Activo*")
        else:
            reason, entry = detail
            lines.append(STATUS_LINES[reason].format(until=self._format(entry.expires_at)))

        counts = self.registry.counts()
        lines += [
            "",
            f"Chats desactivados por comando: {counts[DisableReason.COMMAND]}",
            f"Intervenciones manuales: {counts[DisableReason.MANUAL_INTERVENTION]}",
            f"Procesos completados: {counts[DisableReason.COMPLETED]}",
        ]
        return "\n".join(lines)

    async def reset_user(self, chat_id: str, args: list[str]) -> str:
        target = args[0] if args else user_id_from_chat(chat_id)
        if self.sessions.reset(target):
            return MSG_RESET_OK.format(user_id=target)
        return MSG_RESET_MISSING.format(user_id=target)

    async def show_stats(self, chat_id: str, args: list[str]) -> str:
        stats = self.sessions.stats()
        counts = self.registry.counts()
        return (
            "📊 *Estadísticas del Bot*\n\n"
            f"Total de usuarios: {stats.total_users}\n"
            f"Usuarios en español: {stats.spanish_users}\n"
            f"Usuarios en inglés: {stats.english_users}\n"
            f"Usuarios sin idioma definido: {stats.unset_language_users}\n\n"
            f"Activos hoy: {stats.active_today}\n"
            f"Activos últimos 7 días: {stats.active_last_7_days}\n\n"
            f"Chats desactivados: {counts[DisableReason.COMMAND]}\n"
            f"Intervenciones manuales: {counts[DisableReason.MANUAL_INTERVENTION]}\n"
            f"Procesos completados: {counts[DisableReason.COMPLETED]}"
        )

    async def clean_old_data(self, chat_id: str, args: list[str]) -> str:
        deleted_sessions = self.sessions.cleanup_old_sessions()
        released = self.registry.sweep_expired()
        return MSG_CLEAN_DONE.format(sessions=deleted_sessions, entries=released)

    async def clean_inactive_users(self, chat_id: str, args: list[str]) -> str:
        months = None
        if args:
            months = _parse_positive_int(args[0])
            if months is None:
                return MSG_INVALID_CLEANUSERS

        result = self.cleanup.run_manual_cleanup(months)
        if not result.ok:
            logger.error(f"Manual cleanup failed: {result.error}")
            return MSG_CLEANUSERS_FAILED
        report = result.value
        return MSG_CLEANUSERS_DONE.format(deleted=report.deleted_users, months=report.inactivity_months)

    async def set_inactive_period(self, chat_id: str, args: list[str]) -> str:
        months = _parse_positive_int(args[0]) if args else None
        if months is None or not self.cleanup.set_inactivity_period(months):
            return MSG_INVALID_SETINACTIVE
        return MSG_SETINACTIVE_DONE.format(months=months)

    def _reactivation_status(self) -> str:
        status = self.scheduler.get_status()
        pending = status["pending_reactivations"]
        last_check = self.scheduler.last_check_at
        return (
            "🔄 *Estado del Sistema de Reactivación*\n\n"
            f"• Estado: {'✅ Activo' if status['running'] else '❌ Inactivo'}\n"
            f"• Intervalo: {status['check_interval_minutes']} minutos\n"
            f"• Última verificación: {self._format(last_check) if last_check else 'Nunca'}\n\n"
            f"• Pendientes de reactivación: {status['pending_total']}\n"
            f"  - Por comando: {pending['command_disables']}\n"
            f"  - Intervenciones: {pending['manual_interventions']}\n"
            f"  - Procesos completados: {pending['completed_chats']}\n\n"
            "Comandos disponibles:\n"
            "/reactivation start - Iniciar sistema\n"
            "/reactivation stop - Detener sistema\n"
            "/reactivation interval [minutos] - Cambiar intervalo\n"
            "/reactivation check - Forzar verificación"
        )

    async def manage_reactivation(self, chat_id: str, args: list[str]) -> str:
        if not args:
            return self._reactivation_status()

        sub_command = args[0].lower()
        if sub_command == "start":
            self.scheduler.start()
            return MSG_REACTIVATION_STARTED
        if sub_command == "stop":
            self.scheduler.stop()
            return MSG_REACTIVATION_STOPPED
        if sub_command == "interval":
            minutes = _parse_positive_int(args[1]) if len(args) > 1 else None
            if minutes is None or not self.scheduler.set_check_interval(minutes):
                return MSG_INVALID_INTERVAL
            return MSG_INTERVAL_DONE.format(minutes=minutes)
        if sub_command == "check":
            count = self.scheduler.check_and_reactivate()
            return MSG_CHECK_DONE.format(count=count)
        return MSG_UNKNOWN_SUBCOMMAND

    async def force_reactivate(self, chat_id: str, args: list[str]) -> str:
        if not args:
            return MSG_REACTIVATE_MISSING
        target = args[0]
        if "@" not in target:
            target = f"{target}{self.settings.transport_domain}"

        if self.registry.reactivate(target):
            return MSG_REACTIVATE_DONE.format(chat_id=target)
        return MSG_REACTIVATE_NOT_DISABLED.format(chat_id=target)
