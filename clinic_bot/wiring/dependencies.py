from functools import lru_cache
import logging

from clinic_bot.core.config import settings
from clinic_bot.application.ports.backup import BackupPort
from clinic_bot.application.ports.mailer import MailerPort
from clinic_bot.application.ports.message_platform import MessagePlatformPort
from clinic_bot.application.ports.session_store import SessionStorePort
from clinic_bot.application.use_cases.booking_rules import BookingRules
from clinic_bot.application.use_cases.conversation_engine import ConversationEngine
from clinic_bot.application.use_cases.handle_incoming_message import HandleIncomingMessageUseCase
from clinic_bot.application.use_cases.notification_gateway import NotificationGateway
from clinic_bot.application.use_cases.send_reply import SendReplyUseCase
from clinic_bot.domain.entities.office import OfficeInfo
from clinic_bot.infrastructure.backup.dropbox_backup import DropboxBackup
from clinic_bot.infrastructure.backup.null_backup import NullBackup
from clinic_bot.infrastructure.mail.mock_mailer import MockMailer
from clinic_bot.infrastructure.mail.smtp_mailer import SmtpMailer
from clinic_bot.infrastructure.store.json_session_store import JsonSessionStore
from clinic_bot.infrastructure.store.memory_session_store import MemorySessionStore
from clinic_bot.infrastructure.store.sql_appointment_store import SqlAppointmentStore
from clinic_bot.infrastructure.whatsapp.mock_platform import MockWhatsAppPlatform
from clinic_bot.infrastructure.whatsapp.whatsapp_client import WhatsAppClient
from clinic_bot.infrastructure.whatsapp.whatsapp_platform import WhatsAppPlatform


logger = logging.getLogger(__name__)


def _is_dev() -> bool:
    return settings.ENV.lower() in {"dev", "local"}


@lru_cache
def get_appointment_store() -> SqlAppointmentStore:
    return SqlAppointmentStore(database_path=settings.DATABASE_PATH)


@lru_cache
def get_session_store() -> SessionStorePort:
    if settings.SESSION_STORE.lower() == "json":
        return JsonSessionStore(data_dir=settings.SESSION_DATA_DIR)
    return MemorySessionStore()


@lru_cache
def get_backup() -> BackupPort:
    if _is_dev() or not (settings.DROPBOX_ACCESS_TOKEN or settings.DROPBOX_REFRESH_TOKEN):
        logger.info("Using NullBackup (Dropbox not configured or ENV=dev/local)")
        return NullBackup()
    return DropboxBackup(
        database_path=settings.DATABASE_PATH,
        access_token=settings.DROPBOX_ACCESS_TOKEN,
        refresh_token=settings.DROPBOX_REFRESH_TOKEN,
        client_id=settings.DROPBOX_CLIENT_ID,
        client_secret=settings.DROPBOX_CLIENT_SECRET,
        remote_path=settings.DROPBOX_BACKUP_PATH,
        token_url=settings.DROPBOX_TOKEN_URL,
        content_url=settings.DROPBOX_CONTENT_URL,
        snapshot=get_appointment_store().snapshot,
    )


@lru_cache
def get_mailer() -> MailerPort:
    if _is_dev() or not settings.SMTP_USER:
        logger.info("Using MockMailer (SMTP not configured or ENV=dev/local)")
        return MockMailer()
    return SmtpMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        user=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        recipient=settings.NOTIFY_EMAIL_TO,
    )


@lru_cache
def get_notification_gateway() -> NotificationGateway:
    return NotificationGateway(
        mailer=get_mailer(),
        backup=get_backup(),
        max_workers=settings.NOTIFY_WORKERS,
    )


@lru_cache
def get_message_platform() -> MessagePlatformPort:
    logger.info(
        "WHATSAPP_ACCESS_TOKEN present=%s len=%s",
        bool(settings.WHATSAPP_ACCESS_TOKEN),
        len(settings.WHATSAPP_ACCESS_TOKEN or ""),
    )

    if not (settings.WHATSAPP_ACCESS_TOKEN and settings.WHATSAPP_PHONE_NUMBER_ID):
        if _is_dev():
            logger.info("Using MockWhatsAppPlatform (token missing, ENV=dev/local)")
            return MockWhatsAppPlatform()
        raise ValueError("WHATSAPP_ACCESS_TOKEN and WHATSAPP_PHONE_NUMBER_ID are required to send replies.")

    client = WhatsAppClient(
        access_token=settings.WHATSAPP_ACCESS_TOKEN,
        phone_number_id=settings.WHATSAPP_PHONE_NUMBER_ID,
        api_version=settings.META_GRAPH_API_VERSION,
    )
    return WhatsAppPlatform(client=client)


@lru_cache
def get_conversation_engine() -> ConversationEngine:
    return ConversationEngine(
        store=get_appointment_store(),
        rules=BookingRules(max_per_day=settings.MAX_APPOINTMENTS_PER_DAY),
        office=OfficeInfo(
            name=settings.OFFICE_NAME,
            address=settings.OFFICE_ADDRESS,
            hours=settings.OFFICE_HOURS,
            phone=settings.OFFICE_PHONE,
        ),
        menu_keywords=settings.MENU_KEYWORDS,
        time_slots=settings.TIME_SLOTS,
        candidate_days=settings.CANDIDATE_DAYS,
        timezone=settings.BUSINESS_TIMEZONE,
    )


@lru_cache
def get_handle_incoming_message_use_case() -> HandleIncomingMessageUseCase:
    return HandleIncomingMessageUseCase(
        engine=get_conversation_engine(),
        sessions=get_session_store(),
        send_reply=SendReplyUseCase(
            platform=get_message_platform(),
            auto_reply_enabled=settings.AUTO_REPLY_ENABLED,
        ),
        notifier=get_notification_gateway(),
    )
