import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from clinic_bot.api.v1.messages import router as messages_router
from clinic_bot.api.webhooks import router as webhooks_router
from clinic_bot.application.exceptions import BackupError
from clinic_bot.core.config import settings
from clinic_bot.wiring.dependencies import get_appointment_store, get_backup, get_notification_gateway

CONTEXT_KEYS = (
    "message_id", "sender_id", "flow", "step", "event", "next_step", "appointment_id",
    "date", "time_slot", "effect", "reason", "status", "error", "error_code", "message_count",
    "reply_text", "text_length", "path", "size",
)


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(asctime)s %(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)

logger = logging.getLogger(__name__)


def initialize_store() -> None:
    """Restore the database from the remote backup, then make sure the table exists."""
    store = get_appointment_store()
    try:
        if get_backup().download():
            store.dispose()
    except BackupError as e:
        logger.error("Could not restore database from backup; using local file", extra={"error": str(e)})
    store.create_schema()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.started_at = time.monotonic()
    app.state.ready = False
    initialize_store()
    app.state.ready = True
    logger.info("Appointment bot ready", extra={"status": "ok"})
    yield
    get_notification_gateway().shutdown(wait=True)


app = FastAPI(title="Clinic Appointment Bot", version="1.0.0", lifespan=lifespan)

app.include_router(webhooks_router, tags=["webhooks"])
app.include_router(messages_router, prefix="/api/v1", tags=["messages"])


@app.get("/health")
def health():
    started_at = getattr(app.state, "started_at", None)
    uptime = round(time.monotonic() - started_at, 1) if started_at is not None else 0.0
    if not getattr(app.state, "ready", False):
        return JSONResponse(status_code=503, content={"status": "starting", "uptime_seconds": uptime})
    return {"status": "ok", "uptime_seconds": uptime}
