from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    DATABASE_PATH: str = "./data/citas.db"
    SESSION_STORE: str = "memory"  # "memory" | "json"
    SESSION_DATA_DIR: str = "./data/sessions"

    BUSINESS_TIMEZONE: str = "America/Bogota"
    OFFICE_NAME: str = "Consultorio doctor Juan Carlos Rosas"
    OFFICE_ADDRESS: str = "Calle 21 #26-08 Esquina clínica Fatima, San juan de Pasto."
    OFFICE_HOURS: str = "Lunes a viernes, 15:00 PM – 18:00 PM."
    OFFICE_PHONE: str = "3161044386- 602 7212171"
    MENU_KEYWORDS: list[str] = [
        "hola", "ola", "menu", "menú", "inicio", "buenas", "buen", "buenos",
        "doctor", "doc", "dr", "medico", "médico", "medicina", "cita", "consulta",
        "consultar", "necesito", "programar", "quiero", "solicitar", "solicito",
        "hello", "hi", "good", "morning", "afternoon", "evening", "night",
    ]

    TIME_SLOTS: list[str] = ["15:00", "15:30", "16:00", "16:30", "17:00", "17:30"]
    CANDIDATE_DAYS: int = 7
    MAX_APPOINTMENTS_PER_DAY: int = 2

    META_VERIFY_TOKEN: str = ""
    META_APP_SECRET: str | None = None
    META_GRAPH_API_VERSION: str = "v20.0"
    WHATSAPP_ACCESS_TOKEN: str | None = None
    WHATSAPP_PHONE_NUMBER_ID: str | None = None
    AUTO_REPLY_ENABLED: bool = False

    DROPBOX_ACCESS_TOKEN: str | None = None
    DROPBOX_REFRESH_TOKEN: str | None = None
    DROPBOX_CLIENT_ID: str | None = None
    DROPBOX_CLIENT_SECRET: str | None = None
    DROPBOX_BACKUP_PATH: str = "/citas.db"
    DROPBOX_TOKEN_URL: str = "https://api.dropbox.com/oauth2/token"
    DROPBOX_CONTENT_URL: str = "https://content.dropboxapi.com/2"

    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    NOTIFY_EMAIL_TO: str | None = None  # defaults to SMTP_USER

    NOTIFY_WORKERS: int = 2


settings = Settings()
