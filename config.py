import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _env(*names: str, default: Optional[str] = None) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value.strip()
    return default


class Settings(BaseModel):
    """Runtime configuration, read from the environment (and .env if present)."""

    mongo_url: str = "mongodb://localhost:27017"
    database_name: str = "krishisahay"

    groq_api_key: Optional[str] = None
    groq_model: str = "llama-3.3-70b-versatile"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"

    admin_email: Optional[str] = None
    admin_panel_user: Optional[str] = None
    admin_panel_pass: Optional[str] = None

    frontend_url: str = "http://localhost:5173"

    firebase_project_id: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_private_key: Optional[str] = None

    log_level: str = "INFO"
    port: int = 5000

    @classmethod
    def from_env(cls) -> "Settings":
        private_key = _env("FIREBASE_PRIVATE_KEY")
        if private_key:
            # keys pasted into .env files carry literal "\n" sequences
            private_key = private_key.replace("\\n", "\n")
        return cls(
            mongo_url=_env("MONGO_URL", "DATABASE_URL", default=cls.model_fields["mongo_url"].default),
            database_name=_env("DATABASE_NAME", default="krishisahay"),
            groq_api_key=_env("GROQ_API_KEY"),
            groq_model=_env("GROQ_MODEL", default="llama-3.3-70b-versatile"),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_model=_env("OPENAI_MODEL", default="gpt-3.5-turbo"),
            admin_email=_env("ADMIN_EMAIL"),
            admin_panel_user=_env("ADMIN_PANEL_USER"),
            admin_panel_pass=_env("ADMIN_PANEL_PASS"),
            frontend_url=_env("FRONTEND_URL", default="http://localhost:5173"),
            firebase_project_id=_env("FIREBASE_PROJECT_ID"),
            firebase_client_email=_env("FIREBASE_CLIENT_EMAIL"),
            firebase_private_key=private_key,
            log_level=_env("LOG_LEVEL", default="INFO").upper(),
            port=int(_env("PORT", default="5000")),
        )
