import json
import os
import re
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    app_name: str = Field(default="HR Approval Portal", validation_alias="PROJECT_NAME")
    environment: str = Field(default="dev", validation_alias="ENVIRONMENT")
    build_version: Optional[str] = Field(default=None, validation_alias="BUILD_VERSION")

    # Local store for the audit trail of relayed approval commands.
    database_url: str = Field(default="sqlite+pysqlite:///./hr-portal.db", validation_alias="DATABASE_URL")
    run_migrations_on_start: bool = Field(default=False, validation_alias="RUN_MIGRATIONS_ON_START")

    # API prefix used by FastAPI router include (e.g. "/api").
    api_prefix: str = Field(default="", validation_alias="API_V1_STR")
    enable_docs: Optional[bool] = Field(
        default=None, validation_alias="ENABLE_DOCS", validate_default=True
    )
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=list, validation_alias="CORS_ORIGINS", validate_default=True
    )

    # External HR backend that owns requests, approvals and documents.
    approval_api_base_url: str = Field(
        default="http://localhost:3000/api/v1",
        validation_alias="APPROVAL_API_BASE_URL",
        validate_default=True,
    )
    approval_api_timeout_seconds: float = Field(
        default=10.0, validation_alias="APPROVAL_API_TIMEOUT_SECONDS"
    )
    # Name of the session cookie forwarded to the HR backend next to Authorization.
    approval_api_session_cookie: str = Field(
        default="session", validation_alias="APPROVAL_API_SESSION_COOKIE"
    )

    # The portal UI polls the inbox on this interval.
    inbox_poll_interval_seconds: int = Field(default=30, validation_alias="INBOX_POLL_INTERVAL_SECONDS")

    # Optional JSON file replacing the built-in workflow table.
    workflow_catalog_path: Optional[str] = Field(default=None, validation_alias="WORKFLOW_CATALOG_PATH")

    @field_validator("enable_docs", mode="before")
    @classmethod
    def default_enable_docs(cls, value, info: ValidationInfo):
        if value is None or value == "":
            env = str(info.data.get("environment", "dev") or "dev").lower()
            return env in {"dev", "development", "test"}
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "y", "on"}
        return bool(value)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_and_default_cors_origins(cls, value, info: ValidationInfo):
        env = str(info.data.get("environment", "dev") or "dev").lower()

        def _normalize_origin(o: str) -> str:
            s = str(o).strip().strip('"').strip("'")
            # Browsers send the Origin header without a trailing slash.
            if s.endswith("/"):
                s = s[:-1]
            return s

        if value is None or value == "" or value == []:
            if env in {"prod", "production"}:
                raise ValueError("CORS_ORIGINS must be explicitly set in production")
            return [
                "http://localhost:5173",
                "http://localhost:3000",
                "http://127.0.0.1:5173",
            ]

        if isinstance(value, str):
            s = value.strip()
            if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
                s = s[1:-1].strip()

            try:
                parsed = json.loads(s)
                if isinstance(parsed, str):
                    return [_normalize_origin(parsed)]
                if isinstance(parsed, list):
                    return [_normalize_origin(v) for v in parsed if str(v).strip()]
                return [_normalize_origin(str(parsed))]
            except json.JSONDecodeError:
                pass

            return [_normalize_origin(v) for v in s.split(",") if str(v).strip()]

        return [_normalize_origin(v) for v in value if str(v).strip()]

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, v: str) -> str:
        """
        Normalize API prefix coming from env/.env.

        On Windows Git Bash (MSYS), values like "/api" may show up as a Windows path
        (e.g. "C:/Program Files/Git/api"). Extract the trailing "/api..." portion.
        """
        if v is None:
            return ""
        s = str(v).strip()
        if not s:
            return ""

        if s.startswith("/api/") or s == "/api":
            return s

        m = re.search(r"(/api(?:/[^\s]*)?)$", s.replace("\\", "/"))
        if m:
            return m.group(1)

        if s.startswith("api"):
            return f"/{s}"

        return s

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Make SQLite relative paths stable across working directories.

        `sqlite+pysqlite:///./hr-portal.db` is resolved against the backend
        folder so running uvicorn from elsewhere keeps hitting the same file.
        """

        if v is None:
            return v

        s = str(v).strip()
        if not s:
            return s

        if s.startswith("postgres://"):
            s = "postgresql://" + s[len("postgres://") :]
        if s.startswith("postgresql://"):
            return "postgresql+psycopg://" + s[len("postgresql://") :]

        if not s.startswith("sqlite"):
            return s

        marker = ":///"
        i = s.find(marker)
        if i == -1:
            return s

        path_part = s[i + len(marker) :]

        if path_part.startswith("/") or path_part.startswith(":memory:") or re.match(r"^[A-Za-z]:/", path_part):
            return s

        if path_part.startswith("./") or path_part.startswith(".\\"):
            backend_root = Path(__file__).resolve().parents[1]
            abs_path = (backend_root / path_part[2:]).resolve().as_posix()
            return f"{s[: i + len(marker)]}{abs_path}"

        return s

    @field_validator("approval_api_base_url")
    @classmethod
    def validate_approval_api_base_url(cls, v: str, info: ValidationInfo) -> str:
        s = str(v or "").strip().rstrip("/")
        if not s.startswith("http://") and not s.startswith("https://"):
            raise ValueError("APPROVAL_API_BASE_URL must start with http:// or https://")

        env = str(info.data.get("environment", "dev") or "dev").strip().lower()
        if env in {"prod", "production"}:
            if not os.getenv("APPROVAL_API_BASE_URL"):
                raise ValueError("APPROVAL_API_BASE_URL must be explicitly set in production")
            if "localhost" in s or "127.0.0.1" in s:
                raise ValueError("APPROVAL_API_BASE_URL must not point to localhost in production")
        return s

    @field_validator("approval_api_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("APPROVAL_API_TIMEOUT_SECONDS must be positive")
        return v


settings = Settings()
