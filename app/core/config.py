import os
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


class Settings:
    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent.parent.parent
        self.APP_NAME: str = os.getenv("APP_NAME", "GTMI API")
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
        self.ACCESS_TOKEN_EXPIRE_HOURS: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "8"))
        self.ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
        self.SQLALCHEMY_DATABASE_URI: str = os.getenv(
            "SQLALCHEMY_DATABASE_URI",
            f"sqlite:///{(base_dir / 'gtmi.db').as_posix()}",
        )
        self.ENV: str = os.getenv("ENV", "development")

        self.GTMI_MAX_ATTEMPTS: int = int(os.getenv("GTMI_MAX_ATTEMPTS", "5"))
        self.STOCK_LOW_THRESHOLD: int = int(os.getenv("STOCK_LOW_THRESHOLD", "20"))
        self.RBAC_PLATFORM_ADMIN_ALL_ACCESS: bool = _env_flag("RBAC_PLATFORM_ADMIN_ALL_ACCESS", True)

        self.SEED_TENANT_NAME: str = os.getenv("SEED_TENANT_NAME", "Municipio")
        self.SEED_ADMIN_LOGIN: str = os.getenv("SEED_ADMIN_LOGIN", "admin")
        self.SEED_ADMIN_PASSWORD: str | None = os.getenv("SEED_ADMIN_PASSWORD")

        default_cors = [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
        cors_origins = os.getenv("BACKEND_CORS_ORIGINS")
        self.BACKEND_CORS_ORIGINS: List[str] = (
            [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
            if cors_origins
            else default_cors
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
