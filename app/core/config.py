from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "production"  # local | production
    APP_NAME: str = "admin-rest-backend"
    DEBUG: bool = False

    JWT_SECRET: str = "change_me_jwt"
    JWT_TTL_MINUTES: int = 240

    CORS_ORIGINS: str = "http://localhost:3000"

    DATABASE_URL: str

    DEFAULT_PAGE_LIMIT: int = 10
    FILTER_RELATION_MARKER: str = "with:"
    # False keeps malformed orWhere clauses non-fatal (skip and log).
    FILTER_OR_WHERE_STRICT: bool = False

    ROLES_BOOTSTRAP_ENABLED: bool = True
    ADMIN_BOOTSTRAP_EMAIL: str = "admin@demo.com"
    ADMIN_BOOTSTRAP_PASSWORD: str = "123456"
    ADMIN_BOOTSTRAP_NAME: str = "Super Admin"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def debug_mode(self) -> bool:
        return self.DEBUG or self.APP_ENV == "local"

settings = Settings()
