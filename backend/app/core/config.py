import os
from typing import List, Optional, Union

from pydantic import AnyHttpUrl, validator
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    API_V1_STR: str = "/api"
    PROJECT_NAME: str = "Records Analytics API"
    SECRET_KEY: str = os.getenv("SECRET_KEY", "development_secret_key")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS settings
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Database settings
    MYSQL_SERVER: str = os.getenv("MYSQL_SERVER", "localhost")
    MYSQL_USER: str = os.getenv("MYSQL_USER", "root")
    MYSQL_PASSWORD: str = os.getenv("MYSQL_PASSWORD", "")
    MYSQL_DB: str = os.getenv("MYSQL_DB", "records_analytics")
    MYSQL_PORT: str = os.getenv("MYSQL_PORT", "3306")
    # Overrides the MySQL settings when set, e.g. sqlite:///./analytics.db
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")

    @property
    def sqlalchemy_database_uri(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+pymysql://{self.MYSQL_USER}:{self.MYSQL_PASSWORD}@"
            f"{self.MYSQL_SERVER}:{self.MYSQL_PORT}/{self.MYSQL_DB}"
        )

    # ==========================================
    # Analytics engine
    # ==========================================
    # Timezone used for calendar date ranges (this_month, this_quarter ...)
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")

    # Dashboard computation (per request / per scheduled snapshot)
    MAX_CONCURRENT_REFRESHES: int = int(os.getenv("MAX_CONCURRENT_REFRESHES", "5"))
    REFRESH_TIMEOUT_SECONDS: int = int(os.getenv("REFRESH_TIMEOUT_SECONDS", "60"))

    # Live widgets: trailing-edge debounce for change notifications (seconds)
    WIDGET_REFRESH_DEBOUNCE_SECONDS: float = float(os.getenv("WIDGET_REFRESH_DEBOUNCE_SECONDS", "0.25"))

    # Grid delta applied to a duplicated widget
    DUPLICATE_OFFSET_X: int = int(os.getenv("DUPLICATE_OFFSET_X", "1"))
    DUPLICATE_OFFSET_Y: int = int(os.getenv("DUPLICATE_OFFSET_Y", "1"))

    # ==========================================
    # Scheduled reports
    # ==========================================
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    SCHEDULED_REPORT_SWEEP_SECONDS: int = int(os.getenv("SCHEDULED_REPORT_SWEEP_SECONDS", "60"))
    SCHEDULED_REPORT_BATCH_SIZE: int = int(os.getenv("SCHEDULED_REPORT_BATCH_SIZE", "100"))

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = 'ignore'  # ignore keys in .env that are not declared here

settings = Settings()
