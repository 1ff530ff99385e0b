"""Record store configuration (pydantic-settings). Env prefix: DB_."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DBConfig(BaseSettings):
    """Where the analysis history lives and how SQLite is tuned. Also read from .env."""

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_url: str = Field(default="sqlite:///./data/contracts.db", description="History database URL")
    echo_sql: bool = Field(default=False, description="Echo SQL statements")
    create_tables: bool = Field(default=True, description="Create missing tables on init_db()")
    max_page_size: int = Field(default=100, ge=1, description="Upper bound for history list/search limits")

    # Concurrent runs write from worker threads; WAL plus a busy timeout avoids "database is locked".
    sqlite_busy_timeout_ms: int = Field(default=5000, description="SQLite busy timeout in ms")
    sqlite_journal_mode: str = Field(default="WAL", description="SQLite journal_mode PRAGMA")
    sqlite_synchronous: str = Field(default="NORMAL", description="SQLite synchronous PRAGMA")
