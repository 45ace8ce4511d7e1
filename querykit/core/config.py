from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="QUERYKIT_",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "query-toolkit"

    DEFAULT_PAGE: int = 1
    DEFAULT_LIMIT: int = 10
    LIST_DELIMITER: str = ","
    SEARCH_REGEX_OPTIONS: str = "i"  # passed through as "$options" of search clauses

    DATABASE_URL: str = "sqlite+pysqlite:///:memory:"
    SQL_ECHO: bool = False


settings = Settings()
