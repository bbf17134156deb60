from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "Asset Custody"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./custody.db"
    METRICS_ENABLED: bool = True
    STORE_CODE: str = "HEAD_OFFICE_STORE"
    TRANSFER_EVIDENCE_DOC_TYPES: list[str] = ["TransferChallan"]
    DOCUMENT_REJECTED_STATUSES: list[str] = ["Archived"]
    TRANSFERS_LIST_DEFAULT_LIMIT: int = 50
    TRANSFERS_LIST_MAX_LIMIT: int = 200


settings = Settings()
