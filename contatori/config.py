from enum import Enum

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SmsAdapter(Enum):
    GATEWAYAPI = "gatewayapi"
    LOG = "log"


class DatabaseConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    url: str = Field(
        default="sqlite:///./contatori.db",
        validation_alias=AliasChoices("DATABASE_URL"),
    )
    pool_size: int = Field(default=5, validation_alias=AliasChoices("DB_POOL_SIZE"))
    max_overflow: int = Field(default=10, validation_alias=AliasChoices("DB_MAX_OVERFLOW"))
    pool_recycle: int = Field(default=300, validation_alias=AliasChoices("DB_POOL_RECYCLE"))

    @field_validator("url")
    @classmethod
    def _normalise_scheme(cls, value: str) -> str:
        # Hosting providers still hand out the legacy postgres:// scheme
        if value.startswith("postgres://"):
            return value.replace("postgres://", "postgresql://", 1)
        return value


class SmsConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SMS_", env_file=".env", extra="ignore")

    adapter: SmsAdapter = SmsAdapter.LOG
    api_token: str = ""
    sender: str = "Contatori"
    api_url: str = "https://gatewayapi.com/rest/mtsms"
    timeout_seconds: float = 10.0


class ApiConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    api_token: str = Field(default="", validation_alias=AliasChoices("API_TOKEN"))
    enable_test_endpoints: bool = Field(
        default=False, validation_alias=AliasChoices("ENABLE_TEST_ENDPOINTS")
    )
    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("HOST"))
    port: int = Field(default=10000, validation_alias=AliasChoices("PORT"))


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    timezone: str = "Europe/Rome"
    slot_capacity: int = 5
    database: DatabaseConfig = Field(default_factory=lambda: DatabaseConfig())
    sms: SmsConfig = Field(default_factory=lambda: SmsConfig())
    api: ApiConfig = Field(default_factory=lambda: ApiConfig())
