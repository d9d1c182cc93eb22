from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from guildwatch.constants import (
    DEFAULT_DRAIN_INTERVAL_S,
    DEFAULT_LOGIN_TIMEOUT_S,
    DEFAULT_NOTIFIER_HEAD_START_S,
    DEFAULT_QUEUE_MAX_SIZE,
    DEFAULT_RELAY_TIMEOUT_S,
    DEFAULT_SETTLE_DELAY_S,
)
from guildwatch.core.models import OverflowPolicy


class AgentConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    token: str = ""
    label: str
    port: int = Field(ge=1, le=65535)
    scope_file: str

    @field_validator("token")
    @classmethod
    def drop_unexpanded_placeholder(cls, v: str) -> str:
        """An unset ``${VAR}`` reference means no token was provided."""
        v = v.strip()
        return "" if v.startswith("${") else v


class NotifierConfig(AgentConfig):
    recipient_id: str = ""

    @field_validator("recipient_id")
    @classmethod
    def drop_unexpanded_recipient(cls, v: str) -> str:
        v = v.strip()
        return "" if v.startswith("${") else v


class RelayConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    url: str = "http://localhost:3007"
    timeout_s: float = Field(default=DEFAULT_RELAY_TIMEOUT_S, gt=0)
    mode: Literal["http", "in_process"] = "http"


class QueueConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    max_size: Optional[int] = Field(default=DEFAULT_QUEUE_MAX_SIZE, ge=1)
    overflow: OverflowPolicy = OverflowPolicy.DROP_OLDEST
    drain_interval_s: float = Field(default=DEFAULT_DRAIN_INTERVAL_S, ge=0)


class StartupConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    settle_delay_s: float = Field(default=DEFAULT_SETTLE_DELAY_S, ge=0)
    notifier_head_start_s: float = Field(default=DEFAULT_NOTIFIER_HEAD_START_S, ge=0)
    login_timeout_s: float = Field(default=DEFAULT_LOGIN_TIMEOUT_S, gt=0)


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    host: str = "0.0.0.0"


class DeploymentConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    environment: str = "local"
    public_url: Optional[str] = None
    display_timezone: Optional[str] = None  # IANA name; process local time when unset


class GuildwatchConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    observer: AgentConfig
    notifier: NotifierConfig
    relay: RelayConfig = RelayConfig()
    queue: QueueConfig = QueueConfig()
    startup: StartupConfig = StartupConfig()
    api: ApiConfig = ApiConfig()
    deployment: DeploymentConfig = DeploymentConfig()

    @model_validator(mode="after")
    def validate_ports(self) -> "GuildwatchConfig":
        if self.observer.port == self.notifier.port:
            raise ValueError(f"observer and notifier must listen on different ports (both {self.observer.port})")
        return self
