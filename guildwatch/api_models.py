"""API request/response models for the agent HTTP listeners."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from guildwatch.core.models import NotificationRecord


class NotificationRecordDTO(BaseModel):  # type: ignore[explicit-any]
    """Relay request body: one detected member join."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    username: str = Field(..., min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)
    guild_name: str = Field(..., alias="guildName")
    guild_id: str = Field(..., alias="guildId", min_length=1)
    date: str = ""
    time: str = ""
    timestamp: str = ""
    source: str = ""

    def to_record(self) -> NotificationRecord:
        return NotificationRecord(
            username=self.username,
            user_id=self.user_id,
            guild_name=self.guild_name,
            guild_id=self.guild_id,
            date=self.date,
            time=self.time,
            timestamp=self.timestamp,
            source=self.source,
        )


class RelayResponseDTO(BaseModel):  # type: ignore[explicit-any]
    """Relay response body."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success", "error", "queued"]
    message: str


class AgentStatusDTO(BaseModel):  # type: ignore[explicit-any]
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    role: Literal["observer", "notifier"]
    label: str
    ready: bool
    username: Optional[str] = None
    communities: int
    sender_ready: Optional[bool] = Field(default=None, alias="senderReady")
    pending: Optional[int] = None
    dropped: Optional[int] = None


class StatusDTO(BaseModel):  # type: ignore[explicit-any]
    """``GET /`` response."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: str
    uptime: float
    timestamp: str
    environment: str
    public_url: Optional[str] = Field(default=None, alias="publicUrl")
    agent: AgentStatusDTO


class HealthDTO(BaseModel):  # type: ignore[explicit-any]
    """``GET /health`` response."""

    model_config = ConfigDict(frozen=True)

    status: Literal["healthy"] = "healthy"
    timestamp: str
    uptime: float
