"""Wire models for the bot's health/stats endpoints and Slack users.info."""

from pydantic import BaseModel, Field, NonNegativeInt


class HealthSnapshot(BaseModel):
    healthy: bool
    slack: bool
    database: bool


class TopUserEntry(BaseModel):
    id: NonNegativeInt = Field(..., description="Internal helper id")
    slack_id: str = Field(..., description="Slack user id")
    closed_ticket_count: NonNegativeInt


class StatsSnapshot(BaseModel):
    total_tickets: NonNegativeInt
    total_open: NonNegativeInt
    total_in_progress: NonNegativeInt
    total_closed: NonNegativeInt
    average_hang_time_minutes: float | None = None
    total_top_3_users_with_closed_tickets: list[TopUserEntry] = Field(
        default_factory=list
    )

    # Previous day, omitted by older bot versions
    prev_day_total: NonNegativeInt | None = None
    prev_day_open: NonNegativeInt | None = None
    prev_day_in_progress: NonNegativeInt | None = None
    prev_day_closed: NonNegativeInt | None = None
    prev_day_average_hang_time_minutes: float | None = None
    prev_day_top_3_users_with_closed_tickets: list[TopUserEntry] | None = None


class SlackProfile(BaseModel):
    display_name: str = ""
    real_name: str = ""


class SlackUser(BaseModel):
    id: str
    profile: SlackProfile


class UserInfoResponse(BaseModel):
    """users.info reply, discriminated by ``ok``."""

    ok: bool
    user: SlackUser | None = None
    error: str | None = None
