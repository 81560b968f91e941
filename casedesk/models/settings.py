# casedesk/models/settings.py
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from .base import Record


class Section(BaseModel):
    # a misspelled key must fail, not vanish
    model_config = ConfigDict(extra="forbid")


class NotificationSettings(Section):
    email_enabled: bool = True
    sms_enabled: bool = False
    inactivity_alerts_enabled: bool = True
    inactivity_threshold_days: int = Field(7, ge=1, le=30)


class RemindersConfig(Section):
    auto_reminders_enabled: bool = True
    default_reminder_interval: Literal["daily", "weekly", "custom"] = "weekly"
    custom_reminder_days: Optional[int] = None


class ExportSettings(Section):
    default_format: Literal["excel", "pdf"] = "excel"
    include_filters: bool = True


class DefaultViews(Section):
    dashboard_filter: Literal["all", "open", "pending", "closed"] = "open"
    default_columns: list[str] = Field(
        default_factory=lambda: ["customerName", "status", "assignedTo", "createdAt"]
    )


class AutoStatusRules(Section):
    enabled: bool = False
    inactivity_days: int = Field(14, ge=1, le=90)
    target_status: str = "Pending Follow-Up"


class Preferences(Section):
    timezone: str = "UTC"
    language: Literal["en", "ar", "fr", "hi"] = "en"
    date_format: Literal["DD/MM/YYYY", "MM/DD/YYYY", "YYYY-MM-DD"] = "DD/MM/YYYY"


SECTIONS = {
    "notifications": NotificationSettings,
    "reminders_config": RemindersConfig,
    "export_settings": ExportSettings,
    "default_views": DefaultViews,
    "auto_status_rules": AutoStatusRules,
    "preferences": Preferences,
}


class Settings(Record):
    """The single global settings record (no owning admin)."""

    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    reminders_config: RemindersConfig = Field(default_factory=RemindersConfig)
    export_settings: ExportSettings = Field(default_factory=ExportSettings)
    default_views: DefaultViews = Field(default_factory=DefaultViews)
    auto_status_rules: AutoStatusRules = Field(default_factory=AutoStatusRules)
    preferences: Preferences = Field(default_factory=Preferences)
