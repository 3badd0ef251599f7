"""Auto-publish configuration snapshot."""

import re
from datetime import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contentpilot.core.time import parse_hhmm
from contentpilot.core.utils import split_csv

HHMM_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


class Frequency(str, Enum):
    """How often the scheduler fires."""
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class AutoPublishSettings(BaseModel):
    """
    Singleton auto-publish configuration.

    Instances are immutable; an admin update produces a new snapshot via
    ``merged``. The scheduler reads one snapshot per run.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    is_enabled: bool = Field(default=False)
    publish_time: str = Field(default="09:00", description="Wall-clock fire time, HH:MM")
    frequency: Frequency = Field(default=Frequency.DAILY)
    topics: List[str] = Field(default_factory=list, description="Topics or URLs, served round-robin")
    default_category_id: Optional[str] = Field(default=None)
    ai_provider: str = Field(default="local", description="Provider id, or comma-separated ids for fan-out")
    content_length: int = Field(default=800, gt=0, description="Target word count")
    weekday: int = Field(default=0, ge=0, le=6, description="Fire day for weekly frequency, 0=Monday")
    interval_hours: int = Field(default=24, ge=1, le=24, description="Spacing for custom frequency")
    timezone: Optional[str] = Field(default=None, description="Overrides the service timezone")

    @field_validator('publish_time')
    @classmethod
    def validate_publish_time(cls, v):
        """Accept H:MM or HH:MM and store as zero-padded HH:MM."""
        value = (v or "").strip()
        if re.match(r'^\d:[0-5]\d$', value):
            value = "0" + value
        if not HHMM_PATTERN.match(value):
            raise ValueError(f"publish_time must be HH:MM, got '{v}'")
        return value

    @field_validator('topics')
    @classmethod
    def validate_topics(cls, v):
        return [topic.strip() for topic in v if topic and topic.strip()]

    @field_validator('default_category_id', mode='before')
    @classmethod
    def validate_category(cls, v):
        return None if v is None or v == "" else str(v)

    @property
    def provider_ids(self) -> List[str]:
        return split_csv(self.ai_provider)

    @property
    def publish_at(self) -> time:
        return parse_hhmm(self.publish_time)

    def merged(self, partial: Dict[str, Any]) -> "AutoPublishSettings":
        """Return a new validated snapshot with ``partial`` applied."""
        data = self.model_dump()
        data.update({k: v for k, v in partial.items() if k in type(self).model_fields})
        return type(self).model_validate(data)
