"""
Raw tracking entries consumed by the baseline service.

Entries arrive from the tracking UI as loosely-shaped records; unknown fields
are ignored and camelCase keys are accepted alongside snake_case ones.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from alert_governance.clock import ensure_aware

_ENTRY_MODEL_CONFIG = {
    "frozen": True,
    "extra": "ignore",
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class _TimestampedEntry(BaseModel):
    model_config = _ENTRY_MODEL_CONFIG

    timestamp: datetime = Field(..., description="When the observation was made")

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class EmotionEntry(_TimestampedEntry):
    """A single emotion observation (intensity on a 1-5 scale)."""

    emotion: str = Field(default="unknown", description="Emotion label")
    intensity: Optional[float] = Field(default=None, description="Observed intensity")


class SensoryEntry(_TimestampedEntry):
    """A single sensory observation."""

    sensory_type: Optional[str] = Field(default=None, description="Sensory modality")
    type: Optional[str] = Field(default=None, description="Legacy modality field")
    response: Optional[str] = Field(default=None, description="Observed response")
    intensity: Optional[float] = Field(default=None, description="Observed intensity")

    @property
    def behavior(self) -> str:
        """Behavior identifier: sensory_type, then type, then response."""
        for candidate in (self.sensory_type, self.type, self.response):
            if candidate:
                return candidate
        return "unknown"


class RoomConditions(BaseModel):
    model_config = _ENTRY_MODEL_CONFIG

    noise_level: Optional[float] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    lighting: Optional[str] = None


class ClassroomInfo(BaseModel):
    model_config = _ENTRY_MODEL_CONFIG

    student_count: Optional[float] = None
    activity: Optional[str] = None


class EnvironmentalData(BaseModel):
    model_config = _ENTRY_MODEL_CONFIG

    room_conditions: Optional[RoomConditions] = None
    classroom: Optional[ClassroomInfo] = None
    location: Optional[str] = None


class TrackingEntry(_TimestampedEntry):
    """
    One tracking session.

    Attributes:
        timestamp: Session time.
        emotions: Emotions recorded during the session.
        sensory_inputs: Sensory observations recorded during the session.
        environmental_data: Room and classroom conditions.
    """

    emotions: List[EmotionEntry] = Field(default_factory=list)
    sensory_inputs: List[SensoryEntry] = Field(default_factory=list)
    environmental_data: Optional[EnvironmentalData] = None

    @property
    def max_emotion_intensity(self) -> float:
        """Highest finite emotion intensity in the session, 0 if none."""
        values = [
            e.intensity
            for e in self.emotions
            if e.intensity is not None and e.intensity == e.intensity
        ]
        return max(values, default=0.0)
