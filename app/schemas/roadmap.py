"""
Pydantic schemas for the roadmap generator.

Learner input, raw search results, generated steps and the persisted record.
JSON uses the camelCase keys the web form sends (jobProfile, timeCommitment).
"""
from typing import List, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator


QUALIFICATION_OPTIONS = ("High School", "Bachelor's Degree", "Master's Degree")
TIME_COMMITMENT_OPTIONS = ("Less than 5 hours", "5-10 hours", "10-20 hours")


# ========== Input ==========
class LearnerProfile(BaseModel):
    """What the learner told us. Every field may be left blank."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    qualification: str = Field("", examples=list(QUALIFICATION_OPTIONS))
    skills: str = ""
    interests: str = ""
    job_profile: str = Field("", alias="jobProfile")
    time_commitment: str = Field("", alias="timeCommitment", examples=list(TIME_COMMITMENT_OPTIONS))

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value


# ========== Search ==========
class SearchResult(BaseModel):
    """One provider hit, kept in provider order"""
    model_config = ConfigDict(frozen=True)

    title: str
    snippet: str
    link: str


# ========== Roadmap ==========
class RoadmapStep(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    position: int = Field(..., ge=1)
    title: str
    description: str
    link: str
    estimated_time: int = Field(..., gt=0, alias="estimatedTime")
    weeks_to_complete: int = Field(..., ge=1, alias="weeksToComplete")


class RoadmapRecord(BaseModel):
    """Unit of persistence: the submitted profile plus everything generated from it."""
    model_config = ConfigDict(frozen=True)

    profile: LearnerProfile
    steps: List[RoadmapStep]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ========== API responses ==========
class GenerateRoadmapResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    roadmap_id: int = Field(..., alias="roadmapId")
    created_at: datetime = Field(..., alias="createdAt")
    steps: List[RoadmapStep]


class StoredRoadmap(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    roadmap_id: int = Field(..., alias="roadmapId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    profile: LearnerProfile
    steps: List[RoadmapStep]


class RoadmapListItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    roadmap_id: int = Field(..., alias="roadmapId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    job_profile: str = Field("", alias="jobProfile")
    step_count: int = Field(..., alias="stepCount")


class ErrorResponse(BaseModel):
    error: str
    detail: str
    provider_status: Optional[int] = None
    correlation_id: Optional[str] = None
