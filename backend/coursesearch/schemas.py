from __future__ import annotations

from pydantic import BaseModel, Field

from coursesearch.enums import InstitutionType, SourceKind


class CourseResponseItem(BaseModel):
    code: str
    name: str
    institution: str
    institution_code: str
    key: str


class NormalizationResponse(BaseModel):
    original: str
    normalized: str
    steps: list[str] = Field(default_factory=list)
    changed: bool


class AvailabilityRequest(BaseModel):
    code: str = Field(min_length=1)
    institution: str = Field(min_length=1)


class AvailabilityResponse(BaseModel):
    code: str
    institution: str
    unavailable: bool


class PruneResponse(BaseModel):
    positive_removed: int
    negative_removed: int


class InstitutionResponseItem(BaseModel):
    code: str
    name: str
    short_name: str
    type: InstitutionType
    source_kind: SourceKind
