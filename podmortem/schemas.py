"""
podmortem/schemas.py - Request Schemas

Pydantic models for caller-supplied JSON. They accept both the camelCase
wire names and snake_case field names, and convert to the domain
dataclasses in ``podmortem.models``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import InvalidRequestError
from .models import AnalysisResult, Event, MatchedPattern, ProviderConfig


class MatchedPatternModel(BaseModel):
    """Pattern reference attached to an event."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(None, description="Pattern identifier")
    severity: Optional[str] = Field(None, description="Opaque severity label")

    def to_domain(self) -> MatchedPattern:
        return MatchedPattern(id=self.id, severity=self.severity)


class EventModel(BaseModel):
    """A single scored event from the log analysis."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    score: float = Field(0.0, description="Event score")
    line_number: int = Field(0, alias="lineNumber", description="Line in the source log")
    matched_pattern: Optional[MatchedPatternModel] = Field(None, alias="matchedPattern")

    def to_domain(self) -> Event:
        return Event(
            score=self.score,
            line_number=self.line_number,
            matched_pattern=self.matched_pattern.to_domain() if self.matched_pattern else None,
        )


class AnalysisResultModel(BaseModel):
    """Analysis result payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    analysis_id: str = Field(..., alias="analysisId", min_length=1)
    events: Optional[List[EventModel]] = Field(default_factory=list)

    @field_validator("analysis_id")
    @classmethod
    def analysis_id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("analysisId must not be blank")
        return v

    def to_domain(self) -> AnalysisResult:
        return AnalysisResult(
            analysis_id=self.analysis_id,
            events=tuple(e.to_domain() for e in (self.events or [])),
        )


class ProviderConfigModel(BaseModel):
    """
    Provider selection plus provider-specific settings.

    Unknown fields are kept and handed to the provider untouched, merged
    with an explicit ``options`` mapping when one is given.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    provider_id: str = Field(..., alias="providerId", min_length=1)
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("provider_id")
    @classmethod
    def provider_id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("providerId must not be blank")
        return v

    def to_domain(self) -> ProviderConfig:
        options = dict(self.model_extra or {})
        options.update(self.options)
        return ProviderConfig(provider_id=self.provider_id, options=options)


class AnalysisRequestModel(BaseModel):
    """Top-level analysis request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    analysis_result: AnalysisResultModel = Field(..., alias="analysisResult")
    provider_config: ProviderConfigModel = Field(..., alias="providerConfig")


def _invalid(exc: ValidationError, what: str) -> InvalidRequestError:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return InvalidRequestError(f"Invalid {what}: {exc.error_count()} error(s)", errors=errors)


def parse_analysis_request(
    payload: Union[AnalysisRequestModel, Mapping[str, Any]],
) -> AnalysisRequestModel:
    """
    Validate a raw request payload.

    Raises:
        InvalidRequestError: If the payload is malformed
    """
    if isinstance(payload, AnalysisRequestModel):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidRequestError(
            f"Analysis request must be an object, got {type(payload).__name__}"
        )
    try:
        return AnalysisRequestModel.model_validate(dict(payload))
    except ValidationError as e:
        raise _invalid(e, "analysis request") from e


def parse_provider_config(
    payload: Union[ProviderConfig, ProviderConfigModel, Mapping[str, Any]],
) -> ProviderConfig:
    """
    Validate a provider configuration payload and return the domain object.

    Raises:
        InvalidRequestError: If the payload is malformed
    """
    if isinstance(payload, ProviderConfig):
        return payload
    if isinstance(payload, ProviderConfigModel):
        return payload.to_domain()
    if not isinstance(payload, Mapping):
        raise InvalidRequestError(
            f"Provider config must be an object, got {type(payload).__name__}"
        )
    try:
        return ProviderConfigModel.model_validate(dict(payload)).to_domain()
    except ValidationError as e:
        raise _invalid(e, "provider config") from e
