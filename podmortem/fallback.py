"""
podmortem/fallback.py - Pattern-based fallback explanation

Deterministic explanation built from the analysis result alone. Used when
no provider could produce one. No I/O, no provider dependency.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from .models import AIResponse, AnalysisResult, utc_now

FALLBACK_PROVIDER_ID = "fallback"
FALLBACK_MODEL_ID = "pattern-based"
FALLBACK_CONFIDENCE = 0.6
FALLBACK_PROCESSING_TIME = timedelta(milliseconds=100)

EXPLANATION_PREFIX = "Pod failure analysis (pattern-based fallback): "
NO_PATTERNS_MESSAGE = "No specific failure patterns were detected in the log analysis."


def build_explanation(analysis_result: AnalysisResult) -> str:
    """
    Explain a failure from its earliest event.

    Only the first event is described; any further events are summarized
    as a count.
    """
    events = analysis_result.events
    if not events:
        return EXPLANATION_PREFIX + NO_PATTERNS_MESSAGE

    first = events[0]
    parts = [EXPLANATION_PREFIX]

    if first.matched_pattern is not None:
        pattern_id = first.matched_pattern.id or "unknown"
        severity = first.matched_pattern.severity or "unknown"
        parts.append(
            f"The pod appears to have failed due to pattern '{pattern_id}' "
            f"with severity {severity}. "
        )
    else:
        parts.append(
            f"The pod appears to have failed with score {first.score} "
            f"at line {first.line_number}. "
        )

    if len(events) > 1:
        parts.append(f"Additional {len(events) - 1} event(s) were also detected.")

    return "".join(parts)


def build_fallback_response(
    analysis_result: AnalysisResult,
    confidence: float = FALLBACK_CONFIDENCE,
    reason: Optional[str] = None,
) -> AIResponse:
    """
    Wrap the fallback explanation in an AIResponse.

    Args:
        analysis_result: Analysis to explain
        confidence: Reported confidence, reduced to signal degraded quality
        reason: Why the provider path was not used, recorded in metadata
    """
    metadata = {
        "analysisId": analysis_result.analysis_id,
        "eventCount": analysis_result.event_count,
    }
    if reason:
        metadata["fallbackReason"] = reason

    return AIResponse(
        explanation=build_explanation(analysis_result),
        provider_id=FALLBACK_PROVIDER_ID,
        model_id=FALLBACK_MODEL_ID,
        generated_at=utc_now(),
        processing_time=FALLBACK_PROCESSING_TIME,
        confidence=confidence,
        metadata=metadata,
    )
