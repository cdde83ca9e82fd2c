"""
Workout step helpers shared by suggestion creation and acceptance:
lenient parsing of stored JSON, distance/duration totals, suggestion payload layout.
"""

from __future__ import annotations

from typing import Any

from app.schemas.workout import StepPart, WorkoutStep

PAYLOAD_VERSION = 1
_PARTS = {p.value for p in StepPart}


def parse_steps(raw: Any) -> list[WorkoutStep]:
    """Parse stored steps; skip non-objects, unknown part -> segment, drop blank notes and non-numeric values."""
    if not isinstance(raw, list):
        return []
    steps: list[WorkoutStep] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        part = item.get("part")
        step = WorkoutStep(part=part if part in _PARTS else StepPart.SEGMENT)
        distance = item.get("distance_m")
        if isinstance(distance, (int, float)) and not isinstance(distance, bool) and distance >= 0:
            step.distance_m = int(distance)
        duration = item.get("duration_s")
        if isinstance(duration, (int, float)) and not isinstance(duration, bool) and duration >= 0:
            step.duration_s = int(duration)
        notes = item.get("notes")
        if isinstance(notes, str) and notes.strip():
            step.notes = notes
        steps.append(step)
    return steps


def aggregate_steps(steps: list[WorkoutStep]) -> tuple[int, int]:
    """Total (distance_m, duration_s) over steps; missing values count as zero."""
    distance = sum(s.distance_m or 0 for s in steps)
    duration = sum(s.duration_s or 0 for s in steps)
    return distance, duration


def merge_contexts(*contexts: dict[str, Any] | None) -> dict[str, Any] | None:
    """Merge dicts left to right, skipping None values; None if nothing remains."""
    merged: dict[str, Any] = {}
    for ctx in contexts:
        if not ctx:
            continue
        for key, value in ctx.items():
            if value is not None:
                merged[key] = value
    return merged or None


def build_payload(
    planned_date: str,
    steps: list[WorkoutStep],
    context: dict[str, Any] | None = None,
    ai_metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    distance, duration = aggregate_steps(steps)
    meta: dict[str, Any] = {"planned_date": planned_date}
    if distance:
        meta["planned_distance_m"] = distance
    if duration:
        meta["planned_duration_s"] = duration
    merged = merge_contexts(context, ai_metadata)
    if merged:
        meta["context"] = merged
    return {
        "version": PAYLOAD_VERSION,
        "meta": meta,
        "steps": [s.model_dump(exclude_none=True, mode="json") for s in steps],
    }


def parse_payload(raw: Any) -> tuple[list[WorkoutStep], dict[str, Any]]:
    """Return (steps, meta) from a stored suggestion payload."""
    if not isinstance(raw, dict):
        return [], {}
    meta = raw.get("meta")
    return parse_steps(raw.get("steps") or []), meta if isinstance(meta, dict) else {}
