"""
Suggestion generators: given user, training type, date and free-form context,
return ordered workout steps plus opaque metadata.

GeminiSuggestionGenerator is used when GOOGLE_GEMINI_API_KEY is set; otherwise the
deterministic placeholder is used (local dev, tests). Any failure surfaces as GenerationError.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import date
from typing import Any, Protocol

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.core.errors import GenerationError
from app.core.limits import utc_now
from app.schemas.suggestion import GeneratedSuggestion
from app.schemas.workout import StepPart, WorkoutStep
from app.services.steps import parse_steps

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {
    "temperature": 0.4,
    "max_output_tokens": 1024,
    "response_mime_type": "application/json",
}

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}

SYSTEM_PROMPT = """You are a running coach. Your ONLY task is to propose one running workout for the given date and training type. Output ONLY valid JSON.

Rules:
- Split the workout into ordered steps; each step has "part" (warmup | main | cooldown | segment), and at least one of "distance_m" (integer metres) or "duration_s" (integer seconds), plus optional short "notes".
- The whole workout MUST have a positive total distance or duration.
- If the context contains "regenerate_reason" or "adjustment_hint", the athlete rejected a previous proposal: adjust accordingly.

Output format (strict JSON):
{"steps": [{"part": "warmup", "duration_s": 600, "notes": "easy jog"}, {"part": "main", "distance_m": 5000}], "summary": "short text"}

No explanations, no markdown. Only the JSON object."""

# 429 / 5xx-looking failures are retried with exponential backoff (1s, 2s)
RETRYABLE_STATUS_PATTERN = re.compile(r"\b(429|5\d{2})\b")
MAX_ATTEMPTS = 3


class SuggestionGenerator(Protocol):
    async def generate(
        self,
        user_id: int,
        training_type_code: str,
        planned_date: date,
        context: dict[str, Any] | None,
    ) -> GeneratedSuggestion: ...


class PlaceholderSuggestionGenerator:
    """Fixed easy-run structure; stands in for the AI when no model is configured."""

    async def generate(
        self,
        user_id: int,
        training_type_code: str,
        planned_date: date,
        context: dict[str, Any] | None,
    ) -> GeneratedSuggestion:
        return GeneratedSuggestion(
            steps=[
                WorkoutStep(part=StepPart.WARMUP, duration_s=600, notes="Easy jog to warm up"),
                WorkoutStep(part=StepPart.MAIN, distance_m=5000, notes="Conversational pace"),
                WorkoutStep(part=StepPart.COOLDOWN, duration_s=300, notes="Walk and stretch"),
            ],
            metadata={"placeholder": True, "generated_at": utc_now().isoformat()},
        )


def _is_retryable_error(exc: BaseException) -> bool:
    msg = (getattr(exc, "message", None) or str(exc)) if exc else ""
    return bool(RETRYABLE_STATUS_PATTERN.search(msg))


def _build_prompt(training_type_code: str, planned_date: date, context: dict[str, Any] | None) -> str:
    return "\n".join([
        SYSTEM_PROMPT,
        "## Training type",
        training_type_code,
        "## Planned date",
        planned_date.isoformat(),
        "## Context",
        json.dumps(context or {}, default=str),
    ])


def parse_generator_response(text: str) -> GeneratedSuggestion:
    """Parse model JSON (optionally wrapped in ``` fences) into steps + metadata."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1].rsplit("```", 1)[0].strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError("Generator returned invalid JSON") from e
    if not isinstance(data, dict) or not isinstance(data.get("steps"), list):
        raise GenerationError("Generator response has no steps")
    # Same leniency as stored steps: unknown part -> segment, fractional numbers truncated
    steps = parse_steps(data["steps"])
    metadata = {"summary": data["summary"]} if isinstance(data.get("summary"), str) else {}
    return GeneratedSuggestion(steps=steps, metadata=metadata)


class GeminiSuggestionGenerator:
    def __init__(self, model_name: str | None = None, timeout_seconds: float | None = None) -> None:
        self.model_name = model_name or settings.gemini_model
        self.timeout_seconds = float(timeout_seconds or settings.gemini_request_timeout_seconds or 90)

    def _model(self):
        return genai.GenerativeModel(
            self.model_name,
            generation_config=GENERATION_CONFIG,
            safety_settings=SAFETY_SETTINGS,
        )

    async def _generate_content(self, model, contents):
        """Blocking generate_content in the threadpool, with timeout and retry on 429/5xx."""
        for attempt in range(MAX_ATTEMPTS):
            try:
                return await asyncio.wait_for(
                    run_in_threadpool(model.generate_content, contents),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning("Gemini suggestion request timed out after %ss (attempt %d)", self.timeout_seconds, attempt + 1)
                if attempt == MAX_ATTEMPTS - 1:
                    raise
            except Exception as e:
                if attempt == MAX_ATTEMPTS - 1 or not _is_retryable_error(e):
                    raise
                logger.warning("Gemini suggestion request failed (attempt %d), retrying: %s", attempt + 1, e)
            await asyncio.sleep(2 ** attempt)
        raise RuntimeError("GeminiSuggestionGenerator: unexpected exit")

    async def generate(
        self,
        user_id: int,
        training_type_code: str,
        planned_date: date,
        context: dict[str, Any] | None,
    ) -> GeneratedSuggestion:
        prompt = _build_prompt(training_type_code, planned_date, context)
        try:
            response = await self._generate_content(self._model(), prompt)
            text = response.text
        except Exception as e:
            logger.warning("Gemini suggestion generation failed for user %s: %s", user_id, e)
            raise GenerationError("Failed to generate AI suggestion") from e
        result = parse_generator_response(text or "")
        result.metadata = {**(result.metadata or {}), "model": self.model_name}
        return result


def get_suggestion_generator() -> SuggestionGenerator:
    if settings.use_gemini:
        return GeminiSuggestionGenerator()
    return PlaceholderSuggestionGenerator()
