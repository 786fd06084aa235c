"""Text Classifier Gateway.

Sends one prompt per task to the text-generation service and turns the raw
answer into a validated result model. Malformed output never raises: the
caller gets the task's fallback default and ``parsed=False``. Only an
unreachable service raises (``TextServiceUnavailableError``).
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from triagedesk.common.enums import ClassificationTask
from triagedesk.common.logging import get_logger
from triagedesk.config import settings
from triagedesk.core.triage.fallbacks import FALLBACKS
from triagedesk.core.triage.prompts import PromptTemplate
from triagedesk.integrations.base import TextGenerationIntegration

logger = get_logger("triage.gateway")

ResultT = TypeVar("ResultT", bound=BaseModel)

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_OBJECT = re.compile(r"\{[\s\S]*\}")
_DECODER = json.JSONDecoder()


def task_timeout(task: ClassificationTask) -> float:
    return {
        ClassificationTask.ISSUE_DETECTION: settings.ISSUE_DETECTION_TIMEOUT_SECONDS,
        ClassificationTask.SENTIMENT: settings.SENTIMENT_TIMEOUT_SECONDS,
        ClassificationTask.CLAIM_VALIDATION: settings.CLAIM_VALIDATION_TIMEOUT_SECONDS,
        ClassificationTask.REASONING: settings.REASONING_TIMEOUT_SECONDS,
    }[task]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _as_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(raw: str | None, anchor_key: str | None = None) -> dict[str, Any] | None:
    """Pull a JSON object out of model output.

    Tried in order: the whole response (code fences stripped), the widest
    ``{...}`` span inside surrounding prose, then a decode starting at each
    ``{"<anchor_key>"`` occurrence, which survives trailing junk braces.
    """
    if not raw or not raw.strip():
        return None
    text = _FENCE.sub("", raw.strip())

    parsed = _as_object(text)
    if parsed is not None:
        return parsed

    match = _OBJECT.search(text)
    if match:
        parsed = _as_object(match.group(0))
        if parsed is not None:
            return parsed

    if anchor_key:
        anchored = re.compile(r"\{\s*\"" + re.escape(anchor_key) + r"\"")
        for m in anchored.finditer(text):
            try:
                value, _ = _DECODER.raw_decode(text, m.start())
            except json.JSONDecodeError:
                continue
            if isinstance(value, dict):
                return value
    return None


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassifierOutcome(Generic[ResultT]):
    result: ResultT
    parsed: bool
    reason: str = "ok"


class TextClassifierGateway:
    """Structured classification over an opaque text-generation service."""

    def __init__(self, client: TextGenerationIntegration) -> None:
        self.client = client

    async def _call(self, template: PromptTemplate, inputs: dict[str, Any]) -> str | None:
        prompt = template.render(inputs)
        timeout = task_timeout(template.task)
        try:
            return await asyncio.wait_for(
                self.client.generate(prompt, template.temperature, template.max_tokens),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, TimeoutError):
            logger.warning("%s timed out after %.1fs, using fallback", template.task.value, timeout)
            return None

    async def classify(
        self,
        template: PromptTemplate,
        inputs: dict[str, Any],
        result_model: type[ResultT],
    ) -> ClassifierOutcome[ResultT]:
        raw = await self._call(template, inputs)
        reason = "timeout" if raw is None else "unparseable"

        data = extract_json_object(raw, template.anchor_key)
        if data is not None:
            try:
                result = result_model.model_validate(data)
                logger.debug("%s parsed: %s", template.task.value, data)
                return ClassifierOutcome(result=result, parsed=True)
            except ValidationError as e:
                reason = "invalid"
                logger.info("%s output failed validation (%d errors)", template.task.value, e.error_count())

        logger.info("%s falling back to defaults (%s)", template.task.value, reason)
        fallback = result_model.model_validate(FALLBACKS[template.task].defaults)
        return ClassifierOutcome(result=fallback, parsed=False, reason=reason)

    async def generate(self, template: PromptTemplate, inputs: dict[str, Any]) -> str | None:
        """Free-text generation; ``None`` when the model timed out or said nothing."""
        raw = await self._call(template, inputs)
        if raw is None:
            return None
        text = raw.strip().strip('"').strip()
        if len(text) < FALLBACKS[template.task].extra.get("min_length", 1):
            return None
        return text

    async def health_check(self) -> bool:
        return await self.client.health_check()
