"""Prompt templates, one per classification task.

Each template names the JSON key the answer must start with; the gateway
uses it as the anchor for its strictest extraction pattern.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from triagedesk.common.enums import ClassificationTask


@dataclass(frozen=True)
class PromptTemplate:
    task: ClassificationTask
    text: str
    temperature: float
    max_tokens: int
    anchor_key: str | None = None

    def render(self, inputs: dict[str, Any]) -> str:
        return self.text.format(**inputs)


_JSON_ONLY = (
    "CRITICAL: respond with ONLY the JSON object below. No markdown, no code "
    "blocks, no backticks, no additional text."
)

ISSUE_DETECTION = PromptTemplate(
    task=ClassificationTask.ISSUE_DETECTION,
    anchor_key="detected",
    temperature=0.2,
    max_tokens=512,
    text=(
        "You are analyzing a player's support request for a mobile strategy game.\n\n"
        'Player message: "{message}"\n\n'
        "Decide whether the message describes an issue that might require compensation.\n"
        "Issue categories:\n"
        "- technical: bugs, crashes, performance issues, errors, connectivity problems\n"
        "- account: missing items, payment issues, account access or login problems\n"
        "- gameplay: balance issues, mechanics not working as expected, unfair gameplay\n\n"
        "Impact levels:\n"
        "- critical: major loss of progress, significant monetary impact, complete inability to play\n"
        "- severe: substantial setback, moderate monetary impact, significant disruption\n"
        "- moderate: noticeable inconvenience, minor monetary impact, partial feature loss\n"
        "- minor: small inconvenience, very minor gameplay impact\n"
        "- minimal: trivial issue with negligible impact\n\n"
        f"{_JSON_ONLY}\n\n"
        "{{\n"
        '  "detected": true/false,\n'
        '  "issueType": "technical"/"account"/"gameplay"/null,\n'
        '  "description": "<brief description of the issue>",\n'
        '  "playerImpact": "critical"/"severe"/"moderate"/"minor"/"minimal"/null,\n'
        '  "confidenceScore": <number between 0 and 1>\n'
        "}}"
    ),
)

SENTIMENT = PromptTemplate(
    task=ClassificationTask.SENTIMENT,
    anchor_key="tone",
    temperature=0.2,
    max_tokens=256,
    text=(
        "You are analyzing the tone of a player's support request for a mobile game.\n\n"
        'Player message: "{message}"\n\n'
        "Determine:\n"
        "1. The emotional tone (neutral, frustrated, angry, confused or appreciative)\n"
        "2. The urgency (low, medium, high)\n"
        "3. Whether the language suggests this is a repeat issue\n"
        "4. How common this type of issue typically is in mobile games\n\n"
        f"{_JSON_ONLY}\n\n"
        "{{\n"
        '  "tone": "neutral"/"frustrated"/"angry"/"confused"/"appreciative",\n'
        '  "urgency": "low"/"medium"/"high",\n'
        '  "repeatIssue": true/false,\n'
        '  "issueFrequency": "unique"/"uncommon"/"common"/"very_common"\n'
        "}}"
    ),
)

CLAIM_VALIDATION = PromptTemplate(
    task=ClassificationTask.CLAIM_VALIDATION,
    anchor_key="contradictionDetected",
    temperature=0.2,
    max_tokens=512,
    text=(
        "You are comparing a player's support claim with the system log data we hold for them.\n\n"
        'Player claim: "{message}"\n'
        'System context: "{system_log}"\n\n'
        "Detected issue type: {issue_type}\n"
        "Detected issue description: {issue_description}\n\n"
        "Does the system context contradict the claim? Look specifically for evidence that:\n"
        "1. the reported error is contradicted by system logs\n"
        "2. the player already received the compensation or rewards being claimed\n"
        "3. the system shows no evidence of the claimed issue\n"
        "4. there are factual inconsistencies between the claim and the data\n\n"
        "Distinguish clear contradictions from a simple lack of evidence and from "
        "ambiguous data.\n\n"
        f"{_JSON_ONLY}\n\n"
        "{{\n"
        '  "contradictionDetected": true/false,\n'
        '  "confidenceScore": <number between 0 and 1>,\n'
        '  "reasoning": "<explanation>",\n'
        '  "evidenceExists": true/false\n'
        "}}"
    ),
)

REASONING = PromptTemplate(
    task=ClassificationTask.REASONING,
    temperature=0.4,
    max_tokens=256,
    text=(
        "You are writing a short explanation to a mobile game player about the "
        "compensation we are offering.\n\n"
        "Issue details:\n"
        "- Type: {issue_type}\n"
        "- Description: {issue_description}\n"
        "- Impact level: {player_impact}\n"
        "- Compensation tier: {tier_label} ({tier})\n\n"
        "Write a brief, empathetic explanation (1-2 sentences). It must acknowledge "
        "the specific issue, match the severity, stay conversational but professional, "
        "make the player feel heard, and must NOT promise future fixes or admit fault.\n\n"
        "Return only the explanation text, no formatting or quotes."
    ),
)
