from triagedesk.common.enums import IssueFrequency, Tone, Urgency
from triagedesk.common.logging import get_logger
from triagedesk.core.triage import fallbacks, prompts
from triagedesk.core.triage.gateway import TextClassifierGateway
from triagedesk.core.triage.schemas import SentimentResult

logger = get_logger("triage.sentiment")

_INTENSITY = {
    Tone.ANGRY: 8,
    Tone.AGITATED: 7,
    Tone.FRUSTRATED: 6,
    Tone.CONFUSED: 4,
    Tone.NEUTRAL: 3,
    Tone.APPRECIATIVE: 2,
}

_FRUSTRATION = {
    Tone.ANGRY: 8,
    Tone.AGITATED: 8,
    Tone.FRUSTRATED: 7,
    Tone.CONFUSED: 5,
    Tone.NEUTRAL: 3,
    Tone.APPRECIATIVE: 1,
}

# Tones that need a human to deliver the outcome
HUMAN_DELIVERY_TONES = frozenset({Tone.ANGRY, Tone.FRUSTRATED, Tone.AGITATED})


def tone_to_intensity(tone: Tone | None) -> int:
    return _INTENSITY.get(tone, 5)


def tone_to_frustration(tone: Tone | None) -> int:
    return _FRUSTRATION.get(tone, 4)


def keyword_sentiment(message: str) -> SentimentResult:
    """Tone from obvious wording, used when the model did not answer in time."""
    table = fallbacks.SENTIMENT
    lowered = message.lower()
    tone, urgency = Tone.NEUTRAL, Urgency.MEDIUM
    if table.extra["anger_keyword"] in lowered and any(m in lowered for m in table.extra["anger_markers"]):
        tone, urgency = Tone.ANGRY, Urgency.HIGH
    elif table.matches(message) and not table.matches_secondary(message):
        tone, urgency = Tone.FRUSTRATED, Urgency.HIGH
    return SentimentResult(
        tone=tone,
        urgency=urgency,
        issue_frequency=IssueFrequency(table.extra["keyword_frequency"]),
    )


class SentimentAnalyzer:
    def __init__(self, gateway: TextClassifierGateway):
        self.gateway = gateway

    async def analyze(self, message: str) -> SentimentResult:
        outcome = await self.gateway.classify(prompts.SENTIMENT, {"message": message}, SentimentResult)
        if outcome.reason == "timeout":
            result = keyword_sentiment(message)
            logger.info("Sentiment timed out, keyword scan says %s", result.tone.value)
            return result
        if not outcome.parsed:
            logger.info("Sentiment fell back to neutral defaults (%s)", outcome.reason)
        return outcome.result
