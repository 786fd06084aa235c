import pytest

from triagedesk.common.enums import ClassificationTask, IssueType, PlayerImpact, Tone
from triagedesk.common.exceptions import TextServiceUnavailableError
from triagedesk.config import settings
from triagedesk.core.triage import prompts
from triagedesk.core.triage.gateway import TextClassifierGateway, extract_json_object
from triagedesk.core.triage.schemas import IssueDetectionResult, SentimentResult
from triagedesk.tests.fakes import FakeTextClient, issue_payload


def test_extract_plain_json():
    assert extract_json_object('{"tone": "angry"}') == {"tone": "angry"}


def test_extract_fenced_json():
    raw = '```json\n{"tone": "confused", "urgency": "low"}\n```'
    assert extract_json_object(raw) == {"tone": "confused", "urgency": "low"}


def test_extract_from_prose():
    raw = 'Sure! Here is my analysis: {"tone": "neutral"} Let me know if you need more.'
    assert extract_json_object(raw) == {"tone": "neutral"}


def test_extract_anchored_when_prose_has_stray_braces():
    raw = (
        'Result: {"detected": true, "issueType": "technical", "description": "crash", '
        '"playerImpact": "minor", "confidenceScore": 0.6} and also {not json}'
    )
    assert extract_json_object(raw) is None
    data = extract_json_object(raw, "detected")
    assert data["issueType"] == "technical"
    assert data["confidenceScore"] == 0.6


def test_extract_rejects_garbage():
    assert extract_json_object("") is None
    assert extract_json_object("I could not decide.") is None
    assert extract_json_object("[1, 2, 3]") is None


@pytest.mark.asyncio
async def test_classify_parses_camel_case_payload():
    client = FakeTextClient({ClassificationTask.ISSUE_DETECTION: issue_payload("account", "severe", 0.75)})
    gateway = TextClassifierGateway(client)

    outcome = await gateway.classify(prompts.ISSUE_DETECTION, {"message": "x"}, IssueDetectionResult)

    assert outcome.parsed is True
    assert outcome.result.issue_type == IssueType.ACCOUNT
    assert outcome.result.player_impact == PlayerImpact.SEVERE
    assert outcome.result.confidence_score == 0.75


@pytest.mark.asyncio
async def test_classify_falls_back_on_unparseable_output():
    client = FakeTextClient({ClassificationTask.SENTIMENT: "The player seems upset."})
    gateway = TextClassifierGateway(client)

    outcome = await gateway.classify(prompts.SENTIMENT, {"message": "x"}, SentimentResult)

    assert outcome.parsed is False
    assert outcome.reason == "unparseable"
    assert outcome.result.tone == Tone.NEUTRAL


@pytest.mark.asyncio
async def test_classify_falls_back_on_invalid_values():
    client = FakeTextClient({ClassificationTask.SENTIMENT: '{"tone": "ecstatic", "urgency": "high"}'})
    gateway = TextClassifierGateway(client)

    outcome = await gateway.classify(prompts.SENTIMENT, {"message": "x"}, SentimentResult)

    assert outcome.parsed is False
    assert outcome.reason == "invalid"
    assert outcome.result == SentimentResult()


@pytest.mark.asyncio
async def test_classify_times_out_to_fallback(monkeypatch):
    monkeypatch.setattr(settings, "SENTIMENT_TIMEOUT_SECONDS", 0.01)
    client = FakeTextClient(
        {ClassificationTask.SENTIMENT: '{"tone": "angry"}'},
        delays={ClassificationTask.SENTIMENT: 1.0},
    )
    gateway = TextClassifierGateway(client)

    outcome = await gateway.classify(prompts.SENTIMENT, {"message": "x"}, SentimentResult)

    assert outcome.parsed is False
    assert outcome.reason == "timeout"
    assert outcome.result.tone == Tone.NEUTRAL


@pytest.mark.asyncio
async def test_classify_raises_when_service_unreachable():
    client = FakeTextClient({ClassificationTask.ISSUE_DETECTION: TextServiceUnavailableError("fake")})
    gateway = TextClassifierGateway(client)

    with pytest.raises(TextServiceUnavailableError):
        await gateway.classify(prompts.ISSUE_DETECTION, {"message": "x"}, IssueDetectionResult)


@pytest.mark.asyncio
async def test_generate_rejects_short_text():
    client = FakeTextClient({ClassificationTask.REASONING: '"Sorry."'})
    gateway = TextClassifierGateway(client)

    assert await gateway.generate(prompts.REASONING, _reasoning_inputs()) is None


@pytest.mark.asyncio
async def test_generate_strips_quotes():
    client = FakeTextClient({ClassificationTask.REASONING: '"We hear you and have added gold to your account."'})
    gateway = TextClassifierGateway(client)

    text = await gateway.generate(prompts.REASONING, _reasoning_inputs())

    assert text == "We hear you and have added gold to your account."


def _reasoning_inputs():
    return {
        "issue_type": "technical",
        "issue_description": "crash",
        "player_impact": "minor",
        "tier_label": "Minimal",
        "tier": "P4",
    }
