import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from app.schemas.report import LocationData
from app.services.classifier import (
    RESULT_DEGRADED,
    RESULT_PARSED,
    ClassifierAdapter,
    ClassifierUnavailableError,
    parse_answer,
)

LOCATION = LocationData(lat=28.6304, lng=77.2177, address="Barakhamba Road, New Delhi")
REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class FakeCompletions:
    def __init__(self, content=None, error=None, choices=True):
        self.content = content
        self.error = error
        self.choices = choices
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        if not self.choices:
            return SimpleNamespace(choices=[])
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


def _adapter(completions, model="gpt-4o"):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return ClassifierAdapter(api_key="sk-test", model=model, client=client)


def test_parse_structured_answer():
    raw = json.dumps({"violations": [
        {"type": "size", "severity": "high", "description": "Exceeds 12x20 ft", "confidence": 70},
        {"type": "Content", "severity": "LOW", "description": "Misleading claim", "confidence": 55.5},
    ]})
    result = parse_answer(raw)

    assert result.kind == RESULT_PARSED
    assert [v.type for v in result.violations] == ["size", "content"]
    assert result.violations[1].severity == "low"
    assert result.violations[1].confidence == 55.5


def test_parse_answer_in_markdown_fence():
    raw = "```json\n{\"violations\": []}\n```"
    result = parse_answer(raw)
    assert result.kind == RESULT_PARSED
    assert result.violations == []


def test_missing_confidence_defaults_to_85():
    raw = json.dumps({"violations": [{"type": "structural", "severity": "critical", "description": "Rusted frame"}]})
    result = parse_answer(raw)
    assert result.violations[0].confidence == 85


def test_unstructured_answer_degrades_to_single_violation():
    raw = "The billboard looks fine but the frame is slightly bent."
    result = parse_answer(raw)

    assert result.kind == RESULT_DEGRADED
    assert result.degraded
    assert len(result.violations) == 1
    v = result.violations[0]
    assert v.type == "structural"
    assert v.severity == "medium"
    assert v.confidence == 85
    assert v.description == raw


def test_degraded_description_is_truncated():
    raw = "x" * 500
    result = parse_answer(raw)
    assert len(result.violations[0].description) == 200


@pytest.mark.parametrize("raw", [
    json.dumps({"result": "ok"}),
    json.dumps([{"type": "size"}]),
    json.dumps({"violations": "none"}),
    json.dumps({"violations": [{"type": "noise", "severity": "low", "description": "x"}]}),
    json.dumps({"violations": [{"type": "size", "severity": "urgent", "description": "x"}]}),
    json.dumps({"violations": [{"type": "size", "severity": "low", "description": "x", "confidence": 140}]}),
    json.dumps({"violations": [{"type": "size", "severity": "low", "description": "x", "confidence": "high"}]}),
])
def test_shape_deviations_degrade(raw):
    result = parse_answer(raw)
    assert result.kind == RESULT_DEGRADED
    assert len(result.violations) == 1


def test_empty_answer_is_unavailable():
    with pytest.raises(ClassifierUnavailableError):
        parse_answer("   ")


@pytest.mark.asyncio
async def test_classify_sends_image_and_location():
    completions = FakeCompletions(content='{"violations": []}')
    result = await _adapter(completions).classify(
        "http://localhost:8000/media/u/1.jpg", LOCATION, image_bytes=b"\xff\xd8", content_type="image/jpeg",
    )

    assert result.kind == RESULT_PARSED
    messages = completions.kwargs["messages"]
    assert messages[0]["role"] == "system"
    assert "STRUCTURAL" in messages[0]["content"]
    user_content = messages[1]["content"]
    assert "Barakhamba Road" in user_content[0]["text"]
    assert user_content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert completions.kwargs["temperature"] == 0.3


@pytest.mark.asyncio
async def test_classify_uses_url_without_bytes():
    completions = FakeCompletions(content='{"violations": []}')
    await _adapter(completions).classify("https://cdn.example/b.jpg", LOCATION)
    assert completions.kwargs["messages"][1]["content"][1]["image_url"]["url"] == "https://cdn.example/b.jpg"


@pytest.mark.asyncio
async def test_reasoning_model_kwargs():
    completions = FakeCompletions(content='{"violations": []}')
    await _adapter(completions, model="o4-mini").classify("https://cdn.example/b.jpg", LOCATION)
    assert "temperature" not in completions.kwargs
    assert completions.kwargs["max_completion_tokens"] == 4096


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    openai.APITimeoutError(request=REQUEST),
    openai.APIConnectionError(request=REQUEST),
    openai.APIStatusError(
        "Service Unavailable",
        response=httpx.Response(503, request=REQUEST),
        body=None,
    ),
])
async def test_transport_failures_are_unavailable(error):
    with pytest.raises(ClassifierUnavailableError):
        await _adapter(FakeCompletions(error=error)).classify("https://cdn.example/b.jpg", LOCATION)


@pytest.mark.asyncio
async def test_empty_body_is_unavailable():
    with pytest.raises(ClassifierUnavailableError):
        await _adapter(FakeCompletions(content="")).classify("https://cdn.example/b.jpg", LOCATION)


@pytest.mark.asyncio
async def test_no_choices_is_unavailable():
    with pytest.raises(ClassifierUnavailableError):
        await _adapter(FakeCompletions(choices=False)).classify("https://cdn.example/b.jpg", LOCATION)


@pytest.mark.asyncio
async def test_missing_api_key_is_unavailable():
    adapter = ClassifierAdapter(api_key="")
    with pytest.raises(ClassifierUnavailableError, match="OPENAI_API_KEY"):
        await adapter.classify("https://cdn.example/b.jpg", LOCATION)
