"""Vision classifier adapter: asks an OpenAI vision model for billboard violations."""
import base64
import json
import logging
from dataclasses import dataclass, field

import openai
from openai import AsyncOpenAI

from app.models.violation import VIOLATION_TYPES, SEVERITIES, DEFAULT_CONFIDENCE
from app.schemas.report import LocationData
from app.schemas.violation import ViolationData

logger = logging.getLogger(__name__)

RESULT_PARSED = "parsed-violations"
RESULT_DEGRADED = "degraded-single-violation"

RAW_EXCERPT_LENGTH = 200

SYSTEM_PROMPT = """\
You are an AI system that analyzes billboard images for violations in Indian cities.
Analyze the image and identify violations in these categories:
1. SIZE: Check if billboard exceeds standard dimensions (12x20 ft, 8x15 ft)
2. LOCATION: Check if placed inappropriately (near intersections, blocking signs)
3. STRUCTURAL: Look for structural damage, poor installation, safety hazards
4. CONTENT: Check for obscene, misleading, or inappropriate content

Respond ONLY with a JSON object (no additional text):
{
  "violations": [
    {
      "type": "size" | "location" | "structural" | "content",
      "severity": "low" | "medium" | "high" | "critical",
      "description": "short explanation",
      "confidence": 0-100
    }
  ]
}
Return {"violations": []} if the billboard is compliant.
"""


class ClassifierUnavailableError(Exception):
    """The endpoint could not produce an answer (transport, timeout, non-2xx, empty body)."""


@dataclass(frozen=True)
class ClassifierResult:
    kind: str
    violations: list[ViolationData] = field(default_factory=list)
    raw_answer: str = ""

    @property
    def degraded(self) -> bool:
        return self.kind == RESULT_DEGRADED


class _ShapeError(ValueError):
    pass


def _strip_code_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


def _coerce_violation(entry) -> ViolationData:
    if not isinstance(entry, dict):
        raise _ShapeError(f"violation entry is not an object: {entry!r}")

    v_type = str(entry.get("type", "")).strip().lower()
    severity = str(entry.get("severity", "")).strip().lower()
    description = entry.get("description")
    confidence = entry.get("confidence")

    if v_type not in VIOLATION_TYPES:
        raise _ShapeError(f"unknown violation type: {v_type!r}")
    if severity not in SEVERITIES:
        raise _ShapeError(f"unknown severity: {severity!r}")
    if not isinstance(description, str) or not description.strip():
        raise _ShapeError("missing description")

    # Absent confidence is a policy default, not zero
    if confidence is None:
        confidence = DEFAULT_CONFIDENCE
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise _ShapeError(f"non-numeric confidence: {confidence!r}")
    if not 0 <= confidence <= 100:
        raise _ShapeError(f"confidence out of range: {confidence!r}")

    return ViolationData(
        type=v_type,
        severity=severity,
        description=description.strip(),
        confidence=float(confidence),
    )


def degraded_result(raw: str) -> ClassifierResult:
    """A single reviewable violation carrying an excerpt of the unparseable answer."""
    excerpt = raw.strip()[:RAW_EXCERPT_LENGTH]
    return ClassifierResult(
        kind=RESULT_DEGRADED,
        violations=[
            ViolationData(
                type="structural",
                severity="medium",
                description=excerpt,
                confidence=DEFAULT_CONFIDENCE,
            )
        ],
        raw_answer=raw,
    )


def parse_answer(raw: str) -> ClassifierResult:
    """Normalize a raw model answer into violations.

    Any deviation from the expected shape degrades to a single flagged
    violation instead of being dropped.
    """
    if not raw or not raw.strip():
        raise ClassifierUnavailableError("Classifier returned an empty answer")

    try:
        parsed = json.loads(_strip_code_fences(raw))
        if not isinstance(parsed, dict) or not isinstance(parsed.get("violations"), list):
            raise _ShapeError("answer has no 'violations' array")
        violations = [_coerce_violation(entry) for entry in parsed["violations"]]
    except (json.JSONDecodeError, _ShapeError) as e:
        logger.warning("Unparseable classifier answer, degrading: %s", e)
        return degraded_result(raw)

    return ClassifierResult(kind=RESULT_PARSED, violations=violations, raw_answer=raw)


def _build_api_kwargs(model: str, messages: list[dict]) -> dict:
    """Build OpenAI API kwargs based on model type."""
    api_kwargs: dict = {"model": model, "messages": messages}

    if model.startswith("o"):
        # o-series reasoning models: no temperature, max_completion_tokens
        api_kwargs["max_completion_tokens"] = 4096
    else:
        api_kwargs["max_tokens"] = 1000
        api_kwargs["temperature"] = 0.3

    return api_kwargs


def describe_location(location: LocationData) -> str:
    address = location.address or "Unknown"
    return f"{address} (lat {location.lat:.6f}, lng {location.lng:.6f})"


class ClassifierAdapter:
    """Calls the vision endpoint once per `classify`; retries belong to the caller."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url or None
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            kwargs = {"api_key": self.api_key, "timeout": self.timeout, "max_retries": 0}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    def build_messages(
        self,
        image_url: str,
        location: LocationData,
        image_bytes: bytes | None = None,
        content_type: str = "image/jpeg",
    ) -> list[dict]:
        if image_bytes is not None:
            b64 = base64.b64encode(image_bytes).decode("utf-8")
            url = f"data:{content_type};base64,{b64}"
        else:
            url = image_url

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": f"Analyze this billboard image for violations. Location: {describe_location(location)}",
                    },
                    {"type": "image_url", "image_url": {"url": url, "detail": "high"}},
                ],
            },
        ]

    async def classify(
        self,
        image_url: str,
        location: LocationData,
        image_bytes: bytes | None = None,
        content_type: str = "image/jpeg",
    ) -> ClassifierResult:
        if not self.api_key and self._client is None:
            raise ClassifierUnavailableError("OPENAI_API_KEY not configured")

        messages = self.build_messages(image_url, location, image_bytes, content_type)
        api_kwargs = _build_api_kwargs(self.model, messages)
        logger.info("Calling classifier model=%s image=%s", self.model, image_url)

        try:
            response = await self._get_client().chat.completions.create(**api_kwargs)
        except openai.APITimeoutError as e:
            raise ClassifierUnavailableError(f"Classifier timed out: {e}") from e
        except openai.APIConnectionError as e:
            raise ClassifierUnavailableError(f"Classifier unreachable: {e}") from e
        except openai.APIStatusError as e:
            raise ClassifierUnavailableError(f"Classifier returned HTTP {e.status_code}") from e

        if not response.choices:
            raise ClassifierUnavailableError("Classifier returned no choices")

        raw = response.choices[0].message.content or ""
        logger.info("Classifier raw answer (%d chars): %s", len(raw), raw[:500])
        return parse_answer(raw)
