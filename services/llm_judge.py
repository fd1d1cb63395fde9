import json
import re
from dataclasses import dataclass
from typing import List, Optional

import httpx

from services.config import Settings
from services.errors import AdapterError
from services.logging_utils import get_logger
from services.signals import HIGH, LOW, MEDIUM, AdapterResult, EmailData, Signal, round_half_up

# Only these statuses move on to the next model
RETRYABLE_STATUS = {404, 429}

LLM_WEIGHT = 0.4
BODY_SNIPPET_CHARS = 800
PROMPT_URL_LIMIT = 3

EMAIL_JUDGE_PROMPT = """Analyze this email and rate how likely it is to be a phishing/scam attempt.

From: {sender}
Subject: {subject}
Body: {body}
URLs: {urls}

IMPORTANT: Most emails are legitimate! Only flag as suspicious if there are CLEAR red flags like:
- Requests for passwords, credit cards, SSN
- Urgent threats about account suspension
- Suspicious links (IP addresses, misspelled domains)
- Too-good-to-be-true offers (free money, lottery wins)
- Sender mismatch (claims to be a bank but uses gmail)

Score guide:
0-10 = Normal email (newsletters, receipts, work emails)
10-30 = Slightly unusual but probably fine
30-60 = Some red flags, be careful
60-100 = Multiple clear phishing indicators

Respond ONLY with JSON:
{{"score": <0-100>, "flags": ["flag1"], "summary": "<1 sentence>"}}"""

_FENCE_RE = re.compile(r"```(?:json)?\n?")
_JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")

logger = get_logger(__name__)


@dataclass(frozen=True)
class Judgment:
    score: int
    flags: tuple = ()
    summary: str = ""
    model: Optional[str] = None


def build_prompt(email: EmailData) -> str:
    body = (email.body or "")[:BODY_SNIPPET_CHARS]
    urls = ", ".join(email.urls[:PROMPT_URL_LIMIT])
    return EMAIL_JUDGE_PROMPT.format(
        sender=email.from_header,
        subject=email.subject or "(no subject)",
        body=body,
        urls=urls or "none",
    )


def parse_judgment(content: str, model: Optional[str] = None) -> Judgment:
    """
    Pull the JSON object out of a model reply.
    Models like to wrap it in markdown fences or add a sentence around it.
    """
    content = _FENCE_RE.sub("", content or "").strip()
    match = _JSON_BLOCK_RE.search(content)
    if match:
        content = match.group(0)

    try:
        data = json.loads(content)
    except ValueError as exc:
        raise AdapterError(f"model returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise AdapterError("model returned a non-object JSON value")

    try:
        score = int(data.get("score") or 0)
    except (TypeError, ValueError) as exc:
        raise AdapterError(f"model returned a non-numeric score: {exc}") from exc

    flags = data.get("flags") or []
    if not isinstance(flags, list):
        flags = [str(flags)]

    return Judgment(
        score=max(0, min(100, score)),
        flags=tuple(str(f) for f in flags),
        summary=str(data.get("summary") or ""),
        model=model,
    )


class LlmJudge:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.openrouter_api_key
        self.url = settings.openrouter_url
        self.models: List[str] = list(settings.llm_models)
        self.timeout = settings.llm_timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _call_model(self, client: httpx.AsyncClient, model: str, prompt: str) -> Judgment:
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": 200,
            "temperature": 0.2,
        }
        resp = await client.post(self.url, json=payload)
        if resp.status_code != 200:
            raise AdapterError(f"{model} returned {resp.status_code}", resp.status_code)

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AdapterError(f"unexpected completion payload from {model}") from exc
        return parse_judgment(content, model=model)

    async def judge(self, email: EmailData) -> Judgment:
        """
        Ask each configured model in turn.

        Rate limits (429) and missing models (404) move on to the next model,
        anything else ends the attempt.
        """
        if not self.enabled:
            raise AdapterError("API key not configured")

        prompt = build_prompt(email)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "Email Security Scorer",
        }

        async with httpx.AsyncClient(
            timeout=self.timeout, headers=headers, transport=self._transport
        ) as client:
            for model in self.models:
                try:
                    return await self._call_model(client, model, prompt)
                except httpx.HTTPError as exc:
                    logger.warning("LLM request to %s failed: %s", model, exc)
                    break
                except AdapterError as exc:
                    logger.warning(
                        "LLM model failed, status %s",
                        exc.status_code,
                        extra={"model": model},
                    )
                    if exc.status_code not in RETRYABLE_STATUS:
                        break

        raise AdapterError("All models unavailable")

    async def evaluate(self, email: EmailData) -> AdapterResult:
        """Run the judge and convert the outcome; never raises."""
        try:
            judgment = await self.judge(email)
        except AdapterError as exc:
            return AdapterResult.disabled(str(exc))
        except Exception as exc:  # adapter failures must not abort the analysis
            logger.warning("LLM adapter failed", exc_info=True)
            return AdapterResult.disabled(str(exc))

        return AdapterResult(enabled=True, signals=tuple(judgment_to_signals(judgment)))


def judgment_to_signals(judgment: Judgment) -> List[Signal]:
    if judgment.score <= 0:
        return []

    # Severity follows the model's own score, not the weighted one
    if judgment.score >= 60:
        severity = HIGH
    elif judgment.score >= 30:
        severity = MEDIUM
    else:
        severity = LOW

    description = (
        judgment.summary
        or f"AI detected suspicious patterns (score: {judgment.score})"
    )
    if judgment.flags:
        description += f" [{', '.join(judgment.flags)}]"

    return [Signal(
        name="AI Analysis",
        description=description,
        score=round_half_up(judgment.score * LLM_WEIGHT),
        severity=severity,
        category="llm",
        is_llm=True,
    )]
