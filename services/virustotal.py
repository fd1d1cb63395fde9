"""
VirusTotal URL reputation lookups.

The free API tier allows 4 requests/minute, so only the first few URLs of an
email are checked and consecutive calls are paced.
"""
import asyncio
import base64
from dataclasses import dataclass
from typing import List, Optional

import httpx

from services.config import Settings
from services.errors import AdapterError
from services.logging_utils import get_logger
from services.signals import GOOD, HIGH, LOW, MEDIUM, AdapterResult, Signal

COMPLETE = "complete"
PENDING = "pending"
ERROR = "error"

MAX_URL_LENGTH = 2000

logger = get_logger(__name__)


@dataclass(frozen=True)
class UrlVerdict:
    url: str
    status: str
    malicious: int = 0
    suspicious: int = 0
    harmless: int = 0
    undetected: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class ReputationReport:
    enabled: bool
    per_url: tuple = ()
    total_urls: int = 0
    error: Optional[str] = None


def url_id(url: str) -> str:
    """VirusTotal URL identifier: unpadded URL-safe base64 of the URL."""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def parse_report(url: str, data: dict) -> UrlVerdict:
    try:
        stats = data["data"]["attributes"]["last_analysis_stats"]
    except (KeyError, TypeError) as exc:
        raise AdapterError(f"malformed VirusTotal response: {exc!r}") from exc

    return UrlVerdict(
        url=url,
        status=COMPLETE,
        malicious=int(stats.get("malicious") or 0),
        suspicious=int(stats.get("suspicious") or 0),
        harmless=int(stats.get("harmless") or 0),
        undetected=int(stats.get("undetected") or 0),
    )


class VirusTotalClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.virustotal_api_key
        self.base_url = settings.virustotal_url.rstrip("/")
        self.timeout = settings.vt_timeout
        self.max_urls = settings.vt_max_urls
        self.pacing_seconds = settings.vt_pacing_seconds
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers={"x-apikey": self.api_key or ""},
            transport=self._transport,
        )

    async def _submit(self, client: httpx.AsyncClient, url: str) -> UrlVerdict:
        resp = await client.post(f"{self.base_url}/urls", data={"url": url})
        if resp.status_code != 200:
            return UrlVerdict(url=url, status=ERROR, error=f"Submit error: {resp.status_code}")
        # Submitted for analysis; counts arrive on a later lookup
        return UrlVerdict(url=url, status=PENDING)

    async def check_url(self, client: httpx.AsyncClient, url: str) -> UrlVerdict:
        try:
            resp = await client.get(f"{self.base_url}/urls/{url_id(url)}")
            if resp.status_code == 404:
                return await self._submit(client, url)
            if resp.status_code != 200:
                logger.warning(
                    "VirusTotal lookup failed",
                    extra={"status_code": resp.status_code},
                )
                return UrlVerdict(url=url, status=ERROR, error=f"API error: {resp.status_code}")
            return parse_report(url, resp.json())
        except (httpx.HTTPError, ValueError, AdapterError) as exc:
            logger.warning("VirusTotal lookup error: %s", exc)
            return UrlVerdict(url=url, status=ERROR, error=str(exc))

    async def check_urls(self, urls: List[str]) -> ReputationReport:
        if not self.enabled:
            return ReputationReport(enabled=False, error="API key not configured")

        to_check = urls[: self.max_urls]
        results = []
        async with self._client() as client:
            for i, url in enumerate(to_check):
                if len(url) > MAX_URL_LENGTH or url.startswith("data:"):
                    continue
                results.append(await self.check_url(client, url))
                if i < len(to_check) - 1 and self.pacing_seconds > 0:
                    await asyncio.sleep(self.pacing_seconds)

        return ReputationReport(enabled=True, per_url=tuple(results), total_urls=len(urls))

    async def evaluate(self, urls: List[str]) -> AdapterResult:
        """Look up `urls` and convert the report; never raises."""
        try:
            report = await self.check_urls(urls)
        except Exception as exc:  # adapter failures must not abort the analysis
            logger.warning("VirusTotal adapter failed", exc_info=True)
            return AdapterResult.disabled(str(exc))

        if not report.enabled:
            return AdapterResult.disabled(report.error or "disabled")
        return AdapterResult(enabled=True, signals=tuple(reputation_to_signals(report)))


def reputation_to_signals(report: ReputationReport) -> List[Signal]:
    """At most one signal for the whole report, worst finding first."""
    if not report.enabled:
        return []

    total_malicious = 0
    total_suspicious = 0
    all_clean = True
    checked = 0

    for verdict in report.per_url:
        if verdict.status != COMPLETE:
            continue
        checked += 1
        total_malicious += verdict.malicious
        total_suspicious += verdict.suspicious
        if verdict.malicious > 0 or verdict.suspicious > 0:
            all_clean = False

    if total_malicious > 5:
        return [Signal(
            name="VirusTotal: Malicious URLs",
            description=f"{total_malicious} security vendors flagged URL(s) as malicious",
            score=40,
            severity=HIGH,
            category="reputation",
            is_reputation=True,
        )]
    if total_malicious > 0:
        return [Signal(
            name="VirusTotal: Suspicious URLs",
            description=(
                f"{total_malicious} security vendor(s) flagged URL(s) as potentially malicious"
            ),
            score=25,
            severity=MEDIUM,
            category="reputation",
            is_reputation=True,
        )]
    if total_suspicious > 0:
        return [Signal(
            name="VirusTotal: Caution",
            description=f"{total_suspicious} security vendor(s) flagged URL(s) as suspicious",
            score=10,
            severity=LOW,
            category="reputation",
            is_reputation=True,
        )]
    if all_clean and checked:
        return [Signal(
            name="VirusTotal: Clean",
            description=(
                f"{checked} of {report.total_urls} URL(s) verified clean by security vendors"
            ),
            score=-25,
            severity=GOOD,
            category="reputation",
            is_reputation=True,
        )]
    return []
