"""
Email risk analysis.

Runs the local detectors, asks the optional oracles (URL reputation and the
LLM judge), folds every signal into one 0-100 score and maps it to a verdict.
"""
from typing import List, Optional

from services.classifier import compute_score, get_verdict
from services.config import Settings
from services.detectors import analyze_attachments, analyze_content, analyze_headers
from services.lists import OverrideListRepository
from services.llm_judge import LlmJudge
from services.logging_utils import get_logger
from services.signals import AdapterResult, AnalysisResult, EmailData, Signal
from services.url_analysis import analyze_urls
from services.virustotal import VirusTotalClient

logger = get_logger(__name__)


def run_detectors(email: EmailData, blacklist_signal: Optional[Signal] = None) -> List[Signal]:
    """All local checks, in a fixed order. Pure: same email, same signals."""
    signals: List[Signal] = []
    if blacklist_signal is not None:
        signals.append(blacklist_signal)
    signals.extend(analyze_headers(email.headers))
    signals.extend(analyze_content(email.subject, email.body))
    signals.extend(analyze_urls(email.urls))
    signals.extend(analyze_attachments(email.attachments))
    return signals


class EmailAnalyzer:
    def __init__(
        self,
        settings: Settings,
        lists: OverrideListRepository,
        reputation: Optional[VirusTotalClient] = None,
        judge: Optional[LlmJudge] = None,
    ):
        self.settings = settings
        self.lists = lists
        self.reputation = reputation
        self.judge = judge

    async def _reputation_result(self, email: EmailData) -> AdapterResult:
        if self.reputation is None:
            return AdapterResult.disabled("not configured")
        if not email.urls:
            return AdapterResult.disabled("no URLs to check")
        return await self.reputation.evaluate(email.urls)

    async def _llm_result(self, email: EmailData) -> AdapterResult:
        if self.judge is None:
            return AdapterResult.disabled("not configured")
        return await self.judge.evaluate(email)

    async def analyze(self, email: EmailData) -> AnalysisResult:
        blacklist_signal = self.lists.is_blacklisted(email.sender_email, email.sender_domain)
        signals = run_detectors(email, blacklist_signal)

        reputation = await self._reputation_result(email)
        signals.extend(reputation.signals)

        llm = await self._llm_result(email)
        signals.extend(llm.signals)

        whitelisted = self.lists.is_whitelisted(email.sender_email, email.sender_domain)
        score = compute_score(
            signals,
            whitelisted=whitelisted,
            damping=self.settings.whitelist_damping,
        )
        verdict = get_verdict(score)

        logger.info(
            "analysis complete: score=%d verdict=%s",
            score,
            verdict.level,
            extra={
                "message_id": email.message_id,
                "signal_count": len(signals),
                "reputation_enabled": reputation.enabled,
                "llm_enabled": llm.enabled,
                "whitelisted": whitelisted,
            },
        )

        return AnalysisResult(
            score=score,
            verdict=verdict,
            signals=tuple(signals),
            reputation_enabled=reputation.enabled,
            llm_enabled=llm.enabled,
            whitelisted=whitelisted,
        )


def build_analyzer(settings: Settings, lists: OverrideListRepository) -> EmailAnalyzer:
    return EmailAnalyzer(
        settings,
        lists,
        reputation=VirusTotalClient(settings),
        judge=LlmJudge(settings),
    )
