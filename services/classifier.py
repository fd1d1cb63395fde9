from typing import Iterable, Tuple

from services.signals import SCAM_CATEGORY, Signal, Verdict, round_half_up

MALICIOUS = Verdict(
    level="MALICIOUS",
    color="#D93025",
    icon="⛔",
    description="This email shows strong indicators of being malicious. Exercise extreme caution.",
)
SUSPICIOUS = Verdict(
    level="SUSPICIOUS",
    color="#F9AB00",
    icon="⚠️",
    description=(
        "This email has some concerning characteristics. "
        "Review carefully before taking any action."
    ),
)
CAUTION = Verdict(
    level="CAUTION",
    color="#1E88E5",
    icon="ℹ️",
    description="Minor concerns detected. Likely safe but stay vigilant.",
)
SAFE = Verdict(
    level="SAFE",
    color="#34A853",
    icon="✅",
    description="No significant threats detected. Email appears safe.",
)

# Highest threshold first
VERDICT_TIERS = (
    (60, MALICIOUS),
    (30, SUSPICIOUS),
    (10, CAUTION),
    (0, SAFE),
)

# Signal categories softened for a whitelisted sender
DAMPED_CATEGORIES = ("content",)


def get_verdict(score: int) -> Verdict:
    for threshold, verdict in VERDICT_TIERS:
        if score >= threshold:
            return verdict
    return SAFE


def has_scam_signal(signals: Iterable[Signal]) -> bool:
    return any(s.category == SCAM_CATEGORY and s.score > 0 for s in signals)


def split_totals(
    signals: Iterable[Signal],
    whitelisted: bool = False,
    damping: float = 1.0,
) -> Tuple[int, int]:
    """
    Return (raw_total, reduction).

    Reputation reductions are kept out of raw_total. A whitelisted sender gets
    its positive content-check contributions scaled by `damping`, unless a
    scam signal is present. Sender, auth, URL, attachment and oracle signals
    are never damped.
    """
    signals = list(signals)
    damp = whitelisted and not has_scam_signal(signals)

    raw_total = 0
    reduction = 0
    for s in signals:
        if s.is_reduction:
            reduction += s.score
            continue
        if damp and s.score > 0 and s.category in DAMPED_CATEGORIES:
            raw_total += round_half_up(s.score * damping)
        else:
            raw_total += s.score
    return raw_total, reduction


def clamp_score(raw_total: int, reduction: int) -> int:
    # The ceiling goes first so a clean reputation can still pull a maxed score down
    capped = min(100, raw_total)
    return max(0, capped + reduction)


def compute_score(
    signals: Iterable[Signal],
    whitelisted: bool = False,
    damping: float = 1.0,
) -> int:
    raw_total, reduction = split_totals(signals, whitelisted, damping)
    return clamp_score(raw_total, reduction)
