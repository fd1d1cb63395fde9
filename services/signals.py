import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

HIGH = "high"
MEDIUM = "medium"
LOW = "low"
GOOD = "good"

SEVERITIES = (HIGH, MEDIUM, LOW, GOOD)

# Category of the signal that lifts whitelist damping
SCAM_CATEGORY = "scam"


@dataclass(frozen=True)
class Signal:
    """
    One piece of scored evidence.

    score is a signed risk delta; severity is only used for display ordering.
    is_reputation / is_llm mark signals that came from an external oracle.
    """

    name: str
    description: str
    score: int
    severity: str
    category: str = "general"
    is_reputation: bool = False
    is_llm: bool = False

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"unknown severity: {self.severity}")

    @property
    def is_reduction(self) -> bool:
        return self.is_reputation and self.score < 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "score": self.score,
            "severity": self.severity,
            "category": self.category,
            "is_reputation": self.is_reputation,
            "is_llm": self.is_llm,
        }


@dataclass(frozen=True)
class Verdict:
    level: str
    color: str
    icon: str
    description: str

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "color": self.color,
            "icon": self.icon,
            "description": self.description,
        }


@dataclass(frozen=True)
class AdapterResult:
    """Outcome of one optional oracle call. enabled=False means it did not run."""

    enabled: bool
    signals: Tuple[Signal, ...] = ()
    error: Optional[str] = None

    @classmethod
    def disabled(cls, error: str) -> "AdapterResult":
        return cls(enabled=False, error=error)


@dataclass(frozen=True)
class AnalysisResult:
    score: int
    verdict: Verdict
    signals: Tuple[Signal, ...]
    reputation_enabled: bool = False
    llm_enabled: bool = False
    whitelisted: bool = False

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "verdict": self.verdict.to_dict(),
            "signals": [s.to_dict() for s in self.signals],
            "reputation_enabled": self.reputation_enabled,
            "llm_enabled": self.llm_enabled,
            "whitelisted": self.whitelisted,
        }


@dataclass(frozen=True)
class Attachment:
    name: str
    content_type: str = ""
    size: int = 0


@dataclass(frozen=True)
class EmailData:
    from_header: str = ""
    sender_email: Optional[str] = None
    sender_domain: str = "unknown"
    subject: str = ""
    body: str = ""
    headers: dict = field(default_factory=dict)
    urls: List[str] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    message_id: Optional[str] = None
    date: Optional[str] = None


def round_half_up(value: float) -> int:
    # round() would give banker's rounding: round_half_up(2.5) == 3
    return int(math.floor(value + 0.5))
