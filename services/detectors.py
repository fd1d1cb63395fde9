"""
Local heuristics over a single email.

Every check is a plain function of the fields it needs and returns a fresh
list of Signals. No check reads another check's output.
"""
import re
from typing import Dict, List, Optional, Set

from services.signals import (
    GOOD,
    HIGH,
    LOW,
    MEDIUM,
    SCAM_CATEGORY,
    Attachment,
    Signal,
)

URGENCY_PATTERNS = (
    "urgent", "immediate action", "act now", "limited time",
    "expire", "suspended", "verify your account", "confirm your identity",
    "unusual activity", "unauthorized access", "within 24 hours",
    "immediate", "right away", "don't wait", "hurry",
)

FINANCIAL_PATTERNS = (
    "password", "credit card", "social security", "bank account",
    "login credentials", "billing information", "payment details",
    "wire transfer", "bitcoin", "cryptocurrency", "ssn", "pin code",
)

SCAM_PATTERNS = (
    "free", "free gift card",
    "you won", "you've won", "winner",
    "claim your prize", "lottery", "inheritance",
    "free money", "get rich", "make money fast",
    "nigerian prince", "foreign prince", "million dollars",
    "casino", "betting", "gambling", "100% more", "100% free",
    "100% satisfied", "additional income", "be your own boss",
)

SUSPICIOUS_SUBJECT_PATTERNS = (
    "not a virus", "totally safe", "trust me", "this is real",
    "not spam", "not a scam", "legit", "100% real",
    "click here", "open immediately", "read this",
)

DOWNLOAD_PATTERNS = (
    "download now", "install now", "click to download",
    "download for free", "free download", "get it now",
)

EXECUTABLE_MENTIONS = (".exe", ".scr", ".bat", ".cmd", ".ps1", ".vbs", ".js")

DANGEROUS_TYPES = {
    "application/x-msdownload",
    "application/x-msdos-program",
    "application/x-executable",
    "application/x-sh",
    "application/x-javascript",
    "application/javascript",
    "application/x-bat",
    "application/x-msi",
    "application/vnd.ms-cab-compressed",
}

DANGEROUS_EXTENSIONS = (
    ".exe", ".scr", ".bat", ".cmd", ".com", ".pif", ".vbs", ".vbe",
    ".js", ".jse", ".ws", ".wsf", ".msi", ".msp", ".hta", ".cpl",
    ".ps1", ".reg", ".dll",
)

RISKY_EXTENSIONS = (
    ".doc", ".docm", ".xls", ".xlsm", ".ppt", ".pptm",
    ".zip", ".rar", ".7z", ".tar", ".gz",
    ".iso", ".img",
)

MACRO_REGEX = re.compile(r"\.(docm|xlsm|pptm)$")
DOUBLE_EXTENSION_REGEX = re.compile(r"\.\w+\.\w+$")


def _count_matches(text: str, patterns) -> int:
    return sum(1 for p in patterns if p in text)


def check_sender(
    sender_email: Optional[str],
    sender_domain: Optional[str],
    blacklist_emails: Set[str],
    blacklist_domains: Set[str],
) -> Optional[Signal]:
    """Exact email match wins over exact domain match; at most one signal."""
    if sender_email and sender_email in blacklist_emails:
        return Signal(
            name="Blacklisted Sender",
            description="Sender email is on your blacklist",
            score=50,
            severity=HIGH,
            category="sender",
        )
    if sender_domain and sender_domain in blacklist_domains:
        return Signal(
            name="Blacklisted Domain",
            description="Sender domain is on your blacklist",
            score=40,
            severity=HIGH,
            category="sender",
        )
    return None


def analyze_headers(headers: Dict[str, str]) -> List[Signal]:
    signals: List[Signal] = []

    # Probes on Authentication-Results are case-sensitive
    auth_results = headers.get("authentication-results", "") or ""

    if "spf=fail" in auth_results:
        signals.append(Signal(
            "SPF Failed",
            "Sender's server is not authorized to send for this domain",
            25, HIGH, category="auth",
        ))
    elif "spf=softfail" in auth_results:
        signals.append(Signal(
            "SPF Soft Fail",
            "Sender's server authorization is questionable",
            15, MEDIUM, category="auth",
        ))
    elif "spf=pass" in auth_results:
        signals.append(Signal(
            "SPF Passed", "Sender's server is authorized", 0, GOOD, category="auth",
        ))

    if "dkim=fail" in auth_results:
        signals.append(Signal(
            "DKIM Failed", "Email signature verification failed", 25, HIGH, category="auth",
        ))
    elif "dkim=softfail" in auth_results:
        signals.append(Signal(
            "DKIM Soft Fail", "Email signature could not be fully verified", 15, MEDIUM,
            category="auth",
        ))
    elif "dkim=pass" in auth_results:
        signals.append(Signal(
            "DKIM Passed", "Email signature verified", 0, GOOD, category="auth",
        ))

    if "dmarc=fail" in auth_results:
        signals.append(Signal(
            "DMARC Failed", "Domain authentication policy check failed", 20, HIGH,
            category="auth",
        ))
    elif "dmarc=softfail" in auth_results:
        signals.append(Signal(
            "DMARC Soft Fail", "Domain authentication policy result is questionable", 15, MEDIUM,
            category="auth",
        ))
    elif "dmarc=pass" in auth_results:
        signals.append(Signal(
            "DMARC Passed", "Domain authentication policy verified", 0, GOOD, category="auth",
        ))

    received_spf = (headers.get("received-spf", "") or "").lower()
    if "fail" in received_spf:
        signals.append(Signal(
            "Received-SPF Failed", "SPF validation failed at receiving server", 20, HIGH,
            category="auth",
        ))

    spam_status = (headers.get("x-spam-status", "") or "").lower()
    if "yes" in spam_status:
        signals.append(Signal(
            "Marked as Spam", "Email was flagged by spam filters", 15, MEDIUM,
            category="auth",
        ))

    return signals


def analyze_content(subject: str, body: str) -> List[Signal]:
    signals: List[Signal] = []
    text = ((subject or "") + " " + (body or "")).lower()
    subject_lower = (subject or "").lower()

    urgency_count = _count_matches(text, URGENCY_PATTERNS)
    if urgency_count >= 3:
        signals.append(Signal(
            name="High Urgency Language",
            description=f"{urgency_count} urgent phrases detected (common in phishing)",
            score=20,
            severity=MEDIUM,
            category="content",
        ))
    elif urgency_count >= 1:
        signals.append(Signal(
            name="Urgency Language",
            description=f"{urgency_count} urgency phrase(s) detected",
            score=10,
            severity=LOW,
            category="content",
        ))

    financial_count = _count_matches(text, FINANCIAL_PATTERNS)
    if financial_count >= 2:
        signals.append(Signal(
            name="Sensitive Data Request",
            description="Email requests sensitive financial/credential information",
            score=25,
            severity=HIGH,
            category="content",
        ))
    elif financial_count == 1:
        signals.append(Signal(
            name="Financial Reference",
            description="Email mentions sensitive financial topics",
            score=10,
            severity=LOW,
            category="content",
        ))

    scam_count = _count_matches(text, SCAM_PATTERNS)
    if scam_count:
        signals.append(Signal(
            name="Scam/Prize Pattern",
            description=(
                f"{scam_count} common scam phrase(s) detected "
                "(fake prizes, free currency, etc.)"
            ),
            score=20 if scam_count == 1 else 30,
            severity=MEDIUM,
            category=SCAM_CATEGORY,
        ))

    if _count_matches(subject_lower, SUSPICIOUS_SUBJECT_PATTERNS):
        signals.append(Signal(
            name="Suspicious Subject Line",
            description="Subject contains phrases often used ironically in scams",
            score=25,
            severity=HIGH,
            category="content",
        ))

    if _count_matches(text, DOWNLOAD_PATTERNS):
        signals.append(Signal(
            name="Download Prompt",
            description="Email prompts you to download something",
            score=15,
            severity=MEDIUM,
            category="content",
        ))

    if _count_matches(text, EXECUTABLE_MENTIONS):
        signals.append(Signal(
            name="Executable Reference",
            description="Email mentions executable file types",
            score=15,
            severity=MEDIUM,
            category="content",
        ))

    return signals


def _is_dangerous(name: str, content_type: str) -> int:
    hits = 0
    if content_type in DANGEROUS_TYPES:
        hits += 1
    hits += sum(1 for ext in DANGEROUS_EXTENSIONS if name.endswith(ext))
    # invoice.pdf.exe style names count again on their final segment
    if DOUBLE_EXTENSION_REGEX.search(name):
        last_ext = "." + name.rsplit(".", 1)[-1]
        if last_ext in DANGEROUS_EXTENSIONS:
            hits += 1
    return hits


def analyze_attachments(attachments: List[Attachment]) -> List[Signal]:
    signals: List[Signal] = []
    if not attachments:
        return signals

    dangerous_count = 0
    macro_count = 0
    risky_count = 0

    for att in attachments:
        name = str(att.name or "").lower()
        content_type = str(att.content_type or "").lower()

        dangerous_count += _is_dangerous(name, content_type)
        risky_count += sum(1 for ext in RISKY_EXTENSIONS if name.endswith(ext))
        if MACRO_REGEX.search(name):
            macro_count += 1

    if dangerous_count:
        signals.append(Signal(
            name="Dangerous Attachments",
            description=f"{dangerous_count} potentially dangerous file indicator(s) in attachments",
            score=35,
            severity=HIGH,
            category="attachment",
        ))

    if macro_count:
        signals.append(Signal(
            name="Macro-Enabled Documents",
            description=f"{macro_count} macro-enabled Office document(s) attached",
            score=25,
            severity=HIGH,
            category="attachment",
        ))

    if risky_count and not dangerous_count and not macro_count:
        signals.append(Signal(
            name="Risky Attachments",
            description=f"{risky_count} attachment(s) that could contain hidden content",
            score=10,
            severity=LOW,
            category="attachment",
        ))

    return signals
