import re
from typing import List

from services.signals import HIGH, MEDIUM, Signal

# Basic URL regex – good enough for most mail content
URL_REGEX = re.compile(r"""https?://[^\s<>"{}|\\^`\[\]]+""", re.IGNORECASE)

IP_URL_REGEX = re.compile(r"https?://\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}")

# URLs on these domains are skipped by every per-URL check
TRUSTED_DOMAINS = (
    "gett.com", "wolt.com", "uber.com", "bolt.eu", "lyft.com",
    "google.com", "gmail.com", "youtube.com",
    "facebook.com", "instagram.com", "twitter.com", "x.com", "linkedin.com",
    "amazon.com", "amazon.co.il", "ebay.com", "aliexpress.com",
    "apple.com", "microsoft.com", "github.com", "gitlab.com",
    "paypal.com", "stripe.com",
    "netflix.com", "spotify.com", "disney.com",
    "bankhapoalim.co.il", "leumi.co.il", "mizrahi-tefahot.co.il", "discount.co.il",
    "isracard.co.il", "cal-online.co.il", "max.co.il",
    "bezeq.co.il", "partner.co.il", "cellcom.co.il", "hot.net.il",
    "super-pharm.co.il", "shufersal.co.il",
    "gov.il", "health.gov.il", "tax.gov.il",
    "mailchimp.com", "sendgrid.net", "constantcontact.com",
    "zoom.us", "slack.com", "notion.so", "dropbox.com",
    "university.edu", "tau.ac.il", "huji.ac.il", "bgu.ac.il", "technion.ac.il",
)

URL_SHORTENERS = (
    "bit.ly", "tinyurl.com", "goo.gl", "t.co", "ow.ly", "is.gd",
    "buff.ly", "adf.ly", "cutt.ly",
)

SCAM_DOMAIN_KEYWORDS = (
    "free-", "-free", "giftcard", "prize", "winner", "lottery",
    "login-", "-login", "secure-", "-secure", "verify-", "-verify",
    "account-", "-account", "update-", "-update",
    "paypal-", "amazon-", "apple-", "microsoft-", "google-", "facebook-",
)

# Words that only belong in a URL when the domain itself is that word
SENSITIVE_URL_WORDS = (
    "login", "signin", "verify", "secure", "account", "update",
    "confirm", "banking", "paypal", "amazon",
)

_BRAND_DOMAIN_REGEXES = {
    word: re.compile(r"https?://[^/]*" + re.escape(word) + r"\.(com|org|net)")
    for word in SENSITIVE_URL_WORDS
}


def extract_urls(text: str) -> List[str]:
    if not text:
        return []
    urls = URL_REGEX.findall(text)
    # Normalize a bit: strip trailing punctuation
    cleaned = []
    for u in urls:
        cleaned.append(u.rstrip(').,;\'"'))
    # De-duplicate while preserving order
    seen = set()
    result = []
    for u in cleaned:
        if u not in seen:
            seen.add(u)
            result.append(u)
    return result


def is_trusted_url(url: str) -> bool:
    lower_u = url.lower()
    return any(domain in lower_u for domain in TRUSTED_DOMAINS)


def _has_brand_mismatch(lower_u: str) -> bool:
    return any(
        word in lower_u and not _BRAND_DOMAIN_REGEXES[word].search(lower_u)
        for word in SENSITIVE_URL_WORDS
    )


def analyze_urls(urls: List[str]) -> List[Signal]:
    """
    Static checks over the URLs found in an email.

    Trusted URLs are skipped entirely. Each category emits at most one
    signal no matter how many URLs matched; the description carries the count.
    """
    signals: List[Signal] = []
    if not urls:
        return signals

    http_count = 0
    ip_count = 0
    shortened_count = 0
    scam_keyword_count = 0
    mismatch_count = 0

    for u in urls:
        lower_u = u.lower()
        if is_trusted_url(lower_u):
            continue

        if lower_u.startswith("http://"):
            http_count += 1

        if IP_URL_REGEX.search(lower_u):
            ip_count += 1

        shortened_count += sum(1 for s in URL_SHORTENERS if s in lower_u)
        scam_keyword_count += sum(1 for k in SCAM_DOMAIN_KEYWORDS if k in lower_u)

        if _has_brand_mismatch(lower_u):
            mismatch_count += 1

    if ip_count:
        signals.append(Signal(
            name="IP-based URLs",
            description=f"{ip_count} URL(s) use IP addresses instead of domains",
            score=25,
            severity=HIGH,
            category="url",
        ))

    if http_count:
        signals.append(Signal(
            name="Insecure HTTP Links",
            description=f"{http_count} link(s) use HTTP instead of HTTPS",
            score=15,
            severity=MEDIUM,
            category="url",
        ))

    if shortened_count:
        signals.append(Signal(
            name="Shortened URLs",
            description=f"{shortened_count} shortened URL(s) detected (hiding true destination)",
            score=15,
            severity=MEDIUM,
            category="url",
        ))

    if scam_keyword_count:
        signals.append(Signal(
            name="Suspicious Domain Keywords",
            description=f"{scam_keyword_count} keyword match(es) commonly used in scam domains",
            score=25,
            severity=HIGH,
            category="url",
        ))

    if mismatch_count:
        signals.append(Signal(
            name="Suspicious URLs",
            description=f"{mismatch_count} URL(s) with suspicious patterns",
            score=20,
            severity=MEDIUM,
            category="url",
        ))

    return signals
