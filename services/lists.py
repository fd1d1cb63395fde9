import json
import os
import re
from dataclasses import dataclass, replace
from threading import Lock
from typing import Optional, Tuple

from services.detectors import check_sender
from services.errors import InvalidEntryError
from services.logging_utils import get_logger
from services.signals import Signal

BLACKLIST = "blacklist"
WHITELIST = "whitelist"
LIST_KINDS = (BLACKLIST, WHITELIST)

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DOMAIN_REGEX = re.compile(r"^[a-z0-9]+([\-.][a-z0-9]+)*\.[a-z]{2,}$")

# Senders on these domains are always treated as whitelisted
BUILTIN_TRUSTED_DOMAINS = (
    # Gaming
    "hoyoverse.com", "mihoyo.com", "riotgames.com", "leagueoflegends.com",
    "steampowered.com", "epicgames.com", "blizzard.com", "battle.net",
    "playstation.com", "xbox.com", "nintendo.com", "ea.com", "ubisoft.com",
    # Streaming
    "netflix.com", "spotify.com", "disney.com", "hulu.com",
    "youtube.com", "twitch.tv", "primevideo.com",
    # Shopping
    "amazon.com", "amazon.co.il", "ebay.com", "aliexpress.com",
    "wolt.com", "gett.com", "uber.com", "bolt.eu",
    # Tech (no free-mail domains)
    "google.com", "apple.com", "microsoft.com",
    "github.com", "gitlab.com", "linkedin.com",
    "dropbox.com", "zoom.us", "slack.com", "notion.so",
    # Social
    "facebook.com", "instagram.com", "twitter.com", "x.com",
    "tiktok.com", "reddit.com", "discord.com",
    # Finance
    "bankhapoalim.co.il", "leumi.co.il", "mizrahi-tefahot.co.il",
    "discount.co.il", "isracard.co.il", "cal-online.co.il", "max.co.il",
    "paypal.com", "stripe.com",
    # Local services
    "bezeq.co.il", "partner.co.il", "cellcom.co.il", "hot.net.il",
    "super-pharm.co.il", "shufersal.co.il", "gov.il",
    # Universities
    "tau.ac.il", "huji.ac.il", "technion.ac.il", "weizmann.ac.il",
)

logger = get_logger(__name__)


def normalize_email(value: str) -> str:
    email = (value or "").strip().lower()
    if not email:
        raise InvalidEntryError("Please enter an email address")
    if not EMAIL_REGEX.match(email):
        raise InvalidEntryError("Invalid email format")
    return email


def normalize_domain(value: str) -> str:
    domain = (value or "").strip().lower()
    if not domain:
        raise InvalidEntryError("Please enter a domain")
    domain = re.sub(r"^https?://", "", domain)
    domain = re.sub(r"/.*$", "", domain)
    if not DOMAIN_REGEX.match(domain):
        raise InvalidEntryError("Invalid domain format")
    return domain


def domain_matches(domain: str, entry: str) -> bool:
    """Exact match or a subdomain of `entry`."""
    domain = domain.lower()
    entry = entry.lower()
    return domain == entry or domain.endswith("." + entry)


@dataclass(frozen=True)
class OverrideList:
    """
    User-owned set of sender emails and domains.
    Every edit returns a new OverrideList; the original is never touched.
    """

    name: str = BLACKLIST
    emails: Tuple[str, ...] = ()
    domains: Tuple[str, ...] = ()

    def add_email(self, value: str) -> "OverrideList":
        email = normalize_email(value)
        if email in self.emails:
            raise InvalidEntryError(f"Email already in {self.name}")
        return replace(self, emails=self.emails + (email,))

    def add_domain(self, value: str) -> "OverrideList":
        domain = normalize_domain(value)
        if domain in self.domains:
            raise InvalidEntryError(f"Domain already in {self.name}")
        return replace(self, domains=self.domains + (domain,))

    def remove_email(self, value: str) -> "OverrideList":
        email = (value or "").strip().lower()
        return replace(self, emails=tuple(e for e in self.emails if e != email))

    def remove_domain(self, value: str) -> "OverrideList":
        domain = (value or "").strip().lower()
        return replace(self, domains=tuple(d for d in self.domains if d != domain))

    def to_dict(self) -> dict:
        return {"emails": list(self.emails), "domains": list(self.domains)}

    @classmethod
    def from_dict(cls, name: str, data) -> "OverrideList":
        if not isinstance(data, dict):
            return cls(name=name)
        emails = data.get("emails") or []
        domains = data.get("domains") or []
        if not isinstance(emails, list) or not isinstance(domains, list):
            return cls(name=name)
        return cls(
            name=name,
            emails=tuple(str(e).lower() for e in emails),
            domains=tuple(str(d).lower() for d in domains),
        )


class OverrideListRepository:
    """Blacklist and whitelist persisted together in one JSON file."""

    def __init__(self, path: str, builtin_trusted: Tuple[str, ...] = BUILTIN_TRUSTED_DOMAINS):
        self.path = path
        self.builtin_trusted = builtin_trusted
        self._lock = Lock()

    def _load_raw(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with self._lock:
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError):
                logger.warning("override lists unreadable, resetting", extra={"path": self.path})
                return {}
        return data if isinstance(data, dict) else {}

    def get(self, kind: str) -> OverrideList:
        if kind not in LIST_KINDS:
            raise KeyError(kind)
        return OverrideList.from_dict(kind, self._load_raw().get(kind))

    def save(self, override_list: OverrideList) -> OverrideList:
        data = self._load_raw()
        data[override_list.name] = override_list.to_dict()
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with self._lock:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        return override_list

    def add(self, kind: str, field: str, value: str) -> OverrideList:
        current = self.get(kind)
        if field == "emails":
            updated = current.add_email(value)
        elif field == "domains":
            updated = current.add_domain(value)
        else:
            raise KeyError(field)
        logger.info("override list entry added", extra={"list": kind, "field": field})
        return self.save(updated)

    def remove(self, kind: str, field: str, value: str) -> OverrideList:
        current = self.get(kind)
        if field == "emails":
            updated = current.remove_email(value)
        elif field == "domains":
            updated = current.remove_domain(value)
        else:
            raise KeyError(field)
        return self.save(updated)

    def is_blacklisted(self, email: Optional[str], domain: Optional[str]) -> Optional[Signal]:
        blacklist = self.get(BLACKLIST)
        return check_sender(
            (email or "").lower() or None,
            (domain or "").lower() or None,
            set(blacklist.emails),
            set(blacklist.domains),
        )

    def is_whitelisted(self, email: Optional[str], domain: Optional[str]) -> bool:
        whitelist = self.get(WHITELIST)
        if email and email.lower() in whitelist.emails:
            return True
        if domain:
            for entry in whitelist.domains + tuple(self.builtin_trusted):
                if domain_matches(domain, entry):
                    return True
        return False
