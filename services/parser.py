import email
import re
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import Message
from typing import Dict, Optional, Tuple, Union

from services.errors import InvalidEntryError
from services.signals import Attachment, EmailData
from services.url_analysis import extract_urls

_ANGLE_ADDR_RE = re.compile(r"<(.+?)>")
_TAG_RE = re.compile(r"<[^>]+>")
_ENTITY_RE = re.compile(r"&[a-zA-Z]+;")


def extract_sender(from_header: str) -> Tuple[Optional[str], str]:
    """Return (sender_email, sender_domain) from a "Name <addr>" header."""
    from_header = from_header or ""
    match = _ANGLE_ADDR_RE.search(from_header)
    if match:
        sender = match.group(1).strip().lower()
    elif "@" in from_header:
        sender = from_header.strip().lower()
    else:
        return None, "unknown"
    domain = sender.split("@", 1)[1] if "@" in sender else "unknown"
    return sender, domain or "unknown"


def parse_headers(raw: str) -> Dict[str, str]:
    """
    Header block of a raw message as {lower-cased name: value}.
    Folded lines are joined; a repeated header keeps its last value.
    """
    headers: Dict[str, str] = {}
    normalized = (raw or "").replace("\r\n", "\n")
    header_block = normalized.split("\n\n", 1)[0]

    current_name = ""
    current_value = ""
    for line in header_block.split("\n"):
        if line[:1] in (" ", "\t"):
            current_value += " " + line.strip()
            continue
        if current_name:
            headers[current_name.lower()] = current_value
        if ":" in line:
            name, value = line.split(":", 1)
            current_name = name.strip()
            current_value = value.strip()
        else:
            current_name = ""
            current_value = ""
    if current_name:
        headers[current_name.lower()] = current_value

    return headers


def _decode_payload(part: Message) -> str:
    payload = part.get_payload(decode=True)
    if payload is None:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset)
    except (UnicodeDecodeError, LookupError):
        return payload.decode("utf-8", errors="replace")


def _optional_header(msg: Message, name: str) -> Optional[str]:
    value = msg.get(name)
    return str(value) if value is not None else None


def _decode_header_value(value) -> str:
    """Decode RFC 2047 encoded words; malformed input is returned as-is."""
    if value is None:
        return ""
    try:
        return str(make_header(decode_header(str(value))))
    except (HeaderParseError, UnicodeDecodeError, LookupError, ValueError):
        return str(value)


def _html_to_text(html: str) -> str:
    text = _TAG_RE.sub(" ", html)
    return _ENTITY_RE.sub(" ", text)


def parse_raw_email(raw: Union[bytes, str]) -> EmailData:
    """Build EmailData from an RFC 822 message."""
    if isinstance(raw, bytes):
        msg = email.message_from_bytes(raw)
        raw_text = raw.decode("utf-8", errors="replace")
    else:
        msg = email.message_from_string(raw)
        raw_text = raw

    headers = parse_headers(raw_text)

    plain_body = ""
    html_body = ""
    attachments = []
    for part in msg.walk():
        if part.is_multipart():
            continue
        if part.get_content_disposition() == "attachment":
            payload = part.get_payload(decode=True) or b""
            attachments.append(Attachment(
                name=part.get_filename() or "",
                content_type=part.get_content_type(),
                size=len(payload),
            ))
            continue
        ctype = part.get_content_type()
        if ctype == "text/plain" and not plain_body:
            plain_body = _decode_payload(part)
        elif ctype == "text/html" and not html_body:
            html_body = _decode_payload(part)

    body = plain_body or _html_to_text(html_body)
    from_header = _decode_header_value(msg.get("From"))
    sender_email, sender_domain = extract_sender(from_header)

    return EmailData(
        from_header=from_header,
        sender_email=sender_email,
        sender_domain=sender_domain,
        subject=_decode_header_value(msg.get("Subject")),
        body=body,
        headers=headers,
        urls=extract_urls(plain_body + " " + html_body),
        attachments=attachments,
        message_id=_optional_header(msg, "Message-ID"),
        date=_optional_header(msg, "Date"),
    )


def email_data_from_dict(payload: dict) -> EmailData:
    """Build EmailData from the JSON shape accepted by the API."""
    from_header = str(payload.get("from") or "")
    sender_email = payload.get("sender_email")
    sender_domain = payload.get("sender_domain")
    for value in (sender_email, sender_domain):
        if value is not None and not isinstance(value, str):
            raise InvalidEntryError("sender_email and sender_domain must be strings")
    if not sender_email:
        sender_email, parsed_domain = extract_sender(from_header)
        sender_domain = sender_domain or parsed_domain
    elif not sender_domain:
        sender_domain = sender_email.split("@", 1)[1] if "@" in sender_email else "unknown"

    raw_headers = payload.get("headers") or {}
    if not isinstance(raw_headers, dict):
        raise InvalidEntryError("headers must be an object")
    headers = {str(k).lower(): str(v) for k, v in raw_headers.items()}

    body = str(payload.get("body") or "")
    urls = payload.get("urls")
    if urls is None:
        urls = extract_urls(body)
    elif not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
        raise InvalidEntryError("urls must be a list of strings")

    raw_attachments = payload.get("attachments") or []
    if not isinstance(raw_attachments, list) or not all(
        isinstance(a, dict) for a in raw_attachments
    ):
        raise InvalidEntryError("attachments must be a list of objects")
    try:
        attachments = [
            Attachment(
                name=str(a.get("name") or ""),
                content_type=str(a.get("type") or a.get("content_type") or ""),
                size=int(a.get("size") or 0),
            )
            for a in raw_attachments
        ]
    except (TypeError, ValueError):
        raise InvalidEntryError("attachment size must be a number")

    return EmailData(
        from_header=from_header,
        sender_email=sender_email.lower() if sender_email else None,
        sender_domain=(sender_domain or "unknown").lower(),
        subject=str(payload.get("subject") or ""),
        body=body,
        headers=headers,
        urls=[str(u) for u in urls],
        attachments=attachments,
        message_id=payload.get("message_id"),
        date=payload.get("date"),
    )
