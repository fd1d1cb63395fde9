import pytest

from services.errors import InvalidEntryError
from services.parser import email_data_from_dict, extract_sender, parse_headers, parse_raw_email

RAW_EMAIL = (
    "From: \"PayPal Support\" <Support@Paypa1-Secure.com>\r\n"
    "To: victim@example.org\r\n"
    "Subject: Account locked\r\n"
    "Message-ID: <abc@paypa1-secure.com>\r\n"
    "Authentication-Results: mx.example.org;\r\n"
    "\tspf=fail smtp.mailfrom=paypa1-secure.com;\r\n"
    "\tdkim=none\r\n"
    "Received-SPF: fail\r\n"
    "MIME-Version: 1.0\r\n"
    "Content-Type: multipart/mixed; boundary=\"XYZ\"\r\n"
    "\r\n"
    "--XYZ\r\n"
    "Content-Type: text/plain; charset=utf-8\r\n"
    "\r\n"
    "Your account is suspended. Log in at http://paypa1-secure.com/login now.\r\n"
    "--XYZ\r\n"
    "Content-Type: application/octet-stream\r\n"
    "Content-Disposition: attachment; filename=\"statement.pdf.exe\"\r\n"
    "Content-Transfer-Encoding: base64\r\n"
    "\r\n"
    "TVqQAAMAAAAEAAAA\r\n"
    "--XYZ--\r\n"
)


def test_extract_sender():
    assert extract_sender("Alice <Alice@Example.org>") == ("alice@example.org", "example.org")
    assert extract_sender("bob@example.net") == ("bob@example.net", "example.net")
    assert extract_sender("Undisclosed") == (None, "unknown")


def test_parse_headers_folds_and_lowercases():
    headers = parse_headers(RAW_EMAIL)
    assert headers["authentication-results"] == (
        "mx.example.org; spf=fail smtp.mailfrom=paypa1-secure.com; dkim=none"
    )
    assert headers["received-spf"] == "fail"
    assert "your account" not in " ".join(headers.values()).lower()


def test_parse_raw_email():
    email = parse_raw_email(RAW_EMAIL.encode("utf-8"))
    assert email.sender_email == "support@paypa1-secure.com"
    assert email.sender_domain == "paypa1-secure.com"
    assert email.subject == "Account locked"
    assert "suspended" in email.body
    assert email.urls == ["http://paypa1-secure.com/login"]
    assert len(email.attachments) == 1
    assert email.attachments[0].name == "statement.pdf.exe"
    assert email.attachments[0].size > 0
    assert email.message_id == "<abc@paypa1-secure.com>"


def test_html_only_body_is_stripped():
    raw = (
        "From: news@example.org\n"
        "Subject: Hi\n"
        "Content-Type: text/html\n"
        "\n"
        "<html><body><p>Hello&nbsp;there <a href=\"https://example.org/x\">link</a></p></body></html>\n"
    )
    email = parse_raw_email(raw)
    assert "<p>" not in email.body
    assert "Hello" in email.body
    assert email.urls == ["https://example.org/x"]


def test_email_data_from_dict():
    email = email_data_from_dict({
        "from": "Shop <deals@Shop.example>",
        "subject": "Sale",
        "body": "See https://shop.example/sale",
        "headers": {"Authentication-Results": "spf=pass"},
        "attachments": [{"name": "a.zip", "type": "application/zip", "size": 10}],
    })
    assert email.sender_email == "deals@shop.example"
    assert email.sender_domain == "shop.example"
    assert email.headers == {"authentication-results": "spf=pass"}
    assert email.urls == ["https://shop.example/sale"]
    assert email.attachments[0].content_type == "application/zip"


def test_email_data_from_dict_explicit_urls():
    email = email_data_from_dict({"sender_email": "x@y.org", "body": "https://a.org", "urls": []})
    assert email.urls == []
    assert email.sender_domain == "y.org"


def test_encoded_word_headers_are_decoded():
    raw = (
        "From: =?UTF-8?B?UHJpemUgRGVzaw==?= <win@lucky.example>\r\n"
        "Subject: =?UTF-8?B?WW91IHdvbiB0aGUgbG90dGVyeQ==?=\r\n"
        "\r\n"
        "Details inside.\r\n"
    )
    email = parse_raw_email(raw.encode("utf-8"))
    assert email.subject == "You won the lottery"
    assert email.from_header == "Prize Desk <win@lucky.example>"
    assert email.sender_email == "win@lucky.example"


def test_malformed_encoded_word_is_kept():
    raw = "From: a@b.org\r\nSubject: =?bogus-charset?Q?hello?=\r\n\r\nbody\r\n"
    email = parse_raw_email(raw)
    assert "hello" in email.subject


@pytest.mark.parametrize(
    "payload",
    [
        {"urls": "http://1.2.3.4/login"},
        {"urls": [1, 2]},
        {"headers": ["x"]},
        {"attachments": {"name": "a.exe"}},
        {"attachments": ["a.exe"]},
        {"attachments": [{"name": "a.exe", "size": "big"}]},
        {"sender_email": 42},
    ],
)
def test_email_data_from_dict_rejects_bad_shapes(payload):
    with pytest.raises(InvalidEntryError):
        email_data_from_dict(payload)
