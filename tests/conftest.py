import os

import pytest

from services.config import Settings
from services.lists import OverrideListRepository
from services.signals import Attachment, EmailData


@pytest.fixture
def settings(tmp_path):
    return Settings(
        virustotal_api_key="vt-test-key",
        openrouter_api_key="or-test-key",
        llm_models=("model-a", "model-b", "model-c"),
        vt_pacing_seconds=0,
        lists_path=os.path.join(tmp_path, "lists.json"),
        db_path=os.path.join(tmp_path, "history.db"),
        history_limit=5,
        admin_username="admin",
        admin_password="secret",
    )


@pytest.fixture
def lists(settings):
    return OverrideListRepository(settings.lists_path)


@pytest.fixture
def make_email():
    def _make(**overrides):
        fields = {
            "from_header": "Alice <alice@example.org>",
            "sender_email": "alice@example.org",
            "sender_domain": "example.org",
            "subject": "Lunch on Friday",
            "body": "Are we still on for lunch?",
            "headers": {},
            "urls": [],
            "attachments": [],
            "message_id": "<msg-1@example.org>",
        }
        fields.update(overrides)
        return EmailData(**fields)

    return _make


@pytest.fixture
def phishing_email(make_email):
    return make_email(
        from_header="Security Team <alerts@secure-bank-alerts.biz>",
        sender_email="alerts@secure-bank-alerts.biz",
        sender_domain="secure-bank-alerts.biz",
        subject="URGENT: verify your account",
        body=(
            "Unusual activity detected. Act now or your account will be suspended "
            "within 24 hours. Confirm your password and credit card at "
            "http://192.168.10.4/paypal-login"
        ),
        headers={"authentication-results": "mx.example.org; spf=fail dkim=fail dmarc=fail"},
        urls=["http://192.168.10.4/paypal-login"],
        attachments=[Attachment(name="invoice.pdf.exe", content_type="application/pdf")],
    )
