from services.detectors import (
    analyze_attachments,
    analyze_content,
    analyze_headers,
    check_sender,
)
from services.signals import GOOD, HIGH, LOW, MEDIUM, SCAM_CATEGORY, Attachment


def _by_name(signals):
    return {s.name: s for s in signals}


def test_blacklisted_email_beats_blacklisted_domain():
    signal = check_sender(
        "bad@evil.com", "evil.com", {"bad@evil.com"}, {"evil.com"}
    )
    assert signal.name == "Blacklisted Sender"
    assert signal.score == 50
    assert signal.severity == HIGH


def test_blacklisted_domain_only():
    signal = check_sender("someone@evil.com", "evil.com", set(), {"evil.com"})
    assert signal.name == "Blacklisted Domain"
    assert signal.score == 40


def test_blacklist_domain_match_is_exact():
    assert check_sender("a@mail.evil.com", "mail.evil.com", set(), {"evil.com"}) is None


def test_sender_not_listed():
    assert check_sender("a@example.org", "example.org", set(), set()) is None
    assert check_sender(None, None, {"a@b.com"}, {"b.com"}) is None


def test_auth_failures_each_contribute():
    signals = _by_name(analyze_headers({
        "authentication-results": "mx; spf=fail; dkim=fail; dmarc=fail",
    }))
    assert signals["SPF Failed"].score == 25
    assert signals["DKIM Failed"].score == 25
    assert signals["DMARC Failed"].score == 20
    assert all(s.severity == HIGH for s in signals.values())


def test_auth_pass_emits_zero_score_good_signals():
    signals = analyze_headers({
        "authentication-results": "mx; spf=pass; dkim=pass; dmarc=pass",
    })
    assert [s.name for s in signals] == ["SPF Passed", "DKIM Passed", "DMARC Passed"]
    assert all(s.score == 0 and s.severity == GOOD for s in signals)


def test_spf_softfail():
    signals = analyze_headers({"authentication-results": "spf=softfail"})
    assert len(signals) == 1
    assert signals[0].name == "SPF Soft Fail"
    assert signals[0].score == 15
    assert signals[0].severity == MEDIUM


def test_auth_probe_is_case_sensitive():
    assert analyze_headers({"authentication-results": "SPF=FAIL DKIM=FAIL"}) == []


def test_received_spf_and_spam_status_are_case_insensitive():
    signals = _by_name(analyze_headers({
        "received-spf": "FAIL (domain does not designate sender)",
        "x-spam-status": "Yes, score=7.1",
    }))
    assert signals["Received-SPF Failed"].score == 20
    assert signals["Marked as Spam"].score == 15


def test_header_checks_do_not_suppress_each_other():
    signals = analyze_headers({
        "authentication-results": "spf=fail dkim=pass",
        "received-spf": "fail",
        "x-spam-status": "yes",
    })
    names = [s.name for s in signals]
    assert names == ["SPF Failed", "DKIM Passed", "Received-SPF Failed", "Marked as Spam"]


def test_no_headers_no_signals():
    assert analyze_headers({}) == []


def test_three_urgency_phrases_give_high_urgency():
    signals = _by_name(analyze_content("Notice", "This is urgent, act now before it will expire"))
    assert "High Urgency Language" in signals
    assert signals["High Urgency Language"].score == 20
    assert "Urgency Language" not in signals


def test_single_urgency_phrase_gives_low_urgency():
    signals = _by_name(analyze_content("", "Please hurry"))
    assert signals["Urgency Language"].score == 10
    assert signals["Urgency Language"].severity == LOW


def test_financial_thresholds():
    high = _by_name(analyze_content("", "Send your password and bank account details"))
    assert high["Sensitive Data Request"].score == 25

    low = _by_name(analyze_content("", "Your bitcoin statement"))
    assert low["Financial Reference"].score == 10


def test_scam_counts():
    one = _by_name(analyze_content("", "Enter the lottery"))
    assert one["Scam/Prize Pattern"].score == 20
    assert one["Scam/Prize Pattern"].category == SCAM_CATEGORY

    many = _by_name(analyze_content("You won", "Claim your prize from the casino"))
    assert many["Scam/Prize Pattern"].score == 30

    none = _by_name(analyze_content("Meeting", "Agenda attached"))
    assert "Scam/Prize Pattern" not in none


def test_suspicious_subject_only_checks_subject():
    assert "Suspicious Subject Line" in _by_name(analyze_content("Not a scam, trust me", ""))
    assert "Suspicious Subject Line" not in _by_name(analyze_content("Hello", "trust me"))


def test_download_and_executable_prompts():
    signals = _by_name(analyze_content("Update", "Download now: setup.exe"))
    assert signals["Download Prompt"].score == 15
    assert signals["Executable Reference"].score == 15


def test_clean_content():
    assert analyze_content("Lunch", "See you at noon") == []


def test_double_extension_is_dangerous():
    signals = _by_name(analyze_attachments([
        Attachment(name="invoice.pdf.exe", content_type="application/pdf"),
    ]))
    assert signals["Dangerous Attachments"].score == 35
    assert signals["Dangerous Attachments"].severity == HIGH


def test_dangerous_mime_type():
    signals = _by_name(analyze_attachments([
        Attachment(name="report", content_type="application/x-msdownload"),
    ]))
    assert "Dangerous Attachments" in signals


def test_macro_documents_suppress_risky():
    signals = _by_name(analyze_attachments([Attachment(name="Budget.XLSM")]))
    assert signals["Macro-Enabled Documents"].score == 25
    assert "Risky Attachments" not in signals


def test_risky_only_when_nothing_worse():
    signals = _by_name(analyze_attachments([
        Attachment(name="photos.zip", content_type="application/zip"),
    ]))
    assert signals["Risky Attachments"].score == 10
    assert signals["Risky Attachments"].severity == LOW

    mixed = _by_name(analyze_attachments([
        Attachment(name="photos.zip"),
        Attachment(name="run.bat"),
    ]))
    assert "Risky Attachments" not in mixed
    assert "Dangerous Attachments" in mixed


def test_no_attachments():
    assert analyze_attachments([]) == []
    assert analyze_attachments([Attachment(name="notes.pdf", content_type="application/pdf")]) == []
