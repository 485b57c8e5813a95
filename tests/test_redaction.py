from __future__ import annotations

from caresubmit.redaction import redact_fields, redact_text


def test_redacts_identifiers():
    text = (
        "Patient Name: John Smith, MRN: 12345, DOB: 03/04/1960, "
        "EID 784-1985-1234567-8, call 050 123 4567 or mail john@example.com"
    )
    redacted = redact_text(text)
    assert "John Smith" not in redacted
    assert "[REDACTED_NAME]" in redacted
    assert "[REDACTED_MRN]" in redacted
    assert "[REDACTED_DATE]" in redacted
    assert "[REDACTED_EMIRATES_ID]" in redacted
    assert "[REDACTED_PHONE]" in redacted
    assert "[REDACTED_EMAIL]" in redacted


def test_clinical_text_untouched():
    text = "Patient requires daily wound care for 30 days after discharge on 2024-01-20."
    assert redact_text(text) == text


def test_redact_fields_only_touches_named_fields():
    values = {"claim_notes": "mail a@b.com", "billing_period": "a@b.com", "count": 3}
    result = redact_fields(values, ("claim_notes", "count"))
    assert result["claim_notes"] == "mail [REDACTED_EMAIL]"
    assert result["billing_period"] == "a@b.com"
    assert result["count"] == 3
    assert values["claim_notes"] == "mail a@b.com"
