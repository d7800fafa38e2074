"""Tests for scanned card parsing and screening."""

import pytest

from cardkeep.scan import (
    has_minimum_business_info,
    is_likely_payment_or_non_business,
    parse_scanned_card,
    screen_scanned_card,
)
from cardkeep.types import ScanRejectedError

CARD_PAYLOAD = """Name: Jane Doe
Occupation: Designer
Email: jane@x.com
Phone: 555
Website: https://jane.example.com
"""


class TestParseScannedCard:
    def test_reads_labelled_lines(self):
        fields = parse_scanned_card(CARD_PAYLOAD)
        assert fields["name"] == "Jane Doe"
        assert fields["occupation"] == "Designer"
        assert fields["phone"] == "555"

    def test_value_keeps_later_colons(self):
        assert parse_scanned_card(CARD_PAYLOAD)["website"] == "https://jane.example.com"

    def test_labels_case_insensitive(self):
        assert parse_scanned_card("NAME:  Jane \nemail:j@x.com") == {
            "name": "Jane",
            "email": "j@x.com",
        }

    def test_ignores_unknown_and_unlabelled_lines(self):
        assert parse_scanned_card("hello\nFax: 123\nName: Jane") == {"name": "Jane"}

    def test_empty(self):
        assert parse_scanned_card("") == {}


class TestPaymentScreen:
    @pytest.mark.parametrize(
        "payload",
        [
            "upi://pay?pa=merchant@okbank&pn=Shop",
            "Pay with PhonePe",
            "https://pay.example.com/checkout",
            "justonetoken",
        ],
    )
    def test_rejects_non_business(self, payload):
        assert is_likely_payment_or_non_business(payload)

    def test_accepts_card_payload(self):
        assert not is_likely_payment_or_non_business(CARD_PAYLOAD)

    def test_url_with_business_keywords_passes(self):
        assert not is_likely_payment_or_non_business("https://x.com/card?name=Jane&phone=1")


class TestMinimumInfo:
    def test_name_and_phone(self):
        assert has_minimum_business_info({"name": "Jane", "phone": "555"})

    def test_name_and_email(self):
        assert has_minimum_business_info({"name": "Jane", "email": "j@x.com"})

    def test_name_only(self):
        assert not has_minimum_business_info({"name": "Jane"})

    def test_blank_name(self):
        assert not has_minimum_business_info({"name": "  ", "phone": "555"})


class TestScreenScannedCard:
    def test_returns_fields(self):
        assert screen_scanned_card(CARD_PAYLOAD)["email"] == "jane@x.com"

    def test_payment_rejected(self):
        with pytest.raises(ScanRejectedError, match="payment"):
            screen_scanned_card("upi://pay?pa=merchant@okbank")

    def test_insufficient_info_rejected(self):
        with pytest.raises(ScanRejectedError, match="Not enough"):
            screen_scanned_card("Name: Jane\nOccupation: Designer")
