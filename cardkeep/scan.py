"""Parsing and screening of scanned card payloads.

A shared card's QR code carries ``label: value`` lines::

    Name: Jane Doe
    Occupation: Designer
    Email: jane@x.com

Payment codes and stray URLs are rejected before anything is saved.
"""

import logging
from typing import Dict, Mapping

from cardkeep.types import CARD_FIELDS, ScanRejectedError

logger = logging.getLogger(__name__)

PAYMENT_MARKERS = (
    "upi://",
    "upi:",
    "vpa=",
    "pa=",
    "pn=",
    "tr=",
    "mc=",
    "gpay",
    "google pay",
    "tez",
    "phonepe",
    "paytm",
    "bhim",
    "bharatqr",
    "npci",
)

BUSINESS_KEYWORDS = ("name", "email", "phone", "instagram", "website", "address")


def parse_scanned_card(raw: str) -> Dict[str, str]:
    """Read ``label: value`` lines into card fields.

    Labels are case-insensitive; the first colon splits label from value,
    so URLs keep theirs. Unknown labels and lines without a colon are
    ignored. Later lines override earlier ones.
    """
    fields: Dict[str, str] = {}
    for line in (raw or "").splitlines():
        label, sep, value = line.partition(":")
        if not sep:
            continue
        label = label.strip().lower()
        if label in CARD_FIELDS:
            fields[label] = value.strip()
    return fields


def is_likely_payment_or_non_business(raw: str) -> bool:
    """Heuristic screen for payloads that are not business cards."""
    lower = (raw or "").lower()
    if any(marker in lower for marker in PAYMENT_MARKERS):
        return True

    has_business_keywords = any(keyword in lower for keyword in BUSINESS_KEYWORDS)
    if lower.startswith(("http://", "https://")) and not has_business_keywords:
        return True

    tokens = lower.split()
    if len(tokens) <= 1 and not has_business_keywords:
        return True
    return False


def has_minimum_business_info(fields: Mapping[str, str]) -> bool:
    """A name plus a phone number or an email."""
    name_ok = bool((fields.get("name") or "").strip())
    phone_ok = bool((fields.get("phone") or "").strip())
    email_ok = bool((fields.get("email") or "").strip())
    return name_ok and (phone_ok or email_ok)


def screen_scanned_card(raw: str) -> Dict[str, str]:
    """Parse a payload and reject it unless it is a usable business card.

    Raises:
        ScanRejectedError: Payment/non-business payloads, or too little info.
    """
    if is_likely_payment_or_non_business(raw):
        raise ScanRejectedError("This QR looks like a payment/non-business code")
    fields = parse_scanned_card(raw)
    if not has_minimum_business_info(fields):
        raise ScanRejectedError("Not enough business card info detected")
    logger.debug("Accepted scanned card with fields: %s", sorted(fields))
    return fields
