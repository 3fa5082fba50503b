from __future__ import annotations

import base64
import hashlib
import hmac

from inquaire.business.webhooks.replay import forget, is_duplicate, is_timestamp_valid
from inquaire.business.webhooks.service import delivery_id
from inquaire.business.webhooks.signatures import (
    compute_instagram_signature,
    compute_signature,
    verify_instagram_signature,
    verify_line_signature,
    verify_optional_signature,
)

BODY = b'{"events":[]}'


def test_line_signature_is_base64_hmac() -> None:
    expected = base64.b64encode(hmac.new(b"secret", BODY, hashlib.sha256).digest()).decode("ascii")
    assert compute_signature(BODY, "secret") == expected

    assert verify_line_signature(BODY, expected, "secret") is True
    assert verify_line_signature(BODY + b" ", expected, "secret") is False
    assert verify_line_signature(BODY, None, "secret") is False
    assert verify_line_signature(BODY, expected, None) is False


def test_optional_signature_only_enforced_with_secret() -> None:
    assert verify_optional_signature("KAKAO", BODY, None, None) is True
    assert verify_optional_signature("KAKAO", BODY, "anything", "") is True
    assert verify_optional_signature("KAKAO", BODY, None, "secret") is False
    assert verify_optional_signature("NAVER_TALK", BODY, compute_signature(BODY, "secret"), "secret") is True


def test_instagram_signature_uses_prefixed_hex() -> None:
    signature = compute_instagram_signature(BODY, "app-secret")
    assert signature == "sha256=" + hmac.new(b"app-secret", BODY, hashlib.sha256).hexdigest()

    assert verify_instagram_signature(BODY, signature, "app-secret") is True
    assert verify_instagram_signature(BODY, signature.removeprefix("sha256="), "app-secret") is False
    assert verify_instagram_signature(BODY, None, None) is True


def test_duplicate_detection_within_window() -> None:
    assert is_duplicate("evt-1", "LINE") is False
    assert is_duplicate("evt-1", "LINE") is True
    assert is_duplicate("evt-1", "INSTAGRAM") is False

    forget("evt-1", "LINE")
    assert is_duplicate("evt-1", "LINE") is False


def test_timestamp_window() -> None:
    now_ms = 1_700_000_000_000
    assert is_timestamp_valid(now_ms - 299_000, 300, now_ms=now_ms) is True
    assert is_timestamp_valid(now_ms - 301_000, 300, now_ms=now_ms) is False
    assert is_timestamp_valid(now_ms + 301_000, 300, now_ms=now_ms) is False


def test_delivery_id_prefers_event_ids() -> None:
    assert delivery_id({"eventId": "naver-1"}, b"", "event_id", "eventId") == "naver-1"
    assert delivery_id({}, BODY, "event_id") == hashlib.sha256(BODY).hexdigest()
    assert delivery_id({"b": 1, "a": 2}, b"") == delivery_id({"a": 2, "b": 1}, b"")
