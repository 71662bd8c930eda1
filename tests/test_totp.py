"""Tests for TOTP computation, drift window and provisioning URIs."""

import base64
from urllib.parse import parse_qs, unquote, urlparse

import pyotp
import pytest

from inventrack.services import codec, totp

# RFC 6238 appendix B, SHA1 seed
RFC_SECRET = b"12345678901234567890"


@pytest.mark.parametrize(
    "unix_time, expected",
    [
        (59, "287082"),
        (1111111109, "081804"),
        (1234567890, "005924"),
        (2000000000, "279037"),
    ],
)
def test_rfc6238_sha1_vectors(unix_time, expected):
    step = totp.current_time_step(lambda: unix_time)
    assert totp.compute_code(RFC_SECRET, step) == expected


def test_published_demo_secret_at_t59():
    secret = codec.decode("JBSWY3DPEHPK3PXP")
    assert totp.compute_code(secret, totp.current_time_step(lambda: 59)) == "996554"


def test_matches_authenticator_apps():
    secret = codec.generate_random_secret()
    app = pyotp.TOTP(codec.encode(secret))
    for t in (59, 1_111_111_109, 1_700_000_000, 1_700_000_029):
        assert totp.compute_code(secret, totp.current_time_step(lambda: t)) == app.at(t)


def test_current_time_step_floors():
    assert totp.current_time_step(lambda: 0) == 0
    assert totp.current_time_step(lambda: 29.999) == 0
    assert totp.current_time_step(lambda: 30) == 1
    assert totp.current_time_step(lambda: 59) == 1


def test_codes_are_six_digits():
    for step in range(50):
        code = totp.compute_code(RFC_SECRET, step)
        assert len(code) == 6
        assert code.isdigit()


def test_verify_accepts_one_step_of_drift():
    t = 1_000
    code = totp.compute_code(RFC_SECRET, t)
    for server_step in (t - 1, t, t + 1):
        assert totp.verify_code(RFC_SECRET, code, lambda: server_step * 30 + 7)


def test_verify_rejects_two_steps_of_drift():
    t = 1_000
    code = totp.compute_code(RFC_SECRET, t)
    for server_step in (t - 2, t + 2):
        assert not totp.verify_code(RFC_SECRET, code, lambda: server_step * 30 + 7)


@pytest.mark.parametrize("candidate", [None, "", "12345", "1234567", "abcdef", "12 345", "28708２"])
def test_verify_returns_false_for_malformed_codes(candidate):
    assert totp.verify_code(RFC_SECRET, candidate, lambda: 59) is False


def test_verify_ignores_surrounding_whitespace():
    assert totp.verify_code(RFC_SECRET, " 287082 ", lambda: 59)


def test_verify_rejects_code_for_other_secret():
    other = b"abcdefghijabcdefghij"
    code = totp.compute_code(other, 1)
    assert code != "287082"
    assert not totp.verify_code(RFC_SECRET, code, lambda: 59)


def test_provisioning_uri():
    uri = totp.build_provisioning_uri("InvenTrackPro", "alice@example.com", "JBSWY3DPEHPK3PXP")
    parsed = urlparse(uri)
    assert parsed.scheme == "otpauth"
    assert parsed.netloc == "totp"
    assert unquote(parsed.path) == "/InvenTrackPro:alice@example.com"
    assert parse_qs(parsed.query) == {"secret": ["JBSWY3DPEHPK3PXP"], "issuer": ["InvenTrackPro"]}


def test_provisioning_uri_is_understood_by_pyotp():
    uri = totp.build_provisioning_uri("InvenTrackPro", "alice@example.com", "JBSWY3DPEHPK3PXP")
    parsed = pyotp.parse_uri(uri)
    assert parsed.secret == "JBSWY3DPEHPK3PXP"
    assert parsed.issuer == "InvenTrackPro"
    assert parsed.name == "alice@example.com"


def test_qr_data_url_is_png():
    url = totp.render_qr_data_url("otpauth://totp/InvenTrackPro:a?secret=JBSWY3DPEHPK3PXP&issuer=InvenTrackPro")
    prefix = "data:image/png;base64,"
    assert url.startswith(prefix)
    assert base64.b64decode(url[len(prefix):]).startswith(b"\x89PNG")
