"""Time-based one-time passwords (RFC 6238: HMAC-SHA1, 30s step, 6 digits).

The ±1 step window absorbs ~30s of client clock drift but means a code stays
acceptable for ~90s. No "last accepted step" is recorded per user, so a code
can be replayed inside that window.
"""

import base64
import io
import time

import pyotp
import qrcode
from pyotp.utils import strings_equal

from inventrack.services import codec
from inventrack.utils.clock import Clock

TIME_STEP_SECONDS = 30
DIGITS = 6
DRIFT_STEPS = 1


def current_time_step(clock: Clock = time.time) -> int:
    return int(clock() // TIME_STEP_SECONDS)


def compute_code(secret: bytes, time_step: int) -> str:
    """HOTP value for ``time_step``, zero-padded to 6 digits."""
    return pyotp.HOTP(codec.encode(secret), digits=DIGITS).at(time_step)


def verify_code(secret: bytes, candidate: str | None, clock: Clock = time.time) -> bool:
    """Accept codes from the current step or one step either side."""
    if not isinstance(candidate, str):
        return False
    candidate = candidate.strip()
    if len(candidate) != DIGITS or not (candidate.isascii() and candidate.isdigit()):
        return False

    step = current_time_step(clock)
    matched = False
    # Always compare all three windows
    for offset in range(-DRIFT_STEPS, DRIFT_STEPS + 1):
        if step + offset < 0:
            continue
        if strings_equal(compute_code(secret, step + offset), candidate):
            matched = True
    return matched


def build_provisioning_uri(issuer: str, account: str, encoded_secret: str) -> str:
    """otpauth://totp/{issuer}:{account}?secret={secret}&issuer={issuer}"""
    return pyotp.TOTP(encoded_secret, digits=DIGITS, interval=TIME_STEP_SECONDS).provisioning_uri(
        name=account,
        issuer_name=issuer,
    )


def render_qr_data_url(uri: str) -> str:
    """PNG QR code for ``uri`` as a data URL the dashboard can drop into <img>."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_Q, box_size=10, border=2)
    qr.add_data(uri)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
