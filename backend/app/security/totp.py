# backend/app/security/totp.py
"""
Authenticator-app second factor for account sign-in.

Secrets are pyotp Base32 strings. Codes use the pyotp defaults (six digits,
30 second step) and are accepted within TOTP_VALID_WINDOW steps of the
server clock.
"""
import base64
import io

import pyotp
import qrcode

from backend.app.core.config import settings


def generate_totp_secret() -> str:
    """Fresh secret for a pending MFA enrollment."""
    return pyotp.random_base32()


def format_secret(secret: str) -> str:
    """Split the secret into groups of four for manual entry."""
    return " ".join(secret[i:i + 4] for i in range(0, len(secret), 4))


def get_totp_uri(secret: str, account_name: str, issuer: str | None = None) -> str:
    """
    Generate the otpauth:// URI for QR code encoding.

    Format: otpauth://totp/{issuer}:{account_name}?secret={secret}&issuer={issuer}
    """
    totp = pyotp.TOTP(secret)
    return totp.provisioning_uri(name=account_name, issuer_name=issuer or settings.TOTP_ISSUER)


def generate_qr_code_data_uri(uri: str) -> str:
    """
    Render the provisioning URI as a PNG QR code.

    Returns a data URI the frontend can use directly as an <img> source.
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("utf-8")


def normalize_code(code: str) -> str:
    return (code or "").strip().replace(" ", "").replace("-", "")


def verify_totp(secret: str, code: str) -> bool:
    """Check ``code`` against ``secret``. Spaces and dashes in the code are ignored."""
    if not secret or not code:
        return False

    code = normalize_code(code)
    if len(code) != 6 or not code.isdigit():
        return False

    totp = pyotp.TOTP(secret)
    return totp.verify(code, valid_window=settings.TOTP_VALID_WINDOW)


def get_current_totp(secret: str) -> str:
    """Code an authenticator would display for ``secret`` right now."""
    return pyotp.TOTP(secret).now()
