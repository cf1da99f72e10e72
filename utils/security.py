"""Security helpers for headers, redirects, phone validation, and locally issued tokens."""
import re
import secrets
import time
from urllib.parse import urljoin, urlparse

from flask import request
from wtforms.validators import ValidationError

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")


def apply_security_headers(response, force_https: bool = False):
    """Apply security headers; geolocation stays enabled for complaint intake."""
    csp = (
        "default-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: blob: https://*; "
        "connect-src 'self'; "
        "frame-ancestors 'self';"
    )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    # Allow geolocation while keeping other sensors disabled
    response.headers.setdefault("Permissions-Policy", "geolocation=(self), microphone=(), camera=()")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response


def is_safe_redirect_url(target: str) -> bool:
    """Validate redirect targets to prevent open redirect attacks."""
    if not target:
        return False
    ref_url = urlparse(request.host_url)
    test_url = urlparse(urljoin(request.host_url, target))
    return test_url.scheme in ("http", "https") and ref_url.netloc == test_url.netloc


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_admin_token() -> str:
    """Opaque admin session token: `admin_` + random base36 + millisecond timestamp base36."""
    return "admin_" + to_base36(secrets.randbits(52)) + to_base36(int(time.time() * 1000))


def normalize_phone(value: str | None) -> str:
    """Keep digits only."""
    return re.sub(r"\D", "", value or "")


def phone_error(value: str | None, required: bool = True) -> str | None:
    """Return the validation message for an Indian mobile number, or None when valid."""
    digits = normalize_phone(value)
    if not digits:
        return "Phone number is required" if required else None
    if len(digits) != 10:
        return "Phone number must be exactly 10 digits"
    if not _PHONE_PATTERN.match(digits):
        return "Phone number must start with 6, 7, 8, or 9"
    return None


class PhoneNumber:
    """WTForms validator for Indian mobile numbers; replaces the field data with its digits."""

    def __init__(self, required: bool = True) -> None:
        self.required = required

    def __call__(self, form, field) -> None:
        field.data = normalize_phone(field.data)
        message = phone_error(field.data, required=self.required)
        if message:
            raise ValidationError(message)
