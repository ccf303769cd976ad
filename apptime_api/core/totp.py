"""Time-based one-time codes for delegated data access.

HOTP dynamic truncation (RFC 4226) over a time counter (RFC 6238) with a
60-second step instead of the usual 30. Codes are 6 digits, derived with
HMAC-SHA1 from a 160-bit secret stored as unpadded RFC 4648 Base32.

The counter encoding, truncation and modulus are shared with the mobile
client that computes the same codes independently, so none of them may
change without a coordinated client release.

No I/O and no state: every function takes the instant it should use.
"""

import base64
import binascii
import hashlib
import hmac
import secrets
from datetime import UTC, datetime

TIME_STEP_SECONDS = 60
DIGITS = 6
SECRET_BYTES = 20  # 160 bits
DEFAULT_TOLERANCE_WINDOWS = 1
BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

_MODULUS = 10**DIGITS


class InvalidSecretError(ValueError):
    """The secret is not valid Base32 text."""


def base32_encode(raw: bytes) -> str:
    """Encode bytes as unpadded RFC 4648 Base32."""
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def base32_decode(text: str) -> bytes:
    """Decode Base32 text, tolerating whitespace, lowercase and missing padding.

    Raises:
        InvalidSecretError: If the text is empty, contains a character outside
            the Base32 alphabet, or has a length no Base32 encoding produces.
    """
    normalized = "".join(text.split()).replace("=", "").upper()
    if not normalized:
        raise InvalidSecretError("Secret is empty")

    padded = normalized + "=" * (-len(normalized) % 8)
    try:
        return base64.b32decode(padded)
    except (binascii.Error, ValueError) as e:
        raise InvalidSecretError("Secret is not valid Base32") from e


def generate_secret() -> str:
    """Create a new shared secret for an identity.

    Called once, when the account is created.

    Returns:
        32-character Base32 string encoding 160 random bits.
    """
    return base32_encode(secrets.token_bytes(SECRET_BYTES))


def _unix_seconds(now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return int(now.timestamp())


def time_counter(now: datetime) -> int:
    """Return the 60-second bucket number containing ``now``."""
    return _unix_seconds(now) // TIME_STEP_SECONDS


def _code_for_counter(key: bytes, counter: int) -> str:
    digest = hmac.new(key, counter.to_bytes(8, "big"), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    binary = int.from_bytes(digest[offset : offset + 4], "big") & 0x7FFFFFFF
    return str(binary % _MODULUS).zfill(DIGITS)


def generate_code(secret: str, now: datetime) -> str:
    """Derive the code for ``secret`` in the time step containing ``now``.

    Args:
        secret: Base32-encoded shared secret.
        now: Instant to derive the code for. Naive values are read as UTC.

    Returns:
        Exactly DIGITS decimal characters, zero-padded.

    Raises:
        InvalidSecretError: If the secret cannot be decoded.
    """
    return _code_for_counter(base32_decode(secret), time_counter(now))


def validate_code(
    secret: str,
    submitted_code: str,
    now: datetime,
    tolerance_windows: int = DEFAULT_TOLERANCE_WINDOWS,
) -> bool:
    """Check a submitted code against every step within the tolerance.

    With the default tolerance of 1, the previous, current and next steps
    are accepted (up to 60 seconds of clock skew either way).

    Never raises: malformed codes and undecodable secrets return False.
    """
    if not isinstance(submitted_code, str) or not isinstance(secret, str):
        return False

    code = submitted_code.strip()
    if len(code) != DIGITS or not (code.isascii() and code.isdigit()):
        return False

    try:
        key = base32_decode(secret)
    except InvalidSecretError:
        return False

    current = time_counter(now)
    matched = False
    for counter in range(current - tolerance_windows, current + tolerance_windows + 1):
        if counter < 0:
            continue
        # Check every window so timing doesn't reveal which one matched
        if hmac.compare_digest(_code_for_counter(key, counter), code):
            matched = True
    return matched


def remaining_seconds(now: datetime) -> int:
    """Seconds until the current step ends, in [1, 60]."""
    return TIME_STEP_SECONDS - (_unix_seconds(now) % TIME_STEP_SECONDS)


def step_expires_at(now: datetime) -> datetime:
    """Instant at which the step containing ``now`` ends."""
    return datetime.fromtimestamp(
        (time_counter(now) + 1) * TIME_STEP_SECONDS,
        tz=UTC,
    )
