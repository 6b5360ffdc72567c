import base64
import re
import secrets

TOKEN_BYTES = 96
TOKEN_LENGTH = 128

_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def generate_secure_token() -> str:
    """Return a fresh URL-safe magic link token.

    96 bytes from the OS CSPRNG, base64-encoded with ``-``/``_`` in place of
    ``+``/``/`` and padding stripped, which yields 128 characters. Any failure
    of the entropy source propagates.
    """
    raw = secrets.token_bytes(TOKEN_BYTES)
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def is_well_formed_token(token: object) -> bool:
    return isinstance(token, str) and len(token) == TOKEN_LENGTH and bool(_TOKEN_RE.match(token))
