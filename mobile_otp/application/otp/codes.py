import hashlib
import hmac
import secrets

DIGITS = "0123456789"


def generate_code(length: int = 6) -> str:
    """Generate a numeric one-time code from the OS CSPRNG.

    Each position is drawn independently, so leading zeros are as likely as
    any other digit.
    """
    if length < 1:
        raise ValueError("OTP length must be positive")
    return "".join(DIGITS[secrets.randbelow(len(DIGITS))] for _ in range(length))


class SecretHasher:
    """Keyed one-way hash for stored codes.

    HMAC-SHA256 over ``<salt>:<code>`` with a server-side key. The record id is
    used as salt, so identical codes on two records never share a hash.
    """

    def __init__(self, key: str):
        if not key:
            raise ValueError("OTP hash key must not be empty")
        self._key = key.encode()

    def hash(self, code: str, salt: str = "") -> str:
        message = f"{salt}:{code}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def matches(self, code: str, salt: str, expected_hash: str) -> bool:
        return hmac.compare_digest(self.hash(code, salt), expected_hash)
