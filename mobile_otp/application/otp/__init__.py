# OTP building blocks (re-export for stable imports)
from .phone import normalize_mobile, mask_mobile, NATIONAL_NUMBER_LENGTH
from .codes import generate_code, SecretHasher

__all__ = [
    "normalize_mobile",
    "mask_mobile",
    "NATIONAL_NUMBER_LENGTH",
    "generate_code",
    "SecretHasher",
]
