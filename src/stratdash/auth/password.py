"""Password hashing utilities.

Learn: Uses scrypt, a memory-hard KDF: each guess costs ~16 MB of RAM,
which makes GPU/ASIC brute force of a leaked table expensive.

Digest format: "<hex derived key>.<hex salt>"
- salt: 16 random bytes, hex encoded (the hex string itself is the KDF salt)
- key:  64 bytes

Comparison uses hmac.compare_digest so the time taken doesn't reveal
how many leading bytes of a guess matched.
"""

import hashlib
import hmac
import secrets

SALT_BYTES = 16
KEY_LENGTH = 64

# scrypt cost parameters (N=2^14, r=8, p=1 → 16 MiB per derivation)
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1


def _derive(password: str, salt_hex: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt_hex.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=KEY_LENGTH,
    )


def hash_password(password: str) -> str:
    """Hash a password with a fresh random salt.

    Two calls with the same password never return the same digest.
    """
    salt_hex = secrets.token_hex(SALT_BYTES)
    return f"{_derive(password, salt_hex).hex()}.{salt_hex}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a stored "<key>.<salt>" digest.

    Returns False for a wrong password or a malformed digest; never raises.
    """
    try:
        hashed, salt_hex = password_hash.split(".", 1)
        expected = bytes.fromhex(hashed)
    except (ValueError, AttributeError):
        return False
    if not salt_hex or len(expected) != KEY_LENGTH:
        return False
    supplied = _derive(password, salt_hex)
    return hmac.compare_digest(expected, supplied)
