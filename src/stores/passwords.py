# password digest strategies
import hashlib
import hmac
import secrets
from typing import Protocol

from utils.config import HasherKind
from utils.pure import to_base36


class PasswordHasher(Protocol):
    def digest(self, password: str) -> str: ...

    def verify(self, password: str, stored_digest: str) -> bool: ...


class DemoHasher:
    """
    Fast deterministic 32-bit string hash, compatible with digests already stored by the
    web storefront. NOT a password hash: anyone holding the digest can
    brute-force it instantly. Kept for demo deployments and stored-data compat.
    """

    def digest(self, password: str) -> str:
        h = 0
        raw = password.encode("utf-16-le", "surrogatepass")
        # iterate UTF-16 code units, like String.charCodeAt
        for i in range(0, len(raw), 2):
            unit = raw[i] | (raw[i + 1] << 8)
            h = ((h << 5) - h + unit) & 0xFFFFFFFF
        if h >= 0x80000000:
            h -= 0x100000000
        return to_base36(h)

    def verify(self, password: str, stored_digest: str) -> bool:
        return self.digest(password) == stored_digest


class Pbkdf2Hasher:
    """Salted PBKDF2-HMAC-SHA256, stored as pbkdf2_sha256$<iterations>$<salt>$<hex>."""

    algorithm = "pbkdf2_sha256"

    def __init__(self, iterations: int = 240_000):
        self.iterations = iterations

    def _derive(self, password: str, salt: str, iterations: int) -> str:
        return hashlib.pbkdf2_hmac(
            "sha256", password.encode(), salt.encode(), iterations
        ).hex()

    def digest(self, password: str) -> str:
        salt = secrets.token_hex(16)
        derived = self._derive(password, salt, self.iterations)
        return f"{self.algorithm}${self.iterations}${salt}${derived}"

    def verify(self, password: str, stored_digest: str) -> bool:
        parts = stored_digest.split("$")
        if len(parts) != 4 or parts[0] != self.algorithm or not parts[1].isdigit():
            return False
        _, iterations, salt, expected = parts
        return hmac.compare_digest(self._derive(password, salt, int(iterations)), expected)


def make_hasher(kind: HasherKind) -> PasswordHasher:
    if kind == HasherKind.PBKDF2:
        return Pbkdf2Hasher()
    return DemoHasher()
