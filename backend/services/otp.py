# backend/services/otp.py
import enum
import logging
import secrets
import string

from utils.cache import TTLCache

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_letters + string.digits


class OtpResult(str, enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


def generate(length: int = 6) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


class OtpGate:
    """
    Single-use checkout codes, one per user, kept in the injected cache.

    Verify attempts are not rate limited; a code can be guessed at until it expires.
    """

    def __init__(self, cache: TTLCache, ttl_seconds: int = 300, length: int = 6):
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.length = length

    @staticmethod
    def key(user_id: int) -> str:
        return f"otp:user:{user_id}"

    def generate(self) -> str:
        return generate(self.length)

    def store(self, user_id: int, code: str) -> None:
        # Replaces any code still pending for this user
        self.cache.put(self.key(user_id), code, self.ttl_seconds)

    def issue(self, user_id: int) -> str:
        # Codes nobody verified would otherwise stay in memory
        self.cache.purge_expired()
        code = self.generate()
        self.store(user_id, code)
        logger.info("OTP issued for user_id=%s (valid %ss)", user_id, self.ttl_seconds)
        return code

    def verify(self, user_id: int, submitted: str) -> OtpResult:
        submitted = (submitted or "").strip()
        present, taken = self.cache.take_if(
            self.key(user_id), lambda code: secrets.compare_digest(code.encode(), submitted.encode())
        )
        if not present:
            return OtpResult.EXPIRED
        if not taken:
            logger.warning("Invalid OTP submitted for user_id=%s", user_id)
            return OtpResult.INVALID
        return OtpResult.VALID

    def delete(self, user_id: int) -> None:
        self.cache.delete(self.key(user_id))

    def has_pending(self, user_id: int) -> bool:
        return self.key(user_id) in self.cache
