import hmac
from typing import Optional

from .kv import KVStore
from .storage import load_last_auth_time, now_ms, password_expiry_days

PASSWORD_HEADER = "x-auth-password"
DAY_MS = 24 * 60 * 60 * 1000


def password_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def password_expired(kv: KVStore, now: Optional[int] = None) -> bool:
    """
    True when the last successful login is older than the website's
    ``passwordExpiryDays``. An expiry of 0 (or less) never expires, and
    a store that has never seen a login is not expired.
    """
    days = password_expiry_days(kv)
    if days <= 0:
        return False
    last = load_last_auth_time(kv)
    if last is None:
        return False
    if now is None:
        now = now_ms()
    return now - last > days * DAY_MS
