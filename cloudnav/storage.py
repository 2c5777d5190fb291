import json
import time
from typing import Any, Dict, Optional

from .kv import KVStore
from .models import DEFAULT_PASSWORD_EXPIRY_DAYS, AppData

APP_DATA_KEY = "app_data"
LAST_AUTH_TIME_KEY = "last_auth_time"
CONFIG_KEYS = {
    "ai": "ai_config",
    "search": "search_config",
    "website": "website_config",
}
FAVICON_TTL_SECONDS = 30 * 24 * 60 * 60


def now_ms() -> int:
    return int(time.time() * 1000)


def favicon_key(domain: str) -> str:
    return f"favicon:{domain}"


def load_raw_app_data(kv: KVStore) -> Optional[str]:
    return kv.get(APP_DATA_KEY)


def load_app_data(kv: KVStore) -> AppData:
    raw = kv.get(APP_DATA_KEY)
    if not raw:
        return AppData()
    return AppData.model_validate(json.loads(raw))


def save_app_data(kv: KVStore, data: AppData):
    kv.put(
        APP_DATA_KEY,
        json.dumps(data.model_dump(mode="json"), ensure_ascii=False),
    )


def save_raw_app_data(kv: KVStore, body: Dict[str, Any]):
    kv.put(APP_DATA_KEY, json.dumps(body, ensure_ascii=False))


def load_config(kv: KVStore, name: str) -> Optional[str]:
    """Stored config blob for ``name`` (ai, search, website) as a JSON string."""
    return kv.get(CONFIG_KEYS[name])


def save_config(kv: KVStore, name: str, config: Any):
    kv.put(CONFIG_KEYS[name], json.dumps(config, ensure_ascii=False))


def password_expiry_days(kv: KVStore) -> int:
    raw = load_config(kv, "website")
    if not raw:
        return DEFAULT_PASSWORD_EXPIRY_DAYS
    try:
        config = json.loads(raw)
    except ValueError:
        return DEFAULT_PASSWORD_EXPIRY_DAYS
    days = config.get("passwordExpiryDays") if isinstance(config, dict) else None
    if days is None:
        return DEFAULT_PASSWORD_EXPIRY_DAYS
    try:
        return int(days)
    except (TypeError, ValueError):
        return DEFAULT_PASSWORD_EXPIRY_DAYS


def load_last_auth_time(kv: KVStore) -> Optional[int]:
    raw = kv.get(LAST_AUTH_TIME_KEY)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def touch_last_auth_time(kv: KVStore):
    kv.put(LAST_AUTH_TIME_KEY, str(now_ms()))


def load_favicon(kv: KVStore, domain: str) -> Optional[str]:
    return kv.get(favicon_key(domain))


def save_favicon(kv: KVStore, domain: str, icon: str):
    kv.put(favicon_key(domain), icon, ttl=FAVICON_TTL_SECONDS)
