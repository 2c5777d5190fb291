import json
from typing import Any, Dict, Optional

import requests
from requests.auth import HTTPBasicAuth

from .models import WebDavConfig

DEFAULT_BACKUP_FILENAME = "cloudnav_backup.json"
USER_AGENT = "CloudNav/1.0"
OPERATIONS = {"check", "upload", "download"}


class InvalidOperation(ValueError):
    pass


def base_url(config: WebDavConfig) -> str:
    url = (config.url or "").strip()
    if not url.endswith("/"):
        url += "/"
    return url


def perform_operation(
    operation: str,
    config: WebDavConfig,
    payload: Any = None,
    filename: Optional[str] = None,
    timeout: float = 15.0,
) -> requests.Response:
    """
    Run one WebDAV call against the configured server.

    - check: PROPFIND on the collection (Depth 0)
    - upload: PUT ``payload`` as JSON to the backup file
    - download: GET the backup file
    """
    if operation not in OPERATIONS:
        raise InvalidOperation(operation)

    base = base_url(config)
    file_url = base + (filename or DEFAULT_BACKUP_FILENAME)
    headers: Dict[str, str] = {"User-Agent": USER_AGENT}
    body = None

    if operation == "check":
        method, url = "PROPFIND", base
        headers["Depth"] = "0"
    elif operation == "upload":
        method, url = "PUT", file_url
        headers["Content-Type"] = "application/json"
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    else:
        method, url = "GET", file_url

    return requests.request(
        method,
        url,
        headers=headers,
        data=body,
        auth=HTTPBasicAuth(config.username, config.password),
        timeout=timeout,
    )
