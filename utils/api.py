# utils/api.py
from __future__ import annotations

import logging
import os
import random
import time
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests

# --- Tunables ---------------------------------------------------------------
DEFAULT_TIMEOUT: tuple[float, float] = (5, 30)  # (connect, read) seconds
USER_AGENT = "CartridgeExport/1.0 (+https://example.org)"
MAX_ATTEMPTS = 4

# Allow overrides via env (e.g., CC_EXPORT_HTTP_TIMEOUT="10,300")
_to = os.getenv("CC_EXPORT_HTTP_TIMEOUT")
if _to:
    _parts = [p.strip() for p in _to.split(",")]
    if len(_parts) == 2 and all(p.replace(".", "", 1).isdigit() for p in _parts):
        DEFAULT_TIMEOUT = (float(_parts[0]), float(_parts[1]))

log = logging.getLogger(__name__)


class ServiceAPI:
    """
    Thin JSON client for an external content service (e.g. a third-party tool
    that exports its own content for inclusion in a cartridge).
    Retries 429 / 5xx / connection errors with jittered exponential backoff.
    """

    def __init__(self, base_url: str | None, token: str | None) -> None:
        if not base_url or not token:
            raise ValueError("ServiceAPI base_url and token are required")

        self.base_url = base_url.rstrip("/") + "/"
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        })

    def _full_url(self, endpoint: str) -> str:
        ep = (endpoint or "").strip()
        if ep.startswith(("http://", "https://")):
            return ep
        return urljoin(self.base_url, ep.lstrip("/"))

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        delay = 1.0
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                resp = self.session.request(method, url, timeout=DEFAULT_TIMEOUT, **kwargs)

                if resp.status_code == 429 and attempt < MAX_ATTEMPTS:
                    retry_after = float(resp.headers.get("Retry-After", delay))
                    wait_time = retry_after + random.uniform(0, 0.25 * retry_after)
                    log.warning(
                        "Rate limited: 429 received. Retrying after %.2fs (attempt %s/%s)",
                        wait_time, attempt, MAX_ATTEMPTS,
                        extra={"url": url, "retry_after": retry_after},
                    )
                    time.sleep(wait_time)
                    continue

                resp.raise_for_status()
                return resp

            except requests.HTTPError as e:
                status = getattr(e.response, "status_code", None)
                if status and status >= 500 and attempt < MAX_ATTEMPTS:
                    wait_time = delay + random.uniform(0, 0.25 * delay)
                    log.warning(
                        "Server error %s. Retrying after %.2fs (attempt %s/%s)",
                        status, wait_time, attempt, MAX_ATTEMPTS,
                        extra={"url": url},
                    )
                    time.sleep(wait_time)
                    delay *= 2
                    continue
                raise

            except (requests.ConnectionError, requests.Timeout):
                if attempt < MAX_ATTEMPTS:
                    wait_time = delay + random.uniform(0, 0.25 * delay)
                    log.warning(
                        "Connection/timeout error. Retrying after %.2fs (attempt %s/%s)",
                        wait_time, attempt, MAX_ATTEMPTS,
                        extra={"url": url},
                    )
                    time.sleep(wait_time)
                    delay *= 2
                    continue
                raise
        raise requests.HTTPError(f"no response after {MAX_ATTEMPTS} attempts: {url}")

    def get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        r = self._request("GET", self._full_url(endpoint), params=params)
        return self._json_or_empty(r)

    def post_json(self, endpoint: str, *, payload: Dict[str, Any]) -> Any:
        r = self._request("POST", self._full_url(endpoint), json=payload)
        return self._json_or_empty(r)

    @staticmethod
    def _json_or_empty(resp: requests.Response) -> Any:
        """
        Parsed JSON body; {} for 204, empty bodies and non-JSON payloads.
        """
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            log.warning("non-JSON response body", extra={"url": resp.url, "status": resp.status_code})
            return {}


__all__ = ["ServiceAPI", "DEFAULT_TIMEOUT", "USER_AGENT", "MAX_ATTEMPTS"]
