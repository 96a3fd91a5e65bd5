"""
HTTP client for an external record-linkage service.

The service answers GET {base_url}/datasets/{dataset_id}/linkage with
{"ratio": 0.73} or {"ratio": null} when linkage was never measured.
"""

from typing import Optional

import requests

from dataset_analyzer.exceptions import ServiceUnavailableError


class HttpLinkageService:
    """LinkageService backed by a REST endpoint."""

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def linkage_ratio(self, dataset_id: str) -> Optional[float]:
        url = f"{self.base_url}/datasets/{dataset_id}/linkage"
        try:
            response = self.session.get(url, timeout=self.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ServiceUnavailableError(f"Linkage service error for {dataset_id}: {e}") from e

        ratio = payload.get("ratio") if isinstance(payload, dict) else None
        if ratio is None:
            return None
        try:
            ratio = float(ratio)
        except (TypeError, ValueError):
            raise ServiceUnavailableError(f"Linkage service returned a bad ratio: {ratio!r}")
        return min(1.0, max(0.0, ratio))
