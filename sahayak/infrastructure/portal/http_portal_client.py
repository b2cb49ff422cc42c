import logging
from datetime import datetime
from typing import Dict, Optional

import requests

from ...application.ports.application_repo import ApplicationDto
from ...application.ports.portal_client import PortalClient, PortalError, PortalStatus

logger = logging.getLogger(__name__)


class HttpPortalClient(PortalClient):
    def __init__(self, base_urls: Dict[str, str], timeout: float = 10.0, http: Optional[requests.Session] = None):
        self.base_urls = dict(base_urls)
        self.timeout = timeout
        self.http = http or requests.Session()

    def _url(self, portal_name: str, path: str) -> str:
        base = self.base_urls.get(portal_name)
        if not base:
            raise PortalError(f"Portal {portal_name} is not configured")
        return f"{base.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            res = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout:
            raise PortalError(f"Portal request timed out after {self.timeout}s")
        except requests.RequestException as e:
            raise PortalError(f"Portal request failed: {e}")
        if res.status_code >= 400:
            raise PortalError(f"Portal responded {res.status_code}")
        try:
            return res.json()
        except ValueError:
            raise PortalError("Portal returned a non-JSON response")

    def submit(self, portal_name: str, application: ApplicationDto) -> str:
        body = self._request("POST", self._url(portal_name, "/applications"), json={
            "applicationId": application.id,
            "schemeId": application.scheme_id,
            "artisanId": application.artisan_id,
            "formData": application.form_data,
        })
        reference = body.get("governmentApplicationId") or body.get("applicationId")
        if not reference:
            raise PortalError("Portal did not return an application reference")
        return str(reference)

    def fetch_status(self, portal_name: str, portal_reference: str) -> PortalStatus:
        body = self._request("GET", self._url(portal_name, f"/applications/{portal_reference}/status"))
        if not body.get("status"):
            raise PortalError("Portal status response missing status")
        occurred_at = None
        raw_ts = body.get("updatedAt") or body.get("timestamp")
        if raw_ts:
            try:
                occurred_at = datetime.fromisoformat(str(raw_ts).replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Ignoring unparseable portal timestamp {raw_ts!r}")
        return PortalStatus(
            status=str(body["status"]),
            occurred_at=occurred_at,
            event_id=body.get("eventId"),
            note=body.get("message"),
        )
