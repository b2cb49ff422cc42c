import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from ..ports.application_repo import ApplicationRepository, ApplicationDto, TimelineEntryDto
from ..ports.portal_client import PortalClient, PortalError
from ..ports.signature_verifier import SignatureVerifier, canonical_body
from ...exceptions import ValidationFailed, NotFound, InvalidSignature
from ...utils import utcnow, as_utc

logger = logging.getLogger(__name__)

STATUS_RANK = {
    "submitted": 0,
    "under_review": 1,
    "approved": 2,
    "rejected": 2,
    "disbursed": 3,
    "closed": 3,
}

_PROGRESS = {0: 25, 1: 50, 2: 75, 3: 100}

STAGE_NAMES = {
    "submitted": "Document Verification",
    "under_review": "Under Review",
    "approved": "Approved",
    "rejected": "Rejected",
    "disbursed": "Disbursed",
    "closed": "Closed",
}

NEXT_ACTIONS = {
    "submitted": ["Wait for document verification", "Check status regularly"],
    "under_review": ["Application is under review", "Be ready to provide additional information if requested"],
    "approved": ["Congratulations! Your application has been approved", "Follow the disbursement process"],
    "rejected": ["Review rejection reasons", "Consider reapplying after addressing issues"],
    "disbursed": ["Funds have been disbursed to your account", "Keep the sanction letter for your records"],
    "closed": ["This application is closed"],
}

_STATUS_ALIASES = {
    "submitted": "submitted",
    "underreview": "under_review",
    "inreview": "under_review",
    "approved": "approved",
    "rejected": "rejected",
    "disbursed": "disbursed",
    "closed": "closed",
}

# events that carry their own status
EVENT_STATUS = {
    "application.approved": "approved",
    "application.rejected": "rejected",
    "application.disbursed": "disbursed",
    "application.closed": "closed",
}
STATUS_CHANGED_EVENT = "application.status_changed"
ACKNOWLEDGED_EVENTS = ("document.required", "scheme.updated")


def normalize_status(value: Any) -> Optional[str]:
    """Map portal spellings (``UnderReview``, ``under-review``, ...) to a known status."""
    if value is None:
        return None
    return _STATUS_ALIASES.get(re.sub(r"[^a-z]", "", str(value).lower()))


def is_forward(current: str, new: str) -> bool:
    """Progress is by tier; updates may skip tiers when they arrive out of order."""
    if new not in STATUS_RANK or current not in STATUS_RANK:
        return False
    if current == "rejected" and new == "disbursed":
        return False
    return STATUS_RANK[new] > STATUS_RANK[current]


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        raise ValidationFailed(f"Invalid timestamp: {value}")


@dataclass
class ApplicationStatusView:
    application_id: str
    artisan_id: str
    scheme_id: str
    status: str
    progress: int
    current_stage: str
    estimated_completion: datetime
    next_actions: List[str]
    submitted_at: datetime
    updated_at: datetime
    last_synced_at: Optional[datetime]
    portal_reference: Optional[str]
    refreshed: bool = False
    refresh_error: Optional[str] = None


@dataclass
class SyncOutcome:
    application_id: str
    success: bool
    changed: bool = False
    status: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SyncResult:
    artisan_id: str
    last_sync_time: datetime
    next_sync_time: datetime
    results: List[SyncOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def changed(self) -> int:
        return sum(1 for r in self.results if r.success and r.changed)

    @property
    def unchanged(self) -> int:
        return sum(1 for r in self.results if r.success and not r.changed)


@dataclass
class WebhookResult:
    processed: bool
    message: str
    application_id: Optional[str] = None
    status: Optional[str] = None


@dataclass
class ApplicationTracker:
    """Scheme applications, their status timeline, and portal updates.

    Status only moves forward along ``submitted -> under_review ->
    approved|rejected -> disbursed|closed``; stale or repeated updates from a
    portal are dropped without touching the timeline.
    """

    repo: ApplicationRepository
    portal: Optional[PortalClient] = None
    verifier: Optional[SignatureVerifier] = None
    clock: Callable[[], datetime] = utcnow
    refresh_interval: timedelta = field(default_factory=lambda: timedelta(hours=4))
    default_portal: str = "government_portal"
    decision_period: timedelta = field(default_factory=lambda: timedelta(days=30))

    def submit_application(self, artisan_id: Optional[str], scheme_id: Optional[str], form_data: Optional[Dict[str, Any]]) -> ApplicationDto:
        if not artisan_id or not str(artisan_id).strip():
            raise ValidationFailed("artisanId is required")
        if not scheme_id or not str(scheme_id).strip():
            raise ValidationFailed("schemeId is required")
        if not isinstance(form_data, dict) or not form_data:
            raise ValidationFailed("formData is required and cannot be empty")

        now = self.clock()
        app = self.repo.create(
            artisan_id=str(artisan_id).strip(),
            scheme_id=str(scheme_id).strip(),
            form_data=form_data,
            status="submitted",
            submitted_at=now,
        )
        self.repo.add_timeline_entry(app.id, "submitted", now, note="Application submitted")
        logger.info(f"Application {app.id} submitted for scheme {app.scheme_id}")

        if self.portal is not None:
            try:
                reference = self.portal.submit(self.default_portal, app)
                self.repo.set_portal_reference(app.id, self.default_portal, reference)
                self.repo.mark_synced(app.id, now)
                logger.info(f"Application {app.id} registered with {self.default_portal} as {reference}")
            except PortalError as e:
                logger.warning(f"Portal submission failed for {app.id}, tracking locally: {e}")

        return self.repo.get(app.id)

    def track_application(self, application_id: str) -> ApplicationStatusView:
        app = self._get(application_id)
        refreshed = False
        error = None
        if self._needs_refresh(app):
            try:
                self._refresh(app)
                refreshed = True
            except PortalError as e:
                logger.warning(f"Refresh of {app.id} failed, serving last known state: {e}")
                error = str(e)
            app = self._get(application_id)
        return self._status_view(app, refreshed, error)

    def get_application_timeline(self, application_id: str) -> List[TimelineEntryDto]:
        self._get(application_id)
        entries = self.repo.list_timeline(application_id)
        return sorted(entries, key=lambda e: (e.timestamp, e.id))

    def sync_all_applications(self, artisan_id: Optional[str]) -> SyncResult:
        if not artisan_id or not str(artisan_id).strip():
            raise ValidationFailed("artisanId is required")
        now = self.clock()
        result = SyncResult(
            artisan_id=artisan_id,
            last_sync_time=now,
            next_sync_time=now + self.refresh_interval,
        )

        for app in self.repo.list_for_artisan(artisan_id):
            if not self._can_refresh(app):
                result.results.append(SyncOutcome(app.id, success=True, status=app.status))
                continue
            try:
                changed = self._refresh(app)
                current = self.repo.get(app.id)
                result.results.append(SyncOutcome(app.id, success=True, changed=changed, status=current.status if current else app.status))
            except Exception as e:
                logger.warning(f"Failed to sync application {app.id}: {e}")
                result.results.append(SyncOutcome(app.id, success=False, status=app.status, error=str(e)))

        logger.info(f"Sync for artisan {artisan_id}: {result.succeeded} ok, {result.failed} failed, {result.changed} changed")
        return result

    def handle_webhook(self, payload: Any, signature: Optional[str], raw_body: Optional[bytes] = None) -> WebhookResult:
        if not isinstance(payload, dict):
            raise ValidationFailed("Webhook payload must be a JSON object")
        missing = [k for k in ("event", "portalName", "data") if payload.get(k) in (None, "")]
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")
        if not isinstance(payload["data"], dict):
            raise ValidationFailed("data must be an object")

        portal_name = str(payload["portalName"])
        body = raw_body if raw_body is not None else canonical_body(payload)
        if self.verifier is None or not signature or not self.verifier.verify(portal_name, body, signature):
            logger.warning(f"Rejected webhook from {portal_name}: bad signature")
            raise InvalidSignature()

        event = str(payload["event"])
        data = payload["data"]
        logger.info(f"Processing webhook {event} from {portal_name}")

        if event in ACKNOWLEDGED_EVENTS:
            return WebhookResult(processed=True, message=f"Event {event} acknowledged")
        if event != STATUS_CHANGED_EVENT and event not in EVENT_STATUS:
            logger.warning(f"Unhandled webhook event: {event}")
            return WebhookResult(processed=False, message=f"Unhandled event: {event}")

        raw_status = EVENT_STATUS.get(event) or data.get("status")
        new_status = normalize_status(raw_status)
        if new_status is None:
            return WebhookResult(processed=False, message=f"Unrecognized status: {raw_status}")
        occurred_at = parse_timestamp(payload.get("timestamp") or data.get("timestamp")) or self.clock()

        app = self._resolve(data)
        if app is None:
            return WebhookResult(processed=False, message="Application not found")

        event_id = str(data.get("eventId") or payload.get("eventId") or self._event_digest(payload, new_status))
        if not self.repo.record_event(app.id, new_status, event_id, portal_name, event):
            logger.info(f"Duplicate webhook {event_id} for {app.id} ignored")
            return WebhookResult(processed=True, message="Duplicate event ignored", application_id=app.id, status=app.status)

        if self._apply_status(app, new_status, occurred_at, data.get("message"), source="webhook"):
            self.repo.mark_event_applied(app.id, new_status, event_id)
            return WebhookResult(processed=True, message=f"Status updated to {new_status}", application_id=app.id, status=new_status)
        current = self.repo.get(app.id)
        return WebhookResult(processed=True, message="Stale status ignored", application_id=app.id, status=current.status if current else app.status)

    def _get(self, application_id: str) -> ApplicationDto:
        app = self.repo.get(application_id) if application_id else None
        if app is None:
            raise NotFound(f"Application {application_id} not found")
        return app

    def _resolve(self, data: Dict[str, Any]) -> Optional[ApplicationDto]:
        if data.get("applicationId"):
            app = self.repo.get(str(data["applicationId"]))
            if app is not None:
                return app
        if data.get("governmentApplicationId"):
            return self.repo.get_by_portal_reference(str(data["governmentApplicationId"]))
        return None

    def _can_refresh(self, app: ApplicationDto) -> bool:
        return self.portal is not None and bool(app.portal_reference) and STATUS_RANK.get(app.status, 0) < 3

    def _needs_refresh(self, app: ApplicationDto) -> bool:
        if not self._can_refresh(app):
            return False
        return app.last_synced_at is None or self.clock() - app.last_synced_at >= self.refresh_interval

    def _refresh(self, app: ApplicationDto) -> bool:
        remote = self.portal.fetch_status(app.portal_name or self.default_portal, app.portal_reference)
        new_status = normalize_status(remote.status)
        if new_status is None:
            raise PortalError(f"Unrecognized portal status: {remote.status}")
        changed = self._apply_status(app, new_status, as_utc(remote.occurred_at) if remote.occurred_at else self.clock(), remote.note, source="portal")
        self.repo.mark_synced(app.id, self.clock())
        return changed

    def _apply_status(self, app: ApplicationDto, new_status: str, occurred_at: datetime, note: Optional[str], source: str) -> bool:
        current = app.status
        while True:
            if not is_forward(current, new_status):
                logger.info(f"Ignoring {source} status {new_status} for {app.id} (current {current})")
                return False
            if self.repo.advance_status(app.id, current, new_status, self.clock()):
                break
            # lost the compare-and-set; judge the update against the status that won
            latest = self.repo.get(app.id)
            if latest is None:
                return False
            logger.info(f"Status of {app.id} moved to {latest.status} concurrently; re-checking {new_status}")
            current = latest.status
        # keep the timeline in progression order even if the portal clock lags
        entries = self.repo.list_timeline(app.id)
        if entries:
            occurred_at = max(occurred_at, max(e.timestamp for e in entries))
        self.repo.add_timeline_entry(app.id, new_status, occurred_at, note=note, source=source)
        logger.info(f"Application {app.id}: {current} -> {new_status} via {source}")
        return True

    def _status_view(self, app: ApplicationDto, refreshed: bool, error: Optional[str]) -> ApplicationStatusView:
        return ApplicationStatusView(
            application_id=app.id,
            artisan_id=app.artisan_id,
            scheme_id=app.scheme_id,
            status=app.status,
            progress=_PROGRESS[STATUS_RANK.get(app.status, 0)],
            current_stage=STAGE_NAMES.get(app.status, "Unknown"),
            estimated_completion=app.submitted_at + self.decision_period,
            next_actions=list(NEXT_ACTIONS.get(app.status, [])),
            submitted_at=app.submitted_at,
            updated_at=app.updated_at,
            last_synced_at=app.last_synced_at,
            portal_reference=app.portal_reference,
            refreshed=refreshed,
            refresh_error=error,
        )

    @staticmethod
    def _event_digest(payload: Dict[str, Any], status: str) -> str:
        data = payload.get("data") or {}
        basis = {
            "portal": payload.get("portalName"),
            "event": payload.get("event"),
            "application": data.get("applicationId") or data.get("governmentApplicationId"),
            "status": status,
            "timestamp": str(payload.get("timestamp") or data.get("timestamp") or ""),
        }
        return hashlib.sha256(json.dumps(basis, sort_keys=True).encode()).hexdigest()[:32]
