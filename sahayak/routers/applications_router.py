# sahayak/routers/applications_router.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..application.ports.application_repo import ApplicationDto, TimelineEntryDto
from ..application.services.application_tracker import ApplicationTracker, ApplicationStatusView, SyncResult
from ..deps import get_application_tracker
from ..exceptions import create_success_response
from ..schemas.applications import SubmitApplicationRequest

router = APIRouter(prefix="/applications", tags=["Applications"])


def _application(app: ApplicationDto) -> dict:
    return {
        "applicationId": app.id,
        "artisanId": app.artisan_id,
        "schemeId": app.scheme_id,
        "status": app.status,
        "formData": app.form_data,
        "submittedAt": app.submitted_at,
        "governmentApplicationId": app.portal_reference,
        "portalName": app.portal_name,
    }


def _status(view: ApplicationStatusView) -> dict:
    return {
        "applicationId": view.application_id,
        "artisanId": view.artisan_id,
        "schemeId": view.scheme_id,
        "status": view.status,
        "progress": view.progress,
        "currentStage": view.current_stage,
        "estimatedCompletion": view.estimated_completion,
        "nextActions": view.next_actions,
        "submittedAt": view.submitted_at,
        "lastUpdated": view.updated_at,
        "lastSyncedAt": view.last_synced_at,
        "governmentApplicationId": view.portal_reference,
        "refreshed": view.refreshed,
        "refreshError": view.refresh_error,
    }


def _entry(entry: TimelineEntryDto) -> dict:
    return {
        "status": entry.status,
        "timestamp": entry.timestamp,
        "note": entry.note,
        "source": entry.source,
    }


def _sync(result: SyncResult) -> dict:
    return {
        "artisanId": result.artisan_id,
        "total": result.total,
        "succeeded": result.succeeded,
        "failed": result.failed,
        "changed": result.changed,
        "unchanged": result.unchanged,
        "lastSyncTime": result.last_sync_time,
        "nextSyncTime": result.next_sync_time,
        "results": [
            {
                "applicationId": r.application_id,
                "success": r.success,
                "changed": r.changed,
                "status": r.status,
                "error": r.error,
            }
            for r in result.results
        ],
    }


@router.post("", status_code=201)
def submit_application(body: SubmitApplicationRequest, tracker: ApplicationTracker = Depends(get_application_tracker)):
    app = tracker.submit_application(body.artisan_id, body.scheme_id, body.form_data)
    return create_success_response(_application(app))


@router.get("")
def sync_applications(
    artisan_id: Optional[str] = Query(None, alias="artisanId"),
    tracker: ApplicationTracker = Depends(get_application_tracker),
):
    return create_success_response(_sync(tracker.sync_all_applications(artisan_id)))


@router.get("/{application_id}")
def track_application(application_id: str, tracker: ApplicationTracker = Depends(get_application_tracker)):
    return create_success_response(_status(tracker.track_application(application_id)))


@router.get("/{application_id}/timeline")
def application_timeline(application_id: str, tracker: ApplicationTracker = Depends(get_application_tracker)):
    entries = tracker.get_application_timeline(application_id)
    return create_success_response({
        "applicationId": application_id,
        "entries": [_entry(e) for e in entries],
    })
