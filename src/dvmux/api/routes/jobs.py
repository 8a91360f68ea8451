"""Conversion job endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends

from dvmux.api.dependencies import get_job_manager
from dvmux.models.errors import ValidationError
from dvmux.models.job import JobRequest
from dvmux.pipeline.manager import JobManager

router = APIRouter(prefix="/api/v1", tags=["jobs"])


@router.post("/jobs", status_code=202)
async def submit_job(
    request: JobRequest,
    background_tasks: BackgroundTasks,
    manager: JobManager = Depends(get_job_manager),
):
    """Validate a conversion request and start it in the background."""
    orchestrator = manager.submit(request)
    background_tasks.add_task(manager.execute, orchestrator.job_id)
    return {
        "job_id": orchestrator.job_id,
        "state": orchestrator.state.value,
        "message": "Conversion started",
    }


@router.get("/jobs")
async def list_jobs(manager: JobManager = Depends(get_job_manager)):
    return [
        {"job_id": s.job_id, "state": s.state.value, "progress": s.progress}
        for s in manager.list_jobs()
    ]


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str,
    manager: JobManager = Depends(get_job_manager),
):
    """Get the status of a job."""
    status = manager.get_status(job_id)
    if not status:
        raise ValidationError(f"Job {job_id} not found")
    return status.model_dump(mode="json")


@router.get("/jobs/{job_id}/events")
async def get_job_events(
    job_id: str,
    since: int = 0,
    manager: JobManager = Depends(get_job_manager),
):
    """Events of a job from sequence number ``since`` onwards."""
    since = max(0, since)
    events = manager.events(job_id, since=since)
    return {
        "job_id": job_id,
        "events": [e.model_dump(mode="json") for e in events],
        "next": since + len(events),
    }


@router.delete("/jobs/{job_id}")
async def cancel_job(
    job_id: str,
    manager: JobManager = Depends(get_job_manager),
):
    """Cancel a pending or running job."""
    cancelled = manager.cancel_job(job_id)
    status = manager.get(job_id).status
    return {"job_id": job_id, "cancelled": cancelled, "state": status.state.value}
