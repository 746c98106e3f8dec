"""Catalog import job tracking endpoints."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.api.dependencies.db import get_session
from storefront.api.routers.job_helpers import serialize_job
from storefront.api.schemas.job import JobStatus
from storefront.db.models.import_job import JOB_KINDS, ImportJob
from storefront.db.session import SessionLocal
from storefront.services.progress_tracker import fetch_progress

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_INTERVAL_SECONDS = 5
# Give up on a stalled job after five minutes without progress.
STREAM_MAX_IDLE_POLLS = 60
FINAL_STATUSES = ("completed", "failed")


@router.get(
    "",
    summary="List catalog import jobs",
    response_model=list[JobStatus],
)
async def list_jobs(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs to return"),
    job_status: str | None = Query(
        None, alias="status", description="pending, running, completed or failed"
    ),
    kind: str | None = Query(None, description="products, brands, categories or odoo"),
    db: Session = Depends(get_session),
) -> list[JobStatus]:
    """Newest first, each merged with its latest Redis progress snapshot."""
    if kind is not None and kind not in JOB_KINDS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown job kind '{kind}'",
        )

    query = select(ImportJob)
    if job_status:
        query = query.where(ImportJob.status == job_status)
    if kind:
        query = query.where(ImportJob.kind == kind)
    query = query.order_by(ImportJob.created_at.desc()).limit(limit)

    try:
        jobs = db.scalars(query).all()
    except SQLAlchemyError as e:
        logger.error(f"Database error listing jobs: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve jobs",
        ) from e

    return [serialize_job(job, fetch_progress(job.id)) for job in jobs]


@router.get(
    "/{job_id}",
    summary="Fetch job metadata and latest progress",
    response_model=JobStatus,
)
async def get_job(
    job_id: str,
    db: Session = Depends(get_session),
) -> JobStatus:
    job = db.get(ImportJob, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return serialize_job(job, fetch_progress(job_id))


@router.get(
    "/{job_id}/stream",
    summary="Server-Sent Events stream for real-time progress",
)
async def stream_job_progress(
    job_id: str,
    db: Session = Depends(get_session),
) -> StreamingResponse:
    """Stream job progress as SSE ``data:`` events until the job finishes.

    Ends with ``event: close`` on completion or failure, or ``event: timeout``
    when progress stops moving.
    """
    if not db.get(ImportJob, job_id):
        raise HTTPException(status_code=404, detail="Job not found")

    async def event_generator() -> AsyncGenerator[str, None]:
        last_progress = -1.0
        idle_polls = 0
        # The request session is closed once the endpoint returns.
        session = SessionLocal()
        try:
            while True:
                session.expire_all()
                job = session.get(ImportJob, job_id)
                if not job:
                    yield 'event: error\ndata: {"error": "Job not found"}\n\n'
                    break

                job_status = serialize_job(job, fetch_progress(job_id))
                current_progress = job_status.progress or 0.0
                if abs(current_progress - last_progress) > 0.001:
                    last_progress = current_progress
                    idle_polls = 0
                else:
                    idle_polls += 1

                yield f"data: {job_status.model_dump_json()}\n\n"

                if job_status.status in FINAL_STATUSES:
                    yield "event: close\ndata: {}\n\n"
                    break
                if idle_polls > STREAM_MAX_IDLE_POLLS:
                    yield "event: timeout\ndata: {}\n\n"
                    break

                await asyncio.sleep(STREAM_INTERVAL_SECONDS)
        finally:
            session.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
