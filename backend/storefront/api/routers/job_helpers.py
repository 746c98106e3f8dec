"""Shape catalog import jobs for the uploads and jobs endpoints."""
from __future__ import annotations

from storefront.api.schemas.job import JobStatus
from storefront.db.models.import_job import ImportJob

# Odoo syncs have no row count up front; the worker reports them by phase.
ROWLESS_KINDS = ("odoo",)


def _default_message(job: ImportJob) -> str:
    if job.kind in ROWLESS_KINDS:
        return f"Odoo sync {job.status}"
    if not job.total_rows:
        return f"{job.kind.capitalize()} import {job.status}"
    return f"Imported {job.processed_rows}/{job.total_rows} {job.kind} rows"


def serialize_job(job: ImportJob, progress_payload: dict | None) -> JobStatus:
    """Merge the job row with its latest Redis snapshot; the snapshot wins."""
    snapshot = progress_payload or {}

    progress = snapshot.get("progress")
    if progress is None and job.total_rows:
        progress = job.processed_rows / job.total_rows
    if progress is None and job.status == "completed":
        progress = 1.0

    return JobStatus(
        id=job.id,
        type=job.kind,
        status=snapshot.get("status") or job.status,
        progress=progress,
        message=snapshot.get("message") or _default_message(job),
        total_rows=job.total_rows,
        processed_rows=job.processed_rows,
        error_message=job.error_message,
        started_at=job.started_at or job.created_at,
        finished_at=job.finished_at,
        meta=snapshot.get("meta") or job.meta or {},
    )
