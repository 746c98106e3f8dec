"""Endpoints that start catalog import jobs."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.api.dependencies.db import get_session
from storefront.api.routers.job_helpers import serialize_job
from storefront.api.schemas.job import JobStatus
from storefront.core.config import Settings, get_settings
from storefront.db.models.import_job import ImportJob
from storefront.services.catalog_import import stage_file
from storefront.services.progress_tracker import publish_progress
from storefront.storage.uploads import delete_upload
from storefront.workers.tasks.import_catalog import import_catalog_task, odoo_sync_task

logger = logging.getLogger(__name__)

router = APIRouter()

CatalogFile = Literal["products", "brands", "categories"]


def _create_job(db: Session, kind: str, file_path: str | None) -> ImportJob:
    try:
        job = ImportJob(kind=kind, uploaded_file_path=file_path)
        db.add(job)
        db.commit()
        db.refresh(job)
        return job
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Database error creating import job: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create import job",
        ) from exc


def _fail_enqueue(db: Session, job: ImportJob, exc: Exception) -> HTTPException:
    logger.error(f"Error enqueueing import job {job.id}: {exc}", exc_info=True)
    job.status = "failed"
    job.error_message = "Failed to enqueue import"
    db.commit()
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Failed to start import process",
    )


@router.post(
    "/odoo-sync",
    summary="Start an Odoo catalog sync job",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobStatus,
)
async def enqueue_odoo_sync(
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> JobStatus:
    if not settings.odoo_configured:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Odoo credentials are not configured",
        )

    job = _create_job(db, "odoo", None)
    try:
        publish_progress(job.id, 0.0, "Queued", status="pending")
        odoo_sync_task.apply_async(args=(job.id,), queue="imports")
    except Exception as exc:
        raise _fail_enqueue(db, job, exc) from exc

    logger.info(f"Created Odoo sync job {job.id}")
    return serialize_job(job, progress_payload={"progress": 0.0, "status": "pending"})


@router.post(
    "/{catalog}",
    summary="Upload a catalog CSV and start an import job",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobStatus,
)
async def enqueue_import(
    catalog: CatalogFile,
    file: UploadFile = File(...),
    db: Session = Depends(get_session),
) -> JobStatus:
    """Stage the CSV, record a pending job and hand it to the import queue."""
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded.",
        )
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV uploads are supported",
        )

    try:
        staged_path = await stage_file(file)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save uploaded file",
        ) from exc

    try:
        job = _create_job(db, catalog, str(staged_path))
    except HTTPException:
        delete_upload(staged_path)
        raise

    try:
        publish_progress(job.id, 0.0, "Queued", status="pending")
        import_catalog_task.apply_async(
            args=(job.id, catalog, str(staged_path)),
            queue="imports",
        )
    except Exception as exc:
        delete_upload(staged_path)
        raise _fail_enqueue(db, job, exc) from exc

    logger.info(f"Created {catalog} import job {job.id} for file {file.filename}")
    return serialize_job(job, progress_payload={"progress": 0.0, "status": "pending"})
