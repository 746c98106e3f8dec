"""Celery tasks for catalog ingestion (CSV uploads and the Odoo sync)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy.orm import Session

from storefront.core.config import get_settings
from storefront.db.models.import_job import ImportJob
from storefront.db.session import get_fresh_session
from storefront.services import catalog_import
from storefront.services.odoo_sync import OdooClient, OdooError, run_odoo_sync
from storefront.services.progress_tracker import publish_progress
from storefront.storage.uploads import delete_upload
from storefront.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

CSV_IMPORTERS: dict[str, Callable[..., dict[str, int]]] = {
    "products": catalog_import.import_products_file,
    "brands": catalog_import.import_brands_file,
    "categories": catalog_import.import_categories_file,
}


def _mark_running(job_session: Session, job: ImportJob, total_rows: int = 0) -> None:
    job.status = "running"
    job.started_at = datetime.now(timezone.utc)
    job.total_rows = total_rows
    job_session.commit()
    publish_progress(job.id, 0.0, message="Import started", status="running")


def _mark_completed(job_session: Session, job: ImportJob, stats: dict[str, int]) -> None:
    job.status = "completed"
    job.processed_rows = stats.get("processed", job.processed_rows)
    job.meta = stats
    job.finished_at = datetime.now(timezone.utc)
    job_session.commit()
    publish_progress(
        job.id, 1.0, message="Import complete", status="completed", meta=stats
    )


def _mark_failed(job_session: Session, job: ImportJob, exc: Exception) -> None:
    job_session.rollback()
    job.status = "failed"
    job.error_message = str(exc)
    job.finished_at = datetime.now(timezone.utc)
    job_session.commit()
    progress = job.processed_rows / job.total_rows if job.total_rows else 0.0
    publish_progress(
        job.id,
        progress,
        message="Import failed",
        status="failed",
        meta={"error": str(exc), "error_type": type(exc).__name__},
    )


def run_csv_import(job_id: str, kind: str, file_path: str) -> dict[str, int] | None:
    """Import one staged CSV inside a single catalog transaction.

    Job bookkeeping uses its own session so progress stays visible while the
    catalog transaction is still open, and survives a catalog rollback.
    """
    importer = CSV_IMPORTERS.get(kind)
    if importer is None:
        raise ValueError(f"Unknown catalog import kind: {kind}")

    job_session = get_fresh_session()
    catalog_session = get_fresh_session()
    path = Path(file_path)
    try:
        job = job_session.get(ImportJob, job_id)
        if job is None:
            logger.warning(f"Import job {job_id} not found; nothing to do")
            return None

        try:
            total_rows = catalog_import.count_rows(path)
            _mark_running(job_session, job, total_rows)

            def on_chunk(processed: int, totals: dict[str, int]) -> None:
                job.processed_rows = processed
                job_session.commit()
                publish_progress(
                    job_id,
                    processed / total_rows if total_rows else 0.0,
                    message=f"Processed {processed}/{total_rows} rows",
                    status="running",
                    meta=dict(totals),
                )

            if kind == "products":
                stats = importer(path, catalog_session, on_chunk=on_chunk)
            else:
                stats = importer(path, catalog_session)
            catalog_session.commit()
        except Exception as exc:
            catalog_session.rollback()
            logger.error(f"Catalog import {job_id} ({kind}) failed: {exc}", exc_info=True)
            _mark_failed(job_session, job, exc)
            raise

        _mark_completed(job_session, job, stats)
        logger.info(f"Catalog import {job_id} ({kind}) complete: {stats}")
        return stats
    finally:
        catalog_session.close()
        job_session.close()
        delete_upload(path)


def run_odoo_import(job_id: str, client: OdooClient | None = None) -> dict[str, int] | None:
    settings = get_settings()
    job_session = get_fresh_session()
    catalog_session = get_fresh_session()
    try:
        job = job_session.get(ImportJob, job_id)
        if job is None:
            logger.warning(f"Odoo sync job {job_id} not found; nothing to do")
            return None

        try:
            if client is None:
                if not settings.odoo_configured:
                    raise OdooError(
                        "Missing Odoo credentials: set ODOO_URL, ODOO_DB, "
                        "ODOO_USERNAME and ODOO_PASSWORD"
                    )
                client = OdooClient(
                    settings.odoo_url,
                    settings.odoo_db,
                    settings.odoo_username,
                    settings.odoo_password,
                )
            _mark_running(job_session, job)
            with client:
                stats = run_odoo_sync(client, catalog_session, settings.odoo_page_size)
            catalog_session.commit()
        except Exception as exc:
            catalog_session.rollback()
            logger.error(f"Odoo sync {job_id} failed: {exc}", exc_info=True)
            _mark_failed(job_session, job, exc)
            raise

        _mark_completed(job_session, job, stats)
        return stats
    finally:
        catalog_session.close()
        job_session.close()


@celery_app.task(bind=True, name="storefront.workers.tasks.import_catalog")
def import_catalog_task(self, job_id: str, kind: str, file_path: str):
    """Process a staged catalog CSV and publish progress."""
    return run_csv_import(job_id, kind, file_path)


@celery_app.task(bind=True, name="storefront.workers.tasks.odoo_sync")
def odoo_sync_task(self, job_id: str):
    """Mirror the Odoo catalog into the local database."""
    return run_odoo_import(job_id)
