"""Upload endpoints, job tracking and the import worker entry points."""

import pytest
from sqlalchemy import select

from storefront.api.routers import jobs, uploads
from storefront.api.routers.job_helpers import serialize_job
from storefront.db.models import ImportJob, Product
from storefront.services.odoo_sync import OdooError
from storefront.storage import uploads as upload_storage
from storefront.workers.tasks import import_catalog

PRODUCTS_CSV = "Item,Description,Sell 1\nA1,Apple,1.00\nB2,Banana,0.50\n"


class RecordingTask:
    def __init__(self):
        self.calls = []

    def apply_async(self, args=(), queue=None):
        self.calls.append({"args": args, "queue": queue})


@pytest.fixture
def progress_events(monkeypatch):
    events = []

    def record(job_id, progress, message=None, *, status=None, meta=None):
        events.append({"job_id": job_id, "progress": progress, "status": status})

    monkeypatch.setattr(uploads, "publish_progress", record)
    monkeypatch.setattr(import_catalog, "publish_progress", record)
    monkeypatch.setattr(jobs, "fetch_progress", lambda job_id: {})
    return events


@pytest.fixture
def staged_dir(tmp_path, monkeypatch):
    target = tmp_path / "staged"
    target.mkdir()
    monkeypatch.setattr(upload_storage, "UPLOADS_DIR", target)
    return target


@pytest.fixture
def worker_sessions(monkeypatch, session_factory):
    monkeypatch.setattr(import_catalog, "get_fresh_session", session_factory)


def test_upload_stages_file_and_enqueues(client, progress_events, staged_dir, monkeypatch):
    task = RecordingTask()
    monkeypatch.setattr(uploads, "import_catalog_task", task)

    response = client.post(
        "/api/uploads/products",
        files={"file": ("catalog.csv", PRODUCTS_CSV, "text/csv")},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["type"] == "products"
    assert body["status"] == "pending"
    job_id, kind, path = task.calls[0]["args"]
    assert (job_id, kind) == (body["id"], "products")
    assert task.calls[0]["queue"] == "imports"
    assert list(staged_dir.iterdir())[0].read_text() == PRODUCTS_CSV
    assert progress_events[0]["status"] == "pending"


def test_upload_rejects_non_csv(client, progress_events, staged_dir):
    response = client.post(
        "/api/uploads/products",
        files={"file": ("catalog.xlsx", b"PK", "application/octet-stream")},
    )
    assert response.status_code == 400


def test_upload_rejects_unknown_catalog(client, progress_events, staged_dir):
    response = client.post(
        "/api/uploads/orders",
        files={"file": ("orders.csv", "a\n1\n", "text/csv")},
    )
    assert response.status_code == 422


def test_odoo_sync_requires_credentials(client, progress_events):
    assert client.post("/api/uploads/odoo-sync").status_code == 400


def test_odoo_sync_enqueues_when_configured(client, settings, progress_events, monkeypatch):
    task = RecordingTask()
    monkeypatch.setattr(uploads, "odoo_sync_task", task)
    settings.odoo_url = "https://odoo.test/jsonrpc"
    settings.odoo_db = "prod"
    settings.odoo_username = "sync"
    settings.odoo_password = "secret"

    response = client.post("/api/uploads/odoo-sync")

    assert response.status_code == 202
    assert response.json()["type"] == "odoo"
    assert task.calls[0]["args"] == (response.json()["id"],)


def test_job_listing_and_lookup(client, db_session, progress_events):
    db_session.add_all(
        [ImportJob(id="job-1", kind="brands", status="completed"), ImportJob(id="job-2", kind="products")]
    )
    db_session.commit()

    listed = client.get("/api/jobs", params={"kind": "brands"}).json()
    assert [job["id"] for job in listed] == ["job-1"]

    response = client.get("/api/jobs/job-2")
    assert response.status_code == 200
    assert response.json()["status"] == "pending"

    assert client.get("/api/jobs/missing").status_code == 404
    assert client.get("/api/jobs", params={"kind": "orders"}).status_code == 400


def test_run_csv_import_completes_job(tmp_path, db_session, worker_sessions, progress_events):
    path = tmp_path / "products.csv"
    path.write_text(PRODUCTS_CSV)
    db_session.add(ImportJob(id="job-ok", kind="products", uploaded_file_path=str(path)))
    db_session.commit()

    stats = import_catalog.run_csv_import("job-ok", "products", str(path))

    assert stats == {"processed": 2, "inserted": 2, "updated": 0}
    db_session.expire_all()
    job = db_session.get(ImportJob, "job-ok")
    assert job.status == "completed"
    assert job.total_rows == 2
    assert job.processed_rows == 2
    assert sorted(db_session.scalars(select(Product.item)).all()) == ["A1", "B2"]
    assert not path.exists()
    assert [event["status"] for event in progress_events][-1] == "completed"


def test_run_csv_import_marks_failure(tmp_path, db_session, worker_sessions, progress_events):
    path = tmp_path / "broken.csv"
    path.write_text("Description\nnothing\n")
    db_session.add(ImportJob(id="job-bad", kind="products", uploaded_file_path=str(path)))
    db_session.commit()

    with pytest.raises(ValueError):
        import_catalog.run_csv_import("job-bad", "products", str(path))

    db_session.expire_all()
    job = db_session.get(ImportJob, "job-bad")
    assert job.status == "failed"
    assert "item" in job.error_message
    assert not path.exists()
    assert progress_events[-1]["status"] == "failed"


def test_run_odoo_import_without_credentials_fails_job(
    db_session, settings, worker_sessions, progress_events, monkeypatch
):
    settings.odoo_url = None
    monkeypatch.setattr(import_catalog, "get_settings", lambda: settings)
    db_session.add(ImportJob(id="job-odoo", kind="odoo"))
    db_session.commit()

    with pytest.raises(OdooError, match="Missing Odoo credentials"):
        import_catalog.run_odoo_import("job-odoo")

    db_session.expire_all()
    assert db_session.get(ImportJob, "job-odoo").status == "failed"


def test_serialize_job_describes_catalog_progress():
    csv_job = ImportJob(id="j1", kind="products", status="running", total_rows=4, processed_rows=1)
    status = serialize_job(csv_job, None)
    assert status.progress == 0.25
    assert status.message == "Imported 1/4 products rows"

    odoo_job = ImportJob(id="j2", kind="odoo", status="completed", total_rows=0, processed_rows=0)
    status = serialize_job(odoo_job, None)
    assert status.progress == 1.0
    assert status.message == "Odoo sync completed"

    snapshot = {"progress": 0.5, "status": "running", "message": "Processed 2/4 rows"}
    assert serialize_job(csv_job, snapshot).message == "Processed 2/4 rows"
