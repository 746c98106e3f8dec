#!/usr/bin/env python3
"""Run the catalog import worker (CSV uploads and Odoo syncs).

Container images run as root, so Celery's superuser warning is silenced.
Extra command-line arguments are passed through to ``celery worker``.
"""

import sys
import warnings

from celery.bin import worker

warnings.filterwarnings('ignore', category=UserWarning, message='.*superuser privileges.*')
warnings.filterwarnings('ignore', category=RuntimeWarning, message='.*superuser privileges.*')

from storefront.workers.celery_app import celery_app  # noqa: E402

WORKER_ARGS = [
    'celery',
    '-A', 'storefront.workers.celery_app.celery_app',
    'worker',
    '--loglevel=info',
    # one import at a time: each holds a single catalog transaction
    '--queues=imports',
    '--concurrency=1',
    '--without-mingle',
    '--without-gossip',
]

if __name__ == '__main__':
    sys.argv = WORKER_ARGS + sys.argv[1:]
    worker.worker(app=celery_app).run()
