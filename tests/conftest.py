"""Shared test fixtures for Fill-Line Planner tests."""

import os
import sys
import tempfile
import pytest
from datetime import datetime, timezone

# Add backend to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

# Keep uploads and exports out of the repo during tests
_TEST_DIR = tempfile.mkdtemp(prefix='fillplanner-tests-')
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['UPLOAD_FOLDER'] = os.path.join(_TEST_DIR, 'planning')
os.environ['OUTPUT_FOLDER'] = os.path.join(_TEST_DIR, 'outputs')

from algorithms.planner_types import Job, JobStatus, MasterData


PLAN_DAY = datetime(2026, 2, 16, tzinfo=timezone.utc)  # A Monday


def at(hour: int, minute: int = 0) -> int:
    """Epoch milliseconds for a wall-clock time (UTC) on the plan day."""
    return int(PLAN_DAY.replace(hour=hour, minute=minute).timestamp() * 1000)


@pytest.fixture
def ts():
    """Wall-clock helper: ts(6, 30) -> epoch ms for 06:30 on the plan day."""
    return at


@pytest.fixture
def master_data():
    """Two lines, 06:00 day start, 5 minute grid."""
    return MasterData(
        day_start_ts=at(6, 0),
        snap_grid_min=5,
        line_rate_l_per_min={'L1': 100, 'L2': 50},
    )


@pytest.fixture
def make_job():
    """Factory for jobs with sensible defaults."""
    counter = {'created': 0}

    def _make(job_id, **overrides):
        counter['created'] += 1
        fields = {
            'job_id': job_id,
            'product_id': 'P-STD',
            'qty_l': 3000,
            'line_id': 'L1',
            'status': JobStatus.PLANNED,
            'created_at': counter['created'],
        }
        fields.update(overrides)
        return Job(**fields)

    return _make


@pytest.fixture
def app():
    """Flask application with an empty current plan."""
    from app import app as flask_app, planner_state
    flask_app.config['TESTING'] = True
    planner_state.update({'jobs': [], 'master_data': None, 'result': None, 'updated_at': None})
    return flask_app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def sample_payload():
    """Serialized jobs and master data for API tests."""
    return {
        'masterData': {
            'dayStartTs': at(6, 0),
            'snapGridMin': 5,
            'lineRateLPerMin': {'L1': 100, 'L2': 50},
        },
        'jobs': [
            {'jobId': 'A', 'productId': 'P-STD', 'qtyL': 6000, 'lineId': 'L1',
             'rwId': 'RW1', 'status': 'PLANNED', 'createdAt': 1},
            {'jobId': 'B', 'productId': 'P-STD', 'qtyL': 3000, 'lineId': 'L2',
             'rwId': 'RW1', 'status': 'PLANNED', 'createdAt': 2},
            {'jobId': 'C', 'productId': 'P-STD', 'qtyL': 3000, 'lineId': 'L2',
             'status': 'PLANNED', 'createdAt': 3},
        ],
    }
