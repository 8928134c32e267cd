"""
Fill-Line Planner - Flask Web Application
JSON API over the planning engine, with production deployment support
"""

import os
import sys
from datetime import datetime, timezone

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), '..', '.env'))

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from algorithms import compute_planner, apply_intent, derive_rw_segments, PlannerInvariantError
from algorithms.planner_types import MasterData
from data_loader import DataLoader
from exporters.excel_exporter import export_all_reports, export_planner_schedule
from exporters.resource_utilization_exporter import export_lane_utilization
from parsers import (
    parse_jobs,
    parse_master_data,
    parse_intent,
    parse_products,
    serialize_result,
    serialize_master_data,
    serialize_rw_analysis,
)
from validators import validate_planner_inputs


# ============== App Configuration ==============

def create_app():
    """Application factory for Flask app."""
    app = Flask(__name__)

    # Load configuration from environment
    app.secret_key = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
    app.config['ENV'] = os.environ.get('FLASK_ENV', 'development')
    app.config['DEBUG'] = os.environ.get('FLASK_DEBUG', 'true').lower() == 'true'

    # File upload / export configuration
    base_dir = os.path.dirname(os.path.abspath(__file__))
    app.config['UPLOAD_FOLDER'] = os.environ.get('UPLOAD_FOLDER', os.path.join(base_dir, '..', 'planning'))
    app.config['OUTPUT_FOLDER'] = os.environ.get('OUTPUT_FOLDER', os.path.join(base_dir, '..', 'outputs'))
    app.config['MAX_CONTENT_LENGTH'] = 20 * 1024 * 1024  # 20MB max file size
    app.config['ALLOWED_EXTENSIONS'] = {'xlsx', 'xls'}

    # Planner defaults (used when a request carries no master data)
    app.config['PLANNER_SNAP_GRID_MIN'] = float(os.environ.get('PLANNER_SNAP_GRID_MIN', '5'))
    app.config['PLANNER_DAY_START'] = os.environ.get('PLANNER_DAY_START', '06:00')
    app.config['PLANNER_RW_CLEAN_MIN'] = float(os.environ.get('PLANNER_RW_CLEAN_MIN', '30'))

    # Ensure directories exist
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    os.makedirs(app.config['OUTPUT_FOLDER'], exist_ok=True)

    # CORS for API access
    CORS(app)

    return app


app = create_app()


def default_day_start_ts(day_start: str, now: datetime = None) -> int:
    """Today's day-start anchor ('HH:MM', UTC) as epoch milliseconds."""
    now = now or datetime.now(timezone.utc)
    try:
        hours, minutes = (int(part) for part in day_start.split(':'))
        anchor = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    except ValueError:
        # Malformed setting: fall back to 06:00
        anchor = now.replace(hour=6, minute=0, second=0, microsecond=0)
    return int(anchor.timestamp() * 1000)


def default_master_data() -> MasterData:
    return MasterData(
        day_start_ts=default_day_start_ts(app.config['PLANNER_DAY_START']),
        snap_grid_min=app.config['PLANNER_SNAP_GRID_MIN'],
    )


# ============== Global State ==============

# Current plan: the job list is the only input, the result is always derived
planner_state = {
    'jobs': [],
    'master_data': None,
    'result': None,
    'updated_at': None,
}


def _current_master_data() -> MasterData:
    if planner_state['master_data'] is None:
        planner_state['master_data'] = default_master_data()
    return planner_state['master_data']


def _store_result(result, master_data: MasterData):
    """Replace the current plan with a freshly computed result."""
    planner_state['jobs'] = list(result.jobs)
    planner_state['master_data'] = master_data
    planner_state['result'] = result
    planner_state['updated_at'] = datetime.now().isoformat()


def _state_payload():
    master_data = _current_master_data()
    result = planner_state['result'] or compute_planner(planner_state['jobs'], master_data)
    return {
        **serialize_result(result),
        'masterData': serialize_master_data(master_data),
        'updatedAt': planner_state['updated_at'],
    }


def _request_json():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError('Request body is required.')
    return data


def _master_data_from(data) -> MasterData:
    if data.get('masterData') is not None:
        return parse_master_data(data['masterData'])
    return _current_master_data()


def allowed_file(filename):
    """Check if file extension is allowed."""
    return '.' in filename and \
        filename.rsplit('.', 1)[1].lower() in app.config['ALLOWED_EXTENSIONS']


# ============== Stateless Planner API ==============

@app.route('/api/planner/compute', methods=['POST'])
def api_compute():
    """Recompute a full schedule. Accepts {jobs: [...], masterData: {...}}."""
    try:
        data = _request_json()
        jobs = parse_jobs(data.get('jobs'))
        master_data = _master_data_from(data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    try:
        result = compute_planner(jobs, master_data)
    except PlannerInvariantError as e:
        print(f"[!!] Planner invariant violated: {e}")
        return jsonify({'error': str(e)}), 500

    report = validate_planner_inputs(jobs, master_data)
    return jsonify({**serialize_result(result), 'validation': report.to_dict()})


@app.route('/api/planner/intent', methods=['POST'])
def api_apply_intent():
    """Apply one intent. Accepts {jobs: [...], masterData: {...}, intent: {type, ...}}."""
    try:
        data = _request_json()
        jobs = parse_jobs(data.get('jobs'))
        master_data = _master_data_from(data)
        intent = parse_intent(data.get('intent'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    try:
        result = apply_intent(jobs, master_data, intent)
    except PlannerInvariantError as e:
        print(f"[!!] Planner invariant violated: {e}")
        return jsonify({'error': str(e)}), 500

    return jsonify(serialize_result(result))


@app.route('/api/planner/rw-windows', methods=['POST'])
def api_rw_windows():
    """
    Mixing-vessel MAKE/HOLD/CLEAN report.
    Accepts {jobs?, products: [...], rwCleanMin?: {rwId: min}, defaultRwCleanMin?}.
    Without jobs, the current plan is analyzed.
    """
    try:
        data = _request_json()
        products = parse_products(data.get('products'))
        rw_clean_min = {str(k): float(v) for k, v in (data.get('rwCleanMin') or {}).items()}
        default_clean_min = float(data.get('defaultRwCleanMin', app.config['PLANNER_RW_CLEAN_MIN']))
        if data.get('jobs') is not None:
            jobs = compute_planner(parse_jobs(data['jobs']), _master_data_from(data)).jobs
        else:
            jobs = planner_state['jobs']
    except (ValueError, TypeError) as e:
        return jsonify({'error': str(e)}), 400
    except PlannerInvariantError as e:
        print(f"[!!] Planner invariant violated: {e}")
        return jsonify({'error': str(e)}), 500

    analysis = derive_rw_segments(jobs, products, rw_clean_min, default_clean_min)
    return jsonify(serialize_rw_analysis(analysis))


# ============== Current Plan API ==============

@app.route('/api/planner/state')
def api_get_state():
    """Current plan (jobs, blocks, master data)."""
    return jsonify(_state_payload())


@app.route('/api/planner/state', methods=['PUT'])
def api_replace_state():
    """Replace the current plan. Accepts {jobs: [...], masterData?: {...}}."""
    try:
        data = _request_json()
        jobs = parse_jobs(data.get('jobs'))
        master_data = _master_data_from(data)
        result = compute_planner(jobs, master_data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except PlannerInvariantError as e:
        print(f"[!!] Planner invariant violated: {e}")
        return jsonify({'error': str(e)}), 500

    _store_result(result, master_data)
    return jsonify(_state_payload())


@app.route('/api/planner/state/intent', methods=['POST'])
def api_apply_state_intent():
    """Apply one intent to the current plan. Accepts {intent: {type, ...}}."""
    try:
        intent = parse_intent(_request_json().get('intent'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    master_data = _current_master_data()
    try:
        result = apply_intent(planner_state['jobs'], master_data, intent)
    except PlannerInvariantError as e:
        print(f"[!!] Planner invariant violated: {e}")
        return jsonify({'error': str(e)}), 500

    _store_result(result, master_data)
    return jsonify(_state_payload())


@app.route('/api/planner/upload', methods=['POST'])
def api_upload_workbook():
    """Load a planning workbook (Jobs + Lines sheets) as the current plan."""
    if 'file' not in request.files:
        return jsonify({'error': 'No file provided'}), 400

    file = request.files['file']
    if file.filename == '':
        return jsonify({'error': 'No file selected'}), 400

    if not allowed_file(file.filename):
        return jsonify({'error': 'Invalid file type. Only .xlsx and .xls files allowed.'}), 400

    filepath = os.path.join(app.config['UPLOAD_FOLDER'], secure_filename(file.filename))
    file.save(filepath)

    current = _current_master_data()
    loader = DataLoader(app.config['UPLOAD_FOLDER'])
    try:
        loaded = loader.load_workbook(filepath)
    except Exception as e:
        print(f"[Upload API] Error reading {file.filename}: {e}")
        import traceback
        traceback.print_exc()
        return jsonify({'error': f'Failed to read workbook: {str(e)}'}), 400
    if not loaded:
        return jsonify({'error': 'Workbook has no Jobs sheet.'}), 400

    master_data = loader.get_master_data(current.day_start_ts, current.snap_grid_min)
    if not master_data.line_rate_l_per_min:
        master_data.line_rate_l_per_min = dict(current.line_rate_l_per_min)

    # Operator-facing summary of what was loaded
    report = validate_planner_inputs(loader.jobs, master_data)
    report.print_report()

    try:
        result = compute_planner(loader.jobs, master_data)
    except PlannerInvariantError as e:
        print(f"[!!] Planner invariant violated: {e}")
        return jsonify({'error': str(e)}), 500

    _store_result(result, master_data)
    return jsonify({**_state_payload(), 'rowErrors': loader.errors,
                    'validation': report.to_dict()})


@app.route('/api/planner/export/<kind>')
def api_export(kind):
    """
    Download the current plan as Excel ('schedule' or 'utilization').
    'all' writes every report to the output folder and lists the files.
    """
    exporters = {
        'schedule': ('Fill_Schedule', export_planner_schedule),
        'utilization': ('Lane_Utilization', export_lane_utilization),
    }
    if kind != 'all' and kind not in exporters:
        return jsonify({'error': f"Unknown export '{kind}'. Valid: schedule, utilization, all"}), 404

    master_data = _current_master_data()
    result = planner_state['result'] or compute_planner(planner_state['jobs'], master_data)

    if kind == 'all':
        files = export_all_reports(result, app.config['OUTPUT_FOLDER'])
        return jsonify({'files': {name: os.path.basename(path) for name, path in files.items()}})

    prefix, exporter = exporters[kind]
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    filepath = os.path.join(app.config['OUTPUT_FOLDER'], f"{prefix}_{timestamp}.xlsx")
    exporter(result, filepath)
    return send_file(os.path.abspath(filepath), as_attachment=True,
                     download_name=os.path.basename(filepath))


# ============== Main ==============

def run_development():
    """Run the development server."""
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 5000))

    print("=" * 60)
    print("Fill-Line Planner - Web API (Development)")
    print("=" * 60)
    print(f"Upload folder: {app.config['UPLOAD_FOLDER']}")
    print(f"Output folder: {app.config['OUTPUT_FOLDER']}")
    print(f"Starting server at http://{host}:{port}")
    print("=" * 60)
    print("WARNING: Using development server. For production, use:")
    print("  waitress-serve --port=5000 app:app")
    print("=" * 60)

    app.run(debug=True, host=host, port=port)


def run_production():
    """Run the production server with Waitress."""
    from waitress import serve

    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 5000))

    print("=" * 60)
    print("Fill-Line Planner - Web API (Production)")
    print("=" * 60)
    print(f"Upload folder: {app.config['UPLOAD_FOLDER']}")
    print(f"Output folder: {app.config['OUTPUT_FOLDER']}")
    print(f"Starting Waitress server at http://{host}:{port}")
    print("=" * 60)

    serve(app, host=host, port=port, threads=4)


if __name__ == '__main__':
    env = os.environ.get('FLASK_ENV', 'development')

    if env == 'production':
        run_production()
    else:
        run_development()
