from pathlib import Path

from flask import (
    Blueprint,
    current_app,
    redirect,
    render_template,
    request,
    url_for,
)

from .auth import admin_required, current_email, sign_in_from_header, sign_out
from .datastore import (
    available_years,
    delete_period,
    latest_period,
    load_index,
    load_period,
    save_period,
    year_periods,
)
from .history import InvalidIdentifier, get_person_history, get_person_tournament_history
from .tournaments import (
    delete_tournament,
    load_tournament,
    load_tournament_index,
    save_tournament,
)
from .validation import ValidationError, sorted_by_rank, validate_results, validate_tournament


bp = Blueprint('main', __name__)


def _root() -> Path:
    return Path(current_app.config['DATA_DIR'])


def _int_or_none(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _safe_callback(target: str | None) -> str:
    """Return ``target`` when it is a local path, else the admin home."""
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return url_for('main.admin_seiseki')


# Public pages

@bp.route('/')
def index():
    latest = latest_period(_root())
    return render_template('index.html', title='Home', latest=latest)


@bp.route('/beginners')
def beginners():
    return render_template('beginners.html', title='Beginners')


@bp.route('/seiseki')
def seiseki():
    """Results page: every year's published months plus the tournaments."""
    root = _root()
    years = available_years(root)
    year_data = []
    for year in years:
        months = year_periods(root, year)
        if months:
            year_data.append({'year': year, 'months': months})
    tournaments = []
    for archive in load_tournament_index(root)['archives']:
        record = load_tournament(root, archive.get('year'))
        if record:
            tournaments.append(record)
    current_app.logger.debug(
        "seiseki page years=%d tournaments=%d", len(year_data), len(tournaments)
    )
    return render_template(
        'seiseki.html',
        title='Results',
        year_data=year_data,
        tournaments=tournaments,
    )


# Public API

@bp.route('/api/seiseki/list')
def api_seiseki_list():
    return load_index(_root())


@bp.route('/api/seiseki/<year>/<month>')
def api_seiseki_period(year, month):
    year_num, month_num = _int_or_none(year), _int_or_none(month)
    if year_num is None or month_num is None:
        return {'error': 'Invalid year or month'}, 400
    record = load_period(_root(), year_num, month_num)
    if record is None:
        return {'error': 'Data not found'}, 404
    return record


@bp.route('/api/seiseki/person/<path:person_id>')
def api_person_history(person_id):
    try:
        history = get_person_history(_root(), person_id)
    except InvalidIdentifier:
        return {'error': 'personId is required'}, 400
    if history is None:
        current_app.logger.info("Person not found: %s", person_id)
        return {'error': 'Person not found'}, 404
    return history


@bp.route('/api/taikai/<year>')
def api_taikai_year(year):
    year_num = _int_or_none(year)
    if year_num is None:
        return {'error': 'Invalid year parameter'}, 400
    record = load_tournament(_root(), year_num)
    if record is None:
        return {'error': f'Tournament data not found for year {year_num}'}, 404
    return record


@bp.route('/api/taikai/person/<path:person_name>')
def api_person_taikai_history(person_name):
    # Flask has already percent-decoded the path segment.
    try:
        history = get_person_tournament_history(_root(), person_name)
    except InvalidIdentifier:
        return {'error': 'personName is required'}, 400
    if history is None:
        return {'error': 'Person not found'}, 404
    return history


# Admin

@bp.route('/admin/login', methods=['GET', 'POST'])
def admin_login():
    callback = request.args.get('callbackUrl') or request.form.get('callbackUrl')
    error = None
    if request.method == 'POST':
        if sign_in_from_header():
            return redirect(_safe_callback(callback))
        error = 'This account is not allowed to use the admin area.'
    return render_template(
        'admin/login.html',
        title='Admin login',
        callback_url=callback or '',
        error=error,
        email=current_email(),
    ), (403 if error else 200)


@bp.route('/admin/logout', methods=['POST'])
def admin_logout():
    sign_out()
    return redirect(url_for('main.index'))


@bp.route('/admin/seiseki')
@admin_required
def admin_seiseki():
    root = _root()
    year = _int_or_none(request.args.get('year'))
    month = _int_or_none(request.args.get('month'))
    selected = load_period(root, year, month) if year and month else None
    return render_template(
        'admin/seiseki.html',
        title='Edit results',
        archives=load_index(root)['archives'],
        selected=selected,
        email=current_email(),
    )


@bp.route('/admin/taikai')
@admin_required
def admin_taikai():
    root = _root()
    year = _int_or_none(request.args.get('year'))
    selected = load_tournament(root, year) if year else None
    return render_template(
        'admin/taikai.html',
        title='Edit tournament',
        archives=load_tournament_index(root)['archives'],
        selected=selected,
        email=current_email(),
    )


@bp.route('/api/admin/seiseki', methods=['POST'])
@admin_required
def api_admin_save_seiseki():
    """Replace one month's results with the submitted entry list."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    year, month, entries = payload.get('year'), payload.get('month'), payload.get('entries')
    try:
        validate_results(year, month, entries)
    except ValidationError as e:
        return {'success': False, 'error': str(e)}, 400
    try:
        save_period(_root(), year, month, sorted_by_rank(entries))
    except Exception:  # pylint: disable=broad-except
        current_app.logger.exception("Error saving results for %s/%s", year, month)
        return {'success': False, 'error': 'Error saving data'}, 500
    current_app.logger.info("admin_save_seiseki by=%s period=%s/%s entries=%d", current_email(), year, month, len(entries))
    return {'success': True, 'message': f'Seiseki data saved for {year}/{month}'}


@bp.route('/api/admin/seiseki/<int:year>/<int:month>', methods=['DELETE'])
@admin_required
def api_admin_delete_seiseki(year, month):
    try:
        delete_period(_root(), year, month)
    except ValueError as e:
        return {'success': False, 'error': str(e)}, 400
    current_app.logger.info("admin_delete_seiseki by=%s period=%s/%s", current_email(), year, month)
    return {'success': True}


@bp.route('/api/admin/taikai', methods=['POST'])
@admin_required
def api_admin_save_taikai():
    """Replace one year's tournament results."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    year = payload.get('year')
    taikai_name = payload.get('taikaiName')
    event_date = payload.get('eventDate')
    participants = payload.get('participants')
    try:
        validate_tournament(year, taikai_name, event_date, participants)
    except ValidationError as e:
        return {'success': False, 'error': str(e)}, 400
    record = {
        'year': year,
        'taikaiName': taikai_name,
        'eventDate': event_date,
        'participants': sorted_by_rank(participants),
    }
    try:
        save_tournament(_root(), year, record)
    except Exception:  # pylint: disable=broad-except
        current_app.logger.exception("Error saving tournament for %s", year)
        return {'success': False, 'error': 'Error saving data'}, 500
    current_app.logger.info("admin_save_taikai by=%s year=%s participants=%d", current_email(), year, len(participants))
    return {'success': True, 'message': f'Tournament data saved for year {year}'}


@bp.route('/api/admin/taikai/<int:year>', methods=['DELETE'])
@admin_required
def api_admin_delete_taikai(year):
    try:
        delete_tournament(_root(), year)
    except ValueError as e:
        return {'success': False, 'error': str(e)}, 400
    current_app.logger.info("admin_delete_taikai by=%s year=%s", current_email(), year)
    return {'success': True}
