"""
Reports API Routes Blueprint

- /api/reports/projects - Overall completion of active projects
- /api/projects/<id>/reports/progress - Phase progress across rooms
- /api/projects/<id>/reports/financials - Client billing against supplier spend
"""

import logging
from flask import Blueprint, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.errors import ServiceError
from services.report_service import ReportService
from app.utils.helpers import error_response

logger = logging.getLogger(__name__)

reports_bp = Blueprint('reports_bp', __name__)


def _service(session):
    org_id, _ = get_current_scope()
    return ReportService(session, org_id)


@reports_bp.route('/api/reports/projects', methods=['GET'])
@login_required
def projects_overview():
    try:
        with get_db_session() as session:
            return jsonify({'success': True, 'projects': _service(session).projects_overview()})
    except Exception as e:
        logger.error(f"Error building projects overview: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@reports_bp.route('/api/projects/<project_id>/reports/progress', methods=['GET'])
@login_required
def project_progress(project_id):
    try:
        with get_db_session() as session:
            report = _service(session).project_progress(project_id)
            return jsonify({'success': True, 'report': report})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error building progress report for project {project_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@reports_bp.route('/api/projects/<project_id>/reports/financials', methods=['GET'])
@login_required
def project_financials(project_id):
    try:
        with get_db_session() as session:
            report = _service(session).project_financials(project_id)
            return jsonify({'success': True, 'report': report})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error building financial report for project {project_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
