"""
Dashboard routes — health check and packaging report metrics.
"""
import logging
from flask import Blueprint, jsonify

from leadsignal.database import get_session
from leadsignal.services.reports import get_report_metrics

logger = logging.getLogger('routes.dashboard')

bp = Blueprint('dashboard', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/reports/packaging')
def packaging_report():
    """Pipeline + packaging-analysis metrics."""
    session = get_session()
    try:
        return jsonify(get_report_metrics(session))
    except Exception as e:
        logger.error("Failed to build packaging report", exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()
