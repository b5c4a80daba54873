"""
Lead routes — single-lead analysis, analysis history, manual status changes.
"""
import logging
from flask import Blueprint, request, jsonify

from leadsignal.database import get_session
from leadsignal.engine.analyzer import analyze_lead, change_status
from leadsignal.engine.base import LeadNotFound
from leadsignal.engine.status import InvalidStatus, InvalidTransition
from leadsignal.services.db import get_lead, list_analyses

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__)


@bp.route('/api/leads/<int:lead_id>/analyze', methods=['POST'])
def analyze(lead_id):
    """Run the classification engine on one lead and store a fresh analysis."""
    session = get_session()
    try:
        analysis = analyze_lead(lead_id, session=session)
        return jsonify(analysis.to_dict()), 201
    except LeadNotFound as e:
        return jsonify({'error': str(e)}), 404
    except Exception:
        logger.error("Analysis failed for lead %s", lead_id, exc_info=True)
        return jsonify({'error': 'Falha ao salvar análise'}), 500
    finally:
        session.close()


@bp.route('/api/leads/<int:lead_id>/analyses')
def analyses(lead_id):
    """Analysis history for a lead, newest first."""
    session = get_session()
    try:
        get_lead(session, lead_id)
        return jsonify({'analyses': [a.to_dict() for a in list_analyses(session, lead_id)]})
    except LeadNotFound as e:
        return jsonify({'error': str(e)}), 404
    finally:
        session.close()


@bp.route('/api/leads/<int:lead_id>/status', methods=['POST'])
def update_status(lead_id):
    """Move a lead to another pipeline status."""
    data = request.get_json(silent=True) or {}
    new_status = data.get('status')
    if not new_status:
        return jsonify({'error': 'status is required'}), 400

    session = get_session()
    try:
        result = change_status(lead_id, new_status, session=session)
        lead = get_lead(session, lead_id)
        return jsonify({
            'lead': lead.to_dict(),
            'old_status': result.old_status,
            'notifications': [event.title for event in result.events],
        })
    except LeadNotFound as e:
        return jsonify({'error': str(e)}), 404
    except (InvalidStatus, InvalidTransition) as e:
        return jsonify({'error': str(e)}), 400
    except Exception:
        logger.error("Status update failed for lead %s", lead_id, exc_info=True)
        return jsonify({'error': 'Falha ao atualizar status'}), 500
    finally:
        session.close()
