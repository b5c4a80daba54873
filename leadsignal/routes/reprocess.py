"""
Reprocess routes — launch, inspect and cancel background reprocessing runs.
"""
import logging
from flask import Blueprint, request, jsonify

from leadsignal.engine.recorder import REPROCESS_POLICIES
from leadsignal.engine.reprocessor import launch_reprocess, cancel_reprocess
from leadsignal.models.reprocess_run import ReprocessRun

logger = logging.getLogger('routes.reprocess')

bp = Blueprint('reprocess', __name__)


@bp.route('/api/reprocess', methods=['POST'])
def create_reprocess():
    """Enqueue a sweep over the whole lead base."""
    data = request.get_json(silent=True) or {}
    policy = data.get('policy')
    if policy is not None and policy not in REPROCESS_POLICIES:
        return jsonify({'error': f'Unknown policy: {policy}', 'valid': list(REPROCESS_POLICIES)}), 400

    try:
        run = launch_reprocess(policy=policy)
        return jsonify(run.to_dict()), 202
    except Exception as e:
        logger.error("Failed to launch reprocess", exc_info=True)
        return jsonify({'error': str(e)}), 500


@bp.route('/api/reprocess')
def list_reprocess_runs():
    """Recent reprocess runs."""
    limit = request.args.get('limit', 20, type=int)
    runs = ReprocessRun.list_recent(limit=limit)
    return jsonify({'runs': [run.to_dict() for run in runs]})


@bp.route('/api/reprocess/<run_id>')
def get_reprocess_run(run_id):
    """Status and progress of one run."""
    run = ReprocessRun.load(run_id)
    if not run:
        return jsonify({'error': 'Run not found'}), 404
    return jsonify(run.to_dict())


@bp.route('/api/reprocess/<run_id>/cancel', methods=['POST'])
def cancel_reprocess_run(run_id):
    """Stop a running sweep between leads."""
    run = cancel_reprocess(run_id)
    if not run:
        return jsonify({'error': 'Run not found'}), 404
    return jsonify(run.to_dict())
