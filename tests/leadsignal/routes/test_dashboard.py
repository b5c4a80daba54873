"""Tests for dashboard routes — health check + packaging report."""
import pytest
from unittest.mock import patch

from leadsignal.config import STATUS_QUALIFIED


@pytest.fixture(autouse=True)
def _patch_routes_session(patch_get_session):
    with patch('leadsignal.routes.dashboard.get_session', return_value=patch_get_session):
        yield


class TestHealth:

    def test_returns_healthy(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'healthy'}


class TestPackagingReport:
    """GET /api/reports/packaging"""

    def test_returns_metrics(self, client, db_session, make_lead):
        make_lead(db_session, name='Cantina da Nonna', potential='ALTÍSSIMO', status=STATUS_QUALIFIED)
        resp = client.get('/api/reports/packaging')
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['total_leads'] == 1
        assert data['qualified_count'] == 1
        assert data['high_potential_count'] == 1

    def test_accents_not_escaped(self, client, db_session, make_lead):
        make_lead(db_session, status=STATUS_QUALIFIED)
        resp = client.get('/api/reports/packaging')
        assert 'Em Negociação' in resp.get_data(as_text=True)

    def test_report_failure_500(self, client):
        with patch('leadsignal.routes.dashboard.get_report_metrics', side_effect=RuntimeError('db down')):
            resp = client.get('/api/reports/packaging')
        assert resp.status_code == 500
