"""Tests for leadsignal.engine.reprocessor — batch sweep, per-lead atomicity, RQ job body."""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch, MagicMock

import pytest

from leadsignal.config import (
    STATUS_TO_ANALYZE, STATUS_QUALIFIED, STATUS_NEGOTIATION, STATUS_CLOSED,
)
from leadsignal.engine.recorder import POLICY_REFRESH, POLICY_SKIP_EXISTING
from leadsignal.engine.reprocessor import (
    process_lead,
    reprocess_all,
    launch_reprocess,
    cancel_reprocess,
    run_reprocess,
    LeadOutcome,
    ReprocessSummary,
    _generate_run_summary,
    _generate_failed_summary,
)
from leadsignal.engine.verdict import evaluate as real_evaluate
from leadsignal.models.analysis import Analysis
from leadsignal.models.lead import Lead
from leadsignal.models.notification import Notification
from leadsignal.models.reprocess_run import ReprocessRun
from leadsignal.services.locks import LocalLeadLocks
from leadsignal.services.db import count_analyses as real_count_analyses


DIAMOND_COMMENTS = ['A pizza chegou fria', 'O molho vazou todo']


def _sweep(session_factory, **kwargs):
    kwargs.setdefault('workers', 1)
    return reprocess_all(session_factory=session_factory, **kwargs)


# ── Scenarios ────────────────────────────────────────────────────────────────

class TestReprocessScenarios:
    """End-to-end sweeps over small lead bases."""

    def test_diamond_lead_analyzed_and_qualified(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, name='Cantina da Nonna', potential='ALTÍSSIMO', comments=DIAMOND_COMMENTS)
        s.close()

        summary = _sweep(session_factory)

        s = session_factory()
        analysis = s.query(Analysis).filter_by(lead_id=lead.id).one()
        assert analysis.summary == (
            '[AUTO-REPROCESS] Detectados 2 problemas: '
            'Problemas críticos com vazamento, Reclamações sobre temperatura'
        )
        assert analysis.priority_tier.startswith('DIAMANTE')
        assert analysis.source == 'batch'
        assert analysis.run_id == summary.run_id
        assert s.get(Lead, lead.id).status == STATUS_QUALIFIED
        titles = [n.title for n in s.query(Notification).order_by(Notification.id)]
        assert titles == ['🤖 Análise IA Concluída', '🎯 Lead Qualificado']
        s.close()

        assert summary.updated == 1
        assert summary.transitioned == 1

    def test_lead_with_analysis_left_alone(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, potential='ALTÍSSIMO', comments=DIAMOND_COMMENTS, analyses=1)
        s.close()

        summary = _sweep(session_factory)

        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=lead.id).count() == 1
        assert s.get(Lead, lead.id).status == STATUS_TO_ANALYZE
        assert s.query(Notification).count() == 0
        s.close()
        assert summary.skipped == 1
        assert summary.updated == 0

    def test_clean_lead_gets_no_analysis(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, comments=['Ótimo atendimento', 'Pizza deliciosa'])
        s.close()

        summary = _sweep(session_factory)

        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=lead.id).count() == 0
        s.close()
        assert summary.skipped == 1
        assert summary.processed == 1

    def test_clean_lead_recorded_when_not_skipping(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, comments=['Pizza deliciosa'])
        s.close()

        _sweep(session_factory, skip_clean_leads=False)

        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=lead.id).one().score == 0
        s.close()

    def test_negotiation_lead_not_downgraded(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, potential='ALTO', status=STATUS_NEGOTIATION, comments=DIAMOND_COMMENTS)
        s.close()

        summary = _sweep(session_factory)

        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=lead.id).count() == 1
        assert s.get(Lead, lead.id).status == STATUS_NEGOTIATION
        s.close()
        assert summary.updated == 1
        assert summary.transitioned == 0

    def test_gold_lead_analyzed_but_not_qualified(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, potential='BAIXO', comments=DIAMOND_COMMENTS)
        s.close()

        _sweep(session_factory)

        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=lead.id).one().priority_tier.startswith('OURO')
        assert s.get(Lead, lead.id).status == STATUS_TO_ANALYZE
        s.close()

    def test_empty_base(self, session_factory):
        summary = _sweep(session_factory)
        assert summary.total == 0
        assert summary.processed == 0
        assert not summary.cancelled


# ── Policies ─────────────────────────────────────────────────────────────────

class TestPolicies:
    """skip_existing is idempotent; refresh adds one analysis per run."""

    def test_second_sweep_changes_nothing(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, potential='ALTÍSSIMO', comments=DIAMOND_COMMENTS)
        s.close()

        _sweep(session_factory, policy=POLICY_SKIP_EXISTING)
        second = _sweep(session_factory, policy=POLICY_SKIP_EXISTING)

        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=lead.id).count() == 1
        assert s.query(Notification).count() == 2
        s.close()
        assert second.updated == 0
        assert second.skipped == 1

    def test_refresh_adds_one_per_run(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, comments=['vazou'], analyses=1, run_id='old-run')
        s.close()

        _sweep(session_factory, policy=POLICY_REFRESH, run_id='run-a')
        _sweep(session_factory, policy=POLICY_REFRESH, run_id='run-a')
        _sweep(session_factory, policy=POLICY_REFRESH, run_id='run-b')

        s = session_factory()
        run_ids = sorted(a.run_id for a in s.query(Analysis).filter_by(lead_id=lead.id))
        s.close()
        assert run_ids == ['old-run', 'run-a', 'run-b']

    def test_unknown_policy(self, session_factory):
        with pytest.raises(ValueError):
            _sweep(session_factory, policy='always')


# ── Failure isolation + cancellation ─────────────────────────────────────────

class TestFailureIsolation:
    """One bad lead never stops the sweep."""

    def test_failed_lead_recorded_others_committed(self, session_factory, make_lead):
        s = session_factory()
        good = make_lead(s, name='Bom', potential='ALTO', comments=['vazou'])
        bad = make_lead(s, name='Ruim', potential='BOOM', comments=['vazou'])
        s.close()

        def flaky(comments, potential):
            if potential == 'BOOM':
                raise RuntimeError('classifier exploded')
            return real_evaluate(comments, potential)

        with patch('leadsignal.engine.reprocessor.evaluate', side_effect=flaky):
            summary = _sweep(session_factory)

        assert summary.processed == 2
        assert summary.failed == 1
        assert summary.updated == 1
        assert summary.failures == [{'lead_id': bad.id, 'error': 'RuntimeError: classifier exploded'}]

        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=good.id).count() == 1
        assert s.query(Analysis).filter_by(lead_id=bad.id).count() == 0
        s.close()

    def test_failure_rolls_back_partial_writes(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, potential='ALTÍSSIMO', comments=DIAMOND_COMMENTS)
        s.close()

        with patch('leadsignal.engine.reprocessor.publish_events', side_effect=RuntimeError('write failed')):
            summary = _sweep(session_factory)

        s = session_factory()
        assert s.query(Analysis).count() == 0
        assert s.get(Lead, lead.id).status == STATUS_TO_ANALYZE
        s.close()
        assert summary.failed == 1

    def test_vanished_lead_is_skipped(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, comments=['vazou'])
        s.close()

        with patch('leadsignal.engine.reprocessor.list_lead_ids', return_value=[lead.id, 9999]):
            summary = _sweep(session_factory)

        assert summary.total == 2
        assert summary.updated == 1
        assert summary.skipped == 1
        assert summary.failed == 0


class TestCancellation:
    """Cancellation is checked between leads."""

    def _seed(self, session_factory, make_lead, n=5):
        s = session_factory()
        for i in range(n):
            make_lead(s, name=f'Lead {i}', comments=['vazou'])
        s.close()

    def test_pre_set_event_processes_nothing(self, session_factory, make_lead):
        self._seed(session_factory, make_lead)
        event = threading.Event()
        event.set()
        summary = _sweep(session_factory, cancel_event=event)
        assert summary.processed == 0
        assert summary.not_started == 5
        assert summary.cancelled

    def test_cancel_after_first_lead(self, session_factory, make_lead):
        self._seed(session_factory, make_lead)
        event = threading.Event()
        summary = _sweep(session_factory, cancel_event=event, on_progress=lambda snap: event.set())

        assert summary.processed == 1
        assert summary.not_started == 4
        s = session_factory()
        assert s.query(Analysis).count() == 1
        s.close()

    def test_should_cancel_poll(self, session_factory, make_lead):
        self._seed(session_factory, make_lead, n=3)
        summary = _sweep(session_factory, should_cancel=lambda: True)
        assert summary.processed == 0
        assert summary.not_started == 3

    def test_failing_cancel_poll_ignored(self, session_factory, make_lead):
        self._seed(session_factory, make_lead, n=2)

        def broken():
            raise ConnectionError('redis gone')

        summary = _sweep(session_factory, should_cancel=broken)
        assert summary.processed == 2
        assert not summary.cancelled


# ── Progress + concurrency ───────────────────────────────────────────────────

class TestProgressAndConcurrency:

    def test_progress_snapshots_in_order(self, session_factory, make_lead):
        s = session_factory()
        for i in range(4):
            make_lead(s, name=f'Lead {i}', comments=['vazou'])
        s.close()

        snapshots = []
        summary = _sweep(session_factory, workers=3, on_progress=snapshots.append)

        assert [snap.processed for snap in snapshots] == [1, 2, 3, 4]
        assert all(snap is not summary for snap in snapshots)

    def test_failing_progress_callback_ignored(self, session_factory, make_lead):
        s = session_factory()
        make_lead(s, comments=['vazou'])
        s.close()

        summary = _sweep(session_factory, on_progress=MagicMock(side_effect=RuntimeError('redis')))
        assert summary.updated == 1

    def test_thread_pool_covers_every_lead(self, session_factory, make_lead):
        s = session_factory()
        for i in range(12):
            make_lead(s, name=f'Lead {i}', potential='ALTO' if i % 2 else 'BAIXO', comments=['vazou'])
        s.close()

        summary = _sweep(session_factory, workers=4)

        assert summary.total == 12
        assert summary.processed == 12
        assert summary.updated == 12
        assert summary.transitioned == 6
        s = session_factory()
        assert s.query(Analysis).count() == 12
        s.close()

    def test_same_lead_concurrently_analyzed_once(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, potential='ALTÍSSIMO', comments=DIAMOND_COMMENTS)
        s.close()

        locks = LocalLeadLocks()

        def attempt(_):
            return process_lead(lead.id, run_id='run-x', policy=POLICY_SKIP_EXISTING,
                                session_factory=session_factory, locks=locks)

        with ThreadPoolExecutor(max_workers=6) as executor:
            outcomes = list(executor.map(attempt, range(6)))

        assert sum(1 for o in outcomes if o.created) == 1
        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=lead.id).count() == 1
        assert s.query(Notification).filter_by(title='🎯 Lead Qualificado').count() == 1
        s.close()

    def test_overlapping_sweeps_analyze_once(self, session_factory, make_lead):
        s = session_factory()
        for i in range(6):
            make_lead(s, name=f'Lead {i}', comments=['vazou'])
        s.close()

        locks = LocalLeadLocks()
        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = [executor.submit(reprocess_all, workers=3, session_factory=session_factory, locks=locks)
                       for _ in range(2)]
            summaries = [f.result() for f in futures]

        assert sum(s.updated for s in summaries) == 6
        s = session_factory()
        assert s.query(Analysis).count() == 6
        s.close()


    def test_parallel_sweeps_with_default_locks_analyze_once(self, session_factory, make_lead):
        s = session_factory()
        lead = make_lead(s, potential='ALTO', comments=['vazou'])
        s.close()

        def slow_count(*args, **kwargs):
            time.sleep(0.3)
            return real_count_analyses(*args, **kwargs)

        with patch('leadsignal.engine.recorder.count_analyses', side_effect=slow_count):
            with ThreadPoolExecutor(max_workers=2) as executor:
                futures = [executor.submit(reprocess_all, workers=1, session_factory=session_factory)
                           for _ in range(2)]
                summaries = [f.result() for f in futures]

        assert sorted(s.updated for s in summaries) == [0, 1]
        s = session_factory()
        assert s.query(Analysis).filter_by(lead_id=lead.id).count() == 1
        assert s.query(Notification).filter_by(title='🎯 Lead Qualificado').count() == 1
        s.close()

# ── Summary bookkeeping ──────────────────────────────────────────────────────

class TestReprocessSummary:

    def test_record_counts(self):
        summary = ReprocessSummary(run_id='r', policy='skip_existing', total=4)
        summary.record(LeadOutcome(lead_id=1, created=True, transitioned=True))
        summary.record(LeadOutcome(lead_id=2, created=True))
        summary.record(LeadOutcome(lead_id=3))
        summary.record(LeadOutcome(lead_id=4, error='ValueError: x'))
        assert (summary.processed, summary.updated, summary.skipped, summary.failed, summary.transitioned) == \
            (4, 2, 1, 1, 1)

    def test_to_dict(self, make_summary):
        d = make_summary(not_started=3).to_dict()
        assert d['cancelled'] is True
        assert d['failures'] == [{'lead_id': 7, 'error': 'RuntimeError: boom'}]
        assert d['policy'] == 'skip_existing'


class TestRunSummaryText:

    def test_empty_base(self, make_summary):
        assert _generate_run_summary(make_summary(total=0, processed=0)) == 'Nenhum lead na base para reprocessar.'

    def test_full_summary(self, make_summary):
        text = _generate_run_summary(make_summary())
        assert '10 de 10 leads analisados.' in text
        assert '4 novas análises criadas, 2 leads qualificados automaticamente.' in text
        assert '1 leads falharam' in text
        assert 'Cancelado' not in text

    def test_no_new_analyses(self, make_summary):
        text = _generate_run_summary(make_summary(updated=0, transitioned=0, failed=0, failures=[]))
        assert 'Nenhuma análise nova.' in text

    def test_cancelled(self, make_summary):
        text = _generate_run_summary(make_summary(processed=6, not_started=4))
        assert 'Cancelado: 4 leads não foram processados.' in text

    def test_failed_summary_includes_last_error(self):
        run = MagicMock(processed=3, errors=[{'lead_id': None, 'message': 'Reprocess failed: db down'}])
        assert _generate_failed_summary(run) == 'Reprocessamento falhou após 3 leads. Erro: Reprocess failed: db down'


# ── Background runs ──────────────────────────────────────────────────────────

class TestLaunchAndCancel:

    def test_launch_enqueues_job(self, fake_redis):
        queue = MagicMock()
        with patch('leadsignal.engine.reprocessor._get_queue', return_value=queue):
            run = launch_reprocess(POLICY_REFRESH)

        assert run.status == 'queued'
        assert run.policy == POLICY_REFRESH
        queue.enqueue.assert_called_once()
        args, kwargs = queue.enqueue.call_args
        assert args == (run_reprocess, run.id)
        assert 'job_timeout' in kwargs
        assert ReprocessRun.load(run.id) is not None

    def test_launch_default_policy(self, fake_redis):
        with patch('leadsignal.engine.reprocessor._get_queue', return_value=MagicMock()):
            run = launch_reprocess()
        assert run.policy == POLICY_SKIP_EXISTING

    def test_launch_unknown_policy(self, fake_redis):
        queue = MagicMock()
        with patch('leadsignal.engine.reprocessor._get_queue', return_value=queue):
            with pytest.raises(ValueError):
                launch_reprocess('always')
        queue.enqueue.assert_not_called()

    def test_cancel_unknown_run(self, fake_redis):
        assert cancel_reprocess('missing') is None

    def test_cancel_running_run(self, fake_redis):
        run = ReprocessRun()
        run.start()
        cancel_reprocess(run.id)
        assert ReprocessRun.load(run.id).cancel_requested is True

    def test_cancel_finished_run_is_noop(self, fake_redis):
        run = ReprocessRun()
        run.complete()
        cancel_reprocess(run.id)
        assert ReprocessRun.load(run.id).cancel_requested is False


class TestRunReprocess:
    """run_reprocess() — RQ job body."""

    def test_unknown_run(self, fake_redis):
        assert run_reprocess('missing') is None

    def test_completes_run(self, fake_redis, make_summary):
        run = ReprocessRun()
        run.save()
        summary = make_summary(run_id=run.id)

        with patch('leadsignal.engine.reprocessor.reprocess_all', return_value=summary) as mock_all, \
             patch('leadsignal.engine.reprocessor.notify_reprocess_complete') as mock_notify:
            result = run_reprocess(run.id)

        assert result['updated'] == 4
        kwargs = mock_all.call_args.kwargs
        assert kwargs['run_id'] == run.id
        assert kwargs['policy'] == 'skip_existing'
        mock_notify.assert_called_once()

        stored = ReprocessRun.load(run.id)
        assert stored.status == 'completed'
        assert stored.updated == 4
        assert stored.errors == [{'lead_id': 7, 'message': 'RuntimeError: boom'}]
        assert '10 de 10 leads analisados.' in stored.summary

    def test_cancelled_run(self, fake_redis, make_summary):
        run = ReprocessRun()
        run.save()
        with patch('leadsignal.engine.reprocessor.reprocess_all',
                   return_value=make_summary(run_id=run.id, processed=3, not_started=7)), \
             patch('leadsignal.engine.reprocessor.notify_reprocess_complete'):
            run_reprocess(run.id)
        assert ReprocessRun.load(run.id).status == 'cancelled'

    def test_sweep_crash_fails_run(self, fake_redis):
        run = ReprocessRun()
        run.save()
        with patch('leadsignal.engine.reprocessor.reprocess_all', side_effect=RuntimeError('db down')), \
             patch('leadsignal.engine.reprocessor.notify_reprocess_failed') as mock_failed:
            result = run_reprocess(run.id)

        assert result is None
        mock_failed.assert_called_once()
        stored = ReprocessRun.load(run.id)
        assert stored.status == 'failed'
        assert stored.errors[-1]['message'] == 'Reprocess failed: db down'
        assert stored.summary.startswith('Reprocessamento falhou')

    def test_cancel_flag_wired_to_sweep(self, fake_redis, make_summary):
        run = ReprocessRun()
        run.save()
        with patch('leadsignal.engine.reprocessor.reprocess_all', return_value=make_summary()) as mock_all, \
             patch('leadsignal.engine.reprocessor.notify_reprocess_complete'):
            run_reprocess(run.id)

        should_cancel = mock_all.call_args.kwargs['should_cancel']
        assert should_cancel() is False
        ReprocessRun.load(run.id).request_cancel()
        assert should_cancel() is True
