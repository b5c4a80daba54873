"""Shared test fixtures."""
import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from leadsignal.database import Base


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import leadsignal.models  # noqa: F401 — registers every table on Base.metadata
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that route handlers calling session.close()
    in their finally blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('leadsignal.database.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def session_factory(tmp_path):
    """
    File-backed SQLite session factory for multi-threaded tests.

    The in-memory engine hands every session in a thread the same connection,
    so the reprocessor (one session per lead, several threads) gets a real
    database file instead.
    """
    import leadsignal.models  # noqa: F401
    engine = create_engine(
        f"sqlite:///{tmp_path / 'leads.db'}",
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def make_lead():
    """Factory fixture — inserts a Lead with comments (and optional prior analyses) and commits."""
    from leadsignal.models.lead import Lead
    from leadsignal.models.comment import Comment
    from leadsignal.models.analysis import Analysis

    def _make(session, name='Pizzaria Teste', potential='MÉDIO', status=None,
              comments=(), analyses=0, run_id=None):
        lead = Lead(name=name, sales_potential=potential, status=status)
        session.add(lead)
        session.flush()
        for text in comments:
            session.add(Comment(lead_id=lead.id, content=text))
        for _ in range(analyses):
            session.add(Analysis(
                lead_id=lead.id,
                score=20,
                classification='ALTA PRIORIDADE (VAZAMENTO)',
                summary='Análise anterior',
                source='manual',
                run_id=run_id,
            ))
        session.commit()
        return lead
    return _make


@pytest.fixture
def fake_redis():
    """
    MagicMock Redis client backed by plain dicts.

    Supports the handful of commands ReprocessRun uses (setex/get/zadd/zrevrange)
    so runs can be saved and loaded back.
    """
    store = {}
    zsets = {}

    def _setex(key, ttl, value):
        store[key] = value
        return True

    def _zadd(key, mapping):
        zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    def _zrevrange(key, start, end):
        members = sorted(zsets.get(key, {}).items(), key=lambda item: item[1], reverse=True)
        stop = None if end == -1 else end + 1
        return [member for member, _ in members[start:stop]]

    mock = MagicMock()
    mock.store = store
    mock.setex.side_effect = _setex
    mock.get.side_effect = store.get
    mock.delete.side_effect = lambda key: store.pop(key, None) is not None
    mock.zadd.side_effect = _zadd
    mock.zrevrange.side_effect = _zrevrange
    with patch('leadsignal.models.reprocess_run.r', mock), \
         patch('leadsignal.extensions.redis_client', mock):
        yield mock


@pytest.fixture
def app():
    """Flask test app."""
    from leadsignal import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def make_summary():
    """Factory fixture — builds a ReprocessSummary with counters filled in."""
    from leadsignal.engine.reprocessor import ReprocessSummary

    def _make(**overrides):
        defaults = dict(
            run_id='run-test-001',
            policy='skip_existing',
            total=10,
            processed=10,
            updated=4,
            skipped=5,
            failed=1,
            transitioned=2,
            not_started=0,
            failures=[{'lead_id': 7, 'error': 'RuntimeError: boom'}],
        )
        defaults.update(overrides)
        return ReprocessSummary(**defaults)
    return _make
