"""
Tests for the session service: connect, run, evict
"""

import time
from datetime import datetime, timedelta

import pytest

from dbanalyser.exceptions import SessionNotFound, UnknownAnalyzer
from dbanalyser.orchestration.sessions import SessionManager

DATABASE_URL = 'fake://user@srv01/Sales'
SERVER_URL = 'fake://user@srv01'


@pytest.fixture
def manager(settings, provider_registry):
    manager = SessionManager(settings, provider_registry=provider_registry)
    yield manager
    manager.close_all()


class TestConnect:

    def test_database_session(self, manager):
        connected = manager.connect(DATABASE_URL, 'fake')

        assert len(connected.session_id) == 12
        assert connected.database_name == 'Sales'
        assert connected.server_name == 'srv01'
        assert connected.provider_type == 'fake'
        assert not connected.is_server_mode
        assert manager.list_sessions() == [connected.session_id]

    def test_server_session_opens_the_administrative_database(self, manager, server):
        connected = manager.connect(SERVER_URL, 'fake')

        assert connected.is_server_mode
        assert connected.database_name == 'master'
        assert server.opened == ['master']

    def test_connection_string_is_normalized(self, manager):
        connected = manager.connect(DATABASE_URL, 'fake')

        assert manager.get_session(connected.session_id).connection_string == 'fake+driver://user@srv01/Sales'

    def test_failed_connect_registers_nothing(self, manager, server):
        server.unreachable.add('Sales')

        with pytest.raises(ConnectionError):
            manager.connect(DATABASE_URL, 'fake')
        assert manager.list_sessions() == []

    def test_unsupported_provider(self, manager):
        with pytest.raises(ValueError):
            manager.connect(DATABASE_URL, 'oracle')


class TestRuns:

    def test_run_analyzer_stores_result(self, manager):
        session_id = manager.connect(DATABASE_URL, 'fake').session_id

        result = manager.run_analyzer(session_id, 'relationships')

        assert manager.get_result(session_id) is result
        assert [t.table_name for t in result.schema.tables] == ['Customers', 'Invoices', 'Orders']
        assert result.relationships is not None

    def test_progress_is_recorded_per_session(self, manager):
        session_id = manager.connect(DATABASE_URL, 'fake').session_id

        manager.run_analyzer(session_id, 'relationships')

        events = manager.get_progress(session_id)
        assert [(e['step'], e['status']) for e in events] == [
            ('schema', 'running'), ('schema', 'completed'),
            ('relationships', 'running'), ('relationships', 'completed'),
        ]
        assert events[-1]['percentage'] == 100

    def test_run_analysis_uses_configured_defaults(self, manager):
        session_id = manager.connect(DATABASE_URL, 'fake').session_id

        result = manager.run_analysis(session_id)

        for section in ('schema', 'profiles', 'relationships', 'quality_issues', 'usage_analysis'):
            assert result.get_section(section) is not None
        assert result.index_inventory is None

    def test_unknown_analyzer_is_rejected_before_running(self, manager):
        session_id = manager.connect(DATABASE_URL, 'fake').session_id

        with pytest.raises(UnknownAnalyzer):
            manager.run_analyzer(session_id, 'lineage')
        with pytest.raises(UnknownAnalyzer):
            manager.run_analysis(session_id, ['schema', 'lineage'])
        assert manager.get_result(session_id) is None
        assert manager.get_progress(session_id) == []

    def test_unknown_session(self, manager):
        with pytest.raises(SessionNotFound):
            manager.run_analyzer('nope', 'schema')
        with pytest.raises(SessionNotFound):
            manager.get_result('nope')

    def test_targeted_database_on_server_session(self, manager):
        session_id = manager.connect(SERVER_URL, 'fake').session_id

        result = manager.run_analyzer(session_id, 'schema', database='Shared')

        assert result.is_server_mode
        assert result.databases == ['Shared']


class TestLifecycle:
    """Disconnect, idle eviction and shutdown release connections"""

    def test_disconnect(self, manager):
        session_id = manager.connect(DATABASE_URL, 'fake').session_id
        provider = manager.get_session(session_id).provider
        manager.run_analyzer(session_id, 'schema')

        assert manager.disconnect(session_id) is True
        assert provider.closed
        assert manager.list_sessions() == []
        assert manager.notifier.get_history(session_id) == []
        assert manager.disconnect(session_id) is False

    def test_sweep_evicts_idle_sessions(self, manager):
        idle = manager.connect(DATABASE_URL, 'fake').session_id
        busy = manager.connect(DATABASE_URL, 'fake').session_id
        now = datetime.now()
        manager.get_session(idle).last_activity = now - timedelta(minutes=31)
        manager.get_session(busy).last_activity = now - timedelta(minutes=5)
        provider = manager.get_session(idle).provider

        evicted = manager.sweep(now)

        assert evicted == [idle]
        assert provider.closed
        assert manager.list_sessions() == [busy]

    def test_sweep_leaves_running_sessions_alone(self, manager):
        session_id = manager.connect(DATABASE_URL, 'fake').session_id
        session = manager.get_session(session_id)
        session.last_activity = datetime.now() - timedelta(hours=2)

        with session.lock:
            assert manager.sweep() == []
            assert not session.provider.closed

        token = manager.scheduler.begin_request(session_id, 'usage')
        assert manager.sweep() == []
        manager.scheduler.end_request(session_id, 'usage', token)

        assert manager.sweep() == [session_id]
        assert session.provider.closed

    def test_reading_a_result_counts_as_activity(self, manager):
        session_id = manager.connect(DATABASE_URL, 'fake').session_id
        session = manager.get_session(session_id)
        session.last_activity = datetime.now() - timedelta(hours=2)

        manager.get_result(session_id)

        assert manager.sweep() == []

    def test_background_sweep(self, settings, provider_registry):
        settings.session_idle_timeout = timedelta(0)
        settings.sweep_interval = timedelta(milliseconds=10)
        manager = SessionManager(settings, provider_registry=provider_registry)
        manager.connect(DATABASE_URL, 'fake')

        manager.start_cleanup()
        try:
            deadline = time.time() + 5
            while manager.list_sessions() and time.time() < deadline:
                time.sleep(0.01)
        finally:
            manager.stop_cleanup()

        assert manager.list_sessions() == []

    def test_close_all(self, manager, server):
        manager.connect(DATABASE_URL, 'fake')
        manager.connect(SERVER_URL, 'fake')

        manager.close_all()

        assert manager.list_sessions() == []
        assert server.open_now == 0
