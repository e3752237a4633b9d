"""
Tests for dependency resolution, forced refresh and per-session commits
"""

import pytest

from dbanalyser.analyzers.models import AnalysisResult
from dbanalyser.analyzers.registry import create_analyzer_registry
from dbanalyser.exceptions import AnalysisCancelled, UnknownAnalyzer
from dbanalyser.orchestration.merge import SECTIONS, empty_section
from dbanalyser.orchestration.scheduler import DependencyScheduler

from conftest import ANALYZER_SECTIONS, recording_registry


def full_result() -> AnalysisResult:
    result = AnalysisResult(database_name='Sales')
    for section in SECTIONS:
        result.apply({section: empty_section(section, 'Sales')})
    return result


class TestExecutionOrder:
    """Dependency-first resolution against the shipped dependency table"""

    @pytest.fixture
    def scheduler(self):
        return DependencyScheduler(recording_registry([]))

    @pytest.mark.parametrize('name', list(ANALYZER_SECTIONS))
    def test_dependencies_precede_requested_analyzer(self, scheduler, name):
        order = scheduler.resolve_execution_order(name, None)

        assert order[-1] == name
        for dep in scheduler.registry.dependencies_of(name):
            assert order.index(dep) < order.index(name)

    def test_usage_pulls_in_whole_chain(self, scheduler):
        order = scheduler.resolve_execution_order('usage', None)
        assert order == ['schema', 'profiling', 'relationships', 'usage']

    def test_satisfied_dependencies_are_skipped(self, scheduler):
        result = AnalysisResult(database_name='Sales')
        result.apply({'schema': empty_section('schema', 'Sales')})

        assert scheduler.resolve_execution_order('quality', result) == ['relationships', 'quality']

    def test_up_to_date_resolves_empty(self, scheduler):
        assert scheduler.resolve_execution_order('quality', full_result()) == []

    def test_unknown_analyzer(self, scheduler):
        with pytest.raises(UnknownAnalyzer):
            scheduler.resolve_execution_order('lineage', None)

    def test_lookup_is_case_insensitive(self, scheduler):
        assert scheduler.resolve_execution_order('Schema', None) == ['schema']


class TestInvalidation:
    """Forcing an analyzer clears it and everything derived from it"""

    def test_forcing_schema_clears_every_section(self):
        scheduler = DependencyScheduler(recording_registry([]))
        result = full_result()

        cleared = scheduler.invalidate('schema', result)

        assert set(cleared) == set(ANALYZER_SECTIONS)
        for section in SECTIONS:
            assert result.get_section(section) is None

    def test_forcing_relationships_keeps_unrelated_sections(self):
        scheduler = DependencyScheduler(recording_registry([]))
        result = full_result()

        scheduler.invalidate('relationships', result)

        assert result.relationships is None
        assert result.quality_issues is None
        assert result.usage_analysis is None
        assert result.schema is not None
        assert result.profiles is not None
        assert result.index_inventory is not None


class TestSingleDatabaseRuns:
    """run_analyzer against a database-scoped session"""

    def test_runs_prerequisites_then_target(self, database_session):
        calls = []
        scheduler = DependencyScheduler(recording_registry(calls))

        result = scheduler.run_analyzer(database_session, 'quality')

        assert calls == ['schema', 'relationships', 'quality']
        assert database_session.result is result
        assert result.quality_issues == []

    def test_second_run_is_a_no_op(self, database_session):
        calls = []
        scheduler = DependencyScheduler(recording_registry(calls))
        scheduler.run_analyzer(database_session, 'quality')
        calls.clear()

        scheduler.run_analyzer(database_session, 'quality')

        assert calls == []

    def test_force_reruns_only_the_target_when_prerequisites_hold(self, database_session):
        calls = []
        scheduler = DependencyScheduler(recording_registry(calls))
        scheduler.run_analyzer(database_session, 'quality')
        calls.clear()

        scheduler.run_analyzer(database_session, 'quality', force=True)

        assert calls == ['quality']

    def test_forced_schema_drops_derived_sections(self, database_session):
        calls = []
        scheduler = DependencyScheduler(recording_registry(calls))
        scheduler.run_analyzer(database_session, 'usage')
        scheduler.run_analyzer(database_session, 'indexing')

        result = scheduler.run_analyzer(database_session, 'schema', force=True)

        assert result.schema is not None
        for section in ('profiles', 'relationships', 'usage_analysis', 'index_inventory'):
            assert result.get_section(section) is None

    def test_progress_events_per_step(self, database_session):
        events = []
        scheduler = DependencyScheduler(recording_registry([]))

        scheduler.run_analyzer(database_session, 'relationships',
                               on_progress=lambda *event: events.append(event))

        assert events == [
            ('schema', 1, 2, 'running'),
            ('schema', 1, 2, 'completed'),
            ('relationships', 2, 2, 'running'),
            ('relationships', 2, 2, 'completed'),
        ]

    def test_unknown_analyzer_does_no_work(self, database_session):
        calls = []
        scheduler = DependencyScheduler(recording_registry(calls))

        with pytest.raises(UnknownAnalyzer):
            scheduler.run_analyzer(database_session, 'lineage')
        assert calls == []
        assert database_session.result is None

    def test_failing_step_reports_failed_and_commits_nothing(self, database_session):
        def explode(context, result):
            raise RuntimeError('catalog unavailable')

        events = []
        scheduler = DependencyScheduler(recording_registry([], hooks={'relationships': explode}))

        with pytest.raises(RuntimeError):
            scheduler.run_analyzer(database_session, 'quality', on_progress=lambda *event: events.append(event))

        assert events[-1] == ('relationships', 2, 3, 'failed')
        assert ('quality', 3, 3, 'running') not in events
        assert database_session.result is None

    def test_run_analyzers_in_dependency_order(self, database_session):
        calls = []
        scheduler = DependencyScheduler(recording_registry(calls))

        scheduler.run_analyzers(database_session, ['quality', 'schema', 'profiling'])

        assert calls == ['schema', 'profiling', 'relationships', 'quality']


class TestCancellation:
    """A superseded call never commits"""

    def test_newer_request_cancels_older_token(self):
        scheduler = DependencyScheduler(recording_registry([]))
        first = scheduler.begin_request('s1', 'schema')
        second = scheduler.begin_request('s1', 'schema')

        assert first.is_cancelled
        assert not second.is_cancelled

    def test_other_sessions_are_not_affected(self):
        scheduler = DependencyScheduler(recording_registry([]))
        first = scheduler.begin_request('s1', 'schema')
        scheduler.begin_request('s2', 'schema')

        assert not first.is_cancelled

    def test_superseded_run_leaves_result_untouched(self, database_session):
        holder = {}

        def supersede(context, result):
            holder['scheduler'].begin_request(database_session.session_id, 'schema')

        scheduler = DependencyScheduler(recording_registry([], hooks={'schema': supersede}))
        holder['scheduler'] = scheduler

        with pytest.raises(AnalysisCancelled):
            scheduler.run_analyzer(database_session, 'schema')
        assert database_session.result is None

    def test_cancel_between_steps_stops_the_chain(self, database_session):
        calls = []
        holder = {}

        def cancel(context, result):
            holder['scheduler'].cancel_session(database_session.session_id)

        scheduler = DependencyScheduler(recording_registry(calls, hooks={'schema': cancel}))
        holder['scheduler'] = scheduler

        with pytest.raises(AnalysisCancelled):
            scheduler.run_analyzer(database_session, 'quality')
        assert calls == ['schema']
        assert database_session.result is None


class TestServerRuns:
    """Full fan-out and targeted single-database refreshes"""

    @pytest.fixture
    def scheduler(self, settings):
        return DependencyScheduler(create_analyzer_registry(settings), settings)

    def test_full_run_covers_every_database(self, scheduler, server_session):
        result = scheduler.run_analyzer(server_session, 'relationships')

        assert result.is_server_mode
        assert result.databases == ['Sales', 'Shared']
        tables = {(t.database_name, t.table_name) for t in result.schema.tables}
        assert ('Sales', 'Orders') in tables
        assert ('Shared', 'Lookups') in tables

    def test_satisfied_full_run_does_not_fan_out(self, scheduler, server_session, server):
        scheduler.run_analyzer(server_session, 'schema')
        opened = len(server.opened)

        scheduler.run_analyzer(server_session, 'schema')

        assert len(server.opened) == opened

    def test_rerun_keeps_sections_outside_the_request(self, scheduler, server_session):
        scheduler.run_analyzer(server_session, 'indexing')
        inventory = server_session.result.index_inventory

        result = scheduler.run_analyzer(server_session, 'relationships')

        assert result.index_inventory == inventory
        assert result.relationships is not None

    def test_targeted_refresh_twice_has_no_duplicates(self, scheduler, server_session):
        scheduler.run_analyzer(server_session, 'relationships')
        baseline = len(server_session.result.schema.tables)

        scheduler.run_analyzer(server_session, 'relationships', target_database='Sales')
        result = scheduler.run_analyzer(server_session, 'relationships', target_database='Sales')

        assert len(result.schema.tables) == baseline
        names = [n.full_name.lower() for n in result.relationships.dependencies]
        assert len(names) == len(set(names))
        assert len([fk for fk in result.relationships.explicit_relationships
                    if fk.from_database == 'Sales']) == 1

    def test_targeted_refresh_leaves_other_databases(self, scheduler, server_session):
        scheduler.run_analyzer(server_session, 'schema')

        result = scheduler.run_analyzer(server_session, 'schema', target_database='Sales')

        assert [t.table_name for t in result.schema.tables if t.database_name == 'Shared'] == ['Lookups']

    def test_forced_targeted_refresh_purges_downstream_rows(self, scheduler, server_session):
        scheduler.run_analyzer(server_session, 'indexing')
        assert any(i.database_name == 'Sales' for i in server_session.result.index_inventory)

        result = scheduler.run_analyzer(server_session, 'schema', force=True, target_database='Sales')

        assert not any(i.database_name == 'Sales' for i in result.index_inventory)
        assert result.schema is not None

    def test_targeted_run_on_empty_session(self, scheduler, server_session):
        result = scheduler.run_analyzer(server_session, 'schema', target_database='Shared')

        assert result.is_server_mode
        assert result.databases == ['Shared']
        assert {t.database_name for t in result.schema.tables} == {'Shared'}

    def test_run_analyzers_fans_out_once(self, scheduler, server_session, server):
        before = len(server.opened)
        scheduler.run_analyzers(server_session, ['schema', 'relationships', 'indexing'])

        # one administrative connection plus one per database
        assert server.opened[before:] == ['master', 'Sales', 'Shared']
        result = server_session.result
        assert result.relationships is not None
        assert result.index_inventory is not None

    def test_forced_rerun_with_every_database_failing_reads_as_analyzed(self, scheduler, server_session, server):
        scheduler.run_analyzer(server_session, 'indexing')
        server.unreachable.update({'Sales', 'Shared'})

        result = scheduler.run_analyzer(server_session, 'indexing', force=True)

        assert result.index_inventory == []
        assert result.index_recommendations == []
        assert [f.database_name for f in result.failed_databases] == ['Sales', 'Shared']
