"""
Tests for the analyzer registry and its dependency graph
"""

import pytest

from dbanalyser.analyzers.registry import AnalyzerRegistry, load_dependency_map
from dbanalyser.exceptions import UnknownAnalyzer

from conftest import RecordingAnalyzer, recording_registry


@pytest.fixture
def registry():
    return recording_registry([])


class TestOrdering:

    def test_shipped_table(self):
        assert load_dependency_map()['usage'] == ['schema', 'profiling', 'relationships']

    def test_topological_order_is_stable(self, registry):
        assert registry.ordered(['indexing', 'usage', 'quality', 'schema']) == \
            ['schema', 'quality', 'usage', 'indexing']

    def test_closure_adds_prerequisites(self, registry):
        assert registry.prerequisite_closure('quality') == ['schema', 'relationships', 'quality']
        assert registry.closure_of(['usage', 'indexing']) == \
            ['schema', 'profiling', 'relationships', 'usage', 'indexing']

    def test_transitive_dependents(self, registry):
        assert registry.transitive_dependents('relationships') == ['quality', 'usage']
        assert registry.transitive_dependents('indexing') == []

    def test_unknown_name(self, registry):
        with pytest.raises(UnknownAnalyzer):
            registry.ordered(['schema', 'lineage'])


class TestConstruction:

    def test_cycle_is_rejected(self):
        analyzers = [RecordingAnalyzer('a', ['schema'], []), RecordingAnalyzer('b', ['profiles'], [])]

        with pytest.raises(ValueError, match='cycle'):
            AnalyzerRegistry(analyzers, {'a': ['b'], 'b': ['a']})

    def test_unregistered_prerequisite_is_rejected(self):
        with pytest.raises(ValueError, match='unregistered'):
            AnalyzerRegistry([RecordingAnalyzer('a', ['schema'], [])], {'a': ['schema']})
