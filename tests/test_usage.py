"""
Tests for usage signals and score classification
"""

from datetime import datetime

import pytest

from dbanalyser.analyzers.models import (
    AnalysisResult, ObjectUsage, SignalResult, TableProfile, UsageAnalysis, UsageLevel,
)
from dbanalyser.analyzers.relationship_analyzer import RelationshipAnalyzer
from dbanalyser.analyzers.schema_analyzer import SchemaAnalyzer
from dbanalyser.analyzers.signals import (
    DmvProcExecutionSignal, DmvTableReadsSignal, NamingPatternSignal, QueryStoreSignal,
    RowCountSignal, UsageSignal,
)
from dbanalyser.analyzers.usage_analyzer import UsageAnalyzer, classify_score, score_signals, sort_usage
from dbanalyser.database.models import DatabaseSchema, StoredProcedureInfo, TableInfo
from dbanalyser.database.rows import FuncUsageRow, ProcUsageRow, QsProcRow, QsTextRow, TableUsageRow
from dbanalyser.exceptions import PrecedenceViolation

from conftest import analyze_with


class BrokenSignal(UsageSignal):
    name = 'Broken'

    def evaluate(self, context, result, usage):
        raise PermissionError('VIEW SERVER STATE permission was denied')


class TestScoring:
    """Average weight per object, classified on fixed thresholds"""

    @pytest.mark.parametrize('score, level', [
        (1.0, UsageLevel.ACTIVE),
        (0.3, UsageLevel.ACTIVE),
        (0.29, UsageLevel.LOW),
        (-0.3, UsageLevel.LOW),
        (-0.31, UsageLevel.UNUSED),
    ])
    def test_classify_score(self, score, level):
        assert classify_score(score) == level

    def test_signals_are_averaged_per_object(self):
        objects = score_signals([
            SignalResult('dbo.Orders', 'Table', 1.0, 'reads'),
            SignalResult('DBO.orders', 'table', -0.4, 'naming'),
            SignalResult('dbo.Orders', 'View', -0.5, 'same name, other type'),
        ])

        assert len(objects) == 2
        table = objects[0]
        assert table.object_name == 'dbo.Orders'
        assert table.score == 0.3
        assert table.usage_level == UsageLevel.ACTIVE
        assert table.evidence == ['reads', 'naming']

    def test_least_used_first(self):
        objects = [
            ObjectUsage('a', 'Table', usage_level=UsageLevel.ACTIVE, score=0.9),
            ObjectUsage('b', 'Table', usage_level=UsageLevel.UNKNOWN),
            ObjectUsage('c', 'Table', usage_level=UsageLevel.UNUSED, score=-0.4),
            ObjectUsage('d', 'Table', usage_level=UsageLevel.LOW, score=0.1),
            ObjectUsage('e', 'Table', usage_level=UsageLevel.UNUSED, score=-0.8),
        ]

        assert [o.object_name for o in sort_usage(objects)] == ['e', 'c', 'd', 'b', 'a']


class TestSignals:
    """Each signal in isolation"""

    def test_table_reads_need_a_week_of_uptime(self, shop_context, server):
        server.databases['Sales'].table_usage = [
            TableUsageRow('dbo', 'Orders', total_reads=1200, total_writes=30),
            TableUsageRow('dbo', 'Invoices', total_reads=0, total_writes=0),
        ]
        signal = DmvTableReadsSignal()
        result = AnalysisResult(database_name='Sales')

        def weights(uptime):
            usage = UsageAnalysis(server_uptime_days=uptime)
            return {s.object_name: s.weight for s in signal.evaluate(shop_context, result, usage)}

        assert weights(45) == {'dbo.Orders': 1.0, 'dbo.Invoices': -0.8}
        assert weights(10) == {'dbo.Orders': 1.0}
        assert weights(3) == {}

    def test_proc_execution(self, shop_context, server):
        sales = server.databases['Sales']
        sales.proc_usage = [
            ProcUsageRow('dbo', 'usp_GetOrders', 7, datetime(2026, 3, 1, 12, 0)),
            ProcUsageRow('dbo', 'usp_SyncShared', 0),
        ]
        sales.function_usage = [FuncUsageRow('dbo', 'fn_Tax', None)]
        signal = DmvProcExecutionSignal()
        result = AnalysisResult(database_name='Sales')

        found = signal.evaluate(shop_context, result, UsageAnalysis(server_uptime_days=45))

        assert [(s.object_name, s.object_type, s.weight) for s in found] == [
            ('dbo.usp_GetOrders', 'Procedure', 1.0),
            ('dbo.usp_SyncShared', 'Procedure', -0.8),
            ('dbo.fn_Tax', 'Function', -0.8),
        ]
        assert found[0].evidence == 'Executed 7 times, last at 2026-03-01 12:00'
        short_uptime = signal.evaluate(shop_context, result, UsageAnalysis(server_uptime_days=10))
        assert [s.object_name for s in short_uptime] == ['dbo.usp_GetOrders']

    def test_row_counts(self, shop_context):
        result = AnalysisResult(database_name='Sales')
        result.profiles = [TableProfile('dbo', 'Staging', 0), TableProfile('dbo', 'Orders', 1500)]

        found = RowCountSignal().evaluate(shop_context, result, UsageAnalysis())

        assert [(s.object_name, s.weight) for s in found] == [('dbo.Staging', -0.3), ('dbo.Orders', 0.2)]
        assert found[1].evidence == 'Table has 1,500 rows'

    def test_suspicious_names(self, shop_context):
        result = AnalysisResult(database_name='Sales')
        result.schema = DatabaseSchema(
            'Sales',
            tables=[TableInfo('dbo', 'tmp_Import'), TableInfo('dbo', 'Customer_Archive'), TableInfo('dbo', 'Orders')],
            stored_procedures=[StoredProcedureInfo('dbo', 'zz_Cleanup')],
        )

        found = {s.object_name: s for s in NamingPatternSignal().evaluate(shop_context, result, UsageAnalysis())}

        assert set(found) == {'dbo.tmp_Import', 'dbo.Customer_Archive', 'dbo.zz_Cleanup'}
        assert all(s.weight == -0.4 for s in found.values())
        assert "'archive'" in found['dbo.Customer_Archive'].evidence

    def test_query_store_disabled_emits_nothing(self, shop_context):
        result = analyze_with(shop_context, AnalysisResult(database_name='Sales'), SchemaAnalyzer())

        assert QueryStoreSignal().evaluate(shop_context, result, UsageAnalysis()) == []

    def test_query_store_history(self, shop_context, server):
        sales = server.databases['Sales']
        sales.query_store_enabled = True
        sales.query_store_procs = [
            QsProcRow('dbo', 'usp_GetOrders', 'Procedure', 12,
                      last_execution=datetime(2026, 1, 20), first_execution=datetime(2026, 1, 10)),
            QsProcRow('dbo', 'usp_SyncShared', 'Procedure', 0),
        ]
        sales.query_store_texts = [
            QsTextRow('SELECT * FROM dbo.Orders o JOIN Orders x ON 1 = 1', 5, datetime(2026, 1, 10, 8, 0)),
            QsTextRow('select count(*) from orders', 3, datetime(2026, 1, 12, 9, 30)),
            QsTextRow('SELECT * FROM OrdersArchive', 100, datetime(2026, 1, 15)),
        ]
        result = analyze_with(shop_context, AnalysisResult(database_name='Sales'), SchemaAnalyzer())

        found = {s.object_name: s for s in QueryStoreSignal().evaluate(shop_context, result, UsageAnalysis())}

        assert {name: s.weight for name, s in found.items()} == {
            'dbo.usp_GetOrders': 1.0,
            'dbo.usp_SyncShared': -0.6,
            'dbo.Orders': 0.8,
        }
        assert 'over 10 days' in found['dbo.usp_GetOrders'].evidence
        # one query naming the table twice counts once
        assert '8 total executions' in found['dbo.Orders'].evidence
        assert found['dbo.Orders'].evidence.endswith('last at 2026-01-12 09:30')


class TestUsageAnalyzer:

    def test_requires_schema(self, shop_context):
        with pytest.raises(PrecedenceViolation):
            UsageAnalyzer().analyze(shop_context, AnalysisResult(database_name='Sales'))

    def test_shop_usage(self, shop_context, server):
        server.databases['Sales'].table_usage = [
            TableUsageRow('dbo', 'Orders', total_reads=1200, total_writes=30),
            TableUsageRow('dbo', 'Invoices', total_reads=0, total_writes=0),
        ]
        result = analyze_with(shop_context, AnalysisResult(database_name='Sales'),
                              SchemaAnalyzer(), RelationshipAnalyzer())

        usage = UsageAnalyzer().analyze(shop_context, result)['usage_analysis']

        levels = {o.object_name: o.usage_level for o in usage.objects}
        assert usage.server_uptime_days == 45
        assert levels['dbo.Orders'] == UsageLevel.ACTIVE
        assert levels['dbo.Customers'] == UsageLevel.ACTIVE
        assert levels['dbo.Invoices'] == UsageLevel.UNUSED
        assert levels['dbo.vw_OrderSummary'] == UsageLevel.ACTIVE
        assert usage.objects[0].object_name == 'dbo.Invoices'
        assert usage.objects[-1].object_name == 'dbo.Orders'

    def test_failing_signal_is_skipped(self, shop_context):
        result = analyze_with(shop_context, AnalysisResult(database_name='Sales'), SchemaAnalyzer())

        usage = UsageAnalyzer(signals=[BrokenSignal(), NamingPatternSignal()]).analyze(
            shop_context, result)['usage_analysis']

        # nothing matched, so every object is reported without evidence
        assert len(usage.objects) == 6
        assert all(o.usage_level == UsageLevel.UNKNOWN for o in usage.objects)
        assert all(o.evidence == [] for o in usage.objects)
