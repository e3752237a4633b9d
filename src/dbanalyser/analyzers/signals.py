"""
Usage signals: independent evaluators that each emit weighted observations
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from .base import AnalysisContext
from .models import AnalysisResult, SignalResult, UsageAnalysis


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime('%Y-%m-%d %H:%M') if value else 'unknown'


class UsageSignal(ABC):
    """One source of usage evidence"""

    name: str = ''

    @abstractmethod
    def evaluate(self, context: AnalysisContext, result: AnalysisResult,
                 usage: UsageAnalysis) -> List[SignalResult]:
        pass


class DmvTableReadsSignal(UsageSignal):
    """Table read/write counters since server start"""

    name = 'DMV Table Reads'

    def evaluate(self, context, result, usage):
        results = []
        uptime_days = usage.server_uptime_days or 0

        for row in context.performance_queries.get_table_usage_stats(context.provider):
            object_name = f"{row.schema_name}.{row.table_name}"
            if row.total_reads > 0 and uptime_days >= 7:
                results.append(SignalResult(
                    object_name, 'Table', 1.0,
                    f"Table has {row.total_reads:,} reads and {row.total_writes:,} writes since server start"))
            elif row.total_reads == 0 and row.total_writes == 0 and uptime_days >= 30:
                results.append(SignalResult(
                    object_name, 'Table', -0.8,
                    f"No reads or writes detected in {uptime_days} days of uptime"))
            # under a week of uptime is not enough data either way

        return results


class DmvProcExecutionSignal(UsageSignal):
    """Procedure and function execution counters since server start"""

    name = 'DMV Proc Execution'

    def evaluate(self, context, result, usage):
        results = []
        uptime_days = usage.server_uptime_days or 0
        performance = context.performance_queries

        observations = [(f"{r.schema_name}.{r.proc_name}", 'Procedure', r.execution_count, r.last_execution)
                        for r in performance.get_proc_execution_stats(context.provider)]
        observations += [(f"{r.schema_name}.{r.func_name}", 'Function', r.execution_count, r.last_execution)
                         for r in performance.get_function_execution_stats(context.provider)]

        for object_name, object_type, count, last_execution in observations:
            count = count or 0
            if count > 0:
                results.append(SignalResult(
                    object_name, object_type, 1.0,
                    f"Executed {count:,} times, last at {_format_time(last_execution)}"))
            elif uptime_days >= 30:
                results.append(SignalResult(
                    object_name, object_type, -0.8,
                    f"Never executed in {uptime_days} days of uptime"))

        return results


class RowCountSignal(UsageSignal):
    """Empty tables lean unused; populated ones lean active"""

    name = 'Row Count'

    def evaluate(self, context, result, usage):
        results = []
        for profile in result.profiles or []:
            if profile.row_count == 0:
                results.append(SignalResult(profile.full_name, 'Table', -0.3, 'Table has 0 rows'))
            else:
                results.append(SignalResult(profile.full_name, 'Table', 0.2,
                                            f"Table has {profile.row_count:,} rows"))
        return results


class DependencyOrphanSignal(UsageSignal):
    """Objects nothing else refers to"""

    name = 'Dependency Orphan'

    def evaluate(self, context, result, usage):
        results = []
        schema = result.schema
        if schema is None:
            return results

        fk_targets: Set[str] = set()
        fk_sources: Set[str] = set()
        for table in schema.tables:
            for fk in table.foreign_keys:
                fk_targets.add(f"{fk.to_schema}.{fk.to_table}".lower())
                fk_sources.add(f"{fk.from_schema}.{fk.from_table}".lower())

        dep_targets: Set[str] = set()
        dep_sources: Set[str] = set()
        if result.relationships is not None:
            for dep in result.relationships.view_dependencies:
                dep_targets.add(f"{dep.to_schema}.{dep.to_name}".lower())
                dep_sources.add(f"{dep.from_schema}.{dep.from_name}".lower())

        for table in schema.tables:
            key = table.full_name.lower()
            ref_count = sum(key in s for s in (fk_targets, fk_sources, dep_targets, dep_sources))
            if ref_count == 0:
                results.append(SignalResult(table.full_name, 'Table', -0.5,
                                            'Not referenced by any FK, view, or procedure'))
            elif ref_count >= 2:
                results.append(SignalResult(table.full_name, 'Table', 0.3,
                                            f"Referenced by {ref_count} relationship types"))

        for view in schema.views:
            if view.full_name.lower() in dep_targets:
                results.append(SignalResult(view.full_name, 'View', 0.3, 'View is referenced by other objects'))
            else:
                results.append(SignalResult(view.full_name, 'View', -0.5,
                                            'View is not referenced by any other object'))

        for proc in schema.stored_procedures:
            if proc.full_name.lower() not in dep_targets:
                results.append(SignalResult(proc.full_name, 'Procedure', -0.5,
                                            'Procedure is not referenced by any other database object'))

        for func in schema.functions:
            if func.full_name.lower() not in dep_targets:
                results.append(SignalResult(func.full_name, 'Function', -0.5,
                                            'Function is not referenced by any other database object'))

        return results


class NamingPatternSignal(UsageSignal):
    """Names that suggest temporary, backup or archived objects"""

    name = 'Naming Pattern'

    SUSPICIOUS_PREFIXES = ('tmp', 'temp', 'bak', 'backup', 'old', 'test', '_', 'zz')
    SUSPICIOUS_CONTAINS = ('deprecated', 'archive')

    def evaluate(self, context, result, usage):
        results = []
        schema = result.schema
        if schema is None:
            return results

        candidates = ([(t.full_name, t.table_name, 'Table') for t in schema.tables]
                      + [(v.full_name, v.view_name, 'View') for v in schema.views]
                      + [(p.full_name, p.procedure_name, 'Procedure') for p in schema.stored_procedures]
                      + [(f.full_name, f.function_name, 'Function') for f in schema.functions])

        for object_name, simple_name, object_type in candidates:
            evidence = self._match(simple_name.lower())
            if evidence:
                results.append(SignalResult(object_name, object_type, -0.4, evidence))

        return results

    def _match(self, lower: str) -> Optional[str]:
        for prefix in self.SUSPICIOUS_PREFIXES:
            if lower.startswith(prefix):
                return f"Name starts with '{prefix}' and may be temporary or deprecated"
        for pattern in self.SUSPICIOUS_CONTAINS:
            if pattern in lower:
                return f"Name contains '{pattern}' and may be deprecated or archived"
        return None


class QueryStoreSignal(UsageSignal):
    """Execution history that survives restarts (SQL Server Query Store)"""

    name = 'Query Store'

    def evaluate(self, context, result, usage):
        results = []
        performance = context.performance_queries
        if not performance.is_query_store_enabled(context.provider):
            return results

        for row in performance.get_query_store_proc_stats(context.provider):
            object_name = f"{row.schema_name}.{row.object_name}"
            object_type = row.object_type or 'Procedure'
            if row.total_executions > 0:
                span = ''
                if row.first_execution and row.last_execution:
                    span = f" over {(row.last_execution - row.first_execution).days} days"
                results.append(SignalResult(
                    object_name, object_type, 1.0,
                    f"Query Store: {row.total_executions:,} executions{span}, "
                    f"last at {_format_time(row.last_execution)}"))
            else:
                results.append(SignalResult(object_name, object_type, -0.6,
                                            'Query Store: no executions recorded'))

        if result.schema is not None:
            results.extend(self._table_references(context, result))

        return results

    def _table_references(self, context: AnalysisContext, result: AnalysisResult) -> List[SignalResult]:
        top_n = context.settings.query_store_top_queries if context.settings else 200
        texts = context.performance_queries.get_query_store_top_queries(context.provider, top_n)

        search: List[Tuple[re.Pattern, str]] = []
        for table in result.schema.tables:
            terms = '|'.join(re.escape(t) for t in (table.full_name, table.table_name))
            search.append((re.compile(rf"(?<![\w])(?:{terms})(?![\w])", re.IGNORECASE), table.full_name))

        totals: Dict[str, Tuple[int, Optional[datetime]]] = {}
        for row in texts:
            if not row.query_text:
                continue
            for pattern, full_name in search:
                if not pattern.search(row.query_text):
                    continue
                executions, last = totals.get(full_name, (0, None))
                if last is None or (row.last_execution and row.last_execution > last):
                    last = row.last_execution
                totals[full_name] = (executions + row.total_executions, last)

        return [
            SignalResult(full_name, 'Table', 0.8,
                         f"Query Store: referenced in ad-hoc queries with {executions:,} total executions, "
                         f"last at {_format_time(last)}")
            for full_name, (executions, last) in totals.items()
            if executions > 0
        ]


def default_signals() -> List[UsageSignal]:
    return [
        DmvTableReadsSignal(),
        DmvProcExecutionSignal(),
        RowCountSignal(),
        DependencyOrphanSignal(),
        NamingPatternSignal(),
        QueryStoreSignal(),
    ]
