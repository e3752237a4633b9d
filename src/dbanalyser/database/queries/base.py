"""
Base classes for per-engine query sets.

An engine subclass only supplies SQL text; mapping to row shapes, grouping and
profiling SQL assembly live here. A statement left as None means the engine has
no such concept and the query returns an empty list.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..adapters import DatabaseAdapter
from ..rows import (
    ColumnRow, ForeignKeyRow, FuncUsageRow, FunctionRow, IndexRow, IndexUsageRow,
    JobRow, JobStepRow, MissingIndexRow, ObjectDependencyRow, ProcUsageRow,
    QsProcRow, QsTextRow, SequenceRow, StoredProcRow, SynonymRow, TableUsageRow,
    TriggerRow, UdtRow, ViewRow, map_rows,
)
from ...utils.logger import get_logger

logger = get_logger(__name__)


def _run(provider: DatabaseAdapter, sql: Optional[str], cls, params: Optional[Dict[str, Any]] = None) -> list:
    if not sql:
        return []
    return map_rows(provider.execute_query(sql, params), cls)


class CatalogQueries:
    """Schema catalog queries"""

    COLUMNS_SQL: Optional[str] = None
    INDEXES_SQL: Optional[str] = None
    FOREIGN_KEYS_SQL: Optional[str] = None
    VIEWS_SQL: Optional[str] = None
    PROCEDURES_SQL: Optional[str] = None
    FUNCTIONS_SQL: Optional[str] = None
    TRIGGERS_SQL: Optional[str] = None
    SYNONYMS_SQL: Optional[str] = None
    SEQUENCES_SQL: Optional[str] = None
    USER_TYPES_SQL: Optional[str] = None
    JOBS_SQL: Optional[str] = None
    OBJECT_DEPENDENCIES_SQL: Optional[str] = None

    QUOTE_OPEN = '"'
    QUOTE_CLOSE = '"'
    STRING_CAST = 'VARCHAR(500)'

    def get_all_columns(self, provider: DatabaseAdapter) -> List[ColumnRow]:
        return _run(provider, self.COLUMNS_SQL, ColumnRow)

    def get_all_indexes(self, provider: DatabaseAdapter) -> List[IndexRow]:
        return _run(provider, self.INDEXES_SQL, IndexRow)

    def get_all_foreign_keys(self, provider: DatabaseAdapter) -> List[ForeignKeyRow]:
        return _run(provider, self.FOREIGN_KEYS_SQL, ForeignKeyRow)

    def get_all_views(self, provider: DatabaseAdapter) -> List[ViewRow]:
        return _run(provider, self.VIEWS_SQL, ViewRow)

    def get_stored_procedures(self, provider: DatabaseAdapter) -> List[StoredProcRow]:
        return _run(provider, self.PROCEDURES_SQL, StoredProcRow)

    def get_functions(self, provider: DatabaseAdapter) -> List[FunctionRow]:
        return _run(provider, self.FUNCTIONS_SQL, FunctionRow)

    def get_triggers(self, provider: DatabaseAdapter) -> List[TriggerRow]:
        return _run(provider, self.TRIGGERS_SQL, TriggerRow)

    def get_synonyms(self, provider: DatabaseAdapter) -> List[SynonymRow]:
        return _run(provider, self.SYNONYMS_SQL, SynonymRow)

    def get_sequences(self, provider: DatabaseAdapter) -> List[SequenceRow]:
        return _run(provider, self.SEQUENCES_SQL, SequenceRow)

    def get_user_defined_types(self, provider: DatabaseAdapter) -> List[UdtRow]:
        return _run(provider, self.USER_TYPES_SQL, UdtRow)

    def get_jobs(self, provider: DatabaseAdapter, database_name: str) -> List[JobRow]:
        """Jobs with at least one step targeting the given database"""
        flat = _run(provider, self.JOBS_SQL, JobStepRow, {'database_name': database_name})
        jobs: Dict[str, JobRow] = {}
        for step in flat:
            job = jobs.get(step.job_name)
            if job is None:
                job = JobRow(
                    job_name=step.job_name,
                    description=step.description,
                    is_enabled=step.is_enabled,
                    last_run_date=step.last_run_date,
                    schedule_description=step.schedule_description,
                )
                jobs[step.job_name] = job
            job.steps.append(step)
        return list(jobs.values())

    def get_object_dependencies(self, provider: DatabaseAdapter) -> List[ObjectDependencyRow]:
        return _run(provider, self.OBJECT_DEPENDENCIES_SQL, ObjectDependencyRow)

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace(self.QUOTE_CLOSE, self.QUOTE_CLOSE * 2)
        return f"{self.QUOTE_OPEN}{escaped}{self.QUOTE_CLOSE}"

    def quote_table(self, schema: str, table: str) -> str:
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    def build_count_sql(self, schema: str, table: str) -> str:
        return f"SELECT COUNT(*) FROM {self.quote_table(schema, table)}"

    def build_column_profile_sql(self, schema: str, table: str, column: str, can_min_max: bool) -> str:
        col = self.quote_identifier(column)
        if can_min_max:
            min_max = (f"CAST(MIN({col}) AS {self.STRING_CAST}) AS min_value, "
                       f"CAST(MAX({col}) AS {self.STRING_CAST}) AS max_value")
        else:
            min_max = "NULL AS min_value, NULL AS max_value"
        return (
            f"SELECT SUM(CASE WHEN {col} IS NULL THEN 1 ELSE 0 END) AS null_count, "
            f"COUNT(DISTINCT {col}) AS distinct_count, {min_max} "
            f"FROM {self.quote_table(schema, table)}"
        )

    def build_null_count_sql(self, schema: str, table: str, column: str) -> str:
        return (f"SELECT COUNT(*) FROM {self.quote_table(schema, table)} "
                f"WHERE {self.quote_identifier(column)} IS NULL")


class PerformanceQueries:
    """Usage telemetry queries; these need elevated permissions on most engines"""

    INDEX_INVENTORY_SQL: Optional[str] = None
    INDEX_CATALOG_SQL: Optional[str] = None
    MISSING_INDEXES_SQL: Optional[str] = None
    TABLE_USAGE_SQL: Optional[str] = None
    PROC_USAGE_SQL: Optional[str] = None
    FUNCTION_USAGE_SQL: Optional[str] = None
    QUERY_STORE_STATE_SQL: Optional[str] = None
    QUERY_STORE_PROC_SQL: Optional[str] = None
    QUERY_STORE_TOP_SQL: Optional[str] = None

    def get_index_inventory(self, provider: DatabaseAdapter) -> List[IndexUsageRow]:
        """Indexes joined with usage counters"""
        return _run(provider, self.INDEX_INVENTORY_SQL, IndexUsageRow)

    def get_index_inventory_catalog_only(self, provider: DatabaseAdapter) -> List[IndexUsageRow]:
        """Indexes from the catalog alone; counters stay at zero"""
        return _run(provider, self.INDEX_CATALOG_SQL, IndexUsageRow)

    def get_missing_indexes(self, provider: DatabaseAdapter) -> List[MissingIndexRow]:
        rows = _run(provider, self.MISSING_INDEXES_SQL, MissingIndexRow)
        for row in rows:
            # engines may report the table as a bracketed multi-part statement
            row.table_name = row.table_name.split('.')[-1].strip('[]"`')
        return rows

    def get_table_usage_stats(self, provider: DatabaseAdapter) -> List[TableUsageRow]:
        return _run(provider, self.TABLE_USAGE_SQL, TableUsageRow)

    def get_proc_execution_stats(self, provider: DatabaseAdapter) -> List[ProcUsageRow]:
        return _run(provider, self.PROC_USAGE_SQL, ProcUsageRow)

    def get_function_execution_stats(self, provider: DatabaseAdapter) -> List[FuncUsageRow]:
        return _run(provider, self.FUNCTION_USAGE_SQL, FuncUsageRow)

    def is_query_store_enabled(self, provider: DatabaseAdapter) -> bool:
        if not self.QUERY_STORE_STATE_SQL:
            return False
        try:
            state = provider.execute_scalar(self.QUERY_STORE_STATE_SQL)
        except Exception as e:
            logger.debug(f"Query store state unavailable: {e}")
            return False
        return str(state or '').upper() in ('READ_WRITE', 'READ_ONLY')

    def get_query_store_proc_stats(self, provider: DatabaseAdapter) -> List[QsProcRow]:
        return _run(provider, self.QUERY_STORE_PROC_SQL, QsProcRow)

    def get_query_store_top_queries(self, provider: DatabaseAdapter, top_n: int = 200) -> List[QsTextRow]:
        if not self.QUERY_STORE_TOP_SQL:
            return []
        return _run(provider, self.QUERY_STORE_TOP_SQL.format(top_n=int(top_n)), QsTextRow)


class ServerQueries:
    """Server-level queries run against the administrative database"""

    ENUMERATE_DATABASES_SQL: str = ''
    START_TIME_SQL: Optional[str] = None

    def enumerate_databases(self, provider: DatabaseAdapter) -> List[str]:
        rows = provider.execute_query(self.ENUMERATE_DATABASES_SQL)
        return [str(next(iter(row.values()))) for row in rows]

    def get_server_start_time(self, provider: DatabaseAdapter) -> Optional[datetime]:
        if not self.START_TIME_SQL:
            return None
        value = provider.execute_scalar(self.START_TIME_SQL)
        return value if isinstance(value, datetime) else None

    def get_server_uptime(self, provider: DatabaseAdapter) -> Tuple[Optional[datetime], Optional[int]]:
        """Return (start time, whole days up); (None, None) when not accessible"""
        try:
            start_time = self.get_server_start_time(provider)
        except Exception as e:
            logger.warning(f"Server uptime not accessible: {e}")
            return None, None
        if start_time is None:
            return None, None
        now = datetime.now(start_time.tzinfo) if start_time.tzinfo else datetime.now()
        return start_time, (now - start_time).days
