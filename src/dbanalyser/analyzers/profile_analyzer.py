"""
Data profiling analyzer: row counts and per-column statistics
"""

from typing import Any, Dict, List

from ..database.models import ColumnInfo, TableInfo
from ..utils.logger import get_logger
from .base import AnalysisContext, Analyzer
from .models import AnalysisResult, ColumnProfile, TableProfile

logger = get_logger(__name__)

PROFILEABLE_TYPES = {
    # numeric
    'int', 'integer', 'bigint', 'smallint', 'tinyint', 'mediumint', 'decimal', 'numeric',
    'float', 'real', 'double', 'double precision', 'money', 'smallmoney',
    # text
    'char', 'varchar', 'nchar', 'nvarchar', 'text', 'ntext', 'character', 'character varying',
    'tinytext', 'mediumtext', 'longtext',
    # temporal
    'date', 'datetime', 'datetime2', 'smalldatetime', 'datetimeoffset', 'time', 'timestamp',
    'timestamp without time zone', 'timestamp with time zone', 'time without time zone',
    # other
    'bit', 'boolean', 'bool', 'uniqueidentifier', 'uuid',
}

# MIN/MAX is not defined (or not meaningful) for these
NO_MIN_MAX_TYPES = {'bit', 'boolean', 'bool', 'text', 'ntext', 'uniqueidentifier', 'uuid',
                    'tinytext', 'mediumtext', 'longtext'}


class DataProfileAnalyzer(Analyzer):
    """Row counts, null/distinct counts and value ranges for every table"""

    name = 'profiling'
    sections = ('profiles',)

    def analyze(self, context: AnalysisContext, result: AnalysisResult) -> Dict[str, Any]:
        self.require(result, 'schema', 'Schema')

        profiles: List[TableProfile] = []
        for table in result.schema.tables:
            if context.cancel_token is not None:
                context.cancel_token.raise_if_cancelled()
            try:
                profiles.append(self._profile_table(context, table))
            except Exception as e:
                logger.warning(f"Skipping profile of {table.full_name}: {e}")

        return {'profiles': profiles}

    def _profile_table(self, context: AnalysisContext, table: TableInfo) -> TableProfile:
        catalog = context.catalog_queries
        provider = context.provider
        profile = TableProfile(schema_name=table.schema_name, table_name=table.table_name)

        count = provider.execute_scalar(catalog.build_count_sql(table.schema_name, table.table_name))
        profile.row_count = int(count or 0)

        if profile.row_count == 0:
            profile.column_profiles = [ColumnProfile(column_name=c.name, data_type=c.data_type)
                                       for c in table.columns]
            return profile

        for column in table.columns:
            try:
                profile.column_profiles.append(
                    self._profile_column(context, table, column, profile.row_count))
            except Exception as e:
                logger.warning(f"Skipping column {table.full_name}.{column.name}: {e}")

        return profile

    def _profile_column(self, context: AnalysisContext, table: TableInfo,
                        column: ColumnInfo, row_count: int) -> ColumnProfile:
        catalog = context.catalog_queries
        provider = context.provider
        profile = ColumnProfile(column_name=column.name, data_type=column.data_type, total_count=row_count)

        base_type = column.data_type.lower()
        if base_type not in PROFILEABLE_TYPES:
            if column.is_nullable:
                sql = catalog.build_null_count_sql(table.schema_name, table.table_name, column.name)
                profile.null_count = int(provider.execute_scalar(sql) or 0)
            return profile

        sql = catalog.build_column_profile_sql(table.schema_name, table.table_name, column.name,
                                               base_type not in NO_MIN_MAX_TYPES)
        rows = provider.execute_query(sql)
        if rows:
            row = {k.lower(): v for k, v in rows[0].items()}
            profile.null_count = int(row.get('null_count') or 0)
            profile.distinct_count = int(row.get('distinct_count') or 0)
            min_value = row.get('min_value')
            max_value = row.get('max_value')
            profile.min_value = str(min_value) if min_value is not None else None
            profile.max_value = str(max_value) if max_value is not None else None

        return profile
