"""
Index inventory and recommendations
"""

import re
from typing import Any, Dict, List

from ..database.models import TableInfo
from ..database.queries import CatalogQueries
from ..utils.logger import get_logger
from .base import AnalysisContext, Analyzer
from .models import AnalysisResult, IndexInventoryItem, IndexRecommendation, IssueSeverity

logger = get_logger(__name__)

ERROR_IMPACT = 10000
WARNING_IMPACT = 1000


def impact_severity(impact: float) -> IssueSeverity:
    if impact > ERROR_IMPACT:
        return IssueSeverity.ERROR
    if impact > WARNING_IMPACT:
        return IssueSeverity.WARNING
    return IssueSeverity.INFO


class IndexAdvisor(Analyzer):
    """Unused, missing and duplicate index detection"""

    name = 'indexing'
    sections = ('index_recommendations', 'index_inventory')

    def analyze(self, context: AnalysisContext, result: AnalysisResult) -> Dict[str, Any]:
        self.require(result, 'schema', 'Schema')

        inventory = self._query_inventory(context)
        recommendations: List[IndexRecommendation] = []
        recommendations.extend(self._find_unused(context.catalog_queries, inventory))
        recommendations.extend(self._find_missing(context))
        recommendations.extend(self._find_duplicates(result.schema.tables))

        return {'index_recommendations': recommendations, 'index_inventory': inventory}

    def _query_inventory(self, context: AnalysisContext) -> List[IndexInventoryItem]:
        """Usage-joined inventory, then catalog only, then nothing"""
        performance = context.performance_queries
        try:
            rows = performance.get_index_inventory(context.provider)
        except Exception as e:
            logger.warning(f"Index usage statistics unavailable, falling back to catalog: {e}")
            try:
                rows = performance.get_index_inventory_catalog_only(context.provider)
            except Exception as e2:
                logger.warning(f"Index catalog query failed: {e2}")
                return []

        return [
            IndexInventoryItem(
                schema_name=r.schema_name,
                table_name=r.table_name,
                index_name=r.index_name,
                index_type=r.index_type,
                is_unique=r.is_unique,
                is_clustered=r.is_clustered,
                columns=r.columns or '',
                user_seeks=r.user_seeks or 0,
                user_scans=r.user_scans or 0,
                user_lookups=r.user_lookups or 0,
                user_updates=r.user_updates or 0,
                size_kb=r.size_kb or 0,
            )
            for r in rows
        ]

    def _find_unused(self, catalog: CatalogQueries, inventory: List[IndexInventoryItem]) -> List[IndexRecommendation]:
        found = []
        for idx in inventory:
            if idx.is_clustered or idx.is_unique:
                continue
            if idx.user_seeks or idx.user_scans or idx.user_lookups or not idx.user_updates:
                continue
            table = catalog.quote_table(idx.schema_name, idx.table_name)
            found.append(IndexRecommendation(
                category='Unused',
                severity=IssueSeverity.WARNING,
                schema_name=idx.schema_name,
                table_name=idx.table_name,
                description=(f"Index {idx.index_name} on {idx.schema_name}.{idx.table_name} has zero reads "
                             f"but {idx.user_updates:,} write operations."),
                recommendation=f"DROP INDEX {catalog.quote_identifier(idx.index_name)} ON {table}",
                index_name=idx.index_name,
                user_seeks=0,
                user_scans=0,
                user_lookups=0,
                user_updates=idx.user_updates,
            ))
        return found

    def _find_missing(self, context: AnalysisContext) -> List[IndexRecommendation]:
        catalog = context.catalog_queries
        try:
            rows = context.performance_queries.get_missing_indexes(context.provider)
        except Exception as e:
            logger.warning(f"Missing index statistics unavailable: {e}")
            return []

        found = []
        for row in rows:
            impact = row.impact_score or 0.0
            key_columns = ', '.join(c for c in (row.equality_columns, row.inequality_columns) if c and c.strip())
            name_suffix = re.sub(r"\W+", '_', key_columns).strip('_')
            index_name = f"IX_{row.table_name}_{name_suffix}" if name_suffix else f"IX_{row.table_name}"
            create_sql = (f"CREATE INDEX {catalog.quote_identifier(index_name)} "
                          f"ON {catalog.quote_table(row.schema_name, row.table_name)} ({key_columns})")
            if row.include_columns and row.include_columns.strip():
                create_sql += f" INCLUDE ({row.include_columns})"

            found.append(IndexRecommendation(
                category='Missing',
                severity=impact_severity(impact),
                schema_name=row.schema_name,
                table_name=row.table_name,
                description=(f"Missing index on {row.schema_name}.{row.table_name}: "
                             f"equality [{row.equality_columns or 'none'}], "
                             f"inequality [{row.inequality_columns or 'none'}]"),
                recommendation=create_sql,
                impact_score=round(impact, 2),
                equality_columns=row.equality_columns,
                inequality_columns=row.inequality_columns,
                include_columns=row.include_columns,
                user_seeks=row.user_seeks,
                user_scans=row.user_scans,
            ))
        return found

    def _find_duplicates(self, tables: List[TableInfo]) -> List[IndexRecommendation]:
        """Non-clustered indexes whose key columns are a leading prefix of another's"""
        found = []
        for table in tables:
            indexes = [i for i in table.indexes if not i.is_clustered and i.columns]
            for i, a in enumerate(indexes):
                for b in indexes[i + 1:]:
                    shorter, longer = (a, b) if len(a.columns) <= len(b.columns) else (b, a)
                    is_prefix = all(col.lower() == longer.columns[pos].lower()
                                    for pos, col in enumerate(shorter.columns))
                    if not is_prefix:
                        continue
                    found.append(IndexRecommendation(
                        category='Duplicate',
                        severity=IssueSeverity.INFO,
                        schema_name=table.schema_name,
                        table_name=table.table_name,
                        description=(f"Index {shorter.name} columns ({', '.join(shorter.columns)}) "
                                     f"are a prefix of {longer.name} ({', '.join(longer.columns)})."),
                        recommendation=f"Consider dropping {shorter.name} if {longer.name} covers the same queries.",
                        index_name=shorter.name,
                    ))
        return found
