"""
Schema quality checks
"""

import re
from typing import Any, Dict, List, Set

from ..database.models import TableInfo
from .base import AnalysisContext, Analyzer
from .models import AnalysisResult, IssueSeverity, QualityIssue, RelationshipMap

MIXED_CASE_RE = re.compile(r"[A-Z][a-z]")

SQL_RESERVED_WORDS = {
    'SELECT', 'INSERT', 'UPDATE', 'DELETE', 'FROM', 'WHERE', 'ORDER', 'GROUP', 'BY',
    'TABLE', 'INDEX', 'VIEW', 'CREATE', 'ALTER', 'DROP', 'KEY', 'PRIMARY', 'FOREIGN',
    'COLUMN', 'DATABASE', 'SCHEMA', 'USER', 'ROLE', 'GRANT', 'REVOKE', 'TYPE',
    'NAME', 'VALUE', 'VALUES', 'STATUS', 'DATE', 'TIME', 'TIMESTAMP', 'LEVEL',
    'COMMENT', 'ACTION', 'CONDITION', 'RESULT', 'FUNCTION', 'PROCEDURE',
}

UNBOUNDED_TYPES = {'text', 'ntext', 'longtext', 'mediumtext'}
VARIABLE_LENGTH_TYPES = {'nvarchar', 'varchar', 'varbinary'}


class QualityAnalyzer(Analyzer):
    """Design, naming and performance smells in the schema"""

    name = 'quality'
    sections = ('quality_issues',)

    def analyze(self, context: AnalysisContext, result: AnalysisResult) -> Dict[str, Any]:
        self.require(result, 'schema', 'Schema')
        self.require(result, 'relationships', 'Relationship')

        issues: List[QualityIssue] = []
        for table in result.schema.tables:
            self._check_missing_primary_key(table, issues)
            self._check_unindexed_foreign_keys(table, issues)
            self._check_naming(table, issues)
            self._check_unbounded_columns(table, issues)

        self._check_undeclared_relationships(result.relationships, issues)
        self._check_orphaned_tables(result.schema.tables, result.relationships, issues)

        return {'quality_issues': issues}

    def _check_missing_primary_key(self, table: TableInfo, issues: List[QualityIssue]):
        if not table.primary_keys:
            issues.append(QualityIssue(
                category='Design',
                severity=IssueSeverity.ERROR,
                object_name=table.full_name,
                description='Table has no primary key.',
                recommendation='Add a primary key to ensure entity integrity and improve query performance.',
            ))

    def _check_unindexed_foreign_keys(self, table: TableInfo, issues: List[QualityIssue]):
        for fk in table.foreign_keys:
            has_index = any(
                idx.columns and idx.columns[0].lower() == fk.from_column.lower()
                for idx in table.indexes
            )
            if not has_index:
                issues.append(QualityIssue(
                    category='Performance',
                    severity=IssueSeverity.WARNING,
                    object_name=f"{table.full_name}.{fk.from_column}",
                    description=f"Foreign key column '{fk.from_column}' has no index.",
                    recommendation='Add an index on the FK column to improve JOIN and DELETE performance.',
                ))

    def _check_naming(self, table: TableInfo, issues: List[QualityIssue]):
        if MIXED_CASE_RE.search(table.table_name) and '_' in table.table_name:
            issues.append(QualityIssue(
                category='Naming',
                severity=IssueSeverity.INFO,
                object_name=table.full_name,
                description='Table name mixes PascalCase and snake_case.',
                recommendation='Choose a consistent naming convention.',
            ))

        for column in table.columns:
            if column.name.upper() in SQL_RESERVED_WORDS:
                issues.append(QualityIssue(
                    category='Naming',
                    severity=IssueSeverity.WARNING,
                    object_name=f"{table.full_name}.{column.name}",
                    description=f"Column name '{column.name}' is a SQL reserved word.",
                    recommendation='Rename the column to avoid potential issues with queries.',
                ))

    def _check_unbounded_columns(self, table: TableInfo, issues: List[QualityIssue]):
        for column in table.columns:
            data_type = column.data_type.lower()
            if data_type in VARIABLE_LENGTH_TYPES and column.max_length == -1:
                label = f"{data_type.upper()}(MAX)"
            elif data_type in UNBOUNDED_TYPES:
                label = data_type.upper()
            else:
                continue
            issues.append(QualityIssue(
                category='Design',
                severity=IssueSeverity.INFO,
                object_name=f"{table.full_name}.{column.name}",
                description=f"Column uses {label}.",
                recommendation='Consider whether a bounded length would be more appropriate.',
            ))

    def _check_undeclared_relationships(self, relationships: RelationshipMap, issues: List[QualityIssue]):
        for rel in relationships.implicit_relationships:
            issues.append(QualityIssue(
                category='Integrity',
                severity=IssueSeverity.INFO,
                object_name=f"{rel.from_schema}.{rel.from_table}.{rel.from_column}",
                description=(f"Column appears to reference {rel.to_schema}.{rel.to_table}.{rel.to_column} "
                             f"(confidence {rel.confidence:.0%}) but has no foreign key constraint."),
                recommendation='Declare a foreign key if the relationship is real.',
            ))

    def _check_orphaned_tables(self, tables: List[TableInfo], relationships: RelationshipMap,
                               issues: List[QualityIssue]):
        if len(tables) <= 1:
            return

        related: Set[str] = set()
        for fk in relationships.explicit_relationships:
            related.add(f"{fk.from_schema}.{fk.from_table}".lower())
            related.add(f"{fk.to_schema}.{fk.to_table}".lower())
        for rel in relationships.implicit_relationships:
            related.add(f"{rel.from_schema}.{rel.from_table}".lower())
            related.add(f"{rel.to_schema}.{rel.to_table}".lower())

        for table in tables:
            if table.full_name.lower() not in related:
                issues.append(QualityIssue(
                    category='Design',
                    severity=IssueSeverity.INFO,
                    object_name=table.full_name,
                    description='Table has no foreign key relationships (orphaned).',
                    recommendation='Verify this table is intentionally standalone.',
                ))
