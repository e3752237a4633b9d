"""
Schema inventory analyzer
"""

from collections import defaultdict
from typing import Any, Dict, List

from ..database.models import (
    ColumnInfo, DatabaseSchema, ForeignKeyInfo, FunctionInfo, IndexInfo, JobInfo,
    JobStepInfo, SequenceInfo, StoredProcedureInfo, SynonymInfo, TableInfo,
    TriggerInfo, UserDefinedTypeInfo, ViewInfo,
)
from ..database.rows import ColumnRow
from ..utils.logger import get_logger
from .base import AnalysisContext, Analyzer
from .models import AnalysisResult

logger = get_logger(__name__)

BASE_TABLE = 'BASE TABLE'
VIEW = 'VIEW'


def _column_from_row(row: ColumnRow) -> ColumnInfo:
    return ColumnInfo(
        name=row.column_name,
        data_type=row.data_type,
        max_length=row.max_length,
        precision=row.precision,
        scale=row.scale,
        is_nullable=row.is_nullable,
        is_primary_key=row.is_primary_key,
        is_identity=row.is_identity,
        is_computed=row.is_computed,
        default_value=row.default_value,
        ordinal_position=row.ordinal_position,
    )


class SchemaAnalyzer(Analyzer):
    """Build the schema inventory from the catalog queries"""

    name = 'schema'
    sections = ('schema',)

    def analyze(self, context: AnalysisContext, result: AnalysisResult) -> Dict[str, Any]:
        provider = context.provider
        catalog = context.catalog_queries
        database_name = provider.database_name
        schema = DatabaseSchema(database_name=database_name)

        all_columns = catalog.get_all_columns(provider)

        indexes: Dict[str, List[IndexInfo]] = defaultdict(list)
        for row in catalog.get_all_indexes(provider):
            columns = [c.strip() for c in row.columns.split(',') if c.strip()]
            indexes[f"{row.schema_name}.{row.table_name}"].append(IndexInfo(
                name=row.index_name,
                index_type=row.index_type,
                is_unique=row.is_unique,
                is_clustered=row.is_clustered,
                columns=columns,
            ))

        foreign_keys: Dict[str, List[ForeignKeyInfo]] = defaultdict(list)
        for row in catalog.get_all_foreign_keys(provider):
            foreign_keys[f"{row.from_schema}.{row.from_table}"].append(ForeignKeyInfo(
                name=row.fk_name,
                from_schema=row.from_schema,
                from_table=row.from_table,
                from_column=row.from_column,
                to_schema=row.to_schema,
                to_table=row.to_table,
                to_column=row.to_column,
                delete_rule=row.delete_rule,
                update_rule=row.update_rule,
            ))

        table_columns: Dict[tuple, List[ColumnInfo]] = defaultdict(list)
        view_columns: Dict[tuple, List[ColumnInfo]] = defaultdict(list)
        for row in all_columns:
            table_type = (row.table_type or '').upper()
            key = (row.schema_name, row.table_name)
            if table_type == BASE_TABLE:
                table_columns[key].append(_column_from_row(row))
            elif table_type == VIEW:
                view_columns[key].append(_column_from_row(row))

        for schema_name, table_name in sorted(table_columns):
            columns = sorted(table_columns[(schema_name, table_name)], key=lambda c: c.ordinal_position)
            key = f"{schema_name}.{table_name}"
            schema.tables.append(TableInfo(
                schema_name=schema_name,
                table_name=table_name,
                columns=columns,
                indexes=indexes.get(key, []),
                foreign_keys=foreign_keys.get(key, []),
            ))

        for row in catalog.get_all_views(provider):
            columns = sorted(view_columns.get((row.schema_name, row.view_name), []),
                             key=lambda c: c.ordinal_position)
            schema.views.append(ViewInfo(
                schema_name=row.schema_name,
                view_name=row.view_name,
                definition=row.definition or '',
                columns=columns,
            ))

        schema.stored_procedures = [
            StoredProcedureInfo(r.schema_name, r.procedure_name, r.definition or '', r.last_modified)
            for r in catalog.get_stored_procedures(provider)
        ]
        schema.functions = [
            FunctionInfo(r.schema_name, r.function_name, r.function_type, r.definition or '', r.last_modified)
            for r in catalog.get_functions(provider)
        ]
        schema.triggers = [
            TriggerInfo(r.schema_name, r.trigger_name, r.parent_table, r.trigger_type,
                        r.trigger_events, r.is_enabled, r.definition or '')
            for r in catalog.get_triggers(provider)
        ]
        schema.synonyms = [
            SynonymInfo(r.schema_name, r.synonym_name, r.base_object_name)
            for r in catalog.get_synonyms(provider)
        ]
        schema.sequences = [
            SequenceInfo(r.schema_name, r.sequence_name, r.data_type, r.current_value,
                         r.increment, r.min_value, r.max_value, r.is_cycling)
            for r in catalog.get_sequences(provider)
        ]
        schema.user_defined_types = [
            UserDefinedTypeInfo(r.schema_name, r.type_name, r.base_type,
                                r.is_table_type, r.is_nullable, r.max_length)
            for r in catalog.get_user_defined_types(provider)
        ]

        for job in catalog.get_jobs(provider, database_name):
            schema.jobs.append(JobInfo(
                job_name=job.job_name,
                description=job.description or '',
                is_enabled=job.is_enabled,
                steps=[JobStepInfo(s.step_id, s.step_name, s.subsystem_type,
                                   s.step_database_name, s.command or '')
                       for s in job.steps],
                last_run_date=job.last_run_date,
                schedule_description=job.schedule_description,
            ))

        logger.info(
            f"Schema for {database_name}: {len(schema.tables)} tables, {len(schema.views)} views, "
            f"{len(schema.stored_procedures)} procedures, {len(schema.functions)} functions"
        )
        return {'schema': schema}
