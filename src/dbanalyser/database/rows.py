"""
Engine-agnostic row shapes returned by the catalog, performance and server query sets.

Every engine aliases its result columns to the field names below so one mapping
helper can turn raw dict rows into typed rows.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

T = TypeVar('T')

_TRUE_STRINGS = {'1', 'y', 'yes', 'true', 't'}


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def map_row(row: Dict[str, Any], cls: Type[T]) -> T:
    """Build a row dataclass from a dict, matching keys case-insensitively"""
    lowered = {str(k).lower(): v for k, v in row.items()}
    values = {}
    for f in fields(cls):
        if f.name not in lowered:
            continue
        value = lowered[f.name]
        if value is not None:
            if f.type is bool:
                value = _to_bool(value)
            elif f.type is int:
                value = int(value)
            elif f.type is float:
                value = float(value)
            elif f.type is str:
                value = str(value)
        values[f.name] = value
    return cls(**values)


def map_rows(rows: List[Dict[str, Any]], cls: Type[T]) -> List[T]:
    return [map_row(row, cls) for row in rows]


@dataclass
class ColumnRow:
    schema_name: str
    table_name: str
    table_type: str
    column_name: str
    data_type: str
    max_length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    is_nullable: bool = True
    is_primary_key: bool = False
    is_identity: bool = False
    is_computed: bool = False
    default_value: Optional[str] = None
    ordinal_position: int = 0


@dataclass
class IndexRow:
    schema_name: str
    table_name: str
    index_name: str
    index_type: str = ''
    is_unique: bool = False
    is_clustered: bool = False
    columns: str = ''


@dataclass
class ForeignKeyRow:
    fk_name: str
    from_schema: str
    from_table: str
    from_column: str
    to_schema: str
    to_table: str
    to_column: str
    delete_rule: str = 'NO ACTION'
    update_rule: str = 'NO ACTION'


@dataclass
class ViewRow:
    schema_name: str
    view_name: str
    definition: str = ''


@dataclass
class StoredProcRow:
    schema_name: str
    procedure_name: str
    definition: str = ''
    last_modified: Optional[datetime] = None


@dataclass
class FunctionRow:
    schema_name: str
    function_name: str
    function_type: str = 'Scalar'
    definition: str = ''
    last_modified: Optional[datetime] = None


@dataclass
class TriggerRow:
    schema_name: str
    trigger_name: str
    parent_table: str
    trigger_type: str = ''
    trigger_events: str = ''
    is_enabled: bool = True
    definition: str = ''


@dataclass
class SynonymRow:
    schema_name: str
    synonym_name: str
    base_object_name: str


@dataclass
class SequenceRow:
    schema_name: str
    sequence_name: str
    data_type: str
    current_value: int = 0
    increment: int = 1
    min_value: int = 0
    max_value: int = 0
    is_cycling: bool = False


@dataclass
class UdtRow:
    schema_name: str
    type_name: str
    base_type: str
    is_table_type: bool = False
    is_nullable: bool = True
    max_length: Optional[int] = None


@dataclass
class JobStepRow:
    """Flat job/step row; the catalog query set groups these into JobRow"""
    job_name: str
    description: str = ''
    is_enabled: bool = True
    step_id: int = 0
    step_name: str = ''
    subsystem_type: str = ''
    step_database_name: Optional[str] = None
    command: str = ''
    last_run_date: Optional[datetime] = None
    schedule_description: Optional[str] = None


@dataclass
class JobRow:
    job_name: str
    description: str = ''
    is_enabled: bool = True
    steps: List[JobStepRow] = field(default_factory=list)
    last_run_date: Optional[datetime] = None
    schedule_description: Optional[str] = None


@dataclass
class ObjectDependencyRow:
    from_schema: str
    from_name: str
    from_type: str
    to_schema: str
    to_name: str
    to_type: str
    to_database: Optional[str] = None


@dataclass
class IndexUsageRow:
    schema_name: str
    table_name: str
    index_name: str
    index_type: str = ''
    is_unique: bool = False
    is_clustered: bool = False
    columns: str = ''
    user_seeks: int = 0
    user_scans: int = 0
    user_lookups: int = 0
    user_updates: int = 0
    size_kb: int = 0


@dataclass
class MissingIndexRow:
    schema_name: str
    table_name: str
    impact_score: float
    equality_columns: Optional[str] = None
    inequality_columns: Optional[str] = None
    include_columns: Optional[str] = None
    user_seeks: Optional[int] = None
    user_scans: Optional[int] = None


@dataclass
class TableUsageRow:
    schema_name: str
    table_name: str
    total_reads: int = 0
    total_writes: int = 0
    last_seek: Optional[datetime] = None
    last_scan: Optional[datetime] = None
    last_lookup: Optional[datetime] = None


@dataclass
class ProcUsageRow:
    schema_name: str
    proc_name: str
    execution_count: Optional[int] = None
    last_execution: Optional[datetime] = None


@dataclass
class FuncUsageRow:
    schema_name: str
    func_name: str
    execution_count: Optional[int] = None
    last_execution: Optional[datetime] = None


@dataclass
class QsProcRow:
    schema_name: str
    object_name: str
    object_type: str
    total_executions: int = 0
    last_execution: Optional[datetime] = None
    first_execution: Optional[datetime] = None


@dataclass
class QsTextRow:
    query_text: str
    total_executions: int = 0
    last_execution: Optional[datetime] = None
