"""
Data models for database schema representation
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass
class ColumnInfo:
    """Information about a table or view column"""
    name: str
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
class IndexInfo:
    """Index declared on a table"""
    name: str
    index_type: str
    is_unique: bool
    is_clustered: bool
    columns: List[str] = field(default_factory=list)


@dataclass
class ForeignKeyInfo:
    """Declared foreign key constraint (one row per column pair)"""
    name: str
    from_schema: str
    from_table: str
    from_column: str
    to_schema: str
    to_table: str
    to_column: str
    delete_rule: str = 'NO ACTION'
    update_rule: str = 'NO ACTION'
    from_database: Optional[str] = None
    to_database: Optional[str] = None

    @property
    def is_cross_database(self) -> bool:
        return (self.from_database is not None and self.to_database is not None
                and self.from_database.lower() != self.to_database.lower())


@dataclass
class TableInfo:
    """Information about a database table"""
    schema_name: str
    table_name: str
    columns: List[ColumnInfo] = field(default_factory=list)
    indexes: List[IndexInfo] = field(default_factory=list)
    foreign_keys: List[ForeignKeyInfo] = field(default_factory=list)
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}"

    @property
    def primary_keys(self) -> List[str]:
        return [c.name for c in self.columns if c.is_primary_key]


@dataclass
class ViewInfo:
    schema_name: str
    view_name: str
    definition: str = ''
    columns: List[ColumnInfo] = field(default_factory=list)
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.view_name}"


@dataclass
class StoredProcedureInfo:
    schema_name: str
    procedure_name: str
    definition: str = ''
    last_modified: Optional[datetime] = None
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.procedure_name}"


@dataclass
class FunctionInfo:
    schema_name: str
    function_name: str
    function_type: str = 'Scalar'
    definition: str = ''
    last_modified: Optional[datetime] = None
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.function_name}"


@dataclass
class TriggerInfo:
    schema_name: str
    trigger_name: str
    parent_table: str
    trigger_type: str = ''
    trigger_events: str = ''
    is_enabled: bool = True
    definition: str = ''
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.trigger_name}"


@dataclass
class SynonymInfo:
    """Alias pointing at an object that may live in another database"""
    schema_name: str
    synonym_name: str
    base_object_name: str
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.synonym_name}"

    def parse_base_object(self) -> Tuple[Optional[str], str, str]:
        """Split the base object into (database, schema, name)"""
        parts = [p.strip('[]"` ') for p in self.base_object_name.split('.')]
        if len(parts) >= 4:
            return parts[-3], parts[-2], parts[-1]
        if len(parts) == 3:
            return parts[0], parts[1], parts[2]
        if len(parts) == 2:
            return None, parts[0], parts[1]
        return None, 'dbo', parts[0]


@dataclass
class SequenceInfo:
    schema_name: str
    sequence_name: str
    data_type: str
    current_value: int = 0
    increment: int = 1
    min_value: int = 0
    max_value: int = 0
    is_cycling: bool = False
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.sequence_name}"


@dataclass
class UserDefinedTypeInfo:
    schema_name: str
    type_name: str
    base_type: str
    is_table_type: bool = False
    is_nullable: bool = True
    max_length: Optional[int] = None
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.type_name}"


@dataclass
class JobStepInfo:
    step_id: int
    step_name: str
    subsystem_type: str
    database_name: Optional[str]
    command: str = ''


@dataclass
class JobInfo:
    """Scheduled agent job (server level, filtered to the steps touching one database)"""
    job_name: str
    description: str = ''
    is_enabled: bool = True
    steps: List[JobStepInfo] = field(default_factory=list)
    last_run_date: Optional[datetime] = None
    schedule_description: Optional[str] = None
    # databases whose analysis reported the job; filled in when results are merged
    source_databases: List[str] = field(default_factory=list)


@dataclass
class DatabaseSchema:
    """Complete database schema information"""
    database_name: str
    tables: List[TableInfo] = field(default_factory=list)
    views: List[ViewInfo] = field(default_factory=list)
    stored_procedures: List[StoredProcedureInfo] = field(default_factory=list)
    functions: List[FunctionInfo] = field(default_factory=list)
    triggers: List[TriggerInfo] = field(default_factory=list)
    synonyms: List[SynonymInfo] = field(default_factory=list)
    sequences: List[SequenceInfo] = field(default_factory=list)
    user_defined_types: List[UserDefinedTypeInfo] = field(default_factory=list)
    jobs: List[JobInfo] = field(default_factory=list)

    def find_table(self, schema_name: str, table_name: str) -> Optional[TableInfo]:
        for table in self.tables:
            if (table.schema_name.lower() == schema_name.lower()
                    and table.table_name.lower() == table_name.lower()):
                return table
        return None

    def is_empty(self) -> bool:
        return not any([self.tables, self.views, self.stored_procedures, self.functions,
                        self.triggers, self.synonyms, self.sequences,
                        self.user_defined_types, self.jobs])
