"""
Database adapters, schema models and per-engine provider bundles
"""

from .models import (
    ColumnInfo, IndexInfo, ForeignKeyInfo, TableInfo, ViewInfo, StoredProcedureInfo,
    FunctionInfo, TriggerInfo, SynonymInfo, SequenceInfo, UserDefinedTypeInfo,
    JobStepInfo, JobInfo, DatabaseSchema,
)
from .adapters import DatabaseAdapter, SQLAlchemyAdapter
from .factory import ProviderFactory, ProviderBundle, ProviderRegistry, create_default_registry

__all__ = [
    'ColumnInfo',
    'IndexInfo',
    'ForeignKeyInfo',
    'TableInfo',
    'ViewInfo',
    'StoredProcedureInfo',
    'FunctionInfo',
    'TriggerInfo',
    'SynonymInfo',
    'SequenceInfo',
    'UserDefinedTypeInfo',
    'JobStepInfo',
    'JobInfo',
    'DatabaseSchema',
    'DatabaseAdapter',
    'SQLAlchemyAdapter',
    'ProviderFactory',
    'ProviderBundle',
    'ProviderRegistry',
    'create_default_registry',
]
