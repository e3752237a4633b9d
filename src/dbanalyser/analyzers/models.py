"""
Result models produced by the analyzers
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..database.models import DatabaseSchema, ForeignKeyInfo


class IssueSeverity(str, Enum):
    INFO = 'info'
    WARNING = 'warning'
    ERROR = 'error'


class UsageLevel(str, Enum):
    ACTIVE = 'Active'
    LOW = 'Low'
    UNUSED = 'Unused'
    UNKNOWN = 'Unknown'


@dataclass
class ColumnProfile:
    column_name: str
    data_type: str
    total_count: int = 0
    null_count: int = 0
    distinct_count: int = 0
    min_value: Optional[str] = None
    max_value: Optional[str] = None

    @property
    def null_percentage(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.null_count / self.total_count * 100


@dataclass
class TableProfile:
    schema_name: str
    table_name: str
    row_count: int = 0
    column_profiles: List[ColumnProfile] = field(default_factory=list)
    database_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}"


@dataclass
class ImplicitRelationship:
    """Foreign-key-like link inferred from column naming"""
    from_schema: str
    from_table: str
    from_column: str
    to_schema: str
    to_table: str
    to_column: str
    confidence: float
    reason: str
    from_database: Optional[str] = None
    to_database: Optional[str] = None


@dataclass
class ObjectDependency:
    """Edge from a referencing object to the object it uses"""
    from_schema: str
    from_name: str
    from_type: str
    to_schema: str
    to_name: str
    to_type: str
    to_database: Optional[str] = None
    detected_via: str = 'catalog'
    from_database: Optional[str] = None

    @property
    def is_cross_database(self) -> bool:
        if self.to_database is None:
            return False
        return self.from_database is None or self.from_database.lower() != self.to_database.lower()

    @property
    def from_full_name(self) -> str:
        if self.from_database:
            return f"{self.from_database}.{self.from_schema}.{self.from_name}"
        return f"{self.from_schema}.{self.from_name}"

    @property
    def to_full_name(self) -> str:
        if self.to_database:
            return f"{self.to_database}.{self.to_schema}.{self.to_name}"
        return f"{self.to_schema}.{self.to_name}"


@dataclass
class DependencyNode:
    """One schema object in the dependency graph; edges are name keys"""
    schema_name: str
    name: str
    object_type: str
    database_name: Optional[str] = None
    depends_on: List[str] = field(default_factory=list)
    referenced_by: List[str] = field(default_factory=list)
    transitive_impact: List[str] = field(default_factory=list)
    external_database: Optional[str] = None

    @property
    def full_name(self) -> str:
        if self.database_name:
            return f"{self.database_name}.{self.schema_name}.{self.name}"
        return f"{self.schema_name}.{self.name}"

    @property
    def direct_connections(self) -> int:
        return len(self.depends_on) + len(self.referenced_by)

    @property
    def importance_score(self) -> int:
        return len(self.referenced_by) * 3 + len(self.depends_on) + len(self.transitive_impact)


@dataclass
class RelationshipMap:
    explicit_relationships: List[ForeignKeyInfo] = field(default_factory=list)
    implicit_relationships: List[ImplicitRelationship] = field(default_factory=list)
    view_dependencies: List[ObjectDependency] = field(default_factory=list)
    dependencies: List[DependencyNode] = field(default_factory=list)
    circular_references: List[List[str]] = field(default_factory=list)

    def find_node(self, name: str) -> Optional[DependencyNode]:
        """Find a node by full, schema-qualified or bare name (case-insensitive)"""
        wanted = name.strip().lower()
        for node in self.dependencies:
            if node.full_name.lower() == wanted:
                return node
        for node in self.dependencies:
            if f"{node.schema_name}.{node.name}".lower() == wanted:
                return node
        for node in self.dependencies:
            if node.name.lower() == wanted:
                return node
        return None

    def is_empty(self) -> bool:
        return not any([self.explicit_relationships, self.implicit_relationships,
                        self.view_dependencies, self.dependencies])


@dataclass
class QualityIssue:
    category: str
    severity: IssueSeverity
    object_name: str
    description: str
    recommendation: Optional[str] = None
    database_name: Optional[str] = None


@dataclass
class SignalResult:
    object_name: str
    object_type: str
    weight: float
    evidence: str


@dataclass
class ObjectUsage:
    object_name: str
    object_type: str
    database_name: Optional[str] = None
    usage_level: UsageLevel = UsageLevel.UNKNOWN
    score: float = 0.0
    evidence: List[str] = field(default_factory=list)


@dataclass
class UsageAnalysis:
    server_start_time: Optional[datetime] = None
    server_uptime_days: Optional[int] = None
    objects: List[ObjectUsage] = field(default_factory=list)


@dataclass
class IndexInventoryItem:
    schema_name: str
    table_name: str
    index_name: str
    index_type: str
    is_unique: bool
    is_clustered: bool
    columns: str
    user_seeks: int = 0
    user_scans: int = 0
    user_lookups: int = 0
    user_updates: int = 0
    size_kb: int = 0
    database_name: Optional[str] = None


@dataclass
class IndexRecommendation:
    category: str
    severity: IssueSeverity
    schema_name: str
    table_name: str
    description: str
    recommendation: Optional[str] = None
    impact_score: Optional[float] = None
    equality_columns: Optional[str] = None
    inequality_columns: Optional[str] = None
    include_columns: Optional[str] = None
    index_name: Optional[str] = None
    user_seeks: Optional[int] = None
    user_scans: Optional[int] = None
    user_lookups: Optional[int] = None
    user_updates: Optional[int] = None
    database_name: Optional[str] = None


@dataclass
class DatabaseError:
    database_name: str
    error_message: str


def is_section_empty(value: Any) -> bool:
    """True for a missing section or one that carries no rows"""
    if value is None:
        return True
    if isinstance(value, (DatabaseSchema, RelationshipMap)):
        return value.is_empty()
    if isinstance(value, UsageAnalysis):
        return not value.objects
    if isinstance(value, list):
        return not value
    return False


@dataclass
class AnalysisResult:
    """Aggregate for one database or one server; a None section has not been run"""
    database_name: str
    analyzed_at: datetime = field(default_factory=datetime.now)
    schema: Optional[DatabaseSchema] = None
    profiles: Optional[List[TableProfile]] = None
    relationships: Optional[RelationshipMap] = None
    quality_issues: Optional[List[QualityIssue]] = None
    usage_analysis: Optional[UsageAnalysis] = None
    index_recommendations: Optional[List[IndexRecommendation]] = None
    index_inventory: Optional[List[IndexInventoryItem]] = None
    is_server_mode: bool = False
    databases: List[str] = field(default_factory=list)
    failed_databases: List[DatabaseError] = field(default_factory=list)

    def get_section(self, section: str) -> Any:
        return getattr(self, section)

    def has_sections(self, sections: Iterable[str]) -> bool:
        return all(getattr(self, s) is not None for s in sections)

    def clear_sections(self, sections: Iterable[str]):
        for section in sections:
            setattr(self, section, None)

    def apply(self, fragment: Dict[str, Any]):
        """Write an analyzer's fragment into its sections"""
        for section, value in fragment.items():
            if not hasattr(self, section):
                raise AttributeError(f"AnalysisResult has no section '{section}'")
            setattr(self, section, value)
