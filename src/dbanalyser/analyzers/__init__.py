"""
Analyzers that produce the sections of an analysis result
"""

from .base import AnalysisContext, Analyzer
from .index_advisor import IndexAdvisor
from .models import (
    AnalysisResult, ColumnProfile, DatabaseError, DependencyNode, ImplicitRelationship,
    IndexInventoryItem, IndexRecommendation, IssueSeverity, ObjectDependency, ObjectUsage,
    QualityIssue, RelationshipMap, SignalResult, TableProfile, UsageAnalysis, UsageLevel,
)
from .profile_analyzer import DataProfileAnalyzer
from .quality_analyzer import QualityAnalyzer
from .registry import AnalyzerRegistry, create_analyzer_registry, load_dependency_map
from .relationship_analyzer import RelationshipAnalyzer
from .schema_analyzer import SchemaAnalyzer
from .usage_analyzer import UsageAnalyzer

__all__ = [
    'AnalysisContext', 'Analyzer', 'AnalyzerRegistry', 'create_analyzer_registry',
    'load_dependency_map', 'SchemaAnalyzer', 'DataProfileAnalyzer', 'RelationshipAnalyzer',
    'QualityAnalyzer', 'UsageAnalyzer', 'IndexAdvisor', 'AnalysisResult', 'ColumnProfile',
    'TableProfile', 'ImplicitRelationship', 'ObjectDependency', 'DependencyNode',
    'RelationshipMap', 'QualityIssue', 'IssueSeverity', 'SignalResult', 'ObjectUsage',
    'UsageAnalysis', 'UsageLevel', 'IndexInventoryItem', 'IndexRecommendation', 'DatabaseError',
]
