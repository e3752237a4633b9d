"""
Registry of the closed set of analyzers and their dependency table
"""

import json
import os
from typing import Dict, Iterable, List, Optional

import networkx as nx

from ..exceptions import UnknownAnalyzer
from .base import Analyzer
from .index_advisor import IndexAdvisor
from .profile_analyzer import DataProfileAnalyzer
from .quality_analyzer import QualityAnalyzer
from .relationship_analyzer import RelationshipAnalyzer
from .schema_analyzer import SchemaAnalyzer
from .usage_analyzer import UsageAnalyzer

DEPENDENCIES_FILE = os.path.join(os.path.dirname(__file__), 'dependencies.json')


def load_dependency_map(path: str = DEPENDENCIES_FILE) -> Dict[str, List[str]]:
    """Load the analyzer -> prerequisites table"""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return {name: list(deps) for name, deps in data.items()}


class AnalyzerRegistry:
    """Maps analyzer names to implementations, resolved once at construction"""

    def __init__(self, analyzers: Iterable[Analyzer],
                 dependencies: Optional[Dict[str, List[str]]] = None):
        self._analyzers: Dict[str, Analyzer] = {}
        for analyzer in analyzers:
            self._analyzers[analyzer.name.lower()] = analyzer

        if dependencies is None:
            dependencies = load_dependency_map()

        # edges run prerequisite -> dependent
        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(self._analyzers)
        self.dependencies: Dict[str, List[str]] = {}
        for name in self._analyzers:
            deps = [d.lower() for d in dependencies.get(name, [])]
            missing = [d for d in deps if d not in self._analyzers]
            if missing:
                raise ValueError(f"Analyzer '{name}' depends on unregistered analyzers: {missing}")
            self.dependencies[name] = deps
            self.graph.add_edges_from((dep, name) for dep in deps)

        position = {name: i for i, name in enumerate(self._analyzers)}
        try:
            # registration order breaks ties so the order is stable
            self._topological = list(nx.lexicographical_topological_sort(self.graph, key=position.get))
        except nx.NetworkXUnfeasible:
            cycle = nx.find_cycle(self.graph)
            raise ValueError(f"Analyzer dependency cycle: {' -> '.join(u for u, _ in cycle)}")
        self._position = {name: i for i, name in enumerate(self._topological)}

    @property
    def names(self) -> List[str]:
        return list(self._analyzers.keys())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._analyzers

    def get(self, name: str) -> Analyzer:
        analyzer = self._analyzers.get(name.lower())
        if analyzer is None:
            raise UnknownAnalyzer(name)
        return analyzer

    def dependencies_of(self, name: str) -> List[str]:
        self.get(name)
        return list(self.dependencies[name.lower()])

    def transitive_dependents(self, name: str) -> List[str]:
        """Every analyzer whose output is derived, directly or not, from `name`"""
        self.get(name)
        return self._sorted(nx.descendants(self.graph, name.lower()))

    def prerequisite_closure(self, name: str) -> List[str]:
        """The analyzer and everything it needs, prerequisites first"""
        self.get(name)
        return self._sorted(nx.ancestors(self.graph, name.lower()) | {name.lower()})

    def sections_for(self, name: str) -> List[str]:
        return list(self.get(name).sections)

    def ordered(self, names: Iterable[str]) -> List[str]:
        """Names sorted so every analyzer follows its prerequisites"""
        wanted = {n.lower() for n in names}
        for name in wanted:
            self.get(name)
        return self._sorted(wanted)

    def closure_of(self, names: Iterable[str]) -> List[str]:
        """The requested analyzers plus all their prerequisites, in execution order"""
        wanted = set()
        for name in names:
            wanted.update(self.prerequisite_closure(name))
        return self._sorted(wanted)

    def _sorted(self, names: Iterable[str]) -> List[str]:
        return sorted(names, key=self._position.__getitem__)


def create_analyzer_registry(settings=None) -> AnalyzerRegistry:
    """Registry with the six built-in analyzers"""
    return AnalyzerRegistry([
        SchemaAnalyzer(),
        DataProfileAnalyzer(),
        RelationshipAnalyzer(),
        QualityAnalyzer(),
        UsageAnalyzer(settings=settings),
        IndexAdvisor(),
    ])
