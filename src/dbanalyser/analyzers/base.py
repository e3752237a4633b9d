"""
Analyzer contract and the context handed to every analyzer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..config import AnalysisSettings
from ..database.adapters import DatabaseAdapter
from ..database.factory import ProviderBundle
from ..database.queries import CatalogQueries, PerformanceQueries, ServerQueries
from ..exceptions import PrecedenceViolation
from ..utils.cancellation import CancellationToken
from .models import AnalysisResult


@dataclass
class AnalysisContext:
    """Connection plus the engine-specific query sets for one database"""
    provider: DatabaseAdapter
    bundle: ProviderBundle
    settings: Optional[AnalysisSettings] = None
    cancel_token: Optional[CancellationToken] = None

    @property
    def catalog_queries(self) -> CatalogQueries:
        return self.bundle.catalog_queries

    @property
    def performance_queries(self) -> PerformanceQueries:
        return self.bundle.performance_queries

    @property
    def server_queries(self) -> ServerQueries:
        return self.bundle.server_queries

    @property
    def provider_type(self) -> str:
        return self.bundle.provider_type


class Analyzer(ABC):
    """A named unit that produces the result sections it owns"""

    name: str = ''
    sections: Tuple[str, ...] = ()

    @abstractmethod
    def analyze(self, context: AnalysisContext, result: AnalysisResult) -> Dict[str, Any]:
        """Read context and prior sections; return {section: value} for owned sections only"""
        pass

    def require(self, result: AnalysisResult, section: str, label: str):
        if result.get_section(section) is None:
            raise PrecedenceViolation(self.name, label)
