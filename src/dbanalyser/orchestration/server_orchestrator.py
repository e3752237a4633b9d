"""
Server-wide fan-out: analyze every user database on a server and merge the results
"""

from datetime import datetime
from typing import List, Optional

from ..analyzers.base import AnalysisContext
from ..analyzers.models import AnalysisResult, DatabaseError
from ..analyzers.registry import AnalyzerRegistry
from ..config import AnalysisSettings
from ..database.factory import ProviderBundle
from ..exceptions import AnalysisCancelled
from ..utils.cancellation import CancellationToken
from ..utils.logger import get_logger
from .merge import empty_section, merge_database_result, resolve_cross_database_references
from .pipeline import COMPLETED, RUNNING, ProgressCallback, execute_analyzers, notify


class ServerFanoutOrchestrator:
    """Runs the same analyzer set against each database, one connection at a time"""

    def __init__(self, bundle: ProviderBundle, registry: AnalyzerRegistry,
                 settings: Optional[AnalysisSettings] = None):
        self.bundle = bundle
        self.registry = registry
        self.settings = settings
        self.logger = get_logger(__name__)

    def enumerate_databases(self, connection_string: str):
        """Return (server name, user databases) using a throwaway administrative connection"""
        factory = self.bundle.factory
        admin_connection = factory.set_database(connection_string, factory.default_system_database)
        with factory.create(admin_connection) as provider:
            server_name = provider.server_name
            databases = self.bundle.server_queries.enumerate_databases(provider)
        return server_name, databases

    def run(self, connection_string: str, analyzer_names: List[str],
            on_progress: Optional[ProgressCallback] = None,
            cancel_token: Optional[CancellationToken] = None) -> AnalysisResult:
        # each database starts from an empty result, so prerequisites run too
        names = self.registry.closure_of(analyzer_names)
        server_name, databases = self.enumerate_databases(connection_string)
        self.logger.info(
            f"Server analysis started on {server_name}: found {len(databases)} databases "
            f"[{', '.join(databases)}]"
        )

        merged = AnalysisResult(database_name=server_name, analyzed_at=datetime.now(), is_server_mode=True)
        sections = [s for name in names for s in self.registry.sections_for(name)]
        for section in sections:
            merged.apply({section: empty_section(section, server_name)})

        total = len(databases)
        for position, database in enumerate(databases, 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            try:
                notify(on_progress, f"Analyzing {database}", position, total, RUNNING)
                db_result = self._analyze_database(connection_string, database, names, cancel_token)
                merge_database_result(merged, db_result, database, sections)
                merged.databases.append(database)
                notify(on_progress, f"Analyzed {database}", position, total, COMPLETED)
            except AnalysisCancelled:
                raise
            except Exception as e:
                self.logger.error(f"Failed to analyze database {database}: {e}")
                merged.failed_databases.append(DatabaseError(database, str(e)))

        resolve_cross_database_references(merged)

        self.logger.info(
            f"Server analysis completed: {len(merged.databases)} succeeded, "
            f"{len(merged.failed_databases)} failed"
        )
        return merged

    def _analyze_database(self, connection_string: str, database: str, names: List[str],
                          cancel_token: Optional[CancellationToken]) -> AnalysisResult:
        factory = self.bundle.factory
        with factory.create(factory.set_database(connection_string, database)) as provider:
            db_result = AnalysisResult(database_name=database)
            context = AnalysisContext(provider, self.bundle, self.settings, cancel_token)
            execute_analyzers(self.registry, names, context, db_result)
        return db_result
