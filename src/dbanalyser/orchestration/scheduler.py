"""
Session-scoped analyzer scheduling: dependency resolution, forced refresh and result merging
"""

import copy
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..analyzers.base import AnalysisContext
from ..analyzers.models import AnalysisResult
from ..analyzers.registry import AnalyzerRegistry
from ..config import AnalysisSettings
from ..database.factory import ProviderBundle
from ..utils.cancellation import CancellationToken
from ..utils.logger import get_logger
from .merge import (
    merge_database_result, merge_server_result, remove_database_rows,
    resolve_cross_database_references,
)
from .pipeline import ProgressCallback, execute_analyzers
from .server_orchestrator import ServerFanoutOrchestrator

OrchestratorFactory = Callable[[ProviderBundle, AnalyzerRegistry, Optional[AnalysisSettings]],
                               ServerFanoutOrchestrator]


class DependencyScheduler:
    """Runs named analyzers for a session in dependency order"""

    def __init__(self, registry: AnalyzerRegistry, settings: Optional[AnalysisSettings] = None,
                 orchestrator_factory: OrchestratorFactory = ServerFanoutOrchestrator):
        self.registry = registry
        self.settings = settings
        self.orchestrator_factory = orchestrator_factory
        self.logger = get_logger(__name__)
        self._in_flight: Dict[Tuple[str, str], CancellationToken] = {}
        self._in_flight_lock = threading.Lock()

    def is_satisfied(self, name: str, result: Optional[AnalysisResult]) -> bool:
        return result is not None and result.has_sections(self.registry.sections_for(name))

    def resolve_execution_order(self, name: str, result: Optional[AnalysisResult]) -> List[str]:
        """Unsatisfied prerequisites first, then the analyzer itself; empty when up to date"""
        self.registry.get(name)
        order: List[str] = []

        def visit(current: str):
            for dep in self.registry.dependencies_of(current):
                if dep not in order and not self.is_satisfied(dep, result):
                    visit(dep)
            if current not in order and not self.is_satisfied(current, result):
                order.append(current)

        visit(name.lower())
        return order

    def resolve_full_order(self, name: str) -> List[str]:
        """The analyzer and all of its prerequisites, as needed against an empty result"""
        return self.registry.prerequisite_closure(name)

    def invalidate(self, name: str, result: AnalysisResult) -> List[str]:
        """Clear the analyzer's sections and those of everything downstream of it"""
        cleared = [name.lower()] + self.registry.transitive_dependents(name)
        for analyzer in cleared:
            result.clear_sections(self.registry.sections_for(analyzer))
        return cleared

    def begin_request(self, session_id: str, name: str) -> CancellationToken:
        """Register a new in-flight call, cancelling the one it supersedes"""
        token = CancellationToken()
        key = (session_id, name.lower())
        with self._in_flight_lock:
            previous = self._in_flight.get(key)
            if previous is not None:
                self.logger.info(f"Cancelling superseded {name} run for session {session_id}")
                previous.cancel()
            self._in_flight[key] = token
        return token

    def end_request(self, session_id: str, name: str, token: CancellationToken):
        key = (session_id, name.lower())
        with self._in_flight_lock:
            if self._in_flight.get(key) is token:
                del self._in_flight[key]

    def has_in_flight(self, session_id: str) -> bool:
        with self._in_flight_lock:
            return any(owner == session_id for owner, _ in self._in_flight)

    def cancel_session(self, session_id: str):
        with self._in_flight_lock:
            for (owner, _), token in self._in_flight.items():
                if owner == session_id:
                    token.cancel()

    def run_analyzer(self, session, name: str, force: bool = False,
                     target_database: Optional[str] = None,
                     on_progress: Optional[ProgressCallback] = None) -> AnalysisResult:
        """Run an analyzer (and whatever it still needs) for a session and commit the result"""
        name = name.lower()
        self.registry.get(name)

        if session.is_server_mode and target_database:
            return self._commit(session, name, lambda token: self._run_targeted(
                session, name, force, target_database, on_progress, token))
        if session.is_server_mode:
            return self._commit(session, name, lambda token: self._run_server(
                session, [name], force, on_progress, token))
        return self._commit(session, name, lambda token: self._run_single(
            session, name, force, on_progress, token))

    def run_analyzers(self, session, names: List[str], force: bool = False,
                      on_progress: Optional[ProgressCallback] = None) -> Optional[AnalysisResult]:
        """Run several analyzers; a server session does it with a single fan-out"""
        ordered = self.registry.ordered(names)
        if not session.is_server_mode:
            result = session.result
            for name in ordered:
                result = self.run_analyzer(session, name, force, on_progress=on_progress)
            return result

        key = ','.join(ordered)
        return self._commit(session, key, lambda token: self._run_server(
            session, ordered, force, on_progress, token))

    def _commit(self, session, key: str,
                run: Callable[[CancellationToken], AnalysisResult]) -> AnalysisResult:
        token = self.begin_request(session.session_id, key)
        try:
            with session.lock:
                token.raise_if_cancelled()
                session.touch()
                result = run(token)
                # a superseded call must not overwrite the newer one's result
                token.raise_if_cancelled()
                session.result = result
                session.touch()
                return result
        finally:
            self.end_request(session.session_id, key, token)

    def _working_copy(self, session, scope_name: str) -> AnalysisResult:
        if session.result is not None:
            return copy.deepcopy(session.result)
        return AnalysisResult(database_name=scope_name, is_server_mode=session.is_server_mode)

    def _run_single(self, session, name: str, force: bool,
                    on_progress: Optional[ProgressCallback], token: CancellationToken) -> AnalysisResult:
        working = self._working_copy(session, session.provider.database_name)
        if force:
            self.invalidate(name, working)

        order = self.resolve_execution_order(name, working)
        if not order:
            self.logger.info(f"{name} is already up to date for session {session.session_id}")
            return working

        context = AnalysisContext(session.provider, session.bundle, self.settings, token)
        execute_analyzers(self.registry, order, context, working, on_progress)
        working.analyzed_at = datetime.now()
        return working

    def _run_server(self, session, requested: List[str], force: bool,
                    on_progress: Optional[ProgressCallback], token: CancellationToken) -> AnalysisResult:
        working = self._working_copy(session, session.provider.server_name)
        if force:
            for name in requested:
                self.invalidate(name, working)

        pending = [name for name in requested if self.resolve_execution_order(name, working)]
        if not pending:
            self.logger.info(f"{', '.join(requested)} already up to date for session {session.session_id}")
            return working

        # every per-database result starts empty, so the whole prerequisite chain runs
        names = self.registry.closure_of(pending)
        orchestrator = self.orchestrator_factory(session.bundle, self.registry, self.settings)
        aggregate = orchestrator.run(session.connection_string, names, on_progress, token)

        if session.result is None:
            return aggregate
        merge_server_result(working, aggregate)
        return working

    def _run_targeted(self, session, name: str, force: bool, database: str,
                      on_progress: Optional[ProgressCallback], token: CancellationToken) -> AnalysisResult:
        working = self._working_copy(session, session.provider.server_name)
        working.is_server_mode = True

        names = self.resolve_full_order(name)
        factory = session.bundle.factory
        db_result = AnalysisResult(database_name=database)
        with factory.create(factory.set_database(session.connection_string, database)) as provider:
            context = AnalysisContext(provider, session.bundle, self.settings, token)
            execute_analyzers(self.registry, names, context, db_result, on_progress, scope=database)

        produced = [s for n in names for s in self.registry.sections_for(n)]
        if force:
            downstream: Set[str] = set()
            for dependent in self.registry.transitive_dependents(name):
                downstream.update(self.registry.sections_for(dependent))
            remove_database_rows(working, database, [s for s in downstream if s not in produced])

        merge_database_result(working, db_result, database, produced, replace=True)

        if database.lower() not in {d.lower() for d in working.databases}:
            working.databases.append(database)
        working.failed_databases = [f for f in working.failed_databases
                                    if f.database_name.lower() != database.lower()]
        resolve_cross_database_references(working)
        working.analyzed_at = datetime.now()
        return working
