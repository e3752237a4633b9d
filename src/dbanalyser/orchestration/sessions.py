"""
Connection sessions: each holds one provider, one analysis result and a lock
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..analyzers.models import AnalysisResult
from ..analyzers.registry import AnalyzerRegistry, create_analyzer_registry
from ..config import AnalysisSettings
from ..database.adapters import DatabaseAdapter
from ..database.factory import ProviderBundle, ProviderRegistry, create_default_registry
from ..exceptions import SessionNotFound
from ..utils.logger import get_logger
from ..utils.notification import ProgressNotifier
from .scheduler import DependencyScheduler


@dataclass
class Session:
    """A live connection plus the analysis accumulated on it"""
    session_id: str
    provider: DatabaseAdapter
    bundle: ProviderBundle
    connection_string: str
    is_server_mode: bool
    result: Optional[AnalysisResult] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    last_activity: datetime = field(default_factory=datetime.now)

    def touch(self):
        self.last_activity = datetime.now()


@dataclass
class ConnectResult:
    session_id: str
    database_name: str
    is_server_mode: bool
    server_name: str
    provider_type: str


class SessionManager:
    """Opens, tracks, runs and evicts analysis sessions"""

    def __init__(self, settings: Optional[AnalysisSettings] = None,
                 provider_registry: Optional[ProviderRegistry] = None,
                 analyzer_registry: Optional[AnalyzerRegistry] = None,
                 notifier: Optional[ProgressNotifier] = None,
                 scheduler: Optional[DependencyScheduler] = None):
        self.settings = settings or AnalysisSettings.from_env()
        self.provider_registry = provider_registry or create_default_registry()
        self.analyzer_registry = analyzer_registry or create_analyzer_registry(self.settings)
        self.notifier = notifier or ProgressNotifier(self.settings.progress_webhook_url,
                                                     self.settings.progress_history_size)
        self.scheduler = scheduler or DependencyScheduler(self.analyzer_registry, self.settings)
        self.logger = get_logger(__name__)

        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._cleanup_thread: Optional[threading.Thread] = None

    def connect(self, connection_string: str, provider_type: Optional[str] = None) -> ConnectResult:
        """Open a connection; a URL without a database opens a server session"""
        bundle = self.provider_registry.get_bundle(provider_type or self.settings.default_provider)
        factory = bundle.factory
        connection_string = factory.normalize_connection_string(connection_string)

        is_server_mode = factory.is_server_mode(connection_string)
        target = connection_string
        if is_server_mode:
            target = factory.set_database(connection_string, factory.default_system_database)
        provider = factory.create(target)

        session = Session(
            session_id=uuid.uuid4().hex[:12],
            provider=provider,
            bundle=bundle,
            connection_string=connection_string,
            is_server_mode=is_server_mode,
        )
        with self._lock:
            self._sessions[session.session_id] = session

        mode = 'server' if is_server_mode else 'database'
        self.logger.info(
            f"Session {session.session_id} connected to {provider.server_name}/{provider.database_name} "
            f"({bundle.provider_type}, {mode} mode)"
        )
        return ConnectResult(
            session_id=session.session_id,
            database_name=provider.database_name,
            is_server_mode=is_server_mode,
            server_name=provider.server_name,
            provider_type=bundle.provider_type,
        )

    def get_session(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def list_sessions(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def run_analyzer(self, session_id: str, analyzer: str, force: bool = False,
                     database: Optional[str] = None) -> AnalysisResult:
        self.analyzer_registry.get(analyzer)
        session = self.get_session(session_id)
        self.logger.info(f"Session {session_id}: running {analyzer}"
                         f"{' (forced)' if force else ''}{f' on {database}' if database else ''}")
        return self.scheduler.run_analyzer(session, analyzer, force, database,
                                           self.notifier.sink_for(session_id))

    def run_analysis(self, session_id: str, analyzers: Optional[List[str]] = None,
                     force: bool = False) -> Optional[AnalysisResult]:
        """Run a list of analyzers, the configured defaults when none are given"""
        names = analyzers or self.settings.default_analyzers
        for name in names:
            self.analyzer_registry.get(name)
        session = self.get_session(session_id)
        self.logger.info(f"Session {session_id}: running {', '.join(names)}")
        return self.scheduler.run_analyzers(session, names, force, self.notifier.sink_for(session_id))

    def get_result(self, session_id: str) -> Optional[AnalysisResult]:
        session = self.get_session(session_id)
        session.touch()
        return session.result

    def get_progress(self, session_id: str) -> List[Dict]:
        self.get_session(session_id)
        return self.notifier.get_history(session_id)

    def disconnect(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._release(session)
        self.logger.info(f"Session {session_id} disconnected")
        return True

    def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Evict sessions idle for longer than the configured timeout; running sessions are never idle"""
        now = now or datetime.now()
        cutoff = now - self.settings.session_idle_timeout
        with self._lock:
            expired = [s for s in self._sessions.values()
                       if s.last_activity < cutoff and not self._is_busy(s)]
            for session in expired:
                del self._sessions[session.session_id]

        for session in expired:
            self._release(session)
            self.logger.info(f"Session {session.session_id} evicted after inactivity")
        return [s.session_id for s in expired]

    def start_cleanup(self):
        if self._cleanup_thread is not None and self._cleanup_thread.is_alive():
            return
        self._stop_event.clear()
        self._cleanup_thread = threading.Thread(target=self._cleanup_loop, name='session-sweep', daemon=True)
        self._cleanup_thread.start()

    def stop_cleanup(self):
        self._stop_event.set()
        if self._cleanup_thread is not None:
            self._cleanup_thread.join(timeout=5)
            self._cleanup_thread = None

    def close_all(self):
        self.stop_cleanup()
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            self._release(session)
        if sessions:
            self.logger.info(f"Closed {len(sessions)} sessions")

    def _cleanup_loop(self):
        interval = self.settings.sweep_interval.total_seconds()
        while not self._stop_event.wait(interval):
            try:
                self.sweep()
            except Exception as e:
                self.logger.error(f"Session sweep failed: {e}")

    def _is_busy(self, session: Session) -> bool:
        return session.lock.locked() or self.scheduler.has_in_flight(session.session_id)

    def _release(self, session: Session):
        self.scheduler.cancel_session(session.session_id)
        self.notifier.clear(session.session_id)
        try:
            session.provider.close()
        except Exception as e:
            self.logger.warning(f"Error closing connection for session {session.session_id}: {e}")
