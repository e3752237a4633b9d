"""
Scheduling, server fan-out, result merging and session management
"""

from .merge import (
    merge_database_result, merge_server_result, qualify_name, remove_database_rows,
    resolve_cross_database_references,
)
from .pipeline import ProgressCallback, execute_analyzers
from .scheduler import DependencyScheduler
from .server_orchestrator import ServerFanoutOrchestrator
from .sessions import ConnectResult, Session, SessionManager

__all__ = [
    'merge_database_result',
    'merge_server_result',
    'qualify_name',
    'remove_database_rows',
    'resolve_cross_database_references',
    'ProgressCallback',
    'execute_analyzers',
    'DependencyScheduler',
    'ServerFanoutOrchestrator',
    'ConnectResult',
    'Session',
    'SessionManager',
]
