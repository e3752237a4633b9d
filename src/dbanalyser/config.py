"""
Runtime configuration loaded from the environment and an optional .env file
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_ANALYZERS = ['schema', 'profiling', 'relationships', 'quality', 'usage']


def _split_list(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


@dataclass
class AnalysisSettings:
    """Settings shared by the session service, server and CLI"""
    default_provider: str = 'postgresql'
    connection_string: Optional[str] = None
    default_analyzers: List[str] = field(default_factory=lambda: list(DEFAULT_ANALYZERS))
    session_idle_timeout: timedelta = timedelta(minutes=30)
    sweep_interval: timedelta = timedelta(minutes=5)
    progress_webhook_url: Optional[str] = None
    progress_history_size: int = 200
    query_store_top_queries: int = 200
    host: str = '0.0.0.0'
    port: int = 8080
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'AnalysisSettings':
        """Build settings from environment variables"""
        return cls(
            default_provider=os.getenv('DB_PROVIDER', 'postgresql'),
            connection_string=os.getenv('DB_CONNECTION_STRING'),
            default_analyzers=_split_list(os.getenv('ANALYZERS'), DEFAULT_ANALYZERS),
            session_idle_timeout=timedelta(minutes=float(os.getenv('SESSION_IDLE_TIMEOUT_MINUTES', 30))),
            sweep_interval=timedelta(minutes=float(os.getenv('SESSION_SWEEP_INTERVAL_MINUTES', 5))),
            progress_webhook_url=os.getenv('PROGRESS_WEBHOOK_URL') or None,
            progress_history_size=int(os.getenv('PROGRESS_HISTORY_SIZE', 200)),
            query_store_top_queries=int(os.getenv('QUERY_STORE_TOP_QUERIES', 200)),
            host=os.getenv('HOST', '0.0.0.0'),
            port=int(os.getenv('PORT', 8080)),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        )
