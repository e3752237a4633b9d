"""
Database adapters: the connection handle handed to analyzers
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from ..utils.logger import get_logger


class DatabaseAdapter(ABC):
    """Abstract base class for database adapters"""

    @property
    @abstractmethod
    def connection_string(self) -> str:
        """Connection string this adapter was opened with"""
        pass

    @property
    @abstractmethod
    def server_name(self) -> str:
        """Host (and port) of the server"""
        pass

    @property
    @abstractmethod
    def database_name(self) -> str:
        """Database the connection is scoped to"""
        pass

    @abstractmethod
    def connect(self) -> Any:
        """Open the underlying connection"""
        pass

    @abstractmethod
    def execute_query(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute a query and return its rows as dicts"""
        pass

    @abstractmethod
    def execute_scalar(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a query and return the first column of the first row"""
        pass

    @abstractmethod
    def close(self):
        """Release the connection"""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class SQLAlchemyAdapter(DatabaseAdapter):
    """Adapter over a SQLAlchemy engine, usable for any supported dialect"""

    def __init__(self, connection_string: str, provider_type: str = 'postgresql'):
        self._connection_string = connection_string
        self.provider_type = provider_type
        self.url = make_url(connection_string)
        self.engine = None
        self.connection = None
        self.logger = get_logger(f"{__name__}.{provider_type}")

    @property
    def connection_string(self) -> str:
        return self._connection_string

    @property
    def server_name(self) -> str:
        if self.url.host and self.url.port:
            return f"{self.url.host}:{self.url.port}"
        return self.url.host or 'localhost'

    @property
    def database_name(self) -> str:
        return self.url.database or ''

    def connect(self) -> Any:
        """Connect to the database"""
        if self.connection is not None:
            return self.connection

        try:
            self.engine = create_engine(self.url, pool_pre_ping=True)
            self.connection = self.engine.connect().execution_options(isolation_level="AUTOCOMMIT")
            self.logger.info(f"Connected to {self.server_name}/{self.database_name}")
            return self.connection
        except Exception as e:
            if self.engine is not None:
                self.engine.dispose()
                self.engine = None
            raise ConnectionError(f"{self.provider_type} connection failed: {e}")

    def execute_query(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        if self.connection is None:
            self.connect()

        try:
            result = self.connection.execute(text(query), params or {})
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            self.logger.debug(f"Query failed: {e}")
            raise

    def execute_scalar(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self.connection is None:
            self.connect()

        return self.connection.execute(text(query), params or {}).scalar()

    def close(self):
        if self.connection is not None:
            self.connection.close()
            self.connection = None
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
