"""
Provider factories, bundles and the registry that looks them up by engine name
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.engine import make_url

from .adapters import DatabaseAdapter, SQLAlchemyAdapter
from .queries import (
    CatalogQueries, PerformanceQueries, ServerQueries,
    MySQLCatalogQueries, MySQLPerformanceQueries, MySQLServerQueries,
    PostgreSQLCatalogQueries, PostgreSQLPerformanceQueries, PostgreSQLServerQueries,
    SQLServerCatalogQueries, SQLServerPerformanceQueries, SQLServerServerQueries,
)


class ProviderFactory:
    """Creates adapters for one engine and rewrites its connection strings"""

    def __init__(self, provider_type: str, dialect: str, default_driver: str,
                 default_system_database: str, aliases: Tuple[str, ...] = (),
                 adapter_class: Callable[..., DatabaseAdapter] = SQLAlchemyAdapter):
        self.provider_type = provider_type
        self.dialect = dialect
        self.default_driver = default_driver
        self.default_system_database = default_system_database
        self.aliases = aliases
        self.adapter_class = adapter_class

    def normalize_connection_string(self, connection_string: str) -> str:
        """Fill in the default driver so every URL names one explicitly"""
        url = make_url(connection_string.strip())
        backend = url.get_backend_name()
        if backend in self.aliases:
            url = url.set(drivername=url.drivername.replace(backend, self.dialect, 1))
        elif backend != self.dialect:
            raise ValueError(
                f"Connection string is for '{url.get_backend_name()}', expected '{self.dialect}'"
            )
        if '+' not in url.drivername:
            url = url.set(drivername=f"{self.dialect}+{self.default_driver}")
        return url.render_as_string(hide_password=False)

    def is_server_mode(self, connection_string: str) -> bool:
        """No database in the URL means the whole server is the target"""
        return not make_url(connection_string).database

    def set_database(self, connection_string: str, database: str) -> str:
        url = make_url(connection_string).set(database=database)
        return url.render_as_string(hide_password=False)

    def create(self, connection_string: str) -> DatabaseAdapter:
        """Create and connect an adapter"""
        adapter = self.adapter_class(connection_string, self.provider_type)
        adapter.connect()
        return adapter


@dataclass
class ProviderBundle:
    """Everything engine-specific an analysis run needs"""
    provider_type: str
    factory: ProviderFactory
    catalog_queries: CatalogQueries
    performance_queries: PerformanceQueries
    server_queries: ServerQueries


class ProviderRegistry:
    """Case-insensitive lookup of provider bundles by engine name"""

    ALIASES = {
        'postgres': 'postgresql',
        'mssql': 'sqlserver',
    }

    def __init__(self, bundles: Optional[List[ProviderBundle]] = None):
        self._bundles: Dict[str, ProviderBundle] = {}
        for bundle in bundles or []:
            self.register(bundle)

    def register(self, bundle: ProviderBundle):
        self._bundles[bundle.provider_type.lower()] = bundle

    def get_bundle(self, provider_type: str) -> ProviderBundle:
        key = (provider_type or '').strip().lower()
        key = self.ALIASES.get(key, key)
        bundle = self._bundles.get(key)
        if bundle is None:
            raise ValueError(f"Unsupported database type: {provider_type}")
        return bundle

    def get_supported_types(self) -> List[str]:
        return sorted(self._bundles.keys())


def create_default_registry() -> ProviderRegistry:
    """Registry with every engine shipped in this package"""
    return ProviderRegistry([
        ProviderBundle(
            provider_type='postgresql',
            factory=ProviderFactory('postgresql', 'postgresql', 'psycopg2', 'postgres',
                                    aliases=('postgres',)),
            catalog_queries=PostgreSQLCatalogQueries(),
            performance_queries=PostgreSQLPerformanceQueries(),
            server_queries=PostgreSQLServerQueries(),
        ),
        ProviderBundle(
            provider_type='mysql',
            factory=ProviderFactory('mysql', 'mysql', 'pymysql', 'information_schema'),
            catalog_queries=MySQLCatalogQueries(),
            performance_queries=MySQLPerformanceQueries(),
            server_queries=MySQLServerQueries(),
        ),
        ProviderBundle(
            provider_type='sqlserver',
            factory=ProviderFactory('sqlserver', 'mssql', 'pyodbc', 'master'),
            catalog_queries=SQLServerCatalogQueries(),
            performance_queries=SQLServerPerformanceQueries(),
            server_queries=SQLServerServerQueries(),
        ),
    ])
