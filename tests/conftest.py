"""
Shared fakes: an in-memory server of databases behind the real adapter and query-set interfaces
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set

import pytest
from sqlalchemy.engine import make_url

from dbanalyser.analyzers.base import AnalysisContext, Analyzer
from dbanalyser.analyzers.models import AnalysisResult
from dbanalyser.analyzers.registry import AnalyzerRegistry
from dbanalyser.config import AnalysisSettings
from dbanalyser.database.adapters import DatabaseAdapter
from dbanalyser.database.factory import ProviderBundle, ProviderFactory, ProviderRegistry
from dbanalyser.database.queries import CatalogQueries, PerformanceQueries, ServerQueries
from dbanalyser.database.rows import (
    ColumnRow, ForeignKeyRow, IndexRow, IndexUsageRow, ObjectDependencyRow, StoredProcRow,
    ViewRow,
)
from dbanalyser.orchestration.merge import empty_section
from dbanalyser.orchestration.sessions import Session


@dataclass
class FakeDatabase:
    """Canned catalog and telemetry rows for one database"""
    name: str
    columns: List[ColumnRow] = field(default_factory=list)
    indexes: List[IndexRow] = field(default_factory=list)
    foreign_keys: List[ForeignKeyRow] = field(default_factory=list)
    views: List[ViewRow] = field(default_factory=list)
    procedures: List[StoredProcRow] = field(default_factory=list)
    functions: list = field(default_factory=list)
    triggers: list = field(default_factory=list)
    synonyms: list = field(default_factory=list)
    object_dependencies: List[ObjectDependencyRow] = field(default_factory=list)
    index_usage: List[IndexUsageRow] = field(default_factory=list)
    index_catalog: List[IndexUsageRow] = field(default_factory=list)
    missing_indexes: list = field(default_factory=list)
    table_usage: list = field(default_factory=list)
    proc_usage: list = field(default_factory=list)
    function_usage: list = field(default_factory=list)
    query_store_enabled: bool = False
    query_store_procs: list = field(default_factory=list)
    query_store_texts: list = field(default_factory=list)
    scalars: Dict[str, Any] = field(default_factory=dict)
    query_results: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    # query-set methods that raise, e.g. {'index_inventory'}
    fail_on: Set[str] = field(default_factory=set)

    def check(self, operation: str):
        if operation in self.fail_on:
            raise PermissionError(f"permission denied for {operation}")


@dataclass
class FakeServer:
    name: str = 'srv01'
    databases: Dict[str, FakeDatabase] = field(default_factory=dict)
    unreachable: Set[str] = field(default_factory=set)
    start_time: Optional[datetime] = None
    opened: List[str] = field(default_factory=list)
    open_now: int = 0
    max_open: int = 0

    def add(self, database: FakeDatabase) -> FakeDatabase:
        self.databases[database.name] = database
        return database


class FakeAdapter(DatabaseAdapter):
    """Adapter answering from a FakeServer instead of a live connection"""

    def __init__(self, connection_string: str, server: FakeServer):
        self._connection_string = connection_string
        self.server = server
        self._database = make_url(connection_string).database or ''
        self.connected = False
        self.closed = False

    @property
    def connection_string(self) -> str:
        return self._connection_string

    @property
    def server_name(self) -> str:
        return self.server.name

    @property
    def database_name(self) -> str:
        return self._database

    @property
    def data(self) -> FakeDatabase:
        return self.server.databases.get(self._database) or FakeDatabase(self._database)

    def connect(self):
        if self._database in self.server.unreachable:
            raise ConnectionError(f"fake connection failed: cannot open {self._database}")
        self.connected = True
        self.server.opened.append(self._database)
        self.server.open_now += 1
        self.server.max_open = max(self.server.max_open, self.server.open_now)
        return self

    def execute_query(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self.data.query_results.get(query, [])

    def execute_scalar(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.data.scalars.get(query, 0)

    def close(self):
        if self.connected and not self.closed:
            self.closed = True
            self.server.open_now -= 1


class FakeCatalogQueries(CatalogQueries):

    def get_all_columns(self, provider):
        return list(provider.data.columns)

    def get_all_indexes(self, provider):
        return list(provider.data.indexes)

    def get_all_foreign_keys(self, provider):
        return list(provider.data.foreign_keys)

    def get_all_views(self, provider):
        return list(provider.data.views)

    def get_stored_procedures(self, provider):
        return list(provider.data.procedures)

    def get_functions(self, provider):
        return list(provider.data.functions)

    def get_triggers(self, provider):
        return list(provider.data.triggers)

    def get_synonyms(self, provider):
        return list(provider.data.synonyms)

    def get_sequences(self, provider):
        return []

    def get_user_defined_types(self, provider):
        return []

    def get_jobs(self, provider, database_name):
        return []

    def get_object_dependencies(self, provider):
        provider.data.check('object_dependencies')
        return list(provider.data.object_dependencies)


class FakePerformanceQueries(PerformanceQueries):

    def get_index_inventory(self, provider):
        provider.data.check('index_inventory')
        return list(provider.data.index_usage)

    def get_index_inventory_catalog_only(self, provider):
        provider.data.check('index_catalog')
        return list(provider.data.index_catalog)

    def get_missing_indexes(self, provider):
        provider.data.check('missing_indexes')
        return list(provider.data.missing_indexes)

    def get_table_usage_stats(self, provider):
        provider.data.check('table_usage')
        return list(provider.data.table_usage)

    def get_proc_execution_stats(self, provider):
        return list(provider.data.proc_usage)

    def get_function_execution_stats(self, provider):
        return list(provider.data.function_usage)

    def is_query_store_enabled(self, provider):
        return provider.data.query_store_enabled

    def get_query_store_proc_stats(self, provider):
        return list(provider.data.query_store_procs)

    def get_query_store_top_queries(self, provider, top_n=200):
        return list(provider.data.query_store_texts)[:top_n]


class FakeServerQueries(ServerQueries):

    def enumerate_databases(self, provider):
        return list(provider.server.databases.keys())

    def get_server_start_time(self, provider):
        return provider.server.start_time


def make_bundle(server: FakeServer) -> ProviderBundle:
    return ProviderBundle(
        provider_type='fake',
        factory=ProviderFactory('fake', 'fake', 'driver', 'master',
                                adapter_class=lambda cs, provider_type: FakeAdapter(cs, server)),
        catalog_queries=FakeCatalogQueries(),
        performance_queries=FakePerformanceQueries(),
        server_queries=FakeServerQueries(),
    )


def column(schema: str, table: str, name: str, data_type: str = 'int', position: int = 1,
           primary_key: bool = False, nullable: bool = True, max_length: Optional[int] = None,
           table_type: str = 'BASE TABLE') -> ColumnRow:
    return ColumnRow(
        schema_name=schema, table_name=table, table_type=table_type, column_name=name,
        data_type=data_type, max_length=max_length, is_nullable=nullable and not primary_key,
        is_primary_key=primary_key, ordinal_position=position,
    )


def shop_database(name: str = 'Sales') -> FakeDatabase:
    """Customers <- Orders (declared FK), Invoices.OrderID (undeclared), one view and two procedures"""
    return FakeDatabase(
        name=name,
        columns=[
            column('dbo', 'Customers', 'CustomerId', position=1, primary_key=True),
            column('dbo', 'Customers', 'Name', 'nvarchar', position=2, max_length=100),
            column('dbo', 'Orders', 'OrderId', position=1, primary_key=True),
            column('dbo', 'Orders', 'CustomerId', position=2),
            column('dbo', 'Orders', 'Status', 'varchar', position=3, max_length=20),
            column('dbo', 'Invoices', 'InvoiceId', position=1, primary_key=True),
            column('dbo', 'Invoices', 'OrderID', position=2),
            column('dbo', 'vw_OrderSummary', 'OrderId', position=1, table_type='VIEW'),
        ],
        indexes=[
            IndexRow('dbo', 'Customers', 'PK_Customers', 'CLUSTERED', True, True, 'CustomerId'),
            IndexRow('dbo', 'Orders', 'PK_Orders', 'CLUSTERED', True, True, 'OrderId'),
            IndexRow('dbo', 'Orders', 'IX_Orders_CustomerId', 'NONCLUSTERED', False, False, 'CustomerId'),
            IndexRow('dbo', 'Orders', 'IX_Orders_CustomerId_Status', 'NONCLUSTERED', False, False,
                     'CustomerId, Status'),
            IndexRow('dbo', 'Invoices', 'PK_Invoices', 'CLUSTERED', True, True, 'InvoiceId'),
        ],
        foreign_keys=[
            ForeignKeyRow('FK_Orders_Customers', 'dbo', 'Orders', 'CustomerId',
                          'dbo', 'Customers', 'CustomerId'),
        ],
        views=[
            ViewRow('dbo', 'vw_OrderSummary',
                    'CREATE VIEW dbo.vw_OrderSummary AS SELECT o.OrderId FROM dbo.Orders o '
                    'JOIN dbo.Customers c ON c.CustomerId = o.CustomerId'),
        ],
        procedures=[
            StoredProcRow('dbo', 'usp_GetOrders', 'SELECT * FROM dbo.vw_OrderSummary -- FROM dbo.Invoices'),
            StoredProcRow('dbo', 'usp_SyncShared', 'INSERT INTO dbo.Orders SELECT * FROM Shared.dbo.Lookups'),
        ],
        index_usage=[
            IndexUsageRow('dbo', 'Orders', 'PK_Orders', 'CLUSTERED', True, True, 'OrderId', 10, 5, 0, 3),
            IndexUsageRow('dbo', 'Orders', 'IX_Orders_CustomerId', 'NONCLUSTERED', False, False,
                          'CustomerId', 0, 0, 0, 42),
        ],
    )


def shared_database(name: str = 'Shared') -> FakeDatabase:
    return FakeDatabase(
        name=name,
        columns=[
            column('dbo', 'Lookups', 'LookupId', position=1, primary_key=True),
            column('dbo', 'Lookups', 'Label', 'nvarchar', position=2, max_length=50),
        ],
    )


@pytest.fixture
def settings():
    return AnalysisSettings(
        session_idle_timeout=timedelta(minutes=30),
        sweep_interval=timedelta(seconds=60),
    )


@pytest.fixture
def server():
    server = FakeServer(start_time=datetime.now() - timedelta(days=45))
    server.add(shop_database('Sales'))
    server.add(shared_database('Shared'))
    return server


@pytest.fixture
def bundle(server):
    return make_bundle(server)


@pytest.fixture
def provider_registry(bundle):
    return ProviderRegistry([bundle])


def open_session(bundle: ProviderBundle, connection_string: str, session_id: str = 'sess00000001') -> Session:
    factory = bundle.factory
    connection_string = factory.normalize_connection_string(connection_string)
    server_mode = factory.is_server_mode(connection_string)
    target = factory.set_database(connection_string, 'master') if server_mode else connection_string
    return Session(
        session_id=session_id,
        provider=factory.create(target),
        bundle=bundle,
        connection_string=connection_string,
        is_server_mode=server_mode,
    )


@pytest.fixture
def database_session(bundle):
    return open_session(bundle, 'fake://user@srv01/Sales')


@pytest.fixture
def server_session(bundle):
    return open_session(bundle, 'fake://user@srv01')


class RecordingAnalyzer(Analyzer):
    """Writes empty sections and records each call; an optional hook runs mid-analysis"""

    def __init__(self, name: str, sections, calls: List[str], hook=None):
        self.name = name
        self.sections = tuple(sections)
        self.calls = calls
        self.hook = hook

    def analyze(self, context, result: AnalysisResult) -> Dict[str, Any]:
        self.calls.append(self.name)
        if self.hook is not None:
            self.hook(context, result)
        return {s: empty_section(s, result.database_name) for s in self.sections}


ANALYZER_SECTIONS = {
    'schema': ['schema'],
    'profiling': ['profiles'],
    'relationships': ['relationships'],
    'quality': ['quality_issues'],
    'usage': ['usage_analysis'],
    'indexing': ['index_recommendations', 'index_inventory'],
}


def recording_registry(calls: List[str], hooks: Optional[Dict[str, Any]] = None) -> AnalyzerRegistry:
    hooks = hooks or {}
    return AnalyzerRegistry([
        RecordingAnalyzer(name, sections, calls, hooks.get(name))
        for name, sections in ANALYZER_SECTIONS.items()
    ])


def analyze_with(context, result: AnalysisResult, *analyzers: Analyzer) -> AnalysisResult:
    """Apply each analyzer's fragment in turn, as the pipeline does"""
    for analyzer in analyzers:
        result.apply(analyzer.analyze(context, result))
    return result


@pytest.fixture
def shop_context(database_session, settings):
    return AnalysisContext(database_session.provider, database_session.bundle, settings)
