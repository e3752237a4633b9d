"""
Per-engine catalog, performance and server query sets
"""

from .base import CatalogQueries, PerformanceQueries, ServerQueries
from .mysql import MySQLCatalogQueries, MySQLPerformanceQueries, MySQLServerQueries
from .postgresql import PostgreSQLCatalogQueries, PostgreSQLPerformanceQueries, PostgreSQLServerQueries
from .sqlserver import SQLServerCatalogQueries, SQLServerPerformanceQueries, SQLServerServerQueries

__all__ = [
    'CatalogQueries',
    'PerformanceQueries',
    'ServerQueries',
    'MySQLCatalogQueries',
    'MySQLPerformanceQueries',
    'MySQLServerQueries',
    'PostgreSQLCatalogQueries',
    'PostgreSQLPerformanceQueries',
    'PostgreSQLServerQueries',
    'SQLServerCatalogQueries',
    'SQLServerPerformanceQueries',
    'SQLServerServerQueries',
]
