"""
MySQL query sets (information_schema + performance_schema)
"""

from .base import CatalogQueries, PerformanceQueries, ServerQueries


class MySQLCatalogQueries(CatalogQueries):
    """MySQL catalog queries; a MySQL schema is the current database"""

    QUOTE_OPEN = '`'
    QUOTE_CLOSE = '`'
    STRING_CAST = 'CHAR(500)'

    COLUMNS_SQL = """
        SELECT
            c.TABLE_SCHEMA AS schema_name,
            c.TABLE_NAME AS table_name,
            t.TABLE_TYPE AS table_type,
            c.COLUMN_NAME AS column_name,
            c.DATA_TYPE AS data_type,
            c.CHARACTER_MAXIMUM_LENGTH AS max_length,
            c.NUMERIC_PRECISION AS `precision`,
            c.NUMERIC_SCALE AS scale,
            c.IS_NULLABLE = 'YES' AS is_nullable,
            c.COLUMN_KEY = 'PRI' AS is_primary_key,
            c.EXTRA LIKE '%auto_increment%' AS is_identity,
            COALESCE(c.GENERATION_EXPRESSION, '') <> '' AS is_computed,
            c.COLUMN_DEFAULT AS default_value,
            c.ORDINAL_POSITION AS ordinal_position
        FROM information_schema.COLUMNS c
        JOIN information_schema.TABLES t
            ON c.TABLE_SCHEMA = t.TABLE_SCHEMA AND c.TABLE_NAME = t.TABLE_NAME
        WHERE c.TABLE_SCHEMA = DATABASE()
        ORDER BY c.TABLE_NAME, c.ORDINAL_POSITION
    """

    INDEXES_SQL = """
        SELECT
            TABLE_SCHEMA AS schema_name,
            TABLE_NAME AS table_name,
            INDEX_NAME AS index_name,
            MAX(INDEX_TYPE) AS index_type,
            MAX(NON_UNIQUE) = 0 AS is_unique,
            INDEX_NAME = 'PRIMARY' AS is_clustered,
            GROUP_CONCAT(COLUMN_NAME ORDER BY SEQ_IN_INDEX SEPARATOR ', ') AS columns
        FROM information_schema.STATISTICS
        WHERE TABLE_SCHEMA = DATABASE()
        GROUP BY TABLE_SCHEMA, TABLE_NAME, INDEX_NAME
        ORDER BY TABLE_NAME, INDEX_NAME
    """

    FOREIGN_KEYS_SQL = """
        SELECT
            k.CONSTRAINT_NAME AS fk_name,
            k.TABLE_SCHEMA AS from_schema,
            k.TABLE_NAME AS from_table,
            k.COLUMN_NAME AS from_column,
            k.REFERENCED_TABLE_SCHEMA AS to_schema,
            k.REFERENCED_TABLE_NAME AS to_table,
            k.REFERENCED_COLUMN_NAME AS to_column,
            rc.DELETE_RULE AS delete_rule,
            rc.UPDATE_RULE AS update_rule
        FROM information_schema.KEY_COLUMN_USAGE k
        JOIN information_schema.REFERENTIAL_CONSTRAINTS rc
            ON rc.CONSTRAINT_SCHEMA = k.CONSTRAINT_SCHEMA
            AND rc.CONSTRAINT_NAME = k.CONSTRAINT_NAME
        WHERE k.TABLE_SCHEMA = DATABASE()
          AND k.REFERENCED_TABLE_NAME IS NOT NULL
        ORDER BY k.TABLE_NAME, k.CONSTRAINT_NAME, k.ORDINAL_POSITION
    """

    VIEWS_SQL = """
        SELECT
            TABLE_SCHEMA AS schema_name,
            TABLE_NAME AS view_name,
            COALESCE(VIEW_DEFINITION, '') AS definition
        FROM information_schema.VIEWS
        WHERE TABLE_SCHEMA = DATABASE()
        ORDER BY TABLE_NAME
    """

    PROCEDURES_SQL = """
        SELECT
            ROUTINE_SCHEMA AS schema_name,
            ROUTINE_NAME AS procedure_name,
            COALESCE(ROUTINE_DEFINITION, '') AS definition,
            LAST_ALTERED AS last_modified
        FROM information_schema.ROUTINES
        WHERE ROUTINE_SCHEMA = DATABASE()
          AND ROUTINE_TYPE = 'PROCEDURE'
        ORDER BY ROUTINE_NAME
    """

    FUNCTIONS_SQL = """
        SELECT
            ROUTINE_SCHEMA AS schema_name,
            ROUTINE_NAME AS function_name,
            'Scalar' AS function_type,
            COALESCE(ROUTINE_DEFINITION, '') AS definition,
            LAST_ALTERED AS last_modified
        FROM information_schema.ROUTINES
        WHERE ROUTINE_SCHEMA = DATABASE()
          AND ROUTINE_TYPE = 'FUNCTION'
        ORDER BY ROUTINE_NAME
    """

    TRIGGERS_SQL = """
        SELECT
            TRIGGER_SCHEMA AS schema_name,
            TRIGGER_NAME AS trigger_name,
            EVENT_OBJECT_TABLE AS parent_table,
            ACTION_TIMING AS trigger_type,
            EVENT_MANIPULATION AS trigger_events,
            1 AS is_enabled,
            COALESCE(ACTION_STATEMENT, '') AS definition
        FROM information_schema.TRIGGERS
        WHERE TRIGGER_SCHEMA = DATABASE()
        ORDER BY EVENT_OBJECT_TABLE, TRIGGER_NAME
    """

    OBJECT_DEPENDENCIES_SQL = """
        SELECT
            vtu.VIEW_SCHEMA AS from_schema,
            vtu.VIEW_NAME AS from_name,
            'View' AS from_type,
            vtu.TABLE_SCHEMA AS to_schema,
            vtu.TABLE_NAME AS to_name,
            CASE WHEN t.TABLE_TYPE = 'VIEW' THEN 'View' ELSE 'Table' END AS to_type,
            CASE WHEN vtu.TABLE_SCHEMA <> vtu.VIEW_SCHEMA THEN vtu.TABLE_SCHEMA END AS to_database
        FROM information_schema.VIEW_TABLE_USAGE vtu
        LEFT JOIN information_schema.TABLES t
            ON t.TABLE_SCHEMA = vtu.TABLE_SCHEMA AND t.TABLE_NAME = vtu.TABLE_NAME
        WHERE vtu.VIEW_SCHEMA = DATABASE()
        ORDER BY vtu.VIEW_NAME, vtu.TABLE_NAME
    """


class MySQLPerformanceQueries(PerformanceQueries):
    """performance_schema counters; empty when the schema is disabled"""

    INDEX_INVENTORY_SQL = """
        SELECT
            s.TABLE_SCHEMA AS schema_name,
            s.TABLE_NAME AS table_name,
            s.INDEX_NAME AS index_name,
            MAX(s.INDEX_TYPE) AS index_type,
            MAX(s.NON_UNIQUE) = 0 AS is_unique,
            s.INDEX_NAME = 'PRIMARY' AS is_clustered,
            GROUP_CONCAT(s.COLUMN_NAME ORDER BY s.SEQ_IN_INDEX SEPARATOR ', ') AS columns,
            COALESCE(MAX(io.COUNT_READ), 0) AS user_seeks,
            0 AS user_scans,
            0 AS user_lookups,
            COALESCE(MAX(io.COUNT_INSERT + io.COUNT_UPDATE + io.COUNT_DELETE), 0) AS user_updates,
            0 AS size_kb
        FROM information_schema.STATISTICS s
        LEFT JOIN performance_schema.table_io_waits_summary_by_index_usage io
            ON io.OBJECT_SCHEMA = s.TABLE_SCHEMA
            AND io.OBJECT_NAME = s.TABLE_NAME
            AND io.INDEX_NAME = s.INDEX_NAME
        WHERE s.TABLE_SCHEMA = DATABASE()
        GROUP BY s.TABLE_SCHEMA, s.TABLE_NAME, s.INDEX_NAME
        ORDER BY s.TABLE_NAME, s.INDEX_NAME
    """

    INDEX_CATALOG_SQL = MySQLCatalogQueries.INDEXES_SQL

    TABLE_USAGE_SQL = """
        SELECT
            OBJECT_SCHEMA AS schema_name,
            OBJECT_NAME AS table_name,
            COUNT_READ AS total_reads,
            COUNT_WRITE AS total_writes,
            NULL AS last_seek,
            NULL AS last_scan,
            NULL AS last_lookup
        FROM performance_schema.table_io_waits_summary_by_table
        WHERE OBJECT_SCHEMA = DATABASE()
    """

    PROC_USAGE_SQL = """
        SELECT
            r.ROUTINE_SCHEMA AS schema_name,
            r.ROUTINE_NAME AS proc_name,
            p.COUNT_STAR AS execution_count,
            NULL AS last_execution
        FROM information_schema.ROUTINES r
        LEFT JOIN performance_schema.events_statements_summary_by_program p
            ON p.OBJECT_TYPE = 'PROCEDURE'
            AND p.OBJECT_SCHEMA = r.ROUTINE_SCHEMA
            AND p.OBJECT_NAME = r.ROUTINE_NAME
        WHERE r.ROUTINE_SCHEMA = DATABASE()
          AND r.ROUTINE_TYPE = 'PROCEDURE'
    """

    FUNCTION_USAGE_SQL = """
        SELECT
            r.ROUTINE_SCHEMA AS schema_name,
            r.ROUTINE_NAME AS func_name,
            p.COUNT_STAR AS execution_count,
            NULL AS last_execution
        FROM information_schema.ROUTINES r
        LEFT JOIN performance_schema.events_statements_summary_by_program p
            ON p.OBJECT_TYPE = 'FUNCTION'
            AND p.OBJECT_SCHEMA = r.ROUTINE_SCHEMA
            AND p.OBJECT_NAME = r.ROUTINE_NAME
        WHERE r.ROUTINE_SCHEMA = DATABASE()
          AND r.ROUTINE_TYPE = 'FUNCTION'
    """


class MySQLServerQueries(ServerQueries):
    ENUMERATE_DATABASES_SQL = """
        SELECT SCHEMA_NAME AS name FROM information_schema.SCHEMATA
        WHERE SCHEMA_NAME NOT IN ('information_schema', 'mysql', 'performance_schema', 'sys')
        ORDER BY SCHEMA_NAME
    """

    START_TIME_SQL = """
        SELECT NOW() - INTERVAL VARIABLE_VALUE SECOND
        FROM performance_schema.global_status
        WHERE VARIABLE_NAME = 'Uptime'
    """
