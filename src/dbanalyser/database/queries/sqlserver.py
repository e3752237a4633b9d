"""
SQL Server query sets (catalog views, DMVs, msdb, Query Store)
"""

from .base import CatalogQueries, PerformanceQueries, ServerQueries

_INDEX_COLUMNS = """
            STUFF((
                SELECT ', ' + c.name
                FROM sys.index_columns ic
                INNER JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id
                WHERE ic.object_id = i.object_id AND ic.index_id = i.index_id AND ic.is_included_column = 0
                ORDER BY ic.key_ordinal
                FOR XML PATH('')
            ), 1, 2, '')"""


class SQLServerCatalogQueries(CatalogQueries):
    """SQL Server catalog queries"""

    QUOTE_OPEN = '['
    QUOTE_CLOSE = ']'
    STRING_CAST = 'NVARCHAR(500)'

    COLUMNS_SQL = """
        SELECT
            c.TABLE_SCHEMA AS schema_name,
            c.TABLE_NAME AS table_name,
            t.TABLE_TYPE AS table_type,
            c.COLUMN_NAME AS column_name,
            c.DATA_TYPE AS data_type,
            c.CHARACTER_MAXIMUM_LENGTH AS max_length,
            c.NUMERIC_PRECISION AS precision,
            c.NUMERIC_SCALE AS scale,
            CASE WHEN c.IS_NULLABLE = 'YES' THEN 1 ELSE 0 END AS is_nullable,
            CASE WHEN pk.COLUMN_NAME IS NOT NULL THEN 1 ELSE 0 END AS is_primary_key,
            COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)), c.COLUMN_NAME, 'IsIdentity') AS is_identity,
            COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)), c.COLUMN_NAME, 'IsComputed') AS is_computed,
            c.COLUMN_DEFAULT AS default_value,
            c.ORDINAL_POSITION AS ordinal_position
        FROM INFORMATION_SCHEMA.COLUMNS c
        JOIN INFORMATION_SCHEMA.TABLES t
            ON c.TABLE_SCHEMA = t.TABLE_SCHEMA AND c.TABLE_NAME = t.TABLE_NAME
        LEFT JOIN (
            SELECT tc.TABLE_SCHEMA, tc.TABLE_NAME, ku.COLUMN_NAME
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
            JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ku
                ON tc.CONSTRAINT_NAME = ku.CONSTRAINT_NAME
                AND tc.TABLE_SCHEMA = ku.TABLE_SCHEMA
            WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
        ) pk ON c.TABLE_SCHEMA = pk.TABLE_SCHEMA
            AND c.TABLE_NAME = pk.TABLE_NAME
            AND c.COLUMN_NAME = pk.COLUMN_NAME
        ORDER BY c.TABLE_SCHEMA, c.TABLE_NAME, c.ORDINAL_POSITION
    """

    INDEXES_SQL = f"""
        SELECT
            s.name AS schema_name,
            t.name AS table_name,
            i.name AS index_name,
            i.type_desc AS index_type,
            i.is_unique AS is_unique,
            CASE WHEN i.type = 1 THEN 1 ELSE 0 END AS is_clustered,{_INDEX_COLUMNS} AS columns
        FROM sys.indexes i
        JOIN sys.tables t ON i.object_id = t.object_id
        JOIN sys.schemas s ON t.schema_id = s.schema_id
        WHERE i.name IS NOT NULL
          AND t.is_ms_shipped = 0
        ORDER BY s.name, t.name, i.name
    """

    FOREIGN_KEYS_SQL = """
        SELECT
            fk.name AS fk_name,
            OBJECT_SCHEMA_NAME(fk.parent_object_id) AS from_schema,
            OBJECT_NAME(fk.parent_object_id) AS from_table,
            cp.name AS from_column,
            OBJECT_SCHEMA_NAME(fk.referenced_object_id) AS to_schema,
            OBJECT_NAME(fk.referenced_object_id) AS to_table,
            cr.name AS to_column,
            fk.delete_referential_action_desc AS delete_rule,
            fk.update_referential_action_desc AS update_rule
        FROM sys.foreign_keys fk
        JOIN sys.foreign_key_columns fkc ON fk.object_id = fkc.constraint_object_id
        JOIN sys.columns cp ON fkc.parent_object_id = cp.object_id AND fkc.parent_column_id = cp.column_id
        JOIN sys.columns cr ON fkc.referenced_object_id = cr.object_id AND fkc.referenced_column_id = cr.column_id
        ORDER BY OBJECT_SCHEMA_NAME(fk.parent_object_id), OBJECT_NAME(fk.parent_object_id), fk.name
    """

    VIEWS_SQL = """
        SELECT
            s.name AS schema_name,
            v.name AS view_name,
            ISNULL(m.definition, '') AS definition
        FROM sys.views v
        JOIN sys.schemas s ON v.schema_id = s.schema_id
        LEFT JOIN sys.sql_modules m ON m.object_id = v.object_id
        WHERE v.is_ms_shipped = 0
        ORDER BY s.name, v.name
    """

    PROCEDURES_SQL = """
        SELECT
            s.name AS schema_name,
            p.name AS procedure_name,
            ISNULL(m.definition, '') AS definition,
            p.modify_date AS last_modified
        FROM sys.procedures p
        JOIN sys.schemas s ON p.schema_id = s.schema_id
        LEFT JOIN sys.sql_modules m ON p.object_id = m.object_id
        WHERE p.is_ms_shipped = 0
        ORDER BY s.name, p.name
    """

    FUNCTIONS_SQL = """
        SELECT
            s.name AS schema_name,
            o.name AS function_name,
            CASE o.type
                WHEN 'FN' THEN 'Scalar'
                WHEN 'IF' THEN 'Inline Table'
                WHEN 'TF' THEN 'Table'
                ELSE o.type_desc
            END AS function_type,
            ISNULL(m.definition, '') AS definition,
            o.modify_date AS last_modified
        FROM sys.objects o
        JOIN sys.schemas s ON o.schema_id = s.schema_id
        LEFT JOIN sys.sql_modules m ON o.object_id = m.object_id
        WHERE o.type IN ('FN', 'IF', 'TF')
          AND o.is_ms_shipped = 0
        ORDER BY s.name, o.name
    """

    TRIGGERS_SQL = """
        SELECT
            s.name AS schema_name,
            tr.name AS trigger_name,
            OBJECT_NAME(tr.parent_id) AS parent_table,
            CASE WHEN tr.is_instead_of_trigger = 1 THEN 'INSTEAD OF' ELSE 'AFTER' END AS trigger_type,
            STUFF((
                SELECT ', ' + type_desc
                FROM sys.trigger_events te
                WHERE te.object_id = tr.object_id
                FOR XML PATH(''), TYPE
            ).value('.', 'NVARCHAR(MAX)'), 1, 2, '') AS trigger_events,
            CASE WHEN tr.is_disabled = 0 THEN 1 ELSE 0 END AS is_enabled,
            ISNULL(m.definition, '') AS definition
        FROM sys.triggers tr
        JOIN sys.objects o ON tr.parent_id = o.object_id
        JOIN sys.schemas s ON o.schema_id = s.schema_id
        LEFT JOIN sys.sql_modules m ON tr.object_id = m.object_id
        WHERE tr.parent_class = 1
        ORDER BY s.name, OBJECT_NAME(tr.parent_id), tr.name
    """

    SYNONYMS_SQL = """
        SELECT
            s.name AS schema_name,
            syn.name AS synonym_name,
            syn.base_object_name AS base_object_name
        FROM sys.synonyms syn
        JOIN sys.schemas s ON syn.schema_id = s.schema_id
        ORDER BY s.name, syn.name
    """

    SEQUENCES_SQL = """
        SELECT
            s.name AS schema_name,
            seq.name AS sequence_name,
            TYPE_NAME(seq.system_type_id) AS data_type,
            CAST(seq.current_value AS BIGINT) AS current_value,
            CAST(seq.increment AS BIGINT) AS increment,
            CAST(seq.minimum_value AS BIGINT) AS min_value,
            CAST(seq.maximum_value AS BIGINT) AS max_value,
            seq.is_cycling AS is_cycling
        FROM sys.sequences seq
        JOIN sys.schemas s ON seq.schema_id = s.schema_id
        ORDER BY s.name, seq.name
    """

    USER_TYPES_SQL = """
        SELECT
            s.name AS schema_name,
            t.name AS type_name,
            CASE WHEN t.is_table_type = 1 THEN 'table' ELSE TYPE_NAME(t.system_type_id) END AS base_type,
            t.is_table_type AS is_table_type,
            t.is_nullable AS is_nullable,
            t.max_length AS max_length
        FROM sys.types t
        JOIN sys.schemas s ON t.schema_id = s.schema_id
        WHERE t.is_user_defined = 1
        ORDER BY s.name, t.name
    """

    JOBS_SQL = """
        SELECT
            j.name AS job_name,
            ISNULL(j.description, '') AS description,
            j.enabled AS is_enabled,
            js.step_id AS step_id,
            js.step_name AS step_name,
            js.subsystem AS subsystem_type,
            js.database_name AS step_database_name,
            ISNULL(js.command, '') AS command,
            jh.last_run_date AS last_run_date,
            STUFF((
                SELECT ', ' + ss.name
                FROM msdb.dbo.sysjobschedules jsc
                JOIN msdb.dbo.sysschedules ss ON jsc.schedule_id = ss.schedule_id
                WHERE jsc.job_id = j.job_id
                FOR XML PATH(''), TYPE
            ).value('.', 'NVARCHAR(MAX)'), 1, 2, '') AS schedule_description
        FROM msdb.dbo.sysjobs j
        JOIN msdb.dbo.sysjobsteps js ON j.job_id = js.job_id
        LEFT JOIN (
            SELECT job_id, MAX(CAST(CAST(run_date AS VARCHAR(8)) AS DATETIME)) AS last_run_date
            FROM msdb.dbo.sysjobhistory
            WHERE step_id = 0
            GROUP BY job_id
        ) jh ON j.job_id = jh.job_id
        WHERE js.database_name = :database_name
           OR js.command LIKE '%' + :database_name + '%'
        ORDER BY j.name, js.step_id
    """

    OBJECT_DEPENDENCIES_SQL = """
        SELECT DISTINCT
            OBJECT_SCHEMA_NAME(d.referencing_id) AS from_schema,
            OBJECT_NAME(d.referencing_id) AS from_name,
            CASE o1.type
                WHEN 'V' THEN 'View'
                WHEN 'P' THEN 'Procedure'
                WHEN 'FN' THEN 'Function'
                WHEN 'IF' THEN 'Function'
                WHEN 'TF' THEN 'Function'
                WHEN 'TR' THEN 'Trigger'
                ELSE o1.type_desc
            END AS from_type,
            ISNULL(d.referenced_schema_name, 'dbo') AS to_schema,
            d.referenced_entity_name AS to_name,
            CASE ISNULL(o2.type, 'U')
                WHEN 'U' THEN 'Table'
                WHEN 'V' THEN 'View'
                WHEN 'P' THEN 'Procedure'
                WHEN 'FN' THEN 'Function'
                WHEN 'IF' THEN 'Function'
                WHEN 'TF' THEN 'Function'
                WHEN 'SN' THEN 'Synonym'
                ELSE ISNULL(o2.type_desc, 'Table')
            END AS to_type,
            d.referenced_database_name AS to_database
        FROM sys.sql_expression_dependencies d
        JOIN sys.objects o1 ON d.referencing_id = o1.object_id
        LEFT JOIN sys.objects o2
            ON d.referenced_database_name IS NULL
            AND o2.object_id = OBJECT_ID(QUOTENAME(ISNULL(d.referenced_schema_name, 'dbo')) + '.' + QUOTENAME(d.referenced_entity_name))
        WHERE o1.type IN ('V', 'P', 'FN', 'IF', 'TF', 'TR')
          AND d.referenced_entity_name IS NOT NULL
          AND OBJECT_NAME(d.referencing_id) IS NOT NULL
        ORDER BY from_schema, from_name, to_schema, to_name
    """


class SQLServerPerformanceQueries(PerformanceQueries):
    """Dynamic management views; require VIEW SERVER STATE / VIEW DATABASE STATE"""

    INDEX_INVENTORY_SQL = f"""
        SELECT
            s.name AS schema_name,
            t.name AS table_name,
            i.name AS index_name,
            i.type_desc AS index_type,
            i.is_unique AS is_unique,
            CASE WHEN i.type = 1 THEN 1 ELSE 0 END AS is_clustered,{_INDEX_COLUMNS} AS columns,
            ISNULL(us.user_seeks, 0) AS user_seeks,
            ISNULL(us.user_scans, 0) AS user_scans,
            ISNULL(us.user_lookups, 0) AS user_lookups,
            ISNULL(us.user_updates, 0) AS user_updates,
            ISNULL(ps.size_kb, 0) AS size_kb
        FROM sys.indexes i
        INNER JOIN sys.tables t ON i.object_id = t.object_id
        INNER JOIN sys.schemas s ON t.schema_id = s.schema_id
        LEFT JOIN sys.dm_db_index_usage_stats us
            ON i.object_id = us.object_id AND i.index_id = us.index_id AND us.database_id = DB_ID()
        LEFT JOIN (
            SELECT object_id, index_id, SUM(used_page_count) * 8 AS size_kb
            FROM sys.dm_db_partition_stats
            GROUP BY object_id, index_id
        ) ps ON i.object_id = ps.object_id AND i.index_id = ps.index_id
        WHERE i.name IS NOT NULL
          AND t.is_ms_shipped = 0
        ORDER BY s.name, t.name, i.index_id
    """

    INDEX_CATALOG_SQL = SQLServerCatalogQueries.INDEXES_SQL

    MISSING_INDEXES_SQL = """
        SELECT
            d.statement AS table_name,
            OBJECT_SCHEMA_NAME(d.object_id) AS schema_name,
            s.avg_total_user_cost * s.avg_user_impact * (s.user_seeks + s.user_scans) AS impact_score,
            d.equality_columns AS equality_columns,
            d.inequality_columns AS inequality_columns,
            d.included_columns AS include_columns,
            s.user_seeks AS user_seeks,
            s.user_scans AS user_scans
        FROM sys.dm_db_missing_index_details d
        INNER JOIN sys.dm_db_missing_index_groups g ON d.index_handle = g.index_handle
        INNER JOIN sys.dm_db_missing_index_group_stats s ON g.index_group_handle = s.group_handle
        WHERE d.database_id = DB_ID()
        ORDER BY impact_score DESC
    """

    TABLE_USAGE_SQL = """
        SELECT
            SCHEMA_NAME(t.schema_id) AS schema_name,
            t.name AS table_name,
            COALESCE(SUM(s.user_seeks + s.user_scans + s.user_lookups), 0) AS total_reads,
            COALESCE(SUM(s.user_updates), 0) AS total_writes,
            MAX(s.last_user_seek) AS last_seek,
            MAX(s.last_user_scan) AS last_scan,
            MAX(s.last_user_lookup) AS last_lookup
        FROM sys.tables t
        LEFT JOIN sys.dm_db_index_usage_stats s
            ON t.object_id = s.object_id AND s.database_id = DB_ID()
        GROUP BY t.schema_id, t.name
    """

    PROC_USAGE_SQL = """
        SELECT
            SCHEMA_NAME(p.schema_id) AS schema_name,
            p.name AS proc_name,
            ps.execution_count AS execution_count,
            ps.last_execution_time AS last_execution
        FROM sys.procedures p
        LEFT JOIN sys.dm_exec_procedure_stats ps
            ON p.object_id = ps.object_id AND ps.database_id = DB_ID()
    """

    FUNCTION_USAGE_SQL = """
        SELECT
            SCHEMA_NAME(o.schema_id) AS schema_name,
            o.name AS func_name,
            fs.execution_count AS execution_count,
            fs.last_execution_time AS last_execution
        FROM sys.objects o
        LEFT JOIN sys.dm_exec_function_stats fs
            ON o.object_id = fs.object_id AND fs.database_id = DB_ID()
        WHERE o.type IN ('FN', 'IF', 'TF')
    """

    QUERY_STORE_STATE_SQL = "SELECT actual_state_desc FROM sys.database_query_store_options"

    QUERY_STORE_PROC_SQL = """
        WITH QueryAgg AS (
            SELECT
                q.object_id,
                SUM(rs.count_executions) AS total_executions,
                MAX(rs.last_execution_time) AS last_execution,
                MIN(rs.first_execution_time) AS first_execution
            FROM sys.query_store_query q
            JOIN sys.query_store_plan p ON q.query_id = p.query_id
            JOIN sys.query_store_runtime_stats rs ON p.plan_id = rs.plan_id
            WHERE q.object_id <> 0
            GROUP BY q.object_id
        )
        SELECT
            SCHEMA_NAME(o.schema_id) AS schema_name,
            o.name AS object_name,
            CASE WHEN o.type IN ('FN', 'IF', 'TF', 'FS', 'FT') THEN 'Function' ELSE 'Procedure' END AS object_type,
            a.total_executions,
            a.last_execution,
            a.first_execution
        FROM QueryAgg a
        JOIN sys.objects o ON a.object_id = o.object_id
    """

    QUERY_STORE_TOP_SQL = """
        WITH TextAgg AS (
            SELECT TOP {top_n}
                q.query_text_id,
                SUM(rs.count_executions) AS total_executions,
                MAX(rs.last_execution_time) AS last_execution
            FROM sys.query_store_query q
            JOIN sys.query_store_plan p ON q.query_id = p.query_id
            JOIN sys.query_store_runtime_stats rs ON p.plan_id = rs.plan_id
            WHERE q.object_id = 0
            GROUP BY q.query_text_id
            ORDER BY SUM(rs.count_executions) DESC
        )
        SELECT
            LEFT(qt.query_sql_text, 4000) AS query_text,
            a.total_executions,
            a.last_execution
        FROM TextAgg a
        JOIN sys.query_store_query_text qt ON a.query_text_id = qt.query_text_id
    """


class SQLServerServerQueries(ServerQueries):
    ENUMERATE_DATABASES_SQL = """
        SELECT name FROM sys.databases
        WHERE name NOT IN ('master', 'tempdb', 'model', 'msdb')
          AND state_desc = 'ONLINE'
        ORDER BY name
    """

    START_TIME_SQL = "SELECT sqlserver_start_time FROM sys.dm_os_sys_info"
