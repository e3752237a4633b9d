"""
PostgreSQL query sets
"""

from .base import CatalogQueries, PerformanceQueries, ServerQueries

_EXCLUDED_SCHEMAS = "('pg_catalog', 'information_schema', 'pg_toast')"


class PostgreSQLCatalogQueries(CatalogQueries):
    """PostgreSQL catalog queries (information_schema + pg_catalog)"""

    COLUMNS_SQL = f"""
        SELECT
            c.table_schema AS schema_name,
            c.table_name,
            t.table_type,
            c.column_name,
            c.data_type,
            c.character_maximum_length AS max_length,
            c.numeric_precision AS precision,
            c.numeric_scale AS scale,
            c.is_nullable = 'YES' AS is_nullable,
            pk.column_name IS NOT NULL AS is_primary_key,
            (COALESCE(c.column_default, '') LIKE 'nextval(%' OR c.is_identity = 'YES') AS is_identity,
            c.is_generated = 'ALWAYS' AS is_computed,
            c.column_default AS default_value,
            c.ordinal_position
        FROM information_schema.columns c
        JOIN information_schema.tables t
            ON c.table_schema = t.table_schema AND c.table_name = t.table_name
        LEFT JOIN (
            SELECT tc.table_schema, tc.table_name, ku.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage ku
                ON tc.constraint_name = ku.constraint_name
                AND tc.table_schema = ku.table_schema
            WHERE tc.constraint_type = 'PRIMARY KEY'
        ) pk ON c.table_schema = pk.table_schema
            AND c.table_name = pk.table_name
            AND c.column_name = pk.column_name
        WHERE c.table_schema NOT IN {_EXCLUDED_SCHEMAS}
        ORDER BY c.table_schema, c.table_name, c.ordinal_position
    """

    INDEXES_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            t.relname AS table_name,
            i.relname AS index_name,
            am.amname AS index_type,
            ix.indisunique AS is_unique,
            ix.indisclustered AS is_clustered,
            string_agg(a.attname, ', ' ORDER BY array_position(ix.indkey, a.attnum)) AS columns
        FROM pg_index ix
        JOIN pg_class i ON ix.indexrelid = i.oid
        JOIN pg_class t ON ix.indrelid = t.oid
        JOIN pg_namespace n ON t.relnamespace = n.oid
        JOIN pg_am am ON i.relam = am.oid
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)
        WHERE n.nspname NOT IN {_EXCLUDED_SCHEMAS}
        GROUP BY n.nspname, t.relname, i.relname, am.amname, ix.indisunique, ix.indisclustered
        ORDER BY n.nspname, t.relname, i.relname
    """

    FOREIGN_KEYS_SQL = f"""
        SELECT
            rc.constraint_name AS fk_name,
            kcu1.table_schema AS from_schema,
            kcu1.table_name AS from_table,
            kcu1.column_name AS from_column,
            kcu2.table_schema AS to_schema,
            kcu2.table_name AS to_table,
            kcu2.column_name AS to_column,
            rc.delete_rule,
            rc.update_rule
        FROM information_schema.referential_constraints rc
        JOIN information_schema.key_column_usage kcu1
            ON rc.constraint_name = kcu1.constraint_name
            AND rc.constraint_schema = kcu1.constraint_schema
        JOIN information_schema.key_column_usage kcu2
            ON rc.unique_constraint_name = kcu2.constraint_name
            AND rc.unique_constraint_schema = kcu2.constraint_schema
            AND kcu1.position_in_unique_constraint = kcu2.ordinal_position
        WHERE kcu1.table_schema NOT IN {_EXCLUDED_SCHEMAS}
        ORDER BY kcu1.table_schema, kcu1.table_name, rc.constraint_name
    """

    VIEWS_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            c.relname AS view_name,
            COALESCE(pg_get_viewdef(c.oid, true), '') AS definition
        FROM pg_class c
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE c.relkind IN ('v', 'm')
          AND n.nspname NOT IN {_EXCLUDED_SCHEMAS}
        ORDER BY n.nspname, c.relname
    """

    PROCEDURES_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            p.proname AS procedure_name,
            COALESCE(pg_get_functiondef(p.oid), '') AS definition,
            NULL AS last_modified
        FROM pg_proc p
        JOIN pg_namespace n ON p.pronamespace = n.oid
        WHERE p.prokind = 'p'
          AND n.nspname NOT IN {_EXCLUDED_SCHEMAS}
        ORDER BY n.nspname, p.proname
    """

    FUNCTIONS_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            p.proname AS function_name,
            CASE WHEN p.proretset THEN 'Set-Returning' ELSE 'Scalar' END AS function_type,
            COALESCE(pg_get_functiondef(p.oid), '') AS definition,
            NULL AS last_modified
        FROM pg_proc p
        JOIN pg_namespace n ON p.pronamespace = n.oid
        LEFT JOIN pg_depend d ON d.objid = p.oid AND d.deptype = 'e'
        WHERE p.prokind = 'f'
          AND d.objid IS NULL
          AND n.nspname NOT IN {_EXCLUDED_SCHEMAS}
        ORDER BY n.nspname, p.proname
    """

    TRIGGERS_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            tg.tgname AS trigger_name,
            c.relname AS parent_table,
            CASE WHEN tg.tgtype & 2 = 2 THEN 'BEFORE'
                 WHEN tg.tgtype & 64 = 64 THEN 'INSTEAD OF'
                 ELSE 'AFTER' END AS trigger_type,
            concat_ws(', ',
                CASE WHEN tg.tgtype & 4 = 4 THEN 'INSERT' END,
                CASE WHEN tg.tgtype & 8 = 8 THEN 'DELETE' END,
                CASE WHEN tg.tgtype & 16 = 16 THEN 'UPDATE' END) AS trigger_events,
            tg.tgenabled <> 'D' AS is_enabled,
            COALESCE(pg_get_functiondef(tg.tgfoid), pg_get_triggerdef(tg.oid)) AS definition
        FROM pg_trigger tg
        JOIN pg_class c ON c.oid = tg.tgrelid
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE NOT tg.tgisinternal
          AND n.nspname NOT IN {_EXCLUDED_SCHEMAS}
        ORDER BY n.nspname, c.relname, tg.tgname
    """

    SEQUENCES_SQL = f"""
        SELECT
            schemaname AS schema_name,
            sequencename AS sequence_name,
            data_type::text AS data_type,
            COALESCE(last_value, start_value) AS current_value,
            increment_by AS increment,
            min_value,
            max_value,
            cycle AS is_cycling
        FROM pg_sequences
        WHERE schemaname NOT IN {_EXCLUDED_SCHEMAS}
        ORDER BY schemaname, sequencename
    """

    USER_TYPES_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            t.typname AS type_name,
            CASE t.typtype
                WHEN 'c' THEN 'composite'
                WHEN 'e' THEN 'enum'
                WHEN 'd' THEN format_type(t.typbasetype, t.typtypmod)
                ELSE t.typtype::text
            END AS base_type,
            false AS is_table_type,
            NOT t.typnotnull AS is_nullable,
            NULL AS max_length
        FROM pg_type t
        JOIN pg_namespace n ON t.typnamespace = n.oid
        WHERE t.typtype IN ('c', 'e', 'd')
          AND n.nspname NOT IN {_EXCLUDED_SCHEMAS}
          AND NOT EXISTS (
              SELECT 1 FROM pg_class c
              WHERE c.reltype = t.oid AND c.relkind IN ('r', 'v', 'm', 'p', 'f')
          )
        ORDER BY n.nspname, t.typname
    """

    OBJECT_DEPENDENCIES_SQL = f"""
        SELECT DISTINCT
            src_ns.nspname AS from_schema,
            src_cl.relname AS from_name,
            'View' AS from_type,
            dep_ns.nspname AS to_schema,
            dep_cl.relname AS to_name,
            CASE dep_cl.relkind
                WHEN 'v' THEN 'View'
                WHEN 'm' THEN 'View'
                ELSE 'Table'
            END AS to_type,
            NULL AS to_database
        FROM pg_depend d
        JOIN pg_rewrite rw ON d.objid = rw.oid
        JOIN pg_class src_cl ON rw.ev_class = src_cl.oid
        JOIN pg_namespace src_ns ON src_cl.relnamespace = src_ns.oid
        JOIN pg_class dep_cl ON d.refobjid = dep_cl.oid
        JOIN pg_namespace dep_ns ON dep_cl.relnamespace = dep_ns.oid
        WHERE d.classid = 'pg_rewrite'::regclass
          AND d.deptype = 'n'
          AND src_cl.oid <> dep_cl.oid
          AND src_ns.nspname NOT IN {_EXCLUDED_SCHEMAS}
          AND dep_ns.nspname NOT IN {_EXCLUDED_SCHEMAS}
        ORDER BY from_schema, from_name, to_schema, to_name
    """


class PostgreSQLPerformanceQueries(PerformanceQueries):
    """PostgreSQL statistics collector views"""

    INDEX_INVENTORY_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            t.relname AS table_name,
            i.relname AS index_name,
            am.amname AS index_type,
            ix.indisunique AS is_unique,
            ix.indisclustered AS is_clustered,
            string_agg(a.attname, ', ' ORDER BY array_position(ix.indkey, a.attnum)) AS columns,
            COALESCE(MAX(s.idx_scan), 0) AS user_seeks,
            0 AS user_scans,
            0 AS user_lookups,
            COALESCE(MAX(ts.n_tup_ins + ts.n_tup_upd + ts.n_tup_del), 0) AS user_updates,
            pg_relation_size(i.oid) / 1024 AS size_kb
        FROM pg_index ix
        JOIN pg_class i ON ix.indexrelid = i.oid
        JOIN pg_class t ON ix.indrelid = t.oid
        JOIN pg_namespace n ON t.relnamespace = n.oid
        JOIN pg_am am ON i.relam = am.oid
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)
        LEFT JOIN pg_stat_user_indexes s ON s.indexrelid = i.oid
        LEFT JOIN pg_stat_user_tables ts ON ts.relid = t.oid
        WHERE n.nspname NOT IN {_EXCLUDED_SCHEMAS}
        GROUP BY n.nspname, t.relname, i.relname, am.amname, ix.indisunique,
                 ix.indisclustered, i.oid
        ORDER BY n.nspname, t.relname, i.relname
    """

    INDEX_CATALOG_SQL = PostgreSQLCatalogQueries.INDEXES_SQL

    TABLE_USAGE_SQL = """
        SELECT
            schemaname AS schema_name,
            relname AS table_name,
            COALESCE(seq_scan, 0) + COALESCE(idx_scan, 0) AS total_reads,
            COALESCE(n_tup_ins, 0) + COALESCE(n_tup_upd, 0) + COALESCE(n_tup_del, 0) AS total_writes,
            NULL AS last_seek,
            NULL AS last_scan,
            NULL AS last_lookup
        FROM pg_stat_user_tables
        ORDER BY schemaname, relname
    """

    PROC_USAGE_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            p.proname AS proc_name,
            s.calls AS execution_count,
            NULL AS last_execution
        FROM pg_proc p
        JOIN pg_namespace n ON p.pronamespace = n.oid
        LEFT JOIN pg_stat_user_functions s ON s.funcid = p.oid
        WHERE p.prokind = 'p'
          AND n.nspname NOT IN {_EXCLUDED_SCHEMAS}
    """

    FUNCTION_USAGE_SQL = f"""
        SELECT
            n.nspname AS schema_name,
            p.proname AS func_name,
            s.calls AS execution_count,
            NULL AS last_execution
        FROM pg_proc p
        JOIN pg_namespace n ON p.pronamespace = n.oid
        LEFT JOIN pg_stat_user_functions s ON s.funcid = p.oid
        WHERE p.prokind = 'f'
          AND n.nspname NOT IN {_EXCLUDED_SCHEMAS}
    """


class PostgreSQLServerQueries(ServerQueries):
    ENUMERATE_DATABASES_SQL = """
        SELECT datname AS name FROM pg_database
        WHERE datistemplate = false
          AND datallowconn = true
          AND datname NOT IN ('postgres')
        ORDER BY datname
    """

    START_TIME_SQL = "SELECT pg_postmaster_start_time()"
