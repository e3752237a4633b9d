"""
Relationship and dependency graph analysis
"""

import re
from itertools import islice
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

from ..database.models import ColumnInfo, DatabaseSchema, ForeignKeyInfo, TableInfo
from ..utils.logger import get_logger
from .base import AnalysisContext, Analyzer
from .models import (
    AnalysisResult, DependencyNode, ImplicitRelationship, ObjectDependency, RelationshipMap,
)

logger = get_logger(__name__)

MAX_CYCLES = 100

TYPE_FAMILIES = {
    'integer': {'int', 'integer', 'bigint', 'smallint', 'tinyint', 'mediumint', 'serial',
                'bigserial', 'smallserial', 'int2', 'int4', 'int8'},
    'decimal': {'decimal', 'numeric', 'money', 'smallmoney', 'float', 'real', 'double',
                'double precision', 'float4', 'float8'},
    'string': {'char', 'varchar', 'nchar', 'nvarchar', 'text', 'ntext', 'character',
               'character varying', 'bpchar', 'citext', 'tinytext', 'mediumtext', 'longtext'},
    'uuid': {'uniqueidentifier', 'uuid'},
}

# Strips -- line comments and /* */ block comments before reference extraction
COMMENT_RE = re.compile(r"/\*.*?\*/|--[^\r\n]*", re.DOTALL)

_IDENT = r"[\[\"`]?\w+[\]\"`]?"
FROM_JOIN_RE = re.compile(rf"\b(?:FROM|JOIN)\s+((?:{_IDENT}\.){{0,3}}{_IDENT})", re.IGNORECASE)
EXEC_RE = re.compile(rf"\b(?:EXEC|EXECUTE)\s+((?:{_IDENT}\.){{0,2}}{_IDENT})", re.IGNORECASE)

ObjectRef = Tuple[str, str, str, Optional[str]]


def type_family(data_type: Optional[str]) -> Optional[str]:
    if not data_type:
        return None
    base = data_type.lower().split('(')[0].strip()
    for family, members in TYPE_FAMILIES.items():
        if base in members:
            return family
    return None


def types_compatible(left: Optional[str], right: Optional[str]) -> bool:
    """Unknown types are given the benefit of the doubt"""
    a, b = type_family(left), type_family(right)
    if a is None or b is None or a == b:
        return True
    return {a, b} == {'integer', 'decimal'}


def singularize(name: str) -> Optional[str]:
    """Best-effort English singular of a plural table name, or None if it is not plural"""
    lower = name.lower()
    if lower.endswith('ies') and len(name) > 3:
        return name[:-3] + 'y'
    if lower.endswith(('sses', 'xes', 'ches', 'shes')):
        return name[:-2]
    if lower.endswith('s') and not lower.endswith('ss') and len(name) > 1:
        return name[:-1]
    return None


def _exact_id_names(table: str, pk_column: str) -> List[str]:
    names = [f"{table}Id", f"{table}_Id"]
    # a key named after its table (OrderId on Orders) counts as exact
    if pk_column.lower() in {n.lower() for n in names + _singular_id_names(table, pk_column)}:
        names.append(pk_column)
    return names


def _singular_id_names(table: str, pk_column: str) -> List[str]:
    singular = singularize(table)
    return [f"{singular}Id", f"{singular}_Id"] if singular else []


def _suffix_names(suffix: str) -> Callable[[str, str], List[str]]:
    def names(table: str, pk_column: str) -> List[str]:
        stems = [table]
        singular = singularize(table)
        if singular:
            stems.append(singular)
        return [f"{stem}{sep}{suffix}" for stem in stems for sep in ('', '_')]
    return names


# Ordered by decreasing confidence; the first tier with a match wins
NAMING_TIERS = [
    (0.9, _exact_id_names, "Column name '{column}' matches the key of table '{table}'"),
    (0.8, _singular_id_names, "Column name '{column}' matches singular form of table '{table}'"),
    (0.7, lambda table, pk: [f"FK_{table}"], "Column name '{column}' has FK_ prefix matching table '{table}'"),
    (0.6, _suffix_names('Key'), "Column name '{column}' matches pattern '{{Table}}Key' for '{table}'"),
    (0.5, _suffix_names('No'), "Column name '{column}' matches pattern '{{Table}}No' for '{table}'"),
    (0.5, _suffix_names('Number'), "Column name '{column}' matches pattern '{{Table}}Number' for '{table}'"),
    (0.4, _suffix_names('Code'), "Column name '{column}' matches pattern '{{Table}}Code' for '{table}'"),
]


def detect_implicit_relationships(tables: List[TableInfo],
                                  explicit_fks: List[ForeignKeyInfo]) -> List[ImplicitRelationship]:
    """Infer FK-like links from column naming conventions"""
    targets: List[Tuple[TableInfo, ColumnInfo]] = []
    for table in tables:
        pk = next((c for c in table.columns if c.is_primary_key), None)
        if pk is not None:
            targets.append((table, pk))

    existing = {
        f"{fk.from_schema}.{fk.from_table}.{fk.from_column}->{fk.to_schema}.{fk.to_table}.{fk.to_column}".lower()
        for fk in explicit_fks
    }

    found: List[ImplicitRelationship] = []
    for table in tables:
        for column in table.columns:
            if column.is_primary_key:
                continue
            match = _match_column(table, column, targets, existing)
            if match is not None:
                found.append(match)
    return found


def _match_column(table: TableInfo, column: ColumnInfo,
                  targets: List[Tuple[TableInfo, ColumnInfo]],
                  existing: Set[str]) -> Optional[ImplicitRelationship]:
    column_lower = column.name.lower()
    for confidence, candidates, reason in NAMING_TIERS:
        for target, pk in targets:
            names = {n.lower() for n in candidates(target.table_name, pk.name)}
            if column_lower not in names:
                continue
            if not types_compatible(column.data_type, pk.data_type):
                continue
            if (table.table_name.lower() == target.table_name.lower()
                    and table.schema_name.lower() == target.schema_name.lower()
                    and column_lower == pk.name.lower()):
                continue
            key = (f"{table.schema_name}.{table.table_name}.{column.name}->"
                   f"{target.schema_name}.{target.table_name}.{pk.name}").lower()
            if key in existing:
                continue
            return ImplicitRelationship(
                from_schema=table.schema_name,
                from_table=table.table_name,
                from_column=column.name,
                to_schema=target.schema_name,
                to_table=target.table_name,
                to_column=pk.name,
                confidence=confidence,
                reason=reason.format(column=column.name, table=target.table_name),
            )
    return None


def _clean(reference: str) -> str:
    return re.sub(r"[\[\]\"`]", '', reference).strip()


class ObjectLookup:
    """Case-insensitive name -> (schema, name, type) index over a schema inventory"""

    def __init__(self, schema: DatabaseSchema):
        self._objects: Dict[str, Tuple[str, str, str]] = {}
        self._add_all(schema.tables, 'table_name', 'Table')
        self._add_all(schema.views, 'view_name', 'View')
        self._add_all(schema.stored_procedures, 'procedure_name', 'Procedure')
        self._add_all(schema.functions, 'function_name', 'Function')
        self._add_all(schema.synonyms, 'synonym_name', 'Synonym')

    def _add_all(self, items: Iterable, name_attr: str, object_type: str):
        for item in items:
            name = getattr(item, name_attr)
            entry = (item.schema_name, name, object_type)
            # bare names resolve to the first object registered under them
            self._objects.setdefault(name.lower(), entry)
            self._objects[f"{item.schema_name}.{name}".lower()] = entry

    def get(self, name: str) -> Optional[Tuple[str, str, str]]:
        return self._objects.get(name.lower())


def resolve_reference(reference: str, lookup: ObjectLookup, current_database: Optional[str]) -> Optional[ObjectRef]:
    """Resolve a 1 to 4 part reference to (schema, name, type, database); None if unknown"""
    parts = _clean(reference).split('.')
    if len(parts) >= 4:
        return parts[-2], parts[-1], 'External', parts[-3]
    if len(parts) == 3:
        database, schema, name = parts
        if current_database and database.lower() == current_database.lower():
            local = lookup.get(f"{schema}.{name}")
            if local is not None:
                return local[0], local[1], local[2], None
        return schema, name, 'External', database
    local = lookup.get('.'.join(parts))
    if local is None:
        return None
    return local[0], local[1], local[2], None


def extract_references(text: str, lookup: ObjectLookup, current_database: Optional[str],
                       include_exec: bool = False) -> List[ObjectRef]:
    """FROM/JOIN (and optionally EXEC) targets found in SQL source text"""
    body = COMMENT_RE.sub(' ', text)
    patterns = [FROM_JOIN_RE, EXEC_RE] if include_exec else [FROM_JOIN_RE]
    found: List[ObjectRef] = []
    seen: Set[Tuple] = set()
    for pattern in patterns:
        for match in pattern.finditer(body):
            ref = resolve_reference(match.group(1), lookup, current_database)
            if ref is None:
                continue
            key = tuple(p.lower() if p else p for p in ref)
            if key not in seen:
                seen.add(key)
                found.append(ref)
    return found


def parse_text_dependencies(schema: DatabaseSchema) -> List[ObjectDependency]:
    """Dependencies parsed from view, procedure, function, trigger and job step text"""
    lookup = ObjectLookup(schema)
    current_db = schema.database_name
    deps: List[ObjectDependency] = []

    def add(from_schema: str, from_name: str, from_type: str, refs: List[ObjectRef]):
        for to_schema, to_name, to_type, to_db in refs:
            if (to_db is None and to_schema.lower() == from_schema.lower()
                    and to_name.lower() == from_name.lower()):
                continue
            deps.append(ObjectDependency(
                from_schema=from_schema, from_name=from_name, from_type=from_type,
                to_schema=to_schema, to_name=to_name, to_type=to_type,
                to_database=to_db, detected_via='parsed',
            ))

    for view in schema.views:
        if view.definition and view.definition.strip():
            add(view.schema_name, view.view_name, 'View',
                extract_references(view.definition, lookup, current_db))

    for proc in schema.stored_procedures:
        if proc.definition and proc.definition.strip():
            add(proc.schema_name, proc.procedure_name, 'Procedure',
                extract_references(proc.definition, lookup, current_db, include_exec=True))

    for func in schema.functions:
        if func.definition and func.definition.strip():
            add(func.schema_name, func.function_name, 'Function',
                extract_references(func.definition, lookup, current_db))

    for trigger in schema.triggers:
        deps.append(ObjectDependency(
            from_schema=trigger.schema_name, from_name=trigger.trigger_name, from_type='Trigger',
            to_schema=trigger.schema_name, to_name=trigger.parent_table, to_type='Table',
            detected_via='parsed',
        ))
        if trigger.definition and trigger.definition.strip():
            add(trigger.schema_name, trigger.trigger_name, 'Trigger',
                extract_references(trigger.definition, lookup, current_db, include_exec=True))

    for job in schema.jobs:
        for step in job.steps:
            if step.command and step.command.strip():
                add('job', job.job_name, 'Job',
                    extract_references(step.command, lookup, current_db, include_exec=True))

    return deps


def resolve_synonym_dependencies(schema: DatabaseSchema) -> List[ObjectDependency]:
    lookup = ObjectLookup(schema)
    current_db = schema.database_name
    deps: List[ObjectDependency] = []

    for synonym in schema.synonyms:
        database, target_schema, target_name = synonym.parse_base_object()
        if database is not None and current_db and database.lower() == current_db.lower():
            database = None

        if database is not None:
            to_type = 'External'
        else:
            local = lookup.get(f"{target_schema}.{target_name}")
            to_type = local[2] if local else 'Table'

        deps.append(ObjectDependency(
            from_schema=synonym.schema_name, from_name=synonym.synonym_name, from_type='Synonym',
            to_schema=target_schema, to_name=target_name, to_type=to_type,
            to_database=database, detected_via='synonym',
        ))
    return deps


def _add_edge(nodes: Dict[str, DependencyNode], from_key: str, to_key: str):
    if from_key.lower() == to_key.lower():
        return
    from_node = nodes.get(from_key.lower())
    to_node = nodes.get(to_key.lower())
    if to_node is not None:
        to_key = to_node.full_name
    if from_node is not None:
        from_key = from_node.full_name
        if to_key.lower() not in {n.lower() for n in from_node.depends_on}:
            from_node.depends_on.append(to_key)
    if to_node is not None:
        if from_key.lower() not in {n.lower() for n in to_node.referenced_by}:
            to_node.referenced_by.append(from_key)


def referenced_by_graph(nodes: Dict[str, DependencyNode]) -> nx.DiGraph:
    """Edges run from each node to the objects that reference it, keyed case-insensitively"""
    graph = nx.DiGraph()
    for key, node in nodes.items():
        graph.add_node(key, name=node.full_name)
        for ref in node.referenced_by:
            if ref.lower() not in graph:
                graph.add_node(ref.lower(), name=ref)
            graph.add_edge(key, ref.lower())
    return graph


def compute_transitive_impact(nodes: Dict[str, DependencyNode], key: str,
                              graph: Optional[nx.DiGraph] = None) -> List[str]:
    """Every node reachable from `key` over referenced_by edges; the node itself only via a cycle"""
    key = key.lower()
    if key not in nodes:
        return []
    if graph is None:
        graph = referenced_by_graph(nodes)

    reached = nx.descendants(graph, key)
    if any(p == key or p in reached for p in graph.predecessors(key)):
        reached.add(key)
    return sorted((graph.nodes[k]['name'] for k in reached), key=str.lower)


def index_nodes(dependencies: Iterable[DependencyNode]) -> Dict[str, DependencyNode]:
    return {node.full_name.lower(): node for node in dependencies}


def rank_nodes(nodes: Iterable[DependencyNode]) -> List[DependencyNode]:
    return sorted(nodes, key=lambda n: (-n.importance_score, n.full_name.lower()))


def recompute_graph_metrics(dependencies: List[DependencyNode]) -> List[DependencyNode]:
    """Recompute transitive impact for every node and return them ranked"""
    nodes = index_nodes(dependencies)
    graph = referenced_by_graph(nodes)
    for node in nodes.values():
        node.transitive_impact = compute_transitive_impact(nodes, node.full_name, graph)
    return rank_nodes(nodes.values())


def find_circular_references(dependencies: List[DependencyNode]) -> List[List[str]]:
    graph = nx.DiGraph()
    for node in dependencies:
        graph.add_node(node.full_name)
        for target in node.depends_on:
            graph.add_edge(node.full_name, target)
    try:
        return [list(cycle) for cycle in islice(nx.simple_cycles(graph), MAX_CYCLES)]
    except nx.NetworkXException as e:
        logger.warning(f"Cycle detection failed: {e}")
        return []


def build_dependency_graph(schema: DatabaseSchema, foreign_keys: List[ForeignKeyInfo],
                           object_dependencies: List[ObjectDependency]) -> List[DependencyNode]:
    """One node per schema object; FK and object dependency edges; ranked by importance"""
    nodes: Dict[str, DependencyNode] = {}

    def add_node(schema_name: str, name: str, object_type: str):
        node = DependencyNode(schema_name=schema_name, name=name, object_type=object_type)
        nodes.setdefault(node.full_name.lower(), node)

    for table in schema.tables:
        add_node(table.schema_name, table.table_name, 'Table')
    for view in schema.views:
        add_node(view.schema_name, view.view_name, 'View')
    for proc in schema.stored_procedures:
        add_node(proc.schema_name, proc.procedure_name, 'Procedure')
    for func in schema.functions:
        add_node(func.schema_name, func.function_name, 'Function')
    for trigger in schema.triggers:
        add_node(trigger.schema_name, trigger.trigger_name, 'Trigger')
    for synonym in schema.synonyms:
        add_node(synonym.schema_name, synonym.synonym_name, 'Synonym')
    for job in schema.jobs:
        add_node('job', job.job_name, 'Job')

    for fk in foreign_keys:
        _add_edge(nodes, f"{fk.from_schema}.{fk.from_table}", f"{fk.to_schema}.{fk.to_table}")

    for dep in object_dependencies:
        to_key = dep.to_full_name
        if dep.is_cross_database and to_key.lower() not in nodes:
            nodes[to_key.lower()] = DependencyNode(
                schema_name=dep.to_schema,
                name=dep.to_name,
                object_type='External',
                database_name=dep.to_database,
                external_database=dep.to_database,
            )
        _add_edge(nodes, f"{dep.from_schema}.{dep.from_name}", to_key)

    return recompute_graph_metrics(list(nodes.values()))


class RelationshipAnalyzer(Analyzer):
    """Explicit, implicit and object-level relationships plus the dependency graph"""

    name = 'relationships'
    sections = ('relationships',)

    def analyze(self, context: AnalysisContext, result: AnalysisResult) -> Dict[str, Any]:
        self.require(result, 'schema', 'Schema')
        schema = result.schema

        relationship_map = RelationshipMap()
        for table in schema.tables:
            relationship_map.explicit_relationships.extend(table.foreign_keys)

        relationship_map.implicit_relationships = detect_implicit_relationships(
            schema.tables, relationship_map.explicit_relationships)

        catalog_deps = self._get_catalog_dependencies(context, schema.database_name)
        parsed_deps = parse_text_dependencies(schema)
        synonym_deps = resolve_synonym_dependencies(schema)

        seen: Set[str] = set()
        for dep in catalog_deps + parsed_deps + synonym_deps:
            key = f"{dep.from_schema}.{dep.from_name}->{dep.to_full_name}".lower()
            if key not in seen:
                seen.add(key)
                relationship_map.view_dependencies.append(dep)

        relationship_map.dependencies = build_dependency_graph(
            schema, relationship_map.explicit_relationships, relationship_map.view_dependencies)
        relationship_map.circular_references = find_circular_references(relationship_map.dependencies)

        logger.info(
            f"Relationships for {schema.database_name}: "
            f"{len(relationship_map.explicit_relationships)} explicit, "
            f"{len(relationship_map.implicit_relationships)} implicit, "
            f"{len(relationship_map.view_dependencies)} object dependencies, "
            f"{len(relationship_map.circular_references)} cycles"
        )
        return {'relationships': relationship_map}

    def _get_catalog_dependencies(self, context: AnalysisContext, current_db: Optional[str]) -> List[ObjectDependency]:
        try:
            rows = context.catalog_queries.get_object_dependencies(context.provider)
        except Exception as e:
            logger.warning(f"Catalog dependency query failed, using parsed dependencies only: {e}")
            return []

        deps = []
        for row in rows:
            to_database = row.to_database
            if to_database and current_db and to_database.lower() == current_db.lower():
                to_database = None
            deps.append(ObjectDependency(
                from_schema=row.from_schema, from_name=row.from_name, from_type=row.from_type,
                to_schema=row.to_schema, to_name=row.to_name, to_type=row.to_type,
                to_database=to_database or None, detected_via='catalog',
            ))
        return deps
