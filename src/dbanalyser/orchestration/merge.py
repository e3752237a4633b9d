"""
Merge rules for combining per-database results into one server-wide result.

Two granularities are used:

* replace-for-database: rows tagged with one database are removed from every
  section being merged before that database's fresh rows are appended. Used by
  the fan-out (where the aggregate starts empty) and by targeted single-database
  refreshes.
* replace-section-if-nonempty: a whole section of the session aggregate is swapped
  for the incoming one unless the incoming one carries no rows. Used when a full
  server rerun is folded into an existing session result.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from ..analyzers.models import (
    AnalysisResult, DependencyNode, RelationshipMap, UsageAnalysis, is_section_empty,
)
from ..analyzers.relationship_analyzer import (
    find_circular_references, index_nodes, recompute_graph_metrics,
)
from ..database.models import DatabaseSchema

SECTIONS = ('schema', 'profiles', 'relationships', 'quality_issues', 'usage_analysis',
            'index_recommendations', 'index_inventory')

SCHEMA_COLLECTIONS = ('tables', 'views', 'stored_procedures', 'functions', 'triggers',
                      'synonyms', 'sequences', 'user_defined_types')


def qualify_name(name: str, database: str) -> str:
    """schema.object -> database.schema.object; names with two or more dots are left alone"""
    if name.count('.') >= 2:
        return name
    return f"{database}.{name}"


def _same_database(value: Optional[str], database: str) -> bool:
    return value is not None and value.lower() == database.lower()


def _belongs_to(name: str, database: str) -> bool:
    return name.count('.') >= 2 and name.lower().startswith(database.lower() + '.')


def _union(target: List[str], names: Iterable[str]):
    present = {n.lower() for n in target}
    for name in names:
        if name.lower() not in present:
            target.append(name)
            present.add(name.lower())


def empty_section(section: str, scope_name: str) -> Any:
    """The value a section holds after its analyzer ran and found nothing"""
    if section == 'schema':
        return DatabaseSchema(database_name=scope_name)
    if section == 'relationships':
        return RelationshipMap()
    if section == 'usage_analysis':
        return UsageAnalysis()
    return []


def _stamp(items: Iterable, database: str):
    for item in items:
        if item.database_name is None:
            item.database_name = database


def _merge_schema(target: AnalysisResult, schema: DatabaseSchema, database: str, replace: bool):
    if target.schema is None:
        target.schema = empty_section('schema', target.database_name)
    merged = target.schema

    for attr in SCHEMA_COLLECTIONS:
        items = getattr(merged, attr)
        if replace:
            items[:] = [i for i in items if not _same_database(i.database_name, database)]
        incoming = getattr(schema, attr)
        _stamp(incoming, database)
        items.extend(incoming)

    # jobs are server level; the same job can surface from several databases
    if replace:
        kept = []
        for job in merged.jobs:
            job.source_databases = [d for d in job.source_databases if not _same_database(d, database)]
            if job.source_databases:
                kept.append(job)
        merged.jobs[:] = kept

    positions = {job.job_name.lower(): i for i, job in enumerate(merged.jobs)}
    for job in schema.jobs:
        position = positions.get(job.job_name.lower())
        sources = [] if position is None else list(merged.jobs[position].source_databases)
        if not any(_same_database(s, database) for s in sources):
            sources.append(database)
        job.source_databases = sources
        if position is None:
            positions[job.job_name.lower()] = len(merged.jobs)
            merged.jobs.append(job)
        else:
            merged.jobs[position] = job


def _absorb(real: DependencyNode, other: DependencyNode):
    _union(real.depends_on, other.depends_on)
    _union(real.referenced_by, other.referenced_by)


def _remove_database_nodes(merged: RelationshipMap, database: str) -> Dict[str, List[str]]:
    """Drop a database's nodes; return the references other databases held on them"""
    carried: Dict[str, List[str]] = {}
    kept: List[DependencyNode] = []
    for node in merged.dependencies:
        if node.external_database is None and _same_database(node.database_name, database):
            carried[node.full_name.lower()] = [r for r in node.referenced_by if not _belongs_to(r, database)]
            continue
        node.referenced_by = [r for r in node.referenced_by if not _belongs_to(r, database)]
        if node.external_database is not None and not node.referenced_by:
            continue
        kept.append(node)
    merged.dependencies = kept
    return carried


def _merge_relationships(target: AnalysisResult, relationships: RelationshipMap, database: str, replace: bool):
    if target.relationships is None:
        target.relationships = RelationshipMap()
    merged = target.relationships

    carried: Dict[str, List[str]] = {}
    if replace:
        merged.explicit_relationships = [fk for fk in merged.explicit_relationships
                                         if not _same_database(fk.from_database, database)]
        merged.implicit_relationships = [r for r in merged.implicit_relationships
                                         if not _same_database(r.from_database, database)]
        merged.view_dependencies = [d for d in merged.view_dependencies
                                    if not _same_database(d.from_database, database)]
        carried = _remove_database_nodes(merged, database)

    for fk in relationships.explicit_relationships:
        fk.from_database = database
        fk.to_database = fk.to_database or database
        merged.explicit_relationships.append(fk)

    for rel in relationships.implicit_relationships:
        rel.from_database = database
        rel.to_database = rel.to_database or database
        merged.implicit_relationships.append(rel)

    for dep in relationships.view_dependencies:
        dep.from_database = database
        dep.to_database = dep.to_database or database
        merged.view_dependencies.append(dep)

    existing = index_nodes(merged.dependencies)
    for node in relationships.dependencies:
        if node.database_name is None:
            node.database_name = database
        node.depends_on = [qualify_name(n, database) for n in node.depends_on]
        node.referenced_by = [qualify_name(n, database) for n in node.referenced_by]
        node.transitive_impact = [qualify_name(n, database) for n in node.transitive_impact]
        _union(node.referenced_by, carried.get(node.full_name.lower(), []))

        key = node.full_name.lower()
        current = existing.get(key)
        if current is None:
            merged.dependencies.append(node)
            existing[key] = node
        elif current.external_database is not None and node.external_database is None:
            # a real node replaces the placeholder another database created for it
            _absorb(node, current)
            merged.dependencies[merged.dependencies.index(current)] = node
            existing[key] = node
        else:
            _absorb(current, node)

    merged.circular_references.extend(
        [qualify_name(n, database) for n in cycle] for cycle in relationships.circular_references)


def _merge_list(section: str) -> Callable[[AnalysisResult, List, str, bool], None]:
    def merge(target: AnalysisResult, items: List, database: str, replace: bool):
        current = target.get_section(section)
        if current is None:
            current = []
        elif replace:
            current = [i for i in current if not _same_database(i.database_name, database)]
        _stamp(items, database)
        setattr(target, section, current + list(items))
    return merge


def _merge_usage(target: AnalysisResult, usage: UsageAnalysis, database: str, replace: bool):
    if target.usage_analysis is None:
        target.usage_analysis = UsageAnalysis()
    merged = target.usage_analysis
    if replace:
        merged.objects = [o for o in merged.objects if not _same_database(o.database_name, database)]
    _stamp(usage.objects, database)
    merged.objects.extend(usage.objects)
    if merged.server_start_time is None:
        merged.server_start_time = usage.server_start_time
    if merged.server_uptime_days is None:
        merged.server_uptime_days = usage.server_uptime_days


SECTION_MERGERS = {
    'schema': _merge_schema,
    'profiles': _merge_list('profiles'),
    'relationships': _merge_relationships,
    'quality_issues': _merge_list('quality_issues'),
    'usage_analysis': _merge_usage,
    'index_recommendations': _merge_list('index_recommendations'),
    'index_inventory': _merge_list('index_inventory'),
}


def merge_database_result(target: AnalysisResult, source: AnalysisResult, database: str,
                          sections: Optional[Iterable[str]] = None, replace: bool = False):
    """Append one database's sections to the aggregate, stamping rows with the database name"""
    for section in sections or SECTIONS:
        value = source.get_section(section)
        if value is not None:
            SECTION_MERGERS[section](target, value, database, replace)


def remove_database_rows(target: AnalysisResult, database: str, sections: Iterable[str]):
    """Drop one database's rows from the given sections, leaving other databases intact"""
    empty = AnalysisResult(database_name=database)
    for section in sections:
        if target.get_section(section) is not None:
            empty.apply({section: empty_section(section, database)})
    merge_database_result(target, empty, database, sections, replace=True)


def resolve_cross_database_references(result: AnalysisResult):
    """Fold placeholders for analyzed databases into their real nodes and refresh graph metrics"""
    relationships = result.relationships
    if relationships is None:
        return

    analyzed = {d.lower() for d in result.databases}
    real = {n.full_name.lower(): n for n in relationships.dependencies if n.external_database is None}

    kept: List[DependencyNode] = []
    for node in relationships.dependencies:
        if node.external_database is not None and node.external_database.lower() in analyzed:
            target = real.get(node.full_name.lower())
            if target is not None:
                _absorb(target, node)
                continue
            node.external_database = None
        kept.append(node)

    relationships.dependencies = recompute_graph_metrics(kept)
    relationships.circular_references = find_circular_references(relationships.dependencies)


def merge_server_result(existing: AnalysisResult, incoming: AnalysisResult):
    """Fold a fresh server aggregate into a session aggregate, section by section.

    A section the session already holds is kept unless the incoming one has rows;
    a section the session lacks (never run, or cleared by a forced run) is taken
    even when empty, so it reads as analyzed.
    """
    for section in SECTIONS:
        value = incoming.get_section(section)
        if value is None:
            continue
        if existing.get_section(section) is None or not is_section_empty(value):
            setattr(existing, section, value)
    existing.is_server_mode = True
    existing.analyzed_at = incoming.analyzed_at
    existing.databases = list(incoming.databases)
    existing.failed_databases = list(incoming.failed_databases)
