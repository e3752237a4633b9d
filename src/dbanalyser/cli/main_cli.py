"""
Interactive console front end for the analysis session service
"""

from typing import Optional, Tuple

from ..analyzers.models import AnalysisResult
from ..config import AnalysisSettings
from ..orchestration.sessions import SessionManager


def parse_run_command(user_input: str) -> Tuple[str, bool, Optional[str]]:
    """RUN <analyzer> [FORCE] [DB <name>] -> (analyzer, force, database)"""
    parts = user_input.split()
    if len(parts) < 2:
        raise ValueError("Usage: RUN <analyzer> [FORCE] [DB <name>]")

    analyzer = parts[1].lower()
    force = False
    database = None
    rest = parts[2:]
    while rest:
        token = rest.pop(0)
        if token.upper() == 'FORCE':
            force = True
        elif token.upper() == 'DB' and rest:
            database = rest.pop(0)
        else:
            raise ValueError(f"Unexpected argument: {token}")
    return analyzer, force, database


def print_summary(result: Optional[AnalysisResult]):
    if result is None:
        print("No analysis has run yet. Try 'ALL' or 'RUN schema'.")
        return

    scope = 'server' if result.is_server_mode else 'database'
    print(f"\n📊 Analysis of {scope} {result.database_name} ({result.analyzed_at:%Y-%m-%d %H:%M:%S})")
    if result.is_server_mode:
        print(f"  Databases analyzed: {len(result.databases)} [{', '.join(result.databases)}]")
        for failure in result.failed_databases:
            print(f"  ❌ {failure.database_name}: {failure.error_message}")

    if result.schema is not None:
        schema = result.schema
        print(f"  📋 {len(schema.tables)} tables, {len(schema.views)} views, "
              f"{len(schema.stored_procedures)} procedures, {len(schema.functions)} functions")
    if result.profiles is not None:
        print(f"  📈 {len(result.profiles)} tables profiled")
    if result.relationships is not None:
        rel = result.relationships
        print(f"  🔗 {len(rel.explicit_relationships)} foreign keys, "
              f"{len(rel.implicit_relationships)} implicit relationships, "
              f"{len(rel.dependencies)} graph nodes, {len(rel.circular_references)} cycles")
        for node in rel.dependencies[:5]:
            print(f"     - {node.full_name} [{node.object_type}] importance {node.importance_score}")
    if result.quality_issues is not None:
        print(f"  🩺 {len(result.quality_issues)} quality issues")
    if result.usage_analysis is not None:
        counts = {}
        for obj in result.usage_analysis.objects:
            counts[obj.usage_level.value] = counts.get(obj.usage_level.value, 0) + 1
        breakdown = ', '.join(f"{level}: {count}" for level, count in sorted(counts.items()))
        print(f"  🕒 Usage: {breakdown or 'no objects'}")
    if result.index_recommendations is not None:
        print(f"  🗂️ {len(result.index_recommendations)} index recommendations")


def print_impact(result: Optional[AnalysisResult], object_name: str):
    if result is None or result.relationships is None:
        print("Run the relationships analyzer first: RUN relationships")
        return
    node = result.relationships.find_node(object_name)
    if node is None:
        print(f"Object '{object_name}' not found in the dependency graph")
        return

    print(f"\n💥 Impact of changing {node.full_name} [{node.object_type}]:")
    print(f"  Depends on: {', '.join(node.depends_on) or 'nothing'}")
    print(f"  Referenced by: {', '.join(node.referenced_by) or 'nothing'}")
    print(f"  Transitively affected ({len(node.transitive_impact)}):")
    for name in node.transitive_impact[:20]:
        print(f"    - {name}")
    if len(node.transitive_impact) > 20:
        print(f"    ... and {len(node.transitive_impact) - 20} more")


def main():
    """Interactive analysis console"""
    print("""
    ╔══════════════════════════════════════════════════════════╗
    ║          🔎 Database Analysis Console 🔎                 ║
    ╚══════════════════════════════════════════════════════════╝
    """)

    settings = AnalysisSettings.from_env()
    manager = SessionManager(settings)
    supported = manager.provider_registry.get_supported_types()

    provider_type = settings.default_provider
    connection_string = settings.connection_string
    if not connection_string:
        print("\n📊 Available Database Types:")
        for i, name in enumerate(supported, 1):
            print(f"{i}. {name}")
        choice = input(f"\nSelect database type (1-{len(supported)}): ").strip()
        if choice.isdigit() and 1 <= int(choice) <= len(supported):
            provider_type = supported[int(choice) - 1]
        connection_string = input("Connection string (omit the database for a whole server): ").strip()

    print(f"\n🔌 Connecting to {provider_type}...")
    try:
        connected = manager.connect(connection_string, provider_type)
    except Exception as e:
        print(f"Failed to connect to database: {e}")
        return

    session_id = connected.session_id
    target = 'server' if connected.is_server_mode else f"database {connected.database_name}"
    print(f"✅ Connected to {target} on {connected.server_name} (session {session_id})")

    print("\n" + "="*60)
    print("💡 Commands:")
    print(f"  - 'RUN <analyzer> [FORCE] [DB <name>]' - analyzers: {', '.join(manager.analyzer_registry.names)}")
    print("  - 'ALL' - Run the configured default analyzers")
    print("  - 'SUMMARY' - Show what has been found so far")
    print("  - 'IMPACT <object>' - Show what depends on an object")
    print("  - 'EXIT' - Exit")
    print("="*60)

    try:
        while True:
            try:
                user_input = input("\n💬 Command: ").strip()

                if not user_input:
                    continue

                command = user_input.split()[0].upper()
                if command == 'EXIT':
                    print("\n👋 Goodbye!")
                    break

                elif command == 'RUN':
                    analyzer, force, database = parse_run_command(user_input)
                    print(f"\n🔍 Running {analyzer}...")
                    manager.run_analyzer(session_id, analyzer, force, database)
                    print(f"✅ {analyzer} complete")

                elif command == 'ALL':
                    print(f"\n🔍 Running {', '.join(settings.default_analyzers)}...")
                    manager.run_analysis(session_id)
                    print_summary(manager.get_result(session_id))

                elif command == 'SUMMARY':
                    print_summary(manager.get_result(session_id))

                elif command == 'IMPACT':
                    parts = user_input.split(maxsplit=1)
                    if len(parts) < 2:
                        print("Usage: IMPACT <object>")
                    else:
                        print_impact(manager.get_result(session_id), parts[1])

                else:
                    print(f"Unknown command: {command}")

            except KeyboardInterrupt:
                print("\n\n👋 Session interrupted. Goodbye!")
                break
            except Exception as e:
                print(f"\n❌ Error: {str(e)}")
                print("Please try again or type 'EXIT' to quit")
    finally:
        manager.close_all()


if __name__ == "__main__":
    main()
