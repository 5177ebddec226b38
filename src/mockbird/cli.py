"""
MockBird CLI

Command-line interface for the MockBird execution server.

Commands:
    serve       - Start the execution server
    init-db     - Create the SQLite schema
    seed        - Load a fixture file into a SQLite database
    validate    - Validate a fixture file

Examples:
    # Serve mocks from a fixture file
    mockbird serve --fixtures mocks.yaml --port 3001

    # Serve mocks from a database
    mockbird init-db mockbird.db
    mockbird seed mockbird.db mocks.yaml
    mockbird serve --database mockbird.db
"""

import argparse
import logging
import sys

from .common import FixtureError, FixtureLoader
from .execution import ExecutionConfig, MockExecutionServer, SQLiteStore, build_store
from .execution.models import ALLOWED_METHODS


def cmd_serve(args):
    """
    Start the execution server.

    Args:
        args: Parsed command-line arguments
    """
    config = ExecutionConfig.from_yaml(args.config) if args.config else ExecutionConfig()
    config.apply_env()

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.prefix:
        config.mount_prefix = args.prefix
    if args.log_level:
        config.log_level = args.log_level
    if args.database:
        config.database = args.database
    if args.fixtures:
        config.fixtures = args.fixtures
    if args.seed is not None:
        config.random_seed = args.seed
    if args.no_admin:
        config.admin_enabled = False
    if args.no_rate_limit:
        config.rate_limit_enabled = False

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if not config.database and not config.fixtures:
        print("❌ Nothing to serve: pass --fixtures FILE or --database DB")
        sys.exit(1)

    try:
        store = build_store(config)
    except (FileNotFoundError, FixtureError) as e:
        print(f"❌ Failed to load mocks: {e}")
        sys.exit(1)

    print(f"🐦 MockBird execution server")
    print(f"   Host: {config.host}:{config.port}")
    print(f"   Mount prefix: {config.mount_prefix}")
    print(f"   Store: {config.database or 'in-memory'}")
    if config.rate_limit_enabled:
        print(f"   Rate limit: {config.rate_limit_max_requests} requests / {config.rate_limit_window_seconds}s")
    print()

    server = MockExecutionServer(store, config=config)
    try:
        server.start()
    except KeyboardInterrupt:
        print("\n\n👋 MockBird stopped")


def cmd_init_db(args):
    """Create the SQLite schema."""
    SQLiteStore(args.database).initialize()
    print(f"✅ Tables created (or already exist) in {args.database}")


def cmd_seed(args):
    """Load a fixture file into a SQLite database."""
    store = SQLiteStore(args.database)
    store.initialize()
    try:
        count = store.load_fixtures(args.fixtures)
    except (FileNotFoundError, FixtureError) as e:
        print(f"❌ Seeding failed: {e}")
        sys.exit(1)
    print(f"✅ Seeded {count} projects into {args.database}")


def cmd_validate(args):
    """Validate a fixture file."""
    print(f"🔍 Validating {args.fixtures}")

    try:
        projects = FixtureLoader(args.fixtures).load()
    except (FileNotFoundError, FixtureError) as e:
        print(f"❌ {e}")
        sys.exit(1)

    errors = []
    warnings = []
    seen_slugs = set()

    for project in projects:
        slug = project['slug']
        if slug in seen_slugs:
            errors.append(f"{slug}: duplicate project slug")
        seen_slugs.add(slug)

        if bool(project.get('user_id')) == bool(project.get('organization_id')):
            errors.append(f"{slug}: exactly one of user_id or organization_id is required")

        routes = set()
        for mock in project.get('mocks') or []:
            path = mock.get('path')
            method = str(mock.get('method', 'GET')).upper()
            if not path:
                errors.append(f"{slug}: mock without path")
                continue
            if method not in ALLOWED_METHODS:
                errors.append(f"{slug}: {path} has unsupported method {method}")

            route = (path if path.startswith('/') else f'/{path}', method)
            if mock.get('is_active', True) and route in routes:
                warnings.append(f"{slug}: more than one active mock for {method} {route[0]}")
            routes.add(route)

            responses = mock.get('responses') or []
            if not responses:
                warnings.append(f"{slug}: {method} {path} has no responses")
            defaults = sum(1 for r in responses if r.get('is_default'))
            if defaults > 1:
                warnings.append(f"{slug}: {method} {path} has {defaults} default responses, only the last is kept")

    for error in errors:
        print(f"   ❌ {error}")
    for warning in warnings:
        print(f"   ⚠️  {warning}")

    if not errors and not warnings:
        print("✅ All validations passed!")
    else:
        print(f"📊 Summary:")
        print(f"   Errors: {len(errors)}")
        print(f"   Warnings: {len(warnings)}")

    if errors:
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="MockBird - execute hosted mock APIs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve --fixtures mocks.yaml --port 3001
  %(prog)s init-db mockbird.db
  %(prog)s seed mockbird.db mocks.yaml
  %(prog)s validate mocks.yaml
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start the execution server')
    serve_parser.add_argument('--fixtures', help='YAML/JSON fixture file with projects and mocks')
    serve_parser.add_argument('--database', help='SQLite database path')
    serve_parser.add_argument('--config', help='YAML config file')
    serve_parser.add_argument('--host', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, help='Port to bind (default: 3001)')
    serve_parser.add_argument('--prefix', help='Public mount prefix (default: /m)')
    serve_parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')
    serve_parser.add_argument('--seed', type=int, help='Random seed for reproducible weighted selection')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')
    serve_parser.add_argument('--no-rate-limit', action='store_true', help='Disable rate limiting')

    # --- INIT-DB command ---
    init_parser = subparsers.add_parser('init-db', help='Create the SQLite schema')
    init_parser.add_argument('database', help='SQLite database path')

    # --- SEED command ---
    seed_parser = subparsers.add_parser('seed', help='Load fixtures into a SQLite database')
    seed_parser.add_argument('database', help='SQLite database path')
    seed_parser.add_argument('fixtures', help='YAML/JSON fixture file')

    # --- VALIDATE command ---
    validate_parser = subparsers.add_parser('validate', help='Validate a fixture file')
    validate_parser.add_argument('fixtures', help='YAML/JSON fixture file')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'init-db':
        cmd_init_db(args)
    elif args.command == 'seed':
        cmd_seed(args)
    elif args.command == 'validate':
        cmd_validate(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
