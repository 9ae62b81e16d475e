#!/usr/bin/env python3
"""
Mockzilla Workflow CLI

Command-line interface for the Mockzilla workflow engine.

Commands:
    serve       - Start the workflow server
    simulate    - Run one request through a scenario and print the result
    validate    - Validate a workflow file
    export      - Export (part of) a workflow file

Examples:
    # Serve workflows with persisted state
    python3 mockzilla-workflow.py serve workflows.yaml --port 8080 --state-dir .state

    # Simulate a login request
    python3 mockzilla-workflow.py simulate workflows.yaml auth-flow POST /login --body '{"user": "ann"}'

    # Validate a workflow file
    python3 mockzilla-workflow.py validate workflows.yaml
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from mockzilla.common import WorkflowLoader, safe_json_parse
from mockzilla.mock import WorkflowServer, ServerConfig
from mockzilla.workflow import (
    WorkflowRepository,
    WorkflowProcessor,
    InMemoryStateStore,
    JsonFileStateStore,
    ScenarioStateDocument,
    WorkflowError
)


def _parse_pairs(pairs):
    """Parse key=value arguments into a dict."""
    result = {}
    for pair in pairs or []:
        if '=' in pair:
            key, value = pair.split('=', 1)
            result[key] = value
    return result


def cmd_serve(args):
    """
    Start the workflow server.

    Args:
        args: Parsed command-line arguments
    """
    print(f"🦖 Mockzilla Workflow Server")

    if args.config:
        try:
            config = ServerConfig.from_yaml(args.config)
        except Exception as e:
            print(f"❌ Failed to load config: {e}")
            sys.exit(1)
    else:
        config = ServerConfig()

    # Command-line flags override the config file
    if args.workflow_file:
        config.workflow_file = args.workflow_file
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.state_dir:
        config.state_dir = args.state_dir
    if args.autosave:
        config.autosave = True
    if args.no_admin:
        config.admin_enabled = False
    if args.log_level:
        config.log_level = args.log_level
    if args.verbose:
        config.verbose_mode = True
        print(f"📋 Verbose mode enabled (one line per request)")

    try:
        server = WorkflowServer(config=config)
    except Exception as e:
        print(f"❌ Failed to create workflow server: {e}")
        sys.exit(1)

    # Start server (blocking)
    try:
        server.start()
    except KeyboardInterrupt:
        print("\n\n👋 Workflow server stopped")


def cmd_simulate(args):
    """
    Simulate a request against a scenario using condition-aware routing.

    Args:
        args: Parsed command-line arguments
    """
    try:
        repository = WorkflowRepository(workflow_file=args.workflow_file)
    except Exception as e:
        print(f"❌ Failed to load workflows: {e}")
        sys.exit(1)

    store = JsonFileStateStore(args.state_dir) if args.state_dir else InMemoryStateStore()
    processor = WorkflowProcessor(repository, store)

    body = safe_json_parse(args.body, default=args.body) if args.body else {}
    seed = safe_json_parse(args.state, default=None) if args.state else None
    if args.state and not isinstance(seed, dict):
        print(f"❌ --state must be a JSON object with 'state' and/or 'tables'")
        sys.exit(1)

    async def run():
        if seed is not None:
            await store.upsert(args.scenario, ScenarioStateDocument.from_dict(seed))
        result = await processor.simulate(
            args.scenario,
            args.path,
            args.method,
            body=body,
            query=_parse_pairs(args.query),
            headers=_parse_pairs(args.header)
        )
        result['state'] = await processor.inspect_state(args.scenario)
        return result

    try:
        result = asyncio.run(run())
    except WorkflowError as e:
        print(f"❌ Simulation failed: {e}")
        sys.exit(1)

    print(json.dumps(result, indent=2))

    if not result['success']:
        sys.exit(1)


def cmd_validate(args):
    """
    Validate a workflow file and report issues.

    Args:
        args: Parsed command-line arguments
    """
    print(f"✓ Mockzilla Workflow Validation")
    print(f"   Workflow file: {args.workflow_file}")

    try:
        loader = WorkflowLoader(args.workflow_file)
        data = loader.load()
    except Exception as e:
        print(f"❌ Failed to load workflows: {e}")
        sys.exit(1)

    print(f"   Scenarios: {len(data['scenarios'])}")
    print(f"   Transitions: {len(data['transitions'])}")
    print()

    errors = []
    warnings = []

    for i, transition in enumerate(loader.invalid_transitions(data)):
        errors.append(f"Transition {transition.get('name') or i}: missing scenarioId, path, method or response")

    # Full parse catches malformed conditions and effects
    if not errors:
        try:
            repository = WorkflowRepository()
            repository.import_workflows(data)
        except WorkflowError as e:
            errors.append(str(e))
        else:
            declared = {s.get('id') for s in data['scenarios'] if isinstance(s, dict)}
            for transition in repository.transitions:
                if transition.scenario_id not in declared:
                    warnings.append(
                        f"Transition {transition.method} {transition.path} references undeclared "
                        f"scenario '{transition.scenario_id}' (it will be auto-created)"
                    )

    if errors:
        print("❌ Errors found:")
        for error in errors:
            print(f"   • {error}")
        print()

    if warnings:
        print("⚠️  Warnings:")
        for warning in warnings:
            print(f"   • {warning}")
        print()

    if not errors and not warnings:
        print("✅ All validations passed!")
    else:
        print(f"📊 Summary:")
        print(f"   Errors: {len(errors)}")
        print(f"   Warnings: {len(warnings)}")

    if errors:
        sys.exit(1)


def cmd_export(args):
    """
    Export scenarios and transitions from a workflow file.

    Args:
        args: Parsed command-line arguments
    """
    try:
        repository = WorkflowRepository(workflow_file=args.workflow_file)
        data = repository.export_workflows(args.scenario)
    except Exception as e:
        print(f"❌ Export failed: {e}")
        sys.exit(1)

    if args.output:
        WorkflowLoader(args.output).save(data)
        print(f"💾 Exported {len(data['scenarios'])} scenarios and {len(data['transitions'])} transitions to {args.output}")
    else:
        print(json.dumps(data, indent=2))


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Mockzilla Workflow - Stateful mock server driven by workflow scenarios",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve workflows
  %(prog)s serve workflows.yaml --port 8080

  # Serve from a YAML config file
  %(prog)s serve --config mockzilla.yaml

  # Simulate a request with seeded state
  %(prog)s simulate workflows.yaml shop GET /cart --state '{"tables": {"cart": []}}'

  # Validate a workflow file
  %(prog)s validate workflows.yaml

  # Export one scenario as YAML
  %(prog)s export workflows.json --scenario auth-flow -o auth-flow.yaml
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start the workflow server')
    serve_parser.add_argument('workflow_file', nargs='?', help='Workflow JSON/YAML file')
    serve_parser.add_argument('-c', '--config', help='Server config YAML file')
    serve_parser.add_argument('--host', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, help='Port to bind (default: 8080)')
    serve_parser.add_argument('--state-dir', help='Persist scenario state as JSON files in this directory')
    serve_parser.add_argument('--autosave', action='store_true', help='Write admin changes back to the workflow file')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')
    serve_parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')
    serve_parser.add_argument('--verbose', action='store_true', help='Print one line per workflow request')

    # --- SIMULATE command ---
    simulate_parser = subparsers.add_parser('simulate', help='Simulate one request against a scenario')
    simulate_parser.add_argument('workflow_file', help='Workflow JSON/YAML file')
    simulate_parser.add_argument('scenario', help='Scenario id')
    simulate_parser.add_argument('method', help='HTTP method')
    simulate_parser.add_argument('path', help='Request path (e.g., /orders/42)')
    simulate_parser.add_argument('-b', '--body', help='Request body (JSON, or raw text)')
    simulate_parser.add_argument('-q', '--query', nargs='+', help='Query parameters (key=value)')
    simulate_parser.add_argument('-H', '--header', nargs='+', help='Headers (key=value)')
    simulate_parser.add_argument('--state', help='Seed state document as JSON: {"state": {...}, "tables": {...}}')
    simulate_parser.add_argument('--state-dir', help='Read and persist scenario state in this directory')

    # --- VALIDATE command ---
    validate_parser = subparsers.add_parser('validate', help='Validate a workflow file')
    validate_parser.add_argument('workflow_file', help='Workflow JSON/YAML file')

    # --- EXPORT command ---
    export_parser = subparsers.add_parser('export', help='Export scenarios and transitions')
    export_parser.add_argument('workflow_file', help='Workflow JSON/YAML file')
    export_parser.add_argument('-s', '--scenario', help='Export only this scenario')
    export_parser.add_argument('-o', '--output', help='Output file (.json or .yaml); prints JSON if omitted')

    # Parse arguments
    args = parser.parse_args()

    # Dispatch to command handler
    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'simulate':
        cmd_simulate(args)
    elif args.command == 'validate':
        cmd_validate(args)
    elif args.command == 'export':
        cmd_export(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
