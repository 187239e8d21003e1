#!/usr/bin/env python3
"""CLI entry point for LeadForge.

Builds websites, content kits and marketing campaigns for a business
described in a JSON file, and manages the artifacts and background tasks
kept in the local store.

Usage:
    leadforge build --business joes_pizza.json --agent website --output out/
    leadforge plan --business joes_pizza.json
    leadforge tasks
    leadforge history --export history.json
    leadforge models
    leadforge deploy --artifact 1712345678901 --simulate
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .builder import AGENT_CONFIGS, create_default_builder, determine_build_plan
from .config import config
from .errors import LeadForgeError, handle_error
from .generation_client import MODEL_INFO, TASK_MODELS
from .logging_utils import LogContext, setup_logging
from .models import AgentType, BuildingTask, BusinessRecord, TaskStatus
from .storage import ArtifactHistoryStore, LocalStore, ProjectStore, TaskStore
from .tasks import BackgroundTaskTracker
from .viewer import (
    ArtifactViewer,
    LocalDirectoryDeploymentProvider,
    SimulatedDeploymentProvider,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def load_business(path: str) -> BusinessRecord:
    """Read a business JSON file (backend or dashboard shape).

    Raises:
        LeadForgeError: If the file is missing, not JSON, or has no usable name.
    """
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return BusinessRecord.from_api(payload)
    except (OSError, ValueError, ValidationError) as e:
        raise LeadForgeError(f"Could not load business from {path}: {e}") from e


def print_task(task: BuildingTask) -> None:
    symbol = {
        TaskStatus.COMPLETED: "✓",
        TaskStatus.ERROR: "✗",
        TaskStatus.PAUSED: "⏸",
    }.get(task.status, "…")
    print(f"  [{symbol}] {task.business_name} - {task.agent_type.value} (ID: {task.id})")
    print(f"      Status: {task.status.value} ({task.progress}%)")
    if task.current_step:
        print(f"      Step: {task.current_step}")
    if task.error:
        print(f"      Error: {task.error}")


def progress_line(task: BuildingTask) -> None:
    bar_length = 30
    filled = int(bar_length * task.progress / 100)
    bar = "█" * filled + "░" * (bar_length - filled)
    print(f"\r[{bar}] {task.progress:3d}% - {task.current_step:<32}", end="", flush=True)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="leadforge",
        description="Generate websites and marketing material for local businesses",
        epilog="""
Examples:
  %(prog)s build --business joes_pizza.json --agent website --output out/
  %(prog)s plan --business joes_pizza.json
  %(prog)s deploy --artifact 1712345678901 --simulate
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--storage-dir",
        default=None,
        help=f"Directory for persisted state (default: {config.STORAGE_DIR})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build an artifact for a business")
    build.add_argument("--business", "-b", required=True, help="Business JSON file")
    build.add_argument(
        "--agent",
        "-a",
        choices=[a.value for a in AgentType],
        default=AgentType.WEBSITE.value,
        help="Agent to run (default: website)",
    )
    build.add_argument("--output", "-o", default=None, help="Directory to write the HTML file to")
    build.add_argument("--api-key", default=None, help="OpenRouter API key for this build")
    build.add_argument(
        "--no-remote",
        action="store_true",
        help="Skip remote generation and use the built-in templates",
    )
    build.add_argument("--quiet", "-q", action="store_true", help="Suppress progress output")

    plan = subparsers.add_parser("plan", help="Show which agents a business needs")
    plan.add_argument("--business", "-b", required=True, help="Business JSON file")

    subparsers.add_parser("tasks", help="List background build tasks")

    history = subparsers.add_parser("history", help="List generated artifacts")
    history.add_argument("--export", default=None, help="Write the history to a JSON file")

    subparsers.add_parser("models", help="Show available AI models and task mapping")

    deploy = subparsers.add_parser("deploy", help="Deploy a stored artifact")
    deploy.add_argument("--artifact", required=True, help="Artifact ID from history")
    deploy.add_argument(
        "--simulate",
        action="store_true",
        help="Simulate the deployment instead of writing files",
    )
    deploy.add_argument(
        "--output-dir",
        default=None,
        help=f"Deployment directory (default: {config.DEPLOY_OUTPUT_DIR})",
    )

    return parser


async def run_build(args: argparse.Namespace, store: LocalStore) -> int:
    business = load_business(args.business)
    agent = AgentType(args.agent)

    artifacts = ArtifactHistoryStore(store)
    builder = create_default_builder(
        artifact_store=artifacts,
        project_store=ProjectStore(store, config.USER_ID),
        use_remote=not args.no_remote,
    )
    tracker = BackgroundTaskTracker(builder, TaskStore(store))

    print(f"\nBuilding {AGENT_CONFIGS[agent].name} for {business.name}")
    print(f"Estimated time: {AGENT_CONFIGS[agent].estimated_time}\n")

    with LogContext(business_id=business.id, agent_type=agent.value):
        # Tasks left building by an interrupted run become paused and are replaced below
        await tracker.restore({business.id: business})
        task = tracker.find(business.id, agent)
        if task is None or not tracker.is_running(task.id):
            task = await tracker.start(business, agent, api_key=args.api_key)
        while tracker.is_running(task.id):
            if not args.quiet:
                progress_line(task)
            await asyncio.sleep(0.2)
        task = await tracker.wait(task.id)

    if not args.quiet:
        progress_line(task)
        print("\n")
    print_task(task)

    if task.status != TaskStatus.COMPLETED or task.artifact is None:
        return EXIT_ERROR

    path_info = task.artifact.metadata.get("generation_path", "")
    print(f"      Generated via: {path_info}")
    if args.output:
        path = ArtifactViewer(task.artifact).download(args.output)
        print(f"      Saved to: {path}")
    return EXIT_OK


def run_plan(args: argparse.Namespace) -> int:
    business = load_business(args.business)
    print(f"\nBuild plan for {business.name}:")
    for agent in determine_build_plan(business):
        agent_config = AGENT_CONFIGS[agent]
        print(f"  - {agent_config.name} ({agent_config.estimated_time})")
    return EXIT_OK


def run_tasks(store: LocalStore) -> int:
    tasks = TaskStore(store).list()
    if not tasks:
        print("No background tasks.")
        return EXIT_OK
    print(f"\nBackground tasks ({len(tasks)}):")
    for task in tasks:
        print_task(task)
    return EXIT_OK


def run_history(args: argparse.Namespace, store: LocalStore) -> int:
    history = ArtifactHistoryStore(store)
    if args.export:
        path = history.export_json(args.export)
        print(f"Exported {len(history.items)} artifact(s) to {path}")
        return EXIT_OK
    if not history.items:
        print("No generated artifacts.")
        return EXIT_OK
    print(f"\nArtifact history ({len(history.items)}):")
    for item in history.items:
        print(f"  {item.id}  {item.type.value:<12} {item.name}  ({item.saved_at:%Y-%m-%d %H:%M})")
    return EXIT_OK


def run_models() -> int:
    print("\nAvailable models:")
    for model_id, info in MODEL_INFO.items():
        print(f"  {info['name']:<18} {model_id}")
        print(f"      Best for: {info['best_for']}; strengths: {', '.join(info['strengths'])}")
    print("\nTask mapping:")
    for task, model_id in TASK_MODELS.items():
        print(f"  {task:<14} -> {model_id}")
    return EXIT_OK


async def run_deploy(args: argparse.Namespace, store: LocalStore) -> int:
    history = ArtifactHistoryStore(store)
    artifact = history.get_by_id(args.artifact)
    if artifact is None:
        print(f"Error: No artifact with ID {args.artifact} in history.")
        return EXIT_ERROR

    if args.simulate:
        provider = SimulatedDeploymentProvider()
    else:
        provider = LocalDirectoryDeploymentProvider(args.output_dir)

    print(f"\nDeploying {artifact.name}...")
    result = await ArtifactViewer(artifact).deploy(provider)
    if not result.success:
        print(f"Deployment failed: {result.error}")
        return EXIT_ERROR
    print(f"Deployment {result.status.value}: {result.url or result.project_name}")
    return EXIT_OK


def dispatch(args: argparse.Namespace) -> int:
    store = LocalStore(args.storage_dir or config.STORAGE_DIR)
    if args.command == "build":
        return asyncio.run(run_build(args, store))
    if args.command == "plan":
        return run_plan(args)
    if args.command == "tasks":
        return run_tasks(store)
    if args.command == "history":
        return run_history(args, store)
    if args.command == "models":
        return run_models()
    if args.command == "deploy":
        return asyncio.run(run_deploy(args, store))
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for a handled error, 130 on interrupt).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.debug else ("INFO" if args.verbose else "WARNING")
    setup_logging(level=level)

    try:
        return dispatch(args)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        return EXIT_INTERRUPTED
    except LeadForgeError as e:
        notice = handle_error(e, silent=not (args.verbose or args.debug))
        print(f"\nError: {notice}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
