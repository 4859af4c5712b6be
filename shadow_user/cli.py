"""
CLI for Shadow User.

Provides the command-line interface using argparse.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import httpx
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .agent import BrowserAgent
from .config import AgentConfig, DEFAULTS, DialogPolicy
from .errors import AgentRunError
from .interrupts import get_console_input
from .profile import load_user_profile


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="shadow-user",
        description="Shadow User - an LLM agent that drives your own Chrome to finish web tasks for you.",
        epilog="""
Examples:
  # Order something using the data in user-profile.json
  shadow-user run "Order two bananas and oat milk to my home address"

  # Use a local OpenAI-compatible server
  shadow-user run "Find the opening hours of the nearest pharmacy" --model-endpoint http://localhost:1234/v1 --model qwen2.5

  # Attach to a Chrome started with --remote-debugging-port=9222
  shadow-user run "Check my cart" --cdp-url http://localhost:9222

  # Show the profile the agent will use
  shadow-user profile --show
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Shadow User {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the browser agent with a goal",
    )

    run_parser.add_argument(
        "goal",
        type=str,
        help="The goal to accomplish in natural language",
    )

    run_parser.add_argument(
        "--headless",
        action="store_true",
        default=DEFAULTS["headless"],
        help="Run browser in headless mode",
    )

    run_parser.add_argument(
        "--max-steps",
        type=int,
        default=DEFAULTS["max_steps"],
        help=f"Maximum decision steps (default: {DEFAULTS['max_steps']})",
    )

    run_parser.add_argument(
        "--model-endpoint",
        type=str,
        default=None,
        help=f"OpenAI-compatible API endpoint (default: {DEFAULTS['model_endpoint']})",
    )

    run_parser.add_argument(
        "--model",
        type=str,
        default=None,
        help=f"Model name (default: {DEFAULTS['model']})",
    )

    run_parser.add_argument(
        "--profile-file",
        type=str,
        default=None,
        help=f"User profile JSON (default: {DEFAULTS['profile_file']})",
    )

    run_parser.add_argument(
        "--dialogs",
        choices=[policy.value for policy in DialogPolicy],
        default=None,
        help=f"How to handle alert/confirm/prompt dialogs (default: {DEFAULTS['dialogs']})",
    )

    run_parser.add_argument(
        "--cdp-url",
        type=str,
        default=None,
        help="Attach to a running Chrome over CDP instead of launching one",
    )

    run_parser.add_argument(
        "-d", "--debug",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )

    # Profile command
    profile_parser = subparsers.add_parser(
        "profile",
        help="Inspect the user profile",
    )

    profile_parser.add_argument(
        "--show",
        action="store_true",
        help="Display the loaded profile",
    )

    profile_parser.add_argument(
        "--profile-file",
        type=str,
        default=None,
        help=f"User profile JSON (default: {DEFAULTS['profile_file']})",
    )

    return parser


def setup_logging(debug: bool) -> None:
    """Configure root logging for a CLI invocation."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_command(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    console = Console()

    config = AgentConfig.from_cli_args(
        goal=args.goal,
        headless=args.headless,
        max_steps=args.max_steps,
        model_endpoint=args.model_endpoint,
        model=args.model,
        profile_file=args.profile_file,
        dialogs=args.dialogs,
        cdp_url=args.cdp_url,
        debug=args.debug,
    )
    setup_logging(config.debug)

    try:
        agent = BrowserAgent(config, human=get_console_input())
        result = agent.run()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except AgentRunError as e:
        console.print(f"[bold red]Run aborted: {e}[/bold red]")
        return 1
    except httpx.HTTPError as e:
        console.print(f"[bold red]Completion service error: {e}[/bold red]")
        return 1
    except Exception as e:
        console.print(f"[bold red]Fatal error: {e}[/bold red]")
        if config.debug:
            console.print_exception()
        return 1

    if result.success:
        console.print()
        console.print(f"[bold green]✓ {result.finished_reason.value.capitalize()}[/bold green]")
        return 0

    console.print(f"\n[yellow]Stopped: {result.finished_reason.value}[/yellow]")
    return 1


def profile_command(args: argparse.Namespace) -> int:
    """Handle profile inspection.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    console = Console()
    path = Path(args.profile_file) if args.profile_file else AgentConfig().profile_path

    if not args.show:
        console.print(f"Profile file: {path}")
        return 0

    profile = load_user_profile(path)
    console.print(Panel(
        json.dumps(profile.model_dump(), indent=2, ensure_ascii=False),
        title=f"👤 {path}",
        border_style="cyan",
    ))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return run_command(args)

    if args.command == "profile":
        return profile_command(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
