#!/usr/bin/env python3
"""
Repository Client REPL

Interactive command-line interface for an RDF metadata repository using the client library.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from prompt_toolkit import prompt
from prompt_toolkit.history import FileHistory
from prompt_toolkit.shortcuts import CompleteStyle
from rdflib import URIRef
from tabulate import tabulate

from repolib.client.client_factory import create_repo
from repolib.client.repo import Repo
from repolib.client.repo_resource import RepoResource
from repolib.model.search_config import MetadataMode, SearchConfig
from repolib.model.search_term import SearchTerm
from repolib.utils.client_utils import RepoLibError


class RepoREPL:
    """Repository REPL implementation with connection management."""

    def __init__(self, config_path: Optional[str] = None):
        self.repo: Optional[Repo] = None
        self.connected = False
        self.config_path = config_path

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(sig, frame):
            self._close_quietly()
            print("Goodbye!")
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)

    def _close_quietly(self):
        if self.repo and self.connected:
            print("Closing connection...")
            try:
                self.repo.close()
            except RepoLibError as e:
                print(f"Error closing connection: {e}")
            self.connected = False

    def parse_command(self, command_line: str) -> tuple[str, list[str]]:
        """Parse a command line into command and arguments."""
        if command_line.strip().endswith(';'):
            command_line = command_line.strip()[:-1]

        parts = command_line.strip().split()
        if not parts:
            return "", []

        return parts[0].lower(), parts[1:]

    def execute_command(self, command_line: str) -> bool:
        """Execute a REPL command. Returns False if should exit."""
        if not command_line.strip():
            return True

        command, args = self.parse_command(command_line)
        handlers = {
            'exit': self.cmd_exit,
            'quit': self.cmd_exit,
            'open': self.cmd_open,
            'close': self.cmd_close,
            'help': self.cmd_help,
            '?': self.cmd_help,
            'get': self.cmd_get,
            'meta': self.cmd_meta,
            'search': self.cmd_search,
            'delete': self.cmd_delete,
            'rdelete': self.cmd_rdelete,
        }
        handler = handlers.get(command)
        if handler is None:
            print(f"Unknown command: {command}")
            print("Type 'help;' or '?;' for available commands.")
            return True

        if command not in ('exit', 'quit', 'open', 'close', 'help', '?') and not self.connected:
            print("Not connected. Use 'open;' first.")
            return True
        try:
            return handler(args)
        except (RepoLibError, ValueError) as e:
            print(f"❌ {e}")
            return True

    def cmd_exit(self, args: List[str]) -> bool:
        """Exit the REPL."""
        self._close_quietly()
        print("Goodbye!")
        return False

    def cmd_open(self, args: List[str]) -> bool:
        """Open connection to the repository."""
        if self.connected:
            print("Already connected. Use 'close;' first to disconnect.")
            return True

        try:
            if not self.repo:
                if self.config_path:
                    print(f"Using config file (from --config): {self.config_path}")
                self.repo = create_repo(self.config_path)

            print(f"Connecting to {self.repo.get_base_url()}...")
            self.repo.open()
            self.connected = True
            print("✅ Connected successfully!")

        except RepoLibError as e:
            print(f"❌ Connection failed: {e}")

        return True

    def cmd_close(self, args: List[str]) -> bool:
        """Close connection to the repository."""
        if not self.connected:
            print("Not connected.")
            return True

        self.repo.close()
        self.connected = False
        print("✅ Disconnected successfully!")
        return True

    def cmd_get(self, args: List[str]) -> bool:
        """Resolve a resource by one or more identifiers."""
        if not args:
            print("Usage: get <id> [<id> ...];")
            return True
        res = self.repo.get_resource_by_ids(args)
        print(res.get_uri())
        return True

    def cmd_meta(self, args: List[str]) -> bool:
        """Show resource metadata."""
        if not args:
            print("Usage: meta <uri> [resource|neighbors|relatives] [parentProperty];")
            return True
        mode = MetadataMode(args[1]) if len(args) > 1 else MetadataMode.RESOURCE
        parent = args[2] if len(args) > 2 else None
        res = RepoResource(args[0], self.repo)
        res.load_metadata(True, mode, parent)
        graph = res.get_graph().graph
        rows = sorted((str(s), str(p), str(o)) for s, p, o in graph)
        print(tabulate(rows, headers=['subject', 'predicate', 'object']))
        return True

    def cmd_search(self, args: List[str]) -> bool:
        """Search resources by a property value."""
        if len(args) < 2:
            print("Usage: search <property> <value> [limit];")
            return True
        config = SearchConfig(metadata_mode=MetadataMode.RESOURCE, limit=int(args[2]) if len(args) > 2 else 20)
        results = self.repo.get_resources_by_search_terms([SearchTerm(args[0], args[1])], config)
        label = self.repo.get_schema().label
        rows = []
        for res in results:
            meta = res.get_graph()
            title = meta.graph.value(meta.identifier, URIRef(label)) if label else None
            rows.append((res.get_uri(), str(title) if title is not None else ''))
        print(tabulate(rows, headers=['uri', 'label']))
        print(f"{len(rows)} of {config.count} matches")
        return True

    def cmd_delete(self, args: List[str]) -> bool:
        """Delete a resource."""
        if not args:
            print("Usage: delete <uri> [tombstone] [references];")
            return True
        res = RepoResource(args[0], self.repo)
        res.delete('tombstone' in args[1:], 'references' in args[1:])
        print(f"✅ Deleted {args[0]}")
        return True

    def cmd_rdelete(self, args: List[str]) -> bool:
        """Delete a resource and everything pointing to it via a property."""
        if len(args) < 2:
            print("Usage: rdelete <uri> <property> [tombstone] [references];")
            return True
        res = RepoResource(args[0], self.repo)
        res.delete_recursively(args[1], 'tombstone' in args[2:], 'references' in args[2:])
        print(f"✅ Deleted {args[0]} recursively")
        return True

    def cmd_help(self, args: List[str]) -> bool:
        """Show help information."""
        print("""
Repository Client REPL Commands:

  open;                                         - Connect to the repository
  close;                                        - Disconnect from the repository
  get <id> [<id> ...];                          - Find a resource by identifiers
  meta <uri> [mode] [parentProperty];           - Show resource metadata
  search <property> <value> [limit];            - Search resources
  delete <uri> [tombstone] [references];        - Delete a resource
  rdelete <uri> <property> [tombstone] [references]; - Delete a resource recursively
  exit;                                         - Exit the REPL (also quit;)
  help;                                         - Show this help message

Notes:
  - All commands must end with a semicolon (;)
  - Use Ctrl+D to exit

Connection Status: {}
""".format("🟢 Connected" if self.connected else "🔴 Disconnected"))
        return True

    def run_repl(self):
        """Run the interactive REPL."""
        self.setup_signal_handlers()

        print("Repository Client REPL")
        print("Type 'help;' or '?;' for commands, 'exit;' to quit, or Ctrl+D to exit.")
        print()

        history = FileHistory(str(Path.home() / ".repolib_history"))

        while True:
            try:
                status = "🟢" if self.connected else "🔴"
                command_line = prompt(
                    f"repo{status}> ",
                    history=history,
                    complete_style=CompleteStyle.READLINE_LIKE
                )

                if not self.execute_command(command_line):
                    break

            except EOFError:
                print()
                self._close_quietly()
                print("Goodbye!")
                break
            except KeyboardInterrupt:
                continue


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the repository REPL."""
    parser = argparse.ArgumentParser(
        description="Repository Client REPL - Interactive command-line interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  repolib-repl                                # Start REPL with default settings
  repolib-repl --config /path/to/config.yaml  # Use custom config file
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to repository client configuration file (default: auto-detected)"
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Environment file with REPOLIB_CLIENT_USERNAME/REPOLIB_CLIENT_PASSWORD (default: .env)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging level (default: WARNING)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Repository Client REPL 1.0.0"
    )

    return parser.parse_args()


def main():
    """Main entry point for the repository client REPL."""
    args = parse_args()

    logging.basicConfig(level=args.log_level.upper(), format='%(levelname)s: %(message)s')
    if Path(args.env_file).exists():
        load_dotenv(args.env_file)

    try:
        repl_instance = RepoREPL(config_path=args.config)
        repl_instance.run_repl()
    except KeyboardInterrupt:
        print("\nGoodbye!")
        sys.exit(0)


if __name__ == "__main__":
    main()
