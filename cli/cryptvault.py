#!/usr/bin/env python3
"""
CryptVault CLI - read and write project secrets with an API token.

Usage:
    cryptvault configure                       # Set up API connection
    cryptvault pull -e production              # Show secrets of an environment
    cryptvault pull -e dev -f env -o .env      # Write them to a dotenv file
    cryptvault push -e dev KEY=value ...       # Create or update secrets
    cryptvault push -e dev --file .env         # Push a dotenv or JSON file
"""

import os
import sys
import json
import argparse
from pathlib import Path
from typing import Dict, List, Optional

import requests
from requests.exceptions import ConnectionError, Timeout
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

# Configuration
CONFIG_DIR = Path.home() / ".cryptvault"
CONFIG_FILE = CONFIG_DIR / "config.json"
DEFAULT_BASE_URL = "http://localhost:8000"

console = Console()
err_console = Console(stderr=True)


def print_error(text: str):
    err_console.print(f"[red]Error:[/red] {text}")


def print_success(text: str):
    console.print(f"[green]✓[/green] {text}")


class CryptVaultClient:
    """Client of the token-authenticated /v1 API."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None):
        self.config = self._load_config()
        self.base_url = (base_url or os.getenv("CRYPTVAULT_URL") or self.config.get("base_url", "")).rstrip("/")
        self.token = token or os.getenv("CRYPTVAULT_TOKEN") or self.config.get("token")
        self.timeout = 30

    def _load_config(self) -> dict:
        """Load configuration from file."""
        if not CONFIG_FILE.exists():
            return {}
        try:
            with open(CONFIG_FILE) as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            print_error(f"Ignoring unreadable config {CONFIG_FILE}: {e}")
            return {}

    def _save_config(self, config: dict):
        """Save configuration to file, readable by the owner only."""
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            json.dump(config, f, indent=2)
        os.chmod(CONFIG_FILE, 0o600)

    def configure(self, base_url: str, token: str):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._save_config({
            "base_url": self.base_url,
            "token": self.token,
        })
        print_success(f"Configuration saved to {CONFIG_FILE}")

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Make an API request, exiting with a message on any failure."""
        if not self.base_url:
            print_error("API URL not configured. Run: cryptvault configure")
            sys.exit(1)
        if not self.token:
            print_error("API token not configured. Run: cryptvault configure")
            sys.exit(1)

        url = f"{self.base_url}{endpoint}"

        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs
            )
            response.raise_for_status()
            return response
        except ConnectionError:
            print_error(f"Cannot connect to {self.base_url}")
            sys.exit(1)
        except Timeout:
            print_error("Request timed out")
            sys.exit(1)
        except requests.HTTPError as e:
            try:
                error_detail = e.response.json().get("detail", str(e))
            except ValueError:
                error_detail = str(e)
            print_error(f"API error ({e.response.status_code}): {error_detail}")
            sys.exit(1)

    # ========== API Methods ==========

    def pull(self, environment: str, config: Optional[str] = None, fmt: str = "json") -> requests.Response:
        params = {"environment": environment, "format": fmt}
        if config:
            params["config"] = config
        return self._request("GET", "/v1/secrets", params=params)

    def push(self, environment: str, secrets: Dict[str, str], config: Optional[str] = None) -> dict:
        payload = {"environment": environment, "secrets": secrets}
        if config:
            payload["config"] = config
        return self._request("POST", "/v1/secrets", json=payload).json()


def parse_assignments(pairs: List[str]) -> Dict[str, str]:
    """Turn KEY=value arguments into a mapping."""
    secrets = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=value, got '{pair}'")
        secrets[key.strip()] = value
    return secrets


def read_secrets_file(path: Path) -> Dict[str, str]:
    """Read a JSON object or dotenv file into a mapping of strings."""
    content = path.read_text(encoding="utf-8-sig")

    if path.suffix == ".json":
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("JSON file must contain an object")
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}

    secrets = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, _, value = stripped.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        secrets[key.strip()] = value
    return secrets


# ========== CLI Commands ==========

def cmd_configure(args):
    """Configure API connection."""
    client = CryptVaultClient()

    base_url = args.url
    token = args.token
    if not (base_url and token):
        console.print(Panel.fit(
            "[bold]CryptVault CLI Configuration[/bold]\n\n"
            "You'll need:\n"
            "1. Your API base URL (e.g., http://localhost:8000)\n"
            "2. A project API token (crypt_...) created in the project's token settings",
            title="Setup"
        ))
        base_url = base_url or Prompt.ask("API Base URL", default=client.base_url or DEFAULT_BASE_URL)
        token = token or Prompt.ask("API Token", password=True)

    if not token:
        print_error("API token is required")
        sys.exit(1)
    if not token.startswith("crypt_"):
        print_error("API tokens start with 'crypt_'")
        sys.exit(1)

    client.configure(base_url, token)


def cmd_pull(args):
    """Print or save the secrets of one config."""
    client = CryptVaultClient()

    if args.format == "env":
        response = client.pull(args.environment, args.config, fmt="env")
        if args.output:
            Path(args.output).write_text(response.text + "\n", encoding="utf-8")
            print_success(f"Wrote {args.output}")
        else:
            print(response.text)
        return

    result = client.pull(args.environment, args.config).json()
    secrets = result.get("secrets", {})

    if args.output:
        Path(args.output).write_text(json.dumps(secrets, indent=2) + "\n", encoding="utf-8")
        print_success(f"Wrote {len(secrets)} secrets to {args.output}")
        return

    if args.json:
        console.print_json(json.dumps(result))
        return

    table = Table(title=f"{result.get('project')} / {result.get('environment')} / {result.get('config')}")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for key, value in secrets.items():
        table.add_row(key, value if args.reveal else "•" * min(len(value), 12))

    console.print(table)
    if not args.reveal:
        console.print("[dim]Values hidden. Use --reveal to show them.[/dim]")


def cmd_push(args):
    """Create or update secrets from arguments or a file."""
    client = CryptVaultClient()

    try:
        secrets = read_secrets_file(Path(args.file)) if args.file else {}
        secrets.update(parse_assignments(args.assignments))
    except (OSError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if not secrets:
        print_error("Nothing to push. Pass KEY=value pairs or --file")
        sys.exit(1)

    result = client.push(args.environment, secrets, args.config)

    print_success(f"{result.get('created', 0)} created, {result.get('updated', 0)} updated")
    rejected = result.get("rejected") or []
    if rejected:
        console.print(f"[yellow]Rejected:[/yellow] {', '.join(rejected)}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="CryptVault CLI - read and write project secrets with an API token",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cryptvault configure
  cryptvault pull -e production
  cryptvault pull -e dev -c dev_local -f env -o .env
  cryptvault push -e dev DATABASE_URL=postgres://localhost/app

The URL and token can also come from CRYPTVAULT_URL and CRYPTVAULT_TOKEN.
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Configure
    configure_parser = subparsers.add_parser("configure", help="Configure API connection")
    configure_parser.add_argument("--url", help="API base URL")
    configure_parser.add_argument("--token", help="Project API token")

    # Pull
    pull_parser = subparsers.add_parser("pull", help="Read the secrets of a config")
    pull_parser.add_argument("-e", "--environment", required=True, help="Environment name or shortcut")
    pull_parser.add_argument("-c", "--config", help="Config name (default: the environment's default config)")
    pull_parser.add_argument("-f", "--format", default="json", choices=["json", "env"],
                             help="Output format (default: json)")
    pull_parser.add_argument("-o", "--output", help="Write to a file instead of the terminal")
    pull_parser.add_argument("--reveal", action="store_true", help="Show values in the table")
    pull_parser.add_argument("--json", action="store_true", help="Print the raw JSON response")

    # Push
    push_parser = subparsers.add_parser("push", help="Create or update secrets")
    push_parser.add_argument("-e", "--environment", required=True, help="Environment name or shortcut")
    push_parser.add_argument("-c", "--config", help="Config name (default: the environment's default config)")
    push_parser.add_argument("--file", help="dotenv or .json file to push")
    push_parser.add_argument("assignments", nargs="*", help="KEY=value pairs")

    args = parser.parse_args()

    if args.command == "configure":
        cmd_configure(args)
    elif args.command == "pull":
        cmd_pull(args)
    elif args.command == "push":
        cmd_push(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
