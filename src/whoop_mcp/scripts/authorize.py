"""Interactive helper that authorizes a WHOOP account and stores its tokens."""

from __future__ import annotations

import argparse
import asyncio
import shutil
from getpass import getpass
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from dotenv import dotenv_values, set_key

from ..config import WhoopAppConfig
from ..errors import WhoopMCPError
from ..models import DEFAULT_ACCOUNT_KEY
from ..server import build_services


def main() -> None:
    """Run the WHOOP authorization wizard."""
    parser = argparse.ArgumentParser(description="Authorize WHOOP access for an account key")
    parser.add_argument(
        "--key",
        default=DEFAULT_ACCOUNT_KEY,
        help="Account key to store the tokens under (default: %(default)s)",
    )
    args = parser.parse_args()

    print("=" * 60)
    print("WHOOP MCP - Authorization Wizard")
    print("=" * 60)
    print()

    env_path = _ensure_env_file()
    existing = dotenv_values(str(env_path))

    print("Step 1: WHOOP API credentials")
    print("-" * 60)
    print("Create an app at https://developer-dashboard.whoop.com if needed.")
    print()

    client_id = _prompt_required("WHOOP Client ID", existing.get("WHOOP_CLIENT_ID"))
    client_secret = _prompt_secret("WHOOP Client Secret", existing.get("WHOOP_CLIENT_SECRET"))
    set_key(str(env_path), "WHOOP_CLIENT_ID", client_id)
    set_key(str(env_path), "WHOOP_CLIENT_SECRET", client_secret)

    services = build_services(
        WhoopAppConfig(whoop_client_id=client_id, whoop_client_secret=client_secret)
    )

    print()
    print(f"Step 2: Authorize account '{args.key}'")
    print("-" * 60)
    print(f"Make sure {services.config.redirect_uri} is a registered redirect URI.")
    print("Scopes requested:")
    print(f"  {' '.join(services.config.default_scopes)}")
    print()

    url, state = services.flow.start_authorization(args.key)
    print("Open the following URL in your browser to authorize access:")
    print(url)
    print()
    print("After authorization, WHOOP redirects to a URL like:")
    print(f"  {services.config.redirect_uri}?code=XYZ&state=...")
    print("The page may fail to load; that's fine, copy the URL from the address bar.")
    print()

    redirect_url = input("Paste the full redirect URL: ").strip()
    query = parse_qs(urlparse(redirect_url).query)
    code = query.get("code", [None])[0]
    returned_state = query.get("state", [None])[0]
    if not code:
        print("Error: Could not locate authorization code in the redirect URL.")
        return
    if returned_state != state:
        print("Error: The redirect URL does not belong to this authorization attempt.")
        return

    print()
    print("Exchanging authorization code for tokens...")
    print("-" * 60)

    try:
        asyncio.run(services.flow.complete_authorization(code, state))
    except WhoopMCPError as exc:
        print(f"Error: {exc.message}")
        return

    print()
    print(f"✓ Tokens stored for account '{args.key}'")
    print("=" * 60)


def _prompt_required(prompt_text: str, default: str | None = None) -> str:
    """Prompt for a required value, offering a default if provided."""
    while True:
        prompt = f"{prompt_text}"
        if default:
            prompt += f" [{default}]"
        prompt += ": "
        value = input(prompt).strip()
        if value:
            return value
        if default:
            return default
        print("This value is required.")


def _prompt_secret(prompt_text: str, default: str | None = None) -> str:
    """Prompt for sensitive input (client secret)."""
    while True:
        prompt = f"{prompt_text}"
        if default:
            prompt += " [press Enter to keep existing]"
        prompt += ": "
        value = getpass(prompt).strip()
        if value:
            return value
        if default:
            return default
        print("This value is required.")


def _ensure_env_file() -> Path:
    """Ensure .env exists, copying from .env.example if available."""
    env_path = Path.cwd() / ".env"
    example_path = Path.cwd() / ".env.example"
    if env_path.exists():
        return env_path

    if example_path.exists():
        shutil.copy(example_path, env_path)
        print(f"Created {env_path.name} from {example_path.name}")
    else:
        env_path.touch()
        print(f"Created empty {env_path.name} (no .env.example found)")
    return env_path


if __name__ == "__main__":
    main()
