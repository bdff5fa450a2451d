"""Mint the GSC_REFRESH_TOKEN that ai-watch uses for Search Console.

The OAuth client comes either from a downloaded client secret JSON or from the
same GSC_CLIENT_ID / GSC_CLIENT_SECRET / GSC_TOKEN_URI settings the snapshot
run reads, so one `.env` serves both.
"""
from __future__ import annotations

import argparse
from pathlib import Path

from dotenv import dotenv_values, find_dotenv, load_dotenv, set_key
from google_auth_oauthlib.flow import InstalledAppFlow

from ai_watch.clients.gsc_client import GSCClient
from ai_watch.config import WatchConfig

REFRESH_TOKEN_KEY = "GSC_REFRESH_TOKEN"
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ai-watch-gsc-token",
        description="Authorize ai-watch for read-only Search Console access.",
    )
    parser.add_argument(
        "--client-secret",
        type=Path,
        help="OAuth client JSON; defaults to GSC_CLIENT_ID/GSC_CLIENT_SECRET",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Store the token in this env file (default: print only)",
    )
    parser.add_argument("--port", type=int, default=0, help="Local redirect port (0 = any free port)")
    parser.add_argument("--no-browser", action="store_true", help="Print the consent URL instead")
    return parser.parse_args(argv)


def installed_client_config(config: WatchConfig) -> dict[str, dict[str, object]]:
    if not (config.gsc_client_id and config.gsc_client_secret):
        raise SystemExit(
            "No OAuth client: set GSC_CLIENT_ID and GSC_CLIENT_SECRET, or pass --client-secret."
        )
    return {
        "installed": {
            "client_id": config.gsc_client_id,
            "client_secret": config.gsc_client_secret,
            "auth_uri": AUTH_URI,
            "token_uri": config.gsc_token_uri,
            "redirect_uris": ["http://localhost"],
        }
    }


def build_flow(config: WatchConfig, client_secret: Path | None = None) -> InstalledAppFlow:
    if client_secret is None:
        return InstalledAppFlow.from_client_config(installed_client_config(config), GSCClient.SCOPES)
    if not client_secret.is_file():
        raise SystemExit(f"Client secret file not found: {client_secret}")
    return InstalledAppFlow.from_client_secrets_file(str(client_secret), GSCClient.SCOPES)


def store_refresh_token(env_file: Path, token: str) -> None:
    env_file.touch(exist_ok=True)
    set_key(str(env_file), REFRESH_TOKEN_KEY, token, quote_mode="always")
    if dotenv_values(env_file).get(REFRESH_TOKEN_KEY) != token:
        raise SystemExit(f"Could not store {REFRESH_TOKEN_KEY} in {env_file}.")


def main(argv: list[str] | None = None) -> None:
    try:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    except Exception:
        pass

    args = _parse_args(argv)
    flow = build_flow(WatchConfig.from_env(), args.client_secret)
    # prompt=consent forces Google to issue a refresh token on re-authorization.
    credentials = flow.run_local_server(
        port=args.port,
        access_type="offline",
        prompt="consent",
        open_browser=not args.no_browser,
    )

    token = (credentials.refresh_token or "").strip()
    if not token:
        raise SystemExit("Google returned no refresh token; revoke the app's access and retry.")

    if args.env_file is None:
        print(f"{REFRESH_TOKEN_KEY}={token}")
        return
    store_refresh_token(args.env_file, token)
    print(f"{REFRESH_TOKEN_KEY} stored in {args.env_file}")


if __name__ == "__main__":
    main()
