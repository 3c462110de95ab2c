#!/usr/bin/env python3
"""
dualauth - token inspection, storage cleanup and routed profile calls
"""

import argparse
import getpass
import json
import os
import sys
import time
from typing import Dict, List, Optional

import jwt

from dualauth.auth.login_flow import LoginFlow, LoginState
from dualauth.auth.provider_router import Operation, ProviderRouter
from dualauth.auth.token_auth import (
    decode_claims,
    is_expired,
    is_valid_token,
    sanitize_token,
    verify_token,
)
from dualauth.config import DualAuthConfig
from dualauth.models.profile_models import LoginIdentity
from dualauth.services.profile_client import ProfileClient
from dualauth.utils.error_sanitizer import create_safe_error_response, token_preview
from dualauth.utils.errors import DualAuthError, ErrorCategory
from dualauth.utils.logging_config import setup_logging
from dualauth.utils.password import hash_password
from dualauth.utils.token_cleanup import (
    clear_all_auth_data,
    cleanup_tokens,
    validate_current_tokens,
)
from dualauth.utils.token_store import JsonFileTokenStore

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_UNAUTHORIZED = 2
EXIT_TRANSPORT = 3
EXIT_ROUTING = 4
EXIT_SERVER = 5

_EXIT_CODES = {
    ErrorCategory.SHAPE: EXIT_USAGE,
    ErrorCategory.VALIDATION: EXIT_USAGE,
    ErrorCategory.CONFIGURATION: EXIT_USAGE,
    ErrorCategory.EXPIRED: EXIT_UNAUTHORIZED,
    ErrorCategory.UNAUTHORIZED: EXIT_UNAUTHORIZED,
    ErrorCategory.TRANSPORT: EXIT_TRANSPORT,
    ErrorCategory.ROUTING: EXIT_ROUTING,
    ErrorCategory.SERVER: EXIT_SERVER,
}


def create_parser():
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="dualauth",
        description="Inspect, repair and use dual-path bearer tokens",
    )
    parser.add_argument("--base-url", help="Backend base URL (DUALAUTH_BASE_URL)")
    parser.add_argument("--store", help="Token store file (DUALAUTH_STORE_PATH)")
    parser.add_argument("--log-level", help="Logging level (DUALAUTH_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    inspect_parser = subparsers.add_parser("inspect", help="Decode a token and show its routing")
    inspect_parser.add_argument("token", nargs="?", help="Token, or '-' to read stdin")
    inspect_parser.add_argument("--secret", help="Verify the HS256 signature with this secret")

    cleanup_parser = subparsers.add_parser("cleanup", help="Remove unusable credentials from the store")
    cleanup_parser.add_argument("--all", action="store_true", help="Remove every credential key")
    cleanup_parser.add_argument(
        "--dry-run", action="store_true", help="Report what would be removed without changing the store"
    )

    login_parser = subparsers.add_parser("login", help="Log in through the separated login endpoint")
    login_parser.add_argument("--email", required=True)
    login_parser.add_argument("--sub", help="External subject id (defaults to the email)")
    login_parser.add_argument("--name", help="Display name")
    login_parser.add_argument("--no-verify", action="store_true", help="Skip the profile check")

    subparsers.add_parser("profile", help="Read the profile on the routed endpoint")

    address_parser = subparsers.add_parser("update-address", help="Update the stored account's address")
    address_parser.add_argument(
        "--field", action="append", default=[], metavar="KEY=VALUE", help="Address field"
    )

    subparsers.add_parser("hash-password", help="Print a bcrypt hash of a password")

    mint_parser = subparsers.add_parser("mint", help="Mint an HS256 test token")
    mint_parser.add_argument("--provider", default=None, help="Provider claim, e.g. google-separated")
    mint_parser.add_argument("--email", required=True)
    mint_parser.add_argument("--user-id", default=None)
    mint_parser.add_argument("--expires-in", type=int, default=7 * 24 * 3600, help="Seconds until exp")
    mint_parser.add_argument("--secret", default=None, help="Signing secret (or DUALAUTH_JWT_SECRET)")

    return parser


def _read_token(value: Optional[str]) -> str:
    if value is None or value == "-":
        value = sys.stdin.readline()
    value = value.strip()
    if value.lower().startswith("bearer "):
        value = value.split(None, 1)[1]
    return value


def _parse_fields(pairs: List[str]) -> Dict[str, str]:
    fields = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise DualAuthError(f"expected KEY=VALUE, got {pair!r}", category=ErrorCategory.VALIDATION)
        fields[key.strip()] = value
    return fields


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def handle_inspect(args, config: DualAuthConfig) -> int:
    """Handle inspect command."""
    raw = _read_token(args.token)
    print(f"Token length: {len(raw)}")
    print(f"Token preview: {token_preview(raw, 50)}")

    if not is_valid_token(raw):
        print(f"Not a usable JWT ({len(raw.split('.'))} part(s))")
        return EXIT_USAGE

    claims = decode_claims(sanitize_token(raw))
    router = ProviderRouter.from_config(config)
    print("Claims:")
    _print_json(claims.model_dump(by_alias=True, exclude_none=True))
    print(f"Family: {router.family_for(claims).value}")
    print(f"Expired: {is_expired(claims)}" + ("" if claims.exp else " (no exp claim)"))
    for operation in Operation:
        endpoint = router.endpoint(claims, operation)
        print(f"  {operation.value}: {endpoint.method} {router.resolve(claims, operation)}")

    if args.secret:
        verify_token(raw, args.secret)
        print("Signature: valid")
    return EXIT_OK


def handle_cleanup(args, config: DualAuthConfig) -> int:
    """Handle cleanup command."""
    store = JsonFileTokenStore(config.store_path)
    if args.dry_run:
        report = validate_current_tokens(store, require_exp=config.require_exp)
        _print_json(report.to_dict())
        return EXIT_OK

    if args.all:
        removed = clear_all_auth_data(store)
        _print_json({"cleaned": len(removed), "keys": removed})
        return EXIT_OK

    report = cleanup_tokens(store, require_exp=config.require_exp)
    _print_json(report.to_dict())
    return EXIT_OK


def handle_login(args, config: DualAuthConfig) -> int:
    """Handle login command."""
    store = JsonFileTokenStore(config.store_path)
    flow = LoginFlow(store, config=config)
    flow.resume()
    if flow.state is not LoginState.NO_TOKEN:
        flow.logout()

    identity = LoginIdentity(email=args.email, sub=args.sub, name=args.name)
    session = flow.login(identity)
    _print_json(session.to_dict())

    if not args.no_verify:
        flow.verify()
        print(f"Verified against {flow.profile_client.router.resolve(session.claims, Operation.READ_PROFILE)}")
    return EXIT_OK


def handle_profile(args, config: DualAuthConfig) -> int:
    """Handle profile command."""
    client = ProfileClient(JsonFileTokenStore(config.store_path), config=config)
    response = client.get_profile()
    _print_json({"profile": response.profile, "address": response.address})
    return EXIT_OK


def handle_update_address(args, config: DualAuthConfig) -> int:
    """Handle update-address command."""
    address = _parse_fields(args.field)
    client = ProfileClient(JsonFileTokenStore(config.store_path), config=config)
    response = client.update_address(address)
    _print_json({"success": response.success, "message": response.message})
    return EXIT_OK


def handle_hash_password(args, config: DualAuthConfig) -> int:
    """Handle hash-password command."""
    if sys.stdin.isatty():
        password = getpass.getpass("Password: ")
    else:
        password = sys.stdin.readline().rstrip("\n")
    print(hash_password(password))
    return EXIT_OK


def handle_mint(args, config: DualAuthConfig) -> int:
    """Handle mint command."""
    secret = args.secret or os.getenv("DUALAUTH_JWT_SECRET")
    if not secret:
        raise DualAuthError(
            "No secret provided; set --secret or DUALAUTH_JWT_SECRET",
            category=ErrorCategory.CONFIGURATION,
        )

    now = int(time.time())
    claims = {"email": args.email, "iat": now, "exp": now + args.expires_in}
    if args.provider:
        claims["provider"] = args.provider
    if args.user_id:
        key = "googleUserId" if args.provider and args.provider.endswith("-separated") else "userId"
        claims[key] = args.user_id
    print(jwt.encode(claims, secret, algorithm="HS256"))
    return EXIT_OK


HANDLERS = {
    "inspect": handle_inspect,
    "cleanup": handle_cleanup,
    "login": handle_login,
    "profile": handle_profile,
    "update-address": handle_update_address,
    "hash-password": handle_hash_password,
    "mint": handle_mint,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_USAGE

    try:
        config = DualAuthConfig.from_env(
            base_url=args.base_url, store_path=args.store, log_level=args.log_level
        )
        setup_logging(config.log_level)
        return HANDLERS[args.command](args, config)
    except KeyboardInterrupt:
        print("\nInterrupted")
        return EXIT_USAGE
    except DualAuthError as e:
        _print_json(create_safe_error_response(e))
        return _EXIT_CODES.get(e.category, EXIT_USAGE)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
