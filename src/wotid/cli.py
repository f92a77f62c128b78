# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Command-line interface for the wot.id identity service.

Commands:
    wotid serve                     run the HTTP service
    wotid keygen --name alice       create an Ed25519 key (private key saved to a 0600 file)
    wotid sign --key-file F --did D --challenge C
                                    sign a challenge as a compact JWS
    wotid resolve <did>             resolve a DID document through the ledger
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import stat
import sys
from pathlib import Path

from .core.config import get_config
from .core.exceptions import ConfigException, WotidException
from .identity.resolver import build_resolver
from .identity.signing import KeyPair, create_challenge_jws, generate_keypair


def get_secure_key_dir() -> Path:
    """Get or create the secure key directory.

    Creates ~/.wotid/keys/ with 0700 permissions.
    """
    key_dir = Path.home() / ".wotid" / "keys"
    key_dir.mkdir(parents=True, exist_ok=True)
    os.chmod(key_dir, stat.S_IRWXU)
    return key_dir


def save_key_securely(name: str, private_key_hex: str, key_dir: Path | None = None) -> Path:
    """Write a private key to a 0600 file.

    Args:
        name: Key name, used for the filename
        private_key_hex: Hex-encoded Ed25519 private key
        key_dir: Target directory (default ~/.wotid/keys)

    Returns:
        Path to the saved key file
    """
    key_dir = key_dir or get_secure_key_dir()

    safe_name = "".join(c if c.isalnum() or c in "-_" else "_" for c in name)
    key_file = key_dir / f"{safe_name}.key"

    # Create with restricted permissions from the start
    fd = os.open(
        key_file,
        os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
        stat.S_IRUSR | stat.S_IWUSR,  # 0600
    )
    try:
        os.write(fd, private_key_hex.encode("utf-8"))
        os.write(fd, b"\n")
    finally:
        os.close(fd)

    return key_file


def default_kid(did: str, keypair: KeyPair) -> str:
    """Key id used when none is given: the did:key fragment, or #key-1."""
    if did.startswith("did:key:"):
        return f"{did}#{keypair.public_key_multibase}"
    return f"{did}#key-1"


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP service."""
    from .server.app import run
    from .server.config import get_settings

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port

    run(get_settings().model_copy(update=overrides))
    return 0


def cmd_keygen(args: argparse.Namespace) -> int:
    """Generate a key pair and print its public half."""
    keypair = generate_keypair()
    key_dir = Path(args.key_dir) if args.key_dir else None
    key_file = save_key_securely(args.name, keypair.private_key_hex, key_dir)

    did = args.did or keypair.did_key
    kid = default_kid(did, keypair)

    print(f"Key created: {key_file} (0600)")
    print()
    print(
        json.dumps(
            {
                "did": did,
                "kid": kid,
                "verificationMethod": keypair.verification_method(did, kid.split("#", 1)[1]).to_dict(),
            },
            indent=2,
        )
    )
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    """Sign a challenge and print the JWS."""
    try:
        keypair = KeyPair.from_private_key_hex(Path(args.key_file).read_text().strip())
    except (OSError, ValueError) as e:
        print(f"Cannot load key from {args.key_file}: {e}", file=sys.stderr)
        return 1

    kid = args.kid or default_kid(args.did, keypair)
    print(create_challenge_jws(args.did, args.challenge, keypair, kid))
    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    """Resolve a DID and print its document."""
    resolver = build_resolver(get_config())
    try:
        document = asyncio.run(resolver.resolve(args.did))
    except WotidException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(document.to_json())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="wotid",
        description="wot.id DID challenge-response identity service",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", help="Host to bind to (default: WOTID_HOST or 127.0.0.1)")
    serve_parser.add_argument("--port", "-p", type=int, help="Port to bind to (default: WOTID_PORT or 8081)")

    keygen_parser = subparsers.add_parser("keygen", help="Generate an Ed25519 key pair")
    keygen_parser.add_argument("--name", "-n", required=True, help="Key name (used for the key file)")
    keygen_parser.add_argument("--did", help="DID the key belongs to (default: its did:key)")
    keygen_parser.add_argument("--key-dir", help="Directory for the private key (default: ~/.wotid/keys)")

    sign_parser = subparsers.add_parser("sign", help="Sign a challenge as a compact JWS")
    sign_parser.add_argument("--key-file", "-k", required=True, help="File holding the hex private key")
    sign_parser.add_argument("--did", "-d", required=True, help="Signer DID (iss claim)")
    sign_parser.add_argument("--challenge", "-c", required=True, help="Challenge nonce")
    sign_parser.add_argument("--kid", help="Verification method id (default: <did>#key-1)")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a DID document")
    resolve_parser.add_argument("did", help="DID to resolve")

    args = parser.parse_args(argv)

    try:
        if args.command == "serve":
            return cmd_serve(args)
        elif args.command == "keygen":
            return cmd_keygen(args)
        elif args.command == "sign":
            return cmd_sign(args)
        elif args.command == "resolve":
            return cmd_resolve(args)
    except ConfigException as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
