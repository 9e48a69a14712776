"""
Token Rail CLI

Commands:
  sign      - Sign a claim set into a compact JWT
  validate  - Verify a token and print its claims
  inspect   - Print a token header without verifying it
  serve     - Run the HTTP gateway
"""

import argparse
import json
import os
import sys
from pathlib import Path


def _load_key(args):
    """Key input from --key text or --key-file, with optional --passphrase."""
    if args.key_file:
        try:
            data = Path(args.key_file).read_bytes()
        except OSError as e:
            print(f"Error: cannot read key file: {e}")
            sys.exit(1)
        if args.passphrase:
            return {"pem": data.decode("utf-8"), "passphrase": args.passphrase}
        return data
    if args.key is None:
        print("Error: --key or --key-file required")
        sys.exit(1)
    if args.passphrase:
        return {"pem": args.key, "passphrase": args.passphrase}
    return args.key


def _build_engine():
    from tokens.config import EngineConfig
    from tokens.engine import TokenEngine
    from tokens.log import configure_logging

    config = EngineConfig.from_env()
    configure_logging(config.log_level, config.log_json)
    return TokenEngine(config)


def cmd_sign(args):
    """Sign a claim set."""
    from signing.errors import TokenRailError

    engine = _build_engine()

    try:
        text = Path(args.claims_file).read_text() if args.claims_file else args.claims
    except OSError as e:
        print(f"Error: cannot read claims file: {e}")
        sys.exit(1)
    try:
        claims = json.loads(text)
    except json.JSONDecodeError as e:
        print(f"Error: claims are not valid JSON: {e}")
        sys.exit(1)
    if not isinstance(claims, dict):
        print("Error: claims must be a JSON object")
        sys.exit(1)

    try:
        token = engine.issue(claims, _load_key(args), args.alg, key_id=args.kid)
    except TokenRailError as e:
        print(f"Error: {type(e).__name__}: {e}")
        sys.exit(1)

    print(token)


def cmd_validate(args):
    """Verify a token and print its claims."""
    from signing.errors import TokenRailError, VerificationFailed

    engine = _build_engine()

    try:
        jwt = engine.decode_token(args.token, _load_key(args), args.alg or None)
    except VerificationFailed:
        print("Token Invalid: signature does not match")
        sys.exit(1)
    except TokenRailError as e:
        print(f"Token Rejected: {type(e).__name__}: {e}")
        sys.exit(2)

    print("Token Valid")
    print(f"  Algorithm: {jwt.header.algorithm.value}")
    print(f"  Key ID: {jwt.header.key_id or '-'}")
    print(json.dumps(jwt.payload.to_dict(), indent=2, sort_keys=True))


def cmd_inspect(args):
    """Print the unverified header."""
    from signing.errors import TokenRailError
    from tokens.engine import TokenEngine

    try:
        header = TokenEngine.inspect(args.token)
    except TokenRailError as e:
        print(f"Error: {type(e).__name__}: {e}")
        sys.exit(1)

    print("Header (UNVERIFIED)")
    print(json.dumps(header, indent=2))


def cmd_serve(args):
    """Run the HTTP gateway."""
    import uvicorn

    port = args.port or int(os.environ.get("PORT", 8000))
    host = args.host or "127.0.0.1"

    print(f"Starting Token Rail on {host}:{port}")

    uvicorn.run(
        "gateway.server:app",
        host=host,
        port=port,
        reload=args.reload,
        workers=args.workers,
    )


def _add_key_arguments(parser):
    parser.add_argument("--key", help="Secret or PEM text")
    parser.add_argument("--key-file", help="File with PEM, DER or raw key bytes")
    parser.add_argument("--passphrase", help="Passphrase for an encrypted private key")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Token Rail - JWT signing and verification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # sign
    sign_parser = subparsers.add_parser("sign", help="Sign claims into a JWT")
    sign_parser.add_argument("--alg", required=True, help="Algorithm, e.g. HS256")
    sign_parser.add_argument("--kid", help="Key id header value")
    sign_parser.add_argument("--claims", default="{}", help="Claims as a JSON object")
    sign_parser.add_argument("--claims-file", help="File holding the claims JSON")
    _add_key_arguments(sign_parser)

    # validate
    validate_parser = subparsers.add_parser("validate", help="Verify a JWT")
    validate_parser.add_argument("token", help="Compact JWT")
    validate_parser.add_argument("--alg", action="append", help="Expected algorithm (repeatable)")
    _add_key_arguments(validate_parser)

    # inspect
    inspect_parser = subparsers.add_parser("inspect", help="Show the unverified header")
    inspect_parser.add_argument("token", help="Compact JWT")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP gateway")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")
    serve_parser.add_argument("--workers", type=int, default=1)

    args = parser.parse_args(argv)

    if args.command == "sign":
        cmd_sign(args)
    elif args.command == "validate":
        cmd_validate(args)
    elif args.command == "inspect":
        cmd_inspect(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
