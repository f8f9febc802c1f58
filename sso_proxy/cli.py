"""
Key tooling for manual-login request signing.

    sso-proxy-keys generate --out-dir ./keys
    sso-proxy-keys sign POST https://sso.example.com/api/public/login --body '{"identifier": "a"}' > headers.json
    sso-proxy-keys verify POST https://sso.example.com/api/public/login --body '{"identifier": "a"}' \
        --public-key ./keys/signing.pub.pem --headers headers.json

`sign` reads the key from --key-file, or from PRIVATE_KEY_PEM / PRIVATE_KEY_PATH
and KEY_ID in the environment (.env).
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from sso_proxy.core.config import get_settings
from sso_proxy.core.logging_setup import configure_logging
from sso_proxy.core.signing.digest import DEFAULT_PATH_PREFIX
from sso_proxy.core.signing.envelope import SigningCredentials, sign_manual_request
from sso_proxy.core.signing.errors import SigningCoreError
from sso_proxy.core.signing.keys import (
    generate_keypair,
    load_private_key_file,
    load_public_key_pem,
    save_keypair,
)
from sso_proxy.core.signing.verify import verify_signed_request

logger = logging.getLogger(__name__)


def _parse_body(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise SystemExit(f"--body is not valid JSON: {e}")


def _read_text(path: str, option: str) -> str:
    try:
        return Path(path).read_text()
    except OSError as e:
        raise SystemExit(f"{option}: cannot read {path}: {e.strerror or e}")
    except UnicodeDecodeError:
        raise SystemExit(f"{option}: {path} is not a text file")


def _load_headers(path: str) -> dict:
    try:
        headers = json.loads(_read_text(path, "--headers"))
    except ValueError as e:
        raise SystemExit(f"--headers is not valid JSON: {e}")
    if not isinstance(headers, dict):
        raise SystemExit("--headers must contain a JSON object")
    return headers


def cmd_generate(args: argparse.Namespace) -> int:
    private_key, _ = generate_keypair(args.key_size)
    private_path, public_path = save_keypair(private_key, Path(args.out_dir), args.name)
    print(f"Private key: {private_path} (mode 0600, keep secret)")
    print(f"Public key:  {public_path} (register with the identity server)")
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.key_file:
        credentials = SigningCredentials(
            private_key_pem=load_private_key_file(args.key_file),
            key_id=args.key_id or settings.key_id,
        )
    else:
        credentials = settings.signing_credentials()
        if args.key_id:
            credentials = SigningCredentials(private_key_pem=credentials.private_key_pem, key_id=args.key_id)

    envelope = sign_manual_request(
        args.method,
        args.url,
        _parse_body(args.body),
        credentials,
        path_prefix=args.path_prefix,
    )
    print(json.dumps(envelope.to_headers(credentials.key_id), indent=2))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    public_key = load_public_key_pem(_read_text(args.public_key, "--public-key"))
    headers = _load_headers(args.headers)

    result = verify_signed_request(
        public_key,
        args.method,
        args.url,
        _parse_body(args.body),
        headers,
        expected_key_id=args.key_id,
        path_prefix=args.path_prefix,
    )
    if result.success:
        print(f"OK: signature valid (key_id={result.key_id})")
        return 0
    print(f"FAILED: {result.error.value}: {result.error_message}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sso-proxy-keys",
        description="Manage and test RSA-PSS request signing keys",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    gen = subparsers.add_parser("generate", help="Generate a new RSA keypair")
    gen.add_argument("--out-dir", default=".", help="Output directory (default: .)")
    gen.add_argument("--name", default="signing", help="File name stem (default: signing)")
    gen.add_argument("--key-size", type=int, default=2048, help="RSA modulus size (default: 2048)")
    gen.set_defaults(func=cmd_generate)

    for name, func, help_text in (
        ("sign", cmd_sign, "Print signed headers for a request"),
        ("verify", cmd_verify, "Verify signed headers against a public key"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("method", help="HTTP method")
        sub.add_argument("url", help="Absolute URL as sent to the identity server")
        sub.add_argument("--body", help="JSON body (omit for no body)")
        sub.add_argument("--key-id", help="Key id (sign: defaults to KEY_ID; verify: expected key id)")
        sub.add_argument("--path-prefix", default=DEFAULT_PATH_PREFIX,
                         help=f"Gateway path prefix (default: {DEFAULT_PATH_PREFIX})")
        sub.set_defaults(func=func)

    subparsers.choices["sign"].add_argument("--key-file", help="PKCS8 PEM private key file")
    subparsers.choices["verify"].add_argument("--public-key", required=True, help="Public key PEM file")
    subparsers.choices["verify"].add_argument("--headers", required=True,
                                              help="JSON file with the signed headers (output of 'sign')")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        return args.func(args)
    except SigningCoreError as e:
        print(f"Error [{e.error_code}]: {e.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
