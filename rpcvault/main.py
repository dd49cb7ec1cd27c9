"""
rpcvault - command line entry point

    rpcvault fingerprint <pubkey-hex>
    rpcvault discover <url>
    rpcvault call <url> <method> [params-json]
    rpcvault serve [--host H] [--port P] [--key PEM]

Settings come from RPCVAULT_* environment variables, optionally loaded
from a .env file.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import DEFAULT_TRUST_STORE_PATH, ClientConfig
from .errors import RpcVaultError
from .identity.keys import fingerprint, public_key_from_hex
from .rpc.client import Client
from .rpc.transport import HttpTransport
from .trust.bootstrap import candidate_key, discover


logger = logging.getLogger("rpcvault")


async def prompt_confirm(key: bytes) -> bool:
    """Ask on the terminal whether to trust a server key."""
    print(f"Server public key: {key.hex()}")
    print(f"SHA-256 fingerprint: {fingerprint(key)}")
    answer = await asyncio.to_thread(
        input,
        "Compare with the fingerprint published by the server operator. Trust it? [y/N] ",
    )
    return answer.strip().lower() in ("y", "yes")


async def _discover(url: str, config: ClientConfig) -> int:
    async with HttpTransport(timeout=config.request_timeout) as transport:
        result = await discover(url, transport)
    key = candidate_key(result)
    print(f"pubkey:      {key.hex()}")
    print(f"fingerprint: {fingerprint(key)}")
    return 0


async def _call(url: str, method: str, params, config: ClientConfig) -> int:
    client = await Client.create(url, prompt_confirm, config=config)
    async with client:
        response = await client.call(method, params)
    print(response.text())
    return 0 if response.ok else 1


def _serve(host: str, port: int, key_path) -> int:
    from aiohttp import web
    from cryptography.hazmat.primitives import serialization
    from .rpc.server import RpcServer

    private_key = None
    if key_path is not None:
        with open(key_path, "rb") as f:
            private_key = serialization.load_pem_private_key(f.read(), password=None)

    server = RpcServer(private_key)
    server.register("echo", lambda *args, **kwargs: list(args) if args else kwargs)
    print(f"Server key fingerprint: {fingerprint(server.public_bytes)}")
    web.run_app(server.make_app(), host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rpcvault", description="Encrypted JSON-RPC client")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("fingerprint", help="SHA-256 fingerprint of a public key")
    p.add_argument("pubkey")

    p = sub.add_parser("discover", help="show the key a server advertises")
    p.add_argument("url")

    p = sub.add_parser("call", help="send one encrypted request")
    p.add_argument("url")
    p.add_argument("method")
    p.add_argument("params", nargs="?", default=None, help="JSON list or object")
    p.add_argument("--trust-store", type=Path, default=None,
                   help=f"pinned keys file (default: {DEFAULT_TRUST_STORE_PATH})")
    p.add_argument("--no-pin", action="store_true", help="do not read or write pinned keys")

    p = sub.add_parser("serve", help="run the reference server")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8080)
    p.add_argument("--key", type=Path, default=None, help="PEM private key (P-256)")
    return parser


def main(argv=None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = ClientConfig.from_env()
        if args.command == "fingerprint":
            public_key_from_hex(args.pubkey)
            print(fingerprint(bytes.fromhex(args.pubkey)))
            return 0
        if args.command == "discover":
            return asyncio.run(_discover(args.url, config))
        if args.command == "call":
            if args.no_pin:
                config.trust_store_path = None
            else:
                config.trust_store_path = (args.trust_store or config.trust_store_path
                                           or DEFAULT_TRUST_STORE_PATH)
            params = json.loads(args.params) if args.params else None
            return asyncio.run(_call(args.url, args.method, params, config))
        if args.command == "serve":
            return _serve(args.host, args.port, args.key)
    except RpcVaultError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 2
    except ValueError as e:
        logger.error("Invalid input: %s", e)
        return 2
    return 1


if __name__ == "__main__":
    sys.exit(main())
