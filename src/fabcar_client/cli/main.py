"""Command-line interface for fabcar."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Sequence

from fabcar_client.cli.bootstrap import ensure_identity
from fabcar_client.cli.config import ClientConfig, ConfigError, load_client_config
from fabcar_client.cli.menu import run_menu
from fabcar_client.errors import FabcarClientError, SessionConnectError
from fabcar_client.gateway import Gateway
from fabcar_client.output import sanitize_error_text
from fabcar_client.profile import DISCOVERY_AS_LOCALHOST_ENV_VAR
from fabcar_client.wallet import FileSystemWallet, WalletError

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_NETWORK_ERROR = 2


def _sdk_version() -> str:
    try:
        return pkg_version("fabcar-client")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fabcar",
        description="Interactive client for the cars and persons chaincode",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"fabcar-client {_sdk_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to client config TOML (default: ./fabcar.toml)",
    )
    parser.add_argument(
        "--org",
        default=None,
        help="Organization identifier, e.g. org1 (overrides config and FABCAR_ORG)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log gateway and wallet diagnostics to stderr",
    )
    return parser


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {sanitize_error_text(message)}", file=stderr)
    return code


def _configure_logging(verbose: bool, stderr) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        stream=stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run_session(*, config: ClientConfig, wallet: FileSystemWallet, stdin, stdout, stderr) -> int:
    try:
        gateway = Gateway.connect(
            wallet=wallet,
            label=config.identity_label,
            profile_path=config.profile_path,
            gateway_base=config.gateway_base,
            timeout=config.timeout,
            retries=config.retries,
        )
    except SessionConnectError as exc:
        return _print_error(
            stderr, "Failed to connect to gateway", str(exc), code=EXIT_NETWORK_ERROR
        )

    with gateway:
        try:
            network = gateway.get_network(config.channel)
            contract = network.get_contract(config.chaincode)
        except SessionConnectError as exc:
            return _print_error(
                stderr, "Failed to resolve contract", str(exc), code=EXIT_NETWORK_ERROR
            )
        run_menu(contract, stdin=stdin, stdout=stdout)
    return EXIT_SUCCESS


def main(
    argv: Sequence[str] | None = None,
    *,
    stdin=sys.stdin,
    stdout=sys.stdout,
    stderr=sys.stderr,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, stderr)

    os.environ[DISCOVERY_AS_LOCALHOST_ENV_VAR] = "true"

    try:
        config = load_client_config(args.config).with_org(args.org)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    try:
        wallet = FileSystemWallet(config.wallet_dir)
    except WalletError as exc:
        return _print_error(stderr, "Failed to create wallet", str(exc), code=EXIT_VALIDATION_ERROR)

    try:
        ensure_identity(wallet, config)
    except (FabcarClientError, WalletError) as exc:
        return _print_error(
            stderr, "Failed to populate wallet contents", str(exc), code=EXIT_VALIDATION_ERROR
        )

    return _run_session(config=config, wallet=wallet, stdin=stdin, stdout=stdout, stderr=stderr)


if __name__ == "__main__":
    raise SystemExit(main())
