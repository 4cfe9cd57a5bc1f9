from __future__ import annotations

import argparse
import logging
import socket
import sys

from danm_cleaner.docker_ops import DockerRuntime
from danm_cleaner.errors import CleanerError, ConfigError
from danm_cleaner.ipam import DanmAllocator
from danm_cleaner.reconciler import Reconciler
from danm_cleaner.registry import DanmRegistry
from danm_cleaner.settings import settings
from danm_cleaner.watcher import EventWatcher

LOG = logging.getLogger("danm_cleaner")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _hostname(override: str) -> str:
    if override:
        return override
    try:
        name = socket.gethostname()
    except OSError as e:
        raise ConfigError(f"hostname {e}") from e
    if not name:
        raise ConfigError("hostname is empty")
    return name


def build(kubeconfig: str) -> Reconciler:
    registry = DanmRegistry.from_kubeconfig(kubeconfig, settings)
    runtime = DockerRuntime.from_env()
    return Reconciler(registry, runtime, DanmAllocator(registry, settings.release_retries), settings)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Remove DanmEps of dead containers on this host")
    p.add_argument(
        "--kubeconfig",
        default=settings.kubeconfig,
        help="Path to a kubeconfig. Only required if out-of-cluster.",
    )
    p.add_argument("--hostname", default=settings.hostname, help="Node name the endpoints are scheduled to")
    p.add_argument("--once", action="store_true", help="Run the startup cleanup and exit")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = p.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        host = _hostname(args.hostname)
        reconciler = build(args.kubeconfig)
    except CleanerError as e:
        LOG.critical("%s", e)
        return 1

    reconciler.reconcile(host)
    if args.once:
        return 0

    watcher = EventWatcher(reconciler, reconciler.registry, reconciler.runtime, settings)
    try:
        watcher.watch()
    except CleanerError as e:
        LOG.critical("%s", e)
        return 1
    except KeyboardInterrupt:
        LOG.info("Interrupted, exiting")
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
