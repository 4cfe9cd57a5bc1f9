from __future__ import annotations

import os
from dataclasses import dataclass


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Cluster access; empty means in-cluster service account.
    kubeconfig: str = _env_str("DANM_CLEANER_KUBECONFIG", os.getenv("KUBECONFIG", ""))
    # Host identity; empty means the OS hostname.
    hostname: str = _env_str("DANM_CLEANER_HOSTNAME", "")

    # DANM CRDs
    api_group: str = "danm.k8s.io"
    api_version: str = "v1"
    endpoint_plural: str = "danmeps"
    network_plural: str = "danmnets"

    # Networks of this type do not hand out addresses from the bitmap.
    exempt_network_type: str = _env_str("DANM_CLEANER_EXEMPT_NETWORK_TYPE", "ipvlan")

    # Only the pod sandbox (pause) container owns the network namespace.
    sandbox_label: str = _env_str("DANM_CLEANER_SANDBOX_LABEL", "io.kubernetes.docker.type")
    sandbox_value: str = _env_str("DANM_CLEANER_SANDBOX_VALUE", "podsandbox")

    release_retries: int = _env_int("DANM_CLEANER_RELEASE_RETRIES", 5)
    list_page_size: int = _env_int("DANM_CLEANER_LIST_PAGE_SIZE", 500)
    log_level: str = _env_str("DANM_CLEANER_LOG_LEVEL", "INFO")


settings = Settings()
