"""Compiled-in catalog of invocable backends.

One remote backend (an Ollama-compatible HTTP endpoint) and the llama.cpp
toolbox builds for AMD Strix Halo, split into the ROCm and Vulkan
acceleration families. Toolbox images follow::

    docker.io/kyuz0/amd-strix-halo-toolboxes:{tag}

Catalog entries are frozen. ``installed`` is never stored here; it is
re-derived from the host on every ``refresh_installed`` call.
"""

from __future__ import annotations

from collections.abc import Callable

from llmbench.constants import TOOLBOX_IMAGE_REPOSITORY
from llmbench.domain.backend import AccelerationFamily, BackendDescriptor
from llmbench.exceptions import UnknownBackendError

__all__ = [
    "BACKEND_CATALOG",
    "RECOMMENDED_TOOLBOX",
    "REMOTE_BACKEND",
    "backends_by_family",
    "container_backends",
    "find_backend",
    "get_backend",
    "refresh_installed",
]


def _toolbox(name: str, family: AccelerationFamily, version: str, tag: str) -> BackendDescriptor:
    return BackendDescriptor(
        name=name,
        family=family,
        version=version,
        image=f"{TOOLBOX_IMAGE_REPOSITORY}:{tag}",
    )


REMOTE_BACKEND = BackendDescriptor(name="ollama", family=AccelerationFamily.REMOTE, version="api")

RECOMMENDED_TOOLBOX = "llama-rocm-7.2"

BACKEND_CATALOG: tuple[BackendDescriptor, ...] = (
    REMOTE_BACKEND,
    _toolbox("llama-rocm-6.4.4", AccelerationFamily.ROCM, "6.4.4", "rocm-6.4.4"),
    _toolbox("llama-rocm-7.1.1", AccelerationFamily.ROCM, "7.1.1", "rocm-7.1.1"),
    _toolbox("llama-rocm-7.2", AccelerationFamily.ROCM, "7.2", "rocm-7.2"),
    _toolbox("llama-rocm7-nightlies", AccelerationFamily.ROCM, "nightly", "rocm7-nightlies"),
    _toolbox("llama-vulkan-radv", AccelerationFamily.VULKAN, "radv", "vulkan-radv"),
    _toolbox("llama-vulkan-amdvlk", AccelerationFamily.VULKAN, "amdvlk", "vulkan-amdvlk"),
)


def find_backend(name: str) -> BackendDescriptor | None:
    for backend in BACKEND_CATALOG:
        if backend.name == name:
            return backend
    return None


def get_backend(name: str) -> BackendDescriptor:
    """Look up a backend by name.

    Raises:
        UnknownBackendError: If ``name`` is not in the catalog.
    """
    backend = find_backend(name)
    if backend is None:
        raise UnknownBackendError(name, [b.name for b in BACKEND_CATALOG])
    return backend


def backends_by_family(family: AccelerationFamily) -> list[BackendDescriptor]:
    return [b for b in BACKEND_CATALOG if b.family is family]


def container_backends() -> list[BackendDescriptor]:
    return [b for b in BACKEND_CATALOG if b.is_container]


def refresh_installed(
    lister: Callable[[list[BackendDescriptor]], list[BackendDescriptor]] | None = None,
) -> list[BackendDescriptor]:
    """Container catalog with ``installed`` freshly derived from the host.

    Args:
        lister: Installation lister, defaults to
            ``llmbench.infra.detection.list_installed_backends``.
    """
    if lister is None:
        from llmbench.infra.detection import list_installed_backends

        lister = list_installed_backends
    return lister(container_backends())
