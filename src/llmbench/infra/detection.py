"""Host capability detection: accelerator hardware, driver stack, toolbox.

Detection reads free-text command output, so it is split in two layers:

- pure parsers (``parse_display_devices``, ``extract_gpu_model``,
  ``parse_accelerator``, ``mark_installed``) that map captured text to
  values and can be tested against literal outputs
- probes (``detect_accelerator``, ``detect_container_tooling``,
  ``list_installed_backends``) that run the commands and feed the parsers

Probes never raise. A missing binary, a non-zero exit or a timeout is
absence of evidence and yields a negative capability for that probe only.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from loguru import logger

from llmbench.constants import PROBE_TIMEOUT_SEC
from llmbench.domain.backend import BackendDescriptor
from llmbench.domain.environment import AcceleratorInfo
from llmbench.infra.commands import run_command

__all__ = [
    "detect_accelerator",
    "detect_container_tooling",
    "enumerate_display_hardware",
    "extract_gpu_model",
    "is_inside_container",
    "list_installed_backends",
    "mark_installed",
    "parse_accelerator",
    "parse_display_devices",
]

_DISPLAY_CLASS = re.compile(r"vga|display|3d", re.IGNORECASE)
_VENDOR_MARKER = re.compile(r"\b(amd|ati|radeon)\b", re.IGNORECASE)
# "...controller [0300]: <model> [1002:1586] (rev c1)" as printed by `lspci -nn`
_BRACKETED_MODEL = re.compile(r"\]:\s+(.+?)\s*\[[0-9a-fA-F]{4}:[0-9a-fA-F]{4}\]")

DRIVER_CLI = "rocm-smi"
SECONDARY_API_CLI = "vulkaninfo"
TOOLBOX_CLI = "toolbox"


# ---------------------------------------------------------------------------
# Pure parsers
# ---------------------------------------------------------------------------


def parse_display_devices(lspci_output: str) -> list[str]:
    """Return the display-class lines (VGA, Display, 3D) of ``lspci`` output."""
    return [
        line.strip()
        for line in lspci_output.splitlines()
        if line.strip() and _DISPLAY_CLASS.search(line)
    ]


def has_vendor_marker(lines: list[str]) -> bool:
    return any(_VENDOR_MARKER.search(line) for line in lines)


def extract_gpu_model(line: str) -> str | None:
    """Best-effort model name from one ``lspci`` device line.

    Prefers the text between the device class and the ``[vendor:device]``
    id; falls back to everything after the first ``": "``.
    """
    match = _BRACKETED_MODEL.search(line)
    if match:
        return match.group(1).strip()
    _, sep, rest = line.partition(": ")
    if sep and rest.strip():
        return rest.strip()
    return None


def parse_accelerator(lspci_output: str) -> AcceleratorInfo:
    """Vendor detection and model extraction from ``lspci -nn`` output."""
    lines = parse_display_devices(lspci_output)
    vendor_lines = [line for line in lines if _VENDOR_MARKER.search(line)]
    if not vendor_lines:
        return AcceleratorInfo(detected=False)
    return AcceleratorInfo(detected=True, gpu_model=extract_gpu_model(vendor_lines[0]))


def mark_installed(catalog: list[BackendDescriptor], listing: str) -> list[BackendDescriptor]:
    """Copy of ``catalog`` with ``installed`` set iff the name occurs in ``listing``."""
    return [backend.with_installed(backend.name in listing) for backend in catalog]


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------


def enumerate_display_hardware() -> str:
    """Raw `lspci -nn` output, or an empty string if it cannot be run."""
    result = run_command(["lspci", "-nn"], timeout=PROBE_TIMEOUT_SEC)
    if not result.ok:
        logger.debug("Detection: lspci unavailable ({})", result.failure_message)
        return ""
    return result.output


def _probe_driver_stack() -> str | None:
    """Presence-level driver probe: 'installed' if the driver CLI exists.

    The product-name query is issued so a broken install shows up in debug
    logs, but its output is not parsed into a version.
    """
    if shutil.which(DRIVER_CLI) is None:
        logger.debug("Detection: {} not on PATH", DRIVER_CLI)
        return None
    result = run_command([DRIVER_CLI, "--showproductname"], timeout=PROBE_TIMEOUT_SEC)
    if not result.ok:
        logger.debug("Detection: {} probe failed ({})", DRIVER_CLI, result.failure_message)
    return "installed"


def _probe_secondary_api() -> bool:
    return shutil.which(SECONDARY_API_CLI) is not None


def detect_accelerator() -> AcceleratorInfo:
    """Detect an AMD accelerator plus its driver stack and Vulkan tooling.

    Driver and API probes only run when the vendor marker was found, so a
    host without the accelerator reports ``detected=False`` and nothing else.
    """
    try:
        info = parse_accelerator(enumerate_display_hardware())
    except Exception:
        logger.debug("Detection: hardware enumeration failed", exc_info=True)
        return AcceleratorInfo(detected=False)

    if not info.detected:
        return info

    updates: dict[str, object] = {}
    try:
        updates["driver_version"] = _probe_driver_stack()
    except Exception:
        logger.debug("Detection: driver probe failed", exc_info=True)
    try:
        updates["secondary_api_support"] = _probe_secondary_api()
    except Exception:
        logger.debug("Detection: secondary API probe failed", exc_info=True)
        updates["secondary_api_support"] = False

    return info.model_copy(update=updates)


def detect_container_tooling() -> bool:
    """True if the ``toolbox`` CLI is on PATH."""
    return shutil.which(TOOLBOX_CLI) is not None


def list_installed_backends(catalog: list[BackendDescriptor]) -> list[BackendDescriptor]:
    """Refresh ``installed`` for every catalog entry from one ``toolbox list``.

    On enumeration failure every entry is reported as not installed.
    """
    result = run_command([TOOLBOX_CLI, "list"], timeout=PROBE_TIMEOUT_SEC)
    if not result.ok:
        logger.debug("Detection: toolbox list failed ({})", result.failure_message)
        return [backend.with_installed(False) for backend in catalog]
    return mark_installed(catalog, result.output)


def is_inside_container() -> bool:
    """Check whether this process itself runs inside a container.

    Uses the ``/.dockerenv`` and ``/run/.containerenv`` marker files, then
    docker/containerd/libpod strings in ``/proc/1/cgroup``.
    """
    if Path("/.dockerenv").exists() or Path("/run/.containerenv").exists():
        return True

    try:
        with open("/proc/1/cgroup") as f:
            content = f.read()
    except (FileNotFoundError, PermissionError):
        return False
    return any(marker in content for marker in ("docker", "containerd", "libpod"))
