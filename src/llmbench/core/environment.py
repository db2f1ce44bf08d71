"""Environment snapshot collection.

Collects CPU, memory, OS, board, GPU inventory and the accelerator probe for
the host running a benchmark. Independent introspection calls run
concurrently on a thread pool and are all joined before the snapshot is
built.

Degrades gracefully: if any required introspection fails, a reduced
snapshot is built from ``socket``/``os``/``platform`` primitives with a
sentinel GPU entry instead of raising.
"""

from __future__ import annotations

import contextlib
import os
import platform
import re
import socket
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import psutil
from loguru import logger

from llmbench.constants import GPU_UNDETECTABLE, NO_GPU_DETECTED
from llmbench.domain.environment import AcceleratorInfo, EnvironmentSnapshot, GPUDescriptor
from llmbench.infra.detection import (
    detect_accelerator,
    enumerate_display_hardware,
    extract_gpu_model,
    parse_display_devices,
)

__all__ = [
    "collect_environment_snapshot",
    "format_accelerator_info",
    "format_environment_snapshot",
]

_BYTES_PER_GIB = 1024**3
_MODEL_NAME = re.compile(r"^model name\s*:\s*(.+)$", re.MULTILINE)
_DMI_DIR = Path("/sys/class/dmi/id")
_OS_RELEASE = Path("/etc/os-release")


# ---------------------------------------------------------------------------
# Individual probes (each runs on the pool)
# ---------------------------------------------------------------------------


def _collect_cpu() -> tuple[str, int, int]:
    """(brand string, physical cores, logical threads)."""
    model = None
    try:
        match = _MODEL_NAME.search(Path("/proc/cpuinfo").read_text())
        if match:
            model = match.group(1).strip()
    except OSError:
        logger.debug("Environment: /proc/cpuinfo not available")

    cores = psutil.cpu_count(logical=False) or 0
    threads = psutil.cpu_count(logical=True) or 0
    return model or platform.processor() or "Unknown CPU", cores, threads


def _collect_memory_gb() -> float:
    return round(psutil.virtual_memory().total / _BYTES_PER_GIB, 2)


def _collect_os() -> tuple[str, str]:
    """(platform, distribution name or kernel release)."""
    distro = None
    try:
        for line in _OS_RELEASE.read_text().splitlines():
            if line.startswith("PRETTY_NAME="):
                distro = line.split("=", 1)[1].strip().strip('"')
                break
    except OSError:
        logger.debug("Environment: {} not available", _OS_RELEASE)
    return platform.system() or "unknown", distro or platform.release()


def _collect_board() -> str | None:
    try:
        vendor = (_DMI_DIR / "board_vendor").read_text().strip()
        name = (_DMI_DIR / "board_name").read_text().strip()
    except OSError:
        logger.debug("Environment: DMI board info not available")
        return None
    if vendor and name:
        return f"{vendor} {name}"
    return None


def _nvml_gpus() -> list[GPUDescriptor]:
    try:
        import pynvml

        pynvml.nvmlInit()
    except ImportError:
        logger.debug("Environment: pynvml not available")
        return []
    except Exception as e:
        logger.debug(f"Environment: NVML init failed: {e}")
        return []

    gpus: list[GPUDescriptor] = []
    try:
        for index in range(pynvml.nvmlDeviceGetCount()):
            handle = pynvml.nvmlDeviceGetHandleByIndex(index)
            raw_name = pynvml.nvmlDeviceGetName(handle)
            name = raw_name.decode("utf-8") if isinstance(raw_name, bytes) else str(raw_name)
            vram_mb = int(pynvml.nvmlDeviceGetMemoryInfo(handle).total // (1024 * 1024))
            gpus.append(GPUDescriptor(model=name, vram_mb=vram_mb))
    except pynvml.NVMLError as e:
        logger.debug(f"Environment: NVML query failed: {e}")
    finally:
        with contextlib.suppress(Exception):
            pynvml.nvmlShutdown()
    return gpus


def _lspci_gpus() -> list[GPUDescriptor]:
    gpus = []
    for line in parse_display_devices(enumerate_display_hardware()):
        model = extract_gpu_model(line)
        gpus.append(GPUDescriptor(model=model or "Unknown GPU"))
    return gpus


def _collect_gpus() -> list[GPUDescriptor]:
    return _nvml_gpus() or _lspci_gpus()


# ---------------------------------------------------------------------------
# Snapshot assembly
# ---------------------------------------------------------------------------


def _fallback_snapshot() -> EnvironmentSnapshot:
    """Reduced snapshot from interpreter primitives only."""
    threads = os.cpu_count() or 0
    total_memory_gb = 0.0
    with contextlib.suppress(Exception):
        total_memory_gb = round(psutil.virtual_memory().total / _BYTES_PER_GIB, 2)

    return EnvironmentSnapshot(
        server_name=socket.gethostname(),
        cpu_model=platform.processor() or "Unknown CPU",
        cpu_cores=threads,
        cpu_threads=threads,
        total_memory_gb=total_memory_gb,
        os_type=platform.system() or "unknown",
        os_version=platform.release(),
        gpus=[GPUDescriptor(model=GPU_UNDETECTABLE)],
    )


def collect_environment_snapshot() -> EnvironmentSnapshot:
    """Collect a point-in-time snapshot of the host.

    Never raises. All probes are joined before the snapshot is assembled;
    a failure in any of them yields the reduced fallback snapshot.
    """
    probes: dict[str, Any] = {
        "cpu": _collect_cpu,
        "memory": _collect_memory_gb,
        "os": _collect_os,
        "board": _collect_board,
        "gpus": _collect_gpus,
        "accelerator": detect_accelerator,
    }

    with ThreadPoolExecutor(max_workers=len(probes), thread_name_prefix="snapshot") as pool:
        futures = {name: pool.submit(fn) for name, fn in probes.items()}
    # Leaving the context manager waits for every probe.

    try:
        cpu_model, cpu_cores, cpu_threads = futures["cpu"].result()
        os_type, os_version = futures["os"].result()
        accelerator: AcceleratorInfo = futures["accelerator"].result()
        gpus: list[GPUDescriptor] = futures["gpus"].result()

        snapshot = EnvironmentSnapshot(
            server_name=socket.gethostname(),
            cpu_model=cpu_model,
            cpu_cores=cpu_cores,
            cpu_threads=cpu_threads,
            total_memory_gb=futures["memory"].result(),
            os_type=os_type,
            os_version=os_version,
            motherboard=futures["board"].result(),
            gpus=gpus or [GPUDescriptor(model=NO_GPU_DETECTED)],
            accelerator=accelerator if accelerator.detected else None,
        )
    except Exception as e:
        logger.warning("Error collecting system specs, using reduced snapshot: {}", e)
        return _fallback_snapshot()

    logger.debug("Environment: {}", snapshot.summary_line)
    return snapshot


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


def format_accelerator_info(info: AcceleratorInfo) -> str:
    if not info.detected:
        return "AMD accelerator: not detected"
    lines = ["AMD accelerator:", f"  GPU: {info.gpu_model or 'Detected'}"]
    if info.vram_mb:
        lines.append(f"  VRAM: {info.vram_mb} MB")
    if info.driver_version:
        lines.append(f"  ROCm: {info.driver_version}")
    if info.secondary_api_support is not None:
        lines.append(f"  Vulkan: {'Available' if info.secondary_api_support else 'Not available'}")
    return "\n".join(lines)


def format_environment_snapshot(snapshot: EnvironmentSnapshot) -> str:
    """Multi-line plain-text rendering of a snapshot."""
    lines = [
        "=== System Specifications ===",
        f"Server Name: {snapshot.server_name}",
        f"CPU: {snapshot.cpu_model}",
        f"  Cores: {snapshot.cpu_cores}, Threads: {snapshot.cpu_threads}",
        f"Memory: {snapshot.total_memory_gb} GB",
        f"OS: {snapshot.os_type} {snapshot.os_version}",
    ]
    if snapshot.motherboard:
        lines.append(f"Motherboard: {snapshot.motherboard}")

    lines.append("GPUs:")
    for index, gpu in enumerate(snapshot.gpus, start=1):
        vram = f" ({gpu.vram_mb} MB)" if gpu.vram_mb else ""
        lines.append(f"  {index}. {gpu.model}{vram}")

    if snapshot.accelerator is not None:
        lines.append("")
        lines.append(format_accelerator_info(snapshot.accelerator))
    return "\n".join(lines)
