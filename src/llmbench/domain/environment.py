"""Environment snapshot models.

Captures the hardware and software environment at benchmark time, so a
throughput figure can be read alongside the host that produced it.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class GPUDescriptor(BaseModel):
    """One GPU in the host inventory."""

    model: str = Field(..., description="GPU model name")
    vram_mb: int | None = Field(default=None, description="Dedicated VRAM in MB, if known")

    model_config = {"frozen": True}


class AcceleratorInfo(BaseModel):
    """Accelerator capability probe result.

    Absence of evidence is a negative capability, never an error: a host
    without the vendor marker reports ``detected=False`` and nothing else.
    """

    detected: bool = Field(default=False, description="Vendor marker found in device enumeration")
    gpu_model: str | None = Field(default=None, description="Best-effort GPU model name")
    vram_mb: int | None = Field(default=None, description="VRAM in MB, if reported")
    driver_version: str | None = Field(
        default=None,
        description="Driver stack marker ('installed' when the driver CLI is present)",
    )
    secondary_api_support: bool | None = Field(
        default=None,
        description="Vulkan introspection tooling present",
    )

    model_config = {"frozen": True}


class EnvironmentSnapshot(BaseModel):
    """Point-in-time record of host hardware and software.

    Created once per benchmark invocation, never mutated. ``id`` is the
    surrogate key assigned by the results store once persisted.
    """

    id: int | None = Field(default=None, description="Store-assigned identifier")
    server_name: str = Field(..., description="Host name")
    cpu_model: str = Field(..., description="CPU brand string")
    cpu_cores: int = Field(..., ge=0, description="Physical core count")
    cpu_threads: int = Field(..., ge=0, description="Logical thread count")
    total_memory_gb: float = Field(..., ge=0, description="Total system memory in GiB")
    os_type: str = Field(..., description="OS platform (e.g. 'Linux')")
    os_version: str = Field(..., description="Distribution or kernel release")
    motherboard: str | None = Field(default=None, description="Board vendor and model")
    gpus: list[GPUDescriptor] = Field(..., min_length=1, description="GPU inventory")
    accelerator: AcceleratorInfo | None = Field(
        default=None, description="Accelerator probe, kept only when detected"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Collection time"
    )

    model_config = {"frozen": True}

    @property
    def summary_line(self) -> str:
        """One-line summary for logging.

        Example: "strix | AMD RYZEN AI MAX+ 395 16c/32t | 124.9 GB | Linux Fedora 42"
        """
        parts = [
            self.server_name,
            f"{self.cpu_model} {self.cpu_cores}c/{self.cpu_threads}t",
            f"{self.total_memory_gb} GB",
            f"{self.os_type} {self.os_version}",
        ]
        if self.accelerator is not None and self.accelerator.gpu_model:
            parts.append(self.accelerator.gpu_model)
        return " | ".join(parts)
