"""Backend descriptors: the invocable execution targets."""

from enum import Enum

from pydantic import BaseModel, Field


class AccelerationFamily(str, Enum):
    """Hardware/driver stack a backend targets."""

    ROCM = "rocm"
    VULKAN = "vulkan"
    REMOTE = "remote"


class BackendDescriptor(BaseModel):
    """Identity of an invocable execution target.

    Frozen: the ``installed`` flag is refreshed by producing a copy via
    ``with_installed()``. It is host-local and never persisted.
    """

    name: str = Field(..., description="Unique backend name (toolbox name for containers)")
    family: AccelerationFamily = Field(..., description="Acceleration family")
    version: str = Field(..., description="Backend/driver stack version label")
    image: str | None = Field(
        default=None,
        description="Container image reference (absent for the remote backend)",
    )
    installed: bool = Field(default=False, description="Present on this host (not persisted)")

    model_config = {"frozen": True}

    @property
    def is_container(self) -> bool:
        return self.family is not AccelerationFamily.REMOTE

    def with_installed(self, installed: bool) -> "BackendDescriptor":
        return self.model_copy(update={"installed": installed})
