"""Exception hierarchy for llmbench."""


class LLMBenchError(Exception):
    """Base exception for llmbench."""


class ConfigError(LLMBenchError):
    """Invalid or missing configuration."""


class BackendError(LLMBenchError):
    """Error selecting or driving an execution backend."""


class UnknownBackendError(BackendError):
    """Backend name is not in the compiled-in catalog."""

    def __init__(self, name: str, known: list[str]):
        super().__init__(f"Unknown backend '{name}'. Known backends: {', '.join(known)}")
        self.name = name
        self.known = known


class StoreError(LLMBenchError):
    """Results store could not be initialised, read or written.

    Always fatal to the invocation: dropping a measurement silently is worse
    than aborting.
    """


class ToolboxError(LLMBenchError):
    """Error from the toolbox container tooling."""
