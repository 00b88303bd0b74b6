"""
Error taxonomy for the read-only tool service.

    PolicyViolation       — forbidden operator / stage in caller input
    UpstreamFailure       — the MongoDB client call failed
    ConfigurationMissing  — a required environment setting is absent
    UnknownTool           — no handler for the requested tool name
    InvalidArguments      — tool arguments could not be decoded

All of them are terminal for the current request.
"""

from typing import Iterable, Optional


class ServiceError(Exception):
    """Base class for every error this service raises on purpose."""


class PolicyViolation(ServiceError):
    """A prohibited operator or stage was found in caller-supplied input."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(message)
        self.key = key

    @classmethod
    def operator(cls, key: str, context: str, prohibited: Iterable[str]) -> "PolicyViolation":
        return cls(
            key,
            f'Prohibited operator "{key}" found in {context}. '
            f"The following operators are not allowed: {', '.join(prohibited)}",
        )

    @classmethod
    def stage(cls, key: str, prohibited: Iterable[str]) -> "PolicyViolation":
        return cls(
            key,
            f'Prohibited stage "{key}" found in pipeline. '
            f"The following stages are not allowed: {', '.join(prohibited)}",
        )


class UpstreamFailure(ServiceError):
    """The database client raised; carries the driver's message."""

    def __init__(self, message: str, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class ConfigurationMissing(ServiceError):
    def __init__(self, setting: str) -> None:
        super().__init__(f"{setting} environment variable is not set")
        self.setting = setting


class UnknownTool(ServiceError):
    def __init__(self, name: str, available: Optional[Iterable[str]] = None) -> None:
        message = f"Unknown tool '{name}'"
        if available:
            message += f". Available tools: {', '.join(available)}"
        super().__init__(message)
        self.name = name


class InvalidArguments(ServiceError):
    """Arguments passed the request schema but could not be decoded."""
