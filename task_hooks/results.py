from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class HandlerVerdict(Enum):
    """Verdict of a handler. Task-context handlers observe, so they never deny."""

    ALLOW = "allow"
    WARN = "warn"


@dataclass
class HandlerResult:
    """Provider-agnostic result of a handler run."""

    verdict: HandlerVerdict
    system_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def allow(
        cls,
        system_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "HandlerResult":
        """Factory method for ALLOW verdict."""
        return cls(
            verdict=HandlerVerdict.ALLOW,
            system_message=system_message,
            metadata=metadata or {},
        )

    @classmethod
    def warn(
        cls,
        system_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "HandlerResult":
        """Factory method for WARN verdict."""
        return cls(
            verdict=HandlerVerdict.WARN,
            system_message=system_message,
            metadata=metadata or {},
        )
