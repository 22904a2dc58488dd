"""
Scope definitions.
"""

from enum import Enum


class ServiceScope(str, Enum):
    """Binding lifetime scopes."""

    SINGLETON = "singleton"  # Resolved once, cached for the container lifetime
    TRANSIENT = "transient"  # New instance every resolve

    @classmethod
    def coerce(cls, value: "ServiceScope | str") -> "ServiceScope":
        """Accept either an enum member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown scope {value!r}; expected one of "
                f"{', '.join(s.value for s in cls)}"
            ) from None


class BindingState(str, Enum):
    """Per-binding resolution state."""

    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"
