"""
DI-specific fault types with rich diagnostics.
"""

from typing import List, Optional

from ..faults.domains import DIFault


class ProviderNotFoundFault(DIFault):
    """No binding registered for the requested identifier."""

    def __init__(
        self,
        token: str,
        requested_by: Optional[str] = None,
        candidates: Optional[List[str]] = None,
    ):
        self.token = token
        self.requested_by = requested_by
        self.candidates = candidates or []

        msg = f"No binding registered for '{token}'"
        if requested_by:
            msg += f" (requested by {requested_by})"
        if self.candidates:
            msg += ". Similar identifiers: " + ", ".join(self.candidates)

        super().__init__(
            code="PROVIDER_NOT_FOUND",
            message=msg,
            metadata={"token": token, "requested_by": requested_by, "candidates": self.candidates},
        )


class CircularDependencyFault(DIFault):
    """Resolution path revisited an identifier."""

    def __init__(self, path: List[str]):
        self.path = list(path)
        super().__init__(
            code="CIRCULAR_DEPENDENCY",
            message="Circular dependency detected: " + " -> ".join(self.path),
            metadata={"path": self.path},
        )


class UnresolvableDependencyFault(DIFault):
    """A constructor or handler parameter has no binding and no default."""

    def __init__(self, parameter: str, owner: str, token: Optional[str] = None):
        self.parameter = parameter
        self.owner = owner
        self.token = token

        if token:
            msg = (
                f"Cannot resolve parameter '{parameter}' of {owner}: "
                f"no binding for '{token}' and no default value"
            )
        else:
            msg = (
                f"Cannot resolve parameter '{parameter}' of {owner}: "
                f"missing type annotation and no default value"
            )

        super().__init__(
            code="UNRESOLVABLE_DEPENDENCY",
            message=msg,
            metadata={"parameter": parameter, "owner": owner, "token": token},
        )
