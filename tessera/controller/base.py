"""
Controller Base Class
"""

from typing import Any, Dict, Optional


class Controller:
    """
    Base Controller class.

    Controllers are class-based request handlers with constructor
    injection and method-level route definitions. Subclassing is optional:
    any class listed in a module's `controllers` is treated the same way,
    and `@controller(prefix)` sets the prefix without a base class.

    A fresh instance is resolved from the container for every request,
    so instance attributes never leak between requests.

    Class Attributes:
        prefix: URL prefix for all routes (e.g., "/users")

    Example:
        class UsersController(Controller):
            prefix = "/users"

            def __init__(self, repo: UserRepo):
                self.repo = repo

            @GET("/{id:int}")
            def show(self, request, id: int):
                return self.repo.get(id)
    """

    prefix: str = ""

    def json(self, data: Any, status: int = 200, headers: Optional[Dict[str, str]] = None):
        """Build a JSON response."""
        from ..response import Response
        return Response.json(data, status=status, headers=headers)

    def text(self, content: str, status: int = 200, headers: Optional[Dict[str, str]] = None):
        """Build a plain-text response."""
        from ..response import Response
        return Response.text(content, status=status, headers=headers)
