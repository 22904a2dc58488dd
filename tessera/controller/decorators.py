"""
Controller Method Decorators

HTTP method decorators for controller methods and the class-level
`@controller(prefix)` decorator. They attach metadata only; nothing is
registered until a module containing the controller is loaded.
"""

from typing import Any, Callable, List, Optional, TypeVar, Union
import inspect


F = TypeVar('F', bound=Callable[..., Any])

HTTP_METHODS = ('GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD', 'OPTIONS')


class RouteDecorator:
    """
    Base route decorator.

    Attaches metadata to controller methods for load-time extraction.
    """

    method: Optional[str] = None

    def __init__(
        self,
        path: str = "",
        *,
        name: Optional[str] = None,
        summary: Optional[str] = None,
        status_code: int = 200,
    ):
        """
        Initialize route decorator.

        Args:
            path: Sub-path appended to the controller prefix
                  (e.g., "/", "/{id}", "/{id:int}")
            name: Route name for url_for() (default: "Controller.method")
            summary: Short description used by route listings
            status_code: Status used when the result is coerced to a Response
        """
        self.path = path
        self.name = name
        self.summary = summary
        self.status_code = status_code

    def __call__(self, func: F) -> F:
        if not hasattr(func, '__route_metadata__'):
            func.__route_metadata__ = []

        func.__route_metadata__.append({
            'http_method': self.method,
            'path': self.path,
            'name': self.name,
            'summary': self.summary or (inspect.getdoc(func) or '').split('\n')[0],
            'status_code': self.status_code,
            'func_name': func.__name__,
        })
        return func


class GET(RouteDecorator):
    """GET request decorator."""
    method = 'GET'


class POST(RouteDecorator):
    """POST request decorator."""
    method = 'POST'


class PUT(RouteDecorator):
    """PUT request decorator."""
    method = 'PUT'


class PATCH(RouteDecorator):
    """PATCH request decorator."""
    method = 'PATCH'


class DELETE(RouteDecorator):
    """DELETE request decorator."""
    method = 'DELETE'


class HEAD(RouteDecorator):
    """HEAD request decorator."""
    method = 'HEAD'


class OPTIONS(RouteDecorator):
    """OPTIONS request decorator."""
    method = 'OPTIONS'


_DECORATORS = {
    'GET': GET,
    'POST': POST,
    'PUT': PUT,
    'PATCH': PATCH,
    'DELETE': DELETE,
    'HEAD': HEAD,
    'OPTIONS': OPTIONS,
}


def route(
    method: Union[str, List[str]],
    path: str = "",
    **kwargs
) -> Callable[[F], F]:
    """
    Generic route decorator.

    Example:
        @route("GET", "/users")
        def get_users(self, request):
            ...

        @route(["GET", "POST"], "/items")
        def handle_items(self, request):
            ...
    """
    methods = [method] if isinstance(method, str) else method

    def decorator(func: F) -> F:
        for http_method in methods:
            decorator_cls = _DECORATORS.get(http_method.upper())
            if decorator_cls is None:
                raise ValueError(f"Unsupported HTTP method: {http_method}")
            func = decorator_cls(path, **kwargs)(func)
        return func

    return decorator


def controller(prefix: str = "") -> Callable[[type], type]:
    """
    Class decorator setting a controller's route prefix.

    Example:
        @controller("/api/users")
        class UserController:
            def __init__(self, service: UserService):
                self.service = service
    """
    def decorator(cls: type) -> type:
        cls.prefix = prefix
        cls.__is_controller__ = True
        return cls

    return decorator
