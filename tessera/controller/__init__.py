"""
Tessera Controller System

Class-based controllers with constructor injection and
decorator-declared routes.

Example:
    from tessera.controller import Controller, GET, POST

    class UsersController(Controller):
        prefix = "/users"

        def __init__(self, repo: UserRepo):
            self.repo = repo

        @GET("/")
        def index(self, request):
            return self.repo.list_all()

        @GET("/{id:int}")
        def show(self, request, id: int):
            return self.repo.get(id)
"""

from .base import Controller
from .decorators import (
    RouteDecorator,
    GET,
    POST,
    PUT,
    PATCH,
    DELETE,
    HEAD,
    OPTIONS,
    route,
    controller,
)
from .metadata import (
    ControllerMetadata,
    RouteMetadata,
    extract_controller_metadata,
)

__all__ = [
    "Controller",
    "RouteDecorator",
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "route",
    "controller",
    "ControllerMetadata",
    "RouteMetadata",
    "extract_controller_metadata",
]
