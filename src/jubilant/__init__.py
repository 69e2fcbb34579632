"""Small web framework: regex-typed routes, grouped middleware, injected handler arguments."""

from jubilant.app import Application
from jubilant.config import AppConfig
from jubilant.context import current_request, current_response
from jubilant.errors import ConfigurationError, JubilantError, ParameterCoercionError
from jubilant.middleware import ALLOW, Allow, MiddlewareChain, Reject
from jubilant.request import Request
from jubilant.response import JSONResponse, Response
from jubilant.router import DispatchResult, DispatchState, Router
from jubilant.routing import Route, RouteGroup, RouteTable
from jubilant.views import JinjaRenderer, Renderer

__version__ = "0.2.0"

__all__ = [
    "ALLOW",
    "AppConfig",
    "Allow",
    "Application",
    "ConfigurationError",
    "DispatchResult",
    "DispatchState",
    "JSONResponse",
    "JinjaRenderer",
    "JubilantError",
    "MiddlewareChain",
    "ParameterCoercionError",
    "Reject",
    "Renderer",
    "Request",
    "Response",
    "Route",
    "RouteGroup",
    "RouteTable",
    "Router",
    "current_request",
    "current_response",
]
