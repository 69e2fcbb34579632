"""Tests for request dispatch."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import pytest
from pydantic import BaseModel

from jubilant.context import bind_request, current_request, current_response
from jubilant.errors import ParameterCoercionError
from jubilant.middleware import Reject
from jubilant.request import Request
from jubilant.response import Response
from jubilant.router import NOT_FOUND_BODY, DispatchState, Router

if TYPE_CHECKING:
    from jubilant.views import JinjaRenderer

calls: list[tuple] = []


@pytest.fixture(autouse=True)
def _reset_calls() -> None:
    calls.clear()


class Allow:
    def handle(self, path: str, method: str) -> bool:
        calls.append(("allow", path, method))
        return True


class Deny:
    def handle(self, path: str, method: str) -> bool:
        calls.append(("deny", path, method))
        return False


class Never:
    def handle(self, path: str, method: str) -> bool:
        calls.append(("never",))
        return True


class RequireToken:
    def handle(self, path: str, method: str) -> bool | Reject:
        if "x-token" in current_request().headers:
            return True
        return Reject(401, "token required", (("www-authenticate", "Token"),))


class Greeter:
    def greet(self, name: str) -> str:
        return f"hello {name}"


class Clock(Protocol):
    def now(self) -> str: ...


class FixedClock:
    def now(self) -> str:
        return "noon"


def uptime(clock: Clock) -> str:
    return clock.now()


class UserController:
    instances = 0

    def __init__(self) -> None:
        type(self).instances += 1

    def show(self, user_id: int, greeter: Greeter) -> str:
        calls.append(("show", user_id))
        return greeter.greet(user_id)


class Item(BaseModel):
    name: str
    price: float


def _recording(label: str):
    def handler(*args) -> str:
        calls.append((label, *args))
        return label

    return handler


# =====================================================================
# Matching and first-match-wins
# =====================================================================


class TestDispatch:
    def test_invokes_matching_handler_once(self) -> None:
        router = Router()
        router.get("/a", _recording("first"))
        router.get("/a", _recording("second"))
        router.get("/b", _recording("other"))

        result = router.dispatch("/a", "GET")

        assert result.state is DispatchState.DONE
        assert calls == [("first",)]
        assert result.response.text == "first"
        assert result.route is router.routes[0]

    def test_method_must_match(self) -> None:
        router = Router()
        router.post("/x", _recording("post"))
        assert router.dispatch("/x", "GET").state is DispatchState.NOT_FOUND
        assert router.dispatch("/x", "post").state is DispatchState.DONE
        assert calls == [("post",)]

    def test_path_params_are_bound_by_name(self) -> None:
        router = Router()

        @router.get(r"/users/{user_id:\d+}/posts/{slug:[a-z-]+}")
        def show(slug: str, user_id: int) -> str:
            return f"{user_id}:{slug}:{type(user_id).__name__}"

        result = router.dispatch("/users/42/posts/hello-there", "GET")
        assert result.response.text == "42:hello-there:str"
        assert result.params == {"user_id": "42", "slug": "hello-there"}

    def test_params_rebuilt_per_attempt(self) -> None:
        router = Router()
        router.get(r"/{a:\d+}/x", _recording("digits"))
        router.get(r"/{b:\w+}/y", _recording("words"))
        result = router.dispatch("/12/y", "GET")
        assert result.params == {"b": "12"}

    def test_query_string_ignored(self) -> None:
        router = Router()
        router.get("/search", _recording("search"))
        assert router.dispatch("/search?q=jubilant", "GET").state is DispatchState.DONE

    def test_repeated_dispatch_is_deterministic(self) -> None:
        router = Router()
        router.get(r"/{id:\d+}", _recording("num"))
        router.get(r"/{id:\w+}", _recording("word"))
        states = [router.dispatch("/7", "GET").route for _ in range(3)]
        assert states == [router.routes[0]] * 3

    def test_handler_exception_propagates(self) -> None:
        router = Router()

        @router.get("/boom")
        def boom() -> None:
            raise RuntimeError("kaboom")

        router.get("/boom", _recording("fallback"))
        with pytest.raises(RuntimeError, match="kaboom"):
            router.dispatch("/boom", "GET")
        assert calls == []

    def test_controller_instantiated_per_dispatch(self) -> None:
        router = Router()
        router.provide(Greeter)
        router.get(r"/users/{user_id:\d+}", (UserController, "show"))
        UserController.instances = 0

        router.dispatch("/users/1", "GET")
        result = router.dispatch("/users/2", "GET")

        assert UserController.instances == 2
        assert result.response.text == "hello 2"
        assert calls == [("show", "1"), ("show", "2")]


# =====================================================================
# Middleware
# =====================================================================


class TestMiddleware:
    def test_middleware_runs_before_handler(self) -> None:
        router = Router()
        router.get("/x", _recording("handler"), [Allow])
        router.dispatch("/x", "GET")
        assert calls == [("allow", "/x", "GET"), ("handler",)]

    def test_short_circuit(self) -> None:
        router = Router()
        router.get("/x", _recording("handler"), [Allow, Deny, Never])
        router.get("/x", _recording("fallback"))

        result = router.dispatch("/x", "GET")

        assert result.state is DispatchState.ABORTED
        assert calls == [("allow", "/x", "GET"), ("deny", "/x", "GET")]
        assert result.response.status_code == 403
        assert result.response.body == b""

    def test_rejection_response_applied(self) -> None:
        router = Router()
        router.get("/secret", _recording("secret"), [RequireToken])
        with bind_request(Request.from_values("GET", "/secret")):
            result = router.dispatch()

        assert result.state is DispatchState.ABORTED
        assert result.response.status_code == 401
        assert result.response.text == "token required"
        assert result.response.headers["www-authenticate"] == "Token"

    def test_group_middleware_applies(self) -> None:
        router = Router()
        router.group("/admin", [Deny], lambda g: g.get("/panel", _recording("panel")))
        router.get("/public", _recording("public"))

        assert router.dispatch("/admin/panel", "GET").state is DispatchState.ABORTED
        assert router.dispatch("/public", "GET").state is DispatchState.DONE
        assert calls == [("deny", "/admin/panel", "GET"), ("public",)]


# =====================================================================
# Not found
# =====================================================================


class TestNotFound:
    def test_fallback_body(self) -> None:
        result = Router().dispatch("/missing", "GET")
        assert result.state is DispatchState.NOT_FOUND
        assert result.response.status_code == 404
        assert result.response.text == NOT_FOUND_BODY
        assert result.route is None

    def test_custom_handler_called_without_arguments(self) -> None:
        router = Router()

        def not_found(*args) -> str:
            calls.append(("not_found", *args))
            return "<h1>Nothing here</h1>"

        router.set_not_found_handler(not_found)
        result = router.dispatch("/missing", "GET")

        assert calls == [("not_found",)]
        assert result.response.status_code == 404
        assert result.response.text == "<h1>Nothing here</h1>"


# =====================================================================
# Results, redirects, and injection
# =====================================================================


class TestResults:
    def test_dict_written_as_json(self) -> None:
        router = Router()
        router.get("/data", lambda: {"ok": True})
        response = router.dispatch("/data", "GET").response
        assert response.headers["content-type"] == "application/json"
        assert response.body == b'{"ok":true}'

    def test_model_written_as_json(self) -> None:
        router = Router()
        router.get("/item", lambda: Item(name="Widget", price=9.99))
        assert router.dispatch("/item", "GET").response.body == b'{"name":"Widget","price":9.99}'

    def test_handler_can_write_to_current_response(self) -> None:
        router = Router()

        @router.get("/stream")
        def stream() -> None:
            current_response().write("a")
            current_response().write(b"b")
            current_response().set_header("X-Part", "2")

        response = router.dispatch("/stream", "GET").response
        assert response.text == "ab"
        assert response.headers["x-part"] == "2"

    def test_response_injected_by_type(self) -> None:
        router = Router()

        @router.post("/created")
        def created(response: Response) -> str:
            response.status_code = 201
            return "made"

        response = router.dispatch("/created", "POST").response
        assert (response.status_code, response.text) == (201, "made")

    def test_caller_supplied_response(self) -> None:
        router = Router()
        router.get("/x", lambda: "x")
        response = Response("pre-")
        assert router.dispatch("/x", "GET", response).response is response
        assert response.text == "pre-x"

    def test_redirect(self) -> None:
        router = Router()
        router.redirect("/old", "/new")
        response = router.dispatch("/old", "GET").response
        assert response.status_code == 302
        assert response.headers["location"] == "/new"
        assert response.body == b""

    def test_permanent_redirect(self) -> None:
        router = Router()
        router.redirect("/old", "https://example.com/", status_code=301)
        assert router.dispatch("/old", "GET").response.status_code == 301


class TestAmbientRequest:
    def test_defaults_to_current_request(self) -> None:
        router = Router()

        @router.post(r"/echo/{word:\w+}")
        def echo(word: str, request: Request) -> dict:
            return {"word": word, "body": request.json()}

        request = Request.from_values("POST", "/echo/hi", body=b'{"n": 1}')
        with bind_request(request):
            result = router.dispatch()

        assert result.response.body == b'{"word":"hi","body":{"n":1}}'

    def test_explicit_arguments_override_context(self) -> None:
        router = Router()
        router.get("/a", _recording("a"))
        with bind_request(Request.from_values("GET", "/b")):
            assert router.dispatch("/a").state is DispatchState.DONE

    def test_request_is_none_without_context(self) -> None:
        router = Router()

        @router.get("/r")
        def show(request: Request) -> str:
            return repr(request)

        assert router.dispatch("/r", "GET").response.text == "None"

    def test_no_context_and_no_arguments(self) -> None:
        with pytest.raises(LookupError):
            Router().dispatch()


# =====================================================================
# Strict mode and coercion
# =====================================================================


class TestStrictMode:
    def test_unresolvable_parameter_rejected_on_freeze(self) -> None:
        router = Router(strict=True)
        router.get("/uptime", uptime)
        with pytest.raises(TypeError, match="Parameter 'clock' is not a path parameter"):
            router.freeze()

    def test_provided_type_satisfies_strict_mode(self) -> None:
        router = Router(strict=True)
        router.get("/uptime", uptime)
        router.provide(Clock, FixedClock)
        router.freeze()
        assert router.routes.frozen
        assert router.dispatch("/uptime", "GET").response.text == "noon"

    def test_constructible_class_satisfies_strict_mode(self) -> None:
        router = Router(strict=True)
        router.get(r"/users/{user_id:\d+}", (UserController, "show"))
        router.freeze()
        assert router.routes.frozen

    def test_permissive_mode_passes_none(self) -> None:
        router = Router()
        @router.get("/x")
        def handler(clock: Clock) -> str:
            return repr(clock)

        router.freeze()
        assert router.dispatch("/x", "GET").response.text == "None"


class TestInjectionByType:
    def test_unregistered_class_is_constructed(self) -> None:
        router = Router()

        @router.get(r"/greet/{name:\w+}")
        def greet(name: str, greeter: Greeter) -> str:
            return greeter.greet(name)

        assert router.dispatch("/greet/ada", "GET").response.text == "hello ada"

    def test_controller_dependencies_constructed_without_provide(self) -> None:
        router = Router()
        router.get(r"/users/{user_id:\d+}", (UserController, "show"))
        assert router.dispatch("/users/3", "GET").response.text == "hello 3"

    def test_unresolvable_hint_does_not_hide_other_types(self) -> None:
        router = Router()

        @router.get("/flags")
        def flags(request: Request, flag: UndefinedFlag = 1, renderer: JinjaRenderer = None) -> str:  # noqa: F821
            return f"{request.path} {flag} {renderer}"

        with bind_request(Request.from_values("GET", "/flags")):
            result = router.dispatch()

        assert result.response.text == "/flags 1 None"

    def test_local_class_annotation_keeps_request_injection(self) -> None:
        class Local:
            pass

        router = Router()

        @router.get("/local")
        def local(thing: Local, request: Request) -> str:
            return f"{thing} {request.method}"

        with bind_request(Request.from_values("GET", "/local")):
            assert router.dispatch().response.text == "None GET"


class TestFrozenRouter:
    def test_not_found_handler_rejected_after_freeze(self) -> None:
        router = Router()
        router.freeze()
        with pytest.raises(RuntimeError, match="frozen"):
            router.set_not_found_handler(lambda: "late")
        assert router.dispatch("/nope", "GET").response.text == NOT_FOUND_BODY

    def test_provide_rejected_after_freeze(self) -> None:
        router = Router()
        router.freeze()
        with pytest.raises(RuntimeError, match="frozen"):
            router.provide(Clock, FixedClock)

class TestCoercion:
    def test_coerces_annotated_params(self) -> None:
        router = Router(coerce_params=True)

        @router.get(r"/users/{user_id:\d+}")
        def show(user_id: int) -> str:
            return type(user_id).__name__

        assert router.dispatch("/users/5", "GET").response.text == "int"

    def test_coercion_failure_raises(self) -> None:
        router = Router(coerce_params=True)

        @router.get(r"/n/{value:\w+}")
        def n(value: float) -> str:
            return str(value)

        with pytest.raises(ParameterCoercionError):
            router.dispatch("/n/abc", "GET")
