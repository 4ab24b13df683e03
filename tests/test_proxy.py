from __future__ import annotations

import httpx
import pytest

from conftest import RecordingHandler, make_api
from instagrap.proxy import ProxyError


async def test_register_state_rejects_non_gcs_uri_without_network_call() -> None:
    handler = RecordingHandler({})
    api = make_api(handler)
    with pytest.raises(ValueError, match="must start with gs://"):
        await api.register_state("https://bucket/object.json")
    assert handler.requests == []


async def test_register_state_posts_uri() -> None:
    handler = RecordingHandler({("POST", "/register-state"): httpx.Response(200, json={"ok": True})})
    api = make_api(handler)
    await api.register_state("gs://insta-state/a.json")

    assert handler.body() == {"gcs_uri": "gs://insta-state/a.json"}
    assert handler.requests[0].headers["user-agent"] == "InstaGrap/1.0"


async def test_register_state_accepts_non_json_success_body() -> None:
    handler = RecordingHandler({("POST", "/register-state"): httpx.Response(200, text="registered")})
    await make_api(handler).register_state("gs://insta-state/a.json")


async def test_register_state_surfaces_http_error() -> None:
    handler = RecordingHandler({("POST", "/register-state"): httpx.Response(500, text="kaput")})
    with pytest.raises(ProxyError, match="HTTP error 500: kaput"):
        await make_api(handler).register_state("gs://insta-state/a.json")


async def test_login_status_returns_json() -> None:
    handler = RecordingHandler({("GET", "/login-status"): httpx.Response(200, json={"status": "ok", "ok": True})})
    assert await make_api(handler).login_status() == {"status": "ok", "ok": True}


async def test_login_status_timeout_is_soft_none() -> None:
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    handler = RecordingHandler({("GET", "/login-status"): timeout})
    result = await make_api(handler).login_status()
    assert result == {"status": "none", "ok": False, "message": "timeout"}


async def test_login_status_connect_error_has_diagnostics() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    handler = RecordingHandler({("GET", "/login-status"): refuse})
    with pytest.raises(ProxyError) as excinfo:
        await make_api(handler).login_status()
    message = str(excinfo.value)
    assert message.startswith("network error:")
    assert "is_timeout=False" in message
    assert "is_connect=True" in message
    assert "login-status" in message


async def test_login_status_http_error() -> None:
    handler = RecordingHandler({("GET", "/login-status"): httpx.Response(503, text="down")})
    with pytest.raises(ProxyError, match="HTTP 503: down"):
        await make_api(handler).login_status()


async def test_login_status_bad_json_includes_preview() -> None:
    handler = RecordingHandler({("GET", "/login-status"): httpx.Response(200, text="<html>oops</html>")})
    with pytest.raises(ProxyError, match="body_preview=<html>oops</html>"):
        await make_api(handler).login_status()


async def test_scrape_status_by_exec_id() -> None:
    handler = RecordingHandler({("GET", "/scrape-status"): httpx.Response(200, json={"status": "running"})})
    result = await make_api(handler).scrape_status("e1", "alice", "op1")

    assert result == {"status": "running"}
    assert len(handler.requests) == 1
    assert handler.requests[0].url.params["exec_id"] == "e1"
    assert handler.requests[0].url.params["target"] == "alice"


async def test_scrape_status_falls_back_to_legacy_on_404() -> None:
    handler = RecordingHandler({
        ("GET", "/scrape-status"): httpx.Response(404, text="no meta"),
        ("GET", "/legacy-scrape-status"): httpx.Response(200, json={"status": "completed", "results": []}),
    })
    result = await make_api(handler).scrape_status("e1", "alice", "op1")

    assert result == {"status": "completed", "results": []}
    assert [r.url.path for r in handler.requests] == ["/scrape-status", "/legacy-scrape-status"]
    assert handler.requests[1].url.params["operation"] == "op1"


async def test_scrape_status_server_error_does_not_fall_back_to_legacy() -> None:
    handler = RecordingHandler({
        ("GET", "/scrape-status"): httpx.Response(500, text="boom"),
        ("GET", "/legacy-scrape-status"): httpx.Response(200, json={"status": "completed"}),
    })
    with pytest.raises(ProxyError, match="HTTP 500: boom"):
        await make_api(handler).scrape_status("e1", "alice", "op1")
    assert [r.url.path for r in handler.requests] == ["/scrape-status"]


async def test_scrape_status_empty_exec_id_goes_straight_to_legacy() -> None:
    handler = RecordingHandler({
        ("GET", "/legacy-scrape-status"): httpx.Response(200, json={"status": "running"}),
    })
    await make_api(handler).scrape_status("", "alice", "op1")
    assert [r.url.path for r in handler.requests] == ["/legacy-scrape-status"]


async def test_scrape_status_legacy_error() -> None:
    handler = RecordingHandler({("GET", "/legacy-scrape-status"): httpx.Response(500, text="bad")})
    with pytest.raises(ProxyError, match=r"HTTP 500 \(legacy\): bad"):
        await make_api(handler).scrape_status("", "alice", "op1")


async def test_scrape_status_without_identifiers_fails() -> None:
    handler = RecordingHandler({("GET", "/scrape-status"): httpx.Response(404)})
    with pytest.raises(ProxyError, match="No valid identifier to check status"):
        await make_api(handler).scrape_status("e1", "alice", None)

    with pytest.raises(ProxyError, match="No valid identifier to check status"):
        await make_api(RecordingHandler({})).scrape_status("", "alice", None)


async def test_remote_scrape_posts_body_and_returns_json() -> None:
    handler = RecordingHandler({
        ("POST", "/remote-scrape"): httpx.Response(200, json={"status": "queued", "operation": "op1"}),
    })
    body = {"target": "alice", "target_yes": 10, "criteria_text": None}
    assert await make_api(handler).remote_scrape(body) == {"status": "queued", "operation": "op1"}
    assert handler.body() == body


async def test_delete_scrape_artifacts() -> None:
    handler = RecordingHandler({("DELETE", "/scrape-artifacts"): httpx.Response(204)})
    await make_api(handler).delete_scrape_artifacts("alice", "e1")
    assert handler.requests[0].url.params["exec_id"] == "e1"

    failing = RecordingHandler({("DELETE", "/scrape-artifacts"): httpx.Response(403, text="denied")})
    with pytest.raises(ProxyError, match="HTTP 403: denied"):
        await make_api(failing).delete_scrape_artifacts("alice", "e1")


async def test_criteria_calls_hit_classifier_base() -> None:
    handler = RecordingHandler({
        ("GET", "/criteria"): httpx.Response(200, json={"criteria": "default"}),
        ("PUT", "/prompt"): httpx.Response(200, json={"ok": True}),
        ("POST", "/prompt/reset"): httpx.Response(200, json={"reset": True}),
    })
    api = make_api(handler)

    assert await api.get_criteria() == {"criteria": "default"}
    assert await api.update_prompt("be strict") == {"ok": True}
    assert await api.reset_prompt() == {"reset": True}

    assert {r.url.host for r in handler.requests} == {"classify.test"}
    assert handler.body(1) == {"criteria": "be strict"}
    assert handler.body(2) == {}


async def test_criteria_http_error_contains_status_and_body() -> None:
    handler = RecordingHandler({("PUT", "/prompt"): httpx.Response(422, text="criteria too long")})
    with pytest.raises(ProxyError, match="HTTP error 422: criteria too long"):
        await make_api(handler).update_prompt("x" * 10)
