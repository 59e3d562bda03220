from __future__ import annotations

import json

import httpx


def test_post_create_is_forwarded_with_body(client, mock_upstream):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"janus": "success", "transaction": "t1", "data": {"id": 1234}})

    mock_upstream(handler)
    response = client.post("/janus", json={"janus": "create", "transaction": "t1"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"janus": "success", "transaction": "t1", "data": {"id": 1234}}

    assert seen[0].method == "POST"
    assert str(seen[0].url) == "http://janus.test/janus"
    assert json.loads(seen[0].content) == {"janus": "create", "transaction": "t1"}


def test_long_poll_get_keeps_path_and_query(client, mock_upstream):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"janus": "keepalive"})

    mock_upstream(handler)
    response = client.get("/janus/1234?rid=99&maxev=1")

    assert response.status_code == 200
    assert seen[0].method == "GET"
    assert str(seen[0].url) == "http://janus.test/janus/1234?rid=99&maxev=1"
    assert seen[0].content == b""


def test_nested_handle_path_is_forwarded(client, mock_upstream):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"janus": "ack"})

    mock_upstream(handler)
    client.post("/janus/1234/5678", json={"janus": "message", "body": {"request": "register"}})

    assert str(seen[0].url) == "http://janus.test/janus/1234/5678"


def test_upstream_status_and_body_are_returned_verbatim(client, mock_upstream):
    body = b'{"janus":"error","error":{"code":458,"reason":"No such session"}}'
    mock_upstream(lambda request: httpx.Response(404, content=body))

    response = client.get("/janus/999")

    assert response.status_code == 404
    assert response.content == body


def test_upstream_unreachable_returns_500_with_error(client, mock_upstream):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    mock_upstream(handler)
    response = client.post("/janus", json={"janus": "create", "transaction": "t2"})

    assert response.status_code == 500
    assert response.json() == {"error": "connection refused"}


def test_unsupported_method_is_rejected(client, mock_upstream):
    mock_upstream(lambda request: httpx.Response(200, json={}))
    response = client.put("/janus", json={"janus": "create"})
    assert response.status_code == 405


def test_proxy_client_outlasts_janus_long_poll(app):
    import asyncio

    import api.dependencies as deps

    async def scenario() -> None:
        generator = deps.get_janus_client()
        proxy_client = await generator.__anext__()
        try:
            # Janus holds a GET for up to 30s when no events are queued.
            assert proxy_client.timeout.read == 60.0
            assert proxy_client.timeout.read > 30.0
            assert proxy_client.timeout.connect == 30.0
        finally:
            await generator.aclose()

    asyncio.run(scenario())


def test_janus_routes_do_not_use_the_shared_client(client, app):
    import api.dependencies as deps

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"janus": "keepalive"})

    async def _client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as proxy_client:
            yield proxy_client

    app.dependency_overrides[deps.get_janus_client] = _client
    response = client.get("/janus/1234")

    assert response.status_code == 200
    assert response.json() == {"janus": "keepalive"}
