"""RequestGateway + RefreshCoordinator against an in-memory fake API (httpx.MockTransport)."""

import asyncio

import httpx
import pytest

from quill.client.gateway import RequestGateway
from quill.client.signals import SignOutSignal
from quill.client.tokens import AccessTokenHolder
from quill.errors import NetworkFailure, SessionExpired


class FakeApi:
    """Accepts only `Bearer <valid_token>`; the refresh endpoint hands out valid_token."""

    def __init__(self, valid_token="fresh", refresh_status=200, refresh_delay=0.05, always_reject=False, refresh_unreachable=False):
        self.valid_token = valid_token
        self.refresh_status = refresh_status
        self.refresh_delay = refresh_delay
        self.always_reject = always_reject
        self.refresh_unreachable = refresh_unreachable
        self.refresh_calls = 0
        self.refresh_auth_headers = []
        self.seen_auth = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        auth = request.headers.get("authorization")
        if request.url.path.endswith("/users/refresh-token"):
            self.refresh_calls += 1
            self.refresh_auth_headers.append(auth)
            await asyncio.sleep(self.refresh_delay)
            if self.refresh_unreachable:
                raise httpx.ConnectError("connection reset", request=request)
            if self.refresh_status != 200:
                return httpx.Response(
                    self.refresh_status,
                    json={"success": False, "statusCode": self.refresh_status, "message": "Token revoked", "errors": []},
                )
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "statusCode": 200,
                    "message": "Access token refreshed",
                    "data": {"accessToken": self.valid_token, "expiresIn": 900},
                },
            )
        self.seen_auth.append(auth)
        if self.always_reject or auth != f"Bearer {self.valid_token}":
            return httpx.Response(401, json={"success": False, "statusCode": 401, "message": "Token expired", "errors": []})
        return httpx.Response(200, json={"success": True, "statusCode": 200, "message": "OK", "data": {"path": request.url.path}})


def _gateway(api: FakeApi, token: str | None = "stale", **kwargs) -> RequestGateway:
    gateway = RequestGateway("http://api.test/api/v1", transport=httpx.MockTransport(api), **kwargs)
    gateway.tokens.set(token)
    return gateway


def _sign_out_log(gateway: RequestGateway) -> list[str]:
    reasons: list[str] = []
    gateway.signals.subscribe(reasons.append)
    return reasons


@pytest.mark.asyncio
async def test_valid_token_is_attached_and_no_refresh():
    api = FakeApi()
    async with _gateway(api, token="fresh") as gateway:
        resp = await gateway.get("/posts")
    assert resp.status_code == 200
    assert api.seen_auth == ["Bearer fresh"]
    assert api.refresh_calls == 0


@pytest.mark.asyncio
async def test_concurrent_401s_share_one_refresh():
    api = FakeApi()
    async with _gateway(api) as gateway:
        responses = await asyncio.gather(*(gateway.get(f"/posts/{i}") for i in range(5)))

    assert [r.status_code for r in responses] == [200] * 5
    assert api.refresh_calls == 1
    assert gateway.coordinator.refresh_count == 1
    assert gateway.tokens.get() == "fresh"
    # Every replay used the single renewed token; refresh itself carried no bearer header.
    assert api.seen_auth.count("Bearer fresh") == 5
    assert api.refresh_auth_headers == [None]
    assert not gateway.coordinator.refreshing


@pytest.mark.asyncio
async def test_failed_refresh_fails_every_waiter_and_signs_out():
    api = FakeApi(refresh_status=401)
    async with _gateway(api) as gateway:
        reasons = _sign_out_log(gateway)
        results = await asyncio.gather(*(gateway.get(f"/posts/{i}") for i in range(3)), return_exceptions=True)

    assert all(isinstance(r, SessionExpired) for r in results)
    assert api.refresh_calls == 1
    assert gateway.tokens.get() is None
    assert len(reasons) == 1
    assert not gateway.coordinator.refreshing


@pytest.mark.asyncio
async def test_refresh_timeout_fails_queue_like_rejection():
    api = FakeApi(refresh_delay=5)
    async with _gateway(api, refresh_timeout=0.05) as gateway:
        reasons = _sign_out_log(gateway)
        results = await asyncio.gather(*(gateway.get(f"/posts/{i}") for i in range(3)), return_exceptions=True)

    assert all(isinstance(r, SessionExpired) for r in results)
    assert "timed out" in results[0].errors[0]
    assert api.refresh_calls == 1
    assert gateway.tokens.get() is None
    assert len(reasons) == 1


@pytest.mark.asyncio
async def test_replayed_request_is_not_retried_twice():
    api = FakeApi(always_reject=True)
    async with _gateway(api) as gateway:
        reasons = _sign_out_log(gateway)
        resp = await gateway.get("/posts")

    assert resp.status_code == 401
    assert api.refresh_calls == 1
    assert api.seen_auth == ["Bearer stale", "Bearer fresh"]
    assert gateway.tokens.get() is None
    assert reasons == ["request rejected after refresh"]


@pytest.mark.asyncio
async def test_missing_token_refreshes_from_cookie():
    """First load: no access token held, the cookie-only refresh still restores the session."""
    api = FakeApi()
    async with _gateway(api, token=None) as gateway:
        resp = await gateway.get("/users/me")

    assert resp.status_code == 200
    assert api.seen_auth == [None, "Bearer fresh"]
    assert api.refresh_calls == 1


@pytest.mark.asyncio
async def test_credential_endpoints_skip_interception():
    api = FakeApi()
    async with _gateway(api, token=None) as gateway:
        resp = await gateway.post("/users/login", json={}, intercept_unauthorized=False)

    assert resp.status_code == 401
    assert api.refresh_calls == 0


@pytest.mark.asyncio
async def test_late_401_with_superseded_token_replays_without_new_refresh():
    api = FakeApi()
    async with _gateway(api) as gateway:
        await gateway.get("/posts/1")
        assert api.refresh_calls == 1
        # A request that went out with the old token and came back after the refresh.
        token = await gateway.coordinator.renew(stale_token="stale")

    assert token == "fresh"
    assert api.refresh_calls == 1


@pytest.mark.asyncio
async def test_transport_error_is_network_failure_not_sign_out():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with RequestGateway("http://api.test/api/v1", transport=httpx.MockTransport(handler)) as gateway:
        gateway.tokens.set("fresh")
        reasons = _sign_out_log(gateway)
        with pytest.raises(NetworkFailure):
            await gateway.get("/posts")

    assert reasons == []
    assert gateway.tokens.get() == "fresh"


@pytest.mark.asyncio
async def test_gateways_do_not_share_refresh_state():
    api_a, api_b = FakeApi(valid_token="a"), FakeApi(valid_token="b")
    async with _gateway(api_a) as gw_a, _gateway(api_b) as gw_b:
        resp_a, resp_b = await asyncio.gather(gw_a.get("/posts"), gw_b.get("/posts"))

    assert resp_a.status_code == resp_b.status_code == 200
    assert api_a.refresh_calls == api_b.refresh_calls == 1
    assert gw_a.tokens.get() == "a"
    assert gw_b.tokens.get() == "b"


@pytest.mark.asyncio
async def test_cancelled_first_caller_does_not_abort_shared_refresh():
    api = FakeApi(refresh_delay=0.1)
    async with _gateway(api) as gateway:
        first = asyncio.create_task(gateway.get("/posts/0"))
        await asyncio.sleep(0.02)
        assert gateway.coordinator.refreshing
        others = [asyncio.create_task(gateway.get(f"/posts/{i}")) for i in (1, 2)]
        await asyncio.sleep(0.02)

        first.cancel()
        responses = await asyncio.gather(*others)

        assert first.cancelled()
        assert [r.status_code for r in responses] == [200, 200]
        assert api.refresh_calls == 1
        assert gateway.tokens.get() == "fresh"


@pytest.mark.asyncio
async def test_unreachable_refresh_is_network_failure_without_sign_out():
    api = FakeApi(refresh_unreachable=True)
    async with _gateway(api) as gateway:
        reasons = _sign_out_log(gateway)
        results = await asyncio.gather(*(gateway.get(f"/posts/{i}") for i in range(3)), return_exceptions=True)

    assert all(isinstance(r, NetworkFailure) for r in results)
    assert api.refresh_calls == 1
    assert reasons == []
    assert gateway.tokens.get() == "stale"
    assert not gateway.coordinator.refreshing


@pytest.mark.asyncio
async def test_gateway_keeps_caller_supplied_empty_holder_and_signal():
    holder, signal = AccessTokenHolder(), SignOutSignal()
    api = FakeApi()
    async with RequestGateway("http://api.test/api/v1", transport=httpx.MockTransport(api), tokens=holder, signals=signal) as gateway:
        assert gateway.tokens is holder
        assert gateway.signals is signal
        holder.set("fresh")
        resp = await gateway.get("/posts")

    assert resp.status_code == 200
    assert api.seen_auth == ["Bearer fresh"]
