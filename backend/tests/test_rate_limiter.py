"""Tests for the fixed-window rate limiter."""

from httpx import ASGITransport, AsyncClient

from echo_api.config import Settings
from echo_api.main import app, init_app_state
from echo_api.services.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_blocks():
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())

    assert [limiter.check_and_increment("1.2.3.4") for _ in range(4)] == [True, True, True, False]
    # Other clients have their own counter
    assert limiter.check_and_increment("5.6.7.8")


def test_window_resets_after_elapsing():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)

    assert limiter.check_and_increment("client")
    clock.now += 59
    assert not limiter.check_and_increment("client")
    clock.now += 1
    assert limiter.check_and_increment("client")


def test_reset_clears_counters():
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    limiter.check_and_increment("client")
    limiter.reset()
    assert limiter.check_and_increment("client")


async def test_api_returns_429_past_the_limit(storage, gateway):
    init_app_state(
        app,
        storage,
        Settings(rate_limit_enabled=True, rate_limit_requests=2),
        gateway=gateway,
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        statuses = [(await client.get("/api/personas")).status_code for _ in range(3)]
        response = await client.get("/api/personas")

    assert statuses == [200, 200, 429]
    assert response.json() == {
        "success": False,
        "message": "Too many requests, please try again later.",
    }
