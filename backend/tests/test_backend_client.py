"""Tests for the backend HTTP client: auth, body tolerance and the error taxonomy."""
import httpx
import pytest

from services.backend_client import BackendError, BackendUnavailableError


async def test_bearer_token_is_sent(backend, fake_backend):
    fake_backend.on("POST", "/game/start", (200, {"gameId": 1}))
    await backend.start_game()
    request = fake_backend.calls("POST", "/game/start")[0]
    assert request.headers["Authorization"] == "Bearer tok-123"
    assert request.headers["Content-Type"] == "application/json"


async def test_leaderboard_is_unauthenticated(backend, fake_backend):
    fake_backend.on("GET", "/game/leaderboard", (200, [{"id": 1, "score": 3}]))
    rows = await backend.get_leaderboard()
    assert rows == [{"id": 1, "score": 3}]
    assert "Authorization" not in fake_backend.requests[0].headers


async def test_finish_body_shape(backend, fake_backend):
    fake_backend.on("POST", "/game/finish", (200, {"totalStars": 1}))
    await backend.finish_game(game_id=5, score=8, clicks=4, epic_count=1)
    assert fake_backend.bodies("POST", "/game/finish") == [
        {"gameId": 5, "score": 8, "clicks": 4, "epicCount": 1}
    ]


async def test_malformed_success_body_reads_as_empty(backend, fake_backend):
    fake_backend.on("POST", "/tournament/join", (200, b"<html>oops</html>"))
    assert await backend.join_tournament() == {}


async def test_error_message_from_server(backend, fake_backend):
    fake_backend.on("POST", "/game/start", (400, {"message": "Round already active"}))
    with pytest.raises(BackendError) as info:
        await backend.start_game()
    assert info.value.message == "Round already active"
    assert info.value.status_code == 400


async def test_error_key_used_when_no_message(backend, fake_backend):
    fake_backend.on("GET", "/users/me", (401, {"error": "Unauthorized"}))
    with pytest.raises(BackendError, match="Unauthorized"):
        await backend.get_me()


async def test_error_fallback_for_empty_body(backend, fake_backend):
    fake_backend.on("POST", "/game/finish", (500, b""))
    with pytest.raises(BackendError, match="Could not finish the game"):
        await backend.finish_game(game_id=1, score=0, clicks=0, epic_count=0)


async def test_transport_failure(backend, fake_backend):
    def responder(request):
        raise httpx.ReadTimeout("timed out", request=request)

    fake_backend.on("GET", "/tournament/current", responder)
    with pytest.raises(BackendUnavailableError) as info:
        await backend.get_current_tournament()
    assert info.value.status_code is None


async def test_empty_tournament_reads_as_none(backend, fake_backend):
    fake_backend.on("GET", "/tournament/current", (200, b"null"))
    assert await backend.get_current_tournament() is None
