"""
MemoHub Backend — HTTP API Tests
=================================

What:  End-to-end requests through the FastAPI app (routing, auth,
       exception mapping, response shapes) on a fresh SQLite database.
How:   Users come from the row factories; everything else goes through
       the API so each request commits in its own session.
"""

import json
import uuid

import pytest

from conftest import DEFAULT_PASSWORD, auth_headers
from memohub.exceptions import (
    CircuitBreakerOpenError,
    DatabaseError,
    InvitationExpiredError,
    LastOwnerError,
    MemoHubError,
)
from memohub.main import GENERIC_SERVER_ERROR, render_error, status_for
from memohub.services.ai_service import AIService, get_ai_service
from memohub.services.llm_base import LLMService


@pytest.fixture
async def alice(make_user):
    return await make_user("Alice")


@pytest.fixture
async def bob(make_user):
    return await make_user("Bob")


# ══════════════════════════════════════════════════════════════════════════
# Accounts
# ══════════════════════════════════════════════════════════════════════════

class TestAuth:

    async def test_register_login_me(self, test_client):
        created = await test_client.post(
            "/api/auth/register",
            json={"name": "Zoe", "email": " Zoe@Example.com ", "password": "secret123"},
        )
        assert created.status_code == 201
        assert created.json()["email"] == "zoe@example.com"

        login = await test_client.post(
            "/api/auth/login", json={"email": "zoe@example.com", "password": "secret123"}
        )
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = await test_client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["name"] == "Zoe"

    async def test_duplicate_registration(self, test_client, alice):
        response = await test_client.post(
            "/api/auth/register",
            json={"name": "Again", "email": "alice@example.com", "password": "secret123"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    async def test_short_password(self, test_client):
        response = await test_client.post(
            "/api/auth/register", json={"name": "Zoe", "email": "zoe@example.com", "password": "123"}
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "password"

    async def test_wrong_password(self, test_client, alice):
        response = await test_client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "nope"}
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer garbage"}])
    async def test_session_required(self, test_client, headers):
        response = await test_client.get("/api/memos", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"
        assert response.headers["X-Request-ID"] == response.json()["request_id"]

    async def test_login_with_factory_user(self, test_client, alice):
        response = await test_client.post(
            "/api/auth/login", json={"email": "ALICE@example.com", "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(alice.id)


# ══════════════════════════════════════════════════════════════════════════
# Memos and tags
# ══════════════════════════════════════════════════════════════════════════

class TestMemos:

    async def test_crud(self, test_client, alice):
        headers = auth_headers(alice)
        tag = (await test_client.post("/api/tags", json={"name": "work"}, headers=headers)).json()

        created = await test_client.post(
            "/api/memos",
            json={"title": "Plan", "content": "Ship it", "tag_ids": [tag["id"]]},
            headers=headers,
        )
        assert created.status_code == 201
        memo = created.json()
        assert memo["tags"][0]["name"] == "work"
        assert memo["author"]["name"] == "Alice"

        listed = await test_client.get("/api/memos", params={"search": "ship"}, headers=headers)
        assert listed.headers["X-Total-Count"] == "1"
        assert listed.json()["pagination"]["total"] == 1

        updated = await test_client.put(
            f"/api/memos/{memo['id']}",
            json={"title": "Plan v2", "content": "Ship it", "tag_ids": []},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json()["tags"] == []

        by_tag = await test_client.get(f"/api/tags/{tag['id']}/memos", headers=headers)
        assert by_tag.json()["memos"] == []

        deleted = await test_client.delete(f"/api/memos/{memo['id']}", headers=headers)
        assert deleted.status_code == 204
        missing = await test_client.get(f"/api/memos/{memo['id']}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["error"] == "not_found"

    async def test_private_to_creator(self, test_client, alice, bob):
        memo = (
            await test_client.post(
                "/api/memos", json={"title": "Diary", "content": "..."}, headers=auth_headers(alice)
            )
        ).json()
        response = await test_client.get(f"/api/memos/{memo['id']}", headers=auth_headers(bob))
        assert response.status_code == 404

    async def test_blank_title_is_400_and_bad_body_is_422(self, test_client, alice):
        headers = auth_headers(alice)
        blank = await test_client.post("/api/memos", json={"title": " ", "content": "x"}, headers=headers)
        assert blank.status_code == 400
        malformed = await test_client.post("/api/memos", json={"content": "x"}, headers=headers)
        assert malformed.status_code == 422

    async def test_duplicate_tag(self, test_client, alice):
        headers = auth_headers(alice)
        await test_client.post("/api/tags", json={"name": "dup"}, headers=headers)
        response = await test_client.post("/api/tags", json={"name": "dup"}, headers=headers)
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_name"

        tags = await test_client.get("/api/tags", headers=headers)
        assert [(t["name"], t["memo_count"]) for t in tags.json()] == [("dup", 0)]


# ══════════════════════════════════════════════════════════════════════════
# Teams, invitations, team memos
# ══════════════════════════════════════════════════════════════════════════

class TestTeamFlow:

    async def test_invite_accept_collaborate(self, test_client, alice, bob):
        owner = auth_headers(alice)
        team = await test_client.post("/api/teams", json={"name": "Writers"}, headers=owner)
        assert team.status_code == 201
        team_id = team.json()["id"]
        assert team.json()["current_user_role"] == "owner"

        invitation = await test_client.post(
            f"/api/teams/{team_id}/invitations", json={"email": "BOB@example.com"}, headers=owner
        )
        assert invitation.status_code == 201
        token = invitation.json()["token"]

        again = await test_client.post(
            f"/api/teams/{team_id}/invitations", json={"email": "bob@example.com"}, headers=owner
        )
        assert again.status_code == 409
        assert again.json()["error"] == "duplicate_invitation"

        inbox = await test_client.get("/api/invitations", headers=auth_headers(bob))
        assert [i["team_name"] for i in inbox.json()] == ["Writers"]

        details = await test_client.get(f"/api/invitations/{token}")
        assert details.status_code == 200
        assert details.json()["inviter_name"] == "Alice"

        accepted = await test_client.post(f"/api/invitations/{token}/accept", headers=auth_headers(bob))
        assert accepted.status_code == 200
        assert accepted.json()["role"] == "member"

        replay = await test_client.post(f"/api/invitations/{token}/accept", headers=auth_headers(bob))
        assert replay.status_code == 409
        assert replay.json()["error"] == "already_processed"

        memo = await test_client.post(
            f"/api/teams/{team_id}/memos", json={"title": "Chapter 1", "content": "It was"}, headers=owner
        )
        assert memo.status_code == 201
        memo_id = memo.json()["id"]

        read = await test_client.get(f"/api/teams/{team_id}/memos/{memo_id}", headers=auth_headers(bob))
        assert read.status_code == 200

        edit = await test_client.put(
            f"/api/teams/{team_id}/memos/{memo_id}",
            json={"title": "Mine now", "content": "x"},
            headers=auth_headers(bob),
        )
        assert edit.status_code == 403
        assert edit.json()["error"] == "permission_denied"

        stats = await test_client.get(f"/api/teams/{team_id}/memos/stats", headers=auth_headers(bob))
        assert stats.status_code == 200
        assert stats.json()["total_memos"] == 1

        members = await test_client.get(f"/api/teams/{team_id}/members", headers=owner)
        assert [m["name"] for m in members.json()] == ["Alice", "Bob"]

    async def test_decline_needs_no_session(self, test_client, alice, bob):
        owner = auth_headers(alice)
        team_id = (await test_client.post("/api/teams", json={"name": "Readers"}, headers=owner)).json()["id"]
        token = (
            await test_client.post(
                f"/api/teams/{team_id}/invitations", json={"email": "bob@example.com"}, headers=owner
            )
        ).json()["token"]

        declined = await test_client.post(f"/api/invitations/{token}/decline")
        assert declined.status_code == 200
        assert declined.json()["status"] == "declined"

        unknown = await test_client.get(f"/api/invitations/{uuid.uuid4().hex}")
        assert unknown.status_code == 404

    async def test_last_owner_cannot_leave(self, test_client, alice):
        owner = auth_headers(alice)
        team_id = (await test_client.post("/api/teams", json={"name": "Solo"}, headers=owner)).json()["id"]
        members = (await test_client.get(f"/api/teams/{team_id}/members", headers=owner)).json()

        demote = await test_client.patch(
            f"/api/teams/{team_id}/members/{members[0]['id']}", json={"role": "member"}, headers=owner
        )
        assert demote.status_code == 409
        assert demote.json()["error"] == "last_owner"

    async def test_outsider_is_forbidden(self, test_client, alice, bob):
        team_id = (
            await test_client.post("/api/teams", json={"name": "Private"}, headers=auth_headers(alice))
        ).json()["id"]
        response = await test_client.get(f"/api/teams/{team_id}", headers=auth_headers(bob))
        assert response.status_code == 403

    async def test_stats_window_validation(self, test_client, alice):
        owner = auth_headers(alice)
        team_id = (await test_client.post("/api/teams", json={"name": "Stats"}, headers=owner)).json()["id"]
        response = await test_client.get(
            f"/api/teams/{team_id}/memos/stats", params={"start_date": "2024-01-01"}, headers=owner
        )
        assert response.status_code == 400


# ══════════════════════════════════════════════════════════════════════════
# AI and search
# ══════════════════════════════════════════════════════════════════════════

class FixedLLM(LLMService):

    def __init__(self, answer: str):
        self.answer = answer

    async def generate_text(self, prompt: str) -> str:
        return self.answer

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def stub_ai(test_client):
    from memohub.main import app

    def _install(answer: str):
        app.dependency_overrides[get_ai_service] = lambda: AIService(FixedLLM(answer))

    return _install


class TestAI:

    async def test_analyze_and_apply(self, test_client, alice, stub_ai):
        stub_ai("Key points: none")
        headers = auth_headers(alice)
        memo_id = (
            await test_client.post("/api/memos", json={"title": "T", "content": "C"}, headers=headers)
        ).json()["id"]

        created = await test_client.post(
            "/api/ai/analyze", json={"memo_id": memo_id, "type": "summary"}, headers=headers
        )
        assert created.status_code == 201
        suggestion_id = created.json()["id"]

        applied = await test_client.post(f"/api/ai/suggestions/{suggestion_id}/apply", headers=headers)
        assert applied.json()["applied"] is True

        listed = await test_client.get(f"/api/ai/memos/{memo_id}/suggestions", headers=headers)
        assert len(listed.json()) == 1

    async def test_unknown_type_is_400(self, test_client, alice, stub_ai):
        stub_ai("unused")
        response = await test_client.post(
            "/api/ai/analyze", json={"memo_id": str(uuid.uuid4()), "type": "haiku"}, headers=auth_headers(alice)
        )
        assert response.status_code == 400

    async def test_unreadable_ranking_is_503(self, test_client, alice, stub_ai):
        stub_ai("I cannot rank these")
        headers = auth_headers(alice)
        await test_client.post("/api/memos", json={"title": "T", "content": "C"}, headers=headers)
        response = await test_client.post("/api/ai/semantic-search", json={"query": "t"}, headers=headers)
        assert response.status_code == 503
        assert response.json()["error"] == "llm_service_error"


class TestSearch:

    async def test_log_popular_and_suggestions(self, test_client, alice):
        headers = auth_headers(alice)
        for _ in range(2):
            logged = await test_client.post(
                "/api/search/log", json={"query": "cats", "search_type": "text", "result_count": 2}, headers=headers
            )
            assert logged.status_code == 204

        popular = await test_client.get("/api/search/popular", headers=headers)
        assert popular.json()["popular_searches"][0]["search_count"] == 2

        suggestions = await test_client.get("/api/search/suggestions", params={"q": "ca"}, headers=headers)
        assert suggestions.json()["recent_searches"] == ["cats"]

    async def test_history(self, test_client, alice):
        headers = auth_headers(alice)
        added = await test_client.post("/api/search/history", json={"query": "budget"}, headers=headers)
        assert added.json() == {"recorded": True}
        ignored = await test_client.post("/api/search/history", json={"query": "  "}, headers=headers)
        assert ignored.json() == {"recorded": False}

        history = await test_client.get("/api/search/history", headers=headers)
        assert [h["query"] for h in history.json()] == ["budget"]

        assert (await test_client.delete("/api/search/history/budget", headers=headers)).status_code == 204
        assert (await test_client.delete("/api/search/history/budget", headers=headers)).status_code == 404

    async def test_favorites_export_import(self, test_client, alice, bob):
        headers = auth_headers(alice)
        created = await test_client.post(
            "/api/search/favorites", json={"name": "Taxes", "query": "invoice"}, headers=headers
        )
        assert created.status_code == 201
        favorite_id = created.json()["id"]

        used = await test_client.post(f"/api/search/favorites/{favorite_id}/use", headers=headers)
        assert used.json()["use_count"] == 2

        exported = await test_client.get("/api/search/favorites/export", headers=headers)
        assert "attachment" in exported.headers["Content-Disposition"]

        imported = await test_client.post(
            "/api/search/favorites/import", content=exported.content, headers=auth_headers(bob)
        )
        assert imported.json() == {"imported": 1}
        bobs = await test_client.get("/api/search/favorites", headers=auth_headers(bob))
        assert [f["name"] for f in bobs.json()] == ["Taxes"]

        bad = await test_client.post(
            "/api/search/favorites/import", content=b"not json", headers=headers
        )
        assert bad.status_code == 400

        missing = await test_client.delete("/api/search/favorites/fav_nope", headers=headers)
        assert missing.status_code == 404


class TestHealth:

    async def test_reports_unconfigured_ai(self, test_client, monkeypatch):
        from memohub.config import settings

        monkeypatch.setattr(settings, "gemini_api_key", "")
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["gemini"] == "not_configured"


class TestErrorEnvelope:

    @pytest.mark.parametrize(
        "exc,status_code",
        [
            (LastOwnerError(), 409),
            (InvitationExpiredError(), 410),
            (CircuitBreakerOpenError(recovery_time=30), 503),
            (DatabaseError(), 500),
            (MemoHubError(), 500),
        ],
    )
    def test_status_mapping(self, exc, status_code):
        assert status_for(exc) == status_code

    def test_server_errors_hide_context(self):
        response = render_error(DatabaseError(context={"constraint": "uq_teams_name"}), "abc12345")
        body = json.loads(response.body)
        assert body == {
            "error": "server_error",
            "message": GENERIC_SERVER_ERROR,
            "request_id": "abc12345",
        }

    def test_retry_after_header(self):
        response = render_error(CircuitBreakerOpenError(recovery_time=30), "r")
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "30"
