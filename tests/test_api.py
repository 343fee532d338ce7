import asyncio

import pytest
from fastapi.testclient import TestClient

from lexirank.database.database import Database
from lexirank.main import create_app
from lexirank.routers.auth import create_access_token

from helpers import fresh_words, rounds


def auth(player_id, email=None):
    return {"Authorization": f"Bearer {create_access_token(player_id, email)}"}


@pytest.fixture
def client(db_url):
    async def seed():
        db = Database(db_url)
        await db.initialize()
        await db.seed_words(fresh_words())
        await db.close()

    asyncio.run(seed())
    with TestClient(create_app(Database(db_url))) as test_client:
        yield test_client


def complete_profile(client, player_id, username, **extra):
    return client.post(
        "/api/users/complete-profile",
        json={"username": username, **extra},
        headers=auth(player_id, f"{player_id}@example.com"),
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestAuth:
    def test_missing_token(self, client):
        response = client.get("/api/users/me")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_bad_token(self, client):
        response = client.get("/api/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_profile_not_created_yet(self, client):
        response = client.get("/api/users/me", headers=auth("user-1"))
        assert response.status_code == 404
        assert response.json()["details"] == {"needsProfile": True}


class TestProfile:
    def test_complete_profile_with_placement(self, client):
        response = complete_profile(
            client, "user-1", "placed_bee", avatarId=2,
            placement={"derivedTier": 5.0, "rating": 1700, "ratingDeviation": 200},
        )
        assert response.status_code == 201
        assert response.json() == {
            "success": True,
            "user": {"id": "user-1", "username": "placed_bee", "avatarId": 2},
            "placementApplied": True,
        }

        me = client.get("/api/users/me", headers=auth("user-1")).json()
        assert {rank["xp"] for rank in me["ranks"]} == {1000}
        assert {rank["tier"] for rank in me["ranks"]} == {"worker_bee"}

    def test_out_of_range_placement_is_discarded(self, client):
        response = complete_profile(
            client, "user-1", "prober", placement={"derivedTier": 4, "rating": 50, "ratingDeviation": 200}
        )
        assert response.status_code == 201
        assert response.json()["placementApplied"] is False

    def test_invalid_placement_tier(self, client):
        response = complete_profile(
            client, "user-1", "tier_nine", placement={"derivedTier": 9, "rating": 1500, "ratingDeviation": 200}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert client.get("/api/users/me", headers=auth("user-1")).status_code == 404

    def test_username_conflict(self, client):
        assert complete_profile(client, "user-1", "BusyBee").status_code == 201
        response = complete_profile(client, "user-2", "busybee")
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_check_username(self, client):
        complete_profile(client, "user-1", "taken_name")
        assert client.get("/api/users/check-username", params={"username": "TAKEN_NAME"}).json() == {
            "available": False, "error": "Username is already taken",
        }
        assert client.get("/api/users/check-username", params={"username": "fresh_name"}).json() == {
            "available": True,
        }


class TestGames:
    def start_game(self, client, player_id, mode="endless", input_method="voice"):
        response = client.post(
            "/api/games", json={"mode": mode, "inputMethod": input_method}, headers=auth(player_id)
        )
        assert response.status_code == 201
        return response.json()["gameId"]

    def test_create_requires_profile(self, client):
        response = client.post("/api/games", json={"mode": "endless", "inputMethod": "voice"}, headers=auth("ghost"))
        assert response.status_code == 400
        assert response.json()["details"] == {"needsProfile": True}

    def test_finish_flow(self, client):
        complete_profile(client, "user-1", "player_one")
        complete_profile(client, "user-2", "player_two")
        game_id = self.start_game(client, "user-1")

        payload = {"rounds": rounds(7, 10), "heartsRemaining": 0, "xpEarned": 1000}
        intruder = client.post(f"/api/games/{game_id}/finish", json=payload, headers=auth("user-2"))
        assert intruder.status_code == 403

        response = client.post(f"/api/games/{game_id}/finish", json=payload, headers=auth("user-1"))
        assert response.status_code == 200
        assert response.json() == {"success": True, "xpEarned": 35}

        again = client.post(f"/api/games/{game_id}/finish", json=payload, headers=auth("user-1"))
        assert again.status_code == 409

        progress = client.get("/api/users/me/progress", headers=auth("user-1")).json()
        assert progress["totalXp"] == 35
        assert progress["position"] == 1

        history = client.get("/api/games/history", headers=auth("user-1")).json()
        assert len(history["games"]) == 1
        assert history["stats"]["totalXp"] == 35

    def test_unknown_game(self, client):
        complete_profile(client, "user-1", "player_one")
        response = client.post(
            "/api/games/missing/finish", json={"rounds": [], "heartsRemaining": 3}, headers=auth("user-1")
        )
        assert response.status_code == 404

    def test_string_correctness_flag_rejected(self, client):
        complete_profile(client, "user-1", "player_one")
        game_id = self.start_game(client, "user-1")
        payload = {"rounds": rounds(1, 1), "heartsRemaining": 3}
        payload["rounds"][0]["isCorrect"] = "true"
        response = client.post(f"/api/games/{game_id}/finish", json=payload, headers=auth("user-1"))
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_invalid_track(self, client):
        complete_profile(client, "user-1", "player_one")
        response = client.post(
            "/api/games", json={"mode": "marathon", "inputMethod": "voice"}, headers=auth("user-1")
        )
        assert response.status_code == 400


class TestLeaderboard:
    def test_public_page(self, client):
        complete_profile(client, "user-1", "player_one")
        body = client.get("/api/leaderboard", params={"mode": "blitz", "inputMethod": "keyboard"}).json()
        assert body["totalPlayers"] == 1
        assert body["players"][0]["username"] == "player_one"
        assert "userRank" not in body
        assert "currentUserPosition" not in body

    def test_signed_in_page(self, client):
        complete_profile(client, "user-1", "player_one")
        body = client.get("/api/leaderboard", headers=auth("user-1")).json()
        assert body["currentUserPosition"] == 1
        assert body["players"][0]["isCurrentUser"] is True
        assert body["userRank"]["tier"] == "new_bee"
        assert body["userRank"]["xpForNextTier"] == 100

    def test_invalid_parameters(self, client):
        assert client.get("/api/leaderboard", params={"mode": "marathon"}).status_code == 400
        assert client.get("/api/leaderboard", params={"page": 0}).status_code == 400
        assert client.get("/api/leaderboard", params={"limit": "many"}).status_code == 400


class TestWords:
    def test_random_word_respects_tier_and_exclusions(self, client):
        response = client.get("/api/words/random", params={"tier": 1, "exclude": "w-cat"})
        assert response.status_code == 200
        assert response.json()["id"] == "w-dog"

    def test_exhausted_tier(self, client):
        response = client.get("/api/words/random", params={"tier": 1, "exclude": "w-cat,w-dog"})
        assert response.status_code == 404

    def test_invalid_tier(self, client):
        assert client.get("/api/words/random", params={"tier": 8}).status_code == 400
