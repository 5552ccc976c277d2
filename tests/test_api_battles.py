"""Tests for battle API endpoints."""

import pytest
from httpx import AsyncClient

from cardarena.services.broadcaster import BATTLE_RESOLVED


async def create_card(client: AsyncClient, owner_id: str, kind: str, **attributes: int) -> str:
    values = {"strength": 10, "dexterity": 10, "intelligence": 10, **attributes}
    response = await client.post(
        "/cards", json={"owner_id": owner_id, "kind": kind, "attributes": values}
    )
    assert response.status_code == 201
    return str(response.json()["id"])


async def create_battle(client: AsyncClient, challenger: str = "alice", opponent: str = "bob"):
    response = await client.post(
        "/battles", json={"challenger_id": challenger, "opponent_id": opponent}
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
async def ready_battle(client: AsyncClient) -> dict[str, str]:
    """A battle where alice's Marine (str 25) faces bob's Ranger (dex 30)."""
    alice_card = await create_card(client, "alice", "space_marine", strength=25)
    bob_card = await create_card(client, "bob", "galactic_ranger", dexterity=30)
    battle_id = await create_battle(client)
    for player_id, card_id in (("alice", alice_card), ("bob", bob_card)):
        response = await client.post(
            f"/battles/{battle_id}/selections",
            json={"player_id": player_id, "card_id": card_id},
        )
        assert response.status_code == 200
    return {"battle_id": battle_id, "alice_card": alice_card, "bob_card": bob_card}


class TestCreateBattle:
    async def test_create_battle(self, client: AsyncClient) -> None:
        response = await client.post(
            "/battles", json={"challenger_id": "alice", "opponent_id": "bob"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["result"] is None
        assert data["selections"] == []

    async def test_self_battle_rejected(self, client: AsyncClient) -> None:
        response = await client.post(
            "/battles", json={"challenger_id": "alice", "opponent_id": "alice"}
        )

        assert response.status_code == 400

    async def test_missing_opponent(self, client: AsyncClient) -> None:
        response = await client.post("/battles", json={"challenger_id": "alice"})

        assert response.status_code == 422


class TestGetBattle:
    async def test_first_read_starts_selection(self, client: AsyncClient) -> None:
        battle_id = await create_battle(client)

        response = await client.get(f"/battles/{battle_id}")

        assert response.status_code == 200
        assert response.json()["status"] == "selecting"

    async def test_not_found(self, client: AsyncClient) -> None:
        response = await client.get("/battles/nonexistent")

        assert response.status_code == 404

    async def test_selection_hidden_until_resolved(self, client: AsyncClient) -> None:
        card_id = await create_card(client, "alice", "space_marine")
        battle_id = await create_battle(client)
        await client.post(
            f"/battles/{battle_id}/selections",
            json={"player_id": "alice", "card_id": card_id},
        )

        response = await client.get(f"/battles/{battle_id}")

        selections = response.json()["selections"]
        assert len(selections) == 1
        assert selections[0]["player_id"] == "alice"
        assert selections[0]["is_hidden"] is True
        assert selections[0]["card_id"] is None

    async def test_player_battles(self, client: AsyncClient) -> None:
        await create_battle(client, "alice", "bob")
        await create_battle(client, "carol", "alice")

        response = await client.get("/players/alice/battles")

        assert response.status_code == 200
        assert response.json()["count"] == 2


class TestSelectCard:
    async def test_second_selection_reveals(self, client: AsyncClient, ready_battle) -> None:
        response = await client.get(f"/battles/{ready_battle['battle_id']}")

        assert response.json()["status"] == "cards_revealed"

    async def test_resubmit_same_card(self, client: AsyncClient, ready_battle) -> None:
        response = await client.post(
            f"/battles/{ready_battle['battle_id']}/selections",
            json={"player_id": "alice", "card_id": ready_battle["alice_card"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is True
        assert data["recorded"] is False
        assert data["both_selected"] is True

    async def test_different_card_conflicts(self, client: AsyncClient, ready_battle) -> None:
        other = await create_card(client, "alice", "void_sorcerer")

        response = await client.post(
            f"/battles/{ready_battle['battle_id']}/selections",
            json={"player_id": "alice", "card_id": other},
        )

        assert response.status_code == 409
        assert "already selected" in response.json()["detail"]

    async def test_not_participant(self, client: AsyncClient) -> None:
        card_id = await create_card(client, "carol", "space_marine")
        battle_id = await create_battle(client)

        response = await client.post(
            f"/battles/{battle_id}/selections",
            json={"player_id": "carol", "card_id": card_id},
        )

        assert response.status_code == 403

    async def test_invalid_card(self, client: AsyncClient) -> None:
        battle_id = await create_battle(client)

        response = await client.post(
            f"/battles/{battle_id}/selections",
            json={"player_id": "alice", "card_id": "no-such-card"},
        )

        assert response.status_code == 422


class TestResolveBattle:
    async def test_resolve(self, client: AsyncClient, ready_battle, broadcaster) -> None:
        """Space Marine beats Galactic Ranger; alice takes bob's card."""
        battle_id = ready_battle["battle_id"]

        response = await client.post(f"/battles/{battle_id}/resolve")

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "victory"
        assert data["reason"] == "type_advantage"
        assert data["winner_id"] == "alice"
        assert data["loser_id"] == "bob"
        assert data["transferred_card_id"] == ready_battle["bob_card"]
        assert data["already_resolved"] is False
        assert BATTLE_RESOLVED in broadcaster.names()

        card = await client.get(f"/cards/{ready_battle['bob_card']}")
        assert card.json()["owner_id"] == "alice"

    async def test_resolve_twice(self, client: AsyncClient, ready_battle) -> None:
        battle_id = ready_battle["battle_id"]

        first = await client.post(f"/battles/{battle_id}/resolve")
        second = await client.post(f"/battles/{battle_id}/resolve")

        assert second.status_code == 200
        assert second.json()["already_resolved"] is True
        assert second.json()["winner_id"] == first.json()["winner_id"]
        transfers = await client.get(f"/battles/{battle_id}/transfers")
        assert len(transfers.json()["transfers"]) == 1

    async def test_completed_battle_view(self, client: AsyncClient, ready_battle) -> None:
        battle_id = ready_battle["battle_id"]
        await client.post(f"/battles/{battle_id}/resolve")

        response = await client.get(f"/battles/{battle_id}")

        data = response.json()
        assert data["status"] == "completed"
        assert data["winner_card_id"] == ready_battle["alice_card"]
        assert data["result"]["challenger_total"] == 45
        assert data["result"]["opponent_total"] == 50
        assert {s["card_id"] for s in data["selections"]} == {
            ready_battle["alice_card"],
            ready_battle["bob_card"],
        }
        assert all(s["is_hidden"] is False for s in data["selections"])

    async def test_cards_hidden_before_resolution(self, client: AsyncClient, ready_battle) -> None:
        response = await client.get(f"/battles/{ready_battle['battle_id']}")

        data = response.json()
        assert data["status"] == "cards_revealed"
        assert len(data["selections"]) == 2
        assert all(s["is_hidden"] is True for s in data["selections"])
        assert all(s["card_id"] is None for s in data["selections"])

    async def test_resolve_not_ready(self, client: AsyncClient) -> None:
        battle_id = await create_battle(client)

        response = await client.post(f"/battles/{battle_id}/resolve")

        assert response.status_code == 409

    async def test_resolve_not_found(self, client: AsyncClient) -> None:
        response = await client.post("/battles/nonexistent/resolve")

        assert response.status_code == 404

    async def test_transfers_not_found(self, client: AsyncClient) -> None:
        response = await client.get("/battles/nonexistent/transfers")

        assert response.status_code == 404


class TestSweep:
    async def test_sweep_resolves_ready_battles(self, client: AsyncClient, ready_battle) -> None:
        response = await client.post("/battles/sweep")

        assert response.status_code == 200
        assert response.json()["resolved"] == [ready_battle["battle_id"]]

        again = await client.post("/battles/sweep")
        assert again.json()["total"] == 0
