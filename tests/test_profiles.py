from bluecollar.models.models import Role

from conftest import register


def test_create_profile_twice_rejected(client):
    data = register(client, Role.CLIENT)
    response = client.post("/profiles/client", json={"name": "Again"}, headers=data["headers"])
    assert response.status_code == 400


def test_profile_role_must_match(client):
    data = register(client, Role.CLIENT)
    response = client.post("/profiles/provider", json={"name": "Not a provider"}, headers=data["headers"])
    assert response.status_code == 400


def test_update_client_profile(client, client_user):
    response = client.put("/profiles/me", json={"age": 40}, headers=client_user["headers"])
    assert response.status_code == 200
    assert response.json()["age"] == 40
    assert response.json()["name"] == "Asha Client"


def test_update_profile_validates_against_role_schema(client, client_user):
    response = client.put("/profiles/me", json={"age": -5}, headers=client_user["headers"])
    assert response.status_code == 422


def test_provider_listing_filters(client, provider):
    other = register(client, Role.PROVIDER, name="Pipe Pros", skills=["plumber"], rate=900)

    by_skill = client.get("/profiles/providers", params={"skill": "Electric"}).json()
    assert [p["id"] for p in by_skill] == [provider["profile_id"]]

    verified = client.get("/profiles/providers", params={"verified": True}).json()
    assert {p["id"] for p in verified} == {provider["profile_id"]}

    pricey = client.get("/profiles/providers", params={"min_rate": 500}).json()
    assert [p["id"] for p in pricey] == [other["profile_id"]]
    assert pricey[0]["average_rating"] is None
    assert pricey[0]["review_count"] == 0


def test_availability_toggle_hides_provider(client, provider):
    response = client.patch("/profiles/provider/availability", json={"is_active": False}, headers=provider["headers"])
    assert response.status_code == 200
    assert client.get("/profiles/provider/availability", headers=provider["headers"]).json() == {"is_active": False}

    listed = client.get("/profiles/providers").json()
    assert provider["profile_id"] not in [p["id"] for p in listed]


def test_resubmit_after_rejection(client, admin):
    data = register(client, Role.PROVIDER, name="Rejected Co")
    early = client.post("/profiles/provider/resubmit", json={}, headers=data["headers"])
    assert early.status_code == 400

    rejected = client.patch(
        f"/admin/providers/{data['profile_id']}/verify",
        json={"approved": False, "reason": "Blurry ID"},
        headers=admin["headers"],
    )
    assert rejected.json()["verification_status"] == "REJECTED"
    assert rejected.json()["rejection_reason"] == "Blurry ID"

    response = client.post("/profiles/provider/resubmit", json={"gov_id_url": "https://files.example.com/id2.png"}, headers=data["headers"])
    assert response.status_code == 200
    body = response.json()
    assert body["verification_status"] == "RESUBMITTED"
    assert body["rejection_reason"] is None
    assert body["gov_id_url"] == "https://files.example.com/id2.png"
