from bluecollar.models.models import Role

from conftest import register


def test_public_listing_only_shows_approved_providers(client, provider):
    pending = register(client, Role.PROVIDER, name="Unvetted")
    created = client.post(
        "/services",
        json={"title": "Tap repair", "price": 200, "category": "plumbing"},
        headers=pending["headers"],
    )
    assert created.status_code == 201

    listed = client.get("/services").json()
    assert [s["id"] for s in listed] == [provider["service"]["id"]]
    assert listed[0]["provider_name"] == "Ravi Electricals"

    mine = client.get("/services/mine", headers=pending["headers"]).json()
    assert [s["title"] for s in mine] == ["Tap repair"]


def test_search_and_category_filters(client, provider):
    client.post(
        "/services",
        json={"title": "Switchboard repair", "description": "Fix sparking boards", "price": 300, "category": "repairs"},
        headers=provider["headers"],
    )
    found = client.get("/services", params={"search": "SPARK"}).json()
    assert [s["title"] for s in found] == ["Switchboard repair"]

    electrical = client.get("/services", params={"category": "electrical"}).json()
    assert [s["title"] for s in electrical] == ["Fan installation"]


def test_nearby_filters_and_sorts_by_distance(client, provider, admin):
    far = register(client, Role.PROVIDER, name="Mumbai Sparks", latitude=19.0760, longitude=72.8777)
    client.patch(f"/admin/providers/{far['profile_id']}/verify", json={"approved": True}, headers=admin["headers"])
    client.post("/services", json={"title": "Inverter setup", "price": 800, "category": "electrical"}, headers=far["headers"])

    near = client.get("/services/nearby", params={"latitude": 12.9352, "longitude": 77.6245}).json()
    assert [s["id"] for s in near] == [provider["service"]["id"]]
    assert 0 < near[0]["distance_km"] < 10

    wide = client.get("/services/nearby", params={"latitude": 12.9352, "longitude": 77.6245, "max_distance": 2000}).json()
    assert [s["title"] for s in wide] == ["Fan installation", "Inverter setup"]
    assert wide[0]["distance_km"] < wide[1]["distance_km"]

    tight = client.get("/services/nearby", params={"latitude": 12.9352, "longitude": 77.6245, "max_distance": 1}).json()
    assert tight == []


def test_nearby_requires_coordinates(client):
    response = client.get("/services/nearby", params={"latitude": 12.9})
    assert response.status_code == 400


def test_provider_cannot_touch_another_providers_service(client, provider):
    other = register(client, Role.PROVIDER, name="Someone Else")
    sid = provider["service"]["id"]
    assert client.put(f"/services/{sid}", json={"price": 1}, headers=other["headers"]).status_code == 404
    assert client.delete(f"/services/{sid}", headers=other["headers"]).status_code == 404


def test_update_toggle_and_delete_own_service(client, provider):
    sid = provider["service"]["id"]
    updated = client.put(f"/services/{sid}", json={"price": 650}, headers=provider["headers"])
    assert updated.status_code == 200
    assert updated.json()["price"] == 650.0

    toggled = client.patch(f"/services/{sid}/toggle-status", headers=provider["headers"])
    assert toggled.json()["is_active"] is False
    assert client.get("/services").json() == []

    assert client.delete(f"/services/{sid}", headers=provider["headers"]).status_code == 204
    assert client.get(f"/services/{sid}").status_code == 404


def test_clients_cannot_create_services(client, client_user):
    response = client.post("/services", json={"title": "x", "price": 10, "category": "misc"}, headers=client_user["headers"])
    assert response.status_code == 403
