from datetime import datetime, timedelta

from sqlalchemy import update

from cityguard_api.app.core.db import session_scope
from cityguard_api.app.models import BloodRequest

from .conftest import API


def request_body(**extra):
    return {
        "bloodType": "A+",
        "units": 2,
        "city": "الرياض",
        "hospital": "مستشفى الملك فهد",
        "contactPhone": "0500000001",
        **extra,
    }


def post(client, user=None, **extra):
    headers = user["headers"] if user else None
    return client.post(f"{API}/blood-requests/", json=request_body(**extra), headers=headers)


def expire(request_id):
    with session_scope() as session:
        session.execute(
            update(BloodRequest)
            .where(BloodRequest.id == request_id)
            .values(expires_at=datetime.utcnow() - timedelta(hours=1))
        )


def test_anonymous_request(client):
    resp = post(client, bloodType="ab-")
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["requesterId"] is None
    assert data["bloodType"] == "AB-"
    assert data["status"] == "open"
    assert data["urgency"] == "normal"


def test_authenticated_request_records_requester(client, regular_user):
    data = post(client, regular_user).json()["data"]
    assert data["requesterId"] == regular_user["id"]

    mine = client.get(f"{API}/blood-requests/mine", headers=regular_user["headers"]).json()["data"]
    assert [r["id"] for r in mine["items"]] == [data["id"]]


def test_request_validation(client):
    assert post(client, units=0).status_code == 400
    assert post(client, units=11).status_code == 400
    assert post(client, urgency="whenever").status_code == 400
    resp = post(client, bloodType="Z")
    assert resp.status_code == 400
    assert "bloodType" in resp.json()["errors"]


def test_listing_hides_expired_and_closed(client, admin):
    open_request = post(client).json()["data"]
    expired = post(client).json()["data"]
    fulfilled = post(client).json()["data"]
    expire(expired["id"])
    client.put(f"{API}/blood-requests/{fulfilled['id']}/status", json={"status": "fulfilled"}, headers=admin["headers"])

    listed = client.get(f"{API}/blood-requests/").json()["data"]
    assert [r["id"] for r in listed["items"]] == [open_request["id"]]

    everything = client.get(f"{API}/blood-requests/", params={"status": "all"}).json()["data"]
    assert {r["id"] for r in everything["items"]} == {open_request["id"], fulfilled["id"]}

    assert client.get(f"{API}/blood-requests/", params={"status": "lost"}).status_code == 400


def test_listing_filters(client):
    post(client, bloodType="O-", city="جدة", hospital="مستشفى الحرس")
    post(client, bloodType="A+", urgency="critical")

    by_type = client.get(f"{API}/blood-requests/", params={"bloodType": "o-"}).json()["data"]
    assert [r["city"] for r in by_type["items"]] == ["جدة"]

    by_urgency = client.get(f"{API}/blood-requests/", params={"urgency": "critical"}).json()["data"]
    assert by_urgency["pagination"]["total"] == 1

    searched = client.get(f"{API}/blood-requests/", params={"search": "الحرس"}).json()["data"]
    assert searched["pagination"]["total"] == 1


def test_search_orders_by_urgency(client):
    post(client, urgency="low")
    post(client, urgency="critical")
    post(client, urgency="high")
    post(client, urgency="normal")

    resp = client.get(f"{API}/blood-requests/search", params={"bloodType": "A+"})
    assert resp.status_code == 200
    assert [r["urgency"] for r in resp.json()["data"]] == ["critical", "high", "normal", "low"]


def test_update_permissions(client, regular_user, make_user, admin):
    request = post(client, regular_user).json()["data"]
    stranger = make_user()
    denied = client.put(f"{API}/blood-requests/{request['id']}", json={"units": 3}, headers=stranger["headers"])
    assert denied.status_code == 403

    resp = client.put(
        f"{API}/blood-requests/{request['id']}",
        json={"units": 3, "status": "fulfilled"},
        headers=regular_user["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["units"] == 3
    assert resp.json()["data"]["status"] == "open"

    by_admin = client.put(
        f"{API}/blood-requests/{request['id']}",
        json={"status": "cancelled"},
        headers=admin["headers"],
    )
    assert by_admin.json()["data"]["status"] == "cancelled"


def test_anonymous_requests_are_admin_only(client, regular_user, admin):
    request = post(client).json()["data"]
    assert client.delete(f"{API}/blood-requests/{request['id']}", headers=regular_user["headers"]).status_code == 403
    assert client.delete(f"{API}/blood-requests/{request['id']}", headers=admin["headers"]).status_code == 200
    assert client.get(f"{API}/blood-requests/{request['id']}").status_code == 404


def test_status_endpoint(client, admin, regular_user):
    request = post(client).json()["data"]
    url = f"{API}/blood-requests/{request['id']}/status"
    assert client.put(url, json={"status": "fulfilled"}, headers=regular_user["headers"]).status_code == 403
    assert client.put(url, json={"status": "done"}, headers=admin["headers"]).status_code == 400
    resp = client.put(url, json={"status": "fulfilled"}, headers=admin["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "fulfilled"


def test_match_donors(client, make_user):
    def donor(city, blood_type="A+", alerts=True, name="متبرع"):
        user = make_user(name=name)
        client.post(
            f"{API}/blood-donors/register",
            json={"bloodType": blood_type, "city": city, "phone": "0555", "receiveAlerts": alerts},
            headers=user["headers"],
        )

    donor("الرياض", name="مطابق")
    donor("الرياض", alerts=False, name="بدون تنبيهات")
    donor("الرياض", blood_type="B+", name="فصيلة أخرى")
    donor("الرياض الجديدة", name="مدينة أخرى")
    request = post(client, city="الرياض").json()["data"]

    resp = client.get(f"{API}/blood-requests/{request['id']}/match-donors")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["request"]["id"] == request["id"]
    assert [d["user"]["name"] for d in data["donors"]] == ["مطابق"]
    assert data["stats"] == {"totalMatched": 1, "byCity": {"الرياض": 1}}

    assert client.get(f"{API}/blood-requests/9999/match-donors").status_code == 404


def test_statistics(client, admin):
    post(client, bloodType="O+", urgency="critical")
    post(client, bloodType="O+")
    done = post(client, bloodType="B+", city="جدة").json()["data"]
    post(client, bloodType="A+")
    client.put(f"{API}/blood-requests/{done['id']}/status", json={"status": "fulfilled"}, headers=admin["headers"])

    stats = client.get(f"{API}/blood-requests/statistics").json()["data"]
    assert stats["totalRequests"] == 4
    assert stats["openRequests"] == 3
    assert stats["fulfilledRequests"] == 1
    assert stats["urgentRequests"] == 1
    assert stats["fulfillmentRate"] == 25
    assert stats["requestsByBloodType"][0] == {"bloodType": "O+", "count": 2}
    assert stats["requestsByCity"] == [{"city": "الرياض", "count": 3}]


def test_expiry_is_normalised_to_utc(client):
    data = post(client, expiresAt="2099-06-01T12:00:00+02:00").json()["data"]
    assert data["expiresAt"] == "2099-06-01T10:00:00"

    resp = post(client, expiresAt="9999-12-31T23:00:00-05:00")
    assert resp.status_code == 400
    assert "expiresAt" in resp.json()["errors"]
