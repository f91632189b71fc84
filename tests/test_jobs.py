from datetime import datetime, timedelta

from .conftest import API


def job_body(**extra):
    return {
        "title": "محاسب أول",
        "description": "خبرة ثلاث سنوات في المحاسبة",
        "city": "الرياض",
        "region": "الوسطى",
        "type": "محاسبة",
        "salary": 8000,
        **extra,
    }


def in_days(days):
    return (datetime.utcnow() + timedelta(days=days)).isoformat()


def create(client, user, **extra):
    return client.post(f"{API}/jobs/", json=job_body(**extra), headers=user["headers"])


def test_owner_needs_a_business(client, owner):
    resp = create(client, owner)
    assert resp.status_code == 403


def test_only_owners_publish(client, admin, regular_user):
    assert create(client, admin).status_code == 403
    assert create(client, regular_user).status_code == 403


def test_create_job(client, owner, owner_business):
    resp = create(client, owner, type=None)
    assert resp.status_code == 201
    job = resp.json()["data"]
    assert job["businessId"] == owner_business
    assert job["type"] == "عام"
    assert job["salary"] == "8000"
    assert job["isActive"] is True
    assert job["business"]["name"] == "مطعم الواحة"


def test_validation_reports_every_field(client, owner, owner_business):
    resp = create(client, owner, title="ab", type="طيران", salary=[1], expiresAt="someday")
    assert resp.status_code == 400
    errors = resp.json()["errors"]
    assert set(errors) == {"title", "type", "salary", "expiresAt"}


def test_title_longer_than_column_is_rejected(client, owner, owner_business):
    resp = create(client, owner, title="ا" * 300)
    assert resp.status_code == 400
    assert "title" in resp.json()["errors"]

    job = create(client, owner).json()["data"]
    update = client.put(f"{API}/jobs/{job['id']}", json={"title": "ا" * 201}, headers=owner["headers"])
    assert update.status_code == 400


def test_expiry_outside_datetime_range_is_rejected(client, owner, owner_business):
    resp = create(client, owner, expiresAt="9999-12-31T23:00:00-05:00")
    assert resp.status_code == 400
    assert "expiresAt" in resp.json()["errors"]


def test_expiry_with_offset_is_stored_as_utc(client, owner, owner_business):
    job = create(client, owner, expiresAt="2099-01-01T03:00:00+03:00").json()["data"]
    assert job["expiresAt"] == "2099-01-01T00:00:00"


def test_update_ignores_null_required_fields(client, owner, owner_business):
    job = create(client, owner).json()["data"]
    resp = client.put(
        f"{API}/jobs/{job['id']}",
        json={"title": None, "type": None, "salary": 9500, "expiresAt": None},
        headers=owner["headers"],
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["title"] == "محاسب أول"
    assert data["type"] == "محاسبة"
    assert data["salary"] == "9500"
    assert data["expiresAt"] is None


def test_job_details(client, owner, owner_business):
    job = create(client, owner).json()["data"]
    resp = client.get(f"{API}/jobs/{job['id']}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["contactInfo"]["phone"] == "0111111111"
    assert data["applicationInstructions"]

    assert client.get(f"{API}/jobs/9999").status_code == 404


def test_expired_job_is_gone(client, owner, owner_business):
    job = create(client, owner, expiresAt=in_days(-1)).json()["data"]
    assert client.get(f"{API}/jobs/{job['id']}").status_code == 410


def test_listing_and_expiry_filter(client, owner, owner_business):
    live = create(client, owner, title="مطور بايثون", type="تقنية معلومات").json()["data"]
    expired = create(client, owner, title="مندوب مبيعات", type="مبيعات", city="جدة", expiresAt=in_days(-2)).json()["data"]

    default = client.get(f"{API}/jobs/").json()["data"]
    assert [j["id"] for j in default["items"]] == [live["id"]]
    assert default["filters"]["categories"] == ["تقنية معلومات"]
    assert default["filters"]["cities"] == ["الرياض"]

    only_expired = client.get(f"{API}/jobs/", params={"status": "expired"}).json()["data"]
    assert [j["id"] for j in only_expired["items"]] == [expired["id"]]

    everything = client.get(f"{API}/jobs/", params={"status": "all"}).json()["data"]
    assert everything["pagination"]["total"] == 2

    assert client.get(f"{API}/jobs/", params={"status": "closed"}).status_code == 400

    searched = client.get(f"{API}/jobs/", params={"search": "بايثون"}).json()["data"]
    assert searched["pagination"]["total"] == 1


def test_update_permissions(client, owner, owner_business, make_user, make_business, admin):
    job = create(client, owner).json()["data"]
    rival = make_user("OWNER")
    make_business(rival["id"], name="منافس")

    denied = client.put(f"{API}/jobs/{job['id']}", json={"title": "وظيفة مسروقة"}, headers=rival["headers"])
    assert denied.status_code == 403

    resp = client.put(f"{API}/jobs/{job['id']}", json={"salary": "قابل للتفاوض"}, headers=owner["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["salary"] == "قابل للتفاوض"
    assert resp.json()["data"]["title"] == "محاسب أول"

    by_admin = client.put(f"{API}/jobs/{job['id']}", json={"title": "محاسب رئيسي"}, headers=admin["headers"])
    assert by_admin.json()["data"]["title"] == "محاسب رئيسي"

    bad = client.put(f"{API}/jobs/{job['id']}", json={"type": "غير موجود"}, headers=owner["headers"])
    assert bad.status_code == 400


def test_renew_and_toggle(client, owner, owner_business):
    job = create(client, owner, expiresAt=in_days(-1), isActive=False).json()["data"]

    renewed = client.patch(f"{API}/jobs/{job['id']}/renew", json={"days": 10}, headers=owner["headers"])
    assert renewed.status_code == 200
    data = renewed.json()["data"]
    assert data["isActive"] is True
    expires = datetime.fromisoformat(data["expiresAt"])
    assert timedelta(days=9) < expires - datetime.utcnow() <= timedelta(days=10)

    default = client.patch(f"{API}/jobs/{job['id']}/renew", headers=owner["headers"]).json()["data"]
    assert datetime.fromisoformat(default["expiresAt"]) - datetime.utcnow() > timedelta(days=29)

    too_long = client.patch(f"{API}/jobs/{job['id']}/renew", json={"days": 400}, headers=owner["headers"])
    assert too_long.status_code == 400

    toggled = client.patch(f"{API}/jobs/{job['id']}/toggle-status", headers=owner["headers"])
    assert toggled.json()["data"]["isActive"] is False
    toggled = client.patch(f"{API}/jobs/{job['id']}/toggle-status", headers=owner["headers"])
    assert toggled.json()["data"]["isActive"] is True


def test_delete_job(client, owner, owner_business, regular_user):
    job = create(client, owner).json()["data"]
    assert client.delete(f"{API}/jobs/{job['id']}", headers=regular_user["headers"]).status_code == 403
    assert client.delete(f"{API}/jobs/{job['id']}", headers=owner["headers"]).status_code == 200
    assert client.get(f"{API}/jobs/{job['id']}").status_code == 404


def test_my_jobs(client, owner, owner_business):
    create(client, owner)
    create(client, owner, isActive=False)
    mine = client.get(f"{API}/jobs/mine", headers=owner["headers"]).json()["data"]
    assert mine["pagination"]["total"] == 2
    active = client.get(f"{API}/jobs/mine", params={"isActive": "true"}, headers=owner["headers"]).json()["data"]
    assert active["pagination"]["total"] == 1


def test_quick_search(client, owner, owner_business):
    create(client, owner, title="مصمم جرافيك", type="إعلام")
    assert client.get(f"{API}/jobs/search/quick", params={"q": "م"}).json()["data"] == []
    assert client.get(f"{API}/jobs/search/quick").json()["data"] == []
    found = client.get(f"{API}/jobs/search/quick", params={"q": "جرافيك"}).json()["data"]
    assert [j["title"] for j in found] == ["مصمم جرافيك"]


def test_categories_and_featured(client, owner, owner_business):
    create(client, owner, type="هندسة")
    create(client, owner, type="هندسة")
    create(client, owner, type="طب")
    create(client, owner, type="طب", isActive=False)

    popular = client.get(f"{API}/jobs/popular-categories").json()["data"]
    assert popular == [{"name": "هندسة", "count": 2}, {"name": "طب", "count": 1}]

    by_category = client.get(f"{API}/jobs/category/هندسة").json()["data"]
    assert len(by_category) == 2

    featured = client.get(f"{API}/jobs/featured", params={"limit": 2}).json()["data"]
    assert len(featured) == 2


def test_jobs_in_my_city(client, owner, owner_business, make_user):
    create(client, owner, city="الرياض")
    create(client, owner, city="جدة")

    anonymous = client.get(f"{API}/jobs/mycity").json()
    assert anonymous["data"] == {"city": None, "jobs": [], "count": 0}
    assert anonymous["message"] == "الرجاء تحديد المدينة"

    explicit = client.get(f"{API}/jobs/mycity", params={"city": "جدة"}).json()["data"]
    assert explicit["count"] == 1

    local = make_user(city="الرياض")
    mine = client.get(f"{API}/jobs/mycity", headers=local["headers"]).json()["data"]
    assert mine["city"] == "الرياض"
    assert mine["count"] == 1


def test_new_jobs_notification(client, owner, owner_business, make_user):
    empty = client.get(f"{API}/jobs/notifications/new").json()["data"]
    assert empty["newJobsCount"] == 0
    assert empty["hasNotifications"] is False

    create(client, owner, city="الرياض")
    local = make_user(city="الرياض")
    data = client.get(f"{API}/jobs/notifications/new", headers=local["headers"]).json()["data"]
    assert data["newJobsCount"] == 1
    assert data["userNotifications"] == 1
    assert data["hasNotifications"] is True


def test_statistics(client, owner, owner_business, admin):
    create(client, owner)
    create(client, owner, expiresAt=in_days(-1))
    assert client.get(f"{API}/jobs/statistics", headers=owner["headers"]).status_code == 403
    stats = client.get(f"{API}/jobs/statistics", headers=admin["headers"]).json()["data"]
    assert stats["totalJobs"] == 2
    assert stats["activeJobs"] == 1
    assert stats["expiredJobs"] == 1
    assert stats["activePercentage"] == 50
    assert stats["jobsByType"] == [{"type": "محاسبة", "count": 2}]
