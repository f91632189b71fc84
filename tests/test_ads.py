import asyncio
import io
import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from starlette.datastructures import Headers, UploadFile

from cityguard_api.app.core.config import settings
from cityguard_api.app.core.db import session_scope
from cityguard_api.app.core.storage import LocalImageStorage, set_storage
from cityguard_api.app.models import Ad
from cityguard_api.app.services.ad_service import AdService

from .conftest import API

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class BrokenUploadStorage(LocalImageStorage):
    """Deletes like the local backend but every upload fails."""

    def save(self, upload, folder):
        raise OSError("disk full")


def window(start_days=-1, end_days=10):
    now = datetime.utcnow()
    return {
        "startAt": (now + timedelta(days=start_days)).isoformat(),
        "endAt": (now + timedelta(days=end_days)).isoformat(),
    }


def business_ad(business_id, **extra):
    return {"title": "خصم 50%", "targetType": "BUSINESS", "targetId": str(business_id), **window(), **extra}


def external_ad(**extra):
    return {"title": "إعلان خارجي", "targetType": "EXTERNAL", "url": "https://example.com", **window(), **extra}


def create(client, user, data, files=None):
    return client.post(f"{API}/ads/", data=data, files=files, headers=user["headers"])


def approve(client, admin, ad_id):
    resp = client.patch(f"{API}/ads/{ad_id}/status", json={"status": "APPROVED"}, headers=admin["headers"])
    assert resp.status_code == 200
    return resp.json()["data"]


def test_owner_submits_ad_for_review(client, owner, owner_business):
    resp = create(client, owner, business_ad(owner_business), files={"image": ("ad.png", PNG, "image/png")})
    assert resp.status_code == 201
    ad = resp.json()["data"]
    assert ad["status"] == "PENDING_REVIEW"
    assert ad["isActive"] is False
    assert ad["priority"] == 0
    assert ad["bannerType"] == "MAIN_HERO"
    assert ad["imageUrl"]
    assert ad["mobileImageUrl"] is None


def test_end_must_follow_start(client, admin):
    now = datetime.utcnow().isoformat()
    resp = create(client, admin, {**external_ad(), "startAt": now, "endAt": now})
    assert resp.status_code == 400
    assert "endAt" in resp.json()["errors"]


def test_role_rules_on_create(client, admin, owner, regular_user, make_user, make_business, owner_business):
    assert create(client, admin, business_ad(owner_business)).status_code == 403
    assert create(client, owner, external_ad()).status_code == 403
    assert create(client, regular_user, external_ad()).status_code == 403

    other_owner = make_user("OWNER")
    foreign_business = make_business(other_owner["id"], name="منافس")
    assert create(client, owner, business_ad(foreign_business)).status_code == 403

    assert create(client, admin, external_ad()).status_code == 201


def test_public_ads_only_show_approved_running_ads(client, admin):
    pending = create(client, admin, external_ad(title="قيد المراجعة")).json()["data"]
    running = create(client, admin, external_ad(title="يعمل")).json()["data"]
    future = create(client, admin, external_ad(title="لاحقاً", **window(2, 5))).json()["data"]
    approve(client, admin, running["id"])
    approve(client, admin, future["id"])

    resp = client.get(f"{API}/ads/public")
    assert resp.status_code == 200
    titles = [ad["title"] for ad in resp.json()["data"]]
    assert titles == ["يعمل"]
    assert pending["id"] not in [ad["id"] for ad in resp.json()["data"]]

    with session_scope() as session:
        impressions = session.execute(select(Ad.impressions).where(Ad.id == running["id"])).scalar_one()
    assert impressions == 1


def test_public_ads_sorted_by_priority(client, admin):
    low = create(client, admin, external_ad(title="منخفض")).json()["data"]
    high = create(client, admin, external_ad(title="مرتفع")).json()["data"]
    for ad_id in (low["id"], high["id"]):
        approve(client, admin, ad_id)
    client.put(f"{API}/ads/{high['id']}", data={"priority": "5"}, headers=admin["headers"])

    titles = [ad["title"] for ad in client.get(f"{API}/ads/public").json()["data"]]
    assert titles == ["مرتفع", "منخفض"]


def test_ads_by_type(client, admin):
    for i in range(6):
        ad = create(client, admin, external_ad(title=f"جانبي {i}", bannerType="SIDEBAR")).json()["data"]
        approve(client, admin, ad["id"])
    resp = client.get(f"{API}/ads/public/sidebar")
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 5
    assert client.get(f"{API}/ads/public/MAIN_HERO").json()["data"] == []
    assert client.get(f"{API}/ads/public/BILLBOARD").status_code == 400


def test_review_workflow(client, admin):
    ad = create(client, admin, external_ad()).json()["data"]
    approved = approve(client, admin, ad["id"])
    assert approved["isActive"] is True

    rejected = client.patch(f"{API}/ads/{ad['id']}/status", json={"status": "REJECTED"}, headers=admin["headers"])
    data = rejected.json()["data"]
    assert data["status"] == "REJECTED"
    assert data["isActive"] is False
    assert data["rejectionReason"] == "لم يتم تحديد السبب"

    again = approve(client, admin, ad["id"])
    assert again["rejectionReason"] is None

    bad = client.patch(f"{API}/ads/{ad['id']}/status", json={"status": "LIVE"}, headers=admin["headers"])
    assert bad.status_code == 400


def test_owner_cannot_change_review_fields(client, owner, admin, owner_business):
    ad = create(client, owner, business_ad(owner_business)).json()["data"]
    resp = client.put(
        f"{API}/ads/{ad['id']}",
        data={"title": "عنوان جديد", "status": "APPROVED", "priority": "9", "isActive": "true"},
        headers=owner["headers"],
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["title"] == "عنوان جديد"
    assert data["status"] == "PENDING_REVIEW"
    assert data["priority"] == 0
    assert data["isActive"] is False


def test_update_rechecks_window(client, admin):
    ad = create(client, admin, external_ad()).json()["data"]
    earlier = (datetime.fromisoformat(ad["startAt"]) - timedelta(days=1)).isoformat()
    resp = client.put(f"{API}/ads/{ad['id']}", data={"endAt": earlier}, headers=admin["headers"])
    assert resp.status_code == 400


def test_replacing_image_updates_slot(client, owner, owner_business):
    ad = create(
        client, owner, business_ad(owner_business), files={"image": ("a.png", PNG, "image/png")}
    ).json()["data"]
    resp = client.put(
        f"{API}/ads/{ad['id']}",
        files={"image": ("b.png", PNG, "image/png")},
        headers=owner["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["imageUrl"] != ad["imageUrl"]


def test_listing_is_scoped_for_owners(client, admin, owner, make_user, make_business, owner_business):
    create(client, owner, business_ad(owner_business, title="إعلاني"))
    other = make_user("OWNER")
    create(client, other, business_ad(make_business(other["id"]), title="إعلان غيري"))
    create(client, admin, external_ad(title="خارجي"))

    mine = client.get(f"{API}/ads/", headers=owner["headers"]).json()["data"]
    assert [ad["title"] for ad in mine["items"]] == ["إعلاني"]

    everything = client.get(f"{API}/ads/?sortBy=title&sortOrder=asc", headers=admin["headers"]).json()["data"]
    assert everything["pagination"]["total"] == 3

    searched = client.get(f"{API}/ads/?search=غيري", headers=admin["headers"]).json()["data"]
    assert [ad["title"] for ad in searched["items"]] == ["إعلان غيري"]

    my_ads = client.get(f"{API}/ads/mine", headers=owner["headers"]).json()["data"]
    assert my_ads["pagination"]["total"] == 1


def test_get_ad_permissions(client, owner, make_user, owner_business):
    ad = create(client, owner, business_ad(owner_business)).json()["data"]
    assert client.get(f"{API}/ads/{ad['id']}", headers=owner["headers"]).status_code == 200
    other = make_user("OWNER")
    assert client.get(f"{API}/ads/{ad['id']}", headers=other["headers"]).status_code == 403
    assert client.get(f"{API}/ads/9999", headers=owner["headers"]).status_code == 404


def test_clicks(client, admin):
    ad = create(client, admin, external_ad()).json()["data"]
    resp = client.post(f"{API}/ads/{ad['id']}/click")
    assert resp.status_code == 200
    assert resp.json()["data"]["clicks"] == 1
    assert client.post(f"{API}/ads/9999/click").status_code == 404


def test_concurrent_clicks_are_not_lost(client, admin):
    ad = create(client, admin, external_ad()).json()["data"]
    n = 20

    def click(_):
        return asyncio.run(AdService.increment_clicks(ad["id"]))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(click, range(n)))

    with session_scope() as session:
        assert session.execute(select(Ad.clicks).where(Ad.id == ad["id"])).scalar_one() == n


def test_delete_ad(client, owner, make_user, owner_business):
    ad = create(client, owner, business_ad(owner_business)).json()["data"]
    other = make_user("OWNER")
    assert client.delete(f"{API}/ads/{ad['id']}", headers=other["headers"]).status_code == 403
    assert client.delete(f"{API}/ads/{ad['id']}", headers=owner["headers"]).status_code == 200
    assert client.get(f"{API}/ads/{ad['id']}", headers=owner["headers"]).status_code == 404


def test_dates_outside_datetime_range_are_rejected(client, admin):
    resp = create(client, admin, {**external_ad(), "startAt": "0001-01-01T00:00:00+01:00"})
    assert resp.status_code == 400
    assert "startAt" in resp.json()["errors"]

    ad = create(client, admin, external_ad()).json()["data"]
    update = client.put(
        f"{API}/ads/{ad['id']}",
        data={"endAt": "9999-12-31T23:00:00-05:00"},
        headers=admin["headers"],
    )
    assert update.status_code == 400
    assert "endAt" in update.json()["errors"]


def test_concurrent_impressions_are_not_lost(client, admin):
    ad = create(client, admin, external_ad()).json()["data"]
    approve(client, admin, ad["id"])
    n = 20

    def view(_):
        return asyncio.run(AdService.public_ads())

    with ThreadPoolExecutor(max_workers=8) as pool:
        served = list(pool.map(view, range(n)))

    assert all([a.id for a in ads] == [ad["id"]] for ads in served)
    with session_scope() as session:
        assert session.execute(select(Ad.impressions).where(Ad.id == ad["id"])).scalar_one() == n


def test_failed_replacement_leaves_slot_empty(client, owner, owner_business):
    ad = create(
        client, owner, business_ad(owner_business), files={"image": ("a.png", PNG, "image/png")}
    ).json()["data"]
    with session_scope() as session:
        old_id = session.get(Ad, ad["id"]).image_public_id
    old_path = os.path.join(settings.media_root, old_id)
    assert os.path.exists(old_path)

    set_storage(BrokenUploadStorage(settings.media_root, settings.media_url))
    upload = UploadFile(
        file=io.BytesIO(PNG),
        filename="b.png",
        headers=Headers({"content-type": "image/png"}),
    )
    principal = {"user_id": owner["id"], "role": "OWNER"}
    with pytest.raises(OSError):
        asyncio.run(AdService.update_ad(ad["id"], principal, {}, {"image": upload}))

    assert not os.path.exists(old_path)
    with session_scope() as session:
        stored = session.get(Ad, ad["id"])
        assert stored.image_url is None
        assert stored.image_public_id is None
