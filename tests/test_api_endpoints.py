"""Tests for the HTTP API."""

import asyncio
import zipfile
from io import BytesIO

from fastapi.testclient import TestClient

from boothos.api.app import create_app
from tests.conftest import make_image, open_image

STAFF = {"X-Staff-Token": "staff-token"}
GUEST = "guest@example.com"


def _upload(client: TestClient, event_id: str, count: int = 1, **form: str) -> dict:
    files = [
        ("photos", (f"shot-{n}.png", make_image((200, 150)), "image/png"))
        for n in range(count)
    ]
    response = client.post(
        f"/events/{event_id}/photos",
        data={"email": GUEST, **form},
        files=files,
        headers=STAFF,
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_health(container) -> None:
    client = TestClient(create_app(container))

    assert client.get("/health").json() == {"status": "ok"}


def test_staff_routes_require_token(container) -> None:
    client = TestClient(create_app(container))

    assert client.get("/events/evt-pro/usage").status_code == 401
    wrong = client.get("/events/evt-pro/usage", headers={"X-Staff-Token": "nope"})
    assert wrong.status_code == 401
    ok = client.get("/events/evt-pro/usage", headers=STAFF)
    assert ok.status_code == 200
    assert ok.json()["usage"]["photoCap"] == 300
    assert ok.json()["requiresPayment"] is False


def test_domain_errors_use_error_payload(container) -> None:
    client = TestClient(create_app(container))

    missing = client.get("/events/evt-missing/usage", headers=STAFF)
    forbidden = client.post(
        "/events/evt-free/photos",
        data={"email": GUEST, "remove_background": "true"},
        files=[("photos", ("a.png", make_image(), "image/png"))],
        headers=STAFF,
    )

    assert missing.status_code == 404
    assert missing.json() == {"error": "Event not found"}
    assert forbidden.status_code == 403
    assert "error" in forbidden.json()


def test_upload_and_deliver_attachments(container, mailer) -> None:
    client = TestClient(create_app(container))

    batch = _upload(client, "evt-pro", 2, filter_id="warm")
    photo_id = batch["results"][0]["id"]
    response = client.post(
        "/events/evt-pro/deliver",
        json={
            "email": GUEST,
            "selections": [
                {
                    "photoId": photo_id,
                    "backgroundId": "bg-beach",
                    "transform": {"scale": 0.5, "offsetX": 10, "offsetY": -5},
                    "matchBackground": True,
                }
            ],
        },
        headers=STAFF,
    )

    assert batch["uploaded"] == 2
    assert batch["usage"]["photoUsed"] == 2
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["stage"] == "CLEANED_UP"
    assert body["cleanedUp"] == 1
    assert len(mailer.sent[0].attachments) == 1


def test_all_failed_upload_reports_failures(container, bg_client) -> None:
    bg_client.fail_filenames = {"shot-0.png"}
    client = TestClient(create_app(container))

    response = client.post(
        "/events/evt-pro/photos",
        data={"email": GUEST},
        files=[("photos", ("shot-0.png", make_image(), "image/png"))],
        headers=STAFF,
    )

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "All uploads failed"
    assert body["failures"][0]["stage"] == "REMOVING_BACKGROUND"


def test_link_download_zip_and_expiry(container) -> None:
    client = TestClient(create_app(container))
    batch = _upload(client, "evt-pro", 2)
    selections = [{"photoId": item["id"]} for item in batch["results"]]
    delivered = client.post(
        "/events/evt-pro/deliver",
        json={"email": GUEST, "selections": selections, "channel": "link"},
        headers=STAFF,
    ).json()
    path = delivered["downloadUrl"].removeprefix("http://testserver")

    response = client.get(path)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert "attachment;" in response.headers["content-disposition"]
    assert len(zipfile.ZipFile(BytesIO(response.content)).namelist()) == 2
    productions = container.pipeline.productions
    production = productions.get_production(delivered["productionId"])
    assert production.download_count == 1

    later = production.token_expires_at
    container.pipeline.clock = lambda: later.replace(year=later.year + 1)
    expired = client.get(path)
    assert expired.status_code == 410
    assert expired.json() == {"error": "Download link expired."}
    assert client.get("/productions/unknown/download").status_code == 404


def test_resend_and_purge(container, mailer) -> None:
    client = TestClient(create_app(container))
    batch = _upload(client, "evt-pro")
    delivered = client.post(
        "/events/evt-pro/deliver",
        json={
            "email": GUEST,
            "selections": [{"photoId": batch["results"][0]["id"]}],
            "channel": "link",
        },
        headers=STAFF,
    ).json()

    resent = client.post(
        f"/events/evt-pro/productions/{delivered['productionId']}/resend",
        json={},
        headers=STAFF,
    )
    purged = client.delete("/events/evt-pro/productions/expired", headers=STAFF)

    assert resent.json() == {"status": "ok", "delivered": True, "mode": "smtp"}
    assert len(mailer.sent) == 2
    assert purged.json() == {"purged": 0}


def test_guest_selection_flow(container) -> None:
    client = TestClient(create_app(container))
    batch = _upload(client, "evt-pro", 2)
    started = client.post(
        "/events/evt-pro/selections", json={"email": GUEST}, headers=STAFF
    ).json()
    path = started["shareUrl"].removeprefix("http://testserver")

    page = client.get(path)
    submitted = client.post(
        path, json={"selections": [{"photoId": batch["results"][1]["id"]}]}
    )
    reused = client.get(path)

    assert page.status_code == 200
    assert len(page.json()["photos"]) == 2
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "ok"
    assert reused.status_code == 404
    assert reused.json() == {"error": "Invalid or expired link."}


def test_background_routes(container) -> None:
    client = TestClient(create_app(container))

    created = client.post(
        "/events/evt-pro/backgrounds",
        data={"name": "Confetti"},
        files={"file": ("confetti.png", make_image((64, 64)), "image/png")},
        headers=STAFF,
    )
    listed = client.get("/events/evt-pro/backgrounds", headers=STAFF)
    generated = client.post(
        "/events/evt-pro/backgrounds/generate",
        json={"prompt": "aurora sky"},
        headers=STAFF,
    )
    protected = client.delete("/events/evt-pro/backgrounds/bg-beach", headers=STAFF)
    background_id = created.json()["background"]["id"]
    removed = client.delete(
        f"/events/evt-pro/backgrounds/{background_id}", headers=STAFF
    )

    assert created.status_code == 200
    assert {item["id"] for item in listed.json()["backgrounds"]} == {
        "bg-beach",
        background_id,
    }
    assert generated.json()["usage"]["aiUsed"] == 1
    assert generated.json()["background"]["origin"] == "ai"
    assert protected.status_code == 403
    assert removed.json() == {"status": "ok"}


def test_checkins_and_notifications(container) -> None:
    client = TestClient(create_app(container))

    client.post(
        "/events/evt-pro/checkins",
        json={"name": "Ana", "email": GUEST},
        headers=STAFF,
    )
    queued = client.get("/events/evt-pro/checkins", headers=STAFF).json()
    _upload(client, "evt-pro")
    after = client.get("/events/evt-pro/checkins", headers=STAFF).json()
    notifications = client.get("/events/evt-pro/notifications", headers=STAFF).json()

    assert [item["name"] for item in queued["checkins"]] == ["Ana"]
    assert after["checkins"] == []
    assert notifications["notifications"][0]["count"] == 1


def test_staged_source_requires_signed_token(container) -> None:
    client = TestClient(create_app(container))
    staged = asyncio.run(
        container.staging.stage(b"raw-bytes", "image/jpeg", secret="staging-secret")
    )
    path = staged.url.removeprefix("http://testserver")

    ok = client.get(path)
    bad = client.get(f"/bgremover/source/{staged.name}?token=deadbeef")
    missing = client.get(f"/bgremover/source/{staged.name}")

    assert ok.status_code == 200
    assert ok.content == b"raw-bytes"
    assert ok.headers["content-type"] == "image/jpeg"
    assert ok.headers["cache-control"] == "no-store"
    assert bad.status_code == 401
    assert missing.status_code == 401

    asyncio.run(container.staging.discard(staged))
    assert client.get(path).status_code == 404


def test_overlay_rendering(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/overlays/wedding", params={"width": 320, "height": 240})
    too_big = client.get("/overlays/wedding", params={"width": 5000})

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert open_image(response.content).size == (320, 240)
    assert too_big.status_code == 422
