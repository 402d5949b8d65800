from datetime import date
from decimal import Decimal

from hoarding_rental.models import RentRecord
from hoarding_rental.models.base import IncrementType, PaymentFrequency
from tests.conftest import DESIGNER, FITTER, MANAGER, OTHER_DESIGNER, OWNER, SALES, headers

API = "/api/v1"


def create_token(client, hoarding_id, actor=SALES, client_id="client-1"):
    response = client.post(
        f"{API}/booking-tokens",
        json={"hoarding_id": hoarding_id, "client_id": client_id},
        headers=headers(actor),
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_identity_headers_are_required(client, hoardings):
    response = client.post(f"{API}/booking-tokens", json={"hoarding_id": hoardings["H-1"].id, "client_id": "c"})

    assert response.status_code == 401


def test_unknown_role_is_rejected(client, hoardings):
    response = client.get(f"{API}/booking-tokens/mine", headers={"X-User-Id": "u-1", "X-User-Role": "intern"})

    assert response.status_code == 401


def test_create_and_read_back(client, hoardings):
    token = create_token(client, hoardings["H-1"].id)

    assert token["status"] == "ACTIVE"
    assert token["effective_status"] == "ACTIVE"
    assert token["queue_position"] == 1

    fetched = client.get(f"{API}/booking-tokens/{token['id']}", headers=headers(SALES)).json()
    assert fetched["success"] is True
    assert fetched["data"]["id"] == token["id"]

    mine = client.get(f"{API}/booking-tokens/mine", headers=headers(SALES)).json()["data"]
    assert [t["id"] for t in mine] == [token["id"]]

    queue = client.get(f"{API}/hoardings/{hoardings['H-1'].id}/tokens", headers=headers(OWNER)).json()["data"]
    assert [t["id"] for t in queue] == [token["id"]]


def test_create_rejects_bad_window(client, hoardings):
    response = client.post(
        f"{API}/booking-tokens",
        json={
            "hoarding_id": hoardings["H-1"].id,
            "client_id": "client-1",
            "date_from": "2024-05-01",
            "date_to": "2024-04-01",
        },
        headers=headers(SALES),
    )

    assert response.status_code == 422


def test_create_on_live_hoarding_is_conflict(client, hoardings):
    response = client.post(
        f"{API}/booking-tokens",
        json={"hoarding_id": hoardings["H-LIVE"].id, "client_id": "client-1"},
        headers=headers(SALES),
    )

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "HOARDING_UNAVAILABLE"
    assert body["retryable"] is False


def test_lost_confirm_race_is_explained_to_the_owner(client, hoardings):
    first = create_token(client, hoardings["H-1"].id)
    second = create_token(client, hoardings["H-1"].id, client_id="client-2")

    won = client.post(f"{API}/booking-tokens/{first['id']}/confirm", headers=headers(MANAGER))
    assert won.status_code == 200
    assert won.json()["data"]["status"] == "CONFIRMED"

    lost = client.post(f"{API}/booking-tokens/{second['id']}/confirm", json={}, headers=headers(OWNER))
    assert lost.status_code == 409
    body = lost.json()
    assert body["code"] == "ALREADY_UNDER_PROCESS"
    assert body["message"] == "By the time you confirm the token, it was already confirmed by the manager"
    assert body["conflict"]["winner_role"] == "manager"
    assert body["conflict"]["winner_token_id"] == first["id"]

    status = client.get(f"{API}/hoardings/{hoardings['H-1'].id}/status", headers=headers(OWNER)).json()["data"]
    assert status["status"] == "under_process"
    assert status["locked_by_token_id"] == first["id"]


def test_stale_version_is_conflict(client, hoardings):
    token = create_token(client, hoardings["H-1"].id)

    response = client.post(
        f"{API}/booking-tokens/{token['id']}/cancel",
        json={"reason": "duplicate", "expected_version": token["version"] + 1},
        headers=headers(OWNER),
    )

    assert response.status_code == 409
    assert response.json()["code"] == "STALE_VERSION"


def test_cancel_and_release(client, hoardings):
    first = create_token(client, hoardings["H-1"].id)
    second = create_token(client, hoardings["H-2"].id)

    cancelled = client.post(f"{API}/booking-tokens/{first['id']}/cancel", json={"reason": "duplicate"},
                            headers=headers(OWNER))
    released = client.post(f"{API}/booking-tokens/{second['id']}/release", headers=headers(SALES))

    assert cancelled.json()["data"]["cancel_reason"] == "duplicate"
    assert released.json()["data"]["cancel_reason"] == "released"


def test_wrong_designer_is_forbidden(client, hoardings):
    token = create_token(client, hoardings["H-1"].id)
    client.post(f"{API}/booking-tokens/{token['id']}/confirm", headers=headers(MANAGER))

    response = client.post(
        f"{API}/booking-tokens/{token['id']}/design-status",
        json={"status": "IN_PROGRESS"},
        headers=headers(OTHER_DESIGNER),
    )

    assert response.status_code == 403
    assert response.json()["message"] == "Only the assigned designer can update design status."


def test_full_flow_to_booked(client, hoardings):
    token_id = create_token(client, hoardings["H-1"].id)["id"]
    base = f"{API}/booking-tokens/{token_id}"

    assert client.post(f"{base}/confirm", headers=headers(MANAGER)).status_code == 200
    assert client.post(f"{base}/finalize", headers=headers(OWNER)).status_code == 409

    for status in ("IN_PROGRESS", "COMPLETED"):
        response = client.post(f"{base}/design-status", json={"status": status}, headers=headers(DESIGNER))
        assert response.status_code == 200, response.text

    assert client.post(f"{base}/assign-fitter", headers=headers(MANAGER)).status_code == 200
    again = client.post(f"{base}/assign-fitter", json={}, headers=headers(OWNER))
    assert again.status_code == 409
    assert again.json()["message"] == "This hoarding has already been assigned by the manager."

    assert client.post(f"{base}/fitter-status", json={"status": "IN_PROGRESS"},
                       headers=headers(FITTER)).status_code == 200

    no_proof = client.post(f"{base}/fitter-status", json={"status": "FITTED", "proof_refs": [" "]},
                           headers=headers(FITTER))
    assert no_proof.status_code == 422
    assert no_proof.json()["code"] == "PROOF_REQUIRED"
    assert no_proof.json()["message"] == "Please upload at least 1 proof image."

    fitted = client.post(f"{base}/fitter-status", json={"status": "FITTED", "proof_refs": ["proofs/a.jpg"]},
                         headers=headers(FITTER))
    assert fitted.status_code == 200
    assert fitted.json()["data"]["installation_proof_refs"] == ["proofs/a.jpg"]

    booked = client.post(f"{base}/finalize", headers=headers(SALES))
    assert booked.status_code == 200

    status = client.get(f"{API}/hoardings/{hoardings['H-1'].id}/status", headers=headers(SALES)).json()["data"]
    assert status["status"] == "booked"


def test_extension_endpoints(client, hoardings):
    token = create_token(client, hoardings["H-1"].id)
    base = f"{API}/booking-tokens/{token['id']}/extension"

    requested = client.post(base, json={"hours": 12}, headers=headers(SALES))
    assert requested.status_code == 200
    assert requested.json()["data"]["extension_requested_until"] is not None

    approved = client.post(f"{base}/approve", headers=headers(MANAGER))
    assert approved.status_code == 200
    assert approved.json()["data"]["extension_requested_until"] is None

    nothing_pending = client.post(f"{base}/reject", headers=headers(MANAGER))
    assert nothing_pending.status_code == 409


def test_held_lock_is_retryable(client, lock_manager, hoardings):
    token = create_token(client, hoardings["H-1"].id)
    lock_manager.default_timeout = 0.05

    with lock_manager.acquire(hoardings["H-1"].id):
        response = client.post(f"{API}/booking-tokens/{token['id']}/confirm", headers=headers(MANAGER))

    assert response.status_code == 423
    assert response.json()["retryable"] is True


def test_request_deadline_header(client, lock_manager, hoardings):
    token = create_token(client, hoardings["H-1"].id)

    with lock_manager.acquire(hoardings["H-1"].id):
        response = client.post(
            f"{API}/booking-tokens/{token['id']}/confirm",
            headers=headers(MANAGER, **{"X-Request-Timeout-Ms": "50"}),
        )

    assert response.status_code == 504
    assert response.json()["code"] == "TIMEOUT"


def test_missing_token_is_404(client, hoardings):
    response = client.get(f"{API}/booking-tokens/missing", headers=headers(OWNER))

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"
    assert response.json()["timestamp"] is not None


# ---------------------------------------------------------------------------
# rent
# ---------------------------------------------------------------------------


def test_ad_hoc_rent_preview(client):
    response = client.post(
        f"{API}/rent/preview",
        json={
            "base_rent": "1000",
            "increment_cycle_years": 1,
            "increment_type": "PERCENTAGE",
            "increment_value": "10",
            "rent_start_date": "2020-01-01",
            "reference_date": "2023-06-01",
        },
    )

    data = response.json()["data"]
    assert data["available"] is True
    assert data["cycles_passed"] == 3
    assert Decimal(data["current_rent"]) == Decimal("1331.00")
    assert data["next_increment_date"] == "2024-01-01"
    assert Decimal(data["next_rent"]) == Decimal("1464.10")


def test_ad_hoc_preview_without_start_date_is_unavailable(client):
    response = client.post(f"{API}/rent/preview", json={"base_rent": "1000", "increment_cycle_years": 1})

    assert response.status_code == 200
    assert response.json()["data"]["available"] is False


def test_rent_record_preview(client, db):
    record = RentRecord(
        landlord_name="R. Mehta",
        base_rent=Decimal("1000"),
        increment_cycle_years=1,
        increment_type=IncrementType.AMOUNT,
        increment_value=Decimal("100"),
        rent_start_date=date(2023, 1, 1),
        payment_frequency=PaymentFrequency.MONTHLY,
    )
    db.add(record)
    db.commit()

    response = client.get(f"{API}/rent-records/{record.id}/preview", params={"reference_date": "2024-03-01"})

    data = response.json()["data"]
    assert Decimal(data["current_rent"]) == Decimal("1100.00")
    assert data["next_increment_date"] == "2025-01-01"
    assert data["next_payment_due"] == "2024-04-01"
    assert data["reminder_dates"] == ["2024-03-18"]

    today = client.get(f"{API}/rent-records/{record.id}/preview").json()["data"]
    assert today["reference_date"] == "2024-03-01"

    assert client.get(f"{API}/rent-records/missing/preview").status_code == 404
