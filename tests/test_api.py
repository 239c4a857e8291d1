"""
HTTP tests through the Flask test client.
"""

from io import BytesIO

from conftest import png_bytes
from rentaldesk.services.inspection_service import PHOTO_SLOTS

RATES = {"price_1_3_days": "50", "price_4_7_days": "40", "price_8_plus_days": "30"}


def create_fleet(client, registrations=("AAA111",)):
    group = client.post("/api/v1/pricing-groups", json={"name": "Economy", **RATES}).get_json()
    return [
        client.post(
            "/api/v1/vehicles", json={"registration_number": reg, "pricing_group_id": group["id"]}
        ).get_json()
        for reg in registrations
    ]


def create_booking(client, vehicles, **extra):
    body = {
        "pickup_at": "2025-01-01T09:00:00Z",
        "return_at": "2025-01-05T09:00:00Z",
        "vehicle_ids": [v["id"] for v in vehicles],
        "customer": {"name": "Ana Ruiz", "phone": "600111222"},
        **extra,
    }
    return client.post("/api/v1/bookings", json=body)


def fill_draft(client, booking_id, vehicle_id, inspection_type="delivery"):
    base = f"/api/v1/inspections/bookings/{booking_id}/{inspection_type}/draft/vehicles/{vehicle_id}"
    for slot in PHOTO_SLOTS:
        response = client.post(
            f"{base}/photos/{slot}",
            data={"photo": (BytesIO(png_bytes()), f"{slot}.png")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 201
    return client.patch(base, json={"odometer_reading": 100, "fuel_level": "full"})


def test_health(client):
    assert client.get("/api/v1/health").get_json() == {"status": "ok"}


def test_quote_for_pricing_group(client):
    group = client.post("/api/v1/pricing-groups", json={"name": "Economy", **RATES}).get_json()
    response = client.post(
        "/api/v1/pricing-groups/quote",
        json={"pricing_group_id": group["id"], "pickup_at": "2025-01-01T09:00:00Z", "return_at": "2025-01-05T09:00:00Z"},
    )
    body = response.get_json()
    assert response.status_code == 200
    assert body["days"] == 4
    assert body["total"] == "160.00"


def test_quote_rejects_inverted_window(client):
    vehicles = create_fleet(client)
    response = client.post(
        "/api/v1/pricing-groups/quote",
        json={"vehicle_ids": [vehicles[0]["id"]], "pickup_at": "2025-01-05T09:00:00Z", "return_at": "2025-01-01T09:00:00Z"},
    )
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_create_and_fetch_booking(client):
    vehicles = create_fleet(client, ("AAA111", "BBB222"))
    response = create_booking(client, vehicles)
    body = response.get_json()

    assert response.status_code == 201
    assert body["booking_number"] == "202501010001"
    assert body["total_price"] == "320.00"
    assert body["pricing_warnings"] == []

    fetched = client.get(f"/api/v1/bookings/{body['id']}").get_json()
    assert [v["registration_number"] for v in fetched["vehicles"]] == ["AAA111", "BBB222"]


def test_booking_number_lookup(client):
    vehicles = create_fleet(client)
    booking = create_booking(client, vehicles).get_json()

    found = client.get(f"/api/v1/bookings/numbers/{booking['booking_number']}").get_json()
    assert found["booking_id"] == booking["id"]
    assert found["date"] == "2025-01-01"
    assert client.get("/api/v1/bookings/numbers/202513320001").status_code == 400


def test_missing_booking_is_json_404(client):
    response = client.get("/api/v1/bookings/999")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Booking not found."


def test_incomplete_submit_returns_409_with_vehicles(client):
    vehicles = create_fleet(client, ("AAA111", "BBB222"))
    booking = create_booking(client, vehicles).get_json()
    fill_draft(client, booking["id"], vehicles[0]["id"])

    response = client.post(f"/api/v1/inspections/bookings/{booking['id']}/delivery/draft/submit", json={})
    body = response.get_json()

    assert response.status_code == 409
    assert [v["registration_number"] for v in body["incomplete_vehicles"]] == ["BBB222"]


def test_full_inspection_cycle(client):
    vehicles = create_fleet(client, ("AAA111", "BBB222"))
    booking = create_booking(client, vehicles).get_json()
    for vehicle in vehicles:
        assert fill_draft(client, booking["id"], vehicle["id"]).status_code == 200

    draft = client.get(f"/api/v1/inspections/bookings/{booking['id']}/delivery/draft").get_json()
    assert draft["ready"] is True

    submitted = client.post(
        f"/api/v1/inspections/bookings/{booking['id']}/delivery/draft/submit", json={"inspector_name": "Marta"}
    )
    body = submitted.get_json()
    assert submitted.status_code == 201
    assert body["persisted"] == 2
    assert {i["vehicle_id"] for i in body["inspections"]} == {v["id"] for v in vehicles}

    listed = client.get(f"/api/v1/inspections?booking_id={booking['id']}&type=delivery").get_json()
    assert len(listed["items"]) == 2

    report = client.get(f"/api/v1/inspections/bookings/{booking['id']}/delivery/report")
    assert report.status_code == 200
    assert report.data.startswith(b"%PDF")

    blocked = client.patch(f"/api/v1/bookings/{booking['id']}/status", json={"status": "completed"})
    assert blocked.status_code == 409


def test_direct_inspection_form(client):
    vehicles = create_fleet(client)
    booking = create_booking(client, vehicles).get_json()
    data = {
        "booking_id": str(booking["id"]),
        "inspection_type": "checkout",
        "odometer_reading": "250",
        "fuel_level": "quarter",
    }
    for slot in PHOTO_SLOTS:
        data[f"{slot}_photo"] = (BytesIO(png_bytes()), f"{slot}.png")

    response = client.post("/api/v1/inspections", data=data, content_type="multipart/form-data")
    body = response.get_json()

    assert response.status_code == 201
    assert body["inspection_type"] == "return"
    assert body["vehicle_id"] == vehicles[0]["id"]

    completed = client.patch(f"/api/v1/bookings/{booking['id']}/status", json={"status": "completed"})
    assert completed.get_json()["status"] == "completed"


def test_contract_pdf(client):
    vehicles = create_fleet(client)
    booking = create_booking(
        client, vehicles, line_items=[{"name": "Child seat", "unit_price": "12"}], discount_type="amount", discount_value="5"
    ).get_json()

    response = client.get(f"/api/v1/bookings/{booking['id']}/contract")

    assert response.status_code == 200
    assert response.mimetype == "application/pdf"
    assert response.data.startswith(b"%PDF")


def test_price_override_and_recalculate(client):
    vehicles = create_fleet(client)
    booking = create_booking(client, vehicles).get_json()

    overridden = client.patch(f"/api/v1/bookings/{booking['id']}/price", json={"total_price": "90"}).get_json()
    assert overridden["total_price"] == "90.00"
    assert overridden["price_overridden"] is True

    recalculated = client.post(f"/api/v1/bookings/{booking['id']}/recalculate").get_json()
    assert recalculated["total_price"] == "160.00"


def test_invalid_photo_rejected(client):
    vehicles = create_fleet(client)
    booking = create_booking(client, vehicles).get_json()
    response = client.post(
        f"/api/v1/inspections/bookings/{booking['id']}/delivery/draft/vehicles/{vehicles[0]['id']}/photos/front",
        data={"photo": (BytesIO(b"not an image"), "front.png")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
