from rentaldesk.utils import as_utc, to_money


def _iso(value):
    return as_utc(value).isoformat() if value else None


def _money(value):
    return None if value is None else str(to_money(value))


def page_meta(paginated):
    return {
        "page": paginated.page,
        "pages": paginated.pages,
        "total": paginated.total,
        "has_next": paginated.has_next,
        "has_prev": paginated.has_prev,
    }


def pricing_group_dict(group):
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "price_1_3_days": _money(group.price_1_3_days),
        "price_4_7_days": _money(group.price_4_7_days),
        "price_8_plus_days": _money(group.price_8_plus_days),
        "deposit_amount": _money(group.deposit_amount),
        "status": group.status,
        "vehicle_count": group.vehicles.count(),
    }


def vehicle_dict(vehicle):
    return {
        "id": vehicle.id,
        "registration_number": vehicle.registration_number,
        "make": vehicle.make,
        "model": vehicle.model,
        "label": vehicle.label,
        "status": vehicle.status,
        "pricing_group_id": vehicle.pricing_group_id,
        "pricing_group": vehicle.pricing_group.name if vehicle.pricing_group else None,
    }


def customer_dict(customer):
    return {
        "id": customer.id,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "full_name": customer.full_name,
        "email": customer.email,
        "phone": customer.phone,
        "document_number": customer.document_number,
        "address": customer.address,
        "status": customer.status,
        "notes": customer.notes,
    }


def booking_summary(booking):
    return {
        "id": booking.id,
        "booking_number": booking.booking_number,
        "status": booking.status,
        "customer": booking.customer.full_name if booking.customer else None,
        "pickup_at": _iso(booking.pickup_at),
        "return_at": _iso(booking.return_at),
        "vehicle_count": len(booking.vehicles),
        "total_price": _money(booking.total_price),
    }


def booking_dict(booking, warnings=None):
    body = booking_summary(booking)
    body.update(
        {
            "customer": customer_dict(booking.customer) if booking.customer else None,
            "price_overridden": booking.price_overridden,
            "discount_type": booking.discount_type,
            "discount_value": _money(booking.discount_value),
            "notes": booking.notes,
            "completed_at": _iso(booking.completed_at),
            "cancelled_at": _iso(booking.cancelled_at),
            "vehicles": [
                {
                    "booking_vehicle_id": a.id,
                    "vehicle_id": a.vehicle_id,
                    "registration_number": a.vehicle.registration_number,
                    "label": a.vehicle.label,
                    "vehicle_price": _money(a.vehicle_price),
                }
                for a in booking.vehicles
            ],
            "line_items": [
                {
                    "id": item.id,
                    "kind": item.kind,
                    "name": item.name,
                    "quantity": item.quantity,
                    "unit_price": _money(item.unit_price),
                    "total_price": _money(item.total_price),
                }
                for item in booking.line_items
            ],
        }
    )
    if warnings is not None:
        body["pricing_warnings"] = warnings
    return body


def inspection_dict(inspection):
    return {
        "id": inspection.id,
        "booking_id": inspection.booking_id,
        "booking_vehicle_id": inspection.booking_vehicle_id,
        "vehicle_id": inspection.vehicle_id,
        "registration_number": inspection.vehicle.registration_number,
        "inspection_type": inspection.inspection_type,
        "inspected_at": _iso(inspection.inspected_at),
        "odometer_reading": inspection.odometer_reading,
        "fuel_level": inspection.fuel_level,
        "photos": {
            "front": inspection.front_photo,
            "left": inspection.left_photo,
            "rear": inspection.rear_photo,
            "right": inspection.right_photo,
            "odometer": inspection.odometer_photo,
        },
        "general_condition": inspection.general_condition,
        "notes": inspection.notes,
        "inspector_name": inspection.inspector_name,
        "damages": [
            {
                "id": d.id,
                "description": d.description,
                "severity": d.severity,
                "location": d.location,
                "photo": d.photo,
                "estimated_cost": _money(d.estimated_cost),
            }
            for d in inspection.damages
        ],
        "extras": [{"id": e.id, "description": e.description, "amount": _money(e.amount)} for e in inspection.extras],
    }
