from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from rentaldesk.errors import AppError, IncompleteInspectionError
from rentaldesk.extensions import cache, db
from rentaldesk.models import Inspection, InspectionDamage, InspectionExtra
from rentaldesk.models.base import utcnow
from rentaldesk.services.booking_number_service import BookingNumberService
from rentaldesk.services.media_service import MediaService
from rentaldesk.utils import as_utc, clean_text, parse_decimal, parse_int

PHOTO_SLOTS = ("front", "left", "rear", "right", "odometer")
FUEL_LEVELS = ("empty", "quarter", "half", "three_quarters", "full")
DAMAGE_SEVERITIES = {"minor", "moderate", "severe"}
TYPE_ALIASES = {
    "delivery": "delivery",
    "checkin": "delivery",
    "return": "return",
    "checkout": "return",
}


class InspectionState:
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


def empty_snapshot():
    return {
        "photos": {},
        "odometer_reading": None,
        "fuel_level": None,
        "general_condition": None,
        "notes": None,
        "damages": [],
        "extras": [],
    }


class InspectionDraftStore:
    """In-progress inspection drafts, one cache entry per captured field.

    Every photo slot and reading of a vehicle lives under its own key, and
    damages and extras get ids from an atomic counter, so concurrent captures
    for the same booking never overwrite each other.
    """

    FIELDS = ("odometer_reading", "fuel_level", "general_condition", "notes")
    ENTRY_KINDS = ("damages", "extras")

    @staticmethod
    def _prefix(booking_id, inspection_type, vehicle_id):
        return f"inspection-draft:{booking_id}:{inspection_type}:{vehicle_id}"

    @staticmethod
    def _timeout():
        return current_app.config["INSPECTION_DRAFT_TIMEOUT"]

    @staticmethod
    def _field_keys(prefix):
        return [f"{prefix}:photo:{slot}" for slot in PHOTO_SLOTS] + [
            f"{prefix}:{field}" for field in InspectionDraftStore.FIELDS
        ]

    @staticmethod
    def _entry_keys(prefix, kind):
        last = cache.get(f"{prefix}:{kind}:seq") or 0
        return [f"{prefix}:{kind}:{entry_id}" for entry_id in range(1, int(last) + 1)]

    @staticmethod
    def set_field(booking_id, inspection_type, vehicle_id, field, value):
        key = f"{InspectionDraftStore._prefix(booking_id, inspection_type, vehicle_id)}:{field}"
        if value is None:
            cache.delete(key)
        else:
            cache.set(key, value, timeout=InspectionDraftStore._timeout())

    @staticmethod
    def set_photo(booking_id, inspection_type, vehicle_id, slot, key):
        InspectionDraftStore.set_field(booking_id, inspection_type, vehicle_id, f"photo:{slot}", key)

    @staticmethod
    def add_entry(booking_id, inspection_type, vehicle_id, kind, entry):
        prefix = InspectionDraftStore._prefix(booking_id, inspection_type, vehicle_id)
        seq_key = f"{prefix}:{kind}:seq"
        cache.add(seq_key, 0, timeout=InspectionDraftStore._timeout())
        entry_id = cache.cache.inc(seq_key)
        cache.set(f"{prefix}:{kind}:{entry_id}", {**entry, "id": entry_id}, timeout=InspectionDraftStore._timeout())
        return entry_id

    @staticmethod
    def remove_entry(booking_id, inspection_type, vehicle_id, kind, entry_id):
        key = f"{InspectionDraftStore._prefix(booking_id, inspection_type, vehicle_id)}:{kind}:{entry_id}"
        if cache.get(key) is None:
            return False
        cache.delete(key)
        return True

    @staticmethod
    def load_vehicle(booking_id, inspection_type, vehicle_id):
        """Assemble one vehicle's snapshot, or ``None`` when nothing was captured."""
        prefix = InspectionDraftStore._prefix(booking_id, inspection_type, vehicle_id)
        values = cache.get_many(*InspectionDraftStore._field_keys(prefix))
        photos = dict(zip(PHOTO_SLOTS, values[: len(PHOTO_SLOTS)]))
        fields = dict(zip(InspectionDraftStore.FIELDS, values[len(PHOTO_SLOTS) :]))

        snapshot = empty_snapshot()
        snapshot["photos"] = {slot: key for slot, key in photos.items() if key}
        snapshot.update(fields)
        for kind in InspectionDraftStore.ENTRY_KINDS:
            keys = InspectionDraftStore._entry_keys(prefix, kind)
            snapshot[kind] = [entry for entry in (cache.get_many(*keys) if keys else []) if entry]

        captured = any(value is not None for value in values) or snapshot["damages"] or snapshot["extras"]
        return snapshot if captured else None

    @staticmethod
    def load(booking, inspection_type):
        """Snapshots of every vehicle of the booking that has draft data, keyed by vehicle id."""
        draft = {}
        for assignment in booking.vehicles:
            snapshot = InspectionDraftStore.load_vehicle(booking.id, inspection_type, assignment.vehicle_id)
            if snapshot is not None:
                draft[assignment.vehicle_id] = snapshot
        return draft

    @staticmethod
    def clear_vehicle(booking_id, inspection_type, vehicle_id):
        prefix = InspectionDraftStore._prefix(booking_id, inspection_type, vehicle_id)
        keys = InspectionDraftStore._field_keys(prefix)
        for kind in InspectionDraftStore.ENTRY_KINDS:
            keys += InspectionDraftStore._entry_keys(prefix, kind) + [f"{prefix}:{kind}:seq"]
        cache.delete_many(*keys)

    @staticmethod
    def clear(booking, inspection_type):
        for assignment in booking.vehicles:
            InspectionDraftStore.clear_vehicle(booking.id, inspection_type, assignment.vehicle_id)


class SubmissionResult:
    def __init__(self, booking, inspection_type, expected):
        self.booking = booking
        self.inspection_type = inspection_type
        self.expected = expected
        self.inspections = []
        self.already_recorded = []
        self.failed_vehicle = None
        self.failed_step = None
        self.error = None

    @property
    def ok(self):
        return self.failed_vehicle is None

    @property
    def persisted(self):
        return len(self.inspections)

    def mark_failed(self, assignment, step, error):
        self.inspections = []
        self.failed_vehicle = {
            "vehicle_id": assignment.vehicle_id,
            "registration_number": assignment.vehicle.registration_number,
        }
        self.failed_step = step
        self.error = str(error)

    def to_dict(self):
        return {
            "booking_id": self.booking.id,
            "inspection_type": self.inspection_type,
            "ok": self.ok,
            "expected": self.expected,
            "persisted": self.persisted,
            "already_recorded": self.already_recorded,
            "inspection_ids": [i.id for i in self.inspections],
            "failed_vehicle": self.failed_vehicle,
            "failed_step": self.failed_step,
            "error": self.error,
        }


class InspectionService:
    @staticmethod
    def normalize_type(inspection_type):
        normalized = TYPE_ALIASES.get((inspection_type or "").strip().lower())
        if not normalized:
            raise AppError("Inspection type must be 'delivery' or 'return'.", 400)
        return normalized

    @staticmethod
    def assignment_for(booking, vehicle_id):
        for assignment in booking.vehicles:
            if assignment.vehicle_id == vehicle_id:
                return assignment
        raise AppError(f"Vehicle {vehicle_id} is not assigned to booking {booking.booking_number}.", 404)

    @staticmethod
    def missing_fields(snapshot):
        snapshot = snapshot or empty_snapshot()
        photos = snapshot.get("photos") or {}
        missing = [f"{slot}_photo" for slot in PHOTO_SLOTS if not photos.get(slot)]
        if snapshot.get("odometer_reading") is None:
            missing.append("odometer_reading")
        if not snapshot.get("fuel_level"):
            missing.append("fuel_level")
        return missing

    @staticmethod
    def vehicle_state(snapshot):
        if not snapshot:
            return InspectionState.NOT_STARTED
        if not InspectionService.missing_fields(snapshot):
            return InspectionState.COMPLETE
        captured = (
            any((snapshot.get("photos") or {}).values())
            or snapshot.get("odometer_reading") is not None
            or bool(snapshot.get("fuel_level"))
        )
        return InspectionState.IN_PROGRESS if captured else InspectionState.NOT_STARTED

    @staticmethod
    def recorded_vehicle_ids(booking, inspection_type):
        rows = (
            db.session.query(Inspection.vehicle_id)
            .filter_by(booking_id=booking.id, inspection_type=inspection_type)
            .all()
        )
        return {row.vehicle_id for row in rows}

    @staticmethod
    def booking_progress(booking, inspection_type):
        inspection_type = InspectionService.normalize_type(inspection_type)
        draft = InspectionDraftStore.load(booking, inspection_type)
        recorded = InspectionService.recorded_vehicle_ids(booking, inspection_type)

        progress = []
        for assignment in booking.vehicles:
            snapshot = draft.get(assignment.vehicle_id)
            is_recorded = assignment.vehicle_id in recorded
            state = InspectionState.COMPLETE if is_recorded else InspectionService.vehicle_state(snapshot)
            progress.append(
                {
                    "vehicle_id": assignment.vehicle_id,
                    "booking_vehicle_id": assignment.id,
                    "registration_number": assignment.vehicle.registration_number,
                    "state": state,
                    "recorded": is_recorded,
                    "missing": [] if is_recorded else InspectionService.missing_fields(snapshot),
                }
            )
        return progress

    @staticmethod
    def incomplete_vehicles(booking, inspection_type):
        return [
            {"vehicle_id": row["vehicle_id"], "registration_number": row["registration_number"], "missing": row["missing"]}
            for row in InspectionService.booking_progress(booking, inspection_type)
            if row["state"] != InspectionState.COMPLETE
        ]

    @staticmethod
    def unrecorded_vehicles(booking, inspection_type):
        """Vehicles of the booking with no saved inspection of this type, drafts ignored."""
        inspection_type = InspectionService.normalize_type(inspection_type)
        recorded = InspectionService.recorded_vehicle_ids(booking, inspection_type)
        return [
            {
                "vehicle_id": assignment.vehicle_id,
                "registration_number": assignment.vehicle.registration_number,
                "missing": ["inspection"],
            }
            for assignment in booking.vehicles
            if assignment.vehicle_id not in recorded
        ]

    @staticmethod
    def is_booking_ready_to_finalize(booking, inspection_type):
        if not booking.vehicles:
            return False
        return not InspectionService.incomplete_vehicles(booking, inspection_type)

    @staticmethod
    def _open_for_capture(booking, inspection_type, vehicle_id):
        inspection_type = InspectionService.normalize_type(inspection_type)
        InspectionService.assignment_for(booking, vehicle_id)
        if vehicle_id in InspectionService.recorded_vehicle_ids(booking, inspection_type):
            raise AppError(f"The {inspection_type} inspection for this vehicle is already recorded.", 409)
        return inspection_type

    @staticmethod
    def _vehicle_payload(booking, inspection_type, vehicle_id):
        snapshot = InspectionDraftStore.load_vehicle(booking.id, inspection_type, vehicle_id)
        return InspectionService.snapshot_payload(vehicle_id, snapshot)

    @staticmethod
    def _parse_readings(payload):
        changes = {}
        if "odometer_reading" in payload:
            raw = payload.get("odometer_reading")
            changes["odometer_reading"] = (
                None if raw in (None, "") else parse_int(raw, "Odometer reading", minimum=0)
            )
        if "fuel_level" in payload:
            fuel_level = clean_text(payload.get("fuel_level"))
            if fuel_level is not None and fuel_level not in FUEL_LEVELS:
                raise AppError(f"Fuel level must be one of: {', '.join(FUEL_LEVELS)}.", 400)
            changes["fuel_level"] = fuel_level
        for field in ("general_condition", "notes"):
            if field in payload:
                changes[field] = clean_text(payload.get(field))
        return changes

    @staticmethod
    def update_vehicle(booking, inspection_type, vehicle_id, payload):
        changes = InspectionService._parse_readings(payload)
        inspection_type = InspectionService._open_for_capture(booking, inspection_type, vehicle_id)
        for field, value in changes.items():
            InspectionDraftStore.set_field(booking.id, inspection_type, vehicle_id, field, value)
        return InspectionService._vehicle_payload(booking, inspection_type, vehicle_id)

    @staticmethod
    def _photo_prefix(booking):
        return BookingNumberService.booking_file_path(booking.booking_number, "inspections")

    @staticmethod
    def _store_photo(booking, inspection_type, vehicle_id, slot, storage=None, data_url=None):
        name = f"{inspection_type}-{vehicle_id}-{slot}"
        prefix = InspectionService._photo_prefix(booking)
        key = None
        if storage is not None and storage.filename:
            key = MediaService.save_image(storage, prefix, name)
        elif data_url:
            key = MediaService.save_camera_data_url(data_url, prefix, name)
        if not key:
            raise AppError("A photo file or camera image is required.", 400)
        return key

    @staticmethod
    def attach_photo(booking, inspection_type, vehicle_id, slot, storage=None, data_url=None):
        if slot not in PHOTO_SLOTS:
            raise AppError(f"Photo slot must be one of: {', '.join(PHOTO_SLOTS)}.", 400)
        inspection_type = InspectionService._open_for_capture(booking, inspection_type, vehicle_id)
        key = InspectionService._store_photo(booking, inspection_type, vehicle_id, slot, storage, data_url)
        InspectionDraftStore.set_photo(booking.id, inspection_type, vehicle_id, slot, key)
        return InspectionService._vehicle_payload(booking, inspection_type, vehicle_id)

    @staticmethod
    def _parse_damage(payload):
        description = clean_text(payload.get("description"))
        if not description:
            raise AppError("Damage description is required.", 400)
        severity = (clean_text(payload.get("severity")) or "minor").lower()
        if severity not in DAMAGE_SEVERITIES:
            raise AppError("Damage severity must be minor, moderate or severe.", 400)
        cost = payload.get("estimated_cost")
        return {
            "description": description,
            "severity": severity,
            "location": clean_text(payload.get("location")),
            "photo": None,
            "estimated_cost": None if cost in (None, "") else str(parse_decimal(cost, "Estimated cost", minimum=0)),
        }

    @staticmethod
    def add_damage(booking, inspection_type, vehicle_id, payload, photo=None):
        damage = InspectionService._parse_damage(payload)
        inspection_type = InspectionService._open_for_capture(booking, inspection_type, vehicle_id)
        if photo is not None and photo.filename:
            damage["photo"] = MediaService.save_image(
                photo,
                BookingNumberService.booking_file_path(booking.booking_number, "damages"),
                f"{inspection_type}-{vehicle_id}-damage",
            )
        InspectionDraftStore.add_entry(booking.id, inspection_type, vehicle_id, "damages", damage)
        return InspectionService._vehicle_payload(booking, inspection_type, vehicle_id)

    @staticmethod
    def remove_damage(booking, inspection_type, vehicle_id, damage_id):
        inspection_type = InspectionService._open_for_capture(booking, inspection_type, vehicle_id)
        if not InspectionDraftStore.remove_entry(booking.id, inspection_type, vehicle_id, "damages", damage_id):
            raise AppError("Damage not found.", 404)
        return InspectionService._vehicle_payload(booking, inspection_type, vehicle_id)

    @staticmethod
    def add_extra(booking, inspection_type, vehicle_id, payload):
        description = clean_text(payload.get("description"))
        if not description:
            raise AppError("Extra charge description is required.", 400)
        extra = {
            "description": description,
            "amount": str(parse_decimal(payload.get("amount"), "Amount", default=0, minimum=0)),
        }
        inspection_type = InspectionService._open_for_capture(booking, inspection_type, vehicle_id)
        InspectionDraftStore.add_entry(booking.id, inspection_type, vehicle_id, "extras", extra)
        return InspectionService._vehicle_payload(booking, inspection_type, vehicle_id)

    @staticmethod
    def discard_draft(booking, inspection_type):
        InspectionDraftStore.clear(booking, InspectionService.normalize_type(inspection_type))

    @staticmethod
    def snapshot_payload(vehicle_id, snapshot):
        return {
            "vehicle_id": vehicle_id,
            "state": InspectionService.vehicle_state(snapshot),
            "missing": InspectionService.missing_fields(snapshot),
            "snapshot": snapshot or empty_snapshot(),
        }

    @staticmethod
    def _inspected_at(booking, inspection_type):
        if inspection_type == "delivery" and booking.pickup_at:
            return as_utc(booking.pickup_at)
        return utcnow()

    @staticmethod
    def _build_inspection(booking, assignment, inspection_type, snapshot, inspector_name):
        photos = snapshot["photos"]
        return Inspection(
            booking_id=booking.id,
            booking_vehicle_id=assignment.id,
            vehicle_id=assignment.vehicle_id,
            inspection_type=inspection_type,
            inspected_at=InspectionService._inspected_at(booking, inspection_type),
            odometer_reading=snapshot["odometer_reading"],
            fuel_level=snapshot["fuel_level"],
            front_photo=photos["front"],
            left_photo=photos["left"],
            rear_photo=photos["rear"],
            right_photo=photos["right"],
            odometer_photo=photos["odometer"],
            general_condition=snapshot.get("general_condition"),
            notes=snapshot.get("notes"),
            inspector_name=clean_text(inspector_name),
        )

    @staticmethod
    def _persist(booking, inspection_type, entries, result, inspector_name=None):
        """Write all (assignment, snapshot) pairs in one transaction."""
        assignment = None
        step = None
        try:
            for assignment, snapshot in entries:
                step = "inspection"
                inspection = InspectionService._build_inspection(
                    booking, assignment, inspection_type, snapshot, inspector_name
                )
                db.session.add(inspection)
                db.session.flush()

                step = "damage"
                for damage in snapshot.get("damages") or []:
                    db.session.add(
                        InspectionDamage(
                            inspection_id=inspection.id,
                            description=damage["description"],
                            severity=damage["severity"],
                            location=damage.get("location"),
                            photo=damage.get("photo"),
                            estimated_cost=damage.get("estimated_cost"),
                        )
                    )
                db.session.flush()

                step = "extra"
                for extra in snapshot.get("extras") or []:
                    db.session.add(
                        InspectionExtra(
                            inspection_id=inspection.id,
                            description=extra["description"],
                            amount=extra.get("amount") or 0,
                        )
                    )
                db.session.flush()
                result.inspections.append(inspection)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            result.mark_failed(assignment, step, exc)
            current_app.logger.warning(
                "Inspection batch for booking %s rolled back at vehicle %s (%s step): %s",
                booking.booking_number,
                result.failed_vehicle["registration_number"],
                step,
                exc,
            )
        return result

    @staticmethod
    def submit(booking, inspection_type, inspector_name=None):
        """Persist the draft of every vehicle of the booking for one inspection type.

        Refuses with :class:`IncompleteInspectionError` while any vehicle is
        incomplete, so nothing is written. Vehicles that already have a
        recorded inspection of this type are skipped.
        """
        inspection_type = InspectionService.normalize_type(inspection_type)
        if not booking.vehicles:
            raise AppError("Booking has no vehicles to inspect.", 400)

        incomplete = InspectionService.incomplete_vehicles(booking, inspection_type)
        if incomplete:
            raise IncompleteInspectionError(inspection_type, incomplete)

        draft = InspectionDraftStore.load(booking, inspection_type)
        recorded = InspectionService.recorded_vehicle_ids(booking, inspection_type)
        result = SubmissionResult(booking, inspection_type, expected=len(booking.vehicles))

        entries = []
        for assignment in booking.vehicles:
            if assignment.vehicle_id in recorded:
                result.already_recorded.append(assignment.vehicle_id)
                continue
            entries.append((assignment, draft[assignment.vehicle_id]))

        InspectionService._persist(booking, inspection_type, entries, result, inspector_name)
        if result.ok:
            InspectionDraftStore.clear(booking, inspection_type)
            current_app.logger.info(
                "Recorded %s %s inspections for booking %s.",
                result.persisted,
                inspection_type,
                booking.booking_number,
            )
        return result

    @staticmethod
    def create_inspection(booking, inspection_type, payload, photos=None, vehicle_id=None, inspector_name=None):
        """Record one complete inspection directly, without a draft."""
        inspection_type = InspectionService.normalize_type(inspection_type)
        if vehicle_id is None:
            if len(booking.vehicles) != 1:
                raise AppError("vehicle_id is required for bookings with several vehicles.", 400)
            vehicle_id = booking.vehicles[0].vehicle_id
        assignment = InspectionService.assignment_for(booking, vehicle_id)
        if vehicle_id in InspectionService.recorded_vehicle_ids(booking, inspection_type):
            raise AppError(f"The {inspection_type} inspection for this vehicle is already recorded.", 409)

        snapshot = empty_snapshot()
        snapshot.update(InspectionService._parse_readings(payload))
        missing_photos = [slot for slot in PHOTO_SLOTS if not (photos or {}).get(slot)]
        if missing_photos:
            raise AppError(
                "Missing required fields: " + ", ".join(f"{slot}_photo" for slot in missing_photos) + ".", 400
            )
        missing = InspectionService.missing_fields({**snapshot, "photos": dict.fromkeys(PHOTO_SLOTS, "pending")})
        if missing:
            raise AppError(f"Missing required fields: {', '.join(missing)}.", 400)

        for slot in PHOTO_SLOTS:
            snapshot["photos"][slot] = InspectionService._store_photo(
                booking, inspection_type, vehicle_id, slot, storage=photos[slot]
            )

        result = SubmissionResult(booking, inspection_type, expected=1)
        InspectionService._persist(booking, inspection_type, [(assignment, snapshot)], result, inspector_name)
        if not result.ok:
            raise AppError("Could not save the inspection. Please retry.", 500, payload=result.to_dict())
        return result.inspections[0]

    @staticmethod
    def get_inspection(inspection_id):
        inspection = db.session.get(Inspection, inspection_id)
        if not inspection:
            raise AppError("Inspection not found.", 404)
        return inspection

    @staticmethod
    def list_inspections(booking, inspection_type=None):
        query = Inspection.query.filter_by(booking_id=booking.id)
        if inspection_type:
            query = query.filter_by(inspection_type=InspectionService.normalize_type(inspection_type))
        return query.order_by(Inspection.booking_vehicle_id.asc(), Inspection.inspected_at.asc()).all()

    @staticmethod
    def compare(booking):
        """Delivery versus return readings for each vehicle of the booking."""
        by_vehicle = {}
        for inspection in InspectionService.list_inspections(booking):
            by_vehicle.setdefault(inspection.vehicle_id, {})[inspection.inspection_type] = inspection

        rows = []
        for assignment in booking.vehicles:
            pair = by_vehicle.get(assignment.vehicle_id, {})
            delivery = pair.get("delivery")
            returned = pair.get("return")
            row = {
                "vehicle_id": assignment.vehicle_id,
                "registration_number": assignment.vehicle.registration_number,
                "delivery_inspection_id": delivery.id if delivery else None,
                "return_inspection_id": returned.id if returned else None,
                "complete": bool(delivery and returned),
                "distance_km": None,
                "fuel_change": None,
                "return_damages": [],
            }
            if delivery and returned:
                row["distance_km"] = returned.odometer_reading - delivery.odometer_reading
                row["fuel_change"] = FUEL_LEVELS.index(returned.fuel_level) - FUEL_LEVELS.index(delivery.fuel_level)
                row["return_damages"] = [
                    {"description": d.description, "severity": d.severity, "location": d.location}
                    for d in returned.damages
                ]
            rows.append(row)
        return rows

    @staticmethod
    def photo_keys(inspection):
        return {slot: getattr(inspection, f"{slot}_photo") for slot in PHOTO_SLOTS}
