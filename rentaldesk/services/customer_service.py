from sqlalchemy import or_

from rentaldesk.errors import AppError
from rentaldesk.extensions import db
from rentaldesk.models import Customer
from rentaldesk.utils import clean_text

EDITABLE_FIELDS = ("first_name", "last_name", "email", "phone", "document_number", "address", "notes")


class CustomerService:
    STATUSES = {"active", "incomplete"}

    @staticmethod
    def _normalize_phone(phone):
        raw = clean_text(phone) or ""
        return "".join(ch for ch in raw if ch.isdigit() or ch == "+")

    @staticmethod
    def _derive_status(customer):
        required = (customer.first_name, customer.last_name, customer.email, customer.phone)
        return "active" if all(required) else "incomplete"

    @staticmethod
    def _apply(customer, payload):
        for field in EDITABLE_FIELDS:
            if field not in payload:
                continue
            value = clean_text(payload.get(field))
            if field == "email" and value:
                value = value.lower()
            if field == "phone":
                value = CustomerService._normalize_phone(value)
            if field in {"first_name", "phone"} and not value:
                raise AppError("Customer first name and phone are required.", 400)
            if field == "last_name":
                value = value or ""
            setattr(customer, field, value)
        customer.status = CustomerService._derive_status(customer)

    @staticmethod
    def create_customer(payload):
        if not clean_text(payload.get("first_name")) or not clean_text(payload.get("phone")):
            raise AppError("Customer first name and phone are required.", 400)
        customer = Customer(last_name="")
        CustomerService._apply(customer, payload)
        db.session.add(customer)
        db.session.commit()
        return customer

    @staticmethod
    def update_customer(customer, payload):
        CustomerService._apply(customer, payload)
        db.session.commit()
        return customer

    @staticmethod
    def find_or_create_quick(full_name, phone, email=None):
        """Reuse the customer with this phone number, or create a minimal record.

        Does not commit; the caller owns the transaction.
        """
        normalized_phone = CustomerService._normalize_phone(phone)
        name = clean_text(full_name)
        if not name or not normalized_phone:
            raise AppError("Customer name and phone are required.", 400)

        existing = Customer.query.filter_by(phone=normalized_phone).first()
        if existing:
            if not existing.email and clean_text(email):
                existing.email = clean_text(email).lower()
                existing.status = CustomerService._derive_status(existing)
            return existing

        first_name, _, last_name = name.partition(" ")
        customer = Customer(
            first_name=first_name,
            last_name=last_name.strip(),
            phone=normalized_phone,
            email=(clean_text(email) or "").lower() or None,
            notes="Created from a quick booking.",
        )
        customer.status = CustomerService._derive_status(customer)
        db.session.add(customer)
        db.session.flush()
        return customer

    @staticmethod
    def get_customer(customer_id):
        customer = db.session.get(Customer, customer_id)
        if not customer:
            raise AppError("Customer not found.", 404)
        return customer

    @staticmethod
    def list_customers(search=None, status=None, page=1, per_page=25):
        query = Customer.query.order_by(Customer.last_name.asc(), Customer.first_name.asc())
        term = clean_text(search)
        if term:
            like = f"%{term}%"
            query = query.filter(
                or_(
                    Customer.first_name.ilike(like),
                    Customer.last_name.ilike(like),
                    Customer.email.ilike(like),
                    Customer.phone.ilike(like),
                    Customer.document_number.ilike(like),
                )
            )
        if status:
            if status not in CustomerService.STATUSES:
                raise AppError("Invalid customer status.", 400)
            query = query.filter_by(status=status)
        return query.paginate(page=page, per_page=per_page, error_out=False)
