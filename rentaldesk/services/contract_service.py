from io import BytesIO

from flask import current_app
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from rentaldesk.services.inspection_service import PHOTO_SLOTS, InspectionService
from rentaldesk.services.media_service import MediaService
from rentaldesk.utils import as_utc, to_money

MARGIN = 50
LINE_HEIGHT = 18


class _PdfWriter:
    def __init__(self):
        self.buffer = BytesIO()
        self.pdf = canvas.Canvas(self.buffer, pagesize=A4)
        self.width, self.height = A4
        self.y = self.height - 60

    def ensure_space(self, needed):
        if self.y - needed < MARGIN:
            self.pdf.showPage()
            self.y = self.height - 60

    def title(self, text):
        self.ensure_space(30)
        self.pdf.setFont("Helvetica-Bold", 20)
        self.pdf.drawString(MARGIN, self.y, text)
        self.y -= 32

    def heading(self, text):
        self.ensure_space(26)
        self.pdf.setFont("Helvetica-Bold", 13)
        self.pdf.drawString(MARGIN, self.y, text)
        self.y -= 22

    def line(self, text):
        self.ensure_space(LINE_HEIGHT)
        self.pdf.setFont("Helvetica", 11)
        self.pdf.drawString(MARGIN, self.y, text)
        self.y -= LINE_HEIGHT

    def image(self, data, x, size):
        self.pdf.drawImage(ImageReader(BytesIO(data)), x, self.y - size, size, size, preserveAspectRatio=True)

    def finish(self):
        self.pdf.showPage()
        self.pdf.save()
        return self.buffer.getvalue()


def _fmt(value):
    return as_utc(value).strftime("%Y-%m-%d %H:%M UTC") if value else "-"


class ContractService:
    @staticmethod
    def render_contract_pdf(booking):
        currency = current_app.config["CURRENCY"]
        customer = booking.customer
        doc = _PdfWriter()

        doc.title(f"{current_app.config['COMPANY_NAME']} Rental Contract")
        doc.line(f"Booking: {booking.booking_number}")
        doc.line(f"Status: {booking.status.title()}")
        doc.line(f"Pickup: {_fmt(booking.pickup_at)}")
        doc.line(f"Return: {_fmt(booking.return_at)}")

        doc.heading("Customer")
        if customer:
            doc.line(f"Name: {customer.full_name}")
            doc.line(f"Phone: {customer.phone or '-'}")
            doc.line(f"Email: {customer.email or '-'}")
            doc.line(f"Document: {customer.document_number or '-'}")
        else:
            doc.line("No customer on file.")

        doc.heading("Vehicles")
        for assignment in booking.vehicles:
            doc.line(f"{assignment.vehicle.label}: {currency} {to_money(assignment.vehicle_price)}")

        if booking.line_items:
            doc.heading("Extras")
            for item in booking.line_items:
                doc.line(f"{item.name} x{item.quantity}: {currency} {to_money(item.total_price)}")

        doc.heading("Total")
        if booking.discount_type:
            suffix = "%" if booking.discount_type == "percentage" else f" {currency}"
            doc.line(f"Discount: {to_money(booking.discount_value)}{suffix}")
        doc.line(f"Total due: {currency} {to_money(booking.total_price)}")
        if booking.price_overridden:
            doc.line("Price set manually.")

        doc.heading("Signatures")
        doc.line("Customer: ______________________    Agent: ______________________")
        return doc.finish()

    @staticmethod
    def render_inspection_report_pdf(booking, inspection_type):
        inspection_type = InspectionService.normalize_type(inspection_type)
        inspections = InspectionService.list_inspections(booking, inspection_type)

        keys = []
        for inspection in inspections:
            keys.extend(InspectionService.photo_keys(inspection).values())
            keys.extend(d.photo for d in inspection.damages if d.photo)
        photos = MediaService.download_many(keys)

        doc = _PdfWriter()
        doc.title(f"{inspection_type.title()} inspection {booking.booking_number}")
        if not inspections:
            doc.line("No inspections recorded.")

        thumb = (doc.width - 2 * MARGIN - 4 * 8) / len(PHOTO_SLOTS)
        for inspection in inspections:
            doc.heading(inspection.vehicle.label)
            doc.line(f"Inspected: {_fmt(inspection.inspected_at)}  by {inspection.inspector_name or '-'}")
            doc.line(f"Odometer: {inspection.odometer_reading} km  Fuel: {inspection.fuel_level}")
            if inspection.general_condition:
                doc.line(f"Condition: {inspection.general_condition}")

            doc.ensure_space(thumb + 10)
            for index, key in enumerate(InspectionService.photo_keys(inspection).values()):
                doc.image(photos[key], MARGIN + index * (thumb + 8), thumb)
            doc.y -= thumb + 10

            for damage in inspection.damages:
                doc.line(f"Damage ({damage.severity}): {damage.description}")
            for extra in inspection.extras:
                doc.line(f"Extra: {extra.description} {to_money(extra.amount)}")
        return doc.finish()
