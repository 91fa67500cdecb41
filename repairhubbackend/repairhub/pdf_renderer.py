import io
from datetime import datetime

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm

from .ledger import OutstandingSummary, corner_settled
from .money import fmt_eur

# Outstanding commissions statement for one facility, one row per open entry

def render_outstanding_statement_pdf(facility_name: str, summary: OutstandingSummary,
                                     date_from=None, date_to=None) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    W, H = A4
    c.setTitle(f"Statement_{facility_name}")

    c.setFont("Helvetica-Bold", 14)
    c.drawString(20*mm, H - 20*mm, "Outstanding commissions")
    c.setFont("Helvetica", 10)
    c.drawString(20*mm, H - 27*mm, f"Facility: {facility_name}")
    period = f"{date_from.isoformat() if date_from else '...'} - {date_to.isoformat() if date_to else '...'}"
    c.drawString(20*mm, H - 33*mm, f"Period: {period}")
    c.drawString(120*mm, H - 27*mm, f"Printed: {datetime.utcnow().strftime('%d.%m.%Y %H:%M')} UTC")

    y = H - 45*mm
    c.drawString(20*mm, y, "Job")
    c.drawString(75*mm, y, "Date")
    c.drawRightString(130*mm, y, "Margin")
    c.drawRightString(160*mm, y, "Platform")
    c.drawRightString(190*mm, y, "Corner")
    y -= 3*mm
    c.line(20*mm, y, 190*mm, y)
    y -= 6*mm

    for e in summary.entries:
        platform = "-" if e.platform_paid else fmt_eur(e.platform_commission_cents)
        corner = "-" if corner_settled(e) else fmt_eur(e.corner_commission_cents)
        c.drawString(20*mm, y, str(e.job_id)[:30])
        c.drawString(75*mm, y, e.created_at.strftime("%d.%m.%Y"))
        c.drawRightString(130*mm, y, fmt_eur(e.gross_margin_cents))
        c.drawRightString(160*mm, y, platform)
        c.drawRightString(190*mm, y, corner)
        y -= 6*mm
        if y < 40*mm:  # new page
            c.showPage()
            c.setFont("Helvetica", 10)
            y = H - 20*mm

    y = max(y, 40*mm)
    c.line(120*mm, y, 190*mm, y)
    y -= 8*mm
    c.drawRightString(160*mm, y, "Platform due:")
    c.drawRightString(190*mm, y, fmt_eur(summary.platform_due_cents))
    y -= 6*mm
    c.drawRightString(160*mm, y, "Corner due:")
    c.drawRightString(190*mm, y, fmt_eur(summary.corner_due_cents))
    y -= 6*mm
    c.setFont("Helvetica-Bold", 11)
    c.drawRightString(160*mm, y, "Total due:")
    c.drawRightString(190*mm, y, fmt_eur(summary.total_due_cents))

    c.showPage()
    c.save()
    return buf.getvalue()
