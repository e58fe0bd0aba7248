from __future__ import annotations

import os
from typing import Any, Dict

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas


def generate_receipt_pdf(order: Dict[str, Any], export_dir: str, currency: str = "usd") -> str:
    """Renders an order (as returned by db.get_order) to a PDF and returns its path."""
    os.makedirs(export_dir, exist_ok=True)

    filename = f"receipt_{order['id']}.pdf"
    path = os.path.join(export_dir, filename)
    cur = currency.upper()

    c = canvas.Canvas(path, pagesize=A4)
    w, h = A4

    y = h - 50
    c.setFont("Helvetica-Bold", 14)
    c.drawString(40, y, f"RECEIPT - ORDER #{order['id']}")
    y -= 20

    c.setFont("Helvetica", 11)
    c.drawString(40, y, f"Date: {order['created_at'][:19].replace('T', ' ')}")
    y -= 16
    if order.get("payment_intent_id"):
        c.drawString(40, y, f"Payment: {order['payment_intent_id']}")
        y -= 16
    c.drawString(40, y, f"Currency: {cur}")
    y -= 24

    # header
    c.setFont("Helvetica-Bold", 10)
    c.drawString(40, y, "Item")
    c.drawString(260, y, "Category")
    c.drawString(400, y, "Qty")
    c.drawString(470, y, "Price")
    y -= 10
    c.line(40, y, 550, y)
    y -= 16

    c.setFont("Helvetica", 10)
    for it in order["items"]:
        name = it.get("name") or f"(removed item {it['menu_item_id']})"
        c.drawString(40, y, name[:38])
        c.drawString(260, y, (it.get("category") or "")[:22])
        c.drawRightString(420, y, str(int(it["quantity"])))
        if it.get("price") is not None:
            c.drawRightString(550, y, f"{float(it['price']):.2f}")
        y -= 14
        if y < 80:
            c.showPage()
            y = h - 50
            c.setFont("Helvetica", 10)

    y -= 10
    c.line(40, y, 550, y)
    y -= 18
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(550, y, f"TOTAL PAID: {float(order['amount']):.2f} {cur}")

    c.save()
    return path
