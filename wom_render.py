"""
WOM Voucher Renderer
====================

One A4 page per voucher generation:

- title ``Vouchers <n>`` across the top tenth of the page
- QR code of the redemption URL, centered, starting 20% down the page
- the generation password across the bottom quarter
"""

from __future__ import annotations

import io
import logging
import uuid
from pathlib import Path
from typing import Union

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

DEFAULT_REDEEM_URL = "https://wom.social/vouchers/{otc}"
DOCUMENT_TITLE = "WOM vouchers"
TITLE_FONT = "Helvetica-Bold"
TITLE_FONT_SIZE = 30
QR_BOX_SIZE = 20


def redemption_url(otc: uuid.UUID, template: str = DEFAULT_REDEEM_URL) -> str:
    """URL a voucher holder scans to redeem; ``{otc}`` is the hyphenated UUID."""
    return template.format(otc=str(otc))


def render_qr_png(data: str) -> bytes:
    """Encode *data* as a PNG QR code."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=QR_BOX_SIZE,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, "PNG")
    return buf.getvalue()


def output_path(output_dir: Union[str, Path], index: int) -> Path:
    return Path(output_dir) / f"output-{index}.pdf"


def render_voucher_pdf(
    path: Union[str, Path],
    index: int,
    otc: uuid.UUID,
    password: str,
    url_template: str = DEFAULT_REDEEM_URL,
) -> Path:
    """Write the voucher page for generation *index* to *path*."""
    path = Path(path)
    width, height = A4
    c = canvas.Canvas(str(path), pagesize=A4)
    c.setTitle(DOCUMENT_TITLE)
    c.setFont(TITLE_FONT, TITLE_FONT_SIZE)

    # reportlab measures y from the bottom; offset baselines by a third of the
    # font size so the text sits visually centered in its band.
    baseline = TITLE_FONT_SIZE / 3
    c.drawCentredString(width / 2, height * 0.95 - baseline, f"Vouchers {index}")
    c.drawCentredString(width / 2, height * 0.125 - baseline, password)

    qr_png = render_qr_png(redemption_url(otc, url_template))
    size = min(width * 0.8, height * 0.6)
    c.drawImage(
        ImageReader(io.BytesIO(qr_png)),
        (width - size) / 2,
        height * 0.8 - size,
        width=size,
        height=size,
    )

    c.showPage()
    c.save()
    logger.info("Wrote %s", path)
    return path
