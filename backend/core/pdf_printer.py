# backend/core/pdf_printer.py
"""
Headless Chromium (Playwright) → A4 PDF.

The page is loaded from one of our own internal HTML endpoints; we wait for
network idle and a fixed extra delay so embedded images finish decoding.
One browser is launched per call.
"""
import logging
from urllib.parse import urlsplit

from django.conf import settings
from playwright.sync_api import Error as PlaywrightError, sync_playwright

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]
VIEWPORT = {"width": 1920, "height": 1080}
ZERO_MARGINS = {"top": "0", "right": "0", "bottom": "0", "left": "0"}


class PDFGenerationError(Exception):
    pass


def print_url_to_pdf(url: str) -> bytes:
    # never log the query string, it carries the internal key
    safe_url = urlsplit(url)._replace(query="").geturl()
    logger.info("Printing PDF from %s", safe_url)

    try:
        with sync_playwright() as pw:
            browser = pw.chromium.launch(headless=True, args=CHROMIUM_ARGS)
            try:
                page = browser.new_page(viewport=VIEWPORT, device_scale_factor=2)
                page.goto(url, wait_until="networkidle", timeout=settings.PDF_NAVIGATION_TIMEOUT_MS)
                page.wait_for_timeout(settings.PDF_RENDER_DELAY_MS)
                pdf_bytes = page.pdf(
                    format="A4",
                    print_background=True,
                    prefer_css_page_size=True,
                    margin=ZERO_MARGINS,
                )
            finally:
                browser.close()
    except PlaywrightError as exc:
        raise PDFGenerationError(f"Headless browser failed for {safe_url}: {exc}") from exc

    if not pdf_bytes:
        raise PDFGenerationError(f"Headless browser returned an empty PDF for {safe_url}")
    return pdf_bytes
