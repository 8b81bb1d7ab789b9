"""Test fixtures and utilities."""

import io

import pytest

# Sample PDF text layers for testing
SAMPLE_UTILITY_BILL = """
Acme Electric Company
PO Box 1234
Springfield, IL 62701

Account Number: 9876543210
Service Address: 742 Evergreen Terrace

Billing Period: May 1, 2024 - May 31, 2024

Previous Balance                 $84.12
Payment Received                -$84.12
Current Charges                  $97.45

Due Date: June 15, 2024

Pay online at www.acmepay.com/billing

Total Amount Due: $97.45
"""

SAMPLE_KNOWN_PROVIDER_BILL = """
GEORGIA POWER
A SOUTHERN COMPANY

Customer Name: Jane Doe
Account Number: 01234-56789

Your Bill at a Glance
Previous Amount Due          $120.00
Payment Received             $120.00 CR
Current Charges              $143.27

Please pay by Jul 8, 2024

Visit georgiapower.com/pay to pay your bill online.

Total Amount Due $143.27
"""

# Env vars read by load_config
CONFIG_ENV_VARS = [
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL",
    "ANTHROPIC_BASE_URL",
    "BILL_EXTRACT_AI_ENABLED",
    "BILL_EXTRACT_AI_TIMEOUT",
    "BILL_EXTRACT_STRATEGY_TIMEOUT",
]


@pytest.fixture
def sample_utility_bill() -> str:
    """Utility bill text with a scored header line."""
    return SAMPLE_UTILITY_BILL


@pytest.fixture
def sample_known_provider_bill() -> str:
    """Bill text from a provider on the allow-list."""
    return SAMPLE_KNOWN_PROVIDER_BILL


@pytest.fixture
def clean_env(monkeypatch):
    """Remove config env overrides so tests see file/default values."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_pdf():
    """Build a single-page PDF with one text line per entry."""
    pytest.importorskip("reportlab")
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas

    def _make_pdf(lines: list[str]) -> bytes:
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=letter)
        y = 740
        for line in lines:
            pdf.drawString(72, y, line)
            y -= 18
        pdf.save()
        return buffer.getvalue()

    return _make_pdf
