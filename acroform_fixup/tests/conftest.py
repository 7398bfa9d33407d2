from fastapi.testclient import TestClient
import pytest

from acroform_fixup.tests.utils.form_builders import build_scenario_pdf, pdf_bytes


@pytest.fixture(scope="session")
def client():
    # Import lazily so tests that don't hit the API can avoid starting the app.
    from acroform_fixup.app import app

    return TestClient(app)


@pytest.fixture
def orphaned_form_bytes() -> bytes:
    """Serialized scenario document whose /Fields array is empty."""
    pdf, _ = build_scenario_pdf(declare_fields=False)
    with pdf:
        return pdf_bytes(pdf)


@pytest.fixture
def reference_form_bytes() -> bytes:
    """Serialized scenario document with a correctly populated /Fields array."""
    pdf, _ = build_scenario_pdf(declare_fields=True)
    with pdf:
        return pdf_bytes(pdf)
