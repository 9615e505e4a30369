import os

# Point settings at an in-memory database and local storage before the
# application modules are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_ACCESS_KEY_ID"] = ""
os.environ["STORAGE_SECRET_ACCESS_KEY"] = ""
os.environ["EXTRACTION_PROVIDER"] = "json"

import json
from datetime import date

import pytest
from faker import Faker
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from invoice_intake.database import Base, create_db_engine, get_db
from invoice_intake.models import Vendor, Invoice, LineItem
from invoice_intake.schemas.invoice import CreateInvoiceInput
from invoice_intake.services.extraction_service import ExtractionService
from invoice_intake.services.ocr_service import JsonDocumentExtractor
from invoice_intake.services.storage_service import StorageService

fake = Faker()


@pytest.fixture
def engine():
    """Fresh in-memory database per test"""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return StorageService(local_storage_dir=str(tmp_path / "storage"))


@pytest.fixture
def store_document(storage):
    """Write raw content under a storage key, bypassing upload validation"""
    def _store(storage_key, content):
        local_path = os.path.join(storage.local_storage_dir, storage_key)
        os.makedirs(os.path.dirname(local_path), exist_ok=True)
        if isinstance(content, dict):
            content = json.dumps(content)
        if isinstance(content, str):
            content = content.encode("utf-8")
        with open(local_path, "wb") as f:
            f.write(content)
        return storage_key
    return _store


@pytest.fixture
def invoice_input():
    """Build a CreateInvoiceInput, overriding any top-level field"""
    def _build(**overrides):
        data = {
            "invoice_number": "INV-2024-001",
            "vendor": {
                "name": "Acme Corporation",
                "address": fake.address().replace("\n", ", "),
                "email": "billing@acme.com",
                "phone": fake.phone_number(),
            },
            "invoice_date": date(2024, 1, 15),
            "due_date": date(2024, 2, 15),
            "total_amount": 250.50,
            "line_items": [
                {"description": "Consulting", "quantity": 2, "unit_price": 100.00, "total_price": 200.00},
                {"description": "Materials", "quantity": 1, "unit_price": 50.50, "total_price": 50.50},
            ],
        }
        data.update(overrides)
        return CreateInvoiceInput(**data)
    return _build


@pytest.fixture
def candidate_payload():
    """A complete, valid extractor payload"""
    return {
        "invoice_number": "INV-2024-001",
        "vendor_name": "Acme Corporation",
        "vendor_address": "123 Business St, City, State 12345",
        "vendor_email": "billing@acme.com",
        "vendor_phone": "+1-555-123-4567",
        "invoice_date": "2024-01-15",
        "due_date": "2024-02-15",
        "total_amount": 1250.00,
        "line_items": [
            {"description": "Professional Services", "quantity": 10, "unit_price": 100.00, "total_price": 1000.00},
            {"description": "Materials", "quantity": 5, "unit_price": 50.00, "total_price": 250.00},
        ],
    }


@pytest.fixture
def row_counts(db):
    def _counts():
        return {
            "vendors": db.query(Vendor).count(),
            "invoices": db.query(Invoice).count(),
            "line_items": db.query(LineItem).count(),
        }
    return _counts


@pytest.fixture
def client(session_factory, storage, monkeypatch):
    import invoice_intake.main as main_module
    from invoice_intake.routers import invoices as invoices_router

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main_module.app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(main_module, "storage_service", storage)
    monkeypatch.setattr(invoices_router, "storage_service", storage)
    monkeypatch.setattr(invoices_router, "extraction_service", ExtractionService(JsonDocumentExtractor(storage)))

    with TestClient(main_module.app) as test_client:
        yield test_client

    main_module.app.dependency_overrides.clear()
