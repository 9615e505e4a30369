import asyncio
from datetime import date
from types import SimpleNamespace

import pytest

from invoice_intake.services.extraction_service import (
    ExtractionService,
    normalize_candidate,
    parse_amount,
    parse_date,
)
from invoice_intake.services.ocr_service import JsonDocumentExtractor, OpenAIVisionExtractor, parse_json_response

FILE_PATH = "invoices/1718000000000000_test_invoice.pdf"


def test_valid_payload_is_normalized(candidate_payload):
    proposed = normalize_candidate(candidate_payload, FILE_PATH)

    assert proposed is not None
    assert proposed.invoice_number == "INV-2024-001"
    assert proposed.vendor.name == "Acme Corporation"
    assert proposed.vendor.address == "123 Business St, City, State 12345"
    assert proposed.vendor.email == "billing@acme.com"
    assert proposed.vendor.phone == "+1-555-123-4567"
    assert proposed.invoice_date == date(2024, 1, 15)
    assert proposed.due_date == date(2024, 2, 15)
    assert proposed.total_amount == 1250.00
    assert proposed.status == "pending"
    assert proposed.file_path == FILE_PATH
    assert proposed.original_filename == "1718000000000000_test_invoice.pdf"
    assert len(proposed.line_items) == 2
    assert proposed.line_items[0].description == "Professional Services"
    assert proposed.line_items[0].quantity == 10
    assert proposed.line_items[0].unit_price == 100.00
    assert proposed.line_items[0].total_price == 1000.00


def test_minimal_payload_leaves_optional_fields_empty():
    proposed = normalize_candidate({
        "invoice_number": "MIN-001",
        "vendor_name": "Basic Vendor",
        "invoice_date": "2024-01-15",
        "total_amount": 500.00,
        "line_items": [{"description": "Service", "quantity": 1, "unit_price": 500.00, "total_price": 500.00}],
    }, FILE_PATH)

    assert proposed is not None
    assert proposed.vendor.address is None
    assert proposed.vendor.email is None
    assert proposed.vendor.phone is None
    assert proposed.due_date is None
    assert len(proposed.line_items) == 1


def test_extracted_status_hint_is_ignored(candidate_payload):
    candidate_payload["status"] = "paid"
    assert normalize_candidate(candidate_payload, FILE_PATH).status == "pending"


@pytest.mark.parametrize("field", ["invoice_number", "vendor_name", "invoice_date", "total_amount", "line_items"])
def test_missing_required_field_rejects_payload(candidate_payload, field):
    del candidate_payload[field]
    assert normalize_candidate(candidate_payload, FILE_PATH) is None


def test_blank_invoice_number_rejects_payload(candidate_payload):
    candidate_payload["invoice_number"] = "   "
    assert normalize_candidate(candidate_payload, FILE_PATH) is None


def test_empty_line_items_rejects_payload(candidate_payload):
    candidate_payload["line_items"] = []
    assert normalize_candidate(candidate_payload, FILE_PATH) is None


@pytest.mark.parametrize("bad_item", [
    {"description": "Widget", "quantity": 0, "unit_price": 10.00, "total_price": 10.00},
    {"description": "Widget", "quantity": 1, "unit_price": -10.00, "total_price": 10.00},
    {"description": "Widget", "quantity": 1, "unit_price": 10.00},
    {"description": "", "quantity": 1, "unit_price": 10.00, "total_price": 10.00},
    "Widget x1",
])
def test_single_invalid_line_item_rejects_whole_payload(candidate_payload, bad_item):
    candidate_payload["line_items"].append(bad_item)
    assert normalize_candidate(candidate_payload, FILE_PATH) is None


def test_unparsable_invoice_date_rejects_payload(candidate_payload):
    candidate_payload["invoice_date"] = "invalid-date"
    assert normalize_candidate(candidate_payload, FILE_PATH) is None


def test_unparsable_due_date_is_dropped(candidate_payload):
    candidate_payload["due_date"] = "invalid-date"

    proposed = normalize_candidate(candidate_payload, FILE_PATH)

    assert proposed is not None
    assert proposed.due_date is None
    assert proposed.invoice_date == date(2024, 1, 15)


def test_invalid_vendor_email_is_dropped(candidate_payload):
    candidate_payload["vendor_email"] = "not-an-email"

    proposed = normalize_candidate(candidate_payload, FILE_PATH)

    assert proposed is not None
    assert proposed.vendor.email is None
    assert proposed.vendor.name == "Acme Corporation"


def test_non_positive_total_rejects_payload(candidate_payload):
    candidate_payload["total_amount"] = 0
    assert normalize_candidate(candidate_payload, FILE_PATH) is None


@pytest.mark.parametrize("total", [float("inf"), "inf", 1e30, 100_000_000])
def test_total_too_large_to_store_rejects_payload(candidate_payload, total):
    candidate_payload["total_amount"] = total
    assert normalize_candidate(candidate_payload, FILE_PATH) is None


def test_line_item_too_large_to_store_rejects_payload(candidate_payload):
    candidate_payload["line_items"][1]["quantity"] = 1e30
    assert normalize_candidate(candidate_payload, FILE_PATH) is None


def test_vendor_email_is_kept_as_written(candidate_payload):
    candidate_payload["vendor_email"] = " Billing@ACME.com "

    proposed = normalize_candidate(candidate_payload, FILE_PATH)

    assert proposed.vendor.email == "Billing@ACME.com"


def test_amounts_may_arrive_as_formatted_strings(candidate_payload):
    candidate_payload["total_amount"] = "$1,250.00"
    candidate_payload["line_items"][0]["unit_price"] = "100.00"

    proposed = normalize_candidate(candidate_payload, FILE_PATH)

    assert proposed.total_amount == 1250.00
    assert proposed.line_items[0].unit_price == 100.00


@pytest.mark.parametrize("payload", [None, [], "not json", 42])
def test_non_object_payload_is_rejected(payload):
    assert normalize_candidate(payload, FILE_PATH) is None


@pytest.mark.parametrize("raw, expected", [
    ("2024-01-15", date(2024, 1, 15)),
    ("2024/01/15", date(2024, 1, 15)),
    ("01/15/2024", date(2024, 1, 15)),
    ("15/01/2024", date(2024, 1, 15)),
    ("15.01.2024", date(2024, 1, 15)),
    ("2024-01-15T10:30:00Z", date(2024, 1, 15)),
    ("invalid-date", None),
    ("", None),
    (20240115, None),
])
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    (12, 12.0),
    (12.5, 12.5),
    ("€1,000.50", 1000.50),
    ("abc", None),
    ("inf", None),
    ("NaN", None),
    (float("inf"), None),
    (10 ** 400, None),
    (True, None),
    (None, None),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


class _StaticExtractor:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    async def extract(self, file_path):
        self.calls.append(file_path)
        return self.payload


def test_service_runs_extractor_and_normalizes(candidate_payload):
    extractor = _StaticExtractor(candidate_payload)
    service = ExtractionService(extractor)

    proposed = asyncio.run(service.extract(FILE_PATH, "test_invoice.pdf"))

    assert extractor.calls == [FILE_PATH]
    assert proposed.invoice_number == "INV-2024-001"


def test_service_returns_none_when_extractor_has_no_data():
    service = ExtractionService(_StaticExtractor(None))
    assert asyncio.run(service.extract(FILE_PATH, "test_invoice.pdf")) is None


def test_json_extractor_reads_stored_payload(storage, store_document, candidate_payload):
    file_path = store_document("invoices/test_invoice.json", candidate_payload)
    service = ExtractionService(JsonDocumentExtractor(storage))

    proposed = asyncio.run(service.extract(file_path, "test_invoice.json"))

    assert proposed is not None
    assert proposed.file_path == file_path
    assert proposed.original_filename == "test_invoice.json"


def test_json_extractor_returns_none_for_non_json_content(storage, store_document):
    file_path = store_document("invoices/scan.pdf", b"%PDF-1.4 binary \xff\xfe")
    assert asyncio.run(JsonDocumentExtractor(storage).extract(file_path)) is None

    file_path = store_document("invoices/note.pdf", "This is not JSON content")
    assert asyncio.run(JsonDocumentExtractor(storage).extract(file_path)) is None


def test_json_extractor_returns_none_for_missing_file(storage):
    assert asyncio.run(JsonDocumentExtractor(storage).extract("invoices/missing.json")) is None


def test_parse_json_response_strips_markdown_fences():
    content = 'Here you go:\n```json\n{"invoice_number": "A-1"}\n```'
    assert parse_json_response(content) == {"invoice_number": "A-1"}
    assert parse_json_response("no json here") is None
    assert parse_json_response("") is None


class _FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _fake_openai_client(content):
    completions = _FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_openai_extractor_sends_pdf_as_file_part(storage, store_document):
    file_path = store_document("invoices/1_scan.pdf", b"%PDF-1.4")
    client, completions = _fake_openai_client('```json\n{"invoice_number": "A-1"}\n```')

    payload = asyncio.run(OpenAIVisionExtractor(storage, client=client).extract(file_path))

    assert payload == {"invoice_number": "A-1"}
    parts = completions.requests[0]["messages"][0]["content"]
    assert parts[1]["type"] == "file"
    assert parts[1]["file"]["file_data"].startswith("data:application/pdf;base64,")


def test_openai_extractor_sends_images_as_image_url(storage, store_document):
    file_path = store_document("invoices/1_scan.png", b"\x89PNG")
    client, completions = _fake_openai_client('{"invoice_number": "A-2"}')

    asyncio.run(OpenAIVisionExtractor(storage, client=client).extract(file_path))

    parts = completions.requests[0]["messages"][0]["content"]
    assert parts[1]["type"] == "image_url"
    assert parts[1]["image_url"]["url"].startswith("data:image/png;base64,")


def test_openai_extractor_without_client_returns_none(storage, store_document, monkeypatch):
    from invoice_intake.services import ocr_service
    monkeypatch.setattr(ocr_service.settings, "openai_api_key", None)
    file_path = store_document("invoices/1_scan.png", b"\x89PNG")

    assert asyncio.run(OpenAIVisionExtractor(storage).extract(file_path)) is None
