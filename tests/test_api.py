"""
tests/test_api.py
─────────────────────────────────────────────────────────────────────────────
Tests for screener.api — ScreenerService and the FastAPI routes.

Coverage:
  - ScreenerService: read_upload / classify_one / process_upload
  - POST /upload-and-read, /process-one, /process: success + 4xx mapping
  - POST /export: CSV / XLSX downloads
  - GET  /health

The classifier is always a FakeClassifier — no remote calls.
"""

import io
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from screener.api import ScreenerService, build_app
from screener.errors import MissingColumns, UnsupportedFormat
from screener.models.record import CATEGORY_API_FAILURE, CATEGORY_PREFILTER
from screener.report_export import read_results_csv


CSV_OK = "sender,text\nBANK,OTP 123456\nX,เล่นบาคาร่าได้เงินจริง\nY,ส่วนลดพิเศษ\n".encode("utf-8")
CSV_MISSING = "sender,text\nA,one\nB,two\nC\n".encode("utf-8")


@pytest.fixture
def service(fake_classifier):
    return ScreenerService(classifier=fake_classifier, config={"backend": "gemini", "workers": 1})


@pytest.fixture
def client(service):
    return TestClient(build_app(service))


def _upload(name: str, data: bytes):
    return {"file": (name, data, "application/octet-stream")}


# ── SERVICE ──────────────────────────────────────────────────────────────────

class TestScreenerService:

    def test_read_upload(self, service):
        records = service.read_upload(CSV_OK, "m.csv")
        assert [r.sender for r in records] == ["BANK", "X", "Y"]

    def test_process_upload_progress(self, service, fake_classifier):
        seen = []
        results = service.process_upload(CSV_OK, "m.csv", progress_cb=lambda d, t: seen.append((d, t)))
        assert len(results) == 3
        assert results[1].category == CATEGORY_PREFILTER
        assert seen == [(1, 3), (2, 3), (3, 3)]
        assert fake_classifier.calls == ["OTP 123456", "ส่วนลดพิเศษ"]

    def test_process_upload_rejects_before_classifying(self, service, fake_classifier):
        with pytest.raises(MissingColumns):
            service.process_upload(CSV_MISSING, "m.csv")
        assert fake_classifier.calls == []

    def test_unsupported_format(self, service):
        with pytest.raises(UnsupportedFormat):
            service.read_upload(CSV_OK, "m.txt")

    def test_classifier_built_lazily_from_config(self):
        svc = ScreenerService(config={"backend": "ollama"})
        assert svc._classifier is None
        assert svc.classifier.name == "ollama"


# ── ROUTES: UPLOAD ───────────────────────────────────────────────────────────

class TestUploadAndRead:

    def test_csv(self, client):
        resp = client.post("/upload-and-read", files=_upload("m.csv", CSV_OK))
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "File read successfully"
        assert body["data"][0] == {"sender": "BANK", "text": "OTP 123456"}

    def test_xlsx(self, client, xlsx_factory):
        data = xlsx_factory([[["Sender", "Text"], [1234, "hello"]]])
        resp = client.post("/upload-and-read", files=_upload("m.xlsx", data))
        assert resp.status_code == 200
        assert resp.json()["data"] == [{"sender": "1234", "text": "hello"}]

    def test_unsupported_extension(self, client):
        resp = client.post("/upload-and-read", files=_upload("m.pdf", b"%PDF"))
        assert resp.status_code == 400
        assert "Unsupported file type" in resp.json()["message"]

    def test_missing_columns(self, client):
        resp = client.post("/upload-and-read", files=_upload("m.csv", b"phone,message\n1,hi\n"))
        assert resp.status_code == 400
        assert "Found columns: phone, message" in resp.json()["message"]

    def test_no_file(self, client):
        resp = client.post("/upload-and-read")
        assert resp.status_code == 400
        assert resp.json()["message"] == "No file uploaded."

    def test_get_not_allowed(self, client):
        assert client.get("/upload-and-read").status_code == 405


# ── ROUTES: CLASSIFY ─────────────────────────────────────────────────────────

class TestProcessOne:

    def test_classifies_row(self, client):
        resp = client.post("/process-one", json={"sender": "BANK", "text": "OTP 123456"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert list(data) == ["sender", "text", "case", "category", "note"]
        assert data["case"] == "pass"

    def test_prefilter_row(self, client, fake_classifier):
        resp = client.post("/process-one", json={"sender": "X", "text": "พนันออนไลน์"})
        assert resp.json()["data"]["category"] == CATEGORY_PREFILTER
        assert fake_classifier.calls == []

    @pytest.mark.parametrize("payload", [
        {"sender": "X"},
        {"text": "hi"},
        {"sender": "X", "text": ""},
        {"sender": 1, "text": "hi"},
    ])
    def test_missing_fields(self, client, payload):
        resp = client.post("/process-one", json=payload)
        assert resp.status_code == 400
        assert "Missing sender or text" in resp.json()["message"]

    @pytest.mark.parametrize("body", [["BANK", "OTP"], "hello", 7])
    def test_non_object_body_is_400(self, client, body):
        resp = client.post("/process-one", json=body)
        assert resp.status_code == 400
        assert "Missing sender or text" in resp.json()["message"]

    def test_empty_body_is_400(self, client):
        resp = client.post("/process-one")
        assert resp.status_code == 400

    def test_remote_failure_is_still_200(self, classifier_factory):
        from screener.errors import RemoteClassificationFailure
        clf = classifier_factory(responses={"hi": RemoteClassificationFailure("quota exceeded")})
        client = TestClient(build_app(ScreenerService(classifier=clf, config={})))
        resp = client.post("/process-one", json={"sender": "A", "text": "hi"})
        assert resp.status_code == 200
        assert resp.json()["data"]["category"] == CATEGORY_API_FAILURE


class TestProcess:

    def test_batch(self, client):
        resp = client.post("/process", files=_upload("m.csv", CSV_OK))
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Processing complete"
        assert [r["sender"] for r in body["data"]] == ["BANK", "X", "Y"]
        assert body["data"][1]["case"] == "not pass"

    def test_batch_gate(self, client, fake_classifier):
        resp = client.post("/process", files=_upload("m.csv", CSV_MISSING))
        assert resp.status_code == 400
        assert fake_classifier.calls == []

    def test_corrupt_xlsx(self, client):
        resp = client.post("/process", files=_upload("m.xlsx", b"not a workbook"))
        assert resp.status_code == 400
        assert "Excel Parsing Error" in resp.json()["message"]

    def test_unexpected_error_is_500(self, service):
        service.process_upload = MagicMock(side_effect=RuntimeError("disk full"))
        client = TestClient(build_app(service))
        resp = client.post("/process", files=_upload("m.csv", CSV_OK))
        assert resp.status_code == 500
        assert resp.json()["error"] == "disk full"


# ── ROUTES: EXPORT / HEALTH ──────────────────────────────────────────────────

RESULTS = [
    {"sender": "BANK", "text": "OTP, 123", "case": "pass", "category": "OTP/Transactional", "note": "ok"},
    {"sender": "X", "text": "บาคาร่า", "case": "not pass", "category": "Gambling/Loan Scam", "note": "x"},
]


class TestExport:

    def test_csv(self, client):
        resp = client.post("/export?format=csv", json={"data": RESULTS})
        assert resp.status_code == 200
        assert "sms_screening_results.csv" in resp.headers["content-disposition"]
        results = read_results_csv(resp.content.decode("utf-8-sig"))
        assert [r.to_dict() for r in results] == RESULTS

    def test_xlsx(self, client):
        resp = client.post("/export?format=xlsx", json={"data": RESULTS})
        assert resp.status_code == 200
        wb = load_workbook(io.BytesIO(resp.content))
        rows = list(wb.worksheets[0].iter_rows(values_only=True))
        assert rows[1] == tuple(RESULTS[0].values())

    def test_unknown_format(self, client):
        resp = client.post("/export?format=pdf", json={"data": RESULTS})
        assert resp.status_code == 400


class TestHealth:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["backend"] == "gemini"
        assert body["model"] == "gemini-2.5-flash"
