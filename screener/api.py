"""
screener/api.py
─────────────────────────────────────────────────────────────────────────────
SMS Screener — service class + FastAPI HTTP layer

TWO USAGE MODES:
  1. Importable module:
         from screener.api import ScreenerService
         service = ScreenerService(classifier=my_adapter)
         results = service.process_upload(data, "messages.xlsx")

  2. FastAPI HTTP server (upload UI via fetch()):
         python -m screener.api                   # default: port 8765
         python -m screener.api --port 9000
         uvicorn screener.api:app --port 8765

ENDPOINTS:
  POST /upload-and-read   — parse + validate an upload, return sender/text rows
  POST /process-one       — classify one {sender, text} row
  POST /process           — parse + classify a whole upload
  POST /export            — ResultRecords → CSV / XLSX download
  GET  /health            — backend / model / version

ERRORS:
  Upload and field problems → 400 {"message": ...}
  Anything unexpected       → 500 {"message": ..., "error": ...}
  Remote classifier failures never surface here — they become
  'API Failure' rows.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from screener import __version__
from screener.config import DEFAULT_MODELS, ClassifierConfig, build_classifier, load_config
from screener.errors import (
    MissingColumns,
    MissingFields,
    ParseError,
    ScreenerError,
    UnsupportedFormat,
)
from screener.llm.base import ClassifierAdapter
from screener.models.record import InputRecord, ResultRecord
from screener.normalizer import normalize_records, validate_fields
from screener.parsers.table_parser import parse_table
from screener.pipeline import ProgressCallback, classify_record, run_batch, summarize
from screener.report_export import EXPORT_FILENAMES, EXPORT_MEDIA_TYPES, export_bytes

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

CLIENT_ERRORS = (UnsupportedFormat, ParseError, MissingColumns, MissingFields)


# ═══════════════════════════════════════════════════════════════════════════
# IMPORTABLE CLASS
# ═══════════════════════════════════════════════════════════════════════════

class ScreenerService:
    """
    Pure-Python entry points — no HTTP layer required.
    The classifier is built from config on first use unless one is injected.
    """

    def __init__(
        self,
        classifier: Optional[ClassifierAdapter] = None,
        config:     Optional[Dict[str, Any]]    = None,
        workers:    Optional[int]               = None,
    ):
        self.config      = config if config is not None else load_config()
        self._classifier = classifier
        self.workers     = int(workers if workers is not None else self.config.get("workers", 1))

    @property
    def classifier(self) -> ClassifierAdapter:
        if self._classifier is None:
            self._classifier = build_classifier(ClassifierConfig.from_dict(self.config))
        return self._classifier

    def read_upload(self, data: bytes, filename: str) -> List[InputRecord]:
        """Parse and validate an upload. Raises before any classification."""
        return normalize_records(parse_table(data, filename))

    def classify_one(self, payload: Any) -> ResultRecord:
        return classify_record(validate_fields(payload), self.classifier)

    def process_upload(
        self,
        data:        bytes,
        filename:    str,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> List[ResultRecord]:
        records = self.read_upload(data, filename)
        logger.info(f"Batch started | file={Path(filename).name} | rows={len(records)}")
        results = run_batch(records, self.classifier, progress_cb=progress_cb, workers=self.workers)
        summary = summarize(results)
        logger.info(f"Batch complete: cases={summary.by_case}")
        return results


# ═══════════════════════════════════════════════════════════════════════════
# FASTAPI HTTP APP
# ═══════════════════════════════════════════════════════════════════════════

class ResultItem(BaseModel):
    sender:   str
    text:     str
    case:     str
    category: str
    note:     str


class ExportRequest(BaseModel):
    data: List[ResultItem]


def _read_upload_file(file: Optional[UploadFile]) -> bytes:
    if file is None or not file.filename:
        raise _RequestError(400, "No file uploaded.")
    data = file.file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise _RequestError(413, f"Upload exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit.")
    return data


class _RequestError(Exception):

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message     = message
        super().__init__(message)


def build_app(service: Optional[ScreenerService] = None) -> FastAPI:
    """Build the FastAPI application around a ScreenerService."""
    _service = service or ScreenerService()

    _app = FastAPI(
        title       = "SMS Screener API",
        description = "Bulk SMS spam / scam screening — keyword pre-filter + LLM classifier",
        version     = __version__,
        docs_url    = "/docs",
        redoc_url   = None,
    )

    _app.add_middleware(
        CORSMiddleware,
        allow_origins     = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
        allow_methods     = ["GET", "POST", "OPTIONS"],
        allow_headers     = ["Content-Type"],
        allow_credentials = False,
    )

    # ── ERROR MAPPING ───────────────────────────────────────────────────

    @_app.exception_handler(_RequestError)
    async def _request_error(request: Request, exc: _RequestError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @_app.exception_handler(ScreenerError)
    async def _screener_error(request: Request, exc: ScreenerError):
        if isinstance(exc, CLIENT_ERRORS):
            return JSONResponse(status_code=400, content={"message": str(exc)})
        logger.error(f"{request.url.path} failed: {exc}", exc_info=True)
        return JSONResponse(
            status_code = 500,
            content     = {"message": "Internal Server Error during processing.", "error": str(exc)},
        )

    # ── ENDPOINTS ───────────────────────────────────────────────────────

    @_app.post("/upload-and-read", summary="Parse and validate an upload")
    def upload_and_read(file: Optional[UploadFile] = File(None)):
        data    = _read_upload_file(file)
        records = _service.read_upload(data, file.filename)
        return {
            "message": "File read successfully",
            "data":    [{"sender": r.sender, "text": r.text} for r in records],
        }

    @_app.post("/process-one", summary="Classify one message")
    def process_one(payload: Any = Body(None)):
        result = _service.classify_one(payload)
        return {"message": "Processing complete for one row", "data": result.to_dict()}

    @_app.post("/process", summary="Classify every row of an upload")
    def process(file: Optional[UploadFile] = File(None)):
        data = _read_upload_file(file)
        try:
            results = _service.process_upload(data, file.filename)
        except (ScreenerError, _RequestError):
            raise
        except Exception as exc:
            logger.error(f"Process endpoint error: {exc}", exc_info=True)
            return JSONResponse(
                status_code = 500,
                content     = {"message": "Internal Server Error during processing.", "error": str(exc)},
            )
        return {"message": "Processing complete", "data": [r.to_dict() for r in results]}

    @_app.post("/export", summary="Download results as CSV or XLSX")
    def export(req: ExportRequest, fmt: str = Query("csv", alias="format")):
        fmt = fmt.lower()
        if fmt not in EXPORT_FILENAMES:
            raise _RequestError(400, f"Unknown export format {fmt!r}. Use csv or xlsx.")
        results = [ResultRecord(**item.model_dump()) for item in req.data]
        return Response(
            content    = export_bytes(results, fmt),
            media_type = EXPORT_MEDIA_TYPES[fmt],
            headers    = {"Content-Disposition": f'attachment; filename="{EXPORT_FILENAMES[fmt]}"'},
        )

    @_app.get("/health", summary="Health check")
    def health():
        return {
            "status":  "ok",
            "backend": _service.config.get("backend"),
            "model":   _service.config.get("model") or DEFAULT_MODELS.get(_service.config.get("backend")),
            "workers": _service.workers,
            "version": __version__,
        }

    return _app


# Module-level app — used by `uvicorn screener.api:app`.
# The classifier is only built on the first classification request.
app = build_app()


# ═══════════════════════════════════════════════════════════════════════════
# CLI ENTRYPOINT — python -m screener.api / screener-api
# ═══════════════════════════════════════════════════════════════════════════

def main():
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(
        prog        = "screener-api",
        description = "SMS Screener API server",
    )
    parser.add_argument("--port", type=int, default=8765,
                        help="Port to bind (default: 8765)")
    parser.add_argument("--host", type=str, default="127.0.0.1",
                        help="Host to bind (default: 127.0.0.1)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level   = logging.DEBUG if args.verbose else logging.INFO,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    uvicorn.run(
        build_app(),
        host      = args.host,
        port      = args.port,
        log_level = "debug" if args.verbose else "info",
    )


if __name__ == "__main__":
    main()
