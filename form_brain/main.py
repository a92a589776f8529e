"""FastAPI form brain service: extraction pipeline plus the receipt ledger.

Inference is delegated to Gemini; everything else (classification,
parsing, normalization, validation, scoring, storage) runs here on CPU.
Images are processed in memory and never logged or written to disk.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse

from form_brain.classifier import classify
from form_brain.config import settings
from form_brain.export import iter_csv
from form_brain.extraction import process_image
from form_brain.gemini_client import GeminiClient
from form_brain.models import FORM_TYPE_LABELS, DeleteRequest, ExtractionResult, FormType, Receipt, ReceiptCreate
from form_brain.storage import ReceiptStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"

_client: GeminiClient | None = None
_store: ReceiptStore | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the receipt store and, if an API key is set, the Gemini client."""
    global _client, _store

    _store = ReceiptStore(settings.STORAGE_DIR)
    logger.info("Receipt store at %s", _store.directory)

    if not settings.GEMINI_API_KEY:
        logger.info("Gemini not configured (GEMINI_API_KEY is empty), AI extraction disabled")
    else:
        _client = GeminiClient()
        logger.info("Gemini client ready, model candidates: %s", ", ".join(_client.models))

    yield

    if _client is not None:
        _client.close()
        _client = None


app = FastAPI(title="Form Brain", version="1.0.0", lifespan=lifespan)


def get_client() -> GeminiClient:
    if _client is None or not _client.configured:
        raise HTTPException(
            status_code=503,
            detail="AI document extraction is not available - no Gemini API key configured",
        )
    return _client


def get_store() -> ReceiptStore:
    if _store is None:
        raise HTTPException(status_code=503, detail="Receipt store is not open")
    return _store


def _parse_form_type(value: str | None) -> FormType | None:
    if not value:
        return None
    try:
        return FormType(value)
    except ValueError:
        allowed = ", ".join(ft.value for ft in FormType)
        raise HTTPException(status_code=400, detail=f"Unknown form_type '{value}' (expected one of: {allowed})") from None


async def _read_image(file: UploadFile) -> bytes:
    image = await file.read()
    if not image:
        raise HTTPException(status_code=400, detail="Empty file uploaded")
    return image


@app.post("/api/v1/extract", response_model=ExtractionResult)
async def extract(
    file: UploadFile = File(...),
    form_type: str | None = Form(None),
    client: GeminiClient = Depends(get_client),
):
    """Extract structured fields from a form image.

    *form_type* forces a layout and skips classification.
    """
    chosen = _parse_form_type(form_type)
    image = await _read_image(file)
    mime_type = file.content_type or DEFAULT_MIME_TYPE

    # Byte count only, never image content
    logger.info("Processing extraction: form_type=%s type=%s size=%d bytes", form_type, mime_type, len(image))

    return await run_in_threadpool(process_image, image, mime_type, client, chosen)


@app.post("/api/v1/classify")
async def classify_form(
    file: UploadFile = File(...),
    client: GeminiClient = Depends(get_client),
):
    image = await _read_image(file)
    form_type = await run_in_threadpool(classify, image, file.content_type or DEFAULT_MIME_TYPE, client)
    return {"form_type": form_type.value}


@app.get("/api/v1/form-types")
async def form_types():
    return [{"value": ft.value, "label": FORM_TYPE_LABELS[ft]} for ft in FormType]


@app.get("/api/v1/receipts", response_model=list[Receipt])
def list_receipts(
    form_type: str | None = None,
    q: str | None = None,
    store: ReceiptStore = Depends(get_store),
):
    receipts = store.search(q) if q else store.list()
    chosen = _parse_form_type(form_type)
    if chosen is not None:
        receipts = [r for r in receipts if r.form_type == chosen]
    return receipts


@app.post("/api/v1/receipts", response_model=Receipt, status_code=201)
def create_receipt(body: ReceiptCreate, store: ReceiptStore = Depends(get_store)):
    return store.save(body.to_receipt())


@app.post("/api/v1/receipts/delete")
def delete_receipts(body: DeleteRequest, store: ReceiptStore = Depends(get_store)):
    return {"deleted": store.delete_many(body.ids)}


@app.get("/api/v1/receipts/export.csv")
def export_receipts(
    ids: list[str] | None = Query(None),
    store: ReceiptStore = Depends(get_store),
):
    receipts = store.list()
    if ids:
        wanted = set(ids)
        receipts = [r for r in receipts if r.id in wanted]
    if not receipts:
        return JSONResponse(status_code=404, content={"detail": "No receipts to export"})
    return StreamingResponse(
        iter_csv(receipts),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="receipts.csv"'},
    )


@app.get("/health")
async def health():
    """Return service status, Gemini availability and store statistics."""
    available = _client is not None and _client.configured
    base = {
        "status": "healthy",
        "inference_available": available,
    }

    if available:
        base["gemini_health"] = _client.health()
    if _store is not None:
        base["store"] = _store.stats()

    return base


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
