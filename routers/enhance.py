from typing import Optional

from fastapi import APIRouter, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from core import config
from core.config import logger
from models.options import parse_options
from utils import storage
from utils.encoder import content_type, normalize_format
from utils.errors import EnhanceError, ErrorKind
from utils.pipeline import enhance
from utils.rate_limit import check_processing_rate_limit, validate_file_size

router = APIRouter(prefix="/api", tags=["enhance"])


def _error_response(err: EnhanceError) -> JSONResponse:
    return JSONResponse(err.to_dict(), status_code=err.kind.http_status())


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/upload")
async def upload(
    request: Request,
    file: Optional[UploadFile] = File(None),
    options: Optional[str] = Form(None),
):
    """
    Enhance one uploaded photo.
    Multipart fields: ``file`` (image bytes) and ``options`` (JSON toggles).
    """
    allowed, rate_err = check_processing_rate_limit(_client_key(request))
    if not allowed:
        return JSONResponse({"error": rate_err}, status_code=429)

    data = await file.read() if file is not None else b""
    if not data:
        logger.warning("[enhance] Missing or empty 'file' field")
        return JSONResponse({"error": "Missing or empty 'file' field"}, status_code=400)
    filename = (file.filename or "") if file is not None else ""
    valid, size_err = validate_file_size(len(data), filename)
    if not valid:
        return JSONResponse({"error": size_err}, status_code=400)

    try:
        opts = parse_options(options)
    except EnhanceError as e:
        logger.warning(f"[enhance] {e.message}")
        return _error_response(e)

    request_id = storage.new_request_id()
    try:
        in_path = await run_in_threadpool(storage.save_upload, request_id, filename, data)
    except OSError as ex:
        logger.error(f"[enhance] Failed to store upload {request_id}: {ex}")
        storage.remove_request_dir(request_id)
        return JSONResponse({"error": "Failed to store upload"}, status_code=500)

    out_path = storage.output_path(request_id, opts.output_format)
    logger.info(f"[enhance] {request_id}: {filename or 'image'} ({len(data)} bytes) options={opts.model_dump(by_alias=True)}")
    try:
        result = await run_in_threadpool(enhance, in_path, out_path, opts)
    finally:
        if not config.KEEP_UPLOADED_INPUT:
            storage.remove_file(in_path)

    if not result.ok:
        if not config.KEEP_UPLOADED_INPUT:
            await run_in_threadpool(storage.remove_request_dir, request_id)
        return _error_response(result.to_error())

    return {
        "processedImageUrl": f"/api/processed?id={request_id}&format={opts.output_format}",
        "requestId": request_id,
        "format": opts.output_format,
        "width": result.width,
        "height": result.height,
    }


@router.get("/processed")
async def processed(
    fmt_raw: str = Query("png", alias="format"),
    request_id: Optional[str] = Query(None, alias="id"),
):
    """Serve a previously produced artifact as an attachment."""
    try:
        fmt = normalize_format(fmt_raw)
    except ValueError:
        return JSONResponse({"error": f"Unsupported format: {fmt_raw}"}, status_code=400)

    data = await run_in_threadpool(storage.read_artifact, request_id, fmt)
    if data is None:
        return JSONResponse({"error": "not found", "error_code": ErrorKind.NOT_FOUND.value}, status_code=404)

    headers = {"Content-Disposition": f'attachment; filename="{storage.suggested_filename(fmt)}"'}
    return Response(content=data, media_type=content_type(fmt), headers=headers)
