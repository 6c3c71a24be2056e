import logging
import uuid
from typing import Annotated, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from signal_journal.app.config import Settings
from signal_journal.app.coordinator.verification import VerificationCoordinator
from signal_journal.app.crypto.ecdsa import validate_public_key, verify_signature
from signal_journal.app.errors import CodecError, DocumentNotFoundError, InputError
from signal_journal.app.qr.payload import build_minimal_qr_payload, build_verification_url
from signal_journal.app.schemas.requests import (
    QrPayloadResponse,
    QrVerificationRequest,
    SignatureCheckRequest,
    SignatureCheckResponse,
)
from signal_journal.app.schemas.verdict import VerificationVerdict
from signal_journal.app.services.signing import SigningService
from signal_journal.app.storage.base import DocumentStore, validate_journal_id

logger = logging.getLogger("signal_journal.api")

router = APIRouter(tags=["Journal Signatures"])

PDF_MEDIA_TYPE = "application/pdf"
SIGNABLE_MEDIA_TYPES = {PDF_MEDIA_TYPE, "text/plain"}

# =============================================================================
# Dependency providers
# =============================================================================

def get_correlation_id(
    x_correlation_id: Annotated[
        Optional[str],
        Header(description="Request trace ID"),
    ] = None,
) -> str:
    """Extract or generate a correlation ID for end-to-end traceability."""
    if x_correlation_id and len(x_correlation_id) > 128:
        return str(uuid.uuid4())
    return x_correlation_id or str(uuid.uuid4())


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise RuntimeError("settings not initialized")
    return settings


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_signing_service(request: Request) -> SigningService:
    return request.app.state.signing_service


def get_coordinator(request: Request) -> VerificationCoordinator:
    return request.app.state.coordinator


# =============================================================================
# Helpers
# =============================================================================

async def _bounded_read(
    file: UploadFile,
    *,
    max_bytes: int,
    max_mb: int,
    correlation_id: str,
) -> bytes:
    try:
        data = await file.read(max_bytes + 1)
    finally:
        await file.close()

    if not data:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Empty file payload.",
            headers={"X-Correlation-ID": correlation_id},
        )

    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {max_mb}MB limit.",
            headers={"X-Correlation-ID": correlation_id},
        )
    return data


def _media_type(file: UploadFile) -> str:
    return (file.content_type or "").split(";")[0].strip().lower()


# =============================================================================
# POST /sign
# =============================================================================

@router.post(
    "/sign",
    summary="Embed a client-produced ECDSA signature into a journal PDF",
    response_class=Response,
    responses={
        200: {
            "content": {PDF_MEDIA_TYPE: {}},
            "description": "Signed PDF with embedded signature metadata",
        },
        400: {"description": "Rejected input"},
        413: {"description": "Payload too large"},
        415: {"description": "Unsupported media type"},
        422: {"description": "Unreadable PDF input"},
        500: {"description": "Signing failure"},
    },
)
async def sign_journal(
    settings: Annotated[Settings, Depends(get_app_settings)],
    service: Annotated[SigningService, Depends(get_signing_service)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    signature: Annotated[str, Form(min_length=1)],
    public_key: Annotated[str, Form(min_length=1)],
    file: Annotated[
        Optional[UploadFile],
        File(description="PDF or plain-text journal to sign"),
    ] = None,
    text: Annotated[Optional[str], Form(description="Journal text to sign")] = None,
    author: Annotated[str, Form()] = "Unknown",
    perihal: Annotated[str, Form()] = "Digital Signature",
    journal_id: Annotated[Optional[str], Form()] = None,
) -> Response:
    """
    Sign a journal.

    Exactly one of ``file`` or ``text`` must be provided. The signature
    must have been produced over exactly those bytes.
    """
    if (file is None) == (text is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide exactly one of 'file' or 'text'.",
            headers={"X-Correlation-ID": correlation_id},
        )

    if file is not None:
        if _media_type(file) not in SIGNABLE_MEDIA_TYPES:
            logger.warning(
                "invalid_media_type",
                extra={
                    "content_type": file.content_type,
                    "trace_id": correlation_id,
                },
            )
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail="Only PDF and plain-text files are accepted.",
                headers={"X-Correlation-ID": correlation_id},
            )

        content = await _bounded_read(
            file,
            max_bytes=settings.max_content_bytes,
            max_mb=settings.max_content_size_mb,
            correlation_id=correlation_id,
        )
    else:
        content = text
        if len(text.encode("utf-8")) > settings.max_content_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Text exceeds the {settings.max_content_size_mb}MB limit.",
                headers={"X-Correlation-ID": correlation_id},
            )

    try:
        signed = await run_in_threadpool(
            service.sign_document,
            content,
            signature=signature,
            public_key=public_key,
            author=author,
            perihal=perihal,
            journal_id=journal_id or None,
        )

    except InputError as exc:
        logger.info(
            "sign_input_rejected",
            extra={"trace_id": correlation_id, "reason": str(exc)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
            headers={"X-Correlation-ID": correlation_id},
        ) from exc

    except CodecError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Uploaded PDF could not be parsed.",
            headers={"X-Correlation-ID": correlation_id},
        ) from exc

    except Exception as exc:
        logger.exception(
            "signing_pipeline_failure",
            extra={
                "trace_id": correlation_id,
                "error_type": type(exc).__name__,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Signing failed.",
            headers={"X-Correlation-ID": correlation_id},
        ) from exc

    return Response(
        content=signed.pdf_bytes,
        media_type=PDF_MEDIA_TYPE,
        headers={
            "Content-Disposition": (
                f'attachment; filename="signed-{signed.journal_id}.pdf"'
            ),
            "X-Correlation-ID": correlation_id,
            "X-Content-Hash": signed.content_hash,
            "X-Journal-Id": signed.journal_id,
        },
    )


# =============================================================================
# POST /verify
# =============================================================================

@router.post(
    "/verify",
    summary="Verify the signature embedded in a PDF",
    response_model=VerificationVerdict,
    responses={
        413: {"description": "Payload too large"},
        415: {"description": "Unsupported media type"},
        422: {"description": "Empty upload"},
    },
)
async def verify_pdf(
    settings: Annotated[Settings, Depends(get_app_settings)],
    coordinator: Annotated[VerificationCoordinator, Depends(get_coordinator)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    file: Annotated[UploadFile, File(description="Signed PDF to verify")],
) -> VerificationVerdict:
    """
    Unreadable PDFs are reported as a ``malformed`` verdict, not an error.
    """
    if _media_type(file) != PDF_MEDIA_TYPE:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only 'application/pdf' files are accepted.",
            headers={"X-Correlation-ID": correlation_id},
        )

    pdf_bytes = await _bounded_read(
        file,
        max_bytes=settings.max_content_bytes,
        max_mb=settings.max_content_size_mb,
        correlation_id=correlation_id,
    )

    try:
        return await run_in_threadpool(coordinator.verify_pdf, pdf_bytes)
    except Exception as exc:
        logger.exception(
            "verification_pipeline_failure",
            extra={"trace_id": correlation_id, "error_type": type(exc).__name__},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Verification failed.",
            headers={"X-Correlation-ID": correlation_id},
        ) from exc


# =============================================================================
# POST /verify/qr
# =============================================================================

@router.post(
    "/verify/qr",
    summary="Verify a stored journal referenced by a scanned QR payload",
    response_model=VerificationVerdict,
    responses={
        400: {"description": "Invalid journal reference"},
        404: {"description": "Journal not found"},
    },
)
async def verify_qr(
    body: QrVerificationRequest,
    coordinator: Annotated[VerificationCoordinator, Depends(get_coordinator)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
) -> VerificationVerdict:
    try:
        return await run_in_threadpool(coordinator.verify_qr, body.qr_data)

    except DocumentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Journal not found.",
            headers={"X-Correlation-ID": correlation_id},
        ) from exc

    except InputError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
            headers={"X-Correlation-ID": correlation_id},
        ) from exc

    except Exception as exc:
        logger.exception(
            "verification_pipeline_failure",
            extra={"trace_id": correlation_id, "error_type": type(exc).__name__},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Verification failed.",
            headers={"X-Correlation-ID": correlation_id},
        ) from exc


# =============================================================================
# POST /verify/signature
# =============================================================================

@router.post(
    "/verify/signature",
    summary="Check a signature over supplied content",
    response_model=SignatureCheckResponse,
)
async def verify_raw_signature(body: SignatureCheckRequest) -> SignatureCheckResponse:
    """Fail-closed: malformed input yields ``valid: false``."""
    return SignatureCheckResponse(
        valid=verify_signature(
            body.content,
            body.signature,
            body.public_key,
            is_base64=body.is_base64,
        ),
        public_key_valid=validate_public_key(body.public_key),
    )


# =============================================================================
# GET /qr/{journal_id}
# =============================================================================

@router.get(
    "/qr/{journal_id}",
    summary="Verification QR payloads for a stored journal",
    response_model=QrPayloadResponse,
    responses={
        400: {"description": "Invalid journal id"},
        404: {"description": "Journal not found"},
    },
)
async def qr_payload(
    journal_id: str,
    settings: Annotated[Settings, Depends(get_app_settings)],
    store: Annotated[DocumentStore, Depends(get_store)],
) -> QrPayloadResponse:
    try:
        validate_journal_id(journal_id)
        packet = store.load_packet(journal_id)
    except InputError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except DocumentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Journal not found.",
        ) from exc
    except CodecError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Stored signature metadata is unreadable.",
        ) from exc

    content_hash = packet.original_hash if packet is not None else None
    title = packet.perihal if packet is not None else ""

    return QrPayloadResponse(
        journal_id=journal_id,
        verification_url=build_verification_url(journal_id, base_url=settings.base_url),
        minimal_payload=build_minimal_qr_payload(
            journal_id,
            content_hash=content_hash,
            title=title,
        ),
        content_hash=content_hash,
    )
