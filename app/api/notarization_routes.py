from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, UploadFile, status
from typing import Any, Dict, List, Optional
import json
import logging

from pydantic import ValidationError as PydanticValidationError

from app.core.auth_dependencies import get_current_active_user, require_roles
from app.core.errors import ValidationError
from app.core.idempotency import get_idempotency_store
from app.core.service_dependencies import get_notarization_service
from app.helpers.response_builder import build_document_response, build_signature_response
from app.schemas.notarization_schema import (
    ApproveSignatureByNotaryRequest,
    ForwardStatusRequest,
    NotarizationFieldInfo,
    NotarizationServiceInfo,
    PaginatedResponse,
    RequesterInfo,
    UploadedFile,
)
from app.services.notarization_service import NotarizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notarization", tags=["Notarization"])


def _parse_json(raw: Optional[str], field: str, default=None):
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing error in {field}: {e}")
        raise ValidationError(f"Invalid JSON format in {field}: {str(e)}")


def _parse_model(model, raw: Optional[str], field: str):
    data = _parse_json(raw, field)
    if data is None:
        raise ValidationError(f"{field} is required")
    try:
        return model(**data)
    except (PydanticValidationError, TypeError) as e:
        raise ValidationError(f"Invalid {field}: {str(e)}")


async def _read_uploads(files: Optional[List[UploadFile]]) -> List[UploadedFile]:
    uploads = []
    for f in files or []:
        if f is None or not f.filename:
            continue
        uploads.append(UploadedFile(filename=f.filename, content=await f.read(), content_type=f.content_type))
    return uploads


# Creates a notarization request with the uploaded original documents
@router.post("/upload-files", status_code=status.HTTP_201_CREATED)
async def upload_files(
    requesterInfo: str = Form(...),
    notarizationField: str = Form(...),
    notarizationService: str = Form(...),
    amount: int = Form(1),
    fileIds: Optional[str] = Form(None),
    customFileNames: Optional[str] = Form(None),
    files: List[UploadFile] = File(...),
    current_user: Dict = Depends(get_current_active_user),
    service: NotarizationService = Depends(get_notarization_service),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    store = get_idempotency_store()
    if idempotency_key:
        prev = await store.get(f"upload:{current_user['id']}:{idempotency_key}")
        if prev:
            logger.info("Returning stored response for repeated upload")
            return prev

    requester = _parse_model(RequesterInfo, requesterInfo, "requesterInfo")
    field = _parse_model(NotarizationFieldInfo, notarizationField, "notarizationField")
    service_info = _parse_model(NotarizationServiceInfo, notarizationService, "notarizationService")

    document = await service.create_document(
        requester,
        await _read_uploads(files),
        _parse_json(fileIds, "fileIds", []),
        _parse_json(customFileNames, "customFileNames", []),
        current_user["id"],
        notarization_field=field.model_dump(by_alias=False),
        notarization_service=service_info.model_dump(by_alias=False),
        amount=amount,
    )
    response = build_document_response(document)

    if idempotency_key:
        await store.set(f"upload:{current_user['id']}:{idempotency_key}", response, ttl_seconds=24 * 3600)

    return response


# Lists the caller's own notarization requests
@router.get("/history")
async def get_history(
    current_user: Dict = Depends(get_current_active_user),
    service: NotarizationService = Depends(get_notarization_service),
):
    return await service.get_history_by_user_id(current_user["id"])


# Lists the notarization requests of a given user (staff only)
@router.get("/get-history-by-user-id/{user_id}")
async def get_history_by_user_id(
    user_id: str,
    current_user: Dict = Depends(require_roles("secretary", "notary", "admin")),
    service: NotarizationService = Depends(get_notarization_service),
):
    return await service.get_history_by_user_id(user_id)


# Lists documents relevant to the caller together with their status history
@router.get("/get-history-with-status")
async def get_history_with_status(
    current_user: Dict = Depends(get_current_active_user),
    service: NotarizationService = Depends(get_notarization_service),
):
    return await service.get_history_with_status(current_user["id"], current_user["role"])


# Returns the current status of a document and its latest tracking row
@router.get("/getStatusById/{document_id}")
async def get_status_by_id(
    document_id: str,
    current_user: Dict = Depends(get_current_active_user),
    service: NotarizationService = Depends(get_notarization_service),
):
    return await service.get_document_status(document_id)


# Paginated work queue for the caller's role
@router.get("/getDocumentByRole", response_model=PaginatedResponse)
async def get_document_by_role(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: Dict = Depends(require_roles("secretary", "notary", "admin")),
    service: NotarizationService = Depends(get_notarization_service),
):
    return await service.get_document_by_role(current_user["role"], status_filter, page, limit)


# Moves a document through the workflow; notaries may attach output files
@router.patch("/forwardDocumentStatus/{document_id}")
async def forward_document_status(
    document_id: str,
    action: str = Form(...),
    feedback: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    current_user: Dict = Depends(get_current_active_user),
    service: NotarizationService = Depends(get_notarization_service),
):
    try:
        request = ForwardStatusRequest(action=action, feedback=feedback)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid action: {str(e)}")

    document = await service.forward_document_status(
        document_id,
        request.action.value,
        current_user["role"],
        current_user["id"],
        feedback=request.feedback,
        output_files=await _read_uploads(files),
    )
    return build_document_response(document)


# Paginated list of every notarization request (admin)
@router.get("/getAllNotarization", response_model=PaginatedResponse)
async def get_all_notarizations(
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: Dict = Depends(require_roles("admin")),
    service: NotarizationService = Depends(get_notarization_service),
):
    return await service.get_all_notarizations(sort_by, page, limit)


# Documents the calling staff member has acted on
@router.get("/getApproveHistory")
async def get_approve_history(
    current_user: Dict = Depends(require_roles("secretary", "notary", "admin")),
    service: NotarizationService = Depends(get_notarization_service),
):
    return await service.get_approve_history(current_user["id"])


# Requester signs the document by uploading a signature image
@router.post("/approve-signature-by-user", status_code=status.HTTP_201_CREATED)
async def approve_signature_by_user(
    documentId: str = Form(...),
    signatureImage: UploadFile = File(...),
    current_user: Dict = Depends(get_current_active_user),
    service: NotarizationService = Depends(get_notarization_service),
):
    uploads = await _read_uploads([signatureImage])
    if not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A signature image is required")
    signature = await service.approve_signature_by_user(documentId, uploads[0], current_user["id"])
    return build_signature_response(signature)


# Notary countersigns the document
@router.post("/approve-signature-by-notary")
async def approve_signature_by_notary(
    request: ApproveSignatureByNotaryRequest,
    current_user: Dict = Depends(require_roles("notary")),
    service: NotarizationService = Depends(get_notarization_service),
):
    signature = await service.approve_signature_by_notary(request.document_id, current_user["id"])
    return build_signature_response(signature)


# Returns a document with fresh signed URLs for its files
@router.get("/document/{document_id}")
async def get_document_by_id(
    document_id: str,
    current_user: Dict = Depends(get_current_active_user),
    service: NotarizationService = Depends(get_notarization_service),
) -> Dict[str, Any]:
    return await service.get_document_by_id(document_id)
