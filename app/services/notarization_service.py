"""
Notarization workflow engine.

Owns the document status state machine. Every status change is a
compare-and-swap on the document's current status followed by a
StatusTracking insert; if the insert fails the swap is reverted so a document
never changes status without a matching history row.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from app.clients import Collaborators
from app.core.config import settings
from app.core.errors import (
    ConflictError,
    ExternalServiceError,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.database.models import NotarizationDocument, Payment, RequestSignature
from app.database.models.document_model import OutputFile, StoredFile
from app.helpers.response_builder import (
    build_document_response,
    build_paginated_response,
    build_tracking_response,
    page_bounds,
)
from app.schemas.notarization_schema import ActionEnum, DocumentStatusEnum, RequesterInfo, UploadedFile
from app.schemas.payment_schema import PaymentStatusEnum
from app.schemas.user_schemas import RoleEnum
from app.services.status_tracking_service import StatusTrackingService, status_tracking_service
from app.services.transition_table import (
    CO_SIGNATURE_REQUIRED,
    INTERMEDIATE_STATES,
    ROLE_VISIBLE_STATUSES,
    is_terminal,
    next_status,
)
from app.utils.notarization_utils import (
    IMAGE_TYPES,
    convert_requester_info,
    document_payment_amount,
    is_valid_email,
    to_object_id,
    validate_upload,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("created_at", "updated_at", "status", "amount")


class NotarizationService:
    def __init__(self, collaborators: Collaborators, payment_service=None, tracking: StatusTrackingService = status_tracking_service):
        self.files = collaborators.files
        self.storage = collaborators.storage
        self.email = collaborators.email
        self.payments = payment_service
        self.tracking = tracking

    async def create_document(
        self,
        requester_info: RequesterInfo,
        files: List[UploadedFile],
        file_ids: Optional[List[str]],
        custom_file_names: Optional[List[str]],
        user_id: str,
        notarization_field: Optional[Dict[str, Any]] = None,
        notarization_service: Optional[Dict[str, Any]] = None,
        amount: int = 1,
    ) -> NotarizationDocument:
        if not is_valid_email(requester_info.email):
            raise ValidationError("Invalid email address")
        for label, value in (
            ("fullName", requester_info.full_name),
            ("citizenId", requester_info.citizen_id),
            ("phoneNumber", requester_info.phone_number),
        ):
            if not value or not str(value).strip():
                raise ValidationError(f"requesterInfo.{label} is required")
        if not notarization_service or not notarization_service.get("name"):
            raise ValidationError("notarizationService is required")
        if not notarization_field or not notarization_field.get("name"):
            raise ValidationError("notarizationField is required")
        if amount is None or amount <= 0:
            raise ValidationError("amount must be a positive integer")
        if not files:
            raise ValidationError("At least one file is required")

        content_types = [validate_upload(f.filename, f.content_type, f.content) for f in files]

        stored: List[StoredFile] = []
        try:
            for idx, (upload, content_type) in enumerate(zip(files, content_types)):
                ext = os.path.splitext(upload.filename)[1].lower()
                path = f"{user_id}/{uuid.uuid4()}{ext}"
                await self.files.upload(upload.content, path, content_type)
                stored.append(StoredFile(
                    filename=upload.filename,
                    custom_name=custom_file_names[idx] if custom_file_names and idx < len(custom_file_names) else None,
                    file_id=file_ids[idx] if file_ids and idx < len(file_ids) else None,
                    storage_path=path,
                    content_type=content_type,
                    size=len(upload.content),
                ))

            document = NotarizationDocument(
                user_id=user_id,
                requester_info=convert_requester_info(requester_info),
                notarization_field=notarization_field,
                notarization_service=notarization_service,
                amount=amount,
                files=stored,
            )
            await document.insert()
        except Exception:
            await self._cleanup_uploaded_files([s.storage_path for s in stored])
            raise

        try:
            await self.tracking.record(
                document_id=str(document.id),
                status=DocumentStatusEnum.pending.value,
                actor_id=user_id,
                actor_role=RoleEnum.user.value,
            )
        except Exception as e:
            # no document may exist without its initial tracking row
            await document.delete()
            await self._cleanup_uploaded_files([s.storage_path for s in stored])
            raise InternalError(f"Failed to record initial status: {e}") from e

        logger.info(f"Created notarization document {document.id} for user {user_id} with {len(stored)} file(s)")
        return document

    async def _cleanup_uploaded_files(self, paths: List[str]):
        if not paths:
            return
        logger.info(f"Cleaning up {len(paths)} uploaded file(s)")
        for path in paths:
            try:
                await self.files.delete(path)
            except Exception as e:
                logger.error(f"Error cleaning up uploaded file {path}: {str(e)}")

    async def _get_document(self, document_id: str) -> NotarizationDocument:
        document = await NotarizationDocument.get(to_object_id(document_id))
        if not document:
            raise NotFoundError("Document not found")
        return document

    async def _pin_output_file(self, document: NotarizationDocument, upload: UploadedFile) -> OutputFile:
        validate_upload(upload.filename, upload.content_type, upload.content)
        pinned_file = await self.storage.pin(upload.content, upload.filename)
        metadata = {
            "name": upload.filename,
            "symbol": settings.NFT_SYMBOL,
            "description": f"Notarized document {document.id}",
            "image": pinned_file.uri,
            "properties": {
                "files": [{"uri": pinned_file.uri, "type": upload.content_type}],
                "category": "document",
            },
            "attributes": [
                {"trait_type": "document_id", "value": str(document.id)},
                {"trait_type": "service", "value": document.notarization_service.get("name")},
            ],
        }
        pinned_metadata = await self.storage.pin_json(metadata, f"{upload.filename}.json")
        return OutputFile(filename=upload.filename, url=pinned_file.uri, metadata_uri=pinned_metadata.uri)

    async def forward_document_status(
        self,
        document_id: str,
        action: str,
        actor_role: str,
        actor_id: Optional[str],
        feedback: Optional[str] = None,
        output_files: Optional[List[UploadedFile]] = None,
    ) -> NotarizationDocument:
        document = await self._get_document(document_id)
        current = document.status
        action = action.value if isinstance(action, ActionEnum) else action
        actor_role = actor_role.value if isinstance(actor_role, RoleEnum) else actor_role

        if action not in (ActionEnum.accept.value, ActionEnum.reject.value):
            raise InvalidTransitionError(f"Unknown action: {action}")
        if is_terminal(current):
            raise InvalidTransitionError(f"Document is already {current}; no further transitions are allowed")
        if action == ActionEnum.reject.value and not (feedback and feedback.strip()):
            raise InvalidTransitionError("Feedback is required when rejecting a document")
        if output_files and actor_role != RoleEnum.notary.value:
            raise InvalidTransitionError("Only a notary can attach output files")
        if output_files and action != ActionEnum.accept.value:
            raise InvalidTransitionError("Output files can only be attached when accepting a document")

        target = next_status(current, actor_role, action)
        if target is None:
            raise InvalidTransitionError(f"Role '{actor_role}' cannot {action} a document in status '{current}'")

        if actor_role == RoleEnum.user.value and document.user_id != actor_id:
            raise InvalidTransitionError("Only the requester can sign off their own document")

        if action == ActionEnum.accept.value and current in CO_SIGNATURE_REQUIRED:
            signature = await RequestSignature.find_one(RequestSignature.document_id == str(document.id))
            if not signature or not signature.is_co_signed:
                raise InvalidTransitionError("Document must be signed by both the requester and the notary before acceptance")

        # pin before any write
        pinned = [await self._pin_output_file(document, f) for f in (output_files or [])]

        now = datetime.utcnow()
        changes: Dict[str, Any] = {"status": target, "updated_at": now, "stale_flagged_at": None}
        if action == ActionEnum.reject.value:
            changes["feedback"] = feedback.strip()
        update: Dict[str, Any] = {"$set": changes}
        if pinned:
            update["$push"] = {"output_files": {"$each": [f.model_dump() for f in pinned]}}

        collection = NotarizationDocument.get_motor_collection()
        result = await collection.update_one({"_id": document.id, "status": current}, update)
        if result.matched_count == 0:
            logger.warning(f"Lost status race on document {document.id}: expected '{current}'")
            raise ConflictError("Document status changed concurrently; reload and retry")

        try:
            await self.tracking.record(
                document_id=str(document.id),
                status=target,
                actor_id=actor_id,
                actor_role=actor_role,
                feedback=changes.get("feedback"),
                timestamp=now,
            )
        except Exception as e:
            logger.error(f"Reverting document {document.id} to '{current}' after tracking failure: {e}")
            await collection.update_one(
                {"_id": document.id, "status": target},
                {"$set": {
                    "status": current,
                    "feedback": document.feedback,
                    "updated_at": document.updated_at,
                    "stale_flagged_at": document.stale_flagged_at,
                    "output_files": [f.model_dump() for f in document.output_files],
                }},
            )
            raise InternalError("Failed to record status change") from e

        logger.info(f"Document {document.id}: {current} -> {target} by {actor_role} {actor_id}")
        document = await self._get_document(document_id)

        if target == DocumentStatusEnum.accepted.value:
            await self._open_payment(document)
        elif target == DocumentStatusEnum.rejected.value:
            await self._notify_rejection(document)

        return document

    def payment_amount(self, document: NotarizationDocument) -> int:
        return document_payment_amount(document)

    async def _open_payment(self, document: NotarizationDocument):
        if self.payments is None:
            logger.warning(f"No payment service wired; document {document.id} accepted without a payment")
            return

        payment = None
        try:
            payment = await self.payments.create_payment(
                amount=self.payment_amount(document),
                description=f"NOTARY {str(document.id)[-8:]}",
                user_id=document.user_id,
                document_id=str(document.id),
            )
        except ExternalServiceError as e:
            logger.error(f"Checkout link for document {document.id} failed; pending payment kept for retry: {e}")
            payment = await Payment.find(
                Payment.document_id == str(document.id),
                Payment.user_id == document.user_id,
                Payment.amount == self.payment_amount(document),
                Payment.status == PaymentStatusEnum.pending.value,
            ).sort("-created_at").first_or_none()
        except Exception as e:
            logger.error(f"Failed to open payment for document {document.id}: {e}")
            return

        if payment is None:
            return

        await NotarizationDocument.get_motor_collection().update_one(
            {"_id": document.id}, {"$set": {"payment_id": str(payment.id)}}
        )
        document.payment_id = str(payment.id)

        if payment.checkout_url:
            try:
                await self.email.send(document.requester_info.email, "payment_link", {
                    "document_id": str(document.id),
                    "payment_amount": payment.amount,
                    "checkout_url": payment.checkout_url,
                })
            except Exception as e:
                logger.warning(f"Payment link email for document {document.id} not sent: {e}")

    async def _notify_rejection(self, document: NotarizationDocument):
        try:
            await self.email.send(document.requester_info.email, "document_rejected", {
                "document_id": str(document.id),
                "feedback": document.feedback,
            })
        except Exception as e:
            logger.warning(f"Rejection email for document {document.id} not sent: {e}")

    async def _approve(self, document_id: str, party: str, extra: Dict[str, Any]) -> RequestSignature:
        now = datetime.utcnow()
        changes = {
            f"approval_status.{party}.approved": True,
            f"approval_status.{party}.approved_at": now,
            "updated_at": now,
            **extra,
        }
        await RequestSignature.get_motor_collection().update_one(
            {"document_id": document_id},
            {"$set": changes, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )
        signature = await RequestSignature.find_one(RequestSignature.document_id == document_id)
        logger.info(f"Signature approval by {party} recorded for document {document_id} (co-signed={signature.is_co_signed})")
        return signature

    async def approve_signature_by_user(self, document_id: str, signature_image: UploadedFile, actor_id: Optional[str] = None) -> RequestSignature:
        document = await self._get_document(document_id)
        if actor_id is not None and document.user_id != actor_id:
            raise InvalidTransitionError("Only the requester can sign their own document")
        if signature_image is None:
            raise ValidationError("A signature image is required")

        content_type = validate_upload(signature_image.filename, signature_image.content_type, signature_image.content, allowed=IMAGE_TYPES)
        ext = os.path.splitext(signature_image.filename)[1].lower()
        path = await self.files.upload(signature_image.content, f"signatures/{document.id}/{uuid.uuid4()}{ext}", content_type)
        return await self._approve(str(document.id), "user", {"signature_image": path})

    async def approve_signature_by_notary(self, document_id: str, actor_id: str) -> RequestSignature:
        document = await self._get_document(document_id)
        return await self._approve(str(document.id), "notary", {"approval_status.notary.approved_by": actor_id})

    async def get_document_status(self, document_id: str) -> Dict[str, Any]:
        document = await self._get_document(document_id)
        latest = await self.tracking.get_latest(str(document.id))
        return {
            "document_id": str(document.id),
            "status": document.status,
            "updated_at": document.updated_at.isoformat(),
            "last_change": build_tracking_response(latest) if latest else None,
        }

    async def get_document_by_id(self, document_id: str) -> Dict[str, Any]:
        document = await self._get_document(document_id)
        for stored in document.files:
            try:
                stored.url = await self.files.signed_url(stored.storage_path)
            except Exception as e:
                logger.warning(f"Failed to refresh signed URL for {stored.storage_path}: {str(e)}")
        signature = await RequestSignature.find_one(RequestSignature.document_id == str(document.id))
        return build_document_response(document, signature)

    async def get_document_by_role(self, role: str, status: Optional[str] = None, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        visible = ROLE_VISIBLE_STATUSES.get(role)
        if not visible:
            raise ValidationError(f"Role '{role}' has no document queue")
        if status and status not in visible:
            raise ValidationError(f"Role '{role}' cannot list documents in status '{status}'")

        page, limit, skip = page_bounds(page, limit)
        query = {"status": status} if status else {"status": {"$in": list(visible)}}
        total = await NotarizationDocument.find(query).count()
        documents = await NotarizationDocument.find(query).sort("-created_at").skip(skip).limit(limit).to_list()
        return build_paginated_response([build_document_response(d) for d in documents], page, limit, total)

    async def get_history_by_user_id(self, user_id: str) -> List[Dict[str, Any]]:
        documents = await NotarizationDocument.find(NotarizationDocument.user_id == user_id).sort("-created_at").to_list()
        return [build_document_response(d) for d in documents]

    async def get_history_with_status(self, user_id: str, role: str) -> List[Dict[str, Any]]:
        """Documents relevant to the caller, each with its full status history.

        Requesters see their own uploads; staff see what they have acted on.
        """
        if role == RoleEnum.user.value:
            documents = await NotarizationDocument.find(NotarizationDocument.user_id == user_id).sort("-created_at").to_list()
        else:
            ids = await self.tracking.get_document_ids_by_actor(user_id)
            documents = await NotarizationDocument.find({"_id": {"$in": [to_object_id(i) for i in ids]}}).sort("-updated_at").to_list()

        results = []
        for document in documents:
            history = await self.tracking.get_history(str(document.id))
            results.append({
                **build_document_response(document),
                "history": [build_tracking_response(r) for r in history],
            })
        return results

    async def get_approve_history(self, actor_id: str) -> List[Dict[str, Any]]:
        ids = await self.tracking.get_document_ids_by_actor(actor_id)
        if not ids:
            return []
        documents = await NotarizationDocument.find({"_id": {"$in": [to_object_id(i) for i in ids]}}).to_list()
        by_id = {str(d.id): d for d in documents}
        return [build_document_response(by_id[i]) for i in ids if i in by_id]

    async def get_all_notarizations(self, sort_by: Optional[str] = None, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        field, _, direction = (sort_by or "created_at:desc").partition(":")
        if field not in SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort by '{field}'. Allowed: {', '.join(SORTABLE_FIELDS)}")
        order = "+" if direction.lower() == "asc" else "-"

        page, limit, skip = page_bounds(page, limit)
        total = await NotarizationDocument.find_all().count()
        documents = await NotarizationDocument.find_all().sort(f"{order}{field}").skip(skip).limit(limit).to_list()
        return build_paginated_response([build_document_response(d) for d in documents], page, limit, total)

    async def auto_verify_documents(self) -> Dict[str, int]:
        stats = {"accepted": 0, "flagged": 0, "failed": 0}

        waiting = await NotarizationDocument.find(
            NotarizationDocument.status == DocumentStatusEnum.pending_signature.value
        ).to_list()
        for document in waiting:
            try:
                signature = await RequestSignature.find_one(RequestSignature.document_id == str(document.id))
                if not signature or not signature.is_co_signed:
                    continue
                await self.forward_document_status(str(document.id), ActionEnum.accept.value, RoleEnum.system.value, None)
                stats["accepted"] += 1
            except ConflictError:
                logger.info(f"Document {document.id} moved concurrently; skipping auto-verify")
            except Exception as e:
                stats["failed"] += 1
                logger.error(f"Auto-verify failed for document {document.id}: {e}")

        cutoff = datetime.utcnow() - timedelta(hours=settings.STALE_DOCUMENT_HOURS)
        stale = await NotarizationDocument.find({
            "status": {"$in": list(INTERMEDIATE_STATES)},
            "updated_at": {"$lt": cutoff},
            "stale_flagged_at": None,
        }).to_list()
        collection = NotarizationDocument.get_motor_collection()
        for document in stale:
            try:
                result = await collection.update_one(
                    {"_id": document.id, "status": document.status, "stale_flagged_at": None},
                    {"$set": {"stale_flagged_at": datetime.utcnow()}},
                )
                if result.modified_count:
                    stats["flagged"] += 1
                    logger.warning(f"Document {document.id} stuck in '{document.status}' since {document.updated_at.isoformat()}")
            except Exception as e:
                stats["failed"] += 1
                logger.error(f"Failed to flag stale document {document.id}: {e}")

        logger.info(f"Auto-verify sweep finished: {stats}")
        return stats
