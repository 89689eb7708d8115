"""
Payment-triggered NFT minting.

``mint_document`` is safe to call repeatedly: a document is claimed with a
compare-and-swap on ``mint_status``, output files that already carry a mint
address are skipped, and a wallet entry that already exists counts as
credited. A paid-but-unminted document is therefore recovered by calling it
again, never by charging again.
"""

import logging
from datetime import datetime, timedelta

from app.clients import Collaborators
from app.core.config import settings
from app.core.errors import AppError, ConflictError, ExternalServiceError, NotFoundError
from app.database.models import NotarizationDocument
from app.database.models.document_model import OutputFile
from app.database.models.user_wallet_model import NFTItem
from app.schemas.notarization_schema import DocumentStatusEnum, MintStatusEnum
from app.services.nft_service import build_view_links
from app.utils.notarization_utils import to_object_id

logger = logging.getLogger(__name__)


class MintingService:
    def __init__(self, collaborators: Collaborators, wallet_service):
        self.mint = collaborators.mint
        self.storage = collaborators.storage
        self.wallets = wallet_service

    async def _load(self, document_id: str) -> NotarizationDocument:
        document = await NotarizationDocument.get(to_object_id(document_id))
        if not document:
            raise NotFoundError("Document not found")
        return document

    async def _claim(self, document: NotarizationDocument) -> bool:
        now = datetime.utcnow()
        stale_before = now - timedelta(minutes=settings.MINT_CLAIM_TIMEOUT_MINUTES)
        result = await NotarizationDocument.get_motor_collection().update_one(
            {
                "_id": document.id,
                "$or": [
                    {"mint_status": {"$in": [MintStatusEnum.none.value, MintStatusEnum.failed.value]}},
                    {"mint_status": MintStatusEnum.minting.value, "minting_started_at": {"$lt": stale_before}},
                ],
            },
            {"$set": {"mint_status": MintStatusEnum.minting.value, "minting_started_at": now, "mint_error": None}},
        )
        return result.modified_count == 1

    async def _ensure_output_files(self, document: NotarizationDocument) -> NotarizationDocument:
        if document.output_files:
            return document

        certificate = {
            "name": f"Notarization certificate {document.id}",
            "symbol": settings.NFT_SYMBOL,
            "description": f"Proof of notarization for document {document.id}",
            "attributes": [
                {"trait_type": "document_id", "value": str(document.id)},
                {"trait_type": "service", "value": (document.notarization_service or {}).get("name")},
                {"trait_type": "copies", "value": document.amount},
                {"trait_type": "accepted_at", "value": document.updated_at.isoformat()},
            ],
        }
        pinned = await self.storage.pin_json(certificate, f"certificate-{document.id}.json")
        placeholder = OutputFile(filename=f"certificate-{document.id}.json", url=pinned.uri, metadata_uri=pinned.uri)
        await NotarizationDocument.get_motor_collection().update_one(
            {"_id": document.id, "output_files": {"$size": 0}},
            {"$push": {"output_files": placeholder.model_dump()}},
        )
        return await self._load(str(document.id))

    async def _mint_output_files(self, document: NotarizationDocument) -> NotarizationDocument:
        collection = NotarizationDocument.get_motor_collection()
        for idx, output in enumerate(document.output_files):
            if output.mint_address:
                continue
            result = await self.mint.create_nft(name=output.filename, uri=output.metadata_uri or output.url)
            prefix = f"output_files.{idx}"
            # a recorded mint address is never overwritten
            await collection.update_one(
                {"_id": document.id, f"{prefix}.mint_address": None},
                {"$set": {
                    f"{prefix}.mint_address": result.mint_address,
                    f"{prefix}.metadata_address": result.metadata_address,
                    f"{prefix}.transaction_signature": result.transaction_signature,
                    f"{prefix}.minted_at": datetime.utcnow(),
                    "updated_at": datetime.utcnow(),
                }},
            )
            logger.info(f"Minted {result.mint_address} for output file '{output.filename}' of document {document.id}")
        return await self._load(str(document.id))

    async def _credit_wallet(self, document: NotarizationDocument, payer_user_id: str):
        for output in document.output_files:
            links = build_view_links(output.mint_address, output.metadata_uri)
            item = NFTItem(
                mint_address=output.mint_address,
                metadata_address=output.metadata_address,
                transaction_signature=output.transaction_signature,
                filename=output.filename,
                metadata_uri=output.metadata_uri or output.url,
                amount=document.amount,
                owner=payer_user_id,
                document_id=str(document.id),
                minted_at=output.minted_at or datetime.utcnow(),
                **links,
            )
            try:
                await self.wallets.add_nft_to_wallet(payer_user_id, item)
            except ConflictError:
                logger.info(f"NFT {output.mint_address} already credited to user {payer_user_id}")

    async def mint_document(self, document_id: str, payer_user_id: str) -> NotarizationDocument:
        document = await self._load(document_id)
        if document.status != DocumentStatusEnum.accepted.value:
            raise ConflictError(f"Document {document_id} is '{document.status}', only accepted documents are minted")
        if document.mint_status == MintStatusEnum.minted.value:
            return document

        if not await self._claim(document):
            document = await self._load(document_id)
            if document.mint_status == MintStatusEnum.minted.value:
                return document
            raise ConflictError(f"Minting of document {document_id} is already in progress")

        try:
            document = await self._ensure_output_files(document)
            document = await self._mint_output_files(document)
            await self._credit_wallet(document, payer_user_id)
        except Exception as e:
            logger.error(f"Minting of document {document_id} failed: {e}")
            await NotarizationDocument.get_motor_collection().update_one(
                {"_id": document.id},
                {"$set": {"mint_status": MintStatusEnum.failed.value, "mint_error": str(e), "updated_at": datetime.utcnow()}},
            )
            if isinstance(e, ExternalServiceError):
                raise
            message = e.message if isinstance(e, AppError) else str(e)
            raise ExternalServiceError(f"Minting failed: {message}") from e

        await NotarizationDocument.get_motor_collection().update_one(
            {"_id": document.id},
            {"$set": {"mint_status": MintStatusEnum.minted.value, "updated_at": datetime.utcnow()}},
        )
        logger.info(f"Document {document_id} minted and credited to user {payer_user_id}")
        return await self._load(document_id)
