import logging
from typing import Optional, Dict, Any, List
from datetime import datetime

from app.database.models import StatusTracking

logger = logging.getLogger(__name__)


class StatusTrackingService:
    """Append-only history of document status changes stored in MongoDB using Beanie."""

    async def record(
        self,
        *,
        document_id: str,
        status: str,
        actor_id: Optional[str] = None,
        actor_role: Optional[str] = None,
        feedback: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> StatusTracking:
        row = StatusTracking(
            document_id=document_id,
            status=status,
            actor_id=actor_id,
            actor_role=actor_role,
            feedback=feedback,
            timestamp=timestamp or datetime.utcnow(),
        )
        try:
            await row.insert()
        except Exception as e:
            logger.error(f"Failed to record status '{status}' for document {document_id}: {e}")
            raise
        return row

    async def get_history(self, document_id: str) -> List[StatusTracking]:
        return await StatusTracking.find(StatusTracking.document_id == document_id).sort("+timestamp", "+_id").to_list()

    async def get_latest(self, document_id: str) -> Optional[StatusTracking]:
        rows = await StatusTracking.find(StatusTracking.document_id == document_id).sort("-timestamp", "-_id").limit(1).to_list()
        return rows[0] if rows else None

    async def get_document_ids_by_actor(self, actor_id: str, statuses: Optional[List[str]] = None) -> List[str]:
        """Distinct documents the actor moved, most recent first."""
        query: Dict[str, Any] = {"actor_id": actor_id}
        if statuses:
            query["status"] = {"$in": statuses}
        rows = await StatusTracking.find(query).sort("-timestamp", "-_id").to_list()

        seen = []
        for row in rows:
            if row.document_id not in seen:
                seen.append(row.document_id)
        return seen


status_tracking_service = StatusTrackingService()
