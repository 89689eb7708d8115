import logging
from datetime import datetime
from io import BytesIO
from typing import Optional

from supabase import Client

from app.clients.interfaces import FileStorage
from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class SupabaseFileStorage(FileStorage):
    """Private Supabase Storage bucket for uploaded originals and signature images."""

    def __init__(self, client: Optional[Client], bucket: str):
        self.supabase = client
        self.bucket = bucket
        self._bucket_checked = False

    def _ensure_bucket(self):
        if self._bucket_checked:
            return
        try:
            self.supabase.storage.get_bucket(self.bucket)
            logger.debug(f"Found bucket: {self.bucket}")
        except Exception as e:
            logger.warning(f"Bucket {self.bucket} not found ({str(e)}); creating it")
            try:
                self.supabase.storage.create_bucket(self.bucket, {'public': False})
                logger.info(f"Created new bucket: {self.bucket}")
            except Exception as create_error:
                logger.error(f"Failed to create bucket: {str(create_error)}")
                raise ExternalServiceError(f"Storage bucket configuration error: {str(create_error)}") from create_error
        self._bucket_checked = True

    async def upload(self, data: bytes, path: str, content_type: str) -> str:
        if not self.supabase:
            logger.error("Supabase client is None during upload attempt")
            raise ExternalServiceError("Storage service unavailable")

        self._ensure_bucket()

        upload_methods = [
            {
                "method": lambda: self.supabase.storage.from_(self.bucket).upload(
                    path, data, {"content-type": content_type}
                ),
                "description": "Direct upload with content-type"
            },
            {
                "method": lambda: self.supabase.storage.from_(self.bucket).upload(
                    path, BytesIO(data), {"content-type": content_type}
                ),
                "description": "BytesIO upload with content-type"
            },
        ]

        last_error = None
        for idx, upload_config in enumerate(upload_methods, 1):
            try:
                res = upload_config["method"]()
                if res and not (isinstance(res, dict) and res.get("error")):
                    logger.info(f"Uploaded {path} using method: {upload_config['description']}")
                    return path
                last_error = f"Upload failed with result: {res}"
                logger.warning(f"Method {idx} ({upload_config['description']}) returned unexpected result")
            except Exception as e:
                last_error = f"Upload attempt {idx} failed: {str(e)}"
                logger.warning(last_error)

        logger.error(f"All upload attempts failed for {path}. Last error: {last_error}")
        raise ExternalServiceError(f"File upload failed: {last_error}")

    async def signed_url(self, path: str, expires_in_seconds: int = 3600) -> str:
        if not self.supabase:
            raise ExternalServiceError("Storage service unavailable")
        try:
            res = self.supabase.storage.from_(self.bucket).create_signed_url(
                path,
                expires_in_seconds,
                {
                    'response-cache-control': 'no-cache, no-store, must-revalidate, max-age=0',
                    'response-expires': '0',
                    'response-pragma': 'no-cache'
                }
            )
        except Exception as e:
            logger.error(f"Supabase signed URL error for {path}: {e}")
            raise ExternalServiceError(f"Failed to generate signed URL: {str(e)}") from e

        signed = res.get("signedURL") or res.get("signedUrl")
        if not signed:
            logger.error(f"No signed URL returned for path: {path}")
            raise ExternalServiceError("Failed to generate signed URL")

        return signed + ("&" if "?" in signed else "?") + f"t={int(datetime.utcnow().timestamp())}"

    async def delete(self, path: str) -> None:
        if not self.supabase:
            raise ExternalServiceError("Storage service unavailable")
        try:
            self.supabase.storage.from_(self.bucket).remove([path])
            logger.info(f"Deleted file {path} from Supabase")
        except Exception as e:
            logger.error(f"Supabase delete error for {path}: {e}")
            raise ExternalServiceError(f"Failed to delete file: {str(e)}") from e
