import logging
import mimetypes

from fastapi import APIRouter, Query, Response

from tarely.errors import ForbiddenError, NotFoundError
from tarely.services import storage as storage_module
from tarely.services.storage import InvalidSignatureError, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{bucket}/{path:path}")
def download(bucket: str, path: str, token: str = Query(...)):
    """Serve an object behind a signed URL. No session is required."""
    try:
        storage_module.storage.verify_token(bucket, path, token)
    except InvalidSignatureError as exc:
        logger.info("download: rejected %s/%s: %s", bucket, path, exc)
        raise ForbiddenError("Enlace inválido o caducado") from exc
    try:
        data = storage_module.storage.read(bucket, path)
    except StorageError as exc:
        raise NotFoundError("Archivo no encontrado") from exc

    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)
