# marketboard/routers/media.py
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from ..errors import NotFoundError
from ..services.storage import ObjectStorage, get_storage

router = APIRouter(tags=["media"])


@router.get("/media/{bucket}/{path:path}")
def media(bucket: str, path: str, token: Optional[str] = None, storage: ObjectStorage = Depends(get_storage)):
    """Public buckets are open; the private one needs the signed url token."""
    opener = getattr(storage, "open_path", None)
    if opener is None:
        # remote backends serve their own urls
        raise NotFoundError("object not found")
    return FileResponse(opener(bucket, path, token))
