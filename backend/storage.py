"""
File storage on top of GridFS.
Files are addressed by a logical path (e.g. reviews/<user>/<product>/<uuid>) and
handed out to clients as download URLs of the form /api/files/<file_id>.
"""
import logging
from typing import Tuple

import gridfs
from bson import ObjectId
from gridfs.errors import NoFile

from database import get_db
from errors import NotFound

logger = logging.getLogger(__name__)

FILE_URL_PREFIX = "/api/files/"


def _fs() -> gridfs.GridFS:
    return gridfs.GridFS(get_db())


def file_url(file_id) -> str:
    return f"{FILE_URL_PREFIX}{file_id}"


def file_id_from_url(url: str) -> ObjectId:
    raw = (url or "").split(FILE_URL_PREFIX, 1)[-1].split("?", 1)[0].strip("/")
    if not ObjectId.is_valid(raw):
        raise NotFound("File not found")
    return ObjectId(raw)


def upload_file(path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
    file_id = _fs().put(data, filename=path, metadata={"content_type": content_type})
    logger.info("Stored %s (%d bytes)", path, len(data))
    return file_url(file_id)


def open_file(file_id: str) -> Tuple[bytes, str, str]:
    if not ObjectId.is_valid(file_id):
        raise NotFound("File not found")
    try:
        grid_out = _fs().get(ObjectId(file_id))
    except NoFile:
        raise NotFound("File not found")
    content_type = (grid_out.metadata or {}).get("content_type") or "application/octet-stream"
    return grid_out.read(), content_type, grid_out.filename


def delete_file(url: str) -> None:
    fs = _fs()
    file_id = file_id_from_url(url)
    if not fs.exists(file_id):
        raise NotFound("File not found")
    fs.delete(file_id)
