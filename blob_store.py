import io
import uuid
from dataclasses import dataclass
from typing import BinaryIO

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String
from sqlalchemy.orm import Session

from database import storage_errors
from errors import StoredFileMissing
from logging_setup import get_logger
from models import Base, utc_now

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class BlobDB(Base):
    __tablename__ = "blobs"
    id = Column(String(32), primary_key=True)
    file_name = Column(String(255), nullable=False)
    content_type = Column(String(255), nullable=False, default=DEFAULT_CONTENT_TYPE)
    length = Column(Integer, nullable=False)
    data = Column(LargeBinary, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


@dataclass
class BlobDownload:
    stream: BinaryIO
    file_name: str
    content_type: str


class BlobStore:
    """
    Binary payloads addressed by an opaque id.

    Every call commits on its own, so a payload is durable before any task
    record points at it.
    """

    def __init__(self, db: Session):
        self.db = db

    def put(self, stream: BinaryIO, name: str, content_type: str = None) -> str:
        data = stream.read()
        blob = BlobDB(
            id=uuid.uuid4().hex,
            file_name=name,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            length=len(data),
            data=data,
        )
        with storage_errors(self.db, "blob upload"):
            self.db.add(blob)
            self.db.commit()
        logger.debug("Stored blob %s (%s bytes)", blob.id, blob.length)
        return blob.id

    def get(self, blob_id: str) -> BlobDownload:
        with storage_errors(self.db, "blob download"):
            blob = self.db.get(BlobDB, blob_id)
        if blob is None:
            raise StoredFileMissing("File not found in storage")
        return BlobDownload(
            stream=io.BytesIO(blob.data),
            file_name=blob.file_name,
            content_type=blob.content_type or DEFAULT_CONTENT_TYPE,
        )

    def delete(self, blob_id: str) -> None:
        with storage_errors(self.db, "blob delete"):
            deleted = self.db.query(BlobDB).filter(BlobDB.id == blob_id).delete()
            self.db.commit()
        if not deleted:
            raise StoredFileMissing("File not found in storage")
        logger.debug("Deleted blob %s", blob_id)

    def exists(self, blob_id: str) -> bool:
        with storage_errors(self.db, "blob lookup"):
            return self.db.query(BlobDB.id).filter(BlobDB.id == blob_id).first() is not None
