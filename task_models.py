from sqlalchemy import JSON, Column, DateTime, String

from encryption import EncryptedString
from models import Base, new_id, utc_now


class TaskDB(Base):
    __tablename__ = "tasks"
    id = Column(String(36), primary_key=True, default=new_id)
    # Sensible Daten werden verschluesselt gespeichert!
    title = Column(EncryptedString, nullable=False)
    description = Column(EncryptedString, nullable=False, default="")
    status = Column(String(50), nullable=False, default="todo", index=True)
    priority = Column(String(20), nullable=False, default="medium", index=True)
    due_date = Column(String(64))
    # Listen werden wie in einem Dokument als JSON gespeichert
    tags = Column(JSON, nullable=False, default=list)
    assigned_user_ids = Column(JSON, nullable=False, default=list)
    attachments = Column(JSON, nullable=False, default=list)
    # Kein ForeignKey: Aufgaben werden beim Loeschen eines Users explizit kaskadiert
    owner_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
