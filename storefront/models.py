from sqlalchemy import Column, Integer, String
from sqlalchemy.types import JSON
from .db import Base

class Document(Base):
    __tablename__ = "documents"

    # Storage-internal id, exposed as "_id" on documents read back
    pk = Column(Integer, primary_key=True, autoincrement=True)
    # Logical collection name ("products", "collections")
    collection = Column(String, index=True, nullable=False)
    # Mirror of body["id"] so lookups and duplicate grouping stay in SQL
    doc_id = Column(String, index=True, nullable=True)

    body = Column(JSON, nullable=False, default=dict)
