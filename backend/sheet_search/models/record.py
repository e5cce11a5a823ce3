"""
Record model - one spreadsheet row with its derived search text.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sheet_search.db.database import Base
from sheet_search.models.file import JSONType, utcnow


class Record(Base):
    __tablename__ = "records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(Integer, ForeignKey("files.id", ondelete="CASCADE"), nullable=False)
    import_time = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    row_number = Column(Integer, nullable=False)  # 1-based within the sheet
    sheet_name = Column(String, nullable=False, default="Sheet1")
    data_json = Column(JSONType, nullable=False)  # field -> text value
    search_text = Column(Text, nullable=False)

    # Relationships
    file = relationship("File", back_populates="records")

    __table_args__ = (
        UniqueConstraint("file_id", "sheet_name", "row_number", name="uq_records_file_sheet_row"),
        # trigram index backs the LIKE %keyword% predicate on PostgreSQL
        Index(
            "idx_records_search_text",
            "search_text",
            postgresql_using="gin",
            postgresql_ops={"search_text": "gin_trgm_ops"},
        ),
        Index("idx_records_file_id", "file_id"),
        Index("idx_records_import_time", "import_time"),
        Index("idx_records_data_json", "data_json", postgresql_using="gin"),
        # ids are never reused after a reimport deletes the old generation
        {"sqlite_autoincrement": True},
    )
