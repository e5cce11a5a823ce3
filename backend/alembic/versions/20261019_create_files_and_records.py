"""Create files and records tables

Revision ID: 20261019_create_files_records
Revises: 
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_create_files_records"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")

    op.create_table(
        "files",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("path", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("hash", sa.String(), nullable=False),
        sa.Column("field_order", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_files_hash", "files", ["hash"])

    op.create_table(
        "records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("file_id", sa.Integer(), sa.ForeignKey("files.id", ondelete="CASCADE"), nullable=False),
        sa.Column("import_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("sheet_name", sa.String(), nullable=False, server_default="Sheet1"),
        sa.Column("data_json", postgresql.JSONB(), nullable=False),
        sa.Column("search_text", sa.Text(), nullable=False),
        sa.UniqueConstraint("file_id", "sheet_name", "row_number", name="uq_records_file_sheet_row"),
    )
    op.create_index(
        "idx_records_search_text",
        "records",
        ["search_text"],
        postgresql_using="gin",
        postgresql_ops={"search_text": "gin_trgm_ops"},
    )
    op.create_index("idx_records_file_id", "records", ["file_id"])
    op.create_index("idx_records_import_time", "records", ["import_time"])
    op.create_index("idx_records_data_json", "records", ["data_json"], postgresql_using="gin")


def downgrade():
    op.drop_index("idx_records_data_json", table_name="records")
    op.drop_index("idx_records_import_time", table_name="records")
    op.drop_index("idx_records_file_id", table_name="records")
    op.drop_index("idx_records_search_text", table_name="records")
    op.drop_table("records")
    op.drop_index("idx_files_hash", table_name="files")
    op.drop_table("files")
