"""create courses, modules and content items

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "tenant_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.String(length=5000), nullable=True),
        sa.Column("image_url", sa.String(length=2000), nullable=True),
        sa.Column(
            "status",
            sa.Enum("draft", "published", "archived", name="coursestatus"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_courses_tenant_id", "courses", ["tenant_id"], unique=False)
    op.create_index("ix_courses_title", "courses", ["title"], unique=False)
    op.create_index("ix_courses_status", "courses", ["status"], unique=False)

    op.create_table(
        "modules",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.String(length=5000), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_modules_tenant_id", "modules", ["tenant_id"], unique=False)
    op.create_index("ix_modules_course_id", "modules", ["course_id"], unique=False)
    op.create_index("ix_modules_course_sort", "modules", ["course_id", "sort_order"], unique=False)

    op.create_table(
        "content_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column(
            "module_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("modules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column(
            "type",
            sa.Enum("video", "youtube", "pdf", "ppt", "link", "image", name="contenttype"),
            nullable=False,
        ),
        sa.Column(
            "content_source",
            sa.Enum("external", "storage", name="contentsource"),
            nullable=False,
            server_default="external",
        ),
        sa.Column("url", sa.String(length=2000), nullable=True),
        sa.Column("storage_path", sa.String(length=1000), nullable=True),
        sa.Column("mime_type", sa.String(length=200), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "(content_source = 'external' AND url IS NOT NULL) OR (content_source = 'storage' AND storage_path IS NOT NULL)",
            name="ck_content_items_source_fields",
        ),
    )
    op.create_index("ix_content_items_tenant_id", "content_items", ["tenant_id"], unique=False)
    op.create_index("ix_content_items_module_id", "content_items", ["module_id"], unique=False)
    op.create_index("ix_content_items_module_sort", "content_items", ["module_id", "sort_order"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_content_items_module_sort", table_name="content_items")
    op.drop_index("ix_content_items_module_id", table_name="content_items")
    op.drop_index("ix_content_items_tenant_id", table_name="content_items")
    op.drop_table("content_items")
    op.execute("DROP TYPE IF EXISTS contentsource")
    op.execute("DROP TYPE IF EXISTS contenttype")

    op.drop_index("ix_modules_course_sort", table_name="modules")
    op.drop_index("ix_modules_course_id", table_name="modules")
    op.drop_index("ix_modules_tenant_id", table_name="modules")
    op.drop_table("modules")

    op.drop_index("ix_courses_status", table_name="courses")
    op.drop_index("ix_courses_title", table_name="courses")
    op.drop_index("ix_courses_tenant_id", table_name="courses")
    op.drop_table("courses")
    op.execute("DROP TYPE IF EXISTS coursestatus")
