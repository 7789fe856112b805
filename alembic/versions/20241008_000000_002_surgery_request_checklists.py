"""Surgery request intake checklists.

Revision ID: 002
Revises: 001
Create Date: 2024-10-08 00:00:00.000000

Template versions and responses are append-only and reuse the
prevent_modification() trigger function from revision 001. Instances keep
a mutable status.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPEND_ONLY_TABLES = (
    "surgery_request_checklist_template_versions",
    "surgery_request_checklist_responses",
)


def upgrade() -> None:
    """Create checklist tables and their append-only triggers."""
    op.create_table(
        "surgery_request_checklist_template_versions",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("facility_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("items", postgresql.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_surgery_request_checklist_template_versions"),
        sa.UniqueConstraint(
            "facility_id",
            "name",
            "version",
            name="uq_surgery_request_checklist_template_versions_facility_id",
        ),
    )
    op.create_index(
        "ix_surgery_request_checklist_template_versions_facility_id",
        "surgery_request_checklist_template_versions",
        ["facility_id"],
    )

    op.create_table(
        "surgery_request_checklist_instances",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("request_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("submission_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("template_version_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_surgery_request_checklist_instances"),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["surgery_requests.id"],
            name="fk_surgery_request_checklist_instances_request_id_surgery_requests",
        ),
        sa.ForeignKeyConstraint(
            ["submission_id"],
            ["surgery_request_submissions.id"],
            name="fk_surgery_request_checklist_instances_submission_id_submissions",
        ),
        sa.ForeignKeyConstraint(
            ["template_version_id"],
            ["surgery_request_checklist_template_versions.id"],
            name="fk_surgery_request_checklist_instances_template_version_id",
        ),
        sa.UniqueConstraint(
            "submission_id", name="uq_surgery_request_checklist_instances_submission_id"
        ),
    )
    op.create_index(
        "ix_surgery_request_checklist_instances_request_id",
        "surgery_request_checklist_instances",
        ["request_id"],
    )

    op.create_table(
        "surgery_request_checklist_responses",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("instance_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("item_key", sa.String(100), nullable=False),
        sa.Column("response", postgresql.JSON(), nullable=False),
        sa.Column("actor_type", sa.String(20), nullable=False),
        sa.Column("actor_clinic_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("actor_user_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_surgery_request_checklist_responses"),
        sa.ForeignKeyConstraint(
            ["instance_id"],
            ["surgery_request_checklist_instances.id"],
            name="fk_surgery_request_checklist_responses_instance_id",
        ),
    )
    op.create_index(
        "ix_surgery_request_checklist_responses_instance_id",
        "surgery_request_checklist_responses",
        ["instance_id"],
    )

    for table in APPEND_ONLY_TABLES:
        op.execute(f"""
            CREATE TRIGGER {table}_append_only
            BEFORE UPDATE OR DELETE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION prevent_modification()
        """)


def downgrade() -> None:
    """Drop checklist triggers and tables."""
    for table in APPEND_ONLY_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS {table}_append_only ON {table}")

    op.drop_table("surgery_request_checklist_responses")
    op.drop_table("surgery_request_checklist_instances")
    op.drop_table("surgery_request_checklist_template_versions")
