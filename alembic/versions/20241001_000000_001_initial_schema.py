"""Initial schema: readiness, intake lifecycle and financial signals.

Revision ID: 001
Revises:
Create Date: 2024-10-01 00:00:00.000000

Append-only tables get a trigger that rejects UPDATE and DELETE, so
history can only grow. Attestations are excluded: they are voided in place.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPEND_ONLY_TABLES = (
    "surgery_request_submissions",
    "surgery_request_audit_events",
    "surgery_request_conversions",
    "clinic_financial_declarations",
    "asc_financial_verifications",
    "financial_overrides",
)


def _uuid(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=False), nullable=nullable)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _signal_columns(table: str) -> list:
    return [
        _uuid("id"),
        _uuid("surgery_request_id"),
        sa.Column("state", sa.String(50), nullable=False),
        sa.Column("reason_codes", postgresql.JSON(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=f"pk_{table}"),
        sa.ForeignKeyConstraint(
            ["surgery_request_id"],
            ["surgery_requests.id"],
            name=f"fk_{table}_surgery_request_id_surgery_requests",
        ),
    ]


def upgrade() -> None:
    """Create tables and append-only triggers."""

    # Facility staff directory
    op.create_table(
        "facility_users",
        _uuid("id"),
        _uuid("facility_id"),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("roles", postgresql.JSON(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_facility_users"),
    )
    op.create_index("ix_facility_users_facility_id", "facility_users", ["facility_id"])

    # Item catalog
    op.create_table(
        "item_catalog",
        _uuid("id"),
        _uuid("facility_id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("requires_sterility", sa.Boolean(), nullable=False),
        sa.Column("is_loaner", sa.Boolean(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_item_catalog"),
    )
    op.create_index("ix_item_catalog_facility_id", "item_catalog", ["facility_id"])

    # Physical inventory
    op.create_table(
        "inventory_items",
        _uuid("id"),
        _uuid("facility_id"),
        _uuid("catalog_id"),
        sa.Column("serial_number", sa.String(100), nullable=True),
        _uuid("location_id", nullable=True),
        sa.Column("sterility_status", sa.String(50), nullable=False),
        sa.Column("sterility_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("availability_status", sa.String(50), nullable=False),
        _uuid("reserved_for_case_id", nullable=True),
        sa.Column("last_verified_at", sa.DateTime(timezone=True), nullable=True),
        _uuid("last_verified_by_user_id", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_inventory_items"),
        sa.ForeignKeyConstraint(
            ["catalog_id"],
            ["item_catalog.id"],
            name="fk_inventory_items_catalog_id_item_catalog",
        ),
    )
    op.create_index("ix_inventory_items_facility_id", "inventory_items", ["facility_id"])
    op.create_index("ix_inventory_items_catalog_id", "inventory_items", ["catalog_id"])
    op.create_index(
        "ix_inventory_items_availability_status",
        "inventory_items",
        ["availability_status"],
    )

    # Scheduled cases
    op.create_table(
        "surgical_cases",
        _uuid("id"),
        _uuid("facility_id"),
        _uuid("surgeon_id"),
        sa.Column("procedure_name", sa.String(255), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=True),
        sa.Column("scheduled_time", sa.String(8), nullable=True),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_surgical_cases"),
        sa.ForeignKeyConstraint(
            ["surgeon_id"],
            ["facility_users.id"],
            name="fk_surgical_cases_surgeon_id_facility_users",
        ),
    )
    op.create_index("ix_surgical_cases_facility_id", "surgical_cases", ["facility_id"])
    op.create_index("ix_surgical_cases_scheduled_date", "surgical_cases", ["scheduled_date"])

    op.create_table(
        "case_item_requirements",
        _uuid("id"),
        _uuid("case_id"),
        _uuid("catalog_id"),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("is_surgeon_override", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_case_item_requirements"),
        sa.ForeignKeyConstraint(
            ["case_id"],
            ["surgical_cases.id"],
            name="fk_case_item_requirements_case_id_surgical_cases",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["catalog_id"],
            ["item_catalog.id"],
            name="fk_case_item_requirements_catalog_id_item_catalog",
        ),
        sa.UniqueConstraint("case_id", "catalog_id", name="uq_case_item_requirements_case_id"),
        sa.CheckConstraint("quantity > 0", name="ck_case_item_requirements_quantity_positive"),
    )
    op.create_index(
        "ix_case_item_requirements_case_id", "case_item_requirements", ["case_id"]
    )

    op.create_table(
        "case_attestations",
        _uuid("id"),
        _uuid("facility_id"),
        _uuid("case_id"),
        sa.Column("type", sa.String(50), nullable=False),
        _uuid("attested_by_user_id"),
        sa.Column("readiness_state_at_time", sa.String(20), nullable=True),
        sa.Column("notes", sa.String(2000), nullable=True),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        _uuid("voided_by_user_id", nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_case_attestations"),
        sa.ForeignKeyConstraint(
            ["case_id"],
            ["surgical_cases.id"],
            name="fk_case_attestations_case_id_surgical_cases",
        ),
        sa.ForeignKeyConstraint(
            ["attested_by_user_id"],
            ["facility_users.id"],
            name="fk_case_attestations_attested_by_user_id_facility_users",
        ),
    )
    op.create_index("ix_case_attestations_case_id", "case_attestations", ["case_id"])
    op.create_index("ix_case_attestations_created_at", "case_attestations", ["created_at"])

    op.create_table(
        "case_readiness_cache",
        _uuid("id"),
        _uuid("case_id"),
        _uuid("facility_id"),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("procedure_name", sa.String(255), nullable=False),
        sa.Column("surgeon_name", sa.String(255), nullable=False),
        sa.Column("readiness_state", sa.String(20), nullable=False),
        sa.Column("missing_items", postgresql.JSON(), nullable=False),
        sa.Column("total_required_items", sa.Integer(), nullable=False),
        sa.Column("total_verified_items", sa.Integer(), nullable=False),
        sa.Column("has_attestation", sa.Boolean(), nullable=False),
        _uuid("attestation_id", nullable=True),
        sa.Column("attested_at", sa.DateTime(timezone=True), nullable=True),
        _uuid("attested_by_user_id", nullable=True),
        sa.Column("has_surgeon_acknowledgment", sa.Boolean(), nullable=False),
        _uuid("surgeon_acknowledgment_id", nullable=True),
        sa.Column("surgeon_acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_case_readiness_cache"),
        sa.ForeignKeyConstraint(
            ["case_id"],
            ["surgical_cases.id"],
            name="fk_case_readiness_cache_case_id_surgical_cases",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("case_id", name="uq_case_readiness_cache_case_id"),
    )
    op.create_index(
        "ix_case_readiness_cache_facility_id", "case_readiness_cache", ["facility_id"]
    )
    op.create_index(
        "ix_case_readiness_cache_scheduled_date", "case_readiness_cache", ["scheduled_date"]
    )

    # Surgery request intake
    op.create_table(
        "patient_refs",
        _uuid("id"),
        _uuid("clinic_id"),
        sa.Column("clinic_patient_key", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("birth_year", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_patient_refs"),
        sa.UniqueConstraint(
            "clinic_id", "clinic_patient_key", name="uq_patient_refs_clinic_id"
        ),
    )
    op.create_index("ix_patient_refs_clinic_id", "patient_refs", ["clinic_id"])

    op.create_table(
        "surgery_requests",
        _uuid("id"),
        _uuid("target_facility_id"),
        _uuid("source_clinic_id"),
        sa.Column("source_request_id", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("procedure_name", sa.String(255), nullable=False),
        _uuid("surgeon_id", nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=True),
        sa.Column("scheduled_time", sa.String(8), nullable=True),
        _uuid("patient_ref_id"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_submitted_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_surgery_requests"),
        sa.ForeignKeyConstraint(
            ["surgeon_id"],
            ["facility_users.id"],
            name="fk_surgery_requests_surgeon_id_facility_users",
        ),
        sa.ForeignKeyConstraint(
            ["patient_ref_id"],
            ["patient_refs.id"],
            name="fk_surgery_requests_patient_ref_id_patient_refs",
        ),
        sa.UniqueConstraint(
            "source_clinic_id",
            "source_request_id",
            name="uq_surgery_requests_source_clinic_id",
        ),
    )
    op.create_index(
        "ix_surgery_requests_target_facility_id", "surgery_requests", ["target_facility_id"]
    )
    op.create_index(
        "ix_surgery_requests_source_clinic_id", "surgery_requests", ["source_clinic_id"]
    )
    op.create_index("ix_surgery_requests_status", "surgery_requests", ["status"])

    op.create_table(
        "surgery_request_submissions",
        _uuid("id"),
        _uuid("request_id"),
        sa.Column("submission_seq", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payload_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_surgery_request_submissions"),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["surgery_requests.id"],
            name="fk_surgery_request_submissions_request_id_surgery_requests",
        ),
        sa.UniqueConstraint(
            "request_id",
            "submission_seq",
            name="uq_surgery_request_submissions_request_id",
        ),
    )
    op.create_index(
        "ix_surgery_request_submissions_request_id",
        "surgery_request_submissions",
        ["request_id"],
    )
    op.create_index(
        "ix_surgery_request_submissions_created_at",
        "surgery_request_submissions",
        ["created_at"],
    )

    op.create_table(
        "surgery_request_audit_events",
        _uuid("id"),
        _uuid("request_id"),
        _uuid("submission_id", nullable=True),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("actor_type", sa.String(20), nullable=False),
        _uuid("actor_clinic_id", nullable=True),
        _uuid("actor_user_id", nullable=True),
        sa.Column("reason_code", sa.String(50), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_surgery_request_audit_events"),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["surgery_requests.id"],
            name="fk_surgery_request_audit_events_request_id_surgery_requests",
        ),
        sa.ForeignKeyConstraint(
            ["submission_id"],
            ["surgery_request_submissions.id"],
            name="fk_surgery_request_audit_events_submission_id_surgery_request_submissions",
        ),
    )
    op.create_index(
        "ix_surgery_request_audit_events_request_id",
        "surgery_request_audit_events",
        ["request_id"],
    )
    op.create_index(
        "ix_surgery_request_audit_events_created_at",
        "surgery_request_audit_events",
        ["created_at"],
    )

    op.create_table(
        "surgery_request_conversions",
        _uuid("request_id"),
        _uuid("surgical_case_id"),
        _uuid("converted_by_user_id"),
        sa.Column("converted_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("request_id", name="pk_surgery_request_conversions"),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["surgery_requests.id"],
            name="fk_surgery_request_conversions_request_id_surgery_requests",
        ),
        sa.ForeignKeyConstraint(
            ["surgical_case_id"],
            ["surgical_cases.id"],
            name="fk_surgery_request_conversions_surgical_case_id_surgical_cases",
        ),
        sa.UniqueConstraint(
            "surgical_case_id", name="uq_surgery_request_conversions_surgical_case_id"
        ),
    )

    # Financial signals
    op.create_table(
        "clinic_financial_declarations",
        *_signal_columns("clinic_financial_declarations"),
        _uuid("actor_clinic_id"),
        _uuid("recorded_by_user_id"),
    )
    op.create_table(
        "asc_financial_verifications",
        *_signal_columns("asc_financial_verifications"),
        _uuid("verified_by_user_id"),
    )
    op.create_table(
        "financial_overrides",
        *_signal_columns("financial_overrides"),
        _uuid("overridden_by_user_id"),
    )
    for table in (
        "clinic_financial_declarations",
        "asc_financial_verifications",
        "financial_overrides",
    ):
        op.create_index(f"ix_{table}_surgery_request_id", table, ["surgery_request_id"])
        op.create_index(f"ix_{table}_created_at", table, ["created_at"])

    op.create_table(
        "financial_readiness_cache",
        _uuid("surgery_request_id"),
        _uuid("target_facility_id"),
        sa.Column("clinic_state", sa.String(50), nullable=False),
        sa.Column("asc_state", sa.String(50), nullable=False),
        sa.Column("override_state", sa.String(50), nullable=False),
        sa.Column("risk_state", sa.String(20), nullable=False),
        _uuid("last_clinic_declaration_id", nullable=True),
        _uuid("last_asc_verification_id", nullable=True),
        _uuid("last_override_id", nullable=True),
        sa.Column("recomputed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("surgery_request_id", name="pk_financial_readiness_cache"),
        sa.ForeignKeyConstraint(
            ["surgery_request_id"],
            ["surgery_requests.id"],
            name="fk_financial_readiness_cache_surgery_request_id_surgery_requests",
        ),
    )
    op.create_index(
        "ix_financial_readiness_cache_target_facility_id",
        "financial_readiness_cache",
        ["target_facility_id"],
    )
    op.create_index(
        "ix_financial_readiness_cache_risk_state",
        "financial_readiness_cache",
        ["risk_state"],
    )

    # Append-only enforcement
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_modification()
        RETURNS TRIGGER AS $$
        BEGIN
            IF TG_OP = 'UPDATE' THEN
                RAISE EXCEPTION '% is append-only and cannot be modified. Row: %', TG_TABLE_NAME, OLD;
            ELSIF TG_OP = 'DELETE' THEN
                RAISE EXCEPTION '% is append-only and cannot be deleted. Row: %', TG_TABLE_NAME, OLD;
            END IF;
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
    """)

    for table in APPEND_ONLY_TABLES:
        op.execute(f"""
            CREATE TRIGGER {table}_append_only
            BEFORE UPDATE OR DELETE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION prevent_modification()
        """)


def downgrade() -> None:
    """Drop triggers and tables."""
    for table in APPEND_ONLY_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS {table}_append_only ON {table}")
    op.execute("DROP FUNCTION IF EXISTS prevent_modification()")

    op.drop_table("financial_readiness_cache")
    op.drop_table("financial_overrides")
    op.drop_table("asc_financial_verifications")
    op.drop_table("clinic_financial_declarations")
    op.drop_table("surgery_request_conversions")
    op.drop_table("surgery_request_audit_events")
    op.drop_table("surgery_request_submissions")
    op.drop_table("surgery_requests")
    op.drop_table("patient_refs")
    op.drop_table("case_readiness_cache")
    op.drop_table("case_attestations")
    op.drop_table("case_item_requirements")
    op.drop_table("surgical_cases")
    op.drop_table("inventory_items")
    op.drop_table("item_catalog")
    op.drop_table("facility_users")
