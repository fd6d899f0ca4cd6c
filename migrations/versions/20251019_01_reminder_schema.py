"""create patients, medications and reminder ledger tables

Revision ID: 20251019_01
Revises: None
Create Date: 2025-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20251019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "caregivers",
        sa.Column("caregiver_id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        "patients",
        sa.Column("patient_id", sa.String(), primary_key=True),
        sa.Column("caregiver_id", sa.String(), sa.ForeignKey("caregivers.caregiver_id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("whatsapp", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_patients_whatsapp", "patients", ["whatsapp"])

    op.create_table(
        "medications",
        sa.Column("medication_id", sa.String(), primary_key=True),
        sa.Column("patient_id", sa.String(), sa.ForeignKey("patients.patient_id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("dosage", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("days_of_week", sa.JSON(), nullable=False),
        sa.Column("times", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_medications_patient_active", "medications", ["patient_id", "active"])

    op.create_table(
        "emergency_contacts",
        sa.Column("contact_id", sa.String(), primary_key=True),
        sa.Column("patient_id", sa.String(), sa.ForeignKey("patients.patient_id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=False),
        sa.Column("relationship", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "reminder_instances",
        sa.Column("reminder_id", sa.String(), primary_key=True),
        sa.Column("medication_id", sa.String(), sa.ForeignKey("medications.medication_id"), nullable=False),
        sa.Column("patient_id", sa.String(), sa.ForeignKey("patients.patient_id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="sent"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("scheduled_time", sa.String(length=5), nullable=False),
        sa.Column("gateway_message_id", sa.String(), nullable=True),
        sa.Column("delivery_status", sa.String(), nullable=True),
        sa.Column("response_code", sa.String(), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("postponed_by_minutes", sa.Integer(), nullable=True),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_detail", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_reminder_instances_patient_status",
        "reminder_instances",
        ["patient_id", "status", "created_at"],
    )
    op.create_index("ix_reminder_instances_status_due", "reminder_instances", ["status", "due_at"])


def downgrade() -> None:
    op.drop_table("reminder_instances")
    op.drop_table("emergency_contacts")
    op.drop_table("medications")
    op.drop_table("patients")
    op.drop_table("caregivers")
