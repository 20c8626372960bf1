"""Initial schema — study_recruitment, cohorts, participant_shipping.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "study_recruitment",
        sa.Column("study_id", sa.String(128), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="waitlist_only"),
        sa.Column("total_enrolled", sa.Integer, nullable=False, server_default="0"),
        sa.Column("target_participants", sa.Integer, nullable=False),
        sa.Column("waitlist_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_window_opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_window_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_window_enrolled", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_cohort_id", sa.String(160), nullable=True),
        sa.Column("window_history", sa.JSON, nullable=False),
        sa.Column("conversion_rate", sa.Float, nullable=False, server_default="0.35"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "cohorts",
        sa.Column("id", sa.String(160), primary_key=True),
        sa.Column("study_id", sa.String(128), sa.ForeignKey("study_recruitment.study_id"), nullable=False),
        sa.Column("cohort_number", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending_shipment"),
        sa.Column("window_opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("window_closed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("participant_ids", sa.JSON, nullable=False),
        sa.Column("addresses_collected", sa.Integer, nullable=False, server_default="0"),
        sa.Column("tracking_codes_entered", sa.Integer, nullable=False, server_default="0"),
        sa.Column("all_tracking_entered", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("delivered_count", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("study_id", "cohort_number", name="uq_cohort_study_number"),
    )

    op.create_table(
        "participant_shipping",
        sa.Column("participant_id", sa.String(200), primary_key=True),
        sa.Column("study_id", sa.String(128), sa.ForeignKey("study_recruitment.study_id"), nullable=False),
        sa.Column("cohort_id", sa.String(160), sa.ForeignKey("cohorts.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ready_to_ship"),
        sa.Column("display_name", sa.String(120), nullable=False),
        sa.Column("initials", sa.String(8), nullable=False),
        sa.Column("address", sa.JSON, nullable=True),
        sa.Column("tracking_number", sa.String(64), nullable=True),
        sa.Column("tracking_carrier", sa.String(16), nullable=True),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("shipped_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_participant_shipping_study_id", "participant_shipping", ["study_id"])
    op.create_index("ix_participant_shipping_cohort_id", "participant_shipping", ["cohort_id"])


def downgrade() -> None:
    op.drop_index("ix_participant_shipping_cohort_id", table_name="participant_shipping")
    op.drop_index("ix_participant_shipping_study_id", table_name="participant_shipping")
    op.drop_table("participant_shipping")
    op.drop_table("cohorts")
    op.drop_table("study_recruitment")
