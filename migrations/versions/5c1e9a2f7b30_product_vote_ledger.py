"""product vote ledger

Revision ID: 5c1e9a2f7b30
Revises:
Create Date: 2026-10-18 09:12:44.518230

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e9a2f7b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the vote record, voter and photo contribution tables."""
    op.create_table(
        "product_vote",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("barcode", sa.String(length=64), nullable=False),
        sa.Column("product_name", sa.Text(), nullable=True),
        sa.Column("brand", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("total_votes", sa.Integer(), nullable=False),
        sa.Column("total_weighted_votes", sa.BigInteger(), nullable=False),
        sa.Column("search_count", sa.Integer(), nullable=False),
        sa.Column("scan_count", sa.Integer(), nullable=False),
        sa.Column("member_scan_count", sa.Integer(), nullable=False),
        sa.Column("unique_voters", sa.Integer(), nullable=False),
        sa.Column("original_voter", sa.String(length=255), nullable=True),
        sa.Column("funding_threshold", sa.Integer(), nullable=False),
        sa.Column("threshold_reached_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("scan_timestamps", sa.JSON(), nullable=False),
        sa.Column("scans_last_24h", sa.Integer(), nullable=False),
        sa.Column("velocity_score", sa.BigInteger(), nullable=False),
        sa.Column("urgency_flag", sa.String(length=16), nullable=False),
        sa.Column("last_scan_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_contributors", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint("total_votes >= unique_voters", name="ck_product_vote_voters"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_product_vote_barcode", "product_vote", ["barcode"], unique=True)
    op.create_index("ix_product_vote_status", "product_vote", ["status"])
    op.create_index(
        "ix_product_vote_total_weighted_votes", "product_vote", ["total_weighted_votes"]
    )
    op.create_index("ix_product_vote_velocity_score", "product_vote", ["velocity_score"])
    op.create_index("ix_product_vote_last_scan_at", "product_vote", ["last_scan_at"])
    op.create_index(
        "ix_product_vote_status_score", "product_vote", ["status", "total_weighted_votes"]
    )

    op.create_table(
        "product_voter",
        sa.Column("product_vote_id", sa.Integer(), nullable=False),
        sa.Column("identity", sa.String(length=255), nullable=False),
        sa.Column("voter_number", sa.Integer(), nullable=False),
        sa.Column("vote_count", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Integer(), nullable=False),
        sa.Column("first_vote_type", sa.String(length=16), nullable=False),
        sa.Column("notify_on_complete", sa.Boolean(), nullable=False),
        sa.Column("first_voted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_voted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["product_vote_id"], ["product_vote.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("product_vote_id", "identity"),
    )
    op.create_index("ix_product_voter_identity", "product_voter", ["identity"])

    op.create_table(
        "photo_contribution",
        sa.Column("product_vote_id", sa.Integer(), nullable=False),
        sa.Column("identity", sa.String(length=255), nullable=False),
        sa.Column("evidence_reference_id", sa.String(length=255), nullable=False),
        sa.Column("bonus_weight", sa.Integer(), nullable=False),
        sa.Column("contributed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["product_vote_id"], ["product_vote.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("product_vote_id", "identity"),
    )


def downgrade() -> None:
    """Drop the ledger tables."""
    op.drop_table("photo_contribution")
    op.drop_index("ix_product_voter_identity", table_name="product_voter")
    op.drop_table("product_voter")
    op.drop_index("ix_product_vote_status_score", table_name="product_vote")
    op.drop_index("ix_product_vote_last_scan_at", table_name="product_vote")
    op.drop_index("ix_product_vote_velocity_score", table_name="product_vote")
    op.drop_index("ix_product_vote_total_weighted_votes", table_name="product_vote")
    op.drop_index("ix_product_vote_status", table_name="product_vote")
    op.drop_index("ix_product_vote_barcode", table_name="product_vote")
    op.drop_table("product_vote")
