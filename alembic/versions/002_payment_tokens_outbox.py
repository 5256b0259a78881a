"""payment tokens bound to orders + notification outbox

Revision ID: 002_payment_tokens_outbox
Revises: 001_initial
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa


revision = "002_payment_tokens_outbox"
down_revision = "001_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "payment_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("token", sa.String(length=512), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("transaction_id", sa.String(length=128), nullable=True),
        sa.Column("payment_method", sa.String(length=64), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("reconciled_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_payment_tokens_token", "payment_tokens", ["token"], unique=True)
    op.create_index("ix_payment_tokens_order_id", "payment_tokens", ["order_id"], unique=False)

    op.create_table(
        "outbox",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("payment_token_id", sa.Integer(), sa.ForeignKey("payment_tokens.id"), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="created"),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("kind", "payment_token_id", name="uq_outbox_kind_payment_token"),
    )
    op.create_index("ix_outbox_order_id", "outbox", ["order_id"], unique=False)
    op.create_index("ix_outbox_payment_token_id", "outbox", ["payment_token_id"], unique=False)


def downgrade():
    op.drop_index("ix_outbox_payment_token_id", table_name="outbox")
    op.drop_index("ix_outbox_order_id", table_name="outbox")
    op.drop_table("outbox")
    op.drop_index("ix_payment_tokens_order_id", table_name="payment_tokens")
    op.drop_index("ix_payment_tokens_token", table_name="payment_tokens")
    op.drop_table("payment_tokens")
