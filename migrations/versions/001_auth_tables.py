"""Create auth tables: users, accounts, verification_tokens.

Revision ID: 001_auth_tables
Revises:
Create Date: 2026-10-18

- users: credential hash, verification timestamp, role (USER/ADMIN)
- accounts: OAuth provider connections
- verification_tokens: single-use email-verification and password-reset
  tokens, stored as SHA-256 digests
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_auth_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # =========================================================================
    # users
    # =========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "role",
            sa.String(10),
            server_default="USER",
            nullable=False,
        ),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("role IN ('USER', 'ADMIN')", name="ck_users_role"),
    )

    # =========================================================================
    # accounts
    # =========================================================================
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_account_id", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "provider", "provider_account_id", name="uq_accounts_provider_account"
        ),
    )
    op.create_index("idx_accounts_user_id", "accounts", ["user_id"])

    # =========================================================================
    # verification_tokens (PK is the digest; one live token per kind+email)
    # =========================================================================
    op.create_table(
        "verification_tokens",
        sa.Column("token", sa.String(64), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "kind", "email", name="uq_verification_tokens_kind_email"
        ),
        sa.CheckConstraint(
            "kind IN ('email_verification', 'password_reset')",
            name="ck_verification_tokens_kind",
        ),
    )
    op.create_index(
        "idx_verification_tokens_expires", "verification_tokens", ["expires"]
    )


def downgrade() -> None:
    op.drop_index("idx_verification_tokens_expires", table_name="verification_tokens")
    op.drop_table("verification_tokens")

    op.drop_index("idx_accounts_user_id", table_name="accounts")
    op.drop_table("accounts")

    op.drop_table("users")
