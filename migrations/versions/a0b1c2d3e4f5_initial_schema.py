"""initial schema: users, tenants, rbac, dictionary

Revision ID: a0b1c2d3e4f5
Revises:
Create Date: 2026-10-18

Tables are only created when missing so the revision can be stamped onto a
database that was bootstrapped with ``Base.metadata.create_all``.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "a0b1c2d3e4f5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)

    if not insp.has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("username", sa.String(64), nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("phone_number", sa.String(32), nullable=True),
            sa.Column("password", sa.String(255), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.UniqueConstraint("username"),
            sa.UniqueConstraint("email"),
        )

    if not insp.has_table("tenants"):
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("code", sa.String(64), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("email_domains", sa.String(1024), nullable=True),
            sa.Column("status", sa.SmallInteger(), nullable=False, server_default="1"),
            *_audit_columns(),
            sa.UniqueConstraint("code"),
        )

    if not insp.has_table("user_tenants"):
        op.create_table(
            "user_tenants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id", "tenant_id", name="uq_user_tenants_user_tenant"),
        )
        op.create_index("ix_user_tenants_user_id", "user_tenants", ["user_id"])
        op.create_index("ix_user_tenants_tenant_id", "user_tenants", ["tenant_id"])

    for table, code_len in (("roles", 64), ("permissions", 128)):
        if insp.has_table(table):
            continue
        extra = []
        if table == "permissions":
            extra = [
                sa.Column("resource", sa.String(128), nullable=False),
                sa.Column("action", sa.String(64), nullable=False),
            ]
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("code", sa.String(code_len), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            *extra,
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_by", sa.Integer(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.Column("status", sa.SmallInteger(), nullable=False, server_default="1"),
            sa.UniqueConstraint("code"),
        )

    if not insp.has_table("user_roles"):
        op.create_table(
            "user_roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
        )
        op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])
        op.create_index("ix_user_roles_role_id", "user_roles", ["role_id"])

    if not insp.has_table("role_permissions"):
        op.create_table(
            "role_permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("permission_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("role_id", "permission_id", name="uq_role_permissions_role_permission"),
        )
        op.create_index("ix_role_permissions_role_id", "role_permissions", ["role_id"])
        op.create_index("ix_role_permissions_permission_id", "role_permissions", ["permission_id"])

    if not insp.has_table("dict_types"):
        op.create_table(
            "dict_types",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("dict_code", sa.String(64), nullable=False),
            sa.Column("dict_name", sa.String(128), nullable=False),
            sa.Column("dict_category", sa.String(64), nullable=True),
            sa.Column("value_type", sa.String(32), nullable=False, server_default="STRING"),
            sa.Column("validation_rule", sa.Text(), nullable=True),
            sa.Column("validation_message", sa.String(255), nullable=True),
            sa.Column("is_tree", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("remark", sa.String(500), nullable=True),
            *_audit_columns(),
        )
        op.create_index("ix_dict_types_dict_code", "dict_types", ["dict_code"])
        op.create_index("ix_dict_types_dict_category", "dict_types", ["dict_category"])

    if not insp.has_table("dict_data"):
        op.create_table(
            "dict_data",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("dict_type_id", sa.Integer(), nullable=False),
            sa.Column("dict_code", sa.String(64), nullable=False),
            sa.Column("data_value", sa.String(255), nullable=False),
            sa.Column("data_label", sa.String(255), nullable=False),
            sa.Column("parent_id", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("status", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("remark", sa.String(500), nullable=True),
            *_audit_columns(),
            sa.ForeignKeyConstraint(["dict_type_id"], ["dict_types.id"], ondelete="CASCADE"),
        )
        op.create_index("ix_dict_data_dict_type_id", "dict_data", ["dict_type_id"])
        op.create_index("idx_dict_data_code_value", "dict_data", ["dict_code", "data_value"])


def downgrade() -> None:
    for table in (
        "dict_data",
        "dict_types",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "user_tenants",
        "tenants",
        "users",
    ):
        op.drop_table(table)
