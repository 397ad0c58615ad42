"""Initial menu planning schema

Revision ID: 0001_menuplan_init
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_menuplan_init"
down_revision = None
branch_labels = None
depends_on = None


def _catalog_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("sort_order", sa.Integer()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        *extra,
    )


def upgrade() -> None:
    conn = op.get_bind()
    dialect = conn.dialect.name if conn is not None else "sqlite"
    false_def = sa.text("FALSE") if dialect == "postgresql" else sa.text("0")

    _catalog_table("services")
    _catalog_table("sub_services", sa.Column("service_id", sa.String(length=64), sa.ForeignKey("services.id"), nullable=False))
    _catalog_table("meal_plans")
    _catalog_table(
        "sub_meal_plans",
        sa.Column("meal_plan_id", sa.String(length=64), sa.ForeignKey("meal_plans.id"), nullable=False),
        sa.Column("is_repeat_plan", sa.Boolean(), nullable=False, server_default=false_def),
    )
    op.create_table(
        "menu_items",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=100)),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
    )
    op.create_table(
        "companies",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
    )
    op.create_table(
        "buildings",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("company_id", sa.String(length=64), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
    )
    for name in ("structure_assignments", "meal_plan_structure_assignments"):
        op.create_table(
            name,
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("company_id", sa.String(length=64), sa.ForeignKey("companies.id"), nullable=False),
            sa.Column("building_id", sa.String(length=64), sa.ForeignKey("buildings.id"), nullable=False),
            sa.Column("week_structure", sa.JSON(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        )

    op.create_table(
        "combined_menus",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("start_date", sa.String(length=10), nullable=False),
        sa.Column("end_date", sa.String(length=10), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("company_id", sa.String(length=64)),
        sa.Column("menu_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_combined_menus_range", "combined_menus", ["start_date", "end_date"])
    op.create_table(
        "company_menus",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("combined_menu_id", sa.String(length=64), sa.ForeignKey("combined_menus.id")),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("building_id", sa.String(length=64), nullable=False),
        sa.Column("company_name", sa.String(length=200)),
        sa.Column("building_name", sa.String(length=200)),
        sa.Column("start_date", sa.String(length=10), nullable=False),
        sa.Column("end_date", sa.String(length=10), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("menu_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "repetition_logs",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("menu_start_date", sa.String(length=10), nullable=False),
        sa.Column("menu_end_date", sa.String(length=10), nullable=False),
        sa.Column("company_id", sa.String(length=64)),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("item_name", sa.String(length=200)),
        sa.Column("service_id", sa.String(length=64), nullable=False),
        sa.Column("sub_service_id", sa.String(length=64), nullable=False),
        sa.Column("meal_plan_id", sa.String(length=64), nullable=False),
        sa.Column("sub_meal_plan_id", sa.String(length=64), nullable=False),
        sa.Column("attempted_date", sa.String(length=10), nullable=False),
        sa.Column("original_date", sa.String(length=10)),
        sa.Column("original_service_id", sa.String(length=64)),
        sa.Column("original_sub_service_id", sa.String(length=64)),
        sa.Column("original_meal_plan_id", sa.String(length=64)),
        sa.Column("original_sub_meal_plan_id", sa.String(length=64)),
        sa.Column("prev_date", sa.String(length=10)),
        sa.Column("time", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_repetition_logs_menu", "repetition_logs", ["menu_start_date", "menu_end_date", "company_id"])
    op.create_table(
        "menu_updations",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("menu_id", sa.String(length=64), nullable=False),
        sa.Column("menu_type", sa.String(length=20), nullable=False, server_default="combined"),
        sa.Column("updation_number", sa.Integer(), nullable=False),
        sa.Column("changed_cells", sa.JSON(), nullable=False),
        sa.Column("total_changes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("menu_start_date", sa.String(length=10), nullable=False),
        sa.Column("menu_end_date", sa.String(length=10), nullable=False),
        sa.Column("created_by", sa.String(length=200)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table("menu_updations")
    op.drop_index("ix_repetition_logs_menu", table_name="repetition_logs")
    op.drop_table("repetition_logs")
    op.drop_table("company_menus")
    op.drop_index("ix_combined_menus_range", table_name="combined_menus")
    op.drop_table("combined_menus")
    op.drop_table("meal_plan_structure_assignments")
    op.drop_table("structure_assignments")
    op.drop_table("buildings")
    op.drop_table("companies")
    op.drop_table("menu_items")
    op.drop_table("sub_meal_plans")
    op.drop_table("meal_plans")
    op.drop_table("sub_services")
    op.drop_table("services")
