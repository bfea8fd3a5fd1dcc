"""init fee schema

Revision ID: 20261019_0001_fee
Revises:
Create Date: 2026-10-19 10:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001_fee"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "parking_sessions",
        sa.Column("id", sa.String(length=32), nullable=False, comment="会话ID"),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, comment="租户ID"),
        sa.Column("plate_display", sa.String(length=50), nullable=False, comment="展示车牌"),
        sa.Column("plate_normalized", sa.String(length=50), nullable=False, comment="归一化车牌"),
        sa.Column("country_hint", sa.String(length=8), nullable=False, comment="国家提示"),
        sa.Column("entry_at", sa.DateTime(timezone=True), nullable=False, comment="入场时间"),
        sa.Column("exit_at", sa.DateTime(timezone=True), nullable=True, comment="离场时间"),
        sa.Column("calculated_fee", sa.Integer(), nullable=True, comment="离场时冻结的费用（最小货币单位）"),
        sa.Column(
            "fee_line_items",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="离场时冻结的费用明细",
        ),
        sa.Column("technician_id", sa.String(length=64), nullable=True, comment="操作员ID"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="创建时间"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, comment="更新时间"),
        sa.PrimaryKeyConstraint("id"),
        comment="停车会话表",
    )
    op.create_index(op.f("ix_parking_sessions_tenant_id"), "parking_sessions", ["tenant_id"], unique=False)
    op.create_index(
        op.f("ix_parking_sessions_plate_normalized"), "parking_sessions", ["plate_normalized"], unique=False
    )
    op.create_index(
        "ix_parking_sessions_tenant_plate_open",
        "parking_sessions",
        ["tenant_id", "plate_normalized", "exit_at"],
        unique=False,
    )

    op.create_table(
        "parking_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="主键ID"),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, comment="租户ID"),
        sa.Column("hourly_rate", sa.Integer(), nullable=False, comment="小时费率"),
        sa.Column("first_hour_rate", sa.Integer(), nullable=True, comment="首小时费率"),
        sa.Column("daily_max_rate", sa.Integer(), nullable=False, comment="每日封顶"),
        sa.Column("grace_period_minutes", sa.Integer(), nullable=False, comment="免费宽限分钟"),
        sa.Column("night_rate", sa.Integer(), nullable=True, comment="夜间首小时费率"),
        sa.Column("night_start_hour", sa.Integer(), nullable=True, comment="夜间开始小时"),
        sa.Column("night_end_hour", sa.Integer(), nullable=True, comment="夜间结束小时"),
        sa.Column("weekend_rate", sa.Integer(), nullable=True, comment="周末首小时费率"),
        sa.Column("timezone", sa.String(length=64), nullable=False, comment="计费时区"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="创建时间"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, comment="更新时间"),
        sa.PrimaryKeyConstraint("id"),
        comment="停车计费配置表（按租户）",
    )
    op.create_index(op.f("ix_parking_settings_tenant_id"), "parking_settings", ["tenant_id"], unique=True)

    op.create_table(
        "business_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="主键ID"),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, comment="租户ID"),
        sa.Column("tax_rate", sa.Integer(), nullable=False, comment="税率（基点，1500=15%）"),
        sa.Column("tax_label", sa.String(length=32), nullable=False, comment="税项名称"),
        sa.Column("currency", sa.String(length=3), nullable=False, comment="币种"),
        sa.Column("locale", sa.String(length=16), nullable=False, comment="区域设置"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="创建时间"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, comment="更新时间"),
        sa.PrimaryKeyConstraint("id"),
        comment="商户配置表（税率/币种/区域）",
    )
    op.create_index(op.f("ix_business_settings_tenant_id"), "business_settings", ["tenant_id"], unique=True)

    op.create_table(
        "frequent_parkers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="主键ID"),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, comment="租户ID"),
        sa.Column("plate_normalized", sa.String(length=50), nullable=False, comment="归一化车牌"),
        sa.Column("customer_name", sa.String(length=128), nullable=True, comment="客户姓名"),
        sa.Column("is_vip", sa.Boolean(), nullable=False, comment="是否VIP"),
        sa.Column("visit_count", sa.Integer(), nullable=False, comment="到访次数"),
        sa.Column("monthly_pass_expiry", sa.DateTime(timezone=True), nullable=True, comment="月卡到期时间"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="创建时间"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, comment="更新时间"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id", "plate_normalized", name="uq_frequent_parkers_tenant_id_plate_normalized"
        ),
        comment="常客表",
    )
    op.create_index(op.f("ix_frequent_parkers_tenant_id"), "frequent_parkers", ["tenant_id"], unique=False)
    op.create_index(
        op.f("ix_frequent_parkers_plate_normalized"), "frequent_parkers", ["plate_normalized"], unique=False
    )

    op.create_table(
        "parking_validations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="主键ID"),
        sa.Column("session_id", sa.String(length=32), nullable=False, comment="所属停车会话ID"),
        sa.Column("validator_name", sa.String(length=128), nullable=False, comment="验证方名称"),
        sa.Column("discount_percent", sa.Integer(), nullable=False, comment="折扣百分比"),
        sa.Column("discount_amount", sa.Integer(), nullable=False, comment="固定减免金额"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="创建时间"),
        sa.ForeignKeyConstraint(["session_id"], ["parking_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        comment="停车验证（第三方优惠）表",
    )
    op.create_index(
        op.f("ix_parking_validations_session_id"), "parking_validations", ["session_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_parking_validations_session_id"), table_name="parking_validations")
    op.drop_table("parking_validations")

    op.drop_index(op.f("ix_frequent_parkers_plate_normalized"), table_name="frequent_parkers")
    op.drop_index(op.f("ix_frequent_parkers_tenant_id"), table_name="frequent_parkers")
    op.drop_table("frequent_parkers")

    op.drop_index(op.f("ix_business_settings_tenant_id"), table_name="business_settings")
    op.drop_table("business_settings")

    op.drop_index(op.f("ix_parking_settings_tenant_id"), table_name="parking_settings")
    op.drop_table("parking_settings")

    op.drop_index("ix_parking_sessions_tenant_plate_open", table_name="parking_sessions")
    op.drop_index(op.f("ix_parking_sessions_plate_normalized"), table_name="parking_sessions")
    op.drop_index(op.f("ix_parking_sessions_tenant_id"), table_name="parking_sessions")
    op.drop_table("parking_sessions")
