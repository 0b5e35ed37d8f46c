"""add_culqi_log_table

Revision ID: 3b1f6c2d9a41
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3b1f6c2d9a41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


OPERATION_TYPES = (
    'create_token', 'list_tokens', 'get_token', 'update_token',
    'create_charge', 'list_charges', 'get_charge', 'update_charge', 'capture_charge',
    'create_refund', 'list_refunds', 'get_refund', 'update_refund',
    'create_customer', 'list_customers', 'get_customer', 'update_customer', 'delete_customer',
    'create_card', 'list_cards', 'get_card', 'update_card', 'delete_card',
    'create_plan', 'list_plans', 'get_plan', 'update_plan', 'delete_plan',
    'create_subscription', 'list_subscriptions', 'get_subscription', 'update_subscription', 'delete_subscription',
    'create_order', 'list_orders', 'confirm_order', 'confirm_order_type', 'get_order', 'update_order', 'delete_order',
)

operation_type_enum = postgresql.ENUM(*OPERATION_TYPES, name='operation_type_enum', create_type=False)


def upgrade() -> None:
    operation_type_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'culqi_log',
        sa.Column('id', sa.String(), nullable=False, comment='主键ID（culqilog_ 前缀）'),
        sa.Column('tracking_id', sa.String(), nullable=False, comment='响应头 x-culqi-tracking-id'),
        sa.Column('culqi_version', sa.String(), nullable=False, comment='响应头 x-culqi-version'),
        sa.Column('operation', operation_type_enum, nullable=False, comment='网关操作类型'),
        sa.Column('url', sa.String(), nullable=False, comment='相对于 API 根路径的请求路径'),
        sa.Column('browser', sa.String(), nullable=True, comment='调用方浏览器（可选）'),
        sa.Column('ip_address', sa.String(), nullable=True, comment='调用方IP（可选）'),
        sa.Column('http_code', sa.Integer(), nullable=True, comment='HTTP状态码，传输失败时为空'),
        sa.Column('start_date_utc', sa.DateTime(timezone=True), nullable=True, comment='请求开始时间'),
        sa.Column('end_date_utc', sa.DateTime(timezone=True), nullable=True, comment='请求结束时间'),
        sa.Column('request', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='请求体或查询参数'),
        sa.Column('response', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='响应体，无响应时为空对象'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id', name='PK_culqi_log'),
        comment='Culqi 网关调用审计表，每次出站调用一条记录'
    )

    op.create_index('ix_culqi_log_operation_created', 'culqi_log', ['operation', 'created_at'], unique=False)
    op.create_index('ix_culqi_log_tracking_id', 'culqi_log', ['tracking_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_culqi_log_tracking_id', table_name='culqi_log')
    op.drop_index('ix_culqi_log_operation_created', table_name='culqi_log')
    op.drop_table('culqi_log')
    operation_type_enum.drop(op.get_bind(), checkfirst=True)
