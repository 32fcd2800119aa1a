"""添加分析引擎相关表

Revision ID: 001_add_analytics_tables
Revises: 
Create Date: 2026-10-19 10:00:00.000000

业务记录表 (projects / tasks / contacts / project_payments / invoices)
由记录服务维护，这里只创建分析引擎自己的表。
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_add_analytics_tables'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # 1. 创建custom_metrics表
    op.create_table(
        'custom_metrics',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('data_source', sa.String(20), nullable=False),
        sa.Column('filters', sa.JSON(), nullable=False),
        sa.Column('aggregation', sa.JSON(), nullable=False),
        sa.Column('date_range', sa.String(20), nullable=True),
        sa.Column('chart_type', sa.String(20), nullable=False, server_default='number'),
        sa.Column('color', sa.String(30), nullable=False, server_default='blue'),
        sa.Column('icon', sa.String(50), nullable=False, server_default='BarChart3'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('owner_id', sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )
    op.create_index('idx_custom_metrics_owner_id', 'custom_metrics', ['owner_id'])
    op.create_index('idx_custom_metrics_is_public', 'custom_metrics', ['is_public'])

    # 2. 创建dashboards表
    op.create_table(
        'dashboards',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.BigInteger(), nullable=False),
        sa.Column('widgets', sa.JSON(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_template', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('access_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_accessed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )
    op.create_index('idx_dashboards_owner_id', 'dashboards', ['owner_id'])
    op.create_index('idx_dashboards_category', 'dashboards', ['category'])
    op.create_index('idx_dashboards_created_at', 'dashboards', ['created_at'])

    # 3. 创建dashboard_templates表
    op.create_table(
        'dashboard_templates',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('widgets', sa.JSON(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('is_built_in', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('owner_id', sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )
    op.create_index('idx_dashboard_templates_category', 'dashboard_templates', ['category'])
    op.create_index('idx_dashboard_templates_owner_id', 'dashboard_templates', ['owner_id'])

    # 4. 创建saved_reports表
    op.create_table(
        'saved_reports',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('report_type', sa.String(20), nullable=False, server_default='custom'),
        sa.Column('configuration', sa.JSON(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('owner_id', sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )
    op.create_index('idx_saved_reports_owner_id', 'saved_reports', ['owner_id'])

    # 5. 创建scheduled_reports表
    op.create_table(
        'scheduled_reports',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('dashboard_id', sa.BigInteger(), nullable=False),
        sa.Column('schedule', sa.JSON(), nullable=False),
        sa.Column('recipients', sa.JSON(), nullable=False),
        sa.Column('format', sa.String(10), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('last_sent_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('next_send_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['dashboard_id'], ['dashboards.id'], name='fk_scheduled_reports_dashboard', ondelete='CASCADE'),
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )
    op.create_index('idx_scheduled_reports_dashboard_id', 'scheduled_reports', ['dashboard_id'])
    # 到期扫描: is_active + next_send_at
    op.create_index('idx_scheduled_reports_due', 'scheduled_reports', ['is_active', 'next_send_at'])
    op.create_index('idx_scheduled_reports_owner_id', 'scheduled_reports', ['owner_id'])


def downgrade():
    op.drop_table('scheduled_reports')
    op.drop_table('saved_reports')
    op.drop_table('dashboard_templates')
    op.drop_table('dashboards')
    op.drop_table('custom_metrics')
