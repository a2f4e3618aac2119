"""Create settings and action log tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'mg_settings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('key', sa.String(100), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('updated_by', sa.String(255), nullable=True),
    )
    op.create_index('ix_mg_settings_key', 'mg_settings', ['key'], unique=True)

    op.create_table(
        'mg_action_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_mg_action_logs_action', 'mg_action_logs', ['action'])
    op.create_index('ix_mg_action_logs_created_at', 'mg_action_logs', ['created_at'])


def downgrade():
    op.drop_index('ix_mg_action_logs_created_at', table_name='mg_action_logs')
    op.drop_index('ix_mg_action_logs_action', table_name='mg_action_logs')
    op.drop_table('mg_action_logs')
    op.drop_index('ix_mg_settings_key', table_name='mg_settings')
    op.drop_table('mg_settings')
