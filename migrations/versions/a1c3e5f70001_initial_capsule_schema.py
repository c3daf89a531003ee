"""initial capsule schema: capsules, sends_log, rate counters, settings

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c3e5f70001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'capsules',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('signer', sa.String(length=200), nullable=True),
        sa.Column('contact', sa.String(length=255), nullable=True),
        sa.Column('ip_addr', sa.String(length=64), nullable=True),
        sa.Column('send_at', sa.BigInteger(), nullable=False),
        sa.Column('send_at_ymd', sa.String(length=10), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('created_on_ymd', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('provider_email_id', sa.String(length=128), nullable=True),
        sa.Column('sent_at', sa.BigInteger(), nullable=True),
        sa.Column('delivered_at', sa.BigInteger(), nullable=True),
        sa.Column('bounced_at', sa.BigInteger(), nullable=True),
        sa.Column('bounce_reason', sa.Text(), nullable=True),
        sa.Column('claimed_by', sa.String(length=64), nullable=True),
        sa.Column('claim_expires_at', sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('capsules', schema=None) as batch_op:
        batch_op.create_index('idx_capsules_status_sendat', ['status', 'send_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_capsules_ip_addr'), ['ip_addr'], unique=False)
        batch_op.create_index(batch_op.f('ix_capsules_send_at_ymd'), ['send_at_ymd'], unique=False)
        batch_op.create_index(batch_op.f('ix_capsules_created_on_ymd'), ['created_on_ymd'], unique=False)
        batch_op.create_index(batch_op.f('ix_capsules_provider_email_id'), ['provider_email_id'], unique=False)

    op.create_table(
        'sends_log',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('capsule_id', sa.String(length=36), nullable=False),
        sa.Column('sent_at', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('provider_email_id', sa.String(length=128), nullable=True),
        sa.Column('event', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('sends_log', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sends_log_capsule_id'), ['capsule_id'], unique=False)

    op.create_table(
        'rate_limit_daily',
        sa.Column('ip', sa.String(length=64), nullable=False),
        sa.Column('ymd', sa.String(length=10), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('ip', 'ymd'),
    )

    op.create_table(
        'rate_limit_bucket',
        sa.Column('ip', sa.String(length=64), nullable=False),
        sa.Column('bucket', sa.String(length=12), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('ip', 'bucket'),
    )

    op.create_table(
        'settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ip_daily_limit', sa.Integer(), nullable=False),
        sa.Column('ip_10min_limit', sa.Integer(), nullable=False),
        sa.Column('min_lead_seconds', sa.Integer(), nullable=False),
        sa.Column('daily_create_limit', sa.Integer(), nullable=False),
        sa.CheckConstraint('id = 1', name='ck_settings_singleton'),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade():
    op.drop_table('settings')
    op.drop_table('rate_limit_bucket')
    op.drop_table('rate_limit_daily')
    with op.batch_alter_table('sends_log', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_sends_log_capsule_id'))
    op.drop_table('sends_log')
    with op.batch_alter_table('capsules', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_capsules_provider_email_id'))
        batch_op.drop_index(batch_op.f('ix_capsules_created_on_ymd'))
        batch_op.drop_index(batch_op.f('ix_capsules_send_at_ymd'))
        batch_op.drop_index(batch_op.f('ix_capsules_ip_addr'))
        batch_op.drop_index('idx_capsules_status_sendat')
    op.drop_table('capsules')
