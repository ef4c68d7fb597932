"""Initial schema: operators, subjects, profile details, share links, audit logs

Revision ID: 3f9c2d7e1a04
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2d7e1a04'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTION_TYPES = (
    'OPERATOR_LOGIN', 'OPERATOR_BOOTSTRAPPED', 'OPERATOR_CREATED', 'OPERATOR_UPDATED',
    'SUBJECT_CREATED', 'SUBJECT_ARCHIVED', 'LOCATION_CREATED',
    'SHARE_LINK_CREATED', 'SHARE_LINK_ACCESSED', 'SHARE_LINK_EXPIRED', 'SHARE_LINK_REVOKED',
    'SHARE_LOCATION_RECORDED', 'PERMISSION_DENIED',
)
USER_TYPES = ('OPERATOR', 'VIEWER', 'SYSTEM')


def _detail_table(name: str, *columns: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subjects.id'), nullable=False),
        *columns,
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f(f'ix_{name}_id'), name, ['id'], unique=False)
    op.create_index(op.f(f'ix_{name}_subject_id'), name, ['subject_id'], unique=False)


def upgrade() -> None:
    op.create_table(
        'operators',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('is_master', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_disabled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('allowed_sections', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f('ix_operators_id'), 'operators', ['id'], unique=False)
    op.create_index(op.f('ix_operators_email'), 'operators', ['email'], unique=True)
    op.create_index(op.f('ix_operators_is_master'), 'operators', ['is_master'], unique=False)

    op.create_table(
        'subjects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('operator_id', sa.Integer(), sa.ForeignKey('operators.id'), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('alias', sa.String(), nullable=True),
        sa.Column('occupation', sa.String(), nullable=True),
        sa.Column('nationality', sa.String(), nullable=True),
        sa.Column('threat_level', sa.String(), nullable=False, server_default='Low'),
        sa.Column('avatar_path', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='Active'),
        sa.Column('dob', sa.String(), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('height', sa.String(), nullable=True),
        sa.Column('weight', sa.String(), nullable=True),
        sa.Column('blood_type', sa.String(), nullable=True),
        sa.Column('modus_operandi', sa.Text(), nullable=True),
        sa.Column('identifying_marks', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f('ix_subjects_id'), 'subjects', ['id'], unique=False)
    op.create_index(op.f('ix_subjects_operator_id'), 'subjects', ['operator_id'], unique=False)
    op.create_index(op.f('ix_subjects_is_archived'), 'subjects', ['is_archived'], unique=False)

    _detail_table(
        'subject_interactions',
        sa.Column('date', sa.String(), nullable=True),
        sa.Column('type', sa.String(), nullable=True),
        sa.Column('transcript', sa.Text(), nullable=True),
        sa.Column('conclusion', sa.Text(), nullable=True),
        sa.Column('evidence_url', sa.String(), nullable=True),
    )
    _detail_table(
        'subject_locations',
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('lng', sa.Float(), nullable=True),
        sa.Column('type', sa.String(), nullable=False, server_default='pin'),
        sa.Column('notes', sa.Text(), nullable=True),
    )
    _detail_table(
        'subject_media',
        sa.Column('object_key', sa.String(), nullable=True),
        sa.Column('content_type', sa.String(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('media_type', sa.String(), nullable=False, server_default='file'),
        sa.Column('external_url', sa.String(), nullable=True),
    )
    _detail_table(
        'subject_intel',
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('label', sa.String(), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('analysis', sa.Text(), nullable=True),
        sa.Column('confidence', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('source', sa.String(), nullable=True),
    )
    _detail_table(
        'subject_skills',
        sa.Column('skill_name', sa.String(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('notes', sa.Text(), nullable=True),
    )

    op.create_table(
        'subject_relationships',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subject_a_id', sa.Integer(), sa.ForeignKey('subjects.id'), nullable=False),
        sa.Column('subject_b_id', sa.Integer(), sa.ForeignKey('subjects.id'), nullable=True),
        sa.Column('relationship_type', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('custom_name', sa.String(), nullable=True),
        sa.Column('custom_avatar', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f('ix_subject_relationships_id'), 'subject_relationships', ['id'], unique=False)
    op.create_index(op.f('ix_subject_relationships_subject_a_id'), 'subject_relationships', ['subject_a_id'], unique=False)
    op.create_index(op.f('ix_subject_relationships_subject_b_id'), 'subject_relationships', ['subject_b_id'], unique=False)

    op.create_table(
        'share_links',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subjects.id'), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('duration_seconds', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('require_location', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('allowed_tabs', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('operators.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f('ix_share_links_id'), 'share_links', ['id'], unique=False)
    op.create_index(op.f('ix_share_links_subject_id'), 'share_links', ['subject_id'], unique=False)
    op.create_index(op.f('ix_share_links_token'), 'share_links', ['token'], unique=True)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action_type', sa.Enum(*ACTION_TYPES, name='actiontype'), nullable=False),
        sa.Column('user_type', sa.Enum(*USER_TYPES, name='usertype'), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('resource_type', sa.String(), nullable=True),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('request_data', sa.JSON(), nullable=True),
        sa.Column('response_data', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.Column('request_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    for column in ('id', 'action_type', 'user_type', 'user_id', 'resource_type', 'resource_id', 'status', 'request_id', 'created_at'):
        op.create_index(op.f(f'ix_audit_logs_{column}'), 'audit_logs', [column], unique=False)


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('share_links')
    op.drop_table('subject_relationships')
    for name in ('subject_skills', 'subject_intel', 'subject_media', 'subject_locations', 'subject_interactions'):
        op.drop_table(name)
    op.drop_table('subjects')
    op.drop_table('operators')
