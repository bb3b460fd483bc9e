"""Initial content schema

Revision ID: 001
Revises: 
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

WEBSITE_ROLES = ('OWNER', 'SUPER_ADMIN', 'ADMIN', 'EDITOR', 'USER')
NODE_KINDS = ('WEBSITE', 'SECTION', 'SECTION_ITEM', 'SUBSECTION')
ELEMENT_TYPES = (
    'TEXT', 'HEADING', 'ARRAY', 'PARAGRAPH', 'FILE', 'LIST', 'IMAGE',
    'VIDEO', 'LINK', 'CUSTOM', 'BADGE', 'TEXTAREA', 'BOOLEAN',
)


def _id_column():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(),
                  onupdate=sa.func.now(), nullable=False),
    ]


def _fk(table: str, nullable: bool = False):
    return sa.Column(f'{table[:-1]}_id', postgresql.UUID(as_uuid=True),
                     sa.ForeignKey(f'{table}.id'), nullable=nullable)


def upgrade() -> None:
    # Enum types are created by the first table using them
    website_role = sa.Enum(*WEBSITE_ROLES, name='websiterole')
    node_kind = sa.Enum(*NODE_KINDS, name='nodekind')
    element_type = sa.Enum(*ELEMENT_TYPES, name='elementtype')

    # Websites
    op.create_table(
        'websites',
        _id_column(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('phone_number', sa.String(50)),
        sa.Column('address', sa.String(500)),
        sa.Column('email', sa.String(255)),
        sa.Column('sector', sa.String(100)),
        sa.Column('logo', sa.String(1024)),
        sa.Column('metadata', postgresql.JSONB, server_default='{}'),
        *_timestamps(),
    )
    op.create_index('ix_websites_name', 'websites', ['name'])

    op.create_table(
        'website_users',
        _id_column(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        _fk('websites'),
        sa.Column('role', website_role, nullable=False, server_default='EDITOR'),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'website_id', name='uq_website_users_user_website'),
    )
    op.create_index('ix_website_users_user_id', 'website_users', ['user_id'])
    op.create_index('ix_website_users_website_id', 'website_users', ['website_id'])

    # Languages
    op.create_table(
        'languages',
        _id_column(),
        _fk('websites'),
        sa.Column('language', sa.String(100), nullable=False),
        sa.Column('language_code', sa.String(10), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='false'),
        *_timestamps(),
        sa.UniqueConstraint('website_id', 'language_code', name='uq_languages_website_code'),
    )
    op.create_index('ix_languages_website_id', 'languages', ['website_id'])
    op.create_index('ix_languages_language_code', 'languages', ['language_code'])

    # Sections
    op.create_table(
        'sections',
        _id_column(),
        _fk('websites'),
        sa.Column('name', postgresql.JSONB, nullable=False, server_default='{}'),
        sa.Column('sub_name', sa.String(255), nullable=False),
        sa.Column('description', postgresql.JSONB, server_default='{}'),
        sa.Column('image', sa.String(1024)),
        sa.Column('order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        *_timestamps(),
        sa.UniqueConstraint('website_id', 'order', name='uq_sections_website_order'),
    )
    op.create_index('ix_sections_website_id', 'sections', ['website_id'])
    op.create_index('idx_sections_website_order', 'sections', ['website_id', 'order'])

    # Section items
    op.create_table(
        'section_items',
        _id_column(),
        _fk('sections'),
        _fk('websites'),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, server_default=''),
        sa.Column('image', sa.String(1024)),
        sa.Column('is_main', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        *_timestamps(),
        sa.UniqueConstraint('section_id', 'order', name='uq_section_items_section_order'),
    )
    op.create_index('ix_section_items_section_id', 'section_items', ['section_id'])
    op.create_index('ix_section_items_website_id', 'section_items', ['website_id'])
    op.create_index('ix_section_items_name', 'section_items', ['name'])
    op.create_index('idx_section_items_section_order', 'section_items', ['section_id', 'order'])

    # Subsections
    op.create_table(
        'subsections',
        _id_column(),
        _fk('section_items'),
        _fk('sections'),
        _fk('websites'),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('is_main', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('metadata', postgresql.JSONB, server_default='{}'),
        sa.Column('order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        *_timestamps(),
        sa.UniqueConstraint('section_item_id', 'order', name='uq_subsections_item_order'),
    )
    op.create_index('ix_subsections_section_item_id', 'subsections', ['section_item_id'])
    op.create_index('ix_subsections_section_id', 'subsections', ['section_id'])
    op.create_index('ix_subsections_website_id', 'subsections', ['website_id'])
    op.create_index('ix_subsections_name', 'subsections', ['name'])
    op.create_index('idx_subsections_item_order', 'subsections', ['section_item_id', 'order'])

    # Content elements hang off any node kind through (parent_kind, parent_id)
    op.create_table(
        'content_elements',
        _id_column(),
        sa.Column('parent_kind', node_kind, nullable=False, server_default='SUBSECTION'),
        sa.Column('parent_id', postgresql.UUID(as_uuid=True), nullable=False),
        _fk('websites', nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', element_type, nullable=False),
        sa.Column('default_content', sa.Text),
        sa.Column('image_url', sa.String(1024)),
        sa.Column('file_url', sa.String(1024)),
        sa.Column('file_name', sa.String(255)),
        sa.Column('file_size', sa.Integer),
        sa.Column('file_mime_type', sa.String(100)),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('metadata', postgresql.JSONB, server_default='{}'),
        *_timestamps(),
    )
    op.create_index('idx_content_elements_parent', 'content_elements', ['parent_kind', 'parent_id'])
    op.create_index('ix_content_elements_website_id', 'content_elements', ['website_id'])
    op.create_index('ix_content_elements_name', 'content_elements', ['name'])
    op.create_index('ix_content_elements_type', 'content_elements', ['type'])

    op.create_table(
        'content_translations',
        _id_column(),
        sa.Column('content_element_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('content_elements.id'), nullable=False),
        _fk('languages'),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('metadata', postgresql.JSONB, server_default='{}'),
        *_timestamps(),
        sa.UniqueConstraint('language_id', 'content_element_id',
                            name='uq_content_translations_language_element'),
    )
    op.create_index('ix_content_translations_content_element_id', 'content_translations', ['content_element_id'])
    op.create_index('ix_content_translations_language_id', 'content_translations', ['language_id'])


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table('content_translations')
    op.drop_table('content_elements')
    op.drop_table('subsections')
    op.drop_table('section_items')
    op.drop_table('sections')
    op.drop_table('languages')
    op.drop_table('website_users')
    op.drop_table('websites')

    op.execute("DROP TYPE IF EXISTS elementtype")
    op.execute("DROP TYPE IF EXISTS nodekind")
    op.execute("DROP TYPE IF EXISTS websiterole")
