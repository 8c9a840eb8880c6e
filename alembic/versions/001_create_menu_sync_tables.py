"""Create menu sync tables

Revision ID: 001_create_menu_sync_tables
Revises:
Create Date: 2025-08-14 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_menu_sync_tables'
down_revision = None
branch_labels = None
depends_on = None

SYNC_MODES = ('auto', 'manual', 'disabled')
CHANGE_TYPES = (
    'item_added', 'item_removed', 'item_modified',
    'category_added', 'category_removed', 'bulk',
)
SYNC_TRIGGERS = ('user', 'auto', 'bulk')


def upgrade():
    # Master menus
    op.create_table('master_menus',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('franchise_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('current_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_category_id', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_item_id', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_master_menus_id', 'master_menus', ['id'])
    op.create_index('ix_master_menus_franchise_id', 'master_menus', ['franchise_id'])

    # Immutable versions
    op.create_table('menu_versions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('master_menu_id', sa.Integer(), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('change_type', sa.Enum(*CHANGE_TYPES, name='versionchangetype', native_enum=False), nullable=False),
        sa.Column('change_summary', sa.Text(), nullable=True),
        sa.Column('snapshot', sa.JSON(), nullable=False),
        sa.Column('changes_data', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['master_menu_id'], ['master_menus.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('master_menu_id', 'version_number', name='uq_menu_versions_menu_number')
    )
    op.create_index('ix_menu_versions_id', 'menu_versions', ['id'])
    op.create_index('ix_menu_versions_menu_number', 'menu_versions', ['master_menu_id', 'version_number'])

    # Branch links
    op.create_table('branch_sync_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('menu_id', sa.Integer(), nullable=False),
        sa.Column('master_menu_id', sa.Integer(), nullable=False),
        sa.Column('synced_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sync_mode', sa.Enum(*SYNC_MODES, name='syncmode', native_enum=False), nullable=False, server_default='manual'),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['master_menu_id'], ['master_menus.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('location_id', 'master_menu_id', name='uq_branch_sync_location_master')
    )
    op.create_index('ix_branch_sync_links_id', 'branch_sync_links', ['id'])
    op.create_index('ix_branch_sync_links_location_id', 'branch_sync_links', ['location_id'])
    op.create_index('ix_branch_sync_links_menu_id', 'branch_sync_links', ['menu_id'])
    op.create_index('ix_branch_sync_links_master_menu_id', 'branch_sync_links', ['master_menu_id'])
    op.create_index('ix_branch_sync_master_mode', 'branch_sync_links', ['master_menu_id', 'sync_mode'])

    # Branch overrides
    op.create_table('item_overrides',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_sync_id', sa.Integer(), nullable=False),
        sa.Column('master_menu_item_id', sa.Integer(), nullable=False),
        sa.Column('price_override', sa.Float(), nullable=True),
        sa.Column('availability_override', sa.Boolean(), nullable=True),
        sa.Column('price_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('availability_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('fully_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('override_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['branch_sync_id'], ['branch_sync_links.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_sync_id', 'master_menu_item_id', name='uq_item_override_branch_item')
    )
    op.create_index('ix_item_overrides_id', 'item_overrides', ['id'])

    # Sync audit log
    op.create_table('sync_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_sync_id', sa.Integer(), nullable=False),
        sa.Column('from_version', sa.Integer(), nullable=False),
        sa.Column('to_version', sa.Integer(), nullable=False),
        sa.Column('stats', sa.JSON(), nullable=False),
        sa.Column('triggered_by', sa.Enum(*SYNC_TRIGGERS, name='synctrigger', native_enum=False), nullable=False, server_default='user'),
        sa.Column('triggered_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['branch_sync_id'], ['branch_sync_links.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sync_logs_id', 'sync_logs', ['id'])
    op.create_index('ix_sync_logs_branch_created', 'sync_logs', ['branch_sync_id', 'created_at'])

    # Branch local menu copy
    op.create_table('branch_menu_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('menu_id', sa.Integer(), nullable=False),
        sa.Column('master_menu_id', sa.Integer(), nullable=False),
        sa.Column('master_category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.ForeignKeyConstraint(['master_menu_id'], ['master_menus.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('menu_id', 'master_menu_id', 'master_category_id', name='uq_branch_category_menu_master')
    )
    op.create_index('ix_branch_menu_categories_id', 'branch_menu_categories', ['id'])
    op.create_index('ix_branch_menu_categories_menu_id', 'branch_menu_categories', ['menu_id'])

    op.create_table('branch_menu_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('menu_id', sa.Integer(), nullable=False),
        sa.Column('master_menu_id', sa.Integer(), nullable=False),
        sa.Column('master_menu_item_id', sa.Integer(), nullable=False),
        sa.Column('master_category_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['master_menu_id'], ['master_menus.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('menu_id', 'master_menu_id', 'master_menu_item_id', name='uq_branch_item_menu_master')
    )
    op.create_index('ix_branch_menu_items_id', 'branch_menu_items', ['id'])
    op.create_index('ix_branch_menu_items_menu_id', 'branch_menu_items', ['menu_id'])


def downgrade():
    op.drop_table('branch_menu_items')
    op.drop_table('branch_menu_categories')
    op.drop_table('sync_logs')
    op.drop_table('item_overrides')
    op.drop_table('branch_sync_links')
    op.drop_table('menu_versions')
    op.drop_table('master_menus')
