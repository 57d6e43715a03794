"""boq_schema

Revision ID: 001_boq_schema
Revises:
Create Date: 2026-10-18

Creates:
- boq_projects, boq_versions (unique project_id + version_number)
- boq_items (JSONB table_data), boq_version_edits (JSONB overrides)
- boq_working_rows (unique version_id + row_id for upserts)
- shops, catalog_materials

Tables are only created when missing, so the migration is safe to run after
Base.metadata.create_all().
"""
import logging
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = '001_boq_schema'
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger("alembic.001")

_TABLES = [
    'catalog_materials', 'shops', 'boq_working_rows', 'boq_version_edits',
    'boq_items', 'boq_versions', 'boq_projects',
]


def _table_exists(conn, table_name: str) -> bool:
    result = conn.execute(
        text(
            "SELECT EXISTS("
            "  SELECT 1 FROM information_schema.tables"
            "  WHERE table_name = :tname"
            ")"
        ),
        {"tname": table_name},
    )
    return bool(result.scalar())


def _uuid_pk():
    return sa.Column('id', UUID(as_uuid=False), primary_key=True)


def _timestamp(name: str):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    conn = op.get_bind()

    if not _table_exists(conn, 'boq_projects'):
        op.create_table(
            'boq_projects',
            _uuid_pk(),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('client', sa.String(255)),
            sa.Column('budget', sa.Numeric(14, 2)),
            sa.Column('location', sa.String(255)),
            _timestamp('created_at'),
        )

    if not _table_exists(conn, 'boq_versions'):
        op.create_table(
            'boq_versions',
            _uuid_pk(),
            sa.Column('project_id', UUID(as_uuid=False),
                      sa.ForeignKey('boq_projects.id', ondelete='CASCADE'), nullable=False),
            sa.Column('version_number', sa.Integer, nullable=False),
            sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
            _timestamp('created_at'),
            _timestamp('updated_at'),
            sa.UniqueConstraint('project_id', 'version_number', name='uq_boq_version_number'),
        )

    if not _table_exists(conn, 'boq_items'):
        op.create_table(
            'boq_items',
            _uuid_pk(),
            sa.Column('project_id', UUID(as_uuid=False), sa.ForeignKey('boq_projects.id'), nullable=False),
            sa.Column('version_id', UUID(as_uuid=False),
                      sa.ForeignKey('boq_versions.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('work_package', sa.String(50), nullable=False),
            sa.Column('table_data', JSONB, server_default='{}'),
            _timestamp('created_at'),
        )

    if not _table_exists(conn, 'boq_version_edits'):
        op.create_table(
            'boq_version_edits',
            sa.Column('version_id', UUID(as_uuid=False),
                      sa.ForeignKey('boq_versions.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('edits', JSONB, server_default='{}'),
            _timestamp('updated_at'),
        )

    if not _table_exists(conn, 'boq_working_rows'):
        op.create_table(
            'boq_working_rows',
            _uuid_pk(),
            sa.Column('project_id', UUID(as_uuid=False), sa.ForeignKey('boq_projects.id'), nullable=False),
            sa.Column('version_id', UUID(as_uuid=False),
                      sa.ForeignKey('boq_versions.id', ondelete='CASCADE'), nullable=False),
            sa.Column('row_id', sa.String(120), nullable=False),
            sa.Column('batch_id', sa.String(40), nullable=False),
            sa.Column('material_id', sa.String(64), nullable=False),
            sa.Column('data', JSONB, server_default='{}'),
            _timestamp('updated_at'),
            sa.UniqueConstraint('version_id', 'row_id', name='uq_working_row'),
        )
        op.create_index('ix_working_rows_batch', 'boq_working_rows', ['version_id', 'batch_id'])

    if not _table_exists(conn, 'shops'):
        op.create_table(
            'shops',
            _uuid_pk(),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('location', sa.String(255)),
        )

    if not _table_exists(conn, 'catalog_materials'):
        op.create_table(
            'catalog_materials',
            _uuid_pk(),
            sa.Column('product', sa.String(255)),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('code', sa.String(50), index=True),
            sa.Column('category', sa.String(100)),
            sa.Column('sub_category', sa.String(100)),
            sa.Column('brand', sa.String(100)),
            sa.Column('unit', sa.Text),
            sa.Column('rate', sa.Numeric(12, 2), server_default='0'),
            sa.Column('shop_id', UUID(as_uuid=False), sa.ForeignKey('shops.id')),
        )

    logger.info("BOQ schema ready")


def downgrade() -> None:
    conn = op.get_bind()
    for table in _TABLES:
        if _table_exists(conn, table):
            op.drop_table(table)
