"""initial schema

Revision ID: 0c1f2e3d4a5b
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op

from exitosx.models.db import Base

# revision identifiers, used by Alembic.
revision: str = "0c1f2e3d4a5b"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tables, enum types and indexes from the ORM models
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
