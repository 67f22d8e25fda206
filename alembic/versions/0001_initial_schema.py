"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-02-01 09:00:00.000000

Baseline for the verification platform: users, children and progress, catalog,
professionals and clinics, both application workflows, invites, moderation and
the two append-only audit logs. Tables come straight from the model metadata.
"""
from typing import Sequence, Union

from alembic import op

from mindful_kids.database import Base
from mindful_kids import models  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
