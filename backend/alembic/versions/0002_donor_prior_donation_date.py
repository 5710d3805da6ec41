"""donor_prior_donation_date

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Keeps the bound donor's previous last-donation date on the request so a
staff revert can hand it back.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("donation_requests", sa.Column("donor_prior_donation_date", sa.Date, nullable=True))


def downgrade() -> None:
    op.drop_column("donation_requests", "donor_prior_donation_date")
