"""Utility functions for Alembic migrations."""
import sqlalchemy as sa
from alembic import op


def get_timestamp_default():
    """Get the appropriate server default for timestamp columns.

    Returns:
        Server default compatible with the current database dialect:
        - PostgreSQL: NOW() function
        - SQLite: CURRENT_TIMESTAMP
    """
    bind = op.get_bind()
    dialect_name = bind.dialect.name
    if dialect_name == 'postgresql':
        return sa.text('NOW()')
    else:
        return sa.text('CURRENT_TIMESTAMP')
