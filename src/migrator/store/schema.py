"""Version tracking table definition.

Modern shape, inside the tracking schema:

    version(
        module varchar(128) primary key,
        major smallint not null,
        minor smallint not null,
        patch smallint not null
    )

Older deployments may still carry a ``version`` table without the
``module`` column, either inside the tracking schema or in the default
schema; VersionStore.bootstrap() upgrades those in place.
"""

from sqlalchemy import Column, MetaData, SmallInteger, String, Table

VERSION_TABLE = "version"
MODULE_COLUMN = "module"
MODULE_NAME_LENGTH = 128
PRIMARY_KEY_NAME = f"{VERSION_TABLE}_pkey"


def version_table(schema: str | None) -> Table:
    """Build the modern version table bound to ``schema``."""
    return Table(
        VERSION_TABLE,
        MetaData(),
        Column(MODULE_COLUMN, String(MODULE_NAME_LENGTH), primary_key=True),
        Column("major", SmallInteger, nullable=False),
        Column("minor", SmallInteger, nullable=False),
        Column("patch", SmallInteger, nullable=False),
        schema=schema,
    )
