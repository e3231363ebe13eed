"""Server-side column defaults shared by the surebet tables.

Each default renders as the Postgres expression the application schema uses
and as an equivalent expression on SQLite, so the same table metadata can be
created on either backend.
"""

from typing import Any

from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement
from sqlalchemy.types import String


class random_uuid(FunctionElement[str]):  # noqa: N801
    """Random UUID primary key default (``gen_random_uuid()`` on Postgres)."""

    type = String()
    inherit_cache = True


@compiles(random_uuid)
def _compile_random_uuid(element: random_uuid, compiler: Any, **kw: Any) -> str:
    return "gen_random_uuid()"


@compiles(random_uuid, "sqlite")
def _compile_random_uuid_sqlite(
    element: random_uuid, compiler: Any, **kw: Any
) -> str:
    return "lower(hex(randomblob(16)))"
