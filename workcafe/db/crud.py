from __future__ import annotations

from sqlalchemy.orm import Session


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    else:
        from sqlalchemy import insert as dialect_insert
    return dialect_insert


def insert_ignoring_conflicts(db: Session, model, rows: list[dict], *, index_elements: list[str]) -> int:
    """INSERT rows, silently skipping those that hit a unique key.

    Does not commit. Returns the number of rows actually inserted.
    """
    if not rows:
        return 0

    stmt = _dialect_insert(db)(model).values(rows)
    if hasattr(stmt, "on_conflict_do_nothing"):
        stmt = stmt.on_conflict_do_nothing(index_elements=index_elements)

    res = db.execute(stmt)
    if res.rowcount and res.rowcount > 0:
        return int(res.rowcount)
    return 0
