"""Atomic "snapshot for a period" upserts.

Invoices, sibling discount state and payroll summaries are keyed on a
student, family or teacher plus a month. Writes go through a single
INSERT ... ON CONFLICT DO UPDATE so two concurrent recalculations never
interleave a read-modify-write.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from tutorclub.app.core.errors import UnsupportedStore

SUPPORTED_DIALECTS = ("postgresql", "sqlite")


def upsert_snapshot(db: Session, model, values: dict, key_columns: list[str]):
    """Insert or overwrite the row identified by ``key_columns`` and return it."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise UnsupportedStore(
            f"Snapshot upserts need INSERT ... ON CONFLICT; {dialect} is not supported "
            f"(use one of: {', '.join(SUPPORTED_DIALECTS)})"
        )

    stmt = insert(model).values(**values)
    update_columns = {name: stmt.excluded[name] for name in values if name not in key_columns}
    stmt = stmt.on_conflict_do_update(index_elements=key_columns, set_=update_columns)
    db.execute(stmt)

    query = db.query(model)
    for name in key_columns:
        query = query.filter(getattr(model, name) == values[name])
    row = query.one()
    db.refresh(row)
    return row
