"""
Schema formatting for LLM consumption.

Renders reflected SQLAlchemy tables as compact DDL-like text.
"""

from sqlalchemy import Table, UniqueConstraint
from sqlalchemy.sql.schema import ForeignKeyConstraint


def _column_line(column) -> str:
    parts = [f"{column.name} {column.type}"]
    if column.primary_key:
        parts.append("PRIMARY KEY")
    if not column.nullable:
        parts.append("NOT NULL")
    if column.server_default is not None:
        default = getattr(column.server_default, "arg", None)
        if default is not None:
            parts.append(f"DEFAULT {getattr(default, 'text', default)}")
    if column.unique:
        parts.append("UNIQUE")
    return " ".join(parts)


def format_table_schema(table: Table) -> str:
    """Format a SQLAlchemy Table object into a readable schema string.

    Returns a text representation like::

        TABLE orders (
            COLUMNS
                id INTEGER PRIMARY KEY NOT NULL,
                status VARCHAR(20)
            CONSTRAINTS
                FOREIGN KEY (customer_id) REFERENCES customers (id)
        )

    Sections without entries are omitted.
    """
    lines = [f"TABLE {table.name} ("]

    columns = [_column_line(column) for column in table.columns]
    lines.append("    COLUMNS")
    lines.append(",\n".join(f"        {col}" for col in columns))

    indexes = []
    for index in sorted(table.indexes, key=lambda ix: ix.name or ""):
        cols = ", ".join(column.name for column in index.columns)
        unique = "UNIQUE " if index.unique else ""
        indexes.append(f"{unique}INDEX {index.name} ({cols})")

    constraints = []
    for constraint in table.constraints:
        if isinstance(constraint, ForeignKeyConstraint):
            for fk in constraint.elements:
                constraints.append(
                    f"FOREIGN KEY ({fk.parent.name}) REFERENCES "
                    f"{fk.column.table.name} ({fk.column.name})"
                )
        elif isinstance(constraint, UniqueConstraint):
            cols = ", ".join(col.name for col in constraint.columns)
            constraints.append(f"UNIQUE ({cols})")

    for title, entries in (("INDEXES", indexes), ("CONSTRAINTS", constraints)):
        if entries:
            lines.append(f"    {title}")
            lines.append(",\n".join(f"        {entry}" for entry in entries))

    lines.append(")")
    return "\n".join(lines)
