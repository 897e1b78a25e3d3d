"""
Resolve user supplied sort strings into ORDER BY directives.

An order string is a comma separated list of column names, each optionally
prefixed with "-" for descending order, e.g. "name,-time".
"""
from sqlalchemy import Select, column
from sqlmodel import SQLModel


class OrderDirective(SQLModel):
    """A single ORDER BY column and its direction"""
    column: str
    descending: bool = False


def split_fields(s: str) -> list[str]:
    """Split a comma separated string, dropping empty fields"""
    return [f for f in s.split(",") if f]


def parse_order(token: str) -> OrderDirective:
    """Parse a "-column" or "column" token"""
    if token.startswith("-"):
        return OrderDirective(column=token[1:], descending=True)
    return OrderDirective(column=token)


def resolve_orders(order: str, *defaults: str) -> list[OrderDirective]:
    """
    Merge the caller's order with default orders.

    The user's tokens come first, in the given order and direction.
    Default tokens follow, except those whose column is already in the
    list, either from the user (in either direction) or from an earlier
    default.

    >>> [(o.column, o.descending) for o in resolve_orders("name,-age", "age,id")]
    [('name', False), ('age', True), ('id', False)]
    """
    directives = [parse_order(o) for o in split_fields(order)]
    seen = {d.column for d in directives}

    for d in split_fields(",".join(defaults)):
        directive = parse_order(d)
        if directive.column not in seen:
            seen.add(directive.column)
            directives.append(directive)

    return directives


def apply_orders(statement: Select, order: str, *defaults: str) -> Select:
    """
    Add the resolved ORDER BY clauses to a select statement.

    Column names are not validated here, they must come from a trusted
    source.
    """
    for directive in resolve_orders(order, *defaults):
        col = column(directive.column)
        statement = statement.order_by(col.desc() if directive.descending else col.asc())
    return statement
