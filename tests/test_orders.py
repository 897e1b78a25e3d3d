"""
Tests for resolving order strings
"""

from sqlmodel import Session, select
import sqlalchemy as sa

from core.orders import OrderDirective, apply_orders, parse_order, resolve_orders, split_fields


def _pairs(directives: list[OrderDirective]) -> list[tuple[str, bool]]:
    return [(d.column, d.descending) for d in directives]


class TestParseOrder:
    """Tests for parsing a single order token"""

    def test_ascending(self):
        assert parse_order("name") == OrderDirective(column="name", descending=False)

    def test_descending(self):
        assert parse_order("-time") == OrderDirective(column="time", descending=True)

    def test_only_one_marker_is_stripped(self):
        assert parse_order("--x") == OrderDirective(column="-x", descending=True)


def test_split_fields_drops_empty_fields():
    assert split_fields("a,,b,") == ["a", "b"]
    assert split_fields("") == []


class TestResolveOrders:
    """Tests for merging user and default orders"""

    def test_user_order_with_defaults(self):
        """The default for a column the user sorts on is dropped"""
        result = resolve_orders("name,-age", "age,id")
        assert _pairs(result) == [("name", False), ("age", True), ("id", False)]

    def test_user_direction_wins(self):
        result = resolve_orders("-x", "x")
        assert _pairs(result) == [("x", True)]

        result = resolve_orders("x", "-x")
        assert _pairs(result) == [("x", False)]

    def test_empty_order_keeps_defaults(self):
        result = resolve_orders("", "-time", "id")
        assert _pairs(result) == [("time", True), ("id", False)]

    def test_no_defaults(self):
        result = resolve_orders("b,-a")
        assert _pairs(result) == [("b", False), ("a", True)]

    def test_nothing(self):
        assert resolve_orders("") == []

    def test_defaults_are_comma_joined(self):
        """Defaults may be given as separate arguments or one comma separated string"""
        assert resolve_orders("tag", "name,-size", "id") == resolve_orders("tag", "name", "-size,id")

    def test_defaults_keep_their_order(self):
        result = resolve_orders("size", "-time,size,name,id")
        assert _pairs(result) == [("size", False), ("time", True), ("name", False), ("id", False)]

    def test_every_default_column_appears_once(self):
        order = "-b,d"
        defaults = ("a,-b,c", "-d")
        columns = [d.column for d in resolve_orders(order, *defaults)]
        for column in ("a", "b", "c", "d"):
            assert columns.count(column) == 1

    def test_repeated_default_appears_once(self):
        """The first of repeated defaults wins, whatever its direction"""
        result = resolve_orders("name", "id,-id")
        assert _pairs(result) == [("name", False), ("id", False)]

        result = resolve_orders("", "-time", "id,time", "id")
        assert _pairs(result) == [("time", True), ("id", False)]

    def test_length_bounds(self):
        result = resolve_orders("a,b,c", "c,d")
        assert 3 <= len(result) <= 5
        assert len(result) == 4


class TestApplyOrders:
    """Tests for applying orders to a select statement"""

    def test_order_by_clause(self):
        t = sa.table("files", sa.column("id"), sa.column("name"), sa.column("size"))
        statement = apply_orders(sa.select(t.c.id).select_from(t), "-size", "name,id")
        sql = str(statement.compile(compile_kwargs={"literal_binds": True}))
        assert "ORDER BY size DESC, name ASC, id ASC" in sql

    def test_rows_are_sorted(self, engine):
        metadata = sa.MetaData()
        people = sa.Table(
            "people",
            metadata,
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("name", sa.String),
            sa.Column("age", sa.Integer),
        )
        metadata.create_all(engine)

        with Session(engine) as session:
            session.connection().execute(
                people.insert(),
                [
                    {"id": 1, "name": "bob", "age": 30},
                    {"id": 2, "name": "alice", "age": 40},
                    {"id": 3, "name": "bob", "age": 50},
                ],
            )
            statement = apply_orders(select(people.c.id), "name,-age", "age,id")
            ids = list(session.connection().execute(statement).scalars())

        assert ids == [2, 3, 1]
