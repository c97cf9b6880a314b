from sqlalchemy import inspect

from cancellation_engine.database.schemas.db_models import Orders
from cancellation_engine.database.tools.create_tables import create_tables
from cancellation_engine.database.tools.db_connection import engine


class TestCreateTables:

    def test_all_tables_exist(self):
        create_tables()
        tables = set(inspect(engine).get_table_names())
        assert {
            "customers",
            "orders",
            "cancellation_requests",
            "rules",
            "rule_templates",
            "review_queue_items",
        } <= tables

    def test_reset_clears_rows(self, make_order, fetch):
        order_id = make_order()
        create_tables(drop_existing=True)

        assert fetch(Orders, order_id) is None
