import json

from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from models import db

from app.cli import checkout_reconcile
from app.services.checkout import order_commit
from app.services.checkout.errors import PartialCommitInconsistency
from app.services.checkout.order_commit import OrderCommitService
from app.services.checkout.reconcile import find_partial_commits
from app.tasks.reconcile import reconcile_partial_commits_task
from helpers import make_address, make_product, make_user, put_in_cart


def _seed(client):
    resp = client.post("/__seed/checkout", json={
        "email": "r@example.com",
        "products": [{"name": "Tea", "price": 120, "cart_qty": 1}],
        "rules": [{"min_order_value": 0, "charge": 40}],
    })
    return resp.get_json()["data"]


def _partial(monkeypatch, user, address_id, token):
    def broken(*args, **kwargs):
        raise OperationalError("insert", {}, Exception("disk full"))

    monkeypatch.setattr(order_commit, "_insert_order_items", broken)
    try:
        OrderCommitService().commit(user, address_id, "COD", attempt_token=token)
    except PartialCommitInconsistency as e:
        return e.order_id
    finally:
        monkeypatch.undo()


def test_clean_commits_are_not_reported(app):
    user = make_user()
    address = make_address(user)
    put_in_cart(user, make_product(100), 1)
    OrderCommitService().commit(user, address.id, "COD", attempt_token="ok-1")
    assert find_partial_commits() == []


def test_partial_commit_is_reported(client, app, monkeypatch):
    from models.user import UserProfile
    seeded = _seed(client)
    user = UserProfile.query.filter_by(id=seeded["user_id"]).one()
    order_id = _partial(monkeypatch, user, seeded["address_id"], "bad-1")

    found = find_partial_commits()
    assert [p.order_id for p in found] == [order_id]
    p = found[0]
    assert p.attempt_token == "bad-1"
    assert p.completed_steps == ["order_inserted"]
    assert p.failed_steps == ["items_inserted"]
    assert p.missing_steps == ["items_inserted", "cart_cleared"]
    assert p.item_count == 0


def test_cli_lists_partial_commits(client, app, monkeypatch):
    from models.user import UserProfile
    seeded = _seed(client)
    user = UserProfile.query.filter_by(id=seeded["user_id"]).one()
    order_id = _partial(monkeypatch, user, seeded["address_id"], "bad-2")

    runner = app.test_cli_runner()
    result = runner.invoke(checkout_reconcile, ["--json"])
    assert result.exit_code == 0
    assert json.loads(result.output)[0]["order_id"] == order_id

    result = runner.invoke(checkout_reconcile, ["--fail-on-found"])
    assert result.exit_code != 0
    assert f"order={order_id}" in result.output


def test_scan_only_counts_items_of_scanned_orders(client, app, monkeypatch):
    from models.user import UserProfile
    seeded = _seed(client)
    user = UserProfile.query.filter_by(id=seeded["user_id"]).one()
    partial_id = _partial(monkeypatch, user, seeded["address_id"], "old-bad")
    put_in_cart(user, make_product(90), 1)
    OrderCommitService().commit(user, seeded["address_id"], "COD", attempt_token="new-ok")

    statements = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(db.engine, "before_cursor_execute", capture)
    try:
        assert find_partial_commits(limit=1) == []
    finally:
        event.remove(db.engine, "before_cursor_execute", capture)
    counts = [s for s in statements if "count(" in s.lower() and "order_item" in s]
    assert counts and all(" IN " in s.upper() for s in counts)
    assert [p.order_id for p in find_partial_commits()] == [partial_id]


def test_cli_reports_clean_state(app):
    result = app.test_cli_runner().invoke(checkout_reconcile)
    assert result.exit_code == 0
    assert "No partial commits found." in result.output


def test_celery_task_returns_partial_order_ids(client, app, monkeypatch):
    from models.user import UserProfile
    seeded = _seed(client)
    user = UserProfile.query.filter_by(id=seeded["user_id"]).one()
    order_id = _partial(monkeypatch, user, seeded["address_id"], "bad-3")
    assert reconcile_partial_commits_task.apply().get() == [order_id]
