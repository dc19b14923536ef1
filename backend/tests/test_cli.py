from backoffice.extensions import db
from backoffice.models import User
from backoffice.services.inventory_service import get_product_by_code


def test_stock_reconcile_dry_run_then_fix(app, db_session, product):
    p = get_product_by_code("P1")
    p.new_stock = 7
    db.session.commit()

    runner = app.test_cli_runner()

    result = runner.invoke(args=["stock", "reconcile", "--code", "P1", "--dry-run"])
    assert result.exit_code == 0
    assert "new_stock 7 -> 50" in result.output
    assert "would be fixed" in result.output
    assert get_product_by_code("P1").new_stock == 7

    result = runner.invoke(args=["stock", "reconcile"])
    assert result.exit_code == 0
    db.session.expire_all()
    assert get_product_by_code("P1").new_stock == 50

    result = runner.invoke(args=["stock", "reconcile"])
    assert "PASS" in result.output


def test_stock_reconcile_unknown_code(app, db_session):
    result = app.test_cli_runner().invoke(args=["stock", "reconcile", "--code", "NOPE"])
    assert result.exit_code != 0
    assert "NOPE" in result.output


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--username", "clerk", "--password", "Password123!"])
    assert result.exit_code == 0
    assert db.session.query(User).filter_by(username="clerk").count() == 1

    result = runner.invoke(args=["users", "list"])
    assert "clerk" in result.output


def test_users_create_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=["users", "create", "--username", "clerk", "--password", "weak"])
    assert result.exit_code != 0
    assert db.session.query(User).count() == 0
