# Overview: Pytest coverage for the flask CLI groups.

from stockroom.cli import DEFAULT_EMAIL, SAMPLE_PRODUCTS
from stockroom.extensions import db
from stockroom.models import Product, User


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=['system', 'init'])
    assert first.exit_code == 0, first.output
    assert f'Created user: {DEFAULT_EMAIL}' in first.output

    second = runner.invoke(args=['system', 'init'])
    assert second.exit_code == 0
    assert 'already exists' in second.output
    assert db.session.query(User).count() == 1


def test_users_create_rejects_weak_password(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['users', 'create', '--email', 'a@example.com', '--password', 'weak'])
    assert result.exit_code == 1
    assert 'FAIL' in result.output


def test_products_seed_skips_existing_names(app, ledger):
    ledger.create_product('rice', 5, 'kg')
    runner = app.test_cli_runner()

    result = runner.invoke(args=['products', 'seed'])

    assert result.exit_code == 0, result.output
    assert "Product 'Rice' already exists" in result.output
    assert db.session.query(Product).count() == len(SAMPLE_PRODUCTS)
    assert len(ledger.mirror.products) == len(SAMPLE_PRODUCTS)

    again = runner.invoke(args=['products', 'seed'])
    assert 'Nothing to seed' in again.output


def test_products_list_low_stock(app, ledger):
    ledger.create_product('Rice', 100, 'kg', 50)
    ledger.create_product('Salt', 3, 'packet', 12)
    runner = app.test_cli_runner()

    result = runner.invoke(args=['products', 'list', '--low-stock'])

    assert result.exit_code == 0
    assert 'Salt' in result.output
    assert 'Rice' not in result.output
