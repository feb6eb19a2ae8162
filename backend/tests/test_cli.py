"""CLI command tests (flask accounts / sync groups)."""

from datetime import timedelta

from possync.extensions import db
from possync.models import Account, Coupon, SyncToken
from possync.services.reconcile_service import reconcile
from possync.time_utils import utcnow


def test_accounts_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["accounts", "create", "--username", "counter-1", "--password", "pw"])
    assert result.exit_code == 0
    assert "PASS Created account 'counter-1'" in result.output

    result = runner.invoke(args=["accounts", "create", "--username", "counter-1", "--password", "pw"])
    assert "FAIL Username already exists" in result.output

    result = runner.invoke(args=["accounts", "list"])
    assert "counter-1" in result.output
    assert db_session.query(Account).count() == 1


def test_recount_coupons(app, account):
    reconcile(account.id, {"coupons": [{"id": "CPN1", "name": "5 off", "amount": 5, "updatedAt": "2024-01-01T00:00:00Z"}]})
    coupon = db.session.get(Coupon, "CPN1")
    coupon.used_count = 3
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["sync", "recount-coupons", "--account-id", account.id])

    assert result.exit_code == 0
    assert "1 changed" in result.output
    db.session.expire_all()
    assert db.session.get(Coupon, "CPN1").used_count == 0


def test_recount_coupons_unknown_account(app, db_session):
    result = app.test_cli_runner().invoke(args=["sync", "recount-coupons", "--account-id", "nobody"])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_cleanup_tokens(app, account):
    old = utcnow() - timedelta(days=90)
    db.session.add(SyncToken(
        account_id=account.id,
        token_hash="a" * 64,
        created_at=old,
        last_used_at=old,
        expires_at=old + timedelta(days=1),
        is_revoked=False,
    ))
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["sync", "cleanup-tokens"])

    assert result.exit_code == 0
    assert "Deleted 1 tokens" in result.output
    assert db.session.query(SyncToken).count() == 0


def test_stats(app, account):
    reconcile(account.id, {"products": [{"id": "P1", "name": "Tea", "price": 3, "updatedAt": "2024-01-01T00:00:00Z"}]}, {"services": ["S1"]})

    result = app.test_cli_runner().invoke(args=["sync", "stats", "--account-id", account.id])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert any(line.split() == ["products", "1"] for line in lines)
    assert any(line.split() == ["deletions", "1"] for line in lines)


def test_init_db_is_idempotent(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init-db"])

    assert result.exit_code == 0
    assert "PASS Database tables created." in result.output


def test_reset_db_requires_confirmation(app, account):
    result = app.test_cli_runner().invoke(args=["system", "reset-db"], input="n\n")

    assert result.exit_code != 0
    assert db.session.query(Account).count() == 1
