"""Tests for the operator CLI, wired to the in-memory services."""
import pytest

from scripts import onboarding_cli


@pytest.fixture()
def cli(monkeypatch, services, cfg):
    monkeypatch.setattr(onboarding_cli, "load_settings", lambda: cfg)
    monkeypatch.setattr(onboarding_cli, "build_services", lambda _cfg: services)
    return onboarding_cli.main


def test_grant_admin_bootstraps_first_admin(cli, gateway, capsys):
    account = gateway.add_account("first@example.com")

    cli(["grant-admin", "--email", "first@example.com"])

    assert gateway.accounts[account.uid].is_admin
    assert "is now an administrator" in capsys.readouterr().out


def test_grant_admin_unknown_email_exits_1(cli, capsys):
    with pytest.raises(SystemExit) as exc:
        cli(["grant-admin", "--email", "ghost@example.com"])
    assert exc.value.code == 1
    assert "No user found for email" in capsys.readouterr().err


def test_invite_on_behalf_of_admin(cli, gateway, notifier, admin, capsys):
    cli([
        "invite", "--admin-email", admin.email, "--email", "papa@example.com",
        "--first", "Papa", "--last", "Roach", "--role", "client",
    ])

    invitee = gateway.get_account_by_email("papa@example.com")
    assert invitee.custom_claims["isClient"] is True
    assert len(notifier.sent) == 1
    assert "Link: https://app.example.com/accept-invite/" in capsys.readouterr().out


def test_invite_requires_admin_account(cli, gateway):
    gateway.add_account("member@example.com")
    with pytest.raises(SystemExit):
        cli([
            "invite", "--admin-email", "member@example.com", "--email", "papa@example.com",
            "--first", "Papa", "--last", "Roach",
        ])
    assert gateway.get_account_by_email("papa@example.com") is None


def test_clear_users_with_confirmation_flag(cli, gateway, admin):
    gateway.add_account("user@example.com")

    cli(["clear-users", "--admin-email", admin.email, "--yes"])

    assert list(gateway.accounts) == [admin.uid]


def test_clear_users_aborts_without_confirmation(cli, gateway, admin, monkeypatch):
    gateway.add_account("user@example.com")
    monkeypatch.setattr("builtins.input", lambda prompt: "n")

    cli(["clear-users", "--admin-email", admin.email])

    assert len(gateway.accounts) == 2


def test_verify_audit_exit_code(cli, gateway):
    gateway.add_account("first@example.com")
    cli(["grant-admin", "--email", "first@example.com"])

    with pytest.raises(SystemExit) as exc:
        cli(["verify-audit"])
    assert exc.value.code == 0


def test_cli_normalizes_emails(cli, gateway):
    account = gateway.add_account("first@example.com")

    cli(["grant-admin", "--email", "  First@Example.com "])

    assert gateway.accounts[account.uid].is_admin


def test_cli_rejects_malformed_email(cli, capsys):
    with pytest.raises(SystemExit) as exc:
        cli(["grant-admin", "--email", "not-an-email"])
    assert exc.value.code == 1
    assert "Invalid email format" in capsys.readouterr().err
