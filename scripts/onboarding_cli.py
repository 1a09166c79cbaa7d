"""Operator CLI for the onboarding service.

Runs the same services as the HTTP functions with the service-account
credentials, without an admin identity token. ``grant-admin`` is how the
first administrator is bootstrapped.
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from onboarding.config import load_settings
from onboarding.core import Services, build_services
from onboarding.core.deprovisioning import clear_users
from onboarding.core.errors import OnboardingError
from onboarding.core.identity import IdentityError
from onboarding.core.store import StoreError
from onboarding.core.validators import validate_email
from scripts import audit


def _resolve_admin(services: Services, email: str):
    account = services.gateway.get_account_by_email(email)
    if account is None or not account.is_admin:
        raise OnboardingError(403, f"{email} is not an administrator")
    return account


def _grant_admin(services: Services, args) -> None:
    account = services.provisioning.grant_admin_role(args.email, operator=args.operator)
    print(f"[grant-admin] {account.email} ({account.uid}) is now an administrator")


def _invite(services: Services, args) -> None:
    admin = _resolve_admin(services, args.admin_email)
    issued = services.invites.issue(admin, args.email, args.first, args.last, args.role)
    print(f"[invite] Invite {issued.invite_id} issued for {args.email} (uid={issued.account.uid})")
    if issued.link:
        print(f"[invite] Link: {issued.link} (email sent: {issued.email_sent})")


def _clear_users(services: Services, args) -> None:
    admin = _resolve_admin(services, args.admin_email)
    if not args.yes:
        answer = input(f"Delete every account except {admin.email}? [y/N] ")
        if answer.strip().lower() != "y":
            print("[clear-users] Aborted")
            return
    deleted = clear_users(
        services.gateway,
        services.profiles,
        admin,
        page_size=services.cfg.clear_users_page_size,
        max_workers=services.cfg.clear_users_max_workers,
    )
    print(f"[clear-users] Deleted {deleted} accounts")


COMMANDS = {
    "grant-admin": _grant_admin,
    "invite": _invite,
    "clear-users": _clear_users,
}


def main(argv=None) -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Onboarding operator helper")
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="cmd")

    sg = sub.add_parser("grant-admin", help="Flag an existing account as administrator")
    sg.add_argument("--email", required=True)

    si = sub.add_parser("invite", help="Issue an invitation on behalf of an administrator")
    si.add_argument("--admin-email", required=True)
    si.add_argument("--email", required=True)
    si.add_argument("--first", required=True)
    si.add_argument("--last", required=True)
    si.add_argument("--role", default="member", choices=["manager", "client", "member", "anonymous"])

    sc = sub.add_parser("clear-users", help="Delete every account except the administrator's")
    sc.add_argument("--admin-email", required=True)
    sc.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    sub.add_parser("verify-audit", help="Check audit log signatures")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "verify-audit":
        total, valid = audit.verify_audit_log()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        sys.exit(0 if total == valid else 1)

    command = COMMANDS.get(args.cmd)
    if command is None:
        parser.print_help()
        return

    services = build_services(load_settings())
    try:
        for name in ("email", "admin_email"):
            if getattr(args, name, None):
                setattr(args, name, validate_email(getattr(args, name)))
        command(services, args)
    except OnboardingError as e:
        print(f"[{args.cmd}] Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except (IdentityError, StoreError) as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
