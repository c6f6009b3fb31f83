"""
Create an account (e.g. first admin). Run from project root:
  python -m lexauth.scripts.create_user USERNAME EMAIL PASSWORD [role]
Example:
  python -m lexauth.scripts.create_user admin admin@example.com your-secure-password super_admin
"""
import argparse
import logging
import sys

from lexauth.core.config import configure_logging, get_settings
from lexauth.core.database import session_factory_from_settings
from lexauth.core.errors import LexAuthError
from lexauth.models.account import ROLES
from lexauth.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = argparse.ArgumentParser(description="Create a lexauth account from the command line.")
    parser.add_argument("username", help="Username (3-50 chars)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (6-100 chars)")
    parser.add_argument("role", nargs="?", default="user", choices=ROLES)
    args = parser.parse_args(argv)

    settings = get_settings()
    services = ServiceContainer.build(settings, session_factory_from_settings(settings))
    try:
        _, identity = services.auth.register(args.username, args.email, args.password)
    except LexAuthError as e:
        print(e.message, file=sys.stderr)
        return 1
    if args.role != "user":
        services.store.set_role(identity.id, args.role)
    logger.info("Created account id=%s", identity.id)
    print(f"Created user '{identity.username}' with role '{args.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
