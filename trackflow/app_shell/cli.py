import argparse
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path

from trackflow.adapters.clock import SystemClock
from trackflow.adapters.sqlite.migrator import SQLiteMigrator
from trackflow.adapters.sqlite.repos import SQLiteSiteRepo
from trackflow.api.auth_utils import create_access_token
from trackflow.components.sites import CreateSiteInput, run_create, run_list
from trackflow.rules.loader import load_rules
from trackflow.rules.models import Rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")

DATA_DIR = os.environ.get("TRACKFLOW_DATA_DIR", "./data")
DB_PATH = f"{DATA_DIR}/trackflow.db"
MIGRATIONS_DIR = "migrations"
RULES_PATH = os.environ.get("TRACKFLOW_RULES_PATH", "rules.yaml")


def get_rules() -> Rules:
    if not Path(RULES_PATH).exists():
        logger.error("Rules file %s not found.", RULES_PATH)
        sys.exit(1)
    return load_rules(Path(RULES_PATH))


def handle_migrate(args: argparse.Namespace) -> None:
    Path(DATA_DIR).mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(DB_PATH, MIGRATIONS_DIR).run_migrations()
    print(f"Applied {len(applied)} migration(s).")


def handle_create_site(args: argparse.Namespace) -> None:
    result = run_create(
        CreateSiteInput(owner_id=args.owner, name=args.name, domain=args.domain),
        repo=SQLiteSiteRepo(DB_PATH),
        time_port=SystemClock(),
    )
    if result.site is None:
        for err in result.errors:
            logger.error("%s: %s", err.field, err.message)
        sys.exit(1)
    print(f"Site created: {result.site.id} ({result.site.domain})")


def handle_list_sites(args: argparse.Namespace) -> None:
    result = run_list(args.owner, repo=SQLiteSiteRepo(DB_PATH))
    print(f"{result.total} site(s):")
    for site in result.sites:
        print(f" - {site.id}  {site.domain}  {site.name}")


def handle_issue_token(args: argparse.Namespace) -> None:
    rules = get_rules()
    ttl = args.ttl_minutes or rules.auth.token_ttl_minutes
    token = create_access_token(
        {"sub": args.owner},
        expires_delta=timedelta(minutes=ttl),
        algorithm=rules.auth.jwt_algorithm,
    )
    print(token)


def main() -> None:
    parser = argparse.ArgumentParser(description="TrackFlow CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # create-site
    site_parser = subparsers.add_parser("create-site", help="Register a site for an owner")
    site_parser.add_argument("--owner", required=True, help="Owner id")
    site_parser.add_argument("--name", required=True, help="Display name")
    site_parser.add_argument("--domain", required=True, help="Site domain")

    # list-sites
    list_parser = subparsers.add_parser("list-sites", help="List the sites of an owner")
    list_parser.add_argument("--owner", required=True, help="Owner id")

    # issue-token
    token_parser = subparsers.add_parser("issue-token", help="Issue an API bearer token")
    token_parser.add_argument("--owner", required=True, help="Owner id (token subject)")
    token_parser.add_argument("--ttl-minutes", type=int, help="Token lifetime")

    args = parser.parse_args()

    if args.command == "migrate":
        handle_migrate(args)
    elif args.command == "create-site":
        handle_create_site(args)
    elif args.command == "list-sites":
        handle_list_sites(args)
    elif args.command == "issue-token":
        handle_issue_token(args)


if __name__ == "__main__":
    main()
