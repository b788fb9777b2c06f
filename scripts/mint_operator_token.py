#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
BACKEND_SRC = ROOT_DIR / "backend" / "src"
if str(BACKEND_SRC) not in sys.path:
    sys.path.insert(0, str(BACKEND_SRC))

from lead_console.config import get_settings  # noqa: E402
from lead_console.contacts import ensure_default_tenant  # noqa: E402
from lead_console.lead_store import create_lead_repository  # noqa: E402
from lead_console.operator_tokens import issue_operator_token  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Issue an operator session token for the lead console API.")
    parser.add_argument("user_id", help="Operator user id carried in the token subject.")
    parser.add_argument(
        "--ttl-minutes",
        type=int,
        default=None,
        help="Token lifetime. Defaults to OPERATOR_SESSION_TTL_MINUTES.",
    )
    parser.add_argument(
        "--register-profile",
        action="store_true",
        help="Also upsert the operator profile in the configured SQL lead store.",
    )
    parser.add_argument(
        "--tenant-id",
        default=None,
        help="Tenant for --register-profile. Defaults to the resolved default tenant.",
    )
    parser.add_argument("--display-name", default=None, help="Display name for --register-profile.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = get_settings()
    ttl_minutes = args.ttl_minutes if args.ttl_minutes is not None else settings.operator_session_ttl_minutes

    result: dict[str, object] = {"user_id": args.user_id}
    if args.register_profile:
        if settings.lead_store_backend.strip().lower() != "postgres":
            raise SystemExit("--register-profile needs LEAD_STORE_BACKEND=postgres and DATABASE_URL")
        repository = create_lead_repository(backend=settings.lead_store_backend, database_url=settings.database_url)
        tenant_id = (args.tenant_id or "").strip()
        if not tenant_id:
            tenant_id = ensure_default_tenant(
                repository,
                tenant_id=settings.default_tenant_id,
                name=settings.default_tenant_name,
            ).tenant_id
        profile = repository.upsert_profile(user_id=args.user_id, tenant_id=tenant_id, display_name=args.display_name)
        result["tenant_id"] = profile.tenant_id

    result["token"] = issue_operator_token(
        user_id=args.user_id,
        secret=settings.operator_session_secret,
        ttl_minutes=ttl_minutes,
    )
    result["ttl_minutes"] = ttl_minutes
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
