#!/usr/bin/env python3
from __future__ import annotations

import argparse
import base64
import json
import os
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any

SANDBOX_API_BASE_URL = "https://preview.twilio.com/WhatsApp/Sandboxes"


def _load_dotenv(path: Path) -> None:
    if not path.is_file():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key or key in os.environ:
            continue
        parsed = value.strip()
        if parsed and (parsed[0] == parsed[-1]) and parsed[0] in {'"', "'"}:
            parsed = parsed[1:-1]
        os.environ[key] = parsed


def _resolve_console_base_url(explicit_value: str | None) -> str:
    if explicit_value:
        candidate = explicit_value.strip()
    else:
        candidate = os.getenv("LEAD_CONSOLE_PUBLIC_URL", "").strip() or "http://localhost:8000"
    if candidate.endswith("/api/v1/console"):
        return candidate
    return f"{candidate.rstrip('/')}/api/v1/console"


def _post_form(url: str, *, account_sid: str, auth_token: str, fields: dict[str, str]) -> dict[str, Any]:
    credentials = base64.b64encode(f"{account_sid}:{auth_token}".encode("utf-8")).decode("ascii")
    request = urllib.request.Request(
        url,
        data=urllib.parse.urlencode(fields).encode("utf-8"),
        headers={
            "Authorization": f"Basic {credentials}",
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        },
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=30) as response:
            return json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise RuntimeError(f"POST {url} failed with {exc.code}: {detail}") from exc


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Point the Twilio WhatsApp sandbox inbound and status webhooks at this deployment."
    )
    parser.add_argument(
        "--console-base-url",
        default=None,
        help=(
            "Public backend URL. Accepts either host root (e.g. https://leads.example.com) "
            "or full API prefix (e.g. https://leads.example.com/api/v1/console)."
        ),
    )
    parser.add_argument(
        "--sandbox-sid",
        default=None,
        help="WhatsApp sandbox SID. Defaults to TWILIO_SANDBOX_SID, then TWILIO_ACCOUNT_SID.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the webhook URLs without calling Twilio.",
    )
    return parser.parse_args()


def main() -> int:
    root_dir = Path(__file__).resolve().parents[1]
    _load_dotenv(root_dir / ".env")
    args = parse_args()

    account_sid = os.getenv("TWILIO_ACCOUNT_SID", "").strip()
    auth_token = os.getenv("TWILIO_AUTH_TOKEN", "").strip()
    sandbox_sid = (args.sandbox_sid or os.getenv("TWILIO_SANDBOX_SID", "") or account_sid).strip()

    console_base_url = _resolve_console_base_url(args.console_base_url)
    fields = {
        "InboundMessageUrl": f"{console_base_url}/webhooks/twilio/inbound",
        "InboundRequestMethod": "POST",
        "StatusCallback": f"{console_base_url}/webhooks/twilio/status",
        "StatusCallbackMethod": "POST",
    }

    if args.dry_run:
        print(json.dumps({"sandbox_sid": sandbox_sid, **fields}, indent=2))
        return 0

    if not account_sid or not auth_token:
        raise SystemExit("TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN are required (set .env or environment)")
    if not sandbox_sid:
        raise SystemExit("sandbox SID is required (pass --sandbox-sid or set TWILIO_SANDBOX_SID)")

    response = _post_form(
        f"{SANDBOX_API_BASE_URL}/{urllib.parse.quote(sandbox_sid, safe='')}",
        account_sid=account_sid,
        auth_token=auth_token,
        fields=fields,
    )
    print(json.dumps({"configured": True, "sandbox": response}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
