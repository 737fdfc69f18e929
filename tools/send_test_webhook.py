#!/usr/bin/env python3
# ============================================================================
# TEST WEBHOOK TOOL
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Tool - Send a signed workflow_job delivery
# PURPOSE: Exercise the intake path without a real GitHub repository
# CREATED: 11 OCT 2026
# ============================================================================
"""
Send a signed `workflow_job` webhook to the function app.

Builds the same payload GitHub sends for a queued job, signs it with
GITHUB_WEBHOOK_SECRET, posts it to /api/webhook and optionally polls
/api/status afterwards.

Usage:
    # Queued job for the linux-x64 profile
    python tools/send_test_webhook.py spotrunner/linux-x64 --repo me/sandbox

    # With resource options
    python tools/send_test_webhook.py "spotrunner/linux-x64/cpu=4,ram=16"

    # Non-queued action (should be acknowledged and ignored)
    python tools/send_test_webhook.py spotrunner/linux-x64 --action completed

    # Print the payload and signature without sending
    python tools/send_test_webhook.py spotrunner/linux-x64 --dry-run

Requires:
    GITHUB_WEBHOOK_SECRET env var
"""

import argparse
import json
import os
import random
import sys
import time

import httpx

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.intake_service import compute_signature


def build_payload(
    labels: list,
    repo: str,
    action: str = "queued",
    job_id: int = None,
    installation_id: int = None,
) -> dict:
    job_id = job_id or random.randint(10_000_000, 99_999_999)
    payload = {
        "action": action,
        "workflow_job": {
            "id": job_id,
            "run_id": job_id // 10,
            "name": "build",
            "workflow_name": "CI",
            "labels": labels,
        },
        "repository": {"full_name": repo},
    }
    if installation_id:
        payload["installation"] = {"id": installation_id}
    return payload


def send(base_url: str, secret: str, payload: dict, event: str = "workflow_job") -> httpx.Response:
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Event": event,
        "X-Hub-Signature-256": compute_signature(secret, body),
    }
    with httpx.Client(timeout=60.0) as client:
        return client.post(f"{base_url}/api/webhook", content=body, headers=headers)


def poll_status(base_url: str, timeout: int = 60):
    """Print /api/status every 5 s until ready or timeout."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with httpx.Client(timeout=10.0) as client:
                resp = client.get(f"{base_url}/api/status")
            data = resp.json()
            elapsed = int(time.time() - start)
            print(f"  [{elapsed:3d}s] status={data.get('status')} {data.get('message', '')}")
            if data.get("status") == "ready":
                return data
        except httpx.HTTPError as e:
            elapsed = int(time.time() - start)
            print(f"  [{elapsed:3d}s] Poll error: {e}")
        time.sleep(5)

    print(f"\nTimeout after {timeout}s")
    return None


def main():
    parser = argparse.ArgumentParser(
        description="Send a signed workflow_job webhook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s spotrunner/linux-x64 --repo me/sandbox --installation-id 123
  %(prog)s "spotrunner/linux-arm64/cpu=2" --dry-run
        """,
    )
    parser.add_argument("labels", nargs="+", help="Job labels")
    parser.add_argument("--repo", "-r", default="octo-org/sandbox", help="Repository full name")
    parser.add_argument("--action", "-a", default="queued", help="workflow_job action")
    parser.add_argument("--event", "-e", default="workflow_job", help="X-GitHub-Event value")
    parser.add_argument("--job-id", type=int, help="Job id (random if not set)")
    parser.add_argument(
        "--installation-id", "-i",
        type=int,
        default=int(os.environ.get("GITHUB_INSTALLATION_ID", "0")) or None,
        help="GitHub App installation id",
    )
    parser.add_argument(
        "--url", "-u",
        default=os.environ.get("SPOT_RUNNER_URL", "http://localhost:7071"),
        help="Function app base URL",
    )
    parser.add_argument("--dry-run", action="store_true", help="Print payload and signature only")
    parser.add_argument("--poll", "-p", action="store_true", help="Poll /api/status afterwards")
    parser.add_argument("--timeout", "-t", type=int, default=60, help="Poll timeout in seconds")

    args = parser.parse_args()

    secret = os.environ.get("GITHUB_WEBHOOK_SECRET")
    if not secret:
        print("ERROR: Set GITHUB_WEBHOOK_SECRET", file=sys.stderr)
        sys.exit(1)

    payload = build_payload(
        labels=args.labels,
        repo=args.repo,
        action=args.action,
        job_id=args.job_id,
        installation_id=args.installation_id,
    )

    if args.dry_run:
        body = json.dumps(payload).encode("utf-8")
        print(json.dumps(payload, indent=2))
        print(f"\nX-Hub-Signature-256: {compute_signature(secret, body)}")
        return

    print(f"Sending {args.event}/{args.action} for job {payload['workflow_job']['id']} to {args.url}")
    try:
        resp = send(args.url, secret, payload, event=args.event)
    except httpx.HTTPError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"  HTTP {resp.status_code}")
    print(json.dumps(resp.json(), indent=2))

    if args.poll:
        poll_status(args.url, timeout=args.timeout)

    if resp.status_code >= 400:
        sys.exit(1)


if __name__ == "__main__":
    main()
