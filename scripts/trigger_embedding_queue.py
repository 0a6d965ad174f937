#!/usr/bin/env python
"""Trigger the embedding queue endpoint.

Target: https://$NEXT_PUBLIC_VERCEL_URL/api/process-embedding-queue when the
deployment URL is set, else http://localhost:$PORT (default 3000).
Authenticates with ``Authorization: Bearer $CRON_SECRET``; exits 1 without
any network call when the secret is missing.
"""
from __future__ import annotations
import os
import sys
from typing import Mapping, Optional

import requests
from dotenv import load_dotenv

QUEUE_PATH = "/api/process-embedding-queue"
TIMEOUT = 120


def target_url(env: Mapping[str, str]) -> str:
    host = env.get("NEXT_PUBLIC_VERCEL_URL")
    if host:
        return f"https://{host}{QUEUE_PATH}"
    return f"http://localhost:{env.get('PORT') or 3000}{QUEUE_PATH}"


def main(env: Optional[Mapping[str, str]] = None) -> int:
    if env is None:
        load_dotenv(".env.local")
        env = os.environ

    secret = env.get("CRON_SECRET")
    if not secret:
        print("CRITICAL: CRON_SECRET is not set. Cannot securely trigger embedding queue.", file=sys.stderr)
        return 1

    url = target_url(env)
    print(f"[Embedding Trigger] Target URL: {url}")
    try:
        response = requests.post(
            url,
            headers={"Content-Type": "application/json", "Authorization": f"Bearer {secret}"},
            timeout=TIMEOUT,
        )
    except requests.RequestException as e:
        print(f"Embedding refresh trigger failed: {e}", file=sys.stderr)
        return 1

    if response.text:
        print(response.text)
    if not response.ok:
        print(f"Embedding refresh trigger failed: HTTP {response.status_code}", file=sys.stderr)
        return 1
    print("Embedding refresh trigger successful.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
