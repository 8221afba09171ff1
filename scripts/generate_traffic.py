#!/usr/bin/env python3
from __future__ import annotations

import argparse
import random
import time
from collections import Counter
from dataclasses import dataclass

import httpx

METHODS = ("GET", "POST", "PUT", "DELETE")
PATHS = ("/api/users", "/api/products", "/login", "/api/orders", "/checkout")
COUNTRIES = ("US", "VN", "JP", "DE", "GB", "FR", "CA", "AU")
USER_AGENTS = (
    "Mozilla/5.0 (X11; Linux x86_64) Firefox/131.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_6) Safari/605.1.15",
    "curl/8.9.1",
)


@dataclass(frozen=True)
class SyntheticRequest:
    method: str
    path: str
    country: str
    ip: str
    user_agent: str


def build_synthetic_requests(count: int, rng: random.Random) -> list[SyntheticRequest]:
    return [
        SyntheticRequest(
            method=rng.choice(METHODS),
            path=rng.choice(PATHS),
            country=rng.choice(COUNTRIES),
            ip=f"203.0.113.{rng.randint(1, 254)}",
            user_agent=rng.choice(USER_AGENTS),
        )
        for _ in range(count)
    ]


def send_request(
    client: httpx.Client,
    base_url: str,
    synthetic: SyntheticRequest,
    *,
    ip_header: str,
    country_header: str,
) -> tuple[str, str]:
    try:
        response = client.request(
            synthetic.method,
            f"{base_url.rstrip('/')}{synthetic.path}",
            headers={
                "User-Agent": synthetic.user_agent,
                ip_header: synthetic.ip,
                country_header: synthetic.country,
            },
        )
    except httpx.HTTPError as exc:
        return ("error", f"request_failed: {exc}")

    if response.status_code == 200:
        return ("tracked", str(response.status_code))
    return ("error", f"status={response.status_code} detail={response.text}")


def summarize(client: httpx.Client, base_url: str) -> str:
    response = client.get(f"{base_url.rstrip('/')}/api/analytics")
    response.raise_for_status()
    analytics = response.json()
    methods = Counter(entry["method"] for entry in analytics["requests"])
    return (
        f"total_requests={analytics['totalRequests']} "
        f"retained={len(analytics['requests'])} "
        f"methods={dict(methods)}"
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Send synthetic tracked traffic to EdgePulse")
    parser.add_argument(
        "--base-url",
        default="http://localhost:8000",
        help="EdgePulse base URL (default: http://localhost:8000)",
    )
    parser.add_argument("--count", type=int, default=20, help="Number of requests to send")
    parser.add_argument(
        "--interval",
        type=float,
        default=0.1,
        help="Pause between requests in seconds (default: 0.1)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument("--ip-header", default="CF-Connecting-IP")
    parser.add_argument("--country-header", default="CF-IPCountry")
    args = parser.parse_args()

    synthetic_requests = build_synthetic_requests(args.count, random.Random(args.seed))
    print(f"Sending {len(synthetic_requests)} synthetic requests to {args.base_url}...")

    failures = 0
    with httpx.Client(timeout=10) as client:
        for synthetic in synthetic_requests:
            outcome, info = send_request(
                client,
                args.base_url,
                synthetic,
                ip_header=args.ip_header,
                country_header=args.country_header,
            )
            if outcome != "tracked":
                failures += 1
            print(f"- {synthetic.method} {synthetic.path} [{synthetic.country}]: {outcome} ({info})")
            time.sleep(args.interval)

        try:
            print(summarize(client, args.base_url))
        except httpx.HTTPError as exc:
            print(f"summary unavailable: {exc}")
            return 1

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
