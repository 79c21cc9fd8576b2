"""
Concurrent load harness for the policy gateway.

Runs C virtual clients at once, each issuing R sequential, randomly chosen
operations (add, enforce, remove, get-filtered) against a running gateway.
Failures are logged per iteration and never stop a client; the run ends
only when every client has finished. There are no retries and no rate
limiting, the point is to surface concurrency defects in the gateway.

Usage:
    policy-stress-test --url http://localhost:3000 --clients 100 --requests 100
"""

import argparse
import asyncio
import os
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import httpx
from loguru import logger

from auth.token_manager import TokenManager
from core.observability import setup_logging
from core.settings import load_settings
from loadtest.client import GatewayClient
from loadtest.generator import PolicyGenerator
from policy.filters import TupleField

DEFAULT_GATEWAY_URL = "http://localhost:3000"
DEFAULT_CLIENTS = 100
DEFAULT_REQUESTS_PER_CLIENT = 100


class Operation(str, Enum):
    ADD = "add"
    ENFORCE = "enforce"
    REMOVE = "remove"
    GET_FILTERED = "get_filtered"


@dataclass
class StressTestConfig:
    gateway_url: str = DEFAULT_GATEWAY_URL
    clients: int = DEFAULT_CLIENTS
    requests_per_client: int = DEFAULT_REQUESTS_PER_CLIENT
    account_id: Optional[str] = None
    secret: Optional[str] = None
    seed: Optional[int] = None

    @classmethod
    def from_env(cls) -> "StressTestConfig":
        settings = load_settings()
        return cls(
            gateway_url=(os.getenv("GATEWAY_URL", "") or DEFAULT_GATEWAY_URL).strip(),
            clients=int(os.getenv("STRESS_CLIENTS", "") or DEFAULT_CLIENTS),
            requests_per_client=int(os.getenv("STRESS_REQUESTS_PER_CLIENT", "") or DEFAULT_REQUESTS_PER_CLIENT),
            account_id=settings.trusted_account_id,
            secret=settings.token_secret,
        )


@dataclass
class HarnessReport:
    """Outcome counts for one run. Updated from coroutines on a single event loop."""

    attempted: Counter = field(default_factory=Counter)
    succeeded: Counter = field(default_factory=Counter)
    failed: Counter = field(default_factory=Counter)
    completed_clients: int = 0
    elapsed_s: float = 0.0

    @property
    def total(self) -> int:
        return sum(self.attempted.values())

    @property
    def total_failed(self) -> int:
        return sum(self.failed.values())

    def record(self, operation: Operation, ok: bool) -> None:
        self.attempted[operation] += 1
        if ok:
            self.succeeded[operation] += 1
        else:
            self.failed[operation] += 1

    def summary(self) -> str:
        parts = [
            f"{op.value}={self.attempted[op]} (failed {self.failed[op]})"
            for op in Operation
        ]
        return (
            f"{self.total} operations from {self.completed_clients} clients in {self.elapsed_s:.2f}s: "
            + ", ".join(parts)
        )


async def client_behavior(
    client_id: int,
    gateway: GatewayClient,
    generator: PolicyGenerator,
    iterations: int,
    report: HarnessReport,
) -> None:
    """One virtual client: `iterations` sequential calls, each failure logged and skipped."""
    logger.info(f"Client {client_id} starting")
    operations: List[Operation] = list(Operation)

    for _ in range(iterations):
        operation = generator.rng.choice(operations)
        policy = generator.random_policy()

        try:
            if operation is Operation.ADD:
                added = await gateway.add_policy(policy)
                logger.debug(f"Client {client_id}: Added policy {policy.as_list()} ({added})")
            elif operation is Operation.ENFORCE:
                allowed = await gateway.enforce(policy)
                logger.debug(f"Client {client_id}: Enforce policy {policy.as_list()} Result: {allowed}")
            elif operation is Operation.REMOVE:
                removed = await gateway.remove_policy(policy)
                logger.debug(f"Client {client_id}: Removed policy {policy.as_list()} ({removed})")
            else:
                target = TupleField(generator.rng.randint(0, 2))
                value = getattr(policy, target.field_name)
                policies = await gateway.get_filtered_policy(target, value)
                logger.debug(f"Client {client_id}: Get filtered policy {target.field_name}={value} -> {len(policies)}")
            report.record(operation, ok=True)
        except Exception as e:
            report.record(operation, ok=False)
            logger.error(f"Client {client_id}: Error on {operation.value}: {type(e).__name__}: {e}")

    report.completed_clients += 1
    logger.info(f"Client {client_id} finished")


async def run_stress_test(
    config: StressTestConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HarnessReport:
    """
    Run every client concurrently and wait for all of them.

    `transport` replaces the network transport, e.g. httpx.ASGITransport to
    drive an in-process gateway app.
    """
    if not config.account_id or not config.secret:
        raise ValueError("account_id and secret are required to issue service tokens")
    token_manager = TokenManager(config.secret, ttl_seconds=load_settings().token_ttl_seconds)
    generator = PolicyGenerator(seed=config.seed)
    report = HarnessReport()

    logger.info(f"Starting stress test with {config.clients} concurrent clients against {config.gateway_url}")
    start = time.perf_counter()

    limits = httpx.Limits(max_connections=max(config.clients, 1))
    async with httpx.AsyncClient(base_url=config.gateway_url, transport=transport, limits=limits) as http:
        gateway = GatewayClient(http, token_manager, config.account_id)
        await asyncio.gather(*[
            client_behavior(i + 1, gateway, generator, config.requests_per_client, report)
            for i in range(config.clients)
        ])

    report.elapsed_s = time.perf_counter() - start
    logger.info(f"Stress test completed: {report.summary()}")
    return report


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    defaults = StressTestConfig.from_env()
    parser = argparse.ArgumentParser(description="Concurrent load test for the policy gateway")
    parser.add_argument("--url", default=defaults.gateway_url, help="Gateway base URL")
    parser.add_argument("--clients", type=int, default=defaults.clients, help="Concurrent virtual clients")
    parser.add_argument("--requests", type=int, default=defaults.requests_per_client, help="Requests per client")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument("--log-level", default="INFO", help="Log level (DEBUG shows every call)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_level.upper())
    defaults = StressTestConfig.from_env()
    config = StressTestConfig(
        gateway_url=args.url,
        clients=args.clients,
        requests_per_client=args.requests,
        account_id=defaults.account_id,
        secret=defaults.secret,
        seed=args.seed,
    )
    report = asyncio.run(run_stress_test(config))
    print(report.summary())


if __name__ == "__main__":
    main()
