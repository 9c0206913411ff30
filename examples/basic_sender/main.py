#!/usr/bin/env python3
"""
Basic Sender - StellaNow SDK Demo Application

Reads organization, project and credentials from STELLA_* environment
variables (STELLA_ORGANIZATION_ID, STELLA_PROJECT_ID, STELLA_API_KEY,
STELLA_API_SECRET).

Run modes:
  python main.py                         # Send 10 messages (user details and logins) to production
  python main.py --env dev --count 100   # Send 100 messages to the dev environment
  python main.py --broker mqtt://localhost:1883 --no-auth  # Local broker, no auth
"""

import argparse
import asyncio
import logging
import random
import sys
from datetime import UTC, date, datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from messages import PhoneNumber, UserDetailsMessage, UserLoginMessage

from stellanow_sdk import (
    EnvConfig,
    FifoQueue,
    NoAuthMqttAuthStrategy,
    ProjectInfo,
    StellaNowMqttSink,
    StellaNowSDK,
)
from stellanow_sdk.core.logging import configure_sdk_logger

ENVIRONMENTS = {
    "prod": EnvConfig.saas_prod,
    "stage": EnvConfig.saas_stage,
    "dev": EnvConfig.saas_dev,
}

FIRST_NAMES = ["Ada", "Grace", "Alan", "Edsger", "Barbara", "Donald"]
LAST_NAMES = ["Lovelace", "Hopper", "Turing", "Dijkstra", "Liskov", "Knuth"]


def random_user(index: int) -> UserDetailsMessage:
    first = random.choice(FIRST_NAMES)
    last = random.choice(LAST_NAMES)
    return UserDetailsMessage.for_patron(
        f"P{index:05d}",
        first_name=first,
        last_name=last,
        gender=random.choice(["female", "male", "other"]),
        dob=date(random.randint(1950, 2005), random.randint(1, 12), random.randint(1, 28)),
        email=f"{first}.{last}@example.com".lower(),
        phone_number=PhoneNumber(country_code=44, number=random.randint(7_000_000_000, 7_999_999_999)),
    )


def user_login(index: int) -> UserLoginMessage:
    return UserLoginMessage.for_patron(
        f"P{index:05d}",
        timestamp=datetime.now(UTC),
        user_group_id=random.choice(["standard", "vip"]),
    )


def build_sdk(args: argparse.Namespace) -> StellaNowSDK:
    if args.broker:
        env_config = EnvConfig.custom("http://localhost", args.broker)
    else:
        env_config = ENVIRONMENTS[args.env]()

    if not args.no_auth:
        return StellaNowSDK.create_with_mqtt_and_oidc(
            env_config=env_config, performance_monitor_on=args.perf
        )

    project_info = ProjectInfo()
    sink = StellaNowMqttSink(
        NoAuthMqttAuthStrategy(),
        project_info,
        env_config,
        performance_monitor_on=args.perf,
    )
    return StellaNowSDK(project_info, sink, FifoQueue())


async def run(args: argparse.Namespace) -> int:
    sdk = build_sdk(args)
    sdk.on_connected.subscribe(lambda: print("Connected", file=sys.stderr))
    sdk.on_disconnected.subscribe(lambda: print("Disconnected", file=sys.stderr))

    async with sdk:
        for i in range(args.count):
            event = sdk.send_message(random_user(i) if i % 2 == 0 else user_login(i))
            print(f"Queued {event.message_id}")
            if args.interval:
                await asyncio.sleep(args.interval)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + args.timeout
        while sdk.messages_in_queue_count() or sdk.messages_in_flight_count():
            if loop.time() > deadline:
                print(
                    f"Gave up with {sdk.messages_in_queue_count()} queued and "
                    f"{sdk.messages_in_flight_count()} unacknowledged messages",
                    file=sys.stderr,
                )
                return 1
            await asyncio.sleep(0.1)

    print(f"Delivered {args.count} messages")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Send demo messages to StellaNow")
    parser.add_argument("--env", choices=sorted(ENVIRONMENTS), default="prod")
    parser.add_argument("--broker", help="Custom broker URL, overrides --env")
    parser.add_argument("--no-auth", action="store_true", help="Connect without OIDC")
    parser.add_argument("--count", type=int, default=10)
    parser.add_argument("--interval", type=float, default=0.0, help="Seconds between messages")
    parser.add_argument("--timeout", type=float, default=60.0, help="Seconds to wait for delivery")
    parser.add_argument("--perf", action="store_true", help="Log messages per second")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    configure_sdk_logger(logging.DEBUG if args.debug else logging.INFO)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
