"""
Operator tools for linked accounts.

Run from the project root::

    python -m scripts.linked_roles profile <discord_user_id>
    python -m scripts.linked_roles metadata <discord_user_id>
    python -m scripts.linked_roles push <fitbit_user_id>
    python -m scripts.linked_roles disconnect <discord_user_id>

Uses the same settings (and therefore the same storage) as the server.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from config.settings import config
from core.services import build_services
from utils.errors import UnlinkedUserError

logger = logging.getLogger(__name__)


def _no_connection() -> str:
    return f"No connection found.  Visit {config.verification_url} to set it up."


async def _run(args: argparse.Namespace) -> int:
    services = build_services(config)
    await services.startup()
    try:
        if args.command == "profile":
            metadata = await services.link_flow.get_profile(args.user_id)
            print(json.dumps(metadata.to_payload()))
        elif args.command == "metadata":
            print(json.dumps(await services.link_flow.get_metadata(args.user_id)))
        elif args.command == "push":
            result = await services.orchestrator.sync(args.user_id)
            print(f"Metadata pushed for Discord user {result.discord_user_id}!")
        elif args.command == "disconnect":
            result = await services.link_flow.disconnect(args.user_id)
            print("Fitbit account disconnected." if result.cleaned_up else _no_connection())
    except UnlinkedUserError as exc:
        logger.debug("%s", exc)
        print(_no_connection())
        return 1
    finally:
        await services.shutdown()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="linked_roles", description=__doc__.splitlines()[1])
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("profile", help="print the linked Fitbit profile as metadata").add_argument("user_id")
    sub.add_parser("metadata", help="print the metadata Discord currently holds").add_argument("user_id")
    sub.add_parser("push", help="sync metadata for a Fitbit user").add_argument("user_id")
    sub.add_parser("disconnect", help="revoke everything for a Discord user").add_argument("user_id")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)-8s  %(name)s — %(message)s")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
