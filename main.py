#!/usr/bin/env python3
"""
SteamSignIn -- Steam profile lookup from the command line.

Fetches public profile data for one or more SteamID64s from the Steam Web API,
using the same fetcher the web app uses after sign-in.

Usage:
  python main.py 76561197960435530
  python main.py 76561197960435530 76561197960287930
  python main.py 76561197960435530 --json
  python main.py 76561197960435530 --api-key YOUR-KEY

Environment variables:
  STEAM_API_KEY   Steam Web API key. Required unless --api-key is given.
                  Free registration at https://steamcommunity.com/dev/apikey
  PROFILE_API_URL Optional override of the GetPlayerSummaries endpoint.
"""

import argparse
import json
import os
import re
import sys
from datetime import datetime, timezone
from typing import Optional

from core.config import PLAYER_SUMMARIES_API
from core.fetcher import ProfileFetcher
from core.models import STEAM_ID_PATTERN, PersonaState, ProfileAttributes, Visibility

_STEAM_ID_RE = re.compile(STEAM_ID_PATTERN)


def _format_timestamp(value: Optional[int]) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _label(enum_cls, value: Optional[int]) -> str:
    if value is None:
        return "-"
    try:
        return enum_cls(value).name.replace("_", " ").lower()
    except ValueError:
        return str(value)


def print_profile(profile: ProfileAttributes) -> None:
    """Print one profile as an aligned block of key: value lines."""
    rows = [
        ("SteamID64", profile.steamid),
        ("Name", profile.personaname),
        ("Real name", profile.realname),
        ("Profile", profile.profileurl),
        ("Status", _label(PersonaState, profile.personastate)),
        ("Visibility", _label(Visibility, profile.communityvisibilitystate)),
        ("Country", profile.loccountrycode),
        ("Created", _format_timestamp(profile.timecreated)),
        ("Last logoff", _format_timestamp(profile.lastlogoff)),
    ]
    print()
    for label, value in rows:
        print(f"  {label:<12} {value if value is not None else '-'}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="steam-signin",
        description="Look up Steam profiles by SteamID64.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py 76561197960435530
  python main.py 76561197960435530 76561197960287930 --json
  STEAM_API_KEY=your-key python main.py 76561197960435530
        """,
    )
    parser.add_argument(
        "steam_ids",
        nargs="*",
        metavar="STEAMID64",
        help="One or more SteamID64s to look up",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output the raw profile fields as JSON",
    )
    parser.add_argument(
        "--api-key",
        metavar="KEY",
        default=None,
        help="Steam Web API key (default: $STEAM_API_KEY)",
    )
    args = parser.parse_args(argv)

    if not args.steam_ids:
        parser.print_help()
        return 0

    api_key: Optional[str] = args.api_key or os.environ.get("STEAM_API_KEY") or None
    if not api_key:
        print("  [!] No Steam Web API key. Set STEAM_API_KEY or pass --api-key.", file=sys.stderr)
        return 2

    steam_ids: list[str] = []
    for raw in args.steam_ids:
        candidate = raw.strip()
        if not _STEAM_ID_RE.match(candidate):
            print(f"  [!] '{raw}' doesn't look like a SteamID64. Expected 7 followed by 15-25 digits.", file=sys.stderr)
            continue
        steam_ids.append(candidate)

    if not steam_ids:
        return 2

    fetcher = ProfileFetcher(api_url=os.environ.get("PROFILE_API_URL") or PLAYER_SUMMARIES_API)
    try:
        profiles = fetcher.fetch_many(api_key, steam_ids)
    finally:
        fetcher.close()

    if args.json:
        print(json.dumps([p.to_dict() for p in profiles], indent=2))
    else:
        for profile in profiles:
            print_profile(profile)
        print()

    found = {p.steamid for p in profiles}
    missing = [s for s in steam_ids if s not in found]
    if missing:
        print(f"  [!] {len(missing)} profile(s) could not be retrieved: {', '.join(missing)}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
