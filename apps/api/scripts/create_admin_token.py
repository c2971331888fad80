"""Mint an admin session token for the moderation and analytics routes."""

import argparse
import os
import sys

# Add parent dir to path to find config/services
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.session_token import create_session_token


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="Identifier recorded as the token subject")
    parser.add_argument("--email", default=None)
    parser.add_argument("--hours", type=int, default=None, help="Token lifetime in hours")
    args = parser.parse_args()

    session = create_session_token(args.user_id, email=args.email, expires_hours=args.hours)
    print(session["token"])
    print(f"expires_at={session['expires_at']}", file=sys.stderr)


if __name__ == "__main__":
    main()
