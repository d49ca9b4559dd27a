#!/usr/bin/env python3
"""
Send one notification now, through the same Dispatcher the API uses, and print the outcome
plus the rows it logged. Useful for checking FCM / Kakao credentials against a real device.
Run: cd backend && python scripts/send_test_notification.py 42 RESERVATION_CANCELLED reservation_id=7 reason=테스트
"""
import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from clinic_notify.services.notifications.dispatcher import build_dispatcher
from clinic_notify.services.notifications.types import NotificationType


def _parse_payload(pairs: list[str]) -> dict[str, str]:
    payload = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise SystemExit(f"payload entries must be key=value, got {pair!r}")
        payload[key.strip()] = value
    return payload


def main():
    parser = argparse.ArgumentParser(description="Send a test notification")
    parser.add_argument("user_id", type=int)
    parser.add_argument("type", choices=[t.value for t in NotificationType])
    parser.add_argument("payload", nargs="*", help="key=value template variables")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    dispatcher = build_dispatcher()
    outcome = dispatcher.notify(args.user_id, args.type, _parse_payload(args.payload))
    print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))

    print("Recent delivery attempts:")
    for row in dispatcher.log.list_for_recipient(args.user_id, limit=len(outcome.attempts) or 1):
        print(f"  #{row.id} {row.type} {row.channel} {row.status} {row.error_message or ''}")
    sys.exit(0 if outcome.success else 1)


if __name__ == "__main__":
    main()
