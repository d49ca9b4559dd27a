#!/usr/bin/env python3
"""
Run one campaign job immediately (outside the scheduler) and print its summary.
Run: cd backend && python scripts/run_campaign_job.py review_request
Use --now to replay a window, e.g. --now 2026-03-05T00:00:00+00:00.
"""
import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from clinic_notify.scheduler.campaign_jobs import CAMPAIGN_JOBS
from clinic_notify.services.notifications.dispatcher import build_dispatcher


def main():
    parser = argparse.ArgumentParser(description="Run a campaign job now")
    parser.add_argument("job", choices=sorted(CAMPAIGN_JOBS))
    parser.add_argument("--now", type=datetime.fromisoformat, default=None, help="ISO timestamp to run the window at")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    dispatcher = build_dispatcher()
    result = CAMPAIGN_JOBS[args.job](dispatcher, now=args.now)
    print(json.dumps({"job": args.job, **result.to_dict()}, indent=2))


if __name__ == "__main__":
    main()
