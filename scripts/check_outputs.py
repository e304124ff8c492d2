"""
Verify that every export of the appointment stack resolved after deploy.

Usage:
    python scripts/check_outputs.py
    AWS_REGION=us-east-1 python scripts/check_outputs.py
"""

from __future__ import annotations

import logging
import os
import sys

import boto3
from botocore.exceptions import ClientError

from appointment_infra.config import DEFAULT_REGION
from appointment_infra.exports import EXPORT_NAMES, MissingExportsError, require_exports

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger("check_outputs")

REGION = os.getenv("AWS_REGION", DEFAULT_REGION)


def main():
    cloudformation = boto3.client("cloudformation", region_name=REGION)

    try:
        exports = require_exports(cloudformation)
    except MissingExportsError as e:
        logger.error("%s", e)
        sys.exit(1)
    except ClientError as e:
        logger.error("Listing exports failed: %s", e)
        sys.exit(1)

    width = max(len(n) for n in EXPORT_NAMES)
    for name in EXPORT_NAMES:
        print(f"  {name:<{width}}  {exports[name]}")
    logger.info("All %d exports present in %s", len(EXPORT_NAMES), REGION)


if __name__ == "__main__":
    main()
