"""
Smoke-test the messaging wiring of a deployed appointment stack.

Publishes one message to the appointment topic and puts one event with
source=appointment.handler on the event bus.

Usage:
    python scripts/send_test_event.py
    python scripts/send_test_event.py --wait             # poll the queues
    python scripts/send_test_event.py --wait --timeout 120
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import uuid

import boto3
from botocore.exceptions import ClientError

from appointment_infra.checks import queue_url_from_arn, wait_for_messages
from appointment_infra.config import COUNTRY_QUEUES, DEFAULT_REGION, EVENT_SOURCE
from appointment_infra.exports import (
    BACKUP_QUEUE_ARN_EXPORT,
    EVENT_BUS_NAME_EXPORT,
    MissingExportsError,
    TOPIC_ARN_EXPORT,
    queue_export_name,
    require_exports,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger("send_test_event")

REGION = os.getenv("AWS_REGION", DEFAULT_REGION)


def main():
    parser = argparse.ArgumentParser(description="Appointment messaging smoke test")
    parser.add_argument("--wait", action="store_true",
                        help="Poll the queues until each receives a message")
    parser.add_argument("--timeout", type=float, default=60.0,
                        help="Seconds to wait when --wait is given")
    args = parser.parse_args()

    session = boto3.Session(region_name=REGION)
    sns = session.client("sns")
    events = session.client("events")
    sqs = session.client("sqs")

    try:
        exports = require_exports(session.client("cloudformation"))

        appointment_id = f"smoke-{uuid.uuid4()}"
        body = json.dumps({"appointmentId": appointment_id, "insuredId": "00000"})

        resp = sns.publish(TopicArn=exports[TOPIC_ARN_EXPORT], Message=body)
        logger.info("Published %s to topic (MessageId=%s)", appointment_id, resp["MessageId"])

        resp = events.put_events(Entries=[{
            "Source": EVENT_SOURCE,
            "DetailType": "AppointmentSmokeTest",
            "Detail": body,
            "EventBusName": exports[EVENT_BUS_NAME_EXPORT],
        }])
        if resp.get("FailedEntryCount", 0):
            logger.error("put_events rejected the event: %s", resp["Entries"])
            sys.exit(1)
        logger.info("Put event with source=%s on the bus", EVENT_SOURCE)

        if not args.wait:
            return

        queue_urls = {
            country: queue_url_from_arn(sqs, exports[queue_export_name(country)])
            for country in COUNTRY_QUEUES
        }
        queue_urls["backup"] = queue_url_from_arn(sqs, exports[BACKUP_QUEUE_ARN_EXPORT])

        logger.info("Polling %d queues for up to %.0fs ...", len(queue_urls), args.timeout)
        received = wait_for_messages(sqs, queue_urls, timeout=args.timeout)
    except (ClientError, MissingExportsError, ValueError) as e:
        logger.error("%s", e)
        sys.exit(1)

    for label, ok in received.items():
        print(f"  [{'OK' if ok else '--'}] {label}")

    if not all(received.values()):
        logger.error("Timed out waiting for messages")
        sys.exit(1)


if __name__ == "__main__":
    main()
