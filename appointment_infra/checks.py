"""
Post-deploy checks against a live account.

These helpers take boto3 clients so the scripts under scripts/ stay thin and
the logic can be exercised with mocked clients.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, List, Tuple

from appointment_infra.config import ANY_IPV4, ANY_IPV6, DB_PORT

logger = logging.getLogger(__name__)


def find_db_instance(rds, endpoint: str) -> dict:
    """Return the DB instance whose endpoint address equals *endpoint*."""
    paginator = rds.get_paginator("describe_db_instances")
    for page in paginator.paginate():
        for inst in page.get("DBInstances", []):
            if inst.get("Endpoint", {}).get("Address") == endpoint:
                return inst
    raise LookupError(f"No RDS instance with endpoint {endpoint}")


def _covers_port(perm: dict, port: int) -> bool:
    if perm.get("IpProtocol") == "-1":
        return True
    lo = perm.get("FromPort")
    hi = perm.get("ToPort")
    if lo is None or hi is None:
        return False
    return lo <= port <= hi


def open_ingress_rules(ec2, group_ids: Iterable[str], port: int = DB_PORT) -> List[Tuple[str, str]]:
    """(group_id, cidr) pairs admitting any IPv4 or IPv6 address on *port*."""
    group_ids = list(group_ids)
    if not group_ids:
        return []

    resp = ec2.describe_security_groups(GroupIds=group_ids)
    found: List[Tuple[str, str]] = []
    for sg in resp.get("SecurityGroups", []):
        for perm in sg.get("IpPermissions", []):
            if not _covers_port(perm, port):
                continue
            for rng in perm.get("IpRanges", []):
                if rng.get("CidrIp") == ANY_IPV4:
                    found.append((sg["GroupId"], ANY_IPV4))
            for rng in perm.get("Ipv6Ranges", []):
                if rng.get("CidrIpv6") == ANY_IPV6:
                    found.append((sg["GroupId"], ANY_IPV6))
    return found


def has_ingress_contradiction(instance: dict, open_rules: List[Tuple[str, str]]) -> bool:
    """A private instance whose security groups still admit the whole internet."""
    return not instance.get("PubliclyAccessible", False) and bool(open_rules)


def queue_url_from_arn(sqs, queue_arn: str) -> str:
    # arn:aws:sqs:<region>:<account>:<name>
    parts = queue_arn.split(":")
    if len(parts) != 6 or parts[2] != "sqs":
        raise ValueError(f"Not an SQS queue ARN: {queue_arn}")
    resp = sqs.get_queue_url(QueueName=parts[5], QueueOwnerAWSAccountId=parts[4])
    return resp["QueueUrl"]


def wait_for_messages(
    sqs,
    queue_urls: Dict[str, str],
    timeout: float = 60.0,
    poll_seconds: int = 5,
    clock: Callable[[], float] = time.monotonic,
) -> Dict[str, bool]:
    """
    Long-poll each queue until it yields a message or *timeout* expires.

    Each long poll is capped at the time left before the deadline.
    Messages received are deleted. Returns {label: received}.
    """
    received = {label: False for label in queue_urls}
    deadline = clock() + timeout

    while not all(received.values()):
        for label, url in queue_urls.items():
            if received[label]:
                continue
            remaining = deadline - clock()
            if remaining <= 0:
                return received
            resp = sqs.receive_message(
                QueueUrl=url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=min(poll_seconds, int(remaining)),
            )
            messages = resp.get("Messages", [])
            if messages:
                received[label] = True
                logger.info("Queue %s received a message", label)
                for msg in messages:
                    sqs.delete_message(QueueUrl=url, ReceiptHandle=msg["ReceiptHandle"])

    return received
