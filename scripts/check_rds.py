"""
Inspect the deployed appointment database and its network exposure.

Usage:
    python scripts/check_rds.py

The instance is located through the AppointmentDbEndpoint export. Exits 1
when the instance is marked not publicly accessible while a security group
still admits 0.0.0.0/0 on the MySQL port.
"""

from __future__ import annotations

import logging
import os
import sys

import boto3
from botocore.exceptions import ClientError

from appointment_infra.checks import (
    find_db_instance,
    has_ingress_contradiction,
    open_ingress_rules,
)
from appointment_infra.config import DB_PORT, DEFAULT_REGION
from appointment_infra.exports import DB_ENDPOINT_EXPORT, fetch_exports

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger("check_rds")

REGION = os.getenv("AWS_REGION", DEFAULT_REGION)


def main():
    session = boto3.Session(region_name=REGION)

    try:
        endpoint = fetch_exports(session.client("cloudformation")).get(DB_ENDPOINT_EXPORT)
        if not endpoint:
            logger.error("Export %s not found in %s", DB_ENDPOINT_EXPORT, REGION)
            sys.exit(1)

        inst = find_db_instance(session.client("rds"), endpoint)
        group_ids = [g["VpcSecurityGroupId"] for g in inst.get("VpcSecurityGroups", [])]
        open_rules = open_ingress_rules(session.client("ec2"), group_ids, DB_PORT)
    except (ClientError, LookupError) as e:
        logger.error("%s", e)
        sys.exit(1)

    print(f"Instance:            {inst['DBInstanceIdentifier']}")
    print(f"Status:              {inst.get('DBInstanceStatus')}")
    print(f"Engine:              {inst.get('Engine')} {inst.get('EngineVersion')}")
    print(f"Endpoint:            {endpoint}:{inst.get('Endpoint', {}).get('Port', DB_PORT)}")
    print(f"Publicly accessible: {inst.get('PubliclyAccessible', False)}")
    print(f"Security groups:     {', '.join(group_ids) or '-'}")

    for group_id, cidr in open_rules:
        logger.warning("Security group %s admits %s on port %d", group_id, cidr, DB_PORT)

    if has_ingress_contradiction(inst, open_rules):
        logger.error(
            "Instance is not publicly accessible but port %d is open to the internet; "
            "confirm this is intended or redeploy without allowPublicDbIngress",
            DB_PORT,
        )
        sys.exit(1)

    print("\nDone.")


if __name__ == "__main__":
    main()
