"""
Names of the CloudFormation exports published by the appointment stack.

Other deployment units import these values with Fn::ImportValue, so the
names are part of the stack's public interface.  The helpers below read
them back from a deployed account to confirm every export resolved.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Tuple

from appointment_infra.config import COUNTRY_QUEUES

logger = logging.getLogger(__name__)

TABLE_NAME_EXPORT = "AppointmentsTableName"
TOPIC_ARN_EXPORT = "AppointmentTopicArn"
EVENT_BUS_ARN_EXPORT = "AppointmentEventBusArn"
EVENT_BUS_NAME_EXPORT = "AppointmentEventBusName"
BACKUP_QUEUE_ARN_EXPORT = "BackupQueueArn"
DB_ENDPOINT_EXPORT = "AppointmentDbEndpoint"
DB_PORT_EXPORT = "AppointmentDbPort"
DB_NAME_EXPORT = "AppointmentDbName"
DB_SECRET_ARN_EXPORT = "AppointmentDbSecretArn"


def queue_export_name(country: str) -> str:
    return f"Queue{country}Name"


EXPORT_NAMES: Tuple[str, ...] = (
    TABLE_NAME_EXPORT,
    TOPIC_ARN_EXPORT,
    *(queue_export_name(c) for c in COUNTRY_QUEUES),
    EVENT_BUS_ARN_EXPORT,
    EVENT_BUS_NAME_EXPORT,
    BACKUP_QUEUE_ARN_EXPORT,
    DB_ENDPOINT_EXPORT,
    DB_PORT_EXPORT,
    DB_NAME_EXPORT,
    DB_SECRET_ARN_EXPORT,
)


class MissingExportsError(RuntimeError):
    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing or empty exports: {', '.join(self.missing)}")


def fetch_exports(cloudformation) -> Dict[str, str]:
    """Return {name: value} for the appointment exports found in the account/region."""
    wanted = set(EXPORT_NAMES)
    found: Dict[str, str] = {}

    paginator = cloudformation.get_paginator("list_exports")
    for page in paginator.paginate():
        for export in page.get("Exports", []):
            name = export.get("Name")
            if name in wanted:
                found[name] = export.get("Value", "")

    logger.debug("Found %d of %d exports", len(found), len(EXPORT_NAMES))
    return found


def missing_exports(exports: Mapping[str, str]) -> List[str]:
    """Expected export names that are absent or empty, in declaration order."""
    return [name for name in EXPORT_NAMES if not (exports.get(name) or "").strip()]


def require_exports(cloudformation) -> Dict[str, str]:
    exports = fetch_exports(cloudformation)
    missing = missing_exports(exports)
    if missing:
        raise MissingExportsError(missing)
    return exports
