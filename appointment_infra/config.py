from __future__ import annotations

import ipaddress
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import aws_cdk as cdk
from constructs import Node

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
STACK_ID = "AppointmentCdkStack"

# dynamodb
TABLE_NAME = "Appointments"
PARTITION_KEY = "appointmentId"
INSURED_INDEX_NAME = "insuredId-index"
INSURED_KEY = "insuredId"

# sns / sqs: one intake queue per country, PE = Peru, CL = Chile
COUNTRY_QUEUES: Tuple[str, ...] = ("PE", "CL")

# eventbridge
EVENT_BUS_NAME = "AppointmentEvents"
EVENT_SOURCE = "appointment.handler"

# rds mysql
DB_NAME = "appointment_db"
DB_ADMIN_USER = "dbadmin"
DB_PORT = 3306
DB_INSTANCE_TYPE = "t3.micro"
DB_ALLOCATED_STORAGE_GB = 20
DB_MAX_ALLOCATED_STORAGE_GB = 100

ANY_IPV4 = "0.0.0.0/0"
ANY_IPV6 = "::/0"

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


class ConfigurationError(ValueError):
    """Raised when stack settings hold an unusable value."""


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {value!r}")


def _as_positive_int(key: str, value: Any) -> int:
    # bool is an int subclass; -c dbAllocatedStorage=true is a mistake
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")
    try:
        n = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"{key} must be a positive integer, got {value!r}") from None
    if n <= 0:
        raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")
    return n


def _as_ipv4_cidr(key: str, value: Any) -> str:
    s = str(value).strip()
    try:
        net = ipaddress.IPv4Network(s, strict=False)
    except ValueError:
        raise ConfigurationError(f"{key} must be an IPv4 CIDR, got {value!r}") from None
    if "/" not in s:
        raise ConfigurationError(f"{key} must include a prefix length, got {value!r}")
    return str(net)


@dataclass(frozen=True)
class StackSettings:
    """Synth-time settings for the appointment stack."""

    account: Optional[str] = None
    region: str = DEFAULT_REGION
    db_instance_type: str = DB_INSTANCE_TYPE
    db_allocated_storage: int = DB_ALLOCATED_STORAGE_GB
    db_max_allocated_storage: int = DB_MAX_ALLOCATED_STORAGE_GB
    # None means "the VPC CIDR"
    db_ingress_cidr: Optional[str] = None
    allow_public_db_ingress: bool = False

    def __post_init__(self) -> None:
        # frozen: normalized values go through object.__setattr__
        for key, attr in (
            ("dbAllocatedStorage", "db_allocated_storage"),
            ("dbMaxAllocatedStorage", "db_max_allocated_storage"),
        ):
            object.__setattr__(self, attr, _as_positive_int(key, getattr(self, attr)))
        if self.db_ingress_cidr is not None:
            object.__setattr__(
                self, "db_ingress_cidr", _as_ipv4_cidr("dbIngressCidr", self.db_ingress_cidr),
            )

        if self.db_max_allocated_storage < self.db_allocated_storage:
            raise ConfigurationError(
                "dbMaxAllocatedStorage "
                f"({self.db_max_allocated_storage}) is below dbAllocatedStorage "
                f"({self.db_allocated_storage})"
            )
        if self.db_ingress_cidr == ANY_IPV4 and not self.allow_public_db_ingress:
            raise ConfigurationError(
                f"dbIngressCidr={ANY_IPV4} opens the database port to the internet; "
                "set allowPublicDbIngress=true to confirm"
            )

        if (
            self.allow_public_db_ingress
            and self.db_ingress_cidr is not None
            and self.db_ingress_cidr != ANY_IPV4
        ):
            raise ConfigurationError(
                f"allowPublicDbIngress=true conflicts with dbIngressCidr={self.db_ingress_cidr}"
            )

    def db_ingress_peer_cidr(self, vpc_cidr: str) -> str:
        """CIDR allowed to reach the database port."""
        if self.allow_public_db_ingress:
            return ANY_IPV4
        return self.db_ingress_cidr or vpc_cidr

    @classmethod
    def from_context(cls, node: Node) -> "StackSettings":
        """
        Resolve settings from CDK context (cdk.json or `cdk -c key=value`).
        Every key is optional and falls back to the module defaults.
        """
        def get(key: str) -> Any:
            return node.try_get_context(key)

        kwargs: dict = {
            "account": get("account") or os.getenv("CDK_DEFAULT_ACCOUNT") or None,
            "region": get("region") or DEFAULT_REGION,
        }

        if get("dbInstanceType"):
            kwargs["db_instance_type"] = str(get("dbInstanceType")).strip()
        if get("dbAllocatedStorage") is not None:
            kwargs["db_allocated_storage"] = _as_positive_int(
                "dbAllocatedStorage", get("dbAllocatedStorage")
            )
        if get("dbMaxAllocatedStorage") is not None:
            kwargs["db_max_allocated_storage"] = _as_positive_int(
                "dbMaxAllocatedStorage", get("dbMaxAllocatedStorage")
            )
        if get("dbIngressCidr"):
            kwargs["db_ingress_cidr"] = _as_ipv4_cidr("dbIngressCidr", get("dbIngressCidr"))
        if get("allowPublicDbIngress") is not None:
            kwargs["allow_public_db_ingress"] = _as_bool(
                "allowPublicDbIngress", get("allowPublicDbIngress")
            )

        settings = cls(**kwargs)
        logger.debug("Resolved stack settings: %s", settings)
        return settings

    def environment(self) -> cdk.Environment:
        return cdk.Environment(account=self.account, region=self.region)
