"""
Unit tests for StackSettings resolution from CDK context.
"""

import aws_cdk as cdk
import pytest

from appointment_infra.config import (
    ANY_IPV4,
    DB_ALLOCATED_STORAGE_GB,
    DB_INSTANCE_TYPE,
    DB_MAX_ALLOCATED_STORAGE_GB,
    DEFAULT_REGION,
    ConfigurationError,
    StackSettings,
)


def settings_from(context):
    return StackSettings.from_context(cdk.App(context=context).node)


class TestDefaults:

    def test_empty_context(self, monkeypatch):
        monkeypatch.delenv("CDK_DEFAULT_ACCOUNT", raising=False)
        s = settings_from({})

        assert s.account is None
        assert s.region == DEFAULT_REGION
        assert s.db_instance_type == DB_INSTANCE_TYPE
        assert s.db_allocated_storage == DB_ALLOCATED_STORAGE_GB
        assert s.db_max_allocated_storage == DB_MAX_ALLOCATED_STORAGE_GB
        assert s.db_ingress_cidr is None
        assert s.allow_public_db_ingress is False

    def test_account_from_environment(self, monkeypatch):
        monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "111122223333")

        assert settings_from({}).account == "111122223333"

    def test_context_account_wins(self, monkeypatch):
        monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "111122223333")

        assert settings_from({"account": "444455556666"}).account == "444455556666"

    def test_environment(self):
        env = StackSettings(account="123456789012", region="sa-east-1").environment()

        assert env.account == "123456789012"
        assert env.region == "sa-east-1"


class TestContextParsing:

    def test_storage_strings_from_cli(self):
        s = settings_from({"dbAllocatedStorage": "30", "dbMaxAllocatedStorage": "60"})

        assert s.db_allocated_storage == 30
        assert s.db_max_allocated_storage == 60

    @pytest.mark.parametrize("value", ["0", "-5", "lots", True])
    def test_invalid_storage(self, value):
        with pytest.raises(ConfigurationError, match="dbAllocatedStorage"):
            settings_from({"dbAllocatedStorage": value})

    def test_ceiling_below_allocation(self):
        with pytest.raises(ConfigurationError, match="below"):
            settings_from({"dbAllocatedStorage": 50, "dbMaxAllocatedStorage": 40})

    @pytest.mark.parametrize("value,expected", [
        (True, True), (False, False), ("true", True), ("FALSE", False),
        ("1", True), ("no", False), ("Yes", True),
    ])
    def test_boolean_values(self, value, expected):
        assert settings_from({"allowPublicDbIngress": value}).allow_public_db_ingress is expected

    def test_invalid_boolean(self):
        with pytest.raises(ConfigurationError, match="allowPublicDbIngress"):
            settings_from({"allowPublicDbIngress": "maybe"})

    def test_ingress_cidr_normalized(self):
        assert settings_from({"dbIngressCidr": "10.0.1.7/16"}).db_ingress_cidr == "10.0.0.0/16"

    @pytest.mark.parametrize("value", ["10.0.0.0", "10.0.0.0/33", "not-a-cidr", "fd00::/8"])
    def test_invalid_ingress_cidr(self, value):
        with pytest.raises(ConfigurationError, match="dbIngressCidr"):
            settings_from({"dbIngressCidr": value})


class TestPublicIngress:

    def test_any_ipv4_requires_confirmation(self):
        with pytest.raises(ConfigurationError, match="allowPublicDbIngress"):
            settings_from({"dbIngressCidr": ANY_IPV4})

    def test_any_ipv4_with_confirmation(self):
        s = settings_from({"dbIngressCidr": ANY_IPV4, "allowPublicDbIngress": "true"})

        assert s.db_ingress_peer_cidr("172.31.0.0/16") == ANY_IPV4

    def test_confirmation_conflicts_with_narrow_cidr(self):
        with pytest.raises(ConfigurationError, match="conflicts"):
            settings_from({"dbIngressCidr": "10.0.0.0/8", "allowPublicDbIngress": "true"})

    def test_peer_cidr_defaults_to_vpc(self):
        assert StackSettings().db_ingress_peer_cidr("172.31.0.0/16") == "172.31.0.0/16"

    def test_peer_cidr_custom(self):
        s = StackSettings(db_ingress_cidr="10.0.0.0/8")

        assert s.db_ingress_peer_cidr("172.31.0.0/16") == "10.0.0.0/8"


class TestDirectConstruction:

    def test_negative_storage(self):
        with pytest.raises(ConfigurationError, match="dbAllocatedStorage"):
            StackSettings(db_allocated_storage=-5, db_max_allocated_storage=-1)

    def test_zero_ceiling(self):
        with pytest.raises(ConfigurationError, match="dbMaxAllocatedStorage"):
            StackSettings(db_max_allocated_storage=0)

    def test_boolean_storage(self):
        with pytest.raises(ConfigurationError, match="dbAllocatedStorage"):
            StackSettings(db_allocated_storage=True)

    @pytest.mark.parametrize("value", ["10.0.0.0", "10.0.0.0/33", "fd00::/8"])
    def test_invalid_ingress_cidr(self, value):
        with pytest.raises(ConfigurationError, match="dbIngressCidr"):
            StackSettings(db_ingress_cidr=value)

    def test_ingress_cidr_normalized(self):
        assert StackSettings(db_ingress_cidr="10.0.1.7/16").db_ingress_cidr == "10.0.0.0/16"

    def test_any_ipv4_requires_confirmation(self):
        with pytest.raises(ConfigurationError, match="allowPublicDbIngress"):
            StackSettings(db_ingress_cidr=ANY_IPV4)
