"""
Pytest fixtures for the appointment stack tests.

Provides:
- A synthesized stack/template pair with default settings
- A factory for stacks built from explicit settings or CDK context
"""

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Template

from appointment_infra.config import STACK_ID, StackSettings
from stacks.appointment_stack import AppointmentStack

TEST_ACCOUNT = "123456789012"
TEST_REGION = "us-east-1"


def build_stack(context=None, settings=None):
    """Synthesize a fresh app; Vpc.from_lookup returns a dummy VPC without cached context."""
    app = cdk.App(context=context or {})
    if settings is None:
        settings = StackSettings.from_context(app.node)
    return AppointmentStack(
        app,
        STACK_ID,
        settings=settings,
        env=cdk.Environment(account=TEST_ACCOUNT, region=TEST_REGION),
    )


@pytest.fixture
def make_stack():
    return build_stack


@pytest.fixture(scope="module")
def stack():
    return build_stack()


@pytest.fixture(scope="module")
def template(stack):
    return Template.from_stack(stack)
