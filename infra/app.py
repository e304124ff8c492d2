#!/usr/bin/env python3
"""
AWS CDK entry point.

Provisions:
  - DynamoDB "Appointments" table (appointmentId key, insuredId GSI)
  - SNS topic fanning out to the PE and CL SQS queues
  - EventBridge bus routing appointment.handler events to a backup queue
  - RDS MySQL 8.0 in the default VPC

The CLI runs this file as `python3 infra/app.py`, which only puts infra/ on
sys.path; install the project first so appointment_infra imports:
    pip install -e .

Settings come from CDK context, e.g.:
    cdk synth -c region=us-east-1 -c dbIngressCidr=10.0.0.0/16
"""

import aws_cdk as cdk

from appointment_infra.config import STACK_ID, StackSettings
from stacks.appointment_stack import AppointmentStack

app = cdk.App()

settings = StackSettings.from_context(app.node)

AppointmentStack(
    app,
    STACK_ID,
    settings=settings,
    env=settings.environment(),
    description="Appointment scheduling: DynamoDB, SNS/SQS, EventBridge and RDS MySQL",
)

app.synth()
