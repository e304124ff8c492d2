"""
AWS CDK stack: DynamoDB + SNS/SQS fan-out + EventBridge + RDS MySQL.

Resources:
  - Default VPC (looked up, not created)
  - Security group attached to the database
  - DynamoDB table "Appointments" with an insuredId GSI
  - SNS topic fanning out to one SQS queue per country (PE, CL)
  - EventBridge bus with a rule forwarding appointment.handler events to a backup queue
  - RDS MySQL 8.0 instance with a generated Secrets Manager credential

Every resource identifier other stacks need is exported as a CloudFormation output.
"""

from typing import Dict, Optional

from constructs import Construct
import aws_cdk as cdk
from aws_cdk import (
    Stack,
    RemovalPolicy,
    aws_dynamodb as dynamodb,
    aws_ec2 as ec2,
    aws_events as events,
    aws_events_targets as targets,
    aws_rds as rds,
    aws_sns as sns,
    aws_sns_subscriptions as subs,
    aws_sqs as sqs,
)

from appointment_infra.config import (
    COUNTRY_QUEUES,
    DB_ADMIN_USER,
    DB_NAME,
    DB_PORT,
    EVENT_BUS_NAME,
    EVENT_SOURCE,
    INSURED_INDEX_NAME,
    INSURED_KEY,
    PARTITION_KEY,
    TABLE_NAME,
    StackSettings,
)
from appointment_infra import exports

PUBLIC_INGRESS_WARNING_ID = "appointment:public-db-ingress"


class AppointmentStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        settings: Optional[StackSettings] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.settings = settings or StackSettings.from_context(self.node)

        # ---------------------------------------------------------------
        # VPC + database security group
        # ---------------------------------------------------------------
        vpc = ec2.Vpc.from_lookup(self, "DefaultVPC", is_default=True)

        db_security_group = ec2.SecurityGroup(
            self, "RdsSecurityGroup",
            vpc=vpc,
            description="Appointment database access",
            allow_all_outbound=True,
        )

        # ---------------------------------------------------------------
        # DynamoDB -- appointments by id, secondary lookup by insured party
        # ---------------------------------------------------------------
        self.table = dynamodb.Table(
            self, "Appointments",
            table_name=TABLE_NAME,
            partition_key=dynamodb.Attribute(
                name=PARTITION_KEY, type=dynamodb.AttributeType.STRING,
            ),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
        )
        self.table.add_global_secondary_index(
            index_name=INSURED_INDEX_NAME,
            partition_key=dynamodb.Attribute(
                name=INSURED_KEY, type=dynamodb.AttributeType.STRING,
            ),
            projection_type=dynamodb.ProjectionType.ALL,
        )

        # ---------------------------------------------------------------
        # SNS -> SQS fan-out, one intake queue per country
        # ---------------------------------------------------------------
        self.topic = sns.Topic(self, "AppointmentTopic")

        self.country_queues: Dict[str, sqs.Queue] = {}
        for country in COUNTRY_QUEUES:
            queue = sqs.Queue(self, f"Queue{country}")
            self.topic.add_subscription(subs.SqsSubscription(queue))
            self.country_queues[country] = queue

        # ---------------------------------------------------------------
        # EventBridge -- forward handler events to the backup queue
        # ---------------------------------------------------------------
        self.event_bus = events.EventBus(
            self, "AppointmentEventBus",
            event_bus_name=EVENT_BUS_NAME,
        )

        self.backup_queue = sqs.Queue(self, "BackupQueue")

        self.forward_rule = events.Rule(
            self, "ForwardToSqsRule",
            event_bus=self.event_bus,
            event_pattern=events.EventPattern(source=[EVENT_SOURCE]),
            targets=[targets.SqsQueue(self.backup_queue)],
        )

        # ---------------------------------------------------------------
        # RDS MySQL
        # ---------------------------------------------------------------
        self.database = rds.DatabaseInstance(
            self, "AppointmentDB",
            engine=rds.DatabaseInstanceEngine.mysql(
                version=rds.MysqlEngineVersion.VER_8_0,
            ),
            instance_type=ec2.InstanceType(self.settings.db_instance_type),
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            credentials=rds.Credentials.from_generated_secret(DB_ADMIN_USER),
            multi_az=False,
            allocated_storage=self.settings.db_allocated_storage,
            max_allocated_storage=self.settings.db_max_allocated_storage,
            database_name=DB_NAME,
            port=DB_PORT,
            security_groups=[db_security_group],
            publicly_accessible=False,
            removal_policy=RemovalPolicy.DESTROY,
        )

        self._allow_db_ingress(vpc)

        # ---------------------------------------------------------------
        # Outputs
        # ---------------------------------------------------------------
        self._export(exports.TABLE_NAME_EXPORT, self.table.table_name)
        self._export(exports.TOPIC_ARN_EXPORT, self.topic.topic_arn)
        for country, queue in self.country_queues.items():
            self._export(exports.queue_export_name(country), queue.queue_arn)
        self._export(exports.EVENT_BUS_ARN_EXPORT, self.event_bus.event_bus_arn)
        self._export(exports.EVENT_BUS_NAME_EXPORT, self.event_bus.event_bus_name)
        self._export(exports.BACKUP_QUEUE_ARN_EXPORT, self.backup_queue.queue_arn)
        self._export(exports.DB_ENDPOINT_EXPORT, self.database.db_instance_endpoint_address)
        self._export(exports.DB_PORT_EXPORT, self.database.db_instance_endpoint_port)
        self._export(exports.DB_NAME_EXPORT, DB_NAME)

        if self.database.secret is not None:
            self._export(exports.DB_SECRET_ARN_EXPORT, self.database.secret.secret_arn)

    def _allow_db_ingress(self, vpc: ec2.IVpc) -> None:
        """Open the MySQL port to the configured CIDR (the VPC by default)."""
        port = ec2.Port.tcp(DB_PORT)

        if not self.settings.allow_public_db_ingress:
            cidr = self.settings.db_ingress_peer_cidr(vpc.vpc_cidr_block)
            self.database.connections.allow_from(
                ec2.Peer.ipv4(cidr), port, "MySQL from allowed CIDR",
            )
            return

        self.database.connections.allow_from_any_ipv4(port, "MySQL from anywhere")
        cdk.Annotations.of(self.database).add_warning_v2(
            PUBLIC_INGRESS_WARNING_ID,
            f"Database is not publicly accessible but port {DB_PORT} accepts "
            "ingress from any IPv4 address (allowPublicDbIngress=true)",
        )

    def _export(self, name: str, value: str) -> cdk.CfnOutput:
        return cdk.CfnOutput(self, name, value=value, export_name=name)
