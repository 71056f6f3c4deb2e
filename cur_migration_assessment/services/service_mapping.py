"""
AWS to GCP service mapping used to annotate service buckets.
"""

from typing import Dict, Optional, Protocol, Tuple

from ..models.aggregates import GcpServiceMapping
from ..models.types import MigrationEffort, MigrationStrategy


class ServiceMappingPort(Protocol):
    """Anything that can map an AWS service name to a GCP target"""

    def get_mapping(self, aws_service: str) -> GcpServiceMapping:
        ...


# service -> (gcp service, api, strategy, effort, notes)
DEFAULT_MAPPINGS: Dict[str, Tuple[str, Optional[str], str, str, str]] = {
    "EC2": ("Compute Engine", "compute.googleapis.com", "Rehost", "Low",
            "Direct VM migration with minimal changes"),
    "Lambda": ("Cloud Functions", "cloudfunctions.googleapis.com", "Replatform", "Medium",
               "Function runtime and triggers may need adjustment"),
    "ECS": ("Cloud Run", "run.googleapis.com", "Replatform", "Medium",
            "Container definitions translate to Cloud Run services"),
    "EKS": ("Google Kubernetes Engine", "container.googleapis.com", "Replatform", "Medium",
            "Kubernetes manifests are largely portable"),
    "Fargate": ("Cloud Run", "run.googleapis.com", "Replatform", "Medium", ""),
    "ECR": ("Artifact Registry", "artifactregistry.googleapis.com", "Rehost", "Low", ""),
    "Elastic Beanstalk": ("App Engine", "appengine.googleapis.com", "Replatform", "Medium", ""),
    "Batch": ("Batch", "batch.googleapis.com", "Replatform", "Medium", ""),
    "S3": ("Cloud Storage", "storage.googleapis.com", "Rehost", "Low",
           "Object storage with similar features"),
    "Glacier": ("Cloud Storage Archive", "storage.googleapis.com", "Rehost", "Low", ""),
    "EBS": ("Persistent Disk", "compute.googleapis.com", "Rehost", "Low", ""),
    "EFS": ("Filestore", "file.googleapis.com", "Rehost", "Medium", ""),
    "FSx": ("Filestore", "file.googleapis.com", "Replatform", "Medium", ""),
    "AWS Backup": ("Backup and DR", "backupdr.googleapis.com", "Replatform", "Medium", ""),
    "Aurora": ("AlloyDB", "alloydb.googleapis.com", "Replatform", "Medium", ""),
    "DynamoDB": ("Firestore", "firestore.googleapis.com", "Refactor", "High",
                 "Data model and access patterns need redesign"),
    "ElastiCache": ("Memorystore", "redis.googleapis.com", "Rehost", "Low", ""),
    "Redshift": ("BigQuery", "bigquery.googleapis.com", "Replatform", "Medium", ""),
    "DocumentDB": ("Firestore", "firestore.googleapis.com", "Refactor", "High", ""),
    "OpenSearch": ("Elastic Cloud on GCP", None, "Repurchase", "Medium", ""),
    "VPC": ("Virtual Private Cloud", "compute.googleapis.com", "Rehost", "Medium", ""),
    "CloudFront": ("Cloud CDN", "compute.googleapis.com", "Replatform", "Low", ""),
    "Route 53": ("Cloud DNS", "dns.googleapis.com", "Rehost", "Low", ""),
    "API Gateway": ("API Gateway", "apigateway.googleapis.com", "Replatform", "Medium", ""),
    "ALB/NLB": ("Cloud Load Balancing", "compute.googleapis.com", "Replatform", "Low", ""),
    "Direct Connect": ("Cloud Interconnect", "compute.googleapis.com", "Replatform", "Medium", ""),
    "VPN": ("Cloud VPN", "compute.googleapis.com", "Rehost", "Low", ""),
    "SNS": ("Pub/Sub", "pubsub.googleapis.com", "Replatform", "Medium", ""),
    "SQS": ("Pub/Sub", "pubsub.googleapis.com", "Replatform", "Medium", ""),
    "EventBridge": ("Eventarc", "eventarc.googleapis.com", "Replatform", "Medium", ""),
    "Step Functions": ("Workflows", "workflows.googleapis.com", "Refactor", "Medium", ""),
    "Kinesis": ("Pub/Sub", "pubsub.googleapis.com", "Replatform", "Medium", ""),
    "Athena": ("BigQuery", "bigquery.googleapis.com", "Replatform", "Medium", ""),
    "Glue": ("Dataflow", "dataflow.googleapis.com", "Refactor", "High", ""),
    "EMR": ("Dataproc", "dataproc.googleapis.com", "Replatform", "Medium", ""),
    "SageMaker": ("Vertex AI", "aiplatform.googleapis.com", "Refactor", "High", ""),
    "CloudWatch": ("Cloud Monitoring", "monitoring.googleapis.com", "Replatform", "Low", ""),
    "KMS": ("Cloud KMS", "cloudkms.googleapis.com", "Replatform", "Low", ""),
    "Secrets Manager": ("Secret Manager", "secretmanager.googleapis.com", "Replatform", "Low", ""),
    "IAM": ("Cloud IAM", "iam.googleapis.com", "Refactor", "Medium", ""),
}

RDS_MAPPING = GcpServiceMapping(
    gcp_service="Cloud SQL",
    gcp_api="sqladmin.googleapis.com",
    migration_strategy=MigrationStrategy.REHOST,
    effort=MigrationEffort.LOW,
    notes="Engine type determines the exact Cloud SQL flavour",
)

MARKETPLACE_MAPPING = GcpServiceMapping(
    gcp_service="Google Cloud Marketplace",
    gcp_api="cloudbilling.googleapis.com",
    migration_strategy=MigrationStrategy.REPURCHASE,
    effort=MigrationEffort.MEDIUM,
    notes="Third-party licenses; look for equivalents in Google Cloud Marketplace",
)

FALLBACK_MAPPING = GcpServiceMapping(
    gcp_service="Custom Solution Required",
    gcp_api=None,
    migration_strategy=MigrationStrategy.REFACTOR,
    effort=MigrationEffort.HIGH,
    notes="No direct GCP equivalent; manual assessment needed",
)


class ServiceMapper:
    """Default in-process mapping table"""

    def __init__(self, overrides: Optional[Dict[str, GcpServiceMapping]] = None):
        self._mappings: Dict[str, GcpServiceMapping] = {
            service: GcpServiceMapping(
                gcp_service=gcp_service,
                gcp_api=gcp_api,
                migration_strategy=MigrationStrategy(strategy),
                effort=MigrationEffort(effort),
                notes=notes,
            )
            for service, (gcp_service, gcp_api, strategy, effort, notes) in DEFAULT_MAPPINGS.items()
        }
        if overrides:
            self._mappings.update(overrides)

    def get_mapping(self, aws_service: str) -> GcpServiceMapping:
        service = str(aws_service or "").strip()
        if service in self._mappings:
            return self._mappings[service]

        lowered = service.lower()
        if lowered == "rds" or lowered.startswith("rds "):
            return RDS_MAPPING
        if "marketplace" in lowered:
            return MARKETPLACE_MAPPING

        return FALLBACK_MAPPING
