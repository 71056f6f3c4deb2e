"""
AWS product-code normalization and service categorization.

CUR exports identify services by product codes such as ``AmazonEC2`` or
``AWSLambda``. These helpers turn them into canonical service names, a
coarse workload category and, for instance types, a CPU/memory estimate.
"""

import re
from typing import Dict, Tuple

from ..models.types import WorkloadType


# Keys are upper-case codes with any AMAZON/AWS prefix removed
PRODUCT_CODE_TO_SERVICE: Dict[str, str] = {
    # Compute
    "EC2": "EC2",
    "ECS": "ECS",
    "EKS": "EKS",
    "LAMBDA": "Lambda",
    "ELASTICBEANSTALK": "Elastic Beanstalk",
    "FARGATE": "Fargate",
    "BATCH": "Batch",
    "ECR": "ECR",
    "ELASTICCONTAINERREGISTRY": "ECR",
    "LIGHTSAIL": "Lightsail",
    "WORKSPACES": "WorkSpaces",
    "APPSTREAM": "AppStream",
    # Storage
    "S3": "S3",
    "GLACIER": "Glacier",
    "EFS": "EFS",
    "EBS": "EBS",
    "STORAGEGATEWAY": "Storage Gateway",
    "FSX": "FSx",
    "BACKUP": "AWS Backup",
    # Database
    "RDS": "RDS",
    "AURORA": "Aurora",
    "DYNAMODB": "DynamoDB",
    "DDB": "DynamoDB",
    "ELASTICACHE": "ElastiCache",
    "REDSHIFT": "Redshift",
    "NEPTUNE": "Neptune",
    "DOCDB": "DocumentDB",
    "DOCUMENTDB": "DocumentDB",
    "TIMESTREAM": "Timestream",
    "KEYSPACES": "Keyspaces",
    # Network
    "VPC": "VPC",
    "CLOUDFRONT": "CloudFront",
    "ROUTE53": "Route 53",
    "APIGATEWAY": "API Gateway",
    "DIRECTCONNECT": "Direct Connect",
    "VPN": "VPN",
    "TRANSITGATEWAY": "Transit Gateway",
    "ELB": "ALB/NLB",
    "ELASTICLOADBALANCING": "ALB/NLB",
    "GLOBALACCELERATOR": "Global Accelerator",
    # Security and management
    "IAM": "IAM",
    "SECRETSMANAGER": "Secrets Manager",
    "KMS": "KMS",
    "WAF": "WAF",
    "SHIELD": "Shield",
    "GUARDDUTY": "GuardDuty",
    "CLOUDWATCH": "CloudWatch",
    "CLOUDTRAIL": "CloudTrail",
    "CONFIG": "AWS Config",
    "CLOUDFORMATION": "CloudFormation",
    "SYSTEMSMANAGER": "Systems Manager",
    # Integration and analytics
    "SNS": "SNS",
    "SQS": "SQS",
    "QUEUESERVICE": "SQS",
    "EVENTBRIDGE": "EventBridge",
    "EVENTS": "EventBridge",
    "STEPFUNCTIONS": "Step Functions",
    "STATES": "Step Functions",
    "KINESIS": "Kinesis",
    "KINESISFIREHOSE": "Kinesis Data Firehose",
    "ATHENA": "Athena",
    "GLUE": "Glue",
    "EMR": "EMR",
    "ELASTICMAPREDUCE": "EMR",
    "ES": "OpenSearch",
    "OPENSEARCH": "OpenSearch",
    "MSK": "MSK",
    "SAGEMAKER": "SageMaker",
    "COGNITO": "Cognito",
    "SES": "SES",
}

SERVICE_CATEGORIES: Dict[str, WorkloadType] = {
    "EC2": WorkloadType.COMPUTE,
    "Elastic Beanstalk": WorkloadType.COMPUTE,
    "Batch": WorkloadType.COMPUTE,
    "Lightsail": WorkloadType.COMPUTE,
    "WorkSpaces": WorkloadType.COMPUTE,
    "AppStream": WorkloadType.COMPUTE,
    "EMR": WorkloadType.COMPUTE,
    "SageMaker": WorkloadType.COMPUTE,
    "Lambda": WorkloadType.FUNCTION,
    "Step Functions": WorkloadType.FUNCTION,
    "ECS": WorkloadType.CONTAINER,
    "EKS": WorkloadType.CONTAINER,
    "Fargate": WorkloadType.CONTAINER,
    "ECR": WorkloadType.CONTAINER,
    "S3": WorkloadType.STORAGE,
    "Glacier": WorkloadType.STORAGE,
    "EFS": WorkloadType.STORAGE,
    "EBS": WorkloadType.STORAGE,
    "Storage Gateway": WorkloadType.STORAGE,
    "FSx": WorkloadType.STORAGE,
    "AWS Backup": WorkloadType.STORAGE,
    "RDS": WorkloadType.DATABASE,
    "Aurora": WorkloadType.DATABASE,
    "DynamoDB": WorkloadType.DATABASE,
    "ElastiCache": WorkloadType.DATABASE,
    "Redshift": WorkloadType.DATABASE,
    "Neptune": WorkloadType.DATABASE,
    "DocumentDB": WorkloadType.DATABASE,
    "Timestream": WorkloadType.DATABASE,
    "Keyspaces": WorkloadType.DATABASE,
    "OpenSearch": WorkloadType.DATABASE,
    "VPC": WorkloadType.NETWORK,
    "CloudFront": WorkloadType.NETWORK,
    "Route 53": WorkloadType.NETWORK,
    "API Gateway": WorkloadType.NETWORK,
    "Direct Connect": WorkloadType.NETWORK,
    "VPN": WorkloadType.NETWORK,
    "Transit Gateway": WorkloadType.NETWORK,
    "ALB/NLB": WorkloadType.NETWORK,
    "Global Accelerator": WorkloadType.NETWORK,
}

# (vCPU, memory GiB) for common instance sizes
INSTANCE_SPECS: Dict[str, Tuple[float, float]] = {
    "t2.micro": (1, 1),
    "t2.small": (1, 2),
    "t2.medium": (2, 4),
    "t2.large": (2, 8),
    "t3.micro": (2, 1),
    "t3.small": (2, 2),
    "t3.medium": (2, 4),
    "t3.large": (2, 8),
    "t3.xlarge": (4, 16),
    "m5.large": (2, 8),
    "m5.xlarge": (4, 16),
    "m5.2xlarge": (8, 32),
    "m5.4xlarge": (16, 64),
    "c5.large": (2, 4),
    "c5.xlarge": (4, 8),
    "c5.2xlarge": (8, 16),
    "r5.large": (2, 16),
    "r5.xlarge": (4, 32),
    "r5.2xlarge": (8, 64),
}

SIZE_MULTIPLIERS: Dict[str, float] = {
    "nano": 0.25,
    "micro": 0.5,
    "small": 1,
    "medium": 1,
    "large": 2,
    "xlarge": 4,
    "2xlarge": 8,
    "4xlarge": 16,
    "8xlarge": 32,
    "12xlarge": 48,
    "16xlarge": 64,
    "24xlarge": 96,
}

# Memory GiB per vCPU by family letter
FAMILY_MEMORY_RATIO: Dict[str, float] = {"c": 2, "m": 4, "r": 8, "x": 16, "t": 4}

MARKETPLACE_SERVICE = "AWS Marketplace"
UNKNOWN_SERVICE = "Unknown"

_MARKETPLACE_CODE = re.compile(r"^(?=.*\d)[A-Z0-9]{20,}$")
_INSTANCE_TYPE = re.compile(r"^(?:db\.|cache\.)?([a-z][a-z0-9-]*)\.([a-z0-9]+)$")
_PREFIXES = ("AMAZON", "AWS", "OCB")


def normalize_product_code(product_code: str) -> str:
    """Map a CUR product code to its canonical service name.

    Unknown codes come back unchanged so nothing is silently merged.
    """
    if not product_code or not product_code.strip():
        return UNKNOWN_SERVICE

    original = product_code.strip()
    code = original.upper()

    if code in PRODUCT_CODE_TO_SERVICE:
        return PRODUCT_CODE_TO_SERVICE[code]

    for prefix in _PREFIXES:
        if code.startswith(prefix) and code[len(prefix):] in PRODUCT_CODE_TO_SERVICE:
            return PRODUCT_CODE_TO_SERVICE[code[len(prefix):]]

    # Variants such as "AmazonEC2-Spot"
    if "-" in code:
        head = code.split("-", 1)[0]
        for candidate in (head,) + tuple(
            head[len(p):] for p in _PREFIXES if head.startswith(p)
        ):
            if candidate in PRODUCT_CODE_TO_SERVICE:
                return PRODUCT_CODE_TO_SERVICE[candidate]

    # Marketplace listings use long opaque identifiers
    if _MARKETPLACE_CODE.match(code) and not code.startswith(("AMAZON", "AWS")):
        return MARKETPLACE_SERVICE

    return original


def get_service_category(service: str) -> WorkloadType:
    """Coarse workload category of a canonical service name"""
    return SERVICE_CATEGORIES.get(service, WorkloadType.OTHER)


def parse_instance_type(instance_type: str) -> Tuple[float, float]:
    """Estimate (vCPU, memory GiB) for an instance type, (0, 0) when unknown"""
    if not instance_type:
        return (0.0, 0.0)

    name = instance_type.strip().lower()
    for prefix in ("db.", "cache."):
        if name.startswith(prefix) and name[len(prefix):] in INSTANCE_SPECS:
            name = name[len(prefix):]
    if name in INSTANCE_SPECS:
        cpu, memory = INSTANCE_SPECS[name]
        return (float(cpu), float(memory))

    match = _INSTANCE_TYPE.match(name)
    if not match:
        return (0.0, 0.0)

    family, size = match.groups()
    multiplier = SIZE_MULTIPLIERS.get(size)
    if multiplier is None:
        return (0.0, 0.0)

    cpu = max(1.0, float(multiplier))
    memory = cpu * FAMILY_MEMORY_RATIO.get(family[0], 4)
    return (cpu, memory)
