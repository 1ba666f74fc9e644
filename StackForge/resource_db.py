"""
Resource Database Module

Responsibility:
- In-memory storage of simulated resource records
- Output formats per resource kind (identifiers, ARNs, domain names)
- Lookup functions used by the simulated applier and the demo

Records are keyed by node id. Writing the same inputs twice leaves the
record (and its version) unchanged, which is what makes reapply idempotent.
"""

import copy
import hashlib

# Output formats per kind. Fields available: token, node_id, kind, region, inputs[...]
OUTPUT_FORMATS = {
    "vpc": {
        "vpc_id": "vpc-{token}",
        "public_subnet_ids": "subnet-{token}a,subnet-{token}b",
        "private_subnet_ids": "subnet-{token}c,subnet-{token}d"
    },
    "s3_bucket": {
        "bucket_name": "{inputs[bucket_name]}",
        "bucket_arn": "arn:aws:s3:::{inputs[bucket_name]}",
        "regional_domain_name": "{inputs[bucket_name]}.s3.{region}.amazonaws.com"
    },
    "log_bucket": {
        "bucket_name": "{node_id}-{token}",
        "bucket_arn": "arn:aws:s3:::{node_id}-{token}"
    },
    "hosted_zone": {
        "zone_id": "Z{token}",
        "domain_name": "{inputs[domain_name]}"
    },
    "certificate": {
        "certificate_arn": "arn:aws:acm:{region}:000000000000:certificate/{token}"
    },
    "cdn_distribution": {
        "distribution_id": "E{token}",
        "domain_name": "d{token}.cloudfront.net",
        "distribution_arn": "arn:aws:cloudfront::000000000000:distribution/E{token}"
    },
    "dns_record": {
        "fqdn": "{inputs[record_name]}"
    },
    "compute": {
        "load_balancer_dns": "{node_id}-{token}.{region}.elb.amazonaws.com",
        "load_balancer_arn": "arn:aws:elasticloadbalancing:{region}:000000000000:loadbalancer/app/{node_id}/{token}",
        "security_group_id": "sg-{token}"
    },
    "waf_web_acl": {
        "web_acl_arn": "arn:aws:wafv2:{region}:000000000000:global/webacl/{node_id}/{token}"
    },
    "iam_role": {
        "role_arn": "arn:aws:iam::000000000000:role/{inputs[role_name]}"
    },
    "glue_database": {
        "database_name": "{inputs[database_name]}"
    },
    "athena_workgroup": {
        "workgroup_name": "{node_id}-{token}"
    },
    "service_catalog_product": {
        "product_id": "prod-{token}",
        "portfolio_id": "port-{token}"
    },
    "service_quota": {
        "request_id": "{token}"
    },
    "budget": {
        "budget_name": "{node_id}-budget"
    },
    "scp_policy": {
        "policy_id": "p-{token}"
    }
}

# Outputs for kinds without a known format
GENERIC_OUTPUT_FORMAT = {
    "id": "{kind}-{token}",
    "arn": "arn:stackforge:{kind}:{region}:{node_id}"
}


def resource_token(node_id: str, kind: str) -> str:
    """Stable short identifier for a simulated resource."""
    return hashlib.sha1(f"{kind}/{node_id}".encode("utf-8")).hexdigest()[:8]


def get_output_format(kind: str) -> dict:
    """Retrieve the output format for a kind, falling back to the generic one."""
    return OUTPUT_FORMATS.get(kind, GENERIC_OUTPUT_FORMAT)


def render_outputs(node_id: str, kind: str, region: str, inputs: dict) -> dict:
    """Produce the output values a simulated resource exposes."""
    fields = {
        "token": resource_token(node_id, kind),
        "node_id": node_id,
        "kind": kind,
        "region": region,
        "inputs": _FormatInputs(inputs),
    }
    return {name: template.format(**fields) for name, template in get_output_format(kind).items()}


class _FormatInputs(dict):
    """Input mapping for str.format that renders missing or None inputs as 'unset'."""

    def __getitem__(self, key):
        value = self.get(key)
        return "unset" if value is None else value


class ResourceDatabase:
    """
    In-memory record of provisioned resources.

    A record holds the kind, region, the inputs it was last written with,
    its outputs, and a version incremented on every real change.
    """

    def __init__(self):
        self._records = {}

    def put_record(self, node_id: str, kind: str, region: str, inputs: dict, outputs: dict) -> dict:
        existing = self._records.get(node_id)
        if existing and existing["inputs"] == inputs and existing["outputs"] == outputs:
            return copy.deepcopy(existing)

        record = {
            "node_id": node_id,
            "kind": kind,
            "region": region,
            "inputs": copy.deepcopy(inputs),
            "outputs": dict(outputs),
            "version": existing["version"] + 1 if existing else 1
        }
        self._records[node_id] = record
        return copy.deepcopy(record)

    def get_record(self, node_id: str):
        """Retrieve a record by node id, or None."""
        record = self._records.get(node_id)
        return copy.deepcopy(record) if record else None

    def list_records(self) -> list:
        return [copy.deepcopy(self._records[node_id]) for node_id in sorted(self._records)]

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._records

    def __len__(self) -> int:
        return len(self._records)
