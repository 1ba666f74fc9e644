"""
Kind Contracts Module

Responsibility:
- Define contracts for the resource kinds of the frontend deployment
- Specify required inputs, declared outputs, and pinned regions
- These contracts are used by the validator to reject references to
  outputs a producer never exposes, and by the simulated applier to
  decide which outputs to produce

Kind contracts define WHAT a kind consumes and exposes, not how it is built.
Kinds without a contract are opaque: any output name is accepted.
"""

KIND_CONTRACTS = {
    "vpc": {
        "required_inputs": ["cidr"],
        "outputs": ["vpc_id", "public_subnet_ids", "private_subnet_ids"],
        "pinned_region": None
    },
    "s3_bucket": {
        "required_inputs": ["bucket_name"],
        "outputs": ["bucket_name", "bucket_arn", "regional_domain_name"],
        "pinned_region": None
    },
    "log_bucket": {
        "required_inputs": [],
        "outputs": ["bucket_name", "bucket_arn"],
        "pinned_region": None
    },
    "hosted_zone": {
        "required_inputs": ["domain_name"],
        "outputs": ["zone_id", "domain_name"],
        "pinned_region": None
    },
    # CloudFront only accepts ACM certificates issued in us-east-1
    "certificate": {
        "required_inputs": ["domain_name"],
        "outputs": ["certificate_arn"],
        "pinned_region": "us-east-1"
    },
    "cdn_distribution": {
        "required_inputs": ["origin_bucket", "certificate_arn"],
        "outputs": ["distribution_id", "domain_name", "distribution_arn"],
        "pinned_region": None
    },
    "dns_record": {
        "required_inputs": ["record_name", "target"],
        "outputs": ["fqdn"],
        "pinned_region": None
    },
    "compute": {
        "required_inputs": ["vpc_id"],
        "outputs": ["load_balancer_dns", "load_balancer_arn", "security_group_id"],
        "pinned_region": None
    },
    "waf_web_acl": {
        "required_inputs": ["scope"],
        "outputs": ["web_acl_arn"],
        "pinned_region": None
    },
    "iam_role": {
        "required_inputs": ["role_name"],
        "outputs": ["role_arn"],
        "pinned_region": None
    },
    "glue_database": {
        "required_inputs": ["database_name"],
        "outputs": ["database_name"],
        "pinned_region": None
    },
    "athena_workgroup": {
        "required_inputs": ["results_bucket"],
        "outputs": ["workgroup_name"],
        "pinned_region": None
    },
    "service_catalog_product": {
        "required_inputs": ["product_name"],
        "outputs": ["product_id", "portfolio_id"],
        "pinned_region": None
    },
    "service_quota": {
        "required_inputs": ["service_code", "quota_code", "desired_value"],
        "outputs": ["request_id"],
        "pinned_region": None
    },
    "budget": {
        "required_inputs": ["limit_amount"],
        "outputs": ["budget_name"],
        "pinned_region": None
    },
    "scp_policy": {
        "required_inputs": ["policy_name"],
        "outputs": ["policy_id"],
        "pinned_region": None
    }
}


def get_kind_contract(kind: str):
    """Retrieve the contract for a resource kind, or None if the kind is opaque."""
    return KIND_CONTRACTS.get(kind)


def declared_outputs(kind: str):
    """Output names a kind exposes, or None when any name is accepted."""
    contract = get_kind_contract(kind)
    if not contract:
        return None
    return contract["outputs"]
