import json
from typing import Any, Dict, List, Optional

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s

from util.config import AWSConfig, OpenSearchConfig, PersistenceConfig
from workloads.cluster import Cluster
from workloads.persistence import Persistence

VISIBILITY_DATABASE = "temporal_visibility"
PROXY_NAME = "opensearch-proxy"
PROXY_LABELS = {"app.kubernetes.io/name": PROXY_NAME}

ELASTICSEARCH_VALUES = {
    "enabled": False,
    "external": True,
    "version": "v7",
    "scheme": "http",
    "host": f"{PROXY_NAME}.default.svc.cluster.local",
    "port": 80,
}

def sql_visibility_values(persistence_values: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "driver": "sql",
        "sql": {**persistence_values["sql"], "database": VISIBILITY_DATABASE},
    }

def has_local_storage(instance_type: Optional[str]) -> bool:
    # r6gd, i3 and friends ship NVMe instance storage and do not take EBS volumes
    family = (instance_type or "").split(".")[0]
    return family.endswith("gd") or family.startswith("i3")

def domain_cluster_config(cfg: OpenSearchConfig, zone_count: int) -> aws.opensearch.DomainClusterConfigArgs:
    zone_awareness = aws.opensearch.DomainClusterConfigZoneAwarenessConfigArgs(
        availability_zone_count=zone_count,
    )
    if cfg.dedicated_master:
        return aws.opensearch.DomainClusterConfigArgs(
            dedicated_master_enabled=True,
            dedicated_master_type=cfg.master_instance_type,
            dedicated_master_count=cfg.master_instance_count or 3,
            instance_type=cfg.data_instance_type,
            instance_count=cfg.data_instance_count or zone_count,
            zone_awareness_enabled=True,
            zone_awareness_config=zone_awareness,
        )
    return aws.opensearch.DomainClusterConfigArgs(
        instance_type=cfg.instance_type,
        instance_count=zone_count,
        zone_awareness_enabled=True,
        zone_awareness_config=zone_awareness,
    )

def domain_ebs_options(cfg: OpenSearchConfig) -> aws.opensearch.DomainEbsOptionsArgs:
    data_type = cfg.data_instance_type if cfg.dedicated_master else cfg.instance_type
    if has_local_storage(data_type):
        return aws.opensearch.DomainEbsOptionsArgs(ebs_enabled=False)
    return aws.opensearch.DomainEbsOptionsArgs(ebs_enabled=True, volume_type="gp3", volume_size=100)

def open_access_policy() -> str:
    # the domain only has a VPC endpoint, reachable from the cluster security group
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"AWS": "*"},
            "Action": "es:*",
            "Resource": "*",
        }],
    })

def http_access_policy() -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Action": [
                "es:ESHttpPost",
                "es:ESHttpPut",
                "es:ESHttpGet",
                "es:ESHttpDelete",
                "es:ESHttpHead",
            ],
            "Effect": "Allow",
            "Resource": "*",
        }],
    })

def proxy_args(region: str, endpoint: pulumi.Input[str]) -> List[pulumi.Input[str]]:
    return [
        "--verbose",
        "--log-failed-requests",
        "--log-signing-process",
        "--no-verify-ssl",
        "--name", "es",
        "--region", region,
        "--host", endpoint,
    ]


class Visibility(pulumi.ComponentResource):
    visibility_values: pulumi.Output[Dict[str, Any]]
    elasticsearch_values: pulumi.Output[Dict[str, Any]]

    def __init__(
        self,
        name: str,
        *,
        aws_config: AWSConfig,
        config: PersistenceConfig,
        cluster: Cluster,
        persistence: Persistence,
        opts: Optional[pulumi.ResourceOptions] = None,
    ):
        super().__init__("benchmark:infrastructure:Visibility", name, None, opts)

        if config.open_search is not None:
            self._opensearch(name, config.open_search, cluster, aws_config)
            self.visibility_values = pulumi.Output.from_input({})
            self.elasticsearch_values = pulumi.Output.from_input(ELASTICSEARCH_VALUES)
        elif config.rds is not None:
            self.visibility_values = persistence.values.apply(sql_visibility_values)
            self.elasticsearch_values = pulumi.Output.from_input({"enabled": False})
        else:
            raise ValueError("invalid visibility config: RDS or OpenSearch required")

        self.register_outputs({
            "visibility_values": self.visibility_values,
            "elasticsearch_values": self.elasticsearch_values,
        })

    def _opensearch(self, name: str, cfg: OpenSearchConfig, cluster: Cluster, aws_config: AWSConfig):
        security_group = aws.ec2.SecurityGroup(
            f"{name}-opensearch",
            vpc_id=aws_config.vpc_id,
            opts=pulumi.ResourceOptions(parent=self),
        )
        aws.ec2.SecurityGroupRule(
            f"{name}-opensearch",
            security_group_id=security_group.id,
            type="ingress",
            source_security_group_id=cluster.security_group,
            protocol="tcp",
            from_port=443,
            to_port=443,
            opts=pulumi.ResourceOptions(parent=self),
        )

        zone_count = len(aws_config.availability_zones)
        domain = aws.opensearch.Domain(
            name,
            cluster_config=domain_cluster_config(cfg, zone_count),
            vpc_options=aws.opensearch.DomainVpcOptionsArgs(
                subnet_ids=aws_config.private_subnet_ids,
                security_group_ids=[security_group.id],
            ),
            ebs_options=domain_ebs_options(cfg),
            engine_version=cfg.engine_version,
            access_policies=open_access_policy(),
            opts=pulumi.ResourceOptions(parent=self),
        )

        policy = aws.iam.Policy(
            "opensearch-policy",
            policy=http_access_policy(),
            opts=pulumi.ResourceOptions(parent=self),
        )

        def attach(roles):
            return [
                aws.iam.RolePolicyAttachment(
                    f"opensearch-role-policy-{i}",
                    role=role.name,
                    policy_arn=policy.arn,
                    opts=pulumi.ResourceOptions(parent=self),
                )
                for i, role in enumerate(roles)
            ]

        cluster.instance_roles.apply(attach)

        deployment = k8s.apps.v1.Deployment(
            PROXY_NAME,
            metadata={"labels": {**PROXY_LABELS, "name": PROXY_NAME}},
            spec={
                "replicas": 2,
                "selector": {"matchLabels": PROXY_LABELS},
                "template": {
                    "metadata": {"labels": PROXY_LABELS},
                    "spec": {
                        "containers": [{
                            "image": "public.ecr.aws/aws-observability/aws-sigv4-proxy:latest",
                            "imagePullPolicy": "Always",
                            "name": PROXY_NAME,
                            "args": proxy_args(aws_config.region, domain.endpoint),
                            "ports": [{"name": "http", "containerPort": 8080, "protocol": "TCP"}],
                        }],
                        "restartPolicy": "Always",
                    },
                },
            },
            opts=pulumi.ResourceOptions(parent=self, provider=cluster.provider),
        )

        k8s.core.v1.Service(
            PROXY_NAME,
            metadata={"name": PROXY_NAME, "labels": PROXY_LABELS},
            spec={
                "selector": PROXY_LABELS,
                "ports": [{"name": "http", "port": 80, "protocol": "TCP", "targetPort": "http"}],
            },
            opts=pulumi.ResourceOptions(parent=self, provider=cluster.provider, depends_on=[deployment]),
        )
