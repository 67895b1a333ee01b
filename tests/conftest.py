"""Pytest configuration and fixtures for the benchmark infrastructure tests."""

from dataclasses import dataclass, field
from typing import Any, Dict

import pulumi
import pytest

from util.config import StackConfig


class Mocks(pulumi.runtime.Mocks):
    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        return [f"{args.name}_id", args.inputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        if args.token == "aws:index/getCallerIdentity:getCallerIdentity":
            return {"accountId": "123456789012", "arn": "arn:aws:iam::123456789012:user/test", "userId": "test"}
        return {}


pulumi.runtime.set_mocks(Mocks(), preview=False)


@dataclass
class FakeResource:
    """Stand-in for pulumi_policy.PolicyResource."""

    resource_type: str
    name: str
    props: Dict[str, Any] = field(default_factory=dict)
    stack: str = "cassandra-small"
    project: str = "temporal-benchmark"

    @property
    def urn(self) -> str:
        return f"urn:pulumi:{self.stack}::{self.project}::{self.resource_type}::{self.name}"


@dataclass
class FakeArgs:
    resources: list


class FakePricing:
    """Fixed prices standing in for PricingService."""

    ec2_prices = {"m5.2xlarge": 0.384, "c5.4xlarge": 0.68, "r5.2xlarge": 0.504, "t3.medium": 0.0416}

    def eks(self):
        return 0.10

    def ec2(self, instance_type):
        return self.ec2_prices[instance_type]

    def ebs_storage(self, volume_type):
        return 0.08

    def rds(self, instance_class, engine):
        return 1.0

    def rds_storage(self, storage_type):
        return 0.25

    def opensearch(self, instance_type):
        return {"m5.large.search": 0.142, "r6gd.2xlarge.search": 0.835}[instance_type]

    def opensearch_storage(self):
        return 0.122


TEMPORAL = {
    "Frontend": {"Pods": 2, "CPU": {"Request": 2}, "Memory": {"Request": "2Gi"}},
    "History": {"Pods": 4, "CPU": {"Request": "4"}, "Memory": {"Request": "8Gi"}, "Shards": 2048},
    "Matching": {"Pods": 2, "CPU": {"Request": 1}, "Memory": {"Request": "512Mi"}},
    "Worker": {"Pods": 1, "CPU": {"Request": 0.5}, "Memory": {"Request": "512Mi"}},
    "DynamicConfig": {"FrontendRPS": 10000, "MatchingRPS": 5000},
}

BENCHMARK = {
    "Namespaces": 2,
    "Target": 1000,
    "Workers": {
        "Pods": 4,
        "WorkflowPollers": 100,
        "ActivityPollers": 200,
        "CPU": {"Request": 1},
        "Memory": {"Request": "1Gi"},
    },
    "SoakTest": {
        "Pods": 2,
        "ConcurrentWorkflows": 300,
        "CPU": {"Request": "500m"},
        "Memory": {"Request": "256Mi"},
    },
}

AWS = {
    "Region": "us-west-2",
    "VpcId": "vpc-123",
    "Role": "BenchmarkClusterAdmin",
    "RdsSubnetGroupName": "temporal-benchmark-rds",
    "PrivateSubnetIds": ["subnet-a", "subnet-b", "subnet-c"],
    "AvailabilityZones": ["us-west-2a", "us-west-2b", "us-west-2c"],
}

CLUSTER = {
    "EKS": {
        "NodeType": "m5.2xlarge",
        "NodeCount": 2,
        "TemporalNodeType": "c5.4xlarge",
        "TemporalNodeCount": 3,
        "WorkerNodeType": "c5.4xlarge",
        "WorkerNodeCount": 2,
    },
}


@pytest.fixture
def rds_config_dict() -> dict:
    return {
        "AWS": AWS,
        "Cluster": CLUSTER,
        "Persistence": {
            "RDS": {"Engine": "postgres", "EngineVersion": "16.3", "InstanceType": "db.r5.2xlarge", "IOPS": 12000},
        },
        "Temporal": TEMPORAL,
        "Benchmark": BENCHMARK,
    }


@pytest.fixture
def cassandra_config_dict() -> dict:
    return {
        "AWS": AWS,
        "Cluster": CLUSTER,
        "Persistence": {
            "Cassandra": {
                "NodeType": "r5.2xlarge",
                "NodeCount": 3,
                "CPU": {"Limit": 6},
                "Memory": {"Limit": "48Gi"},
                "CommitLogStorage": "100Gi",
                "DataStorage": "1Ti",
            },
            "Visibility": {
                "OpenSearch": {
                    "EngineVersion": "OpenSearch_2.11",
                    "MasterInstanceType": "m5.large.search",
                    "MasterInstanceCount": 3,
                    "DataInstanceType": "r6gd.2xlarge.search",
                    "DataInstanceCount": 3,
                },
            },
        },
        "Temporal": TEMPORAL,
        "Benchmark": BENCHMARK,
    }


@pytest.fixture
def rds_config(rds_config_dict) -> StackConfig:
    return StackConfig.model_validate(rds_config_dict)


@pytest.fixture
def cassandra_config(cassandra_config_dict) -> StackConfig:
    return StackConfig.model_validate(cassandra_config_dict)


def _node_group_resources(stack: str, pools: Dict[str, tuple]) -> list:
    resources = []
    for pool, (instance_type, count) in pools.items():
        template = f"{stack}-{pool}-lt"
        resources.append(FakeResource(
            "aws:ec2/launchTemplate:LaunchTemplate", f"{stack}-{pool}-launchTemplate",
            {"name": template, "instanceType": instance_type}, stack=stack,
        ))
        resources.append(FakeResource(
            "aws:autoscaling/group:Group", f"{stack}-{pool}",
            {"desiredCapacity": count, "minSize": count, "maxSize": count, "launchTemplate": {"name": template}},
            stack=stack,
        ))
    return resources


@pytest.fixture
def rds_resources() -> list:
    stack = "rds-medium"
    resources = [FakeResource("eks:index/cluster:Cluster", stack, stack=stack)]
    resources += _node_group_resources(stack, {
        "core": ("m5.2xlarge", 2),
        "temporal": ("c5.4xlarge", 3),
        "worker": ("c5.4xlarge", 2),
    })
    resources.append(FakeResource(
        "aws:rds/instance:Instance", "temporal-persistence",
        {
            "instanceClass": "db.r5.2xlarge",
            "allocatedStorage": 1024,
            "storageType": "gp3",
            "engine": "postgres",
            "engineVersion": "16.1",
            "multiAz": True,
        },
        stack=stack,
    ))
    return resources


@pytest.fixture
def cassandra_resources() -> list:
    stack = "cassandra-small"
    resources = [FakeResource("eks:index/cluster:Cluster", stack, stack=stack)]
    resources += _node_group_resources(stack, {
        "core": ("m5.2xlarge", 2),
        "temporal": ("c5.4xlarge", 3),
        "worker": ("c5.4xlarge", 2),
        "cassandra": ("r5.2xlarge", 3),
    })
    resources.append(FakeResource(
        "aws:opensearch/domain:Domain", "temporal-visibility",
        {
            "clusterConfig": {
                "dedicatedMasterEnabled": True,
                "dedicatedMasterType": "m5.large.search",
                "dedicatedMasterCount": 3,
                "instanceType": "r6gd.2xlarge.search",
                "instanceCount": 3,
            },
            "ebsOptions": {"ebsEnabled": False},
            "engineVersion": "OpenSearch_2.11",
        },
        stack=stack,
    ))
    return resources


@pytest.fixture
def fake_pricing() -> FakePricing:
    return FakePricing()
