# cluster.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

import pulumi
import pulumi_aws as aws
import pulumi_eks as eks
import pulumi_kubernetes as k8s

from util.config import AWSConfig, ClusterConfig, EKSClusterConfig, PersistenceConfig
from util.naming import node_group_name
from workloads.capacity import CapacityChecker

EBS_CSI_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AmazonEBSCSIDriverPolicy"

ADDON_VERSIONS = {
    "metrics-server": "v0.7.2-eksbuild.3",
    "aws-ebs-csi-driver": "v1.47.0-eksbuild.1",
    "coredns": "v1.12.2-eksbuild.4",
}

# ---- Placement helpers ------------------------------------------------------
# Every pool except "core" is tainted dedicated=<pool>:NoSchedule.

def node_selector(pool: str) -> Dict[str, str]:
    return {"dedicated": pool}

def tolerations(pool: str) -> List[Dict[str, str]]:
    return [{"key": "dedicated", "operator": "Equal", "value": pool, "effect": "NoSchedule"}]

def placement(pool: str) -> Dict[str, Any]:
    return {"nodeSelector": node_selector(pool), "tolerations": tolerations(pool)}

def node_group_sizes(cfg: EKSClusterConfig, persistence: PersistenceConfig) -> Dict[str, tuple]:
    """Pool name -> (instance type, node count) for every node group the cluster gets."""
    pools = {
        "core": (cfg.node_type, cfg.node_count),
        "temporal": (cfg.temporal_node_type, cfg.temporal_node_count),
        "worker": (cfg.worker_node_type, cfg.worker_node_count),
    }
    if persistence.cassandra:
        pools["cassandra"] = (persistence.cassandra.node_type, persistence.cassandra.node_count)
    return pools

def admin_role_arn(role: str) -> pulumi.Output[str]:
    identity = aws.get_caller_identity_output()
    return pulumi.Output.concat("arn:aws:iam::", identity.account_id, ":role/", role)

# ---- Cluster ----------------------------------------------------------------

class Cluster(pulumi.ComponentResource):
    eks_cluster: eks.Cluster
    provider: k8s.Provider
    cluster_name: pulumi.Output[str]
    kubeconfig: pulumi.Output[Any]
    security_group: pulumi.Output[str]
    instance_roles: pulumi.Output[List[aws.iam.Role]]
    capacity: Dict[str, CapacityChecker]

    def __init__(
        self,
        name: str,
        *,
        aws_config: AWSConfig,
        config: EKSClusterConfig,
        persistence_config: PersistenceConfig,
        opts: Optional[pulumi.ResourceOptions] = None,
    ):
        super().__init__("benchmark:infrastructure:Cluster", name, None, opts)

        self.eks_cluster = eks.Cluster(
            name,
            provider_credential_opts=eks.KubeconfigOptionsArgs(role_arn=admin_role_arn(aws_config.role)),
            vpc_id=aws_config.vpc_id,
            private_subnet_ids=aws_config.private_subnet_ids,
            node_associate_public_ip_address=False,
            skip_default_node_group=True,
            coredns_addon_options=eks.CoreDnsAddonOptionsArgs(enabled=False),
            create_instance_role=True,
            create_oidc_provider=True,
            opts=pulumi.ResourceOptions(parent=self),
        )
        provider = self.eks_cluster.provider

        node_groups = {}
        self.capacity = {}
        for pool, (instance_type, count) in node_group_sizes(config, persistence_config).items():
            node_groups[pool] = eks.NodeGroupV2(
                node_group_name(name, pool),
                cluster=self.eks_cluster,
                instance_type=instance_type,
                node_associate_public_ip_address=False,
                extra_node_security_groups=self.eks_cluster.node_security_group.apply(lambda sg: [sg]),
                desired_capacity=count,
                min_size=count,
                max_size=count,
                labels=node_selector(pool),
                taints=None if pool == "core" else {
                    "dedicated": eks.TaintArgs(value=pool, effect="NoSchedule"),
                },
                opts=pulumi.ResourceOptions(parent=self),
            )
            self.capacity[pool] = CapacityChecker(
                f"{pool}-capacity",
                replicas=count,
                node_selector=node_selector(pool),
                tolerations=None if pool == "core" else tolerations(pool),
                opts=pulumi.ResourceOptions(parent=self, provider=provider, depends_on=[node_groups[pool]]),
            )

        # Addons need somewhere to run; wait until every core node is schedulable.
        addons = {
            addon: aws.eks.Addon(
                addon,
                cluster_name=self.eks_cluster.eks_cluster.name,
                addon_name=addon,
                addon_version=version,
                opts=pulumi.ResourceOptions(parent=self, depends_on=[self.capacity["core"]]),
            )
            for addon, version in ADDON_VERSIONS.items()
        }

        self.eks_cluster.instance_roles.apply(self._attach_ebs_policy)

        k8s.storage.v1.StorageClass(
            "gp3",
            metadata={"name": "gp3"},
            provisioner="ebs.csi.aws.com",
            parameters={"fsType": "ext4", "type": "gp3"},
            reclaim_policy="Delete",
            volume_binding_mode="WaitForFirstConsumer",
            allow_volume_expansion=True,
            opts=pulumi.ResourceOptions(parent=self, provider=provider, depends_on=[addons["aws-ebs-csi-driver"]]),
        )

        self.provider = provider
        self.cluster_name = self.eks_cluster.eks_cluster.name
        self.kubeconfig = self.eks_cluster.kubeconfig
        self.security_group = self.eks_cluster.node_security_group.apply(lambda sg: sg.id)
        self.instance_roles = self.eks_cluster.instance_roles

        self.register_outputs({
            "cluster_name": self.cluster_name,
            "kubeconfig": self.kubeconfig,
            "security_group": self.security_group,
        })

    def _attach_ebs_policy(self, roles):
        return [
            aws.iam.RolePolicyAttachment(
                f"ebs-driver-role-policy-{i}",
                role=role.name,
                policy_arn=EBS_CSI_POLICY_ARN,
                opts=pulumi.ResourceOptions(parent=self),
            )
            for i, role in enumerate(roles)
        ]


def ensure_cluster(*, aws_config: AWSConfig, cluster_config: ClusterConfig, persistence_config: PersistenceConfig) -> Cluster:
    if cluster_config.eks is None:
        raise ValueError("invalid cluster config")

    stack = pulumi.get_stack()
    pulumi.log.info(f"Provisioning EKS cluster {stack} in {aws_config.region}")
    return Cluster(
        stack,
        aws_config=aws_config,
        config=cluster_config.eks,
        persistence_config=persistence_config,
    )
