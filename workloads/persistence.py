from typing import Any, Dict, Optional, Tuple

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s
from pulumi_random import RandomPassword

from util.config import AWSConfig, CassandraPersistenceConfig, PersistenceConfig, RDSPersistenceConfig
from workloads.cluster import Cluster, placement

DB_USER = "temporal"
PERSISTENCE_DATABASE = "temporal_persistence"
AURORA_ENGINES = ("aurora-postgresql", "aurora-mysql")

def sql_driver(engine: str) -> Tuple[str, int]:
    """Temporal SQL plugin and port for an RDS engine name."""
    if engine in ("postgres", "aurora-postgresql"):
        return "postgres12", 5432
    if engine in ("mysql", "aurora-mysql"):
        return "mysql8", 3306
    raise ValueError("invalid RDS config")

def sql_values(engine: str, host: pulumi.Input[str], password: pulumi.Input[str]) -> Dict[str, Any]:
    driver, port = sql_driver(engine)
    return {
        "driver": "sql",
        "sql": {
            "driver": driver,
            "host": host,
            "port": port,
            "database": PERSISTENCE_DATABASE,
            "user": DB_USER,
            "password": password,
            "maxConns": 30,
            "maxIdleConns": 30,
        },
    }

def cassandra_values(password: pulumi.Input[str]) -> Dict[str, Any]:
    return {
        "driver": "cassandra",
        "cassandra": {
            "hosts": ["cassandra.cassandra.svc.cluster.local"],
            "port": 9042,
            "keyspace": PERSISTENCE_DATABASE,
            "user": DB_USER,
            "password": password,
            "replicationFactor": 3,
        },
    }

def cassandra_chart_values(cfg: CassandraPersistenceConfig, password: pulumi.Input[str]) -> Dict[str, Any]:
    limits = {}
    if cfg.cpu:
        limits["cpu"] = cfg.cpu.limit
    if cfg.memory:
        limits["memory"] = cfg.memory.limit

    persistence = {
        "storageClass": "gp3",
        "commitStorageClass": "gp3",
        "commitLogMountPath": "/bitnami/cassandra/commitlog",
    }
    if cfg.data_storage:
        persistence["size"] = cfg.data_storage
    if cfg.commit_log_storage:
        persistence["commitLogsize"] = cfg.commit_log_storage

    return {
        "dbUser": {"user": DB_USER, "password": password},
        "replicaCount": cfg.node_count,
        "persistence": persistence,
        "image": {"tag": "4.1"},
        "resources": {
            "requests": {"cpu": 1, "memory": "1Gi"},
            "limits": limits,
        },
        "podAntiAffinityPreset": "hard",
        **placement("cassandra"),
    }


class Persistence(pulumi.ComponentResource):
    values: pulumi.Output[Dict[str, Any]]
    password: pulumi.Output[str]

    def __init__(
        self,
        name: str,
        *,
        aws_config: AWSConfig,
        config: PersistenceConfig,
        cluster: Cluster,
        shards: int,
        opts: Optional[pulumi.ResourceOptions] = None,
    ):
        super().__init__("benchmark:infrastructure:Persistence", name, None, opts)

        if config.rds is None and config.cassandra is None:
            raise ValueError("invalid persistence config")

        self.password = RandomPassword(
            f"{name}-password",
            length=24,
            special=False,
            opts=pulumi.ResourceOptions(parent=self),
        ).result

        if config.rds is not None:
            values = self._rds(name, config.rds, cluster, aws_config, shards)
        else:
            values = self._cassandra(config.cassandra, cluster)

        self.values = pulumi.Output.from_input(values)
        self.register_outputs({"values": self.values})

    def _rds(self, name: str, cfg: RDSPersistenceConfig, cluster: Cluster, aws_config: AWSConfig, shards: int):
        _, port = sql_driver(cfg.engine)

        security_group = aws.ec2.SecurityGroup(
            f"{name}-rds",
            vpc_id=aws_config.vpc_id,
            opts=pulumi.ResourceOptions(parent=self),
        )
        aws.ec2.SecurityGroupRule(
            f"{name}-rds",
            security_group_id=security_group.id,
            type="ingress",
            source_security_group_id=cluster.security_group,
            protocol="tcp",
            from_port=port,
            to_port=port,
            opts=pulumi.ResourceOptions(parent=self),
        )

        if cfg.engine in AURORA_ENGINES:
            rds_cluster = aws.rds.Cluster(
                name,
                availability_zones=aws_config.availability_zones[1:],
                db_subnet_group_name=aws_config.rds_subnet_group_name,
                vpc_security_group_ids=[security_group.id],
                cluster_identifier_prefix=name,
                engine=cfg.engine,
                engine_version=cfg.engine_version,
                skip_final_snapshot=True,
                master_username=DB_USER,
                master_password=self.password,
                opts=pulumi.ResourceOptions(parent=self),
            )
            for zone in aws_config.availability_zones:
                aws.rds.ClusterInstance(
                    f"{name}-{zone}",
                    identifier_prefix=name,
                    cluster_identifier=rds_cluster.id,
                    availability_zone=zone,
                    engine=cfg.engine,
                    engine_version=cfg.engine_version,
                    instance_class=cfg.instance_type,
                    performance_insights_enabled=True,
                    opts=pulumi.ResourceOptions(parent=self),
                )
            endpoint = rds_cluster.endpoint
        else:
            instance = aws.rds.Instance(
                name,
                storage_type="gp3",
                storage_encrypted=True,
                allocated_storage=1024,
                iops=cfg.iops,
                db_subnet_group_name=aws_config.rds_subnet_group_name,
                vpc_security_group_ids=[security_group.id],
                identifier_prefix=name,
                engine=cfg.engine,
                engine_version=cfg.engine_version,
                instance_class=cfg.instance_type,
                skip_final_snapshot=True,
                username=DB_USER,
                password=self.password,
                publicly_accessible=False,
                multi_az=True,
                tags={"numHistoryShards": str(shards)},
                # a new shard count needs an empty database
                opts=pulumi.ResourceOptions(
                    parent=self,
                    replace_on_changes=["instanceClass", "tags.numHistoryShards"],
                ),
            )
            endpoint = instance.address

        return sql_values(cfg.engine, endpoint, self.password)

    def _cassandra(self, cfg: CassandraPersistenceConfig, cluster: Cluster):
        ns = k8s.core.v1.Namespace(
            "cassandra",
            metadata={"name": "cassandra"},
            opts=pulumi.ResourceOptions(parent=self, provider=cluster.provider),
        )

        k8s.helm.v4.Chart(
            "cassandra",
            chart="cassandra",
            version="12.3.10",
            namespace=ns.metadata.name,
            repository_opts=k8s.helm.v4.RepositoryOptsArgs(
                repo="https://charts.bitnami.com/bitnami",
            ),
            values=cassandra_chart_values(cfg, self.password),
            opts=pulumi.ResourceOptions(
                parent=self,
                provider=cluster.provider,
                depends_on=[ns, cluster.capacity["cassandra"]],
            ),
        )

        return cassandra_values(self.password)
