import json
from typing import Any, Dict, List, Optional

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s

from util.config import AWSConfig, BenchmarkConfig
from util.naming import cluster_size
from workloads.cluster import Cluster

REMOTE_WRITE_SERVICE_ACCOUNT = "prometheus-remote-write"

# ---- PromQL -----------------------------------------------------------------

def _pool_sum(metric: str, pool: str, agg: str = "sum") -> str:
    return (
        f'{agg}({metric} * on(node) group_left() '
        f'(kube_node_spec_taint{{key="dedicated",value="{pool}"}} > 0)) by (resource)'
    )

def _cpu_usage_ratio(namespace: str, container: str, workload: str) -> str:
    owner = (
        "on(namespace,pod) group_left(workload, workload_type) "
        f'namespace_workload_pod:kube_pod_owner:relabel{{namespace="{namespace}", workload{workload}}}'
    )
    return (
        f"sum(rate(container_cpu_usage_seconds_total{{container{container}}}[1m]) * {owner}) by (pod, container)"
        " / "
        f'sum(kube_pod_container_resource_requests{{job="kube-state-metrics",namespace="{namespace}",'
        f'resource="cpu",container{container}}} * {owner}) by (pod, container)'
    )

def recording_rules() -> List[Dict[str, str]]:
    rules = [{
        "record": "benchmark:state_transition_rate",
        "expr": 'sum(rate(state_transition_count_count{exported_namespace=~"benchmark_.*"}[1m]))',
    }]
    for prefix, pool in (("benchmark", "worker"), ("cassandra", "cassandra"), ("temporal", "temporal")):
        rules.append({
            "record": f"{prefix}:resource:allocatable_total",
            "expr": _pool_sum("kube_node_status_allocatable", pool),
        })
    for prefix, pool in (("benchmark", "worker"), ("cassandra", "cassandra"), ("temporal", "temporal")):
        rules.append({
            "record": f"{prefix}:resource:requests_total",
            "expr": _pool_sum("kube_pod_container_resource_requests", pool),
        })
    rules += [
        {
            "record": "benchmark:service:cpu_usage_ratio",
            "expr": _cpu_usage_ratio("benchmark", '="benchmark-workers"', '=~"benchmark-workers-.*-workers"'),
        },
        {
            "record": "cassandra:service:cpu_usage_ratio",
            "expr": _cpu_usage_ratio("cassandra", '="cassandra"', '="cassandra"'),
        },
        {
            "record": "temporal:service:cpu_usage_ratio",
            "expr": 'label_replace({}, "service", "$1", "container", "temporal-(.+)")'.format(
                _cpu_usage_ratio(
                    "temporal",
                    '=~"temporal-(frontend|history|matching)"',
                    '=~"temporal-(frontend|history|matching)"',
                )
            ),
        },
    ]
    return rules

def _alert(name: str, expr: str, summary: str, description: str, *, duration: str = "1m", slo: bool = True, **labels) -> Dict[str, Any]:
    rule_labels = {"impact": "slo"} if slo else {}
    rule_labels.update({"severity": "warning", **labels})
    return {
        "alert": name,
        "expr": expr,
        "for": duration,
        "labels": rule_labels,
        "annotations": {"summary": summary, "description": description},
    }

def tuning_rules() -> List[Dict[str, Any]]:
    return [
        _alert(
            "TemporalServiceResourceExhausted",
            "sum(rate(service_errors_resource_exhausted[1m])) by (service_name, resource_exhausted_scope, resource_exhausted_cause) > 0",
            "Temporal {{ $labels.service_name }} experiencing resource exhausted errors, scope: {{ $labels.resource_exhausted_scope }}, cause: {{ $labels.resource_exhausted_cause }}",
            "{{ $labels.service_name }} service is returning resource exhausted errors for scope {{ $labels.resource_exhausted_scope }} at {{ $value }} errors per second",
            duration="30s", slo=False, service="{{ $labels.service_name }}",
        ),
        _alert(
            "TemporalPersistenceResourceExhausted",
            "sum(rate(persistence_errors_resource_exhausted[1m])) by (service_name, resource_exhausted_scope) > 0",
            "Temporal {{ $labels.service_name }} experiencing persistence resource exhausted errors, scope: {{ $labels.resource_exhausted_scope }}",
            "{{ $labels.service_name }} service is returning persistence resource exhausted errors for scope {{ $labels.resource_exhausted_scope }} at {{ $value }} errors per second",
            duration="30s", slo=False, service="{{ $labels.service_name }}",
        ),
        _alert(
            "BenchmarkHighCPUUsage",
            "benchmark:service:cpu_usage_ratio > 0.85",
            "High CPU usage in Benchmark",
            "Benchmark pod {{ $labels.pod }} is using more than 85% of requested CPU",
            slo=False,
        ),
        _alert(
            "CassandraExcessCPULimits",
            "avg(cassandra:service:cpu_usage_ratio) < 0.6",
            "Excess CPU limits for Cassandra",
            "Cassandra pods are using less than 60% of requested CPU on average",
        ),
        _alert(
            "TemporalExcessNodeSpareCapacity",
            'temporal:resource:requests_total{resource="cpu"} / temporal:resource:allocatable_total{resource="cpu"} < 0.5',
            "Temporal has excess spare CPU capacity",
            "Temporal pods have requested less than 50% of available CPU capacity.",
        ),
    ]

def slo_rules(target: int) -> List[Dict[str, Any]]:
    def task_latency(metric: str) -> str:
        return (
            "histogram_quantile(0.95, sum by(exported_namespace, le) "
            f'(rate({metric}{{exported_namespace=~"benchmark_.*"}}[1m]))) > 0.150'
        )

    return [
        _alert(
            "TemporalHighWorkflowTaskLatency",
            task_latency("temporal_workflow_task_schedule_to_start_latency_bucket"),
            "High workflow task latency detected",
            "95th percentile of workflow task schedule-to-start latency in the {{ $labels.exported_namespace }} namespace is above 150ms",
        ),
        _alert(
            "TemporalHighActivityTaskLatency",
            task_latency("temporal_activity_schedule_to_start_latency_bucket"),
            "High activity task latency detected",
            "95th percentile of activity task schedule-to-start latency in the {{ $labels.exported_namespace }} namespace is above 150ms",
        ),
        _alert(
            "TemporalHighCPUUsage",
            "temporal:service:cpu_usage_ratio > 0.85",
            "High CPU usage in Temporal {{ .service | title }}",
            "{{ .service | title }} pod {{ $labels.pod }} is using more than 85% of requested CPU",
        ),
        _alert(
            "CassandraHighCPUUsage",
            "cassandra:service:cpu_usage_ratio > 0.66",
            "High CPU usage in Cassandra",
            "Cassandra pod {{ $labels.pod }} is using more than 66% of requested CPU",
        ),
        _alert(
            "TemporalInsufficientNodeSpareCapacity",
            "temporal:resource:requests_total / temporal:resource:allocatable_total > 0.66",
            "Temporal pods would not survive an AZ failure - insufficient spare {{ $labels.resource }} capacity",
            "Temporal nodes are using more than 66% of available {{ $labels.resource }} capacity. "
            "With nodes evenly distributed across 3 AZs, this leaves insufficient capacity to reschedule all pods if one AZ fails.",
        ),
        _alert(
            "TemporalLowStateTransitionRate",
            f"benchmark:state_transition_rate < {target}",
            "Low state transition rate detected",
            f"State transition rate is below target of {target} transitions per second",
        ),
    ]

def alert_rule_groups(target: int) -> List[Dict[str, Any]]:
    return [
        {"name": "temporal.benchmarks.recording", "interval": "30s", "rules": recording_rules()},
        {"name": "temporal.benchmarks.tuning", "interval": "30s", "rules": tuning_rules()},
        {"name": "temporal.benchmarks.slo", "interval": "30s", "rules": slo_rules(target)},
    ]

# ---- IAM --------------------------------------------------------------------

def remote_write_trust_policy(oidc_url: str, oidc_arn: str, namespace: str) -> str:
    issuer = oidc_url.replace("https://", "")
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Federated": oidc_arn},
            "Action": "sts:AssumeRoleWithWebIdentity",
            "Condition": {
                "StringEquals": {
                    f"{issuer}:aud": "sts.amazonaws.com",
                    f"{issuer}:sub": f"system:serviceaccount:{namespace}:{REMOTE_WRITE_SERVICE_ACCOUNT}",
                },
            },
        }],
    })

def prometheus_values(
    stack: str,
    region: str,
    role_arn: Optional[pulumi.Input[str]] = None,
    endpoint: Optional[pulumi.Input[str]] = None,
) -> Dict[str, Any]:
    spec: Dict[str, Any] = {
        "podMonitorSelectorNilUsesHelmValues": False,
        "serviceMonitorSelectorNilUsesHelmValues": False,
        "ruleSelectorNilUsesHelmValues": False,
        "externalLabels": {"cluster": stack, "clusterSize": cluster_size(stack)},
    }
    prometheus: Dict[str, Any] = {"prometheusSpec": spec}

    if endpoint is not None:
        prometheus["serviceAccount"] = {
            "create": True,
            "name": REMOTE_WRITE_SERVICE_ACCOUNT,
            "annotations": {"eks.amazonaws.com/role-arn": role_arn},
        }
        spec["remoteWrite"] = [{
            "url": pulumi.Output.concat(endpoint, "api/v1/remote_write"),
            "sigv4": {"region": region},
            "queueConfig": {
                "maxSamplesPerSend": 1000,
                "maxShards": 200,
                "capacity": 2500,
            },
            "writeRelabelConfigs": [
                {"sourceLabels": ["exported_namespace"], "regex": "(.+)", "targetLabel": "namespace"},
                {"regex": "exported_namespace", "action": "labeldrop"},
            ],
        }]

    return {
        "prometheus": prometheus,
        "prometheusOperator": {"tls": {"enabled": False}},
    }


class Monitoring(pulumi.ComponentResource):
    namespace: k8s.core.v1.Namespace
    prometheus_stack: k8s.helm.v4.Chart
    alert_rules: k8s.apiextensions.CustomResource

    def __init__(
        self,
        name: str,
        *,
        aws_config: AWSConfig,
        cluster: Cluster,
        config: BenchmarkConfig,
        opts: Optional[pulumi.ResourceOptions] = None,
    ):
        super().__init__("benchmark:infrastructure:Monitoring", name, None, opts)
        stack = pulumi.get_stack()

        self.namespace = k8s.core.v1.Namespace(
            "monitoring",
            metadata={"name": "monitoring"},
            opts=pulumi.ResourceOptions(parent=self, provider=cluster.provider),
        )

        role_arn = endpoint = None
        if aws_config.prometheus_id:
            role = aws.iam.Role(
                "amp-writer-role",
                assume_role_policy=pulumi.Output.all(
                    cluster.eks_cluster.oidc_provider_url,
                    cluster.eks_cluster.oidc_provider_arn,
                    self.namespace.metadata.name,
                ).apply(lambda args: remote_write_trust_policy(*args)),
                opts=pulumi.ResourceOptions(parent=self),
            )
            for suffix, policy in (("query", "AmazonPrometheusQueryAccess"), ("write", "AmazonPrometheusRemoteWriteAccess")):
                aws.iam.RolePolicyAttachment(
                    f"amp-writer-{suffix}-policy",
                    role=role.name,
                    policy_arn=f"arn:aws:iam::aws:policy/{policy}",
                    opts=pulumi.ResourceOptions(parent=self),
                )
            workspace = aws.amp.Workspace.get("prometheus", aws_config.prometheus_id, opts=pulumi.ResourceOptions(parent=self))
            role_arn, endpoint = role.arn, workspace.prometheus_endpoint
        else:
            pulumi.log.info("No AWS.PrometheusId configured; skipping AMP remote write")

        self.prometheus_stack = k8s.helm.v4.Chart(
            "kube-prometheus-stack",
            chart="kube-prometheus-stack",
            version="72.7.0",
            namespace=self.namespace.metadata.name,
            repository_opts=k8s.helm.v4.RepositoryOptsArgs(
                repo="https://prometheus-community.github.io/helm-charts",
            ),
            values=prometheus_values(stack, aws_config.region, role_arn, endpoint),
            opts=pulumi.ResourceOptions(parent=self, provider=cluster.provider, depends_on=[self.namespace]),
        )

        self.alert_rules = k8s.apiextensions.CustomResource(
            "benchmark-alerts",
            api_version="monitoring.coreos.com/v1",
            kind="PrometheusRule",
            metadata={
                "name": "benchmark-alerts",
                "namespace": self.namespace.metadata.name,
                "labels": {
                    "app.kubernetes.io/name": "kube-prometheus-stack",
                    "app.kubernetes.io/instance": "kube-prometheus-stack",
                },
            },
            spec={"groups": alert_rule_groups(config.target)},
            opts=pulumi.ResourceOptions(parent=self, provider=cluster.provider, depends_on=[self.prometheus_stack]),
        )

        self.register_outputs({})
