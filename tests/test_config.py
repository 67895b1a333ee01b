"""Stack config parsing."""

import pytest
from pydantic import ValidationError

from util.config import (
    BenchmarkConfig,
    OpenSearchConfig,
    PersistenceConfig,
    StackConfig,
    get_model,
    require,
    require_model,
)


class FakeConfig:
    name = "temporal-benchmark"

    def __init__(self, values):
        self.values = values

    def get(self, key):
        return self.values.get(key)

    def get_object(self, key):
        return self.values.get(key)


class TestRequire:
    def test_returns_value(self):
        assert require(FakeConfig({"Region": "us-west-2"}), "Region") == "us-west-2"

    def test_missing_key_names_namespace(self):
        with pytest.raises(RuntimeError, match="Missing required config: temporal-benchmark:Region"):
            require(FakeConfig({}), "Region")

    def test_require_model_parses(self, rds_config_dict):
        cfg = FakeConfig(rds_config_dict)
        benchmark = require_model(cfg, "Benchmark", BenchmarkConfig)
        assert benchmark.target == 1000
        assert benchmark.workers.workflow_pollers == 100

    def test_require_model_missing(self):
        with pytest.raises(RuntimeError):
            require_model(FakeConfig({}), "Benchmark", BenchmarkConfig)

    def test_get_model_missing_is_none(self):
        assert get_model(FakeConfig({}), "Persistence", PersistenceConfig) is None


class TestStackConfig:
    def test_acronym_aliases(self, rds_config):
        assert rds_config.aws.region == "us-west-2"
        assert rds_config.cluster.eks.temporal_node_count == 3
        assert rds_config.persistence.rds.iops == 12000
        assert rds_config.temporal.dynamic_config.frontend_rps == 10000
        assert rds_config.temporal.dynamic_config.frontend_namespace_rps is None

    def test_quantities_keep_their_type(self, rds_config):
        assert rds_config.temporal.frontend.cpu.request == 2
        assert isinstance(rds_config.temporal.frontend.cpu.request, int)
        assert rds_config.temporal.history.cpu.request == "4"
        assert rds_config.temporal.worker.cpu.request == 0.5

    def test_cassandra_and_opensearch(self, cassandra_config):
        persistence = cassandra_config.persistence
        assert persistence.rds is None
        assert persistence.cassandra.replica_count == 3
        assert persistence.cassandra.memory.limit == "48Gi"
        assert persistence.open_search.dedicated_master

    def test_load_from_pulumi_config(self, cassandra_config_dict):
        config = StackConfig.load(FakeConfig(cassandra_config_dict))
        assert config.benchmark.namespaces == 2
        assert config.persistence.cassandra.node_count == 3

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            BenchmarkConfig.model_validate({"Target": 10})


class TestBenchmarkConfig:
    def test_temporal_namespaces(self, rds_config):
        assert rds_config.benchmark.temporal_namespaces == ["benchmark_0", "benchmark_1"]

    def test_defaults(self):
        cfg = BenchmarkConfig.model_validate({
            "Workers": {"Pods": 1, "WorkflowPollers": 1, "ActivityPollers": 1, "CPU": {"Request": 1}, "Memory": {"Request": "1Gi"}},
            "SoakTest": {"Pods": 1, "ConcurrentWorkflows": 1, "CPU": {"Request": 1}, "Memory": {"Request": "1Gi"}},
        })
        assert cfg.namespaces == 1
        assert cfg.target == 0
        assert cfg.temporal_namespaces == ["benchmark_0"]


class TestOpenSearchConfig:
    def test_single_instance_type(self):
        cfg = OpenSearchConfig.model_validate({"EngineVersion": "OpenSearch_2.11", "InstanceType": "m5.large.search"})
        assert not cfg.dedicated_master

    def test_master_without_data_is_not_split(self):
        cfg = OpenSearchConfig.model_validate({"EngineVersion": "OpenSearch_2.11", "MasterInstanceType": "m5.large.search"})
        assert not cfg.dedicated_master

    def test_no_visibility_section(self):
        assert PersistenceConfig.model_validate({}).open_search is None
