from reporting.resources import node_group_purpose
from util.naming import cluster_size, node_group_name


def test_node_group_name_appends_pool():
    assert node_group_name("rds-small", "core") == "rds-small-core"


def test_node_group_name_keeps_pool_word_stacks_distinct():
    assert node_group_name("x-core", "core") == "x-core-core"
    assert node_group_name("hardcore", "core") == "hardcore-core"


def test_node_group_name_round_trips_purpose():
    for pool in ("core", "temporal", "worker", "cassandra"):
        assert node_group_purpose(node_group_name("cassandra-core", pool)) == pool


def test_cluster_size_from_stack_name():
    assert cluster_size("cassandra-small") == "small"
    assert cluster_size("rds-medium") == "medium"
    assert cluster_size("cassandra-xxlarge") == "xxlarge"
    assert cluster_size("rds-large") == "large"
    assert cluster_size("large") == "large"


def test_cluster_size_unknown():
    assert cluster_size("dev") is None


def test_cluster_size_ignores_words_inside_names():
    assert cluster_size("smallville-rds") is None
    assert cluster_size("rds-smallish") is None
    assert cluster_size("rds-extralarge") is None
