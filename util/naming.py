import re

def node_group_name(cluster: str, pool: str) -> str:
    # pool suffix is always appended; reports read the pool back from it
    return f"{cluster}-{pool}"

def cluster_size(stack: str):
    # stack names look like "cassandra-xlarge" or "rds-small"
    match = re.search(r"(?:^|-)(small|medium|x*large)$", stack)
    return match.group(1) if match else None
