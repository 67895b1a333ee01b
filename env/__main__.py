import pulumi
import pulumi_aws as aws
import pulumi_awsx as awsx

AZ_COUNT = 3
ADMIN_ROLE = "BenchmarkClusterAdmin"

def ensure_vpc(*, name: str) -> awsx.ec2.Vpc:
    return awsx.ec2.Vpc(name, number_of_availability_zones=AZ_COUNT)

def subnet_zones(subnet_ids):
    return pulumi.Output.all(*[
        aws.ec2.get_subnet_output(id=subnet_id).availability_zone
        for subnet_id in subnet_ids
    ])


vpc = ensure_vpc(name="temporal-benchmark")
rds_subnet_group = aws.rds.SubnetGroup(
    "temporal-benchmark-rds",
    subnet_ids=vpc.private_subnet_ids,
)

pulumi.export("VpcId", vpc.vpc_id)
pulumi.export("AvailabilityZones", vpc.private_subnet_ids.apply(subnet_zones))
pulumi.export("PrivateSubnetIds", vpc.private_subnet_ids)
pulumi.export("PublicSubnetIds", vpc.public_subnet_ids)
pulumi.export("RdsSubnetGroupName", rds_subnet_group.name)
pulumi.export("Role", ADMIN_ROLE)
