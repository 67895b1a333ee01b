from pulumi_policy import EnforcementLevel, PolicyPack, StackValidationPolicy

from reporting.policy import pricing_report

PolicyPack(
    name="pricing",
    enforcement_level=EnforcementLevel.ADVISORY,
    policies=[
        StackValidationPolicy(
            name="stack-resources-pricing-report",
            description="Analyzes all resources in the stack to generate a comprehensive pricing report",
            validate=pricing_report,
        ),
    ],
)
