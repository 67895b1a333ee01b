from pulumi_policy import EnforcementLevel, PolicyPack, StackValidationPolicy

from reporting.policy import summary_report

PolicyPack(
    name="summary",
    enforcement_level=EnforcementLevel.ADVISORY,
    policies=[
        StackValidationPolicy(
            name="stack-resources-summary-report",
            description="Analyzes all resources in the stack to generate a comprehensive resource summary report",
            validate=summary_report,
        ),
    ],
)
