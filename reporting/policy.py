import os
from pathlib import Path
from typing import Iterable, Optional, Tuple

import pulumi

from reporting.pricing import attach_prices, validate_prices
from reporting.pricing import render_report as pricing_markdown
from reporting.pricing_data import PricingService
from reporting.resources import collect
from reporting.summary import render_report as summary_markdown
from util.config import StackConfig

REPORT_DIR = Path(os.environ.get("BENCHMARK_REPORT_DIR", Path(__file__).resolve().parents[1] / "reports"))
DEFAULT_REGION = "us-east-1"


def parse_urn(urn: str) -> Tuple[str, str]:
    # urn:pulumi:<stack>::<project>::<type>::<name>
    parts = urn.split("::")
    prefix = "urn:pulumi:"
    if len(parts) < 4 or not parts[0].startswith(prefix):
        raise ValueError(f"unrecognized resource URN: {urn}")
    return parts[0][len(prefix):], parts[1]


def stack_identity(resources: Iterable) -> Optional[Tuple[str, str]]:
    """(stack, project) of the stack under validation, or None when it has no resources."""
    for resource in resources:
        return parse_urn(resource.urn)
    return None


def load_config(project: str) -> StackConfig:
    return StackConfig.load(pulumi.Config(project))


def write_report(stack: str, content: str, directory: Optional[Path] = None) -> Path:
    directory = Path(directory or REPORT_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{stack}.md"
    path.write_text(content, encoding="utf-8")
    return path


def _identify(args, report_violation) -> Optional[Tuple[str, str]]:
    identity = stack_identity(args.resources)
    if identity is None:
        report_violation("No resources in stack; no report generated.")
    return identity


def _save(stack: str, content: str, message: str, report_violation, directory: Optional[Path]):
    try:
        path = write_report(stack, content, directory)
    except OSError as e:
        report_violation(f"Failed to save report: {e}")
        return
    pulumi.log.info(f"Wrote {path}")
    report_violation(f'{message} for "{stack}" at {path}.')


def pricing_report(
    args,
    report_violation,
    *,
    config: Optional[StackConfig] = None,
    pricing: Optional[PricingService] = None,
    directory: Optional[Path] = None,
):
    """Stack validation callback for the pricing pack."""
    identity = _identify(args, report_violation)
    if identity is None:
        return
    stack, project = identity
    config = config or load_config(project)
    region = config.aws.region if config.aws else DEFAULT_REGION
    pricing = pricing or PricingService(region)

    info = collect(args.resources, config)
    attach_prices(info, pricing)
    validate_prices(info)

    _save(stack, pricing_markdown(stack, info), "Generated stack resource and pricing report", report_violation, directory)


def summary_report(
    args,
    report_violation,
    *,
    config: Optional[StackConfig] = None,
    directory: Optional[Path] = None,
):
    """Stack validation callback for the summary pack."""
    identity = _identify(args, report_violation)
    if identity is None:
        return
    stack, project = identity
    config = config or load_config(project)

    info = collect(args.resources, config)
    _save(stack, summary_markdown(stack, info), "Generated stack resource summary report", report_violation, directory)
