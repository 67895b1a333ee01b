"""check-pricing: print a handful of looked-up prices for a region."""
import logging

import typer
from rich.console import Console

from reporting.pricing_data import PricingDataError, PricingService

app = typer.Typer(
    name="check-pricing",
    help="Sanity-check the AWS pricing data used by the pricing report",
    add_completion=False,
)
console = Console()


@app.command()
def main(
    region: str = typer.Option("us-west-2", help="AWS region to look up"),
    refresh: bool = typer.Option(False, help="Ignore the cache and download fresh offer files"),
):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    pricing = PricingService(region)

    try:
        if refresh:
            pricing.refresh()
        console.print(f"EC2 c5.xlarge: ${pricing.ec2('c5.xlarge'):.4f}/hour")
        console.print(f"RDS db.t3.medium (postgres): ${pricing.rds('db.t3.medium', 'postgres'):.4f}/hour")

        try:
            console.print(f"OpenSearch m5.large.search: ${pricing.opensearch('m5.large.search'):.4f}/hour")
            console.print(f"OpenSearch storage: ${pricing.opensearch_storage():.4f}/GB-month")
        except PricingDataError as e:
            console.print(f"[yellow]OpenSearch pricing unavailable: {e}[/yellow]")

        console.print(f"EKS: ${pricing.eks():.2f}/hour")
    except PricingDataError as e:
        console.print(f"[red]Pricing lookup failed: {e}[/red]")
        raise typer.Exit(1)

    console.print("[green]Pricing data looks good.[/green]")


if __name__ == "__main__":
    app()
