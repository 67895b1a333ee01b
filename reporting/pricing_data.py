"""On-demand AWS prices from the public Bulk Pricing offer files.

Only the region being reported on is downloaded. Results are cached as
JSON, one file per region, and refreshed once they are a week old.
"""
from __future__ import annotations
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

OFFER_URL = "https://pricing.us-east-1.amazonaws.com/offers/v1.0/aws/{offer}/current/{region}/index.json"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "temporal-benchmark" / "pricing"
MAX_AGE = timedelta(days=7)
EKS_HOURLY = 0.10

RDS_STORAGE_TYPES = {
    "General Purpose": "gp2",
    "General Purpose-GP3": "gp3",
    "Provisioned IOPS": "io1",
    "Magnetic": "standard",
}

ENGINE_ALIASES = {
    "mysql": ["MySQL", "Aurora MySQL"],
    "postgresql": ["PostgreSQL", "Aurora PostgreSQL"],
    "postgres": ["PostgreSQL", "Aurora PostgreSQL"],
    "oracle": ["Oracle"],
    "sqlserver": ["SQL Server"],
    "sql-server": ["SQL Server"],
    "mariadb": ["MariaDB"],
    "aurora-mysql": ["Aurora MySQL"],
    "aurora-postgresql": ["Aurora PostgreSQL"],
    "aurora-postgres": ["Aurora PostgreSQL"],
    "db2": ["Db2"],
}

STORAGE_ALIASES = {
    "gp2": ["gp2"],
    "gp3": ["gp3"],
    "io1": ["io1"],
    "io2": ["io2"],
    "standard": ["standard"],
    "magnetic": ["standard"],
}


class PricingDataError(LookupError):
    pass


# ---- Offer file parsing -----------------------------------------------------

def on_demand_prices(offer: Dict[str, Any], sku: str, unit: str) -> Iterator[float]:
    """USD prices for ``sku`` in ``unit``, the first matching dimension of each term."""
    terms = offer.get("terms", {}).get("OnDemand", {}).get(sku) or {}
    for term in terms.values():
        for dimension in (term.get("priceDimensions") or {}).values():
            usd = (dimension.get("pricePerUnit") or {}).get("USD")
            if dimension.get("unit") == unit and usd:
                try:
                    yield float(usd)
                except ValueError:
                    pass
                break


def parse_ec2_offer(offer: Dict[str, Any]) -> Tuple[Dict[str, float], Dict[str, float]]:
    instances: Dict[str, float] = {}
    volumes: Dict[str, float] = {}
    for sku, product in offer.get("products", {}).items():
        attrs = product.get("attributes", {})
        family = product.get("productFamily")

        if (
            family == "Compute Instance"
            and attrs.get("instanceType")
            and attrs.get("tenancy") == "Shared"
            and attrs.get("operatingSystem") == "Linux"
            and attrs.get("preInstalledSw") == "NA"
            and attrs.get("licenseModel") == "No License required"
        ):
            for price in on_demand_prices(offer, sku, "Hrs"):
                if price > 0 and not instances.get(attrs["instanceType"]):
                    instances[attrs["instanceType"]] = price

        elif family == "Storage" and attrs.get("volumeApiName"):
            for price in on_demand_prices(offer, sku, "GB-Mo"):
                volumes.setdefault(attrs["volumeApiName"], price)

    return instances, volumes


def parse_rds_offer(offer: Dict[str, Any]) -> Tuple[Dict[str, Dict[str, float]], Dict[str, float]]:
    instances: Dict[str, Dict[str, float]] = {}
    storage: Dict[str, float] = {}
    for sku, product in offer.get("products", {}).items():
        attrs = product.get("attributes", {})
        family = product.get("productFamily")

        if (
            family == "Database Instance"
            and attrs.get("instanceType")
            and attrs.get("databaseEngine")
            and "Multi-AZ" in (attrs.get("deploymentOption") or "")
        ):
            engines = instances.setdefault(attrs["instanceType"], {})
            engine = attrs["databaseEngine"]
            for price in on_demand_prices(offer, sku, "Hrs"):
                if engine not in engines or engines[engine] > price:
                    engines[engine] = price

        elif family == "Database Storage" and attrs.get("volumeType"):
            volume = RDS_STORAGE_TYPES.get(attrs["volumeType"], attrs["volumeType"])
            for price in on_demand_prices(offer, sku, "GB-Mo"):
                storage[volume] = price

    return instances, storage


def parse_opensearch_offer(offer: Dict[str, Any]) -> Tuple[Dict[str, float], Optional[float]]:
    instances: Dict[str, float] = {}
    storage = None
    for sku, product in offer.get("products", {}).items():
        attrs = product.get("attributes", {})
        family = product.get("productFamily")

        if family == "Amazon OpenSearch Service Instance" and attrs.get("instanceType"):
            for price in on_demand_prices(offer, sku, "Hrs"):
                if price > 0 and not instances.get(attrs["instanceType"]):
                    instances[attrs["instanceType"]] = price

        elif family == "Amazon OpenSearch Service Volume" and attrs.get("storageMedia") == "GP3":
            for price in on_demand_prices(offer, sku, "GB-Mo"):
                if storage is None:
                    storage = price

    return instances, storage


def normalize_name(name: str, available: List[str], aliases: Dict[str, List[str]], kind: str) -> str:
    """Resolve a user-facing engine or volume name to a key in ``available``."""
    lower = name.lower()
    for candidate in available:
        if candidate.lower() == lower:
            return candidate

    for alias in aliases.get(lower, []):
        for candidate in available:
            if candidate.lower() == alias.lower():
                return candidate

    for candidate in available:
        if candidate.lower() in lower or lower in candidate.lower():
            return candidate

    raise PricingDataError(f"{kind} '{name}' not found. Available: {', '.join(available)}")


def last_updated(cached: Dict[str, Any]) -> datetime:
    # timestamps without an offset are UTC
    ts = datetime.fromisoformat(cached["lastUpdated"])
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


# ---- Service ----------------------------------------------------------------

class PricingService:
    def __init__(
        self,
        region: str,
        *,
        cache_dir: Optional[Path] = None,
        client: Optional[httpx.Client] = None,
        max_age: timedelta = MAX_AGE,
    ):
        self.region = region
        cache_dir = cache_dir or Path(os.environ.get("PRICING_CACHE_DIR", DEFAULT_CACHE_DIR))
        self.cache_file = Path(cache_dir) / f"aws-pricing-{region}.json"
        self.max_age = max_age
        self._client = client
        self._data: Optional[Dict[str, Any]] = None

    # -- loading --

    def load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data

        cached = self._read_cache()
        if cached is None:
            return self.refresh()

        age = datetime.now(timezone.utc) - last_updated(cached)
        if age > self.max_age:
            logger.info("Pricing data for %s is older than %s days, refreshing", self.region, self.max_age.days)
            return self.refresh()

        logger.info("Using cached pricing data for %s from %s", self.region, cached["lastUpdated"])
        self._data = cached
        return cached

    def refresh(self) -> Dict[str, Any]:
        """Download fresh prices for the region and rewrite the cache."""
        logger.info("Downloading AWS pricing data for %s", self.region)
        data: Dict[str, Any] = {
            "region": self.region,
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "ec2": {},
            "ebs": {},
            "rds": {},
            "rdsStorage": {},
            "openSearch": {},
            "openSearchStorage": None,
            "eks": EKS_HOURLY,
        }

        client = self._client or httpx.Client(timeout=300.0, follow_redirects=True)
        try:
            offer = self._download(client, "AmazonEC2")
            if offer is not None:
                data["ec2"], data["ebs"] = parse_ec2_offer(offer)
                logger.info("EC2 pricing for %s: %d instance types", self.region, len(data["ec2"]))

            offer = self._download(client, "AmazonRDS")
            if offer is not None:
                data["rds"], data["rdsStorage"] = parse_rds_offer(offer)
                logger.info("RDS pricing for %s: %d instance classes", self.region, len(data["rds"]))

            offer = self._download(client, "AmazonES")
            if offer is not None:
                data["openSearch"], data["openSearchStorage"] = parse_opensearch_offer(offer)
                logger.info("OpenSearch pricing for %s: %d instance types", self.region, len(data["openSearch"]))
        finally:
            if self._client is None:
                client.close()

        if not data["ec2"] and not data["rds"]:
            raise PricingDataError(f"Failed to download any pricing data from AWS for {self.region}")

        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        self.cache_file.write_text(json.dumps(data, indent=2))
        self._data = data
        return data

    def _download(self, client: httpx.Client, offer: str) -> Optional[Dict[str, Any]]:
        url = OFFER_URL.format(offer=offer, region=self.region)
        logger.info("Downloading %s", url)
        try:
            response = client.get(url)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to download %s pricing for %s: %s", offer, self.region, e)
            return None

    def _read_cache(self) -> Optional[Dict[str, Any]]:
        if not self.cache_file.exists():
            return None
        try:
            cached = json.loads(self.cache_file.read_text())
            last_updated(cached)
            return cached
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.info("Failed to load cached pricing data (%s), downloading fresh data", e)
            return None

    # -- lookups --

    def ec2(self, instance_type: str) -> float:
        price = self.load()["ec2"].get(instance_type)
        if price is None:
            raise PricingDataError(f"No EC2 pricing data for instance type {instance_type} in {self.region}")
        return price

    def ebs_storage(self, volume_type: str) -> float:
        volumes = self.load()["ebs"]
        if not volumes:
            raise PricingDataError(f"No EBS storage pricing data for {self.region}")
        return volumes[normalize_name(volume_type, list(volumes), STORAGE_ALIASES, "Storage type")]

    def rds(self, instance_class: str, engine: str) -> float:
        engines = self.load()["rds"].get(instance_class)
        if not engines:
            raise PricingDataError(f"No RDS pricing data for instance class {instance_class} in {self.region}")
        return engines[normalize_name(engine, list(engines), ENGINE_ALIASES, "Engine")]

    def rds_storage(self, storage_type: str) -> float:
        storage = self.load()["rdsStorage"]
        if not storage:
            raise PricingDataError(f"No RDS storage pricing data for {self.region}")
        return storage[normalize_name(storage_type, list(storage), STORAGE_ALIASES, "Storage type")]

    def opensearch(self, instance_type: str) -> float:
        price = self.load()["openSearch"].get(instance_type)
        if price is None:
            raise PricingDataError(f"No OpenSearch pricing data for instance type {instance_type} in {self.region}")
        return price

    def opensearch_storage(self) -> float:
        price = self.load().get("openSearchStorage")
        if price is None:
            raise PricingDataError(f"No OpenSearch storage pricing data for {self.region}")
        return price

    def eks(self) -> float:
        return self.load()["eks"]
