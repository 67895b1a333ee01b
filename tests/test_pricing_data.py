"""AWS Bulk Pricing download, parsing and cache handling."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from reporting.pricing_data import (
    PricingDataError,
    PricingService,
    normalize_name,
    ENGINE_ALIASES,
    STORAGE_ALIASES,
    parse_ec2_offer,
    parse_opensearch_offer,
    parse_rds_offer,
)


def _term(sku, unit, usd):
    return {sku: {f"{sku}.term": {"priceDimensions": {f"{sku}.dim": {"unit": unit, "pricePerUnit": {"USD": usd}}}}}}


def _offer(products):
    offer = {"products": {}, "terms": {"OnDemand": {}}}
    for sku, family, attributes, unit, usd in products:
        offer["products"][sku] = {"productFamily": family, "attributes": attributes}
        offer["terms"]["OnDemand"].update(_term(sku, unit, usd))
    return offer


LINUX = {"tenancy": "Shared", "operatingSystem": "Linux", "preInstalledSw": "NA", "licenseModel": "No License required"}

EC2_OFFER = _offer([
    ("ec2-1", "Compute Instance", {"instanceType": "c5.xlarge", **LINUX}, "Hrs", "0.1700000000"),
    ("ec2-2", "Compute Instance", {"instanceType": "c5.xlarge", **LINUX}, "Hrs", "0.2500000000"),
    ("ec2-3", "Compute Instance", {"instanceType": "m5.large", **LINUX, "operatingSystem": "Windows"}, "Hrs", "0.18"),
    ("ec2-4", "Compute Instance", {"instanceType": "m5.large", **LINUX}, "Hrs", "0.0000000000"),
    ("ec2-5", "Compute Instance", {"instanceType": "m5.large", **LINUX}, "Hrs", "0.0960000000"),
    ("ebs-1", "Storage", {"volumeApiName": "gp3"}, "GB-Mo", "0.0800000000"),
    ("ebs-2", "Storage", {"volumeApiName": "gp2"}, "GB-Mo", "0.1000000000"),
])

RDS_OFFER = _offer([
    ("rds-1", "Database Instance", {"instanceType": "db.t3.medium", "databaseEngine": "PostgreSQL", "deploymentOption": "Multi-AZ"}, "Hrs", "0.1460000000"),
    ("rds-2", "Database Instance", {"instanceType": "db.t3.medium", "databaseEngine": "PostgreSQL", "deploymentOption": "Multi-AZ (readable standbys)"}, "Hrs", "0.1300000000"),
    ("rds-3", "Database Instance", {"instanceType": "db.t3.medium", "databaseEngine": "PostgreSQL", "deploymentOption": "Single-AZ"}, "Hrs", "0.0730000000"),
    ("rds-4", "Database Instance", {"instanceType": "db.t3.medium", "databaseEngine": "MySQL", "deploymentOption": "Multi-AZ"}, "Hrs", "0.1360000000"),
    ("rds-5", "Database Instance", {"instanceType": "db.t3.medium", "databaseEngine": "Aurora PostgreSQL", "deploymentOption": "Multi-AZ"}, "Hrs", "0.1640000000"),
    ("rds-6", "Database Storage", {"volumeType": "General Purpose-GP3"}, "GB-Mo", "0.2300000000"),
    ("rds-7", "Database Storage", {"volumeType": "Magnetic"}, "GB-Mo", "0.2000000000"),
])

ES_OFFER = _offer([
    ("es-1", "Amazon OpenSearch Service Instance", {"instanceType": "m5.large.search"}, "Hrs", "0.1420000000"),
    ("es-2", "Amazon OpenSearch Service Volume", {"storageMedia": "GP2"}, "GB-Mo", "0.1350000000"),
    ("es-3", "Amazon OpenSearch Service Volume", {"storageMedia": "GP3"}, "GB-Mo", "0.1220000000"),
])

OFFERS = {"AmazonEC2": EC2_OFFER, "AmazonRDS": RDS_OFFER, "AmazonES": ES_OFFER}


def _client(offers=OFFERS, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        offer = request.url.path.split("/")[4]
        if calls is not None:
            calls.append(offer)
        if offer not in offers:
            return httpx.Response(404)
        return httpx.Response(200, json=offers[offer])

    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def service(tmp_path):
    return PricingService("us-west-2", cache_dir=tmp_path, client=_client())


class TestParsing:
    def test_ec2_first_positive_price_wins(self):
        instances, volumes = parse_ec2_offer(EC2_OFFER)
        assert instances == {"c5.xlarge": 0.17, "m5.large": 0.096}
        assert volumes == {"gp3": 0.08, "gp2": 0.1}

    def test_rds_multi_az_lowest_price(self):
        instances, storage = parse_rds_offer(RDS_OFFER)
        assert instances["db.t3.medium"] == {"PostgreSQL": 0.13, "MySQL": 0.136, "Aurora PostgreSQL": 0.164}
        assert storage == {"gp3": 0.23, "standard": 0.2}

    def test_opensearch_gp3_storage(self):
        instances, storage = parse_opensearch_offer(ES_OFFER)
        assert instances == {"m5.large.search": 0.142}
        assert storage == 0.122


class TestNormalize:
    def test_case_insensitive(self):
        assert normalize_name("postgresql", ["PostgreSQL", "MySQL"], ENGINE_ALIASES, "Engine") == "PostgreSQL"

    def test_alias(self):
        assert normalize_name("postgres", ["MySQL", "PostgreSQL"], ENGINE_ALIASES, "Engine") == "PostgreSQL"
        assert normalize_name("aurora-mysql", ["MySQL", "Aurora MySQL"], ENGINE_ALIASES, "Engine") == "Aurora MySQL"
        assert normalize_name("magnetic", ["gp3", "standard"], STORAGE_ALIASES, "Storage type") == "standard"

    def test_substring(self):
        assert normalize_name("maria", ["MariaDB"], ENGINE_ALIASES, "Engine") == "MariaDB"

    def test_not_found_lists_available(self):
        with pytest.raises(PricingDataError, match="Available: PostgreSQL, MySQL"):
            normalize_name("oracle", ["PostgreSQL", "MySQL"], ENGINE_ALIASES, "Engine")


class TestLookups:
    def test_prices(self, service):
        assert service.ec2("c5.xlarge") == 0.17
        assert service.ebs_storage("gp3") == 0.08
        assert service.rds("db.t3.medium", "postgres") == 0.13
        assert service.rds("db.t3.medium", "aurora-postgresql") == 0.164
        assert service.rds_storage("gp3") == 0.23
        assert service.opensearch("m5.large.search") == 0.142
        assert service.opensearch_storage() == 0.122
        assert service.eks() == 0.10

    def test_unknown_instance_type(self, service):
        with pytest.raises(PricingDataError, match="x1.32xlarge"):
            service.ec2("x1.32xlarge")
        with pytest.raises(PricingDataError):
            service.rds("db.r5.24xlarge", "postgres")
        with pytest.raises(PricingDataError):
            service.opensearch("r6gd.large.search")

    def test_pricing_error_is_lookup_error(self, service):
        with pytest.raises(LookupError):
            service.ec2("nope.large")


class TestDownload:
    def test_failed_offer_is_skipped(self, tmp_path):
        offers = {"AmazonEC2": EC2_OFFER, "AmazonRDS": RDS_OFFER}
        service = PricingService("us-west-2", cache_dir=tmp_path, client=_client(offers))
        assert service.ec2("c5.xlarge") == 0.17
        with pytest.raises(PricingDataError):
            service.opensearch_storage()

    def test_nothing_downloaded(self, tmp_path):
        service = PricingService("us-west-2", cache_dir=tmp_path, client=_client({}))
        with pytest.raises(PricingDataError, match="Failed to download any pricing data"):
            service.load()
        assert not (tmp_path / "aws-pricing-us-west-2.json").exists()

    def test_downloads_only_the_region(self, tmp_path):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, json=OFFERS[request.url.path.split("/")[4]])

        client = httpx.Client(transport=httpx.MockTransport(handler))
        PricingService("eu-west-1", cache_dir=tmp_path, client=client).load()
        assert len(requested) == 3
        assert all("/current/eu-west-1/index.json" in url for url in requested)


class TestCache:
    def test_writes_and_reuses_cache(self, tmp_path):
        calls = []
        PricingService("us-west-2", cache_dir=tmp_path, client=_client(calls=calls)).load()
        assert len(calls) == 3

        cached = json.loads((tmp_path / "aws-pricing-us-west-2.json").read_text())
        assert cached["region"] == "us-west-2"
        assert cached["eks"] == 0.10

        again = PricingService("us-west-2", cache_dir=tmp_path, client=_client(calls=calls))
        assert again.ec2("c5.xlarge") == 0.17
        assert len(calls) == 3

    def test_stale_cache_is_refreshed(self, tmp_path):
        stale = {
            "lastUpdated": (datetime.now(timezone.utc) - timedelta(days=8)).isoformat(),
            "ec2": {"c5.xlarge": 9.99},
        }
        (tmp_path / "aws-pricing-us-west-2.json").write_text(json.dumps(stale))
        calls = []
        service = PricingService("us-west-2", cache_dir=tmp_path, client=_client(calls=calls))
        assert service.ec2("c5.xlarge") == 0.17
        assert len(calls) == 3

    def test_fresh_cache_is_used(self, tmp_path):
        fresh = {
            "lastUpdated": (datetime.now(timezone.utc) - timedelta(days=2)).isoformat(),
            "ec2": {"c5.xlarge": 9.99},
        }
        (tmp_path / "aws-pricing-us-west-2.json").write_text(json.dumps(fresh))
        service = PricingService("us-west-2", cache_dir=tmp_path, client=_client({}))
        assert service.ec2("c5.xlarge") == 9.99

    def test_unreadable_cache_is_replaced(self, tmp_path):
        (tmp_path / "aws-pricing-us-west-2.json").write_text("{not json")
        service = PricingService("us-west-2", cache_dir=tmp_path, client=_client())
        assert service.ec2("c5.xlarge") == 0.17

    def test_refresh_forces_download(self, tmp_path):
        calls = []
        service = PricingService("us-west-2", cache_dir=tmp_path, client=_client(calls=calls))
        service.load()
        service.refresh()
        assert len(calls) == 6

    def test_stale_cache_without_offset_is_refreshed(self, tmp_path):
        stale = {"lastUpdated": "2025-01-01T00:00:00", "ec2": {"c5.xlarge": 9.99}}
        (tmp_path / "aws-pricing-us-west-2.json").write_text(json.dumps(stale))
        calls = []
        service = PricingService("us-west-2", cache_dir=tmp_path, client=_client(calls=calls))
        assert service.ec2("c5.xlarge") == 0.17
        assert len(calls) == 3

    def test_fresh_cache_without_offset_is_used(self, tmp_path):
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        fresh = {"lastUpdated": (now - timedelta(hours=1)).isoformat(), "ec2": {"c5.xlarge": 9.99}}
        (tmp_path / "aws-pricing-us-west-2.json").write_text(json.dumps(fresh))
        service = PricingService("us-west-2", cache_dir=tmp_path, client=_client({}))
        assert service.ec2("c5.xlarge") == 9.99
