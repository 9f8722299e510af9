import os
import unittest
from unittest.mock import patch

from controlplane_mcp.discovery.quota import (
    QuotaService,
    QuotaThresholds,
    QuotaStatus,
    calculate_quota_info,
    format_quota_error,
    format_quota_status,
    format_quota_table,
    get_quota_resource_type,
    get_threshold_level,
    parse_quota_usage,
)
from controlplane_mcp.transport import RemoteCallError

from tests.clock import FakeClock
from tests.fixtures import make_client, ok


def usage_payload(resource_type, current, maximum):
    return {"quota_usage": {resource_type: {"limit": {"maximum": maximum}, "usage": {"current": current}}}}


class TestQuotaCalculations(unittest.TestCase):

    def test_resource_type_mapping(self):
        self.assertEqual(get_quota_resource_type("http-loadbalancer"), "http_loadbalancer")
        self.assertEqual(get_quota_resource_type("waf-policy"), "app_firewall")
        self.assertEqual(get_quota_resource_type("some-new-thing"), "some_new_thing")

    def test_thresholds(self):
        self.assertEqual(get_threshold_level(79), "green")
        self.assertEqual(get_threshold_level(80), "yellow")
        self.assertEqual(get_threshold_level(100), "red")
        self.assertEqual(get_threshold_level(50, QuotaThresholds(yellow=40, red=60)), "yellow")

    def test_quota_info(self):
        info = calculate_quota_info(8, 10)
        self.assertEqual((info.remaining, info.percentage, info.threshold), (2, 80, "yellow"))
        unlimited = calculate_quota_info(5, float("inf"))
        self.assertEqual((unlimited.percentage, unlimited.threshold), (0, "green"))

    def test_thresholds_from_env(self):
        with patch.dict(os.environ, {"CONTROLPLANE_QUOTA_YELLOW_THRESHOLD": "90", "CONTROLPLANE_QUOTA_RED_THRESHOLD": "95"}):
            self.assertEqual(QuotaThresholds.from_env(), QuotaThresholds(yellow=90, red=95))
        with patch.dict(os.environ, {"CONTROLPLANE_QUOTA_YELLOW_THRESHOLD": "99", "CONTROLPLANE_QUOTA_RED_THRESHOLD": "95"}):
            self.assertEqual(QuotaThresholds.from_env(), QuotaThresholds())

    def test_parse_usage_sections(self):
        payload = {
            "quota_usage": {"origin_pool": {"limit": {"maximum": 10}, "usage": {"current": 3}}},
            "objects": {"healthcheck": {"usage": {"current": 1}}},
            "usage": [{"resource_type": "dns_zone", "current": 2, "limit": 5}],
        }
        usage = {u.resource_type: u for u in parse_quota_usage(payload)}
        self.assertEqual((usage["origin_pool"].current, usage["origin_pool"].limit), (3, 10))
        self.assertEqual(usage["healthcheck"].limit, float("inf"))
        self.assertEqual(usage["dns_zone"].limit, 5)


class TestQuotaService(unittest.IsolatedAsyncioTestCase):

    async def test_red_quota_blocks(self):
        service = QuotaService()
        client = make_client(get=ok(usage_payload("origin_pool", 10, 10)))
        check = await service.check_quota_availability("default", "origin-pool", client)
        self.assertFalse(check.allowed)
        self.assertEqual(check.quota_info.threshold, "red")
        self.assertEqual(
            format_quota_error(check),
            "Resource quota limit reached: 10/10 used (100%). Cannot create additional origin-pool resources.",
        )
        client.get.assert_awaited_once_with("/web/namespaces/default/quota/usage")

    async def test_status_is_cached_per_namespace_and_resource(self):
        clock = FakeClock()
        service = QuotaService(cache_ttl=300, clock=clock)
        client = make_client(get=ok(usage_payload("origin_pool", 1, 10)))

        await service.get_quota_status("default", "origin-pool", client)
        await service.get_quota_status("default", "origin-pool", client)
        self.assertEqual(client.get.await_count, 1)

        await service.get_quota_status("other", "origin-pool", client)
        self.assertEqual(client.get.await_count, 2)

        clock.advance(301)
        await service.get_quota_status("default", "origin-pool", client)
        self.assertEqual(client.get.await_count, 3)

        service.clear_namespace_cache("default")
        await service.get_quota_status("default", "origin-pool", client)
        self.assertEqual(client.get.await_count, 4)

    async def test_lookup_failure_fails_open(self):
        service = QuotaService()
        for client in (make_client(get=ok({"message": "denied"}, status=403)),
                       make_client(get=[RemoteCallError("unreachable")])):
            check = await service.check_quota_availability("default", "origin-pool", client)
            self.assertTrue(check.allowed)
            self.assertEqual(check.reason, "Quota check failed - proceeding without quota validation")
            self.assertEqual(check.quota_info.limit, float("inf"))

    async def test_missing_resource_type_is_unlimited(self):
        service = QuotaService()
        client = make_client(get=ok(usage_payload("dns_zone", 5, 5)))
        check = await service.check_quota_availability("default", "origin-pool", client)
        self.assertTrue(check.allowed)
        self.assertEqual(check.quota_info.threshold, "green")
        self.assertIsNone(check.reason)

    async def test_all_namespace_quotas(self):
        client = make_client(get=ok({
            "quota_usage": {
                "origin_pool": {"limit": {"maximum": 10}, "usage": {"current": 9}},
                "healthcheck": {"limit": {"maximum": 10}, "usage": {"current": 1}},
            }
        }))
        statuses = await QuotaService().get_all_namespace_quotas("default", client)
        levels = {s.resource_type: s.limits.threshold for s in statuses}
        self.assertEqual(levels, {"origin_pool": "yellow", "healthcheck": "green"})


class TestQuotaFormatting(unittest.TestCase):

    def test_status_text(self):
        red = format_quota_status(QuotaStatus("origin-pool", "default", calculate_quota_info(10, 10)))
        self.assertIn("Current Usage: 10/10 (100%)", red)
        self.assertIn("Action Required:", red)
        yellow = format_quota_status(QuotaStatus("origin-pool", "default", calculate_quota_info(8, 10)))
        self.assertIn("Recommendation:", yellow)
        self.assertNotIn("Action Required:", yellow)

    def test_status_dict_reports_unlimited_amounts(self):
        limited = QuotaStatus("origin-pool", "default", calculate_quota_info(8, 10)).to_dict()
        self.assertEqual(limited, {
            "resource_type": "origin-pool",
            "namespace": "default",
            "limit": 10,
            "current": 8,
            "remaining": 2,
            "percentage": 80,
            "threshold": "yellow",
        })
        unlimited = QuotaStatus("healthcheck", "default", calculate_quota_info(3, float("inf"))).to_dict()
        self.assertEqual((unlimited["limit"], unlimited["remaining"], unlimited["current"]), ("unlimited", "unlimited", 3))

    def test_namespace_table(self):
        self.assertEqual(format_quota_table([]), "No quota information available.")
        table = format_quota_table([
            QuotaStatus("origin_pool", "default", calculate_quota_info(9, 10)),
            QuotaStatus("healthcheck", "default", calculate_quota_info(1, float("inf"))),
        ])
        lines = table.split("\n")
        self.assertEqual(len(lines), 4)
        self.assertEqual(lines[0], "Resource    | Limit     | Current | Remaining | Usage | Status")
        self.assertEqual(set(lines[1]), {"-"})
        self.assertEqual(lines[2], "origin_pool |        10 |       9 |         1 |   90% | ⚠️")
        self.assertIn("unlimited", lines[3])
        self.assertTrue(lines[3].endswith("✅"))


if __name__ == '__main__':
    unittest.main()
