import json
import os
import tempfile
import unittest
from unittest.mock import patch

from mcp import types as mcp_types

from controlplane_mcp.discovery.catalogue import CatalogueError
from controlplane_mcp.discovery.core import (
    DEFAULT_CATALOGUE_PATH,
    DiscoveryMCPServer,
    build_discovery_server,
    format_tool_result,
)
from controlplane_mcp.discovery.engine import DiscoveryEngine
from controlplane_mcp.discovery.meta_tools import MetaToolManager
from controlplane_mcp.discovery.models import ExecuteParams, ResolveParams
from controlplane_mcp.transport import Credentials

from tests.fixtures import CATALOGUE_DOCUMENT, make_catalogue, make_client, ok

META_TOOLS = {
    "search_tools",
    "describe_tool",
    "suggest_parameters",
    "validate_tool",
    "resolve_dependencies",
    "get_dependencies",
    "execute_tool",
    "estimate_cost",
    "get_quota_status",
    "clear_quota_cache",
    "server_info",
}

CREDENTIALS = Credentials(api_url="https://tenant.example.com", api_token="secret")


def make_engine(client=None, credentials=None):
    return DiscoveryEngine(
        make_catalogue(),
        credentials=credentials,
        client_factory=(lambda creds: client) if client is not None else None,
    )


class TestMetaTools(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.manager = MetaToolManager(make_engine())

    async def call(self, name, **kwargs):
        return await self.manager.tools[name].func(**kwargs)

    def test_registered_tools(self):
        self.assertEqual(set(self.manager.get_tools()), META_TOOLS)

    async def test_search(self):
        result = await self.call("search_tools", query="create http loadbalancer", limit=3)
        self.assertTrue(result["success"])
        self.assertTrue(result["message"].startswith("Found 3 tools"))
        self.assertEqual(result["data"][0]["tool"]["name"], "virtual-create-http-loadbalancer")

    async def test_search_with_dependencies(self):
        result = await self.call("search_tools", query="create origin pool", include_dependencies=True)
        top = result["data"][0]
        self.assertEqual(top["tool"]["name"], "virtual-create-origin-pool")
        self.assertEqual(top["prerequisites"]["resources"], [])

    async def test_describe(self):
        result = await self.call("describe_tool", tool_name="virtual-create-http-loadbalancer")
        self.assertTrue(result["success"])
        self.assertEqual(result["data"]["prerequisites"], ["virtual/origin-pool"])
        self.assertFalse((await self.call("describe_tool", tool_name="nope"))["success"])

    async def test_suggest_parameters(self):
        result = await self.call("suggest_parameters", tool_name="virtual-create-origin-pool")
        self.assertTrue(result["success"])
        self.assertEqual(result["data"]["source"], "curated")
        self.assertEqual(result["data"]["example_payload"]["spec"]["port"], 80)
        self.assertIn("port_choice", result["message"])

        no_body = await self.call("suggest_parameters", tool_name="dns-list-dns-zone")
        self.assertFalse(no_body["success"])
        self.assertEqual(no_body["message"], "No example parameters available for 'dns-list-dns-zone'")
        unknown = await self.call("suggest_parameters", tool_name="nope")
        self.assertIn("Use search_tools", unknown["message"])

    async def test_validate_uses_graph_groups(self):
        result = await self.call(
            "validate_tool",
            tool_name="virtual-create-origin-pool",
            path_params={"metadata.namespace": "default"},
            body={"metadata": {"name": "pool"}, "spec": {"port": 80, "automatic_port": {}}},
        )
        self.assertTrue(result["success"])
        self.assertIn("port_choice", result["message"])

    async def test_resolve(self):
        result = await self.call("resolve_dependencies", resource="http-loadbalancer", domain="virtual")
        self.assertTrue(result["success"])
        self.assertIn("# Creation Plan for virtual/http-loadbalancer", result["message"])
        self.assertEqual(result["data"]["plan"]["total_steps"], 2)

        compact = await self.call("resolve_dependencies", resource="http-loadbalancer", domain="virtual", compact=True)
        self.assertEqual(compact["message"], "2 steps")
        self.assertEqual(compact["data"]["steps"][1]["tool"], "virtual-create-http-loadbalancer")

        missing = await self.call("resolve_dependencies", resource="nope", domain="virtual")
        self.assertFalse(missing["success"])
        self.assertIn("not found", missing["message"])

    async def test_get_dependencies(self):
        result = await self.call("get_dependencies", resource="origin-pool", domain="virtual", action="dependents")
        self.assertEqual(result["data"]["dependents"], ["virtual/http-loadbalancer"])
        bad = await self.call("get_dependencies", resource="origin-pool", domain="virtual", action="everything")
        self.assertFalse(bad["success"])

    async def test_execute_in_documentation_mode(self):
        result = await self.call(
            "execute_tool",
            tool_name="dns-list-dns-zone",
        )
        self.assertTrue(result["success"])
        self.assertIn("curl -X GET", result["message"])
        self.assertEqual(result["data"]["kind"], "documentation")

    async def test_estimate_cost_variants(self):
        single = await self.call("estimate_cost", tool_name="dns-list-dns-zone")
        self.assertIn("# Cost Estimate: dns-list-dns-zone", single["message"])
        several = await self.call("estimate_cost", tool_names=["dns-list-dns-zone", "dns-create-dns-zone"])
        self.assertEqual(len(several["data"]), 2)
        workflow = await self.call("estimate_cost", resource="http-loadbalancer", domain="virtual")
        self.assertEqual(workflow["data"]["step_count"], 2)
        self.assertFalse((await self.call("estimate_cost"))["success"])

    async def test_quota_status_requires_credentials(self):
        result = await self.call("get_quota_status", namespace="default", resource_type="origin-pool")
        self.assertFalse(result["success"])
        self.assertIn("CONTROLPLANE_API_TOKEN", result["message"])

    async def test_clear_quota_cache(self):
        one = await self.call("clear_quota_cache", namespace="default")
        self.assertEqual(one["message"], "Cleared quota cache for namespace: default")
        every = await self.call("clear_quota_cache")
        self.assertEqual(every["message"], "Cleared quota cache for all namespaces")

    async def test_server_info(self):
        result = await self.call("server_info")
        self.assertEqual(result["message"], "10 tools across 2 domains, documentation mode")
        self.assertEqual(result["data"]["authentication_mode"], "none")
        self.assertEqual(result["data"]["domains"], {"dns": 2, "virtual": 8})


class TestEngine(unittest.IsolatedAsyncioTestCase):

    async def test_execute_with_credentials(self):
        client = make_client(get=ok({"items": [{"name": "example.com"}]}))
        credentials = Credentials(api_url="https://tenant.example.com", api_token="secret")
        manager = MetaToolManager(make_engine(client, credentials))
        result = await manager.tools["execute_tool"].func(tool_name="dns-list-dns-zone")
        self.assertTrue(result["success"])
        self.assertEqual(result["message"], "Successfully called dns-list-dns-zone (200)")
        self.assertEqual(result["data"]["data"], {"items": [{"name": "example.com"}]})

        info = manager.engine.server_info()
        self.assertTrue(info["execution_enabled"])
        self.assertEqual(info["cache"]["size"], 1)

    async def test_quota_status_for_one_resource(self):
        client = make_client(get=ok({"quota_usage": {"origin_pool": {"limit": {"maximum": 10}, "usage": {"current": 9}}}}))
        manager = MetaToolManager(make_engine(client, CREDENTIALS))
        result = await manager.tools["get_quota_status"].func(namespace="default", resource_type="origin-pool")
        self.assertTrue(result["success"])
        self.assertTrue(result["message"].startswith("Quota Status for origin-pool"))
        self.assertEqual((result["data"]["percentage"], result["data"]["threshold"]), (90, "yellow"))

        await manager.tools["get_quota_status"].func(namespace="default", resource_type="origin-pool")
        self.assertEqual(client.get.await_count, 1)
        await manager.tools["clear_quota_cache"].func(namespace="default")
        await manager.tools["get_quota_status"].func(namespace="default", resource_type="origin-pool")
        self.assertEqual(client.get.await_count, 2)

    async def test_quota_table_for_namespace(self):
        client = make_client(get=ok({
            "quota_usage": {
                "origin_pool": {"limit": {"maximum": 10}, "usage": {"current": 9}},
                "healthcheck": {"usage": {"current": 1}},
            }
        }))
        manager = MetaToolManager(make_engine(client, CREDENTIALS))
        everything = await manager.tools["get_quota_status"].func(namespace="default")
        self.assertTrue(everything["message"].startswith("Quota Status for Namespace: default\n\nResource"))
        self.assertEqual({s["resource_type"] for s in everything["data"]}, {"origin_pool", "healthcheck"})

        limited = await manager.tools["get_quota_status"].func(namespace="default", only_limited=True)
        self.assertEqual([s["resource_type"] for s in limited["data"]], ["origin_pool"])

    async def test_quota_lookup_error_is_reported(self):
        client = make_client(get=ok({"message": "denied"}, status=403))
        manager = MetaToolManager(make_engine(client, CREDENTIALS))
        with self.assertLogs(level="ERROR"):
            result = await manager.tools["get_quota_status"].func(namespace="default")
        self.assertFalse(result["success"])
        self.assertEqual(result["message"], "Error fetching quota status: Quota usage lookup returned 403")

    async def test_clear_resets_shared_state(self):
        client = make_client(get=ok({"items": []}))
        engine = make_engine(client, Credentials(api_url="https://tenant.example.com", api_token="secret"))
        await engine.execute(ExecuteParams(tool_name="dns-list-dns-zone"))
        first_index = engine.index
        engine.clear()

        self.assertEqual(engine.cache.get_stats().size, 0)
        self.assertIsNot(engine.index, first_index)
        self.assertEqual(engine.index.generation, 2)

    def test_plain_search_does_not_build_dependency_graph(self):
        engine = make_engine()
        service = engine.dependency_graph_service
        with patch.object(service, "get", wraps=service.get) as get_graph:
            self.assertTrue(engine.search("origin pool"))
            get_graph.assert_not_called()
            engine.search("create origin pool", include_dependencies=True)
            get_graph.assert_called_once()

    def test_from_env(self):
        env = {"CONTROLPLANE_API_URL": "https://tenant.example.com", "CONTROLPLANE_API_TOKEN": "secret",
               "CONTROLPLANE_QUOTA_CHECK_ENABLED": "false", "CONTROLPLANE_CACHE_MAX_SIZE": "7"}
        with patch.dict(os.environ, env, clear=True):
            engine = DiscoveryEngine.from_env(make_catalogue())
        self.assertTrue(engine.credentials.configured)
        self.assertFalse(engine.dispatcher.quota_check_enabled)
        self.assertEqual(engine.cache.config.max_size, 7)


class TestServer(unittest.TestCase):

    def test_format_tool_result(self):
        self.assertEqual(format_tool_result({"success": False, "message": "nope"}), "nope")
        text = format_tool_result({"success": True, "message": "done", "data": {"a": 1}})
        self.assertEqual(text, 'done\n\nResponse Data:\n{\n  "a": 1\n}')
        self.assertEqual(format_tool_result({"success": True}), "Success")
        self.assertEqual(format_tool_result("plain"), "plain")

    def test_server_wraps_manager(self):
        manager = MetaToolManager(make_engine())
        server = DiscoveryMCPServer(manager)
        self.assertEqual(server.get_server().name, "controlplane-mcp")
        self.assertIs(server.tool_manager, manager)

    def test_server_registers_list_and_call_handlers(self):
        server = DiscoveryMCPServer(MetaToolManager(make_engine())).get_server()
        self.assertIn(mcp_types.ListToolsRequest, server.request_handlers)
        self.assertIn(mcp_types.CallToolRequest, server.request_handlers)

    def test_build_from_bundled_catalogue(self):
        with patch.dict(os.environ, {}, clear=True):
            server = build_discovery_server(DEFAULT_CATALOGUE_PATH)
        engine = server.tool_manager.engine
        self.assertGreater(len(engine.catalogue), 0)
        self.assertFalse(engine.credentials.configured)
        plan = engine.resolve(ResolveParams(resource="http-loadbalancer", domain="virtual")).plan
        self.assertEqual([s.key for s in plan.steps], ["virtual/origin-pool", "virtual/http-loadbalancer"])

    def test_missing_catalogue_is_fatal(self):
        with self.assertRaises(CatalogueError):
            build_discovery_server("/nonexistent/catalogue.json")

    def test_malformed_dependency_record_is_fatal(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "catalogue.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(dict(CATALOGUE_DOCUMENT, dependencies=[{"domain": "virtual"}]), f)
            with self.assertRaises(CatalogueError):
                build_discovery_server(path)


if __name__ == '__main__':
    unittest.main()
