import unittest

from controlplane_mcp.discovery.catalogue import Catalogue
from controlplane_mcp.discovery.dependencies import DependencyGraph
from controlplane_mcp.discovery.models import ResolveParams
from controlplane_mcp.discovery.resolver import (
    calculate_complexity,
    format_creation_plan,
    generate_compact_plan,
    resolve_dependencies,
)

from tests.fixtures import make_catalogue, make_graph


class TestResolveDependencies(unittest.TestCase):

    def setUp(self):
        self.catalogue = make_catalogue()
        self.graph = make_graph()

    def resolve(self, **kwargs):
        params = ResolveParams(resource=kwargs.pop("resource", "http-loadbalancer"), domain=kwargs.pop("domain", "virtual"), **kwargs)
        return resolve_dependencies(params, self.graph, self.catalogue)

    def test_plan_orders_prerequisites_first(self):
        result = self.resolve()
        self.assertTrue(result.success)
        plan = result.plan
        self.assertEqual([s.key for s in plan.steps], ["virtual/origin-pool", "virtual/http-loadbalancer"])
        self.assertEqual([s.step_number for s in plan.steps], [1, 2])
        self.assertEqual(plan.steps[0].tool_name, "virtual-create-origin-pool")
        self.assertEqual(plan.steps[1].depends_on, ["virtual/origin-pool"])
        self.assertEqual(plan.complexity, "low")
        self.assertEqual(plan.warnings, [])

    def test_required_inputs(self):
        plan = self.resolve().plan
        self.assertEqual(plan.steps[0].required_inputs, ["metadata.name", "metadata.namespace"])
        self.assertEqual(plan.steps[1].required_inputs, ["metadata.name", "spec.domains"])

    def test_one_of_choices_merge_graph_and_catalogue(self):
        plan = self.resolve().plan
        self.assertEqual([c.field for c in plan.steps[0].one_of_choices], ["port_choice"])
        self.assertEqual([c.field for c in plan.steps[1].one_of_choices], ["loadbalancer_type"])
        self.assertEqual(plan.steps[1].one_of_choices[0].recommended, "spec.https")

    def test_every_dependency_precedes_its_dependent(self):
        plan = self.resolve(include_optional=True).plan
        position = {step.key: i for i, step in enumerate(plan.steps)}
        for step in plan.steps:
            for dependency in step.depends_on:
                self.assertLess(position[dependency], position[step.key])

    def test_optional_resources(self):
        plan = self.resolve(include_optional=True).plan
        self.assertEqual(
            [s.key for s in plan.steps],
            ["virtual/healthcheck", "virtual/origin-pool", "waf/app-firewall", "virtual/http-loadbalancer"],
        )
        optional = {s.key: s.optional for s in plan.steps}
        self.assertTrue(optional["virtual/healthcheck"])
        self.assertTrue(optional["waf/app-firewall"])
        self.assertFalse(optional["virtual/origin-pool"])
        self.assertFalse(optional["virtual/http-loadbalancer"])
        self.assertIn("No create tool found for waf/app-firewall", plan.warnings)
        self.assertIn("Advanced add-on services (Advanced) - required", plan.subscriptions)
        self.assertEqual(plan.complexity, "medium")

    def test_existing_resources_are_pruned(self):
        for existing in (["origin-pool"], ["virtual/origin-pool"]):
            plan = self.resolve(existing_resources=existing).plan
            self.assertEqual([s.key for s in plan.steps], ["virtual/http-loadbalancer"])
            self.assertEqual(plan.existing_resources, ["virtual/origin-pool"])
            self.assertEqual(plan.steps[0].depends_on, [])
            self.assertEqual(plan.steps[0].step_number, 1)

    def test_unknown_resource_fails(self):
        result = self.resolve(resource="nonexistent")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Resource 'virtual/nonexistent' not found in dependency graph or catalogue")

    def test_catalogue_only_resource_plans_single_step(self):
        result = resolve_dependencies(
            ResolveParams(resource="dns-zone", domain="dns"), DependencyGraph.from_records([]), self.catalogue
        )
        self.assertTrue(result.success)
        self.assertEqual([s.tool_name for s in result.plan.steps], ["dns-create-dns-zone"])

    def test_cycle_becomes_warning(self):
        graph = DependencyGraph.from_records([
            {"domain": "d", "resource": "a", "requires": [{"domain": "d", "resource": "b"}]},
            {"domain": "d", "resource": "b", "requires": [{"domain": "d", "resource": "a"}]},
        ])
        result = resolve_dependencies(ResolveParams(resource="a", domain="d"), graph, Catalogue([]))
        self.assertTrue(result.success)
        self.assertEqual([s.key for s in result.plan.steps], ["d/b", "d/a"])
        self.assertTrue(any("cycle" in w for w in result.plan.warnings))

    def test_max_depth_warning(self):
        plan = self.resolve(max_depth=0).plan
        self.assertEqual([s.key for s in plan.steps], ["virtual/http-loadbalancer"])
        self.assertTrue(any(w.startswith("Maximum depth 0") for w in plan.warnings))

    def test_expand_alternatives(self):
        plan = self.resolve(expand_alternatives=True).plan
        chosen = {(a.resource, a.chosen) for a in plan.alternatives}
        self.assertEqual(
            chosen,
            {("virtual/origin-pool", "spec.automatic_port"), ("virtual/http-loadbalancer", "spec.http")},
        )
        self.assertEqual(plan.steps[1].alternatives, ["spec.http"])


class TestPlanRendering(unittest.TestCase):

    def setUp(self):
        self.catalogue = make_catalogue()
        self.graph = make_graph()

    def test_complexity(self):
        self.assertEqual(calculate_complexity(1, 0), "low")
        self.assertEqual(calculate_complexity(3, 0), "medium")
        self.assertEqual(calculate_complexity(6, 0), "high")
        self.assertEqual(calculate_complexity(2, 4), "high")

    def test_markdown(self):
        params = ResolveParams(resource="http-loadbalancer", domain="virtual", existing_resources=["healthcheck"], include_optional=True)
        text = format_creation_plan(resolve_dependencies(params, self.graph, self.catalogue).plan)
        self.assertIn("# Creation Plan for virtual/http-loadbalancer", text)
        self.assertIn("## Required Subscriptions", text)
        self.assertIn("## Existing Resources (Skipped)\n- virtual/healthcheck", text)
        self.assertIn("### Step 1: create virtual/origin-pool", text)
        self.assertIn("**Tool**: `virtual-create-http-loadbalancer`", text)
        self.assertIn("**Depends On**: virtual/origin-pool, waf/app-firewall", text)
        self.assertIn("- `loadbalancer_type`: spec.http, spec.https (recommended: spec.https)", text)
        self.assertIn("## Warnings", text)

    def test_compact_plan(self):
        plan = generate_compact_plan(ResolveParams(resource="http-loadbalancer", domain="virtual"), self.graph, self.catalogue)
        self.assertTrue(plan["success"])
        self.assertEqual(
            plan["steps"][0],
            {
                "tool": "virtual-create-origin-pool",
                "resource": "virtual/origin-pool",
                "inputs": ["metadata.name", "metadata.namespace"],
                "choices": {"port_choice": ["spec.port", "spec.automatic_port"]},
            },
        )
        self.assertNotIn("warnings", plan)
        self.assertFalse(generate_compact_plan(ResolveParams(resource="x", domain="y"), self.graph, self.catalogue)["success"])


if __name__ == '__main__':
    unittest.main()
