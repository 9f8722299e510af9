"""Small catalogue and dependency data shared by the test modules."""

from unittest.mock import AsyncMock, MagicMock

from controlplane_mcp.discovery.catalogue import catalogue_from_document
from controlplane_mcp.discovery.dependencies import DependencyGraph
from controlplane_mcp.transport import APIResponse

LB_PATH = "/api/config/namespaces/{metadata.namespace}/http_loadbalancers"

CATALOGUE_DOCUMENT = {
    "tools": [
        {
            "name": "virtual-create-http-loadbalancer",
            "domain": "virtual",
            "resource": "http-loadbalancer",
            "operation": "create",
            "method": "POST",
            "path": LB_PATH,
            "summary": "Create HTTP Load Balancer",
            "path_parameters": [{"name": "metadata.namespace"}],
            "request_body_ref": "#/components/schemas/http_loadbalancerCreateRequest",
            "danger_level": "medium",
            "required_fields": ["metadata.name", "spec.domains"],
            "one_of_groups": [
                {
                    "choice_field": "loadbalancer_type",
                    "options": ["spec.http", "spec.https"],
                    "recommended_option": "spec.https",
                }
            ],
        },
        {
            "name": "virtual-get-http-loadbalancer",
            "domain": "virtual",
            "resource": "http-loadbalancer",
            "operation": "get",
            "method": "GET",
            "path": LB_PATH + "/{name}",
            "summary": "Get HTTP Load Balancer",
            "path_parameters": [{"name": "metadata.namespace"}, {"name": "name"}],
            "query_parameters": [{"name": "response_format", "required": False}],
            "danger_level": "low",
        },
        {
            "name": "virtual-list-http-loadbalancer",
            "domain": "virtual",
            "resource": "http-loadbalancer",
            "operation": "list",
            "method": "GET",
            "path": LB_PATH,
            "summary": "List HTTP Load Balancers",
            "path_parameters": [{"name": "metadata.namespace"}],
            "query_parameters": [{"name": "label_filter", "required": False}],
            "danger_level": "low",
        },
        {
            "name": "virtual-replace-http-loadbalancer",
            "domain": "virtual",
            "resource": "http-loadbalancer",
            "operation": "update",
            "method": "PUT",
            "path": LB_PATH + "/{metadata.name}",
            "summary": "Replace HTTP Load Balancer",
            "path_parameters": [{"name": "metadata.namespace"}, {"name": "metadata.name"}],
            "request_body_ref": "#/components/schemas/http_loadbalancerReplaceRequest",
            "danger_level": "medium",
        },
        {
            "name": "virtual-delete-http-loadbalancer",
            "domain": "virtual",
            "resource": "http-loadbalancer",
            "operation": "delete",
            "method": "DELETE",
            "path": LB_PATH + "/{name}",
            "summary": "Delete HTTP Load Balancer",
            "path_parameters": [{"name": "metadata.namespace"}, {"name": "name"}],
            "danger_level": "high",
        },
        {
            "name": "virtual-patch-http-loadbalancer-labels",
            "domain": "virtual",
            "resource": "http-loadbalancer",
            "operation": "update",
            "method": "PATCH",
            "path": LB_PATH + "/{name}/labels",
            "summary": "Patch HTTP Load Balancer labels",
            "path_parameters": [{"name": "metadata.namespace"}, {"name": "name"}],
            "danger_level": "low",
        },
        {
            "name": "virtual-create-origin-pool",
            "domain": "virtual",
            "resource": "origin-pool",
            "operation": "create",
            "method": "POST",
            "path": "/api/config/namespaces/{metadata.namespace}/origin_pools",
            "summary": "Create Origin Pool",
            "path_parameters": [{"name": "metadata.namespace"}],
            "request_body_ref": "#/components/schemas/origin_poolCreateRequest",
            "danger_level": "medium",
        },
        {
            "name": "virtual-create-healthcheck",
            "domain": "virtual",
            "resource": "healthcheck",
            "operation": "create",
            "method": "POST",
            "path": "/api/config/namespaces/{metadata.namespace}/healthchecks",
            "summary": "Create Health Check",
            "path_parameters": [{"name": "metadata.namespace"}],
            "request_body_ref": "#/components/schemas/healthcheckCreateRequest",
        },
        {
            "name": "dns-create-dns-zone",
            "domain": "dns",
            "resource": "dns-zone",
            "operation": "create",
            "method": "POST",
            "path": "/api/config/dns/namespaces/system/dns_zones",
            "summary": "Create DNS Zone",
            "request_body_ref": "#/components/schemas/dns_zoneCreateRequest",
        },
        {
            "name": "dns-list-dns-zone",
            "domain": "dns",
            "resource": "dns-zone",
            "operation": "list",
            "method": "GET",
            "path": "/api/config/dns/namespaces/system/dns_zones",
            "summary": "List DNS Zones",
            "danger_level": "low",
        },
    ],
    "dependencies": [
        {
            "domain": "virtual",
            "resource": "http-loadbalancer",
            "requires": [{"domain": "virtual", "resource": "origin-pool"}],
            "optional": [{"domain": "waf", "resource": "app-firewall"}],
        },
        {
            "domain": "virtual",
            "resource": "origin-pool",
            "optional": [{"domain": "virtual", "resource": "healthcheck"}],
            "one_of_groups": [
                {
                    "choice_field": "port_choice",
                    "options": ["spec.port", "spec.automatic_port"],
                    "recommended_option": "spec.port",
                }
            ],
        },
        {"domain": "virtual", "resource": "healthcheck"},
        {"domain": "waf", "resource": "app-firewall", "tier": "advanced"},
        {"domain": "dns", "resource": "dns-zone"},
    ],
}


def make_catalogue():
    return catalogue_from_document(CATALOGUE_DOCUMENT)


def make_graph():
    return DependencyGraph.from_records(CATALOGUE_DOCUMENT["dependencies"])


def ok(data=None, status=200, headers=None):
    return APIResponse(status=status, data=data if data is not None else {}, headers=headers or {})


def make_client(**responses):
    """Mock APIClient; each keyword gives one response or a list of responses for that method"""
    client = MagicMock()
    for method in ("get", "post", "put", "delete"):
        value = responses.get(method, ok())
        if isinstance(value, list):
            setattr(client, method, AsyncMock(side_effect=value))
        else:
            setattr(client, method, AsyncMock(return_value=value))
    return client


