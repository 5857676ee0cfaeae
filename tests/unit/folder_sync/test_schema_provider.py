import httpx

from core_models import TypeDescriptor
from folder_sync.catalog import DEFAULT_TYPES, HttpSchemaProvider, StaticSchemaProvider


def _provider(handler) -> HttpSchemaProvider:
    return HttpSchemaProvider("http://registry.test/api/", transport=httpx.MockTransport(handler))


def test_static_provider_defaults_are_stable():
    a, b = StaticSchemaProvider(), StaticSchemaProvider()
    assert a.resolve_type_by_name("DataFile") == b.resolve_type_by_name("DataFile")
    assert a.resolve_type_by_name("NoSuchType") is None
    assert len(a.names()) == len(DEFAULT_TYPES)


def test_static_provider_register():
    p = StaticSchemaProvider(types={})
    assert p.resolve_type_by_name("DataFile") is None
    p.register(TypeDescriptor(name="DataFile", id="df-1"))
    assert p.resolve_type_by_name("DataFile").id == "df-1"


def test_http_provider_found():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"name": "DataFile", "id": "guid-df"})

    desc = _provider(handler).resolve_type_by_name("DataFile")
    assert desc == TypeDescriptor(name="DataFile", id="guid-df")
    assert seen == ["/api/types/name/DataFile"]


def test_http_provider_404_is_none():
    p = _provider(lambda request: httpx.Response(404, json={"detail": "unknown"}))
    assert p.resolve_type_by_name("Endpoint") is None


def test_http_provider_transport_error_is_none():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert _provider(handler).resolve_type_by_name("Endpoint") is None


def test_http_provider_malformed_body_is_none():
    p = _provider(lambda request: httpx.Response(200, json={"name": "Endpoint"}))
    assert p.resolve_type_by_name("Endpoint") is None


def test_http_provider_server_error_is_none():
    p = _provider(lambda request: httpx.Response(503))
    assert p.resolve_type_by_name("Endpoint") is None
