import asyncio
import logging

from webmcp_auto.config import Settings
from webmcp_auto.scanner.orchestrator import Instrumentor, ScanState, instrument
from webmcp_auto.scanner.soup_host import SoupDocument
from test_watcher import FakeLoop

SHOP_PAGE = """
<html><body>
<header><a href="/">Home</a><a href="#">Top</a></header>
<nav aria-label="Main">
  <a href="/cart">Cart</a>
  <a href="javascript:void(0)">Menu</a>
  <a>No destination</a>
</nav>
<form id="product-search" action="/search">
  <label for="q">Search query</label>
  <input id="q" name="query" type="text" required>
  <select name="category">
    <option value="">Any</option>
    <option value="shoes">Shoes</option>
    <option value="shirts">Shirts</option>
    <option value="pants">Pants</option>
  </select>
  <input name="maxPrice" type="number" min="0" max="1000">
  <button type="submit">Go</button>
</form>
<form id="empty"><button type="submit">Nothing to fill</button></form>
<form id="checkout" toolname="checkout"><input name="card"></form>
<button id="newsletter">Subscribe to newsletter</button>
<div role="button" aria-label="Open chat"></div>
<button></button>
<div class="admin"><button>Delete everything</button></div>
<a class="promo" data-action="promo" href="/promo">Promo</a>
</body></html>
"""

SHOP_URL = "https://shop.example.com/products"


def make_settings(**overrides):
    values = {"exclude": [".admin"], "watch": False, "debug": True}
    values.update(overrides)
    return Settings(**values)


def make_instrumentor(html=SHOP_PAGE, sink=None, on_tool_registered=None, loop=None, **overrides):
    document = SoupDocument(html, url=SHOP_URL)
    instrumentor = Instrumentor(
        document,
        settings=make_settings(**overrides),
        sink=sink,
        on_tool_registered=on_tool_registered,
        loop=loop,
    )
    return document, instrumentor


class RecordingSink:
    def __init__(self, fail=False):
        self.fail = fail
        self.registered = []
        self.cleared = 0

    def register(self, descriptor):
        if self.fail:
            raise RuntimeError("registry unavailable")
        self.registered.append(descriptor.name)

    def clear_all(self):
        self.cleared += 1


def tool_names(instrumentor):
    return [tool["name"] for tool in instrumentor.get_tools()]


def test_scan_registers_tools_in_phase_order():
    _, instrumentor = make_instrumentor()

    registered = instrumentor.scan()

    assert tool_names(instrumentor) == [
        "product_search",
        "subscribe_to_newsletter",
        "open_chat",
        "navigate_home",
        "navigate_cart",
    ]
    assert registered == 5
    assert instrumentor.state is ScanState.IDLE


def test_scan_builds_descriptors_per_role():
    _, instrumentor = make_instrumentor()
    instrumentor.scan()
    tools = {tool["name"]: tool for tool in instrumentor.get_tools()}

    search = tools["product_search"]
    assert search["annotations"] == {"readOnlyHint": False, "destructiveHint": False}
    assert set(search["inputSchema"]["properties"]) == {"query", "category", "maxPrice"}
    assert search["inputSchema"]["required"] == ["query"]
    assert "handler" not in search

    assert tools["open_chat"]["description"] == "Click action: Open chat"
    assert tools["open_chat"]["inputSchema"] == {"type": "object", "properties": {}}
    assert tools["navigate_cart"]["annotations"] == {"readOnlyHint": True}
    assert tools["navigate_cart"]["description"] == "Navigate to: Cart"


def test_manual_marker_never_yields_tool_even_when_included():
    _, instrumentor = make_instrumentor(include=["form"])
    instrumentor.scan()

    assert "checkout" not in tool_names(instrumentor)


def test_excluded_subtree_is_skipped():
    _, instrumentor = make_instrumentor()
    instrumentor.scan()
    assert "delete_everything" not in tool_names(instrumentor)

    _, unfiltered = make_instrumentor(exclude=[])
    unfiltered.scan()
    assert "delete_everything" in tool_names(unfiltered)


def test_duplicate_names_register_once():
    seen = []
    html = "<body><button>Save</button><button>Save</button><div role='button'>save</div></body>"
    _, instrumentor = make_instrumentor(html, on_tool_registered=lambda tool: seen.append(tool.name))

    instrumentor.scan()

    assert tool_names(instrumentor) == ["save"]
    assert seen == ["save"]


def test_registry_never_exceeds_max_tools(caplog):
    caplog.set_level(logging.WARNING)
    buttons = "".join(f"<button>Action {i}</button>" for i in range(12))
    links = "".join(f'<a href="/p{i}">Page {i}</a>' for i in range(5))
    _, instrumentor = make_instrumentor(f"<body>{buttons}<nav>{links}</nav></body>", max_tools=3)

    instrumentor.scan()
    instrumentor.scan()

    assert len(instrumentor.registry) == 3
    assert tool_names(instrumentor) == ["action_0", "action_1", "action_2"]
    assert any("max_tools_reached" in r.message for r in caplog.records)


def test_rescan_does_not_duplicate_or_replace():
    document, instrumentor = make_instrumentor()
    instrumentor.scan()
    first = instrumentor.registry.get("product_search")

    assert instrumentor.scan() == 0
    assert instrumentor.registry.get("product_search") is first
    assert len(instrumentor.registry) == 5


def test_include_selectors_classify_by_tag():
    _, instrumentor = make_instrumentor(include=["[data-action]"])
    instrumentor.scan()
    tools = {tool["name"]: tool for tool in instrumentor.get_tools()}

    assert tools["promo"]["description"] == "Click: Promo"
    assert tools["promo"]["annotations"] == {"readOnlyHint": False}


def test_prefix_applies_to_every_tool():
    _, instrumentor = make_instrumentor(prefix="shop")
    instrumentor.scan()
    assert all(name.startswith("shop_") for name in tool_names(instrumentor))
    assert "shop_product_search" in tool_names(instrumentor)


def test_sink_receives_tools_and_failures_are_absorbed(caplog):
    caplog.set_level(logging.WARNING)
    sink = RecordingSink()
    _, instrumentor = make_instrumentor(sink=sink)
    instrumentor.scan()
    assert sink.registered == tool_names(instrumentor)

    failing = RecordingSink(fail=True)
    _, degraded = make_instrumentor(sink=failing)
    assert degraded.scan() == 5
    assert any("sink_register_failed" in r.message for r in caplog.records)


def test_invalid_include_selector_does_not_break_scan(caplog):
    caplog.set_level(logging.WARNING)
    _, instrumentor = make_instrumentor(include=["[[not a selector"])

    assert instrumentor.scan() == 5
    assert any("scan_query_failed" in r.message for r in caplog.records)


def test_form_tool_invocation_end_to_end():
    document, instrumentor = make_instrumentor()
    instrumentor.scan()

    result = asyncio.run(
        instrumentor.registry.invoke("product_search", {"query": "red sneakers", "category": "shoes"})
    )

    assert result["success"] is True
    assert result["fields"] == ["query", "category"]
    form = document.query_selector("#product-search")
    assert [e.type for e in document.events_of(form)] == ["submit"]
    assert [e.type for e in document.events_of(event_type="input")] == ["input", "input"]


def test_link_tool_returns_target_without_navigation():
    document, instrumentor = make_instrumentor()
    instrumentor.scan()

    result = asyncio.run(instrumentor.registry.invoke("navigate_cart"))

    assert result["url"] == "https://shop.example.com/cart"
    assert document.navigations == []


def test_manifest_shape():
    _, instrumentor = make_instrumentor()
    instrumentor.scan()

    manifest = instrumentor.get_tool_manifest()

    assert manifest["version"] == "0.1.0"
    assert manifest["site"] == "https://shop.example.com"
    assert manifest["generatedBy"] == "webmcp-auto"
    assert isinstance(manifest["generatedAt"], str)
    assert manifest["tools"] == instrumentor.get_tools()


def test_scan_requested_during_scan_is_queued(caplog):
    caplog.set_level(logging.INFO)
    returned = []
    states = []
    holder = {}

    def rescan_from_callback(_tool):
        states.append(holder["instrumentor"].state)
        returned.append(holder["instrumentor"].scan())

    _, instrumentor = make_instrumentor(on_tool_registered=rescan_from_callback)
    holder["instrumentor"] = instrumentor

    total = instrumentor.scan()

    assert total == 5
    assert set(returned) == {0}
    assert set(states) == {ScanState.SCANNING}
    assert instrumentor.state is ScanState.IDLE
    assert sum("scan_started" in r.message for r in caplog.records) == 2


def test_instrument_waits_for_ready_document():
    document = SoupDocument(SHOP_PAGE, url=SHOP_URL, ready_state="loading")
    instrumentor = instrument(document, make_settings())

    assert instrumentor.get_tools() == []
    document.mark_ready()
    assert len(instrumentor.get_tools()) == 5


def test_instrument_accepts_setting_overrides():
    document = SoupDocument(SHOP_PAGE, url=SHOP_URL)
    instrumentor = instrument(document, make_settings(), prefix="acme", max_tools=2)

    assert instrumentor.settings.prefix == "acme"
    assert tool_names(instrumentor) == ["acme_product_search", "acme_subscribe_to_newsletter"]


def test_structural_change_triggers_single_debounced_rescan(caplog):
    caplog.set_level(logging.INFO)
    loop = FakeLoop()
    document = SoupDocument(SHOP_PAGE, url=SHOP_URL)
    instrumentor = instrument(document, make_settings(watch=True, debounce_seconds=1.0), loop=loop)
    assert len(instrumentor.registry) == 5

    for i in range(4):
        document.append_html(f"<button>Load more {i}</button>")
        loop.advance(0.1)
    assert len(instrumentor.registry) == 5

    loop.advance(1.0)

    assert sum("dom_changed_rescanning" in r.message for r in caplog.records) == 1
    assert [n for n in tool_names(instrumentor) if n.startswith("load_more")] == [
        "load_more_0",
        "load_more_1",
        "load_more_2",
        "load_more_3",
    ]


def test_removed_elements_keep_their_tools():
    loop = FakeLoop()
    document = SoupDocument(SHOP_PAGE, url=SHOP_URL)
    instrumentor = instrument(document, make_settings(watch=True), loop=loop)

    document.remove(document.query_selector("#newsletter"))
    loop.advance(2.0)

    assert "subscribe_to_newsletter" in tool_names(instrumentor)


def test_destroy_clears_and_stops_watching():
    loop = FakeLoop()
    sink = RecordingSink()
    document = SoupDocument(SHOP_PAGE, url=SHOP_URL)
    instrumentor = instrument(document, make_settings(watch=True), sink=sink, loop=loop)
    assert len(instrumentor.registry) == 5

    document.append_html("<button>Pending</button>")
    instrumentor.destroy()
    loop.advance(2.0)
    document.append_html("<button>Later</button>")
    loop.advance(2.0)

    assert instrumentor.get_tools() == []
    assert sink.cleared == 1
    assert instrumentor.watcher.is_watching is False


def test_stop_watching_keeps_tools():
    loop = FakeLoop()
    document = SoupDocument(SHOP_PAGE, url=SHOP_URL)
    instrumentor = instrument(document, make_settings(watch=True), loop=loop)

    instrumentor.stop_watching()
    document.append_html("<button>Ignored</button>")
    loop.advance(2.0)

    assert len(instrumentor.registry) == 5
    assert "ignored" not in tool_names(instrumentor)


def test_unlabelled_elements_from_different_include_selectors_are_kept_apart():
    html = "<body><div data-a></div><span data-b></span></body>"
    _, instrumentor = make_instrumentor(html, include=["[data-a]", "[data-b]"])

    instrumentor.scan()

    assert tool_names(instrumentor) == ["action_0", "action_1"]


def test_padded_hrefs_are_trimmed():
    html = '<body><nav><a href=" # ">Top</a><a href=" /cart ">Cart</a></nav></body>'
    document, instrumentor = make_instrumentor(html)
    instrumentor.scan()

    assert tool_names(instrumentor) == ["navigate_cart"]
    result = asyncio.run(instrumentor.registry.invoke("navigate_cart"))
    assert result["url"] == "https://shop.example.com/cart"
