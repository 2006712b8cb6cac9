from __future__ import annotations

import unittest

from justhtml.node import Element, Text

from safehtml import SafeHTML, SanitizationPolicy, sanitize

MIXED = (
    "<p><a href=\"javascript:alert('evil');\">Click me</a> "
    '<a href="http://example.com">Click me</a> '
    "<span title=\"test\" onclick=\"alert('evil');\">Click me</span>"
    "<script>myEvilFunction();</script>"
)

SCENARIO = '<p><a href="javascript:alert(1)">Click</a> <span onclick="x()">Click</span></p>'


class TestScenarios(unittest.TestCase):
    def test_nothing_allowed_keeps_only_text(self) -> None:
        assert SafeHTML(SCENARIO, False).get_html() == "Click Click"

    def test_allowed_javascript_protocol_is_kept(self) -> None:
        safe = SafeHTML(SCENARIO, False)
        safe.allow_tag("a").allow_attribute("href").allow_protocol("javascript")
        assert safe.get_html() == '<a href="javascript:alert(1)">Click</a> Click'

    def test_defaults_strip_event_handlers(self) -> None:
        safe = SafeHTML('<span title="t" onclick="x()">Click</span>')
        assert safe.get_html() == '<span title="t">Click</span>'

    def test_malformed_markup_is_repaired(self) -> None:
        safe = SafeHTML('<a href="x">test</span> <a>test2</a>', False).allow_tag("a")
        clean = safe.get_html()
        assert clean == "<a>test </a><a>test2</a>"
        assert "test" in clean
        assert "test2" in clean

    def test_malformed_markup_with_trailing_span(self) -> None:
        html = '<a href="login">test</span> <a>test2</a> <span>test3</span>'

        assert SafeHTML(html, False).allow_tag("a").get_html() == "<a>test </a><a>test2</a> test3"
        assert SafeHTML(html, False).allow_tag("span").get_html() == "test test2 <span>test3</span>"


class TestAllowList(unittest.TestCase):
    def test_progressive_configuration(self) -> None:
        safe = SafeHTML(MIXED, False).remove_tag("script")
        assert safe.get_html() == "Click me Click me Click me"

        safe.allow_tag("a").allow_attribute(["href", "title"])
        assert safe.get_html() == "<a>Click me</a> <a>Click me</a> Click me"

        safe.allow_protocol("javascript")
        assert safe.get_html() == "<a href=\"javascript:alert('evil');\">Click me</a> <a>Click me</a> Click me"

        safe.allow_attribute("onclick").allow_tag("span")
        assert safe.get_html() == (
            "<a href=\"javascript:alert('evil');\">Click me</a> <a>Click me</a> "
            "<span title=\"test\" onclick=\"alert('evil');\">Click me</span>"
        )

    def test_allow_links(self) -> None:
        safe = SafeHTML(MIXED, False).remove_tag("script").allow_links().allow_protocol("http")
        assert safe.get_html() == '<a>Click me</a> <a href="http://example.com">Click me</a> Click me'

    def test_defaults(self) -> None:
        expected = '<p>Click me Click me <span title="test">Click me</span></p>'

        assert SafeHTML(MIXED).get_html() == expected
        assert SafeHTML(MIXED, False).set_default().get_html() == expected

    def test_set_default_overrides_earlier_remove(self) -> None:
        safe = SafeHTML(MIXED, False).remove_tag("p").set_default()
        assert safe.get_html() == '<p>Click me Click me <span title="test">Click me</span></p>'

    def test_allow_after_remove(self) -> None:
        expected = '<p>Click me Click me <span title="test">Click me</span></p>'

        assert SafeHTML(MIXED).remove_tag("p").allow_tag("p").get_html() == expected
        assert SafeHTML(MIXED).remove_tag(["p"]).allow_tag("p").get_html() == expected

    def test_remove_after_defaults_drops_subtree(self) -> None:
        assert SafeHTML(MIXED).remove_tag("p").get_html() == ""

    def test_removal_dominates_earlier_allow(self) -> None:
        safe = SafeHTML("<b>x<i>y</i></b>z", False).allow_tag(["b", "i"]).remove_tag("b")
        assert safe.get_html() == "z"

    def test_tag_names_are_case_insensitive(self) -> None:
        safe = SafeHTML("<B>bold</B><I>it</I>", False).allow_tag("B")
        assert safe.get_html() == "<b>bold</b>it"

    def test_disallowed_attributes_never_survive(self) -> None:
        safe = SafeHTML('<p id="a" style="color:red" data-x="1" onmouseover="x()">t</p>')
        assert safe.get_html() == '<p id="a">t</p>'


class TestUnwrap(unittest.TestCase):
    def test_unwrapped_children_are_sanitized(self) -> None:
        html = "<div><span><b>x</b><script>bad()</script></span>tail</div>"
        safe = SafeHTML(html, False).allow_tag("b").remove_tag("script")
        assert safe.get_html() == "<b>x</b>tail"

    def test_unwrapped_attributes_are_revisited(self) -> None:
        html = '<section><b onclick="x()" title="t">x</b></section>'
        safe = SafeHTML(html, False).allow_tag("b").allow_attribute("title")
        assert safe.get_html() == '<b title="t">x</b>'

    def test_empty_last_sibling(self) -> None:
        assert SafeHTML("<b>x</b><i></i>", False).allow_tag("b").get_html() == "<b>x</b>"

    def test_empty_element_between_siblings(self) -> None:
        html = '<b>1</b><i></i><b onclick="x()">2</b>'
        assert SafeHTML(html, False).allow_tag("b").get_html() == "<b>1</b><b>2</b>"

    def test_nested_empty_wrappers(self) -> None:
        assert SafeHTML("<i><u></u></i><b>2</b>", False).allow_tag("b").get_html() == "<b>2</b>"

    def test_text_order_is_preserved(self) -> None:
        html = "<div>a<span>b<em>c</em>d</span>e</div>f"
        assert SafeHTML(html, False).get_html() == "abcdef"

    def test_unwrapped_script_text_is_escaped(self) -> None:
        assert SafeHTML("<script>1 < 2</script>", False).get_html() == "1 &lt; 2"

    def test_comments_are_dropped(self) -> None:
        assert SafeHTML("<p>a<!-- secret -->b</p>").get_html() == "<p>ab</p>"

    def test_template_content_is_unwrapped(self) -> None:
        safe = SafeHTML("<template><b>x</b><i>y</i></template>", False).allow_tag("b")
        assert safe.get_html() == "<b>x</b>y"

    def test_void_elements(self) -> None:
        assert SafeHTML("<p>a<br>b</p>").allow_tag("br").get_html() == "<p>a<br>b</p>"
        assert SafeHTML('<img src="x" onerror="alert(1)">').get_html() == ""

    def test_deep_nesting(self) -> None:
        html = "<div>" * 2000 + "x"
        assert SafeHTML(html, False).get_html() == "x"
        assert SafeHTML("<div>" * 100 + "x").get_html() == "<div>" * 100 + "x" + "</div>" * 100


class TestProtocols(unittest.TestCase):
    def _href(self, href: str, *protocols: str) -> str:
        safe = SafeHTML(f'<a href="{href}">x</a>', False).allow_links()
        if protocols:
            safe.allow_protocol(list(protocols))
        return safe.get_html()

    def test_javascript_needs_explicit_protocol(self) -> None:
        assert self._href("javascript:alert(1)", "http", "https") == "<a>x</a>"
        assert self._href("JavaScript:alert(1)", "http", "https") == "<a>x</a>"
        assert self._href("javascript:alert(1)", "javascript") == '<a href="javascript:alert(1)">x</a>'

    def test_scheme_is_case_insensitive(self) -> None:
        assert self._href("HTTP://example.com", "http") == '<a href="HTTP://example.com">x</a>'
        assert self._href("mailto:me@example.com", "MAILTO") == '<a href="mailto:me@example.com">x</a>'

    def test_protocol_relative_requires_https(self) -> None:
        assert self._href("//example.com/", "http", "https") == '<a href="//example.com/">x</a>'
        assert self._href("//example.com/", "https") == '<a href="//example.com/">x</a>'
        assert self._href("//example.com/", "http") == "<a>x</a>"
        assert self._href("//example.com/") == "<a>x</a>"

    def test_local_links_are_always_kept(self) -> None:
        assert self._href("/login") == '<a href="/login">x</a>'
        assert self._href("page.html#top") == '<a href="page.html#top">x</a>'
        assert self._href("/search?q=a:b") == '<a href="/search?q=a:b">x</a>'

    def test_disguised_protocol_relative_links(self) -> None:
        assert self._href(" //evil.example", "http") == "<a>x</a>"
        assert self._href("/\\evil.example", "http") == "<a>x</a>"

    def test_href_must_be_allowed_attribute(self) -> None:
        safe = SafeHTML('<a href="/login">x</a>', False).allow_tag("a")
        assert safe.get_html() == "<a>x</a>"


class TestCallbacks(unittest.TestCase):
    def test_callback_runs_once_per_element_with_filtered_attributes(self) -> None:
        seen: list[dict[str, str | None]] = []

        def record(node) -> None:
            seen.append(dict(node.attrs))

        html = '<p><a href="/x" onclick="y()">one</a> <a>two</a></p>'
        safe = SafeHTML(html, False).allow_links().add_callback("a", record)
        assert safe.get_html() == '<a href="/x">one</a> <a>two</a>'
        assert seen == [{"href": "/x"}, {}]

    def test_callback_mutations_reach_output(self) -> None:
        def strip(node) -> None:
            node.attrs.clear()

        safe = SafeHTML(MIXED, False).remove_tag("script").allow_links().allow_protocol("http")
        safe.add_callback("a", strip)
        assert safe.get_html() == "<a>Click me</a> <a>Click me</a> Click me"

    def test_callback_sees_sanitized_children(self) -> None:
        seen: list[str] = []

        def record(node) -> None:
            seen.append("".join(getattr(child, "name", "") for child in node.children))

        safe = SafeHTML("<b><u>x</u><script>y</script><i>z</i></b>", False).allow_tag(["b", "i"])
        safe.remove_tag("script").add_callback("b", record)
        assert safe.get_html() == "<b>x<i>z</i></b>"
        assert seen == ["#texti"]

    def test_callbacks_run_after_children(self) -> None:
        order: list[str] = []
        safe = SafeHTML("<b>1<i>2</i></b><i>3</i>", False).allow_tag(["b", "i"])
        safe.add_callback("b", lambda node: order.append("b"))
        safe.add_callback("i", lambda node: order.append("i"))
        safe.get_html()
        assert order == ["i", "b", "i"]

    def test_callback_only_for_allowed_tags(self) -> None:
        calls: list[object] = []
        safe = SafeHTML("<i>x</i>", False).add_callback("i", calls.append)
        assert safe.get_html() == "x"
        assert calls == []

    def test_last_callback_wins(self) -> None:
        calls: list[str] = []
        safe = SafeHTML("<b>x</b>", False).allow_tag("b")
        safe.add_callback("b", lambda node: calls.append("first"))
        safe.add_callback("b", lambda node: calls.append("second"))
        safe.get_html()
        assert calls == ["second"]

    def test_callback_removing_its_node_does_not_skip_siblings(self) -> None:
        def detach(node) -> None:
            node.parent.remove_child(node)

        html = '<i>a</i><b onclick="x()">b</b>'
        safe = SafeHTML(html, False).allow_tag(["i", "b"]).add_callback("i", detach)
        assert safe.get_html() == "<b>b</b>"

    def test_callback_inserting_a_sibling_runs_once(self) -> None:
        calls: list[object] = []

        def mark_external(node) -> None:
            calls.append(node)
            node.parent.insert_before(Text("[ext] "), node)

        html = '<a href="http://example.com">x</a><a href="http://example.org">y</a>'
        safe = SafeHTML(html, False).allow_links().allow_protocol("http").add_callback("a", mark_external)
        out = safe.get_html()
        assert len(calls) == 2
        assert out == '[ext] <a href="http://example.com">x</a>[ext] <a href="http://example.org">y</a>'

    def test_callback_wrapping_its_node_runs_once(self) -> None:
        calls: list[object] = []

        def wrap(node) -> None:
            calls.append(node)
            wrapper = Element("span", {}, "html")
            node.parent.insert_before(wrapper, node)
            node.parent.remove_child(node)
            wrapper.append_child(node)

        safe = SafeHTML("<b>x</b><i>y</i>", False).allow_tag(["b", "i"]).add_callback("b", wrap)
        assert safe.get_html() == "<span><b>x</b></span><i>y</i>"
        assert len(calls) == 1


class TestGetHTML(unittest.TestCase):
    def test_repeated_calls_are_identical(self) -> None:
        safe = SafeHTML(MIXED).allow_links().add_callback("a", lambda node: node.attrs.clear())
        assert safe.get_html() == safe.get_html()

    def test_input_is_reparsed_on_every_call(self) -> None:
        safe = SafeHTML("<b>x</b>", False)
        assert safe.get_html() == "x"
        safe.allow_tag("b")
        assert safe.get_html() == "<b>x</b>"
        assert safe.html == "<b>x</b>"

    def test_escaping(self) -> None:
        assert SafeHTML("<p>Tom &amp; Jerry &lt;3</p>").get_html() == "<p>Tom &amp; Jerry &lt;3</p>"
        assert SafeHTML("<span title='say \"hi\"'>x</span>").get_html() in (
            '<span title="say &quot;hi&quot;">x</span>',
            "<span title='say \"hi\"'>x</span>",
        )

    def test_empty_input(self) -> None:
        assert SafeHTML("").get_html() == ""
        assert str(SafeHTML("<b>x</b>")) == "<b>x</b>"

    def test_report_hook(self) -> None:
        messages: list[str] = []

        def report(msg: str, *, node=None) -> None:
            _ = node
            messages.append(msg)

        html = '<p onclick="x()">a<script>s</script><u>b</u></p>'
        safe = SafeHTML(html, False, report=report).allow_tag("p").remove_tag("script")
        assert safe.get_html() == "<p>ab</p>"
        assert messages == [
            "Removed attribute 'onclick' from <p>",
            "Dropped <script> and its contents",
            "Unwrapped <u>",
        ]

    def test_collect_errors(self) -> None:
        safe = SafeHTML('<a href="x">test</span>', False, collect_errors=True)
        assert safe.get_html() == "test"
        assert len(safe.errors) > 0

    def test_errors_are_not_kept_by_default(self) -> None:
        safe = SafeHTML('<a href="x">test</span>', False)
        safe.get_html()
        assert safe.errors == []


class TestSanitizeFunction(unittest.TestCase):
    def test_default_policy(self) -> None:
        assert sanitize('<p onclick="x()">a<script>b</script></p>') == "<p>a</p>"

    def test_custom_policy(self) -> None:
        policy = SanitizationPolicy(allowed_tags={"a"}, allowed_attributes={"href"}, allowed_protocols={"https"})
        html = '<a href="https://example.com">ok</a><a href="http://example.com">no</a>'
        assert sanitize(html, policy) == '<a href="https://example.com">ok</a><a>no</a>'

    def test_none_input(self) -> None:
        assert sanitize(None) == ""
