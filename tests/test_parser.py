#!/usr/bin/env python3
"""
Parser Helper Tests
===================

DOM queries, visible text and embedded JSON discovery.

Run:
    python -m pytest tests/test_parser.py
"""

import sys
import unittest
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from restocked.parser import (
    extract_embedded_json,
    find_all,
    load_dom,
    normalize_attribute_name,
    price_like_strings,
    safe_query,
    stock_like_strings,
    visible_text,
    walk_json,
)


# =============================================================================
# DOM
# =============================================================================

class TestDom(unittest.TestCase):

    def test_invalid_selector_returns_empty(self):
        dom = load_dom("<div class='price'>$10</div>")
        self.assertIsNone(safe_query(dom, "div[[["))
        self.assertEqual(find_all(dom, "div[[["), [])

    def test_none_root_is_safe(self):
        self.assertIsNone(safe_query(None, "div"))
        self.assertEqual(find_all(None, "div"), [])


# =============================================================================
# TEXT
# =============================================================================

class TestText(unittest.TestCase):

    def test_visible_text_skips_scripts_and_styles(self):
        dom = load_dom("""
            <html><head><title>Title</title><style>.x{}</style></head>
            <body><p>Hello</p><script>var secret = 1;</script><p>World</p></body></html>
        """)
        text = visible_text(dom)
        self.assertIn("Hello", text)
        self.assertIn("World", text)
        self.assertNotIn("secret", text)
        self.assertNotIn("Title", text)

    def test_visible_text_leaves_tree_intact(self):
        dom = load_dom("<body><script>x=1</script><p>Hi</p></body>")
        visible_text(dom)
        self.assertIsNotNone(dom.find("script"))

    def test_normalize_attribute_name(self):
        self.assertEqual(normalize_attribute_name("Shoe Size"), "shoe_size")
        self.assertEqual(normalize_attribute_name(" Colour: "), "colour")
        self.assertEqual(normalize_attribute_name(None), "")

    def test_price_like_strings(self):
        tokens = price_like_strings("Was $120.00 now $89.99, ships 2024")
        self.assertEqual(tokens, ["$120.00", "$89.99"])

    def test_stock_like_strings(self):
        found = stock_like_strings("Only 3 left! In Stock. Availability: Ships in 2 days")
        self.assertIn("in stock", found)
        self.assertIn("only 3 left", found)


# =============================================================================
# EMBEDDED JSON
# =============================================================================

class TestEmbeddedJson(unittest.TestCase):

    def test_ld_json_graph_is_flattened(self):
        html = """
        <script type="application/ld+json">
        {"@context": "https://schema.org", "@graph": [
            {"@type": "BreadcrumbList"},
            {"@type": "Product", "name": "Tee"}
        ]}
        </script>
        """
        blobs = extract_embedded_json(html)
        self.assertTrue(any(b.get("name") == "Tee" for b in blobs if isinstance(b, dict)))

    def test_inline_assignment_is_decoded(self):
        html = """
        <script>
          window.__STATE__ = {"product": {"title": "Tee", "variants": []}};
        </script>
        """
        blobs = extract_embedded_json(html)
        self.assertEqual(blobs, [{"product": {"title": "Tee", "variants": []}}])

    def test_ld_json_comes_first(self):
        html = """
        <script>window.meta = {"product": {"id": 1, "vendor": "Shop"}};</script>
        <script type="application/ld+json">{"@type": "Product", "name": "Tee"}</script>
        """
        blobs = extract_embedded_json(html)
        self.assertEqual(blobs[0]["@type"], "Product")

    def test_broken_json_is_skipped(self):
        html = '<script type="application/ld+json">{"@type": "Product",</script>'
        self.assertEqual(extract_embedded_json(html), [])

    def test_walk_json_respects_depth(self):
        nested = {"level": 0}
        node = nested
        for i in range(1, 30):
            node["child"] = {"level": i}
            node = node["child"]

        depths = [depth for _obj, _path, depth in walk_json(nested, max_depth=5)]
        self.assertEqual(max(depths), 5)

    def test_walk_json_paths(self):
        paths = [path for _obj, path, _depth in walk_json({"offers": [{"price": 1}]})]
        self.assertEqual(paths, ["", "offers[0]"])


if __name__ == "__main__":
    unittest.main()
