"""Tests for the DOM comparator."""

import copy
import json

import pytest

from d2c_workflow.comparison.dom_comparator import compare_dom, node_selector, parse_dom_input
from d2c_workflow.errors import InvalidDomInput
from d2c_workflow.models.comparison import DomNode


class TestNodeSelector:
    """Tests for node_selector()."""

    def test_id_wins(self):
        node = DomNode(tag="div", id="hero", classes=["a"])
        assert node_selector(node, 3, "main:nth-child(1)") == "#hero"

    def test_tag_classes_position(self):
        node = DomNode(tag="a", classes=["btn", "primary"])
        assert node_selector(node, 1) == "a.btn.primary:nth-child(2)"

    def test_scoped_under_parent(self):
        node = DomNode(tag="li")
        assert node_selector(node, 0, "#menu") == "#menu > li:nth-child(1)"


class TestCompareDom:
    """Tests for compare_dom()."""

    def test_identical_trees(self, dom_tree):
        result = compare_dom(dom_tree, copy.deepcopy(dom_tree))
        assert result.success_rate == 100.0
        assert result.total_elements == 8
        assert result.matched_elements == 8
        assert result.missing_elements == []
        assert result.extra_elements == []
        assert result.attribute_diffs == []
        assert result.text_diffs == []

    def test_extra_sibling_reported_without_affecting_counts(self, dom_tree):
        actual = copy.deepcopy(dom_tree) + [{"tag": "footer"}]
        result = compare_dom(dom_tree, actual)
        assert result.extra_elements == ["footer:nth-child(3)"]
        assert result.total_elements == 8
        assert result.matched_elements == 8
        assert result.success_rate == 100.0

    def test_extra_nested_child(self, dom_tree):
        actual = copy.deepcopy(dom_tree)
        actual[1]["children"].append({"tag": "p", "text": "More"})
        result = compare_dom(dom_tree, actual)
        assert result.extra_elements == ["main:nth-child(2) > p:nth-child(3)"]
        assert result.success_rate == 100.0

    def test_missing_element(self, dom_tree):
        result = compare_dom(dom_tree, copy.deepcopy(dom_tree[:1]))
        assert result.missing_elements == ["main:nth-child(2)"]
        # header subtree (5) + the missing main node itself
        assert result.total_elements == 6
        assert result.matched_elements == 5
        assert result.success_rate == 83.33

    def test_text_diff_on_leaf(self, dom_tree):
        actual = copy.deepcopy(dom_tree)
        actual[1]["children"][0]["text"] = "Hello"
        result = compare_dom(dom_tree, actual)
        assert len(result.text_diffs) == 1
        diff = result.text_diffs[0]
        assert diff.selector == "main:nth-child(2) > h1.title:nth-child(1)"
        assert diff.expected == "Welcome"
        assert diff.actual == "Hello"
        assert result.matched_elements == 7
        assert result.success_rate == 87.5

    def test_text_is_trimmed(self):
        expected = [{"tag": "p", "text": "  Hello  "}]
        actual = [{"tag": "p", "text": "Hello\n"}]
        assert compare_dom(expected, actual).success_rate == 100.0

    def test_text_ignored_on_non_leaf(self):
        expected = [{"tag": "div", "text": "Parent", "children": [{"tag": "span"}]}]
        actual = [{"tag": "div", "text": "Other", "children": [{"tag": "span"}]}]
        result = compare_dom(expected, actual)
        assert result.text_diffs == []
        assert result.success_rate == 100.0

    def test_attribute_diff(self, dom_tree):
        actual = copy.deepcopy(dom_tree)
        actual[1]["children"][1]["attributes"]["src"] = "/other.png"
        result = compare_dom(dom_tree, actual)
        assert len(result.attribute_diffs) == 1
        diff = result.attribute_diffs[0]
        assert diff.selector == "main:nth-child(2) > img:nth-child(2)"
        assert diff.attribute == "src"
        assert diff.expected == "/hero.png"
        assert diff.actual == "/other.png"
        assert result.matched_elements == 7

    def test_missing_attribute_in_actual(self):
        expected = [{"tag": "a", "attributes": {"href": "/docs", "aria-label": "Docs"}}]
        actual = [{"tag": "a", "attributes": {"href": "/docs"}}]
        result = compare_dom(expected, actual)
        assert [(d.attribute, d.actual) for d in result.attribute_diffs] == [("aria-label", None)]
        assert result.success_rate == 0.0

    def test_empty_expected_value_never_flagged(self):
        expected = [{"tag": "img", "attributes": {"alt": ""}, "text": ""}]
        actual = [{"tag": "img", "attributes": {"alt": "Logo", "role": "img"}, "text": "caption"}]
        result = compare_dom(expected, actual)
        assert result.attribute_diffs == []
        assert result.text_diffs == []
        assert result.success_rate == 100.0

    def test_unchecked_attributes_ignored(self):
        expected = [{"tag": "input", "attributes": {"name": "email", "type": "email"}}]
        actual = [{"tag": "input", "attributes": {"name": "mail", "type": "text"}}]
        assert compare_dom(expected, actual).success_rate == 100.0

    def test_tag_mismatch_under_same_id(self):
        expected = [{"tag": "div", "id": "hero"}]
        actual = [{"tag": "section", "id": "hero"}]
        result = compare_dom(expected, actual)
        assert result.missing_elements == []
        assert result.extra_elements == []
        assert result.matched_elements == 0
        assert result.success_rate == 0.0

    def test_reordered_siblings_do_not_align(self):
        expected = [{"tag": "p", "classes": ["a"]}, {"tag": "span", "classes": ["b"]}]
        actual = [{"tag": "span", "classes": ["b"]}, {"tag": "p", "classes": ["a"]}]
        result = compare_dom(expected, actual)
        assert result.missing_elements == ["p.a:nth-child(1)", "span.b:nth-child(2)"]
        assert result.extra_elements == ["span.b:nth-child(1)", "p.a:nth-child(2)"]
        assert result.success_rate == 0.0

    def test_children_under_id_are_scoped_by_id(self, dom_tree):
        actual = copy.deepcopy(dom_tree)
        del actual[0]["children"][0]
        result = compare_dom(dom_tree, actual)
        assert "#top > a.logo:nth-child(1)" in result.missing_elements

    def test_recurses_when_only_actual_has_children(self):
        expected = [{"tag": "div"}]
        actual = [{"tag": "div", "children": [{"tag": "span"}]}]
        result = compare_dom(expected, actual)
        assert result.extra_elements == ["div:nth-child(1) > span:nth-child(1)"]
        assert result.total_elements == 1

    def test_rate_rounding(self):
        expected = [{"tag": "p", "text": "a"}, {"tag": "p", "text": "b"}, {"tag": "p", "text": "c"}]
        actual = [{"tag": "p", "text": "a"}, {"tag": "p", "text": "x"}, {"tag": "p", "text": "y"}]
        assert compare_dom(expected, actual).success_rate == 33.33
        actual[1]["text"] = "b"
        assert compare_dom(expected, actual).success_rate == 66.67

    def test_empty_forests(self):
        result = compare_dom([], [])
        assert result.total_elements == 0
        assert result.success_rate == 100.0

    def test_malformed_nodes_get_defaults(self):
        expected = [{"children": None, "classes": None}]
        actual = ["junk"]
        result = compare_dom(expected, actual)
        assert result.success_rate == 100.0

    def test_accepts_json_text(self, dom_tree):
        result = compare_dom(json.dumps(dom_tree), json.dumps(dom_tree))
        assert result.success_rate == 100.0

    def test_rejects_non_list_top_level(self):
        with pytest.raises(InvalidDomInput):
            compare_dom({"tag": "div"}, [])

    def test_rejects_json_object_text(self):
        with pytest.raises(InvalidDomInput):
            compare_dom([], '{"tag": "div"}')

    def test_rejects_invalid_json_text(self):
        with pytest.raises(InvalidDomInput):
            compare_dom("<div></div>", [])


class TestParseDomInput:
    """Tests for parse_dom_input() and DomNode.from_raw()."""

    def test_extraction_shape_normalized(self):
        nodes = parse_dom_input([{
            "tagName": "DIV",
            "className": "card  wide",
            "textContent": "Hi",
            "attributes": {"role": None},
        }])
        node = nodes[0]
        assert node.tag == "div"
        assert node.classes == ["card", "wide"]
        assert node.text == "Hi"
        assert node.attributes == {"role": ""}
        assert node.children == []

    def test_non_mapping_node_becomes_default(self):
        node = parse_dom_input([42])[0]
        assert node == DomNode()
        assert node.tag == "div"

    def test_nested_children_normalized(self):
        node = parse_dom_input([{"tag": "ul", "children": [{"tag": "LI"}, None]}])[0]
        assert [c.tag for c in node.children] == ["li", "div"]

    def test_dom_nodes_pass_through(self):
        node = DomNode(tag="span")
        assert parse_dom_input([node])[0] is node
