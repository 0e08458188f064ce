from __future__ import annotations

import time

from domprint.builder import build_element
from domprint.locator import build_attribute_predicate
from domprint.models import BoundingBox, ElementClassification, Template
from domprint.templates import (
    extract_template,
    find_templates,
    levenshtein,
    reduce_templates,
    similarity,
)


def _element(markup, tag="div", classification=ElementClassification.PARENT):
    return build_element(
        locator=f"//{tag}",
        tag_name=tag,
        outer_markup=markup,
        bounding_box=BoundingBox(0, 0, 10, 10),
        classification=classification,
    )


def test_extract_template_strips_volatile_attributes():
    markup = (
        '<div id="x" data-id="1" class="c" style="color:red"><!--hi-->'
        '<script>1</script><span name="n">t</span></div>'
    )
    assert extract_template(markup) == '<div class="c"><span>t</span></div>'
    assert extract_template("   ") == ""


def test_levenshtein_and_similarity():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert similarity("", "") == 0.0
    assert similarity("abcd", "abcd") == 0.0
    assert similarity("ab", "cd") == 1.0


def test_identical_templates_cluster():
    first = _element('<div id="a1" class="card"><h2>Title</h2></div>')
    second = _element('<div id="b2" class="card"><h2>Title</h2></div>')
    registry = find_templates([first, second])
    assert list(registry) == ['<div class="card"><h2>Title</h2></div>']
    assert registry['<div class="card"><h2>Title</h2></div>'].elements == [first, second]


def test_near_identical_templates_cluster_below_threshold():
    text = "a" * 100
    first = _element(f'<p class="text"><b>{text}</b></p>', tag="p")
    second = _element(f'<p class="text"><b>{text[:-1]}z</b></p>', tag="p")
    assert len(find_templates([first, second])) == 1
    assert find_templates([first, second], threshold=0.001) == {}


def test_leaves_and_other_tags_are_not_clustered():
    leaf_a = _element("<p>x</p>", tag="p", classification=ElementClassification.LEAF)
    leaf_b = _element("<p>x</p>", tag="p", classification=ElementClassification.LEAF)
    div = _element("<div><b>x</b></div>")
    section = _element("<div><b>x</b></div>", tag="section")
    assert find_templates([leaf_a, leaf_b, div, section]) == {}


def test_first_match_wins_and_clustering_is_idempotent():
    elements = [
        _element('<ul id="1"><li>a</li></ul>', tag="ul"),
        _element('<ul id="2"><li>a</li></ul>', tag="ul"),
        _element('<ul id="3"><li>a</li></ul>', tag="ul"),
        _element("<ul><li>b</li><li>c</li></ul>", tag="ul"),
    ]
    registry = find_templates(elements)
    members = [el.key for template in registry.values() for el in template.elements]
    assert len(members) == len(set(members)) == 3

    again = find_templates(elements)
    assert list(again) == list(registry)
    for markup, template in registry.items():
        assert [el.key for el in again[markup].elements] == [el.key for el in template.elements]
        rerun = find_templates(template.elements)
        assert list(rerun) == [markup]


def test_empty_templates_are_skipped():
    empty = _element("<script>1</script>", tag="script")
    other = _element("<script>2</script>", tag="script")
    assert find_templates([empty, other]) == {}


def test_reduce_drops_contained_templates():
    registry = {
        "<b>x</b>": Template(markup="<b>x</b>"),
        "<div><b>x</b></div>": Template(markup="<div><b>x</b></div>"),
        "<i>y</i>": Template(markup="<i>y</i>"),
    }
    reduced = reduce_templates(registry)
    assert set(reduced) == {"<div><b>x</b></div>", "<i>y</i>"}
    for markup in reduced:
        assert not any(markup in other for other in reduced if other != markup)


def test_auto_generated_class_digits_do_not_split_templates():
    first = _element('<div class="product card-17"><h2>One</h2><span>10</span></div>')
    second = _element('<div class="product card-18"><h2>One</h2><span>10</span></div>')
    assert build_attribute_predicate({"class": "product card-17"}) == build_attribute_predicate(
        {"class": "product card-18"}
    )
    registry = find_templates([first, second])
    assert len(registry) == 1
    assert next(iter(registry.values())).elements == [first, second]


def _reference_distance(a, b):
    rows = [[i + j if i * j == 0 else 0 for j in range(len(b) + 1)] for i in range(len(a) + 1)]
    for i in range(1, len(a) + 1):
        for j in range(1, len(b) + 1):
            rows[i][j] = min(
                rows[i - 1][j] + 1,
                rows[i][j - 1] + 1,
                rows[i - 1][j - 1] + (a[i - 1] != b[j - 1]),
            )
    return rows[-1][-1]


def test_levenshtein_matches_full_table():
    pairs = [
        ("kitten", "sitting"),
        ("<div><b>x</b></div>", "<div><i>x</i></div>"),
        ("abcabcabc", "cbacbacba"),
        ("a" * 70 + "b", "b" + "a" * 70),
        ("flaw", "lawn"),
        ("", "xyz"),
    ]
    for a, b in pairs:
        expected = _reference_distance(a, b)
        assert levenshtein(a, b) == expected
        assert levenshtein(b, a) == expected
        assert levenshtein(a, b, max_distance=expected) == expected
        if expected:
            assert levenshtein(a, b, max_distance=expected - 1) == expected


def _listing(prices):
    rows = "".join(
        f'<li class="row"><span>item {i}</span><b>{p}</b></li>' for i, p in enumerate(prices)
    )
    return f'<ul class="listing">{rows}</ul>'


def test_large_near_identical_templates_cluster_quickly():
    prices = [i % 10 for i in range(500)]
    changed = list(prices)
    changed[0] = 7
    changed[-1] = 3
    first = _element(_listing(prices), tag="ul")
    second = _element(_listing(changed), tag="ul")
    unrelated = _element(_listing([1] * 20), tag="ul")
    assert len(first.outer_html) > 20000

    started = time.perf_counter()
    registry = find_templates([first, unrelated, second])
    elapsed = time.perf_counter() - started

    assert elapsed < 5
    assert len(registry) == 1
    assert next(iter(registry.values())).elements == [first, second]
    a, b = extract_template(first.outer_html), extract_template(second.outer_html)
    assert similarity(a, b, 0.025) == similarity(a, b) == 2 / len(a)


def test_bounded_similarity_stays_above_threshold_when_far_apart():
    assert similarity("abcd", "wxyz", 0.025) >= 0.025
    assert similarity("a" * 100, "a" * 50, 0.025) >= 0.025
