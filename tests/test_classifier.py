from __future__ import annotations

from domprint.classifier import classify_template, classify_templates
from domprint.models import Template, TemplateType


def test_single_atom_child_is_atom():
    assert classify_template("<div><span>a</span></div>") == TemplateType.ATOM


def test_two_atom_children_is_molecule():
    assert classify_template("<div><span>a</span><span>b</span></div>") == TemplateType.MOLECULE


def test_molecule_children_make_an_organism():
    markup = "<div><ul><li>a</li><li>b</li></ul><ul><li>c</li><li>d</li></ul></div>"
    assert classify_template(markup) == TemplateType.ORGANISM


def test_single_atom_child_wins_over_molecules():
    markup = "<div><ul><li>a</li><li>b</li></ul><p>x</p></div>"
    assert classify_template(markup) == TemplateType.ATOM


def test_molecule_with_several_atoms_is_organism():
    markup = "<div><ul><li>a</li><li>b</li></ul><p>x</p><p>y</p></div>"
    assert classify_template(markup) == TemplateType.ORGANISM


def test_unmatched_root_becomes_template():
    markup = "<section><div><span></span><span></span></div></section>"
    assert classify_template(markup) == TemplateType.TEMPLATE


def test_leaf_root_is_atom():
    assert classify_template("<img src='a.png'>") == TemplateType.ATOM


def test_several_top_level_elements_use_synthetic_root():
    assert classify_template("<span>a</span><span>b</span>") == TemplateType.MOLECULE


def test_unparseable_markup_is_unknown():
    assert classify_template("") == TemplateType.UNKNOWN
    assert classify_template("plain text") == TemplateType.UNKNOWN


def test_classify_templates_sets_type_and_key():
    template = Template(markup="<div><span>a</span><span>b</span></div>")
    classified = classify_templates({template.markup: template})
    assert template.type == TemplateType.MOLECULE
    assert list(classified) == [template.key]
    assert template.key.startswith("molecule")
