"""Atom / molecule / organism / template classification of template markup."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict

from bs4 import BeautifulSoup, Tag

from .models import Template, TemplateType

logger = logging.getLogger("domprint.classifier")


def _element_children(tag: Tag):
    return [child for child in tag.children if isinstance(child, Tag)]


def _classify(tag: Tag, is_root: bool) -> TemplateType:
    children = _element_children(tag)
    if not children:
        return TemplateType.ATOM

    counts = Counter(_classify(child, False) for child in children)
    atoms = counts[TemplateType.ATOM]
    molecules = counts[TemplateType.MOLECULE]
    organisms = counts[TemplateType.ORGANISM]
    templates = counts[TemplateType.TEMPLATE]

    if atoms == 1:
        return TemplateType.ATOM
    if atoms > 1 and not molecules and not organisms and not templates:
        return TemplateType.MOLECULE
    if not templates and ((molecules == 1 and atoms) or molecules > 1 or organisms):
        return TemplateType.ORGANISM
    if is_root:
        return TemplateType.TEMPLATE
    return TemplateType.UNKNOWN


def classify_template(markup: str) -> TemplateType:
    """Classify a markup fragment from the composition of its children.

    Leaves are atoms and each level up is decided by how many atoms,
    molecules and organisms sit directly beneath it. The fragment root is a
    template when no other rule applies.
    """
    if not markup or not markup.strip():
        return TemplateType.UNKNOWN
    soup = BeautifulSoup(markup, "html.parser")
    roots = _element_children(soup)
    if not roots:
        return TemplateType.UNKNOWN
    root = roots[0] if len(roots) == 1 else soup
    try:
        return _classify(root, True)
    except RecursionError:
        logger.warning("Template markup nested too deeply to classify (%d chars)", len(markup))
        return TemplateType.UNKNOWN


def classify_templates(templates: Dict[str, Template]) -> Dict[str, Template]:
    """Set the type of every template and return them keyed by template key."""
    classified: Dict[str, Template] = {}
    for template in templates.values():
        template.type = classify_template(template.markup)
        classified[template.key] = template
    return classified
