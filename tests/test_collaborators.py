from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pytest

from domprint.builder import build_element
from domprint.collaborators import InMemoryDedupStore
from domprint.errors import DedupStoreError
from domprint.models import BoundingBox, ElementClassification


def _element(markup="<p>x</p>", locator="//p"):
    return build_element(
        locator=locator,
        tag_name="p",
        outer_markup=markup,
        bounding_box=BoundingBox(0, 0, 5, 5),
        classification=ElementClassification.LEAF,
    )


def test_upsert_is_insert_if_absent():
    store = InMemoryDedupStore()
    first = _element(locator="//p[1]")
    second = _element(locator="//p[2]")
    assert store.upsert("scope", first) is first
    assert store.upsert("scope", second) is first
    assert store.lookup("scope", first.checksum) is first
    assert len(store) == 1


def test_scopes_do_not_share_records():
    store = InMemoryDedupStore()
    element = _element()
    store.upsert("a", element)
    assert store.lookup("b", element.checksum) is None
    store.upsert("b", element)
    assert store.scope_size("a") == store.scope_size("b") == 1


def test_concurrent_upserts_keep_one_record():
    store = InMemoryDedupStore()
    candidates = [_element(locator=f"//p[{index}]") for index in range(1, 33)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        stored = list(pool.map(lambda element: store.upsert("scope", element), candidates))
    assert len(store) == 1
    assert all(record is stored[0] for record in stored)


def test_upsert_requires_checksum():
    with pytest.raises(DedupStoreError):
        InMemoryDedupStore().upsert("scope", replace(_element(), checksum=""))
