from __future__ import annotations

import asyncio
import json

from domprint.collaborators import InMemoryDedupStore
from domprint.config import CrawlConfig
from domprint.engine import ExtractionEngine
from domprint.output import build_output_dir, result_to_dict, write_result


def _result(snapshot, make_session):
    engine = ExtractionEngine(InMemoryDedupStore())
    locators = ["//section[1]", "//body/div[2]", "//div[3]", "//img[1]", "//article"]
    return asyncio.run(engine.extract_page(make_session(snapshot), snapshot, locators))


def test_build_output_dir(tmp_path):
    config = CrawlConfig(output_root=tmp_path)
    output_dir = build_output_dir(config, "https://Shop.Example.com/catalog/shoes/")
    assert output_dir == tmp_path / "shop-example-com" / "catalog-shoes"
    assert output_dir.is_dir()
    assert build_output_dir(config, "https://shop.example.com").name == "index"


def test_result_to_dict_is_json_safe(snapshot, make_session):
    data = result_to_dict(_result(snapshot, make_session))
    encoded = json.loads(json.dumps(data))
    assert encoded["url"] == snapshot.url
    assert encoded["errored_locators"] == [{"locator": "//article", "reason": "no element found"}]
    element = encoded["elements"][0]
    assert "screenshot_png" not in element
    assert element["classification"] == "parent"
    assert element["bounding_box"]["width"] == 50


def test_write_result(tmp_path, snapshot, make_session):
    result = _result(snapshot, make_session)
    output_path = write_result(result, tmp_path)
    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert output_path.name == "elements.json"
    assert len(data["elements"]) == len(result.elements)
    for element in data["elements"]:
        assert (tmp_path / element["screenshot_path"]).is_file()
    image = next(element for element in data["elements"] if element["tag_name"] == "img")
    assert image["image"]["labels"] == []
