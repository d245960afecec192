import pytest
from ctms_client import hal
from ctms_client.errors import StateError


def test_get_link_href_single_and_list():
    payload = {
        "_links": {
            "self": {"href": "/items/a"},
            "aa:assets": [{"href": "/assets/1"}, {"href": "/assets/2"}],
            "empty": [],
        }
    }
    assert hal.get_link_href(payload, "self") == "/items/a"
    assert hal.get_link_href(payload, "aa:assets") == "/assets/1"
    assert hal.get_link_href(payload, "empty") is None
    assert hal.get_link_href(payload, "missing") is None
    assert hal.get_link_href({}, "self") is None


def test_require_link_href_names_the_relation():
    with pytest.raises(StateError) as exc:
        hal.require_link_href({"_links": {}}, "loc:move-item", ref="/Projects/A/")

    assert exc.value.relation == "loc:move-item"
    assert "loc:move-item" in str(exc.value)
    assert "/Projects/A/" in str(exc.value)


def test_has_link_and_embedded():
    payload = {
        "_links": {"loc:delete-item": {"href": "/d"}},
        "_embedded": {"loc:collection": {"paging": {}}},
    }
    assert hal.has_link(payload, "loc:delete-item")
    assert not hal.has_link(payload, "loc:update-item")
    assert hal.get_embedded(payload, "loc:collection") == {"paging": {}}
    assert hal.get_embedded({"_embedded": None}, "loc:collection") is None


def test_strip_template_drops_every_expression():
    href = "https://ctms.test/registry/serviceroots{?service,version}"
    assert hal.strip_template(href) == "https://ctms.test/registry/serviceroots"
    assert hal.strip_template("/a/{id}/b{&x}") == "/a//b"


def test_expand_template_encodes_path_variables():
    href = "/locations/items/{id}{?offset,limit}"
    assert hal.expand_template(href, id="/Projects/A b/") == (
        "/locations/items/%2FProjects%2FA%20b%2F"
    )


def test_expand_template_removes_unknown_variables():
    assert hal.expand_template("/assets/{id}/{other}", id="42") == "/assets/42/"


def test_last_path_segment():
    assert hal.last_path_segment("/Projects/Daily/") == "Daily"
    assert hal.last_path_segment("https://ctms.test/res/r-1") == "r-1"
    assert hal.last_path_segment("/") is None
    assert hal.last_path_segment(None) is None
