import logging
from pathlib import Path

import pytest
from fastapi.templating import Jinja2Templates
from starlette.requests import Request

from portal.auth.session import SCOPE_KEY, SessionContext
from portal.layouts import discover_layouts
from portal.rendering import NO_LAYOUT, Renderer, select_layout


def _request(query: bytes = b"", ctx: SessionContext = None) -> Request:
    scope = {"type": "http", "method": "GET", "path": "/", "headers": [], "query_string": query}
    if ctx is not None:
        scope[SCOPE_KEY] = ctx
    return Request(scope)


@pytest.fixture()
def renderer(tmp_path: Path) -> Renderer:
    tdir = tmp_path / "templates"
    (tdir / "layouts").mkdir(parents=True)
    (tdir / "layouts" / "default.html").write_text("<main class='default'>{{ body }}</main>", encoding="utf-8")
    (tdir / "layouts" / "admin.html").write_text("<main class='admin'>{{ body }}</main>", encoding="utf-8")
    (tdir / "page.html").write_text(
        "<p>{{ greeting }} {{ helpers.display_name() }} {{ messages.error or '' }}</p>", encoding="utf-8"
    )
    registry = discover_layouts(tdir / "layouts")
    return Renderer(Jinja2Templates(directory=str(tdir)), registry, globals={"app_name": "T"})


def test_default_layout_wraps_view(renderer):
    resp = renderer.render(_request(), "page", {"greeting": "Hi"})
    html = resp.body.decode()
    assert "<main class='default'>" in html
    assert "<p>Hi Guest </p>" in html


def test_named_layout_and_namespace_prefix(renderer):
    html = renderer.render(_request(), "page", {"greeting": "Hi"}, layout="layouts/admin").body.decode()
    assert "<main class='admin'>" in html


def test_unknown_layout_falls_back(renderer):
    html = renderer.render(_request(), "page", {"greeting": "Hi"}, layout="../secret").body.decode()
    assert "<main class='default'>" in html


def test_no_layout_renders_bare(renderer):
    for option in (NO_LAYOUT, False):
        html = renderer.render(_request(), "page", {"greeting": "Hi"}, layout=option).body.decode()
        assert html.startswith("<p>Hi")
        assert "<main" not in html


def test_query_messages_reach_the_view(renderer):
    html = renderer.render(_request(b"error=Oops"), "page", {"greeting": "Hi"}).body.decode()
    assert "Oops" in html


def test_render_logs_chosen_layout(renderer, caplog):
    with caplog.at_level(logging.INFO, logger="portal.rendering"):
        renderer.render(_request(), "page", {"greeting": "Hi"}, layout="admin")
        renderer.render(_request(), "page", {"greeting": "Hi"}, layout=NO_LAYOUT)
    lines = [r.getMessage() for r in caplog.records if r.name == "portal.rendering"]
    assert "Rendering page.html with layout: layouts/admin.html" in lines
    assert "Rendering page.html with layout: none" in lines


def test_render_does_not_touch_registry(renderer):
    before = renderer.registry.as_dict()
    renderer.render(_request(), "page", {"greeting": "Hi"}, layout="brand-new")
    assert renderer.registry.as_dict() == before


def test_select_layout_sentinels(renderer):
    reg = renderer.registry
    assert select_layout(reg, NO_LAYOUT, "default") is None
    assert select_layout(reg, None, "default") == "layouts/default.html"
    assert select_layout(reg, "admin", "default") == "layouts/admin.html"
