"""Shared fixtures for cursorflow tests."""

import pytest

from cursorflow.db import create_db_for_path, crud


@pytest.fixture
def Session(tmp_path):
    """Session factory over a fresh SQLite database."""
    engine, Session = create_db_for_path(str(tmp_path / "flows.db"))
    yield Session
    engine.dispose()


@pytest.fixture
def session(Session):
    """A database session."""
    with Session() as session:
        yield session


@pytest.fixture
def flow(session):
    """A draft flow."""
    return crud.insert_flow(session, {
        "name": "Create invoice",
        "organization_id": "org-1",
        "created_by": "user-1",
    })


def click(x, y, text=None, url="https://app.example.com/", viewport=(1280, 720), **extra):
    """Build a raw click interaction."""
    element = {"tagName": "BUTTON", "textContent": text}
    if viewport is not None:
        element["viewport"] = {
            "width": viewport[0],
            "height": viewport[1],
            "scrollX": 0,
            "scrollY": 0,
            "devicePixelRatio": 2,
        }
    return {
        "type": "click",
        "element": element,
        "position": {"x": x, "y": y},
        "pageInfo": {"url": url, "title": "App"},
        **extra,
    }


def navigation(from_url, to_url, **extra):
    """Build a raw navigation interaction."""
    return {
        "type": "navigation",
        "fromPage": from_url,
        "pageInfo": {"url": to_url},
        **extra,
    }


def make_capture(*interactions):
    """Wrap interactions in a capture document."""
    return {"recording": {"interactions": list(interactions)}}


@pytest.fixture
def capture():
    """A two-step capture: a click then a navigation."""
    return make_capture(
        click(200, 300, text="Submit", url="https://a/"),
        navigation("https://a/", "https://a/b"),
    )
