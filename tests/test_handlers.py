import json

import pytest

from taskorch.core.handlers import (
    DEFAULT_REGISTRY,
    HUMAN,
    UNROUTED,
    Handler,
    HandlerRegistry,
    Known,
    RegistryError,
    handler_id_of,
    handler_ref,
    load_registry,
)


# ── Handler references ───────────────────────────────────────

def test_handler_ref_known() -> None:
    ref = handler_ref("Scout")
    assert ref == Known("scout")
    assert str(ref) == "scout"
    assert handler_id_of(ref) == "scout"


def test_handler_ref_human_is_unrouted() -> None:
    assert handler_ref("human") is UNROUTED
    assert handler_ref(" Human ") == UNROUTED
    assert handler_ref("") == UNROUTED
    assert handler_ref(None) == UNROUTED
    assert handler_id_of(UNROUTED) == HUMAN
    assert str(UNROUTED) == "human"


# ── Registry ─────────────────────────────────────────────────

def test_default_registry_order() -> None:
    reg = HandlerRegistry()
    assert reg.ids() == ["scout", "builder", "marketer", "analyst", "archivist", "human"]
    assert len(reg) == len(DEFAULT_REGISTRY)


def test_get_is_case_insensitive() -> None:
    reg = HandlerRegistry()
    assert reg.get("BUILDER").display_name == "Builder"
    assert reg.get("nobody") is None


def test_display_name_for_refs() -> None:
    reg = HandlerRegistry()
    assert reg.display_name(Known("marketer")) == "Marketer"
    assert reg.display_name(UNROUTED) == "Human"
    assert reg.display_name(Known("ghost")) == "ghost"


def test_available_filters_unavailable() -> None:
    reg = HandlerRegistry([
        Handler(id="a", display_name="A", keywords=("x",)),
        Handler(id="b", display_name="B", keywords=("y",), available=False),
    ])
    assert [h.id for h in reg.available()] == ["a"]


def test_duplicate_ids_rejected() -> None:
    with pytest.raises(RegistryError):
        HandlerRegistry([
            Handler(id="a", display_name="A", keywords=()),
            Handler(id="a", display_name="A2", keywords=()),
        ])


def test_from_specs_validates() -> None:
    reg = HandlerRegistry.from_specs([
        {"id": "Writer", "displayName": "Writer", "keywords": ["blog", " "], "command": "echo hi"},
    ])
    handler = reg.get("writer")
    assert handler is not None
    assert handler.keywords == ("blog",)
    assert handler.command == "echo hi"

    with pytest.raises(RegistryError):
        HandlerRegistry.from_specs([{"id": "x"}])  # displayName missing
    with pytest.raises(RegistryError):
        HandlerRegistry.from_specs({"id": "x"})


def test_from_file_and_load_registry(tmp_path, monkeypatch) -> None:
    path = tmp_path / "handlers.json"
    path.write_text(json.dumps([
        {"id": "ops", "displayName": "Ops", "keywords": ["server", "outage"]},
    ]))
    assert HandlerRegistry.from_file(str(path)).ids() == ["ops"]

    monkeypatch.setenv("TASKORCH_REGISTRY_FILE", str(path))
    assert load_registry().ids() == ["ops"]

    monkeypatch.delenv("TASKORCH_REGISTRY_FILE")
    assert load_registry().ids()[0] == "scout"


def test_from_file_unreadable(tmp_path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(RegistryError):
        HandlerRegistry.from_file(str(bad))
    with pytest.raises(RegistryError):
        HandlerRegistry.from_file(str(tmp_path / "missing.json"))
