import logging

import pytest
from pydantic import ValidationError

from fronda import Err, Ok, ResolutionState, ResolverConfig
from fronda._internal import Declaration, logger
from fronda.errors import CacheOverwriteError, NoActivePassError

logger.setLevel(logging.DEBUG)


async def fetch_nothing(context):
    return None


def test_begin_pass():
    """
    Test that every pass opens its own, empty declaration list.
    """
    state = ResolutionState.server()
    assert state.pass_index == -1
    assert state.num_passes == 0

    assert state.begin_pass() == 0
    state.record_declaration(Declaration("a", fetch_nothing))
    assert state.begin_pass() == 1

    assert state.num_passes == 2
    assert [d.key for d in state.declarations_by_pass[0]] == ["a"]
    assert state.current_declarations == []


def test_record_before_pass():
    state = ResolutionState.server()
    with pytest.raises(NoActivePassError):
        state.record_declaration(Declaration("a", fetch_nothing))


def test_cache_is_write_once():
    """
    Test that a key cannot be written twice, whether it holds a value or an error.
    """
    state = ResolutionState.server()
    state.store_result("a", Ok(1))
    state.store_result("b", Err(ValueError("nope")))

    with pytest.raises(CacheOverwriteError):
        state.store_result("a", Ok(2))
    with pytest.raises(CacheOverwriteError):
        state.store_result("b", Ok(2))

    assert state.get_data("a") == 1
    assert state.get_data("b") is None
    assert state.get_data("missing") is None
    assert state.error_keys == ("b",)


def test_snapshot_round_trips_into_client():
    """
    Test that a server snapshot can seed a client state, errors included.
    """
    server = ResolutionState.server()
    server.store_result("a", Ok({"v": 1}))
    server.store_result("b", Err(ValueError("nope")))

    snapshot = server.snapshot()
    assert snapshot["a"] == {"v": 1}
    assert isinstance(snapshot["b"], Err)

    client = ResolutionState.client(server_data=snapshot)
    assert client.get_result("a") == Ok({"v": 1})
    assert client.get_result("b").is_error
    assert client.error_keys == ("b",)


def test_mark_first_render_done():
    """
    Test that the first-render flag flips once and for all, releasing the server cache.
    """
    state = ResolutionState.client(server_data={"a": 1})
    assert state.is_first_render
    assert state.has_result("a")

    state.mark_first_render_done()
    assert not state.is_first_render
    assert state.cache == {}

    state.mark_first_render_done()
    assert not state.is_first_render


def test_options_and_config():
    state = ResolutionState.server(logging=True, max_passes=3)
    assert state.logging
    assert state.config.max_passes == 3

    with pytest.raises(AttributeError):
        state.logging = False

    with pytest.raises(ValueError):
        ResolutionState.server(config=ResolverConfig(), logging=True)

    with pytest.raises(ValueError):
        ResolutionState(state.mode, server_data={"a": 1})


def test_config_validation():
    with pytest.raises(ValidationError):
        ResolverConfig(max_passes=0)

    config = ResolverConfig()
    with pytest.raises(ValidationError):
        config.logging = True


def test_unknown_option_is_rejected():
    """
    Test that a mistyped option fails loudly instead of being ignored.
    """
    with pytest.raises(ValidationError):
        ResolutionState.server(loging=True)

    with pytest.raises(ValidationError):
        ResolverConfig(max_pass=2)


def test_client_binding_registry():
    """
    Test that client bindings are matched by key and call order within a render, and that bindings
    left out of a render are handed back as stale.
    """
    state = ResolutionState.client()
    first, second, other = object(), object(), object()

    state.begin_render()
    state.register_binding(state.binding_identity("a"), first)
    state.register_binding(state.binding_identity("a"), second)
    state.register_binding(state.binding_identity("b", node="sidebar"), other)
    assert state.end_render() == []

    state.begin_render()
    assert state.find_binding(state.binding_identity("a")) is first
    assert state.find_binding(state.binding_identity("b", node="sidebar")) is other
    assert state.end_render() == [second]

    state.begin_render()
    assert state.find_binding(state.binding_identity("a")) is first
    assert state.find_binding(state.binding_identity("a")) is None


def test_track_binding_after_first_render():
    server = ResolutionState.server()
    server.track_binding(object())
    assert server.drain_bindings() == []

    client = ResolutionState.client()
    client.mark_first_render_done()
    binding = object()
    client.track_binding(binding)
    assert client.drain_bindings() == [binding]
    assert client.drain_bindings() == []
