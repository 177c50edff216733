# tests/snappy/interfaces/test_composer_property.py
from __future__ import annotations

import pytest

hypothesis = pytest.importorskip("hypothesis")
from hypothesis import given, strategies as st  # type: ignore[no-redef]

from snappy.interfaces.builtin import BUILTIN_INTERFACE_NAMES
from snappy.interfaces.composer import AppContext, Connection, PolicyComposer, templateVariables
from snappy.interfaces.registry import defaultRegistry

REGISTRY = defaultRegistry()

# Names as they occur in package.yaml: no quotes or newlines
name_strat = st.text(
    alphabet=st.characters(whitelist_categories=("Ll", "Lu", "Nd"), whitelist_characters="-._+"),
    min_size=1,
    max_size=12,
)

app_strat = st.builds(
    AppContext,
    appName=name_strat,
    snapName=name_strat,
    revision=name_strat,
    installDir=st.sampled_from(["/apps", "/oem", "/kernel"]),
)

connections_strat = st.lists(st.sampled_from(BUILTIN_INTERFACE_NAMES), max_size=8).map(
    lambda names: [Connection(name, REGISTRY.lookup(name)) for name in names]
)


@given(app_strat, connections_strat)
def test_compose_isDeterministic(app: AppContext, connections: list[Connection]) -> None:
    first = PolicyComposer().compose(app, connections)
    second = PolicyComposer().compose(app, list(connections))
    assert first == second


@given(app_strat, connections_strat)
def test_compose_fragmentsFollowConnectionOrder(app: AppContext, connections: list[Connection]) -> None:
    profile = PolicyComposer().compose(app, connections)

    variables = templateVariables(app)
    varsEnd = profile.appArmor.index(variables) + len(variables)
    expected = "".join(conn.interface.appArmorSnippet(app) for conn in connections)
    assert profile.appArmor.find(expected, varsEnd) != -1
    assert profile.interfaces == tuple(conn.interface.name for conn in connections)
