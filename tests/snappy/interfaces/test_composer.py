# tests/snappy/interfaces/test_composer.py
from __future__ import annotations

import pytest

from snappy.core.errors import InterfaceNotAllowed, UnknownInterface, UnknownSecurityTemplate
from snappy.interfaces.builtin import NETWORK_APPARMOR, NETWORK_SECCOMP
from snappy.interfaces.composer import (
    AppContext,
    Connection,
    PolicyComposer,
    profileName,
    resolveConnections,
    templateVariables,
)
from snappy.interfaces.registry import Interface, defaultRegistry
from snappy.manifest.models import PackageManifest
from snappy.manifest.reader import parsePackageYaml, synthesizeClickManifest


def _manifest(text: str) -> PackageManifest:
    pkg = parsePackageYaml(text)
    return PackageManifest(packageYaml=pkg, click=synthesizeClickManifest(pkg))


APP = AppContext(appName="foo", snapName="foo", revision="1.0", installDir="/apps")


# ----------------------------
# Variables
# ----------------------------

def test_templateVariables_fixedOrderAndFormat() -> None:
    assert templateVariables(APP) == (
        '@{APP_NAME}="foo"\n'
        '@{SNAP_NAME}="foo"\n'
        '@{SNAP_REVISION}="1.0"\n'
        '@{INSTALL_DIR}="/apps"'
    )


def test_compose_variablesPrecedeInterfaceText() -> None:
    network = defaultRegistry().lookup("network")
    profile = PolicyComposer().compose(APP, [Connection("network", network)])

    varsAt = profile.appArmor.index('@{APP_NAME}="foo"')
    assert varsAt < profile.appArmor.index('@{SNAP_NAME}="foo"')
    assert profile.appArmor.index('@{INSTALL_DIR}="/apps"') < profile.appArmor.index(NETWORK_APPARMOR)
    assert NETWORK_SECCOMP in profile.secComp


def test_compose_variablesPresentWithoutConnections() -> None:
    profile = PolicyComposer().compose(APP, [])
    assert templateVariables(APP) in profile.appArmor
    assert profile.interfaces == ()


# ----------------------------
# Ordering
# ----------------------------

def test_compose_keepsConnectionOrderAndDuplicates() -> None:
    first = Interface(name="first", connectedPlugAppArmor="\n# first\n", connectedPlugSecComp="\nfirst\n")
    second = Interface(name="second", connectedPlugAppArmor="\n# second\n", connectedPlugSecComp="\nsecond\n")
    connections = [Connection("a", second), Connection("b", first), Connection("c", second)]

    profile = PolicyComposer().compose(APP, connections)

    assert "\n# second\n\n# first\n\n# second\n" in profile.appArmor
    assert profile.secComp.count("\nsecond\n") == 2
    assert profile.interfaces == ("second", "first", "second")


def test_compose_isByteIdenticalAcrossCalls() -> None:
    registry = defaultRegistry()
    connections = [Connection(name, registry.lookup(name)) for name in ("home", "unity7", "network-bind")]
    composer = PolicyComposer()

    assert composer.compose(APP, connections) == composer.compose(APP, list(connections))
    assert composer.compose(APP, connections) == PolicyComposer().compose(APP, connections)


# ----------------------------
# Templates
# ----------------------------

def test_compose_defaultProfileNameAndAttach() -> None:
    profile = PolicyComposer().compose(APP, [])
    assert profile.name == "foo_foo_1.0"
    assert 'profile "foo_foo_1.0" (attach_disconnected) {' in profile.appArmor


def test_compose_unconfinedTemplate() -> None:
    profile = PolicyComposer().compose(APP, [], "unconfined", name="unconfined")
    assert "(attach_disconnected,complain)" in profile.appArmor
    assert "@unrestricted" in profile.secComp


def test_compose_unknownTemplateRaises() -> None:
    with pytest.raises(UnknownSecurityTemplate):
        PolicyComposer().compose(APP, [], "no-such-template")


def test_composer_unknownDefaultTemplateRaises() -> None:
    with pytest.raises(UnknownSecurityTemplate):
        PolicyComposer(defaultTemplate="nope")


def test_profileName_precedence() -> None:
    manifest = _manifest(
        """name: foo
version: 1.0
binaries:
 - name: bin/app
 - name: bin/tpl
   security-template: some-security-json
 - name: bin/pol
   security-policy: some-profile
   security-template: ignored
"""
    )
    app, tpl, pol = manifest.binaries

    assert profileName(manifest, app) == "foo_app_1.0"
    assert profileName(manifest, tpl) == "some-security-json"
    assert profileName(manifest, pol) == "some-profile"


# ----------------------------
# Connection resolution
# ----------------------------

def test_resolveConnections_autoConnectForApp() -> None:
    manifest = _manifest("name: foo\nversion: 1.0\nbinaries:\n - name: bin/foo\n")
    connections = resolveConnections(defaultRegistry(), manifest, "foo")

    names = [c.interface.name for c in connections]
    assert names == ["network-bind", "home", "unity7", "x11", "opengl"]
    assert "network" not in names


def test_resolveConnections_autoConnectForOemIncludesNetwork() -> None:
    manifest = _manifest("name: foo\nversion: 1.0\ntype: oem\nbinaries:\n - name: bin/foo\n")
    connections = resolveConnections(defaultRegistry(), manifest, "foo")

    assert connections[0].interface.name == "network"


def test_resolveConnections_unknownDeclaredPlugRaises() -> None:
    manifest = _manifest("name: foo\nversion: 1.0\nplugs: [teleport]\nbinaries:\n - name: bin/foo\n")
    with pytest.raises(UnknownInterface):
        resolveConnections(defaultRegistry(), manifest, "foo")


def test_resolveConnections_reservedDeclaredPlugOnAppRaises() -> None:
    manifest = _manifest("name: foo\nversion: 1.0\nplugs: [network]\nbinaries:\n - name: bin/foo\n")
    with pytest.raises(InterfaceNotAllowed):
        resolveConnections(defaultRegistry(), manifest, "foo")


def test_resolveConnections_declaredManualPlugStaysDisconnected() -> None:
    manifest = _manifest("name: foo\nversion: 1.0\nplugs: [log-observe]\nbinaries:\n - name: bin/foo\n")
    names = [c.interface.name for c in resolveConnections(defaultRegistry(), manifest, "foo")]
    assert "log-observe" not in names


def test_resolveConnections_explicitDecisionsInGivenOrder() -> None:
    manifest = _manifest(
        "name: foo\nversion: 1.0\nplugs:\n  logs: log-observe\nbinaries:\n - name: bin/foo\n"
    )
    decisions = {"foo": ["logs", "home", "home"]}

    connections = resolveConnections(defaultRegistry(), manifest, "foo", decisions)

    assert [(c.plug, c.interface.name) for c in connections] == [
        ("logs", "log-observe"),
        ("home", "home"),
        ("home", "home"),
    ]


def test_resolveConnections_explicitReservedOnAppRaises() -> None:
    manifest = _manifest("name: foo\nversion: 1.0\nbinaries:\n - name: bin/foo\n")
    with pytest.raises(InterfaceNotAllowed):
        resolveConnections(defaultRegistry(), manifest, "foo", {"foo": ["network"]})


def test_resolveConnections_decisionsForOtherAppFallBackToAuto() -> None:
    manifest = _manifest("name: foo\nversion: 1.0\nbinaries:\n - name: bin/foo\n - name: bin/bar\n")
    connections = resolveConnections(defaultRegistry(), manifest, "bar", {"foo": ["home"]})
    assert [c.interface.name for c in connections][0] == "network-bind"


# ----------------------------
# composeForApp
# ----------------------------

def test_composeForApp_oemGetsNetworkPolicy() -> None:
    manifest = _manifest("name: foo\nversion: 1.0\ntype: oem\nbinaries:\n - name: bin/foo\n")
    profile = PolicyComposer().composeForApp(defaultRegistry(), manifest, manifest.binaries[0], "/oem")

    assert profile.name == "foo_foo_1.0"
    assert '@{INSTALL_DIR}="/oem"' in profile.appArmor
    assert NETWORK_APPARMOR in profile.appArmor
    assert NETWORK_SECCOMP in profile.secComp


def test_composeForApp_securityTemplateSelectsTemplateAndName() -> None:
    manifest = _manifest(
        "name: foo\nversion: 1.0\nbinaries:\n - name: bin/foo\n   security-template: unconfined\n"
    )
    profile = PolicyComposer().composeForApp(defaultRegistry(), manifest, manifest.binaries[0], "/apps")

    assert profile.name == "unconfined"
    assert "@unrestricted" in profile.secComp


def test_composeForApp_unknownSecurityTemplateRaises() -> None:
    manifest = _manifest(
        "name: foo\nversion: 1.0\nbinaries:\n - name: bin/foo\n   security-template: bespoke\n"
    )
    with pytest.raises(UnknownSecurityTemplate):
        PolicyComposer().composeForApp(defaultRegistry(), manifest, manifest.binaries[0], "/apps")
