# tests/snappy/core/test_core.py
from __future__ import annotations
import json
import logging
import os
import threading
from pathlib import Path

import pytest

from snappy.core.commands import runCommand
from snappy.core.errors import CommandFailed, InterfaceNotAllowed, PartialInstallFailure, SnappyError
from snappy.core.fsutil import atomicSymlink, atomicWriteText, copyTree, linkTree, removePath
from snappy.core.hashing import sha256File
from snappy.core.ids import stagingToken, transactionId, uuidv7
from snappy.core.logging import clearLogContext, configureLogging, getLogContext, resetLogContext, setLogContext
from snappy.core.logging.formatters import DevFormatter, JsonFormatter, RedactingFormatter
from snappy.core.redaction import redactText
from snappy.core.tracing import TraceHub, Tracer


# ----------------------------------------
# Errors
# ----------------------------------------

def test_errors_carryCodeAndExtra() -> None:
    err = InterfaceNotAllowed("network", "foo", "app")
    assert isinstance(err, SnappyError)
    assert err.extra == {"interface": "network", "snap": "foo", "type": "app"}
    assert err.code

    partial = PartialInstallFailure("boom", phase="hooks")
    assert partial.phase == "hooks"


# ----------------------------------------
# Commands
# ----------------------------------------

def test_runCommand_rejectsEmptyArgs() -> None:
    with pytest.raises(ValueError):
        runCommand([])


def test_runCommand_missingToolIsCommandFailed(tmp_path: Path) -> None:
    with pytest.raises(CommandFailed) as excInfo:
        runCommand([str(tmp_path / "no-such-tool")])
    assert excInfo.value.returncode is None


def test_runCommand_nonZeroExitCarriesOutput() -> None:
    with pytest.raises(CommandFailed) as excInfo:
        runCommand(["sh", "-c", "echo broken; exit 3"])
    assert excInfo.value.returncode == 3
    assert excInfo.value.output == "broken"


# ----------------------------------------
# Filesystem helpers
# ----------------------------------------

def test_atomicWriteText_modeAndNoLeftovers(tmp_path: Path) -> None:
    target = tmp_path / "sub" / "file"
    atomicWriteText(target, "one", mode=0o755)
    atomicWriteText(target, "two", mode=0o755)

    assert target.read_text(encoding="utf-8") == "two"
    assert target.stat().st_mode & 0o777 == 0o755
    assert [p.name for p in target.parent.iterdir()] == ["file"]


def test_atomicSymlink_replacesExisting(tmp_path: Path) -> None:
    link = tmp_path / "current"
    atomicSymlink("1.0", link)
    atomicSymlink("2.0", link)
    assert link.readlink() == Path("2.0")


def test_removePath_andCopyTree(tmp_path: Path) -> None:
    src = tmp_path / "src"
    (src / "deep").mkdir(parents=True)
    (src / "deep" / "f").write_text("x", encoding="utf-8")
    copyTree(src, tmp_path / "dst")

    assert (tmp_path / "dst" / "deep" / "f").read_text(encoding="utf-8") == "x"
    assert removePath(tmp_path / "dst") is True
    assert removePath(tmp_path / "dst") is False


def test_linkTree_sharesInodesAndSurvivesSourceRemoval(tmp_path: Path) -> None:
    src = tmp_path / "src"
    (src / "bin").mkdir(parents=True)
    (src / "bin" / "tool").write_text("v1", encoding="utf-8")
    (src / "link").symlink_to("bin/tool")

    linkTree(src, tmp_path / "mirror")

    mirror = tmp_path / "mirror"
    assert os.path.samefile(src / "bin" / "tool", mirror / "bin" / "tool")
    assert os.readlink(mirror / "link") == "bin/tool"
    removePath(src)
    assert (mirror / "bin" / "tool").read_text(encoding="utf-8") == "v1"


# ----------------------------------------
# Ids / hashing / redaction
# ----------------------------------------

def test_ids_areUniqueAndPrefixed() -> None:
    assert uuidv7(prefix="span_").startswith("span_")
    assert len({stagingToken() for _ in range(100)}) == 100
    assert transactionId() != transactionId()


def test_sha256(tmp_path: Path) -> None:
    path = tmp_path / "f"
    path.write_text("abc", encoding="utf-8")
    expected = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert sha256File(path) == expected


@pytest.mark.parametrize(
    ("text", "secret"),
    [
        ("Authorization: Bearer abc.def-ghi", "abc.def-ghi"),
        ('{"password": "hunter2"}', "hunter2"),
        ("public-keys:\n  - ssh-rsa AAAAB3Nza user@host", "AAAAB3Nza"),
    ],
)
def test_redactText(text: str, secret: str) -> None:
    out = redactText(text)
    assert secret not in out
    assert "***" in out


# ----------------------------------------
# Logging
# ----------------------------------------

def _record(msg: str) -> logging.LogRecord:
    return logging.LogRecord("snappy.test", logging.INFO, __file__, 1, msg, None, None)


def test_devFormatter_showsSnapContext() -> None:
    token = setLogContext(snap="foo", version="1.0", txnId="txn_1")
    try:
        out = DevFormatter().format(_record("installing"))
    finally:
        resetLogContext(token)
    assert out == "INFO: [snappy.test] installing [foo/1.0]"
    assert (getLogContext() or {}).get("snap") != "foo"


def test_jsonFormatter_redactedThroughWrapper() -> None:
    token = setLogContext(snap="foo")
    try:
        out = RedactingFormatter(JsonFormatter()).format(_record("store auth Bearer s3cret"))
    finally:
        resetLogContext(token)
    data = json.loads(out)
    assert data["ctx"] == {"snap": "foo"}
    assert "s3cret" not in data["msg"]


def test_configureLogging_fileHandler(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    logFile = tmp_path / "snappy.log"
    try:
        configureLogging({"debug": {"devModeEnabled": True}, "logging": {"file": str(logFile)}})
        assert root.level == logging.DEBUG
        logging.getLogger("snappy.test").debug("hello file")
        for handler in root.handlers:
            handler.flush()
        assert "hello file" in logFile.read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])
        clearLogContext()


# ----------------------------------------
# Tracing
# ----------------------------------------

def test_tracer_spanContextFlowsIntoEvents() -> None:
    hub = TraceHub(capacity=10)
    tracer = Tracer(hub)

    span = tracer.startSpan("install", attrs={"snap": "foo"})
    tracer.traceEvent("install.lifecycle", attrs={"phase": "unpacked"})
    tracer.endSpan(span)
    tracer.endSpan(span)

    records = hub.snapshot()
    assert [rec["recordType"] for rec in records] == ["spanStart", "event", "spanEnd"]
    event = records[1]
    assert event["snap"] == "foo" and event["phase"] == "unpacked"
    assert event["spanId"] == span.spanId


def test_traceHub_ringBufferAndBrokenListener() -> None:
    hub = TraceHub(capacity=2)
    seen: list[int] = []

    def broken(record) -> None:
        raise RuntimeError("listener bug")

    hub.subscribe(broken)
    hub.subscribe(lambda record: seen.append(record["n"]))
    for n in range(3):
        hub.emit({"n": n})

    assert [rec["n"] for rec in hub.snapshot()] == [1, 2]
    assert seen == [0, 1, 2]


def test_tracer_isThreadSafe() -> None:
    hub = TraceHub(capacity=1000)
    tracer = Tracer(hub)

    def work() -> None:
        for _ in range(50):
            tracer.traceEvent("tick")

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    seqs = [rec["seq"] for rec in hub.snapshot()]
    assert len(seqs) == 200
    assert len(set(seqs)) == 200


def test_tracer_spanContextManagerRecordsError() -> None:
    hub = TraceHub()
    tracer = Tracer(hub)

    with pytest.raises(RuntimeError):
        with tracer.span("remove", {"snap": "foo"}, tags=["install"]):
            raise RuntimeError("disk full")

    end = hub.snapshot()[-1]
    assert end["recordType"] == "spanEnd"
    assert end["status"] == "error"
    assert end["errorType"] == "RuntimeError"
    assert "error" in end["tags"]
    assert tracer.activeSpan() is None
