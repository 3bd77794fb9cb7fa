"""Tests for the rig CLI adapter (reads only)."""

import json

import pytest

from rig_manager.adapters.rig_cli import RigBackend, decode_listing
from rig_manager.core.domain.models import AvailableVersion, InstalledVersion
from rig_manager.core.errors import BackendUnavailable, MalformedOutput
from rig_manager.core.interfaces.backend import CompletedOutput

from conftest import FakeRunner, make_settings


LIST_OUTPUT = json.dumps(
    [
        {
            "name": "4.2.0",
            "default": False,
            "version": "4.2.0",
            "aliases": ["oldrel"],
            "path": "/opt/R/4.2.0",
            "binary": "/opt/R/4.2.0/bin/R",
        },
        {
            "name": "4.3.1",
            "default": True,
            "version": "4.3.1",
            "aliases": ["release"],
            "path": "/opt/R/4.3.1",
            "binary": "/opt/R/4.3.1/bin/R",
        },
    ]
)

AVAILABLE_OUTPUT = json.dumps(
    [
        {"name": "4.4.1", "version": "4.4.1", "type": "release", "date": "2024-06-14T07:11:00Z"},
        {"name": "devel", "version": "4.5.0", "type": "devel", "date": None, "url": "https://example.org/R-devel.pkg"},
    ]
)

WINDOWS_OUTPUT = (
    '[{"name": "4.3.1", "default": true, "version": "4.3.1", "aliases": [], '
    '"path": "C:\\Program Files\\R\\R-4.3.1", "binary": "C:\\Program Files\\R\\R-4.3.1\\bin\\R.exe"}]'
)


def ok(stdout: str) -> CompletedOutput:
    return CompletedOutput(returncode=0, stdout=stdout, stderr="")


def make_backend(*outputs, sanitize_paths: bool = False, **settings) -> tuple[RigBackend, FakeRunner]:
    runner = FakeRunner()
    runner.outputs.extend(outputs)
    return RigBackend(lambda: make_settings(**settings), runner=runner, sanitize_paths=sanitize_paths), runner


class TestListInstalled:
    @pytest.mark.asyncio
    async def test_decodes_listing(self):
        backend, runner = make_backend(ok(LIST_OUTPUT))
        versions = await backend.list_installed()

        assert runner.run_calls[0][0] == ["rig", "list", "--json"]
        assert [v.name for v in versions] == ["4.2.0", "4.3.1"]
        default = [v for v in versions if v.is_default]
        assert len(default) == 1
        assert default[0].binary == "/opt/R/4.3.1/bin/R"
        assert versions[0].aliases == ["oldrel"]

    @pytest.mark.asyncio
    async def test_uses_configured_executable_and_read_timeout(self):
        backend, runner = make_backend(ok("[]"), rig_executable="/usr/local/bin/rig", read_timeout_seconds=5)
        assert await backend.list_installed() == []
        argv, timeout = runner.run_calls[0]
        assert argv[0] == "/usr/local/bin/rig"
        assert timeout == 5

    @pytest.mark.asyncio
    async def test_default_version(self):
        backend, _ = make_backend(ok(LIST_OUTPUT))
        default = await backend.default_version()
        assert default is not None and default.name == "4.3.1"

    @pytest.mark.asyncio
    async def test_windows_paths_are_sanitized(self):
        backend, _ = make_backend(ok(WINDOWS_OUTPUT), sanitize_paths=True)
        versions = await backend.list_installed()
        assert versions[0].path == "C:\\Program Files\\R\\R-4.3.1"

    @pytest.mark.asyncio
    async def test_unsanitized_windows_paths_are_malformed(self):
        backend, _ = make_backend(ok(WINDOWS_OUTPUT), sanitize_paths=False)
        with pytest.raises(MalformedOutput) as excinfo:
            await backend.list_installed()
        assert excinfo.value.raw == WINDOWS_OUTPUT

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_backend_unavailable(self):
        backend, _ = make_backend(CompletedOutput(returncode=2, stdout="", stderr="boom"))
        with pytest.raises(BackendUnavailable) as excinfo:
            await backend.list_installed()
        assert excinfo.value.exit_code == 2
        assert excinfo.value.stderr == "boom"

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        backend, _ = make_backend(FileNotFoundError("rig"))
        with pytest.raises(BackendUnavailable, match="not found"):
            await backend.list_installed()

    @pytest.mark.asyncio
    async def test_timeout(self):
        backend, _ = make_backend(TimeoutError("slow"))
        with pytest.raises(BackendUnavailable, match="timed out"):
            await backend.list_installed()

    @pytest.mark.asyncio
    async def test_two_defaults_rejected(self):
        data = json.loads(LIST_OUTPUT)
        data[0]["default"] = True
        backend, _ = make_backend(ok(json.dumps(data)))
        with pytest.raises(MalformedOutput, match="more than one default"):
            await backend.list_installed()

    @pytest.mark.asyncio
    async def test_no_default_is_allowed(self):
        data = json.loads(LIST_OUTPUT)
        data[1]["default"] = False
        backend, _ = make_backend(ok(json.dumps(data)))
        versions = await backend.list_installed()
        assert not any(v.is_default for v in versions)


class TestListAvailable:
    @pytest.mark.asyncio
    async def test_decodes_catalog(self):
        backend, runner = make_backend(ok(AVAILABLE_OUTPUT))
        versions = await backend.list_available()

        assert runner.run_calls[0][0] == ["rig", "available", "--json"]
        assert [v.type for v in versions] == ["release", "devel"]
        assert versions[0].date is not None and versions[0].date.year == 2024
        assert versions[1].date is None


class TestDecodeListing:
    def test_not_a_list(self):
        with pytest.raises(MalformedOutput, match="not a list"):
            decode_listing('{"name": "4.3.1"}', InstalledVersion)

    def test_invalid_entries(self):
        with pytest.raises(MalformedOutput) as excinfo:
            decode_listing('[{"default": true}]', InstalledVersion)
        assert excinfo.value.raw == '[{"default": true}]'

    def test_null_is_empty(self):
        assert decode_listing("null", AvailableVersion) == []

    def test_garbage(self):
        with pytest.raises(MalformedOutput, match="invalid JSON"):
            decode_listing("Error: something went wrong", InstalledVersion)
