"""Tests for the R console lifecycle."""

import pytest

from rig_manager.core.services.console_manager import ConsoleLifecycleManager
from rig_manager.core.services.state import CoordinatorState

from conftest import FakeBackend, FakeConsoleHost, FakeNotifier, FakeProvider, installed, make_settings


def make_manager(backend=None, provider=None, **settings):
    backend = backend or FakeBackend([installed("4.3.1", default=True), installed("4.2.0")])
    host = FakeConsoleHost()
    notifier = FakeNotifier()
    state = CoordinatorState()
    manager = ConsoleLifecycleManager(
        lambda: make_settings(**settings),
        backend=backend,
        host=host,
        notifier=notifier,
        state=state,
        provider=provider,
    )
    return manager, host, notifier, state, backend


class TestEnsure:
    @pytest.mark.asyncio
    async def test_creates_console_for_default(self):
        manager, host, _, state, _ = make_manager()

        console = await manager.ensure()

        assert console is not None
        assert console.name == "R Console"
        assert console.executable == "/opt/R/4.3.1/bin/R"
        assert console.shown
        assert state.console is console

    @pytest.mark.asyncio
    async def test_idempotent_without_force(self):
        manager, host, _, _, backend = make_manager()

        first = await manager.ensure()
        calls = backend.list_calls
        second = await manager.ensure()

        assert first is second
        assert host.created == 1
        assert backend.list_calls == calls

    @pytest.mark.asyncio
    @pytest.mark.parametrize("existing", [0, 1, 2])
    async def test_force_leaves_exactly_one(self, existing):
        manager, host, _, _, _ = make_manager()
        for _ in range(existing):
            await host.create("R Console", "/opt/R/old/bin/R")

        console = await manager.ensure(force_new=True)

        assert host.live() == [console]
        assert all(not c.alive for c in host.all if c is not console)

    @pytest.mark.asyncio
    async def test_dead_console_is_replaced(self):
        manager, host, _, _, _ = make_manager()
        stale = await host.create("R Console", "/opt/R/4.3.1/bin/R")
        stale.alive = False

        console = await manager.ensure()

        assert console is not stale
        assert host.live() == [console]

    @pytest.mark.asyncio
    async def test_other_consoles_untouched(self):
        manager, host, _, _, _ = make_manager()
        other = await host.create("Python", "/usr/bin/python3")

        await manager.ensure(force_new=True)

        assert other.alive

    @pytest.mark.asyncio
    async def test_configured_console_name(self):
        manager, host, _, _, _ = make_manager(console_name="R 4.3")
        console = await manager.ensure()
        assert console.name == "R 4.3"


class TestAutoLaunch:
    @pytest.mark.asyncio
    async def test_disabled_skips_implicit_launch(self):
        manager, host, _, _, _ = make_manager(console_auto_launch=False)

        assert await manager.ensure(force_new=True) is None
        assert host.created == 0

    @pytest.mark.asyncio
    async def test_explicit_request_bypasses_toggle(self):
        manager, host, _, _, _ = make_manager(console_auto_launch=False)

        console = await manager.ensure(explicit=True)

        assert console is not None
        assert host.created == 1


class TestProvider:
    @pytest.mark.asyncio
    async def test_delegates_to_available_provider(self):
        provider = FakeProvider()
        manager, host, _, _, backend = make_manager(provider=provider)

        assert await manager.ensure(force_new=True) is None
        assert provider.created == 1
        assert host.created == 0
        assert backend.list_calls == 0

    @pytest.mark.asyncio
    async def test_unavailable_provider_falls_back(self):
        provider = FakeProvider(available=False)
        manager, host, _, _, _ = make_manager(provider=provider)

        assert await manager.ensure() is not None
        assert provider.created == 0
        assert host.created == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_backend_failure_keeps_existing_console(self):
        manager, host, notifier, _, backend = make_manager()
        console = await manager.ensure()
        backend.go_offline()

        assert await manager.ensure(force_new=True) is None
        assert console.alive
        assert notifier.errors[0].startswith("Could not launch R console:")

    @pytest.mark.asyncio
    async def test_no_default_version(self):
        backend = FakeBackend([installed("4.2.0")])
        manager, host, notifier, _, _ = make_manager(backend=backend)

        assert await manager.ensure() is None
        assert host.created == 0
        assert notifier.warnings == ["No default R version found. Cannot launch R console."]


@pytest.mark.asyncio
async def test_shutdown_disposes_managed_console():
    manager, host, _, state, _ = make_manager()
    console = await manager.ensure()

    await manager.shutdown()

    assert not console.alive
    assert state.console is None
