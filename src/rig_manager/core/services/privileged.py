"""Privileged rig operations (install, remove, set default).

Each OS has its own way of getting the privileges rig needs. They are three
`ElevationStrategy` implementations picked once, from a `PrivilegeModel`, when
the executor is built:

- `DirectStrategy`: run rig as the current user (Windows).
- `OptimisticElevationStrategy`: try without elevation, retry through the
  wrapper after a failure (macOS).
- `AlwaysElevateStrategy`: ask for the password up front (Linux).

The password only ever travels through the wrapper's stdin.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from rig_manager.core.config import AppSettings, SettingsFactory
from rig_manager.core.domain.models import Operation, OperationResult, OperationStatus
from rig_manager.core.domain.platform import PrivilegeModel
from rig_manager.core.errors import BackendUnavailable, MalformedOutput, OperationInProgress
from rig_manager.core.interfaces.backend import ProcessRunner, VersionBackend
from rig_manager.core.interfaces.host import ProgressCallback, Prompter
from rig_manager.core.services.state import MutationGuard

logger = logging.getLogger(__name__)

ACCESS_DENIED_MARKERS: tuple[str, ...] = (
    "access is denied",
    "permission denied",
    "administrator",
    "os error 5",
    "eacces",
)

ELEVATION_HINT = "Try again from a terminal started with administrator rights."


@dataclass
class ExecutionContext:
    operation: Operation
    version: str
    settings: AppSettings
    progress: ProgressCallback | None = None
    cancel: asyncio.Event | None = None

    @property
    def argv(self) -> list[str]:
        return self.operation.argv(self.settings.rig_executable, self.version)

    @property
    def elevated_argv(self) -> list[str]:
        return [self.settings.elevation_command, "-S", "-p", "", *self.argv]

    def report(self, message: str) -> None:
        if self.progress is not None:
            self.progress(message)

    def result(self, status: OperationStatus, message: str, exit_code: int | None = None) -> OperationResult:
        return OperationResult(
            operation=self.operation,
            version=self.version,
            status=status,
            message=message,
            exit_code=exit_code,
        )

    def cancelled(self) -> OperationResult:
        return self.result(
            OperationStatus.CANCELLED,
            f"{self.operation.gerund} R {self.version} cancelled.",
        )


def has_access_denied_marker(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in ACCESS_DENIED_MARKERS)


class ElevationStrategy(ABC):
    model: PrivilegeModel

    def __init__(self, runner: ProcessRunner, prompter: Prompter) -> None:
        self._runner = runner
        self._prompter = prompter

    @abstractmethod
    async def execute(self, ctx: ExecutionContext) -> OperationResult:
        ...

    async def _ask_credential(self, ctx: ExecutionContext) -> str | None:
        secret = await self._prompter.ask_secret(
            f"{ctx.settings.elevation_command} password required to {ctx.operation.verb} R {ctx.version}"
        )
        return secret or None

    async def _stream(
        self,
        ctx: ExecutionContext,
        argv: list[str],
        *,
        secret: str | None = None,
        elevated: bool = False,
    ) -> OperationResult:
        """Spawn `argv`, forward stdout lines as progress and classify the exit."""

        if ctx.cancel is not None and ctx.cancel.is_set():
            return ctx.cancelled()

        # The secret is in stdin_data, never in argv; log argv only.
        logger.info("Running: %s", " ".join(argv))
        try:
            process = await self._runner.start(argv, stdin_data=secret)
        except OSError as exc:
            logger.error("Could not start %s: %s", argv[0], exc)
            return ctx.result(
                OperationStatus.OPERATION_FAILED,
                f"Failed to start the {ctx.operation.verb} process: {exc}",
            )

        async def consume() -> int:
            async for line in process.lines():
                message = line.strip()
                if message:
                    ctx.report(message)
            return await process.wait()

        consumer = asyncio.ensure_future(consume())
        cancel_waiter = asyncio.ensure_future(ctx.cancel.wait()) if ctx.cancel is not None else None
        waiters = {consumer} if cancel_waiter is None else {consumer, cancel_waiter}

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=ctx.settings.operation_timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            consumer.cancel()
            await process.terminate()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if consumer not in done:
            consumer.cancel()
            await process.terminate()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
            if cancel_waiter is not None and cancel_waiter in done:
                logger.info("%s R %s cancelled by the user", ctx.operation.gerund, ctx.version)
                return ctx.cancelled()
            logger.error(
                "%s R %s timed out after %ss",
                ctx.operation.gerund,
                ctx.version,
                ctx.settings.operation_timeout_seconds,
            )
            return ctx.result(
                OperationStatus.OPERATION_FAILED,
                f"{ctx.operation.gerund} R {ctx.version} timed out.",
            )

        code = consumer.result()
        if code == 0:
            return ctx.result(OperationStatus.SUCCEEDED, ctx.operation.success_message(ctx.version), 0)

        logger.error(
            "`%s` exited with %s; stderr:\n%s",
            " ".join(argv),
            code,
            process.stderr_text.strip(),
        )
        if elevated and code == 1:
            return ctx.result(
                OperationStatus.AUTH_FAILED,
                f"Failed to {ctx.operation.verb} R {ctx.version}. Incorrect password or permission error.",
                code,
            )
        message = (
            f"Failed to {ctx.operation.verb} R version {ctx.version}. "
            f"See the log for details. Exit code: {code}"
        )
        if not elevated and has_access_denied_marker(process.stderr_text):
            message = f"{message}. {ELEVATION_HINT}"
        return ctx.result(OperationStatus.OPERATION_FAILED, message, code)


class DirectStrategy(ElevationStrategy):
    model = PrivilegeModel.NO_ELEVATION

    async def execute(self, ctx: ExecutionContext) -> OperationResult:
        return await self._stream(ctx, ctx.argv)


class OptimisticElevationStrategy(ElevationStrategy):
    model = PrivilegeModel.OPTIMISTIC

    async def execute(self, ctx: ExecutionContext) -> OperationResult:
        first = await self._stream(ctx, ctx.argv)
        if first.ok or first.status is OperationStatus.CANCELLED:
            return first
        # Timeouts and spawn failures never get an elevated retry.
        if first.exit_code is None:
            return first

        logger.info("%s R %s without elevation failed, retrying elevated", ctx.operation.gerund, ctx.version)
        secret = await self._ask_credential(ctx)
        if secret is None:
            return ctx.cancelled()
        return await self._stream(ctx, ctx.elevated_argv, secret=secret, elevated=True)


class AlwaysElevateStrategy(ElevationStrategy):
    model = PrivilegeModel.ALWAYS_ELEVATE

    async def execute(self, ctx: ExecutionContext) -> OperationResult:
        secret = await self._ask_credential(ctx)
        if secret is None:
            return ctx.cancelled()
        return await self._stream(ctx, ctx.elevated_argv, secret=secret, elevated=True)


_STRATEGIES: dict[PrivilegeModel, type[ElevationStrategy]] = {
    PrivilegeModel.NO_ELEVATION: DirectStrategy,
    PrivilegeModel.OPTIMISTIC: OptimisticElevationStrategy,
    PrivilegeModel.ALWAYS_ELEVATE: AlwaysElevateStrategy,
}


def build_strategy(model: PrivilegeModel, *, runner: ProcessRunner, prompter: Prompter) -> ElevationStrategy:
    return _STRATEGIES[model](runner, prompter)


class PrivilegedOperationExecutor:
    """Runs mutating rig subcommands through the platform's elevation strategy."""

    def __init__(
        self,
        settings_factory: SettingsFactory,
        *,
        backend: VersionBackend,
        runner: ProcessRunner,
        prompter: Prompter,
        guard: MutationGuard,
        privilege_model: PrivilegeModel | None = None,
    ) -> None:
        self._settings_factory = settings_factory
        self._backend = backend
        self._guard = guard
        model = privilege_model or settings_factory().resolved_privilege_model()
        self._strategy = build_strategy(model, runner=runner, prompter=prompter)
        logger.debug("Privileged operations use the '%s' model", model.value)

    @property
    def privilege_model(self) -> PrivilegeModel:
        return self._strategy.model

    async def run(
        self,
        operation: Operation,
        version: str,
        *,
        progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationResult:
        """Run one operation under the single-flight guard."""

        try:
            async with self._guard.hold(f"{operation.verb} R {version}"):
                return await self.execute(operation, version, progress=progress, cancel=cancel)
        except OperationInProgress as exc:
            return OperationResult(
                operation=operation,
                version=version,
                status=OperationStatus.REJECTED,
                message=str(exc),
            )

    async def execute(
        self,
        operation: Operation,
        version: str,
        *,
        progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationResult:
        """Run one operation; the caller must already hold the guard."""

        ctx = ExecutionContext(
            operation=operation,
            version=version,
            settings=self._settings_factory(),
            progress=progress,
            cancel=cancel,
        )
        if operation is Operation.REMOVE:
            refusal = await self._check_removable(ctx)
            if refusal is not None:
                return refusal

        result = await self._strategy.execute(ctx)
        logger.info(
            "%s R %s finished: %s (exit code %s)",
            operation.gerund,
            version,
            result.status.value,
            result.exit_code,
        )
        return result

    async def _check_removable(self, ctx: ExecutionContext) -> OperationResult | None:
        try:
            default = await self._backend.default_version()
        except (BackendUnavailable, MalformedOutput) as exc:
            return ctx.result(
                OperationStatus.OPERATION_FAILED,
                f"Could not verify that R {ctx.version} is not the default version: {exc}",
            )
        if default is not None and default.matches(ctx.version):
            return ctx.result(
                OperationStatus.REJECTED,
                "Cannot uninstall the default R version. Please set a different version as default first.",
            )
        return None
