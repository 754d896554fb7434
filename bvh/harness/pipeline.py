"""Pipeline — ordered plan of steps and the fail-fast driver that runs it."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from bvh.harness import doctor, toolchain
from bvh.harness.config import HarnessConfig, resolve_harness_config
from bvh.harness.matrix import example_command, format_command, matrix_command
from bvh.harness.steps import Executor, SubprocessExecutor
from bvh.harness.types import (
    DiagResult,
    EnvironmentOverrides,
    HarnessError,
    PipelineResult,
    Step,
    StepKind,
)

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int, Step], None]


def build_plan(
    cfg: HarnessConfig, overrides: EnvironmentOverrides, *, install: bool = True,
) -> list[Step]:
    """Return the full ordered step list.

    Order: fetch installer, run installer, add components, formatting gate,
    every matrix entry, every example run.
    """
    steps: list[Step] = []
    if install:
        tc = cfg.toolchain
        dest = toolchain.installer_path(overrides)
        steps.append(Step(StepKind.FETCH, f"fetch {tc.installer_url}", url=tc.installer_url, dest=dest))
        steps.append(Step(
            StepKind.INSTALL, f"install {tc.channel} ({tc.host_triple})",
            argv=toolchain.installer_command(tc, dest),
        ))
        steps += [
            Step(StepKind.COMPONENT, f"component {c}", argv=toolchain.component_command(c))
            for c in tc.components
        ]

    steps.append(Step(StepKind.FORMAT, "rustfmt check", argv=format_command()))
    steps += [
        Step(StepKind.TEST, f"test {entry.label}", argv=matrix_command(entry))
        for entry in cfg.matrix
    ]
    steps += [
        Step(StepKind.EXAMPLE, f"example {run.label}", argv=example_command(run))
        for run in cfg.examples
    ]
    return steps


def run_steps(
    steps: Sequence[Step],
    executor: Executor,
    env: dict[str, str],
    *,
    on_progress: ProgressFn | None = None,
) -> PipelineResult:
    """Execute *steps* in order, stopping at the first non-zero status."""
    result = PipelineResult()
    total = len(steps)
    for i, step in enumerate(steps, start=1):
        logger.info("[%d/%d] %s", i, total, step.label)
        if on_progress:
            on_progress(i, total, step)
        step_result = executor.execute(step, env)
        result.results.append(step_result)
        if not step_result.ok:
            logger.error(
                "%s step failed: %s (exit %d)%s",
                step.kind.value, step.label, step_result.exit_status,
                f"\n{step_result.context}" if step_result.context else "",
            )
            break
    return result


class Pipeline:
    """Facade tying config, environment overrides and executor together."""

    def __init__(
        self,
        root: str | Path = ".",
        config_file: str | Path | None = None,
        *,
        executor: Executor | None = None,
        skip_install: bool = False,
    ) -> None:
        self._root = Path(root).resolve()
        self._config_file = config_file
        self._overrides = EnvironmentOverrides.for_root(self._root)
        self._executor = executor or SubprocessExecutor(cwd=self._root)
        self._skip_install = skip_install
        self._cfg: HarnessConfig | None = None

    @property
    def config(self) -> HarnessConfig:
        if self._cfg is None:
            self._cfg = resolve_harness_config(self._root, self._config_file)
        return self._cfg

    @property
    def overrides(self) -> EnvironmentOverrides:
        return self._overrides

    @property
    def root(self) -> Path:
        return self._root

    def plan(self) -> list[Step]:
        return build_plan(self.config, self._overrides, install=not self._skip_install)

    def run(self, *, on_progress: ProgressFn | None = None) -> PipelineResult:
        """Prepare the install roots and run the whole plan.

        Raises:
            InstallRootError: If an install directory belongs to someone else.
            HarnessConfigError: If harness.yaml is invalid.
            HarnessError: If ``skip_install`` is set but no toolchain is present.
        """
        # config errors surface before anything is written to disk
        steps = self.plan()

        if self._skip_install:
            if not toolchain.is_installed(self._overrides):
                raise HarnessError(
                    f"No harness-owned toolchain under {self._overrides.cargo_home}; "
                    "run without --skip-install first"
                )
        else:
            toolchain.check_install_roots(self._overrides)
            toolchain.claim_install_roots(self._overrides)

        env = self._overrides.apply()
        result = run_steps(steps, self._executor, env, on_progress=on_progress)
        if result.failed is None:
            logger.info("All %d steps passed", len(steps))
        return result

    def doctor(self) -> list[DiagResult]:
        return doctor.run_diagnostics(
            self._overrides, root=self._root, config_file=self._config_file,
        )
