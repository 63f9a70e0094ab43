from __future__ import annotations

"""Flow engine
--------------
Starts a web driver, runs validated flow steps while carrying the payload
between them, and writes a per-run manifest and JSON run log.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from selenium_module.core import actions
from selenium_module.core.flow_loader import Flow, load_flow
from selenium_module.core.module import SeleniumModule
from selenium_module.utils.config import Settings, get_settings
from selenium_module.utils.logger import (
    get_logger,
    log_scope,
    attach_file_logger,
    detach_file_logger,
)
from selenium_module.utils.timing import Stopwatch, sleep_ms


@dataclass
class RunContext:
    """Filesystem locations for the current run."""
    run_dir: Path
    log_path: Path
    manifest_path: Path


def _ts() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")


def _describe(payload: Any) -> Any:
    """JSON-friendly view of the final payload."""
    if payload is None or isinstance(payload, (bool, int, float, str)):
        return payload
    if isinstance(payload, dict):
        return {str(k): _describe(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_describe(v) for v in payload]
    return repr(payload)


class Engine:
    """Runs flows against a live web driver and manages run artifacts."""

    def __init__(self, settings: Optional[Settings] = None, driver: Optional[str] = None):
        self.settings = settings or get_settings()
        self.driver = driver
        self.log = get_logger(__name__)

    def _prepare_run_dirs(self, flow: Flow) -> RunContext:
        base = self.settings.OUTPUT_DIR / flow.name / _ts()
        base.mkdir(parents=True, exist_ok=True)
        return RunContext(run_dir=base, log_path=base / "run.log", manifest_path=base / "manifest.json")

    def _write_manifest(self, flow: Flow, ctx: RunContext, driver: str) -> None:
        d = {
            "flow": flow.name,
            "driver": driver,
            "run_dir": str(ctx.run_dir),
            "created_at": datetime.now(timezone.utc).isoformat(),
            "steps": len(flow.steps),
        }
        ctx.manifest_path.write_text(json.dumps(d, indent=2), encoding="utf-8")

    def run_flow(self, flow: Flow) -> dict:
        """Execute all steps of a flow and return a small result dict.

        Returns {"ok": True, "run_dir", "steps", "payload"} on success, or
        {"ok": False, "error", "error_type", "run_dir", "failed_step"?} on failure.
        A step that fails but is skipped (optional or CONTINUE_ON_ERROR) still
        waits its after_wait_ms before the next step.
        """
        s = self.settings
        driver = self.driver or flow.driver or s.DRIVER
        ctx = self._prepare_run_dirs(flow)
        self._write_manifest(flow, ctx, driver)

        scope = {"flow": flow.name, "run": ctx.run_dir.name}
        per_run_handler = attach_file_logger(ctx.log_path, **scope)
        failed_step_info = None
        with log_scope(driver=driver, **scope):
            try:
                with Stopwatch() as sw, SeleniumModule(driver=driver, settings=s) as module:
                    self.log.info(f"Starting flow: {flow.name} (steps={len(flow.steps)}, driver={driver})")
                    payload: Any = None
                    for idx, step in enumerate(flow.steps, start=1):
                        action = actions.action_of(step)
                        with log_scope(step=idx, action=action.value):
                            self.log.info(f"Step {idx}/{len(flow.steps)}: {step.name or action.value}")
                            try:
                                payload = actions.execute_step(module, step, payload, s)
                            except Exception as step_err:
                                if not (step.optional or s.CONTINUE_ON_ERROR):
                                    failed_step_info = {"index": idx, "action": action.value, "name": step.name}
                                    raise
                                self.log.warning(f"Step failed but optional/continue_on_error set: {step_err!r}")

                        after_wait = step.after_wait_ms
                        if after_wait is None:
                            after_wait = flow.default_after_wait_ms
                        if after_wait:
                            sleep_ms(after_wait)

                    self.log.info(f"Flow {flow.name} finished in {sw.elapsed_ms()} ms")
                return {"ok": True, "run_dir": str(ctx.run_dir), "steps": len(flow.steps), "payload": _describe(payload)}
            except Exception as e:
                self.log.exception("Flow failed:")
                result = {"ok": False, "error": str(e), "error_type": e.__class__.__name__, "run_dir": str(ctx.run_dir)}
                if failed_step_info:
                    result["failed_step"] = failed_step_info
                return result
            finally:
                detach_file_logger(per_run_handler)


def run_flow(flow: Path | str | Flow) -> dict:
    if isinstance(flow, (str, Path)):
        flow = load_flow(flow)
    return Engine(settings=get_settings()).run_flow(flow)
