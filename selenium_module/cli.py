# selenium_module/cli.py
from __future__ import annotations

"""Command-line interface
------------------------
Commands to inspect configuration, list drivers, and list/validate/run flows.
Thin wrapper around the flow loader and engine for local runs.
"""
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import click

from selenium_module.core.drivers import available_drivers
from selenium_module.core.flow_loader import Flow, find_flow_files, load_flows_file
from selenium_module.utils.config import get_settings
from selenium_module.utils.logger import bind, unbind, set_log_level


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _collect_files(targets: List[str], flows_dir: Optional[str], recursive: bool) -> list[Path]:
    paths: list[Path] = []
    for p in (Path(t).resolve() for t in targets):
        if p.is_dir():
            paths.extend(find_flow_files(p, recursive=True))
        else:
            paths.append(p)
    if not targets and flows_dir:
        paths.extend(find_flow_files(Path(flows_dir), recursive=recursive))
    return paths


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override SELENIUM_LOG_LEVEL from settings",
)
@click.version_option(package_name="selenium-module")
def cli(log_level: Optional[str]):
    _ = get_settings()
    if log_level:
        set_log_level(log_level.upper())


# -------- commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars)."""
    _echo_json(get_settings().model_dump(mode="json"))


@cli.command("drivers")
def cmd_drivers():
    """List the web drivers that can be selected."""
    default = get_settings().DRIVER
    for name in available_drivers():
        click.echo(f"{name}{'  (default)' if name == default else ''}")


@cli.command("list")
@click.option(
    "--dir", "flows_dir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=lambda: str(get_settings().FLOWS_DIR),
    help="Directory containing flow YAML files",
)
@click.option("--recursive/--no-recursive", default=True, show_default=True)
@click.option("--tag", "filter_tag", type=str, default=None, help="Only flows carrying this tag")
def cmd_list(flows_dir: str, recursive: bool, filter_tag: Optional[str]):
    """List flows available in a directory."""
    rows: list[tuple[Path, Flow]] = []
    for fp in find_flow_files(Path(flows_dir), recursive=recursive):
        try:
            flows = load_flows_file(fp)
        except (OSError, ValueError):
            # invalid files are reported by `validate`
            continue
        rows.extend((fp, f) for f in flows if not filter_tag or filter_tag in f.tags)

    if not rows:
        click.echo("No flows found.")
        return

    click.echo(f"Found {len(rows)} flow(s):\n")
    for fp, flow in rows:
        click.echo(f" - {flow.name}  ({len(flow.steps)} steps)  <- {fp}")


@cli.command("validate")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "flows_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True), help="Validate all flows under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_validate(targets: List[str], flows_dir: Optional[str], recursive: bool):
    """Validate flows from files or a directory (supports multi-doc YAML)."""
    if not targets and not flows_dir:
        click.echo("Provide file(s) or --dir to validate.")
        sys.exit(2)

    ok = True
    for fp in _collect_files(targets, flows_dir, recursive):
        try:
            for flow in load_flows_file(fp):
                click.echo(f"OK  {fp}  ->  {flow.name} ({len(flow.steps)} steps)")
        except (OSError, ValueError) as e:
            ok = False
            click.echo(f"ERR {fp}  ->  {e}")

    sys.exit(0 if ok else 1)


@cli.command("run")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "flows_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True),
              help="Run all flows found under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
@click.option("--driver", type=str, default=None,
              help="Override the web driver for every flow")
@click.option("--strict-until/--lenient-until", default=None,
              help="Stop an until step on the first condition error instead of retrying")
@click.option("--parallel/--no-parallel", default=None, help="Override PARALLEL_EXECUTION from settings")
@click.option("--max-workers", type=int, default=None, help="Override MAX_WORKERS from settings")
@click.option("--json-out", type=click.Path(dir_okay=False), default=None, help="Write a JSON summary to this file")
def cmd_run(
    targets: List[str],
    flows_dir: Optional[str],
    recursive: bool,
    driver: Optional[str],
    strict_until: Optional[bool],
    parallel: Optional[bool],
    max_workers: Optional[int],
    json_out: Optional[str],
):
    """
    Run one or more flows.

    Examples:
      selenium-module run flows/search.yaml
      selenium-module run --dir flows --driver firefox --parallel
    """
    settings = get_settings()
    if strict_until is not None:
        settings = settings.model_copy(update={"PROPAGATE_CONDITION_ERRORS": strict_until})

    if not targets and not flows_dir:
        click.echo("Nothing to run. Provide file(s) or --dir.")
        sys.exit(2)

    flows: list[tuple[Path, Flow]] = []
    for fp in _collect_files(targets, flows_dir, recursive):
        try:
            flows.extend((fp, f) for f in load_flows_file(fp))
        except (OSError, ValueError) as e:
            click.echo(f"ERR {fp} -> {e}")
            sys.exit(1)

    if not flows:
        click.echo("No flows matched.")
        sys.exit(1)

    run_parallel = settings.PARALLEL_EXECUTION if parallel is None else bool(parallel)
    workers = settings.MAX_WORKERS if max_workers is None else int(max_workers)

    bind(run_id=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"))
    click.echo(f"Running {len(flows)} flow(s){' in parallel' if run_parallel else ''}...")

    from selenium_module.core.engine import Engine  # resolved at call time

    def _run_one(flow: Flow) -> dict:
        return Engine(settings=settings, driver=driver).run_flow(flow)

    if run_parallel and len(flows) > 1:
        with ThreadPoolExecutor(max_workers=max(1, workers)) as ex:
            results = list(ex.map(_run_one, [f for _, f in flows]))
    else:
        results = [_run_one(f) for _, f in flows]

    for (fp, flow), res in zip(flows, results):
        if res.get("ok"):
            click.echo(f"OK  {flow.name} ({fp}) -> run_dir={res.get('run_dir', '-')}")
        else:
            failed = res.get("failed_step") or {}
            step_desc = ""
            if failed:
                step_desc = f" [step {failed.get('index', '?')} {failed.get('action', '')} {failed.get('name') or ''}]"
            prefix = f"{res['error_type']}: " if res.get("error_type") else ""
            click.echo(f"ERR {flow.name} ({fp}){step_desc} -> {prefix}{res.get('error', 'unknown error')}")

    ok_count = sum(1 for r in results if r.get("ok"))
    fail_count = len(results) - ok_count
    click.echo(f"Done. OK={ok_count}  FAIL={fail_count}")

    if json_out:
        outp = Path(json_out).resolve()
        outp.parent.mkdir(parents=True, exist_ok=True)
        outp.write_text(json.dumps({"results": results}, indent=2, default=str), encoding="utf-8")
        click.echo(f"Wrote summary: {outp}")

    unbind("run_id")
    sys.exit(0 if fail_count == 0 else 1)


def main() -> None:
    cli(prog_name="selenium-module")


if __name__ == "__main__":
    main()
