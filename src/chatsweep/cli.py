from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, TypeVar

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from chatsweep.config import default_config_path, load_config, write_default_config
from chatsweep.errors import SweepError
from chatsweep.migrator import MigrateOptions
from chatsweep.models import format_bytes
from chatsweep.output_models import (
    AnomalyOutput,
    CleanOutput,
    GroupOutput,
    MigrateOutput,
    StatusOutput,
    WindowChoiceOutput,
)
from chatsweep.progress import OperationProgress, ProgressChannel, run_with_progress
from chatsweep.selection import FilterCriteria, GroupView, SortKey
from chatsweep.service import CleanOutcome, MigrateOutcome, SweepService
from chatsweep.timewindow import ActiveWithin, AnyActivity, InactiveFor, OlderThan, TimeWindow, window_from_days
from chatsweep.util.logging import setup_logging, use_color

T = TypeVar("T")

app = typer.Typer(help="chatsweep: reclaim disk space used by cached chat attachments")


@dataclass(slots=True)
class AppState:
    service: SweepService
    console: Console
    config_path: Path


def _state(ctx: typer.Context) -> AppState:
    st = ctx.obj
    if not isinstance(st, AppState):
        raise RuntimeError("app state not initialized")
    return st


def _echo_json(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    elif isinstance(payload, list):
        payload = [p.model_dump() if isinstance(p, BaseModel) else p for p in payload]
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _fail(console: Console, exc: Exception) -> typer.Exit:
    console.print(f"[red]error:[/red] {exc}")
    return typer.Exit(1)


def _criteria(
    min_mb: float,
    min_files: int,
    show_empty: bool,
    active: int | None,
    inactive: int | None,
) -> FilterCriteria:
    if active is not None and inactive is not None:
        raise typer.BadParameter("--active and --inactive are mutually exclusive")
    activity = AnyActivity()
    if active is not None:
        activity = ActiveWithin(active)
    elif inactive is not None:
        activity = InactiveFor(inactive)
    return FilterCriteria(
        min_size=int(min_mb * 1024 * 1024),
        min_file_count=min_files,
        hide_empty=not show_empty,
        activity=activity,
    )


def _load(st: AppState, criteria: FilterCriteria, window: TimeWindow, sort_key: SortKey = SortKey.SIZE) -> GroupView:
    try:
        with st.console.status("analysing attachments..."):
            return asyncio.run(st.service.load(criteria=criteria, window=window, sort_key=sort_key))
    except SweepError as exc:
        raise _fail(st.console, exc) from exc


def _select(st: AppState, view: GroupView, group_ids: list[str], all_filtered: bool) -> None:
    if all_filtered:
        view.select_all_filtered()
    missing = view.select_ids(group_ids)
    for gid in missing:
        st.console.print(f"[yellow]unknown group:[/yellow] {gid}")


def _group_rows(view: GroupView) -> list[GroupOutput]:
    rows: list[GroupOutput] = []
    for idx in view.filtered:
        st = view.stats[idx]
        proj = view.projection(st)
        rows.append(
            GroupOutput(
                index=idx,
                group_id=st.group_id,
                group_name=st.group_name,
                selected=view.selected[idx],
                total_size=st.total_size,
                total_size_human=st.format_size(),
                file_count=st.file_count,
                exist_count=st.exist_count,
                missing_count=st.missing_count,
                latest_msg_time=st.latest_msg_time,
                window_file_count=proj.file_count,
                window_exist_count=proj.exist_count,
                window_size=proj.total_size,
            )
        )
    return rows


async def _with_progress(
    console: Console,
    label: str,
    total: int,
    start: Callable[[ProgressChannel], Awaitable[T]],
    quiet: bool = False,
) -> T:
    channel = ProgressChannel()
    state = OperationProgress()
    state.start(total)
    columns = (TextColumn("{task.description}"), BarColumn(), MofNCompleteColumn())
    with Progress(*columns, console=console, transient=True, disable=quiet) as bar:
        task_id = bar.add_task(label, total=total or None)

        def _on_event(event) -> None:
            state.apply(event)
            bar.update(task_id, completed=event.current, description=f"{label} {event.current_file}")

        try:
            return await run_with_progress(start(channel), channel, _on_event)
        finally:
            state.finish()


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[Path | None, typer.Option("--config", help="Config YAML path")] = None,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Attachment directory (skips discovery)")] = None,
    db_dir: Annotated[Path | None, typer.Option("--db-dir", help="Directory holding the decrypted databases")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose logging")] = False,
) -> None:
    cfg_path = config.expanduser() if config else default_config_path()
    if not cfg_path.exists():
        write_default_config(cfg_path)
    overrides: dict[str, Any] = {}
    if data_dir is not None:
        overrides["paths"] = {"data_dir": str(data_dir)}
    if db_dir is not None:
        overrides["database"] = {"db_dir": str(db_dir)}
    cfg = load_config(cfg_path, overrides=overrides)
    setup_logging(verbose, cfg.log.log_dir if cfg.log.to_file else None)
    color_on = use_color()
    console = Console(color_system="auto" if color_on else None, force_terminal=color_on)
    ctx.obj = AppState(
        service=SweepService(cfg),
        console=console,
        config_path=cfg_path,
    )


@app.command("init-config")
def init_config(
    ctx: typer.Context,
    path: Annotated[Path | None, typer.Option("--path", help="Write config to this path")] = None,
) -> None:
    st = _state(ctx)
    written = write_default_config(path.expanduser() if path else None)
    st.console.print(f"[green]config:[/green] {written}")


@app.command("status")
def status_cmd(
    ctx: typer.Context,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    view = _load(st, FilterCriteria(hide_empty=False), window_from_days(None))
    total = sum(s.total_size for s in view.stats)
    out = StatusOutput(
        config_path=str(st.config_path),
        data_dir=str(st.service.data_dir),
        files_db=str(st.service.store.files_db),
        group_db=str(st.service.store.group_db),
        groups=len(view.stats),
        files=sum(s.file_count for s in view.stats),
        exist=sum(s.exist_count for s in view.stats),
        total_size=total,
        total_size_human=format_bytes(total),
    )
    if json_out:
        _echo_json(out)
        return
    for k, v in out.model_dump().items():
        st.console.print(f"[bold]{k}[/bold]: {v}")


@app.command("groups")
def groups_cmd(
    ctx: typer.Context,
    sort: Annotated[SortKey, typer.Option("--sort", help="size | existing | name")] = SortKey.SIZE,
    min_mb: Annotated[float, typer.Option("--min-mb", help="Minimum resolved size in MB")] = 0.0,
    min_files: Annotated[int, typer.Option("--min-files")] = 0,
    show_empty: Annotated[bool, typer.Option("--show-empty", help="Include groups with nothing on disk")] = False,
    active: Annotated[int | None, typer.Option("--active", help="Only groups active within N days")] = None,
    inactive: Annotated[int | None, typer.Option("--inactive", help="Only groups inactive for N days")] = None,
    older_than: Annotated[int | None, typer.Option("--older-than", help="Project sizes onto files older than N days")] = None,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    view = _load(st, _criteria(min_mb, min_files, show_empty, active, inactive), window_from_days(older_than), sort)
    rows = _group_rows(view)
    if json_out:
        _echo_json(rows)
        return
    if not rows:
        st.console.print("[dim]no groups[/dim]")
        return
    table = Table(title=f"groups ({view.window.describe()})")
    table.add_column("group_id")
    table.add_column("name")
    table.add_column("size", justify="right")
    table.add_column("files", justify="right")
    table.add_column("exist", justify="right")
    table.add_column("missing", justify="right")
    table.add_column("in window", justify="right")
    for row in rows:
        table.add_row(
            row.group_id,
            row.group_name,
            row.total_size_human,
            str(row.file_count),
            str(row.exist_count),
            str(row.missing_count),
            format_bytes(row.window_size),
        )
    st.console.print(table)


@app.command("windows")
def windows_cmd(
    ctx: typer.Context,
    group_ids: Annotated[list[str], typer.Argument(help="Group ids to evaluate")] = [],
    all_filtered: Annotated[bool, typer.Option("--all", help="Evaluate every listed group")] = False,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    view = _load(st, FilterCriteria(), window_from_days(None))
    _select(st, view, group_ids, all_filtered)
    rows = [
        WindowChoiceOutput(
            window=win.describe(),
            days=win.days if isinstance(win, OlderThan) else None,
            freeable=size,
            freeable_human=format_bytes(size),
        )
        for win, size in view.window_choices()
    ]
    if json_out:
        _echo_json(rows)
        return
    table = Table(title=f"freeable space for {view.selected_count()} groups")
    table.add_column("window")
    table.add_column("freeable", justify="right")
    for row in rows:
        table.add_row(row.window, row.freeable_human)
    st.console.print(table)


def _confirm(st: AppState, prompt: str, yes: bool) -> None:
    if yes:
        return
    if not typer.confirm(prompt, default=False):
        raise typer.Exit(0)


def _clean_rows(outcomes: list[CleanOutcome]) -> list[CleanOutput]:
    return [
        CleanOutput(
            group_id=o.group_id,
            group_name=o.group_name,
            deleted=o.result.deleted,
            failed=o.result.failed,
            error=o.error,
        )
        for o in outcomes
    ]


def _migrate_rows(outcomes: list[MigrateOutcome]) -> list[MigrateOutput]:
    return [
        MigrateOutput(
            group_id=o.group_id,
            group_name=o.group_name,
            migrated=o.result.migrated_files,
            failed=o.result.failed_files,
            total_size=o.result.total_size,
            anomalies=[AnomalyOutput(record_id=a.record_id, file_name=a.file_name) for a in o.result.anomalies],
            error=o.error,
        )
        for o in outcomes
    ]


@app.command("clean")
def clean_cmd(
    ctx: typer.Context,
    group_ids: Annotated[list[str], typer.Argument(help="Group ids to clean")] = [],
    all_filtered: Annotated[bool, typer.Option("--all", help="Clean every group passing the filters")] = False,
    older_than: Annotated[int | None, typer.Option("--older-than", help="Only files older than N days")] = None,
    min_mb: Annotated[float, typer.Option("--min-mb")] = 0.0,
    min_files: Annotated[int, typer.Option("--min-files")] = 0,
    active: Annotated[int | None, typer.Option("--active")] = None,
    inactive: Annotated[int | None, typer.Option("--inactive")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    window = window_from_days(older_than)
    view = _load(st, _criteria(min_mb, min_files, False, active, inactive), window)
    _select(st, view, group_ids, all_filtered)
    if view.selected_count() == 0:
        st.console.print("[yellow]no groups selected[/yellow]")
        raise typer.Exit(0)

    freeable = view.selected_window_size()
    _confirm(
        st,
        f"delete {window.describe()} files from {view.selected_count()} groups, freeing about {format_bytes(freeable)}? "
        "this cannot be undone",
        yes,
    )
    svc = st.service
    outcomes = asyncio.run(
        _with_progress(
            st.console,
            "cleaning",
            svc.selected_file_total(),
            lambda ch: svc.clean_selected(window=window, progress=ch),
            quiet=json_out,
        )
    )
    rows = _clean_rows(outcomes)
    if json_out:
        _echo_json(rows)
        return
    for row in rows:
        line = f"  [yellow]{row.group_name}[/yellow] - removed [green]{row.deleted}[/green] files"
        if row.failed:
            line += f", [red]{row.failed} failed[/red]"
        st.console.print(line)


@app.command("migrate")
def migrate_cmd(
    ctx: typer.Context,
    group_ids: Annotated[list[str], typer.Argument(help="Group ids to migrate")] = [],
    all_filtered: Annotated[bool, typer.Option("--all", help="Migrate every group passing the filters")] = False,
    target: Annotated[Path | None, typer.Option("--target", help="Target directory")] = None,
    flat: Annotated[bool, typer.Option("--flat", help="Put every file directly in the target directory")] = False,
    delete_source: Annotated[
        bool | None,
        typer.Option("--delete-source/--keep-source", help="Remove each source after it is copied (default from config)"),
    ] = None,
    min_mb: Annotated[float, typer.Option("--min-mb")] = 0.0,
    min_files: Annotated[int, typer.Option("--min-files")] = 0,
    active: Annotated[int | None, typer.Option("--active")] = None,
    inactive: Annotated[int | None, typer.Option("--inactive")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    svc = st.service
    view = _load(st, _criteria(min_mb, min_files, False, active, inactive), window_from_days(None))
    _select(st, view, group_ids, all_filtered)
    if view.selected_count() == 0:
        st.console.print("[yellow]no groups selected[/yellow]")
        raise typer.Exit(0)

    cfg = svc.config.migrate
    options = MigrateOptions(
        target_dir=(target.expanduser() if target else cfg.target_dir),
        keep_structure=cfg.keep_structure and not flat,
        delete_after_migrate=cfg.delete_after_migrate if delete_source is None else delete_source,
    )
    action = "move" if options.delete_after_migrate else "copy"
    _confirm(
        st,
        f"{action} {format_bytes(view.selected_total_size())} from {view.selected_count()} groups to {options.target_dir}?",
        yes,
    )
    outcomes = asyncio.run(
        _with_progress(
            st.console,
            "migrating",
            svc.selected_file_total(),
            lambda ch: svc.migrate_selected(options, progress=ch),
            quiet=json_out,
        )
    )
    rows = _migrate_rows(outcomes)
    if json_out:
        _echo_json(rows)
        return
    for row in rows:
        if row.error:
            st.console.print(f"  [yellow]{row.group_name}[/yellow] - [red]{row.error}[/red]")
            continue
        line = (
            f"  [yellow]{row.group_name}[/yellow] - copied [green]{row.migrated}[/green] files, "
            f"{format_bytes(row.total_size)}"
        )
        if row.failed:
            line += f", [red]{row.failed} failed[/red]"
        if row.anomalies:
            line += f", [magenta]{len(row.anomalies)} without source[/magenta]"
        st.console.print(line)


if __name__ == "__main__":
    app()
