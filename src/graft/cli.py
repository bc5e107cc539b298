from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

import typer

from graft.budget import TraversalTruncated
from graft.config import TraversalConfig, traversal_config
from graft.exceptions import GraftError
from graft.json_io import dump_json_pretty
from graft.model import PermissionLevel
from graft.persistence import load_state, save_state
from graft.schema import (
    AccessCheckResponseDTO,
    AscendantsResponseDTO,
    BranchResponseDTO,
    BranchStepDTO,
    CompositionResponseDTO,
    DeletionResponseDTO,
    ItemDTO,
    TruncationDTO,
)
from graft.service import GraftService

app = typer.Typer(add_completion=False)

_DEFAULT_STATE_PATH = Path("graft-state.json")

T = TypeVar("T")


@dataclass(frozen=True)
class CliContext:
    state_path: Path
    config: TraversalConfig


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _parse_level(value: str) -> PermissionLevel:
    try:
        return PermissionLevel.parse(value)
    except ValueError:
        choices = ", ".join(level.value for level in PermissionLevel)
        raise typer.BadParameter(
            f"unknown level {value!r} (expected one of: {choices})"
        ) from None


def _require_positive(name: str, value: int | None) -> None:
    if value is not None and value <= 0:
        raise typer.BadParameter(f"{name} must be a positive integer")


def _cli_context(ctx: typer.Context) -> CliContext:
    obj = ctx.obj
    if not isinstance(obj, CliContext):
        raise typer.BadParameter("missing CLI context")
    return obj


def _run(ctx: typer.Context, action: Callable[[GraftService], T], *, save: bool) -> T:
    """Load state, apply ``action``, optionally persist; domain errors exit 1."""
    cli = _cli_context(ctx)
    try:
        service = load_state(cli.state_path, config=cli.config)
        result = action(service)
        if save:
            save_state(service, cli.state_path)
    except GraftError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1)
    return result


def _truncation(truncated: TraversalTruncated | None) -> TruncationDTO | None:
    if truncated is None:
        return None
    return TruncationDTO(reason=truncated.reason, frontier=list(truncated.frontier))


@app.callback()
def main(
    ctx: typer.Context,
    state: Path = typer.Option(_DEFAULT_STATE_PATH, "--state", help="JSON state file."),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to graft.toml."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth"),
    step_budget: Optional[int] = typer.Option(None, "--step-budget"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True),
) -> None:
    """Composable hierarchical item store."""
    _configure_logging(verbose)
    _require_positive("--max-depth", max_depth)
    _require_positive("--step-budget", step_budget)
    ctx.obj = CliContext(
        state_path=state,
        config=traversal_config(
            config_path=config,
            max_depth=max_depth,
            step_budget=step_budget,
        ),
    )


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing state file."),
) -> None:
    """Create an empty state file."""
    cli = _cli_context(ctx)
    if cli.state_path.exists() and not force:
        typer.echo(f"error: {cli.state_path} already exists (use --force)", err=True)
        raise typer.Exit(code=1)
    save_state(GraftService(config=cli.config), cli.state_path)
    typer.echo(f"Initialized {cli.state_path}")


@app.command()
def root(
    ctx: typer.Context,
    content_ref: str = typer.Argument(...),
    creator: Optional[str] = typer.Option(None, "--creator"),
    visual: Optional[str] = typer.Option(None, "--visual"),
) -> None:
    """Create a root item."""
    item_id = _run(
        ctx,
        lambda service: service.create_root(content_ref, creator=creator, visual_ref=visual),
        save=True,
    )
    typer.echo(str(item_id))


@app.command()
def grow(
    ctx: typer.Context,
    stem_id: int = typer.Argument(...),
    content_ref: str = typer.Argument(...),
    creator: Optional[str] = typer.Option(None, "--creator"),
) -> None:
    """Grow a native descendant under STEM_ID."""
    item_id = _run(
        ctx,
        lambda service: service.add_native_descendant(stem_id, content_ref, creator=creator),
        save=True,
    )
    typer.echo(str(item_id))


@app.command()
def peer(
    ctx: typer.Context,
    item_id: int = typer.Argument(...),
    content_ref: str = typer.Argument(...),
    creator: Optional[str] = typer.Option(None, "--creator"),
) -> None:
    """Insert a peer right after ITEM_ID."""
    peer_id = _run(
        ctx,
        lambda service: service.add_peer(item_id, content_ref, creator=creator),
        save=True,
    )
    typer.echo(str(peer_id))


@app.command()
def compose(
    ctx: typer.Context,
    stem_id: int = typer.Argument(...),
    target_id: int = typer.Argument(...),
) -> None:
    """Mount the branch headed by TARGET_ID under STEM_ID."""
    result = _run(ctx, lambda service: service.compose(stem_id, target_id), save=True)
    payload = CompositionResponseDTO(
        stem=result.stem,
        target=result.target,
        is_flux=result.is_flux,
        previous_head=result.previous_head,
    )
    typer.echo(dump_json_pretty(payload.model_dump(mode="json")))


@app.command()
def detach(ctx: typer.Context, stem_id: int = typer.Argument(...)) -> None:
    """Clear STEM_ID's head pointer."""
    previous = _run(ctx, lambda service: service.detach(stem_id), save=True)
    typer.echo("none" if previous is None else str(previous))


@app.command()
def delete(ctx: typer.Context, item_id: int = typer.Argument(...)) -> None:
    """Delete ITEM_ID, repairing the pointers around it."""
    report = _run(ctx, lambda service: service.delete(item_id), save=True)
    payload = DeletionResponseDTO(**report.as_payload())
    typer.echo(dump_json_pretty(payload.model_dump(mode="json")))


@app.command()
def show(ctx: typer.Context, item_id: Optional[int] = typer.Argument(None)) -> None:
    """Print one item, or every item when ITEM_ID is omitted."""

    def _collect(service: GraftService) -> list[dict[str, object]]:
        items = [service.get(item_id)] if item_id is not None else service.store.items()
        return [
            ItemDTO(
                id=item.id,
                content_ref=item.content_ref,
                ascendant=item.ascendant,
                head=item.head,
                next=item.next,
                visual_ref=item.visual_ref,
            ).model_dump(mode="json")
            for item in items
        ]

    entries = _run(ctx, _collect, save=False)
    typer.echo(dump_json_pretty(entries[0] if item_id is not None else entries))


@app.command()
def ascendants(
    ctx: typer.Context,
    item_id: int = typer.Argument(...),
    max_depth: Optional[int] = typer.Option(None, "--max-depth"),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms"),
) -> None:
    """Walk ITEM_ID's native lineage up to its root."""
    _require_positive("--max-depth", max_depth)
    _require_positive("--timeout-ms", timeout_ms)

    def _walk(service: GraftService) -> AscendantsResponseDTO:
        walk = service.walk_ascendants(item_id, max_depth=max_depth, timeout_ms=timeout_ms)
        ids = list(walk)
        return AscendantsResponseDTO(
            item_id=item_id,
            ascendants=ids,
            truncated=_truncation(walk.truncated),
        )

    payload = _run(ctx, _walk, save=False)
    typer.echo(dump_json_pretty(payload.model_dump(mode="json")))


@app.command()
def branch(
    ctx: typer.Context,
    start_id: int = typer.Argument(...),
    max_depth: Optional[int] = typer.Option(None, "--max-depth"),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms"),
) -> None:
    """Walk the current structure below START_ID."""
    _require_positive("--max-depth", max_depth)
    _require_positive("--timeout-ms", timeout_ms)

    def _walk(service: GraftService) -> BranchResponseDTO:
        walk = service.walk_branch(start_id, max_depth=max_depth, timeout_ms=timeout_ms)
        steps = [BranchStepDTO(**step.as_payload()) for step in walk]
        return BranchResponseDTO(
            start=start_id,
            steps=steps,
            truncated=_truncation(walk.truncated),
        )

    payload = _run(ctx, _walk, save=False)
    typer.echo(dump_json_pretty(payload.model_dump(mode="json")))


@app.command()
def grant(
    ctx: typer.Context,
    content_ref: str = typer.Argument(...),
    user_id: str = typer.Argument(...),
    level: str = typer.Argument(...),
) -> None:
    """Grant USER_ID LEVEL on CONTENT_REF (replacing any previous grant)."""
    resolved = _parse_level(level)
    _run(ctx, lambda service: service.grant(content_ref, user_id, resolved), save=True)
    typer.echo(f"granted {resolved.value} on {content_ref} to {user_id}")


@app.command()
def revoke(
    ctx: typer.Context,
    content_ref: str = typer.Argument(...),
    user_id: str = typer.Argument(...),
) -> None:
    """Revoke USER_ID's grant on CONTENT_REF."""
    removed = _run(ctx, lambda service: service.revoke(content_ref, user_id), save=True)
    if removed is None:
        typer.echo(f"no grant on {content_ref} for {user_id}")
    else:
        typer.echo(f"revoked {removed.level.value} on {content_ref} from {user_id}")


@app.command()
def own(
    ctx: typer.Context,
    content_ref: str = typer.Argument(...),
    user_id: str = typer.Argument(...),
) -> None:
    """Register USER_ID as the creator of CONTENT_REF."""
    _run(ctx, lambda service: service.register_creator(content_ref, user_id), save=True)
    typer.echo(f"{user_id} owns {content_ref}")


@app.command()
def check(
    ctx: typer.Context,
    content_ref: str = typer.Argument(...),
    user_id: str = typer.Argument(...),
    level: str = typer.Argument("view"),
    json_output: bool = typer.Option(False, "--json"),
    fail_on_deny: bool = typer.Option(False, "--fail-on-deny/--no-fail-on-deny"),
) -> None:
    """Ask whether USER_ID holds LEVEL on CONTENT_REF."""
    resolved = _parse_level(level)
    allowed = _run(
        ctx,
        lambda service: service.has_access(content_ref, user_id, resolved),
        save=False,
    )
    if json_output:
        payload = AccessCheckResponseDTO(
            content_ref=content_ref,
            user_id=user_id,
            level=resolved,
            allowed=allowed,
        )
        typer.echo(dump_json_pretty(payload.model_dump(mode="json")))
    else:
        typer.echo("allow" if allowed else "deny")
    if fail_on_deny and not allowed:
        raise typer.Exit(code=1)
