"""
Entry point of `docket-sync` CLI.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import dotenv
from click.exceptions import BadParameter, MissingParameter
from pydantic import ValidationError
from rich.table import Table as RichTable
from typer import Context, Exit, Option

from ...core import (
    ConfigurationError,
    SyncError,
    Synchronizer,
    SyncResult,
    Table,
    Workspace,
)
from ..config import Config, InstanceConfig
from . import documents
from ._utils import (
    MainTyper,
    console,
    get_root_context,
    log_status,
    logger,
    lookup_param,
)

dotenv.load_dotenv()

app = MainTyper(
    "docket-sync",
    help="DocketSync CLI Toolkit",
)


@app.callback()
def main(
    ctx: Context,
    url: str
    | None = Option(
        None,
        help="Base URL of remote service, e.g. https://example.supabase.co",
        envvar="DOCKET_SYNC_URL",
    ),
    api_key: str
    | None = Option(
        None,
        "--key",
        help="API key of remote service",
        envvar="DOCKET_SYNC_KEY",
    ),
    owner_id: str
    | None = Option(
        None,
        "--owner",
        help="Id of effective owner whose data is synced",
        envvar="DOCKET_SYNC_OWNER",
    ),
    data_dir: Path
    | None = Option(
        None,
        help="Directory holding local data",
        envvar="DOCKET_SYNC_DATA_DIR",
        exists=True,
        file_okay=False,
    ),
    instance_name: str
    | None = Option(
        None,
        "--instance",
        help="Instance name as configured in .yaml",
        envvar="DOCKET_SYNC_INSTANCE",
    ),
    config_file: Path
    | None = Option(
        "docket-sync.yaml",
        help=".yaml file containing instance info, only applicable with --instance",
        envvar="DOCKET_SYNC_CONFIG_FILE",
        dir_okay=False,
    ),
):
    if instance_name:
        assert config_file is not None
        root_context = RootContext.from_config(
            ctx=ctx, instance_name=instance_name, config_file=config_file
        )

        # owner and data dir passed explicitly take precedence over config
        overrides = {
            name: value
            for name, value in (("owner_id", owner_id), ("data_dir", data_dir))
            if value is not None
        }
        if overrides:
            root_context.instance = root_context.instance.model_copy(
                update=overrides
            )
    else:
        if not url:
            raise MissingParameter(
                message="either --url or --instance must be provided",
                ctx=ctx,
                param_hint=["url", "instance"],
                param_type="option",
            )

        if not api_key:
            raise MissingParameter(
                ctx=ctx,
                param=lookup_param(ctx, "api_key"),
                param_type="option",
            )

        try:
            instance = InstanceConfig(
                url=url, api_key=api_key, owner_id=owner_id, data_dir=data_dir
            )
        except ValidationError as e:
            raise BadParameter(
                f"invalid instance: {e}",
                ctx=ctx,
                param=lookup_param(ctx, "url"),
            )

        root_context = RootContext(
            ctx=ctx,
            instance=instance,
            from_file=False,
        )

    ctx.obj = root_context


app.add_typer(documents.app)


@app.command()
def check(ctx: Context):
    """
    Check connection to remote service and its schema
    """
    root_context = get_root_context(ctx)
    remote = root_context.instance.create_remote(logger=logger)

    try:
        remote.check_schema()
    except SyncError as e:
        logger.error(f"Check failed: {e}")
        raise Exit(code=1)

    logger.info(f"Connected to '{root_context.instance.url}', schema is initialized")


@app.command()
def sync(ctx: Context):
    """
    Sync local data with remote service
    """
    root_context = get_root_context(ctx)
    workspace = root_context.load_workspace()
    synchronizer = root_context.create_synchronizer()

    result = _check_result(workspace.sync(synchronizer), synchronizer)

    if result.fast_path:
        logger.info("Adopted remote data, no local data to push")
    else:
        logger.info(
            f"Pushed {result.upserted} record(s), deleted {result.deleted} record(s)"
        )


@app.command()
def refresh(ctx: Context):
    """
    Pull remote changes without pushing local ones
    """
    root_context = get_root_context(ctx)
    workspace = root_context.load_workspace()
    synchronizer = root_context.create_synchronizer()

    _check_result(workspace.refresh(synchronizer), synchronizer)

    logger.info(f"Local data: {workspace.flat().summary}")


@app.command()
def status(ctx: Context):
    """
    Show local data and pending changes
    """
    root_context = get_root_context(ctx)
    workspace = root_context.load_workspace()

    flat = workspace.flat()
    deleted_ids = workspace.deleted_ids

    table = RichTable(title=f"Local data of '{workspace.owner_id}'")
    table.add_column("Table")
    table.add_column("Records", justify="right")
    table.add_column("Pending deletions", justify="right")

    for t in Table:
        table.add_row(
            str(t),
            str(len(flat[t])),
            str(len(deleted_ids.get(t.deletion_key))),
        )

    console.print(table)

    states: dict[str, int] = {}
    for doc in workspace.data.documents:
        state = "local only" if doc.is_local_only else doc.local_state.value
        states[state] = states.get(state, 0) + 1

    if states:
        summary = ", ".join(f"{state}={count}" for state, count in states.items())
        console.print(f"Documents: {summary}")

    if pending_files := len(deleted_ids.document_paths):
        console.print(f"Pending file deletions: {pending_files}")

    if workspace.suppressed:
        console.print(
            f"Documents deleted on this device: {len(workspace.suppressed)}"
        )


def run():
    app()


def _check_result(
    result: SyncResult | None, synchronizer: Synchronizer
) -> SyncResult:
    """
    Exit with error if sync or refresh didn't succeed.
    """
    if result is None:
        if synchronizer.last_error is not None:
            logger.debug(f"Last error: {synchronizer.last_error!r}")
        raise Exit(code=1)
    return result


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    instance: InstanceConfig
    from_file: bool

    @classmethod
    def from_config(
        cls,
        *,
        ctx: Context,
        instance_name: str,
        config_file: Path,
    ) -> RootContext:
        # ensure config file exists
        if not config_file.is_file():
            raise BadParameter(
                message=f"file does not exist: {config_file}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get config from file
        try:
            config = Config.load_yaml(config_file)
        except (ValueError, ValidationError) as e:
            raise BadParameter(
                f"failed to load config file '{config_file}': {e}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get instance from config
        instance = config.instances.get(instance_name)
        if not instance:
            raise BadParameter(
                f"instance '{instance_name}' not found in '{config_file}'",
                ctx=ctx,
                param=lookup_param(ctx, "instance_name"),
            )

        return RootContext(ctx=ctx, instance=instance, from_file=True)

    def create_synchronizer(self) -> Synchronizer:
        return self.instance.create_synchronizer(
            logger=logger, on_status=log_status
        )

    def load_workspace(self) -> Workspace:
        try:
            return self.instance.load_workspace(logger=logger)
        except ConfigurationError as e:
            logger.error(f"Cannot load local data: {e}")
            raise Exit(code=1)


if __name__ == "__main__":
    app()
