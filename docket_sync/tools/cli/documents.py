"""
Document file transfers between local data and remote storage.
"""
from __future__ import annotations

from pathlib import Path

from typer import Argument, Context, Exit, Option

from ...core import DocumentQueue, LogicError
from ._utils import MainTyper, get_root_context, logger

app = MainTyper(
    "documents",
    help="Document file transfers",
)


@app.command()
def upload(ctx: Context):
    """
    Upload files of documents pending upload
    """
    queue = _get_queue(ctx)
    count = queue.process_uploads()
    logger.info(f"Uploaded {count} file(s)")


@app.command()
def download(ctx: Context):
    """
    Download files of documents pending download
    """
    queue = _get_queue(ctx)
    count = queue.process_downloads()
    logger.info(f"Downloaded {count} file(s)")


@app.command()
def retry(ctx: Context):
    """
    Requeue documents whose transfer failed
    """
    queue = _get_queue(ctx)
    count = queue.requeue_failed()
    logger.info(f"Requeued {count} document(s)")


@app.command()
def add(
    ctx: Context,
    case_id: str = Argument(help="Id of case to attach document to"),
    file: Path = Argument(
        help="File to add", exists=True, dir_okay=False, readable=True
    ),
    name: str
    | None = Option(None, help="Document name, defaults to filename"),
):
    """
    Add a file as a document pending upload
    """
    workspace = get_root_context(ctx).load_workspace()

    try:
        doc = workspace.add_document(
            case_id, name or file.name, file.read_bytes()
        )
    except LogicError as e:
        logger.error(f"Cannot add document: {e}")
        raise Exit(code=1)

    logger.info(f"Added document {doc.id}")


@app.command()
def get(
    ctx: Context,
    document_id: str = Argument(help="Id of document"),
    output: Path = Argument(help="File to write contents to", dir_okay=False),
):
    """
    Write contents of a document to a file, downloading it if needed
    """
    queue = _get_queue(ctx)
    data = queue.get_file(document_id)

    if data is None:
        logger.error(f"Contents of document {document_id} not available")
        raise Exit(code=1)

    output.write_bytes(data)
    logger.info(f"Wrote {len(data)} bytes to {output}")


def _get_queue(ctx: Context) -> DocumentQueue:
    root_context = get_root_context(ctx)
    return DocumentQueue(
        root_context.load_workspace(),
        root_context.instance.create_blobs(logger=logger),
        logger=logger,
    )
