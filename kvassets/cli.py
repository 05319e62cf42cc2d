"""CLI interface for syncing static assets to Workers KV."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import KVClient
from .assets import KVAssets
from .config import DEFAULT_BINDING, config
from .exceptions import (
    KVAssetsError,
    KVConfigError,
    ManifestCorrupt,
    PartialUploadFailure,
    PruneSafetyViolation,
)
from .output import OutputFormatter
from .sync import DirectoryScanner, SyncEngine, manifest_to_json, read_manifest
from .utils import (
    DEFAULT_ASSET_DIR,
    DEFAULT_MANIFEST_PATH,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_WRANGLER_PATH,
    MIN_EXPIRATION_TTL,
    format_size,
    format_timestamp,
)

logger = logging.getLogger(__name__)

# Exit codes
EXIT_FAILURE = 1
EXIT_USAGE = 2


def create_client(ctx: Any, out: OutputFormatter) -> KVClient:
    """Create a KV client from global options, exiting on missing config."""
    obj = ctx.obj
    try:
        config.load_wrangler(
            Path(obj["wrangler"]), binding=obj["binding"], preview=obj["preview"]
        )
        logger.debug(f"Loaded settings from {obj['wrangler']}")
        return KVClient(
            account_id=obj["account_id"],
            namespace_id=obj["namespace_id"],
            api_token=obj["api_token"],
            max_retries=obj["max_retries"],
        )
    except KVConfigError as e:
        out.error(str(e))
        ctx.exit(EXIT_USAGE)
        raise  # Unreachable, but helps type checker


@click.group()
@click.option("--api-token", "-t", envvar="CF_API_TOKEN", help="Cloudflare API token")
@click.option("--account-id", envvar="CF_ACCOUNT_ID", help="Cloudflare account id")
@click.option(
    "--namespace-id", "-n", envvar="KV_NAMESPACE_ID", help="Workers KV namespace id"
)
@click.option(
    "--wrangler",
    "-w",
    default=DEFAULT_WRANGLER_PATH,
    show_default=True,
    help="wrangler.toml to read account and namespace ids from",
)
@click.option(
    "--binding",
    default=DEFAULT_BINDING,
    show_default=True,
    help="kv_namespaces binding in wrangler.toml that holds the assets",
)
@click.option("--preview", is_flag=True, help="Use the binding's preview namespace")
@click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_RETRIES,
    show_default=True,
    help="Retries for transient API errors",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="kvassets")
@click.pass_context
def main(
    ctx: Any,
    api_token: Optional[str],
    account_id: Optional[str],
    namespace_id: Optional[str],
    wrangler: str,
    binding: str,
    preview: bool,
    retries: int,
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """kv-sync - Sync static assets to Workers KV with a versioned manifest."""
    ctx.ensure_object(dict)
    ctx.obj["api_token"] = api_token
    ctx.obj["account_id"] = account_id
    ctx.obj["namespace_id"] = namespace_id
    ctx.obj["wrangler"] = wrangler
    ctx.obj["binding"] = binding
    ctx.obj["preview"] = preview
    ctx.obj["max_retries"] = retries
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("kvassets").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--assets",
    "-a",
    type=click.Path(path_type=Path),
    default=DEFAULT_ASSET_DIR,
    show_default=True,
    help="Asset source directory",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_MANIFEST_PATH,
    show_default=True,
    help="Path of the generated manifest",
)
@click.option(
    "--workers",
    "-j",
    type=click.IntRange(min=1, max=64),
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Number of parallel workers for hashing and uploads",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="Additional ignore pattern (gitignore syntax, repeatable)",
)
@click.option("--exclude-dot-files", is_flag=True, help="Skip files starting with '.'")
@click.option(
    "--ttl",
    type=click.IntRange(min=MIN_EXPIRATION_TTL),
    default=None,
    help="Expire uploaded values after this many seconds",
)
@click.option("--dry-run", is_flag=True, help="Show what would be uploaded")
@click.pass_context
def sync(
    ctx: Any,
    assets: Path,
    output: Path,
    workers: int,
    ignore: tuple[str, ...],
    exclude_dot_files: bool,
    ttl: Optional[int],
    dry_run: bool,
) -> None:
    """Upload new and changed assets and write the manifest.

    Nothing is deleted from the namespace. Run 'prune' once the deployment
    embedding the new manifest is live.

    Examples:
        kv-sync sync                         # public/ -> data/assets.bin
        kv-sync sync -a dist -o build/assets.bin
        kv-sync sync --dry-run               # Preview uploads
        kv-sync sync -i '*.map' -j 8         # Skip source maps, 8 workers
    """
    out: OutputFormatter = ctx.obj["out"]

    if not assets.is_dir():
        out.error(f"Invalid asset path: not a directory: {assets}")
        ctx.exit(EXIT_USAGE)

    client = create_client(ctx, out)
    scanner = DirectoryScanner(
        ignore_patterns=list(ignore), exclude_dot_files=exclude_dot_files
    )
    engine = SyncEngine(client, out, scanner=scanner, max_workers=workers)

    try:
        report = engine.sync(assets, output, dry_run=dry_run, expiration_ttl=ttl)
    except PartialUploadFailure as e:
        out.error(str(e))
        if out.json_output and e.report is not None:
            out.output_json(e.report.to_dict())
        ctx.exit(EXIT_FAILURE)
        return
    except KVAssetsError as e:
        out.error(str(e))
        ctx.exit(EXIT_FAILURE)
        return
    finally:
        client.close()

    if out.json_output:
        out.output_json(report.to_dict())


@main.command()
@click.option(
    "--output",
    "-o",
    "manifest",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_MANIFEST_PATH,
    show_default=True,
    help="Manifest of the currently live deployment",
)
@click.option(
    "--workers",
    "-j",
    type=click.IntRange(min=1, max=64),
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Number of parallel delete workers",
)
@click.option("--dry-run", is_flag=True, help="List stale keys without deleting")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def prune(ctx: Any, manifest: Path, workers: int, dry_run: bool, yes: bool) -> None:
    """Delete namespace keys not referenced by the live manifest.

    Use this only after the deployment embedding MANIFEST has been
    published. Keys still used by an older live deployment would
    otherwise disappear and its requests fail with not-found errors.

    Examples:
        kv-sync prune --dry-run
        kv-sync prune -o data/assets.bin --yes
    """
    out: OutputFormatter = ctx.obj["out"]

    if not manifest.is_file():
        out.error(
            f"Reference manifest {manifest} not found; refusing to prune. "
            "Run 'sync' and publish first."
        )
        ctx.exit(EXIT_USAGE)

    if not dry_run and not yes:
        click.confirm(
            f"Has the deployment using {manifest} been published and is it live?",
            abort=True,
        )

    client = create_client(ctx, out)
    engine = SyncEngine(client, out, max_workers=workers)

    try:
        report = engine.prune(manifest, dry_run=dry_run)
    except PruneSafetyViolation as e:
        out.error(str(e))
        ctx.exit(EXIT_USAGE)
        return
    except KVAssetsError as e:
        out.error(str(e))
        ctx.exit(EXIT_FAILURE)
        return
    finally:
        client.close()

    if out.json_output:
        out.output_json(report.to_dict())
    if not report.succeeded:
        ctx.exit(EXIT_FAILURE)


@main.command()
@click.argument("manifest", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def dump(ctx: Any, manifest: Path) -> None:
    """Print the contents of a manifest as JSON."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        index = read_manifest(manifest)
    except FileNotFoundError:
        out.error(f"Manifest not found: {manifest}")
        ctx.exit(EXIT_USAGE)
        return
    except ManifestCorrupt as e:
        out.error(str(e))
        ctx.exit(EXIT_FAILURE)
        return

    click.echo(manifest_to_json(index))


@main.command()
@click.argument("manifest", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("path")
@click.pass_context
def lookup(ctx: Any, manifest: Path, path: str) -> None:
    """Show the manifest record a request PATH resolves to."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        assets = KVAssets(manifest.read_bytes())
        record = assets.lookup_key(path)
    except FileNotFoundError:
        out.error(f"Manifest not found: {manifest}")
        ctx.exit(EXIT_USAGE)
        return
    except OSError as e:
        out.error(f"Cannot read manifest {manifest}: {e}")
        ctx.exit(EXIT_FAILURE)
        return
    except ValueError as e:
        out.error(str(e))
        ctx.exit(EXIT_USAGE)
        return
    except ManifestCorrupt as e:
        out.error(str(e))
        ctx.exit(EXIT_FAILURE)
        return

    if record is None:
        out.error(f"Not an indexed asset: {path}")
        ctx.exit(EXIT_FAILURE)
        return

    out.print_summary(
        record.path,
        [
            ("Remote key", record.remote_key),
            ("Digest", record.digest),
            ("Size", format_size(record.size)),
            ("Modified", format_timestamp(record.modified_at)),
        ],
        data=record.to_dict(),
    )


if __name__ == "__main__":
    main()
