"""
Raster composition CLI tool.

This tool lists catalogs, inspects single sources, and composes an image
or elevation raster for a geographic rectangle.
"""

import json
from pathlib import Path

import click

from geocompose.abstractions.types import ByteOrder, ColorModel, RasterDataType
from geocompose.composition import Compositor, CompositionRequest, EncoderRegistry, encode_composition
from geocompose.config import Config
from geocompose.exceptions import GeoComposeError, InvalidArgumentError, OutOfCoverageError
from geocompose.geometry import Sector
from geocompose.infrastructure.logging import setup_logging, setup_simple_logging
from geocompose.raster.catalog import RasterCatalog
from geocompose.raster.readers.registry import ReaderRegistry


def output_path(settings, path) -> Path:
    """Relative output paths are placed under ``paths.output_dir``."""
    path = Path(path)
    if path.is_absolute():
        return path
    settings.ensure_directories()
    return Path(settings.get('paths.output_dir', '.')) / path


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='YAML configuration overriding the defaults')
@click.option('--log-file', type=click.Path(dir_okay=False),
              help='Also write JSON logs to this file')
@click.pass_context
def cli(ctx, verbose, config_file, log_file):
    """Raster composition CLI."""
    settings = Config(config_file) if config_file else Config()
    level = 'DEBUG' if verbose else settings.get('logging.level', 'INFO')
    if log_file:
        setup_logging(settings, log_file=log_file, log_level=level)
    else:
        setup_simple_logging(level)
    ctx.obj = {'config': settings, 'registry': ReaderRegistry.from_config(settings)}


@cli.command()
@click.argument('catalog_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--report', '-r', type=click.Path(dir_okay=False), help='Write a JSON report')
@click.pass_obj
def catalog(obj, catalog_file, report):
    """List the sources of a catalog and their coverage."""
    try:
        raster_catalog = RasterCatalog.from_yaml(catalog_file, obj['registry'], settings=obj['config'])
    except (OSError, GeoComposeError) as e:
        click.echo(f"❌ Failed to load catalog: {e}", err=True)
        raise click.Abort()

    if not len(raster_catalog):
        click.echo("No usable sources in catalog.")
        return

    click.echo(f"{'Name':<30} {'Reader':<8} {'Format':<10} {'Type':<8} {'Bands':<6} Sector")
    click.echo("-" * 100)
    for descriptor in raster_catalog:
        click.echo(
            f"{descriptor.name:<30} "
            f"{descriptor.reader.name:<8} "
            f"{descriptor.pixel_format.value:<10} "
            f"{descriptor.data_type:<8} "
            f"{descriptor.band_count:<6} "
            f"{descriptor.sector}"
        )
    click.echo(f"\nCoverage: {raster_catalog.sector}")

    if report:
        report = output_path(obj['config'], report)
        raster_catalog.generate_report(report)
        click.echo(f"✅ Report written to {report}")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def inspect(obj, file_path):
    """Print the metadata a reader finds in one source as JSON."""
    registry = obj['registry']
    reader = registry.find_reader_for(Path(file_path))
    if reader is None:
        click.echo(f"❌ No reader accepts {file_path}", err=True)
        raise click.Abort()

    try:
        metadata = reader.read_metadata(Path(file_path))
    except GeoComposeError as e:
        click.echo(f"❌ Failed to read {file_path}: {e}", err=True)
        raise click.Abort()

    click.echo(json.dumps({'reader': reader.name, **metadata.to_dict()}, indent=2, default=str))


@cli.command()
@click.argument('catalog_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--sector', '-s', nargs=4, type=float, required=True,
              metavar='MIN_LAT MAX_LAT MIN_LON MAX_LON', help='Geographic rectangle in degrees')
@click.option('--width', '-w', type=int, required=True, help='Output width in pixels')
@click.option('--height', '-h', type=int, required=True, help='Output height in pixels')
@click.option('--format', 'image_format', default=None,
              help='Output MIME type (image/png, image/jpeg, application/bil, ...)')
@click.option('--elevation', is_flag=True, help='Compose elevations as raw BIL samples')
@click.option('--data-type', type=click.Choice(['Int16', 'Int32', 'Float32']),
              default=None, help='Elevation sample type')
@click.option('--byte-order', type=click.Choice(['big', 'little']), default=None,
              help='Elevation byte order')
@click.option('--color-model', type=click.Choice([m.value for m in ColorModel if m is not ColorModel.PALETTE]),
              default=None, help='Image color model')
@click.option('--output', '-o', type=click.Path(dir_okay=False), required=True,
              help='File to write the encoded raster to; relative paths go under paths.output_dir')
@click.pass_obj
def compose(obj, catalog_file, sector, width, height, image_format, elevation,
            data_type, byte_order, color_model, output):
    """Compose a raster for a sector from every catalog source."""
    settings = obj['config']
    if elevation and image_format is None:
        image_format = 'application/bil'
    image_format = image_format or settings.get('composition.default_image_format', 'image/png')

    try:
        raster_catalog = RasterCatalog.from_yaml(catalog_file, obj['registry'], settings=settings)
        request = CompositionRequest(
            target_sector=Sector.parse(list(sector)),
            target_width=width,
            target_height=height,
            byte_order=ByteOrder.parse(byte_order or settings.get('elevation.byte_order', 'big')),
            data_type=RasterDataType.parse(data_type or settings.get('elevation.default_data_type', 'Int16')),
            color_model=ColorModel.parse(color_model),
        )
        compositor = Compositor(raster_catalog, obj['registry'], config=settings)
        encoded = encode_composition(compositor, request, image_format,
                                     EncoderRegistry.with_defaults(settings))
    except (InvalidArgumentError, OutOfCoverageError) as e:
        click.echo(f"❌ Cannot compose: {e}", err=True)
        raise click.Abort()
    except (OSError, GeoComposeError) as e:
        click.echo(f"❌ Composition failed: {e}", err=True)
        raise click.Abort()

    output = output_path(settings, output)
    try:
        output.write_bytes(encoded)
    except OSError as e:
        click.echo(f"❌ Cannot write {output}: {e}", err=True)
        raise click.Abort()
    click.echo(f"✅ Wrote {width}x{height} {image_format} ({len(encoded)} bytes) to {output}")


if __name__ == '__main__':
    cli()
