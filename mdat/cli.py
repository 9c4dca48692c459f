#!/usr/bin/env python3
"""
mdat CLI - Command-line interface for encoding Tiled maps to .mdat files.

Usage:
    mdat encode level1.tmx --output level1.mdat
    mdat info level1.tmx
    mdat fields level1.tmx --limit 40
"""

import argparse
import sys
from pathlib import Path

from mdat.log import configure_logging


def cmd_encode(args):
    """Encode a TMX map to .mdat."""
    from mdat.encoder import MAGIC
    from mdat.storage import MDAT_SUFFIX, write_mdat
    from mdat.tmx import load_tmx

    try:
        output = Path(args.output or Path(args.input).with_suffix(MDAT_SUFFIX))
        document = load_tmx(args.input)
        result = write_mdat(output, document, magic=args.magic or MAGIC)
        print(f"Success: {result} ({result.stat().st_size} bytes)")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_info(args):
    """Show what a TMX map encodes to, without writing anything."""
    from mdat.document import TileLayer
    from mdat.encoder import build_fields
    from mdat.fields import size_of
    from mdat.tmx import load_tmx

    try:
        document = load_tmx(args.input)
        fields = build_fields(document)

        print(f"Map: {document.width}x{document.height} tiles of "
              f"{document.tile_width}x{document.tile_height} px")

        layers = document.encodable_layers()
        skipped = len(document.layers) - len(layers)
        print(f"\nLayers: {len(layers)} encoded, {skipped} skipped")
        for layer in layers:
            if isinstance(layer, TileLayer):
                print(f"  - {layer.name} (tiles, {layer.width}x{layer.height})")
            else:
                print(f"  - {layer.name} (objects, {len(layer.objects)})")

        tilesets = document.used_tilesets()
        print(f"\nTilesets: {len(tilesets)} used of {len(document.tilesets)}")
        for tileset in tilesets:
            print(f"  - {tileset.name} ({len(tileset.tiles)} tiles, "
                  f"first gid {tileset.first_gid})")

        print(f"\nFields: {len(fields)}")
        print(f"Encoded size: {size_of(fields)} bytes")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_fields(args):
    """Print the field sequence of a TMX map."""
    from mdat.encoder import build_fields
    from mdat.tmx import load_tmx

    try:
        document = load_tmx(args.input)
        fields = build_fields(document)

        offset = 0
        shown = fields if args.limit is None else fields[:args.limit]
        for index, field in enumerate(shown):
            print(f"{index:6d} @{offset:<8d} {field.kind.value:<6s} {field.value!r}")
            offset += field.width

        if len(shown) < len(fields):
            print(f"... {len(fields) - len(shown)} more")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def build_parser():
    parser = argparse.ArgumentParser(
        description="mdat CLI - Encode Tiled maps into .mdat binary files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mdat encode level1.tmx --output level1.mdat
  mdat info level1.tmx
  mdat fields level1.tmx --limit 40
        """,
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # encode
    encode_parser = subparsers.add_parser(
        "encode",
        help="Encode a TMX map to .mdat",
    )
    encode_parser.add_argument("input", help="Input .tmx map")
    encode_parser.add_argument("--output", "-o", help="Output .mdat file (default: input with .mdat suffix)")
    encode_parser.add_argument("--magic", help="Override the header format tag")
    encode_parser.set_defaults(func=cmd_encode)

    # info
    info_parser = subparsers.add_parser(
        "info",
        help="Show layers, tilesets and encoded size of a TMX map",
    )
    info_parser.add_argument("input", help="Input .tmx map")
    info_parser.set_defaults(func=cmd_info)

    # fields
    fields_parser = subparsers.add_parser(
        "fields",
        help="Print the encoded field sequence of a TMX map",
    )
    fields_parser.add_argument("input", help="Input .tmx map")
    fields_parser.add_argument("--limit", type=int, help="Print at most N fields")
    fields_parser.set_defaults(func=cmd_fields)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
