#!/usr/bin/env python3
"""
Listing Desk - Command Line Interface

Usage:
    listing-desk list --search "Ayala"
    listing-desk get <property_id>
    listing-desk create --data '{"Village": "Ayala", "Location": "Cebu"}'
    listing-desk update <property_id> --file patch.json
    listing-desk update <property_id> --step "Lot Area=10"
    listing-desk delete <property_id>
    listing-desk watermark photo1.jpg photo2.jpg --zip out.zip
    listing-desk upload photo1.jpg photo2.jpg --policy abort
    listing-desk post <property_id>
"""
import argparse
import json
import sys
from pathlib import Path

from .api import Config, ListingStoreClient, PhotoStorageClient, ListingStoreError, create_clients, configure_logging
from .images import WatermarkProcessor, PlacementSpec, ImageLoadError
from .models import PROPERTY_ID, RecordValidationError, load_field_descriptors
from .services import TableView, RecordEditor, Widget, social_post_text, record_summary
from .utils import BatchPolicy, UploadPipeline, export_zip


def print_json(data, indent=2):
    """Pretty print JSON data"""
    print(json.dumps(data, indent=indent, ensure_ascii=False, default=str))


def progress_callback(current: int, total: int, status: str):
    """Progress callback for batch operations"""
    percentage = (current / total * 100) if total > 0 else 0
    bar_length = 30
    filled = int(bar_length * current / total) if total > 0 else 0
    bar = '█' * filled + '░' * (bar_length - filled)
    print(f"\r[{bar}] {percentage:.1f}% ({current}/{total}) - {status}", end='', flush=True)
    if current >= total:
        print()


def load_record_data(args) -> dict:
    """Record fields from --data (JSON string) or --file (JSON file)"""
    if args.data:
        data = json.loads(args.data)
    elif args.file:
        with open(args.file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    else:
        print("Error: Provide --data or --file")
        sys.exit(1)
    if not isinstance(data, dict):
        print("Error: Record data must be a JSON object")
        sys.exit(1)
    return data


def read_specs(args) -> list:
    """Placement specs for the image paths given on the command line"""
    position = tuple(args.position) if args.position else None
    specs = []
    for name in args.images:
        path = Path(name)
        if not path.is_file():
            print(f"Error: File not found: {path}")
            sys.exit(1)
        specs.append(PlacementSpec(
            filename=path.name,
            data=path.read_bytes(),
            mode=args.mode,
            anchor=args.anchor,
            scale=args.scale,
            opacity=args.opacity,
            position=position
        ))
    return specs


def cmd_list(args, store: ListingStoreClient, storage: PhotoStorageClient):
    """List listings, optionally searched and sorted"""
    view = TableView(sort_column=args.sort, sort_direction=args.dir)
    view.set_records(store.list_all())
    view.set_search(args.search or '')
    rows = view.visible_rows()
    if args.limit:
        rows = rows[:args.limit]
    print_json(rows)
    counts = view.counts()
    print(f"{counts['showing']} of {counts['total']} listings", file=sys.stderr)


def cmd_get(args, store: ListingStoreClient, storage: PhotoStorageClient):
    """Get a single listing"""
    record = store.get(args.property_id)
    if record is None:
        print(f"Error: Listing {args.property_id} not found")
        sys.exit(1)
    if args.text:
        print(record_summary(record))
    else:
        print_json(record)


def cmd_create(args, store: ListingStoreClient, storage: PhotoStorageClient):
    """Create a listing"""
    editor = RecordEditor(load_field_descriptors(Config.FIELDS_FILE))
    editor.open_create()
    editor.apply(load_record_data(args))
    saved = editor.submit(store)
    print(f"✓ Listing {saved.get(PROPERTY_ID)} created successfully!")
    print_json(saved)


def cmd_update(args, store: ListingStoreClient, storage: PhotoStorageClient):
    """Update a listing, optionally stepping numeric fields"""
    editor = RecordEditor(load_field_descriptors(Config.FIELDS_FILE))
    editor.open_edit({PROPERTY_ID: args.property_id})
    if args.data or args.file or not args.step:
        editor.apply(load_record_data(args))

    if args.step:
        current = store.get(args.property_id)
        if current is None:
            print(f"Error: Listing {args.property_id} not found")
            sys.exit(1)
        for item in args.step:
            name, _, delta = item.rpartition('=')
            if not name or editor.widget_for(name) != Widget.STEPPER:
                print(f"Error: --step expects FIELD=DELTA on a numeric field, got {item!r}")
                sys.exit(1)
            editor.draft.setdefault(name, current.get(name))
            editor.step(name, int(delta))

    saved = editor.submit(store)
    print("✓ Listing updated successfully!")
    print_json(saved)


def cmd_delete(args, store: ListingStoreClient, storage: PhotoStorageClient):
    """Delete one or more listings"""
    if not args.yes:
        ids = ', '.join(args.property_ids)
        confirm = input(f"Are you sure you want to delete listing(s) {ids}? (yes/no): ")
        if confirm.lower() != 'yes':
            print("Cancelled.")
            return
    deleted = store.delete_many(args.property_ids)
    print(f"✓ Deleted {deleted} listing(s)")


def cmd_watermark(args, store: ListingStoreClient, storage: PhotoStorageClient):
    """Watermark local files into a directory or a zip"""
    processor = WatermarkProcessor()
    specs = read_specs(args)
    items = processor.process_batch(specs, args.logo or Config.LOGO_PATH or None, args.contact_text)

    failed = [meta for encoded, meta in items if encoded is None]
    if args.zip:
        Path(args.zip).write_bytes(export_zip(items))
        print(f"✓ Wrote {len(items) - len(failed)} photo(s) to {args.zip}")
    else:
        output_dir = Path(args.output)
        output_dir.mkdir(parents=True, exist_ok=True)
        for encoded, meta in items:
            if encoded is not None:
                (output_dir / f"watermarked-{meta['filename']}").write_bytes(encoded)
        print(f"✓ Wrote {len(items) - len(failed)} photo(s) to {output_dir}")

    for meta in failed:
        print(f"  - {meta['filename']}: {meta['error']}")
    if failed:
        sys.exit(1)


def cmd_upload(args, store: ListingStoreClient, storage: PhotoStorageClient):
    """Watermark, upload and record one listing"""
    store.require_configured()
    pipeline = UploadPipeline(
        store, storage, WatermarkProcessor(),
        policy=BatchPolicy.from_config(args.policy)
    )
    result = pipeline.run(
        read_specs(args),
        property_id=args.property_id,
        contact_text=args.contact_text,
        logo_source=args.logo or Config.LOGO_PATH or None,
        progress_callback=progress_callback
    )

    print("\n" + "=" * 40)
    print("UPLOAD RESULTS")
    print("=" * 40)
    print(f"Total:      {result.total}")
    print(f"Successful: {result.successful}")
    print(f"Failed:     {result.failed}")
    if result.errors:
        print("\nFailed photos:")
        for error in result.errors:
            print(f"  - {error['filename']}: {error['error']}")
    if result.record:
        print(f"\nListing row: {result.record.get(PROPERTY_ID)}")
    print(result.message)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        print(f"Results exported to {args.output}")

    if result.aborted or result.record_error or result.record is None:
        sys.exit(1)


def cmd_post(args, store: ListingStoreClient, storage: PhotoStorageClient):
    """Print the social media post for a listing"""
    record = store.get(args.property_id)
    if record is None:
        print(f"Error: Listing {args.property_id} not found")
        sys.exit(1)
    print(social_post_text(record))


def add_image_arguments(parser):
    parser.add_argument('images', nargs='+', help='Image files')
    parser.add_argument('--logo', help='Logo image (defaults to LISTINGS_LOGO_PATH)')
    parser.add_argument('--contact-text', default=Config.CONTACT_TEXT, help='Contact line under the logo')
    parser.add_argument('--mode', default='logo-contact', choices=['logo-contact', 'logo-only', 'contact-only'])
    parser.add_argument('--anchor', default='bottom-right',
                        choices=['top-left', 'top-right', 'bottom-left', 'bottom-right', 'center'])
    parser.add_argument('--scale', type=float, default=1.0, help='Watermark size multiplier (0.5-2.0)')
    parser.add_argument('--opacity', type=float, default=0.7, help='Watermark opacity (0-1)')
    parser.add_argument('--position', type=float, nargs=2, metavar=('X', 'Y'),
                        help='Block offset as a fraction (0-1) of the free space; '
                             '0 0 is top-left, 1 1 is bottom-right. Overrides --anchor')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='listing-desk',
        description='Listing Desk - listings table and photo watermarking',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search listings
  listing-desk list --search "Ayala" --sort "Listing Price" --dir desc

  # Create a listing (Property ID is assigned when omitted)
  listing-desk create --data '{"Village": "Ayala", "Location": "Cebu"}'

  # Watermark photos into a zip
  listing-desk watermark a.jpg b.jpg --zip photos.zip

  # Watermark, upload and record a listing
  listing-desk upload a.jpg b.jpg --policy abort
        """
    )
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    list_parser = subparsers.add_parser('list', help='List listings')
    list_parser.add_argument('--search', '-s', help='Free-text search across all fields')
    list_parser.add_argument('--sort', default=PROPERTY_ID, help='Sort column')
    list_parser.add_argument('--dir', default='asc', choices=['asc', 'desc'], help='Sort direction')
    list_parser.add_argument('--limit', type=int, help='Maximum rows to print')

    get_parser = subparsers.add_parser('get', help='Get a listing by Property ID')
    get_parser.add_argument('property_id', help='Property ID')
    get_parser.add_argument('--text', action='store_true', help='Print as field: value lines')

    create_parser = subparsers.add_parser('create', help='Create a listing')
    create_parser.add_argument('--data', '-d', help='JSON record')
    create_parser.add_argument('--file', '-f', help='JSON file with the record')

    update_parser = subparsers.add_parser('update', help='Update a listing')
    update_parser.add_argument('property_id', help='Property ID')
    update_parser.add_argument('--data', '-d', help='JSON data to update')
    update_parser.add_argument('--file', '-f', help='JSON file with update data')
    update_parser.add_argument('--step', action='append', metavar='FIELD=DELTA',
                               help='Step a numeric field, e.g. "Lot Area=10" (never below 0)')

    delete_parser = subparsers.add_parser('delete', help='Delete listings')
    delete_parser.add_argument('property_ids', nargs='+', help='Property IDs')
    delete_parser.add_argument('--yes', '-y', action='store_true', help='Skip confirmation')

    watermark_parser = subparsers.add_parser('watermark', help='Watermark local photos')
    add_image_arguments(watermark_parser)
    watermark_parser.add_argument('--output', '-o', default='watermarked', help='Output directory')
    watermark_parser.add_argument('--zip', help='Write a zip archive instead of a directory')

    upload_parser = subparsers.add_parser('upload', help='Watermark, upload and record a listing')
    add_image_arguments(upload_parser)
    upload_parser.add_argument('--property-id', help='Property ID for the new row')
    upload_parser.add_argument('--policy', choices=['continue', 'abort'], help='Behaviour when a photo fails')
    upload_parser.add_argument('--output', '-o', help='Write results JSON to this file')

    post_parser = subparsers.add_parser('post', help='Print the social media post for a listing')
    post_parser.add_argument('property_id', help='Property ID')

    return parser


def main(argv=None):
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    configure_logging(debug=True if args.debug else None)

    # Watermarking local files needs no store
    if args.command != 'watermark' and not Config.validate():
        print("\nPlease configure SUPABASE_URL and SUPABASE_ANON_KEY in the .env file")
        print("See .env.example for required fields")
        sys.exit(1)

    store, storage = create_clients(Config)

    commands = {
        'list': cmd_list,
        'get': cmd_get,
        'create': cmd_create,
        'update': cmd_update,
        'delete': cmd_delete,
        'watermark': cmd_watermark,
        'upload': cmd_upload,
        'post': cmd_post,
    }

    try:
        commands[args.command](args, store, storage)
    except ListingStoreError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except RecordValidationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        for name, problem in e.errors.items():
            print(f"  - {name}: {problem}", file=sys.stderr)
        sys.exit(1)
    except (ImageLoadError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
