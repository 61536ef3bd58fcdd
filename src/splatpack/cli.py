# ABOUTME: Command-line interface for the splat compression pipeline
# ABOUTME: Compresses an .npz splat archive or synthetic splats into asset files

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .errors import SplatPackError
from .formats import ColorFormat, SHFormat, VectorFormat
from .pipeline import CompressionConfig, DataQuality, Pipeline
from .splat_io import load_npz
from .synthetic import SyntheticKind, SyntheticParams, generate_synthetic
from .utils.logging_utils import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='splatpack',
        description='Compress 3D gaussian splats into a chunked, quantized GPU asset',
        epilog="""
Examples:
  # Compress an .npz splat archive with the default (medium) quality
  splatpack scene.npz ./output

  # Smallest output: clustered SH takes longer
  # (very-low needs a BC7 compressor object, so it is API only)
  splatpack scene.npz ./output --quality low

  # Custom formats
  splatpack scene.npz ./output --quality custom --pos-format Norm16 --sh-format Float16

  # Synthetic test data on a regular grid
  splatpack --synthetic 10000 --synthetic-kind grid ./output
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('input', type=str, nargs='?',
                        help='Input .npz splat archive (omit with --synthetic)')
    parser.add_argument('output_dir', type=str,
                        help='Output directory for the asset files')

    parser.add_argument('--name', type=str, default=None,
                        help='Asset base name. Default: input file stem or "synthetic"')
    parser.add_argument('--quality', type=str, default='medium',
                        choices=[q.value for q in DataQuality if q != DataQuality.VeryLow],
                        help='Quality preset (very-low is API only). Default: medium')
    parser.add_argument('--pos-format', type=str, default=None,
                        choices=list(VectorFormat.__members__),
                        help='Position format (custom quality only)')
    parser.add_argument('--scale-format', type=str, default=None,
                        choices=list(VectorFormat.__members__),
                        help='Scale format (custom quality only)')
    parser.add_argument('--color-format', type=str, default=None,
                        choices=[c for c in ColorFormat.__members__ if c != 'BC7'],
                        help='Color format (custom quality only)')
    parser.add_argument('--sh-format', type=str, default=None,
                        choices=list(SHFormat.__members__),
                        help='SH format (custom quality only)')

    parser.add_argument('--seed', type=int, default=1,
                        help='Random seed for SH clustering. Default: 1')
    parser.add_argument('--passes', type=float, default=None,
                        help='SH clustering passes over the data. Default: per format')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker threads. Default: CPU count')

    parser.add_argument('--synthetic', type=int, default=None, metavar='N',
                        help='Generate N synthetic splats instead of reading input')
    parser.add_argument('--synthetic-kind', type=str, default='sphere',
                        choices=[k.value for k in SyntheticKind],
                        help='Synthetic layout. Default: sphere')

    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose logging (DEBUG level)')
    parser.add_argument('--quiet', action='store_true',
                        help='Quiet mode - only show warnings and errors')
    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    logger = setup_logging(verbose=args.verbose, quiet=args.quiet)

    if args.synthetic is None and args.input is None:
        parser.error("an input file or --synthetic N is required")

    try:
        if args.synthetic is not None:
            splats = generate_synthetic(SyntheticParams(
                splat_count=args.synthetic,
                kind=SyntheticKind(args.synthetic_kind),
                seed=args.seed,
            ))
            default_name = 'synthetic'
        else:
            splats = load_npz(args.input)
            default_name = Path(args.input).stem

        config = CompressionConfig(
            quality=DataQuality(args.quality),
            pos_format=args.pos_format,
            scale_format=args.scale_format,
            color_format=args.color_format,
            sh_format=args.sh_format,
            seed=args.seed,
            passes_over_data=args.passes,
            max_workers=args.workers,
            output_dir=args.output_dir,
            asset_name=args.name or default_name,
        )

        # Run pipeline
        pipeline = Pipeline(config)
        asset = pipeline.run(splats)
        if asset is None:
            logger.error("Compression cancelled")
            sys.exit(2)

        logger.info("")
        logger.info("Success! Generated %d files:", len(pipeline.output_files))
        for f in pipeline.output_files:
            logger.info("   - %s", f)

        sys.exit(0)

    except FileNotFoundError as e:
        logger.error("File not found: %s", e)
        sys.exit(1)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)
    except SplatPackError as e:
        logger.error("Compression failed: %s", e)
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
