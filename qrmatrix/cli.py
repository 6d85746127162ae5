"""CLI entry point for QRMatrix."""

import argparse
import logging
import os
import sys

from qrmatrix import __version__


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qrmatrix",
        description="Generate a QR code from text, or from emoji pixel art of an image.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Text QR code
  python -m qrmatrix --text "https://example.com" -o example.png

  # Pixel art QR code: the image becomes a 15x15 emoji grid, then a QR code
  python -m qrmatrix --image photo.jpg -o photo_qr.png

  # Use segno instead of python-qrcode to build the symbol
  python -m qrmatrix --text "HELLO" --backend segno
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    # Required — exactly one input
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--text",
        help="Text or URL to encode in the QR code",
    )
    source.add_argument(
        "--image",
        help="Path to an image to turn into emoji pixel art and encode",
    )

    # Optional — output
    parser.add_argument(
        "--output", "-o",
        default="qrmatrix.png",
        help="Output image path (default: qrmatrix.png)",
    )
    parser.add_argument(
        "--backend",
        default=None,
        choices=["qrcode", "segno"],
        help="QR-symbol encoder. Default: $QRMATRIX_BACKEND or qrcode",
    )

    # Flags
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip QR code scannability verification of the output",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite output file without prompting",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging",
    )

    return parser


def _setup_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    # Lazy imports for faster --help
    from qrmatrix.errors import QRMatrixError
    from qrmatrix.image_utils import (
        ResizeStatus, VerifyResult, load_image, save_image, verify_qr_scannable,
    )
    from qrmatrix.qr_generator import QRPayloadPipeline, get_encoder
    from qrmatrix.session import GenerationRequest, run_request

    print(f"QRMatrix v{__version__}")
    print("=" * 50)

    if args.text is not None and not args.text:
        print("\n  ERROR: --text cannot be empty.", file=sys.stderr)
        return 1

    # ------------------------------------------------------------------
    # Check output overwrite
    # ------------------------------------------------------------------
    if os.path.exists(args.output) and not args.overwrite:
        response = input(f"  Output file '{args.output}' already exists. Overwrite? [y/N] ")
        if response.lower() not in ("y", "yes"):
            print("  Aborted.")
            return 0

    try:
        pipeline = QRPayloadPipeline(get_encoder(args.backend))

        # Step 1: Prepare the payload
        if args.image:
            print(f"\n[1/3] Loading input image: {args.image}")
            request = GenerationRequest.for_image(load_image(args.image))
        else:
            print(f"\n[1/3] Text input ({len(args.text)} chars)")
            request = GenerationRequest.for_text(args.text)

        # Step 2: Generate
        print(f"\n[2/3] Generating QR code via {pipeline.encoder.name()}...")
        result = run_request(request, pipeline)
        if result.error:
            print(f"\n  ERROR: {result.error}", file=sys.stderr)
            return 1

        if result.pixel_art:
            if result.resize_status is ResizeStatus.FALLBACK:
                print(
                    "  ⚠️  WARNING: image could not be resized; pixel art was sampled "
                    "from the original image.",
                    file=sys.stderr,
                )
            print("  Pixel art:\n")
            print(result.pixel_art)
        print(f"  ✓ QR code ready ({result.qr_image.width}x{result.qr_image.height} px)")

        # Step 3: Save and verify
        print(f"\n[3/3] Saving output to: {args.output}")
        output_path = save_image(result.qr_image, args.output)
        print(f"  ✓ Saved: {output_path}")

        if not args.no_verify:
            print(f"\n  Verifying QR code scannability...")
            verified, decoded = verify_qr_scannable(result.qr_image)
            if verified == VerifyResult.SCANNABLE:
                print(f"  ✓ QR code is SCANNABLE! Decoded {len(decoded)} bytes")
            elif verified == VerifyResult.SKIPPED:
                print(f"  ⊘ Verification skipped (pyzbar not installed)")
                print(f"    Install with: pip install pyzbar")
            else:
                print(f"  ⚠️  WARNING: QR code could not be decoded.")

        print(f"\n✅ Done! Your QR code is at: {output_path}")
        return 0

    except (QRMatrixError, ValueError, FileNotFoundError) as e:
        print(f"\n  ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
