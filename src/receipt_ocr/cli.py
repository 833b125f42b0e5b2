"""
Command Line Interface for receipt OCR
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .libs.onnx_ocr import OCRPipeline, OcrParams, load_image
from .libs.onnx_ocr.utils import draw_ocr_result


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract text from a photographed receipt, fully offline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print the transcript
  receipt-ocr receipt.jpg

  # Save regions, boxes and scores as JSON
  receipt-ocr receipt.jpg --json -o receipt.json

  # Inspect preprocessing without running the models
  receipt-ocr receipt.jpg --preprocess-only preview.png --contrast 1.6

  # Draw detected regions
  receipt-ocr receipt.jpg --visualize boxes.png
        """
    )

    # Input/Output
    parser.add_argument(
        'input',
        type=str,
        nargs='?',
        help='Input image file path'
    )
    parser.add_argument(
        '-o', '--output',
        type=str,
        default=None,
        help='Write the result to this file instead of stdout'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Output lines, regions, boxes and scores as JSON'
    )
    parser.add_argument(
        '--preprocess-only',
        type=str,
        default=None,
        metavar='PNG',
        help='Save the preprocessed image and skip detection/recognition'
    )
    parser.add_argument(
        '--visualize',
        type=str,
        default=None,
        metavar='PNG',
        help='Save the input image with recognized regions drawn on it'
    )

    # Model options
    parser.add_argument('--det-model', type=str, default=None, help='Detection model (det.onnx)')
    parser.add_argument('--rec-model', type=str, default=None, help='Recognition model (rec.onnx)')
    parser.add_argument('--dict', type=str, default=None, help='Character dictionary file')
    parser.add_argument('--use-gpu', action='store_true', help='Enable CUDA acceleration')
    parser.add_argument(
        '--models-status',
        action='store_true',
        help='Show which model files are available locally and exit'
    )

    # Parameters (defaults come from RECEIPT_OCR_* environment variables)
    params = parser.add_argument_group('parameters')
    params.add_argument('--limit-side-len', type=int, default=None)
    params.add_argument('--det-thresh', type=float, default=None, dest='det_db_thresh')
    params.add_argument('--det-box-thresh', type=float, default=None, dest='det_db_box_thresh')
    params.add_argument('--rec-score-thresh', type=float, default=None)
    params.add_argument('--padding-ratio', type=float, default=None)
    params.add_argument('--contrast', type=float, default=None, dest='preprocess_contrast')
    params.add_argument('--no-contrast', action='store_false', default=None, dest='enable_contrast')
    params.add_argument('--no-sharpen', action='store_false', default=None, dest='enable_sharpening')

    # Verbosity
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    return parser


def _params_from_args(args) -> OcrParams:
    overrides = {
        name: getattr(args, name)
        for name in OcrParams().to_dict()
        if getattr(args, name, None) is not None
    }
    return OcrParams.from_env().merge(overrides)


def _write(text: str, output):
    if output is None:
        print(text)
    else:
        Path(output).write_text(text + "\n", encoding='utf-8')


def main(argv=None):
    """Main CLI entry point"""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.models_status:
        from .models import registry
        print(registry.status())
        return 0

    if args.input is None:
        parser.error("the following arguments are required: input")

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file '{args.input}' not found", file=sys.stderr)
        return 1

    params = _params_from_args(args)

    try:
        pipeline = OCRPipeline(
            det_model_path=args.det_model,
            rec_model_path=args.rec_model,
            char_dict_path=args.dict,
            params=params,
            use_gpu=args.use_gpu,
        )

        image = load_image(input_path)

        if args.preprocess_only:
            with pipeline.preprocess_only(image) as processed:
                processed.to_pil().save(args.preprocess_only)
            print(f"Saved to: {args.preprocess_only}")
            return 0

        result = pipeline.recognize(image)

        if args.visualize:
            draw_ocr_result(image.pixels, result).save(args.visualize)
            if args.verbose:
                print(f"Visualization saved to: {args.visualize}", file=sys.stderr)

        if args.json:
            _write(json.dumps(result.to_dict(), ensure_ascii=False, indent=2), args.output)
        else:
            _write(result.text, args.output)

        if args.output and args.verbose:
            print(f"Saved to: {args.output}", file=sys.stderr)

        return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
