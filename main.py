#!/usr/bin/env python3
"""
X12 EDI Command Line Tool

Parses X12 EDI files, validates their structure and converts them to business JSON.

Usage:
    python main.py input.edi                               # Parse input.edi -> input.json
    python main.py input.edi output.json                   # Parse to specific output file
    python main.py input.json output.edi --to-edi          # Rebuild EDI from a conversion JSON
"""

import argparse
import logging
import sys
from pathlib import Path

# Make the flat modules under src importable when running from a checkout
sys.path.insert(0, str(Path(__file__).parent / "src"))

from business_models import ConversionResult
from edi_converter import extract, to_segments
from validation_service import EDIValidationService

logger = logging.getLogger(__name__)

MAX_LISTED_FINDINGS = 5


def parse_edi_file(input_file: str, output_file: str, reference_path: str = None, partner_id: str = None) -> int:
    """Parse and validate an EDI file and save the conversion result as JSON."""

    print(f"EDI Parser - Processing {input_file}")
    print("=" * 50)

    try:
        with open(input_file, 'r', encoding='utf-8') as f:
            edi_content = f.read()
        print(f"Loaded {len(edi_content)} characters")

        service = EDIValidationService(reference_path=reference_path)
        validation_result = service.validate_edi(edi_content, partner_id=partner_id)
        transaction = validation_result.transaction
        if transaction is None:
            print(f"Error during EDI processing: {validation_result.findings[0].message}")
            return 1

        print("\nParsing Results:")
        print(f"  Transaction Type: {transaction.type}")
        print(f"  Payer: {transaction.payer.name if transaction.payer else 'unattributed'}")
        print(f"  Interchange Control Number: {transaction.metadata.control_number}")
        print(f"  Total Segments: {transaction.statistics.total_segments}")

        if validation_result.valid:
            print("EDI is structurally valid!")
        else:
            print(f"EDI validation found {len(validation_result.findings)} issues:")
        for i, finding in enumerate(validation_result.findings[:MAX_LISTED_FINDINGS]):
            print(f"  {i+1}. [{finding.level}] {finding.message} (line {finding.location.get('line_number')})")
        if len(validation_result.findings) > MAX_LISTED_FINDINGS:
            print(f"  ... and {len(validation_result.findings) - MAX_LISTED_FINDINGS} more findings")

        print("\nGenerating JSON output...")
        json_output = extract(transaction).model_dump_json(indent=2, by_alias=True)
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(json_output)

        print(f"JSON output saved to: {output_file}")
        print(f"Output size: {len(json_output):,} characters")
        return 0

    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to process {input_file}: {e}", exc_info=True)
        print(f"Error: {e}")
        return 1


def rebuild_edi_file(input_file: str, output_file: str) -> int:
    """Rebuild EDI text from a conversion result JSON."""
    try:
        with open(input_file, 'r', encoding='utf-8') as f:
            result = ConversionResult.model_validate_json(f.read())

        edi_output = to_segments(result)
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(edi_output)

        print(f"EDI output saved to: {output_file} ({len(edi_output.splitlines())} segments)")
        return 0

    except (OSError, ValueError) as e:
        # pydantic's ValidationError and UnicodeDecodeError are ValueErrors
        logger.error(f"Failed to rebuild EDI from {input_file}: {e}", exc_info=True)
        print(f"Error: {e}")
        return 1


def main(argv=None):
    """Main entry point with command line argument parsing."""

    parser = argparse.ArgumentParser(
        description="Parse, validate and convert X12 EDI files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py enrollment.edi                     # Parse enrollment.edi -> enrollment.json
  python main.py remittance.edi output.json         # Parse to specific output
  python main.py output.json rebuilt.edi --to-edi   # Rebuild EDI from JSON
        """
    )

    parser.add_argument('input_file', help='Input EDI file (or conversion JSON with --to-edi)')
    parser.add_argument('output_file', nargs='?',
                        help='Output file (default: input file with .json or .edi suffix)')
    parser.add_argument('--to-edi', action='store_true',
                        help='Rebuild EDI from a conversion JSON instead of parsing EDI')
    parser.add_argument('--reference-path', help='Directory with alternate reference tables (JSON)')
    parser.add_argument('--partner', help='Trading partner id for partner-specific reference tables')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Logging level (default: WARNING)')

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if not args.output_file:
        input_path = Path(args.input_file)
        args.output_file = str(input_path.with_suffix('.edi' if args.to_edi else '.json'))

    if not Path(args.input_file).exists():
        print(f"Error: Input file not found: {args.input_file}")
        return 1

    if args.to_edi:
        return rebuild_edi_file(args.input_file, args.output_file)
    return parse_edi_file(args.input_file, args.output_file, args.reference_path, args.partner)


if __name__ == "__main__":
    sys.exit(main())
