"""
Run the Customer Segmentation Engine from a configuration file

Usage:
    python run_segmentation.py config.yaml                  # YAML config
    python run_segmentation.py config.json                  # JSON config
    python run_segmentation.py config.yaml --validate-only  # Check config and exit
"""

import sys
from pathlib import Path

from customer_segmentation import SegmentationConfig, SegmentationPipeline
from customer_segmentation.logger import configure_logging_from_config


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)
    validate_only = '--validate-only' in argv
    paths = [arg for arg in argv if not arg.startswith('--')]

    if not paths:
        print(__doc__)
        return 2

    config_path = paths[0]
    if not Path(config_path).exists():
        print(f"ERROR: Config file not found: {config_path}")
        return 1

    print(f"\n{'='*60}")
    print("Customer Segmentation")
    print(f"{'='*60}")
    print(f"Config: {config_path}")
    print(f"{'='*60}\n")

    try:
        config = SegmentationConfig.from_file(config_path)
    except (ValueError, KeyError, TypeError) as e:
        print(f"ERROR: Could not read configuration: {type(e).__name__}: {e}")
        return 1

    issues = config.validate()
    if issues:
        print("ERROR: Configuration is invalid:")
        for issue in issues:
            print(f"  - {issue}")
        return 1
    if validate_only:
        print(config.summary())
        return 0

    configure_logging_from_config(config)

    try:
        pipeline = SegmentationPipeline(config)
        pipeline.run_all()

        print(f"\n{'='*60}")
        print("Segmentation Complete")
        print(f"{'='*60}")
        print(f"Output directory: {pipeline.config.output.output_dir}")
        print("\nGenerated files:")

        output_dir = Path(pipeline.config.output.output_dir)
        if output_dir.exists():
            for file in sorted(output_dir.iterdir()):
                print(f"  - {file.name}")

        print(f"\n{'='*60}\n")

    except Exception as e:
        print(f"\n{'='*60}")
        print("ERROR: Segmentation failed")
        print(f"{'='*60}")
        print(f"{type(e).__name__}: {e}")
        import traceback
        traceback.print_exc()
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
