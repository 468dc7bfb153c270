#!/usr/bin/env python3
"""
CLI script to run one assessment on a local image.

Usage:
    python scripts/assess_image.py photo.jpg --bleed
    MODEL_BASE_URL=https://.../models/abc123/ python scripts/assess_image.py photo.jpg

Prints the assessment as JSON. The AI stage falls back to a base risk of
0.1 when the classifier cannot be loaded; that is not an error.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from skincheck.config.config import get_settings
from skincheck.config.logging_config import configure_logging
from skincheck.models.risk_models import SymptomFlags
from skincheck.services.assessment_service import AssessmentService
from skincheck.services.model_lifecycle import ModelLifecycleManager
from skincheck.services.scan_repository import ScanRepository


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Assess a skin spot photo")
    parser.add_argument("image", type=Path, help="Path to the photo")
    parser.add_argument("--itch", action="store_true", help="Spot is actively itching")
    parser.add_argument("--bleed", action="store_true", help="Bleeding, oozing or crusting")
    parser.add_argument("--growth", action="store_true", help="Grown in recent weeks")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> dict:
    settings = get_settings()
    model = ModelLifecycleManager(settings)
    try:
        load_result = await model.load()
        service = AssessmentService(model=model, repository=ScanRepository())
        outcome = await service.assess(
            args.image.read_bytes(),
            SymptomFlags(itch=args.itch, bleed=args.bleed, growth=args.growth),
            image_ref=str(args.image),
        )
    finally:
        await model.aclose()

    return {
        "model_loaded": load_result.success,
        "model_error": load_result.error,
        "inference": outcome.inference.model_dump(mode="json"),
        "assessment": outcome.assessment.model_dump(mode="json"),
        "status": outcome.tier_info.to_dict(),
        "advice": outcome.tier_info.advice_message,
        "symptoms": list(outcome.symptoms),
        "record": outcome.record.model_dump(mode="json"),
    }


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if not args.image.is_file():
        print(f"Error: image not found: {args.image}", file=sys.stderr)
        return 1

    configure_logging(stream=sys.stderr)
    result = asyncio.run(run(args))
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
