from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from lettersmith.core.config import load_settings
from lettersmith.core.errors import LetterError
from lettersmith.core.models import Tone
from lettersmith.pipelines.letter_pipeline import LetterPipeline, LetterPipelineConfig, report_failure
from lettersmith.providers.registry import client_from_settings


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {number}")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate an advocacy letter to one of your representatives.")
    parser.add_argument("main_issue", help="The issue the letter is about.")
    parser.add_argument("--concern", required=True, help="Specific concern to raise.")
    parser.add_argument("--action", required=True, help="Action you want the representative to take.")
    parser.add_argument("--env-file", type=Path, default=None, help="Optional .env file to load first.")
    parser.add_argument("--provider", choices=["openai", "anthropic"], default=None, help="Override AI_PROVIDER.")
    parser.add_argument("--model", default=None, help="Override the provider's model.")
    parser.add_argument("--name", default=None, help="Constituent name (default: USER_NAME).")
    parser.add_argument("--zip", dest="zip_code", default=None, help="Constituent ZIP code (default: USER_ZIP_CODE).")
    parser.add_argument("--state", default=None, help="Directory key to try when the ZIP has no entry.")
    parser.add_argument("--tone", choices=[t.value for t in Tone], default=None, help="Override LETTER_TONE.")
    parser.add_argument("--max-length", type=positive_int, default=None, help="Target word count (default: LETTER_MAX_LENGTH).")
    parser.add_argument("--representatives", type=Path, default=None, help="Representatives JSON file.")
    parser.add_argument("--output-dir", type=Path, default=None, help="Where to write the letter files.")
    parser.add_argument("--dry-run", action="store_true", help="Print the prompt and cost estimate without calling the provider.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(args.env_file)
        client = client_from_settings(settings, args.provider, model=args.model)
        config = LetterPipelineConfig(
            main_issue=args.main_issue,
            specific_concern=args.concern,
            requested_action=args.action,
            user_name=args.name or settings.user_name,
            user_zip_code=args.zip_code or settings.user_zip_code,
            provider=client.get_provider_name(),
            tone=Tone.parse(args.tone) if args.tone else settings.tone,
            max_length=settings.max_length if args.max_length is None else args.max_length,
            state_fallback=args.state,
            representatives_file=(args.representatives or settings.representatives_file).expanduser().resolve(),
            output_dir=(args.output_dir or settings.output_dir).expanduser().resolve(),
            dry_run=args.dry_run,
        )
        LetterPipeline(config, client=client).run()
    except LetterError as exc:
        report_failure(exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
