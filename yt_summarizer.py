#!/usr/bin/env python3
"""
YouTube Transcript Summarizer - main entry point

Pipeline: URL → auto-subtitles (primary language, English fallback) →
clean transcript text → LLM summary (translated when the fallback was used).
All intermediate files live in a temporary directory removed on exit.
"""

import sys
import argparse
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from config import AppConfig, PROVIDERS, load_config
from core.console import (
    Spinner,
    configure_logging,
    print_block,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from core.errors import ConfigurationError, ToolError
from core.subtitles import (
    check_dependencies,
    download_subtitles,
    fetch_transcript,
    get_video_title,
    is_youtube_url,
    language_name,
    srt_to_text,
)
from core.summarize import (
    SummaryResult,
    resolve_api_key,
    summarize_transcript,
    validate_output_path,
    write_summary,
)

logger = structlog.get_logger(__name__)

TEMP_PREFIX = "yt-summarizer-"

EPILOG = """examples:
  yt-summarizer 'https://youtube.com/watch?v=VIDEO_ID'
                                      # Polish transcript -> Polish summary
  yt-summarizer -l en 'https://youtube.com/watch?v=VIDEO_ID'
                                      # English transcript -> English summary
  yt-summarizer -l es -o summary.txt 'https://youtube.com/watch?v=VIDEO_ID'
                                      # Spanish summary saved to summary.txt

API key sources (in order of priority):
  1. Command line argument (second parameter after URL)
  2. ANTHROPIC_API_KEY environment variable
  3. CLAUDE_API_KEY environment variable
  4. ~/.claude_api_key file
  5. Interactive prompt
  (openai provider: OPENAI_API_KEY, TOOLKIT_SUMMARY_OPENAI_API_KEY, ~/.openai_api_key)

behavior:
  - Tries primary language subtitles first
  - Falls back to English + translation if primary language unavailable
  - Auto-detects empty subtitle files and switches to fallback
"""


def build_parser(app_config: Optional[AppConfig] = None) -> argparse.ArgumentParser:
    summary = (app_config or load_config()).summary
    parser = argparse.ArgumentParser(
        prog="yt-summarizer",
        description="Download YouTube transcript and generate AI summary.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("url", nargs="?", help="YouTube video URL")
    parser.add_argument("api_key", nargs="?", help="API key for the summary provider")
    parser.add_argument(
        "-l", "--language", default=summary.default_language, metavar="LANG",
        help=f"Primary language for subtitles [default: {summary.default_language}]",
    )
    parser.add_argument(
        "-o", "--output", metavar="FILE",
        help="Save summary to specified file (prints to console by default)",
    )
    parser.add_argument(
        "--provider", choices=PROVIDERS, default=summary.provider,
        help=f"LLM provider [default: {summary.provider}]",
    )
    return parser


def run(
    url: str,
    api_key: Optional[str] = None,
    language: Optional[str] = None,
    output: Optional[str] = None,
    provider: Optional[str] = None,
    app_config: Optional[AppConfig] = None,
) -> SummaryResult:
    """Validate inputs, fetch the transcript and summarize it"""

    app_config = app_config or load_config()
    updates = {}
    if provider:
        updates["provider"] = provider
    settings = app_config.summary.model_copy(update=updates)
    language = language or settings.default_language

    with Spinner("Checking dependencies..."):
        check_dependencies()
    print_success("Dependencies OK")

    if not is_youtube_url(url):
        raise ConfigurationError(f"Invalid YouTube URL: {url}")

    output_path = validate_output_path(output) if output else None

    with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX) as temp_dir:
        work_dir = Path(temp_dir)
        logger.debug("Working directory created", path=str(work_dir))

        print_info("Starting video processing...")
        with Spinner("Getting video title..."):
            title = get_video_title(url, timeout=settings.metadata_timeout)
        print_info(f"Video title: {title}")

        def downloader(video_url: str, lang: str, target: Path):
            with Spinner(f"Downloading {language_name(lang)} transcript..."):
                download_subtitles(video_url, lang, target)

        transcript = fetch_transcript(
            url,
            language,
            work_dir,
            downloader=downloader,
            fallback_lang=settings.fallback_language,
            on_event=lambda kind, message: print_warning(message),
        )
        if transcript.needs_translation:
            print_success(
                f"{language_name(transcript.language)} SRT file found "
                f"(will translate to {language_name(language)})"
            )
        else:
            print_success(f"{language_name(language)} SRT file found")

        text = srt_to_text(transcript.srt_path.read_text(encoding='utf-8', errors='replace'))
        print_success("Clean transcript saved")

        key = resolve_api_key(api_key, provider=settings.provider)

        print_info("Processing transcript")
        with Spinner(f"Summarizing with {settings.model}..."):
            result = summarize_transcript(
                text,
                key,
                language,
                transcript.needs_translation,
                settings,
                source_lang=transcript.language,
            )

    if output_path:
        result = write_summary(result, output_path)
        print_success(f"Summary saved: {output_path}")
        print_block("Summary preview:", result.text)
    else:
        print_block("Summary:", result.text)

    return result


def main(argv=None):
    """Main entry point with argument parsing"""

    try:
        app_config = load_config()
    except ToolError as e:
        print_error(str(e))
        sys.exit(e.exit_code)

    configure_logging(app_config.debug)
    parser = build_parser(app_config)
    args = parser.parse_args(argv)

    if not args.url:
        parser.print_help()
        sys.exit(1)

    try:
        run(
            args.url,
            api_key=args.api_key,
            language=args.language,
            output=args.output,
            provider=args.provider,
            app_config=app_config,
        )
    except ToolError as e:
        logger.error("Summarizer failed", error=str(e), error_type=type(e).__name__)
        print_error(str(e))
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print_error("Interrupted")
        sys.exit(130)

    sys.exit(0)


if __name__ == "__main__":
    main()
