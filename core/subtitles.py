"""
Subtitle Module - YouTube URL → clean transcript text

Single responsibility: fetch auto-generated subtitles with yt-dlp, decide
between the primary language and the English fallback, and reformat SRT
cues into readable text.
"""

import re
import shutil
from pathlib import Path
from typing import Callable, Optional

import yt_dlp
import structlog
from pydantic import BaseModel, Field, validator

from core.errors import DependencyMissingError, ResolutionError, TransportError

logger = structlog.get_logger(__name__)

ENGLISH = "en"

YOUTUBE_URL_RE = re.compile(
    r"(youtube\.com/watch\?v=|youtu\.be/|youtube\.com/shorts/)"
)
INDEX_LINE_RE = re.compile(r"^[0-9]+$")
TIMESTAMP_LINE_RE = re.compile(r"^[0-9]{2}:[0-9]{2}:[0-9]{2}")
TITLE_STRIP_RE = re.compile(r'[<>:"/\\|?*]')


class TranscriptResult(BaseModel):
    """Subtitle file selected by the language fallback"""

    srt_path: Path = Field(description="Path to the SRT file with dialogue")
    language: str = Field(description="Language the subtitles are in")
    needs_translation: bool = Field(default=False, description="Fell back to English")

    @validator('srt_path')
    def validate_srt_exists(cls, v):
        if not Path(v).is_file():
            raise ValueError(f"Subtitle file does not exist: {v}")
        return v


def is_youtube_url(url: str) -> bool:
    return bool(YOUTUBE_URL_RE.search(url))


def check_dependencies():
    """ffmpeg converts YouTube's native subtitle formats to SRT"""
    if not shutil.which("ffmpeg"):
        raise DependencyMissingError(
            "ffmpeg not installed (needed to convert subtitles to SRT). "
            "Install with: apt install ffmpeg (Ubuntu) or brew install ffmpeg (Mac)"
        )


def sanitize_title(title: str) -> str:
    """Strip characters that are unsafe in file names and squeeze whitespace"""
    cleaned = TITLE_STRIP_RE.sub("", title)
    cleaned = "".join(ch for ch in cleaned if ch.isprintable())
    return " ".join(cleaned.split())


def get_video_title(url: str, timeout: int = 10) -> str:
    """Video title for display; 'video' when it cannot be looked up"""

    ydl_opts = {
        'quiet': True,
        'no_warnings': True,
        'skip_download': True,
        'socket_timeout': timeout,
    }

    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(url, download=False)
    except yt_dlp.utils.DownloadError as e:
        logger.warning("Could not fetch video title", url=url, error=str(e))
        return "video"

    title = sanitize_title((info or {}).get('title') or "")
    return title or "video"


def download_subtitles(url: str, lang: str, work_dir: Path):
    """Write <id>.<lang>.srt auto-subtitles into work_dir (no media download)"""

    ydl_opts = {
        'writeautomaticsub': True,
        'subtitleslangs': [lang],
        'subtitlesformat': 'srt/best',
        'skip_download': True,
        'outtmpl': str(work_dir / '%(id)s.%(ext)s'),
        'quiet': True,
        'no_warnings': True,
        'noprogress': True,
        # skip_download only runs pre-download postprocessors
        'postprocessors': [
            {'key': 'FFmpegSubtitlesConvertor', 'format': 'srt', 'when': 'before_dl'},
        ],
    }

    logger.info("Downloading subtitles", url=url, lang=lang)

    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            ydl.download([url])
    except yt_dlp.utils.DownloadError as e:
        logger.error("Subtitle download failed", url=url, lang=lang, error=str(e))
        raise TransportError(f"Failed to download {lang} transcript: {e}")


def find_srt_file(work_dir: Path, lang: str) -> Optional[Path]:
    matches = sorted(work_dir.glob(f"*.{lang}.srt"))
    return matches[0] if matches else None


def is_dialogue_line(line: str) -> bool:
    """True for a subtitle text line (not an index, timestamp or blank)"""
    stripped = line.strip().lstrip("\ufeff")
    if not stripped:
        return False
    if INDEX_LINE_RE.match(stripped) or TIMESTAMP_LINE_RE.match(stripped):
        return False
    return True


def has_text_content(srt_path: Optional[Path]) -> bool:
    """Subtitle file exists, is non-empty and has at least one dialogue line"""

    if srt_path is None or not srt_path.is_file() or srt_path.stat().st_size == 0:
        return False

    with open(srt_path, 'r', encoding='utf-8', errors='replace') as f:
        return any(is_dialogue_line(line) for line in f)


def srt_to_text(srt_text: str) -> str:
    """Join subtitle fragments into sentences, one sentence-ending per line"""

    output = ""
    prev_line = None
    for raw in srt_text.splitlines():
        if not is_dialogue_line(raw):
            continue
        line = raw.strip()
        if prev_line is None:
            output = line
        elif prev_line[-1] in ".!?":
            output += "\n" + line
        else:
            output += " " + line
        prev_line = line

    return output + "\n" if output else ""


def fetch_transcript(
    url: str,
    primary_lang: str,
    work_dir: Path,
    downloader: Callable[[str, str, Path], None] = download_subtitles,
    fallback_lang: str = ENGLISH,
    on_event: Optional[Callable[[str, str], None]] = None,
) -> TranscriptResult:
    """Primary language → fallback language (English) → failure.

    A failing downloader is fatal; only an empty or missing subtitle file
    triggers the single fallback to English.
    """

    def emit(kind: str, message: str):
        if on_event:
            on_event(kind, message)

    downloader(url, primary_lang, work_dir)
    srt_path = find_srt_file(work_dir, primary_lang)
    if has_text_content(srt_path):
        logger.info("Primary language subtitles found", lang=primary_lang, filepath=str(srt_path))
        return TranscriptResult(srt_path=srt_path, language=primary_lang)

    if primary_lang == fallback_lang:
        raise ResolutionError("No subtitles found for this video")

    fallback_name = language_name(fallback_lang)
    logger.warning("No primary language content, trying fallback",
                   lang=primary_lang, fallback=fallback_lang)
    emit("warning", f"No {language_name(primary_lang)} content found, trying {fallback_name}...")

    downloader(url, fallback_lang, work_dir)
    srt_path = find_srt_file(work_dir, fallback_lang)
    if not has_text_content(srt_path):
        raise ResolutionError(f"No {fallback_name} content found either")

    logger.info("Fallback subtitles found, translation needed",
                lang=fallback_lang, filepath=str(srt_path))
    return TranscriptResult(srt_path=srt_path, language=fallback_lang, needs_translation=True)


LANGUAGE_NAMES = {
    "pl": "Polish",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)
