"""Tests for subtitle content detection, SRT cleanup and the language fallback."""

import shutil
from unittest.mock import MagicMock, patch

import pytest
import yt_dlp

from core.errors import DependencyMissingError, ResolutionError, TransportError
from core.subtitles import (
    check_dependencies,
    download_subtitles,
    fetch_transcript,
    find_srt_file,
    get_video_title,
    has_text_content,
    is_dialogue_line,
    is_youtube_url,
    language_name,
    sanitize_title,
    srt_to_text,
)


URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

VTT_CAPTIONS = (
    "WEBVTT\n"
    "\n"
    "00:00:00.000 --> 00:00:02.000\n"
    "hello everyone and welcome\n"
    "\n"
    "00:00:02.000 --> 00:00:04.000\n"
    "to the show.\n"
)


def _fake_downloader(contents):
    """Downloader writing <id>.<lang>.srt from a lang → text mapping (missing = no file)."""
    calls = []

    def downloader(url, lang, work_dir):
        calls.append(lang)
        if lang in contents:
            (work_dir / f"dQw4w9WgXcQ.{lang}.srt").write_text(contents[lang], encoding="utf-8")

    downloader.calls = calls
    return downloader


# ── content detection ─────────────────────────────────────────


class TestHasTextContent:
    def test_missing_file(self, tmp_path):
        assert has_text_content(None) is False
        assert has_text_content(tmp_path / "nope.pl.srt") is False

    def test_zero_size_file(self, tmp_path):
        path = tmp_path / "v.pl.srt"
        path.write_text("")

        assert has_text_content(path) is False

    def test_only_indexes_and_timestamps(self, tmp_path, srt_without_dialogue):
        path = tmp_path / "v.pl.srt"
        path.write_text(srt_without_dialogue)

        assert has_text_content(path) is False

    def test_dialogue_present(self, tmp_path, srt_with_dialogue):
        path = tmp_path / "v.pl.srt"
        path.write_text(srt_with_dialogue)

        assert has_text_content(path) is True

    @pytest.mark.parametrize("line,expected", [
        ("12", False),
        ("00:01:02,500 --> 00:01:04,000", False),
        ("", False),
        ("   ", False),
        ("\ufeff1", False),
        ("Hello there", True),
        ("2024 was a good year", True),
    ])
    def test_is_dialogue_line(self, line, expected):
        assert is_dialogue_line(line) is expected


class TestSrtToText:
    def test_joins_fragments_and_breaks_after_sentences(self, srt_with_dialogue):
        text = srt_to_text(srt_with_dialogue)

        assert text == "hello everyone and welcome to the show.\nToday we talk about mirrors!\n"

    def test_trims_whitespace(self):
        srt = "1\n00:00:00,000 --> 00:00:01,000\n   padded line?  \n\n2\n00:00:01,000 --> 00:00:02,000\nnext\n"

        assert srt_to_text(srt) == "padded line?\nnext\n"

    def test_no_dialogue(self, srt_without_dialogue):
        assert srt_to_text(srt_without_dialogue) == ""


# ── language fallback ─────────────────────────────────────────


class TestFetchTranscript:
    def test_primary_language_content(self, tmp_path, srt_with_dialogue):
        downloader = _fake_downloader({"pl": srt_with_dialogue})

        result = fetch_transcript(URL, "pl", tmp_path, downloader=downloader)

        assert result.language == "pl"
        assert result.needs_translation is False
        assert downloader.calls == ["pl"]

    def test_empty_primary_falls_back_to_english(self, tmp_path, srt_with_dialogue, srt_without_dialogue):
        downloader = _fake_downloader({"pl": srt_without_dialogue, "en": srt_with_dialogue})
        events = []

        result = fetch_transcript(
            URL, "pl", tmp_path, downloader=downloader,
            on_event=lambda kind, message: events.append(message),
        )

        assert downloader.calls == ["pl", "en"]
        assert result.language == "en"
        assert result.needs_translation is True
        assert result.srt_path.name.endswith(".en.srt")
        assert events == ["No Polish content found, trying English..."]

    def test_missing_primary_falls_back_to_english(self, tmp_path, srt_with_dialogue):
        downloader = _fake_downloader({"en": srt_with_dialogue})

        result = fetch_transcript(URL, "de", tmp_path, downloader=downloader)

        assert result.needs_translation is True

    def test_english_primary_without_content_fails(self, tmp_path, srt_without_dialogue):
        downloader = _fake_downloader({"en": srt_without_dialogue})

        with pytest.raises(ResolutionError):
            fetch_transcript(URL, "en", tmp_path, downloader=downloader)

        assert downloader.calls == ["en"]

    def test_no_content_in_either_language(self, tmp_path, srt_without_dialogue):
        downloader = _fake_downloader({"pl": srt_without_dialogue, "en": srt_without_dialogue})

        with pytest.raises(ResolutionError, match="English"):
            fetch_transcript(URL, "pl", tmp_path, downloader=downloader)

        assert downloader.calls == ["pl", "en"]

    def test_downloader_failure_is_fatal_without_fallback(self, tmp_path):
        downloader = MagicMock(side_effect=TransportError("Failed to download pl transcript"))

        with pytest.raises(TransportError):
            fetch_transcript(URL, "pl", tmp_path, downloader=downloader)

        downloader.assert_called_once()

    def test_find_srt_file(self, tmp_path):
        (tmp_path / "abc.pl.srt").write_text("x")
        (tmp_path / "abc.en.srt").write_text("x")

        assert find_srt_file(tmp_path, "en").name == "abc.en.srt"
        assert find_srt_file(tmp_path, "fr") is None


# ── yt-dlp integration ────────────────────────────────────────


class TestYtDlp:
    @patch("core.subtitles.yt_dlp.YoutubeDL")
    def test_download_subtitles_options(self, mock_ydl_cls, tmp_path):
        ydl = mock_ydl_cls.return_value.__enter__.return_value

        download_subtitles(URL, "pl", tmp_path)

        opts = mock_ydl_cls.call_args[0][0]
        assert opts["writeautomaticsub"] is True
        assert opts["subtitleslangs"] == ["pl"]
        assert opts["skip_download"] is True
        assert opts["outtmpl"].startswith(str(tmp_path))
        assert opts["postprocessors"] == [
            {"key": "FFmpegSubtitlesConvertor", "format": "srt", "when": "before_dl"},
        ]
        ydl.download.assert_called_once_with([URL])

    @pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
    def test_vtt_auto_captions_converted_to_srt(self, tmp_path):
        info = {
            "id": "abc123",
            "title": "Synthetic video",
            "extractor": "generic",
            "extractor_key": "Generic",
            "webpage_url": URL,
            "url": "https://example.invalid/abc123.mp4",
            "ext": "mp4",
            "automatic_captions": {
                "pl": [{"ext": "vtt", "data": VTT_CAPTIONS}],
            },
        }

        def feed_info(ydl, urls):
            ydl.process_ie_result(dict(info), download=True)
            return 0

        with patch.object(yt_dlp.YoutubeDL, "download", autospec=True, side_effect=feed_info):
            download_subtitles(URL, "pl", tmp_path)

        srt_path = find_srt_file(tmp_path, "pl")
        assert srt_path is not None
        assert has_text_content(srt_path)
        assert "to the show." in srt_to_text(srt_path.read_text(encoding="utf-8"))

    @patch("core.subtitles.yt_dlp.YoutubeDL")
    def test_download_subtitles_failure(self, mock_ydl_cls, tmp_path):
        ydl = mock_ydl_cls.return_value.__enter__.return_value
        ydl.download.side_effect = yt_dlp.utils.DownloadError("ERROR: Video unavailable")

        with pytest.raises(TransportError):
            download_subtitles(URL, "pl", tmp_path)

    @patch("core.subtitles.yt_dlp.YoutubeDL")
    def test_video_title_sanitized(self, mock_ydl_cls):
        ydl = mock_ydl_cls.return_value.__enter__.return_value
        ydl.extract_info.return_value = {"title": 'What is "AI"?  A/B  test'}

        assert get_video_title(URL) == "What is AI AB test"

    @patch("core.subtitles.yt_dlp.YoutubeDL")
    def test_video_title_fallback(self, mock_ydl_cls):
        ydl = mock_ydl_cls.return_value.__enter__.return_value
        ydl.extract_info.side_effect = yt_dlp.utils.DownloadError("ERROR: private video")

        assert get_video_title(URL) == "video"

    @patch("core.subtitles.shutil.which", return_value=None)
    def test_missing_ffmpeg(self, mock_which):
        with pytest.raises(DependencyMissingError):
            check_dependencies()


# ── helpers ───────────────────────────────────────────────────


class TestHelpers:
    @pytest.mark.parametrize("url,expected", [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", True),
        ("https://youtu.be/dQw4w9WgXcQ", True),
        ("https://youtube.com/shorts/abcdefghijk", True),
        ("https://vimeo.com/12345", False),
        ("https://www.youtube.com/channel/xyz", False),
    ])
    def test_is_youtube_url(self, url, expected):
        assert is_youtube_url(url) is expected

    def test_sanitize_title(self):
        assert sanitize_title('  a<b>c:d|e?f*g\x07  h  ') == "abcdefg h"

    def test_language_name(self):
        assert language_name("ko") == "Korean"
        assert language_name("pt") == "pt"
