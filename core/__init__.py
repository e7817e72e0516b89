"""
Core modules for iso-yt-toolkit

This package contains the core functionality modules:
- errors.py: fatal error taxonomy shared by both tools
- console.py: logging setup, status lines, spinner
- mirrors.py: mirror candidates → fastest origin
- iso.py: ISO name → downloaded and verified file
- subtitles.py: YouTube URL → transcript text (with language fallback)
- summarize.py: transcript text → LLM summary
"""
