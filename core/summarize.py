"""
Summary Module - transcript text → LLM summary

Single responsibility: resolve an API key, build the summary (or
translate-then-summarize) prompt and call the configured chat API.
SDK-level retries are disabled; a failed call is fatal.
"""

import os
import getpass
from pathlib import Path
from typing import Callable, Optional

import anthropic
import openai
import structlog
from pydantic import BaseModel, Field, validator

from config import SummarizerConfig
from core.errors import APIError, CredentialError, OutputError, ProcessingError
from core.subtitles import ENGLISH, language_name

logger = structlog.get_logger(__name__)

# provider → (environment variables in priority order, fallback key file)
CREDENTIAL_SOURCES = {
    "anthropic": (("ANTHROPIC_API_KEY", "CLAUDE_API_KEY"), "~/.claude_api_key"),
    "openai": (("OPENAI_API_KEY", "TOOLKIT_SUMMARY_OPENAI_API_KEY"), "~/.openai_api_key"),
}


class SummaryResult(BaseModel):
    """Generated summary with the request metadata"""

    text: str = Field(description="Summary text returned by the model")
    provider: str
    model: str
    translated: bool = False
    output_path: Optional[Path] = None

    @validator('text')
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError("Summary is empty")
        return v


def _read_key_file(path: Path) -> str:
    try:
        return path.read_text(encoding='utf-8').strip()
    except OSError as e:
        logger.warning("Could not read API key file", filepath=str(path), error=str(e))
        return ""


def resolve_api_key(
    explicit: Optional[str] = None,
    provider: str = "anthropic",
    environ=None,
    prompt: Callable[[str], str] = getpass.getpass,
) -> str:
    """First non-empty of: argument → env var 1 → env var 2 → key file → prompt"""

    if environ is None:
        environ = os.environ
    env_vars, key_file = CREDENTIAL_SOURCES[provider]

    if explicit and explicit.strip():
        return explicit.strip()

    for name in env_vars:
        value = environ.get(name, "").strip()
        if value:
            logger.debug("API key taken from environment", variable=name)
            return value

    path = Path(key_file).expanduser()
    if path.is_file():
        value = _read_key_file(path)
        if value:
            logger.debug("API key taken from file", filepath=str(path))
            return value

    try:
        value = prompt(f"Enter {provider.capitalize()} API key: ").strip()
    except EOFError:
        value = ""

    if not value:
        raise CredentialError("No API key provided")
    return value


def build_prompt(target_lang: str, needs_translation: bool, source_lang: str = ENGLISH) -> str:
    target = language_name(target_lang)
    if needs_translation:
        source = language_name(source_lang)
        return (
            f"First translate the following {source} transcript to {target}, then provide "
            f"a concise {target} summary of the content, capturing the main points and key "
            f"information. Do not include the full translation - only provide the summary "
            f"in {target}, without any header."
        )
    return (
        f"Summarize the following {target} text into a concise summary in {target}, "
        f"capturing the main points and key information:"
    )


def build_message(prompt: str, transcript: str) -> str:
    return f"{prompt}: \n\n{transcript}"


def call_anthropic(message: str, api_key: str, settings: SummarizerConfig) -> str:
    client = anthropic.Anthropic(
        api_key=api_key,
        timeout=settings.api_timeout,
        max_retries=0,
    )
    try:
        response = client.messages.create(
            model=settings.anthropic_model,
            max_tokens=settings.max_tokens,
            messages=[{"role": "user", "content": message}],
        )
    except anthropic.APIError as e:
        logger.error("Anthropic API error", error=str(e))
        raise APIError(f"Failed to call Claude API: {e}")

    return "".join(
        block.text for block in response.content if getattr(block, "type", "") == "text"
    )


def call_openai(message: str, api_key: str, settings: SummarizerConfig) -> str:
    client = openai.OpenAI(
        api_key=api_key,
        timeout=settings.api_timeout,
        max_retries=0,
    )
    try:
        response = client.chat.completions.create(
            model=settings.openai_model,
            max_tokens=settings.max_tokens,
            messages=[{"role": "user", "content": message}],
        )
    except openai.OpenAIError as e:
        logger.error("OpenAI API error", error=str(e))
        raise APIError(f"Failed to call OpenAI API: {e}")

    return response.choices[0].message.content or ""


PROVIDER_CALLS = {
    "anthropic": call_anthropic,
    "openai": call_openai,
}


def summarize_transcript(
    transcript: str,
    api_key: str,
    target_lang: str,
    needs_translation: bool,
    settings: SummarizerConfig,
    source_lang: str = ENGLISH,
) -> SummaryResult:
    """Send the transcript to the configured provider and return its summary"""

    prompt = build_prompt(target_lang, needs_translation, source_lang=source_lang)
    message = build_message(prompt, transcript)

    logger.info("Requesting summary",
                provider=settings.provider,
                model=settings.model,
                char_count=len(transcript),
                translate=needs_translation)

    text = PROVIDER_CALLS[settings.provider](message, api_key, settings)
    if not text.strip():
        raise ProcessingError("Failed to generate summary")

    logger.info("Summary generated", char_count=len(text))
    return SummaryResult(
        text=text,
        provider=settings.provider,
        model=settings.model,
        translated=needs_translation,
    )


def validate_output_path(output_file: str) -> Path:
    """Output file's directory must already exist and be writable"""

    path = Path(output_file).expanduser()
    parent = path.parent
    if not parent.is_dir() or not os.access(parent, os.W_OK):
        raise OutputError(f"Cannot write to output file: {output_file}")
    return path


def write_summary(result: SummaryResult, path: Path) -> SummaryResult:
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(result.text.rstrip("\n") + "\n")
    except OSError as e:
        logger.error("Failed to save summary", filepath=str(path), error=str(e))
        raise OutputError(f"Cannot write to output file: {path}: {e}")

    logger.info("Summary saved", filepath=str(path))
    return result.model_copy(update={"output_path": path})
