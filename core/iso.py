"""
Debian ISO Module - resolve, download and verify a single ISO

Single responsibility: mirror list → verified ISO file on disk
Phases run in strict sequence: resolve name → reuse check → select mirror →
download → verify. A checksum mismatch triggers exactly one re-download
(tenacity); transport failures are never retried.
"""

import os
import re
import hashlib
from pathlib import Path
from typing import Callable, Dict, Optional

import requests
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    stop_after_attempt,
    retry_if_exception_type
)

from core.errors import (
    DownloadError,
    IntegrityError,
    OutputError,
    ResolutionError,
    TransportError,
)
from core.mirrors import MirrorCandidate, MirrorSelection

logger = structlog.get_logger(__name__)

MAX_DOWNLOAD_ATTEMPTS = 2
CHECKSUM_FILE = "SHA256SUMS"
USER_AGENT = "iso-yt-toolkit/1.0"

VERIFIED = "verified"
SKIPPED = "skipped"
DISABLED = "disabled"


class IsoArtifact(BaseModel):
    """The single ISO targeted by one invocation"""

    name: str = Field(description="Resolved ISO file name")
    path: Path = Field(description="Local target path")

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    @property
    def size_bytes(self) -> Optional[int]:
        return self.path.stat().st_size if self.exists else None


class ChecksumRecord(BaseModel):
    """Published SHA256SUMS entries, keyed by file name"""

    source_url: str
    digests: Dict[str, str] = Field(default_factory=dict)

    def expected_for(self, name: str) -> Optional[str]:
        return self.digests.get(name)


class DownloadOutcome(BaseModel):
    """Result of the download procedure"""

    artifact: IsoArtifact
    origin: Optional[MirrorCandidate] = None
    attempts: int = Field(default=0, ge=0, description="Download attempts made (0 when reused)")
    reused: bool = False
    verification: str = Field(default=DISABLED, description="verified, skipped or disabled")
    selection: Optional[MirrorSelection] = None


def make_session() -> requests.Session:
    """HTTP session shared by listing, probe, checksum and download requests"""
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def iso_name_pattern(arch: str, iso_type: str) -> re.Pattern:
    """Regex matching e.g. debian-13.1.0-amd64-netinst.iso"""
    return re.compile(
        rf"debian-[0-9]+\.[0-9]+\.[0-9]+-{re.escape(arch)}-{re.escape(iso_type)}\.iso"
    )


def prepare_download_dir(download_dir: str) -> Path:
    """Create the download directory and make sure it is writable"""

    path = Path(download_dir).expanduser()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"Cannot create download directory {path}: {e}")

    if not os.access(path, os.W_OK | os.X_OK):
        raise OutputError(f"Download directory is not writable: {path}")
    return path


def resolve_iso_name(
    listing_url: str,
    arch: str,
    iso_type: str,
    session: requests.Session,
    timeout: int = 30,
) -> str:
    """Return the first ISO name in the directory listing matching arch and type"""

    logger.info("Fetching ISO listing", url=listing_url)

    try:
        response = session.get(f"{listing_url}/", timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error("Failed to fetch ISO listing", url=listing_url, error=str(e))
        raise TransportError(f"Could not fetch ISO listing from {listing_url}: {e}")

    match = iso_name_pattern(arch, iso_type).search(response.text)
    if not match:
        raise ResolutionError(
            f"Could not find latest ISO name for {arch}/{iso_type} at {listing_url}"
        )

    logger.info("Resolved ISO name", iso_name=match.group(0))
    return match.group(0)


def parse_checksums(text: str) -> Dict[str, str]:
    """Parse `<digest>  <name>` lines (sha256sum output format)"""

    digests = {}
    for line in text.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) != 2:
            continue
        digest, name = parts
        # Binary-mode entries are prefixed with '*'
        digests[name.strip().lstrip('*')] = digest.lower()
    return digests


def fetch_checksums(
    origin_url: str,
    session: requests.Session,
    timeout: int = 30,
) -> Optional[ChecksumRecord]:
    """Download SHA256SUMS from an origin; None when it cannot be fetched"""

    url = f"{origin_url}/{CHECKSUM_FILE}"
    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Could not download checksum file", url=url, error=str(e))
        return None

    return ChecksumRecord(source_url=url, digests=parse_checksums(response.text))


def sha256_file(path: Path, chunk_size: int = 1048576) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def remove_file(path: Path):
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def download_file(
    url: str,
    path: Path,
    session: requests.Session,
    timeout: int = 60,
    chunk_size: int = 1048576,
    on_progress: Optional[Callable[[int, Optional[int]], None]] = None,
) -> int:
    """Stream url into path, overwriting it. Returns bytes written.

    Any partial file is removed before an error is raised.
    """

    logger.info("Starting ISO download", url=url, filepath=str(path))

    downloaded = 0
    try:
        with session.get(url, stream=True, timeout=(10, timeout)) as response:
            response.raise_for_status()
            total = int(response.headers.get("Content-Length", 0)) or None
            with open(path, "wb") as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if not chunk:
                        continue
                    f.write(chunk)
                    downloaded += len(chunk)
                    if on_progress:
                        on_progress(downloaded, total)
    except requests.RequestException as e:
        remove_file(path)
        logger.error("Download failed", url=url, error=str(e))
        raise DownloadError(f"Failed to download {path.name}: {e}")
    except OSError as e:
        remove_file(path)
        logger.error("Could not write ISO", filepath=str(path), error=str(e))
        raise OutputError(f"Could not write {path}: {e}")

    logger.info("Download finished", filepath=str(path), size_mb=downloaded / 1024 / 1024)
    return downloaded


def verify_artifact(
    artifact: IsoArtifact,
    checksum_origin: MirrorCandidate,
    session: requests.Session,
    timeout: int = 30,
    chunk_size: int = 1048576,
) -> str:
    """Check the artifact against SHA256SUMS from checksum_origin.

    Returns VERIFIED, or SKIPPED when no expected digest is published.
    On mismatch the file is deleted and IntegrityError is raised.
    """

    record = fetch_checksums(checksum_origin.url, session, timeout=timeout)
    if record is None:
        return SKIPPED

    expected = record.expected_for(artifact.name)
    if not expected:
        logger.warning("Checksum not found in SHA256SUMS file", iso_name=artifact.name)
        return SKIPPED

    actual = sha256_file(artifact.path, chunk_size=chunk_size)
    if actual != expected:
        logger.error("Checksum verification failed",
                     iso_name=artifact.name,
                     expected=expected,
                     actual=actual)
        remove_file(artifact.path)
        raise IntegrityError(
            f"Checksum verification failed for {artifact.name}",
            expected=expected,
            actual=actual,
        )

    logger.info("Checksum verification passed", iso_name=artifact.name)
    return VERIFIED


def _log_retry(retry_state):
    error = retry_state.outcome.exception()
    logger.warning("Checksum verification failed, retrying download",
                   attempt=retry_state.attempt_number,
                   max_attempts=MAX_DOWNLOAD_ATTEMPTS,
                   error=str(error))


def download_iso(
    artifact: IsoArtifact,
    default_origin: MirrorCandidate,
    select: Callable[[], MirrorSelection],
    session: requests.Session,
    verify: bool = True,
    probe_mirrors: bool = True,
    listing_timeout: int = 30,
    download_timeout: int = 60,
    chunk_size: int = 1048576,
    on_progress: Optional[Callable[[int, Optional[int]], None]] = None,
    on_event: Optional[Callable[[str, str], None]] = None,
) -> DownloadOutcome:
    """Reuse check → mirror selection → download with one checksum retry.

    `select` is only called when an existing file cannot be reused and
    probing is enabled. `on_event(kind, message)` receives status updates
    for the terminal.
    """

    def emit(kind: str, message: str):
        if on_event:
            on_event(kind, message)

    # Reuse check
    if artifact.exists:
        if not verify:
            logger.info("ISO already present, verification disabled", filepath=str(artifact.path))
            emit("success", "File already exists!")
            return DownloadOutcome(artifact=artifact, reused=True, verification=DISABLED)

        emit("info", "File exists, verifying checksum...")
        try:
            status = verify_artifact(
                artifact, default_origin, session,
                timeout=listing_timeout, chunk_size=chunk_size,
            )
        except IntegrityError:
            emit("warning", "Existing file has invalid checksum, will re-download")
        else:
            emit("success", "File already exists and checksum is valid!")
            return DownloadOutcome(artifact=artifact, reused=True, verification=status)

    # Mirror selection
    if probe_mirrors:
        emit("info", "Testing mirrors for fastest connection...")
        selection = select()
    else:
        emit("info", "Using default mirror")
        selection = MirrorSelection(origin=default_origin)

    url = f"{selection.origin.url}/{artifact.name}"
    attempts = 0

    @retry(
        stop=stop_after_attempt(MAX_DOWNLOAD_ATTEMPTS),
        retry=retry_if_exception_type(IntegrityError),
        before_sleep=_log_retry,
        reraise=True
    )
    def download_and_verify() -> str:
        nonlocal attempts
        attempts += 1
        if attempts > 1:
            emit("warning", "Checksum verification failed. Retrying download...")

        download_file(
            url, artifact.path, session,
            timeout=download_timeout, chunk_size=chunk_size, on_progress=on_progress,
        )
        emit("success", f"Downloaded {artifact.name}")

        if not verify:
            return DISABLED

        emit("info", "Verifying checksum...")
        return verify_artifact(
            artifact, default_origin, session,
            timeout=listing_timeout, chunk_size=chunk_size,
        )

    try:
        status = download_and_verify()
    except IntegrityError as e:
        raise IntegrityError(
            f"Checksum verification failed after {attempts} attempts",
            expected=e.expected,
            actual=e.actual,
        ) from e

    if status == SKIPPED:
        emit("warning", "Checksum not published, verification skipped")

    logger.info("ISO download completed",
                iso_name=artifact.name,
                origin=selection.origin.url,
                attempts=attempts,
                verification=status)

    return DownloadOutcome(
        artifact=artifact,
        origin=selection.origin,
        attempts=attempts,
        verification=status,
        selection=selection,
    )
