"""
Mirror Selection Module

Single responsibility: ordered mirror candidates → one download origin
Probes each candidate sequentially (ICMP ping, timed HTTP GET as fallback)
and picks the lowest latency, first candidate winning ties.
"""

import re
import sys
import time
import shutil
import subprocess
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests
import structlog
from pydantic import BaseModel, Field, validator

from config import IsoConfig

logger = structlog.get_logger(__name__)

# Score given to candidates that answer neither probe
UNREACHABLE_MS = 9999

PING_TIME_RE = re.compile(r"time[=<]\s*([0-9]+)")


class MirrorCandidate(BaseModel):
    """One download origin (base URL of an iso-cd / iso-dvd directory)"""

    url: str = Field(description="Base URL without trailing slash")

    @validator('url')
    def validate_url(cls, v):
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Invalid mirror URL: {v}")
        return v.rstrip('/')

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname


class MirrorProbe(BaseModel):
    """Latency measurement for a single candidate"""

    candidate: MirrorCandidate
    latency_ms: int = Field(default=UNREACHABLE_MS, ge=0)
    method: str = Field(default="none", description="ping, http or none")

    @property
    def reachable(self) -> bool:
        return self.latency_ms < UNREACHABLE_MS


class MirrorSelection(BaseModel):
    """Chosen origin and the probes that led to it"""

    origin: MirrorCandidate
    latency_ms: Optional[int] = None
    probes: List[MirrorProbe] = Field(default_factory=list)
    fell_back: bool = Field(default=False, description="Default used because every probe failed")


def build_candidates(iso_config: IsoConfig) -> List[MirrorCandidate]:
    """Expand the configured mirror roots into origin URLs for this arch / ISO type"""
    return [
        MirrorCandidate(url=f"{root}/current/{iso_config.arch}/{iso_config.iso_dir}")
        for root in iso_config.mirror_roots
    ]


def ping_latency(host: str, timeout: float = 1.0) -> Optional[int]:
    """Round-trip time of a single ICMP echo in whole milliseconds, or None"""

    if not shutil.which("ping"):
        return None

    # macOS ping takes the wait in milliseconds, Linux in seconds
    if sys.platform == "darwin":
        wait = str(int(timeout * 1000))
    else:
        wait = str(max(1, int(round(timeout))))

    try:
        result = subprocess.run(
            ["ping", "-c", "1", "-W", wait, host],
            capture_output=True, text=True, timeout=timeout + 1,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug("Ping failed", host=host, error=str(e))
        return None

    if result.returncode != 0:
        return None

    match = PING_TIME_RE.search(result.stdout)
    if not match:
        return None
    return int(match.group(1))


def http_latency(
    url: str,
    session: requests.Session,
    connect_timeout: float = 1.0,
    max_time: float = 2.0,
) -> Optional[int]:
    """Wall-clock time of a GET request in milliseconds, or None on failure"""

    start = time.monotonic()
    try:
        response = session.get(url, timeout=(connect_timeout, max_time), stream=True)
        response.close()
    except requests.RequestException as e:
        logger.debug("HTTP probe failed", url=url, error=str(e))
        return None

    elapsed = time.monotonic() - start
    if elapsed > max_time:
        return None
    return int(round(elapsed * 1000))


def probe_latency(
    candidate: MirrorCandidate,
    session: requests.Session,
    timeout: float = 1.0,
    max_time: float = 2.0,
) -> MirrorProbe:
    """Probe one candidate: ping first, timed HTTP request as fallback"""

    latency = ping_latency(candidate.host, timeout=timeout)
    if latency is not None:
        return MirrorProbe(candidate=candidate, latency_ms=latency, method="ping")

    latency = http_latency(candidate.url, session, connect_timeout=timeout, max_time=max_time)
    if latency is not None:
        return MirrorProbe(candidate=candidate, latency_ms=latency, method="http")

    return MirrorProbe(candidate=candidate)


def pick_fastest(probes: Sequence[MirrorProbe]) -> Tuple[Optional[MirrorCandidate], int]:
    """Lowest-latency reachable candidate; the earliest one wins a tie"""

    best: Optional[MirrorCandidate] = None
    best_time = UNREACHABLE_MS
    for probe in probes:
        if probe.latency_ms < best_time:
            best_time = probe.latency_ms
            best = probe.candidate
    return best, best_time


def select_mirror(
    candidates: Sequence[MirrorCandidate],
    default: MirrorCandidate,
    probe: Callable[[MirrorCandidate], MirrorProbe],
    on_probe: Optional[Callable[[MirrorProbe], None]] = None,
) -> MirrorSelection:
    """Probe every candidate in order and return exactly one origin.

    Candidates are probed one at a time. Unreachable ones are excluded; if
    all are unreachable, the default origin is returned.
    """

    logger.info("Testing mirror speeds", candidate_count=len(candidates))

    probes = []
    for candidate in candidates:
        result = probe(candidate)
        probes.append(result)
        logger.debug("Mirror probed",
                     host=candidate.host,
                     latency_ms=result.latency_ms,
                     method=result.method)
        if on_probe:
            on_probe(result)

    fastest, best_time = pick_fastest(probes)
    if fastest is None:
        logger.warning("All mirrors failed, using default", default=default.url)
        return MirrorSelection(origin=default, probes=probes, fell_back=True)

    logger.info("Fastest mirror selected", host=fastest.host, latency_ms=best_time)
    return MirrorSelection(origin=fastest, latency_ms=best_time, probes=probes)
