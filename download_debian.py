#!/usr/bin/env python3
"""
Debian ISO Downloader - main entry point

Downloads the latest stable Debian ISO for one architecture:
resolve name → reuse check → fastest mirror → download → SHA-256 verify
(one re-download on checksum mismatch).
"""

import sys
import argparse
from typing import Optional

import structlog
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from config import AppConfig, ISO_TYPES, load_config
from core.console import (
    Spinner,
    configure_logging,
    human_size,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from core.errors import ToolError
from core.iso import (
    VERIFIED,
    IsoArtifact,
    DownloadOutcome,
    download_iso,
    make_session,
    prepare_download_dir,
    resolve_iso_name,
)
from core.mirrors import (
    MirrorProbe,
    build_candidates,
    probe_latency,
    select_mirror,
)

logger = structlog.get_logger(__name__)

EVENT_PRINTERS = {
    "info": print_info,
    "success": print_success,
    "warning": print_warning,
    "error": print_error,
}

EPILOG = """examples:
  download-debian                    # Download netinst ISO to ~/Downloads
  download-debian -t DVD-1           # Download DVD ISO
  download-debian -d /tmp -t netinst # Download to /tmp directory
  download-debian -s                 # Skip checksum verification
  download-debian -m                 # Skip mirror testing
"""


def build_parser(app_config: Optional[AppConfig] = None) -> argparse.ArgumentParser:
    iso = (app_config or load_config()).iso
    parser = argparse.ArgumentParser(
        prog="download-debian",
        description=f"Download the latest Debian ISO for {iso.arch} architecture.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-t", dest="iso_type", metavar="TYPE", choices=ISO_TYPES, default=iso.iso_type,
        help=f"ISO type ({', '.join(ISO_TYPES)}) [default: {iso.iso_type}]",
    )
    parser.add_argument(
        "-d", dest="download_dir", metavar="DIR", default=iso.download_dir,
        help=f"Download directory [default: {iso.download_dir}]",
    )
    parser.add_argument(
        "-s", dest="verify", action="store_false", default=iso.verify_checksum,
        help="Skip checksum verification",
    )
    parser.add_argument(
        "-m", dest="probe", action="store_false", default=iso.find_fastest_mirror,
        help="Skip mirror speed testing (use default mirror)",
    )
    return parser


def print_probe(probe: MirrorProbe):
    if probe.reachable:
        print(f"{probe.candidate.host:<35} {probe.latency_ms:4d} ms")
    else:
        print(f"{probe.candidate.host:<35} Failed")


def show_file_info(outcome: DownloadOutcome):
    artifact = outcome.artifact
    print()
    print_info(f"File location: {artifact.path}")
    print_info(f"File size: {human_size(artifact.size_bytes)}")


def show_next_steps(artifact: IsoArtifact):
    print()
    print_info("Next steps:")
    print(f"  1. Verify the download: sha256sum {artifact.path}")
    print(f"  2. Create bootable USB: dd if={artifact.path} of=/dev/sdX bs=4M status=progress")
    print("  3. Or burn to DVD using your preferred burning software")


def run(
    iso_type: str,
    download_dir: str,
    verify: bool,
    probe: bool,
    app_config: Optional[AppConfig] = None,
) -> DownloadOutcome:
    """Run the full download procedure with the given overrides"""

    app_config = app_config or load_config()
    iso_config = app_config.iso.model_copy(update={"iso_type": iso_type})

    print_info("Debian ISO Downloader")
    print_info(f"Architecture: {iso_config.arch}")
    print_info(f"ISO Type: {iso_type}")
    print_info(f"Download Directory: {download_dir}")
    print()

    target_dir = prepare_download_dir(download_dir)
    candidates = build_candidates(iso_config)
    default_origin = candidates[0]
    session = make_session()

    print_info("Fetching latest ISO information...")
    iso_name = resolve_iso_name(
        default_origin.url, iso_config.arch, iso_type, session,
        timeout=iso_config.listing_timeout,
    )
    print_info(f"Latest ISO: {iso_name}")

    artifact = IsoArtifact(name=iso_name, path=target_dir / iso_name)

    def select():
        print("Testing mirror speeds...")
        print()
        selection = select_mirror(
            candidates,
            default_origin,
            probe=lambda candidate: probe_latency(
                candidate, session,
                timeout=iso_config.probe_timeout,
                max_time=iso_config.http_probe_max_time,
            ),
            on_probe=print_probe,
        )
        print()
        if selection.fell_back:
            print_warning("All mirrors failed, using default")
        else:
            print_success(f"Fastest mirror: {selection.origin.host} ({selection.latency_ms}ms)")
        print()
        return selection

    spinner = Spinner(f"Downloading {iso_name}...")

    def on_progress(done: int, total):
        if total:
            spinner.update(f"Downloading {iso_name}... {human_size(done)} / {human_size(total)}")
        else:
            spinner.update(f"Downloading {iso_name}... {human_size(done)}")
        # Only runs while a transfer is streaming
        spinner.start()

    def on_event(kind: str, message: str):
        spinner.stop()
        EVENT_PRINTERS[kind](message)

    try:
        outcome = download_iso(
            artifact,
            default_origin,
            select,
            session,
            verify=verify,
            probe_mirrors=probe,
            listing_timeout=iso_config.listing_timeout,
            download_timeout=iso_config.download_timeout,
            chunk_size=iso_config.chunk_size,
            on_progress=on_progress,
            on_event=on_event,
        )
    finally:
        spinner.stop()

    if not outcome.reused:
        if outcome.verification == VERIFIED:
            print_success("ISO downloaded and verified successfully!")
        else:
            print_success("ISO downloaded successfully!")

    show_file_info(outcome)
    if not outcome.reused:
        show_next_steps(artifact)
    return outcome


def main(argv=None):
    """Main entry point with argument parsing"""

    try:
        app_config = load_config()
    except ToolError as e:
        print_error(str(e))
        sys.exit(e.exit_code)

    configure_logging(app_config.debug)
    args = build_parser(app_config).parse_args(argv)

    try:
        run(args.iso_type, args.download_dir, args.verify, args.probe, app_config=app_config)
    except ToolError as e:
        logger.error("ISO download failed", error=str(e), error_type=type(e).__name__)
        print_error(str(e))
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print_error("Interrupted")
        sys.exit(130)

    sys.exit(0)


if __name__ == "__main__":
    main()
