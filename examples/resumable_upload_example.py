#!/usr/bin/env python3
"""Example TUS client: resumable upload with caller-side retries."""

import logging
import os
import sys
import time

from resumable_tus import FileURLStorage, TusClient, TusCommunicationError


def progress_callback(fraction: float):
    """Display upload progress."""
    bar_length = 50
    filled = int(bar_length * fraction)
    bar = "=" * filled + "-" * (bar_length - filled)
    print(f"\rProgress: [{bar}] {fraction * 100:.1f}%", end="")

    if fraction >= 1.0:
        print()


def main():
    """Run the resumable upload example."""
    if len(sys.argv) < 3:
        print("Usage: python resumable_upload_example.py <server_url> <file_path> [retries]")
        print("Example: python resumable_upload_example.py http://localhost:1080 /path/to/file.bin 3")
        sys.exit(1)

    logging.basicConfig(level=logging.INFO)

    server_url = sys.argv[1]
    file_path = sys.argv[2]
    max_retries = int(sys.argv[3]) if len(sys.argv) > 3 else 3

    if not os.path.exists(file_path):
        print(f"Error: File not found: {file_path}")
        sys.exit(1)

    with TusClient(server_url, chunk_size=1024 * 1024) as client:
        # Persist upload URLs so a rerun of this script picks up where it stopped
        client.enable_resuming(FileURLStorage(".tus_urls.json"))
        client.enable_remove_fingerprint_on_success()

        fingerprint = client.get_fingerprint(file_path)
        print(f"File fingerprint: {fingerprint}")

        # Each attempt asks the server for its offset before sending anything
        for attempt in range(max_retries + 1):
            try:
                info = client.resume_or_create_upload(
                    file_path, fingerprint, progress_callback=progress_callback
                )
                break
            except (TusCommunicationError, OSError) as e:
                if attempt == max_retries:
                    print(f"\nUpload failed after {attempt + 1} attempts: {e}")
                    sys.exit(1)
                delay = 2**attempt
                print(f"\nAttempt {attempt + 1} failed: {e}. Retrying in {delay}s...")
                time.sleep(delay)

    print("Upload complete!")
    print(f"Upload URL: {info.upload_url}")
    print(f"Uploaded {info.offset}/{info.size} bytes, metadata: {info.metadata}")


if __name__ == "__main__":
    main()
