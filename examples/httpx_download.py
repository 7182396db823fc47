#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "downpour",
# ]
#
# [tool.uv.sources]
# downpour = { path = "../", editable = true }
# ///

import logging
import threading
import time

import downpour

logging.basicConfig(level=logging.DEBUG)

cache = downpour.CacheDirectory()
fetcher = downpour.ConditionalFetcher(options=downpour.get_default_options())


def report_progress(stream: downpour.TeeVerifyingStream, done: threading.Event) -> None:
    while not done.wait(0.5):
        print(f"📥 {stream.get_received_bytes()} / {stream.get_expected_bytes()} bytes")


def fetch_and_print(url: str):
    print(f"\n➡ Fetching {url}...")
    slot = cache.slot_for(url)
    started = time.monotonic()

    with fetcher.fetch(url, slot) as stream:
        done = threading.Event()
        if isinstance(stream, downpour.TeeVerifyingStream):
            threading.Thread(target=report_progress, args=(stream, done), daemon=True).start()
        try:
            size = len(stream.read())
        finally:
            done.set()

    print(f"🔄 From Cache: {not isinstance(stream, downpour.TeeVerifyingStream)}")
    print(f"📦 Size: {size} bytes")
    print(f"⏱ Took: {time.monotonic() - started:.2f}s")
    print(f"📍 Stored At: {slot.path}")


if __name__ == "__main__":
    url = "https://www.python.org/static/img/python-logo.png"
    fetch_and_print(url)
    fetch_and_print(url)
