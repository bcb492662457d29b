"""QueryDesk - search and exam generation client

Simple CLI for running one query against the query service.
"""

import argparse
import asyncio
import sys

from querydesk.config import settings
from querydesk.engine.errors import QueryDeskError
from querydesk.engine.session import Session, SessionSnapshot
from querydesk.engine.state import SessionState
from querydesk.models.messages import Author, MessageKind
from querydesk.services.artifacts import format_file_size, save_artifact
from querydesk.tools.http_transport import HttpTransport


class TranscriptPrinter:
    """Prints transcript entries and state changes as snapshots arrive."""

    def __init__(self):
        self.state: SessionState | None = None
        self.printed: dict[str, tuple] = {}

    def __call__(self, snapshot: SessionSnapshot) -> None:
        if snapshot.session_state != self.state:
            self.state = snapshot.session_state
            print(f"\n[~] Session: {self.state.value}")

        for message in snapshot.transcript:
            key = (message.kind, message.text, message.progress_percent)
            if self.printed.get(message.id) == key:
                continue
            self.printed[message.id] = key
            self._print_message(message)

    @staticmethod
    def _print_message(message) -> None:
        if message.author == Author.USER:
            print(f"> {message.text}")
        elif message.kind == MessageKind.PROGRESS_UPDATE:
            print(f"  [{message.progress_percent or 0:.0f}%] {message.text}")
        elif message.kind == MessageKind.FILE_READY:
            print(f"[+] {message.text} ({message.file_name})")
        elif message.kind == MessageKind.ERROR_NOTICE:
            print(f"[!] {message.text}")
        else:
            print(f"[*] {message.text}")
            for i, item in enumerate(message.results, 1):
                print(f"  {i}. {item.title[:80]} (score {item.score:g})")
                if item.url:
                    print(f"     {item.url}")


async def run_query(query: str, download_dir: str | None = None) -> SessionState:
    """Submit one query and wait until the session settles."""
    print(f"Query: {query}")
    print("-" * 50)

    session = Session(HttpTransport())
    unsubscribe = session.subscribe(TranscriptPrinter())
    try:
        session.submit(query)
        state = await session.wait_until_settled()

        if download_dir is not None:
            for message in session.snapshot().transcript:
                if message.kind != MessageKind.FILE_READY or not message.artifact_ref:
                    continue
                try:
                    payload = await session.download_artifact(message.artifact_ref)
                except QueryDeskError as e:
                    print(f"[!] Download failed: {e.user_message}")
                    return SessionState.FAILED
                path = save_artifact(payload, download_dir, message.file_name or settings.artifact_file_name)
                print(f"[+] Saved {path} ({format_file_size(len(payload))})")
        return state
    finally:
        unsubscribe()
        session.dispose()


def main():
    parser = argparse.ArgumentParser(description="QueryDesk search and exam generation client")
    parser.add_argument("--query", "-q", required=True, help="Query text")
    parser.add_argument("--download-dir", default=settings.download_dir, help="Where to save generated files")
    parser.add_argument("--no-download", action="store_true", help="Do not download generated files")

    args = parser.parse_args()

    download_dir = None if args.no_download else args.download_dir
    state = asyncio.run(run_query(args.query, download_dir))
    if state == SessionState.FAILED:
        sys.exit(1)


if __name__ == "__main__":
    main()
