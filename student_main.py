"""Terminal student client: join a live session on the host's API server."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
import shlex
import sys

from quizdeck.constants.about import APP_NAME
from quizdeck.constants.network_constants import DEFAULT_PORT
from quizdeck.core.errors import QuizDeckError
from quizdeck.core.models import ChoiceSlide, InfoSlide
from quizdeck.core.services.code_lookup import lookup_title
from quizdeck.core.student_client import StudentSessionClient, StudentViewState
from quizdeck.store.http_store import HttpRealtimeStore
from quizdeck.utils.logging_config import configure_logging

COMMANDS = (
    "join CODE NAME [SCHOOL]  join a session\n"
    "answer TEXT|OPTION       submit an answer for the current slide\n"
    "next / prev              move when the teacher lets you\n"
    "reconnect                retry the connection\n"
    "show                     print the current slide\n"
    "quit                     leave"
)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{APP_NAME} student client")
    parser.add_argument("--server", default=f"http://127.0.0.1:{DEFAULT_PORT}", help="Host API base URL.")
    parser.add_argument(
        "--state-dir",
        type=Path,
        default=Path.home() / ".quizdeck",
        help="Directory for this device's identity and last session.",
    )
    parser.add_argument("--code", default=None, help="Join code from the invite link.")
    return parser.parse_args(argv)


def render(view: StudentViewState) -> str:
    if view.connection_error:
        banner = f"! {view.connection_error}\n"
    else:
        banner = ""
    if not view.is_joined:
        return banner + "Not joined. Use: join CODE NAME"
    if view.is_ended:
        return banner + (
            f"Session ended. Correct: {view.correct_count}  Wrong: {view.wrong_count}  "
            f"Pending: {view.pending_count}"
        )
    if view.is_paused:
        return banner + "The teacher paused the session."

    slide = view.current_slide
    total = view.quiz.slide_count if view.quiz else 0
    lines = [f"{banner}Slide {view.effective_slide_index + 1}/{total}"]
    if isinstance(slide, InfoSlide):
        lines.append(slide.title)
        lines.append(slide.content)
    elif slide is not None:
        lines.append(getattr(slide, "prompt", ""))
        if isinstance(slide, ChoiceSlide):
            lines.extend(f"  {option.id}) {option.content}" for option in slide.options)
    response = view.current_response
    if response is not None:
        if response.is_correct is None:
            lines.append(f"Your answer: {response.answer} (waiting for the teacher)")
        else:
            lines.append(f"Your answer: {response.answer} ({'correct' if response.is_correct else 'wrong'})")
    if view.show_wiggle:
        lines.append("Answer this slide before moving on.")
    return "\n".join(lines)


async def _run(args: argparse.Namespace) -> None:
    store = HttpRealtimeStore(args.server)
    client = StudentSessionClient(store, args.state_dir)
    last_frame: list[tuple] = [()]

    def on_view(view: StudentViewState) -> None:
        # Reprint only when the visible slide or the session state changes.
        frame = (view.is_joined, view.effective_slide_index, view.is_paused, view.is_ended)
        if frame != last_frame[0]:
            last_frame[0] = frame
            print("\n" + render(view))

    client.add_listener(on_view)
    try:
        view = await client.resume(url_code=args.code)
        if not view.is_joined and args.code:
            title = await lookup_title(store, args.code)
            if title:
                print(f"Code {args.code.upper()}: {title}")
        print(render(view))
        print(COMMANDS)
        while True:
            line = await asyncio.to_thread(input, "> ")
            try:
                parts = shlex.split(line)
            except ValueError:
                parts = line.split()
            if not parts:
                continue
            command, rest = parts[0].lower(), parts[1:]
            try:
                if command == "quit":
                    break
                if command == "join" and len(rest) >= 2:
                    await client.join_session(rest[0], rest[1], rest[2] if len(rest) > 2 else None)
                elif command == "answer" and rest:
                    await client.submit_answer(" ".join(rest))
                elif command == "next":
                    await client.go_to_next_slide()
                elif command == "prev":
                    await client.go_to_prev_slide()
                elif command == "reconnect":
                    await client.reconnect()
                elif command != "show":
                    print(COMMANDS)
                    continue
            except QuizDeckError as exc:
                print(f"! {exc.user_message}")
                continue
            print(render(client.view))
    finally:
        client.close()
        await asyncio.sleep(0)
        await store.aclose()


def main() -> None:
    configure_logging()
    args = _parse_args(sys.argv[1:])
    try:
        asyncio.run(_run(args))
    except (KeyboardInterrupt, EOFError):
        pass


if __name__ == "__main__":
    main()
