#!/usr/bin/env python3
"""
PixFrog AI - Main Entry Point

Run with: python -m pixfrog  (or the `pixfrog` console script)

With a prompt argument, generates one image and exits. Without one, starts
an interactive chat where plain lines are sent as requests and slash
commands switch modes, tweak settings, like results, or reset history.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from .api.exceptions import MissingAPIKeyError
from .api.gemini_client import GeminiClient, get_api_key, has_api_key, load_config, load_image_as_data_url
from .api.retry import RetryPolicy
from .config import APP_NAME, APP_VERSION, ASPECT_RATIOS, DATA_DIR, get_default_output_dir
from .core.models import ChatMessage, Mode, Role
from .export import save_generated_image
from .logging_utils import get_log_file_path, log_exception, log_info, setup_logging
from .memory.storage import FileStorage, InMemoryStorage
from .memory.style_memory import StyleMemory
from .services.generation import ImageGenerator
from .services.refinement import PromptRefiner
from .session import Session


HELP_TEXT = """Commands:
  /modes              List available modes
  /mode <name>        Switch mode (resets ratio and quality to the mode defaults)
  /ratio <r>          Set aspect ratio ({ratios})
  /quality hd|sd      Toggle the high quality model
  /attach <path>      Attach a reference image to the next message
  /history            Show this mode's conversation
  /like [n]           Like result n (default: latest) to teach your style
  /reset              Clear this mode's conversation
  /help               Show this help
  /quit               Exit
Anything else is sent as a request.""".format(ratios=", ".join(ASPECT_RATIOS))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pixfrog",
        description=f"{APP_NAME}: turn short requests into finished images with Gemini.",
    )
    parser.add_argument("prompt", nargs="?", help="Generate once from this prompt and exit")
    parser.add_argument("--mode", "-m", default=Mode.GENERAL.slug,
                        help="Mode: " + ", ".join(m.slug for m in Mode))
    parser.add_argument("--ratio", choices=ASPECT_RATIOS, help="Override the mode's aspect ratio")
    quality = parser.add_mutually_exclusive_group()
    quality.add_argument("--hd", dest="high_quality", action="store_true", default=None,
                         help="Use the high quality model")
    quality.add_argument("--sd", dest="high_quality", action="store_false",
                         help="Use the standard model")
    parser.add_argument("--image", "-i", action="append", default=[], type=Path,
                        help="Reference image (repeatable)")
    parser.add_argument("--api-key", help="Gemini API key (default: env or config file)")
    parser.add_argument("--output-dir", "-o", type=Path, help="Where generated images are saved")
    parser.add_argument("--no-memory", action="store_true",
                        help="Do not read or write the persisted style memory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show info logs on the console")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    return parser.parse_args(argv)


def build_session(api_key: str, mode: Mode = Mode.GENERAL, memory_dir: Optional[Path] = None,
                  persist_memory: bool = True) -> Session:
    """Wire the client, services and style memory into a Session."""
    client = GeminiClient(api_key)
    storage = FileStorage(memory_dir or DATA_DIR) if persist_memory else InMemoryStorage()
    memory = StyleMemory(storage)
    retry_policy = RetryPolicy()
    return Session(
        refiner=PromptRefiner(client, memory, retry_policy),
        generator=ImageGenerator(client, retry_policy),
        memory=memory,
        mode=mode,
    )


def _print_reply(session: Session, reply: Optional[ChatMessage], mode: Mode, output_dir: Path) -> None:
    if reply is None:
        print("[INFO] Result discarded (history was reset).")
        return
    print(f"\n{reply.content}")
    if reply.images:
        try:
            path = save_generated_image(reply, mode, output_dir, session.config)
        except (OSError, ValueError) as e:
            log_exception(f"Could not save image to {output_dir}: {e}")
            print(f"[ERROR] Could not save image: {e}")
        else:
            print(f"[INFO] Saved image: {path}")
        if reply.metadata:
            print(f"[INFO] Final prompt: {reply.metadata.final_prompt}")


def _send(session: Session, text: str, images: List[str], output_dir: Path) -> Optional[ChatMessage]:
    mode = session.active_mode
    print(f"[INFO] Generating ({mode.value}, {session.config.aspect_ratio}, "
          f"{'HD' if session.config.high_quality else 'SD'})...")
    reply = asyncio.run(session.send_message(text, images))
    _print_reply(session, reply, mode, output_dir)
    return reply


def _latest_likeable(history: List[ChatMessage]) -> Optional[int]:
    for index in range(len(history) - 1, -1, -1):
        message = history[index]
        if message.role is Role.ASSISTANT and message.metadata is not None:
            return index
    return None


def _print_history(session: Session) -> None:
    history = session.history()
    if not history:
        print("(no messages yet)")
        return
    for index, message in enumerate(history):
        extra = f" [{len(message.images)} image(s)]" if message.images else ""
        liked = " ♥" if message.metadata and message.metadata.liked else ""
        first_line = message.content.splitlines()[0] if message.content else ""
        label = "error" if message.is_error else message.role.value
        print(f"  {index:>3} {label:<9} {first_line}{extra}{liked}")


def handle_command(session: Session, line: str, pending_images: List[str]) -> bool:
    """
    Apply one slash command. Returns False when the user wants to quit.
    """
    command, _, arg = line[1:].partition(" ")
    command = command.lower()
    arg = arg.strip()

    if command in ("quit", "exit", "q"):
        return False
    if command == "help":
        print(HELP_TEXT)
    elif command == "modes":
        for mode in Mode:
            marker = "*" if mode is session.active_mode else " "
            print(f" {marker} {mode.slug:<11} {mode.value}")
    elif command == "mode":
        try:
            session.change_mode(Mode.from_name(arg))
        except ValueError as e:
            print(f"[ERROR] {e}")
        else:
            print(f"[INFO] Mode: {session.active_mode.value} "
                  f"({session.config.aspect_ratio}, {'HD' if session.config.high_quality else 'SD'})")
    elif command == "ratio":
        try:
            session.set_aspect_ratio(arg)
        except ValueError as e:
            print(f"[ERROR] {e}")
    elif command == "quality":
        if arg.lower() not in ("hd", "sd"):
            print("[ERROR] Use /quality hd or /quality sd")
        else:
            session.set_high_quality(arg.lower() == "hd")
    elif command == "attach":
        try:
            pending_images.append(load_image_as_data_url(Path(arg).expanduser()))
            print(f"[INFO] Attached {arg} ({len(pending_images)} pending)")
        except (OSError, ValueError) as e:
            print(f"[ERROR] Could not load image {arg}: {e}")
    elif command == "history":
        _print_history(session)
    elif command == "like":
        index = int(arg) if arg.isdigit() else _latest_likeable(session.history())
        if index is not None and session.like_message(index):
            print("[INFO] Thanks! Style saved for this mode.")
        else:
            print("[WARN] Nothing to like there.")
    elif command == "reset":
        session.reset()
        pending_images.clear()
        print(f"[INFO] Cleared {session.active_mode.value} history.")
    else:
        print(f"[ERROR] Unknown command /{command}. Type /help.")
    return True


def run_interactive(session: Session, output_dir: Path) -> None:
    """Chat loop; each request runs to completion before the next prompt."""
    print(f"Mode: {session.active_mode.value}. Type /help for commands.")
    pending_images: List[str] = []
    while True:
        try:
            line = input(f"\n[{session.active_mode.slug}]> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not line and not pending_images:
            continue
        if line.startswith("/"):
            if not handle_command(session, line, pending_images):
                return
            continue
        images, pending_images = pending_images, []
        _send(session, line, images, output_dir)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = load_config()
    memory_dir = Path(config["data_dir"]).expanduser() if config.get("data_dir") else None
    setup_logging(verbose=args.verbose, log_dir=memory_dir / "logs" if memory_dir else None)

    print(f"\n{'=' * 60}")
    print(f"  {APP_NAME} v{APP_VERSION}")
    print(f"{'=' * 60}\n")

    try:
        mode = Mode.from_name(args.mode)
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 2

    output_dir = args.output_dir or Path(config.get("output_dir") or get_default_output_dir())

    if not args.api_key and not has_api_key():
        print("[INFO] No Gemini API key found in GEMINI_API_KEY, API_KEY or the config file.")
    try:
        api_key = get_api_key(args.api_key, interactive=sys.stdin.isatty())
    except MissingAPIKeyError as e:
        print(f"[ERROR] {e}")
        return 2
    session = build_session(api_key, mode, memory_dir, persist_memory=not args.no_memory)
    if args.ratio:
        session.set_aspect_ratio(args.ratio)
    if args.high_quality is not None:
        session.set_high_quality(args.high_quality)

    try:
        images = [load_image_as_data_url(p) for p in args.image]
    except (OSError, ValueError) as e:
        print(f"[ERROR] Could not load reference image: {e}")
        return 2

    log_info(f"Starting in {mode.value} mode, output: {output_dir}")
    try:
        if args.prompt is not None or images:
            reply = _send(session, args.prompt or "", images, output_dir)
            return 0 if reply is not None and reply.images else 1
        run_interactive(session, output_dir)
    except Exception as e:
        log_exception(f"Unexpected error: {e}")
        print(f"[ERROR] {e}")
        if get_log_file_path():
            print(f"[INFO] Details in {get_log_file_path()}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
