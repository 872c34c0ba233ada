"""
Naat Player CLI - Entry point

Catalog management, stream resolution, downloads and playback, plus the
`remote` subcommand that sends transport events to a running player.
"""

import argparse
import asyncio
import sys
from typing import Optional

import requests
from loguru import logger

from naat_player import ipc
from naat_player.core.config import Config, get_cache_dir, get_data_dir, load_config
from naat_player.core.output import log, setup_loguru
from naat_player.domain.naat import (
    JsonFileStorage,
    LocalFileSystem,
    NaatDraft,
    NaatError,
    PlayableItem,
    PlaybackItemStore,
    StreamResolver,
)
from naat_player.domain.playback import (
    MpvSession,
    NaatPlayer,
    RemoteCommandBridge,
    RemoteEvent,
    RemoteEventBus,
    check_mpv_available,
)

POLL_INTERVAL_SECONDS = 1.0


def build_player(config: Config, session: Optional[MpvSession] = None) -> NaatPlayer:
    """Wire store, resolver and (optionally) an audio engine from config."""
    file_system = LocalFileSystem()
    store = PlaybackItemStore(
        JsonFileStorage(get_data_dir(config)),
        file_system,
        storage_key=config.storage.storage_key,
    )
    resolver = StreamResolver(
        config.resolver.instances, timeout=config.resolver.request_timeout
    )
    return NaatPlayer(store, resolver, session, file_system, get_cache_dir(config))


def format_item(item: PlayableItem) -> str:
    """One-line summary for listings."""
    flags = "⬇" if item.is_downloaded else " "
    created = item.created_at.strftime("%Y-%m-%d")
    return (
        f"{flags} {item.id}  {item.title} - {item.reciter_name} "
        f"[{item.language}] plays={item.play_count} added={created}"
    )


async def run_list(player: NaatPlayer) -> int:
    items = await player.refresh()
    if not items:
        log("No naats yet. Add one with: naat-player add <title> <reciter> <url>")
        return 0
    for item in items:
        print(format_item(item))
    return 0


async def run_add(player: NaatPlayer, args: argparse.Namespace) -> int:
    draft = NaatDraft(
        title=args.title,
        reciter_name=args.reciter,
        source_url=args.url,
        language=args.language,
        resolved_audio_url=args.audio_url,
        description=args.description,
    )
    item = await player.add(draft)
    log(f"✓ Added {item.id}: {item.title}")
    return 0


async def run_edit(player: NaatPlayer, args: argparse.Namespace) -> int:
    patch = {
        name: value
        for name, value in (
            ("title", args.title),
            ("reciter_name", args.reciter),
            ("language", args.language),
            ("resolved_audio_url", args.audio_url),
            ("description", args.description),
        )
        if value is not None
    }
    if not patch:
        log("Nothing to change", level="warning")
        return 1

    item = await player.store.update(args.id, patch)
    if item is None:
        log(f"No naat with id {args.id}", level="error")
        return 1
    log(f"✓ Updated {item.id}")
    return 0


async def run_remove(player: NaatPlayer, args: argparse.Namespace) -> int:
    await player.remove(args.id)
    log(f"✓ Removed {args.id}")
    return 0


async def run_resolve(player: NaatPlayer, args: argparse.Namespace) -> int:
    url = await player.resolver.resolve(args.url)
    if not url:
        log(f"Could not resolve an audio stream for {args.url}", level="error")
        return 1
    print(url)
    return 0


async def run_sweep(player: NaatPlayer) -> int:
    await player.file_system.ensure_directory(str(player.cache_dir))
    repaired = await player.store.reconcile_downloads()
    log(f"✓ Reconciled downloads ({repaired} missing file(s) cleared)")
    return 0


async def run_download(player: NaatPlayer, args: argparse.Namespace) -> int:
    item = await player.download(args.id)
    log(f"✓ Saved {item.title} to {item.local_file_uri}")
    return 0


async def run_play(config: Config, args: argparse.Namespace) -> int:
    """Play one naat, serving remote events until it ends or is stopped."""
    if not check_mpv_available():
        log("MPV is not installed. Install it to play naats.", level="error")
        return 1

    session = MpvSession(config.player.mpv_socket_path, volume=config.player.volume)
    await asyncio.to_thread(session.start)

    bus = RemoteEventBus()
    bridge = RemoteCommandBridge(
        session,
        bus,
        jump_interval=config.remote.jump_interval,
        restart_threshold=config.remote.restart_threshold,
    )
    bridge.start()
    server = ipc.IPCServer(bus, asyncio.get_running_loop())
    server.start()

    player = build_player(config, session)
    try:
        item = await player.play(args.id)
        log(f"▶ {item.title} - {item.reciter_name} (Ctrl+C to stop)")

        # Wait for mpv to load before polling for the end of playback
        await asyncio.sleep(POLL_INTERVAL_SECONDS)
        while session.is_running() and not await session.is_idle():
            await asyncio.sleep(POLL_INTERVAL_SECONDS)
    finally:
        server.stop()
        bridge.stop()
        session.stop()
    return 0


def send_remote_event(args: argparse.Namespace) -> int:
    payload = {}
    if args.value is not None:
        key = "position" if args.event == RemoteEvent.SEEK.value else "interval"
        payload[key] = args.value

    success, message = ipc.send_event(args.event, payload)
    if success:
        print(message)
        return 0
    print(message, file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="naat-player",
        description="Naat Player - stream, download and play naats",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    subparsers.add_parser("list", help="List naats, newest first")

    add_parser = subparsers.add_parser("add", help="Add a naat")
    add_parser.add_argument("title", help="Naat title")
    add_parser.add_argument("reciter", help="Reciter name")
    add_parser.add_argument("url", help="Source video URL")
    add_parser.add_argument("--language", default="fa", choices=["fa", "ps", "ar"])
    add_parser.add_argument("--audio-url", help="Already resolved audio URL")
    add_parser.add_argument("--description", help="Short description")

    edit_parser = subparsers.add_parser("edit", help="Edit a naat")
    edit_parser.add_argument("id", help="Naat id")
    edit_parser.add_argument("--title")
    edit_parser.add_argument("--reciter")
    edit_parser.add_argument("--language", choices=["fa", "ps", "ar"])
    edit_parser.add_argument("--audio-url")
    edit_parser.add_argument("--description")

    rm_parser = subparsers.add_parser("rm", help="Remove a naat and its download")
    rm_parser.add_argument("id", help="Naat id")

    resolve_parser = subparsers.add_parser("resolve", help="Print the best audio stream URL")
    resolve_parser.add_argument("url", help="Source video URL")

    subparsers.add_parser("sweep", help="Clear downloads whose files are missing")

    download_parser = subparsers.add_parser("download", help="Save a naat for offline play")
    download_parser.add_argument("id", help="Naat id")

    play_parser = subparsers.add_parser("play", help="Play a naat")
    play_parser.add_argument("id", help="Naat id")

    remote_parser = subparsers.add_parser("remote", help="Send a transport event to the player")
    remote_parser.add_argument("event", choices=[e.value for e in RemoteEvent])
    remote_parser.add_argument(
        "value",
        nargs="?",
        type=float,
        help="Seek position or jump interval in seconds",
    )

    return parser


async def dispatch(config: Config, args: argparse.Namespace) -> int:
    if args.subcommand == "play":
        return await run_play(config, args)

    player = build_player(config)
    if args.subcommand == "list":
        return await run_list(player)
    if args.subcommand == "add":
        return await run_add(player, args)
    if args.subcommand == "edit":
        return await run_edit(player, args)
    if args.subcommand == "rm":
        return await run_remove(player, args)
    if args.subcommand == "resolve":
        return await run_resolve(player, args)
    if args.subcommand == "sweep":
        return await run_sweep(player)
    if args.subcommand == "download":
        return await run_download(player, args)
    raise ValueError(f"Unknown subcommand {args.subcommand!r}")


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the naat-player command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.subcommand:
        parser.print_help()
        sys.exit(0)

    # Remote events talk to an already running player; no config needed
    if args.subcommand == "remote":
        sys.exit(send_remote_event(args))

    config = load_config()
    setup_loguru(config)
    logger.debug(f"Running naat-player {args.subcommand}")

    try:
        exit_code = asyncio.run(dispatch(config, args))
    except KeyboardInterrupt:
        exit_code = 0
    except NaatError as e:
        log(f"❌ {e}", level="error")
        exit_code = 1
    except ValueError as e:
        log(f"❌ {e}", level="error")
        exit_code = 1
    except requests.RequestException as e:
        log(f"❌ Network error: {e}", level="error")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
