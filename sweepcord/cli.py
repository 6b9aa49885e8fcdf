"""
Sweepcord command line.

Usage:
    sweepcord --discover                                  # List servers and DMs
    sweepcord --guild GUILD_ID                            # Channels you can clean
    sweepcord --channel CHANNEL_ID --config c.json --dry-run
    sweepcord --channel CHANNEL_ID --config c.json        # Delete
"""

import argparse
import logging
import signal
import sys
import threading
from datetime import datetime
from typing import Dict, Optional

from . import __version__
from .api import DiscordApi, dm_channel_name
from .cleanup import (
    STATUS_CANCELLED,
    STATUS_NOTHING_MATCHED,
    STATUS_SCAN_FAILED,
    CleanupReport,
    Sweepcord,
    writable_channels,
)
from .config import CleanupConfig, load_config, load_token
from .errors import ApiError, ConfigError, DiscordError

logger = logging.getLogger(__name__)


class Colors:
    HEADER = '\033[95m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


class ProgressBar:
    """Simple progress bar for terminal display"""

    def __init__(self, total: int, prefix: str = '', length: int = 50):
        self.total = total
        self.prefix = prefix
        self.length = length

    def update(self, current: int, suffix: str = ''):
        percent = 100 * (current / float(self.total)) if self.total else 100.0
        filled = int(self.length * current // self.total) if self.total else self.length
        bar = '█' * filled + '░' * (self.length - filled)

        print(f'\r{self.prefix} |{bar}| {percent:.1f}% ({current}/{self.total}) {suffix}', end='')

        if current >= self.total:
            print()


def setup_logging(log_file: Optional[str] = None, verbose: bool = False) -> logging.Logger:
    """Console logging plus an optional debug log file. Safe to call twice."""
    root = logging.getLogger('sweepcord')
    if root.handlers:
        return root
    root.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
        )
        root.addHandler(file_handler)

    return root


def install_signal_handlers(cancel_event: threading.Event):
    """Ctrl+C stops the run at the next message instead of killing it."""

    def handler(signum, frame):
        if cancel_event.is_set():
            sys.exit(130)
        print(f"\n\n{Colors.YELLOW}Stopping after the current message "
              f"(press Ctrl+C again to quit now)...{Colors.ENDC}")
        cancel_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def verify_auth(api: DiscordApi) -> Dict:
    print(f"{Colors.CYAN}Validating Discord token...{Colors.ENDC}")
    try:
        user = api.get_current_user()
    except ApiError as e:
        if e.status == 401:
            raise ConfigError("Invalid token (401 Unauthorized)")
        raise

    discriminator = user.get('discriminator', '0')
    if discriminator not in ('0', None):
        print(f"  Logged in as: {user['username']}#{discriminator} (ID: {user['id']})")
    else:
        print(f"  Logged in as: @{user['username']} (ID: {user['id']})")
    logger.info(f"Token validated for user: {user['username']} ({user['id']})")
    return user


def discover(api: DiscordApi, user: Dict):
    print(f"\n{Colors.HEADER}{'=' * 60}{Colors.ENDC}")
    print(f"{Colors.HEADER}DISCORD SERVER & DM DISCOVERY{Colors.ENDC}")
    print(f"{Colors.HEADER}{'=' * 60}{Colors.ENDC}\n")

    guilds = api.get_user_guilds()
    dms = [dm for dm in api.get_user_dm_channels() if dm.get('last_message_id')]

    print(f"{Colors.GREEN}Found {len(guilds)} servers and {len(dms)} DM channels{Colors.ENDC}\n")

    print(f"{Colors.BOLD}YOUR SERVERS:{Colors.ENDC}")
    for i, guild in enumerate(guilds, 1):
        print(f"  {i}. {guild['name']} (ID: {guild['id']})")

    print(f"\n{Colors.BOLD}YOUR DMs:{Colors.ENDC}")
    for i, dm in enumerate(dms, 1):
        print(f"  {i}. {dm_channel_name(dm, user['id'])} (ID: {dm['id']})")


def show_guild(api: DiscordApi, sweepcord: Sweepcord, user: Dict, guild_id: str):
    guild = next((g for g in api.get_user_guilds() if g['id'] == guild_id), None)
    if guild is None:
        raise ConfigError(f"You are not a member of guild {guild_id}")

    tree = sweepcord.load_server_channels(guild_id, guild.get('permissions'), user['id'])

    def describe(ch):
        flags = []
        if ch.permissions.has_full_access:
            flags.append('admin')
        elif ch.permissions.can_manage_messages:
            flags.append('manage')
        if not ch.permissions.can_read_history:
            flags.append('no history')
        if not ch.permissions.can_send_messages:
            flags.append('read-only')
        suffix = f" [{', '.join(flags)}]" if flags else ''
        return f"#{ch.name} ({ch.kind}, ID: {ch.id}){suffix}"

    print(f"\n{Colors.BOLD}{guild['name']}{Colors.ENDC}")
    for ch in tree.uncategorized:
        print(f"  {describe(ch)}")
    for group in tree.categories:
        print(f"  {Colors.CYAN}{group.name.upper()}{Colors.ENDC}")
        for ch in group.channels:
            print(f"    {describe(ch)}")

    writable = writable_channels(tree)
    if not writable:
        print(f"\n{Colors.YELLOW}No writable channels in {guild['name']}{Colors.ENDC}")


def preview(report: CleanupReport):
    print(f"\n{Colors.YELLOW}[DRY RUN] Would delete {len(report.candidates)} messages:{Colors.ENDC}")
    for msg in report.candidates[:5]:
        content = (msg.get('content') or '[no content]')[:50]
        print(f"  - {msg.get('timestamp', 'unknown')[:10]}: {content}")
    if len(report.candidates) > 5:
        print(f"  ... and {len(report.candidates) - 5} more")


def print_summary(report: CleanupReport, started: datetime):
    print(f"\n{Colors.HEADER}{'=' * 60}{Colors.ENDC}")
    print(f"{Colors.HEADER}SUMMARY{Colors.ENDC}")
    print(f"{Colors.HEADER}{'=' * 60}{Colors.ENDC}\n")

    seconds = int((datetime.now() - started).total_seconds())
    print(f"{Colors.BOLD}Duration:{Colors.ENDC} {seconds // 3600}h {seconds % 3600 // 60}m {seconds % 60}s")
    print(f"{Colors.BOLD}Status:{Colors.ENDC} {report.status}")
    print(f"{Colors.CYAN}Scanned:{Colors.ENDC} {report.scan.scanned} messages in {report.scan.pages} pages")
    if report.scan.error:
        print(f"{Colors.RED}Scan error:{Colors.ENDC} {report.scan.error}")
    progress = report.progress
    print(f"{Colors.GREEN}Deleted:{Colors.ENDC} {progress.deleted}/{progress.total}")
    print(f"{Colors.RED}Failed:{Colors.ENDC} {progress.errors}")
    for failure in report.failures[:10]:
        print(f"  - {failure.message_id}: {failure.error}")


def run_channel(sweepcord: Sweepcord, user: Dict, channel_id: str, config: CleanupConfig,
                dry_run: bool, skip_confirm: bool) -> int:
    cancel_event = threading.Event()
    install_signal_handlers(cancel_event)
    started = datetime.now()

    if not dry_run and not skip_confirm:
        print(f"\n{Colors.YELLOW}This will delete your messages from channel {channel_id}.{Colors.ENDC}")
        print(f"{Colors.YELLOW}This action cannot be undone!{Colors.ENDC}")
        if input("Continue? (yes/no): ").lower().strip() != 'yes':
            print(f"{Colors.CYAN}Aborted.{Colors.ENDC}")
            return 0

    bar = None

    def on_result(result, progress):
        nonlocal bar
        if bar is None:
            bar = ProgressBar(progress.total, prefix='Deleting')
        bar.update(progress.processed, f"errors: {progress.errors}")

    report = sweepcord.run_cleanup(channel_id, config, cancel_event=cancel_event,
                                   on_result=on_result, dry_run=dry_run, author_id=user['id'])
    if bar is not None and report.progress.processed < report.progress.total:
        print()

    if dry_run and report.candidates:
        preview(report)
    elif report.status == STATUS_NOTHING_MATCHED:
        print(f"{Colors.YELLOW}None of your messages matched the filters{Colors.ENDC}")
    elif report.status == STATUS_CANCELLED:
        print(f"{Colors.YELLOW}Cleanup stopped by user{Colors.ENDC}")

    print_summary(report, started)
    return 1 if report.status == STATUS_SCAN_FAILED else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Sweepcord - delete your own Discord messages at a safe pace',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--token', '-t', help='Discord auth token (or DISCORD_TOKEN / .env)')
    parser.add_argument('--verify-auth', action='store_true', help='Verify token and exit')
    parser.add_argument('--discover', '-d', action='store_true', help='List servers and DMs')
    parser.add_argument('--guild', '-g', help='List channels of a server with your permissions')
    parser.add_argument('--channel', help='Channel or DM to clean')
    parser.add_argument('--config', '-c', help='Path to a cleanup config JSON file')
    parser.add_argument('--delay', type=int, help='Milliseconds between deletions')
    parser.add_argument('--scan-delay', type=int, help='Milliseconds between history pages')
    parser.add_argument('--limit', type=int, help='Delete at most this many messages')
    parser.add_argument('--dry-run', action='store_true', help='Preview without deleting')
    parser.add_argument('--yes', '-y', action='store_true', help='Skip confirmation prompt')
    parser.add_argument('--log-file', help='Also write a debug log to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug output on the console')
    return parser


def build_config(args) -> CleanupConfig:
    config = load_config(args.config) if args.config else CleanupConfig()
    if args.delay is not None:
        config.delay = args.delay
    if args.scan_delay is not None:
        config.scan_delay = args.scan_delay
    if args.limit is not None:
        config.message_limit.enabled = True
        config.message_limit.count = args.limit
    return config.validate()


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    try:
        token = load_token(args.token)
        with DiscordApi(token) as api:
            user = verify_auth(api)
            if args.verify_auth:
                print(f"\n{Colors.GREEN}Token is valid!{Colors.ENDC}")
                return 0

            sweepcord = Sweepcord(api)
            if args.discover:
                discover(api, user)
                return 0
            if args.guild:
                show_guild(api, sweepcord, user, args.guild)
                return 0
            if args.channel:
                return run_channel(sweepcord, user, args.channel, build_config(args),
                                   args.dry_run, args.yes)
    except ConfigError as e:
        print(f"{Colors.RED}Error: {e}{Colors.ENDC}")
        return 2
    except DiscordError as e:
        print(f"{Colors.RED}Error: {e}{Colors.ENDC}")
        logger.debug("Request failed", exc_info=True)
        return 1

    parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
