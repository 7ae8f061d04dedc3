"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["wallet", "upload", "list", "delete", "info", "check", "purchase", "download", "config", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2DB67C bold",
        "command": "#0088ff bold",
    }
)

TEAL = "\033[38;2;45;182;124m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{TEAL}
 ██╗  ██╗ █████╗ ███████╗██╗  ██╗██╗   ██╗ █████╗ ██╗   ██╗██╗  ████████╗
 ██║  ██║██╔══██╗██╔════╝██║  ██║██║   ██║██╔══██╗██║   ██║██║  ╚══██╔══╝
 ███████║███████║███████╗███████║██║   ██║███████║██║   ██║██║     ██║
 ██╔══██║██╔══██║╚════██║██╔══██║╚██╗ ██╔╝██╔══██║██║   ██║██║     ██║
 ██║  ██║██║  ██║███████║██║  ██║ ╚████╔╝ ██║  ██║╚██████╔╝███████╗██║
 ╚═╝  ╚═╝╚═╝  ╚═╝╚══════╝╚═╝  ╚═╝  ╚═══╝  ╚═╝  ╚═╝ ╚═════╝ ╚══════╝╚═╝
{RESET}"""

WELCOME_TITLE = "HashVault CLI - Wallet-keyed content storage"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "hashvault> "

DOWNLOADS_DIR = "downloads"

HELP_TEXT = """Available commands:
  wallet [address]                    Show or set the wallet address used for requests
  upload <path> [mime-type]           Upload a file (chunked automatically when large)
  list [--refresh]                    List your files, newest first
  delete <cid>                        Delete a file or a folder with its contents
  info                                Show storage usage and capacity
  check <bytes>                       Check whether a file of this size fits
  purchase <tx-hash> [method] [network]
                                      Apply a storage plan purchase
  download <cid> [output_path]        Download content (defaults to <download_dir>/<cid>)
  config [name [value]]               Show settings, one setting, or change one
  config --reset <name>               Restore a setting to its default
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  wallet 0xAbC123...
  upload ./photos/cat.jpg
  upload ./backup.zip application/zip
  list --refresh
  check 104857600
  purchase 0x9f2e... USDT Base
  download bafybeigdyr... downloads/cat.jpg
  config chunk_size 1048576
  config default_mime_type text/plain
  delete bafybeigdyr..."""
