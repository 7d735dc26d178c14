"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["upload", "status", "resume", "merge", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2FA84F bold",
        "command": "#0088ff bold",
    }
)

GREEN = "\033[38;2;47;168;79m"
RESET = "\033[0m"

LOGO = f"""{GREEN}
 ___ _ __| (_) |_ ___| |_ ___  _ _ ___
(_-<| '_ \\ | |  _(_-<  _/ _ \\| '_/ -_)
/__/| .__/_|_|\\__/__/\\__\\___/|_| \\___|
    |_|
{RESET}"""

WELCOME_TITLE = "Splitstore CLI - Chunked file transfers"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "splitstore> "

HELP_TEXT = """Available commands:
  upload <file> [target_dir]                     Split file into chunks, upload them and merge
  status <transfer_id>                           Show received and missing chunks of a transfer
  resume <file> <transfer_id> [target_dir]       Re-send missing chunks of a transfer and merge
  merge <transfer_id> [filename] [target_dir]    Merge a complete transfer into its file
  clear                                          Clear screen and redisplay welcome message
  help                                           Show this help
  exit                                           Exit REPL

Examples:
  upload ./report.pdf docs
  status 3f2c9a1e8b7d4c6f
  resume ./report.pdf 3f2c9a1e8b7d4c6f docs
  merge 3f2c9a1e8b7d4c6f report.pdf docs"""
