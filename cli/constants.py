"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["login", "whoami", "send", "list", "open", "rc", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#E31337 bold",
        "command": "#0088ff bold",
    }
)

HIVE_RED = "\033[38;2;227;19;55m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RESET = "\033[0m"

LOGO = f"""{HIVE_RED}
  ___ _  _   _   ___ _  _ ___ _____  __
 / __| || | /_\\ |_ _| \\| | _ \\_ _\\ \\/ /
| (__| __ |/ _ \\ | || .` |  _/| | >  <
 \\___|_||_/_/ \\_\\___|_|\\_|_| |___/_/\\_\\
{RESET}"""

WELCOME_TITLE = "chainpix - encrypted image messages over Hive"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "chainpix> "

HELP_TEXT = """Available commands:
  login <account>                          Use a Hive account (signing happens in the wallet)
  whoami                                   Show the active account
  send <partner> <image_path> [caption]    Encrypt and send an image (images/ prefix)
  list <partner> [limit]                   List image messages with partner (still encrypted)
  open <partner> <tx_id> [output_path]     Decrypt, verify and save one image (downloads/ prefix)
  rc                                       Show resource credits of the active account
  clear                                    Clear screen and redisplay welcome message
  help                                     Show this help
  exit                                     Exit REPL

Examples:
  login alice
  send bob images/cat.webp "look at this"
  list bob 10
  open bob 3f2a9c
  open bob 3f2a9c downloads/cat.webp"""

IMAGES_DIR = "images"

SUPPORTED_IMAGE_EXTENSIONS = (".webp", ".png", ".jpg", ".jpeg", ".gif", ".bmp")
