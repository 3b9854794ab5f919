"""Custom completer for the chainpix CLI with image file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, IMAGES_DIR, SUPPORTED_IMAGE_EXTENSIONS


class ChainpixCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Image path completion for the second argument of 'send' from images/
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For the image argument of 'send', completes files from images/ directory.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        if tokens[0].lower() != "send":
            return

        argument_index = len(tokens) if is_typing_new_token else len(tokens) - 1
        if argument_index != 2:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_image_files(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_image_files(self, partial: str) -> Iterable[Completion]:
        """
        Complete image paths from the images/ directory.

        Shows a message if no images are available.
        """
        images_path = Path.cwd() / IMAGES_DIR

        if not images_path.exists() or not images_path.is_dir():
            if not partial or IMAGES_DIR.startswith(partial):
                yield Completion(
                    "",
                    start_position=0,
                    display="(no images found - images/ directory missing)",
                )
            return

        available_files = sorted(
            f"{IMAGES_DIR}/{item.name}"
            for item in images_path.iterdir()
            if item.is_file() and item.name.lower().endswith(SUPPORTED_IMAGE_EXTENSIONS)
        )

        if not available_files:
            if not partial or partial.startswith(IMAGES_DIR) or IMAGES_DIR.startswith(partial):
                yield Completion(
                    "",
                    start_position=0,
                    display="(no images found in images/)",
                )
            return

        partial_lower = partial.lower()
        for file_path in available_files:
            if file_path.lower().startswith(partial_lower):
                yield Completion(file_path, start_position=-len(partial))
