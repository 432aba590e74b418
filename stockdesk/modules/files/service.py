"""
Native folder chooser for the desktop shell
"""
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def ask_directory() -> Optional[str]:
    """Show a modal directory chooser; returns None when cancelled."""
    # Imported lazily: headless servers and tests never load Tk
    import tkinter
    from tkinter import filedialog

    root = tkinter.Tk()
    root.withdraw()
    root.attributes("-topmost", True)
    try:
        selected = filedialog.askdirectory(parent=root, mustexist=True)
    finally:
        root.destroy()
    return selected or None


async def pick_folder() -> Optional[str]:
    path = await asyncio.to_thread(ask_directory)
    if path is None:
        logger.debug("Folder selection cancelled")
    return path
