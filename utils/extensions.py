"""
extensions.py

Finds the bot's extensions (cogs) on disk so they can be loaded and reloaded
without keeping a hand-written list in sync.
"""
import os

def discover_cogs(cogs_path: str, package: str = 'cogs') -> list[str]:
    """
    Scans `cogs_path` and returns the dotted module name of every cog in it
    (e.g., 'cogs.math'), sorted so load order is stable between runs.
    Private modules and `__init__.py` are skipped.
    """
    if not os.path.isdir(cogs_path):
        return []

    return sorted(
        f'{package}.{filename[:-3]}'
        for filename in os.listdir(cogs_path)
        if filename.endswith('.py') and not filename.startswith('_')
    )
