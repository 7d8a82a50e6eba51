"""
chroni - mirror a source folder tree into a destination folder tree.

Features:
- Copies files missing at the destination
- Four overwrite policies (always, fast-comp, deep-comp, never)
- Only-newest retention for directories selected by glob
- Dry-run mode that reports every decision without touching the disk
- Per-file failures are isolated and summarized at the end
"""

__version__ = "1.0.0"
