"""Managed block of link entries inside a tree's ``.gitignore``.

Materialized links are local artifacts; they are listed between two marker
lines so they stay out of version control, and only that block is edited.
"""
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

BLOCK_BEGIN = "# grove links begin DO NOT MODIFY"
BLOCK_END = "# grove links end DO NOT MODIFY"


def entry_for_alias(alias: str) -> str:
    return f"/{alias}"


def _read_lines(gitignore: Path) -> List[str]:
    if not gitignore.exists():
        return []
    return gitignore.read_text(encoding="utf-8").splitlines()


def _write_lines(gitignore: Path, lines: List[str]) -> None:
    gitignore.write_text("\n".join(lines) + "\n" if lines else "", encoding="utf-8")


def managed_entries(root: Path) -> List[str]:
    """Entries currently listed in the managed block."""
    lines = _read_lines(Path(root) / ".gitignore")
    if BLOCK_BEGIN not in lines:
        return []
    begin = lines.index(BLOCK_BEGIN)
    end = lines.index(BLOCK_END, begin) if BLOCK_END in lines[begin:] else len(lines)
    return [line for line in lines[begin + 1:end] if line.strip()]


def add_entry(root: Path, entry: str) -> bool:
    """Add ``entry`` to the managed block. Returns False if already present."""
    gitignore = Path(root) / ".gitignore"
    lines = _read_lines(gitignore)

    if BLOCK_BEGIN in lines:
        begin = lines.index(BLOCK_BEGIN)
        if BLOCK_END in lines[begin:]:
            end = lines.index(BLOCK_END, begin)
        else:
            lines.append(BLOCK_END)
            end = len(lines) - 1
        if entry in lines[begin + 1:end]:
            return False
        block = sorted(set(lines[begin + 1:end]) | {entry})
        lines[begin + 1:end] = block
    else:
        if lines and lines[-1].strip():
            lines.append("")
        lines.extend([BLOCK_BEGIN, entry, BLOCK_END])

    _write_lines(gitignore, lines)
    logger.debug("Added %s to %s", entry, gitignore)
    return True


def remove_entry(root: Path, entry: str) -> bool:
    """Remove ``entry`` from the managed block; drops the block when empty."""
    gitignore = Path(root) / ".gitignore"
    lines = _read_lines(gitignore)
    if BLOCK_BEGIN not in lines:
        return False

    begin = lines.index(BLOCK_BEGIN)
    end = lines.index(BLOCK_END, begin) if BLOCK_END in lines[begin:] else len(lines)
    block = lines[begin + 1:end]
    if entry not in block:
        return False

    block = [line for line in block if line != entry]
    if block:
        lines[begin + 1:end] = block
    else:
        del lines[begin:end + 1]
        while lines and not lines[-1].strip():
            lines.pop()

    _write_lines(gitignore, lines)
    logger.debug("Removed %s from %s", entry, gitignore)
    return True
