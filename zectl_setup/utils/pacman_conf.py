#!/usr/bin/env python3
# zectl-setup/zectl_setup/utils/pacman_conf.py
"""
IgnorePkg handling for pacman.conf

Pure text transforms; callers read and write the file.
"""
import re
from typing import List, Sequence

IGNORE_PKG_RE = re.compile(r'^\s*IgnorePkg\s*=(.*)$')
OPTIONS_RE = re.compile(r'^\s*\[options\]\s*$')


def _line_ending(line: str) -> str:
    return line[len(line.rstrip('\r\n')):] or '\n'


def ignored_packages(text: str) -> List[str]:
    """Packages listed on uncommented IgnorePkg lines, in file order"""
    packages: List[str] = []
    for line in text.splitlines():
        match = IGNORE_PKG_RE.match(line)
        if match:
            packages.extend(match.group(1).split())
    return packages


def missing_ignores(text: str, packages: Sequence[str]) -> List[str]:
    present = set(ignored_packages(text))
    return [pkg for pkg in packages if pkg not in present]


def add_ignored_packages(text: str, packages: Sequence[str]) -> str:
    """
    Ensure every package in `packages` is ignored.

    Missing names are appended to the first uncommented IgnorePkg line; when
    there is none, `IgnorePkg = ...` is inserted right after `[options]`
    (and an `[options]` section is appended if the file has none). Text is
    returned unchanged when nothing is missing.
    """
    missing = missing_ignores(text, packages)
    if not missing:
        return text

    addition = ' '.join(missing)
    lines = text.splitlines(keepends=True)

    for index, line in enumerate(lines):
        if IGNORE_PKG_RE.match(line):
            content = line.rstrip('\r\n')
            lines[index] = f"{content} {addition}{_line_ending(line)}"
            return ''.join(lines)

    for index, line in enumerate(lines):
        if OPTIONS_RE.match(line):
            if not line.endswith('\n'):
                lines[index] = line + '\n'
            lines.insert(index + 1, f"IgnorePkg = {addition}\n")
            return ''.join(lines)

    if text and not text.endswith('\n'):
        text += '\n'
    return f"{text}[options]\nIgnorePkg = {addition}\n"


def remove_ignored_packages(text: str, packages: Sequence[str]) -> str:
    """
    Strip `packages` from every IgnorePkg line; lines left empty are dropped.
    """
    unwanted = set(packages)
    result = []
    for line in text.splitlines(keepends=True):
        match = IGNORE_PKG_RE.match(line)
        if not match:
            result.append(line)
            continue
        tokens = match.group(1).split()
        kept = [token for token in tokens if token not in unwanted]
        if kept == tokens:
            result.append(line)
        elif kept:
            result.append(f"IgnorePkg = {' '.join(kept)}{_line_ending(line)}")
    return ''.join(result)
