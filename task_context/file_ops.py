"""Classify the files a transcript created, edited or deleted.

Rules, applied to tool uses in file order:

- ``Write``: edited (full overwrite). On the first write to a path not yet
  touched in this transcript it is also new.
- ``Edit``, ``MultiEdit``, ``NotebookEdit``: edited.
- ``Bash`` whose command contains an ``rm`` segment: each named path is deleted.

A path may appear in several lists (created then edited, edited then
deleted); each list is de-duplicated and keeps first-seen order. Tool uses
whose result came back with ``is_error`` are ignored.

Delete detection reads the command text and is best-effort. The accepted
grammar is deliberately narrow:

    command   := segment (separator segment)*
    separator := "&&" | "||" | "|" | "&" | ";" | "(" | ")" | newline
    segment   := "rm" word*            (first word must be exactly rm)
    word      := option | "--" | path  (options start with "-" until "--")

The command is tokenized once with POSIX shell quoting, so separators inside
quotes stay part of a path. A ``<`` or ``>`` redirection and its target are
skipped. ``git rm``, ``sudo rm``, ``xargs rm``, ``find -delete``, comments,
globs and variables are not interpreted; globs and variables are reported
literally.
"""

from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass, field

from task_context.tools import BashInput, WriteInput, target_path
from task_context.transcripts import Transcript

logger = logging.getLogger(__name__)

_OPERATOR_CHARS = "();<>|&\n"
_REDIRECT_CHARS = frozenset("<>")
_FALLBACK_SEPARATORS = re.compile(r"&&|\|\|?|;|\n")
_REMOVE_COMMAND = "rm"


@dataclass(frozen=True)
class FileOperations:
    new: list[str] = field(default_factory=list)
    edited: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


class _OrderedPaths:
    def __init__(self) -> None:
        self._paths: dict[str, None] = {}

    def add(self, path: str) -> None:
        self._paths.setdefault(path, None)

    def __contains__(self, path: str) -> bool:
        return path in self._paths

    def to_list(self) -> list[str]:
        return list(self._paths)


def _is_operator(token: str) -> bool:
    return bool(token) and all(char in _OPERATOR_CHARS for char in token)


def _tokenize(command: str) -> list[str]:
    """Words and operator tokens, e.g. ``rm "a b" && ls`` -> ``rm``, ``a b``, ``&&``, ``ls``."""
    lexer = shlex.shlex(command, posix=True, punctuation_chars=_OPERATOR_CHARS)
    lexer.whitespace = " \t\r"
    lexer.whitespace_split = True
    lexer.commenters = ""
    return list(lexer)


def _segments(command: str) -> list[list[str]]:
    try:
        tokens = _tokenize(command)
    except ValueError:
        # Unbalanced quotes: split on separators, then whitespace words
        return [
            [word.strip("\"'") for word in part.split()]
            for part in _FALLBACK_SEPARATORS.split(command)
        ]

    segments: list[list[str]] = [[]]
    skip_target = False
    for token in tokens:
        if _is_operator(token):
            if set(token) <= _REDIRECT_CHARS:
                skip_target = True
            else:
                segments.append([])
                skip_target = False
            continue
        if skip_target:
            skip_target = False
            continue
        segments[-1].append(token)
    return segments


def parse_deleted_paths(command: str) -> list[str]:
    """Paths named by ``rm`` segments of a shell command, in order."""
    paths: list[str] = []
    for words in _segments(command):
        if not words or words[0] != _REMOVE_COMMAND:
            continue
        options_done = False
        for word in words[1:]:
            if not options_done and word == "--":
                options_done = True
                continue
            if not options_done and word.startswith("-"):
                continue
            if word and word not in paths:
                paths.append(word)
    return paths


def extract_file_operations(transcript: Transcript) -> FileOperations:
    """Walk a transcript's tool uses and bucket every touched path."""
    failed = {
        tool_use_id for tool_use_id, result in transcript.tool_results().items() if result.is_error
    }
    new, edited, deleted = _OrderedPaths(), _OrderedPaths(), _OrderedPaths()

    for use in transcript.tool_uses():
        if use.id in failed:
            logger.debug("Ignoring failed %s %s", use.name, use.id)
            continue

        if isinstance(use.input, BashInput):
            for path in parse_deleted_paths(use.input.command):
                deleted.add(path)
            continue

        path = target_path(use.input)
        if not path:
            continue
        if isinstance(use.input, WriteInput) and path not in new and path not in edited:
            new.add(path)
        edited.add(path)

    return FileOperations(new=new.to_list(), edited=edited.to_list(), deleted=deleted.to_list())
