"""Sort keys shared by the matcher and the status overlay."""

from __future__ import annotations

import re
from typing import Iterable, TypeVar

from vpnsearch.domain.search import models

_SERVER_NUMBER = re.compile(r"^(?P<prefix>.*?)#(?P<number>\d+)$")

R = TypeVar("R", bound=models.RankedResult)


def server_number_key(name: str) -> tuple[str, int]:
	"""Natural key for `<prefix>#<number>` names so UA#9 sorts before UA#10.

	Names without a numeric suffix compare lexicographically with number -1.
	"""

	text = (name or "").strip()
	found = _SERVER_NUMBER.match(text)
	if found is None:
		return (text.casefold(), -1)
	return (found.group("prefix").casefold(), int(found.group("number")))


def location_sort_key(match: models.Match) -> tuple[int, str, str]:
	"""First-word matches first, then alphabetical."""

	return (0 if match.on_first_word else 1, match.text.casefold(), match.text)


def server_sort_key(match: models.Match) -> tuple[int, tuple[str, int], str]:
	"""First-word matches first, then by numeric suffix, then alphabetical."""

	value = match.value
	name = getattr(value, "server_name", match.text)
	return (0 if match.on_first_word else 1, server_number_key(name), match.text.casefold())


def accessible_first(results: Iterable[R]) -> list[R]:
	"""Stable sort placing results within the user's tier ahead of the rest."""

	return sorted(results, key=lambda result: 0 if result.is_accessible else 1)
