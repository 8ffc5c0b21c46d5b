"""Pass clock and runner type shared by document-level tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

from linecalc.document.models import PassResult

PASS_DATE = date(2024, 3, 15)

RunDocument = Callable[..., PassResult]
