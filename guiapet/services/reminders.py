"""Vaccine reminder evaluation.

A vaccine is *upcoming* when its next dose falls between today and
REMINDER_WINDOW_DAYS days from now, both ends included. Overdue vaccines
(negative day count) are not upcoming.
"""
from __future__ import annotations

from datetime import date
from typing import Iterable

from guiapet.models.pets import PetWithVaccines, Vaccine

REMINDER_WINDOW_DAYS = 30


def days_until_due(next_date: date, today: date | None = None) -> int:
    today = today or date.today()
    return (next_date - today).days


def is_upcoming(vaccine: Vaccine, today: date | None = None) -> bool:
    diff_days = days_until_due(vaccine.next_date, today)
    return 0 <= diff_days <= REMINDER_WINDOW_DAYS


def upcoming_vaccines(vaccines: Iterable[Vaccine], today: date | None = None) -> list[Vaccine]:
    today = today or date.today()
    return [v for v in vaccines if is_upcoming(v, today)]


def has_pending_reminder(pet: PetWithVaccines | None, today: date | None = None) -> bool:
    if pet is None:
        return False
    today = today or date.today()
    return any(is_upcoming(v, today) for v in pet.vaccines)
