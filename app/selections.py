"""
Featured movie selections.

Each period (daily, weekly, monthly) has a canonical ISO start date used both
as the database key and inside cache keys. Weekly periods start on Friday.
A stored selection wins; otherwise a movie is picked from a seed derived
from the period, so every instance picks the same movie without coordination.
"""
import hashlib
import logging
from datetime import date, timedelta
from typing import Optional, Dict, Any, Union

from sqlalchemy.orm import Session

from app import crud
from app.cache import SelectionType

logger = logging.getLogger("selections")

FRIDAY = 4  # date.weekday()


def get_selection_date(day: date, selection_type: Union[SelectionType, str]) -> str:
    """
    ISO start date of the period containing day.

    daily -> the day, weekly -> most recent Friday (inclusive),
    monthly -> first of the month
    """
    kind = SelectionType(selection_type)
    if kind is SelectionType.DAILY:
        start = day
    elif kind is SelectionType.WEEKLY:
        start = day - timedelta(days=(day.weekday() - FRIDAY) % 7)
    else:
        start = day.replace(day=1)
    return start.isoformat()


def get_date_seed(day: date, selection_type: Union[SelectionType, str]) -> int:
    """Stable integer seed for the period containing day."""
    kind = SelectionType(selection_type)
    period = get_selection_date(day, kind)
    if kind is SelectionType.MONTHLY:
        period = period[:7]
    digest = hashlib.sha256(f"{kind.value}-{period}".encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


def get_movie_for_period(
    db: Session,
    day: date,
    selection_type: Union[SelectionType, str],
    locale: str,
    force_new: bool = False,
) -> Optional[Dict[str, Any]]:
    """
    Movie featured for the period containing day.

    Args:
        db: Database session
        day: Any day within the period
        selection_type: daily, weekly or monthly
        locale: Title language
        force_new: Replace the stored pick with the next movie (admin reselect)

    Returns:
        Movie payload, or None when there are no movies
    """
    kind = SelectionType(selection_type)
    selection_date = get_selection_date(day, kind)
    total = crud.count_movies(db)
    if total == 0:
        return None

    existing = crud.get_selection(db, kind.value, selection_date)

    if existing is not None and not force_new:
        movie = crud.get_movie(db, existing.movie_uid)
    else:
        position = get_date_seed(day, kind) % total
        if existing is not None and total > 1:
            # Rotate away from the current pick
            current = crud.get_movie_at(db, position)
            if current is not None and current.uid == existing.movie_uid:
                position = (position + 1) % total
        movie = crud.get_movie_at(db, position)
        if movie is None:
            return None
        crud.save_selection(db, kind.value, selection_date, movie.uid)
        logger.info(f"Selected {movie.uid} for {kind.value} {selection_date}")

    if movie is None:
        return None
    return crud.movie_to_dict(movie, locale)
