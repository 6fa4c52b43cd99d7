"""
CRUD operations (Create, Read, Update, Delete)
Database query functions for movies, translations and selections
"""
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func
from app.models import Movie, Translation, MovieSelection
from typing import Optional, List, Tuple, Dict, Any


# ===== MOVIES =====

def get_movie(db: Session, uid: str) -> Optional[Movie]:
    """
    Get a movie with its translations
    """
    return (
        db.query(Movie)
        .options(selectinload(Movie.translations))
        .filter(Movie.uid == uid)
        .first()
    )


def count_movies(db: Session) -> int:
    return db.query(func.count(Movie.uid)).scalar() or 0


def get_movie_at(db: Session, position: int) -> Optional[Movie]:
    """
    Get the movie at a position in a stable (uid) ordering
    """
    return db.query(Movie).order_by(Movie.uid).offset(position).limit(1).first()


def search_movies(
    db: Session,
    query: Optional[str] = None,
    year: Optional[int] = None,
    language: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Movie], int]:
    """
    Search movies by title, optionally filtered by year and original language
    Returns (movies on the page, total match count)
    """
    q = db.query(Movie).options(selectinload(Movie.translations))
    if query:
        q = q.filter(
            Movie.translations.any(Translation.content.ilike(f"%{query}%"))
        )
    if year is not None:
        q = q.filter(Movie.year == year)
    if language:
        q = q.filter(Movie.original_language == language)

    total = q.count()
    movies = (
        q.order_by(Movie.year.desc(), Movie.uid)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return movies, total


# ===== TRANSLATIONS =====

def get_title(movie: Movie, locale: Optional[str]) -> Optional[str]:
    """
    Title in the requested locale, falling back to the default translation
    (locale None always gives the default)
    """
    default = None
    for translation in movie.translations:
        if translation.language_code == locale:
            return translation.content
        if translation.is_default:
            default = translation.content
    return default


def upsert_translation(
    db: Session,
    movie_uid: str,
    language_code: str,
    content: str,
) -> Translation:
    """
    Add or update a movie title translation
    """
    translation = (
        db.query(Translation)
        .filter(
            Translation.movie_uid == movie_uid,
            Translation.language_code == language_code,
        )
        .first()
    )
    if translation is None:
        translation = Translation(
            movie_uid=movie_uid,
            language_code=language_code,
            content=content,
        )
        db.add(translation)
    else:
        translation.content = content
    db.commit()
    db.refresh(translation)
    return translation


def delete_translation(db: Session, movie_uid: str, language_code: str) -> bool:
    """
    Delete a translation, returns True if one was removed
    """
    removed = (
        db.query(Translation)
        .filter(
            Translation.movie_uid == movie_uid,
            Translation.language_code == language_code,
        )
        .delete()
    )
    db.commit()
    return removed > 0


# ===== SELECTIONS =====

def get_selection(
    db: Session,
    selection_type: str,
    selection_date: str,
) -> Optional[MovieSelection]:
    """
    Get the stored selection for a period
    """
    return (
        db.query(MovieSelection)
        .filter(
            MovieSelection.selection_type == selection_type,
            MovieSelection.selection_date == selection_date,
        )
        .first()
    )


def save_selection(
    db: Session,
    selection_type: str,
    selection_date: str,
    movie_uid: str,
) -> MovieSelection:
    """
    Create or replace the selection for a period
    """
    selection = get_selection(db, selection_type, selection_date)
    if selection is None:
        selection = MovieSelection(
            selection_type=selection_type,
            selection_date=selection_date,
            movie_uid=movie_uid,
        )
        db.add(selection)
    else:
        selection.movie_uid = movie_uid
    db.commit()
    db.refresh(selection)
    return selection


# ===== SERIALIZATION =====

def movie_to_dict(movie: Movie, locale: Optional[str], full: bool = False) -> Dict[str, Any]:
    """
    JSON-ready movie payload; full adds ids and every translation
    """
    data = {
        "uid": movie.uid,
        "year": movie.year,
        "originalLanguage": movie.original_language,
        "title": get_title(movie, locale),
        "posterUrl": movie.poster_url,
        "imdbUrl": f"https://www.imdb.com/title/{movie.imdb_id}/" if movie.imdb_id else None,
    }
    if full:
        data["imdbId"] = movie.imdb_id
        data["tmdbId"] = movie.tmdb_id
        data["translations"] = sorted(
            (
                {
                    "languageCode": t.language_code,
                    "content": t.content,
                    "isDefault": bool(t.is_default),
                }
                for t in movie.translations
            ),
            key=lambda t: t["languageCode"],
        )
    return data
