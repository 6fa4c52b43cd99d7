"""
Database models for the movie API
SQLAlchemy ORM models for movies, their translations and featured selections
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Movie(Base):
    """
    Movie entity - one record per film, titles live in translations
    """
    __tablename__ = "movies"

    uid = Column(String, primary_key=True)
    year = Column(Integer, nullable=True, index=True)
    original_language = Column(String, nullable=False, default="en")
    imdb_id = Column(String, nullable=True, unique=True)
    tmdb_id = Column(Integer, nullable=True)
    poster_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    translations = relationship(
        "Translation", back_populates="movie", cascade="all, delete-orphan"
    )
    selections = relationship("MovieSelection", back_populates="movie")

    def __repr__(self):
        return f"<Movie(uid='{self.uid}', year={self.year})>"


class Translation(Base):
    """
    Movie title in one language
    One record per movie per language, one default per movie
    """
    __tablename__ = "translations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    movie_uid = Column(String, ForeignKey("movies.uid"), nullable=False, index=True)
    language_code = Column(String(2), nullable=False)
    content = Column(String, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)

    # Relationships
    movie = relationship("Movie", back_populates="translations")

    # Constraints
    __table_args__ = (
        UniqueConstraint("movie_uid", "language_code", name="uix_movie_language"),
    )

    def __repr__(self):
        return f"<Translation(movie_uid='{self.movie_uid}', lang='{self.language_code}')>"


class MovieSelection(Base):
    """
    Featured movie for a period (daily/weekly/monthly)
    selection_date is the ISO start date of the period
    """
    __tablename__ = "movie_selections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    selection_type = Column(String, nullable=False)
    selection_date = Column(String, nullable=False, index=True)
    movie_uid = Column(String, ForeignKey("movies.uid"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    movie = relationship("Movie", back_populates="selections")

    # Constraints
    __table_args__ = (
        UniqueConstraint("selection_type", "selection_date", name="uix_selection_period"),
    )

    def __repr__(self):
        return f"<MovieSelection(type='{self.selection_type}', date='{self.selection_date}', movie='{self.movie_uid}')>"
