import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc)


# pysqlite opens transactions lazily and breaks SAVEPOINT; take over BEGIN
# ourselves so sqlite behaves like postgres for nested transactions.
@event.listens_for(Engine, 'connect')
def _sqlite_on_connect(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


@event.listens_for(Engine, 'begin')
def _sqlite_on_begin(conn):
    if conn.dialect.name == 'sqlite':
        conn.exec_driver_sql('BEGIN')


@contextmanager
def transaction(session):
    """Run a block of writes as one unit.

    The outermost block commits on normal exit and rolls back on any
    exception; nested blocks join the enclosing one.
    """
    depth = session.info.get('tx_depth', 0)
    session.info['tx_depth'] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except BaseException:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info['tx_depth'] = depth


class Account(UserMixin, db.Model):
    __tablename__ = 'accounts'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    profile_image = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    movies = db.relationship('MovieEntry', back_populates='owner',
                             cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'profile_image': self.profile_image,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<Account {self.username}>'


class MovieEntry(db.Model):
    __tablename__ = 'movies'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('accounts.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    tmdb_id = db.Column(db.Integer, nullable=True)
    title = db.Column(db.String(255), nullable=False)
    poster_path = db.Column(db.String(500), nullable=True)
    release_date = db.Column(db.Date, nullable=True)
    rating = db.Column(db.Float, nullable=True)
    comment = db.Column(db.Text, nullable=True)
    watch_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = db.relationship('Account', back_populates='movies')
    tag_links = db.relationship('MovieTagLink', cascade='all, delete-orphan')
    tags = db.relationship('Tag', secondary='movie_tags', order_by='Tag.name',
                           viewonly=True)

    __table_args__ = (
        db.CheckConstraint('rating IS NULL OR (rating >= 0 AND rating <= 10)',
                           name='ck_movies_rating_range'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'tmdb_id': self.tmdb_id,
            'title': self.title,
            'poster_path': self.poster_path,
            'release_date': self.release_date.isoformat() if self.release_date else None,
            'rating': self.rating,
            'comment': self.comment,
            'watch_date': self.watch_date.isoformat() if self.watch_date else None,
            'tags': [tag.name for tag in self.tags],
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<MovieEntry {self.id} {self.title!r}>'


class Tag(db.Model):
    __tablename__ = 'tags'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    def __repr__(self):
        return f'<Tag {self.name}>'


class MovieTagLink(db.Model):
    __tablename__ = 'movie_tags'

    movie_id = db.Column(db.Integer, db.ForeignKey('movies.id', ondelete='CASCADE'),
                         primary_key=True)
    tag_id = db.Column(db.Integer, db.ForeignKey('tags.id', ondelete='CASCADE'),
                       primary_key=True)
