"""Owner-scoped storage of movie-log entries.

Every function takes the owner's account id and never returns or touches an
entry that belongs to someone else; such entries look exactly like missing
ones.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from movielog import tags as tag_engine
from movielog.errors import InvalidInput, NotFound
from movielog.models import MovieEntry, transaction, utcnow

logger = logging.getLogger(__name__)

MOVIE_FIELDS = ('tmdb_id', 'title', 'poster_path', 'release_date', 'rating',
                'comment', 'watch_date')
SORT_COLUMNS = ('watch_date', 'release_date', 'rating', 'title', 'created_at',
                'updated_at')
SORT_ORDERS = ('asc', 'desc')
MIN_RATING = 0
MAX_RATING = 10


def _parse_rating(value):
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidInput('Rating must be a number')
    try:
        rating = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput('Rating must be a number') from exc
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidInput(f'Rating must be between {MIN_RATING} and {MAX_RATING}')
    return rating


def _parse_date(name, value):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidInput(f'{name} must be a date (YYYY-MM-DD)')
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        # full ISO timestamps are cut down to their date
        return datetime.fromisoformat(value).date()
    except ValueError as exc:
        raise InvalidInput(f'{name} must be a date (YYYY-MM-DD)') from exc


def _parse_tmdb_id(value):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise InvalidInput('tmdb_id must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput('tmdb_id must be an integer') from exc


def _parse_text(name, value):
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput(f'{name} must be a string')
    return value


@dataclass
class MoviePatch:
    """Validated subset of movie fields; only ``values`` keys are written."""

    values: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload):
        if not isinstance(payload, dict):
            raise InvalidInput('Request body must be a JSON object')
        unknown = sorted(set(payload) - set(MOVIE_FIELDS))
        if unknown:
            raise InvalidInput(f'Unknown fields: {", ".join(unknown)}')

        values = {}
        for key, raw in payload.items():
            if key == 'rating':
                values[key] = _parse_rating(raw)
            elif key in ('release_date', 'watch_date'):
                values[key] = _parse_date(key, raw)
            elif key == 'tmdb_id':
                values[key] = _parse_tmdb_id(raw)
            else:
                values[key] = _parse_text(key, raw)

        if 'title' in values:
            title = (values['title'] or '').strip()
            if not title:
                raise InvalidInput('Title is required')
            values['title'] = title
        return cls(values)

    def __contains__(self, key):
        return key in self.values

    def apply(self, entry):
        for key, value in self.values.items():
            setattr(entry, key, value)


@dataclass
class ListFilters:
    rating: float = None
    search: str = None
    order_by: str = 'watch_date'
    order: str = 'desc'

    @classmethod
    def from_args(cls, args):
        rating = args.get('rating')
        search = (args.get('search') or '').strip() or None
        order_by = args.get('orderBy') or args.get('order_by') or 'watch_date'
        order = (args.get('order') or 'desc').lower()

        if order_by not in SORT_COLUMNS:
            raise InvalidInput(f'orderBy must be one of: {", ".join(SORT_COLUMNS)}')
        if order not in SORT_ORDERS:
            raise InvalidInput('order must be asc or desc')
        return cls(
            rating=_parse_rating(rating) if rating not in (None, '') else None,
            search=search,
            order_by=order_by,
            order=order
        )


def _owned(session, entry_id, owner_id):
    return session.query(MovieEntry).filter(
        MovieEntry.id == entry_id,
        MovieEntry.user_id == owner_id
    ).first()


def create(session, owner_id, patch, tags=None):
    """Insert an entry for ``owner_id``, attaching ``tags`` in the same transaction."""
    if 'title' not in patch:
        raise InvalidInput('Title is required')
    names = tag_engine.normalize_names(tags) if tags is not None else []

    with transaction(session):
        entry = MovieEntry(user_id=owner_id)
        patch.apply(entry)
        session.add(entry)
        session.flush()
        for name in names:
            tag = tag_engine.get_or_create_tag(session, name)
            tag_engine.attach(session, entry.id, tag.id)

    logger.info('Account %s added movie %s', owner_id, entry.id)
    return entry


def get(session, entry_id, owner_id):
    entry = _owned(session, entry_id, owner_id)
    if entry is None:
        raise NotFound('Movie not found')
    return entry


def _escape_like(text):
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def list_entries(session, owner_id, filters=None):
    filters = filters or ListFilters()
    query = (session.query(MovieEntry)
             .options(selectinload(MovieEntry.tags))
             .filter(MovieEntry.user_id == owner_id))

    if filters.rating is not None:
        query = query.filter(MovieEntry.rating == filters.rating)
    if filters.search:
        pattern = f'%{_escape_like(filters.search)}%'
        query = query.filter(or_(
            MovieEntry.title.ilike(pattern, escape='\\'),
            MovieEntry.comment.ilike(pattern, escape='\\')
        ))

    column = getattr(MovieEntry, filters.order_by)
    ordering = column.asc() if filters.order == 'asc' else column.desc()
    tiebreak = MovieEntry.id.asc() if filters.order == 'asc' else MovieEntry.id.desc()
    return query.order_by(ordering.nulls_last(), tiebreak).all()


def update(session, entry_id, owner_id, patch, tags=None):
    """Apply ``patch``; a ``tags`` list replaces the tag set in the same transaction."""
    names = tag_engine.normalize_names(tags) if tags is not None else None

    with transaction(session):
        entry = _owned(session, entry_id, owner_id)
        if entry is None:
            raise NotFound('Movie not found')
        if patch.values:
            patch.apply(entry)
            entry.updated_at = utcnow()
            session.flush()
        if names is not None:
            tag_engine.reconcile(session, entry.id, names)

    return entry


def delete(session, entry_id, owner_id):
    """Remove the entry and its tag links; False when nothing matched."""
    entry = _owned(session, entry_id, owner_id)
    if entry is None:
        return False
    with transaction(session):
        session.delete(entry)
    logger.info('Account %s deleted movie %s', owner_id, entry_id)
    return True
