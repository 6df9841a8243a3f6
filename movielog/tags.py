"""Global tag vocabulary and movie/tag associations.

Tag names are trimmed and case-folded before they are stored or compared, so
" Noir" and "noir" are the same tag. Tags are never deleted, even when no movie
references them any more.
"""
import logging

from sqlalchemy.exc import IntegrityError

from movielog.errors import InvalidInput
from movielog.models import MovieTagLink, Tag, transaction

logger = logging.getLogger(__name__)

MAX_TAG_LENGTH = 64


def normalize_name(name):
    if not isinstance(name, str):
        raise InvalidInput('Valid tag name is required')
    normalized = name.strip().casefold()
    if not normalized:
        raise InvalidInput('Valid tag name is required')
    if len(normalized) > MAX_TAG_LENGTH:
        raise InvalidInput(f'Tag names are limited to {MAX_TAG_LENGTH} characters')
    return normalized


def normalize_names(names):
    """Normalize a list of names, dropping duplicates but keeping order."""
    if not isinstance(names, (list, tuple)):
        raise InvalidInput('tags must be a list of names')
    seen = []
    for name in names:
        normalized = normalize_name(name)
        if normalized not in seen:
            seen.append(normalized)
    return seen


def get_or_create_tag(session, name):
    name = normalize_name(name)
    tag = session.query(Tag).filter_by(name=name).first()
    if tag is not None:
        return tag

    try:
        with session.begin_nested():
            tag = Tag(name=name)
            session.add(tag)
    except IntegrityError:
        # another request inserted the same name first
        tag = session.query(Tag).filter_by(name=name).first()
        if tag is None:
            raise
    else:
        logger.info('Created tag %r', name)
    return tag


def attach(session, movie_id, tag_id):
    """Link a tag to a movie; linking twice is a no-op."""
    existing = session.query(MovieTagLink).filter_by(
        movie_id=movie_id, tag_id=tag_id).first()
    if existing is not None:
        return False
    try:
        with session.begin_nested():
            session.add(MovieTagLink(movie_id=movie_id, tag_id=tag_id))
    except IntegrityError:
        if session.query(MovieTagLink).filter_by(
                movie_id=movie_id, tag_id=tag_id).first() is None:
            raise
        return False
    return True


def detach(session, movie_id, tag_id):
    """Unlink a tag from a movie; returns False if it was not linked."""
    removed = session.query(MovieTagLink).filter_by(
        movie_id=movie_id, tag_id=tag_id).delete()
    return removed > 0


def current_names(session, movie_id):
    rows = session.query(Tag.id, Tag.name).join(
        MovieTagLink, MovieTagLink.tag_id == Tag.id
    ).filter(MovieTagLink.movie_id == movie_id).all()
    return {name: tag_id for tag_id, name in rows}


def reconcile(session, movie_id, desired_names):
    """Make the movie's tag set equal ``desired_names``.

    Removals and additions commit together or not at all.
    """
    desired = normalize_names(desired_names)

    with transaction(session):
        current = current_names(session, movie_id)
        to_remove = [name for name in current if name not in desired]
        to_add = [name for name in desired if name not in current]
        logger.debug('Reconciling tags for movie %s: +%s -%s',
                     movie_id, to_add, to_remove)

        for name in to_remove:
            detach(session, movie_id, current[name])
        for name in to_add:
            tag = get_or_create_tag(session, name)
            attach(session, movie_id, tag.id)

    return sorted(desired)
