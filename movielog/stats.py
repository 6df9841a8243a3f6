from sqlalchemy import extract, func, select

from movielog.models import MovieEntry


def stats(session, owner_id):
    """Aggregate counters over one account's collection.

    Entries without a rating are left out of the average; months are counted
    from entries that carry a watch date.
    """
    total, average = session.query(
        func.count(MovieEntry.id),
        func.avg(MovieEntry.rating)
    ).filter(MovieEntry.user_id == owner_id).one()

    months = select(
        extract('year', MovieEntry.watch_date).label('year'),
        extract('month', MovieEntry.watch_date).label('month')
    ).where(
        MovieEntry.user_id == owner_id,
        MovieEntry.watch_date.isnot(None)
    ).distinct().subquery()
    months_active = session.execute(
        select(func.count()).select_from(months)
    ).scalar()

    return {
        'total_movies': total or 0,
        'average_rating': round(float(average), 2) if average is not None else None,
        'months_active': months_active or 0
    }
