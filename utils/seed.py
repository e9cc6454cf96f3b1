# utils/seed.py
from flask import current_app

from models import Rank, RankTransition, User
from utils.extensions import db

# (name, order, min_age, grants_instructor)
DEFAULT_RANKS = [
    ("White", 1, None, False),

    # Youth track (under 16)
    ("Grey-White", 2, None, False),
    ("Grey", 3, None, False),
    ("Grey-Black", 4, None, False),
    ("Yellow-White", 5, None, False),
    ("Yellow", 6, None, False),
    ("Yellow-Black", 7, None, False),
    ("Orange-White", 8, None, False),
    ("Orange", 9, None, False),
    ("Orange-Black", 10, None, False),
    ("Green-White", 11, None, False),
    ("Green", 12, None, False),
    ("Green-Black", 13, None, False),

    # Adult track (16+)
    ("Blue", 14, 16, False),
    ("Purple", 15, 16, True),
    ("Brown", 16, 18, False),
    ("Black", 17, 19, False),
    ("Coral", 18, 50, False),
    ("Red", 19, 67, False),
]

# (from, to, youth classes, adult classes)
DEFAULT_TRANSITIONS = [
    ("White", "Blue", 30, 40),
    ("Blue", "Purple", 45, 45),
    ("Purple", "Brown", 50, 50),
    ("Brown", "Black", 60, 60),
]


def seed_ranks():
    existing = {r.name: r for r in Rank.query.all()}
    taken_orders = {r.order for r in existing.values()}
    created = 0
    for name, order, min_age, grants_instructor in DEFAULT_RANKS:
        if name in existing or order in taken_orders:
            continue
        rank = Rank(name=name, order=order, min_age=min_age, grants_instructor=grants_instructor)
        db.session.add(rank)
        existing[name] = rank
        taken_orders.add(order)
        created += 1
    db.session.flush()

    for from_name, to_name, youth, adult in DEFAULT_TRANSITIONS:
        source, target = existing.get(from_name), existing.get(to_name)
        if source is None or target is None:
            continue
        if RankTransition.query.filter_by(from_rank_id=source.id, to_rank_id=target.id).first():
            continue
        db.session.add(RankTransition(from_rank_id=source.id, to_rank_id=target.id,
                                      youth_required=youth, adult_required=adult))
    db.session.commit()
    return created


def seed_admin():
    username = current_app.config['ADMIN_USERNAME']
    if User.query.filter_by(username=username).first():
        return None
    admin = User(username=username, first_name='Super', last_name='Admin', role='admin')
    admin.set_password(current_app.config['ADMIN_PASSWORD'])
    db.session.add(admin)
    db.session.commit()
    current_app.logger.info("%s created.", username)
    return admin


def seed_defaults():
    db.create_all()
    seed_admin()
    return seed_ranks()
