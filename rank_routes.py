from flask import Blueprint, current_app, jsonify
from flask_login import login_required
from sqlalchemy.exc import IntegrityError

from forms import RankForm, RankUpdateForm, RankTransitionForm
from models import db, Promotion, Rank, RankTransition
from utils import errors
from utils.helpers import manager_required, raise_form_errors, submitted
from utils.serializers import serialize_rank, serialize_transition

rank_bp = Blueprint('ranks', __name__)


def _get_rank(rank_id):
    rank = db.session.get(Rank, rank_id)
    if rank is None:
        raise errors.NotFound(f"Rank {rank_id} not found.", rank_id=rank_id)
    return rank


def _check_unique(name=None, order=None, exclude_id=None):
    if order is not None:
        clash = Rank.query.filter(Rank.order == order, Rank.id != exclude_id).first()
        if clash:
            raise errors.ValidationError("A rank with this order already exists.", order=order)
    if name is not None:
        clash = Rank.query.filter(Rank.name == name, Rank.id != exclude_id).first()
        if clash:
            raise errors.ValidationError("A rank with this name already exists.", name=name)


@rank_bp.route('', methods=['GET'])
@login_required
def list_ranks():
    ranks = Rank.query.order_by(Rank.order.asc()).all()
    return jsonify([serialize_rank(r) for r in ranks])


@rank_bp.route('/<int:rank_id>', methods=['GET'])
@login_required
def get_rank(rank_id):
    rank = _get_rank(rank_id)
    data = serialize_rank(rank)
    data['transitions'] = [serialize_transition(t) for t in rank.outgoing_transitions]
    return jsonify(data)


@rank_bp.route('', methods=['POST'])
@manager_required
def create_rank():
    form = RankForm()
    if not form.validate():
        raise_form_errors(form)

    name = form.name.data.strip()
    _check_unique(name=name, order=form.order.data)

    rank = Rank(
        name=name,
        order=form.order.data,
        image_url=form.image_url.data or None,
        min_age=form.min_age.data,
        grants_instructor=form.grants_instructor.data
    )
    db.session.add(rank)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise errors.ValidationError("Rank name and order must be unique.")
    current_app.logger.info("Rank %s created with order %s", rank.name, rank.order)
    return jsonify(serialize_rank(rank)), 201


@rank_bp.route('/<int:rank_id>', methods=['PUT'])
@manager_required
def update_rank(rank_id):
    rank = _get_rank(rank_id)
    form = RankUpdateForm()
    if not form.validate():
        raise_form_errors(form)

    if submitted(form.name):
        name = form.name.data.strip()
        _check_unique(name=name, exclude_id=rank.id)
        rank.name = name
    if submitted(form.order) and form.order.data != rank.order:
        _check_unique(order=form.order.data, exclude_id=rank.id)
        rank.order = form.order.data
    if submitted(form.image_url):
        rank.image_url = form.image_url.data or None
    if submitted(form.min_age):
        rank.min_age = form.min_age.data
    if submitted(form.grants_instructor):
        rank.grants_instructor = form.grants_instructor.data

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise errors.ValidationError("Rank name and order must be unique.")
    return jsonify(serialize_rank(rank))


@rank_bp.route('/<int:rank_id>', methods=['DELETE'])
@manager_required
def delete_rank(rank_id):
    rank = _get_rank(rank_id)
    in_use = Promotion.query.filter_by(rank_id=rank.id).count()
    if in_use:
        raise errors.ValidationError(
            "Cannot delete a rank that students hold or have held.", promotions=in_use)

    db.session.delete(rank)
    db.session.commit()
    current_app.logger.info("Rank %s deleted", rank.name)
    return jsonify({'message': 'Rank removed.'})


@rank_bp.route('/transitions', methods=['GET'])
@login_required
def list_transitions():
    return jsonify([serialize_transition(t) for t in RankTransition.query.all()])


@rank_bp.route('/transitions', methods=['PUT'])
@manager_required
def set_transition():
    """Create or replace the attendance requirement between two ranks."""
    form = RankTransitionForm()
    if not form.validate():
        raise_form_errors(form)

    _get_rank(form.from_rank_id.data)
    _get_rank(form.to_rank_id.data)

    transition = RankTransition.query.filter_by(
        from_rank_id=form.from_rank_id.data, to_rank_id=form.to_rank_id.data).first()
    if transition is None:
        transition = RankTransition(from_rank_id=form.from_rank_id.data, to_rank_id=form.to_rank_id.data)
        db.session.add(transition)
    transition.youth_required = form.youth_required.data
    transition.adult_required = form.adult_required.data
    transition.min_days = form.min_days.data
    db.session.commit()
    return jsonify(serialize_transition(transition))
