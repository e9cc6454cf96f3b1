from datetime import date

from models import Rank, RankTransition


def test_ranks_listed_by_order(client, coordinator):
    ranks = client.get('/ranks').get_json()

    orders = [r['order'] for r in ranks]
    assert orders == sorted(orders)
    assert ranks[0]['name'] == 'White'
    purple = next(r for r in ranks if r['name'] == 'Purple')
    assert purple['grants_instructor'] is True


def test_rank_detail_includes_transitions(client, coordinator, rank_named):
    white = rank_named('White')

    data = client.get(f'/ranks/{white.id}').get_json()

    assert data['transitions'] == [{
        'id': data['transitions'][0]['id'],
        'from_rank_id': white.id,
        'to_rank_id': rank_named('Blue').id,
        'youth_required': 30,
        'adult_required': 40,
        'min_days': None,
    }]


def test_create_rank(client, coordinator):
    response = client.post('/ranks', json={'name': 'Red-White', 'order': 20, 'min_age': 70})

    assert response.status_code == 201
    data = response.get_json()
    assert data['order'] == 20
    assert data['min_age'] == 70
    assert data['grants_instructor'] is False


def test_duplicate_order_is_rejected(client, coordinator):
    response = client.post('/ranks', json={'name': 'Teal', 'order': 14})

    assert response.status_code == 400
    assert response.get_json()['details'] == {'order': 14}
    assert Rank.query.filter_by(name='Teal').first() is None


def test_missing_fields_are_reported(client, coordinator):
    response = client.post('/ranks', json={'name': 'Teal'})

    assert response.status_code == 400
    assert 'order' in response.get_json()['details']['fields']


def test_partial_update_keeps_other_fields(client, coordinator, rank_named):
    blue = rank_named('Blue')

    response = client.put(f'/ranks/{blue.id}', json={'image_url': '/static/belts/blue.png'})

    assert response.status_code == 200
    data = response.get_json()
    assert data['image_url'] == '/static/belts/blue.png'
    assert data['order'] == 14
    assert data['min_age'] == 16


def test_update_to_taken_order(client, coordinator, rank_named):
    response = client.put(f"/ranks/{rank_named('Blue').id}", json={'order': 15})
    assert response.status_code == 400


def test_delete_unused_rank(client, coordinator, rank_named):
    red = rank_named('Red')

    response = client.delete(f'/ranks/{red.id}')

    assert response.status_code == 200
    assert Rank.query.filter_by(name='Red').first() is None


def test_delete_held_rank_is_rejected(client, coordinator, make_student, give_rank, rank_named):
    student = make_student('Ana', 25)
    give_rank(student, 'Blue', date(2024, 5, 1))

    response = client.delete(f"/ranks/{rank_named('Blue').id}")

    assert response.status_code == 400
    assert response.get_json()['details'] == {'promotions': 1}


def test_transition_upsert(client, coordinator, rank_named):
    payload = {'from_rank_id': rank_named('Blue').id, 'to_rank_id': rank_named('Purple').id,
               'youth_required': 50, 'adult_required': 55, 'min_days': 365}

    response = client.put('/ranks/transitions', json=payload)

    assert response.status_code == 200
    assert response.get_json()['adult_required'] == 55
    assert response.get_json()['min_days'] == 365
    assert RankTransition.query.filter_by(from_rank_id=payload['from_rank_id'],
                                          to_rank_id=payload['to_rank_id']).count() == 1


def test_transition_needs_two_ranks(client, coordinator, rank_named):
    blue = rank_named('Blue').id
    response = client.put('/ranks/transitions', json={'from_rank_id': blue, 'to_rank_id': blue,
                                                      'youth_required': 1, 'adult_required': 1})
    assert response.status_code == 400


def test_instructor_cannot_create_rank(client, make_user, login):
    login(make_user('sensei', role='instructor'))
    assert client.post('/ranks', json={'name': 'Teal', 'order': 30}).status_code == 403
