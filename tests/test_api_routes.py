from cellar.extensions import db
from cellar.models import Batch, BatchPhase, Vessel, VesselStatus

START = '2026-03-02T09:00:00Z'
END = '2026-03-16T09:00:00Z'


def _login(client, user_id):
    with client.session_transaction() as sess:
        sess['_user_id'] = str(user_id)
        sess['_fresh'] = True


def _start(client, batch_id, vessel_id, **extra):
    body = {'vessel_id': vessel_id, 'planned_start': START, 'planned_end': END, **extra}
    return client.post(f'/api/batches/{batch_id}/start-fermentation', json=body)


def test_requires_login(client, seed):
    response = client.get('/api/vessels')

    assert response.status_code == 401
    assert response.get_json()['success'] is False


def test_start_fermentation(client, app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
    _login(client, seed.user_id)

    response = _start(client, batch_id, seed.fv1_id, original_gravity=1.052)

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['data']['scenario'] == 'SIMPLE'
    assert body['data']['batch']['phase'] == BatchPhase.FERMENTING
    assert body['data']['batch']['original_gravity'] == 1.052
    assert body['data']['allocations'][0]['vessel_id'] == seed.fv1_id
    assert [outcome['ok'] for outcome in body['data']['secondary']] == [True, True]

    with app.app_context():
        assert db.session.get(Vessel, seed.fv1_id).status == VesselStatus.OCCUPIED


def test_overlap_is_a_409_with_conflict_details(client, app, seed, make_batch):
    with app.app_context():
        first = make_batch()
        second = make_batch()
    _login(client, seed.user_id)
    _start(client, first, seed.fv1_id)

    response = _start(client, second, seed.fv1_id)

    assert response.status_code == 409
    errors = response.get_json()['errors']
    assert errors['code'] == 'resource_conflict'
    assert errors['availability'][0]['vessel_id'] == seed.fv1_id
    assert errors['availability'][0]['available'] is False


def test_out_of_order_phase_is_a_400(client, app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
    _login(client, seed.user_id)

    response = client.post(f'/api/batches/{batch_id}/start-packaging', json={})

    assert response.status_code == 400
    errors = response.get_json()['errors']
    assert errors['code'] == 'invalid_phase_transition'
    assert errors['current_phase'] == BatchPhase.PLANNED
    assert errors['target_phase'] == BatchPhase.PACKAGED


def test_generic_transition_needs_target_phase(client, app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
    _login(client, seed.user_id)

    missing = client.post(f'/api/batches/{batch_id}/transition', json={'vessel_id': seed.fv1_id})
    ok = client.post(
        f'/api/batches/{batch_id}/transition',
        json={'target_phase': 'fermenting', 'vessel_id': seed.fv1_id, 'planned_start': START},
    )

    assert missing.status_code == 400
    assert missing.get_json()['errors']['code'] == 'validation_error'
    assert ok.status_code == 200
    assert ok.get_json()['data']['batch']['phase'] == BatchPhase.FERMENTING


def test_other_tenants_batch_is_a_404(client, seed):
    _login(client, seed.user_id)

    response = _start(client, seed.other_batch_id, seed.fv1_id)

    assert response.status_code == 404
    assert response.get_json()['errors']['code'] == 'not_found'


def test_blend_fields_need_enable_blending(client, app, seed, make_batch):
    with app.app_context():
        pale = make_batch(recipe_id=seed.pale_id)
        ipa = make_batch(recipe_id=seed.ipa_id)
    _login(client, seed.user_id)

    response = _start(client, pale, seed.fv3_id, blend_with=[ipa])

    assert response.status_code == 400
    assert response.get_json()['errors']['code'] == 'validation_error'
    with app.app_context():
        assert db.session.get(Batch, pale).phase == BatchPhase.PLANNED


def test_blend_with_string_is_rejected(client, app, seed, make_batch):
    with app.app_context():
        pale = make_batch(recipe_id=seed.pale_id)
    _login(client, seed.user_id)

    as_string = _start(client, pale, seed.fv3_id, blend_with='12', enable_blending=True)
    disabled = _start(client, pale, seed.fv3_id, blend_with=[12], enable_blending='false')

    assert as_string.status_code == 400
    assert disabled.status_code == 400
    assert disabled.get_json()['errors']['code'] == 'validation_error'
    with app.app_context():
        assert db.session.get(Batch, pale).phase == BatchPhase.PLANNED


def test_blend_then_fetch_lot(client, app, seed, make_batch):
    with app.app_context():
        pale = make_batch(recipe_id=seed.pale_id)
        ipa = make_batch(recipe_id=seed.ipa_id)
    _login(client, seed.user_id)

    response = _start(client, pale, seed.fv3_id, blend_with=[ipa], enable_blending=True)

    assert response.status_code == 200
    body = response.get_json()
    lot = body['data']['lot']
    assert lot['lot_code'].startswith('BLEND-')
    assert any(warning.startswith('Blending different styles') for warning in body['warnings'])

    fetched = client.get(f"/api/lots/{lot['id']}").get_json()['data']
    assert sorted(batch['id'] for batch in fetched['batches']) == sorted([pale, ipa])


def test_validate_blend(client, app, seed, make_batch):
    with app.app_context():
        pale = make_batch(recipe_id=seed.pale_id)
        stout = make_batch(recipe_id=seed.stout_id)
    _login(client, seed.user_id)

    response = client.post('/api/blends/validate', json={'batch_ids': [pale, stout]})
    too_few = client.post('/api/blends/validate', json={'batch_ids': [pale, pale]})

    data = response.get_json()['data']
    assert response.status_code == 200
    assert data['compatible'] is False
    assert data['errors'] == ['Different yeast strains cannot be blended: US-05, WLP004']
    assert too_few.status_code == 400


def test_cancel_and_timeline(client, app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
    _login(client, seed.user_id)
    _start(client, batch_id, seed.fv1_id)

    cancelled = client.post(f'/api/batches/{batch_id}/cancel', json={'reason': 'infected'})
    timeline = client.get(f'/api/batches/{batch_id}/timeline').get_json()['data']
    detail = client.get(f'/api/batches/{batch_id}').get_json()['data']

    assert cancelled.status_code == 200
    assert cancelled.get_json()['data']['batch']['phase'] == BatchPhase.CANCELLED
    assert [event['event_type'] for event in timeline] == ['batch.cancelled', 'batch.fermenting']
    assert detail['active_allocation'] is None
    assert detail['siblings'] == []


def test_vessel_listing_and_board(client, seed):
    _login(client, seed.user_id)

    listing = client.get('/api/vessels?min_capacity=1200').get_json()['data']
    free = client.get('/api/vessels?available=1&min_capacity=1000').get_json()['data']
    board = client.get('/api/vessels/board').get_json()['data']

    assert [vessel['name'] for vessel in listing] == ['BT-1', 'FV-3']
    assert [vessel['name'] for vessel in free] == ['FV-1', 'FV-2', 'BT-1', 'FV-3']
    assert len(board) == 6
    assert 'OX-1' not in {entry['name'] for entry in board}


def test_vessel_availability(client, app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
    _login(client, seed.user_id)
    _start(client, batch_id, seed.fv1_id)

    busy = client.get(
        f'/api/vessels/{seed.fv1_id}/availability',
        query_string={'start': '2026-03-10T00:00:00Z', 'end': '2026-03-20T00:00:00Z'},
    ).get_json()['data']
    after = client.get(
        f'/api/vessels/{seed.fv1_id}/availability',
        query_string={'start': END, 'end': '2026-03-20T00:00:00Z'},
    ).get_json()['data']
    multi = client.post('/api/vessels/availability', json={
        'vessel_ids': [seed.fv1_id, seed.fv2_id], 'start': START, 'end': END,
    }).get_json()['data']
    bad = client.get(f'/api/vessels/{seed.fv1_id}/availability', query_string={'start': 'soon'})

    assert busy['available'] is False
    assert busy['conflict']['batch_id'] == batch_id
    assert after['available'] is True
    assert multi['all_available'] is False
    assert multi['per_vessel'][str(seed.fv2_id)]['available'] is True
    assert bad.status_code == 400


def test_vessel_status_and_history(client, seed):
    _login(client, seed.user_id)

    response = client.patch(f'/api/vessels/{seed.fv2_id}/status', json={'status': 'maintenance'})
    occupied = client.patch(f'/api/vessels/{seed.fv2_id}/status', json={'status': 'OCCUPIED'})
    history = client.get(f'/api/vessels/{seed.fv2_id}/history')

    assert response.status_code == 200
    assert response.get_json()['data']['status'] == VesselStatus.MAINTENANCE
    assert occupied.status_code == 400
    assert history.get_json()['data'] == []


def test_bookings(client, app, seed, make_batch):
    with app.app_context():
        batch_id = make_batch()
        rival_id = make_batch()
    _login(client, seed.user_id)

    created = client.post(f'/api/vessels/{seed.bt1_id}/bookings', json={
        'batch_id': batch_id, 'phase': 'conditioning',
        'planned_start': END, 'planned_end': '2026-03-23T09:00:00Z',
    })
    clash = client.post(f'/api/vessels/{seed.bt1_id}/bookings', json={
        'batch_id': rival_id, 'phase': 'CONDITIONING',
        'planned_start': '2026-03-20T09:00:00Z', 'planned_end': '2026-03-25T09:00:00Z',
    })

    assert created.status_code == 201
    booking = created.get_json()['data']
    assert booking['status'] == 'PLANNED'
    assert clash.status_code == 409

    removed = client.delete(f"/api/vessels/bookings/{booking['id']}")
    again = client.delete(f"/api/vessels/bookings/{booking['id']}")

    assert removed.status_code == 200
    assert removed.get_json()['data']['status'] == 'CANCELLED'
    assert again.status_code == 400
