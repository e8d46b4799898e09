ADMIN_ID = '1001'

CHAT = '-100200'
OPERATOR_ID = '2002'


async def _grant_operator(client, chat_id=CHAT, user_id=OPERATOR_ID):
    return await client.post(
        f'/api/groups/{chat_id}/operators',
        params={'actor_id': ADMIN_ID},
        json={'user_id': user_id, 'user_name': 'ops'},
    )


async def test_health(client):
    resp = await client.get('/health')
    assert resp.status_code == 200
    assert resp.json() == {'status': 'ok', 'service': 'group-ledger'}


async def test_unknown_group_is_404(client):
    assert (await client.get(f'/api/groups/{CHAT}')).status_code == 404
    assert (await client.get(f'/api/groups/{CHAT}/history')).status_code == 404


async def test_commands_require_permission(client):
    resp = await client.post(f'/api/groups/{CHAT}/pending', json={'amount': '10'})
    assert resp.status_code == 422

    resp = await client.post(
        f'/api/groups/{CHAT}/pending',
        params={'actor_id': OPERATOR_ID},
        json={'amount': '10'},
    )
    assert resp.status_code == 403


async def test_admin_can_run_commands_anywhere(client):
    resp = await client.post(
        f'/api/groups/{CHAT}/pending',
        params={'actor_id': ADMIN_ID},
        json={'amount': '10', 'chat_title': 'Ops team'},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body['account']['pending'] == '10.000000'
    assert body['account']['chat_title'] == 'Ops team'


async def test_operator_flow(client):
    resp = await _grant_operator(client)
    assert resp.status_code == 201
    assert resp.json()['added'] is True
    assert (await _grant_operator(client)).json()['added'] is False

    params = {'actor_id': OPERATOR_ID}

    resp = await client.post(f'/api/groups/{CHAT}/service-rate', params=params, json={'rate': '5%'})
    assert resp.status_code == 200
    assert resp.json()['account']['service_rate'] == '0.050000'
    assert resp.json()['recorded'] is True

    resp = await client.post(f'/api/groups/{CHAT}/pending', params=params, json={'amount': '100'})
    body = resp.json()
    assert body['service_fee'] == '5.000000'
    assert body['total'] == '105.000000'
    assert body['account']['pending'] == '105.000000'

    resp = await client.post(f'/api/groups/{CHAT}/deposits', params=params, json={'amount': '200'})
    assert resp.status_code == 409

    resp = await client.post(f'/api/groups/{CHAT}/payments', params=params, json={'amount': '0'})
    assert resp.status_code == 422

    resp = await client.post(f'/api/groups/{CHAT}/withdrawals', params=params, json={'amount': '1'})
    assert resp.status_code == 200
    assert resp.json()['account']['pending'] == '106.000000'

    resp = await client.get(f'/api/groups/{CHAT}/history')
    assert resp.status_code == 200
    history = resp.json()
    assert history['pending'] == '106.000000'
    assert [t['type'] for t in history['transactions']] == [
        'DEPOSIT', 'PENDING_ADD', 'SERVICE_RATE_UPDATE',
    ]
    assert history['transactions'][0]['pending_amount_after'] == '106.000000'

    resp = await client.get(f'/api/groups/{CHAT}/history', params={'limit': 1})
    assert len(resp.json()['transactions']) == 1

    resp = await client.get(f'/api/groups/{CHAT}/reconcile')
    assert resp.json() == {'chat_id': CHAT, 'consistent': True}


async def test_operator_rights_are_per_group(client):
    await _grant_operator(client)

    resp = await client.post(
        '/api/groups/-999/pending',
        params={'actor_id': OPERATOR_ID},
        json={'amount': '1'},
    )
    assert resp.status_code == 403


async def test_operator_management_is_admin_only(client):
    resp = await client.post(
        f'/api/groups/{CHAT}/operators',
        params={'actor_id': OPERATOR_ID},
        json={'user_id': '3003'},
    )
    assert resp.status_code == 403

    await _grant_operator(client)
    resp = await client.get(f'/api/groups/{CHAT}/operators', params={'actor_id': ADMIN_ID})
    assert [op['user_id'] for op in resp.json()] == [OPERATOR_ID]

    resp = await client.delete(
        f'/api/groups/{CHAT}/operators/{OPERATOR_ID}', params={'actor_id': ADMIN_ID}
    )
    assert resp.json()['removed'] is True
    resp = await client.delete(
        f'/api/groups/{CHAT}/operators/{OPERATOR_ID}', params={'actor_id': ADMIN_ID}
    )
    assert resp.status_code == 404


async def test_amount_beyond_storage_range_is_422(client):
    params = {'actor_id': ADMIN_ID}

    for amount in ('1e25', '1000000000000', '0.0000001'):
        resp = await client.post(f'/api/groups/{CHAT}/pending', params=params, json={'amount': amount})
        assert resp.status_code == 422

    assert (await client.get(f'/api/groups/{CHAT}')).status_code == 404


async def test_service_rate_accepts_json_number(client):
    resp = await client.post(
        f'/api/groups/{CHAT}/service-rate',
        params={'actor_id': ADMIN_ID},
        json={'rate': 0.03},
    )
    assert resp.status_code == 200
    assert resp.json()['account']['service_rate'] == '0.030000'
    assert resp.json()['recorded'] is True

    resp = await client.get(f'/api/groups/{CHAT}/history')
    assert '3.00% (0.030000)' in resp.json()['transactions'][0]['note']
