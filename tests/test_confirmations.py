import asyncio

import pytest

from steam_mobile.authenticator import ConfirmationAuthenticator, SteamAuthenticator
from steam_mobile.confirmations import (
    CONFIRMATIONS_DETAILS_URL,
    CONFIRMATIONS_LIST_URL,
    CONFIRMATIONS_MULTI_OP_URL,
    Confirmation,
    ConfirmationAction,
    ConfirmationType,
    only_trades,
    parse_confirmation_details,
    parse_confirmations,
)
from steam_mobile.errors import InternalGeneralFailure, SessionExpired
from steam_mobile.guard import generate_confirmation_key

from conftest import DEVICE_ID, IDENTITY_SECRET, STEAM_ID, no_sleep, script_login


CONFIRMATIONS = {
    'success': True,
    'conf': [
        {
            'id': '13000000001', 'nonce': '111', 'type': 2, 'creator_id': '5000000001',
            'type_name': 'Trade Offer', 'headline': 'friend', 'summary': ['You will give 1 item'],
            'creation_time': 1700000000,
        },
        {
            'id': '13000000002', 'nonce': '222', 'type': 3, 'creator_id': '4000000002',
            'type_name': 'Market Listing', 'headline': 'AK-47', 'summary': ['$1.00'],
            'creation_time': 1700000001,
        },
        {
            'id': '13000000003', 'nonce': '333', 'type': 2, 'creator_id': '5000000003',
            'type_name': 'Trade Offer', 'headline': 'another friend', 'summary': [],
            'creation_time': 1700000002,
        },
    ],
}


def logged_in(transport, user, settings, rsa_keys) -> ConfirmationAuthenticator:
    script_login(transport, rsa_keys[0])
    session = asyncio.run(SteamAuthenticator(user, settings, transport, sleep=no_sleep).login())
    assert isinstance(session, ConfirmationAuthenticator)
    return session


def test_parse_confirmations():
    confirmations = parse_confirmations(CONFIRMATIONS)

    assert [c.id for c in confirmations] == ['13000000001', '13000000002', '13000000003']
    first = confirmations[0]
    assert first.key == '111'
    assert first.kind == ConfirmationType.TRADE
    assert first.summary == ('You will give 1 item',)
    assert first.trade_offer_id == 5000000001
    assert first.has_trade_offer_id(5000000001)
    assert confirmations[1].trade_offer_id is None


def test_unknown_confirmation_type():
    conf = Confirmation.from_dict({'id': 1, 'nonce': 2, 'type': 42})
    assert conf.kind == ConfirmationType.UNKNOWN


def test_parse_confirmations_needauth():
    with pytest.raises(SessionExpired):
        parse_confirmations({'success': False, 'needauth': True})


def test_parse_confirmations_failure():
    with pytest.raises(InternalGeneralFailure):
        parse_confirmations({'success': False, 'message': 'Invalid authenticator'})


def test_parse_confirmation_details():
    html = '<div class="mobileconf_trade_area"><div class="tradeoffer" id="tradeofferid_5000000001"></div></div>'
    assert parse_confirmation_details(html).trade_offer_id == 5000000001
    assert parse_confirmation_details('<div>Market listing</div>').trade_offer_id is None


def test_fetch_confirmations_is_signed(transport, user, settings, rsa_keys):
    session = logged_in(transport, user, settings, rsa_keys)
    transport.add_json(CONFIRMATIONS_LIST_URL, CONFIRMATIONS)

    confirmations = asyncio.run(session.fetch_confirmations())

    assert len(confirmations) == 3
    query = transport.calls(CONFIRMATIONS_LIST_URL, 'GET')[0].query()
    assert query['p'] == DEVICE_ID
    assert query['a'] == STEAM_ID
    assert query['m'] == 'android'
    assert query['tag'] == 'conf'
    assert query['k'] == generate_confirmation_key(IDENTITY_SECRET, 'conf', query['t'])


def test_accept_only_trades_in_one_request(transport, user, settings, rsa_keys):
    session = logged_in(transport, user, settings, rsa_keys)
    transport.add_json(CONFIRMATIONS_LIST_URL, CONFIRMATIONS)
    transport.add_json(CONFIRMATIONS_MULTI_OP_URL, {'success': True}, method='POST')

    processed = asyncio.run(session.handle_confirmations(ConfirmationAction.ACCEPT, only_trades))

    assert [c.id for c in processed] == ['13000000001', '13000000003']
    posts = transport.calls(CONFIRMATIONS_MULTI_OP_URL, 'POST')
    assert len(posts) == 1

    request = posts[0]
    form = request.form()
    assert form['op'] == 'allow'
    assert form['tag'] == 'allow'
    assert form['k'] == generate_confirmation_key(IDENTITY_SECRET, 'allow', form['t'])
    assert request.form_list('cid[]') == ['13000000001', '13000000003']
    assert request.form_list('ck[]') == ['111', '333']
    assert 'sessionid=a1b2c3d4e5f6a7b8c9d0e1f2' in request.headers['Cookie']


def test_deny_uses_cancel(transport, user, settings, rsa_keys):
    session = logged_in(transport, user, settings, rsa_keys)
    transport.add_json(CONFIRMATIONS_MULTI_OP_URL, {'success': True}, method='POST')
    confirmations = parse_confirmations(CONFIRMATIONS)

    asyncio.run(session.process_confirmations(ConfirmationAction.DENY, confirmations[1:2]))

    form = transport.calls(CONFIRMATIONS_MULTI_OP_URL, 'POST')[0].form()
    assert form['op'] == 'cancel'
    assert form['k'] == generate_confirmation_key(IDENTITY_SECRET, 'cancel', form['t'])


def test_empty_selection_sends_nothing(transport, user, settings, rsa_keys):
    session = logged_in(transport, user, settings, rsa_keys)
    transport.add_json(CONFIRMATIONS_LIST_URL, {'success': True, 'conf': []})

    processed = asyncio.run(session.handle_confirmations(ConfirmationAction.ACCEPT, only_trades))

    assert processed == []
    assert transport.calls(CONFIRMATIONS_MULTI_OP_URL) == []


def test_rejected_batch_raises(transport, user, settings, rsa_keys):
    session = logged_in(transport, user, settings, rsa_keys)
    transport.add_json(CONFIRMATIONS_MULTI_OP_URL, {'success': False}, method='POST')

    with pytest.raises(InternalGeneralFailure):
        asyncio.run(session.process_confirmations(ConfirmationAction.ACCEPT, parse_confirmations(CONFIRMATIONS)))

    assert len(transport.calls(CONFIRMATIONS_MULTI_OP_URL, 'POST')) == 1


def test_fetch_confirmation_details(transport, user, settings, rsa_keys):
    session = logged_in(transport, user, settings, rsa_keys)
    confirmation = parse_confirmations(CONFIRMATIONS)[0]
    url = f'{CONFIRMATIONS_DETAILS_URL}/{confirmation.id}'
    transport.add_json(url, {'success': True, 'html': '<div id="tradeofferid_5000000001"></div>'})

    details = asyncio.run(session.fetch_confirmation_details(confirmation))

    assert details.trade_offer_id == 5000000001
    assert transport.calls(url, 'GET')[0].query()['tag'] == 'details'
