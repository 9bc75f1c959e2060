from unittest import TestCase
from unittest.mock import AsyncMock, MagicMock

from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import PyMongoError

from stakewatch.storage.candidates import CandidateRegistry
from stakewatch.storage.nominators import NominationLedger

import asyncio

NOMINATOR = {
    'address': 'N1',
    'stash': 'S1',
    'proxy': 'P1',
    'bonded': 1000,
    'proxyDelay': 0,
    'rewardDestination': 'Staked',
    'createdAt': 100
}


class TestNominationLedger(TestCase):
    def setUp(self):
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

        self.client = AsyncMongoMockClient()
        self.db = self.client['stakewatch_test']

        self.registry = CandidateRegistry(db=self.db)
        self.ledger = NominationLedger(db=self.db, registry=self.registry)

        self.run_coro(self.db['candidates'].insert_one({
            'name': 'Val2',
            'stash': 'S2',
            'identity': {'name': 'Val2', 'verified': True},
            'nominatedAt': 0
        }))

    def tearDown(self):
        self.loop.close()

    def run_coro(self, coro):
        return self.loop.run_until_complete(coro)

    def get_nominator(self, address):
        return self.run_coro(self.db['nominators'].find_one({'address': address}))

    def get_candidate(self, stash):
        return self.run_coro(self.db['candidates'].find_one({'stash': stash}))

    def test_METHOD_upsert_nominator__creates_with_empty_current(self):
        res = self.run_coro(self.ledger.upsert_nominator(NOMINATOR))

        nominator = self.get_nominator('N1')

        self.assertTrue(res)
        self.assertEqual([], nominator['current'])
        self.assertEqual(0, nominator['lastNomination'])
        self.assertEqual('S1', nominator['stash'])
        self.assertEqual(100, nominator['createdAt'])

    def test_METHOD_upsert_nominator__update_keeps_current_and_last_nomination(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))
        self.run_coro(self.ledger.set_target('N1', 'S2', 50))
        self.run_coro(self.ledger.set_last_nomination('N1', 12345))

        updated = dict(NOMINATOR, bonded=5000, proxy='P2', createdAt=200)
        res = self.run_coro(self.ledger.upsert_nominator(updated))

        nominator = self.get_nominator('N1')

        self.assertTrue(res)
        self.assertEqual(5000, nominator['bonded'])
        self.assertEqual('P2', nominator['proxy'])
        self.assertEqual(200, nominator['createdAt'])
        self.assertEqual(12345, nominator['lastNomination'])
        self.assertEqual(1, len(nominator['current']))

    def test_METHOD_upsert_nominator__returns_false_on_store_failure(self):
        ledger = NominationLedger(db=MagicMock(), registry=self.registry)
        ledger.nominators.update_one = AsyncMock(side_effect=PyMongoError('down'))

        self.assertFalse(self.run_coro(ledger.upsert_nominator(NOMINATOR)))

    def test_set_target_and_clear_current_scenario(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))

        res = self.run_coro(self.ledger.set_target('N1', 'S2', 50))

        self.assertTrue(res)
        self.assertEqual(50, self.get_candidate('S2')['nominatedAt'])

        current = self.run_coro(self.ledger.get_current_targets('N1'))
        self.assertEqual(1, len(current))
        self.assertEqual('Val2', current[0]['name'])
        self.assertEqual('S2', current[0]['stash'])

        self.run_coro(self.ledger.clear_current('N1'))

        self.assertEqual([], self.run_coro(self.ledger.get_current_targets('N1')))

    def test_METHOD_set_target__appends_exactly_one_entry(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))
        self.run_coro(self.ledger.set_target('N1', 'S2', 50))

        self.run_coro(self.ledger.set_target('N1', 'S2', 51))

        current = self.run_coro(self.ledger.get_current_targets('N1'))
        self.assertEqual(2, len(current))
        self.assertEqual('S2', current[-1]['stash'])

    def test_METHOD_set_target__missing_candidate_returns_false(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))

        res = self.run_coro(self.ledger.set_target('N1', 'S404', 50))

        self.assertFalse(res)
        self.assertEqual([], self.run_coro(self.ledger.get_current_targets('N1')))

    def test_METHOD_set_target__snapshot_is_not_live_linked(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))
        self.run_coro(self.ledger.set_target('N1', 'S2', 50))

        self.run_coro(self.db['candidates'].update_one({'stash': 'S2'}, {'$set': {'name': 'Renamed'}}))

        current = self.run_coro(self.ledger.get_current_targets('N1'))
        self.assertEqual('Val2', current[0]['name'])

    def test_METHOD_set_target__unknown_nominator_returns_false(self):
        res = self.run_coro(self.ledger.set_target('N404', 'S2', 50))

        self.assertFalse(res)

    def test_METHOD_set_target__writes_registry_before_lookup(self):
        registry = MagicMock()
        calls = []
        registry.set_nominated_at = AsyncMock(side_effect=lambda *args: calls.append('set_nominated_at'))
        registry.find_candidate_by_stash = AsyncMock(side_effect=lambda *args: calls.append('find') or None)

        ledger = NominationLedger(db=self.db, registry=registry)
        res = self.run_coro(ledger.set_target('N1', 'S2', 50))

        self.assertFalse(res)
        self.assertEqual(['set_nominated_at', 'find'], calls)
        registry.set_nominated_at.assert_awaited_once_with('S2', 50)

    def test_METHOD_clear_current__is_idempotent(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))

        self.assertTrue(self.run_coro(self.ledger.clear_current('N1')))
        self.assertTrue(self.run_coro(self.ledger.clear_current('N1')))

        self.assertEqual([], self.get_nominator('N1')['current'])

    def test_METHOD_set_last_nomination__is_unconditional(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))

        self.run_coro(self.ledger.set_last_nomination('N1', 500))
        self.run_coro(self.ledger.set_last_nomination('N1', 100))

        self.assertEqual(100, self.get_nominator('N1')['lastNomination'])

    def test_METHOD_get_current_targets__empty_for_absent_nominator(self):
        self.assertEqual([], self.run_coro(self.ledger.get_current_targets('nobody')))

    def test_METHOD_get_current_targets__empty_on_lookup_error(self):
        ledger = NominationLedger(db=MagicMock(), registry=self.registry)
        ledger.nominators.find_one = AsyncMock(side_effect=PyMongoError('down'))

        self.assertEqual([], self.run_coro(ledger.get_current_targets('N1')))

    def test_METHOD_get_nominator__finds_by_stash(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))

        nominator = self.run_coro(self.ledger.get_nominator('S1'))

        self.assertEqual('N1', nominator['address'])
        self.assertNotIn('_id', nominator)

    def test_METHOD_all_nominators__lists_every_record(self):
        self.run_coro(self.ledger.upsert_nominator(NOMINATOR))
        self.run_coro(self.ledger.upsert_nominator(dict(NOMINATOR, address='N2', stash='S9')))

        addresses = sorted(n['address'] for n in self.run_coro(self.ledger.all_nominators()))

        self.assertEqual(['N1', 'N2'], addresses)

    def test_METHOD_remove_stale_nominators__keeps_only_active(self):
        for address in ('N1', 'N2', 'N3'):
            self.run_coro(self.ledger.upsert_nominator(dict(NOMINATOR, address=address)))

        res = self.run_coro(self.ledger.remove_stale_nominators(['N1', 'N3', 'N7']))

        addresses = sorted(n['address'] for n in self.run_coro(self.ledger.all_nominators()))

        self.assertTrue(res)
        self.assertEqual(['N1', 'N3'], addresses)

    def test_METHOD_remove_stale_nominators__rerun_is_a_no_op(self):
        for address in ('N1', 'N2'):
            self.run_coro(self.ledger.upsert_nominator(dict(NOMINATOR, address=address)))

        self.run_coro(self.ledger.remove_stale_nominators({'N1'}))
        first = self.run_coro(self.ledger.all_nominators())
        self.run_coro(self.ledger.remove_stale_nominators({'N1'}))
        second = self.run_coro(self.ledger.all_nominators())

        self.assertEqual(first, second)

    def test_METHOD_remove_stale_nominators__returns_false_on_store_failure(self):
        ledger = NominationLedger(db=MagicMock(), registry=self.registry)
        ledger.nominators.delete_many = AsyncMock(side_effect=PyMongoError('down'))

        self.assertFalse(self.run_coro(ledger.remove_stale_nominators(['N1'])))
