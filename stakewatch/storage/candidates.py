import time
from typing import Callable

from pymongo.errors import PyMongoError

from stakewatch.logger.base import get_logger

CANDIDATES_COLLECTION = 'candidates'

log = get_logger('CANDIDATES')


class CandidateRegistry:
    """
    Access to the candidate documents this service touches but does not own.

    Reads candidates by stash, stamps ``nominatedAt`` when a nominator picks
    them and records liveness transitions in ``offlineSince`` / ``onlineSince``.
    """
    def __init__(self, db, clock: Callable = time.time):
        self.candidates = db[CANDIDATES_COLLECTION]
        self.clock = clock

    async def find_candidate_by_stash(self, stash: str) -> (dict, None):
        try:
            candidate = await self.candidates.find_one({'stash': stash})
        except PyMongoError as err:
            log.error(f'Could not look up candidate {stash}: {err}')
            return None

        if candidate is None:
            return None

        return {
            'name': candidate.get('name'),
            'stash': candidate.get('stash'),
            'identity': candidate.get('identity')
        }

    async def set_nominated_at(self, stash: str, era: int) -> bool:
        try:
            res = await self.candidates.update_one(
                {'stash': stash},
                {'$set': {'nominatedAt': era}}
            )
        except PyMongoError as err:
            log.error(f'Could not set nominatedAt={era} on {stash}: {err}')
            return False

        return res.matched_count > 0

    async def report_offline(self, name: str) -> bool:
        now = self.clock()

        try:
            res = await self.candidates.update_one(
                {'name': name},
                {'$set': {'offlineSince': now, 'onlineSince': 0}}
            )
        except PyMongoError as err:
            log.error(f'Could not report {name} offline: {err}')
            return False

        if res.matched_count == 0:
            log.warning(f'Reported {name} offline but no candidate has that name.')
            return False

        log.info(f'Reported {name} offline at {now}.')
        return True

    async def report_online(self, name: str) -> bool:
        now = self.clock()

        try:
            res = await self.candidates.update_one(
                {'name': name},
                {'$set': {'onlineSince': now, 'offlineSince': 0}}
            )
        except PyMongoError as err:
            log.error(f'Could not report {name} online: {err}')
            return False

        return res.matched_count > 0
