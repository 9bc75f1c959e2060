from typing import List

from pymongo.errors import PyMongoError

from stakewatch.logger.base import get_logger

NOMINATORS_COLLECTION = 'nominators'

# Fields refreshed on every upsert. current and lastNomination are left alone.
NOMINATOR_FIELDS = ['stash', 'proxy', 'bonded', 'proxyDelay', 'rewardDestination', 'createdAt']

log = get_logger('NOMINATORS')


class NominationLedger:
    """
    Persisted per-nominator record of the validators currently backed.

    Every storage failure is logged here and surfaced to the caller only as a
    False / empty return value.
    """
    def __init__(self, db, registry):
        self.nominators = db[NOMINATORS_COLLECTION]
        self.registry = registry

    async def upsert_nominator(self, nominator: dict) -> bool:
        address = nominator.get('address')

        try:
            await self.nominators.update_one(
                {'address': address},
                {
                    '$set': {field: nominator.get(field) for field in NOMINATOR_FIELDS},
                    '$setOnInsert': {
                        'current': [],
                        'lastNomination': 0
                    }
                }, upsert=True
            )
        except PyMongoError as err:
            log.info(str(err))
            log.error(f'Could not add nominator: {nominator}')
            return False

        return True

    async def set_target(self, address: str, target: str, era: int) -> bool:
        log.info(f'Setting {address} with new target {target}.')

        try:
            await self.registry.set_nominated_at(target, era)

            candidate = await self.registry.find_candidate_by_stash(target)
            if candidate is None:
                log.warning(f'No candidate found for {target}, nominatedAt={era} was kept. Deleted candidate?')
                return False

            current_candidate = {
                'name': candidate.get('name'),
                'stash': candidate.get('stash'),
                'identity': candidate.get('identity')
            }

            res = await self.nominators.update_one(
                {'address': address},
                {'$push': {'current': current_candidate}}
            )
        except PyMongoError as err:
            log.error(f'Could not set target {target} for {address}: {err}')
            return False

        if res.matched_count == 0:
            log.warning(f'No nominator {address} to append {target} to.')
            return False

        return True

    async def clear_current(self, address: str) -> bool:
        log.info(f'Clearing current for {address}.')

        try:
            await self.nominators.update_one(
                {'address': address},
                {'$set': {'current': []}}
            )
        except PyMongoError as err:
            log.error(f'Could not clear current for {address}: {err}')
            return False

        return True

    async def set_last_nomination(self, address: str, timestamp: float) -> bool:
        try:
            await self.nominators.update_one(
                {'address': address},
                {'$set': {'lastNomination': timestamp}}
            )
        except PyMongoError as err:
            log.error(f'Could not set last nomination for {address}: {err}')
            return False

        return True

    async def get_current_targets(self, address: str) -> List[dict]:
        # Absent nominator and lookup error both yield []
        try:
            nominator = await self.nominators.find_one({'address': address})
        except PyMongoError as err:
            log.error(str(err))
            return []

        if nominator is None:
            return []

        return nominator.get('current') or []

    async def get_nominator(self, stash: str) -> (dict, None):
        try:
            return await self.nominators.find_one({'stash': stash}, {'_id': 0})
        except PyMongoError as err:
            log.error(f'Could not look up nominator with stash {stash}: {err}')
            return None

    async def all_nominators(self) -> List[dict]:
        try:
            return await self.nominators.find({}, {'_id': 0}).to_list(length=None)
        except PyMongoError as err:
            log.error(f'Could not list nominators: {err}')
            return []

    async def remove_stale_nominators(self, controllers) -> bool:
        active = list(set(controllers))

        try:
            res = await self.nominators.delete_many({'address': {'$nin': active}})
        except PyMongoError as err:
            log.error(f'Could not remove stale nominators: {err}')
            return False

        if res.deleted_count:
            log.info(f'Removed {res.deleted_count} stale nominators.')

        return True
