import asyncio
from typing import List

from stakewatch.logger.base import get_logger

log = get_logger('RECONCILER')


class NominatorReconciler:
    def __init__(self, ledger, sink, era_store=None):
        self.ledger = ledger
        self.sink = sink
        self.era_store = era_store

    async def apply_decision(self, address: str, target_stash: str, era: int) -> bool:
        applied = await self.ledger.set_target(address, target_stash, era)

        if not applied:
            log.warning(f'Nomination of {target_stash} by {address} in era {era} was not applied.')

        return applied

    async def apply_nominations(self, address: str, target_stashes: List[str], era: int, timestamp: float) -> bool:
        if not await self.ledger.clear_current(address):
            return False

        applied = True
        for target_stash in target_stashes:
            if not await self.apply_decision(address, target_stash, era):
                applied = False

        await self.ledger.set_last_nomination(address, timestamp)

        if self.era_store is not None:
            await self.era_store.set_last_nominated_era_index(era)

        log.info(f'{address} now nominates {len(target_stashes)} targets in era {era}.')

        return applied

    async def forward(self, method: str, name: str) -> bool:
        try:
            res = getattr(self.sink, method)(name)
            if asyncio.iscoroutine(res):
                res = await res
        except Exception as err:
            log.error(f'Reporting sink failed on {method} for {name}: {err}')
            return False

        return bool(res)

    async def report_offline(self, name: str) -> bool:
        return await self.forward('report_offline', name)

    async def report_online(self, name: str) -> bool:
        return await self.forward('report_online', name)
