from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from stakewatch.config import DEFAULT_MONGO_URI
from stakewatch.logger.base import get_logger

DEFAULT_DB_NAME = 'otv'
ERA_INDEX_COLLECTION = 'eraIndex'
SERVER_SELECTION_TIMEOUT_MS = 5000

log = get_logger('DB')


class PersistenceConnectionError(ConnectionError):
    pass


class Db:
    def __init__(self, client, db_name: str = DEFAULT_DB_NAME, metrics=None):
        self.client = client
        self.db = client[db_name]
        self.metrics = metrics

        self.era_index = self.db[ERA_INDEX_COLLECTION]

    @classmethod
    async def create(cls, uri: str = DEFAULT_MONGO_URI, metrics=None, client_class=AsyncIOMotorClient) -> 'Db':
        log.info(f'Connecting to mongodb at: {uri}')

        client = None

        try:
            # InvalidURI / ConfigurationError are raised here for a malformed uri
            client = client_class(uri, maxPoolSize=5, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)
            await client.admin.command('ping')
            db_name = client.get_default_database(default=DEFAULT_DB_NAME).name
        except PyMongoError as err:
            log.error(f'MongoDB connection issue: {err}')
            if metrics is not None:
                metrics.set_db_connectivity(False)
            if client is not None:
                client.close()
            raise PersistenceConnectionError(f'Could not connect to mongodb at {uri}: {err}') from err

        db = cls(client=client, db_name=db_name, metrics=metrics)

        log.info('Established a connection to MongoDB.')
        if metrics is not None:
            metrics.set_db_connectivity(True)

        if not await db.get_last_nominated_era_index():
            await db.set_last_nominated_era_index(0)

        return db

    def __getitem__(self, item):
        return self.db[item]

    async def get_last_nominated_era_index(self) -> int:
        try:
            data = await self.era_index.find_one({})
        except PyMongoError as err:
            log.error(f'Could not read last nominated era index: {err}')
            return None

        if data is None:
            return None
        return data.get('lastNominatedEraIndex')

    async def set_last_nominated_era_index(self, era: int) -> bool:
        try:
            await self.era_index.update_one(
                {},
                {
                    '$set': {
                        'lastNominatedEraIndex': era
                    }
                }, upsert=True
            )
        except PyMongoError as err:
            log.error(f'Could not set last nominated era index to {era}: {err}')
            return False

        return True

    def close(self) -> None:
        log.info('Shutting down mongodb connection.....')
        self.client.close()

        if self.metrics is not None:
            self.metrics.set_db_connectivity(False)
