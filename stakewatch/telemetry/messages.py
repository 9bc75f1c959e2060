'''
Decoding of telemetry feed frames.

The feed pushes JSON arrays that flatten several messages into one frame:

    [action, payload, action, payload, ...]

Only the node lifecycle actions matter for liveness. An AddedNode payload is
[node_id, [name, implementation, version, ...], ...] and acts as a heartbeat
for that name. RemovedNode and StaleNode carry only the node id, so the name
has to be remembered from the AddedNode that introduced it.
'''
import json
from typing import List, Tuple

FEED_VERSION = 0
BEST_BLOCK = 1
BEST_FINALIZED = 2
ADDED_NODE = 3
REMOVED_NODE = 4
LOCATED_NODE = 5
IMPORTED_BLOCK = 6
FINALIZED_BLOCK = 7
NODE_STATS = 8
NODE_HARDWARE = 9
TIME_SYNC = 10
ADDED_CHAIN = 11
REMOVED_CHAIN = 12
SUBSCRIBED_TO = 13
UNSUBSCRIBED_FROM = 14
PONG = 15
AFG_FINALIZED = 16
AFG_RECEIVED_PREVOTE = 17
AFG_RECEIVED_PRECOMMIT = 18
AFG_AUTHORITY_SET = 19
STALE_NODE = 20

EVENT_CONNECTED = 'connected'
EVENT_DISCONNECTED = 'disconnected'


class FeedDecodeError(ValueError):
    pass


def decode_frame(data: str) -> List[Tuple[int, object]]:
    try:
        messages = json.loads(data)
    except (TypeError, ValueError) as err:
        raise FeedDecodeError(f'Frame is not valid JSON: {err}') from err

    if not isinstance(messages, list) or len(messages) % 2 != 0:
        raise FeedDecodeError('Frame must be a flat list of action/payload pairs.')

    return [(messages[i], messages[i + 1]) for i in range(0, len(messages), 2)]


class NodeDirectory:
    """Remembers node id -> name so that removal messages can be resolved."""
    def __init__(self):
        self.nodes = {}

    def __len__(self):
        return len(self.nodes)

    def events(self, data: str) -> List[Tuple[str, str]]:
        events = []

        for action, payload in decode_frame(data):
            if action == ADDED_NODE:
                try:
                    node_id, details = payload[0], payload[1]
                    name = details[0]
                except (TypeError, IndexError, KeyError):
                    continue

                if not isinstance(node_id, (int, str)):
                    continue

                self.nodes[node_id] = name
                events.append((EVENT_CONNECTED, name))

            elif action in (REMOVED_NODE, STALE_NODE):
                if not isinstance(payload, (int, str)):
                    continue

                name = self.nodes.pop(payload, None) if action == REMOVED_NODE else self.nodes.get(payload)
                if name is not None:
                    events.append((EVENT_DISCONNECTED, name))

        return events
