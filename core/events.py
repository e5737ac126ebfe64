from typing import Callable, Dict, List, NamedTuple
from datetime import datetime

__all__ = [
    'OPERATION_ADDED', 'OPERATION_REMOVED', 'BALANCE_ALERT',
    'Event', 'EventBus', 'check_balance_handler',
]


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event, dict], dict]]] = {}

    def subscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        results = []
        for handler in self._subscribers[name]:
            result = handler(event, payload)
            results.append(result)
        return results

    def unsubscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)


OPERATION_ADDED = "OPERATION_ADDED"
OPERATION_REMOVED = "OPERATION_REMOVED"
BALANCE_ALERT = "BALANCE_ALERT"


def check_balance_handler(event: Event, payload: dict) -> dict:
    balance = payload.get("balance", 0)
    threshold = payload.get("threshold", 0)

    if balance < threshold and threshold > 0:
        return {
            "alert": f"Balance alert: account {payload.get('account_id')} balance {balance} is below threshold {threshold}",
            "account_id": payload.get("account_id"),
            "balance": balance,
            "threshold": threshold
        }
    return {}
