import logging
from typing import Callable, List, Optional

import httpx

logger = logging.getLogger("NetworkMonitor")

Listener = Callable[[bool], None]


class NetworkMonitor:
    """
    Fonte de status de rede. Injetada explicitamente nos serviços (sem
    singleton global). O estado conhecido é apenas consultivo: is_connected()
    sempre consulta o probe novamente.
    """

    def __init__(self, probe: Callable[[], bool]):
        self._probe = probe
        self._listeners: List[Listener] = []
        self._current: Optional[bool] = None

    @property
    def last_known_state(self) -> Optional[bool]:
        return self._current

    def is_connected(self) -> bool:
        state = bool(self._probe())
        if state != self._current:
            self.notify(state)
        return state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        # Notifica imediatamente com o estado atual, se já conhecido
        if self._current is not None:
            listener(self._current)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify(self, is_connected: bool):
        """Repassa a transição para todos os assinantes (entrega at-least-once)"""
        self._current = is_connected
        logger.info("Rede %s", "online" if is_connected else "offline")
        for listener in list(self._listeners):
            try:
                listener(is_connected)
            except Exception:
                logger.exception("Listener de rede falhou")

    def dispose(self):
        self._listeners.clear()


def http_probe(client: httpx.Client, path: str = "/") -> Callable[[], bool]:
    """Probe que considera online quando o servidor de sync responde"""

    def probe() -> bool:
        try:
            response = client.get(path)
            return response.status_code < 500
        except httpx.HTTPError:
            return False

    return probe
