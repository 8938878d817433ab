from typing import Any, Dict, List, Optional

import httpx

from gestao_clinica.config import API_BASE_URL, TIMEOUT_SECONDS


class RemoteClient:
    """
    Contrato HTTP com o servidor central (ver backend/main.py):
      POST /sync/push/{resource}  -> {"processed_ids": [...], "conflicts": [...]}
      GET  /sync/pull/{resource}  -> {"changes": [...], "current_server_time": "..."}
    Erros do httpx sobem para o SyncManager, que os classifica. Corpo que não
    segue o contrato vira ValueError.
    """

    def __init__(self, base_url: str = API_BASE_URL, timeout: float = TIMEOUT_SECONDS,
                 client: Optional[httpx.Client] = None):
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    @staticmethod
    def _json_object(response: httpx.Response) -> Dict[str, Any]:
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Resposta inesperada de {response.request.url.path}")
        return data

    def push(self, resource: str, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        result = self._json_object(self.client.post(f"/sync/push/{resource}", json=items))
        return {
            "processed_ids": result.get("processed_ids", []),
            "conflicts": result.get("conflicts", []),
        }

    def pull(self, resource: str, since: str) -> Dict[str, Any]:
        data = self._json_object(self.client.get(f"/sync/pull/{resource}", params={"since": since}))
        return {
            "changes": data.get("changes", []),
            "current_server_time": data.get("current_server_time"),
        }

    def close(self):
        self.client.close()
