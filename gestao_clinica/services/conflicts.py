"""
Política de conflito compartilhada entre cliente e servidor:
last-writer-wins por updated_at, empate favorece a cópia remota
(o servidor é a autoridade do registro).
"""

from typing import Dict

from gestao_clinica.models.base import LOCAL_FIELDS, parse_ts


def remote_wins(local: Dict, remote: Dict) -> bool:
    local_ts = local.get("updated_at") or local.get("created_at")
    remote_ts = remote.get("updated_at") or remote.get("created_at")
    if remote_ts is None:
        return False
    if local_ts is None:
        return True
    return parse_ts(remote_ts) >= parse_ts(local_ts)


def content_of(item: Dict) -> Dict:
    """Registro sem os campos de controle local (o que vai no push)"""
    return {k: v for k, v in item.items() if k not in LOCAL_FIELDS}


def same_content(a: Dict, b: Dict) -> bool:
    left, right = content_of(a), content_of(b)
    left.setdefault("is_deleted", False)
    right.setdefault("is_deleted", False)
    for ts_field in ("created_at", "updated_at"):
        # Mesma data pode vir serializada com 'Z' ou '+00:00'
        if left.get(ts_field) and right.get(ts_field):
            if parse_ts(left[ts_field]) == parse_ts(right[ts_field]):
                right[ts_field] = left[ts_field]
    return left == right
