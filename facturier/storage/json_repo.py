from __future__ import annotations

import json
import logging
import shutil
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

log = logging.getLogger(__name__)

Record = Dict[str, Any]


class StorageError(RuntimeError):
    """Écriture ou lecture impossible sur le stockage."""


def _encode(o: Any) -> str:
    # Decimal en chaîne : aucun arrondi flottant sur les montants
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    return str(o)


class JsonRepository:
    """
    Fichier JSON contenant une liste d'enregistrements, indexés par `key`.

    Chaque écriture qui modifie le contenu copie d'abord l'ancien fichier
    en `<nom>.<horodatage>.bak.json` ; seules les `backup_keep` copies les
    plus récentes sont conservées. Un fichier illisible est mis de côté en
    `<nom>.corrupt.json` et le dépôt repart d'une liste vide.
    """

    def __init__(self, filepath: Union[str, Path], entity_name: str, key: str = "id", backup_keep: int = 5):
        # backup_keep=0 : aucune copie .bak.json
        self.filepath, self.entity_name, self.key = Path(filepath), entity_name, key
        self.backup_keep = max(0, backup_keep)
        self._lock = threading.Lock()

        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Dossier de données inaccessible : {self.filepath.parent} ({e})") from e
        if not self.filepath.exists():
            self._save([])

    def _load(self) -> List[Record]:
        try:
            text = self.filepath.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Lecture impossible : {self.filepath} ({e})") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            log.warning("%s : %s illisible, copie en .corrupt.json", self.entity_name, self.filepath)
            try:
                self.filepath.with_suffix(".corrupt.json").write_text(text, encoding="utf-8")
            except OSError:
                log.exception("Copie du fichier illisible impossible")
            return []
        return data if isinstance(data, list) else []

    def _backup(self) -> None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        shutil.copy2(self.filepath, self.filepath.with_suffix(f".{stamp}.bak.json"))
        # horodatage triable : les plus anciennes d'abord
        backups = sorted(self.filepath.parent.glob(f"{self.filepath.stem}.*.bak.json"))
        for old in backups[: -self.backup_keep]:
            old.unlink(missing_ok=True)

    def _save(self, records: List[Record]) -> None:
        dump = json.dumps(records, ensure_ascii=False, indent=2, default=_encode)
        with self._lock:
            try:
                if self.filepath.exists():
                    if self.filepath.read_text(encoding="utf-8") == dump:
                        return
                    if self.backup_keep:
                        self._backup()
                self.filepath.write_text(dump, encoding="utf-8")
            except OSError as e:
                raise StorageError(f"Écriture impossible : {self.filepath} ({e})") from e

    def _matches(self, record: Record, obj_id: Any) -> bool:
        return str(record.get(self.key)) == str(obj_id)

    def list_all(self) -> List[Record]:
        return self._load()

    def find(self, predicate: Callable[[Record], bool]) -> List[Record]:
        return [r for r in self._load() if predicate(r)]

    def get_by_id(self, obj_id: Any) -> Optional[Record]:
        return next((r for r in self._load() if self._matches(r, obj_id)), None)

    def upsert(self, record: Record) -> Record:
        """Fusionne avec l'enregistrement de même clé, sinon l'ajoute en fin de liste."""
        obj_id = record.get(self.key)
        if not obj_id:
            raise StorageError(f"Impossible d'enregistrer {self.entity_name} sans '{self.key}'")
        records = self._load()
        pos = next((i for i, r in enumerate(records) if self._matches(r, obj_id)), None)
        if pos is None:
            merged = dict(record)
            records.append(merged)
        else:
            merged = {**records[pos], **record}
            records[pos] = merged
        self._save(records)
        return merged
