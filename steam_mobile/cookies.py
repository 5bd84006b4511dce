"""
Хранилище cookies с разбиением по доменам.
Cookie всегда запрашиваются для конкретного хоста, общего списка на запрос нет.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger


@dataclass(frozen=True)
class CookieRecord:
    """Одна cookie, привязанная к домену"""
    domain: str
    name: str
    value: str
    path: str = '/'


def normalize_domain(domain: str) -> str:
    return domain.strip().lstrip('.').lower()


class CookieDomainStore:
    """
    Cookie jar в памяти: домен -> имя -> CookieRecord.

    Все изменения делаются под одной блокировкой, так что чтение
    никогда не видит частично обновленный набор доменов.
    """

    def __init__(self, records: Iterable[CookieRecord] = ()):
        self._lock = threading.RLock()
        self._domains: Dict[str, Dict[str, CookieRecord]] = {}
        self.add_all(records)

    def add(self, record: CookieRecord):
        self.add_all([record])

    def add_all(self, records: Iterable[CookieRecord]):
        """Атомарная запись нескольких cookies"""
        records = [
            CookieRecord(normalize_domain(r.domain), r.name, r.value, r.path or '/')
            for r in records
        ]
        with self._lock:
            for record in records:
                self._domains.setdefault(record.domain, {})[record.name] = record
                logger.trace(f"Cookie set: {record.domain} {record.name}")

    def project(self, cookies: Dict[str, str], domains: Iterable[str], path: str = '/') -> List[CookieRecord]:
        """
        Одни и те же значения, размноженные по нескольким доменам одной записью.
        У каждого домена своя независимая копия.
        """
        records = [
            CookieRecord(domain, name, value, path)
            for domain in domains
            for name, value in cookies.items()
        ]
        self.add_all(records)
        return records

    def update_from_response(self, host: str, cookies: Iterable[Tuple[str, str, str]]):
        """
        Cookies из Set-Cookie ответа всегда записываются под хост ответа.
        Пустое значение или deleted удаляет cookie.
        """
        domain = normalize_domain(host)
        records = []
        removed = []
        for name, value, path in cookies:
            if value in ('', 'deleted'):
                removed.append(name)
            else:
                records.append(CookieRecord(domain, name, value, path))

        with self._lock:
            self.add_all(records)
            for name in removed:
                if self._domains.get(domain, {}).pop(name, None) is not None:
                    logger.trace(f"Cookie removed: {domain} {name}")

    def get(self, domain: str, name: str) -> Optional[str]:
        with self._lock:
            record = self._domains.get(normalize_domain(domain), {}).get(name)
        return record.value if record else None

    def for_domain(self, domain: str) -> Dict[str, str]:
        """Копия cookies одного домена: имя -> значение"""
        with self._lock:
            records = list(self._domains.get(normalize_domain(domain), {}).values())
        return {r.name: r.value for r in records}

    def header_for(self, domain: str) -> str:
        """Значение заголовка Cookie для запроса на этот хост"""
        return '; '.join(f"{name}={value}" for name, value in self.for_domain(domain).items())

    def remove(self, domain: str, name: str) -> bool:
        with self._lock:
            return self._domains.get(normalize_domain(domain), {}).pop(name, None) is not None

    def domains(self) -> List[str]:
        with self._lock:
            return sorted(self._domains)

    def clear(self):
        with self._lock:
            self._domains.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(cookies) for cookies in self._domains.values())
