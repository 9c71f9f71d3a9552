"""
Limitadores de taxa por janela fixa, chaveados pela identidade do cliente (IP).

- LimitadorTaxaMemoria: mapa no próprio processo (uma instância por servidor).
- LimitadorTaxaCache: contador no cache do Django (compartilhado quando o
  backend é Redis/Memcached).
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from django.core.cache import caches

from calibrasil.core.ports import ILimitadorTaxa

logger = logging.getLogger(__name__)


@dataclass
class RegistroLimite:
    contagem: int
    reset_em: float


class LimitadorTaxaMemoria(ILimitadorTaxa):
    """
    Contador em memória protegido por lock. Registros vencidos são removidos
    a cada `intervalo_limpeza` segundos, na própria chamada de `permitir`.
    """
    def __init__(self, limite: int, janela_segundos: int = 60,
                 relogio: Callable[[], float] = time.monotonic,
                 intervalo_limpeza: Optional[int] = None):
        self.limite = limite
        self.janela_segundos = janela_segundos
        self.relogio = relogio
        self.intervalo_limpeza = intervalo_limpeza or janela_segundos
        self._registros: Dict[str, RegistroLimite] = {}
        self._lock = threading.Lock()
        self._proxima_limpeza = self.relogio() + self.intervalo_limpeza

    def permitir(self, chave: str) -> bool:
        with self._lock:
            agora = self.relogio()
            if agora >= self._proxima_limpeza:
                self._limpar(agora)

            registro = self._registros.get(chave)
            if registro is None or agora > registro.reset_em:
                self._registros[chave] = RegistroLimite(1, agora + self.janela_segundos)
                return True

            if registro.contagem >= self.limite:
                return False

            registro.contagem += 1
            return True

    def limpar_expirados(self) -> int:
        with self._lock:
            return self._limpar(self.relogio())

    def resetar(self) -> None:
        with self._lock:
            self._registros.clear()

    def __len__(self):
        return len(self._registros)

    def _limpar(self, agora: float) -> int:
        vencidas = [chave for chave, registro in self._registros.items() if agora > registro.reset_em]
        for chave in vencidas:
            del self._registros[chave]
        self._proxima_limpeza = agora + self.intervalo_limpeza
        if vencidas:
            logger.debug("Limitador: %s registros expirados removidos", len(vencidas))
        return len(vencidas)


class LimitadorTaxaCache(ILimitadorTaxa):
    """
    Contador no cache do Django. A janela começa na primeira requisição
    (o TTL da chave) e não é estendida pelas seguintes.
    """
    def __init__(self, limite: int, janela_segundos: int = 60,
                 prefixo: str = 'rate-limit', alias_cache: str = 'default'):
        self.limite = limite
        self.janela_segundos = janela_segundos
        self.prefixo = prefixo
        self.alias_cache = alias_cache

    @property
    def cache(self):
        return caches[self.alias_cache]

    def _chave(self, chave: str) -> str:
        return f"{self.prefixo}:{chave}"

    def permitir(self, chave: str) -> bool:
        chave_cache = self._chave(chave)
        if self.cache.add(chave_cache, 1, timeout=self.janela_segundos):
            return True
        try:
            contagem = self.cache.incr(chave_cache)
        except ValueError:
            # Expirou entre o add e o incr
            self.cache.add(chave_cache, 1, timeout=self.janela_segundos)
            return True
        return contagem <= self.limite
