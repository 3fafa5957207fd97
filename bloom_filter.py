"""Bloom Filter - вероятностная структура для проверки принадлежности.

Формат сериализации: подряд идущие 32-битные слова big-endian, без
заголовка, длины и контрольной суммы. m и k передаются отдельно,
from_bytes без правильного k дает бессмысленный фильтр.

Фильтр не потокобезопасен на запись: конкурентные add() требуют
внешней блокировки. Параллельные test() без записи безопасны.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np

from fnv import MASK32, locations

logger = logging.getLogger(__name__)

WORD_BITS = 32

Element = Union[bytes, bytearray, memoryview, str]


class BloomFilterError(ValueError):
    """Базовая ошибка фильтра."""


class InvalidParameters(BloomFilterError):
    pass


class InvalidEncoding(BloomFilterError):
    pass


class IncompatibleFilters(BloomFilterError):
    pass


def estimate_parameters(n: int, p: float) -> Tuple[int, int]:
    """
    Оценка m и k для n элементов при вероятности ложного срабатывания p.

    m = ceil(-n ln p / ln^2 2), k = ceil(ln 2 * m / n), затем m
    округляется вверх до кратного 32.
    """
    if n <= 0:
        raise InvalidParameters(f"expected count must be positive, got {n}")
    if not 0 < p < 1:
        raise InvalidParameters(f"false positive rate must be in (0, 1), got {p}")
    m = int(math.ceil(-1 * n * math.log(p) / math.pow(math.log(2), 2)))
    k = int(math.ceil(math.log(2) * m / n))
    if m % WORD_BITS:
        m += WORD_BITS - m % WORD_BITS
    return m, k


def expected_fpr(m: int, k: int, n: int) -> float:
    """Теоретический FPR: (1 - e^(-kn/m))^k."""
    if n == 0 or k <= 0:
        return 0.0
    return float((1 - np.exp(-k * n / m)) ** k)


@dataclass(frozen=True)
class BloomConfig:
    m: int  # запрошенный размер битового массива
    k: int  # количество хеш-функций

    def __post_init__(self):
        for name in ("m", "k"):
            value = getattr(self, name)
            if not _is_int(value):
                raise InvalidParameters(f"{name} must be an integer, got {value!r}")
        if self.m <= 0:
            raise InvalidParameters(f"bit capacity must be positive, got {self.m}")
        # k <= 0 допустим: такой фильтр ничего не содержит

    @property
    def word_count(self) -> int:
        return -(-self.m // WORD_BITS)

    @property
    def bits(self) -> int:
        """Реальный размер: m, округленный вверх до кратного 32."""
        return self.word_count * WORD_BITS

    @property
    def optimal_n(self) -> int:
        """Оптимальное количество элементов: n = (m/k) * ln(2)."""
        if self.k <= 0:
            return 0
        return int(self.bits * np.log(2) / self.k)

    @classmethod
    def from_estimate(cls, n: int, p: float) -> 'BloomConfig':
        m, k = estimate_parameters(n, p)
        return cls(m=m, k=k)


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


def _check_words(words: Iterable[int]) -> List[int]:
    """Слова должны быть целыми в [0, 2^32)."""
    values = words.tolist() if isinstance(words, np.ndarray) else list(words)
    for i, w in enumerate(values):
        if not _is_int(w) or not 0 <= w <= MASK32:
            raise InvalidParameters(f"word {i} is not a uint32: {w!r}")
    return values


def _as_bytes(item: Element) -> bytes:
    if isinstance(item, str):
        return item.encode("utf-8")
    if isinstance(item, (bytes, bytearray, memoryview)):
        return bytes(item)
    raise TypeError(f"expected bytes-like or str, got {type(item).__name__}")


def _int_bytes(value: int) -> bytes:
    """int -> 4 байта big-endian, по модулю 2^32."""
    return (int(value) & MASK32).to_bytes(4, "big")


class BloomFilter:
    """
    Bloom Filter над массивом uint32 с O(k) add/test.

    Бит b лежит в слове b // 32 на позиции b % 32 (младший бит первым).
    Биты только устанавливаются, удаления нет.
    """

    def __init__(self, config: BloomConfig, buckets: Optional[np.ndarray] = None):
        self.config = config
        if buckets is None:
            buckets = np.zeros(config.word_count, dtype=np.uint32)
        self.buckets = buckets
        logger.debug("BloomFilter created: m=%d k=%d", self.m, self.k)

    @classmethod
    def from_words(cls, words: Iterable[int], k: int) -> 'BloomFilter':
        """Фильтр из последовательности слов. Слова копируются."""
        buckets = np.array(_check_words(words), dtype=np.uint32)
        if buckets.size == 0:
            raise InvalidParameters("word sequence must not be empty")
        return cls(BloomConfig(m=buckets.size * WORD_BITS, k=k), buckets)

    @classmethod
    def from_bytes(cls, data: Union[bytes, bytearray, memoryview], k: int) -> 'BloomFilter':
        """Фильтр из байтов, полученных через to_bytes()."""
        data = bytes(data)
        if len(data) % 4:
            raise InvalidEncoding(f"byte length must be a multiple of 4, got {len(data)}")
        logger.debug("Decoding %d bytes into %d words", len(data), len(data) // 4)
        return cls.from_words(np.frombuffer(data, dtype='>u4'), k)

    @property
    def m(self) -> int:
        return self.buckets.size * WORD_BITS

    @property
    def k(self) -> int:
        return self.config.k

    def _positions(self, data: bytes) -> Tuple[np.ndarray, np.ndarray]:
        locs = np.array(locations(data, self.m, self.k), dtype=np.uint32)
        words = (locs >> 5).astype(np.intp)
        masks = np.left_shift(np.uint32(1), locs & np.uint32(31))
        return words, masks

    def add(self, item: Element) -> None:
        words, masks = self._positions(_as_bytes(item))
        np.bitwise_or.at(self.buckets, words, masks)

    def add_int(self, value: int) -> None:
        self.add(_int_bytes(value))

    def test(self, item: Element) -> bool:
        """True - вероятно есть, False - точно нет."""
        if self.k <= 0:
            return False
        words, masks = self._positions(_as_bytes(item))
        return bool(np.all(self.buckets[words] & masks))

    def test_int(self, value: int) -> bool:
        return self.test(_int_bytes(value))

    def __contains__(self, item) -> bool:
        if isinstance(item, (int, np.integer)):
            return self.test_int(item)
        return self.test(item)

    def to_bytes(self) -> bytes:
        return self.buckets.astype('>u4').tobytes()

    def to_words(self) -> np.ndarray:
        """Копия слов: изменения в ней не влияют на фильтр."""
        return self.buckets.copy()

    def copy(self) -> 'BloomFilter':
        return BloomFilter(self.config, self.buckets.copy())

    def _check_compatible(self, other: 'BloomFilter') -> None:
        if (self.m, self.k) != (other.m, other.k):
            raise IncompatibleFilters(
                f"Incompatible filters: (m={self.m}, k={self.k}) vs (m={other.m}, k={other.k})"
            )

    def __or__(self, other: 'BloomFilter') -> 'BloomFilter':
        """Объединение фильтров."""
        self._check_compatible(other)
        return BloomFilter(self.config, self.buckets | other.buckets)

    def __and__(self, other: 'BloomFilter') -> 'BloomFilter':
        """Пересечение фильтров (может давать больше FP, чем фильтр пересечения)."""
        self._check_compatible(other)
        return BloomFilter(self.config, self.buckets & other.buckets)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BloomFilter):
            return NotImplemented
        return self.k == other.k and np.array_equal(self.buckets, other.buckets)

    __hash__ = None

    @property
    def bit_count(self) -> int:
        return int(np.unpackbits(self.buckets.view(np.uint8)).sum())

    @property
    def fill_ratio(self) -> float:
        return self.bit_count / self.m

    @property
    def fpr(self) -> float:
        """Текущий FPR по заполненности: (X/m)^k."""
        if self.k <= 0:
            return 0.0
        return self.fill_ratio ** self.k

    def approximate_count(self) -> float:
        """Оценка числа элементов (Swamidass-Baldi): -(m/k) ln(1 - X/m)."""
        x = self.bit_count
        if self.k <= 0:
            return 0.0
        if x == self.m:
            return math.inf
        return -(self.m / self.k) * math.log(1 - x / self.m)

    def __repr__(self) -> str:
        return f"BloomFilter(m={self.m}, k={self.k}, fill={self.fill_ratio:.3f})"
