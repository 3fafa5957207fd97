"""FNV-1a с сидом и double hashing для позиций в Bloom Filter."""

from typing import Iterable, List

MASK32 = 0xFFFFFFFF
OFFSET_BASIS = 2166136261
SEED_A = 0
SEED_B = 1576284489


def fnv_multiply(a: int) -> int:
    """a * 16777619 mod 2^32 через сдвиги и сложения."""
    return (a + (a << 1) + (a << 4) + (a << 7) + (a << 8) + (a << 24)) & MASK32


def fnv_mix(a: int) -> int:
    """Финальное перемешивание (avalanche) по Bret Mulvey."""
    a = (a + (a << 13)) & MASK32
    a ^= a >> 7
    a = (a + (a << 3)) & MASK32
    a ^= a >> 17
    a = (a + (a << 5)) & MASK32
    return a


def fnv_1a(v: Iterable[int], seed: int = 0) -> int:
    """
    Нестандартный FNV-1a: сид подмешивается в offset basis.

    Каждый элемент v трактуется как 16-битная code unit: старший байт
    (если ненулевой) идет первым, младший всегда. Для bytes старший
    байт всегда 0.
    """
    a = (OFFSET_BASIS ^ seed) & MASK32
    for c in v:
        d = c & 0xFF00
        if d:
            a = fnv_multiply(a ^ (d >> 8))
        a = fnv_multiply(a ^ (c & 0xFF))
    return fnv_mix(a)


def locations(v: bytes, m: int, k: int) -> List[int]:
    """k позиций в [0, m): x_{i+1} = (x_i + b) mod m, сумма с переполнением uint32."""
    a = fnv_1a(v, SEED_A)
    b = fnv_1a(v, SEED_B)
    x = a % m
    result = []
    for _ in range(k):
        result.append(x)
        x = ((x + b) & MASK32) % m
    return result
