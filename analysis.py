"""Эксперименты: реальный FPR фильтра против теоретического."""

from typing import List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from scipy import stats

from bloom_filter import BloomConfig, BloomFilter, estimate_parameters, expected_fpr


def generate_dataset(size: int, seed: Optional[int] = None) -> Tuple[List[str], List[str]]:
    # train и test с разными префиксами, поэтому не пересекаются
    salt = np.random.randint(0, 10**6) if seed is None else seed
    train = [f"train_{salt}_{i}" for i in range(size)]
    test = [f"test_{salt}_{i}" for i in range(size)]
    return train, test


def observed_fpr(m: int, k: int, n: int, seed: Optional[int] = None) -> float:
    train, test = generate_dataset(n, seed)
    bf = BloomFilter(BloomConfig(m=m, k=k))
    for item in train:
        bf.add(item)
    return sum(1 for item in test if item in bf) / len(test)


def measure_fpr(m_values: List[int], k_values: List[int], n: int = 1000,
                seed: Optional[int] = None) -> np.ndarray:
    """Измерение FPR для разных m и k."""
    results = np.zeros((len(m_values), len(k_values)))
    for i, m in enumerate(m_values):
        for j, k in enumerate(k_values):
            results[i, j] = observed_fpr(m, k, n, seed)
    return results


def theoretical_fpr_matrix(m_values: List[int], k_values: List[int], n: int = 1000) -> np.ndarray:
    # m округляется до кратного 32 так же, как в фильтре
    return np.array([[expected_fpr(BloomConfig(m=m, k=k).bits, k, n) for k in k_values]
                     for m in m_values])


def check_estimate(n: int, p: float, seed: Optional[int] = None) -> Tuple[int, int, float]:
    """Строит фильтр по estimate_parameters и возвращает (m, k, реальный FPR)."""
    m, k = estimate_parameters(n, p)
    return m, k, observed_fpr(m, k, n, seed)


def anova_analysis(m_values: List[int], k_values: List[int], n: int = 1000, trials: int = 30):
    """Однофакторный ANOVA по m и по k."""
    data = []
    for m in m_values:
        for k in k_values:
            for _ in range(trials):
                data.append({'m': m, 'k': k, 'fpr': observed_fpr(m, k, n)})

    groups_m = {m: [d['fpr'] for d in data if d['m'] == m] for m in m_values}
    groups_k = {k: [d['fpr'] for d in data if d['k'] == k] for k in k_values}

    f_m, p_m = stats.f_oneway(*groups_m.values())
    f_k, p_k = stats.f_oneway(*groups_k.values())

    print("ANOVA Results:")
    print(f"Factor m: F={f_m:.4f}, p={p_m:.6f} {'***' if p_m < 0.001 else ''}")
    print(f"Factor k: F={f_k:.4f}, p={p_k:.6f} {'***' if p_k < 0.001 else ''}")
    return (f_m, p_m), (f_k, p_k)


def plot_heatmap(results: np.ndarray, m_values: List[int], k_values: List[int], n: int = 1000,
                 path: str = 'bloom_fpr_heatmap.png'):
    """Реальный FPR рядом с теоретическим, общая шкала цвета."""
    theory = theoretical_fpr_matrix(m_values, k_values, n)
    vmax = max(float(results.max()), float(theory.max()), 1e-9)
    # по оси m реальный размер после округления до слова
    m_labels = [BloomConfig(m=m, k=1).bits for m in m_values]

    fig, axes = plt.subplots(1, 2, figsize=(14, 6), sharey=True)
    for ax, data, title in ((axes[0], results, f'Реальный FPR (n={n})'),
                            (axes[1], theory, 'Теория (1 - e^(-kn/m))^k')):
        im = ax.imshow(data, cmap='viridis', aspect='auto', vmin=0, vmax=vmax)
        for i in range(data.shape[0]):
            for j in range(data.shape[1]):
                ax.text(j, i, f'{data[i, j]:.3f}', ha='center', va='center', color='white', fontsize=8)
        ax.set_xticks(range(len(k_values)))
        ax.set_xticklabels(k_values)
        ax.set_xlabel('k (hash functions)')
        ax.set_title(title)
    axes[0].set_yticks(range(len(m_values)))
    axes[0].set_yticklabels(m_labels)
    axes[0].set_ylabel('m (bits, word-aligned)')
    fig.colorbar(im, ax=axes, label='False Positive Rate')
    fig.savefig(path, dpi=150)
    plt.close(fig)


def plot_theory_vs_practice(m_values: List[int], k: int = 7, n: int = 1000, runs: int = 20,
                            path: str = 'fpr_theory_vs_practice.png'):
    fprs = [np.mean([observed_fpr(m, k, n) for _ in range(runs)]) for m in m_values]
    theory = [expected_fpr(BloomConfig(m=m, k=k).bits, k, n) for m in m_values]

    fig, ax = plt.subplots(figsize=(8, 6))
    ax.plot(m_values, fprs, 'o-', color='steelblue', label='Реальный')
    ax.plot(m_values, theory, 's--', color='gray', label='Теория', alpha=0.7)
    ax.set_xlabel("m (размер битового массива)")
    ax.set_ylabel("FPR")
    ax.set_title(f"FPR vs m (k={k}, n={n})")
    ax.set_xscale('log')
    ax.legend()
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(path, dpi=300)
    plt.close(fig)


if __name__ == "__main__":
    m_vals = [1000, 5000, 10000, 50000]
    k_vals = [3, 5, 7, 10]

    print("Running FPR analysis...")
    fpr_matrix = measure_fpr(m_vals, k_vals, n=1000)
    print(fpr_matrix)
    print("Theory:")
    print(theoretical_fpr_matrix(m_vals, k_vals, n=1000))
    plot_heatmap(fpr_matrix, m_vals, k_vals, n=1000)

    print("\nEstimated parameters:")
    for p in (1e-2, 1e-3, 1e-4):
        m, k, fpr = check_estimate(1000, p)
        print(f"p={p:g}: m={m}, k={k}, FPR={fpr:.5f}")

    print("\nRunning ANOVA...")
    anova_analysis(m_vals, k_vals)
