"""Closed-form results for M/M/1 and M/M/m queues."""

from __future__ import annotations


def fac(num: int) -> float:
    """Return ``num!`` as a float; negative numbers are rejected."""
    if num < 0:
        raise ValueError("Factorial operation not work on negative numbers!")
    result = 1.0
    for factor in range(2, num + 1):
        result *= factor
    return result


def mm1_queue_len(lam: float, mu: float) -> float:
    """Mean number of requests waiting in an M/M/1 queue."""
    rho = lam / mu
    return rho * rho / (1 - rho)


def mm1_delay(lam: float, mu: float) -> float:
    """Mean total time a request spends in an M/M/1 system."""
    return 1.0 / (mu - lam)


def mmm_pmf(lam: float, mu: float, m: int) -> float:
    """Probability that an arriving request has to wait in an M/M/m queue."""
    rho = lam / (m * mu)
    offered = m * rho
    tail = offered**m / (fac(m) * (1 - rho))
    total = sum(offered**k / fac(k) for k in range(m)) + tail
    pi0 = 1.0 / total
    return tail * pi0


def mmm_queue_len(lam: float, mu: float, m: int) -> float:
    """Mean number of requests waiting in an M/M/m queue."""
    rho = lam / (m * mu)
    return rho * mmm_pmf(lam, mu, m) / (1 - rho)


def mmm_delay(lam: float, mu: float, m: int) -> float:
    """Mean total time a request spends in an M/M/m system."""
    rho = lam / (m * mu)
    return (m * rho + mmm_pmf(lam, mu, m) * rho / (1 - rho)) / lam