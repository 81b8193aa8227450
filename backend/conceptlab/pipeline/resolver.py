from typing import Iterable, Optional, Protocol, Tuple


# (id, name) pairs the resolver may pick from
Candidates = Iterable[Tuple[str, str]]


class NameResolver(Protocol):
    def resolve(self, name: str, candidates: Candidates) -> Optional[str]:
        """Return the id of the candidate ``name`` refers to, or None."""
        ...


class ExactNameResolver:
    """
    Exact, case-insensitive match after trimming.

    Lossy on purpose: near-misses ("Becomings", "the Being") resolve to
    nothing and callers drop them. Swap in another NameResolver for fuzzy
    matching.
    """

    def resolve(self, name: str, candidates: Candidates) -> Optional[str]:
        wanted = (name or "").strip().casefold()
        if not wanted:
            return None
        for candidate_id, candidate_name in candidates:
            if (candidate_name or "").strip().casefold() == wanted:
                return candidate_id
        return None


DEFAULT_RESOLVER = ExactNameResolver()
