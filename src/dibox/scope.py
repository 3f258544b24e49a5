from __future__ import annotations

from dataclasses import dataclass

ScopeSegments = tuple[tuple[str | None, int], ...]


@dataclass(frozen=True, slots=True)
class ScopeId:
    """Tuple-based scope identifier for fast scope matching.

    Each segment is a (scope_name, instance_id) pair, outermost first.
    """

    segments: ScopeSegments

    @property
    def path(self) -> str:
        """Generate string path only when needed (error messages)."""
        parts = []
        for name, id_ in self.segments:
            parts.append(f"{name}/{id_}" if name else str(id_))
        return "/".join(parts)

    def contains_scope(self, scope_name: str) -> bool:
        """Check if this scope contains the given scope name."""
        return any(name == scope_name for name, _ in self.segments)

    def get_cache_key_for_scope(self, scope_name: str | None) -> ScopeSegments | None:
        """Get the tuple key up to and including the innermost matching segment.

        ``None`` selects the innermost scope. Returns None if the scope is not found.
        """
        if scope_name is None:
            return self.segments
        for i in range(len(self.segments) - 1, -1, -1):
            if self.segments[i][0] == scope_name:
                return self.segments[: i + 1]
        return None
