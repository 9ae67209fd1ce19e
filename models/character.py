"""Character data model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Character:
    """Represents a character card produced during planning."""
    name: str
    role: str = ""
    description: str = ""
    relationships: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Character":
        """Build a Character from loosely-typed backend JSON.

        Nested objects (e.g. a relationship map) are flattened to
        ``"key: value; ..."`` strings.
        """
        def _as_str(value) -> str:
            if value is None:
                return ""
            if isinstance(value, str):
                return value
            if isinstance(value, dict):
                return "; ".join(f"{k}: {v}" for k, v in value.items())
            if isinstance(value, list):
                return "; ".join(_as_str(v) for v in value)
            return str(value)

        return cls(
            name=_as_str(data.get("name")),
            role=_as_str(data.get("role")),
            description=_as_str(data.get("description")),
            relationships=_as_str(data.get("relationships")),
        )
