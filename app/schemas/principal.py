from pydantic import BaseModel

PRIVILEGED_ROLE = "admin"
ROLES = {"user", PRIVILEGED_ROLE}


class Principal(BaseModel):
    id: str
    role: str = "user"

    @property
    def is_privileged(self) -> bool:
        return self.role == PRIVILEGED_ROLE


def normalize_role(role: str | None) -> str:
    """Always returns one of ROLES; anything unknown is treated as a plain user."""
    if not role or not str(role).strip():
        return "user"
    r = str(role).strip().lower()
    return r if r in ROLES else "user"
