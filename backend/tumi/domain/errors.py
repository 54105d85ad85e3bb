from dataclasses import dataclass
from typing import List


@dataclass
class DomainError(Exception):
    detail: str
    title: str = "Domain Error"
    type: str = "https://tumi.esn.world/problems/domain-error"
    errors: List[dict] | None = None
    status_code: int = 400


class NotFoundError(DomainError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            detail=detail,
            title="Not Found",
            type="https://tumi.esn.world/problems/not-found",
            status_code=404,
        )


class ConflictError(DomainError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            detail=detail,
            title="Conflict",
            type="https://tumi.esn.world/problems/conflict",
            status_code=409,
        )
