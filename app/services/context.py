from dataclasses import dataclass

ROLE_BUYER = "buyer"
ROLE_SELLER = "seller"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class ActorContext:
    """Identity of the caller, passed explicitly into every core operation."""

    user_id: int
    role: str = ROLE_BUYER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_seller(self) -> bool:
        return self.role == ROLE_SELLER
