from typing import NamedTuple, Optional


class Principal(NamedTuple):
    """ The authenticated caller, as resolved by the authentication layer

        DocQuery treats it as an opaque input: `id` is only used to force the ownership field.
    """
    id: str
    plan: Optional[str] = None
